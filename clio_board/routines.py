"""
Routines: optional grouping containers for tasks and notes.

Tasks and notes hold a weak reference to their routine; deleting a routine
clears those references (ON DELETE SET NULL) and leaves the tasks where they
are on the board.
"""
import logging
import sqlite3
import uuid
from typing import List, Optional

from . import validation
from .audit import AuditTrail
from .errors import Conflict, InvalidArgument, NotFound, log_failures
from .schema import Actor, Routine, RoutineStatus, utc_now
from .store import BoardStore

logger = logging.getLogger(__name__)

TITLE_LIMIT = 45
DESCRIPTION_LIMIT = 100
ICON_LIMIT = 10
COLOR_LIMIT = 20

EDITABLE_FIELDS = ("title", "description", "color", "icon", "achievable")


class RoutineService:
    """Routine lifecycle: create, edit, pause, complete, archive/restore, delete."""

    def __init__(self, store: BoardStore, audit: Optional[AuditTrail] = None):
        self.store = store
        self.audit = audit or AuditTrail(store)

    def get(self, routine_id: str) -> Routine:
        with self.store.read() as conn:
            routine = self._load(conn, routine_id)
        if routine is None:
            raise NotFound(f"Routine {routine_id} not found")
        return routine

    def list_all(self) -> List[Routine]:
        """Routines that are not archived, newest first."""
        with self.store.read() as conn:
            rows = conn.execute(
                "SELECT * FROM routines WHERE is_archived = 0 ORDER BY created_at DESC"
            ).fetchall()
        return [Routine.from_row(r) for r in rows]

    def list_archived(self) -> List[Routine]:
        with self.store.read() as conn:
            rows = conn.execute(
                "SELECT * FROM routines WHERE is_archived = 1 ORDER BY archived_at DESC, id"
            ).fetchall()
        return [Routine.from_row(r) for r in rows]

    @log_failures("create_routine", logger)
    def create(
        self,
        title: str,
        description: Optional[str] = None,
        color: str = "#3498db",
        icon: str = "📌",
        achievable: bool = False,
        actor="user",
    ) -> Routine:
        actor = Actor.parse(actor)
        title = validation.require_text(title, "Routine title", TITLE_LIMIT)
        description = validation.optional_text(description, "Description", DESCRIPTION_LIMIT)
        icon = validation.require_text(icon, "Icon", ICON_LIMIT)
        achievable = validation.flag(achievable, "achievable")

        routine_id = uuid.uuid4().hex
        now = utc_now().isoformat()
        with self.store.transaction() as conn:
            conn.execute(
                """
                INSERT INTO routines
                (id, title, description, color, icon, status, achievable, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, 'active', ?, ?, ?)
                """,
                (routine_id, title, description, color, icon, 1 if achievable else 0, now, now),
            )
            routine = self._audited(conn, actor, "create_routine", routine_id, None)

        logger.info(f"Routine created: {routine_id} '{title}'")
        return routine

    @log_failures("update_routine", logger)
    def update(self, routine_id: str, actor="user", **fields) -> Routine:
        """
        Edit title, description, color, icon or achievable.

        Status changes go through pause/complete/archive/restore.
        """
        actor = Actor.parse(actor)
        if not fields:
            raise InvalidArgument("No valid fields to update")
        unknown = sorted(set(fields) - set(EDITABLE_FIELDS))
        if unknown:
            raise InvalidArgument(f"Field(s) not editable: {unknown}. Editable: {list(EDITABLE_FIELDS)}")

        values = {}
        if "title" in fields:
            values["title"] = validation.require_text(fields["title"], "Routine title", TITLE_LIMIT)
        if "description" in fields:
            values["description"] = validation.optional_text(fields["description"], "Description", DESCRIPTION_LIMIT)
        if "color" in fields:
            values["color"] = validation.require_text(fields["color"], "Color", COLOR_LIMIT)
        if "icon" in fields:
            values["icon"] = validation.require_text(fields["icon"], "Icon", ICON_LIMIT)
        if "achievable" in fields:
            values["achievable"] = 1 if validation.flag(fields["achievable"], "achievable") else 0

        with self.store.transaction() as conn:
            before = self._require(conn, routine_id)
            set_clause = ", ".join(f"{name} = ?" for name in values)
            conn.execute(
                f"UPDATE routines SET {set_clause}, updated_at = ? WHERE id = ?",
                (*values.values(), utc_now().isoformat(), routine_id),
            )
            routine = self._audited(conn, actor, "update_routine", routine_id, before)

        logger.info(f"Routine updated: {routine_id} {sorted(values)}")
        return routine

    @log_failures("pause_routine", logger)
    def pause(self, routine_id: str, actor="user") -> Routine:
        """Pause an active routine."""
        actor = Actor.parse(actor)
        with self.store.transaction() as conn:
            before = self._require(conn, routine_id)
            if before.status != RoutineStatus.ACTIVE:
                raise Conflict(f"Routine {routine_id} is {before.status.value}, not active")
            self._set_status(conn, routine_id, RoutineStatus.PAUSED)
            routine = self._audited(conn, actor, "pause_routine", routine_id, before)

        logger.info(f"Routine paused: {routine_id}")
        return routine

    @log_failures("resume_routine", logger)
    def resume(self, routine_id: str, actor="user") -> Routine:
        """Return a paused routine to active."""
        actor = Actor.parse(actor)
        with self.store.transaction() as conn:
            before = self._require(conn, routine_id)
            if before.status != RoutineStatus.PAUSED:
                raise Conflict(f"Routine {routine_id} is not paused")
            self._set_status(conn, routine_id, RoutineStatus.ACTIVE)
            routine = self._audited(conn, actor, "resume_routine", routine_id, before)

        logger.info(f"Routine resumed: {routine_id}")
        return routine

    @log_failures("complete_routine", logger)
    def complete(self, routine_id: str, actor="user") -> Routine:
        """Mark an achievable routine completed."""
        actor = Actor.parse(actor)
        with self.store.transaction() as conn:
            before = self._require(conn, routine_id)
            if not before.achievable:
                raise Conflict(f"Routine {routine_id} is not marked as achievable")
            self._set_status(conn, routine_id, RoutineStatus.COMPLETED)
            routine = self._audited(conn, actor, "complete_routine", routine_id, before)

        logger.info(f"Routine completed: {routine_id}")
        return routine

    @log_failures("archive_routine", logger)
    def archive(self, routine_id: str, actor="user") -> Routine:
        """Hide a routine from list_all(); its status and task links are kept."""
        actor = Actor.parse(actor)
        with self.store.transaction() as conn:
            before = self._require(conn, routine_id)
            if before.is_archived:
                raise Conflict(f"Routine {routine_id} is already archived")
            now = utc_now().isoformat()
            conn.execute(
                "UPDATE routines SET is_archived = 1, archived_at = ?, updated_at = ? WHERE id = ?",
                (now, now, routine_id),
            )
            routine = self._audited(conn, actor, "archive_routine", routine_id, before)

        logger.info(f"Routine archived: {routine_id}")
        return routine

    @log_failures("restore_routine", logger)
    def restore(self, routine_id: str, actor="user") -> Routine:
        actor = Actor.parse(actor)
        with self.store.transaction() as conn:
            before = self._require(conn, routine_id)
            if not before.is_archived:
                raise Conflict(f"Routine {routine_id} is not archived")
            conn.execute(
                "UPDATE routines SET is_archived = 0, archived_at = NULL, updated_at = ? WHERE id = ?",
                (utc_now().isoformat(), routine_id),
            )
            routine = self._audited(conn, actor, "restore_routine", routine_id, before)

        logger.info(f"Routine restored: {routine_id}")
        return routine

    @log_failures("delete_routine", logger)
    def delete(self, routine_id: str, actor="user") -> Routine:
        """Hard-delete a routine; its tasks and notes lose the reference. Returns the removed routine."""
        actor = Actor.parse(actor)
        with self.store.transaction() as conn:
            before = self._require(conn, routine_id)
            conn.execute("DELETE FROM routines WHERE id = ?", (routine_id,))
            self.audit.record(conn, actor, "delete_routine", "routine", routine_id, before.to_dict(), None)

        logger.info(f"Routine deleted: {routine_id}")
        return before

    # ── internals ──

    @staticmethod
    def _load(conn: sqlite3.Connection, routine_id: str) -> Optional[Routine]:
        row = conn.execute("SELECT * FROM routines WHERE id = ?", (routine_id,)).fetchone()
        return Routine.from_row(row) if row else None

    def _require(self, conn: sqlite3.Connection, routine_id: str) -> Routine:
        routine = self._load(conn, routine_id)
        if routine is None:
            raise NotFound(f"Routine {routine_id} not found")
        return routine

    @staticmethod
    def _set_status(conn: sqlite3.Connection, routine_id: str, status: RoutineStatus):
        conn.execute(
            "UPDATE routines SET status = ?, updated_at = ? WHERE id = ?",
            (status.value, utc_now().isoformat(), routine_id),
        )

    def _audited(self, conn, actor: Actor, action: str, routine_id: str, before: Optional[Routine]) -> Routine:
        after = self._load(conn, routine_id)
        self.audit.record(
            conn,
            actor,
            action,
            "routine",
            routine_id,
            before.to_dict() if before is not None else None,
            after.to_dict(),
        )
        return after

"""
Notes: free-form text outside the column ordering.

Notes are not placed in columns. They can point at a task or a routine (weak
references, cleared when the target goes away) and can be archived, restored,
deleted, or turned into a task. Conversion creates the task through the same
ledger placement as TaskService.create and archives the note in one
transaction.
"""
import logging
import sqlite3
import uuid
from typing import List, Optional, Tuple

from . import validation
from .audit import AuditTrail
from .config import BoardConfig
from .errors import Conflict, InvalidArgument, NotFound, log_failures
from .schema import Actor, Note, Task, utc_now
from .store import BoardStore
from .tasks import TaskService

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = ("title", "content", "task_id", "routine_id")


class NoteService:
    """Creates, edits, archives and converts notes."""

    def __init__(
        self,
        store: BoardStore,
        tasks: TaskService,
        audit: Optional[AuditTrail] = None,
        config: Optional[BoardConfig] = None,
    ):
        self.store = store
        self.tasks = tasks
        self.audit = audit or AuditTrail(store)
        self.config = config or BoardConfig()

    # ── reads ──

    def get(self, note_id: str) -> Note:
        with self.store.read() as conn:
            note = self._load(conn, note_id)
        if note is None:
            raise NotFound(f"Note {note_id} not found")
        return note

    def list(self, routine_id: Optional[str] = None) -> List[Note]:
        """Live notes, newest first."""
        query = "SELECT * FROM notes WHERE is_archived = 0"
        values = []
        if routine_id:
            query += " AND routine_id = ?"
            values.append(routine_id)
        query += " ORDER BY created_at DESC, id"
        with self.store.read() as conn:
            rows = conn.execute(query, values).fetchall()
        return [Note.from_row(r) for r in rows]

    def list_archived(self) -> List[Note]:
        """Archived notes, most recently archived first."""
        with self.store.read() as conn:
            rows = conn.execute(
                "SELECT * FROM notes WHERE is_archived = 1 ORDER BY archived_at DESC, created_at DESC, id"
            ).fetchall()
        return [Note.from_row(r) for r in rows]

    # ── mutations ──

    @log_failures("create_note", logger)
    def create(
        self,
        content: str,
        title: Optional[str] = None,
        task_id: Optional[str] = None,
        routine_id: Optional[str] = None,
        actor="user",
    ) -> Note:
        actor = Actor.parse(actor)
        content = validation.require_text(content, "Note content", self.config.note_content_limit)
        title = validation.optional_text(title, "Note title", self.config.note_title_limit)

        note_id = uuid.uuid4().hex
        now = utc_now().isoformat()
        with self.store.transaction() as conn:
            self._require_refs(conn, task_id, routine_id)
            conn.execute(
                """
                INSERT INTO notes (id, title, content, task_id, routine_id, is_archived, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, 0, ?, ?)
                """,
                (note_id, title, content, task_id, routine_id, now, now),
            )
            note = self._audited(conn, actor, "create_note", note_id, None)

        logger.info(f"Note created: {note_id}")
        return note

    @log_failures("update_note", logger)
    def update(self, note_id: str, actor="user", **fields) -> Note:
        """Edit title, content, task_id or routine_id of a live note."""
        actor = Actor.parse(actor)
        if not fields:
            raise InvalidArgument("No valid fields to update")
        unknown = sorted(set(fields) - set(EDITABLE_FIELDS))
        if unknown:
            raise InvalidArgument(f"Field(s) not editable: {unknown}. Editable: {list(EDITABLE_FIELDS)}")

        values = dict(fields)
        if "content" in values:
            values["content"] = validation.require_text(
                values["content"], "Note content", self.config.note_content_limit
            )
        if "title" in values:
            values["title"] = validation.optional_text(values["title"], "Note title", self.config.note_title_limit)

        with self.store.transaction() as conn:
            before = self._require_live(conn, note_id)
            self._require_refs(conn, values.get("task_id"), values.get("routine_id"))
            set_clause = ", ".join(f"{name} = ?" for name in values)
            conn.execute(
                f"UPDATE notes SET {set_clause}, updated_at = ? WHERE id = ?",
                (*values.values(), utc_now().isoformat(), note_id),
            )
            note = self._audited(conn, actor, "update_note", note_id, before)

        logger.info(f"Note updated: {note_id} {sorted(values)}")
        return note

    @log_failures("archive_note", logger)
    def archive(self, note_id: str, actor="user") -> Note:
        actor = Actor.parse(actor)
        with self.store.transaction() as conn:
            before = self._require(conn, note_id)
            if before.is_archived:
                raise Conflict(f"Note {note_id} is already archived")
            self._archive_row(conn, note_id)
            note = self._audited(conn, actor, "archive_note", note_id, before)

        logger.info(f"Note archived: {note_id}")
        return note

    @log_failures("restore_note", logger)
    def restore(self, note_id: str, actor="user") -> Note:
        actor = Actor.parse(actor)
        with self.store.transaction() as conn:
            before = self._require(conn, note_id)
            if not before.is_archived:
                raise Conflict(f"Note {note_id} is not archived")
            conn.execute(
                "UPDATE notes SET is_archived = 0, archived_at = NULL, updated_at = ? WHERE id = ?",
                (utc_now().isoformat(), note_id),
            )
            note = self._audited(conn, actor, "restore_note", note_id, before)

        logger.info(f"Note restored: {note_id}")
        return note

    @log_failures("delete_note", logger)
    def delete(self, note_id: str, actor="user") -> Note:
        """Remove a note permanently. Returns the removed note."""
        actor = Actor.parse(actor)
        with self.store.transaction() as conn:
            before = self._require(conn, note_id)
            conn.execute("DELETE FROM notes WHERE id = ?", (note_id,))
            self.audit.record(conn, actor, "delete_note", "note", note_id, before.to_dict(), None)

        logger.info(f"Note deleted permanently: {note_id}")
        return before

    @log_failures("convert_note", logger)
    def convert_to_task(
        self,
        note_id: str,
        title: Optional[str] = None,
        column="today",
        due_date=None,
        routine_id: Optional[str] = None,
        actor="user",
    ) -> Tuple[Task, Note]:
        """
        Turn a live note into a task and archive the note.

        The task takes `title` (else the note's title, else a placeholder),
        the note's content as its notes and the note's routine unless one is
        given. The archived note keeps a task_id link to the new task. Both
        changes and both audit entries commit together.
        """
        actor = Actor.parse(actor)
        with self.store.transaction() as conn:
            before = self._require_live(conn, note_id)
            task = self.tasks.insert(
                conn,
                actor,
                title or before.title or "Task from note",
                notes=before.content,
                column=column,
                due_date=due_date,
                routine_id=routine_id or before.routine_id,
            )
            self._archive_row(conn, note_id, task_id=task.id)
            note = self._audited(conn, actor, "convert_note", note_id, before)

        logger.info(f"Note converted to task: {note_id} → {task.id} '{task.title}'")
        return task, note

    # ── internals ──

    @staticmethod
    def _load(conn: sqlite3.Connection, note_id: str) -> Optional[Note]:
        row = conn.execute("SELECT * FROM notes WHERE id = ?", (note_id,)).fetchone()
        return Note.from_row(row) if row else None

    def _require(self, conn: sqlite3.Connection, note_id: str) -> Note:
        note = self._load(conn, note_id)
        if note is None:
            raise NotFound(f"Note {note_id} not found")
        return note

    def _require_live(self, conn: sqlite3.Connection, note_id: str) -> Note:
        note = self._require(conn, note_id)
        if note.is_archived:
            raise NotFound(f"Note {note_id} is archived")
        return note

    @staticmethod
    def _require_refs(conn: sqlite3.Connection, task_id: Optional[str], routine_id: Optional[str]):
        if task_id is not None:
            if conn.execute("SELECT id FROM tasks WHERE id = ?", (task_id,)).fetchone() is None:
                raise NotFound(f"Task {task_id} not found")
        if routine_id is not None:
            if conn.execute("SELECT id FROM routines WHERE id = ?", (routine_id,)).fetchone() is None:
                raise NotFound(f"Routine {routine_id} not found")

    @staticmethod
    def _archive_row(conn: sqlite3.Connection, note_id: str, task_id: Optional[str] = None):
        now = utc_now().isoformat()
        if task_id is None:
            conn.execute(
                "UPDATE notes SET is_archived = 1, archived_at = ?, updated_at = ? WHERE id = ?",
                (now, now, note_id),
            )
        else:
            conn.execute(
                "UPDATE notes SET is_archived = 1, archived_at = ?, updated_at = ?, task_id = ? WHERE id = ?",
                (now, now, task_id, note_id),
            )

    def _audited(self, conn, actor: Actor, action: str, note_id: str, before: Optional[Note]) -> Note:
        after = self._load(conn, note_id)
        self.audit.record(
            conn,
            actor,
            action,
            "note",
            note_id,
            before.to_dict() if before is not None else None,
            after.to_dict(),
        )
        return after

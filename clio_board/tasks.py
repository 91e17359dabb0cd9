"""
Task lifecycle service: the task/checklist state machine.

Transitions:
  add_item     simple → checklist on the first item
  delete_item  checklist → simple when the last item goes
  archive      live → archived (snapshot taken if checklist)
  restore      archived → live, appended to its column
  complete     pending → completed, and archived in the same step

Every mutating call is one transaction: the row changes, the position ledger
renumbering and the audit entry commit together or not at all. The returned
Task is the full post-transaction entity, identical to the audit new_state.
"""
import logging
import sqlite3
import uuid
from typing import List, Optional

from . import ledger, snapshot, validation
from .audit import AuditTrail
from .config import BoardConfig
from .errors import Conflict, InvalidArgument, NotFound, log_failures
from .ledger import SlotKind
from .schema import Actor, Column, Item, Representation, Task, utc_now
from .store import BoardStore

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = ("title", "notes", "due_date", "due_time", "routine_id")
DERIVED_FIELDS = ("representation", "type")


class TaskService:
    """Creates, moves and transitions tasks and their checklist items."""

    def __init__(
        self,
        store: BoardStore,
        audit: Optional[AuditTrail] = None,
        config: Optional[BoardConfig] = None,
    ):
        self.store = store
        self.audit = audit or AuditTrail(store)
        self.config = config or BoardConfig()

    # ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
    # Reads
    # ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

    def get(self, task_id: str) -> Task:
        """Any task by id, live or archived."""
        with self.store.read() as conn:
            task = self._load(conn, task_id)
        if task is None:
            raise NotFound(f"Task {task_id} not found")
        return task

    def list_by_column(self, column) -> List[Task]:
        """Live tasks of one column in position order."""
        column = Column.parse(column)
        with self.store.read() as conn:
            rows = conn.execute(
                """
                SELECT * FROM tasks
                WHERE column_name = ? AND is_archived = 0
                ORDER BY position, created_at, id
                """,
                (column.value,),
            ).fetchall()
            return self._hydrate(conn, rows)

    def list_active(self, routine_id: Optional[str] = None) -> List[Task]:
        """All live tasks, grouped by column in board order."""
        with self.store.read() as conn:
            if routine_id:
                rows = conn.execute(
                    "SELECT * FROM tasks WHERE is_archived = 0 AND routine_id = ? ORDER BY position, created_at",
                    (routine_id,),
                ).fetchall()
            else:
                rows = conn.execute(
                    "SELECT * FROM tasks WHERE is_archived = 0 ORDER BY position, created_at"
                ).fetchall()
            tasks = self._hydrate(conn, rows)
        order = list(Column)
        return sorted(tasks, key=lambda t: order.index(t.column))

    def list_archived(self, column=None, routine_id: Optional[str] = None) -> List[Task]:
        """Archived tasks, most recently archived first."""
        query = "SELECT * FROM tasks WHERE is_archived = 1"
        values = []
        if column is not None:
            query += " AND column_name = ?"
            values.append(Column.parse(column).value)
        if routine_id:
            query += " AND routine_id = ?"
            values.append(routine_id)
        query += " ORDER BY archived_at DESC, id"
        with self.store.read() as conn:
            rows = conn.execute(query, values).fetchall()
            return self._hydrate(conn, rows)

    # ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
    # Task mutations
    # ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

    @log_failures("create_task", logger)
    def create(
        self,
        title: str,
        notes: Optional[str] = None,
        column="today",
        due_date=None,
        due_time=None,
        routine_id: Optional[str] = None,
        actor="user",
    ) -> Task:
        """Create a simple pending task at the end of `column`."""
        actor = Actor.parse(actor)
        with self.store.transaction() as conn:
            task = self.insert(conn, actor, title, notes, column, due_date, due_time, routine_id)

        logger.info(f"Task created: {task.id} '{task.title}' at {task.column.value}[{task.position}]")
        return task

    def insert(
        self,
        conn: sqlite3.Connection,
        actor: Actor,
        title: str,
        notes: Optional[str] = None,
        column="today",
        due_date=None,
        due_time=None,
        routine_id: Optional[str] = None,
    ) -> Task:
        """
        Create a task inside the caller's open transaction.

        Validates, appends the task to its column through the ledger and
        records the create_task audit entry; nothing is committed here.
        """
        title = validation.require_text(title, "Title", self.config.title_limit)
        notes = validation.optional_text(notes, "Notes", self.config.notes_limit)
        column = Column.parse(column)
        due_date = validation.due_date(due_date)
        due_time = validation.due_time(due_time)
        if routine_id is not None:
            self._require_routine(conn, routine_id)

        task_id = uuid.uuid4().hex
        now = utc_now().isoformat()
        conn.execute(
            """
            INSERT INTO tasks
            (id, routine_id, title, notes, status, is_archived, column_name,
             position, due_date, due_time, created_at, updated_at)
            VALUES (?, ?, ?, ?, 'pending', 0, ?, 0, ?, ?, ?, ?)
            """,
            (task_id, routine_id, title, notes, column.value, due_date, due_time, now, now),
        )
        ledger.place(conn, column, SlotKind.TASK, task_id)
        return self._audited(conn, actor, "create_task", task_id, None)

    @log_failures("update_task", logger)
    def update(self, task_id: str, actor="user", **fields) -> Task:
        """
        Edit content fields of a live task.

        Only title, notes, due_date, due_time and routine_id are editable here;
        placement goes through move(), state through archive/restore/complete,
        and representation is never client-settable.
        """
        actor = Actor.parse(actor)
        if not fields:
            raise InvalidArgument("No valid fields to update")
        derived = sorted(set(fields) & set(DERIVED_FIELDS))
        if derived:
            raise InvalidArgument(
                "representation is derived from the task's items and cannot be set"
            )
        unknown = sorted(set(fields) - set(EDITABLE_FIELDS))
        if unknown:
            raise InvalidArgument(f"Field(s) not editable: {unknown}. Editable: {list(EDITABLE_FIELDS)}")

        values = {}
        if "title" in fields:
            values["title"] = validation.require_text(fields["title"], "Title", self.config.title_limit)
        if "notes" in fields:
            values["notes"] = validation.optional_text(fields["notes"], "Notes", self.config.notes_limit)
        if "due_date" in fields:
            values["due_date"] = validation.due_date(fields["due_date"])
        if "due_time" in fields:
            values["due_time"] = validation.due_time(fields["due_time"])
        if "routine_id" in fields:
            values["routine_id"] = fields["routine_id"]

        with self.store.transaction() as conn:
            before = self._require_live(conn, task_id)
            if values.get("routine_id") is not None:
                self._require_routine(conn, values["routine_id"])
            set_clause = ", ".join(f"{name} = ?" for name in values)
            conn.execute(
                f"UPDATE tasks SET {set_clause}, updated_at = ? WHERE id = ?",
                (*values.values(), utc_now().isoformat(), task_id),
            )
            task = self._audited(conn, actor, "update_task", task_id, before)

        logger.info(f"Task updated: {task_id} {sorted(values)}")
        return task

    @log_failures("move_task", logger)
    def move(self, task_id: str, column, position: Optional[int] = None, actor="user") -> Task:
        """
        Relocate a live task to `column` at `position`.

        `position` is the task's final index in the destination column
        (clamped to the column length); None appends. Both the destination and,
        for cross-column moves, the source column end up dense.
        """
        actor = Actor.parse(actor)
        column = Column.parse(column)
        position = ledger.check_position(position)

        with self.store.transaction() as conn:
            before = self._require_live(conn, task_id)
            old_column = before.column
            conn.execute(
                "UPDATE tasks SET column_name = ?, updated_at = ? WHERE id = ?",
                (column.value, utc_now().isoformat(), task_id),
            )
            final = ledger.place(conn, column, SlotKind.TASK, task_id, position)
            if old_column != column:
                ledger.renumber_column(conn, old_column)
            task = self._audited(conn, actor, "move_task", task_id, before)

        logger.info(
            f"Task moved: {task_id} {old_column.value}[{before.position}] → {column.value}[{final}]"
        )
        return task

    @log_failures("archive_task", logger)
    def archive(self, task_id: str, actor="user") -> Task:
        """Take a live task out of its column; checklists get a frozen item snapshot."""
        actor = Actor.parse(actor)
        with self.store.transaction() as conn:
            before = self._require(conn, task_id)
            if before.is_archived:
                raise Conflict(f"Task {task_id} is already archived")
            self._archive_row(conn, before)
            task = self._audited(conn, actor, "archive_task", task_id, before)

        logger.info(f"Task archived: {task_id} (snapshot: {task.archived_items is not None})")
        return task

    @log_failures("restore_task", logger)
    def restore(self, task_id: str, actor="user") -> Task:
        """
        Bring an archived task back to the end of its column.

        Items come back from the live item rows, which archiving never touched;
        the snapshot is left as written.
        """
        actor = Actor.parse(actor)
        with self.store.transaction() as conn:
            before = self._require(conn, task_id)
            if not before.is_archived:
                raise Conflict(f"Task {task_id} is not archived")
            conn.execute(
                "UPDATE tasks SET is_archived = 0, archived_at = NULL, updated_at = ? WHERE id = ?",
                (utc_now().isoformat(), task_id),
            )
            ledger.place(conn, before.column, SlotKind.TASK, task_id)
            task = self._audited(conn, actor, "restore_task", task_id, before)

        logger.info(f"Task restored: {task_id} at {task.column.value}[{task.position}]")
        return task

    @log_failures("complete_task", logger)
    def complete(self, task_id: str, actor="user") -> Task:
        """Mark a live task completed and archive it in one transition."""
        actor = Actor.parse(actor)
        with self.store.transaction() as conn:
            before = self._require(conn, task_id)
            if before.is_archived:
                raise Conflict(f"Task {task_id} is archived")
            now = utc_now().isoformat()
            conn.execute(
                "UPDATE tasks SET status = 'completed', completed_at = ?, updated_at = ? WHERE id = ?",
                (now, now, task_id),
            )
            self._archive_row(conn, before, now)
            task = self._audited(conn, actor, "complete_task", task_id, before)

        logger.info(f"Task completed: {task_id}")
        return task

    # ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
    # Checklist items
    # ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

    @log_failures("add_item", logger)
    def add_item(self, task_id: str, title: str, actor="user") -> Task:
        """Append an item; the first one turns a simple task into a checklist."""
        actor = Actor.parse(actor)
        title = validation.require_text(title, "Item title", self.config.item_title_limit)
        with self.store.transaction() as conn:
            before = self._require_live(conn, task_id)
            item_id = uuid.uuid4().hex
            now = utc_now().isoformat()
            conn.execute(
                """
                INSERT INTO list_items (id, task_id, title, completed, position, created_at)
                VALUES (?, ?, ?, 0, ?, ?)
                """,
                (item_id, task_id, title, ledger.next_item_position(conn, task_id), now),
            )
            self._touch(conn, task_id, now)
            task = self._audited(conn, actor, "add_item", task_id, before)

        if before.representation == Representation.SIMPLE:
            logger.debug(f"Task converted to checklist: {task_id}")
        logger.info(f"Item added: {item_id} to {task_id}")
        return task

    @log_failures("update_item", logger)
    def update_item(
        self,
        task_id: str,
        item_id: str,
        title: Optional[str] = None,
        completed: Optional[bool] = None,
        actor="user",
    ) -> Task:
        """Edit an item's title and/or completed flag in place."""
        actor = Actor.parse(actor)
        values = {}
        if title is not None:
            values["title"] = validation.require_text(title, "Item title", self.config.item_title_limit)
        if completed is not None:
            values["completed"] = 1 if validation.flag(completed, "completed") else 0
        if not values:
            raise InvalidArgument("No valid fields to update")

        with self.store.transaction() as conn:
            before = self._require_live(conn, task_id)
            self._require_item(conn, task_id, item_id)
            set_clause = ", ".join(f"{name} = ?" for name in values)
            conn.execute(
                f"UPDATE list_items SET {set_clause} WHERE id = ?",
                (*values.values(), item_id),
            )
            self._touch(conn, task_id)
            task = self._audited(conn, actor, "update_item", task_id, before)

        logger.info(f"Item updated: {item_id} on {task_id} {sorted(values)}")
        return task

    @log_failures("move_item", logger)
    def move_item(self, task_id: str, item_id: str, position: int, actor="user") -> Task:
        """Reorder an item within its task; `position` is its final index."""
        actor = Actor.parse(actor)
        position = ledger.check_position(position)
        if position is None:
            raise InvalidArgument("Position is required")
        with self.store.transaction() as conn:
            before = self._require_live(conn, task_id)
            self._require_item(conn, task_id, item_id)
            ledger.place_item(conn, task_id, item_id, position)
            self._touch(conn, task_id)
            task = self._audited(conn, actor, "move_item", task_id, before)

        logger.info(f"Item moved: {item_id} on {task_id}")
        return task

    @log_failures("delete_item", logger)
    def delete_item(self, task_id: str, item_id: str, actor="user") -> Task:
        """Remove an item; removing the last one turns the task back into a simple task."""
        actor = Actor.parse(actor)
        with self.store.transaction() as conn:
            before = self._require_live(conn, task_id)
            cursor = conn.execute(
                "DELETE FROM list_items WHERE id = ? AND task_id = ?",
                (item_id, task_id),
            )
            if cursor.rowcount == 0:
                raise NotFound(f"Item {item_id} not found on task {task_id}")
            remaining = ledger.renumber_items(conn, task_id)
            self._touch(conn, task_id)
            task = self._audited(conn, actor, "delete_item", task_id, before)

        if remaining == 0:
            logger.debug(f"Checklist converted back to task: {task_id}")
        logger.info(f"Item deleted: {item_id} from {task_id} ({remaining} remaining)")
        return task

    # ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
    # Internals
    # ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

    def _load(self, conn: sqlite3.Connection, task_id: str) -> Optional[Task]:
        row = conn.execute("SELECT * FROM tasks WHERE id = ?", (task_id,)).fetchone()
        if row is None:
            return None
        items = [Item.from_row(r) for r in ledger.item_rows(conn, task_id)]
        return Task.from_row(row, items)

    def _hydrate(self, conn: sqlite3.Connection, rows) -> List[Task]:
        return [
            Task.from_row(row, [Item.from_row(r) for r in ledger.item_rows(conn, row["id"])])
            for row in rows
        ]

    def _require(self, conn: sqlite3.Connection, task_id: str) -> Task:
        task = self._load(conn, task_id)
        if task is None:
            raise NotFound(f"Task {task_id} not found")
        return task

    def _require_live(self, conn: sqlite3.Connection, task_id: str) -> Task:
        task = self._require(conn, task_id)
        if task.is_archived:
            raise NotFound(f"Task {task_id} is archived")
        return task

    @staticmethod
    def _require_item(conn: sqlite3.Connection, task_id: str, item_id: str):
        row = conn.execute(
            "SELECT id FROM list_items WHERE id = ? AND task_id = ?",
            (item_id, task_id),
        ).fetchone()
        if row is None:
            raise NotFound(f"Item {item_id} not found on task {task_id}")

    @staticmethod
    def _require_routine(conn: sqlite3.Connection, routine_id: str):
        row = conn.execute("SELECT id FROM routines WHERE id = ?", (routine_id,)).fetchone()
        if row is None:
            raise NotFound(f"Routine {routine_id} not found")

    @staticmethod
    def _touch(conn: sqlite3.Connection, task_id: str, now: Optional[str] = None):
        conn.execute(
            "UPDATE tasks SET updated_at = ? WHERE id = ?",
            (now or utc_now().isoformat(), task_id),
        )

    def _archive_row(self, conn: sqlite3.Connection, task: Task, now: Optional[str] = None):
        """Flag archived, write the snapshot, and close the gap in the column."""
        now = now or utc_now().isoformat()
        conn.execute(
            """
            UPDATE tasks
            SET is_archived = 1, archived_at = ?, archived_items = ?, updated_at = ?
            WHERE id = ?
            """,
            (now, snapshot.encode(task), now, task.id),
        )
        ledger.renumber_column(conn, task.column)

    def _audited(
        self,
        conn: sqlite3.Connection,
        actor: Actor,
        action: str,
        task_id: str,
        before: Optional[Task],
    ) -> Task:
        """Re-read the task and append its audit entry in the same transaction."""
        after = self._load(conn, task_id)
        self.audit.record(
            conn,
            actor,
            action,
            "task",
            task_id,
            before.to_dict() if before is not None else None,
            after.to_dict(),
        )
        return after

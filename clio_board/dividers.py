"""
Column dividers: time-of-day markers in the Today column.

Dividers are not tasks, but they occupy slots in the same position sequence as
the column's tasks. Moving one re-settles the whole column so tasks and
dividers share one dense ordering. Grouping tasks into sections is done by
comparing positions (see sections()).
"""
import logging
import sqlite3
import uuid
from typing import List, Optional, Tuple

from . import ledger, validation
from .audit import AuditTrail
from .config import BoardConfig
from .errors import InvalidArgument, NotFound, log_failures
from .ledger import SlotKind
from .schema import Actor, Column, DIVIDER_COLUMNS, Divider, Task, Item, utc_now
from .store import BoardStore

logger = logging.getLogger(__name__)

DEFAULT_DIVIDERS = [
    ("Morning", "Afternoon"),
    ("Afternoon", "Evening"),
]


def _divider_column(value) -> Column:
    column = Column.parse(value)
    if column not in DIVIDER_COLUMNS:
        raise InvalidArgument(
            f"Dividers are only supported in {[c.value for c in DIVIDER_COLUMNS]}, got {column.value!r}"
        )
    return column


class DividerService:
    """Creates, lists and moves column dividers."""

    def __init__(
        self,
        store: BoardStore,
        audit: Optional[AuditTrail] = None,
        config: Optional[BoardConfig] = None,
    ):
        self.store = store
        self.audit = audit or AuditTrail(store)
        self.config = config or BoardConfig()

    def get(self, divider_id: str) -> Divider:
        with self.store.read() as conn:
            divider = self._load(conn, divider_id)
        if divider is None:
            raise NotFound(f"Divider {divider_id} not found")
        return divider

    def list(self, column="today") -> List[Divider]:
        """Dividers of a column ordered by position."""
        column = _divider_column(column)
        with self.store.read() as conn:
            rows = conn.execute(
                "SELECT * FROM column_dividers WHERE column_name = ? ORDER BY position, created_at, id",
                (column.value,),
            ).fetchall()
        return [Divider.from_row(r) for r in rows]

    @log_failures("create_divider", logger)
    def create(
        self,
        label_above: str,
        label_below: str,
        column="today",
        position: Optional[int] = None,
        actor="user",
    ) -> Divider:
        """Insert a divider at `position` (None appends) in the column sequence."""
        actor = Actor.parse(actor)
        limit = self.config.divider_label_limit
        label_above = validation.require_text(label_above, "label_above", limit)
        label_below = validation.require_text(label_below, "label_below", limit)
        column = _divider_column(column)
        position = ledger.check_position(position)

        divider_id = uuid.uuid4().hex
        with self.store.transaction() as conn:
            self._insert(conn, divider_id, column, label_above, label_below)
            ledger.place(conn, column, SlotKind.DIVIDER, divider_id, position)
            divider = self._audited(conn, actor, "create_divider", divider_id, None)

        logger.info(f"Divider created: {divider_id} '{label_above}/{label_below}' at {divider.position}")
        return divider

    @log_failures("move_divider", logger)
    def move(self, divider_id: str, position: int, actor="user") -> Divider:
        """
        Set a divider's position and re-settle its column.

        The divider ends at `position` (clamped to the column length); tasks
        and other dividers keep their relative order around it.
        """
        actor = Actor.parse(actor)
        position = ledger.check_position(position)
        if position is None:
            raise InvalidArgument("Position is required and must be a number")

        with self.store.transaction() as conn:
            before = self._load(conn, divider_id)
            if before is None:
                raise NotFound(f"Divider {divider_id} not found")
            ledger.place(conn, before.column, SlotKind.DIVIDER, divider_id, position)
            divider = self._audited(conn, actor, "move_divider", divider_id, before)

        logger.info(f"Divider moved: {divider_id} {before.position} → {divider.position}")
        return divider

    @log_failures("seed_dividers", logger)
    def seed_defaults(self, column="today") -> List[Divider]:
        """Create the Morning/Afternoon and Afternoon/Evening dividers if the column has none."""
        column = _divider_column(column)
        with self.store.transaction() as conn:
            existing = conn.execute(
                "SELECT COUNT(*) FROM column_dividers WHERE column_name = ?",
                (column.value,),
            ).fetchone()[0]
            if existing:
                return []
            created = []
            for label_above, label_below in DEFAULT_DIVIDERS:
                divider_id = uuid.uuid4().hex
                self._insert(conn, divider_id, column, label_above, label_below)
                ledger.place(conn, column, SlotKind.DIVIDER, divider_id)
                created.append(self._audited(conn, Actor.USER, "create_divider", divider_id, None))
        logger.info(f"Seeded {len(created)} default dividers in {column.value}")
        return created

    def sections(self, column="today") -> List[Tuple[str, List[Task]]]:
        """
        Group the column's live tasks by the dividers between them.

        Returns (label, tasks) pairs in board order: the first divider's
        label_above, then each divider's label_below. With no dividers the
        whole column is one section labelled with the column name.
        """
        column = _divider_column(column)
        with self.store.read() as conn:
            slots = ledger.column_slots(conn, column)
            dividers = {
                r["id"]: Divider.from_row(r)
                for r in conn.execute(
                    "SELECT * FROM column_dividers WHERE column_name = ?", (column.value,)
                ).fetchall()
            }
            tasks = {}
            for slot in slots:
                if slot.kind == SlotKind.TASK:
                    row = conn.execute("SELECT * FROM tasks WHERE id = ?", (slot.id,)).fetchone()
                    items = [Item.from_row(r) for r in ledger.item_rows(conn, slot.id)]
                    tasks[slot.id] = Task.from_row(row, items)

        ordered_dividers = [dividers[s.id] for s in slots if s.kind == SlotKind.DIVIDER]
        if not ordered_dividers:
            return [(column.value, [tasks[s.id] for s in slots])]

        sections = [(ordered_dividers[0].label_above, [])]
        for slot in slots:
            if slot.kind == SlotKind.DIVIDER:
                sections.append((dividers[slot.id].label_below, []))
            else:
                sections[-1][1].append(tasks[slot.id])
        return sections

    # ── internals ──

    @staticmethod
    def _insert(conn: sqlite3.Connection, divider_id: str, column: Column, label_above: str, label_below: str):
        conn.execute(
            """
            INSERT INTO column_dividers (id, column_name, label_above, label_below, position, created_at)
            VALUES (?, ?, ?, ?, 0, ?)
            """,
            (divider_id, column.value, label_above, label_below, utc_now().isoformat()),
        )

    @staticmethod
    def _load(conn: sqlite3.Connection, divider_id: str) -> Optional[Divider]:
        row = conn.execute("SELECT * FROM column_dividers WHERE id = ?", (divider_id,)).fetchone()
        return Divider.from_row(row) if row else None

    def _audited(self, conn, actor: Actor, action: str, divider_id: str, before: Optional[Divider]) -> Divider:
        after = self._load(conn, divider_id)
        self.audit.record(
            conn,
            actor,
            action,
            "divider",
            divider_id,
            before.to_dict() if before is not None else None,
            after.to_dict(),
        )
        return after

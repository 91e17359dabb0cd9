"""
Position ledger: dense integer ordering for column and checklist sequences.

A column's live sequence is one ordered list of slots, each either a task or a
divider. Every write goes through _write(), which assigns 0..n-1 in list
order, so after any ledger call the column holds exactly {0, ..., n-1}.

Items have their own, independent sequence per owning task.

All functions take an open connection and run inside the caller's
transaction; none of them commit.
"""
import logging
import sqlite3
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional

from .errors import InvalidArgument
from .schema import Column

logger = logging.getLogger(__name__)


class SlotKind(Enum):
    TASK = "task"
    DIVIDER = "divider"


_TABLES = {
    SlotKind.TASK: "tasks",
    SlotKind.DIVIDER: "column_dividers",
}


@dataclass(frozen=True)
class Slot:
    """One member of a column's shared position space."""
    kind: SlotKind
    id: str
    position: int = 0
    created_at: str = ""

    def sort_key(self):
        # Stable by position; creation order breaks ties
        return (self.position, self.created_at, self.kind.value, self.id)


def check_position(position) -> Optional[int]:
    """Validate a caller-supplied target index (None means append, negatives mean first)."""
    if position is None:
        return None
    if isinstance(position, bool) or not isinstance(position, int):
        raise InvalidArgument(f"Position must be an integer, got {position!r}")
    return max(0, position)


def _clamp(index: Optional[int], size: int) -> int:
    if index is None:
        return size
    return max(0, min(index, size))


# ── Column sequence (tasks + dividers) ──────────────────────────────────────


def column_slots(conn: sqlite3.Connection, column: Column) -> List[Slot]:
    """Live tasks and dividers of a column, in ledger order."""
    rows = conn.execute(
        """
        SELECT 'task' AS kind, id, position, created_at FROM tasks
        WHERE column_name = ? AND is_archived = 0
        UNION ALL
        SELECT 'divider' AS kind, id, position, created_at FROM column_dividers
        WHERE column_name = ?
        """,
        (column.value, column.value),
    ).fetchall()
    slots = [
        Slot(SlotKind(r["kind"]), r["id"], r["position"], r["created_at"])
        for r in rows
    ]
    slots.sort(key=Slot.sort_key)
    return slots


def _write(conn: sqlite3.Connection, slots: List[Slot]) -> int:
    changed = 0
    for index, slot in enumerate(slots):
        if slot.position != index:
            conn.execute(
                f"UPDATE {_TABLES[slot.kind]} SET position = ? WHERE id = ?",
                (index, slot.id),
            )
            changed += 1
    return changed


def renumber_column(conn: sqlite3.Connection, column: Column) -> List[Slot]:
    """Re-assign 0..n-1 to the column's live sequence, preserving relative order."""
    slots = column_slots(conn, column)
    changed = _write(conn, slots)
    logger.debug(f"Renumbered {column.value}: {len(slots)} slots, {changed} moved")
    return slots


def place(
    conn: sqlite3.Connection,
    column: Column,
    kind: SlotKind,
    slot_id: str,
    index: Optional[int] = None,
) -> int:
    """
    Put one slot at `index` in the column and renumber the rest around it.

    The slot is taken out of the sequence first, then inserted before the
    element now holding `index`, so `index` is the slot's final position.
    Out-of-range values clamp to [0, n]; None appends. The slot's row must
    already carry `column` and be live. Returns the final position.
    """
    others = [s for s in column_slots(conn, column) if not (s.kind == kind and s.id == slot_id)]
    final = _clamp(index, len(others))
    # position=-1 forces the write for the placed slot
    others.insert(final, Slot(kind, slot_id, -1))
    _write(conn, others)
    logger.debug(f"Placed {kind.value} {slot_id} at {column.value}[{final}]")
    return final


# ── Item sequence (per task) ────────────────────────────────────────────────


def item_rows(conn: sqlite3.Connection, task_id: str) -> List[sqlite3.Row]:
    return conn.execute(
        "SELECT * FROM list_items WHERE task_id = ? ORDER BY position, created_at, id",
        (task_id,),
    ).fetchall()


def _write_items(conn: sqlite3.Connection, ids_in_order: List[str], current: dict):
    for index, item_id in enumerate(ids_in_order):
        if current.get(item_id) != index:
            conn.execute("UPDATE list_items SET position = ? WHERE id = ?", (index, item_id))


def renumber_items(conn: sqlite3.Connection, task_id: str) -> int:
    """Re-assign 0..n-1 to a task's items. Returns the item count."""
    rows = item_rows(conn, task_id)
    _write_items(conn, [r["id"] for r in rows], {r["id"]: r["position"] for r in rows})
    return len(rows)


def place_item(conn: sqlite3.Connection, task_id: str, item_id: str, index: Optional[int] = None) -> int:
    """Move one item to `index` within its task (same semantics as place())."""
    rows = item_rows(conn, task_id)
    current = {r["id"]: r["position"] for r in rows}
    ids = [r["id"] for r in rows if r["id"] != item_id]
    final = _clamp(index, len(ids))
    ids.insert(final, item_id)
    current.pop(item_id, None)
    _write_items(conn, ids, current)
    return final


def next_item_position(conn: sqlite3.Connection, task_id: str) -> int:
    row = conn.execute("SELECT COUNT(*) FROM list_items WHERE task_id = ?", (task_id,)).fetchone()
    return row[0]

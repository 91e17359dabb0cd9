"""
Audit trail: one append-only row per mutating operation.

Each row holds the entity's state immediately before and after the operation,
in the same dict shape the entity's to_dict() returns. record() runs inside the
mutation's own transaction, so an audit write failure rolls the mutation back
too: the trail and the tables always agree.
"""
import json
import logging
import sqlite3
from typing import Optional, List, Dict, Any

from .schema import Actor, AuditEntry, utc_now
from .store import BoardStore

logger = logging.getLogger(__name__)


class AuditTrail:
    """Writes and reads audit_log entries."""

    def __init__(self, store: BoardStore):
        self.store = store

    def record(
        self,
        conn: sqlite3.Connection,
        actor: Actor,
        action: str,
        entity_type: str,
        entity_id: str,
        previous_state: Optional[Dict[str, Any]],
        new_state: Optional[Dict[str, Any]],
    ) -> int:
        """
        Append one entry in the caller's transaction.

        Args:
            conn: Open write transaction of the mutation being audited
            actor: Who performed it
            action: Verb + entity label, e.g. "move_task"
            entity_type: "task" | "divider" | "routine" | "note"
            entity_id: Id of the mutated entity
            previous_state: Entity dict before (None for creations)
            new_state: Entity dict after (None for hard removals)

        Returns:
            Audit entry id
        """
        cursor = conn.execute(
            """
            INSERT INTO audit_log
            (actor, action, entity_type, entity_id, previous_state, new_state, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (
                Actor.parse(actor).value,
                action,
                entity_type,
                entity_id,
                json.dumps(previous_state, ensure_ascii=False) if previous_state is not None else None,
                json.dumps(new_state, ensure_ascii=False) if new_state is not None else None,
                utc_now().isoformat(),
            ),
        )
        logger.debug(f"Audit {cursor.lastrowid}: {action} {entity_type} {entity_id}")
        return cursor.lastrowid

    def history(self, entity_type: str, entity_id: str) -> List[AuditEntry]:
        """All entries for one entity, oldest first."""
        with self.store.read() as conn:
            rows = conn.execute(
                """
                SELECT * FROM audit_log
                WHERE entity_type = ? AND entity_id = ?
                ORDER BY id ASC
                """,
                (entity_type, entity_id),
            ).fetchall()
        return [AuditEntry.from_row(r) for r in rows]

    def recent(self, limit: int = 50, actor: Optional[str] = None) -> List[AuditEntry]:
        """Most recent entries first, optionally filtered by actor."""
        with self.store.read() as conn:
            if actor:
                rows = conn.execute(
                    "SELECT * FROM audit_log WHERE actor = ? ORDER BY id DESC LIMIT ?",
                    (Actor.parse(actor).value, limit),
                ).fetchall()
            else:
                rows = conn.execute(
                    "SELECT * FROM audit_log ORDER BY id DESC LIMIT ?",
                    (limit,),
                ).fetchall()
        return [AuditEntry.from_row(r) for r in rows]

    def count(self) -> int:
        with self.store.read() as conn:
            return conn.execute("SELECT COUNT(*) FROM audit_log").fetchone()[0]

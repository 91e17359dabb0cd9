"""
Board entity schema.

Task representation lifecycle:
  simple ⇄ checklist   (derived from the live Item count, never stored)
  pending → completed  (completion always archives)
  live ⇄ archived      (independent of status)

Every entity serializes to a JSON-native dict via to_dict(); that dict is the
shape returned to callers and the shape written to the audit trail.
"""
from enum import Enum
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional, List, Dict, Any
import json

from .errors import InvalidArgument


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if isinstance(value, datetime) else value


def _parse_ts(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


class Column(Enum):
    """The four fixed board columns."""
    TODAY = "today"
    TOMORROW = "tomorrow"
    THIS_WEEK = "this_week"
    HORIZON = "horizon"

    @classmethod
    def parse(cls, value) -> "Column":
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            raise InvalidArgument(
                f"Invalid column: {value!r}. "
                f"Expected one of: {[c.value for c in cls]}"
            )


# Columns that carry time-of-day dividers
DIVIDER_COLUMNS = (Column.TODAY,)


class TaskStatus(Enum):
    PENDING = "pending"
    COMPLETED = "completed"


class Representation(Enum):
    """How a task is treated: a single item, or a checklist of items."""
    SIMPLE = "simple"
    CHECKLIST = "checklist"


class Actor(Enum):
    """Who performed a mutation (for audit attribution)."""
    USER = "user"
    AGENT = "agent"

    @classmethod
    def parse(cls, value) -> "Actor":
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            raise InvalidArgument(f"Invalid actor: {value!r}. Expected 'user' or 'agent'")


class RoutineStatus(Enum):
    ACTIVE = "active"
    PAUSED = "paused"
    COMPLETED = "completed"


@dataclass
class Item:
    """One checklist entry, owned by exactly one task."""
    id: str
    task_id: str
    title: str
    completed: bool = False
    position: int = 0
    created_at: datetime = field(default_factory=utc_now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "task_id": self.task_id,
            "title": self.title,
            "completed": self.completed,
            "position": self.position,
            "created_at": _iso(self.created_at),
        }

    @classmethod
    def from_row(cls, row) -> "Item":
        return cls(
            id=row["id"],
            task_id=row["task_id"],
            title=row["title"],
            completed=bool(row["completed"]),
            position=row["position"],
            created_at=_parse_ts(row["created_at"]),
        )


@dataclass
class Task:
    """Core board entity: a simple task, or a checklist when it owns items."""

    # Identifiers
    id: str

    # Content
    title: str
    notes: Optional[str] = None

    # Placement
    column: Column = Column.TODAY
    position: int = 0

    # State
    status: TaskStatus = TaskStatus.PENDING
    is_archived: bool = False
    archived_items: Optional[List[Dict[str, Any]]] = None  # frozen at archive time
    items: List[Item] = field(default_factory=list)

    # Scheduling
    due_date: Optional[str] = None   # ISO date
    due_time: Optional[str] = None   # HH:MM[:SS]
    routine_id: Optional[str] = None

    # Metadata
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)
    completed_at: Optional[datetime] = None
    archived_at: Optional[datetime] = None

    @property
    def representation(self) -> Representation:
        return Representation.CHECKLIST if self.items else Representation.SIMPLE

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "notes": self.notes,
            "representation": self.representation.value,
            "status": self.status.value,
            "is_archived": self.is_archived,
            "column": self.column.value,
            "position": self.position,
            "due_date": self.due_date,
            "due_time": self.due_time,
            "routine_id": self.routine_id,
            "items": [item.to_dict() for item in self.items],
            "archived_items": self.archived_items,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
            "completed_at": _iso(self.completed_at),
            "archived_at": _iso(self.archived_at),
        }

    @classmethod
    def from_row(cls, row, items: Optional[List[Item]] = None) -> "Task":
        """Build a task from a tasks row plus its live item rows."""
        archived_items = row["archived_items"]
        if archived_items is not None:
            archived_items = json.loads(archived_items)
        return cls(
            id=row["id"],
            title=row["title"],
            notes=row["notes"],
            column=Column(row["column_name"]),
            position=row["position"],
            status=TaskStatus(row["status"]),
            is_archived=bool(row["is_archived"]),
            archived_items=archived_items,
            items=items or [],
            due_date=row["due_date"],
            due_time=row["due_time"],
            routine_id=row["routine_id"],
            created_at=_parse_ts(row["created_at"]),
            updated_at=_parse_ts(row["updated_at"]),
            completed_at=_parse_ts(row["completed_at"]),
            archived_at=_parse_ts(row["archived_at"]),
        )


@dataclass
class Divider:
    """A time-of-day marker sharing the task position space of its column."""
    id: str
    label_above: str
    label_below: str
    column: Column = Column.TODAY
    position: int = 0
    created_at: datetime = field(default_factory=utc_now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "column": self.column.value,
            "label_above": self.label_above,
            "label_below": self.label_below,
            "position": self.position,
            "created_at": _iso(self.created_at),
        }

    @classmethod
    def from_row(cls, row) -> "Divider":
        return cls(
            id=row["id"],
            label_above=row["label_above"],
            label_below=row["label_below"],
            column=Column(row["column_name"]),
            position=row["position"],
            created_at=_parse_ts(row["created_at"]),
        )


@dataclass
class Routine:
    """Weak grouping container for tasks and notes."""
    id: str
    title: str
    description: Optional[str] = None
    color: str = "#3498db"
    icon: str = "📌"
    status: RoutineStatus = RoutineStatus.ACTIVE
    achievable: bool = False
    is_archived: bool = False
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)
    archived_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "color": self.color,
            "icon": self.icon,
            "status": self.status.value,
            "achievable": self.achievable,
            "is_archived": self.is_archived,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
            "archived_at": _iso(self.archived_at),
        }

    @classmethod
    def from_row(cls, row) -> "Routine":
        return cls(
            id=row["id"],
            title=row["title"],
            description=row["description"],
            color=row["color"],
            icon=row["icon"],
            status=RoutineStatus(row["status"]),
            achievable=bool(row["achievable"]),
            is_archived=bool(row["is_archived"]),
            created_at=_parse_ts(row["created_at"]),
            updated_at=_parse_ts(row["updated_at"]),
            archived_at=_parse_ts(row["archived_at"]),
        )


@dataclass
class Note:
    """Free-form note, optionally attached to a task or routine."""
    id: str
    content: str
    title: Optional[str] = None
    task_id: Optional[str] = None
    routine_id: Optional[str] = None
    is_archived: bool = False
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)
    archived_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "content": self.content,
            "task_id": self.task_id,
            "routine_id": self.routine_id,
            "is_archived": self.is_archived,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
            "archived_at": _iso(self.archived_at),
        }

    @classmethod
    def from_row(cls, row) -> "Note":
        return cls(
            id=row["id"],
            content=row["content"],
            title=row["title"],
            task_id=row["task_id"],
            routine_id=row["routine_id"],
            is_archived=bool(row["is_archived"]),
            created_at=_parse_ts(row["created_at"]),
            updated_at=_parse_ts(row["updated_at"]),
            archived_at=_parse_ts(row["archived_at"]),
        )


@dataclass
class AuditEntry:
    """One immutable audit row: who did what to which entity, before and after."""
    id: int
    actor: Actor
    action: str
    entity_type: str
    entity_id: str
    previous_state: Optional[Dict[str, Any]]
    new_state: Optional[Dict[str, Any]]
    created_at: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "actor": self.actor.value,
            "action": self.action,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "previous_state": self.previous_state,
            "new_state": self.new_state,
            "created_at": _iso(self.created_at),
        }

    @classmethod
    def from_row(cls, row) -> "AuditEntry":
        return cls(
            id=row["id"],
            actor=Actor(row["actor"]),
            action=row["action"],
            entity_type=row["entity_type"],
            entity_id=row["entity_id"],
            previous_state=json.loads(row["previous_state"]) if row["previous_state"] else None,
            new_state=json.loads(row["new_state"]) if row["new_state"] else None,
            created_at=_parse_ts(row["created_at"]),
        )

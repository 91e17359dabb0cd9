"""
Archive snapshots of checklist items.

A snapshot is the ordered [{title, completed}] content of a checklist at the
moment it was archived. It is written once per archive event and never edited;
restore works from the live item rows, not from here.
"""
import json
from typing import Iterable, List, Dict, Any, Optional

from .schema import Item, Task


def freeze(items: Iterable[Item]) -> List[Dict[str, Any]]:
    """Structural copy of items, in position order."""
    ordered = sorted(items, key=lambda i: i.position)
    return [{"title": item.title, "completed": item.completed} for item in ordered]


def encode(task: Task) -> Optional[str]:
    """Snapshot column value for archiving `task`; None when it is a simple task."""
    if not task.items:
        return None
    return json.dumps(freeze(task.items), ensure_ascii=False)


def read(task: Task) -> Optional[List[Dict[str, Any]]]:
    """The snapshot taken at the task's last archive, if it was a checklist then."""
    if task.archived_items is None:
        return None
    return [dict(entry) for entry in task.archived_items]

"""
Board assembly: one store handle and the services that share it.

    board = open_board(BoardConfig.load())
    task = board.tasks.create("Call contractor", column="today")
    board.tasks.add_item(task.id, "Get plumbing quote")
"""
import logging
from dataclasses import dataclass
from typing import Optional

from .audit import AuditTrail
from .config import BoardConfig
from .dividers import DividerService
from .notes import NoteService
from .routines import RoutineService
from .store import BoardStore
from .tasks import TaskService

logger = logging.getLogger(__name__)


@dataclass
class Board:
    """Services bound to one store."""
    store: BoardStore
    audit: AuditTrail
    tasks: TaskService
    dividers: DividerService
    routines: RoutineService
    notes: NoteService


def open_board(config: Optional[BoardConfig] = None) -> Board:
    """Open (creating if needed) the board database described by `config`."""
    if config is None:
        config = BoardConfig.load()
    store = BoardStore(config.db_path, busy_timeout_ms=config.busy_timeout_ms)
    audit = AuditTrail(store)
    tasks = TaskService(store, audit=audit, config=config)
    board = Board(
        store=store,
        audit=audit,
        tasks=tasks,
        dividers=DividerService(store, audit=audit, config=config),
        routines=RoutineService(store, audit=audit),
        notes=NoteService(store, tasks, audit=audit, config=config),
    )
    if config.seed_dividers:
        board.dividers.seed_defaults()
    logger.debug(f"Board opened at {config.db_path}")
    return board

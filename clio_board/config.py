# Clio board: configuration
# Override the database path and limits via config.yaml or CLIO_BOARD_DB.

import logging
import os
import sys
import yaml
from pathlib import Path
from dataclasses import dataclass
from typing import Optional

CONFIG_PATH = Path.home() / ".config" / "clio-board" / "config.yaml"
DB_ENV_VAR = "CLIO_BOARD_DB"

LOG_FORMAT = "%(asctime)s [clio-board] %(levelname)s: %(message)s"


@dataclass
class BoardConfig:
    """Runtime configuration for the board engine."""

    # Storage
    db_path: str = "~/.local/share/clio-board/board.db"
    busy_timeout_ms: int = 5000

    # Behavior
    seed_dividers: bool = False   # create Morning/Afternoon/Evening dividers on open
    log_level: str = "INFO"

    # Validation limits
    title_limit: int = 100
    notes_limit: int = 20000
    item_title_limit: int = 100
    divider_label_limit: int = 50
    note_title_limit: int = 100
    note_content_limit: int = 20000

    def resolve_paths(self):
        """Apply the environment override and expand ~."""
        env = os.environ.get(DB_ENV_VAR)
        if env:
            self.db_path = env
        self.db_path = str(Path(self.db_path).expanduser())

    @classmethod
    def load(cls, path: Optional[str] = None) -> "BoardConfig":
        """Load config from YAML file, falling back to defaults."""
        cfg_path = Path(path) if path else CONFIG_PATH
        if cfg_path.exists():
            try:
                with open(cfg_path, "r") as f:
                    data = yaml.safe_load(f) or {}
                cfg = cls(**{k: v for k, v in data.items() if hasattr(cls, k)})
            except (yaml.YAMLError, TypeError, AttributeError) as e:
                logging.getLogger(__name__).warning(
                    f"Ignoring unreadable config {cfg_path}: {e}"
                )
                cfg = cls()
        else:
            cfg = cls()
        cfg.resolve_paths()
        return cfg


def setup_logging(level: str = "INFO") -> None:
    """Send board logs to stdout in the shared format."""
    logging.basicConfig(
        level=getattr(logging, str(level).upper(), logging.INFO),
        format=LOG_FORMAT,
        handlers=[logging.StreamHandler(sys.stdout)],
    )

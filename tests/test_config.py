"""
Tests for config loading.
"""
import logging
from pathlib import Path

import pytest

from clio_board.board import open_board
from clio_board.config import BoardConfig, DB_ENV_VAR
from clio_board.errors import InvalidArgument


def test_missing_file_gives_defaults(tmp_path, monkeypatch):
    monkeypatch.delenv(DB_ENV_VAR, raising=False)
    cfg = BoardConfig.load(str(tmp_path / "absent.yaml"))
    assert cfg.busy_timeout_ms == 5000
    assert cfg.seed_dividers is False
    assert cfg.db_path == str(Path("~/.local/share/clio-board/board.db").expanduser())


def test_yaml_values_and_unknown_keys(tmp_path, monkeypatch):
    monkeypatch.delenv(DB_ENV_VAR, raising=False)
    path = tmp_path / "config.yaml"
    path.write_text(
        f"db_path: {tmp_path / 'x.db'}\n"
        "seed_dividers: true\n"
        "title_limit: 40\n"
        "retention_days: 30\n"
    )
    cfg = BoardConfig.load(str(path))
    assert cfg.db_path == str(tmp_path / "x.db")
    assert cfg.seed_dividers is True
    assert cfg.title_limit == 40
    assert not hasattr(cfg, "retention_days")


def test_env_overrides_db_path(tmp_path, monkeypatch):
    monkeypatch.setenv(DB_ENV_VAR, str(tmp_path / "env.db"))
    cfg = BoardConfig.load(str(tmp_path / "absent.yaml"))
    assert cfg.db_path == str(tmp_path / "env.db")


def test_unreadable_yaml_falls_back(tmp_path, monkeypatch):
    monkeypatch.delenv(DB_ENV_VAR, raising=False)
    path = tmp_path / "config.yaml"
    path.write_text("db_path: [unclosed\n")
    cfg = BoardConfig.load(str(path))
    assert cfg.busy_timeout_ms == 5000


def test_title_limit_is_applied(config):
    config.title_limit = 5
    board = open_board(config)
    board.tasks.create("short")
    with pytest.raises(InvalidArgument):
        board.tasks.create("too long")


def test_setup_logging_uses_shared_format(monkeypatch):
    from clio_board import config as config_module

    captured = {}
    monkeypatch.setattr(logging, "basicConfig", lambda **kwargs: captured.update(kwargs))
    config_module.setup_logging("debug")

    assert captured["level"] == logging.DEBUG
    assert captured["format"] == config_module.LOG_FORMAT


def test_mutations_are_logged(board, caplog):
    with caplog.at_level(logging.INFO, logger="clio_board"):
        task = board.tasks.create("Logged")
        board.tasks.archive(task.id)
    messages = [r.getMessage() for r in caplog.records]
    assert any(m.startswith("Task created") for m in messages)
    assert any(m.startswith("Task archived") for m in messages)

"""Shared fixtures: a fresh board on a temporary SQLite file per test."""

import sqlite3

import pytest

from clio_board.board import open_board
from clio_board.config import BoardConfig, DB_ENV_VAR


@pytest.fixture
def config(tmp_path, monkeypatch):
    monkeypatch.delenv(DB_ENV_VAR, raising=False)
    cfg = BoardConfig(db_path=str(tmp_path / "board.db"))
    cfg.resolve_paths()
    return cfg


@pytest.fixture
def board(config):
    return open_board(config)


@pytest.fixture
def column_positions(board):
    """Raw (kind, id, position) rows of a column's live sequence, read straight from the tables."""
    def read(column):
        conn = sqlite3.connect(board.store.db_path)
        try:
            rows = conn.execute(
                """
                SELECT 'task', id, position FROM tasks WHERE column_name = ? AND is_archived = 0
                UNION ALL
                SELECT 'divider', id, position FROM column_dividers WHERE column_name = ?
                ORDER BY 3
                """,
                (column, column),
            ).fetchall()
        finally:
            conn.close()
        return rows
    return read


@pytest.fixture
def assert_dense(column_positions):
    """Assert a column holds exactly positions 0..n-1; returns its rows."""
    def check(column):
        rows = column_positions(column)
        assert sorted(r[2] for r in rows) == list(range(len(rows)))
        return rows
    return check

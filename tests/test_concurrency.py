"""
Concurrent writers on one column must still leave it dense.
"""
import dataclasses
import random
import threading

import pytest

from clio_board.board import open_board
from clio_board.errors import StorageFailure


def test_concurrent_moves_keep_column_dense(config, assert_dense):
    board = open_board(config)
    ids = [board.tasks.create(f"T{i}").id for i in range(6)]
    errors = []

    # separate services per thread, same database file
    boards = [open_board(config) for _ in range(4)]

    def worker(seed):
        local = boards[seed]
        rng = random.Random(seed)
        try:
            for _ in range(5):
                task_id = rng.choice(ids)
                column = rng.choice(["today", "tomorrow"])
                local.tasks.move(task_id, column, rng.randint(0, 6))
        except Exception as e:
            errors.append(e)

    threads = [threading.Thread(target=worker, args=(seed,)) for seed in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert errors == []
    today = assert_dense("today")
    tomorrow = assert_dense("tomorrow")
    assert len(today) + len(tomorrow) == 6


def test_writers_serialize_across_columns(config):
    """SQLite holds one write lock per database: a writer to another column waits, then times out"""
    holder = open_board(config)
    waiter = open_board(dataclasses.replace(config, busy_timeout_ms=100))
    holder.tasks.create("Held", column="horizon")

    with holder.store.transaction() as conn:
        conn.execute("UPDATE tasks SET title = 'Held (editing)' WHERE column_name = 'horizon'")
        with pytest.raises(StorageFailure):
            waiter.tasks.create("U", column="today")

    assert waiter.tasks.list_by_column("today") == []
    assert waiter.tasks.create("U", column="today").position == 0

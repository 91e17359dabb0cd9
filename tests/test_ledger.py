"""
Tests for the position ledger: dense column ordering and task moves.
"""
import pytest

from clio_board import ledger
from clio_board.errors import InvalidArgument, NotFound
from clio_board.schema import Column


def _titles(board, column):
    return [t.title for t in board.tasks.list_by_column(column)]


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Creation
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


def test_created_tasks_append_densely(board, assert_dense):
    """New tasks go to the end of their column"""
    for title in ("A", "B", "C"):
        board.tasks.create(title, column="today")

    tasks = board.tasks.list_by_column("today")
    assert [t.title for t in tasks] == ["A", "B", "C"]
    assert [t.position for t in tasks] == [0, 1, 2]
    assert_dense("today")


def test_columns_are_independent(board, assert_dense):
    board.tasks.create("A", column="today")
    board.tasks.create("B", column="horizon")
    board.tasks.create("C", column="horizon")

    assert [t.position for t in board.tasks.list_by_column("today")] == [0]
    assert [t.position for t in board.tasks.list_by_column("horizon")] == [0, 1]
    assert board.tasks.list_by_column("tomorrow") == []


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Moves
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


def test_move_to_front_of_other_column(board, assert_dense):
    """Moving into position 0 of 'tomorrow' puts the task first, others shift to 1 and 2"""
    moving = board.tasks.create("Moving", column="today")
    board.tasks.create("First", column="tomorrow")
    board.tasks.create("Second", column="tomorrow")

    moved = board.tasks.move(moving.id, "tomorrow", 0)

    assert moved.column == Column.TOMORROW
    assert moved.position == 0
    tasks = board.tasks.list_by_column("tomorrow")
    assert [(t.title, t.position) for t in tasks] == [("Moving", 0), ("First", 1), ("Second", 2)]
    assert board.tasks.list_by_column("today") == []
    assert_dense("tomorrow")
    assert_dense("today")


def test_move_within_column_front_of_three(board, assert_dense):
    a = board.tasks.create("A", column="tomorrow")
    b = board.tasks.create("B", column="tomorrow")
    c = board.tasks.create("C", column="tomorrow")

    board.tasks.move(c.id, "tomorrow", 0)

    assert _titles(board, "tomorrow") == ["C", "A", "B"]
    assert_dense("tomorrow")


def test_move_down_within_column_lands_on_target_index(board, assert_dense):
    a = board.tasks.create("A")
    board.tasks.create("B")
    board.tasks.create("C")

    moved = board.tasks.move(a.id, "today", 2)

    assert moved.position == 2
    assert _titles(board, "today") == ["B", "C", "A"]
    assert_dense("today")


def test_move_without_position_appends(board, assert_dense):
    a = board.tasks.create("A", column="today")
    board.tasks.create("X", column="this_week")
    board.tasks.create("Y", column="this_week")

    moved = board.tasks.move(a.id, "this_week")

    assert moved.position == 2
    assert _titles(board, "this_week") == ["X", "Y", "A"]


def test_move_position_out_of_range_clamps(board, assert_dense):
    a = board.tasks.create("A")
    board.tasks.create("B")

    moved = board.tasks.move(a.id, "today", 99)

    assert moved.position == 1
    assert _titles(board, "today") == ["B", "A"]
    assert_dense("today")


def test_move_negative_position_goes_to_front(board, assert_dense):
    board.tasks.create("A")
    board.tasks.create("B")
    c = board.tasks.create("C")

    moved = board.tasks.move(c.id, "today", -1)

    assert moved.position == 0
    assert _titles(board, "today") == ["C", "A", "B"]
    assert_dense("today")


def test_cross_column_move_closes_gap_in_source(board, assert_dense):
    board.tasks.create("A")
    b = board.tasks.create("B")
    board.tasks.create("C")

    board.tasks.move(b.id, "horizon", 0)

    assert [(t.title, t.position) for t in board.tasks.list_by_column("today")] == [("A", 0), ("C", 1)]
    assert_dense("today")
    assert_dense("horizon")


def test_move_rejects_unknown_column(board):
    task = board.tasks.create("A")
    with pytest.raises(InvalidArgument):
        board.tasks.move(task.id, "someday")
    assert board.tasks.get(task.id).column == Column.TODAY


@pytest.mark.parametrize("position", [1.5, "2", True])
def test_move_rejects_bad_position(board, position):
    task = board.tasks.create("A")
    with pytest.raises(InvalidArgument):
        board.tasks.move(task.id, "today", position)


def test_move_missing_task(board):
    with pytest.raises(NotFound):
        board.tasks.move("nope", "today", 0)


def test_move_archived_task_is_not_found(board):
    task = board.tasks.create("A")
    board.tasks.archive(task.id)
    with pytest.raises(NotFound):
        board.tasks.move(task.id, "tomorrow")


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Renumbering
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


def test_renumber_repairs_gaps_and_duplicates(board, assert_dense):
    """Stable by position, ties broken by creation order"""
    a = board.tasks.create("A")
    b = board.tasks.create("B")
    c = board.tasks.create("C")
    other = board.tasks.create("Other", column="horizon")

    with board.store.transaction() as conn:
        conn.execute("UPDATE tasks SET position = 7 WHERE id = ?", (a.id,))
        conn.execute("UPDATE tasks SET position = 3 WHERE id = ?", (b.id,))
        conn.execute("UPDATE tasks SET position = 3 WHERE id = ?", (c.id,))
        conn.execute("UPDATE tasks SET position = 4 WHERE id = ?", (other.id,))
        slots = ledger.renumber_column(conn, Column.TODAY)

    assert [s.id for s in slots] == [b.id, c.id, a.id]
    assert _titles(board, "today") == ["B", "C", "A"]
    assert_dense("today")
    # other columns untouched
    assert board.tasks.get(other.id).position == 4


def test_renumber_ignores_archived_tasks(board, assert_dense):
    a = board.tasks.create("A")
    board.tasks.create("B")
    board.tasks.archive(a.id)

    with board.store.transaction() as conn:
        slots = ledger.renumber_column(conn, Column.TODAY)

    assert len(slots) == 1
    assert_dense("today")


def test_failed_move_leaves_prior_ordering(board, assert_dense):
    """A move whose transaction aborts must not half-renumber the column"""
    a = board.tasks.create("A")
    board.tasks.create("B")
    board.tasks.create("C")

    class Boom(Exception):
        pass

    with pytest.raises(Boom):
        with board.store.transaction() as conn:
            ledger.place(conn, Column.TODAY, ledger.SlotKind.TASK, a.id, 2)
            raise Boom()

    assert _titles(board, "today") == ["A", "B", "C"]
    assert_dense("today")


def test_check_position():
    assert ledger.check_position(None) is None
    assert ledger.check_position(0) == 0
    assert ledger.check_position(5) == 5
    assert ledger.check_position(-3) == 0
    with pytest.raises(InvalidArgument):
        ledger.check_position(2.0)

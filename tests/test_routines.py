"""
Tests for routines and the weak task → routine reference.
"""
import pytest

from clio_board.errors import Conflict, InvalidArgument, NotFound
from clio_board.schema import RoutineStatus


def test_create_and_get(board):
    routine = board.routines.create("Weekly Errands", description="Recurring", icon="🛒")
    fetched = board.routines.get(routine.id)
    assert fetched.to_dict() == routine.to_dict()
    assert fetched.status == RoutineStatus.ACTIVE
    assert [r.id for r in board.routines.list_all()] == [routine.id]


def test_create_validates(board):
    with pytest.raises(InvalidArgument):
        board.routines.create("x" * 46)
    with pytest.raises(InvalidArgument):
        board.routines.create("Ok", achievable="yes")


def test_complete_requires_achievable(board):
    routine = board.routines.create("Writing")
    with pytest.raises(Conflict):
        board.routines.complete(routine.id)

    goal = board.routines.create("Bathroom Renovation", achievable=True)
    assert board.routines.complete(goal.id).status == RoutineStatus.COMPLETED

    with pytest.raises(NotFound):
        board.routines.complete("missing")


def test_delete_nullifies_task_and_note_references(board):
    routine = board.routines.create("Bathroom Renovation")
    task = board.tasks.create("Grout white tile", routine_id=routine.id)
    note = board.notes.create("tile colours", routine_id=routine.id)
    assert task.routine_id == routine.id

    board.routines.delete(routine.id)

    assert board.tasks.get(task.id).routine_id is None
    assert board.notes.get(note.id).routine_id is None
    with pytest.raises(NotFound):
        board.routines.get(routine.id)


def test_update(board):
    routine = board.routines.create("Writing")
    updated = board.routines.update(routine.id, title="Daily writing", achievable=True, color="#e67e22")

    assert (updated.title, updated.achievable, updated.color) == ("Daily writing", True, "#e67e22")
    entry = board.audit.recent(limit=1)[0]
    assert entry.action == "update_routine"
    assert entry.previous_state == routine.to_dict()
    assert entry.new_state == updated.to_dict()

    with pytest.raises(InvalidArgument):
        board.routines.update(routine.id, status="completed")
    with pytest.raises(InvalidArgument):
        board.routines.update(routine.id, title="x" * 46)
    with pytest.raises(InvalidArgument):
        board.routines.update(routine.id)
    with pytest.raises(NotFound):
        board.routines.update("missing", title="Nope")


def test_pause_and_resume(board):
    routine = board.routines.create("Gym")

    assert board.routines.pause(routine.id).status == RoutineStatus.PAUSED
    with pytest.raises(Conflict):
        board.routines.pause(routine.id)

    assert board.routines.resume(routine.id).status == RoutineStatus.ACTIVE
    with pytest.raises(Conflict):
        board.routines.resume(routine.id)


def test_archive_and_restore_keep_status(board):
    routine = board.routines.create("Bathroom Renovation", achievable=True)
    board.routines.complete(routine.id)
    task = board.tasks.create("Grout", routine_id=routine.id)

    archived = board.routines.archive(routine.id)
    assert archived.is_archived is True
    assert archived.status == RoutineStatus.COMPLETED
    assert board.routines.list_all() == []
    assert [r.id for r in board.routines.list_archived()] == [routine.id]
    assert board.tasks.get(task.id).routine_id == routine.id
    with pytest.raises(Conflict):
        board.routines.archive(routine.id)

    restored = board.routines.restore(routine.id)
    assert restored.is_archived is False
    assert restored.archived_at is None
    assert restored.status == RoutineStatus.COMPLETED
    assert [r.id for r in board.routines.list_all()] == [routine.id]
    with pytest.raises(Conflict):
        board.routines.restore(routine.id)


def test_task_routine_filters(board):
    routine = board.routines.create("Errands")
    board.tasks.create("Costco", routine_id=routine.id)
    board.tasks.create("Unrelated")
    assert [t.title for t in board.tasks.list_active(routine_id=routine.id)] == ["Costco"]

    with pytest.raises(NotFound):
        board.tasks.update(board.tasks.list_active()[0].id, routine_id="missing")

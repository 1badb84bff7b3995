import pytest
from sqlmodel import Session
from models.ingestion import MenuParseBatch, BatchStatus
from services.ingestion.batch_state import (
    TRANSITIONS,
    BatchLocks,
    can_transition,
    ensure_reviewable,
    commit_batch,
    transition,
)
from services.ingestion.errors import ConcurrencyError, InvalidTransitionError, PreconditionError


def _batch(session: Session, status: BatchStatus = BatchStatus.UPLOADED) -> MenuParseBatch:
    batch = MenuParseBatch(
        uploaded_by="admin-1",
        filename="menu.pdf",
        file_hash=f"{status.value:0<64}"[:64],
        file_size=10,
        file_path="ab/1_abcdef12_menu.pdf",
        status=status
    )
    session.add(batch)
    session.commit()
    session.refresh(batch)
    return batch


def test_every_status_has_a_transition_entry():
    assert set(TRANSITIONS) == set(BatchStatus)


def test_terminal_statuses_have_no_exits():
    assert TRANSITIONS[BatchStatus.PUBLISHED] == frozenset()
    assert TRANSITIONS[BatchStatus.REJECTED] == frozenset()


def test_happy_path_is_allowed():
    path = [
        BatchStatus.UPLOADED,
        BatchStatus.PARSING,
        BatchStatus.PARSED,
        BatchStatus.CHANGES_PROPOSED,
        BatchStatus.APPROVED,
        BatchStatus.PUBLISHING,
        BatchStatus.PUBLISHED,
    ]
    for current, target in zip(path, path[1:]):
        assert can_transition(current, target)


def test_reassigning_a_restaurant_is_allowed():
    assert can_transition(BatchStatus.CHANGES_PROPOSED, BatchStatus.CHANGES_PROPOSED)


def test_illegal_jumps_are_refused():
    assert not can_transition(BatchStatus.PARSED, BatchStatus.APPROVED)
    assert not can_transition(BatchStatus.PUBLISHED, BatchStatus.REJECTED)
    assert not can_transition(BatchStatus.PARSE_FAILED, BatchStatus.PARSED)


def test_transition_bumps_version(session):
    batch = _batch(session)
    transition(session, batch, BatchStatus.PARSING)
    session.commit()
    session.refresh(batch)

    assert batch.status == BatchStatus.PARSING
    assert batch.version == 2


def test_invalid_transition_leaves_batch_untouched(session):
    batch = _batch(session, BatchStatus.PARSED)

    with pytest.raises(InvalidTransitionError):
        transition(session, batch, BatchStatus.PUBLISHED)

    assert batch.status == BatchStatus.PARSED
    assert batch.version == 1


def test_invalid_transition_is_a_precondition_failure():
    assert issubclass(InvalidTransitionError, PreconditionError)


def test_stale_version_is_detected(engine):
    with Session(engine) as first:
        batch = _batch(first, BatchStatus.PARSED)
        batch_id = batch.id

        with Session(engine) as second:
            other = second.get(type(batch), batch_id)
            transition(second, other, BatchStatus.REJECTED)
            second.commit()

        with pytest.raises(ConcurrencyError):
            transition(first, batch, BatchStatus.CHANGES_PROPOSED)


def test_reviewable_statuses(session):
    ensure_reviewable(_batch(session, BatchStatus.PARSED))

    with pytest.raises(InvalidTransitionError):
        ensure_reviewable(_batch(session, BatchStatus.PUBLISHED))


def test_batch_locks_are_per_batch():
    locks = BatchLocks()
    first, second = object(), object()

    with locks.hold(first):
        # a different batch is not blocked
        with locks.hold(second):
            pass

    assert first not in locks._locks
    assert second not in locks._locks


def test_batch_lock_is_shared_while_held():
    locks = BatchLocks()
    batch_id = object()

    with locks.hold(batch_id):
        held = locks._locks[batch_id]
        assert locks._lock_for(batch_id) is held
        assert held.locked()


def test_interleaved_writers_cannot_both_commit(engine):
    with Session(engine) as setup:
        batch_id = _batch(setup, BatchStatus.CHANGES_PROPOSED).id

    with Session(engine) as first, Session(engine) as second:
        mine = first.get(MenuParseBatch, batch_id)
        theirs = second.get(MenuParseBatch, batch_id)

        # both pass the read-side check before either has written
        transition(first, mine, BatchStatus.REJECTED)
        transition(second, theirs, BatchStatus.APPROVED)

        commit_batch(first, batch_id)
        with pytest.raises(ConcurrencyError):
            commit_batch(second, batch_id)

    with Session(engine) as check:
        stored = check.get(MenuParseBatch, batch_id)
        assert stored.status == BatchStatus.REJECTED
        assert stored.version == 2


def test_transition_stamps_timezone_aware_time(session):
    batch = _batch(session)

    transition(session, batch, BatchStatus.PARSING)

    assert batch.updated_at.tzinfo is not None
    assert batch.updated_at.utcoffset().total_seconds() == 0
    commit_batch(session, batch.id)


def test_new_batches_default_to_utc_timestamps():
    batch = MenuParseBatch(uploaded_by="admin-1", filename="a.pdf", file_hash="f" * 64, file_size=1, file_path="ff/a.pdf")
    assert batch.created_at.tzinfo is not None
    assert batch.updated_at.tzinfo is not None

from __future__ import annotations
from typing import Dict, FrozenSet, Iterator
from uuid import UUID
from contextlib import contextmanager
import threading
import weakref
from sqlalchemy.orm.exc import StaleDataError
from sqlmodel import Session, select
from models.ingestion import MenuParseBatch, BatchStatus
from utils.logger import setup_logger
from utils.timing import utc_now
from .errors import InvalidTransitionError, ConcurrencyError

logger = setup_logger(__name__)


TRANSITIONS: Dict[BatchStatus, FrozenSet[BatchStatus]] = {
    BatchStatus.UPLOADED: frozenset({BatchStatus.PARSING}),
    BatchStatus.PARSING: frozenset({BatchStatus.PARSED, BatchStatus.PARSE_FAILED}),
    BatchStatus.PARSED: frozenset({BatchStatus.CHANGES_PROPOSED, BatchStatus.REJECTED}),
    BatchStatus.PARSE_FAILED: frozenset({BatchStatus.REJECTED}),
    BatchStatus.CHANGES_PROPOSED: frozenset({
        BatchStatus.CHANGES_PROPOSED,
        BatchStatus.APPROVED,
        BatchStatus.REJECTED,
    }),
    BatchStatus.APPROVED: frozenset({BatchStatus.PUBLISHING}),
    BatchStatus.PUBLISHING: frozenset({BatchStatus.PUBLISHED}),
    BatchStatus.PUBLISHED: frozenset(),
    BatchStatus.REJECTED: frozenset(),
}

# Statuses in which reviewers may still change staged items.
REVIEWABLE_STATUSES: FrozenSet[BatchStatus] = frozenset({
    BatchStatus.PARSED,
    BatchStatus.CHANGES_PROPOSED,
})


def can_transition(current: BatchStatus, target: BatchStatus) -> bool:
    return target in TRANSITIONS.get(current, frozenset())


def ensure_transition(batch: MenuParseBatch, target: BatchStatus) -> None:
    current = BatchStatus(batch.status)
    if not can_transition(current, target):
        raise InvalidTransitionError(
            f"Batch {batch.id} cannot move from {current.value} to {target.value}"
        )


def ensure_reviewable(batch: MenuParseBatch) -> None:
    if BatchStatus(batch.status) not in REVIEWABLE_STATUSES:
        raise InvalidTransitionError(
            f"Batch {batch.id} is {BatchStatus(batch.status).value} and can no longer be reviewed"
        )


def transition(session: Session, batch: MenuParseBatch, target: BatchStatus) -> MenuParseBatch:
    """Move ``batch`` to ``target`` after checking legality and the stored version.

    Changes are added to the session but not committed; the caller owns the
    transaction and should finish it with :func:`commit_batch`. The version
    column is also checked by the mapper when the UPDATE is flushed, so a
    writer in another process that commits first makes the later flush fail.
    """
    ensure_transition(batch, target)

    try:
        stored_version = session.exec(
            select(MenuParseBatch.version).where(MenuParseBatch.id == batch.id)
        ).first()
    except StaleDataError as e:
        raise ConcurrencyError(f"Batch {batch.id} was modified concurrently") from e

    if stored_version is not None and stored_version != batch.version:
        raise ConcurrencyError(
            f"Batch {batch.id} was modified concurrently "
            f"(expected version {batch.version}, found {stored_version})"
        )

    previous = batch.status
    batch.status = target
    batch.version = batch.version + 1
    batch.updated_at = utc_now()
    session.add(batch)

    logger.info(
        "Batch status transition",
        extra={
            "batch_id": str(batch.id),
            "from_status": BatchStatus(previous).value,
            "to_status": target.value,
            "version": batch.version
        }
    )

    return batch


def commit_batch(session: Session, batch_id: UUID) -> None:
    try:
        session.commit()
    except StaleDataError as e:
        session.rollback()
        logger.warning("Lost concurrent batch update", extra={"batch_id": str(batch_id)})
        raise ConcurrencyError(f"Batch {batch_id} was modified concurrently") from e


class BatchLocks:
    """Per-batch mutexes serializing operations on one batch within the process.

    A lock lives only while some caller holds or waits on it.
    """

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: weakref.WeakValueDictionary[UUID, threading.Lock] = weakref.WeakValueDictionary()

    def _lock_for(self, batch_id: UUID) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(batch_id)
            if lock is None:
                lock = threading.Lock()
                self._locks[batch_id] = lock
            return lock

    @contextmanager
    def hold(self, batch_id: UUID) -> Iterator[None]:
        lock = self._lock_for(batch_id)
        with lock:
            yield

"""Per-submission serialization and scoped units of work."""

from __future__ import annotations

import threading
from collections.abc import Hashable, Iterator
from contextlib import contextmanager

import structlog

from ..errors import EvaluationError, StoreError
from ..repositories import EvaluationStore


class KeyedLocks:
    """Lazily created re-entrant locks, one per key."""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[Hashable, threading.RLock] = {}

    def get(self, key: Hashable) -> threading.RLock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = threading.RLock()
            return lock

    @contextmanager
    def hold(self, key: Hashable) -> Iterator[None]:
        lock = self.get(key)
        with lock:
            yield


class UnitOfWork:
    """Atomic scope around every write touching one submission.

    Writers of the same submission run one at a time; writers of different
    submissions never share a lock. Any exception restores the submission's
    records to their state at entry before it propagates.
    """

    def __init__(self, store: EvaluationStore, locks: KeyedLocks | None = None) -> None:
        self._store = store
        self._locks = locks or KeyedLocks()
        self._logger = structlog.get_logger(__name__)

    @property
    def locks(self) -> KeyedLocks:
        return self._locks

    @contextmanager
    def for_submission(self, submission_id: str) -> Iterator[EvaluationStore]:
        with self._locks.hold(("submission", submission_id)):
            snapshot = self._store.snapshot_submission(submission_id)
            try:
                yield self._store
            except BaseException as exc:
                self._store.restore_submission(snapshot)
                domain = isinstance(exc, EvaluationError) and not isinstance(exc, StoreError)
                log = self._logger.info if domain else self._logger.warning
                log(
                    "unit_of_work.rolled_back",
                    submission_id=submission_id,
                    error=type(exc).__name__,
                )
                raise

    @contextmanager
    def for_evaluator(self, evaluator_id: str, step_id: str) -> Iterator[EvaluationStore]:
        """Serialize cached-status updates of one evaluator assignment."""
        with self._locks.hold(("evaluator", evaluator_id, step_id)):
            yield self._store

import logging
import uuid
from datetime import datetime, timezone
from typing import Callable, Dict, Optional, TypeVar
from uuid import UUID

from .rwlock import RWLock
from .schema import ERROR_DELETED, TaskRecord, TaskStatus

logger = logging.getLogger(__name__)

T = TypeVar("T")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TaskRegistry:
    """In-memory store of task records keyed by id.

    Every read and write of a record goes through ``self.lock``; callers only
    ever receive copies, so a snapshot can never be torn by a later update.
    """

    def __init__(self, lock: Optional[RWLock] = None):
        self.lock = lock or RWLock()
        self._tasks: Dict[UUID, TaskRecord] = {}

    def __len__(self) -> int:
        with self.lock.read_locked():
            return len(self._tasks)

    def create(self) -> TaskRecord:
        rec = TaskRecord(id=uuid.uuid4(), status=TaskStatus.PENDING, creation_time=utcnow())
        with self.lock.write_locked():
            self._tasks[rec.id] = rec
            snapshot = rec.model_copy()
        logger.info("task created task_id=%s", rec.id)
        return snapshot

    def get(self, task_id: UUID) -> Optional[TaskRecord]:
        with self.lock.read_locked():
            rec = self._tasks.get(task_id)
            return rec.model_copy() if rec is not None else None

    def mark_deleted(self, task_id: UUID) -> bool:
        with self.lock.write_locked():
            rec = self._tasks.get(task_id)
            if rec is None:
                return False
            if rec.is_terminal():
                logger.info("delete ignored, task already finished task_id=%s status=%s", task_id, rec.status.value)
                return True
            rec.status = TaskStatus.DELETED
            rec.error = ERROR_DELETED
        logger.info("task marked for deletion task_id=%s", task_id)
        return True

    def mutate(self, task_id: UUID, fn: Callable[[TaskRecord], T]) -> T:
        """Apply ``fn`` to the stored record as one atomic step and return its result."""
        with self.lock.write_locked():
            rec = self._tasks.get(task_id)
            if rec is None:
                raise KeyError(task_id)
            return fn(rec)

import logging
import random
import threading
import time
from dataclasses import dataclass
from typing import Dict, Optional
from uuid import UUID

from tasksim.config import Settings
from tasksim.storage.repo import TaskRegistry, utcnow
from tasksim.storage.schema import ERROR_DELETED, ERROR_FAILED, RESULT_COMPLETED, TaskRecord, TaskStatus

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WorkerOptions:
    min_duration: float = 180.0
    max_duration: float = 300.0
    duration_step: float = 60.0
    poll_interval: float = 0.5
    failure_rate: float = 0.2

    @classmethod
    def from_settings(cls, settings: Settings) -> "WorkerOptions":
        return cls(
            min_duration=settings.task_min_duration_seconds,
            max_duration=settings.task_max_duration_seconds,
            duration_step=settings.task_duration_step_seconds,
            poll_interval=settings.task_poll_interval_seconds,
            failure_rate=settings.task_failure_rate,
        )


@dataclass(frozen=True)
class TaskPlan:
    duration: float
    should_fail: bool


def draw_plan(rng: random.Random, options: WorkerOptions) -> TaskPlan:
    """Pick the simulated duration and outcome once, before the work starts."""
    steps = int((options.max_duration - options.min_duration) // options.duration_step)
    duration = options.min_duration + rng.randint(0, steps) * options.duration_step
    should_fail = rng.random() < options.failure_rate
    return TaskPlan(duration=duration, should_fail=should_fail)


def _elapsed(rec: TaskRecord) -> float:
    return round((utcnow() - rec.start_time).total_seconds(), 3)


def _start(rec: TaskRecord) -> TaskStatus:
    rec.start_time = utcnow()
    # a delete that lands while still pending keeps its marker
    if rec.status == TaskStatus.PENDING:
        rec.status = TaskStatus.IN_PROGRESS
    return rec.status


def _poll(rec: TaskRecord) -> bool:
    """Tick handler. Returns True when the worker must stop."""
    if rec.status == TaskStatus.DELETED:
        rec.status = TaskStatus.DELETED_BY_USER
        rec.error = ERROR_DELETED
        return True
    if rec.is_terminal():
        return True
    rec.processing_duration = _elapsed(rec)
    return False


def _finish(rec: TaskRecord, should_fail: bool) -> Optional[TaskStatus]:
    """Timer handler. Leaves a deletion marker alone and returns None in that case."""
    if rec.status == TaskStatus.DELETED or rec.is_terminal():
        return None
    rec.completion_time = utcnow()
    rec.processing_duration = round((rec.completion_time - rec.start_time).total_seconds(), 3)
    if should_fail:
        rec.status = TaskStatus.FAILED
        rec.error = ERROR_FAILED
    else:
        rec.status = TaskStatus.COMPLETED
        rec.result = RESULT_COMPLETED
    return rec.status


def run_task(
    registry: TaskRegistry,
    task_id: UUID,
    plan: TaskPlan,
    poll_interval: float,
    stop: Optional[threading.Event] = None,
) -> None:
    stop = stop or threading.Event()
    logger.info("worker started task_id=%s duration=%.3fs should_fail=%s", task_id, plan.duration, plan.should_fail)

    status = registry.mutate(task_id, _start)
    logger.debug("task started task_id=%s status=%s", task_id, status.value)

    deadline = time.monotonic() + plan.duration
    while True:
        remaining = deadline - time.monotonic()
        if remaining > 0:
            if stop.wait(min(poll_interval, remaining)):
                logger.info("worker interrupted by shutdown task_id=%s", task_id)
                return
            if time.monotonic() < deadline:
                if registry.mutate(task_id, _poll):
                    logger.info("worker stopping due to deletion request task_id=%s", task_id)
                    return
                continue

        logger.info("task timer expired task_id=%s", task_id)
        final = registry.mutate(task_id, lambda rec: _finish(rec, plan.should_fail))
        if final is None:
            logger.info("task finished its duration but was marked for deletion earlier task_id=%s", task_id)
        elif final == TaskStatus.FAILED:
            logger.error("task failed during processing task_id=%s error=%s", task_id, ERROR_FAILED)
        else:
            logger.info("task completed successfully task_id=%s", task_id)
        return


class TaskRunner:
    """Runs one daemon thread per submitted task."""

    def __init__(self, registry: TaskRegistry, options: Optional[WorkerOptions] = None, rng: Optional[random.Random] = None):
        self.registry = registry
        self.options = options or WorkerOptions()
        self._rng = rng or random.Random()
        self._stop = threading.Event()
        self._threads: Dict[UUID, threading.Thread] = {}
        self._threads_lock = threading.Lock()

    def submit(self, task_id: UUID) -> threading.Thread:
        plan = draw_plan(self._rng, self.options)
        t = threading.Thread(
            target=self._run,
            args=(task_id, plan),
            name=f"task-{task_id}",
            daemon=True,
        )
        with self._threads_lock:
            self._threads = {k: v for k, v in self._threads.items() if v.is_alive()}
            self._threads[task_id] = t
        t.start()
        return t

    def _run(self, task_id: UUID, plan: TaskPlan) -> None:
        try:
            run_task(self.registry, task_id, plan, self.options.poll_interval, self._stop)
        except Exception:
            logger.exception("worker crashed task_id=%s", task_id)

    def active_count(self) -> int:
        with self._threads_lock:
            return sum(1 for t in self._threads.values() if t.is_alive())

    def join(self, task_id: UUID, timeout: Optional[float] = None) -> bool:
        with self._threads_lock:
            t = self._threads.get(task_id)
        if t is None:
            return True
        t.join(timeout)
        return not t.is_alive()

    def shutdown(self, timeout: Optional[float] = None) -> None:
        self._stop.set()
        with self._threads_lock:
            threads = list(self._threads.values())
        for t in threads:
            t.join(timeout)
        logger.info("task runner stopped workers=%d", len(threads))

"""Workers that take queued tasks and run their registered implementations."""

from __future__ import annotations

import logging
import threading
from typing import Any

from .tasks import (
    REGISTERED_TASKS,
    TaskContext,
    TaskStatus,
    TaskStore,
    pop_queued_task,
)

DEFAULT_TICK = 1.0


class Invoker:
    """Runs asynchronous tasks, such as judging solutions, from a task store.

    Implementations are looked up by task kind among the registered task
    factories; a factory is called with the invoker and must return an
    object with ``execute(ctx)``.
    """

    def __init__(
        self,
        tasks: TaskStore,
        stop_event: threading.Event | None = None,
        logger: logging.Logger | None = None,
        tick: float = DEFAULT_TICK,
        ping_tick: float = DEFAULT_TICK,
        **services: Any,
    ) -> None:
        self.tasks = tasks
        self.stop_event = stop_event or threading.Event()
        self.logger = logger or logging.getLogger(__name__)
        self.tick = tick
        self.ping_tick = ping_tick
        self.services = services

    def run_daemon(self, stop_event: threading.Event) -> None:
        """Keep running tasks until ``stop_event`` is set.

        When no task was available, waits one tick before trying again.
        """
        while not stop_event.is_set():
            if not self._run_tick(stop_event):
                stop_event.wait(self.tick)

    def run_daemon_tick(self) -> bool:
        """Run one queued task; return False if there was none to run."""
        return self._run_tick(self.stop_event)

    def _run_tick(self, stop_event: threading.Event) -> bool:
        if stop_event.is_set():
            return True
        try:
            guard = pop_queued_task(self.tasks)
        except Exception:
            self.logger.exception("Unable to pop queued task")
            return False
        if guard is None:
            return False
        logger = logging.LoggerAdapter(self.logger, {"task_id": guard.object_id})
        with TaskContext(
            guard, logger=logger, parent=stop_event, tick=self.ping_tick
        ) as ctx:
            factory = REGISTERED_TASKS.get(guard.kind)
            if factory is None:
                logger.error("Unsupported task: %s", guard.kind)
                return True
            impl = factory(self)
            logger.info("Executing task: kind=%s", guard.kind)
            try:
                impl.execute(ctx)
            except Exception:
                logger.exception("Task failed")
                try:
                    guard.set_status(TaskStatus.FAILED)
                except Exception:
                    logger.exception("Unable to set failed task status")
                return True
            logger.info("Task succeeded")
            try:
                guard.set_status(TaskStatus.SUCCEEDED)
            except Exception:
                logger.exception("Unable to set succeeded task status")
            return True
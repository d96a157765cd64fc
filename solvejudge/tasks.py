"""Queued tasks: claiming them, keeping them alive and updating them."""

from __future__ import annotations

import copy
import enum
import logging
import threading
import time
from dataclasses import dataclass
from datetime import timedelta
from types import MappingProxyType
from typing import Any, Callable, Protocol

MIN_DURATION = timedelta(seconds=2)
PING_DURATION = 10 * MIN_DURATION


class TaskError(Exception):
    """Raised when a task cannot be changed."""


class TaskStatus(str, enum.Enum):
    QUEUED = "queued"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass
class Task:
    """A stored task; ``expire_time`` is a Unix time in seconds."""

    id: int
    kind: str
    status: TaskStatus = TaskStatus.QUEUED
    config: Any = None
    state: Any = None
    expire_time: int = 0


class TaskStore(Protocol):
    """Storage that hands out queued tasks and saves changed ones."""

    def pop_queued(
        self, duration: timedelta, is_supported: Callable[[str], bool]
    ) -> Task | None:
        """Claim a queued task of a supported kind for ``duration``."""

    def update(self, task: Task) -> None:
        """Save ``task``."""


_registered_tasks: dict[str, Callable[..., Any]] = {}
REGISTERED_TASKS = MappingProxyType(_registered_tasks)


def register_task(kind: str, factory: Callable[..., Any]) -> None:
    """Register the factory that builds the implementation of ``kind``."""
    if kind in _registered_tasks:
        raise ValueError(f"task {kind!r} already registered")
    _registered_tasks[kind] = factory


def is_supported_task(kind: str) -> bool:
    """Tell whether a task kind has a registered implementation."""
    return kind in _registered_tasks


class TaskGuard:
    """Serialises access to a claimed task and its updates."""

    def __init__(self, store: TaskStore, task: Task) -> None:
        self.store = store
        self.task = task
        self._lock = threading.RLock()

    @property
    def object_id(self) -> int:
        return self.task.id

    @property
    def kind(self) -> str:
        with self._lock:
            return self.task.kind

    @property
    def status(self) -> TaskStatus:
        with self._lock:
            return self.task.status

    @property
    def deadline(self) -> float:
        """Unix time after which the claim on the task is lost."""
        with self._lock:
            return float(self.task.expire_time)

    def scan_config(self) -> Any:
        with self._lock:
            return copy.deepcopy(self.task.config)

    def scan_state(self) -> Any:
        with self._lock:
            return copy.deepcopy(self.task.state)

    def set_status(self, status: TaskStatus) -> None:
        with self._lock:
            self._check()
            clone = copy.deepcopy(self.task)
            clone.status = status
            self._update(clone)

    def set_state(self, state: Any) -> None:
        with self._lock:
            self._check()
            clone = copy.deepcopy(self.task)
            clone.state = copy.deepcopy(state)
            self._update(clone)

    def ping(self, duration: timedelta) -> None:
        """Extend the claim on the task by ``duration`` (at least two seconds)."""
        duration = max(duration, MIN_DURATION)
        with self._lock:
            self._check()
            clone = copy.deepcopy(self.task)
            clone.expire_time = int(time.time() + duration.total_seconds())
            self._update(clone)

    def _check(self) -> None:
        if self.task.status != TaskStatus.RUNNING:
            raise TaskError("task is not running")
        if int(time.time()) >= self.task.expire_time:
            raise TaskError("task is expired")

    def _update(self, task: Task) -> None:
        self.store.update(task)
        self.task = task


_pop_lock = threading.Lock()


def pop_queued_task(store: TaskStore) -> TaskGuard | None:
    """Claim the next supported queued task, or return None if there is none."""
    with _pop_lock:
        task = store.pop_queued(PING_DURATION, is_supported_task)
    if task is None:
        return None
    return TaskGuard(store, task)


class TaskContext:
    """A running task: cancellation, logging and a background pinger.

    The pinger keeps extending the claim on the task while it runs and
    cancels the context once the claim has expired.
    """

    def __init__(
        self,
        guard: TaskGuard,
        logger: logging.Logger | None = None,
        parent: threading.Event | None = None,
        tick: float = 1.0,
    ) -> None:
        self.guard = guard
        self.logger = logger or logging.getLogger(__name__)
        self._parent = parent
        self._tick = tick
        self._cancel = threading.Event()
        self._thread = threading.Thread(target=self._pinger, daemon=True)
        self._thread.start()

    @property
    def cancelled(self) -> bool:
        if self._parent is not None and self._parent.is_set():
            return True
        return self._cancel.is_set()

    @property
    def kind(self) -> str:
        return self.guard.kind

    @property
    def status(self) -> TaskStatus:
        return self.guard.status

    def scan_config(self) -> Any:
        return self.guard.scan_config()

    def scan_state(self) -> Any:
        return self.guard.scan_state()

    def set_status(self, status: TaskStatus) -> None:
        self.guard.set_status(status)

    def set_state(self, state: Any) -> None:
        self.guard.set_state(state)

    def ping(self, duration: timedelta) -> None:
        self.guard.ping(duration)

    def wait(self, timeout: float | None = None) -> bool:
        """Wait until the context is cancelled; return whether it was."""
        return self._cancel.wait(timeout)

    def close(self) -> None:
        """Cancel the context and stop the pinger."""
        self._cancel.set()
        if self._thread is not threading.current_thread():
            self._thread.join()

    def _pinger(self) -> None:
        half = PING_DURATION.total_seconds() / 2
        while not self._cancel.wait(self._tick):
            if self._parent is not None and self._parent.is_set():
                self._cancel.set()
                return
            now = time.time()
            deadline = self.guard.deadline
            if now > deadline:
                self._cancel.set()
                return
            if now + half < deadline:
                continue
            try:
                self.guard.ping(PING_DURATION)
            except Exception as err:  # keep pinging; failures are not fatal
                self.logger.debug("Unable to ping task: %s", err)

    def __enter__(self) -> TaskContext:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()
"""Run-one-at-a-time execution of async tasks."""

import asyncio
from typing import Awaitable, Callable, TypeVar

import structlog

log = structlog.stdlib.get_logger()

T = TypeVar("T")


class TaskSerializer:
    """Runs async tasks strictly one after another.

    A task submitted while another is running waits until the running task
    settles, whether it succeeded or failed. Waiting tasks start in submission
    order.
    """

    def __init__(self, name: str = "tasks"):
        """
        Initialize task serializer.

        Args:
            name: Name used in log events
        """
        self._name: str = name
        self._lock = asyncio.Lock()
        self._queued: int = 0

    @property
    def busy(self) -> bool:
        """Whether a task is currently running."""
        return self._lock.locked()

    @property
    def queued(self) -> int:
        """Number of tasks waiting for their turn."""
        return self._queued

    async def run(self, task: Callable[[], Awaitable[T]]) -> T:
        """
        Run a task once all previously submitted tasks have settled.

        Args:
            task: Zero-argument coroutine function

        Returns:
            The task's result. Exceptions raised by the task propagate.
        """
        if self._lock.locked():
            log.debug("task_queued", serializer=self._name, queued=self._queued + 1)

        self._queued += 1
        try:
            await self._lock.acquire()
        finally:
            self._queued -= 1

        try:
            return await task()
        finally:
            self._lock.release()

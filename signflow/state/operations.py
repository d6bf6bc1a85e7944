"""Per-field serialisation of persistence operations.

Operations that target the same field run one after another in submission
order; operations for different fields interleave freely on the event loop.
Each operation resolves to a :class:`PersistResult` instead of raising.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

import structlog

from signflow.model.field import FormField

logger = structlog.get_logger(__name__)


@dataclass(frozen=True, slots=True)
class PersistError:
    operation: str
    handle: str
    message: str


@dataclass(frozen=True, slots=True)
class PersistResult:
    field: FormField | None = None
    error: PersistError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, field: FormField | None) -> PersistResult:
        return cls(field=field)

    @classmethod
    def failure(cls, operation: str, handle: str, message: str, field: FormField | None = None) -> PersistResult:
        return cls(field=field, error=PersistError(operation=operation, handle=handle, message=message))


Operation = Callable[[], Awaitable[PersistResult]]


class FieldOperationQueue:
    def __init__(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self._loop = loop
        self._tails: dict[str, asyncio.Task[PersistResult]] = {}

    def submit(self, handle: str, name: str, operation: Operation) -> asyncio.Task[PersistResult]:
        previous = self._tails.get(handle)
        loop = self._loop or asyncio.get_running_loop()
        task = loop.create_task(self._run(handle, name, operation, previous))
        self._tails[handle] = task
        task.add_done_callback(lambda done: self._release(handle, done))
        return task

    def resolved(self, result: PersistResult) -> asyncio.Future[PersistResult]:
        """A future already holding *result*, bound to the queue's loop."""
        loop = self._loop or asyncio.get_running_loop()
        future: asyncio.Future[PersistResult] = loop.create_future()
        future.set_result(result)
        return future

    def is_busy(self, handle: str) -> bool:
        return handle in self._tails

    async def drain(self) -> None:
        while self._tails:
            await asyncio.gather(*list(self._tails.values()))

    async def _run(
        self,
        handle: str,
        name: str,
        operation: Operation,
        previous: asyncio.Task[PersistResult] | None,
    ) -> PersistResult:
        if previous is not None:
            await asyncio.wait([previous])
        try:
            return await operation()
        except Exception as exc:
            logger.exception("field_operation.crashed", operation=name, handle=handle)
            return PersistResult.failure(name, handle, str(exc))

    def _release(self, handle: str, done: asyncio.Task[PersistResult]) -> None:
        if self._tails.get(handle) is done:
            del self._tails[handle]

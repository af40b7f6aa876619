# app/services/context.py
"""Cancellation and deadline signal passed from the request layer into the engine.

An ``OperationContext`` is created per request. The engine routes every
storage call through :meth:`OperationContext.run`, which refuses to start new
work once the context is cancelled or past its deadline and abandons a call
that is still running when either happens.
"""
from __future__ import annotations

import asyncio
import inspect
import time
from collections.abc import Awaitable
from typing import TypeVar

from app.services.exceptions import DeadlineExceededError, OperationCancelledError

T = TypeVar("T")


class OperationContext:
    def __init__(self, deadline: float | None = None) -> None:
        # ``deadline`` is an absolute ``time.monotonic()`` value.
        self._deadline = deadline
        self._cancelled = asyncio.Event()

    @classmethod
    def with_timeout(cls, seconds: float) -> "OperationContext":
        return cls(deadline=time.monotonic() + seconds)

    @property
    def deadline(self) -> float | None:
        return self._deadline

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def cancel(self) -> None:
        self._cancelled.set()

    def remaining(self) -> float | None:
        if self._deadline is None:
            return None
        return max(0.0, self._deadline - time.monotonic())

    def expired(self) -> bool:
        return self._deadline is not None and time.monotonic() >= self._deadline

    def check(self) -> None:
        """Raise if the caller is no longer waiting for this operation."""
        if self._cancelled.is_set():
            raise OperationCancelledError("operation cancelled")
        if self.expired():
            raise DeadlineExceededError("deadline exceeded")

    async def run(self, awaitable: Awaitable[T]) -> T:
        """Await ``awaitable`` unless the context is cancelled or expires first."""
        try:
            self.check()
        except OperationCancelledError:
            if inspect.iscoroutine(awaitable):
                awaitable.close()
            raise

        task = asyncio.ensure_future(awaitable)
        waiter = asyncio.ensure_future(self._cancelled.wait())
        try:
            done, _ = await asyncio.wait(
                {task, waiter},
                timeout=self.remaining(),
                return_when=asyncio.FIRST_COMPLETED,
            )
        except asyncio.CancelledError:
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)
            raise
        finally:
            waiter.cancel()

        if task in done:
            return task.result()

        task.cancel()
        # The abandoned call unwinds before the caller closes its session.
        await asyncio.gather(task, return_exceptions=True)
        self.check()
        raise DeadlineExceededError("deadline exceeded")

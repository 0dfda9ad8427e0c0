"""Bounded worker pool over asyncio.

Each pipeline stage pushes its units through a ``BoundedPool``. The bound is
what serialises access to ffmpeg and the shared working directory; a bound
of 1 runs units strictly one after another.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass
from typing import Generic, TypeVar

T = TypeVar("T")
R = TypeVar("R")


@dataclass
class UnitOutcome(Generic[T, R]):
    """What happened to one unit of work."""

    item: T
    result: R | None = None
    error: BaseException | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


class BoundedPool:
    """Runs coroutines with at most ``limit`` in flight.

    A failing unit never cancels its siblings; failures come back as
    ``UnitOutcome.error``.
    """

    def __init__(self, limit: int, name: str = "pool") -> None:
        if limit < 1:
            raise ValueError(f"Pool limit must be at least 1, got {limit}")
        self.limit = limit
        self.name = name
        self._semaphore: asyncio.Semaphore | None = None

    def _get_semaphore(self) -> asyncio.Semaphore:
        # Created on first use so it binds to the running loop.
        if self._semaphore is None:
            self._semaphore = asyncio.Semaphore(self.limit)
        return self._semaphore

    async def map(
        self,
        func: Callable[[T], Awaitable[R]],
        items: Iterable[T],
    ) -> list[UnitOutcome[T, R]]:
        """Run ``func`` over every item and wait for all of them.

        Outcomes are returned in the order of ``items``.
        """
        items = list(items)

        async def unit(item: T) -> R:
            async with self._get_semaphore():
                return await func(item)

        results = await asyncio.gather(*(unit(item) for item in items), return_exceptions=True)

        outcomes: list[UnitOutcome[T, R]] = []
        for item, result in zip(items, results):
            if isinstance(result, BaseException):
                if not isinstance(result, Exception):
                    # KeyboardInterrupt and friends are not unit failures.
                    raise result
                outcomes.append(UnitOutcome(item=item, error=result))
            else:
                outcomes.append(UnitOutcome(item=item, result=result))
        return outcomes

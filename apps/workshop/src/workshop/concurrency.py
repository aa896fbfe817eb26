from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any, Awaitable, Generic, Hashable, Iterable, TypeVar

K = TypeVar("K", bound=Hashable)
T = TypeVar("T")


@dataclass
class Settled(Generic[K, T]):
    """Outcome of a fan-out: results and errors keyed by item."""

    successes: dict[K, T] = field(default_factory=dict)
    failures: dict[K, BaseException] = field(default_factory=dict)


async def settle_all(tasks: Iterable[tuple[K, Awaitable[T]]]) -> Settled[K, T]:
    """Await every task; one failure never cancels or hides the others."""
    tasks = list(tasks)
    settled: Settled[K, T] = Settled()
    if not tasks:
        return settled

    results: list[Any] = await asyncio.gather(
        *(awaitable for _, awaitable in tasks), return_exceptions=True
    )
    for (key, _), result in zip(tasks, results):
        if isinstance(result, Exception):
            settled.failures[key] = result
        elif isinstance(result, BaseException):
            raise result
        else:
            settled.successes[key] = result
    return settled

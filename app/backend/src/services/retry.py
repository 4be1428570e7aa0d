"""Retry policy with linear backoff for transient storage failures."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import TypeVar

import structlog

T = TypeVar("T")

LOGGER = structlog.get_logger(__name__)


@dataclass(frozen=True)
class RetryPolicy:
    """Run an operation up to ``max_attempts`` times.

    The delay before retry ``n`` is ``base_delay * n`` seconds. ``sleep`` is
    injectable so tests can record delays without real timers.
    """

    max_attempts: int = 3
    base_delay: float = 0.5
    sleep: Callable[[float], Awaitable[None]] = field(default=asyncio.sleep, repr=False)

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

    def delay_for(self, attempt: int) -> float:
        return self.base_delay * attempt

    async def run(
        self,
        operation: Callable[[], Awaitable[T]],
        *,
        retry_on: tuple[type[BaseException], ...] = (Exception,),
        name: str = "operation",
    ) -> T:
        """Await ``operation`` until it succeeds; the last failure propagates."""

        for attempt in range(1, self.max_attempts + 1):
            try:
                return await operation()
            except retry_on as exc:
                LOGGER.error(
                    "retry_attempt_failed",
                    operation=name,
                    attempt=attempt,
                    max_attempts=self.max_attempts,
                    error=str(exc),
                )
                if attempt == self.max_attempts:
                    raise
                await self.sleep(self.delay_for(attempt))
        raise AssertionError("unreachable")  # pragma: no cover


__all__ = ["RetryPolicy"]

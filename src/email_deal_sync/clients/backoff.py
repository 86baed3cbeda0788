"""
Pacing and rate-limit backoff policy for CRM calls.

HubSpot enforces per-second and daily limits. Calls are paced with fixed
delays between dependent requests and between emails; 429 responses are
retried with the server's Retry-After hint, else a delay growing linearly
with the attempt number. Every rate-limit delay is capped at
max_delay_seconds so one hint cannot outlast the invocation.

The policy is injected so tests can run with BackoffPolicy.immediate().
"""

import asyncio
from dataclasses import dataclass, field
from typing import Awaitable, Callable

from tenacity import RetryCallState

from ..errors import HubSpotRateLimitError

SleepFn = Callable[[float], Awaitable[None]]


async def _no_sleep(seconds: float) -> None:
    return None


@dataclass(frozen=True)
class BackoffPolicy:
    """Retry and pacing parameters for the HubSpot client and the pipeline."""

    max_retries: int = 3
    base_delay_seconds: float = 1.0
    call_delay_seconds: float = 0.15
    event_delay_seconds: float = 0.2
    max_delay_seconds: float = 10.0
    sleep: SleepFn = field(default=asyncio.sleep, compare=False)

    @classmethod
    def immediate(cls, max_retries: int = 3) -> 'BackoffPolicy':
        """Zero-delay policy for tests and local replays."""
        return cls(
            max_retries=max_retries,
            base_delay_seconds=0.0,
            call_delay_seconds=0.0,
            event_delay_seconds=0.0,
            sleep=_no_sleep,
        )

    @property
    def max_attempts(self) -> int:
        return self.max_retries + 1

    def rate_limit_delay(self, attempt_number: int, retry_after: float | None) -> float:
        """Seconds to wait after the given failed attempt (1-based), capped."""
        if retry_after is not None:
            delay = retry_after
        else:
            delay = attempt_number * self.base_delay_seconds
        return min(delay, self.max_delay_seconds)

    def wait(self, retry_state: RetryCallState) -> float:
        """tenacity wait strategy."""
        retry_after = None
        if retry_state.outcome is not None:
            exc = retry_state.outcome.exception()
            if isinstance(exc, HubSpotRateLimitError):
                retry_after = exc.retry_after
        return self.rate_limit_delay(retry_state.attempt_number, retry_after)

    async def pause_between_calls(self) -> None:
        if self.call_delay_seconds > 0:
            await self.sleep(self.call_delay_seconds)

    async def pause_between_events(self) -> None:
        if self.event_delay_seconds > 0:
            await self.sleep(self.event_delay_seconds)

# src/service/policy.py — v1
"""Request pacing policy: fixed inter-question delay and bounded retry.

Injected into the session manager and the orchestrator so tests can swap
in a zero-delay policy.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

from mediaquote.config.settings import Settings
from mediaquote.core.errors import TransportError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RequestPolicy:
    """Pacing and retry configuration for remote calls."""

    qa_delay_s: float = 0.5
    max_retries: int = 0
    retry_base_delay_s: float = 1.0
    backoff_factor: float = 2.0

    @classmethod
    def from_settings(cls, settings: Settings) -> RequestPolicy:
        return cls(
            qa_delay_s=settings.qa_delay_s,
            max_retries=settings.max_retries,
            retry_base_delay_s=settings.retry_base_delay_s,
        )

    def retry_delay(self, attempt: int) -> float:
        """Delay before retry number ``attempt`` (0-based)."""
        return self.retry_base_delay_s * (self.backoff_factor ** attempt)

    async def pause(self) -> None:
        """Courtesy delay between consecutive Q&A requests."""
        if self.qa_delay_s > 0:
            await asyncio.sleep(self.qa_delay_s)


NO_DELAY = RequestPolicy(qa_delay_s=0.0, max_retries=0, retry_base_delay_s=0.0)


async def with_retry(
    fn: Callable[..., Awaitable[Any]],
    *args: Any,
    policy: RequestPolicy,
    operation: str = "request",
    **kwargs: Any,
) -> Any:
    """Execute an async call, retrying retryable TransportErrors.

    Non-retryable errors (4xx other than 429) and any non-transport
    exception propagate immediately. After ``policy.max_retries`` retries
    the last TransportError is re-raised unchanged.
    """
    attempts = 0

    while True:
        try:
            return await fn(*args, **kwargs)
        except TransportError as e:
            if not e.retryable or attempts >= policy.max_retries:
                raise
            delay = policy.retry_delay(attempts)
            attempts += 1
            logger.warning(
                "%s failed (%s), retry %d/%d in %.1fs",
                operation, e, attempts, policy.max_retries, delay,
            )
            await asyncio.sleep(delay)

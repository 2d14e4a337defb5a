# Retrying Fetcher
"""Timeout and bounded exponential-backoff retry around a single read."""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, List, Optional

import httpx

from portal_sync.config import settings
from portal_sync.errors import PortalSyncError

logger = logging.getLogger("portal_sync.services.retrying_fetcher")


def next_delay(attempt: int, base: float = 1.0, cap: float = 5.0) -> float:
    """
    Backoff before the attempt following ``attempt`` (1-based).

    ``min(base * 2 ** (attempt - 1), cap)``: 1s, 2s, 4s, 5s, 5s... with the
    defaults.
    """
    if attempt < 1:
        raise ValueError("attempt is 1-based")
    return min(base * 2 ** (attempt - 1), cap)


def is_retryable(error: BaseException) -> bool:
    """
    Classify a failure as transient (retry) or permanent (surface now).

    Timeouts, network errors and 5xx responses are transient. Client errors
    (authorization, validation, not-found) are permanent. Unknown errors are
    treated as transient.
    """
    if isinstance(error, PortalSyncError):
        return error.retryable
    if isinstance(error, httpx.HTTPStatusError):
        status = error.response.status_code
        return status >= 500 or status in (408, 429)
    # Timeouts, httpx transport errors and anything unrecognized
    return True


@dataclass
class FetchResult:
    """
    Outcome of a retried read.

    Attributes:
        value: Result of the successful attempt
        error: Last error when every attempt failed
        attempts: Number of attempts made
        delays: Backoff delays slept between attempts, in order
    """
    value: Any = None
    error: Optional[BaseException] = None
    attempts: int = 0
    delays: List[float] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> Any:
        """Return the value or raise the recorded error."""
        if self.error is not None:
            raise self.error
        return self.value


class RetryingFetcher:
    """Runs an idempotent async operation under a timeout, retrying transient failures."""

    def __init__(
        self,
        timeout: Optional[float] = None,
        max_attempts: Optional[int] = None,
        base_delay: Optional[float] = None,
        max_delay: Optional[float] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.timeout = timeout if timeout is not None else settings.backend_timeout
        self.max_attempts = max_attempts if max_attempts is not None else settings.fetch_max_attempts
        self.base_delay = base_delay if base_delay is not None else settings.retry_base_delay
        self.max_delay = max_delay if max_delay is not None else settings.retry_max_delay
        self._sleep = sleep

    def delay_for(self, attempt: int) -> float:
        return next_delay(attempt, base=self.base_delay, cap=self.max_delay)

    async def execute(
        self,
        operation: Callable[[], Awaitable[Any]],
        timeout: Optional[float] = None,
        max_attempts: Optional[int] = None,
        description: str = "request",
    ) -> FetchResult:
        """
        Run ``operation`` until it succeeds, fails permanently, or attempts run out.

        Args:
            operation: Zero-argument callable returning a fresh awaitable per attempt
            timeout: Per-attempt timeout in seconds (default: self.timeout)
            max_attempts: Attempt budget (default: self.max_attempts)
            description: Label used in log messages

        Returns:
            FetchResult carrying the value or the last error
        """
        timeout = timeout if timeout is not None else self.timeout
        attempts_allowed = max(1, max_attempts if max_attempts is not None else self.max_attempts)
        result = FetchResult()

        for attempt in range(1, attempts_allowed + 1):
            result.attempts = attempt
            try:
                result.value = await asyncio.wait_for(operation(), timeout=timeout)
                result.error = None
                return result
            except Exception as e:
                result.error = e
                if not is_retryable(e):
                    logger.warning(f"{description} failed permanently on attempt {attempt}: {e}")
                    return result
                if attempt >= attempts_allowed:
                    break
                delay = self.delay_for(attempt)
                result.delays.append(delay)
                logger.warning(
                    f"{description} failed (attempt {attempt}/{attempts_allowed}): "
                    f"{type(e).__name__}: {e}; retrying in {delay:.1f}s"
                )
                await self._sleep(delay)

        logger.error(f"{description} failed after {result.attempts} attempt(s): {result.error}")
        return result

"""Retry policy with exponential backoff, built on tenacity.

A ``RetryPolicy`` is created once from configuration and shared. Each
``execute`` call drives its own tenacity controller, so attempt counters
never leak between calls and one policy can guard many concurrent callers.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, TypeVar

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    Retrying,
    nap,
    retry_if_exception,
    sleep_using_event,
    stop_after_attempt,
)

from courier.domain.config.retry import RetryConfig

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RetryCancelledError(Exception):
    """The caller cancelled a retry sequence before it completed.

    Distinct from any failure raised by the guarded operation.
    """

    def __init__(self, attempts: int):
        super().__init__(f"Retry cancelled after {attempts} attempt(s)")
        self.attempts = attempts


def _is_retryable(exception: BaseException) -> bool:
    # Failures of any kind are retried; cancellation and non-Exception
    # signals (KeyboardInterrupt, CancelledError) are not.
    return isinstance(exception, Exception) and not isinstance(exception, RetryCancelledError)


def _default_sleep(seconds: float) -> None:
    # Resolved at call time so tests can monkeypatch tenacity.nap.sleep
    nap.sleep(seconds)


@dataclass(frozen=True)
class RetryPolicy:
    """Bounded retry with capped exponential backoff.

    Delay before attempt k (k >= 2) is
    ``min(initial_interval * multiplier ** (k - 2), max_interval)``.
    Intervals are in seconds.
    """

    enabled: bool = False
    max_attempts: int = 3
    initial_interval: float = 1.0
    multiplier: float = 1.0
    max_interval: float = 10.0

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if self.initial_interval < 0:
            raise ValueError("initial_interval must be non-negative")
        if self.multiplier <= 0:
            raise ValueError("multiplier must be positive")
        if self.max_interval < self.initial_interval:
            raise ValueError("max_interval must not be less than initial_interval")

    @classmethod
    def from_config(cls, config: RetryConfig) -> "RetryPolicy":
        """Create policy from validated retry configuration"""
        return cls(
            enabled=config.enabled,
            max_attempts=config.max_attempts,
            initial_interval=config.initial_interval.total_seconds(),
            multiplier=config.multiplier,
            max_interval=config.max_interval.total_seconds(),
        )

    def delay(self, attempt: int) -> float:
        """Compute the wait before the given attempt

        Args:
            attempt: 1-based attempt number

        Returns:
            Delay in seconds (0 for the first attempt)
        """
        if attempt <= 1 or self.initial_interval == 0:
            return 0.0
        try:
            interval = self.initial_interval * (self.multiplier ** (attempt - 2))
        except OverflowError:
            return self.max_interval
        return max(0.0, min(interval, self.max_interval))

    def _wait(self, retry_state: RetryCallState) -> float:
        # attempt_number is the attempt that just failed
        return self.delay(retry_state.attempt_number + 1)

    def _log_before_sleep(self, retry_state: RetryCallState) -> None:
        if retry_state.outcome is None:
            return
        exception = retry_state.outcome.exception()
        attempt = retry_state.attempt_number
        delay = retry_state.next_action.sleep if retry_state.next_action else 0.0
        logger.warning(
            f"Attempt {attempt}/{self.max_attempts} failed: {exception!r}. "
            f"Retrying in {delay:.3f}s..."
        )

    def execute(
        self,
        operation: Callable[[], T],
        cancel_event: Optional[threading.Event] = None,
    ) -> T:
        """Run operation under this policy, blocking the calling thread between attempts

        Args:
            operation: Zero-argument callable; any Exception counts as a failed attempt
            cancel_event: Optional event; once set, no further attempts are made

        Returns:
            Result of the first successful attempt

        Raises:
            RetryCancelledError: If cancel_event was set before the sequence finished
            Exception: The exception raised by the last attempt, unchanged
        """
        attempts = 0

        def _attempt() -> T:
            nonlocal attempts
            if cancel_event is not None and cancel_event.is_set():
                raise RetryCancelledError(attempts)
            attempts += 1
            return operation()

        if not self.enabled or self.max_attempts == 1:
            return _attempt()

        retrying = Retrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=self._wait,
            retry=retry_if_exception(_is_retryable),
            sleep=sleep_using_event(cancel_event) if cancel_event is not None else _default_sleep,
            before_sleep=self._log_before_sleep,
            reraise=True,
        )
        try:
            return retrying(_attempt)
        except RetryCancelledError:
            logger.info(f"Retry sequence cancelled after {attempts} attempt(s)")
            raise
        except Exception as e:
            logger.error(f"Operation failed after {attempts} attempt(s): {e!r}")
            raise

    async def execute_async(
        self,
        operation: Callable[[], Awaitable[T]],
        cancel_event: Optional[asyncio.Event] = None,
    ) -> T:
        """Async variant of ``execute``; waits yield to the event loop

        Cancelling the awaiting task propagates ``asyncio.CancelledError``
        unchanged. Setting cancel_event raises ``RetryCancelledError``.
        """
        attempts = 0

        async def _attempt() -> T:
            nonlocal attempts
            if cancel_event is not None and cancel_event.is_set():
                raise RetryCancelledError(attempts)
            attempts += 1
            return await operation()

        async def _sleep(seconds: float) -> None:
            if cancel_event is None:
                await asyncio.sleep(seconds)
                return
            try:
                await asyncio.wait_for(cancel_event.wait(), timeout=seconds)
            except asyncio.TimeoutError:
                pass

        if not self.enabled or self.max_attempts == 1:
            return await _attempt()

        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=self._wait,
            retry=retry_if_exception(_is_retryable),
            sleep=_sleep,
            before_sleep=self._log_before_sleep,
            reraise=True,
        )
        try:
            return await retrying(_attempt)
        except RetryCancelledError:
            logger.info(f"Retry sequence cancelled after {attempts} attempt(s)")
            raise
        except Exception as e:
            logger.error(f"Operation failed after {attempts} attempt(s): {e!r}")
            raise

    def describe(self) -> str:
        """Human-readable summary for logs"""
        if not self.enabled:
            return "retry disabled (single attempt)"
        return (
            f"up to {self.max_attempts} attempts, interval {self.initial_interval}s "
            f"x{self.multiplier} capped at {self.max_interval}s"
        )

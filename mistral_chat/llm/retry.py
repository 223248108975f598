"""Bounded retry with exponential backoff for transport failures."""

import asyncio
from collections.abc import Awaitable, Callable

from pydantic import BaseModel, ConfigDict, Field
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
    wait_random_exponential,
)
from tenacity.wait import wait_base

from mistral_chat.config import MistralSettings
from mistral_chat.exceptions import InvocationCancelledError, TransportError
from mistral_chat.logging_config import get_logger

logger = get_logger(__name__)

RETRYABLE_STATUS_CODES: frozenset[int] = frozenset({408, 409, 429, 500, 502, 503, 504})


def is_retryable(exc: BaseException) -> bool:
    """Decide whether a failed attempt may be repeated.

    Cancellation is never retried. Transport errors are retried when they
    carry no status or a retryable one.
    """
    if isinstance(exc, InvocationCancelledError):
        return False
    if not isinstance(exc, TransportError):
        return False
    if exc.status_code is None:
        return True
    return exc.status_code in RETRYABLE_STATUS_CODES


def _log_retry(retry_state: RetryCallState) -> None:
    if retry_state.outcome is None or retry_state.next_action is None:
        return
    error = retry_state.outcome.exception()
    reason = error.code.value if isinstance(error, TransportError) else type(error).__name__
    logger.warning(
        f"Mistral request failed ({reason}), retrying in "
        f"{retry_state.next_action.sleep:.2f}s (attempt {retry_state.attempt_number + 1})"
    )


class RetryPolicy(BaseModel):
    """Retry policy for requests that failed before any response body was read.

    Attributes:
        max_attempts: Attempts including the first one.
        initial_delay: Delay before the first retry in seconds.
        backoff_multiplier: Growth factor between consecutive delays.
        max_delay: Upper bound for one delay in seconds.
        jitter: Randomize each delay within ``[0, delay]``.
    """

    model_config = ConfigDict(frozen=True)

    max_attempts: int = Field(default=3, ge=1)
    initial_delay: float = Field(default=0.5, ge=0)
    backoff_multiplier: float = Field(default=2.0, gt=0)
    max_delay: float = Field(default=8.0, ge=0)
    jitter: bool = True

    @classmethod
    def from_settings(cls, settings: MistralSettings) -> "RetryPolicy":
        """Build a policy from API settings."""
        return cls(
            max_attempts=settings.max_attempts,
            initial_delay=settings.initial_backoff,
            max_delay=settings.max_backoff,
        )

    def wait(self) -> wait_base:
        """Backoff strategy: exponential, capped, optionally jittered."""
        if self.jitter:
            return wait_random_exponential(
                multiplier=self.initial_delay,
                max=self.max_delay,
                exp_base=self.backoff_multiplier,
            )
        return wait_exponential(
            multiplier=self.initial_delay,
            max=self.max_delay,
            exp_base=self.backoff_multiplier,
        )

    def retrying(
        self,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        allow: Callable[[], bool] | None = None,
    ) -> AsyncRetrying:
        """Build a retry controller for one request.

        Args:
            sleep: Backoff sleep.
            allow: Extra check consulted before each retry; returning False
                makes the current failure final.

        Returns:
            A controller that re-raises the last failure once retries stop.
        """

        def should_retry(exc: BaseException) -> bool:
            if allow is not None and not allow():
                return False
            return is_retryable(exc)

        return AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=self.wait(),
            retry=retry_if_exception(should_retry),
            sleep=sleep,
            before_sleep=_log_retry,
            reraise=True,
        )

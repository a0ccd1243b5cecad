"""Bounded retry with per-error backoff, shared by upload and publish.

A ``RetryPolicy`` is parameterized by three things:

- ``is_retryable(exc)`` decides whether a failure may be repeated;
- ``delay(attempt, exc)`` returns the wait before the next attempt
  (``attempt`` is the 1-based index of the attempt that just failed);
- ``max_attempts`` bounds the total number of attempts.

Cancellation is cooperative: a set ``cancel_event`` is checked before each
attempt and interrupts the backoff wait, raising ``OperationCancelledError``.
An attempt that is already on the wire is never interrupted.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from typing import TypeVar

from fwrelease.errors import (
    OperationCancelledError,
    RateLimitExhaustedError,
    ServerError,
    TransportError,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

DelayFn = Callable[[int, BaseException], float]
RetryablePredicate = Callable[[BaseException], bool]


def linear_backoff(unit: float) -> DelayFn:
    """delay = attempt_index x unit."""

    def _delay(attempt: int, exc: BaseException) -> float:
        return attempt * unit

    return _delay


def is_transient_transport(exc: BaseException) -> bool:
    return isinstance(exc, TransportError) and exc.retryable


class RetryPolicy:
    """Runs an operation until it succeeds, fails terminally, or runs out.

    Parameters
    ----------
    max_attempts:
        Total attempts including the first. Must be at least 1.
    is_retryable:
        Predicate over the raised exception.
    delay:
        Backoff in seconds before the next attempt.
    cancel_event:
        Optional event; once set, no further attempt starts.
    sleep:
        Waits ``seconds`` and returns True if cancelled meanwhile. Defaults
        to waiting on ``cancel_event``. Tests inject a recorder here.
    """

    def __init__(
        self,
        max_attempts: int,
        is_retryable: RetryablePredicate,
        delay: DelayFn,
        *,
        cancel_event: threading.Event | None = None,
        sleep: Callable[[float], bool] | None = None,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        self.max_attempts = max_attempts
        self.is_retryable = is_retryable
        self.delay = delay
        self.cancel_event = cancel_event or threading.Event()
        self._sleep = sleep or self.cancel_event.wait

    def run(self, operation: Callable[[int], T], description: str = "operation") -> T:
        """Call ``operation(attempt)`` under this policy and return its result."""
        for attempt in range(1, self.max_attempts + 1):
            self._check_cancelled(description)
            try:
                return operation(attempt)
            except Exception as exc:
                if not self.is_retryable(exc):
                    raise
                if attempt >= self.max_attempts:
                    logger.error(
                        "%s failed after %d attempts: %s", description, attempt, exc
                    )
                    raise
                wait = self.delay(attempt, exc)
                logger.warning(
                    "%s attempt %d/%d failed (%s), retrying in %.0fs...",
                    description,
                    attempt,
                    self.max_attempts,
                    exc,
                    wait,
                )
                if self._sleep(wait):
                    self._check_cancelled(description)
        raise AssertionError("unreachable")  # pragma: no cover

    def _check_cancelled(self, description: str) -> None:
        if self.cancel_event.is_set():
            raise OperationCancelledError(
                f"{description} cancelled by caller",
                suggestion="Re-run the command once the interruption is resolved.",
            )


# ---------------------------------------------------------------------------
# Policies used by the pipeline
# ---------------------------------------------------------------------------

RATE_LIMIT_UNIT = 5.0
SERVER_ERROR_UNIT = 2.0
UPLOAD_UNIT = 2.0


def upload_policy(
    max_attempts: int,
    *,
    cancel_event: threading.Event | None = None,
    sleep: Callable[[float], bool] | None = None,
) -> RetryPolicy:
    """Object-store calls: retry transient transport failures, linear 2s."""
    return RetryPolicy(
        max_attempts,
        is_transient_transport,
        linear_backoff(UPLOAD_UNIT),
        cancel_event=cancel_event,
        sleep=sleep,
    )


def _publish_retryable(exc: BaseException) -> bool:
    return isinstance(exc, (RateLimitExhaustedError, ServerError)) or is_transient_transport(exc)


def _publish_delay(attempt: int, exc: BaseException) -> float:
    if isinstance(exc, RateLimitExhaustedError):
        return attempt * RATE_LIMIT_UNIT
    return attempt * SERVER_ERROR_UNIT


def publish_policy(
    max_attempts: int,
    *,
    cancel_event: threading.Event | None = None,
    sleep: Callable[[float], bool] | None = None,
) -> RetryPolicy:
    """Publish API: 429 backs off 5s per attempt; 5xx and transport 2s.

    Validation, auth and conflict responses are terminal and never repeated.
    """
    return RetryPolicy(
        max_attempts,
        _publish_retryable,
        _publish_delay,
        cancel_event=cancel_event,
        sleep=sleep,
    )

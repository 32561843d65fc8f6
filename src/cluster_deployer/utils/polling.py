"""Blocking wait helpers with deadline and cancellation support."""

from __future__ import annotations

import logging
import threading
import time
from typing import Callable, Optional, TypeVar

from ..errors import CancellationError, PollTimeoutError

logger = logging.getLogger(__name__)

T = TypeVar("T")


def sleep_or_cancel(seconds: float, cancel_event: Optional[threading.Event]) -> None:
    """Sleep for ``seconds``, raising :class:`CancellationError` if cancelled."""
    if cancel_event is None:
        time.sleep(seconds)
        return
    if cancel_event.wait(seconds):
        raise CancellationError("Wait interrupted by cancellation request")


def wait_until(
    check: Callable[[], Optional[T]],
    *,
    description: str,
    interval: float = 5.0,
    timeout: float = 600.0,
    max_attempts: Optional[int] = None,
    cancel_event: Optional[threading.Event] = None,
    clock: Callable[[], float] = time.monotonic,
) -> T:
    """Call ``check`` until it returns something other than ``None``.

    Args:
        check: Probe returning ``None`` while the condition is not met yet
        description: What is being waited for (used in logs and errors)
        interval: Seconds between two probes
        timeout: Overall deadline in seconds
        max_attempts: Optional bound on the number of probes
        cancel_event: Set by the host to abort the wait

    Raises:
        CancellationError: ``cancel_event`` was set before or during a wait
        PollTimeoutError: deadline or attempt bound reached
    """
    deadline = clock() + timeout
    attempt = 0
    while True:
        if cancel_event is not None and cancel_event.is_set():
            raise CancellationError(f"Cancelled while waiting for {description}")

        attempt += 1
        result = check()
        if result is not None:
            return result

        if max_attempts is not None and attempt >= max_attempts:
            raise PollTimeoutError(f"Gave up waiting for {description} after {attempt} attempts")
        remaining = deadline - clock()
        if remaining <= 0:
            raise PollTimeoutError(f"Timed out after {timeout:.0f}s waiting for {description}")

        logger.debug("Waiting for %s (attempt %d)", description, attempt)
        sleep_or_cancel(min(interval, remaining), cancel_event)

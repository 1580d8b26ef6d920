"""Bounded polling for asynchronous resource activation.

poll_until_done() repeatedly calls a status check, classifies the result and
either returns (success), raises ResourceFailedError (explicit failure),
or raises PollTimeoutError once the attempt budget is spent. Errors raised
by the check itself are treated as transient and consume an attempt.
"""

import logging
import threading
from enum import Enum
from typing import Callable, Optional

from kb_rag.errors import PollCancelledError, PollTimeoutError, ResourceFailedError

logger = logging.getLogger(__name__)

# Knowledge base activation: 30 x 10s = ~5 minutes
DEFAULT_INTERVAL_SECONDS = 10.0
DEFAULT_MAX_ATTEMPTS = 30


class PollState(str, Enum):
    """Classification of an observed status."""

    PENDING = "PENDING"
    SUCCEEDED = "SUCCEEDED"
    FAILED = "FAILED"


def classify_knowledge_base_status(status: Optional[str]) -> PollState:
    """Map a knowledge base status string to a poll state."""
    if status == "ACTIVE":
        return PollState.SUCCEEDED
    if status == "FAILED":
        return PollState.FAILED
    return PollState.PENDING


def poll_until_done(
    check: Callable[[], Optional[str]],
    classify: Callable[[Optional[str]], PollState],
    interval: float = DEFAULT_INTERVAL_SECONDS,
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    cancel_event: Optional[threading.Event] = None,
    describe: str = "resource",
    on_attempt: Optional[Callable[[int, Optional[str]], None]] = None,
) -> str:
    """
    Poll a status until it is terminal or the attempt budget is spent.

    Args:
        check: Returns the current status string
        classify: Maps a status to PENDING/SUCCEEDED/FAILED
        interval: Seconds to wait between attempts
        max_attempts: Maximum number of checks
        cancel_event: Setting this event stops polling with PollCancelledError
        describe: Resource description used in errors and logs
        on_attempt: Progress callback, called with (attempt, status) after each check

    Returns:
        The status that classified as SUCCEEDED

    Raises:
        ResourceFailedError: status classified as FAILED
        PollTimeoutError: no terminal status within max_attempts
        PollCancelledError: cancel_event was set
    """
    cancel_event = cancel_event or threading.Event()
    last_status: Optional[str] = None

    for attempt in range(1, max_attempts + 1):
        if cancel_event.is_set():
            raise PollCancelledError(describe)

        try:
            status = check()
        except Exception as e:
            logger.warning(
                f"Transient error polling {describe} ({attempt}/{max_attempts}): {e}"
            )
        else:
            last_status = status
            state = classify(status)
            logger.debug(f"{describe} status {status} -> {state.value} ({attempt}/{max_attempts})")

            if state is PollState.SUCCEEDED:
                return status
            if state is PollState.FAILED:
                raise ResourceFailedError(describe, status or "UNKNOWN")

        if on_attempt:
            on_attempt(attempt, last_status)

        if attempt < max_attempts and cancel_event.wait(interval):
            raise PollCancelledError(describe)

    raise PollTimeoutError(describe, max_attempts, last_status)

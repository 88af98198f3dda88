"""
Poll loop for remote edit and export operations.

The loop checks at a fixed interval for a bounded number of attempts. A
failed status raises immediately. Progress is reported only when it strictly
increases.
"""

import logging
import time
from typing import Callable, Optional

from .errors import PollingTimeoutError, RemoteEditFailedError
from .models import RemoteStatus

logger = logging.getLogger(__name__)


def poll_until_complete(
    fetch: Callable[[], RemoteStatus],
    interval: float,
    max_attempts: int,
    phase: str = "edit",
    on_progress: Optional[Callable[[RemoteStatus], None]] = None,
    sleep: Callable[[float], None] = time.sleep,
    initial_progress: int = -1,
) -> RemoteStatus:
    """
    Check fetch() until it reports completion.

    Args:
        fetch: One-shot status check
        interval: Seconds between checks
        max_attempts: Maximum number of checks
        phase: Name used in logs and errors ("edit", "export")
        on_progress: Called with each status whose progress exceeds the last reported
        sleep: Sleep function
        initial_progress: Progress already reported before polling began

    Returns:
        The completing status

    Raises:
        RemoteEditFailedError: If the service reports failure
        PollingTimeoutError: If max_attempts checks pass without completion
    """
    reported = initial_progress
    for attempt in range(1, max_attempts + 1):
        status = fetch()
        logger.debug(
            f"[POLL] {phase} check {attempt}/{max_attempts}: {status.status} ({status.progress}%)"
        )

        if status.is_failed:
            raise RemoteEditFailedError(phase, status.status, status.message)

        if status.is_complete and status.progress < 100:
            status = status.model_copy(update={"progress": 100})

        if status.progress > reported:
            reported = status.progress
            if on_progress is not None:
                on_progress(status)

        if status.is_complete:
            logger.info(f"[POLL] {phase} completed after {attempt} check(s)")
            return status

        if attempt < max_attempts:
            sleep(interval)

    raise PollingTimeoutError(phase, max_attempts, interval)

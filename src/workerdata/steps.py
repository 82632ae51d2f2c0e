"""
Step helpers for browser tests: logged steps and retried actions.
"""

from __future__ import annotations

import time
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from typing import TypeVar

import structlog

logger = structlog.get_logger(__name__)

T = TypeVar("T")


def retry_action(
    action: Callable[[], T],
    max_retries: int = 3,
    action_name: str = "Action",
    delay: float = 1.0,
) -> T:
    """
    Run ``action`` until it succeeds or ``max_retries`` attempts fail.

    Args:
        action: Zero-argument callable to run
        max_retries: Maximum number of attempts
        action_name: Name used in log events
        delay: Seconds to wait between attempts

    Returns:
        The action's return value

    Raises:
        The exception of the last failed attempt
    """
    if max_retries < 1:
        raise ValueError("max_retries must be at least 1")

    log = logger.bind(action=action_name)
    for attempt in range(1, max_retries + 1):
        try:
            log.debug("Attempting action", attempt=attempt)
            result = action()
            log.debug("Action succeeded", attempt=attempt)
            return result
        except Exception as e:
            log.warning("Action failed", attempt=attempt, error=str(e))
            if attempt == max_retries:
                raise
            time.sleep(delay)

    raise AssertionError("unreachable")


@contextmanager
def log_step(name: str) -> Iterator[None]:
    """
    Log the start and outcome of a test step.

    Usage:
        with log_step("Fill registration form"):
            register_page.register(user)
    """
    log = logger.bind(step=name)
    log.info("Step started")
    started = time.monotonic()
    try:
        yield
    except Exception as e:
        log.error("Step failed", error=str(e), duration_s=round(time.monotonic() - started, 3))
        raise
    log.info("Step passed", duration_s=round(time.monotonic() - started, 3))

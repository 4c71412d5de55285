"""
Retry policy for transactions that fail on write conflicts or deadlocks.
"""

from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import dataclass, replace
from typing import Any, Awaitable, Callable, Optional, TypeVar

from quarry.exception import WriteConflict, error_codes

logger = logging.getLogger(__name__)

R = TypeVar("R")
Classifier = Callable[[BaseException], bool]


@dataclass(frozen=True)
class BackoffConfig:
    """Exponential backoff schedule

    Delay before retry `n` (1-indexed) is
    `starting_delay * time_multiple ** (n - 1)`, capped at `max_delay`.

    Example:
        config = BackoffConfig(num_of_attempts=4, starting_delay=0.05)
        # Retry 1: 0.05s
        # Retry 2: 0.1s
        # Retry 3: 0.2s
    """

    num_of_attempts: int = 10
    starting_delay: float = 0.1
    time_multiple: float = 2.0
    max_delay: float = float("inf")
    jitter: str = "none"  # "none" or "full"
    delay_first_attempt: bool = False

    def __post_init__(self):
        if self.jitter not in ("none", "full"):
            raise ValueError(f"Unknown jitter mode: {self.jitter}")

    def get_delay(self, attempt: int) -> float:
        """Calculate the delay before a retry

        Args:
            attempt (int): Number of attempts already made

        Returns:
            float: Seconds to wait
        """
        exponent = max(0, attempt - 1)
        delay = min(
            max(0.0, self.starting_delay) * self.time_multiple**exponent,
            self.max_delay,
        )
        if self.jitter == "full":
            return random.uniform(0, delay)
        return delay


def is_write_conflict(exc: BaseException) -> bool:
    """Default classifier: only write conflicts and deadlocks are
    retried"""
    return WriteConflict.code in error_codes(exc)


async def run_with_retry(
    operation: Callable[[], Awaitable[R]],
    classifier: Classifier = is_write_conflict,
    config: Optional[BackoffConfig] = None,
    **overrides: Any,
) -> R:
    """Run an operation, retrying the failures a classifier deems
    eligible

    Every attempt calls `operation` anew. Failures that are not eligible
    and the failure of the last attempt propagate unchanged.

    Args:
        operation (Callable[[], Awaitable[R]]): Creates the awaitable for
            one attempt
        classifier (Classifier, optional): Whether a failure may be
            retried. Defaults to `is_write_conflict`.
        config (BackoffConfig, optional): The backoff schedule. Defaults
            to `BackoffConfig()`.
        **overrides: Replace individual fields of the schedule

    Returns:
        R: The result of the first successful attempt
    """
    config = config or BackoffConfig()
    if overrides:
        config = replace(config, **overrides)
    attempts = max(1, config.num_of_attempts)
    offset = 1 if config.delay_first_attempt else 0

    if config.delay_first_attempt:
        await asyncio.sleep(config.get_delay(1))

    attempt = 0
    while True:
        attempt += 1
        try:
            return await operation()
        except Exception as e:
            if attempt >= attempts or not classifier(e):
                raise
            delay = config.get_delay(attempt + offset)
            logger.warning(
                "Attempt %d of %d failed with %s, retrying in %.3fs",
                attempt,
                attempts,
                e.__class__.__name__,
                delay,
            )
            await asyncio.sleep(delay)

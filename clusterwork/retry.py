"""Bounded exponential backoff for backend calls."""

import logging
import time
from collections.abc import Callable
from typing import Any, TypeVar

from .settings import get_settings

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RetryManager:
    """Manages retry logic with exponential backoff."""

    def __init__(
        self,
        max_attempts: int,
        base_delay: float,
        max_delay: float,
        sleep: Callable[[float], Any] = time.sleep,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.max_delay = max_delay
        self._sleep = sleep

    @classmethod
    def from_settings(cls) -> "RetryManager":
        settings = get_settings()
        return cls(
            max_attempts=settings.retry_max_attempts,
            base_delay=settings.retry_base_delay,
            max_delay=settings.retry_max_delay,
        )

    def calculate_delay(self, attempt: int) -> float:
        """Calculate delay for retry attempt using exponential backoff."""
        delay = self.base_delay * (2 ** attempt)
        return min(delay, self.max_delay)

    def call(
        self,
        fn: Callable[[], T],
        is_retryable: Callable[[Exception], bool],
        description: str = "operation",
    ) -> T:
        """Call fn, retrying retryable failures until attempts run out.

        The last exception is re-raised once the budget is exhausted or a
        non-retryable error occurs.
        """
        for attempt in range(self.max_attempts):
            try:
                return fn()
            except Exception as e:
                if not is_retryable(e) or attempt + 1 >= self.max_attempts:
                    raise
                delay = self.calculate_delay(attempt)
                logger.warning(
                    f"{description} failed (attempt {attempt + 1}/{self.max_attempts}), "
                    f"retrying in {delay:.1f}s: {e}"
                )
                self._sleep(delay)
        raise AssertionError("unreachable")

"""Backoff for store operations that fail on contention.

SQLite answers a writer that cannot get the lock with "database is locked";
run_in_transaction turns that into PersistenceError and hands the whole unit
of work back here to be replayed.
"""

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TypeVar

from .exceptions import TransientError

T = TypeVar("T")
logger = logging.getLogger(__name__)


@dataclass
class RetryConfig:
    max_attempts: int = 3
    base_delay: float = 0.05
    multiplier: float = 2.0
    max_delay: float = 2.0
    retryable_exceptions: tuple[type[Exception], ...] = field(
        default_factory=lambda: (TransientError,)
    )

    def delay_for(self, attempt: int) -> float:
        """Seconds to wait after the given zero-based failed attempt."""
        return min(self.base_delay * self.multiplier**attempt, self.max_delay)


def with_retry_sync(
    operation: Callable[[], T],
    config: RetryConfig | None = None,
    operation_name: str = "operation",
) -> T:
    """Call operation until it succeeds or the attempts run out.

    Only retryable exceptions are replayed; anything else propagates on the
    first failure. The operation must be safe to repeat.
    """
    config = config or RetryConfig()
    attempt = 0
    while True:
        try:
            return operation()
        except config.retryable_exceptions as e:
            if attempt + 1 >= config.max_attempts:
                logger.error(f"{operation_name} gave up after {config.max_attempts} attempts: {e}")
                raise
            delay = config.delay_for(attempt)
            attempt += 1
            logger.warning(
                f"{operation_name} hit {type(e).__name__}, "
                f"attempt {attempt}/{config.max_attempts}, retrying in {delay:.2f}s"
            )
            time.sleep(delay)

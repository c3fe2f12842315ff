from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Tuple, Type, TypeVar

from orderflow.app.errors import TransientInfraError

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """
    Bounded retry with exponential backoff.

    Only exceptions listed in ``retry_on`` are retried; everything else
    (validation, not found, ordinary constraint violations) propagates on the
    first attempt.
    """

    max_attempts: int = 3
    base_delay: float = 1.0
    factor: float = 2.0
    retry_on: Tuple[Type[BaseException], ...] = (TransientInfraError,)
    sleep: Callable[[float], None] = field(default=time.sleep, repr=False, compare=False)

    @classmethod
    def from_config(cls, config) -> "RetryPolicy":
        return cls(
            max_attempts=max(1, int(config.DB_RETRY_ATTEMPTS)),
            base_delay=max(0.0, float(config.DB_RETRY_BACKOFF_SECONDS)),
        )

    def including(self, *extra: Type[BaseException]) -> "RetryPolicy":
        return RetryPolicy(
            max_attempts=self.max_attempts,
            base_delay=self.base_delay,
            factor=self.factor,
            retry_on=self.retry_on + tuple(extra),
            sleep=self.sleep,
        )

    def delay_for(self, attempt: int) -> float:
        # attempt is 1-based: 1s, 2s, 4s ...
        return self.base_delay * (self.factor ** (attempt - 1))

    def is_retryable(self, exc: BaseException) -> bool:
        return isinstance(exc, self.retry_on)

    def call(self, fn: Callable[[], T], *, operation: str = "db") -> T:
        attempt = 1
        while True:
            try:
                return fn()
            except Exception as exc:
                if not self.is_retryable(exc) or attempt >= self.max_attempts:
                    raise
                delay = self.delay_for(attempt)
                logger.warning(
                    "retrying after transient failure",
                    extra={
                        "operation": operation,
                        "attempt": attempt,
                        "delay_seconds": delay,
                        "error": type(exc).__name__,
                    },
                )
                self.sleep(delay)
                attempt += 1

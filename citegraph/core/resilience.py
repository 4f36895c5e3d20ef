"""
resilience utilities - retry with backoff, logging setup.
keeps the external lookup robust against transient failures.
"""

import time
import random
import logging
import functools
from typing import TypeVar, Callable, Optional, Tuple
from dataclasses import dataclass


# setup logging
logger = logging.getLogger("citegraph")


T = TypeVar("T")


@dataclass
class RetryConfig:
    """configuration for retry behavior."""
    max_attempts: int = 3
    base_delay: float = 1.0
    max_delay: float = 30.0
    exponential_base: float = 2.0
    jitter: bool = True
    # exceptions that should trigger retry
    # (http providers add httpx.TransportError)
    retryable_exceptions: Tuple[type, ...] = (
        ConnectionError,
        TimeoutError,
        OSError,
    )

    def delay_for(self, attempt: int) -> float:
        """backoff delay after a failed attempt (1-based)."""
        delay = min(
            self.base_delay * (self.exponential_base ** (attempt - 1)),
            self.max_delay
        )
        if self.jitter:
            delay = delay * (0.5 + random.random())
        return delay


def retry_with_backoff(
    config: Optional[RetryConfig] = None,
    on_retry: Optional[Callable[[Exception, int], None]] = None,
    sleep: Callable[[float], None] = time.sleep
):
    """
    decorator for retry with exponential backoff.

    usage:
        @retry_with_backoff(RetryConfig(max_attempts=3))
        def flaky_function():
            ...
    """
    if config is None:
        config = RetryConfig()

    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @functools.wraps(func)
        def wrapper(*args, **kwargs) -> T:
            for attempt in range(1, config.max_attempts + 1):
                try:
                    return func(*args, **kwargs)

                except config.retryable_exceptions as e:
                    if attempt == config.max_attempts:
                        logger.warning(
                            f"[retry] {func.__name__} failed after {attempt} attempts: {e}"
                        )
                        raise

                    delay = config.delay_for(attempt)
                    logger.info(
                        f"[retry] {func.__name__} attempt {attempt} failed, "
                        f"retrying in {delay:.1f}s: {e}"
                    )

                    if on_retry:
                        on_retry(e, attempt)

                    sleep(delay)

        return wrapper
    return decorator


def setup_logging(
    level: int = logging.INFO,
    log_file: Optional[str] = None
):
    """
    setup citegraph logging.
    call once at startup.
    """
    formatter = logging.Formatter(
        "%(asctime)s [%(name)s] %(levelname)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    )

    # avoid stacking handlers when called twice
    for handler in list(logger.handlers):
        logger.removeHandler(handler)

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    console_handler.setLevel(level)

    logger.setLevel(level)
    logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(formatter)
        file_handler.setLevel(level)
        logger.addHandler(file_handler)

    return logger

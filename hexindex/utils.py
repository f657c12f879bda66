"""
Small shared helpers for hexindex.
"""

import functools
import logging
import time
from typing import Callable, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


def retry_on_failure(
    max_attempts: int = 3,
    delay: float = 0.5,
    exceptions: tuple[type[BaseException], ...] = (Exception,),
) -> Callable[[Callable[..., T]], Callable[..., T]]:
    """
    Retry a function when it raises one of the given exceptions.

    The delay doubles after each failed attempt. The last exception is
    re-raised once all attempts are used up.

    Args:
        max_attempts: Total number of attempts (>= 1)
        delay: Seconds to wait before the first retry
        exceptions: Exception types that trigger a retry
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be >= 1")

    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @functools.wraps(func)
        def wrapper(*args, **kwargs) -> T:
            wait = delay
            for attempt in range(1, max_attempts + 1):
                try:
                    return func(*args, **kwargs)
                except exceptions as e:
                    if attempt == max_attempts:
                        raise
                    logger.warning(
                        f"{func.__name__} failed (attempt {attempt}/{max_attempts}): {e}. "
                        f"Retrying in {wait:.1f}s"
                    )
                    time.sleep(wait)
                    wait *= 2
            raise AssertionError("unreachable")

        return wrapper

    return decorator


def sql_literal(value: str) -> str:
    """Quote a string for use inside a LanceDB filter expression."""
    return "'" + value.replace("'", "''") + "'"


def batched(items: list[T], size: int) -> list[list[T]]:
    """Split a list into consecutive slices of at most `size` items."""
    if size < 1:
        raise ValueError("size must be >= 1")
    return [items[i:i + size] for i in range(0, len(items), size)]

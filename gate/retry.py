"""
Retry utilities for state lock contention
"""

import logging
import time
from typing import Callable, Tuple, Type, TypeVar

from .errors import StateLocked

logger = logging.getLogger(__name__)

T = TypeVar("T")


def retry_with_backoff(func: Callable[[], T], max_retries: int = 3, initial_delay: float = 1.0,
                       retry_on: Tuple[Type[BaseException], ...] = (StateLocked,),
                       sleep: Callable[[float], None] = time.sleep) -> T:
    """
    Retry a function with exponential backoff

    Only exceptions listed in retry_on are retried; anything else propagates
    immediately.

    Args:
        func: Function to retry
        max_retries: Maximum number of retries
        initial_delay: Initial delay in seconds
        retry_on: Exception types that trigger a retry
        sleep: Sleep function

    Returns:
        Result of the function call

    Raises:
        Exception: Last exception if all retries fail
    """
    delay = initial_delay
    attempt = 0

    while True:
        try:
            return func()
        except retry_on as e:
            if attempt >= max_retries:
                logger.error("All %d attempts failed: %s", attempt + 1, e)
                raise
            attempt += 1
            logger.warning("Attempt %d failed, retrying in %ss: %s", attempt, delay, e)
            sleep(delay)
            delay *= 2  # Exponential backoff

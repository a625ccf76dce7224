"""
Timing helpers for slow-operation logging.
"""

import time
from contextlib import contextmanager
from typing import Iterator

from loguru import logger

SLOW_OPERATION_SECONDS = 1.0


@contextmanager
def timed(operation: str, threshold: float = SLOW_OPERATION_SECONDS) -> Iterator[None]:
    """Log how long the wrapped block took; blocks slower than ``threshold`` log a warning."""
    started = time.perf_counter()
    try:
        yield
    finally:
        elapsed = time.perf_counter() - started
        if elapsed > threshold:
            logger.warning(f"Slow operation: {operation} took {elapsed * 1000:.0f}ms")
        else:
            logger.trace(f"{operation} took {elapsed * 1000:.1f}ms")

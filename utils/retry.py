# utils/retry.py
"""
Retry logic for storage and metadata calls with exponential backoff
"""
import asyncio
import functools
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, FrozenSet, Iterable, List, Optional, TypeVar

from loguru import logger

from exceptions import MagazineError, NOT_FOUND_CODES
from models.operations import BatchFailure, BatchOperationResult

T = TypeVar("T")
R = TypeVar("R")

Sleep = Callable[[float], Awaitable[Any]]


@dataclass(frozen=True)
class RetryPolicy:
    """
    How often and how patiently to retry a failing call.

    Delay before attempt ``n + 1`` is
    ``min(initial_delay * backoff_multiplier ** (n - 1), max_delay)``.

    Retryability: with ``retryable_codes`` set only errors whose ``code`` is
    in the allow-list are retried. Without it, pipeline errors use their own
    ``retryable`` flag and any other exception follows ``retry_unknown_errors``.
    Not-found codes are never retried.
    """

    max_attempts: int = 3
    initial_delay: float = 1.0
    max_delay: float = 10.0
    backoff_multiplier: float = 2.0
    retryable_codes: Optional[FrozenSet[str]] = None
    retry_unknown_errors: bool = False

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.initial_delay < 0 or self.max_delay < 0:
            raise ValueError("Retry delays cannot be negative")
        if self.backoff_multiplier < 1:
            raise ValueError("backoff_multiplier must be at least 1")

    def delay_for(self, attempt: int) -> float:
        """Delay to wait after failed attempt number ``attempt`` (1-based)."""
        return min(self.initial_delay * self.backoff_multiplier ** (attempt - 1), self.max_delay)

    def is_retryable(self, error: BaseException) -> bool:
        code = getattr(error, "code", None)
        if code in NOT_FOUND_CODES:
            return False
        if self.retryable_codes is not None:
            return code in self.retryable_codes
        if isinstance(error, MagazineError):
            return error.retryable
        return self.retry_unknown_errors


DEFAULT_POLICY = RetryPolicy()


def _describe(operation: Callable) -> str:
    return getattr(operation, "__qualname__", None) or getattr(operation, "__name__", repr(operation))


async def with_retry(
    operation: Callable[[], Awaitable[R]],
    policy: Optional[RetryPolicy] = None,
    *,
    sleep: Sleep = asyncio.sleep,
    attempts_used: int = 0,
    name: Optional[str] = None,
) -> R:
    """
    Call ``operation`` until it succeeds, a non-retryable error occurs or the
    policy runs out of attempts.

    Args:
        operation: Zero-argument callable returning a fresh awaitable per call.
        policy: Retry policy, defaults to ``DEFAULT_POLICY``.
        sleep: Awaitable sleep used between attempts.
        attempts_used: Attempts already spent elsewhere; the first call made
            here is attempt ``attempts_used + 1`` and waits its backoff first.
        name: Label used in log messages.

    Returns:
        The operation's result.

    Raises:
        Exception: The last error, unchanged.
    """
    policy = policy or DEFAULT_POLICY
    name = name or _describe(operation)
    attempt = attempts_used

    while True:
        if attempt > 0:
            await sleep(policy.delay_for(attempt))
        attempt += 1
        try:
            result = await operation()
        except Exception as e:
            if not policy.is_retryable(e):
                logger.debug(f"{name} failed with a non-retryable error: {type(e).__name__}: {e}")
                raise
            if attempt >= policy.max_attempts:
                logger.error(
                    f"❌ {name} failed after {attempt} attempts. "
                    f"Last error: {type(e).__name__}: {e}"
                )
                raise
            logger.warning(
                f"⚠️ {name} attempt {attempt}/{policy.max_attempts} failed: "
                f"{type(e).__name__}: {e}. Retrying in {policy.delay_for(attempt):.1f}s..."
            )
            continue

        if attempt > 1:
            logger.info(f"✅ {name} succeeded on attempt {attempt}")
        return result


async def with_partial_retry(
    items: Iterable[T],
    operation: Callable[[T], Awaitable[Any]],
    policy: Optional[RetryPolicy] = None,
    *,
    sleep: Sleep = asyncio.sleep,
) -> BatchOperationResult[T]:
    """
    Run ``operation`` for every item concurrently, retrying only the items
    that fail.

    The first call per item counts as attempt 1; failing retryable items are
    retried individually through :func:`with_retry`. Each item ends up exactly
    once in ``successes`` (in input order) or in ``failures`` with its final
    error.
    """
    policy = policy or DEFAULT_POLICY
    items = list(items)
    if not items:
        return BatchOperationResult()

    outcomes: List[Optional[BaseException]] = list(
        await asyncio.gather(*(_settle(operation(item)) for item in items))
    )

    retry_indexes = [
        index for index, error in enumerate(outcomes)
        if error is not None and policy.max_attempts > 1 and policy.is_retryable(error)
    ]
    if retry_indexes:
        logger.info(f"Retrying {len(retry_indexes)} of {len(items)} failed items")

        def retry_item(item: T) -> Awaitable[Any]:
            return with_retry(
                lambda: operation(item),
                policy,
                sleep=sleep,
                attempts_used=1,
                name=f"{_describe(operation)}({item!r})",
            )

        retried = await asyncio.gather(*(_settle(retry_item(items[index])) for index in retry_indexes))
        for index, error in zip(retry_indexes, retried):
            outcomes[index] = error

    successes = tuple(item for item, error in zip(items, outcomes) if error is None)
    failures = tuple(
        BatchFailure(item=item, error=error)
        for item, error in zip(items, outcomes)
        if error is not None
    )
    return BatchOperationResult(successes=successes, failures=failures)


async def _settle(awaitable: Awaitable[Any]) -> Optional[Exception]:
    """Await and return the raised exception instead of propagating it."""
    try:
        await awaitable
    except Exception as e:
        return e
    return None


def async_retry(policy: Optional[RetryPolicy] = None):
    """
    Decorator for retrying async functions with exponential backoff

    Example:
        @async_retry(RetryPolicy(max_attempts=3))
        async def list_objects(self, prefix):
            ...
    """
    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        async def wrapper(*args, **kwargs) -> Any:
            return await with_retry(lambda: func(*args, **kwargs), policy, name=func.__qualname__)

        return wrapper
    return decorator

from __future__ import annotations

import functools
from typing import Any, Callable, Optional, Sequence, Type, Union

from recoverkit.core.outcome import Outcome

from ..safe import Safe
from .strategies import RetryPolicy

ExceptionTypes = Union[Type[BaseException], Sequence[Type[BaseException]]]


def retry(
    max_attempts: int = 3,
    exceptions: ExceptionTypes = (Exception,),
    policy: Optional[RetryPolicy] = None,
    timeout: Optional[float] = None,
    error_mapper: Optional[Callable[[BaseException], Any]] = None,
):
    """
    Retry decorator supporting async and sync callables.

    The decorated function becomes a coroutine function returning an
    Outcome instead of raising.

    - Retries on specified exceptions; others fail on the first attempt.
    - Exponential backoff with jitter unless a `policy` is given.
    """
    if isinstance(exceptions, type):
        exceptions = (exceptions,)
    executor = Safe(
        timeout=timeout,
        retry_policy=policy
        or RetryPolicy.exponential_backoff(
            max_attempts=max_attempts, initial_delay=0.2, max_delay=5.0
        ),
        retry_on=tuple(exceptions),
        error_mapper=error_mapper,
    )

    def decorator(func: Callable[..., Any]):
        @functools.wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> Outcome[Any, Any]:
            return await executor.call(
                lambda: func(*args, **kwargs), name=func.__name__
            )

        wrapper.safe = executor  # type: ignore[attr-defined]
        return wrapper

    return decorator

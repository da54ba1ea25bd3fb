from __future__ import annotations

import asyncio
import inspect
from typing import Any, Awaitable, Callable, Optional, TypeVar, Union

from recoverkit.core.outcome import Failure, Outcome, Success

from .errors import OperationTimeoutError

T = TypeVar("T")
E = TypeVar("E")

# Zero-argument operation producing an Outcome, directly or via an awaitable.
Operation = Callable[[], Union[Outcome[T, E], Awaitable[Outcome[T, E]]]]


async def run_operation(
    operation: Operation, *, timeout: Optional[float] = None
) -> Outcome[Any, Any]:
    """
    Invoke `operation` and return its Outcome.

    - Awaitable results are awaited, bounded by `timeout` when given.
    - Exceptions become `Failure(exc)`; hitting the deadline becomes
      `Failure(OperationTimeoutError)`. Cancellation propagates.
    - Returning anything other than an Outcome is a programming error.
    """
    deadline = None
    try:
        result = operation()
        if inspect.isawaitable(result):
            async with asyncio.timeout(timeout) as deadline:
                result = await result
    except TimeoutError as exc:
        if deadline is not None and deadline.expired():
            return Failure(OperationTimeoutError(timeout))
        return Failure(exc)
    except Exception as exc:  # noqa: BLE001 - converted into the error channel
        return Failure(exc)

    if not isinstance(result, (Success, Failure)):
        raise TypeError(
            f"Operation must return Success or Failure, got {type(result).__name__}"
        )
    return result

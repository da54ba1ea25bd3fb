from __future__ import annotations

import inspect
from typing import Any, Awaitable, Callable, Generic, List, TypeVar

from recoverkit.core.outcome import Failure, Outcome, Success
from recoverkit.utils.logger import get_logger

from ..execution import Operation, run_operation

T = TypeVar("T")
E = TypeVar("E")

logger = get_logger(__name__)


class FallbackChain(Generic[T, E]):
    """
    Ordered alternatives tried after the primary operation fails.

    Fallbacks run strictly in registration order and the first success wins.
    A fallback that raises, or returns something other than an Outcome, is
    skipped. When every fallback is exhausted the last attempted outcome is
    returned, not the primary's error. End the chain with `add_value_fallback`
    to guarantee a success.

        chain = (
            FallbackChain()
            .add_fallback(fetch_from_cache)
            .add_value_fallback(User.guest())
        )
        outcome = await chain.execute(fetch_user)
    """

    def __init__(self) -> None:
        self._fallbacks: List[Callable[[], Awaitable[Outcome[T, E]]]] = []

    def __len__(self) -> int:
        return len(self._fallbacks)

    def add_fallback(
        self, fallback: Callable[[], Awaitable[Outcome[T, E]]]
    ) -> "FallbackChain[T, E]":
        self._fallbacks.append(fallback)
        return self

    def add_sync_fallback(
        self, fallback: Callable[[], Outcome[T, E]]
    ) -> "FallbackChain[T, E]":
        async def _run() -> Outcome[T, E]:
            return fallback()

        return self.add_fallback(_run)

    def add_value_fallback(self, value: T) -> "FallbackChain[T, E]":
        async def _value() -> Outcome[T, E]:
            return Success(value)

        return self.add_fallback(_value)

    async def execute(self, primary: Operation) -> Outcome[T, E]:
        outcome: Outcome[Any, Any] = await run_operation(primary)
        if outcome.is_success:
            return outcome

        for index, fallback in enumerate(self._fallbacks):
            try:
                attempted = fallback()
                if inspect.isawaitable(attempted):
                    attempted = await attempted
                if not isinstance(attempted, (Success, Failure)):
                    raise TypeError(
                        f"Fallback must return Success or Failure, "
                        f"got {type(attempted).__name__}"
                    )
            except Exception as exc:  # noqa: BLE001 - a broken fallback must not end the chain
                logger.warning(
                    "fallback_failed",
                    fallback_index=index,
                    error_type=type(exc).__name__,
                    error=str(exc),
                )
                continue

            outcome = attempted
            if outcome.is_success:
                logger.info("fallback_succeeded", fallback_index=index)
                return outcome

        return outcome

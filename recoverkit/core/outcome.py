"""
Outcome type: either a success value or an error, never both.

Every resilience component returns an `Outcome` instead of raising. The two
variants are plain frozen dataclasses so they compare and print naturally:

    Success(42).map(lambda v: v + 1)          # Success(value=43)
    Failure("boom").value_or(0)               # 0
    outcome.match_case(on_success=str, on_error=repr)
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Generic, TypeVar, Union

T = TypeVar("T")
E = TypeVar("E")
U = TypeVar("U")
F = TypeVar("F")
R = TypeVar("R")


@dataclass(frozen=True)
class Success(Generic[T]):
    value: T

    @property
    def is_success(self) -> bool:
        return True

    @property
    def is_failure(self) -> bool:
        return False

    @property
    def error(self) -> None:
        return None

    def map(self, fn: Callable[[T], U]) -> "Success[U]":
        return Success(fn(self.value))

    def chain(self, fn: Callable[[T], "Outcome[U, Any]"]) -> "Outcome[U, Any]":
        return fn(self.value)

    def map_error(self, fn: Callable[[Any], F]) -> "Success[T]":
        return self

    def recover(self, fn: Callable[[Any], T]) -> "Success[T]":
        return self

    def match_case(
        self, on_success: Callable[[T], R], on_error: Callable[[Any], R]
    ) -> R:
        return on_success(self.value)

    def value_or(self, default: T) -> T:
        return self.value


@dataclass(frozen=True)
class Failure(Generic[E]):
    error: E

    @property
    def is_success(self) -> bool:
        return False

    @property
    def is_failure(self) -> bool:
        return True

    @property
    def value(self) -> None:
        return None

    def map(self, fn: Callable[[Any], U]) -> "Failure[E]":
        return self

    def chain(self, fn: Callable[[Any], "Outcome[U, E]"]) -> "Failure[E]":
        return self

    def map_error(self, fn: Callable[[E], F]) -> "Failure[F]":
        return Failure(fn(self.error))

    def recover(self, fn: Callable[[E], T]) -> "Success[T]":
        """Turn the error into a success value."""
        return Success(fn(self.error))

    def match_case(
        self, on_success: Callable[[Any], R], on_error: Callable[[E], R]
    ) -> R:
        return on_error(self.error)

    def value_or(self, default: T) -> T:
        return default


Outcome = Union[Success[T], Failure[E]]

from __future__ import annotations

import time
from collections import deque
from dataclasses import dataclass, field
from typing import Callable, Deque


@dataclass
class ErrorWindowPolicy:
    """
    Time-window failure policy.

    If failures recorded in the past `window_seconds` reach `max_failures`,
    the circuit should OPEN. A success clears the window, so the count is
    of consecutive failures that all fall inside the window.
    """

    window_seconds: float = 60.0
    max_failures: int = 5
    clock: Callable[[], float] = time.monotonic
    _failures: Deque[float] = field(default_factory=deque, init=False)

    def record_failure(self) -> None:
        now = self.clock()
        self._failures.append(now)
        self._prune(now)

    def should_open(self) -> bool:
        self._prune(self.clock())
        return len(self._failures) >= self.max_failures

    def reset(self) -> None:
        self._failures.clear()

    def __len__(self) -> int:
        return len(self._failures)

    def _prune(self, now: float) -> None:
        cutoff = now - self.window_seconds
        while self._failures and self._failures[0] < cutoff:
            self._failures.popleft()

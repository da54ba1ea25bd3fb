from __future__ import annotations

import random
from typing import Optional

JITTER_LOW = 0.5
JITTER_SPAN = 1.0


def proportional_jitter(delay: float, rng: Optional[random.Random] = None) -> float:
    """
    Scale `delay` by a uniform random factor in [0.5, 1.5).

    Keeps the mean delay while spreading synchronized retries apart.
    """
    draw = (rng or random).random()
    return max(0.0, delay) * (JITTER_LOW + draw * JITTER_SPAN)

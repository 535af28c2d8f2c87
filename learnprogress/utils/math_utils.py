# File: utils/math_utils.py
"""Math and calculation utilities for learnprogress.

Pure Python math functions with no engine or manager imports.

Functions:
    - round_xp: Normalize an XP amount to a non-negative integer
    - clamp: Bound a value to a range
    - safe_ratio: Progress ratio clamped to 0..1
    - prune_history: Cap a list from its oldest end
"""

from __future__ import annotations

import logging
import math
from typing import Any

# Module-level logger
_LOGGER = logging.getLogger(__name__)


def round_xp(value: Any) -> int:
    """Round an XP amount to a whole, non-negative number.

    Non-numeric, NaN, infinite and negative inputs all collapse to 0 so a
    bad grant can never reduce a total.

    Examples:
        round_xp(12.6) → 13
        round_xp(-5) → 0
        round_xp(float("nan")) → 0
        round_xp("10") → 0
    """
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0
    if not math.isfinite(value):
        return 0
    return max(0, round(value))


def clamp(value: float, min_val: float, max_val: float) -> float:
    """Clamp a value between minimum and maximum bounds.

    Examples:
        clamp(150, 0, 100) → 100
        clamp(-10, 0, 100) → 0
    """
    return max(min_val, min(value, max_val))


def safe_ratio(current: float, target: float) -> float:
    """Return current/target clamped to [0, 1].

    A non-positive target means there is nothing left to earn, so the ratio
    is reported as complete (1.0).
    """
    if target <= 0:
        return 1.0
    return clamp(current / target, 0.0, 1.0)


def prune_history(history: list[Any], max_entries: int) -> list[Any]:
    """Trim a list to max_entries, keeping the most recent.

    Modifies the list in place and returns it for convenience.
    Newest entries are at the END of the list (append order).
    """
    if max_entries < 0:
        max_entries = 0
    if len(history) > max_entries:
        del history[: len(history) - max_entries]
    return history

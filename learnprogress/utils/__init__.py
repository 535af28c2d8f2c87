"""Pure Python utilities for learnprogress.

⚠️ UTILS PURITY: nothing in this package may import from engines or managers.

Submodules:
    - dt_utils: Local calendar tokens, week boundaries, parsing, durations
    - math_utils: XP rounding, clamping, ratios, history pruning

Usage:
    from . import dt_utils
    from .math_utils import round_xp
"""

from . import dt_utils, math_utils

__all__ = ["dt_utils", "math_utils"]

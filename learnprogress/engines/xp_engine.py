"""XP Engine - Pure logic for experience grants and the level curve.

This engine provides stateless, pure Python functions for:
- The cumulative level threshold table (precomputed up to the level cap)
- Resolving a total XP amount to level / progress-within-level
- Granting XP onto a draft state with a bounded grant ledger

ARCHITECTURE: All methods are static and operate on passed-in data.
`level` and `level_progress` on the XP state are always re-derived from
`total`; nothing else ever writes them.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Any
import uuid

from .. import const
from ..utils.dt_utils import dt_resolve_now, dt_to_iso
from ..utils.math_utils import prune_history, round_xp, safe_ratio

if TYPE_CHECKING:
    from ..type_defs import GamificationData, XPEntry, XPLevelProgress, XPUpdateResult


def _build_level_thresholds(
    cap: int = const.LEVEL_CAP,
    base: int = const.BASE_LEVEL_REQUIREMENT,
    growth: int = const.LEVEL_GROWTH,
) -> tuple[int, ...]:
    """Build cumulative thresholds indexed by level (index 0 unused).

    Level 1 starts at 0; reaching level N (N >= 2) requires
    base + (N - 2) * growth more XP than level N-1.
    """
    thresholds = [0, 0]
    for level in range(2, cap + 1):
        requirement = base + (level - 2) * growth
        thresholds.append(thresholds[level - 1] + requirement)
    return tuple(thresholds)


LEVEL_THRESHOLDS: tuple[int, ...] = _build_level_thresholds()


class XPEngine:
    """Pure logic engine for the XP ledger and level curve.

    Thresholds (cap 50, base 240, growth 80):
        level 1 → 0 XP, level 2 → 240 XP, level 3 → 560 XP, level 4 → 960 XP

    XP Sources:
        Uses const.XP_SOURCES ("session", "mission", "badge", "minigame",
        "bonus"). The source is recorded on each ledger entry.
    """

    @staticmethod
    def resolve_level(total: int) -> tuple[int, int, int]:
        """Resolve a total to (level, current_threshold, next_threshold).

        The level is the greatest level whose cumulative threshold is <= total,
        capped at const.LEVEL_CAP. At the cap next_threshold == current_threshold.
        """
        total = max(0, total)
        level = 1
        while level < const.LEVEL_CAP and total >= LEVEL_THRESHOLDS[level + 1]:
            level += 1
        current_threshold = LEVEL_THRESHOLDS[level]
        if level >= const.LEVEL_CAP:
            return level, current_threshold, current_threshold
        return level, current_threshold, LEVEL_THRESHOLDS[level + 1]

    @staticmethod
    def get_level_progress(total: int) -> XPLevelProgress:
        """Project a total onto the level curve.

        progress = xp_into_level / xp_for_next_level, reported as 1.0 at the
        level cap where xp_for_next_level is 0.
        """
        level, current_threshold, next_threshold = XPEngine.resolve_level(total)
        xp_into_level = max(0, total - current_threshold)
        xp_for_next_level = max(next_threshold - current_threshold, 0)
        return {
            "level": level,
            "total_xp": total,
            "xp_into_level": xp_into_level,
            "xp_for_next_level": xp_for_next_level,
            "progress": safe_ratio(xp_into_level, xp_for_next_level),
        }

    @staticmethod
    def apply_derived_fields(draft: GamificationData) -> None:
        """Re-derive level and level_progress from the stored total."""
        xp_state = draft[const.DATA_XP]
        info = XPEngine.get_level_progress(xp_state[const.DATA_XP_TOTAL])
        xp_state[const.DATA_XP_LEVEL] = info["level"]
        xp_state[const.DATA_XP_LEVEL_PROGRESS] = info["progress"]

    @staticmethod
    def create_entry(
        amount: int,
        source: str,
        metadata: dict[str, Any] | None = None,
        now: datetime | None = None,
    ) -> XPEntry:
        """Create an immutable XP ledger entry."""
        entry: XPEntry = {
            const.DATA_XP_ENTRY_ID: str(uuid.uuid4()),
            const.DATA_XP_ENTRY_AMOUNT: amount,
            const.DATA_XP_ENTRY_SOURCE: source,
            const.DATA_XP_ENTRY_CREATED_AT: dt_to_iso(dt_resolve_now(now)),
        }
        if metadata:
            entry[const.DATA_XP_ENTRY_METADATA] = dict(metadata)
        return entry

    @staticmethod
    def grant_xp(
        draft: GamificationData,
        amount: Any,
        source: str,
        metadata: dict[str, Any] | None = None,
        now: datetime | None = None,
    ) -> XPUpdateResult:
        """Add experience to the draft and return a consistent snapshot.

        Amounts are rounded to whole XP. Zero, negative and NaN amounts are a
        no-op that still returns the current snapshot, so the total is
        monotonically non-decreasing.

        Args:
            draft: Mutable state (modified in place)
            amount: Requested XP amount
            source: One of const.XP_SOURCES
            metadata: Optional context stored on the ledger entry
            now: Optional current time override for deterministic tests

        Returns:
            XPUpdateResult with the granted amount and level transition
        """
        xp_state = draft[const.DATA_XP]
        previous_total = xp_state[const.DATA_XP_TOTAL]
        previous_level = XPEngine.resolve_level(previous_total)[0]
        rounded_amount = round_xp(amount)

        if rounded_amount > 0:
            current_time = dt_resolve_now(now)
            xp_state[const.DATA_XP_TOTAL] = previous_total + rounded_amount
            xp_state[const.DATA_XP_LAST_EARNED_AT] = dt_to_iso(current_time)
            xp_state[const.DATA_XP_HISTORY].append(
                XPEngine.create_entry(rounded_amount, source, metadata, current_time)
            )
            prune_history(xp_state[const.DATA_XP_HISTORY], const.MAX_XP_HISTORY)

        XPEngine.apply_derived_fields(draft)
        info = XPEngine.get_level_progress(xp_state[const.DATA_XP_TOTAL])

        if info["level"] > previous_level:
            const.LOGGER.debug(
                "XP: level up %s -> %s (total=%s, source=%s)",
                previous_level,
                info["level"],
                info["total_xp"],
                source,
            )

        return {
            "amount": rounded_amount,
            "total": info["total_xp"],
            "previous_level": previous_level,
            "new_level": info["level"],
            "xp_into_level": info["xp_into_level"],
            "xp_for_next_level": info["xp_for_next_level"],
            "progress": info["progress"],
        }

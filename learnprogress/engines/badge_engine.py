"""Badge Engine - Pure logic for badge unlock evaluation.

This engine provides stateless functions for:
- Criterion evaluation through a handler registry keyed by criterion type
- Append-only unlocking against the badge ledger (idempotent)
- Read-only catalog and progress projections for display

PURITY: all data arrives via the BadgeContext snapshot. The ledger on the
draft is only ever appended to; a badge id appears in it at most once.

Criterion Types:
- total_sessions: lifetime completed sessions
- daily_streak: current daily streak
- level: current XP level
- missions_completed: lifetime completed missions
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime
from typing import TYPE_CHECKING

from .. import const
from ..utils.dt_utils import dt_resolve_now, dt_to_iso
from ..utils.math_utils import safe_ratio

if TYPE_CHECKING:
    from ..type_defs import (
        BadgeContext,
        BadgeDefinition,
        BadgeProgress,
        CriterionResult,
        GamificationData,
    )

# Handler function signature: (context, definition) -> CriterionResult
CriterionHandler = Callable[["BadgeContext", "BadgeDefinition"], "CriterionResult"]


# Evaluated in this order; newly unlocked badges are returned in this order.
BADGE_DEFINITIONS: tuple[BadgeDefinition, ...] = (
    {
        "id": "rookie",
        "name": "First Step",
        "description": "Complete your first session with the tutor.",
        "category": const.BADGE_CATEGORY_SKILL,
        "criterion_type": const.BADGE_CRITERION_TOTAL_SESSIONS,
        "threshold": 1,
    },
    {
        "id": "streak-7",
        "name": "Week Champion",
        "description": "Reach a daily streak of 7 days.",
        "category": const.BADGE_CATEGORY_CONSISTENCY,
        "criterion_type": const.BADGE_CRITERION_DAILY_STREAK,
        "threshold": 7,
    },
    {
        "id": "level-5",
        "name": "Seasoned Coach",
        "description": "Reach coach level 5.",
        "category": const.BADGE_CATEGORY_SKILL,
        "criterion_type": const.BADGE_CRITERION_LEVEL,
        "threshold": 5,
    },
    {
        "id": "mission-ace",
        "name": "Mission Specialist",
        "description": "Finish your first daily mission.",
        "category": const.BADGE_CATEGORY_SPECIAL,
        "criterion_type": const.BADGE_CRITERION_MISSIONS_COMPLETED,
        "threshold": 1,
    },
)


class BadgeEngine:
    """Pure logic engine for badges.

    All methods are static or class methods. The manager builds the
    BadgeContext; the engine decides and appends ledger entries.
    """

    # =========================================================================
    # CRITERION HANDLER REGISTRY
    # =========================================================================

    _CRITERION_HANDLERS: dict[str, CriterionHandler] = {}

    @classmethod
    def _register_handlers(cls) -> None:
        """Populate _CRITERION_HANDLERS once."""
        if cls._CRITERION_HANDLERS:
            return

        cls._CRITERION_HANDLERS = {
            const.BADGE_CRITERION_TOTAL_SESSIONS: cls._evaluate_total_sessions,
            const.BADGE_CRITERION_DAILY_STREAK: cls._evaluate_daily_streak,
            const.BADGE_CRITERION_LEVEL: cls._evaluate_level,
            const.BADGE_CRITERION_MISSIONS_COMPLETED: cls._evaluate_missions_completed,
        }

    # =========================================================================
    # MAIN EVALUATION METHODS
    # =========================================================================

    @classmethod
    def evaluate_badge(
        cls, context: BadgeContext, definition: BadgeDefinition
    ) -> CriterionResult:
        """Evaluate a single badge definition against a context.

        Unknown criterion types never unlock and are logged.
        """
        cls._register_handlers()

        criterion_type = definition.get("criterion_type", "")
        handler = cls._CRITERION_HANDLERS.get(criterion_type)
        if handler is None:
            const.LOGGER.warning(
                "Unknown badge criterion type: %s for badge %s",
                criterion_type,
                definition.get("id"),
            )
            return cls._make_criterion_result(
                criterion_type=criterion_type or "unknown",
                current_value=0,
                threshold=definition.get("threshold", 0),
                met=False,
                reason=f"Unknown criterion type: {criterion_type}",
            )
        return handler(context, definition)

    @classmethod
    def evaluate_badges(
        cls,
        draft: GamificationData,
        context: BadgeContext,
        now: datetime | None = None,
    ) -> list[BadgeProgress]:
        """Unlock every catalog badge whose criterion the context now meets.

        Badges already in the ledger are skipped, so calling this twice with
        the same context returns an empty list the second time.

        Args:
            draft: Mutable state (badge ledger appended to)
            context: Snapshot of level, totals, streak and missions
            now: Optional current time override for deterministic tests

        Returns:
            Newly unlocked ledger entries, in catalog order
        """
        unlocked_ids = {badge.get(const.DATA_BADGE_ID) for badge in draft[const.DATA_BADGES]}
        unlocked_at = dt_to_iso(dt_resolve_now(now))
        newly_unlocked: list[BadgeProgress] = []

        for definition in BADGE_DEFINITIONS:
            if definition["id"] in unlocked_ids:
                continue
            result = cls.evaluate_badge(context, definition)
            if not result["met"]:
                continue

            badge = cls._ledger_entry(definition, unlocked_at)
            draft[const.DATA_BADGES].append(badge)
            unlocked_ids.add(definition["id"])
            newly_unlocked.append(dict(badge))  # type: ignore[arg-type]
            const.LOGGER.debug("Badges: unlocked %s (%s)", definition["id"], result["reason"])

        return newly_unlocked

    @staticmethod
    def get_catalog(state: GamificationData) -> list[BadgeProgress]:
        """Merge the static catalog with ledger unlock timestamps.

        Read-only: locked badges are returned without unlocked_at.
        """
        ledger = {badge.get(const.DATA_BADGE_ID): badge for badge in state[const.DATA_BADGES]}
        catalog: list[BadgeProgress] = []
        for definition in BADGE_DEFINITIONS:
            unlocked = ledger.get(definition["id"])
            if unlocked is not None:
                catalog.append(dict(unlocked))  # type: ignore[arg-type]
            else:
                catalog.append(BadgeEngine._ledger_entry(definition, None))
        return catalog

    @classmethod
    def evaluate_progress(
        cls, context: BadgeContext, state: GamificationData | None = None
    ) -> list[BadgeProgress]:
        """Project per-badge progress (0..1) toward each threshold.

        Nothing is mutated. Badges already in the ledger of state report
        progress 1.0 regardless of the context.
        """
        ledger = {
            badge.get(const.DATA_BADGE_ID): badge
            for badge in (state[const.DATA_BADGES] if state else [])
        }
        projections: list[BadgeProgress] = []
        for definition in BADGE_DEFINITIONS:
            unlocked = ledger.get(definition["id"])
            entry = cls._ledger_entry(
                definition, unlocked.get(const.DATA_BADGE_UNLOCKED_AT) if unlocked else None
            )
            result = cls.evaluate_badge(context, definition)
            entry[const.DATA_BADGE_PROGRESS] = 1.0 if unlocked else result["progress"]
            entry[const.DATA_BADGE_TARGET] = result["threshold"]
            projections.append(entry)
        return projections

    # =========================================================================
    # CRITERION HANDLERS
    # =========================================================================

    @staticmethod
    def _evaluate_total_sessions(
        context: BadgeContext, definition: BadgeDefinition
    ) -> CriterionResult:
        return BadgeEngine._make_criterion_result(
            criterion_type=const.BADGE_CRITERION_TOTAL_SESSIONS,
            current_value=int(context.get(const.FIELD_TOTAL_SESSIONS, 0)),
            threshold=definition["threshold"],
            label="Sessions",
        )

    @staticmethod
    def _evaluate_daily_streak(
        context: BadgeContext, definition: BadgeDefinition
    ) -> CriterionResult:
        return BadgeEngine._make_criterion_result(
            criterion_type=const.BADGE_CRITERION_DAILY_STREAK,
            current_value=int(context.get(const.FIELD_DAILY_STREAK, 0)),
            threshold=definition["threshold"],
            label="Daily streak",
        )

    @staticmethod
    def _evaluate_level(
        context: BadgeContext, definition: BadgeDefinition
    ) -> CriterionResult:
        return BadgeEngine._make_criterion_result(
            criterion_type=const.BADGE_CRITERION_LEVEL,
            current_value=int(context.get(const.FIELD_LEVEL, 0)),
            threshold=definition["threshold"],
            label="Level",
        )

    @staticmethod
    def _evaluate_missions_completed(
        context: BadgeContext, definition: BadgeDefinition
    ) -> CriterionResult:
        return BadgeEngine._make_criterion_result(
            criterion_type=const.BADGE_CRITERION_MISSIONS_COMPLETED,
            current_value=int(context.get(const.FIELD_MISSIONS_COMPLETED, 0)),
            threshold=definition["threshold"],
            label="Missions",
        )

    # =========================================================================
    # HELPER METHODS
    # =========================================================================

    @staticmethod
    def _make_criterion_result(
        criterion_type: str,
        current_value: int,
        threshold: int,
        label: str = "",
        met: bool | None = None,
        reason: str | None = None,
    ) -> CriterionResult:
        """Create a standardized CriterionResult.

        met defaults to current_value >= threshold.
        """
        return {
            "criterion_type": criterion_type,
            "met": current_value >= threshold if met is None else met,
            "progress": safe_ratio(current_value, threshold),
            "threshold": threshold,
            "current_value": current_value,
            "reason": reason if reason is not None else f"{label}: {current_value}/{threshold}",
        }

    @staticmethod
    def _ledger_entry(
        definition: BadgeDefinition, unlocked_at: str | None
    ) -> BadgeProgress:
        entry: BadgeProgress = {
            const.DATA_BADGE_ID: definition["id"],
            const.DATA_BADGE_NAME: definition["name"],
            const.DATA_BADGE_DESCRIPTION: definition["description"],
            const.DATA_BADGE_CATEGORY: definition["category"],
            const.DATA_BADGE_HINT: definition.get("hint"),
            const.DATA_BADGE_IS_SECRET: definition.get("is_secret"),
        }
        if unlocked_at is not None:
            entry[const.DATA_BADGE_UNLOCKED_AT] = unlocked_at
        return entry

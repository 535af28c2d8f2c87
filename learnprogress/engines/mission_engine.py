"""Mission Engine - Pure logic for the rotating daily mission pool.

This engine provides stateless functions for:
- Instantiating missions from the static template catalog
- Expiring stale missions and topping the active pool back up
- Advancing session-metric objectives from a completed session

Template selection is randomized. The random source is always passed in so
callers (and tests) control reproducibility; pool size and status invariants
hold for any draw.
"""

from __future__ import annotations

import copy
from datetime import datetime, timedelta
import random
from typing import TYPE_CHECKING
import uuid

from .. import const
from ..utils.dt_utils import as_utc, dt_parse, dt_resolve_now, dt_to_iso

if TYPE_CHECKING:
    from ..type_defs import (
        GamificationData,
        MissionProgress,
        MissionTemplate,
        SessionEvent,
    )


MISSION_TEMPLATES: tuple[MissionTemplate, ...] = (
    {
        "id": "convo-streak",
        "title": "Conversation Starter",
        "description": "Hold several conversation sessions for extra practice.",
        "metric": const.MISSION_METRIC_SESSIONS,
        "target": 2,
        "activity": "conversation",
        "reward_xp": 45,
    },
    {
        "id": "listening-focus",
        "title": "Sharp Listener",
        "description": "Work on your listening skills.",
        "metric": const.MISSION_METRIC_SESSIONS,
        "target": 1,
        "activity": "listen-summarize",
        "reward_xp": 40,
    },
    {
        "id": "vocab-builder",
        "title": "Word Builder",
        "description": "Focus on vocabulary to grow your word bank.",
        "metric": const.MISSION_METRIC_SESSIONS,
        "target": 1,
        "activity": "vocabulary",
        "reward_xp": 35,
    },
    {
        "id": "creative-boost",
        "title": "Creative Boost",
        "description": "Try a creative workshop for some variety.",
        "metric": const.MISSION_METRIC_SESSIONS,
        "target": 1,
        "activity": "creative-improvisation",
        "reward_xp": 50,
    },
    {
        "id": "goal-driven",
        "title": "Goal Driven",
        "description": "Finish a session with your current learning goal.",
        "metric": const.MISSION_METRIC_SESSIONS,
        "target": 1,
        "reward_xp": 40,
    },
)


class MissionEngine:
    """Pure logic engine for missions.

    Mission lifecycle:
        active → completed  (all objectives reached target; objectives frozen)
        active → expired    (deadline passed while applying a session)
        active → dropped    (deadline passed when the pool is refreshed)
    """

    @staticmethod
    def create_mission_from_template(
        template: MissionTemplate,
        level: str,
        now: datetime | None = None,
        expiry_hours: int = const.DEFAULT_MISSION_EXPIRY_HOURS,
    ) -> MissionProgress:
        """Instantiate a fresh active mission from a catalog template."""
        assigned_at = dt_resolve_now(now)
        mission: MissionProgress = {
            const.DATA_MISSION_ID: str(uuid.uuid4()),
            const.DATA_MISSION_TEMPLATE_ID: template["id"],
            const.DATA_MISSION_TITLE: template["title"],
            const.DATA_MISSION_DESCRIPTION: template["description"],
            const.DATA_MISSION_LEVEL: level,
            const.DATA_MISSION_ACTIVITY: template.get("activity"),
            const.DATA_MISSION_GOAL: template.get("goal"),
            const.DATA_MISSION_STATUS: const.MISSION_STATUS_ACTIVE,
            const.DATA_MISSION_ASSIGNED_AT: dt_to_iso(assigned_at),
            const.DATA_MISSION_EXPIRES_AT: dt_to_iso(
                assigned_at + timedelta(hours=expiry_hours)
            ),
            const.DATA_MISSION_COMPLETED_AT: None,
            const.DATA_MISSION_OBJECTIVES: [
                {
                    const.DATA_OBJECTIVE_ID: f"{template['id']}-objective",
                    const.DATA_OBJECTIVE_DESCRIPTION: template["description"],
                    const.DATA_OBJECTIVE_METRIC: template["metric"],
                    const.DATA_OBJECTIVE_PROGRESS: 0,
                    const.DATA_OBJECTIVE_TARGET: template["target"],
                }
            ],
            const.DATA_MISSION_REWARD: {const.DATA_REWARD_XP: template["reward_xp"]},
        }
        return mission

    @staticmethod
    def is_expired(mission: MissionProgress, now: datetime) -> bool:
        """Return True if the mission has a deadline at or before now."""
        expires_at = dt_parse(mission.get(const.DATA_MISSION_EXPIRES_AT))
        return expires_at is not None and expires_at <= as_utc(now)

    @staticmethod
    def filter_expired(
        missions: list[MissionProgress], now: datetime
    ) -> list[MissionProgress]:
        """Drop missions past their deadline that were never completed."""
        return [
            mission
            for mission in missions
            if mission.get(const.DATA_MISSION_STATUS) == const.MISSION_STATUS_COMPLETED
            or not MissionEngine.is_expired(mission, now)
        ]

    @staticmethod
    def pick_templates(
        count: int,
        rng: random.Random,
        exclude_ids: set[str] | None = None,
    ) -> list[MissionTemplate]:
        """Draw up to count distinct templates at random.

        Templates already in the active pool are avoided while enough others
        remain; otherwise the whole catalog is drawn from.
        """
        candidates = [t for t in MISSION_TEMPLATES if t["id"] not in (exclude_ids or set())]
        if len(candidates) < count:
            candidates = list(MISSION_TEMPLATES)
        return rng.sample(candidates, min(count, len(candidates)))

    @staticmethod
    def ensure_daily_missions(
        draft: GamificationData,
        level: str,
        *,
        rng: random.Random | None = None,
        now: datetime | None = None,
        pool_size: int = const.DEFAULT_MISSION_POOL_SIZE,
        expiry_hours: int = const.DEFAULT_MISSION_EXPIRY_HOURS,
    ) -> list[MissionProgress]:
        """Expire stale missions and top the active pool up to pool_size.

        Args:
            draft: Mutable state (missions list replaced in place)
            level: CEFR level stamped on newly assigned missions
            rng: Random source for template selection
            now: Optional current time override for deterministic tests
            pool_size: Number of active missions to maintain
            expiry_hours: Lifetime of newly assigned missions

        Returns:
            The newly assigned missions (empty if the pool was already full)
        """
        current_time = dt_resolve_now(now)
        draft[const.DATA_MISSIONS] = MissionEngine.filter_expired(
            draft[const.DATA_MISSIONS], current_time
        )
        active = [
            mission
            for mission in draft[const.DATA_MISSIONS]
            if mission.get(const.DATA_MISSION_STATUS) == const.MISSION_STATUS_ACTIVE
        ]
        needed = pool_size - len(active)
        if needed <= 0:
            return []

        templates = MissionEngine.pick_templates(
            needed,
            rng or random.Random(),
            {m.get(const.DATA_MISSION_TEMPLATE_ID, "") for m in active},
        )
        assigned = [
            MissionEngine.create_mission_from_template(
                template, level, current_time, expiry_hours
            )
            for template in templates
        ]
        draft[const.DATA_MISSIONS].extend(assigned)

        const.LOGGER.debug(
            "Missions: assigned %s (%s active)",
            [m[const.DATA_MISSION_TEMPLATE_ID] for m in assigned],
            len(active) + len(assigned),
        )
        return assigned

    @staticmethod
    def matches_session(mission: MissionProgress, session: SessionEvent) -> bool:
        """Return True if the mission's activity/goal filters accept the session.

        A missing filter is a wildcard.
        """
        activity = mission.get(const.DATA_MISSION_ACTIVITY)
        goal = mission.get(const.DATA_MISSION_GOAL)
        return (not activity or activity == session.get(const.FIELD_ACTIVITY)) and (
            not goal or goal == session.get(const.FIELD_GOAL)
        )

    @staticmethod
    def apply_session(
        draft: GamificationData,
        session: SessionEvent,
        now: datetime | None = None,
    ) -> list[MissionProgress]:
        """Advance matching active missions by one session.

        Only objectives using the sessions metric move, each capped at its
        target. A mission whose deadline already passed flips to expired
        instead of being matched.

        Returns:
            Copies of the missions completed by this session
        """
        current_time = dt_resolve_now(now)
        completed: list[MissionProgress] = []

        for mission in draft[const.DATA_MISSIONS]:
            if mission.get(const.DATA_MISSION_STATUS) != const.MISSION_STATUS_ACTIVE:
                continue
            if MissionEngine.is_expired(mission, current_time):
                mission[const.DATA_MISSION_STATUS] = const.MISSION_STATUS_EXPIRED
                const.LOGGER.debug("Missions: %s expired", mission[const.DATA_MISSION_ID])
                continue
            if not MissionEngine.matches_session(mission, session):
                continue

            objectives = mission[const.DATA_MISSION_OBJECTIVES]
            for objective in objectives:
                if objective[const.DATA_OBJECTIVE_METRIC] == const.MISSION_METRIC_SESSIONS:
                    objective[const.DATA_OBJECTIVE_PROGRESS] = min(
                        objective[const.DATA_OBJECTIVE_TARGET],
                        objective[const.DATA_OBJECTIVE_PROGRESS] + 1,
                    )

            if all(
                objective[const.DATA_OBJECTIVE_PROGRESS]
                >= objective[const.DATA_OBJECTIVE_TARGET]
                for objective in objectives
            ):
                mission[const.DATA_MISSION_STATUS] = const.MISSION_STATUS_COMPLETED
                mission[const.DATA_MISSION_COMPLETED_AT] = dt_to_iso(current_time)
                completed.append(copy.deepcopy(mission))
                const.LOGGER.debug(
                    "Missions: %s completed (+%s XP)",
                    mission.get(const.DATA_MISSION_TEMPLATE_ID, mission[const.DATA_MISSION_ID]),
                    mission[const.DATA_MISSION_REWARD][const.DATA_REWARD_XP],
                )

        return completed

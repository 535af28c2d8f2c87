"""Streak Engine - Daily and weekly continuation streaks.

Each period (daily, weekly) is a small state machine driven by a session
timestamp reduced to a period token:

- daily: the local calendar date ("YYYY-MM-DD")
- weekly: the local ISO week start, Monday ("YYYY-MM-DD")

Transitions (comparing the session token with last_completed_date):

    no previous token        → current = max(current, 1)   "start"
    same token               → no-op (already counted this period)
    exactly one period later → current += 1                "increment"
    more than one later      → current = 1                 "reset"
    earlier (out of order)   → no-op, no mutation

`longest` is raised to `current` after every transition. Daily milestones
(const.STREAK_MILESTONES) are reported only at the moment the increment lands
exactly on a milestone value, never retroactively.

After a counted session both streak-warning reminders are rescheduled through
ReminderEngine: the daily deadline is the next local midnight, the weekly
deadline is the Monday after the session's week.
"""

from __future__ import annotations

import copy
from datetime import date, datetime, timedelta
from typing import TYPE_CHECKING

from .. import const
from ..utils.dt_utils import (
    as_local,
    days_between,
    dt_resolve_now,
    dt_to_iso,
    local_midnight,
    next_local_midnight,
    token_to_date,
    week_start,
    weeks_between,
)
from ..utils.math_utils import prune_history
from .reminder_engine import ReminderEngine

if TYPE_CHECKING:
    from collections.abc import Callable

    from ..type_defs import (
        GamificationData,
        StreakDeadline,
        StreakStats,
        StreakUpdateSummary,
    )

# Transition outcomes
OUTCOME_START = const.STREAK_REASON_START
OUTCOME_INCREMENT = const.STREAK_REASON_INCREMENT
OUTCOME_RESET = const.STREAK_REASON_RESET
OUTCOME_SAME_PERIOD = "same_period"
OUTCOME_OUT_OF_ORDER = "out_of_order"


class StreakEngine:
    """Pure logic engine for streak counters.

    All methods are static and mutate only the draft passed in.
    """

    @staticmethod
    def _advance(
        stats: StreakStats,
        period: str,
        session_token: date,
        difference: Callable[[date, date], int],
    ) -> str:
        """Apply one period transition to stats and return its outcome."""
        previous_current = stats[const.DATA_STREAK_CURRENT]
        last_token = token_to_date(stats.get(const.DATA_STREAK_LAST_COMPLETED_DATE))

        if last_token is None:
            outcome = OUTCOME_START
            stats[const.DATA_STREAK_CURRENT] = max(previous_current, 1)
        else:
            diff = difference(session_token, last_token)
            if diff < 0:
                return OUTCOME_OUT_OF_ORDER
            if diff == 0:
                return OUTCOME_SAME_PERIOD
            if diff == 1:
                outcome = OUTCOME_INCREMENT
                stats[const.DATA_STREAK_CURRENT] = previous_current + 1
            else:
                outcome = OUTCOME_RESET
                stats[const.DATA_STREAK_CURRENT] = 1

        current = stats[const.DATA_STREAK_CURRENT]
        delta = current - previous_current
        stats[const.DATA_STREAK_LONGEST] = max(stats[const.DATA_STREAK_LONGEST], current)
        stats[const.DATA_STREAK_LAST_COMPLETED_DATE] = session_token.isoformat()

        reasons = [outcome]
        if outcome == OUTCOME_START and delta > 0:
            reasons.append(OUTCOME_INCREMENT)
        if (
            period == const.STREAK_PERIOD_DAILY
            and outcome == OUTCOME_INCREMENT
            and current in const.STREAK_MILESTONES
        ):
            reasons.append(f"{const.STREAK_REASON_MILESTONE_PREFIX}{current}")

        stats[const.DATA_STREAK_HISTORY].append(
            {
                const.DATA_STREAK_LOG_DATE: session_token.isoformat(),
                const.DATA_STREAK_LOG_PERIOD: period,
                const.DATA_STREAK_LOG_DELTA: delta,
                const.DATA_STREAK_LOG_REASON: "|".join(reasons),
            }
        )
        prune_history(stats[const.DATA_STREAK_HISTORY], const.MAX_STREAK_HISTORY)

        const.LOGGER.debug(
            "Streak: %s %s (%s -> %s, longest=%s)",
            period,
            outcome,
            previous_current,
            current,
            stats[const.DATA_STREAK_LONGEST],
        )
        return outcome

    @staticmethod
    def update_daily(draft: GamificationData, session_dt: datetime) -> tuple[str, int | None]:
        """Advance the daily streak for a session.

        Returns:
            (outcome, milestone) where milestone is the milestone value reached
            by this update, or None.
        """
        daily = draft[const.DATA_STREAKS][const.DATA_STREAKS_DAILY]
        outcome = StreakEngine._advance(
            daily,
            const.STREAK_PERIOD_DAILY,
            as_local(session_dt).date(),
            days_between,
        )
        milestone = None
        if outcome == OUTCOME_INCREMENT and daily[const.DATA_STREAK_CURRENT] in (
            const.STREAK_MILESTONES
        ):
            milestone = daily[const.DATA_STREAK_CURRENT]
        return outcome, milestone

    @staticmethod
    def update_weekly(draft: GamificationData, session_dt: datetime) -> str:
        """Advance the weekly streak for a session. Returns the outcome."""
        weekly = draft[const.DATA_STREAKS][const.DATA_STREAKS_WEEKLY]
        return StreakEngine._advance(
            weekly,
            const.STREAK_PERIOD_WEEKLY,
            week_start(session_dt).date(),
            weeks_between,
        )

    @staticmethod
    def compute_deadlines(session_dt: datetime) -> tuple[datetime, datetime]:
        """Return (daily_deadline, weekly_deadline) for a session.

        daily: start of the next local calendar day after the session
        weekly: start of the week seven days after the session's week start
        """
        daily_deadline = next_local_midnight(session_dt)
        weekly_deadline = local_midnight(week_start(session_dt).date() + timedelta(days=7))
        return daily_deadline, weekly_deadline

    @staticmethod
    def apply_session(
        draft: GamificationData,
        session_dt: datetime | None = None,
        *,
        now: datetime | None = None,
        daily_lead_hours: int = const.DEFAULT_DAILY_REMINDER_LEAD_HOURS,
        weekly_lead_hours: int = const.DEFAULT_WEEKLY_REMINDER_LEAD_HOURS,
    ) -> StreakUpdateSummary:
        """Update both streaks for a session and reschedule streak reminders.

        A session older than the last counted day is ignored entirely: no
        counters change and reminders are left as they are. Repeating a
        session within the same period never double-counts.

        Args:
            draft: Mutable state (modified in place)
            session_dt: When the session completed (defaults to now)
            now: Optional current time override for deterministic tests
            daily_lead_hours: Warning lead time before the daily deadline
            weekly_lead_hours: Warning lead time before the weekly deadline

        Returns:
            StreakUpdateSummary with snapshots, milestones and deadlines
        """
        current_time = dt_resolve_now(now)
        session_time = session_dt or current_time

        daily_outcome, milestone = StreakEngine.update_daily(draft, session_time)
        if daily_outcome == OUTCOME_OUT_OF_ORDER:
            const.LOGGER.debug(
                "Streak: ignoring out-of-order session at %s", dt_to_iso(session_time)
            )
            return StreakEngine._summary(draft, [], [])

        StreakEngine.update_weekly(draft, session_time)

        daily_deadline, weekly_deadline = StreakEngine.compute_deadlines(session_time)
        ReminderEngine.schedule_streak_reminder(
            draft, const.STREAK_PERIOD_DAILY, daily_deadline, daily_lead_hours, current_time
        )
        ReminderEngine.schedule_streak_reminder(
            draft, const.STREAK_PERIOD_WEEKLY, weekly_deadline, weekly_lead_hours, current_time
        )
        draft[const.DATA_STREAKS][const.DATA_STREAKS_LAST_UPDATED] = dt_to_iso(current_time)

        milestones = []
        if milestone is not None:
            milestones.append(
                {
                    "period": const.STREAK_PERIOD_DAILY,
                    "value": milestone,
                    "reached_at": dt_to_iso(session_time),
                }
            )
        deadlines: list[StreakDeadline] = [
            {
                "period": const.STREAK_PERIOD_DAILY,
                "deadline": dt_to_iso(daily_deadline),
                "lead_hours": daily_lead_hours,
            },
            {
                "period": const.STREAK_PERIOD_WEEKLY,
                "deadline": dt_to_iso(weekly_deadline),
                "lead_hours": weekly_lead_hours,
            },
        ]
        return StreakEngine._summary(draft, milestones, deadlines)

    @staticmethod
    def _summary(
        draft: GamificationData,
        milestones: list,
        deadlines: list[StreakDeadline],
    ) -> StreakUpdateSummary:
        streaks = draft[const.DATA_STREAKS]
        return {
            "daily": copy.deepcopy(streaks[const.DATA_STREAKS_DAILY]),
            "weekly": copy.deepcopy(streaks[const.DATA_STREAKS_WEEKLY]),
            "milestones_unlocked": milestones,
            "deadlines": deadlines,
        }

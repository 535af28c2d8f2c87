"""Tests for StreakEngine - daily/weekly streak transitions and reminders."""

from __future__ import annotations

import copy
from zoneinfo import ZoneInfo

from learnprogress import const
from learnprogress.engines.reminder_engine import ReminderEngine
from learnprogress.engines.streak_engine import (
    OUTCOME_INCREMENT,
    OUTCOME_OUT_OF_ORDER,
    OUTCOME_RESET,
    OUTCOME_SAME_PERIOD,
    OUTCOME_START,
    StreakEngine,
)
from learnprogress.utils import dt_utils
from tests.helpers import day, make_state, utc


def _daily(state):
    return state[const.DATA_STREAKS][const.DATA_STREAKS_DAILY]


def _weekly(state):
    return state[const.DATA_STREAKS][const.DATA_STREAKS_WEEKLY]


# =============================================================================
# Test: Daily streak
# =============================================================================


class TestDailyStreak:
    """Tests for daily streak transitions."""

    def test_first_session_starts_streak(self) -> None:
        """The very first session starts the streak at 1."""
        state = make_state()
        outcome, milestone = StreakEngine.update_daily(state, day(0))

        assert outcome == OUTCOME_START
        assert milestone is None
        assert _daily(state)[const.DATA_STREAK_CURRENT] == 1
        assert _daily(state)[const.DATA_STREAK_LAST_COMPLETED_DATE] == "2024-01-01"
        history = _daily(state)[const.DATA_STREAK_HISTORY]
        assert history[-1][const.DATA_STREAK_LOG_REASON] == "start|increment"
        assert history[-1][const.DATA_STREAK_LOG_DELTA] == 1

    def test_seven_consecutive_days(self) -> None:
        """Seven days in a row reach the first milestone exactly once."""
        state = make_state()
        milestones = []
        for offset in range(7):
            summary = StreakEngine.apply_session(state, day(offset), now=day(offset))
            milestones.extend(summary["milestones_unlocked"])

        assert _daily(state)[const.DATA_STREAK_CURRENT] == 7
        assert _daily(state)[const.DATA_STREAK_LONGEST] == 7
        assert [m["value"] for m in milestones] == [7]
        assert milestones[0]["period"] == const.STREAK_PERIOD_DAILY
        assert _daily(state)[const.DATA_STREAK_HISTORY][-1][
            const.DATA_STREAK_LOG_REASON
        ] == "increment|milestone:7"

    def test_same_day_does_not_double_count(self) -> None:
        """A second session on the same day changes nothing."""
        state = make_state()
        StreakEngine.update_daily(state, day(0))
        before = copy.deepcopy(_daily(state))

        outcome, _ = StreakEngine.update_daily(state, day(0, hour=22))

        assert outcome == OUTCOME_SAME_PERIOD
        assert _daily(state) == before

    def test_gap_resets_but_keeps_longest(self) -> None:
        """Missing a day resets to 1 and the next day increments again."""
        state = make_state()
        for offset in range(3):
            StreakEngine.update_daily(state, day(offset))

        outcome, _ = StreakEngine.update_daily(state, day(5))
        assert outcome == OUTCOME_RESET
        assert _daily(state)[const.DATA_STREAK_CURRENT] == 1
        assert _daily(state)[const.DATA_STREAK_LONGEST] == 3
        assert _daily(state)[const.DATA_STREAK_LAST_COMPLETED_DATE] == "2024-01-06"
        assert _daily(state)[const.DATA_STREAK_HISTORY][-1][
            const.DATA_STREAK_LOG_REASON
        ] == const.STREAK_REASON_RESET

        outcome, _ = StreakEngine.update_daily(state, day(6))
        assert outcome == OUTCOME_INCREMENT
        assert _daily(state)[const.DATA_STREAK_CURRENT] == 2

    def test_local_day_boundary(self) -> None:
        """Days are counted in the configured local zone."""
        dt_utils.set_default_timezone(ZoneInfo("Europe/Amsterdam"))
        state = make_state()
        StreakEngine.update_daily(state, utc(2024, 3, 10, 12))

        # 23:30 UTC is already 11 March in Amsterdam
        outcome, _ = StreakEngine.update_daily(state, utc(2024, 3, 10, 23, 30))

        assert outcome == OUTCOME_INCREMENT
        assert _daily(state)[const.DATA_STREAK_LAST_COMPLETED_DATE] == "2024-03-11"


# =============================================================================
# Test: Weekly streak
# =============================================================================


class TestWeeklyStreak:
    """Tests for weekly streak transitions."""

    def test_same_week_counts_once(self) -> None:
        """Monday and Sunday of one ISO week are the same period."""
        state = make_state()
        assert StreakEngine.update_weekly(state, day(0)) == OUTCOME_START
        assert StreakEngine.update_weekly(state, day(6)) == OUTCOME_SAME_PERIOD
        assert _weekly(state)[const.DATA_STREAK_CURRENT] == 1
        assert _weekly(state)[const.DATA_STREAK_LAST_COMPLETED_DATE] == "2024-01-01"

    def test_next_week_increments(self) -> None:
        """Sunday to the following Monday is one week."""
        state = make_state()
        StreakEngine.update_weekly(state, day(6))
        assert StreakEngine.update_weekly(state, day(7)) == OUTCOME_INCREMENT
        assert _weekly(state)[const.DATA_STREAK_CURRENT] == 2

    def test_skipped_week_resets(self) -> None:
        """Skipping a whole week resets to 1."""
        state = make_state()
        StreakEngine.update_weekly(state, day(0))
        StreakEngine.update_weekly(state, day(7))
        assert StreakEngine.update_weekly(state, day(21)) == OUTCOME_RESET
        assert _weekly(state)[const.DATA_STREAK_CURRENT] == 1
        assert _weekly(state)[const.DATA_STREAK_LONGEST] == 2


# =============================================================================
# Test: apply_session
# =============================================================================


class TestApplySession:
    """Tests for the combined session update."""

    def test_out_of_order_session_is_ignored(self) -> None:
        """An older session leaves the whole state untouched."""
        state = make_state()
        StreakEngine.apply_session(state, day(3), now=day(3))
        before = copy.deepcopy(state)

        summary = StreakEngine.apply_session(state, day(1), now=day(3))

        assert state == before
        assert summary["deadlines"] == []
        assert summary["milestones_unlocked"] == []
        assert summary["daily"][const.DATA_STREAK_CURRENT] == 1

    def test_out_of_order_outcome(self) -> None:
        """update_daily reports out-of-order sessions."""
        state = make_state()
        StreakEngine.update_daily(state, day(3))
        assert StreakEngine.update_daily(state, day(1)) == (OUTCOME_OUT_OF_ORDER, None)

    def test_summary_is_a_snapshot(self) -> None:
        """Mutating the summary does not touch the draft."""
        state = make_state()
        summary = StreakEngine.apply_session(state, day(0), now=day(0))
        summary["daily"][const.DATA_STREAK_CURRENT] = 99
        assert _daily(state)[const.DATA_STREAK_CURRENT] == 1

    def test_deadlines_and_reminders(self) -> None:
        """Daily warning 6h before midnight, weekly 24h before next Monday."""
        state = make_state()
        summary = StreakEngine.apply_session(state, day(0), now=day(0))

        assert summary["deadlines"] == [
            {"period": "daily", "deadline": "2024-01-02T00:00:00+00:00", "lead_hours": 6},
            {"period": "weekly", "deadline": "2024-01-08T00:00:00+00:00", "lead_hours": 24},
        ]
        scheduled = {
            r[const.DATA_REMINDER_PAYLOAD][const.DATA_REMINDER_PAYLOAD_PERIOD]: r[
                const.DATA_REMINDER_SCHEDULED_FOR
            ]
            for r in ReminderEngine.pending_reminders(state)
        }
        assert scheduled == {
            "daily": "2024-01-01T18:00:00+00:00",
            "weekly": "2024-01-07T00:00:00+00:00",
        }
        assert state[const.DATA_STREAKS][const.DATA_STREAKS_LAST_UPDATED] == (
            day(0).isoformat()
        )

    def test_reminders_are_replaced_per_period(self) -> None:
        """Each session keeps exactly one pending warning per period."""
        state = make_state()
        for offset in range(3):
            StreakEngine.apply_session(state, day(offset), now=day(offset))

        pending = ReminderEngine.pending_reminders(state)
        periods = sorted(
            r[const.DATA_REMINDER_PAYLOAD][const.DATA_REMINDER_PAYLOAD_PERIOD]
            for r in pending
        )
        assert periods == ["daily", "weekly"]
        daily = next(
            r
            for r in pending
            if r[const.DATA_REMINDER_PAYLOAD][const.DATA_REMINDER_PAYLOAD_PERIOD]
            == "daily"
        )
        assert daily[const.DATA_REMINDER_SCHEDULED_FOR] == "2024-01-03T18:00:00+00:00"

    def test_late_session_clamps_reminder(self) -> None:
        """A warning time already past is pulled forward to now + 5 minutes."""
        state = make_state()
        session = day(0, hour=20)
        StreakEngine.apply_session(state, session, now=session)

        daily = next(
            r
            for r in ReminderEngine.pending_reminders(state)
            if r[const.DATA_REMINDER_PAYLOAD][const.DATA_REMINDER_PAYLOAD_PERIOD]
            == "daily"
        )
        assert daily[const.DATA_REMINDER_SCHEDULED_FOR] == "2024-01-01T20:05:00+00:00"

    def test_custom_lead_hours(self) -> None:
        """Lead hours are carried into the reminder payload."""
        state = make_state()
        StreakEngine.apply_session(
            state, day(0), now=day(0), daily_lead_hours=2, weekly_lead_hours=48
        )
        by_period = {
            r[const.DATA_REMINDER_PAYLOAD][const.DATA_REMINDER_PAYLOAD_PERIOD]: r
            for r in ReminderEngine.pending_reminders(state)
        }
        assert by_period["daily"][const.DATA_REMINDER_SCHEDULED_FOR] == (
            "2024-01-01T22:00:00+00:00"
        )
        assert by_period["weekly"][const.DATA_REMINDER_PAYLOAD][
            const.DATA_REMINDER_PAYLOAD_LEAD_HOURS
        ] == 48

"""Tests for SeasonalEngine - recurring windows and event progress."""

from __future__ import annotations

from datetime import date, datetime
from zoneinfo import ZoneInfo

import pytest

from learnprogress import const
from learnprogress.engines.seasonal_engine import SeasonalEngine, _calendar_day
from learnprogress.utils import dt_utils
from tests.helpers import make_session, make_state, utc

SPRING = SeasonalEngine.get_definition("spring-conversations")
WINTER = SeasonalEngine.get_definition("winter-storytelling")


def _event(state, event_id: str):
    return next(
        e for e in state[const.DATA_SEASONAL_EVENTS] if e[const.DATA_EVENT_ID] == event_id
    )


# =============================================================================
# Test: Window resolution
# =============================================================================


class TestGetWindow:
    """Tests for resolving the current occurrence of a recurring window."""

    @pytest.mark.parametrize(
        ("definition", "reference", "expected_start", "expected_end"),
        [
            (SPRING, utc(2025, 2, 10), date(2025, 3, 1), date(2025, 4, 30)),
            (SPRING, utc(2025, 4, 30, 23, 59), date(2025, 3, 1), date(2025, 4, 30)),
            (SPRING, utc(2025, 5, 2), date(2026, 3, 1), date(2026, 4, 30)),
            (WINTER, utc(2025, 1, 10), date(2024, 11, 15), date(2025, 1, 15)),
            (WINTER, utc(2025, 1, 20), date(2025, 11, 15), date(2026, 1, 15)),
            (WINTER, utc(2025, 12, 1), date(2025, 11, 15), date(2026, 1, 15)),
        ],
    )
    def test_window(self, definition, reference, expected_start, expected_end) -> None:
        """The running occurrence wins; otherwise the next one is returned."""
        start, end = SeasonalEngine.get_window(definition, reference)
        assert start.date() == expected_start
        assert end.date() == expected_end
        assert (start.hour, start.minute) == (0, 0)
        assert (end.hour, end.minute, end.second) == (23, 59, 59)

    def test_window_uses_local_zone(self) -> None:
        """Window edges are local midnight, serialized in UTC."""
        dt_utils.set_default_timezone(ZoneInfo("Europe/Amsterdam"))
        state = make_state()
        SeasonalEngine.ensure_events(state, utc(2025, 2, 10))
        assert _event(state, "spring-conversations")[const.DATA_EVENT_STARTS_AT] == (
            "2025-02-28T23:00:00+00:00"
        )

    def test_status_with_naive_now(self) -> None:
        """A naive now is compared as local wall time."""
        start, end = SeasonalEngine.get_window(SPRING, utc(2025, 3, 2))
        assert SeasonalEngine.status_for(start, end, datetime(2025, 2, 28, 23)) == (
            const.SEASONAL_STATUS_UPCOMING
        )
        assert SeasonalEngine.status_for(start, end, datetime(2025, 3, 2, 12)) == (
            const.SEASONAL_STATUS_ACTIVE
        )
        assert SeasonalEngine.status_for(start, end, datetime(2025, 5, 1)) == (
            const.SEASONAL_STATUS_COMPLETED
        )

    def test_calendar_day_clamps_to_month_length(self) -> None:
        """29 February falls back to 28 February outside leap years."""
        assert _calendar_day(2025, 2, 29) == date(2025, 2, 28)
        assert _calendar_day(2024, 2, 29) == date(2024, 2, 29)


# =============================================================================
# Test: Event records
# =============================================================================


class TestEnsureEvents:
    """Tests for upserting event records."""

    def test_records_created_per_definition(self) -> None:
        """Every definition gets one record with its reward and metadata."""
        state = make_state()
        SeasonalEngine.ensure_events(state, utc(2025, 2, 10))
        SeasonalEngine.ensure_events(state, utc(2025, 2, 11))

        assert len(state[const.DATA_SEASONAL_EVENTS]) == 2
        spring = _event(state, "spring-conversations")
        assert spring[const.DATA_EVENT_STATUS] == const.SEASONAL_STATUS_UPCOMING
        assert spring[const.DATA_EVENT_PROGRESS] == 0
        assert spring[const.DATA_EVENT_REWARDS] == {const.DATA_REWARD_XP: 60}
        assert spring[const.DATA_EVENT_METADATA] == {
            const.DATA_EVENT_TARGET_SESSIONS: 5,
            const.DATA_EVENT_FOCUS_ACTIVITY: "conversation",
        }
        assert spring[const.DATA_EVENT_THEME] == "emerald"

    def test_winter_event_active_in_january(self) -> None:
        """A wrapped window is active in its January tail."""
        state = make_state()
        SeasonalEngine.ensure_events(state, utc(2025, 1, 10))
        winter = _event(state, "winter-storytelling")
        assert winter[const.DATA_EVENT_STATUS] == const.SEASONAL_STATUS_ACTIVE
        assert winter[const.DATA_EVENT_ENDS_AT].startswith("2025-01-15T23:59:59")


# =============================================================================
# Test: Session progress
# =============================================================================


class TestApplySession:
    """Tests for counting sessions toward events."""

    def _complete_spring(self, state) -> list:
        completed = []
        for day_of_month in range(3, 8):
            completed.extend(
                SeasonalEngine.apply_session(
                    state, make_session("conversation"), utc(2025, 3, day_of_month)
                )
            )
        return completed

    def test_upcoming_event_ignores_sessions(self) -> None:
        """Sessions before the window opens do not count."""
        state = make_state()
        SeasonalEngine.apply_session(state, make_session("conversation"), utc(2025, 2, 10))
        assert _event(state, "spring-conversations")[const.DATA_EVENT_PROGRESS] == 0

    def test_completes_exactly_once(self) -> None:
        """Five matching sessions complete the event, reported once."""
        state = make_state()
        completed = self._complete_spring(state)

        assert [e[const.DATA_EVENT_ID] for e in completed] == ["spring-conversations"]
        spring = _event(state, "spring-conversations")
        assert spring[const.DATA_EVENT_STATUS] == const.SEASONAL_STATUS_COMPLETED
        assert spring[const.DATA_EVENT_PROGRESS] == 5

        again = SeasonalEngine.apply_session(
            state, make_session("conversation"), utc(2025, 3, 9)
        )
        assert again == []
        assert spring[const.DATA_EVENT_PROGRESS] == 5

    def test_non_matching_activity(self) -> None:
        """Only the focus activity counts."""
        state = make_state()
        SeasonalEngine.apply_session(state, make_session("vocabulary"), utc(2025, 3, 3))
        assert _event(state, "spring-conversations")[const.DATA_EVENT_PROGRESS] == 0

    def test_completed_event_stays_locked_next_year(self) -> None:
        """By default a completed event is not reopened."""
        state = make_state()
        self._complete_spring(state)

        SeasonalEngine.ensure_events(state, utc(2026, 3, 5))

        spring = _event(state, "spring-conversations")
        assert spring[const.DATA_EVENT_STATUS] == const.SEASONAL_STATUS_COMPLETED
        assert spring[const.DATA_EVENT_PROGRESS] == 5
        assert spring[const.DATA_EVENT_STARTS_AT].startswith("2026-03-01")

    def test_reopen_completed_event(self) -> None:
        """With reopening enabled the next occurrence starts from zero."""
        state = make_state()
        self._complete_spring(state)

        SeasonalEngine.ensure_events(state, utc(2026, 3, 5), reopen_completed=True)

        spring = _event(state, "spring-conversations")
        assert spring[const.DATA_EVENT_STATUS] == const.SEASONAL_STATUS_ACTIVE
        assert spring[const.DATA_EVENT_PROGRESS] == 0

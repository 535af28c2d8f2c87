"""Tests for BadgeEngine - criterion handlers, ledger and projections."""

from __future__ import annotations

import copy

import pytest

from learnprogress import const
from learnprogress.engines.badge_engine import BADGE_DEFINITIONS, BadgeEngine
from tests.helpers import BASE_DAY, make_state


def _context(
    total_sessions: int = 0,
    daily_streak: int = 0,
    level: int = 1,
    missions_completed: int = 0,
) -> dict[str, int]:
    return {
        const.FIELD_TOTAL_SESSIONS: total_sessions,
        const.FIELD_DAILY_STREAK: daily_streak,
        const.FIELD_LEVEL: level,
        const.FIELD_MISSIONS_COMPLETED: missions_completed,
    }


# =============================================================================
# Test: Unlocking
# =============================================================================


class TestEvaluateBadges:
    """Tests for append-only unlock evaluation."""

    def test_nothing_met(self) -> None:
        """An empty context unlocks nothing."""
        state = make_state()
        assert BadgeEngine.evaluate_badges(state, _context(), BASE_DAY) == []
        assert state[const.DATA_BADGES] == []

    def test_rookie_unlocks_once(self) -> None:
        """The first session unlocks rookie exactly once."""
        state = make_state()
        unlocked = BadgeEngine.evaluate_badges(state, _context(total_sessions=1), BASE_DAY)

        assert [b[const.DATA_BADGE_ID] for b in unlocked] == ["rookie"]
        assert unlocked[0][const.DATA_BADGE_UNLOCKED_AT] == BASE_DAY.isoformat()
        assert unlocked[0][const.DATA_BADGE_NAME] == "First Step"
        assert BadgeEngine.evaluate_badges(state, _context(total_sessions=2), BASE_DAY) == []
        assert len(state[const.DATA_BADGES]) == 1

    def test_all_unlock_in_catalog_order(self) -> None:
        """A context meeting every threshold unlocks the whole catalog in order."""
        state = make_state()
        unlocked = BadgeEngine.evaluate_badges(
            state,
            _context(total_sessions=40, daily_streak=9, level=6, missions_completed=3),
            BASE_DAY,
        )

        assert [b[const.DATA_BADGE_ID] for b in unlocked] == [
            "rookie",
            "streak-7",
            "level-5",
            "mission-ace",
        ]
        assert len(state[const.DATA_BADGES]) == len(BADGE_DEFINITIONS)

    def test_thresholds_are_inclusive(self) -> None:
        """Meeting a threshold exactly is enough."""
        state = make_state()
        unlocked = BadgeEngine.evaluate_badges(
            state, _context(daily_streak=7, level=5), BASE_DAY
        )
        assert {b[const.DATA_BADGE_ID] for b in unlocked} == {"streak-7", "level-5"}

    def test_existing_ledger_entry_is_not_overwritten(self) -> None:
        """An earlier unlock timestamp survives later evaluations."""
        state = make_state()
        BadgeEngine.evaluate_badges(state, _context(total_sessions=1), BASE_DAY)
        BadgeEngine.evaluate_badges(state, _context(total_sessions=5, level=5), None)

        rookie = next(b for b in state[const.DATA_BADGES] if b[const.DATA_BADGE_ID] == "rookie")
        assert rookie[const.DATA_BADGE_UNLOCKED_AT] == BASE_DAY.isoformat()


# =============================================================================
# Test: Criterion handlers
# =============================================================================


class TestEvaluateBadge:
    """Tests for single-badge criterion evaluation."""

    def test_result_shape(self) -> None:
        """Handlers report current value, threshold and progress."""
        streak_badge = next(d for d in BADGE_DEFINITIONS if d["id"] == "streak-7")
        result = BadgeEngine.evaluate_badge(_context(daily_streak=3), streak_badge)

        assert result["criterion_type"] == const.BADGE_CRITERION_DAILY_STREAK
        assert result["met"] is False
        assert result["current_value"] == 3
        assert result["threshold"] == 7
        assert result["progress"] == pytest.approx(3 / 7)
        assert result["reason"] == "Daily streak: 3/7"

    def test_unknown_criterion_never_unlocks(self, caplog: pytest.LogCaptureFixture) -> None:
        """Unknown criterion types are reported and logged."""
        definition = {
            "id": "mystery",
            "name": "Mystery",
            "description": "",
            "category": const.BADGE_CATEGORY_SPECIAL,
            "criterion_type": "moon_phase",
            "threshold": 0,
        }
        result = BadgeEngine.evaluate_badge(_context(total_sessions=99), definition)

        assert result["met"] is False
        assert "moon_phase" in result["reason"]
        assert "Unknown badge criterion type" in caplog.text


# =============================================================================
# Test: Read-only projections
# =============================================================================


class TestProjections:
    """Tests for the catalog and progress views."""

    def test_catalog_does_not_mutate(self) -> None:
        """The catalog lists every badge and leaves the state as it was."""
        state = make_state()
        BadgeEngine.evaluate_badges(state, _context(total_sessions=1), BASE_DAY)
        before = copy.deepcopy(state)

        catalog = BadgeEngine.get_catalog(state)

        assert state == before
        assert [b[const.DATA_BADGE_ID] for b in catalog] == [d["id"] for d in BADGE_DEFINITIONS]
        assert catalog[0][const.DATA_BADGE_UNLOCKED_AT] == BASE_DAY.isoformat()
        assert all(const.DATA_BADGE_UNLOCKED_AT not in b for b in catalog[1:])

    def test_progress_projection(self) -> None:
        """Progress is current/threshold and unlocked badges report 1.0."""
        state = make_state()
        BadgeEngine.evaluate_badges(state, _context(total_sessions=1), BASE_DAY)

        projections = {
            p[const.DATA_BADGE_ID]: p
            for p in BadgeEngine.evaluate_progress(_context(daily_streak=3), state)
        }

        assert projections["streak-7"][const.DATA_BADGE_PROGRESS] == pytest.approx(3 / 7)
        assert projections["streak-7"][const.DATA_BADGE_TARGET] == 7
        assert projections["rookie"][const.DATA_BADGE_PROGRESS] == 1.0
        assert projections["level-5"][const.DATA_BADGE_PROGRESS] == pytest.approx(1 / 5)
        assert state[const.DATA_BADGES][0].get(const.DATA_BADGE_PROGRESS) is None

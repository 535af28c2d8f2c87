"""Tests for MissionEngine - daily pool refresh and session-driven progress."""

from __future__ import annotations

from datetime import datetime, timedelta
import random

from learnprogress import const
from learnprogress.engines.mission_engine import MISSION_TEMPLATES, MissionEngine
from tests.helpers import BASE_DAY, make_mission, make_session, make_state


def _active(state):
    return [
        m
        for m in state[const.DATA_MISSIONS]
        if m[const.DATA_MISSION_STATUS] == const.MISSION_STATUS_ACTIVE
    ]


# =============================================================================
# Test: Pool refresh
# =============================================================================


class TestEnsureDailyMissions:
    """Tests for topping up the active mission pool."""

    def test_fresh_pool(self) -> None:
        """An empty state gets three distinct active missions."""
        state = make_state()
        assigned = MissionEngine.ensure_daily_missions(
            state, "B1", rng=random.Random(7), now=BASE_DAY
        )

        assert len(assigned) == 3
        assert len({m[const.DATA_MISSION_TEMPLATE_ID] for m in assigned}) == 3
        for mission in assigned:
            assert mission[const.DATA_MISSION_STATUS] == const.MISSION_STATUS_ACTIVE
            assert mission[const.DATA_MISSION_LEVEL] == "B1"
            assert mission[const.DATA_MISSION_COMPLETED_AT] is None
            assert mission[const.DATA_MISSION_EXPIRES_AT] == (
                (BASE_DAY + timedelta(hours=24)).isoformat()
            )
        assert state[const.DATA_MISSIONS] == assigned

    def test_full_pool_is_noop(self) -> None:
        """A second refresh inside the expiry window assigns nothing."""
        state = make_state()
        MissionEngine.ensure_daily_missions(state, "B1", rng=random.Random(7), now=BASE_DAY)
        assert (
            MissionEngine.ensure_daily_missions(
                state, "B1", rng=random.Random(7), now=BASE_DAY + timedelta(hours=1)
            )
            == []
        )
        assert len(state[const.DATA_MISSIONS]) == 3

    def test_completed_missions_are_kept_and_pool_refilled(self) -> None:
        """Completed missions stay in the list; active ones are topped up."""
        state = make_state()
        done = make_mission("vocab-builder")
        done[const.DATA_MISSION_STATUS] = const.MISSION_STATUS_COMPLETED
        state[const.DATA_MISSIONS].append(done)

        MissionEngine.ensure_daily_missions(
            state, "B1", rng=random.Random(3), now=BASE_DAY + timedelta(days=2)
        )

        assert done in state[const.DATA_MISSIONS]
        assert len(_active(state)) == 3

    def test_expired_missions_are_dropped(self) -> None:
        """Uncompleted missions past their deadline leave the list."""
        state = make_state()
        stale = make_mission("listening-focus")
        state[const.DATA_MISSIONS].append(stale)

        MissionEngine.ensure_daily_missions(
            state, "B2", rng=random.Random(3), now=BASE_DAY + timedelta(hours=25)
        )

        ids = {m[const.DATA_MISSION_ID] for m in state[const.DATA_MISSIONS]}
        assert stale[const.DATA_MISSION_ID] not in ids
        assert len(_active(state)) == 3

    def test_active_templates_are_not_duplicated(self) -> None:
        """Top-ups prefer templates not already in the active pool."""
        state = make_state()
        state[const.DATA_MISSIONS].append(make_mission("goal-driven"))

        assigned = MissionEngine.ensure_daily_missions(
            state, "B1", rng=random.Random(11), now=BASE_DAY
        )

        assert len(assigned) == 2
        assert "goal-driven" not in {m[const.DATA_MISSION_TEMPLATE_ID] for m in assigned}

    def test_same_seed_same_picks(self) -> None:
        """Selection is reproducible for a seeded random source."""
        picks = [
            [t["id"] for t in MissionEngine.pick_templates(3, random.Random(42))]
            for _ in range(2)
        ]
        assert picks[0] == picks[1]

    def test_pick_never_exceeds_catalog(self) -> None:
        """Asking for more than the catalog returns every template once."""
        picks = MissionEngine.pick_templates(10, random.Random(1))
        assert len(picks) == len(MISSION_TEMPLATES)


# =============================================================================
# Test: Session progress
# =============================================================================


class TestApplySession:
    """Tests for advancing missions from a session."""

    def test_single_target_mission_completes(self) -> None:
        """A matching session completes a target-1 mission."""
        state = make_state()
        state[const.DATA_MISSIONS].append(make_mission("vocab-builder"))

        completed = MissionEngine.apply_session(
            state, make_session("vocabulary"), BASE_DAY + timedelta(hours=1)
        )

        assert [m[const.DATA_MISSION_TEMPLATE_ID] for m in completed] == ["vocab-builder"]
        mission = state[const.DATA_MISSIONS][0]
        assert mission[const.DATA_MISSION_STATUS] == const.MISSION_STATUS_COMPLETED
        assert mission[const.DATA_MISSION_COMPLETED_AT] == (
            (BASE_DAY + timedelta(hours=1)).isoformat()
        )

    def test_multi_session_mission(self) -> None:
        """convo-streak needs two sessions and is returned only once."""
        state = make_state()
        state[const.DATA_MISSIONS].append(make_mission("convo-streak"))
        session = make_session("conversation")
        now = BASE_DAY + timedelta(hours=1)

        assert MissionEngine.apply_session(state, session, now) == []
        objective = state[const.DATA_MISSIONS][0][const.DATA_MISSION_OBJECTIVES][0]
        assert objective[const.DATA_OBJECTIVE_PROGRESS] == 1

        assert len(MissionEngine.apply_session(state, session, now)) == 1
        assert MissionEngine.apply_session(state, session, now) == []
        assert objective[const.DATA_OBJECTIVE_PROGRESS] == 2
        assert objective[const.DATA_OBJECTIVE_PROGRESS] <= objective[const.DATA_OBJECTIVE_TARGET]

    def test_non_matching_activity(self) -> None:
        """A session for another activity does not move the mission."""
        state = make_state()
        state[const.DATA_MISSIONS].append(make_mission("listening-focus"))

        assert MissionEngine.apply_session(state, make_session("vocabulary"), BASE_DAY) == []
        objective = state[const.DATA_MISSIONS][0][const.DATA_MISSION_OBJECTIVES][0]
        assert objective[const.DATA_OBJECTIVE_PROGRESS] == 0

    def test_wildcard_mission_matches_any_session(self) -> None:
        """goal-driven has no filters and counts every session."""
        state = make_state()
        state[const.DATA_MISSIONS].append(make_mission("goal-driven"))

        completed = MissionEngine.apply_session(
            state, make_session("creative-story-relay", level="C1", goal="travel"), BASE_DAY
        )
        assert len(completed) == 1

    def test_expired_mission_flips_status(self) -> None:
        """An active mission past its deadline becomes expired, not completed."""
        state = make_state()
        state[const.DATA_MISSIONS].append(make_mission("vocab-builder"))

        completed = MissionEngine.apply_session(
            state, make_session("vocabulary"), BASE_DAY + timedelta(hours=24)
        )

        assert completed == []
        assert state[const.DATA_MISSIONS][0][const.DATA_MISSION_STATUS] == (
            const.MISSION_STATUS_EXPIRED
        )

    def test_is_expired_with_naive_now(self) -> None:
        """A naive now is read as local wall time."""
        mission = make_mission("vocab-builder")
        assert MissionEngine.is_expired(mission, datetime(2024, 1, 2, 9)) is False
        assert MissionEngine.is_expired(mission, datetime(2024, 1, 2, 10)) is True

    def test_returned_missions_are_copies(self) -> None:
        """Mutating a returned mission does not affect the draft."""
        state = make_state()
        state[const.DATA_MISSIONS].append(make_mission("vocab-builder"))
        completed = MissionEngine.apply_session(state, make_session("vocabulary"), BASE_DAY)

        completed[0][const.DATA_MISSION_STATUS] = "changed"
        assert state[const.DATA_MISSIONS][0][const.DATA_MISSION_STATUS] == (
            const.MISSION_STATUS_COMPLETED
        )

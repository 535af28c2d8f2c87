"""Progression Manager - Transactional orchestration of the progression engines.

This manager owns the in-memory state and is the only writer of it:
- Load: store.load() → data_builders.ensure_state() → cache
- Transaction: clone cache → mutate draft → ensure_state() → store.save() → swap cache
- Session completion: one transaction running every engine in order

ARCHITECTURE:
- ProgressionManager = STATEFUL orchestration (cache, options, random source)
- Engines = STATELESS logic operating on the draft passed in
- Store = persistence collaborator (load/save of the raw blob)

Nothing here raises for bad input. Invalid sessions and grants are logged at
warning level and reported back in the return value.
"""

from __future__ import annotations

import random
from typing import TYPE_CHECKING, Any, TypeVar, cast

from .. import const, data_builders as db
from ..engines.badge_engine import BadgeEngine
from ..engines.mission_engine import MissionEngine
from ..engines.reminder_engine import ReminderEngine
from ..engines.seasonal_engine import SeasonalEngine
from ..engines.streak_engine import StreakEngine
from ..engines.xp_engine import XPEngine
from ..utils.dt_utils import dt_resolve_now, dt_to_iso
from ..utils.math_utils import prune_history, round_xp

if TYPE_CHECKING:
    from collections.abc import Callable
    from datetime import datetime

    from ..store import ProgressStore
    from ..type_defs import (
        BadgeContext,
        BadgeProgress,
        GamificationData,
        MissionProgress,
        NotificationReminder,
        SeasonalEventProgress,
        SessionOutcome,
        StreakUpdateSummary,
        XPLevelProgress,
        XPUpdateResult,
    )

_T = TypeVar("_T")


class ProgressionManager:
    """State container for one learner's progression.

    Responsibilities:
    - Cache the sanitized state and expose read-only copies
    - Run every mutation as a clone → mutate → sanitize → persist transaction
    - Orchestrate a completed session across all engines
    - Validate external input before it reaches an engine

    NOT responsible for:
    - Delivering reminders (NotificationManager)
    - Choosing the local time zone (dt_utils.set_default_timezone)
    """

    def __init__(
        self,
        store: ProgressStore,
        *,
        options: dict[str, Any] | None = None,
        rng: random.Random | None = None,
    ) -> None:
        """Initialize the manager.

        Args:
            store: Persistence collaborator
            options: CONF_* overrides, validated by data_builders.OPTIONS_SCHEMA
            rng: Random source for mission template draws
        """
        self._store = store
        self._rng = rng or random.Random()
        self._cache: GamificationData | None = None

        normalized, errors = db.validate_options(options)
        if errors:
            const.LOGGER.warning("Ignoring invalid progression options: %s", errors)
            normalized, _ = db.validate_options({})
        self._options: dict[str, Any] = normalized

    # =========================================================================
    # Cache and transactions
    # =========================================================================

    @property
    def options(self) -> dict[str, Any]:
        """Return the effective options (defaults applied)."""
        return dict(self._options)

    def _state(self) -> GamificationData:
        if self._cache is None:
            return self.refresh()
        return self._cache

    def refresh(self) -> GamificationData:
        """Reload the cache from the store. Absent data yields a default state."""
        raw = self._store.load()
        self._cache = db.ensure_state(raw)
        const.LOGGER.debug(
            "Progression: loaded state (stored=%s, xp=%s, missions=%s)",
            raw is not None,
            self._cache[const.DATA_XP][const.DATA_XP_TOTAL],
            len(self._cache[const.DATA_MISSIONS]),
        )
        return db.clone_state(self._cache)

    def update(
        self,
        mutator: Callable[[GamificationData], _T],
        now: datetime | None = None,
    ) -> _T:
        """Run one transaction and return the mutator's result.

        The mutator receives a private clone of the cached state. The result
        is sanitized, persisted, and only then becomes the new cache.
        """
        draft = db.clone_state(self._state())
        result = mutator(draft)
        sanitized = db.ensure_state(draft, now)
        sanitized[const.DATA_LAST_SYNCED_AT] = dt_to_iso(dt_resolve_now(now))
        self._store.save(sanitized)  # type: ignore[arg-type]
        self._cache = sanitized
        return result

    def reset(self, now: datetime | None = None) -> GamificationData:
        """Replace all progression with a fresh default state."""
        fresh = db.build_default_state(now)
        self._store.save(fresh)  # type: ignore[arg-type]
        self._cache = fresh
        const.LOGGER.info("Progression: state reset")
        return db.clone_state(fresh)

    # =========================================================================
    # Read-only views
    # =========================================================================

    @property
    def data(self) -> GamificationData:
        """Return a copy of the current state."""
        return db.clone_state(self._state())

    @property
    def missions(self) -> list[MissionProgress]:
        """Return a copy of the mission pool."""
        return self.data[const.DATA_MISSIONS]

    @property
    def seasonal_events(self) -> list[SeasonalEventProgress]:
        """Return a copy of the seasonal event records."""
        return self.data[const.DATA_SEASONAL_EVENTS]

    def get_level_progress(self) -> XPLevelProgress:
        """Project the current XP total onto the level curve."""
        return XPEngine.get_level_progress(self._state()[const.DATA_XP][const.DATA_XP_TOTAL])

    def badge_catalog(self) -> list[BadgeProgress]:
        """Return the badge catalog merged with unlock timestamps."""
        return BadgeEngine.get_catalog(self._state())

    def badge_progress(self, context: BadgeContext | None = None) -> list[BadgeProgress]:
        """Return per-badge progress toward each threshold.

        Without a context, one is built from the stored lifetime stats. An
        invalid context yields no progress.
        """
        state = self._state()
        if context is None:
            return BadgeEngine.evaluate_progress(self._build_badge_context(state), state)
        normalized, errors = db.validate_badge_context(context)
        if errors:
            const.LOGGER.warning("Ignoring badge context %s: %s", context, errors)
            return []
        return BadgeEngine.evaluate_progress(cast("BadgeContext", normalized), state)

    def pending_reminders(self) -> list[NotificationReminder]:
        """Return copies of reminders not yet delivered."""
        return ReminderEngine.pending_reminders(self.data)

    def due_reminders(self, now: datetime | None = None) -> list[NotificationReminder]:
        """Return copies of undelivered reminders whose time has arrived."""
        return ReminderEngine.due_reminders(self.data, now)

    # =========================================================================
    # Session completion
    # =========================================================================

    def complete_session(
        self,
        session: dict[str, Any],
        *,
        now: datetime | None = None,
        total_sessions: int | None = None,
        missions_completed: int | None = None,
    ) -> SessionOutcome:
        """Apply a completed learning session to every engine in one transaction.

        Order: lifetime stats → streaks (+ reminders) → missions → badges →
        seasonal events → XP (session, mission rewards, event rewards).

        Args:
            session: {level, activity, goal}
            now: When the session completed (defaults to the current time)
            total_sessions: Override for the badge context session count
            missions_completed: Override for the badge context mission count

        Returns:
            SessionOutcome. accepted is False (and nothing is written) when the
            session fails validation.
        """
        normalized, errors = db.validate_session(session)
        if errors:
            const.LOGGER.warning("Rejected session %s: %s", session, errors)
            return {
                "accepted": False,
                "errors": errors,
                "streaks": None,
                "completed_missions": [],
                "unlocked_badges": [],
                "completed_events": [],
                "xp": [],
            }

        current_time = dt_resolve_now(now)

        def _apply(draft: GamificationData) -> SessionOutcome:
            self._record_session_stats(draft, normalized)

            streaks = StreakEngine.apply_session(
                draft,
                current_time,
                now=current_time,
                daily_lead_hours=self._options[const.CONF_DAILY_REMINDER_LEAD_HOURS],
                weekly_lead_hours=self._options[const.CONF_WEEKLY_REMINDER_LEAD_HOURS],
            )

            completed_missions = MissionEngine.apply_session(draft, normalized, current_time)
            draft[const.DATA_STATS][const.DATA_STATS_MISSIONS_COMPLETED] += len(
                completed_missions
            )

            context = self._build_badge_context(draft, total_sessions, missions_completed)
            unlocked_badges = BadgeEngine.evaluate_badges(draft, context, current_time)

            completed_events = SeasonalEngine.apply_session(
                draft,
                normalized,
                current_time,
                self._options[const.CONF_REOPEN_COMPLETED_SEASONAL_EVENTS],
            )

            xp_results = [
                XPEngine.grant_xp(
                    draft,
                    self._options[const.CONF_SESSION_XP],
                    const.XP_SOURCE_SESSION,
                    dict(normalized),
                    current_time,
                )
            ]
            for mission in completed_missions:
                xp_results.append(
                    XPEngine.grant_xp(
                        draft,
                        mission[const.DATA_MISSION_REWARD][const.DATA_REWARD_XP],
                        const.XP_SOURCE_MISSION,
                        {
                            "mission_id": mission[const.DATA_MISSION_ID],
                            "template_id": mission.get(const.DATA_MISSION_TEMPLATE_ID),
                        },
                        current_time,
                    )
                )
            for event in completed_events:
                reward = event.get(const.DATA_EVENT_REWARDS) or {}
                xp_results.append(
                    XPEngine.grant_xp(
                        draft,
                        reward.get(const.DATA_REWARD_XP, 0),
                        const.XP_SOURCE_BONUS,
                        {"event_id": event[const.DATA_EVENT_ID]},
                        current_time,
                    )
                )

            return {
                "accepted": True,
                "errors": {},
                "streaks": streaks,
                "completed_missions": completed_missions,
                "unlocked_badges": unlocked_badges,
                "completed_events": completed_events,
                "xp": xp_results,
            }

        outcome = self.update(_apply, current_time)
        const.LOGGER.debug(
            "Progression: session %s/%s applied (missions=%s, badges=%s, events=%s)",
            normalized[const.FIELD_LEVEL],
            normalized[const.FIELD_ACTIVITY],
            len(outcome["completed_missions"]),
            len(outcome["unlocked_badges"]),
            len(outcome["completed_events"]),
        )
        return outcome

    @staticmethod
    def _record_session_stats(draft: GamificationData, session: dict[str, Any]) -> None:
        stats = draft[const.DATA_STATS]
        stats[const.DATA_STATS_TOTAL_SESSIONS] += 1
        by_level = stats[const.DATA_STATS_SESSIONS_BY_LEVEL].setdefault(
            session[const.FIELD_LEVEL], {}
        )
        activity = session[const.FIELD_ACTIVITY]
        by_level[activity] = by_level.get(activity, 0) + 1

    @staticmethod
    def _build_badge_context(
        state: GamificationData,
        total_sessions: int | None = None,
        missions_completed: int | None = None,
    ) -> BadgeContext:
        """Build the badge context from state, applying caller overrides."""
        stats = state[const.DATA_STATS]
        return {
            "level": state[const.DATA_XP][const.DATA_XP_LEVEL],
            "total_sessions": (
                stats[const.DATA_STATS_TOTAL_SESSIONS]
                if total_sessions is None
                else total_sessions
            ),
            "daily_streak": state[const.DATA_STREAKS][const.DATA_STREAKS_DAILY][
                const.DATA_STREAK_CURRENT
            ],
            "missions_completed": (
                stats[const.DATA_STATS_MISSIONS_COMPLETED]
                if missions_completed is None
                else missions_completed
            ),
        }

    # =========================================================================
    # Individual operations
    # =========================================================================

    def grant_xp(
        self,
        amount: Any,
        source: str,
        metadata: dict[str, Any] | None = None,
        now: datetime | None = None,
    ) -> XPUpdateResult:
        """Grant XP from a source.

        Zero, negative, NaN or non-numeric amounts and unknown sources leave
        the state untouched and return the current snapshot.
        """
        normalized, errors = db.validate_xp_grant(
            {
                const.FIELD_AMOUNT: amount,
                const.FIELD_SOURCE: source,
                const.FIELD_METADATA: metadata,
            }
        )
        if errors:
            const.LOGGER.warning(
                "Ignoring XP grant of %s from %s: %s", amount, source, errors
            )
            return self._xp_snapshot()
        if round_xp(normalized[const.FIELD_AMOUNT]) <= 0:
            return self._xp_snapshot()

        current_time = dt_resolve_now(now)
        return self.update(
            lambda draft: XPEngine.grant_xp(
                draft,
                normalized[const.FIELD_AMOUNT],
                normalized[const.FIELD_SOURCE],
                normalized.get(const.FIELD_METADATA),
                current_time,
            ),
            current_time,
        )

    def _xp_snapshot(self) -> XPUpdateResult:
        """Return a zero-amount XPUpdateResult for the current total."""
        info = self.get_level_progress()
        return {
            "amount": 0,
            "total": info["total_xp"],
            "previous_level": info["level"],
            "new_level": info["level"],
            "xp_into_level": info["xp_into_level"],
            "xp_for_next_level": info["xp_for_next_level"],
            "progress": info["progress"],
        }

    def refresh_missions(
        self, level: str, now: datetime | None = None
    ) -> list[MissionProgress]:
        """Expire stale missions and top the pool up for a CEFR level.

        Returns the newly assigned missions.
        """
        if level not in const.CEFR_LEVELS:
            const.LOGGER.warning("Cannot refresh missions for unknown level %s", level)
            return []
        current_time = dt_resolve_now(now)
        return self.update(
            lambda draft: MissionEngine.ensure_daily_missions(
                draft,
                level,
                rng=self._rng,
                now=current_time,
                pool_size=self._options[const.CONF_MISSION_POOL_SIZE],
                expiry_hours=self._options[const.CONF_MISSION_EXPIRY_HOURS],
            ),
            current_time,
        )

    def register_mission_progress(
        self, session: dict[str, Any], now: datetime | None = None
    ) -> list[MissionProgress]:
        """Advance missions for a session without the rest of the pipeline."""
        normalized, errors = db.validate_session(session)
        if errors:
            const.LOGGER.warning("Rejected mission progress for %s: %s", session, errors)
            return []
        current_time = dt_resolve_now(now)

        def _apply(draft: GamificationData) -> list[MissionProgress]:
            completed = MissionEngine.apply_session(draft, normalized, current_time)
            draft[const.DATA_STATS][const.DATA_STATS_MISSIONS_COMPLETED] += len(completed)
            return completed

        return self.update(_apply, current_time)

    def unlock_badges(
        self, context: BadgeContext, now: datetime | None = None
    ) -> list[BadgeProgress]:
        """Unlock badges for a caller-supplied context.

        A context with a non-numeric or negative counter unlocks nothing.
        """
        normalized, errors = db.validate_badge_context(context)
        if errors:
            const.LOGGER.warning("Ignoring badge context %s: %s", context, errors)
            return []
        badge_context = cast("BadgeContext", normalized)
        current_time = dt_resolve_now(now)
        return self.update(
            lambda draft: BadgeEngine.evaluate_badges(draft, badge_context, current_time),
            current_time,
        )

    def refresh_seasonal_events(
        self, now: datetime | None = None
    ) -> list[SeasonalEventProgress]:
        """Recompute seasonal windows and statuses. Returns the event records."""
        current_time = dt_resolve_now(now)

        def _apply(draft: GamificationData) -> list[SeasonalEventProgress]:
            SeasonalEngine.ensure_events(
                draft,
                current_time,
                self._options[const.CONF_REOPEN_COMPLETED_SEASONAL_EVENTS],
            )
            return db.clone_state(draft)[const.DATA_SEASONAL_EVENTS]

        return self.update(_apply, current_time)

    def register_seasonal_progress(
        self, session: dict[str, Any], now: datetime | None = None
    ) -> list[SeasonalEventProgress]:
        """Count a session toward seasonal events only."""
        normalized, errors = db.validate_session(session)
        if errors:
            const.LOGGER.warning("Rejected seasonal progress for %s: %s", session, errors)
            return []
        current_time = dt_resolve_now(now)
        return self.update(
            lambda draft: SeasonalEngine.apply_session(
                draft,
                normalized,
                current_time,
                self._options[const.CONF_REOPEN_COMPLETED_SEASONAL_EVENTS],
            ),
            current_time,
        )

    def record_streak_session(
        self, session_dt: datetime | None = None, now: datetime | None = None
    ) -> StreakUpdateSummary:
        """Update streaks (and reschedule reminders) for a session timestamp."""
        current_time = dt_resolve_now(now)
        return self.update(
            lambda draft: StreakEngine.apply_session(
                draft,
                session_dt or current_time,
                now=current_time,
                daily_lead_hours=self._options[const.CONF_DAILY_REMINDER_LEAD_HOURS],
                weekly_lead_hours=self._options[const.CONF_WEEKLY_REMINDER_LEAD_HOURS],
            ),
            current_time,
        )

    def record_minigame_result(
        self, result: dict[str, Any], now: datetime | None = None
    ) -> dict[str, Any] | None:
        """Append a minigame result, keeping only the most recent entries.

        Returns the stored entry, or None if the result failed validation.
        """
        normalized, errors = db.validate_minigame_result(result)
        if errors:
            const.LOGGER.warning("Rejected minigame result: %s", errors)
            return None
        current_time = dt_resolve_now(now)
        entry = db.build_minigame_result(normalized, current_time)

        def _apply(draft: GamificationData) -> None:
            draft[const.DATA_MINIGAMES].append(entry)
            prune_history(draft[const.DATA_MINIGAMES], const.MAX_MINIGAME_HISTORY)

        self.update(_apply, current_time)
        return dict(entry)

    def sync_progress_snapshot(
        self, progress: dict[str, Any], now: datetime | None = None
    ) -> None:
        """Store an opaque progress snapshot for display."""
        current_time = dt_resolve_now(now)

        def _apply(draft: GamificationData) -> None:
            draft[const.DATA_LAST_PROGRESS_SNAPSHOT] = {
                const.DATA_SNAPSHOT_DATA: dict(progress),
                const.DATA_SNAPSHOT_UPDATED_AT: dt_to_iso(current_time),
            }

        self.update(_apply, current_time)

    def set_notification_permission(
        self, permission: str, now: datetime | None = None
    ) -> str:
        """Record the notification permission answer. Returns the stored value."""
        if permission not in const.NOTIFICATION_PERMISSIONS:
            const.LOGGER.warning("Ignoring unknown notification permission %s", permission)
            return self._state()[const.DATA_NOTIFICATIONS][const.DATA_NOTIFICATIONS_PERMISSION]
        current_time = dt_resolve_now(now)

        def _apply(draft: GamificationData) -> str:
            notifications = draft[const.DATA_NOTIFICATIONS]
            notifications[const.DATA_NOTIFICATIONS_PERMISSION] = permission
            notifications[const.DATA_NOTIFICATIONS_LAST_PROMPT_AT] = dt_to_iso(current_time)
            return permission

        return self.update(_apply, current_time)

    def dismiss_reminder(self, reminder_id: str) -> bool:
        """Mark a reminder delivered without showing it.

        Returns False (and writes nothing) if no pending reminder has that id.
        """
        if not any(
            reminder.get(const.DATA_REMINDER_ID) == reminder_id
            for reminder in ReminderEngine.pending_reminders(self._state())
        ):
            return False
        return bool(self.update(lambda draft: ReminderEngine.mark_delivered(draft, [reminder_id])))

    def mark_reminders_delivered(
        self, reminder_ids: list[str], now: datetime | None = None
    ) -> int:
        """Mark several reminders delivered in one transaction."""
        if not reminder_ids:
            return 0
        return self.update(
            lambda draft: ReminderEngine.mark_delivered(draft, reminder_ids), now
        )

"""Seasonal Engine - Pure logic for calendar-bound recurring events.

This engine provides stateless functions for:
- Resolving a recurring month/day window to its current concrete occurrence,
  including windows that wrap across New Year (e.g. 15 Nov .. 15 Jan)
- Upserting one progress record per event definition
- Counting matching sessions toward an event target

Windows are evaluated in the local calendar time zone (dt_utils), starting at
local 00:00 on the start day and ending at the last instant of the end day.

Status lifecycle per occurrence:
    upcoming → active → completed

A completed event stays completed when later refreshes move the window on to
the next occurrence. Passing reopen_completed=True instead re-opens the event
(progress 0) as soon as a new occurrence with a different start is computed.
"""

from __future__ import annotations

import copy
from datetime import date, datetime
from typing import TYPE_CHECKING

from dateutil.relativedelta import relativedelta

from .. import const
from ..utils.dt_utils import (
    as_local,
    as_utc,
    dt_parse,
    dt_resolve_now,
    dt_to_iso,
    end_of_local_day,
    local_midnight,
)

if TYPE_CHECKING:
    from ..type_defs import (
        GamificationData,
        SeasonalEventDefinition,
        SeasonalEventProgress,
        SessionEvent,
    )


SEASONAL_EVENT_DEFINITIONS: tuple[SeasonalEventDefinition, ...] = (
    {
        "id": "spring-conversations",
        "name": "Spring Conversations",
        "description": "Hold five conversations this spring to earn bonus XP.",
        "start_month": 3,
        "start_day": 1,
        "end_month": 4,
        "end_day": 30,
        "theme": "emerald",
        "target_sessions": 5,
        "focus_activity": "conversation",
        "reward_xp": 60,
    },
    {
        "id": "winter-storytelling",
        "name": "Winter Storytelling",
        "description": "Tell four stories in the creative story relay this winter.",
        "start_month": 11,
        "start_day": 15,
        "end_month": 1,
        "end_day": 15,
        "theme": "violet",
        "target_sessions": 4,
        "focus_activity": "creative-story-relay",
        "reward_xp": 75,
    },
)


def _calendar_day(year: int, month: int, day: int) -> date:
    """Return year/month/day, clamping the day to the month length (29 Feb)."""
    return date(year, 1, 1) + relativedelta(month=month, day=day)


class SeasonalEngine:
    """Pure logic engine for seasonal events."""

    @staticmethod
    def get_definition(event_id: str) -> SeasonalEventDefinition | None:
        """Look up an event definition by id."""
        for definition in SEASONAL_EVENT_DEFINITIONS:
            if definition["id"] == event_id:
                return definition
        return None

    @staticmethod
    def target_sessions(definition: SeasonalEventDefinition) -> int:
        """Return the session target, falling back to the default."""
        return definition.get("target_sessions") or const.DEFAULT_SEASONAL_TARGET_SESSIONS

    @staticmethod
    def get_window(
        definition: SeasonalEventDefinition, reference: datetime
    ) -> tuple[datetime, datetime]:
        """Return (start, end) of the occurrence current at reference.

        The current occurrence is the earliest one whose end has not passed:
        the running occurrence if reference falls inside a window, otherwise
        the next one. A window whose end month/day precedes its start ends in
        the following year.

        Examples (winter-storytelling, 15 Nov .. 15 Jan):
            10 Jan 2025 → 15 Nov 2024 .. 15 Jan 2025 (running)
            20 Jan 2025 → 15 Nov 2025 .. 15 Jan 2026 (next)
        """
        local_ref = as_local(reference)
        wraps = (definition["end_month"], definition["end_day"]) < (
            definition["start_month"],
            definition["start_day"],
        )

        start = end = local_ref
        for start_year in (local_ref.year - 1, local_ref.year, local_ref.year + 1):
            start = local_midnight(
                _calendar_day(start_year, definition["start_month"], definition["start_day"])
            )
            end = end_of_local_day(
                _calendar_day(
                    start_year + 1 if wraps else start_year,
                    definition["end_month"],
                    definition["end_day"],
                )
            )
            if local_ref <= end:
                break
        return start, end

    @staticmethod
    def status_for(start: datetime, end: datetime, now: datetime) -> str:
        """Derive the window status of an occurrence at now."""
        now = as_utc(now)
        if now < start:
            return const.SEASONAL_STATUS_UPCOMING
        if now > end:
            return const.SEASONAL_STATUS_COMPLETED
        return const.SEASONAL_STATUS_ACTIVE

    @staticmethod
    def ensure_events(
        draft: GamificationData,
        now: datetime | None = None,
        reopen_completed: bool = const.DEFAULT_REOPEN_COMPLETED_SEASONAL_EVENTS,
    ) -> None:
        """Upsert a progress record per definition for the current occurrence.

        Existing progress is preserved. Status is only re-derived for events
        that are not completed, unless reopen_completed is set and the window
        has moved on to a new occurrence.
        """
        current_time = dt_resolve_now(now)
        events = draft[const.DATA_SEASONAL_EVENTS]
        by_id = {event.get(const.DATA_EVENT_ID): event for event in events}

        for definition in SEASONAL_EVENT_DEFINITIONS:
            start, end = SeasonalEngine.get_window(definition, current_time)
            status = SeasonalEngine.status_for(start, end, current_time)
            target = SeasonalEngine.target_sessions(definition)
            metadata = {
                const.DATA_EVENT_TARGET_SESSIONS: target,
                const.DATA_EVENT_FOCUS_ACTIVITY: definition.get("focus_activity"),
            }

            event = by_id.get(definition["id"])
            if event is None:
                events.append(
                    {
                        const.DATA_EVENT_ID: definition["id"],
                        const.DATA_EVENT_NAME: definition["name"],
                        const.DATA_EVENT_DESCRIPTION: definition["description"],
                        const.DATA_EVENT_THEME: definition["theme"],
                        const.DATA_EVENT_STARTS_AT: dt_to_iso(start),
                        const.DATA_EVENT_ENDS_AT: dt_to_iso(end),
                        const.DATA_EVENT_STATUS: status,
                        const.DATA_EVENT_PROGRESS: (
                            target if status == const.SEASONAL_STATUS_COMPLETED else 0
                        ),
                        const.DATA_EVENT_REWARDS: {
                            const.DATA_REWARD_XP: definition["reward_xp"]
                        },
                        const.DATA_EVENT_METADATA: metadata,
                    }
                )
                continue

            is_completed = event.get(const.DATA_EVENT_STATUS) == const.SEASONAL_STATUS_COMPLETED
            previous_start = dt_parse(event.get(const.DATA_EVENT_STARTS_AT))
            if reopen_completed and is_completed and previous_start != start:
                const.LOGGER.debug(
                    "Seasonal: reopening %s for occurrence starting %s",
                    definition["id"],
                    dt_to_iso(start),
                )
                event[const.DATA_EVENT_PROGRESS] = 0
                is_completed = False

            event[const.DATA_EVENT_NAME] = definition["name"]
            event[const.DATA_EVENT_DESCRIPTION] = definition["description"]
            event[const.DATA_EVENT_THEME] = definition["theme"]
            event[const.DATA_EVENT_STARTS_AT] = dt_to_iso(start)
            event[const.DATA_EVENT_ENDS_AT] = dt_to_iso(end)
            event[const.DATA_EVENT_REWARDS] = {const.DATA_REWARD_XP: definition["reward_xp"]}
            event[const.DATA_EVENT_METADATA] = {
                **(event.get(const.DATA_EVENT_METADATA) or {}),
                **metadata,
            }
            if not is_completed:
                event[const.DATA_EVENT_STATUS] = status

    @staticmethod
    def apply_session(
        draft: GamificationData,
        session: SessionEvent,
        now: datetime | None = None,
        reopen_completed: bool = const.DEFAULT_REOPEN_COMPLETED_SEASONAL_EVENTS,
    ) -> list[SeasonalEventProgress]:
        """Count a session toward every active event whose focus matches.

        Progress is capped at the event target; reaching it completes the
        event. Each occurrence is reported as newly completed exactly once.

        Returns:
            Copies of events completed by this session
        """
        current_time = dt_resolve_now(now)
        SeasonalEngine.ensure_events(draft, current_time, reopen_completed)
        completed: list[SeasonalEventProgress] = []

        for event in draft[const.DATA_SEASONAL_EVENTS]:
            definition = SeasonalEngine.get_definition(event.get(const.DATA_EVENT_ID, ""))
            if definition is None:
                continue

            metadata = event.get(const.DATA_EVENT_METADATA) or {}
            target = int(
                metadata.get(const.DATA_EVENT_TARGET_SESSIONS)
                or SeasonalEngine.target_sessions(definition)
            )
            focus = definition.get("focus_activity")
            matches = not focus or focus == session.get(const.FIELD_ACTIVITY)
            was_completed = event[const.DATA_EVENT_STATUS] == const.SEASONAL_STATUS_COMPLETED

            if event[const.DATA_EVENT_STATUS] == const.SEASONAL_STATUS_ACTIVE and matches:
                event[const.DATA_EVENT_PROGRESS] = event.get(const.DATA_EVENT_PROGRESS, 0) + 1

            if event.get(const.DATA_EVENT_PROGRESS, 0) >= target:
                event[const.DATA_EVENT_STATUS] = const.SEASONAL_STATUS_COMPLETED
                event[const.DATA_EVENT_PROGRESS] = target

            if not was_completed and event[const.DATA_EVENT_STATUS] == (
                const.SEASONAL_STATUS_COMPLETED
            ):
                completed.append(copy.deepcopy(event))
                const.LOGGER.debug(
                    "Seasonal: %s completed (%s/%s)", event[const.DATA_EVENT_ID], target, target
                )

        return completed

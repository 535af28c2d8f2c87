"""State construction, sanitizing and input validation helpers.

This module is the SINGLE SOURCE OF TRUTH for:
- Default values of every persisted structure
- Normalizing a possibly malformed persisted blob into a valid state
- Validating external inputs (sessions, XP grants, options, minigame results)

### Build Functions
`build_default_*()` return fresh structures; nothing is shared between calls.

### Ensure Functions
`ensure_*()` take whatever was loaded (any type, any shape) and rebuild the
structure field by field. They never raise: a missing or malformed field is
replaced by its default and compatible fields are salvaged. `ensure_state()`
is applied on load and again after every mutation before persisting.
Derived XP fields (`level`, `level_progress`) are always recomputed from
`total`, never trusted.

### Validation Functions
`validate_*()` run a voluptuous schema and return `(normalized, errors)`.
errors maps field name → const.ERROR_* key and is empty when the input is
valid.

Consumers:
- managers/progression_manager.py (load, transaction commit, inputs)
- store.py (nothing; stores persist raw blobs)
"""

from __future__ import annotations

import copy
from datetime import datetime
import math
from typing import Any, cast
import uuid

import voluptuous as vol

from . import const
from .engines.mission_engine import MISSION_TEMPLATES
from .engines.xp_engine import XPEngine
from .type_defs import (
    GamificationData,
    LifetimeStats,
    MinigameResult,
    NotificationState,
    StreakStats,
    XPState,
)
from .utils.dt_utils import dt_parse, dt_resolve_now, dt_to_iso
from .utils.math_utils import prune_history

# ==============================================================================
# HELPER FUNCTIONS FOR FIELD NORMALIZATION
# ==============================================================================


def _normalize_list_field(value: Any) -> list[Any]:
    """Return value if it is a list, otherwise an empty list."""
    if isinstance(value, list):
        return value
    return []


def _normalize_dict_field(value: Any) -> dict[str, Any]:
    """Return a shallow copy of value if it is a dict, otherwise {}."""
    if isinstance(value, dict):
        return dict(value)
    return {}


def _normalize_int_field(value: Any, default: int = 0, minimum: int = 0) -> int:
    """Coerce a numeric field to int >= minimum.

    Booleans, non-numeric values, NaN and infinities yield default.
    """
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return default
    if not math.isfinite(value):
        return default
    return max(minimum, int(value))


def _normalize_str_field(value: Any, default: str | None = None) -> str | None:
    """Return value if it is a non-empty string, otherwise default."""
    if isinstance(value, str) and value:
        return value
    return default


def _normalize_timestamp_field(value: Any, default: str | None = None) -> str | None:
    """Return value re-serialized as ISO UTC if parseable, otherwise default."""
    if not isinstance(value, str):
        return default
    parsed = dt_parse(value)
    return dt_to_iso(parsed) if parsed else default


def _dict_entries_with_id(value: Any) -> list[dict[str, Any]]:
    """Keep dict entries that carry a non-empty string id."""
    return [
        dict(entry)
        for entry in _normalize_list_field(value)
        if isinstance(entry, dict) and _normalize_str_field(entry.get("id"))
    ]


# ==============================================================================
# DEFAULT BUILDERS
# ==============================================================================


def build_default_streak_stats(period: str) -> StreakStats:
    """Build empty streak stats for a period."""
    return {
        const.DATA_STREAK_PERIOD: period,
        const.DATA_STREAK_CURRENT: 0,
        const.DATA_STREAK_LONGEST: 0,
        const.DATA_STREAK_LAST_COMPLETED_DATE: None,
        const.DATA_STREAK_HISTORY: [],
    }


def build_default_xp_state() -> XPState:
    """Build a zeroed XP state (level 1, no history)."""
    return {
        const.DATA_XP_TOTAL: 0,
        const.DATA_XP_LEVEL: 1,
        const.DATA_XP_LEVEL_PROGRESS: 0.0,
        const.DATA_XP_HISTORY: [],
        const.DATA_XP_LAST_EARNED_AT: None,
    }


def build_default_notification_state() -> NotificationState:
    """Build notification state with permission not yet asked."""
    return {
        const.DATA_NOTIFICATIONS_PERMISSION: const.NOTIFICATION_PERMISSION_DEFAULT,
        const.DATA_NOTIFICATIONS_LAST_PROMPT_AT: None,
        const.DATA_NOTIFICATIONS_REMINDERS: [],
    }


def build_default_stats() -> LifetimeStats:
    """Build zeroed lifetime counters."""
    return {
        const.DATA_STATS_TOTAL_SESSIONS: 0,
        const.DATA_STATS_MISSIONS_COMPLETED: 0,
        const.DATA_STATS_SESSIONS_BY_LEVEL: {},
    }


def build_default_state(now: datetime | None = None) -> GamificationData:
    """Build a fresh, valid state.

    Args:
        now: Optional timestamp for last_updated / last_synced_at

    Returns:
        GamificationData with every collection empty
    """
    timestamp = dt_to_iso(dt_resolve_now(now))
    return {
        const.DATA_VERSION: const.DATA_VERSION_CURRENT,
        const.DATA_STREAKS: {
            const.DATA_STREAKS_DAILY: build_default_streak_stats(const.STREAK_PERIOD_DAILY),
            const.DATA_STREAKS_WEEKLY: build_default_streak_stats(const.STREAK_PERIOD_WEEKLY),
            const.DATA_STREAKS_LAST_UPDATED: timestamp,
        },
        const.DATA_XP: build_default_xp_state(),
        const.DATA_MISSIONS: [],
        const.DATA_BADGES: [],
        const.DATA_MINIGAMES: [],
        const.DATA_SEASONAL_EVENTS: [],
        const.DATA_NOTIFICATIONS: build_default_notification_state(),
        const.DATA_STATS: build_default_stats(),
        const.DATA_LAST_PROGRESS_SNAPSHOT: None,
        const.DATA_LAST_SYNCED_AT: timestamp,
    }


def clone_state(state: GamificationData) -> GamificationData:
    """Return a deep copy usable as a transaction draft."""
    return copy.deepcopy(state)


# ==============================================================================
# SANITIZERS
# ==============================================================================


def ensure_streak_stats(raw: Any, period: str) -> StreakStats:
    """Normalize streak stats for one period.

    Guarantees longest >= current and a capped history of dict entries.
    """
    data = _normalize_dict_field(raw)
    current = _normalize_int_field(data.get(const.DATA_STREAK_CURRENT))
    longest = max(current, _normalize_int_field(data.get(const.DATA_STREAK_LONGEST)))
    history = [
        dict(entry)
        for entry in _normalize_list_field(data.get(const.DATA_STREAK_HISTORY))
        if isinstance(entry, dict)
    ]
    prune_history(history, const.MAX_STREAK_HISTORY)
    return {
        const.DATA_STREAK_PERIOD: period,
        const.DATA_STREAK_CURRENT: current,
        const.DATA_STREAK_LONGEST: longest,
        const.DATA_STREAK_LAST_COMPLETED_DATE: _normalize_str_field(
            data.get(const.DATA_STREAK_LAST_COMPLETED_DATE)
        ),
        const.DATA_STREAK_HISTORY: history,
    }


def ensure_xp_state(raw: Any) -> XPState:
    """Normalize XP state and re-derive level / level_progress from total."""
    data = _normalize_dict_field(raw)
    total = _normalize_int_field(data.get(const.DATA_XP_TOTAL))
    history = [
        dict(entry)
        for entry in _normalize_list_field(data.get(const.DATA_XP_HISTORY))
        if isinstance(entry, dict)
    ]
    prune_history(history, const.MAX_XP_HISTORY)
    info = XPEngine.get_level_progress(total)
    return {
        const.DATA_XP_TOTAL: total,
        const.DATA_XP_LEVEL: info["level"],
        const.DATA_XP_LEVEL_PROGRESS: info["progress"],
        const.DATA_XP_HISTORY: history,
        const.DATA_XP_LAST_EARNED_AT: _normalize_str_field(data.get(const.DATA_XP_LAST_EARNED_AT)),
    }


def ensure_missions(raw: Any) -> list[dict[str, Any]]:
    """Normalize missions; entries without an id are dropped."""
    valid_statuses = (
        const.MISSION_STATUS_LOCKED,
        const.MISSION_STATUS_ACTIVE,
        const.MISSION_STATUS_COMPLETED,
        const.MISSION_STATUS_EXPIRED,
    )
    missions: list[dict[str, Any]] = []
    for mission in _dict_entries_with_id(raw):
        if mission.get(const.DATA_MISSION_STATUS) not in valid_statuses:
            mission[const.DATA_MISSION_STATUS] = const.MISSION_STATUS_ACTIVE
        objectives = []
        for objective in _normalize_list_field(mission.get(const.DATA_MISSION_OBJECTIVES)):
            if not isinstance(objective, dict):
                continue
            objective = dict(objective)
            target = _normalize_int_field(objective.get(const.DATA_OBJECTIVE_TARGET), 1, 1)
            objective[const.DATA_OBJECTIVE_TARGET] = target
            objective[const.DATA_OBJECTIVE_PROGRESS] = min(
                target, _normalize_int_field(objective.get(const.DATA_OBJECTIVE_PROGRESS))
            )
            objective.setdefault(const.DATA_OBJECTIVE_METRIC, const.MISSION_METRIC_SESSIONS)
            objectives.append(objective)
        mission[const.DATA_MISSION_OBJECTIVES] = objectives
        reward = _normalize_dict_field(mission.get(const.DATA_MISSION_REWARD))
        mission[const.DATA_MISSION_REWARD] = {
            const.DATA_REWARD_XP: _normalize_int_field(reward.get(const.DATA_REWARD_XP))
        }
        mission.setdefault(const.DATA_MISSION_TITLE, "")
        mission.setdefault(const.DATA_MISSION_DESCRIPTION, "")
        missions.append(mission)
    return missions


def ensure_badges(raw: Any) -> list[dict[str, Any]]:
    """Normalize the badge ledger, keeping the first entry per id."""
    seen: set[str] = set()
    badges: list[dict[str, Any]] = []
    for badge in _dict_entries_with_id(raw):
        if badge[const.DATA_BADGE_ID] in seen:
            continue
        seen.add(badge[const.DATA_BADGE_ID])
        badges.append(badge)
    return badges


def ensure_minigames(raw: Any) -> list[dict[str, Any]]:
    """Normalize minigame results, capped to the most recent entries."""
    minigames = _dict_entries_with_id(raw)
    return prune_history(minigames, const.MAX_MINIGAME_HISTORY)


def ensure_seasonal_events(raw: Any) -> list[dict[str, Any]]:
    """Normalize seasonal event records (windows are recomputed on refresh)."""
    valid_statuses = (
        const.SEASONAL_STATUS_UPCOMING,
        const.SEASONAL_STATUS_ACTIVE,
        const.SEASONAL_STATUS_COMPLETED,
    )
    events: list[dict[str, Any]] = []
    for event in _dict_entries_with_id(raw):
        if event.get(const.DATA_EVENT_STATUS) not in valid_statuses:
            event[const.DATA_EVENT_STATUS] = const.SEASONAL_STATUS_UPCOMING
        event[const.DATA_EVENT_PROGRESS] = _normalize_int_field(
            event.get(const.DATA_EVENT_PROGRESS)
        )
        event[const.DATA_EVENT_METADATA] = _normalize_dict_field(
            event.get(const.DATA_EVENT_METADATA)
        )
        events.append(event)
    return events


def ensure_notification_state(raw: Any) -> NotificationState:
    """Normalize permission and the reminder queue."""
    data = _normalize_dict_field(raw)
    permission = data.get(const.DATA_NOTIFICATIONS_PERMISSION)
    if permission not in const.NOTIFICATION_PERMISSIONS:
        permission = const.NOTIFICATION_PERMISSION_DEFAULT
    reminders = []
    for reminder in _dict_entries_with_id(data.get(const.DATA_NOTIFICATIONS_REMINDERS)):
        scheduled_for = _normalize_timestamp_field(
            reminder.get(const.DATA_REMINDER_SCHEDULED_FOR)
        )
        if scheduled_for is None:
            continue
        reminder[const.DATA_REMINDER_SCHEDULED_FOR] = scheduled_for
        reminder[const.DATA_REMINDER_DELIVERED] = bool(
            reminder.get(const.DATA_REMINDER_DELIVERED, False)
        )
        reminder.setdefault(const.DATA_REMINDER_TYPE, const.REMINDER_TYPE_STREAK_WARNING)
        reminder.setdefault(const.DATA_REMINDER_CREATED_AT, scheduled_for)
        reminder[const.DATA_REMINDER_PAYLOAD] = _normalize_dict_field(
            reminder.get(const.DATA_REMINDER_PAYLOAD)
        )
        reminders.append(reminder)
    return {
        const.DATA_NOTIFICATIONS_PERMISSION: permission,
        const.DATA_NOTIFICATIONS_LAST_PROMPT_AT: _normalize_str_field(
            data.get(const.DATA_NOTIFICATIONS_LAST_PROMPT_AT)
        ),
        const.DATA_NOTIFICATIONS_REMINDERS: reminders,
    }


def ensure_stats(raw: Any) -> LifetimeStats:
    """Normalize lifetime counters."""
    data = _normalize_dict_field(raw)
    by_level: dict[str, dict[str, int]] = {}
    for level, activities in _normalize_dict_field(
        data.get(const.DATA_STATS_SESSIONS_BY_LEVEL)
    ).items():
        by_level[str(level)] = {
            str(activity): _normalize_int_field(count)
            for activity, count in _normalize_dict_field(activities).items()
        }
    return {
        const.DATA_STATS_TOTAL_SESSIONS: _normalize_int_field(
            data.get(const.DATA_STATS_TOTAL_SESSIONS)
        ),
        const.DATA_STATS_MISSIONS_COMPLETED: _normalize_int_field(
            data.get(const.DATA_STATS_MISSIONS_COMPLETED)
        ),
        const.DATA_STATS_SESSIONS_BY_LEVEL: by_level,
    }


def ensure_state(raw: Any, now: datetime | None = None) -> GamificationData:
    """Normalize a loaded blob into a valid state. Never raises.

    None or a non-dict yields a fresh default state. An unexpected version is
    logged and compatible fields are still salvaged.
    """
    if not isinstance(raw, dict):
        if raw is not None:
            const.LOGGER.warning(
                "Discarding persisted state of unexpected type %s", type(raw).__name__
            )
        return build_default_state(now)

    version = raw.get(const.DATA_VERSION)
    if version != const.DATA_VERSION_CURRENT:
        const.LOGGER.warning(
            "Persisted state has version %s (expected %s), salvaging compatible fields",
            version,
            const.DATA_VERSION_CURRENT,
        )

    default_timestamp = dt_to_iso(dt_resolve_now(now))
    streaks = _normalize_dict_field(raw.get(const.DATA_STREAKS))
    snapshot = raw.get(const.DATA_LAST_PROGRESS_SNAPSHOT)

    return cast(
        "GamificationData",
        {
            const.DATA_VERSION: const.DATA_VERSION_CURRENT,
            const.DATA_STREAKS: {
                const.DATA_STREAKS_DAILY: ensure_streak_stats(
                    streaks.get(const.DATA_STREAKS_DAILY), const.STREAK_PERIOD_DAILY
                ),
                const.DATA_STREAKS_WEEKLY: ensure_streak_stats(
                    streaks.get(const.DATA_STREAKS_WEEKLY), const.STREAK_PERIOD_WEEKLY
                ),
                const.DATA_STREAKS_LAST_UPDATED: _normalize_str_field(
                    streaks.get(const.DATA_STREAKS_LAST_UPDATED), default_timestamp
                ),
            },
            const.DATA_XP: ensure_xp_state(raw.get(const.DATA_XP)),
            const.DATA_MISSIONS: ensure_missions(raw.get(const.DATA_MISSIONS)),
            const.DATA_BADGES: ensure_badges(raw.get(const.DATA_BADGES)),
            const.DATA_MINIGAMES: ensure_minigames(raw.get(const.DATA_MINIGAMES)),
            const.DATA_SEASONAL_EVENTS: ensure_seasonal_events(
                raw.get(const.DATA_SEASONAL_EVENTS)
            ),
            const.DATA_NOTIFICATIONS: ensure_notification_state(
                raw.get(const.DATA_NOTIFICATIONS)
            ),
            const.DATA_STATS: ensure_stats(raw.get(const.DATA_STATS)),
            const.DATA_LAST_PROGRESS_SNAPSHOT: (
                dict(snapshot) if isinstance(snapshot, dict) else None
            ),
            const.DATA_LAST_SYNCED_AT: _normalize_str_field(
                raw.get(const.DATA_LAST_SYNCED_AT), default_timestamp
            ),
        },
    )


# ==============================================================================
# INPUT SCHEMAS
# ==============================================================================


def _iso_datetime(value: Any) -> str:
    """Voluptuous validator: accept an ISO timestamp, return it in UTC."""
    parsed = dt_parse(value) if isinstance(value, (str, datetime)) else None
    if parsed is None:
        raise vol.Invalid("expected an ISO 8601 timestamp")
    return dt_to_iso(parsed)


def _xp_amount(value: Any) -> float:
    """Voluptuous validator: accept int or float, but not bool or strings."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise vol.Invalid("expected a number")
    return float(value)


def _badge_count(value: Any) -> int:
    """Voluptuous validator: accept a finite non-negative number as an int."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise vol.Invalid("expected a number")
    if not math.isfinite(value) or value < 0:
        raise vol.Invalid("expected a finite non-negative number")
    return int(value)


_NON_EMPTY_STRING = vol.All(str, vol.Length(min=1))

SESSION_SCHEMA = vol.Schema(
    {
        vol.Required(const.FIELD_LEVEL): vol.In(const.CEFR_LEVELS),
        vol.Required(const.FIELD_ACTIVITY): _NON_EMPTY_STRING,
        vol.Required(const.FIELD_GOAL): _NON_EMPTY_STRING,
    },
    extra=vol.REMOVE_EXTRA,
)

XP_GRANT_SCHEMA = vol.Schema(
    {
        vol.Required(const.FIELD_AMOUNT): _xp_amount,
        vol.Required(const.FIELD_SOURCE): vol.In(const.XP_SOURCES),
        vol.Optional(const.FIELD_METADATA): vol.Any(None, dict),
    }
)

BADGE_CONTEXT_SCHEMA = vol.Schema(
    {
        vol.Optional(const.FIELD_LEVEL, default=0): _badge_count,
        vol.Optional(const.FIELD_TOTAL_SESSIONS, default=0): _badge_count,
        vol.Optional(const.FIELD_DAILY_STREAK, default=0): _badge_count,
        vol.Optional(const.FIELD_MISSIONS_COMPLETED, default=0): _badge_count,
    },
    extra=vol.REMOVE_EXTRA,
)

OPTIONS_SCHEMA = vol.Schema(
    {
        vol.Optional(const.CONF_SESSION_XP, default=const.DEFAULT_SESSION_XP): vol.All(
            vol.Coerce(int), vol.Range(min=0)
        ),
        vol.Optional(
            const.CONF_DAILY_REMINDER_LEAD_HOURS,
            default=const.DEFAULT_DAILY_REMINDER_LEAD_HOURS,
        ): vol.All(vol.Coerce(int), vol.Range(min=0, max=24)),
        vol.Optional(
            const.CONF_WEEKLY_REMINDER_LEAD_HOURS,
            default=const.DEFAULT_WEEKLY_REMINDER_LEAD_HOURS,
        ): vol.All(vol.Coerce(int), vol.Range(min=0, max=168)),
        vol.Optional(
            const.CONF_REOPEN_COMPLETED_SEASONAL_EVENTS,
            default=const.DEFAULT_REOPEN_COMPLETED_SEASONAL_EVENTS,
        ): vol.Boolean(),
        vol.Optional(
            const.CONF_MISSION_POOL_SIZE, default=const.DEFAULT_MISSION_POOL_SIZE
        ): vol.All(vol.Coerce(int), vol.Range(min=1, max=len(MISSION_TEMPLATES))),
        vol.Optional(
            const.CONF_MISSION_EXPIRY_HOURS, default=const.DEFAULT_MISSION_EXPIRY_HOURS
        ): vol.All(vol.Coerce(int), vol.Range(min=1)),
    }
)

MINIGAME_RESULT_SCHEMA = vol.Schema(
    {
        vol.Optional(const.DATA_MINIGAME_ID): _NON_EMPTY_STRING,
        vol.Required(const.DATA_MINIGAME_TYPE): vol.In(const.MINIGAME_TYPES),
        vol.Optional(const.DATA_MINIGAME_CONVERSATION_ID): vol.Any(None, str),
        vol.Required(const.DATA_MINIGAME_SCORE): vol.All(vol.Coerce(float), vol.Range(min=0)),
        vol.Required(const.DATA_MINIGAME_MAX_SCORE): vol.All(
            vol.Coerce(float), vol.Range(min=0)
        ),
        vol.Optional(const.DATA_MINIGAME_PLAYED_AT): _iso_datetime,
        vol.Optional(const.DATA_MINIGAME_DURATION_MS): vol.Any(
            None, vol.All(vol.Coerce(int), vol.Range(min=0))
        ),
        vol.Optional(const.DATA_MINIGAME_METADATA): vol.Any(None, dict),
    }
)


# ==============================================================================
# VALIDATION FUNCTIONS
# ==============================================================================


def _validate(schema: vol.Schema, data: Any) -> tuple[dict[str, Any], dict[str, str]]:
    """Run a schema and flatten voluptuous errors to {field: error_key}.

    Returns:
        (normalized, errors). normalized is {} when errors is non-empty.
    """
    try:
        return schema(data), {}
    except vol.MultipleInvalid as err:
        errors: dict[str, str] = {}
        for error in err.errors:
            field = ".".join(str(part) for part in error.path) or "base"
            errors[field] = (
                const.ERROR_REQUIRED
                if isinstance(error, vol.RequiredFieldInvalid)
                else const.ERROR_INVALID_VALUE
            )
        return {}, errors


def validate_session(data: Any) -> tuple[dict[str, Any], dict[str, str]]:
    """Validate a session-completion event {level, activity, goal}."""
    return _validate(SESSION_SCHEMA, data)


def validate_xp_grant(data: Any) -> tuple[dict[str, Any], dict[str, str]]:
    """Validate an XP grant {amount, source, metadata?}.

    Negative or NaN amounts are valid input here; the grant itself treats
    them as a no-op.
    """
    return _validate(XP_GRANT_SCHEMA, data)


def validate_badge_context(data: Any) -> tuple[dict[str, Any], dict[str, str]]:
    """Validate a badge context; missing counters default to 0."""
    return _validate(BADGE_CONTEXT_SCHEMA, data)


def validate_options(data: Any) -> tuple[dict[str, Any], dict[str, str]]:
    """Validate manager options and fill in defaults."""
    return _validate(OPTIONS_SCHEMA, data if data is not None else {})


def validate_minigame_result(data: Any) -> tuple[dict[str, Any], dict[str, str]]:
    """Validate a minigame result before it is recorded."""
    return _validate(MINIGAME_RESULT_SCHEMA, data)


def build_minigame_result(
    data: dict[str, Any], now: datetime | None = None
) -> MinigameResult:
    """Build a stored minigame entry from validated input.

    Generates an id when none was supplied and stamps played_at.
    """
    result: dict[str, Any] = dict(data)
    result[const.DATA_MINIGAME_ID] = data.get(const.DATA_MINIGAME_ID) or str(uuid.uuid4())
    result[const.DATA_MINIGAME_PLAYED_AT] = data.get(
        const.DATA_MINIGAME_PLAYED_AT
    ) or dt_to_iso(dt_resolve_now(now))
    return cast("MinigameResult", result)

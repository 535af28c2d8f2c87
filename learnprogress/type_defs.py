"""Type definitions for learnprogress data structures.

ARCHITECTURE DECISION: TypedDict for the persisted blob
=======================================================

The persisted state is a plain JSON document, so every structure stored in it
is declared as a TypedDict rather than a dataclass. Engines mutate these dicts
in place on a draft copy, and the sanitizer in data_builders.py rebuilds them
field by field on load.

Keys are the literal values of the DATA_* constants in const.py. Engines access
fields through those constants; TypedDict is STATIC ANALYSIS ONLY and does not
enforce types at runtime. All runtime defaulting (missing keys, wrong types)
happens in data_builders.ensure_state().

IMPORTANT: This file must NOT import from engines or managers to avoid
circular dependencies. Only typing machinery is imported here.
"""

from typing import Any, Literal, NotRequired, TypedDict

# =============================================================================
# Type Aliases (for readability)
# =============================================================================

ISODatetime = str  # ISO 8601 datetime string "2026-01-18T12:30:00+00:00"
ISODate = str  # ISO 8601 date string (no time) "2026-01-18"
CEFRLevel = str  # One of const.CEFR_LEVELS
ActivityId = str  # Opaque activity identifier, e.g. "conversation"
GoalId = str  # Opaque learning goal identifier, e.g. "fluency"

StreakPeriod = Literal["daily", "weekly"]
MissionStatus = Literal["locked", "active", "completed", "expired"]
SeasonalEventStatus = Literal["upcoming", "active", "completed"]
NotificationPermission = Literal["default", "granted", "denied"]


# =============================================================================
# External inputs
# =============================================================================


class SessionEvent(TypedDict):
    """A completed learning session, the main trigger into the engine."""

    level: CEFRLevel
    activity: ActivityId
    goal: GoalId


class BadgeContext(TypedDict):
    """Snapshot the badge predicates are evaluated against.

    Computed by the caller (or by ProgressionManager from lifetime stats).
    """

    level: int
    total_sessions: int
    daily_streak: int
    missions_completed: int


class NotificationPayload(TypedDict):
    """Payload handed to the notification sink for display."""

    title: str
    body: str
    tag: str
    data: dict[str, Any]


# =============================================================================
# Streaks
# =============================================================================


class StreakLogEntry(TypedDict):
    """One streak transition, kept in a bounded history."""

    date: ISODate
    period: StreakPeriod
    delta: int
    reason: NotRequired[str | None]


class StreakStats(TypedDict):
    """Counters for a single streak period."""

    period: StreakPeriod
    current: int
    longest: int
    last_completed_date: NotRequired[ISODate | None]
    history: list[StreakLogEntry]


class StreakState(TypedDict):
    """Daily and weekly streak stats."""

    daily: StreakStats
    weekly: StreakStats
    last_updated: ISODatetime


class StreakMilestoneUnlock(TypedDict):
    """A milestone crossed by the current update."""

    period: StreakPeriod
    value: int
    reached_at: ISODatetime


class StreakDeadline(TypedDict):
    """Deadline by which the next session must happen to keep a streak."""

    period: StreakPeriod
    deadline: ISODatetime
    lead_hours: int


class StreakUpdateSummary(TypedDict):
    """Result of StreakEngine.apply_session()."""

    daily: StreakStats
    weekly: StreakStats
    milestones_unlocked: list[StreakMilestoneUnlock]
    deadlines: list[StreakDeadline]


# =============================================================================
# XP
# =============================================================================


class XPEntry(TypedDict):
    """A single XP grant in the XP ledger."""

    id: str
    amount: int
    source: str
    created_at: ISODatetime
    metadata: NotRequired[dict[str, Any] | None]


class XPState(TypedDict):
    """Experience totals. level/level_progress are derived from total."""

    total: int
    level: int
    level_progress: float
    history: list[XPEntry]
    last_earned_at: NotRequired[ISODatetime | None]


class XPLevelProgress(TypedDict):
    """Read-only projection of a total onto the level curve."""

    level: int
    total_xp: int
    xp_into_level: int
    xp_for_next_level: int
    progress: float


class XPUpdateResult(TypedDict):
    """Result of XPEngine.grant_xp()."""

    amount: int
    total: int
    previous_level: int
    new_level: int
    xp_into_level: int
    xp_for_next_level: int
    progress: float


# =============================================================================
# Missions
# =============================================================================


class MissionObjective(TypedDict):
    """A measurable objective inside a mission."""

    id: str
    description: str
    metric: str
    progress: int
    target: int


class MissionReward(TypedDict):
    """Reward granted when a mission or event completes."""

    xp: int


class MissionProgress(TypedDict):
    """A time-boxed mission assigned from a template."""

    id: str
    template_id: NotRequired[str]
    title: str
    description: str
    level: CEFRLevel
    activity: NotRequired[ActivityId | None]
    goal: NotRequired[GoalId | None]
    status: MissionStatus
    assigned_at: ISODatetime
    expires_at: NotRequired[ISODatetime | None]
    completed_at: NotRequired[ISODatetime | None]
    objectives: list[MissionObjective]
    reward: MissionReward


class MissionTemplate(TypedDict):
    """Static catalog entry missions are instantiated from."""

    id: str
    title: str
    description: str
    metric: str
    target: int
    activity: NotRequired[ActivityId]
    goal: NotRequired[GoalId]
    reward_xp: int


# =============================================================================
# Badges
# =============================================================================


class BadgeDefinition(TypedDict):
    """Static badge catalog entry.

    criterion_type selects the predicate handler in BadgeEngine; the badge
    unlocks when the context value is >= threshold.
    """

    id: str
    name: str
    description: str
    category: str
    criterion_type: str
    threshold: int
    hint: NotRequired[str]
    is_secret: NotRequired[bool]


class CriterionResult(TypedDict):
    """Result of evaluating one badge criterion against a context."""

    criterion_type: str
    met: bool
    progress: float
    threshold: int
    current_value: int
    reason: str


class BadgeProgress(TypedDict):
    """Ledger / catalog entry for a badge."""

    id: str
    name: str
    description: str
    category: str
    unlocked_at: NotRequired[ISODatetime | None]
    progress: NotRequired[float]
    target: NotRequired[int]
    hint: NotRequired[str | None]
    is_secret: NotRequired[bool | None]


# =============================================================================
# Minigames
# =============================================================================


class MinigameResult(TypedDict):
    """A single minigame play."""

    id: str
    type: str
    conversation_id: NotRequired[str | None]
    score: float
    max_score: float
    played_at: ISODatetime
    duration_ms: NotRequired[int | None]
    metadata: NotRequired[dict[str, Any] | None]


# =============================================================================
# Seasonal events
# =============================================================================


class SeasonalEventDefinition(TypedDict):
    """Recurring calendar window definition. End may precede start (wraps)."""

    id: str
    name: str
    description: str
    start_month: int
    start_day: int
    end_month: int
    end_day: int
    theme: str
    target_sessions: int
    focus_activity: NotRequired[ActivityId]
    reward_xp: int


class SeasonalEventProgress(TypedDict):
    """Progress for the current occurrence of a seasonal event."""

    id: str
    name: str
    description: str
    theme: NotRequired[str | None]
    starts_at: ISODatetime
    ends_at: ISODatetime
    status: SeasonalEventStatus
    progress: int
    rewards: NotRequired[MissionReward]
    metadata: dict[str, Any]


# =============================================================================
# Notifications
# =============================================================================


class NotificationReminder(TypedDict):
    """A scheduled reminder awaiting delivery."""

    id: str
    type: str
    scheduled_for: ISODatetime
    created_at: ISODatetime
    delivered: bool
    payload: NotRequired[dict[str, Any] | None]


class NotificationState(TypedDict):
    """Notification permission plus the reminder queue."""

    permission: NotificationPermission
    last_prompt_at: NotRequired[ISODatetime | None]
    reminders: list[NotificationReminder]


# =============================================================================
# Top-level state
# =============================================================================


class LifetimeStats(TypedDict):
    """Lifetime counters the engine owns for badge context building."""

    total_sessions: int
    missions_completed: int
    sessions_by_level: dict[str, dict[str, int]]


class ProgressSnapshot(TypedDict):
    """Opaque progress snapshot pushed by the caller for display."""

    data: dict[str, Any]
    updated_at: ISODatetime


class GamificationData(TypedDict):
    """The persisted blob, versioned by `version`."""

    version: int
    streaks: StreakState
    xp: XPState
    missions: list[MissionProgress]
    badges: list[BadgeProgress]
    minigames: list[MinigameResult]
    seasonal_events: list[SeasonalEventProgress]
    notifications: NotificationState
    stats: LifetimeStats
    last_progress_snapshot: NotRequired[ProgressSnapshot | None]
    last_synced_at: ISODatetime


class SessionOutcome(TypedDict):
    """Everything a completed session changed, for UI display.

    Returned by ProgressionManager.complete_session().
    """

    accepted: bool
    errors: dict[str, str]
    streaks: StreakUpdateSummary | None
    completed_missions: list[MissionProgress]
    unlocked_badges: list[BadgeProgress]
    completed_events: list[SeasonalEventProgress]
    xp: list[XPUpdateResult]

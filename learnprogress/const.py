# File: const.py
"""Constants for the learnprogress engine.

This file centralizes persisted data keys, defaults, enumerations and tuning
values used across engines, data builders and managers. Engines refer to
persisted fields exclusively through the DATA_* constants below so the stored
JSON shape is defined in one place.
"""

import logging

# ------------------------------------------------------------------------------------------------
# General
# ------------------------------------------------------------------------------------------------
LEARNPROGRESS_TITLE = "learnprogress"

# Logger
LOGGER = logging.getLogger(__package__)

# Storage and Versioning
STORAGE_KEY = "gamification_state"
DATA_VERSION_CURRENT = 1

# ------------------------------------------------------------------------------------------------
# Configuration Keys (ProgressionManager options)
# ------------------------------------------------------------------------------------------------
CONF_SESSION_XP = "session_xp"
CONF_DAILY_REMINDER_LEAD_HOURS = "daily_reminder_lead_hours"
CONF_WEEKLY_REMINDER_LEAD_HOURS = "weekly_reminder_lead_hours"
CONF_REOPEN_COMPLETED_SEASONAL_EVENTS = "reopen_completed_seasonal_events"
CONF_MISSION_POOL_SIZE = "mission_pool_size"
CONF_MISSION_EXPIRY_HOURS = "mission_expiry_hours"

# ------------------------------------------------------------------------------------------------
# Defaults
# ------------------------------------------------------------------------------------------------
DEFAULT_SESSION_XP = 25
DEFAULT_DAILY_REMINDER_LEAD_HOURS = 6
DEFAULT_WEEKLY_REMINDER_LEAD_HOURS = 24
DEFAULT_REOPEN_COMPLETED_SEASONAL_EVENTS = False
DEFAULT_MISSION_POOL_SIZE = 3
DEFAULT_MISSION_EXPIRY_HOURS = 24
DEFAULT_SEASONAL_TARGET_SESSIONS = 5
DEFAULT_REMINDER_CLAMP_MINUTES = 5
DEFAULT_ZERO = 0

# History caps (oldest entries dropped first)
MAX_STREAK_HISTORY = 120
MAX_XP_HISTORY = 250
MAX_MINIGAME_HISTORY = 50
MAX_DELIVERED_REMINDERS = 20

# Level curve
LEVEL_CAP = 50
BASE_LEVEL_REQUIREMENT = 240
LEVEL_GROWTH = 80

# Daily streak values that unlock a milestone
STREAK_MILESTONES = (7, 14, 30)

# ------------------------------------------------------------------------------------------------
# Enumerations
# ------------------------------------------------------------------------------------------------
CEFR_LEVELS = ("A1", "A2", "B1", "B2", "C1", "C2")

STREAK_PERIOD_DAILY = "daily"
STREAK_PERIOD_WEEKLY = "weekly"
STREAK_PERIODS = (STREAK_PERIOD_DAILY, STREAK_PERIOD_WEEKLY)

STREAK_REASON_START = "start"
STREAK_REASON_INCREMENT = "increment"
STREAK_REASON_RESET = "reset"
STREAK_REASON_MILESTONE_PREFIX = "milestone:"

XP_SOURCE_SESSION = "session"
XP_SOURCE_MISSION = "mission"
XP_SOURCE_BADGE = "badge"
XP_SOURCE_MINIGAME = "minigame"
XP_SOURCE_BONUS = "bonus"
XP_SOURCES = (
    XP_SOURCE_SESSION,
    XP_SOURCE_MISSION,
    XP_SOURCE_BADGE,
    XP_SOURCE_MINIGAME,
    XP_SOURCE_BONUS,
)

MISSION_STATUS_LOCKED = "locked"
MISSION_STATUS_ACTIVE = "active"
MISSION_STATUS_COMPLETED = "completed"
MISSION_STATUS_EXPIRED = "expired"

MISSION_METRIC_SESSIONS = "sessions"
MISSION_METRIC_WORDS = "words"
MISSION_METRIC_DURATION = "duration"
MISSION_METRIC_CUSTOM = "custom"

BADGE_CATEGORY_SKILL = "skill"
BADGE_CATEGORY_CONSISTENCY = "consistency"
BADGE_CATEGORY_EVENT = "event"
BADGE_CATEGORY_SEASONAL = "seasonal"
BADGE_CATEGORY_SPECIAL = "special"

BADGE_CRITERION_TOTAL_SESSIONS = "total_sessions"
BADGE_CRITERION_DAILY_STREAK = "daily_streak"
BADGE_CRITERION_LEVEL = "level"
BADGE_CRITERION_MISSIONS_COMPLETED = "missions_completed"

SEASONAL_STATUS_UPCOMING = "upcoming"
SEASONAL_STATUS_ACTIVE = "active"
SEASONAL_STATUS_COMPLETED = "completed"

REMINDER_TYPE_STREAK_WARNING = "streak-warning"
REMINDER_TYPE_MISSION_DEADLINE = "mission-deadline"
REMINDER_TYPE_SEASONAL_EVENT = "seasonal-event"
REMINDER_TYPE_DAILY_CHECK_IN = "daily-check-in"

NOTIFICATION_PERMISSION_DEFAULT = "default"
NOTIFICATION_PERMISSION_GRANTED = "granted"
NOTIFICATION_PERMISSION_DENIED = "denied"
NOTIFICATION_PERMISSIONS = (
    NOTIFICATION_PERMISSION_DEFAULT,
    NOTIFICATION_PERMISSION_GRANTED,
    NOTIFICATION_PERMISSION_DENIED,
)

MINIGAME_TYPES = ("vocab-quiz", "cloze", "memory", "custom")

# Notification tags
NOTIFY_TAG_PREFIX = "learnprogress"
NOTIFY_TAG_TYPE_STREAK = "streak"

# ------------------------------------------------------------------------------------------------
# Persisted Data Keys
# ------------------------------------------------------------------------------------------------
# Top level
DATA_VERSION = "version"
DATA_STREAKS = "streaks"
DATA_XP = "xp"
DATA_MISSIONS = "missions"
DATA_BADGES = "badges"
DATA_MINIGAMES = "minigames"
DATA_SEASONAL_EVENTS = "seasonal_events"
DATA_NOTIFICATIONS = "notifications"
DATA_STATS = "stats"
DATA_LAST_PROGRESS_SNAPSHOT = "last_progress_snapshot"
DATA_LAST_SYNCED_AT = "last_synced_at"

# Streaks
DATA_STREAKS_DAILY = STREAK_PERIOD_DAILY
DATA_STREAKS_WEEKLY = STREAK_PERIOD_WEEKLY
DATA_STREAKS_LAST_UPDATED = "last_updated"
DATA_STREAK_PERIOD = "period"
DATA_STREAK_CURRENT = "current"
DATA_STREAK_LONGEST = "longest"
DATA_STREAK_LAST_COMPLETED_DATE = "last_completed_date"
DATA_STREAK_HISTORY = "history"
DATA_STREAK_LOG_DATE = "date"
DATA_STREAK_LOG_PERIOD = "period"
DATA_STREAK_LOG_DELTA = "delta"
DATA_STREAK_LOG_REASON = "reason"

# XP
DATA_XP_TOTAL = "total"
DATA_XP_LEVEL = "level"
DATA_XP_LEVEL_PROGRESS = "level_progress"
DATA_XP_HISTORY = "history"
DATA_XP_LAST_EARNED_AT = "last_earned_at"
DATA_XP_ENTRY_ID = "id"
DATA_XP_ENTRY_AMOUNT = "amount"
DATA_XP_ENTRY_SOURCE = "source"
DATA_XP_ENTRY_CREATED_AT = "created_at"
DATA_XP_ENTRY_METADATA = "metadata"

# Missions
DATA_MISSION_ID = "id"
DATA_MISSION_TEMPLATE_ID = "template_id"
DATA_MISSION_TITLE = "title"
DATA_MISSION_DESCRIPTION = "description"
DATA_MISSION_LEVEL = "level"
DATA_MISSION_ACTIVITY = "activity"
DATA_MISSION_GOAL = "goal"
DATA_MISSION_STATUS = "status"
DATA_MISSION_ASSIGNED_AT = "assigned_at"
DATA_MISSION_EXPIRES_AT = "expires_at"
DATA_MISSION_COMPLETED_AT = "completed_at"
DATA_MISSION_OBJECTIVES = "objectives"
DATA_MISSION_REWARD = "reward"
DATA_OBJECTIVE_ID = "id"
DATA_OBJECTIVE_DESCRIPTION = "description"
DATA_OBJECTIVE_METRIC = "metric"
DATA_OBJECTIVE_PROGRESS = "progress"
DATA_OBJECTIVE_TARGET = "target"
DATA_REWARD_XP = "xp"

# Badges
DATA_BADGE_ID = "id"
DATA_BADGE_NAME = "name"
DATA_BADGE_DESCRIPTION = "description"
DATA_BADGE_CATEGORY = "category"
DATA_BADGE_UNLOCKED_AT = "unlocked_at"
DATA_BADGE_HINT = "hint"
DATA_BADGE_IS_SECRET = "is_secret"
DATA_BADGE_PROGRESS = "progress"
DATA_BADGE_TARGET = "target"

# Minigames
DATA_MINIGAME_ID = "id"
DATA_MINIGAME_TYPE = "type"
DATA_MINIGAME_CONVERSATION_ID = "conversation_id"
DATA_MINIGAME_SCORE = "score"
DATA_MINIGAME_MAX_SCORE = "max_score"
DATA_MINIGAME_PLAYED_AT = "played_at"
DATA_MINIGAME_DURATION_MS = "duration_ms"
DATA_MINIGAME_METADATA = "metadata"

# Seasonal events
DATA_EVENT_ID = "id"
DATA_EVENT_NAME = "name"
DATA_EVENT_DESCRIPTION = "description"
DATA_EVENT_THEME = "theme"
DATA_EVENT_STARTS_AT = "starts_at"
DATA_EVENT_ENDS_AT = "ends_at"
DATA_EVENT_STATUS = "status"
DATA_EVENT_PROGRESS = "progress"
DATA_EVENT_REWARDS = "rewards"
DATA_EVENT_METADATA = "metadata"
DATA_EVENT_TARGET_SESSIONS = "target_sessions"
DATA_EVENT_FOCUS_ACTIVITY = "focus_activity"

# Notifications
DATA_NOTIFICATIONS_PERMISSION = "permission"
DATA_NOTIFICATIONS_LAST_PROMPT_AT = "last_prompt_at"
DATA_NOTIFICATIONS_REMINDERS = "reminders"
DATA_REMINDER_ID = "id"
DATA_REMINDER_TYPE = "type"
DATA_REMINDER_SCHEDULED_FOR = "scheduled_for"
DATA_REMINDER_CREATED_AT = "created_at"
DATA_REMINDER_DELIVERED = "delivered"
DATA_REMINDER_PAYLOAD = "payload"
DATA_REMINDER_PAYLOAD_PERIOD = "period"
DATA_REMINDER_PAYLOAD_DEADLINE = "deadline"
DATA_REMINDER_PAYLOAD_LEAD_HOURS = "lead_hours"

# Lifetime stats
DATA_STATS_TOTAL_SESSIONS = "total_sessions"
DATA_STATS_MISSIONS_COMPLETED = "missions_completed"
DATA_STATS_SESSIONS_BY_LEVEL = "sessions_by_level"

# Progress snapshot
DATA_SNAPSHOT_DATA = "data"
DATA_SNAPSHOT_UPDATED_AT = "updated_at"

# ------------------------------------------------------------------------------------------------
# Input Field Keys (session events, XP grants, badge context)
# ------------------------------------------------------------------------------------------------
FIELD_LEVEL = "level"
FIELD_ACTIVITY = "activity"
FIELD_GOAL = "goal"
FIELD_AMOUNT = "amount"
FIELD_SOURCE = "source"
FIELD_METADATA = "metadata"
FIELD_TOTAL_SESSIONS = "total_sessions"
FIELD_DAILY_STREAK = "daily_streak"
FIELD_MISSIONS_COMPLETED = "missions_completed"

# ------------------------------------------------------------------------------------------------
# Validation Error Keys
# ------------------------------------------------------------------------------------------------
ERROR_INVALID_VALUE = "invalid_value"
ERROR_REQUIRED = "required"

"""Engine modules for learnprogress.

Contains the stateless progression engines:
- xp_engine: XP ledger and level curve
- streak_engine: Daily/weekly streak state machine and deadlines
- mission_engine: Rotating daily mission pool
- badge_engine: Badge criterion registry and unlock ledger
- seasonal_engine: Recurring calendar-window events
- reminder_engine: Streak-warning reminder queue
"""

# Use relative imports within package to avoid mypy module resolution issues
from .badge_engine import BADGE_DEFINITIONS, BadgeEngine
from .mission_engine import MISSION_TEMPLATES, MissionEngine
from .reminder_engine import ReminderEngine
from .seasonal_engine import SEASONAL_EVENT_DEFINITIONS, SeasonalEngine
from .streak_engine import StreakEngine
from .xp_engine import LEVEL_THRESHOLDS, XPEngine

__all__ = [
    "BADGE_DEFINITIONS",
    "LEVEL_THRESHOLDS",
    "MISSION_TEMPLATES",
    "SEASONAL_EVENT_DEFINITIONS",
    "BadgeEngine",
    "MissionEngine",
    "ReminderEngine",
    "SeasonalEngine",
    "StreakEngine",
    "XPEngine",
]

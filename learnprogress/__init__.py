"""learnprogress: progression engine for a language-learning tutor.

Turns completed learning sessions into XP and levels, daily and weekly
streaks, rotating daily missions, badges and seasonal events, and schedules
streak-warning reminders.

Usage:
    from learnprogress import JsonFileStore, ProgressionManager

    manager = ProgressionManager(JsonFileStore("state.json"))
    manager.refresh_missions("B1")
    outcome = manager.complete_session(
        {"level": "B1", "activity": "conversation", "goal": "fluency"}
    )
"""

from .managers import NotificationManager, ProgressionManager
from .store import JsonFileStore, MemoryStore, ProgressionStoreError, ProgressStore

__all__ = [
    "JsonFileStore",
    "MemoryStore",
    "NotificationManager",
    "ProgressStore",
    "ProgressionManager",
    "ProgressionStoreError",
]

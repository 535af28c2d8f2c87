"""Manager modules for learnprogress.

Managers orchestrate workflows and coordinate between engines.
They are stateful and own persistence through the store.
"""

from .notification_manager import NotificationManager
from .progression_manager import ProgressionManager

__all__ = [
    "NotificationManager",
    "ProgressionManager",
]

# File: notification_manager.py
"""Notification Manager for learnprogress.

This manager handles outgoing reminder delivery:
- Polling the reminder queue for due streak warnings
- Building {title, body, tag, data} payloads
- Handing payloads to the caller-supplied sink
- Marking delivered reminders in a single transaction

Scheduling lives in ReminderEngine; this manager never creates reminders.
Delivery is driven by an external polling loop calling deliver_due().
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from .. import const
from ..engines.reminder_engine import ReminderEngine
from ..utils.dt_utils import dt_resolve_now

if TYPE_CHECKING:
    from collections.abc import Callable
    from datetime import datetime

    from ..type_defs import NotificationPayload, NotificationReminder
    from .progression_manager import ProgressionManager


class NotificationManager:
    """Delivers due reminders through a notification sink.

    The sink is any callable accepting a NotificationPayload. A sink that
    raises leaves its reminder pending so the next poll retries it.
    """

    def __init__(
        self,
        progression: ProgressionManager,
        sink: Callable[[NotificationPayload], None],
    ) -> None:
        """Initialize the manager.

        Args:
            progression: State container owning the reminder queue
            sink: Callable that displays a payload to the learner
        """
        self._progression = progression
        self._sink = sink

    @staticmethod
    def build_notification_tag(tag_type: str, *identifiers: str) -> str:
        """Build a notification tag string for smart replacement.

        A later notification with the same tag replaces the earlier one
        instead of stacking. Identifiers are truncated to 8 characters.

        Examples:
            build_notification_tag(const.NOTIFY_TAG_TYPE_STREAK, "daily")
            -> "learnprogress-streak-daily"

            build_notification_tag(const.NOTIFY_TAG_TYPE_STREAK)
            -> "learnprogress-streak"
        """
        if identifiers:
            truncated_ids = "-".join(identifier[:8] for identifier in identifiers)
            return f"{const.NOTIFY_TAG_PREFIX}-{tag_type}-{truncated_ids}"
        return f"{const.NOTIFY_TAG_PREFIX}-{tag_type}"

    @classmethod
    def build_payload(
        cls, reminder: NotificationReminder, now: datetime | None = None
    ) -> NotificationPayload:
        """Build the sink payload for a streak-warning reminder.

        Falls back to the daily period and the scheduled time when the
        reminder payload is incomplete.
        """
        payload = reminder.get(const.DATA_REMINDER_PAYLOAD)
        if not isinstance(payload, dict):
            payload = {}
        period = payload.get(const.DATA_REMINDER_PAYLOAD_PERIOD)
        if period not in const.STREAK_PERIODS:
            period = const.STREAK_PERIOD_DAILY
        deadline = payload.get(const.DATA_REMINDER_PAYLOAD_DEADLINE)
        if not isinstance(deadline, str):
            deadline = reminder.get(const.DATA_REMINDER_SCHEDULED_FOR)
        copy = ReminderEngine.build_streak_reminder_copy(period, deadline, now)
        return {
            "title": copy["title"],
            "body": copy["body"],
            "tag": cls.build_notification_tag(const.NOTIFY_TAG_TYPE_STREAK, period),
            "data": {
                "reminder_id": reminder[const.DATA_REMINDER_ID],
                "period": period,
            },
        }

    def deliver_due(self, now: datetime | None = None) -> list[NotificationPayload]:
        """Deliver every due reminder and mark the delivered ones.

        Nothing is sent unless notification permission is granted.

        Returns:
            Payloads the sink accepted
        """
        current_time = dt_resolve_now(now)
        permission = self._progression.data[const.DATA_NOTIFICATIONS][
            const.DATA_NOTIFICATIONS_PERMISSION
        ]
        if permission != const.NOTIFICATION_PERMISSION_GRANTED:
            return []

        delivered_ids: list[str] = []
        delivered: list[NotificationPayload] = []
        for reminder in self._progression.due_reminders(current_time):
            payload = self.build_payload(reminder, current_time)
            try:
                self._sink(payload)
            except Exception as err:
                # Broad exception allowed: the sink is caller code; the reminder
                # stays pending and is retried on the next poll.
                const.LOGGER.error(
                    "Failed to deliver reminder %s: %s", reminder[const.DATA_REMINDER_ID], err
                )
                continue
            delivered_ids.append(reminder[const.DATA_REMINDER_ID])
            delivered.append(payload)

        if delivered_ids:
            self._progression.mark_reminders_delivered(delivered_ids, current_time)
            const.LOGGER.debug("Notifications: delivered %s reminder(s)", len(delivered_ids))
        return delivered

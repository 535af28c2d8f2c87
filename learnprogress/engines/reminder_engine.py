"""Reminder Engine - Pure logic for streak-warning reminder scheduling.

Provides stateless functions for:
- Computing when a reminder should fire relative to a streak deadline
- Evict-before-insert scheduling (one live streak warning per period)
- Querying pending / due reminders and marking them delivered
- Building the human-readable reminder copy

Delivery itself (calling the notification sink) is owned by
NotificationManager; this engine only mutates the reminder queue on a draft.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import TYPE_CHECKING
import uuid

from .. import const
from ..utils.dt_utils import (
    as_utc,
    dt_parse,
    dt_resolve_now,
    dt_time_until,
    dt_to_iso,
)

if TYPE_CHECKING:
    from collections.abc import Iterable

    from ..type_defs import GamificationData, NotificationReminder


class ReminderEngine:
    """Pure logic engine for the reminder queue.

    Invariant: at most one undelivered streak-warning reminder exists per
    streak period. Scheduling a new one evicts the old one first.
    """

    @staticmethod
    def calculate_reminder_time(
        deadline: datetime, lead_hours: float, now: datetime | None = None
    ) -> datetime:
        """Return deadline - lead_hours, clamped to a few minutes from now.

        When the computed time is already past (deadline very close), the
        reminder is pulled forward to now + DEFAULT_REMINDER_CLAMP_MINUTES so
        it still fires.
        """
        current_time = dt_resolve_now(now)
        target = as_utc(deadline) - timedelta(hours=lead_hours)
        if target <= current_time:
            return current_time + timedelta(minutes=const.DEFAULT_REMINDER_CLAMP_MINUTES)
        return target

    @staticmethod
    def _is_streak_warning_for(reminder: NotificationReminder, period: str) -> bool:
        payload = reminder.get(const.DATA_REMINDER_PAYLOAD)
        if not isinstance(payload, dict):
            return False
        return (
            reminder.get(const.DATA_REMINDER_TYPE) == const.REMINDER_TYPE_STREAK_WARNING
            and payload.get(const.DATA_REMINDER_PAYLOAD_PERIOD) == period
        )

    @staticmethod
    def schedule_streak_reminder(
        draft: GamificationData,
        period: str,
        deadline: datetime,
        lead_hours: float,
        now: datetime | None = None,
    ) -> NotificationReminder:
        """Schedule (or replace) the streak warning for a period.

        Args:
            draft: Mutable state (reminder queue modified in place)
            period: const.STREAK_PERIOD_DAILY or const.STREAK_PERIOD_WEEKLY
            deadline: Moment the streak breaks without another session
            lead_hours: How long before the deadline to warn
            now: Optional current time override for deterministic tests

        Returns:
            The newly scheduled reminder
        """
        current_time = dt_resolve_now(now)
        reminder: NotificationReminder = {
            const.DATA_REMINDER_ID: str(uuid.uuid4()),
            const.DATA_REMINDER_TYPE: const.REMINDER_TYPE_STREAK_WARNING,
            const.DATA_REMINDER_SCHEDULED_FOR: dt_to_iso(
                ReminderEngine.calculate_reminder_time(deadline, lead_hours, current_time)
            ),
            const.DATA_REMINDER_CREATED_AT: dt_to_iso(current_time),
            const.DATA_REMINDER_DELIVERED: False,
            const.DATA_REMINDER_PAYLOAD: {
                const.DATA_REMINDER_PAYLOAD_PERIOD: period,
                const.DATA_REMINDER_PAYLOAD_DEADLINE: dt_to_iso(deadline),
                const.DATA_REMINDER_PAYLOAD_LEAD_HOURS: lead_hours,
            },
        }

        notifications = draft[const.DATA_NOTIFICATIONS]
        notifications[const.DATA_NOTIFICATIONS_REMINDERS] = [
            existing
            for existing in notifications[const.DATA_NOTIFICATIONS_REMINDERS]
            if existing.get(const.DATA_REMINDER_DELIVERED)
            or not ReminderEngine._is_streak_warning_for(existing, period)
        ]
        notifications[const.DATA_NOTIFICATIONS_REMINDERS].append(reminder)
        ReminderEngine.prune_delivered(draft)

        const.LOGGER.debug(
            "Reminder: scheduled %s streak warning for %s (deadline %s)",
            period,
            reminder[const.DATA_REMINDER_SCHEDULED_FOR],
            reminder[const.DATA_REMINDER_PAYLOAD][const.DATA_REMINDER_PAYLOAD_DEADLINE],
        )
        return reminder

    @staticmethod
    def prune_delivered(
        draft: GamificationData, max_entries: int = const.MAX_DELIVERED_REMINDERS
    ) -> None:
        """Drop the oldest delivered reminders beyond max_entries.

        Pending reminders are never pruned.
        """
        reminders = draft[const.DATA_NOTIFICATIONS][const.DATA_NOTIFICATIONS_REMINDERS]
        delivered = [r for r in reminders if r.get(const.DATA_REMINDER_DELIVERED)]
        excess = len(delivered) - max_entries
        if excess <= 0:
            return
        dropped = {id(r) for r in delivered[:excess]}
        reminders[:] = [r for r in reminders if id(r) not in dropped]

    @staticmethod
    def pending_reminders(state: GamificationData) -> list[NotificationReminder]:
        """Return reminders that have not been delivered yet."""
        return [
            reminder
            for reminder in state[const.DATA_NOTIFICATIONS][const.DATA_NOTIFICATIONS_REMINDERS]
            if not reminder.get(const.DATA_REMINDER_DELIVERED)
        ]

    @staticmethod
    def is_reminder_due(
        reminder: NotificationReminder, now: datetime | None = None
    ) -> bool:
        """Return True if the reminder's scheduled time has arrived."""
        scheduled = dt_parse(reminder.get(const.DATA_REMINDER_SCHEDULED_FOR))
        if scheduled is None:
            return False
        return scheduled <= dt_resolve_now(now)

    @staticmethod
    def due_reminders(
        state: GamificationData, now: datetime | None = None
    ) -> list[NotificationReminder]:
        """Return undelivered reminders whose scheduled time has arrived."""
        current_time = dt_resolve_now(now)
        return [
            reminder
            for reminder in ReminderEngine.pending_reminders(state)
            if ReminderEngine.is_reminder_due(reminder, current_time)
        ]

    @staticmethod
    def mark_delivered(draft: GamificationData, reminder_ids: Iterable[str]) -> int:
        """Mark reminders delivered by id. Returns how many were updated."""
        wanted = set(reminder_ids)
        updated = 0
        for reminder in draft[const.DATA_NOTIFICATIONS][const.DATA_NOTIFICATIONS_REMINDERS]:
            if reminder.get(const.DATA_REMINDER_ID) in wanted and not reminder.get(
                const.DATA_REMINDER_DELIVERED
            ):
                reminder[const.DATA_REMINDER_DELIVERED] = True
                updated += 1
        return updated

    @staticmethod
    def build_streak_reminder_copy(
        period: str, deadline: str | datetime | None, now: datetime | None = None
    ) -> dict[str, str]:
        """Build the title/body shown for a streak warning.

        The countdown reads "now" once the deadline has passed.
        """
        label = "daily streak" if period == const.STREAK_PERIOD_DAILY else "weekly streak"
        countdown = dt_time_until(dt_parse(deadline), now)
        expiry = f"in {countdown}" if countdown else "now"
        return {
            "title": f"Heads up: your {label} is at stake",
            "body": f"Your {label} expires {expiry}. Start a session to keep it alive.",
        }

"""
Reminder scheduling for Ibadah events.

Turns events plus user preferences into concrete reminder requests and hands
them, one at a time, to a delivery backend. Every pass replaces the previously
scheduled set in full.
"""

import datetime
import logging
import re
import uuid
from typing import Dict, Iterable, List, Optional, Protocol
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from .models import (
    AFTER_FARD,
    PRAYER_NAMES,
    IbadahCategory,
    IbadahEvent,
    NotificationRequest,
    PrayerTimes,
    ScheduledNotification,
    UserPreferences,
)
from .renderer import MessageRenderer

LOGGER = logging.getLogger(__name__)

TIME_PATTERN = re.compile(r"^(\d{1,2}):(\d{2})$")
DAILY_REMINDER_TIME = datetime.time(20, 0)
AFTER_FARD_DELAY = datetime.timedelta(minutes=30)
TEST_NOTIFICATION_DELAY = datetime.timedelta(seconds=5)


class NotificationBackend(Protocol):
    async def schedule(self, request: NotificationRequest) -> str:
        ...

    async def cancel(self, notification_id: str) -> None:
        ...

    async def cancel_all(self) -> None:
        ...


class InMemoryNotificationBackend:
    """Keeps pending requests in a dict keyed by notification id."""

    def __init__(self) -> None:
        self.pending: Dict[str, NotificationRequest] = {}
        self.cancel_all_calls = 0

    async def schedule(self, request: NotificationRequest) -> str:
        notification_id = uuid.uuid4().hex
        self.pending[notification_id] = request
        return notification_id

    async def cancel(self, notification_id: str) -> None:
        self.pending.pop(notification_id, None)

    async def cancel_all(self) -> None:
        self.cancel_all_calls += 1
        self.pending.clear()

    def requests(self) -> List[NotificationRequest]:
        return sorted(self.pending.values(), key=lambda request: request.trigger_at)


def parse_clock_time(value: Optional[str]) -> Optional[datetime.time]:
    """Parses 'H:MM' / 'HH:MM'. Returns None for anything else."""
    match = TIME_PATTERN.match(value or "")
    if not match:
        return None
    hours, minutes = int(match.group(1)), int(match.group(2))
    if hours > 23 or minutes > 59:
        return None
    return datetime.time(hours, minutes)


def resolve_reminder_time(
    token: str,
    event_start: datetime.datetime,
    prayer_times: PrayerTimes,
) -> Optional[datetime.datetime]:
    """
    Resolves a reminder token against an event starting at ``event_start``.

    Prayer names resolve to that prayer on the event day. 'HH:MM' resolves to
    that time on the event day, moved to the previous day unless it is strictly
    before the event start. Unknown tokens (including 'after_fard') give None.
    """
    tz = event_start.tzinfo
    event_day = event_start.date()
    if token in PRAYER_NAMES:
        clock = parse_clock_time(prayer_times.get(token))
        if clock is None:
            return None
        return datetime.datetime.combine(event_day, clock, tzinfo=tz)

    clock = parse_clock_time(token)
    if clock is None:
        return None
    reminder = datetime.datetime.combine(event_day, clock, tzinfo=tz)
    if reminder >= event_start:
        reminder = datetime.datetime.combine(event_day - datetime.timedelta(days=1), clock, tzinfo=tz)
    return reminder


def _days(start: datetime.date, end: datetime.date) -> Iterable[datetime.date]:
    day = start
    while day <= end:
        yield day
        day += datetime.timedelta(days=1)


class NotificationScheduler:
    def __init__(self, backend: NotificationBackend, renderer: Optional[MessageRenderer] = None):
        self._backend = backend
        self._renderer = renderer or MessageRenderer()
        self._scheduled: Dict[str, ScheduledNotification] = {}

    async def schedule_event_notifications(
        self,
        events: List[IbadahEvent],
        preferences: UserPreferences,
        *,
        now: Optional[datetime.datetime] = None,
    ) -> int:
        """Replaces all scheduled reminders with the ones derived from ``events``.

        Returns the number of reminders scheduled in this pass.
        """
        if not preferences.notifications.enabled:
            await self.cancel_all_notifications()
            LOGGER.info("Notifications disabled: all reminders cancelled")
            return 0

        # Resolved before cancelling so a bad zone leaves existing reminders alone.
        try:
            tz = ZoneInfo(preferences.timezone)
        except (ZoneInfoNotFoundError, ValueError):
            LOGGER.exception("Unknown timezone, reminders left unchanged: timezone=%s", preferences.timezone)
            return 0

        await self.cancel_all_notifications()

        current = self._current_time(now, tz)
        scheduled = 0
        for event in events:
            if not preferences.notifications.categories.get(event.category, False):
                continue
            scheduled += await self._schedule_for_event(event, preferences, tz, current)
        LOGGER.info("Reminder pass complete: events=%s scheduled=%s now=%s", len(events), scheduled, current.isoformat())
        return scheduled

    async def cancel_all_notifications(self) -> None:
        try:
            await self._backend.cancel_all()
        except Exception:
            LOGGER.exception("Failed to cancel notifications")
            return
        self._scheduled.clear()

    async def cancel_event_notifications(self, event_id: str) -> int:
        removed = 0
        for key, notification in list(self._scheduled.items()):
            if notification.event_id != event_id:
                continue
            try:
                await self._backend.cancel(notification.notification_id)
            except Exception:
                LOGGER.exception("Failed to cancel notification: key=%s event_id=%s", key, event_id)
                continue
            del self._scheduled[key]
            removed += 1
        LOGGER.info("Event notifications cancelled: event_id=%s removed=%s", event_id, removed)
        return removed

    def get_scheduled_notifications(self) -> List[ScheduledNotification]:
        return sorted(self._scheduled.values(), key=lambda item: item.scheduled_time)

    async def send_test_notification(
        self,
        *,
        now: Optional[datetime.datetime] = None,
        timezone: str = "UTC",
    ) -> Optional[str]:
        current = self._current_time(now, ZoneInfo(timezone))
        request = NotificationRequest(
            key="test",
            title="Test Notification 📱",
            body="Ibadah365 notifications are working!",
            data={"event_id": "test", "kind": "test"},
            trigger_at=current + TEST_NOTIFICATION_DELAY,
        )
        try:
            return await self._backend.schedule(request)
        except Exception:
            LOGGER.exception("Failed to schedule test notification")
            return None

    async def _schedule_for_event(
        self,
        event: IbadahEvent,
        preferences: UserPreferences,
        tz: ZoneInfo,
        now: datetime.datetime,
    ) -> int:
        settings = preferences.notifications
        language = preferences.language
        event_start = datetime.datetime.combine(event.date, datetime.time.min, tzinfo=tz)
        title = self._renderer.reminder_title(event, language)
        body = self._renderer.reminder_body(event, language)
        scheduled = 0

        default_at = event_start - datetime.timedelta(minutes=settings.reminder_times.before_event)
        if default_at > now:
            scheduled += await self._schedule(event, f"{event.id}-default", "reminder", title, body, default_at)

        tokens = event.reminder_times if event.reminder_times is not None else settings.reminder_times.custom_times
        for token in dict.fromkeys(tokens):
            reminder_at = resolve_reminder_time(token, event_start, preferences.prayer_times)
            if reminder_at is None or reminder_at <= now:
                continue
            scheduled += await self._schedule(event, f"{event.id}-{token}", "custom", title, body, reminder_at)

        if event.is_multi_day and event.end_date is not None:
            scheduled += await self._schedule_daily(event, language, tz, now)

        if event.category == IbadahCategory.TAKBEER and AFTER_FARD in (event.reminder_times or []):
            scheduled += await self._schedule_after_prayers(event, preferences, tz, now)

        return scheduled

    async def _schedule_daily(self, event: IbadahEvent, language: str, tz: ZoneInfo, now: datetime.datetime) -> int:
        scheduled = 0
        for day in _days(event.date, event.end_date):
            reminder_at = datetime.datetime.combine(day, DAILY_REMINDER_TIME, tzinfo=tz)
            if reminder_at <= now:
                continue
            scheduled += await self._schedule(
                event,
                f"{event.id}-daily-{day.isoformat()}",
                "daily",
                self._renderer.reminder_title(event, language, day),
                self._renderer.reminder_body(event, language, day),
                reminder_at,
                date=day.isoformat(),
            )
        return scheduled

    async def _schedule_after_prayers(
        self,
        event: IbadahEvent,
        preferences: UserPreferences,
        tz: ZoneInfo,
        now: datetime.datetime,
    ) -> int:
        language = preferences.language
        scheduled = 0
        for day in _days(event.date, event.end_date or event.date):
            for prayer in PRAYER_NAMES:
                clock = parse_clock_time(preferences.prayer_times.get(prayer))
                if clock is None:
                    LOGGER.debug("Prayer time not usable: prayer=%s value=%s", prayer, preferences.prayer_times.get(prayer))
                    continue
                reminder_at = datetime.datetime.combine(day, clock, tzinfo=tz) + AFTER_FARD_DELAY
                if reminder_at <= now:
                    continue
                scheduled += await self._schedule(
                    event,
                    f"{event.id}-takbeer-{prayer}-{day.isoformat()}",
                    "takbeer",
                    self._renderer.takbeer_title(language),
                    self._renderer.takbeer_body(prayer, language),
                    reminder_at,
                    prayer=prayer,
                )
        return scheduled

    async def _schedule(
        self,
        event: IbadahEvent,
        key: str,
        kind: str,
        title: str,
        body: str,
        trigger_at: datetime.datetime,
        **extra: str,
    ) -> int:
        request = NotificationRequest(
            key=key,
            title=title,
            body=body,
            data={"event_id": event.id, "kind": kind, **extra},
            trigger_at=trigger_at,
        )
        try:
            notification_id = await self._backend.schedule(request)
        except Exception:
            LOGGER.exception(
                "Failed to schedule notification: key=%s event_id=%s trigger_at=%s",
                key,
                event.id,
                trigger_at.isoformat(),
            )
            return 0
        self._scheduled[key] = ScheduledNotification(
            key=key,
            event_id=event.id,
            scheduled_time=trigger_at,
            notification_id=notification_id,
        )
        LOGGER.debug("Notification scheduled: key=%s trigger_at=%s", key, trigger_at.isoformat())
        return 1

    @staticmethod
    def _current_time(now: Optional[datetime.datetime], tz: ZoneInfo) -> datetime.datetime:
        current = now or datetime.datetime.now(tz=tz)
        if current.tzinfo is None:
            return current.replace(tzinfo=tz)
        return current.astimezone(tz)

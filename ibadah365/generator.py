import calendar
import datetime
import logging
from typing import Dict, List, Optional

from .events import IbadahEventsCalculator
from .hijri import CalendarConfig, HijriCalendar
from .models import HijriDate, IbadahEvent, UserPreferences
from .notifications import NotificationScheduler

LOGGER = logging.getLogger(__name__)

UPCOMING_GROUPS = {
    "today": ("Today", "اليوم"),
    "week": ("This Week", "هذا الأسبوع"),
    "month": ("This Month", "هذا الشهر"),
    "later": ("Later", "قريباً"),
}


def _add_months(day: datetime.date, months: int) -> datetime.date:
    month_index = day.month - 1 + months
    year, month = day.year + month_index // 12, month_index % 12 + 1
    return datetime.date(year, month, min(day.day, calendar.monthrange(year, month)[1]))


def events_on_day(events: List[IbadahEvent], day: datetime.date) -> List[IbadahEvent]:
    """Events dated on ``day`` plus multi-day events spanning it."""
    return [event for event in events if event.covers(day)]


class IbadahPlanner:
    """
    Ties user preferences to the calendar and event calculator.

    Preferences are applied explicitly: after changing them, call
    apply_preferences() and request events again.
    """

    def __init__(self, preferences: Optional[UserPreferences] = None, config: Optional[CalendarConfig] = None):
        self.preferences = preferences or UserPreferences()
        self.config = config or CalendarConfig()
        self.config.offset = self.preferences.hijri_offset
        self.calendar = HijriCalendar(self.config)
        self.calculator = IbadahEventsCalculator(self.calendar)

    def apply_preferences(self, preferences: UserPreferences) -> None:
        self.preferences = preferences
        self.calendar.set_offset(preferences.hijri_offset)

    def today_hijri(self, today: Optional[datetime.date] = None) -> HijriDate:
        return self.calendar.get_today_hijri(today)

    def events_for_range(self, start: datetime.date, end: datetime.date) -> List[IbadahEvent]:
        events = self.calculator.get_all_events_for_range(start, end)
        return [event for event in events if self.preferences.is_category_enabled(event.category)]

    def events_for_month(self, year: int, month: int) -> List[IbadahEvent]:
        first_day = datetime.date(year, month, 1)
        last_day = _add_months(first_day, 1) - datetime.timedelta(days=1)
        return self.events_for_range(first_day, last_day)

    def upcoming_events(self, today: Optional[datetime.date] = None, months: int = 3) -> List[IbadahEvent]:
        today = today or datetime.date.today()
        return self.events_for_range(today, _add_months(today, months))

    def group_upcoming(self, events: List[IbadahEvent], today: Optional[datetime.date] = None) -> Dict[str, List[IbadahEvent]]:
        """Groups events into Today / This Week / This Month / Later, in order of first appearance."""
        today = today or datetime.date.today()
        arabic = self.preferences.language == "ar"
        groups: Dict[str, List[IbadahEvent]] = {}
        for event in events:
            days_until = (event.date - today).days
            if days_until < 0:
                continue
            if days_until == 0:
                key = "today"
            elif days_until <= 7:
                key = "week"
            elif days_until <= 30:
                key = "month"
            else:
                key = "later"
            title = UPCOMING_GROUPS[key][1 if arabic else 0]
            groups.setdefault(title, []).append(event)
        return {title: sorted(items, key=lambda event: event.date) for title, items in groups.items()}

    def group_by_category(self, events: List[IbadahEvent]) -> Dict[str, List[IbadahEvent]]:
        groups: Dict[str, List[IbadahEvent]] = {}
        for event in events:
            groups.setdefault(event.category.value, []).append(event)
        return {name: sorted(items, key=lambda event: event.date) for name, items in groups.items()}

    async def schedule_notifications(
        self,
        scheduler: NotificationScheduler,
        start: datetime.date,
        end: datetime.date,
        *,
        now: Optional[datetime.datetime] = None,
    ) -> int:
        events = self.calculator.get_all_events_for_range(start, end)
        LOGGER.info("Scheduling reminders for %s events between %s and %s", len(events), start, end)
        return await scheduler.schedule_event_notifications(events, self.preferences, now=now)

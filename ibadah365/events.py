"""
Ibadah event catalogue.

Every observance is described by a rule: a Hijri anchor (month and days,
optionally spanning to a later day) or a weekday predicate for the weekly
observances. One expander turns a rule and a Hijri year into events, so each
rule can be exercised on its own.
"""

import datetime
import logging
from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple

from .hijri import HijriCalendar
from .models import IbadahCategory, IbadahEvent

LOGGER = logging.getLogger(__name__)

MONTH_END = -1


@dataclass(frozen=True)
class EventRule:
    name: str
    id_format: str
    title: str
    title_arabic: str
    description: str
    description_arabic: str
    category: IbadahCategory
    month: Optional[int] # None repeats the rule in every Hijri month
    days: Tuple[int, ...]
    until: Optional[int] = None # last Hijri day of a multi-day span, or MONTH_END
    icon: str = "🌙"
    is_forbidden_day: bool = False
    reminder_times: Optional[Tuple[str, ...]] = None


@dataclass(frozen=True)
class WeeklyRule:
    name: str
    id_format: str
    title: str
    title_arabic: str
    description: str
    description_arabic: str
    category: IbadahCategory
    matches: Callable[[HijriCalendar, datetime.date], bool]
    icon: str = "🌙"
    reminder_times: Optional[Tuple[str, ...]] = None


WEEKDAY_NAMES = {
    0: ("Monday", "الاثنين"),
    3: ("Thursday", "الخميس"),
    4: ("Friday", "الجمعة"),
}

YEARLY_RULES = [
    EventRule(
        name="ninth-muharram",
        id_format="ninth-muharram-{year}",
        title="9th Muharram Fast (Optional)",
        title_arabic="صيام التاسع من محرم (اختياري)",
        description="Optional fast before Ashura",
        description_arabic="صيام اختياري قبل عاشوراء",
        category=IbadahCategory.FASTING,
        month=1,
        days=(9,),
    ),
    EventRule(
        name="ashura",
        id_format="ashura-{year}",
        title="Day of Ashura Fast",
        title_arabic="صيام يوم عاشوراء",
        description="Recommended fast on 10th Muharram, with optional 9th or 11th",
        description_arabic="صيام مستحب في العاشر من محرم، مع التاسع أو الحادي عشر",
        category=IbadahCategory.FASTING,
        month=1,
        days=(10,),
    ),
    EventRule(
        name="mid-shaban",
        id_format="mid-shaban-{year}",
        title="Mid-Sha'ban Fast",
        title_arabic="صيام منتصف شعبان",
        description="Recommended fast on 15th Sha'ban",
        description_arabic="صيام مستحب في الخامس عشر من شعبان",
        category=IbadahCategory.FASTING,
        month=8,
        days=(15,),
    ),
    EventRule(
        name="ramadan",
        id_format="ramadan-{year}",
        title="Ramadan",
        title_arabic="رمضان",
        description="Holy month of fasting",
        description_arabic="الشهر المبارك للصيام",
        category=IbadahCategory.RAMADAN,
        month=9,
        days=(1,),
        until=MONTH_END,
        reminder_times=("20:00", "fajr"),
    ),
    EventRule(
        name="itikaf",
        id_format="itikaf-{year}",
        title="I'tikaf (Last 10 Nights)",
        title_arabic="اعتكاف العشر الأواخر",
        description="Spiritual retreat in the mosque",
        description_arabic="الاعتكاف في المسجد",
        category=IbadahCategory.RAMADAN,
        month=9,
        days=(21,),
        until=MONTH_END,
        icon="🕌",
    ),
    EventRule(
        name="laylatul-qadr",
        id_format="laylatul-qadr-{day}-{year}",
        title="Laylatul Qadr ({day}th Night)",
        title_arabic="ليلة القدر (ليلة {day})",
        description="Night of Power - increased worship",
        description_arabic="ليلة القدر - إحياء الليل بالعبادة",
        category=IbadahCategory.RAMADAN,
        month=9,
        days=(21, 23, 25, 27, 29),
        icon="✨",
        reminder_times=("20:00",),
    ),
    EventRule(
        name="eid-fitr",
        id_format="eid-fitr-{year}",
        title="Eid al-Fitr",
        title_arabic="عيد الفطر",
        description="Festival of Breaking the Fast - Prayer and celebration",
        description_arabic="عيد الفطر - صلاة العيد والاحتفال",
        category=IbadahCategory.EID,
        month=10,
        days=(1,),
        icon="🎉",
        is_forbidden_day=True,
        reminder_times=("07:00",),
    ),
    EventRule(
        name="six-shawwal",
        id_format="six-shawwal-{day}-{year}",
        title="Six Days of Shawwal (Day {index})",
        title_arabic="الأيام الستة من شوال (اليوم {index})",
        description="Recommended fasting after Eid",
        description_arabic="صيام مستحب بعد العيد",
        category=IbadahCategory.FASTING,
        month=10,
        days=(2, 3, 4, 5, 6, 7),
    ),
    EventRule(
        name="first-ten-dhul-hijjah",
        id_format="first-ten-dhul-hijjah-{year}",
        title="First 10 Days of Dhul-Hijjah",
        title_arabic="العشر الأوائل من ذي الحجة",
        description="Blessed days for increased worship",
        description_arabic="الأيام المباركة للعبادة والذكر",
        category=IbadahCategory.HAJJ,
        month=12,
        days=(1,),
        until=10,
        icon="🕋",
    ),
    EventRule(
        name="arafah",
        id_format="arafah-{year}",
        title="Day of Arafah Fast",
        title_arabic="صيام يوم عرفة",
        description="Recommended fast for non-pilgrims",
        description_arabic="صيام مستحب لغير الحجاج",
        category=IbadahCategory.FASTING,
        month=12,
        days=(9,),
    ),
    EventRule(
        name="eid-adha",
        id_format="eid-adha-{year}",
        title="Eid al-Adha",
        title_arabic="عيد الأضحى",
        description="Festival of Sacrifice - Prayer and celebration",
        description_arabic="عيد الأضحى - صلاة العيد والاحتفال",
        category=IbadahCategory.EID,
        month=12,
        days=(10,),
        icon="🎉",
        is_forbidden_day=True,
        reminder_times=("07:00",),
    ),
    EventRule(
        name="tashreeq",
        id_format="tashreeq-{day}-{year}",
        title="Day of Tashreeq ({day} Dhul-Hijjah)",
        title_arabic="أيام التشريق ({day} ذو الحجة)",
        description="Days of eating, drinking, and remembrance - Fasting forbidden",
        description_arabic="أيام أكل وشرب وذكر - يحرم الصوم",
        category=IbadahCategory.HAJJ,
        month=12,
        days=(11, 12, 13),
        icon="🕋",
        is_forbidden_day=True,
    ),
    EventRule(
        # Fajr of the 9th to Asr of the 13th
        name="takbeer-tashreeq",
        id_format="takbeer-tashreeq-{year}",
        title="Takbeer Tashreeq",
        title_arabic="تكبير التشريق",
        description="Takbeer after each Fard prayer from Fajr 9th to Asr 13th Dhul-Hijjah",
        description_arabic="التكبير بعد كل صلاة فرض من فجر التاسع إلى عصر الثالث عشر",
        category=IbadahCategory.TAKBEER,
        month=12,
        days=(9,),
        until=13,
        icon="🔊",
        reminder_times=("after_fard",),
    ),
    EventRule(
        name="ayyam-al-bidh",
        id_format="ayyam-al-bidh-{year}-{month}-{day}",
        title="Ayyam al-Bidh Fast ({day}th)",
        title_arabic="صيام الأيام البيض ({day})",
        description="White days fast - {day}th of {month_name}",
        description_arabic="صيام الأيام البيض - {day} من {month_name_arabic}",
        category=IbadahCategory.FASTING,
        month=None,
        days=(13, 14, 15),
    ),
]

WEEKLY_RULES = [
    WeeklyRule(
        name="sunnah-fast",
        id_format="sunnah-fast-{date}",
        title="Sunnah Fast ({weekday})",
        title_arabic="صيام سنة ({weekday_arabic})",
        description="Recommended fast on Monday/Thursday",
        description_arabic="صيام مستحب يوم الاثنين والخميس",
        category=IbadahCategory.FASTING,
        matches=HijriCalendar.is_monday_or_thursday,
    ),
    WeeklyRule(
        name="jummah",
        id_format="jummah-{date}",
        title="Jumu'ah Prayer",
        title_arabic="صلاة الجمعة",
        description="Friday congregational prayer, read Surah Kahf, make du'a",
        description_arabic="صلاة الجمعة، قراءة سورة الكهف، الدعاء",
        category=IbadahCategory.PRAYER,
        matches=HijriCalendar.is_friday,
        icon="🕌",
        reminder_times=("11:00",),
    ),
]


def get_rule(name: str):
    """Looks up a yearly or weekly rule by name."""
    for rule in [*YEARLY_RULES, *WEEKLY_RULES]:
        if rule.name == name:
            return rule
    raise KeyError(f"Unknown rule '{name}'. Available: {[r.name for r in [*YEARLY_RULES, *WEEKLY_RULES]]}")


class IbadahEventsCalculator:
    def __init__(self, calendar: HijriCalendar, yearly_rules=None, weekly_rules=None):
        self.calendar = calendar
        self.yearly_rules = list(YEARLY_RULES if yearly_rules is None else yearly_rules)
        self.weekly_rules = list(WEEKLY_RULES if weekly_rules is None else weekly_rules)

    def get_all_events_for_year(self, year: int) -> List[IbadahEvent]:
        events = []
        for rule in self.yearly_rules:
            events.extend(self.expand_rule(rule, year))
        for rule in self.weekly_rules:
            events.extend(self.expand_weekly_rule(rule, year))
        # sorted() is stable, so same-day events keep catalogue order
        return sorted(events, key=lambda event: event.date)

    def get_all_events_for_range(self, start: datetime.date, end: datetime.date) -> List[IbadahEvent]:
        start_year = self.calendar.get_hijri_year(start)
        end_year = self.calendar.get_hijri_year(end)
        events = []
        for year in range(start_year, end_year + 1):
            events.extend(
                event for event in self.get_all_events_for_year(year)
                if start <= event.date <= end
            )
        LOGGER.debug("Events for %s..%s (Hijri %s-%s): %s", start, end, start_year, end_year, len(events))
        return sorted(events, key=lambda event: event.date)

    def expand_rule(self, rule: EventRule, year: int) -> List[IbadahEvent]:
        months = [rule.month] if rule.month is not None else range(1, 13)
        events = []
        for month in months:
            for index, day in enumerate(rule.days, start=1):
                start = self.calendar.hijri_to_gregorian(year, month, day)
                end = None
                if rule.until is not None:
                    last_day = rule.until
                    if last_day == MONTH_END:
                        last_day = self.calendar.get_days_in_hijri_month(year, month)
                    end = self.calendar.hijri_to_gregorian(year, month, last_day)
                fields = {
                    "year": year,
                    "month": month,
                    "day": day,
                    "index": index,
                    "month_name": self.calendar.get_hijri_month_name(month),
                    "month_name_arabic": self.calendar.get_hijri_month_name(month, arabic=True),
                }
                events.append(IbadahEvent(
                    id=rule.id_format.format(**fields),
                    title=rule.title.format(**fields),
                    title_arabic=rule.title_arabic.format(**fields),
                    description=rule.description.format(**fields),
                    description_arabic=rule.description_arabic.format(**fields),
                    category=rule.category,
                    date=start,
                    hijri_date=self.calendar.gregorian_to_hijri(start),
                    is_multi_day=end is not None,
                    end_date=end,
                    icon=rule.icon,
                    is_forbidden_day=rule.is_forbidden_day,
                    reminder_times=list(rule.reminder_times) if rule.reminder_times else None,
                ))
        return events

    def expand_weekly_rule(self, rule: WeeklyRule, year: int) -> List[IbadahEvent]:
        first_day, last_day = self._weekly_span(year)
        events = []
        unconverted = 0
        day = first_day
        while day <= last_day:
            if rule.matches(self.calendar, day):
                try:
                    hijri_date = self.calendar.gregorian_to_hijri(day)
                except (OverflowError, ValueError):
                    hijri_date = None
                    unconverted += 1
                weekday, weekday_arabic = WEEKDAY_NAMES[day.weekday()]
                fields = {"date": day.isoformat(), "weekday": weekday, "weekday_arabic": weekday_arabic}
                events.append(IbadahEvent(
                    id=rule.id_format.format(**fields),
                    title=rule.title.format(**fields),
                    title_arabic=rule.title_arabic.format(**fields),
                    description=rule.description,
                    description_arabic=rule.description_arabic,
                    category=rule.category,
                    date=day,
                    hijri_date=hijri_date,
                    icon=rule.icon,
                    reminder_times=list(rule.reminder_times) if rule.reminder_times else None,
                ))
            day += datetime.timedelta(days=1)
        if unconverted:
            LOGGER.debug(
                "Weekly rule %s: %s days of %s..%s have no Hijri date",
                rule.name, unconverted, first_day, last_day,
            )
        return events

    def _weekly_span(self, year: int) -> Tuple[datetime.date, datetime.date]:
        if self.calendar.config.weekly_span == "hijri_year":
            return (
                self.calendar.hijri_to_gregorian(year, 1, 1),
                self.calendar.get_last_day_of_hijri_year(year),
            )
        # Gregorian year carrying the Hijri year's number
        return datetime.date(year, 1, 1), datetime.date(year, 12, 31)

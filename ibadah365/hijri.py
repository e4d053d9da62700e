import datetime
import logging
from dataclasses import dataclass
from typing import Literal, Optional

from hijridate import Gregorian, Hijri

from .models import HijriDate

LOGGER = logging.getLogger(__name__)

# number, name, Arabic name
HIJRI_MONTHS = [
    (1, "Muharram", "محرم"),
    (2, "Safar", "صفر"),
    (3, "Rabi' al-Awwal", "ربيع الأول"),
    (4, "Rabi' al-Thani", "ربيع الثاني"),
    (5, "Jumada al-Awwal", "جمادى الأول"),
    (6, "Jumada al-Thani", "جمادى الثاني"),
    (7, "Rajab", "رجب"),
    (8, "Sha'ban", "شعبان"),
    (9, "Ramadan", "رمضان"),
    (10, "Shawwal", "شوال"),
    (11, "Dhul-Qi'dah", "ذو القعدة"),
    (12, "Dhul-Hijjah", "ذو الحجة"),
]

MONDAY, THURSDAY, FRIDAY = 0, 3, 4


@dataclass
class CalendarConfig:
    """Calendar settings shared by reference between the calendar and its callers.

    offset: manual moon-sighting correction in days. Any integer is applied;
        the [-2, 2] range is checked where preferences are edited.
    weekly_span: which Gregorian days the weekly rules walk for a Hijri year.
        "gregorian_label" walks the Gregorian year with the same number as the
        Hijri year; "hijri_year" walks the Hijri year's own Gregorian span.
    """
    offset: int = 0
    weekly_span: Literal["gregorian_label", "hijri_year"] = "gregorian_label"


class HijriCalendar:
    def __init__(self, config: Optional[CalendarConfig] = None):
        self.config = config if config is not None else CalendarConfig()

    def set_offset(self, offset: int) -> None:
        LOGGER.debug("Hijri offset changed: %s -> %s", self.config.offset, offset)
        self.config.offset = offset

    def get_offset(self) -> int:
        return self.config.offset

    def gregorian_to_hijri(self, day: datetime.date) -> HijriDate:
        adjusted = day + datetime.timedelta(days=self.config.offset)
        hijri = Gregorian(adjusted.year, adjusted.month, adjusted.day).to_hijri()
        return HijriDate(
            hijri_year=hijri.year,
            hijri_month=hijri.month,
            hijri_day=hijri.day,
            gregorian_date=day,
        )

    def hijri_to_gregorian(self, year: int, month: int, day: int) -> datetime.date:
        gregorian = Hijri(year, month, day).to_gregorian()
        converted = datetime.date(gregorian.year, gregorian.month, gregorian.day)
        return converted - datetime.timedelta(days=self.config.offset)

    def get_today_hijri(self, today: Optional[datetime.date] = None) -> HijriDate:
        return self.gregorian_to_hijri(today or datetime.date.today())

    def get_hijri_year(self, day: Optional[datetime.date] = None) -> int:
        return self.get_today_hijri(day).hijri_year

    def get_hijri_month_name(self, month: int, arabic: bool = False) -> str:
        for number, name, name_arabic in HIJRI_MONTHS:
            if number == month:
                return name_arabic if arabic else name
        return ""

    def get_days_in_hijri_month(self, year: int, month: int) -> int:
        """Length of a Hijri month, measured between consecutive month starts."""
        first_day = self.hijri_to_gregorian(year, month, 1)
        if month == 12:
            next_first_day = self.hijri_to_gregorian(year + 1, 1, 1)
        else:
            next_first_day = self.hijri_to_gregorian(year, month + 1, 1)
        return (next_first_day - first_day).days

    def get_last_day_of_hijri_year(self, year: int) -> datetime.date:
        return self.hijri_to_gregorian(year, 12, self.get_days_in_hijri_month(year, 12))

    def is_last_ten_nights_of_ramadan(self, hijri_date: HijriDate) -> bool:
        return hijri_date.hijri_month == 9 and hijri_date.hijri_day >= 21

    def is_ayyam_al_bidh(self, hijri_date: HijriDate) -> bool:
        return hijri_date.hijri_day in (13, 14, 15)

    def is_monday_or_thursday(self, day: datetime.date) -> bool:
        return day.weekday() in (MONDAY, THURSDAY)

    def is_friday(self, day: datetime.date) -> bool:
        return day.weekday() == FRIDAY

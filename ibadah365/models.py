import datetime
from enum import Enum
from typing import Any, Dict, List, Literal, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel


class IbadahCategory(str, Enum):
    FASTING = "fasting"
    PRAYER = "prayer"
    QURAN = "quran"
    EID = "eid"
    HAJJ = "hajj"
    TAKBEER = "takbeer"
    ADHKAR = "adhkar"
    RAMADAN = "ramadan"


PRAYER_NAMES = ("fajr", "dhuhr", "asr", "maghrib", "isha")
AFTER_FARD = "after_fard"


class HijriDate(BaseModel):
    model_config = ConfigDict(frozen=True)

    hijri_year: int
    hijri_month: int = Field(ge=1, le=12)
    hijri_day: int = Field(ge=1, le=30)
    gregorian_date: datetime.date


class IbadahEvent(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    title: str
    title_arabic: str
    description: str
    description_arabic: str
    category: IbadahCategory
    date: datetime.date
    hijri_date: Optional[HijriDate] = None # None when the day is outside the conversion tables
    is_recurring: bool = True
    is_multi_day: bool = False
    end_date: Optional[datetime.date] = None
    icon: str = ""
    is_forbidden_day: bool = False
    reminder_times: Optional[List[str]] = None # e.g. "08:00", "fajr", "after_fard"

    @model_validator(mode="after")
    def _check_span(self):
        if self.is_multi_day:
            if self.end_date is None:
                raise ValueError(f"Multi-day event {self.id} has no end_date")
            if self.end_date < self.date:
                raise ValueError(f"Event {self.id} ends before it starts")
        return self

    def covers(self, day: datetime.date) -> bool:
        """True if the event falls on ``day`` or spans across it."""
        if self.date == day:
            return True
        return self.is_multi_day and self.end_date is not None and self.date <= day <= self.end_date


def _all_categories(enabled: bool = True) -> Dict[IbadahCategory, bool]:
    return {category: enabled for category in IbadahCategory}


def _merge_category_map(value: Any) -> Dict[str, Any]:
    # Missing categories stay enabled.
    merged = {category.value: True for category in IbadahCategory}
    for key, enabled in (value or {}).items():
        merged[getattr(key, "value", key)] = enabled
    return merged


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ReminderTimes(_CamelModel):
    before_event: int = 60 # minutes before event
    custom_times: List[str] = Field(default_factory=lambda: ["20:00"])


class NotificationSettings(_CamelModel):
    enabled: bool = True
    categories: Dict[IbadahCategory, bool] = Field(default_factory=_all_categories)
    reminder_times: ReminderTimes = Field(default_factory=ReminderTimes)

    @field_validator("categories", mode="before")
    @classmethod
    def _merge_categories(cls, value: Any):
        return _merge_category_map(value)


class PrayerTimes(_CamelModel):
    fajr: str = "05:30"
    sunrise: str = "06:45"
    dhuhr: str = "12:30"
    asr: str = "15:30"
    maghrib: str = "18:15"
    isha: str = "19:30"

    def get(self, name: str) -> Optional[str]:
        return getattr(self, name, None)


class UserPreferences(_CamelModel):
    hijri_offset: int = 0 # +/- days for local moon sighting
    language: Literal["en", "ar"] = "en"
    theme: Literal["light", "dark"] = "light"
    calendar_view: Literal["month", "list"] = "month"
    timezone: str = "UTC"
    notifications: NotificationSettings = Field(default_factory=NotificationSettings)
    enabled_categories: Dict[IbadahCategory, bool] = Field(default_factory=_all_categories)
    prayer_times: PrayerTimes = Field(default_factory=PrayerTimes)

    @field_validator("enabled_categories", mode="before")
    @classmethod
    def _merge_enabled(cls, value: Any):
        return _merge_category_map(value)

    @field_validator("hijri_offset")
    @classmethod
    def _check_offset(cls, value: int) -> int:
        if not -2 <= value <= 2:
            raise ValueError("Offset must be between -2 and +2 days")
        return value

    @field_validator("timezone")
    @classmethod
    def _check_timezone(cls, value: str) -> str:
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"Unknown timezone '{value}'") from e
        return value

    def is_category_enabled(self, category: IbadahCategory) -> bool:
        return self.enabled_categories.get(category, False)

    def is_notification_enabled(self, category: IbadahCategory) -> bool:
        return self.notifications.enabled and self.notifications.categories.get(category, False)


class NotificationRequest(BaseModel):
    key: str
    title: str
    body: str
    data: Dict[str, str]
    trigger_at: datetime.datetime


class ScheduledNotification(BaseModel):
    key: str
    event_id: str
    scheduled_time: datetime.datetime
    notification_id: str

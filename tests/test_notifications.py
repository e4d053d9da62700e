import asyncio
import datetime
import logging
from zoneinfo import ZoneInfo

from ibadah365.models import HijriDate, IbadahCategory, IbadahEvent, PrayerTimes, UserPreferences
from ibadah365.notifications import (
    InMemoryNotificationBackend,
    NotificationScheduler,
    parse_clock_time,
    resolve_reminder_time,
)

UTC = ZoneInfo("UTC")
EVENT_DAY = datetime.date(2030, 1, 5)
NOW = datetime.datetime(2029, 12, 1, 9, 0, tzinfo=UTC)


def asyncio_run(coro):
    return asyncio.run(coro)


def _event(
    event_id: str = "mid-shaban-1451",
    category: IbadahCategory = IbadahCategory.FASTING,
    days: int = 1,
    reminder_times=None,
) -> IbadahEvent:
    multi_day = days > 1
    return IbadahEvent(
        id=event_id,
        title="Test Observance",
        title_arabic="مناسبة تجريبية",
        description="Something to remember",
        description_arabic="شيء للتذكر",
        category=category,
        date=EVENT_DAY,
        hijri_date=HijriDate(hijri_year=1451, hijri_month=9, hijri_day=1, gregorian_date=EVENT_DAY),
        is_multi_day=multi_day,
        end_date=EVENT_DAY + datetime.timedelta(days=days - 1) if multi_day else None,
        reminder_times=reminder_times,
    )


def _scheduler():
    backend = InMemoryNotificationBackend()
    return backend, NotificationScheduler(backend)


def _kinds(backend: InMemoryNotificationBackend):
    counts = {}
    for request in backend.requests():
        counts[request.data["kind"]] = counts.get(request.data["kind"], 0) + 1
    return counts


def test_disabled_notifications_cancel_everything() -> None:
    backend, scheduler = _scheduler()
    asyncio_run(scheduler.schedule_event_notifications([_event()], UserPreferences(), now=NOW))
    assert backend.pending

    prefs = UserPreferences(notifications={"enabled": False})
    count = asyncio_run(scheduler.schedule_event_notifications([_event()], prefs, now=NOW))

    assert count == 0
    assert backend.pending == {}
    assert backend.cancel_all_calls == 2
    assert scheduler.get_scheduled_notifications() == []


def test_each_pass_replaces_previous_reminders() -> None:
    backend, scheduler = _scheduler()
    asyncio_run(scheduler.schedule_event_notifications([_event()], UserPreferences(), now=NOW))
    asyncio_run(scheduler.schedule_event_notifications([_event()], UserPreferences(), now=NOW))

    assert backend.cancel_all_calls == 2
    assert len(backend.pending) == 2


def test_ramadan_style_event_gets_daily_reminders() -> None:
    backend, scheduler = _scheduler()
    event = _event("ramadan-1451", IbadahCategory.RAMADAN, days=30, reminder_times=["20:00", "fajr"])

    count = asyncio_run(scheduler.schedule_event_notifications([event], UserPreferences(), now=NOW))

    assert count == 33
    assert _kinds(backend) == {"reminder": 1, "custom": 2, "daily": 30}
    daily = [request for request in backend.requests() if request.data["kind"] == "daily"]
    assert daily[0].key == "ramadan-1451-daily-2030-01-05"
    assert daily[0].data["date"] == "2030-01-05"
    assert daily[0].trigger_at == datetime.datetime(2030, 1, 5, 20, 0, tzinfo=UTC)
    assert daily[0].title == "Test Observance - Today"
    assert daily[0].body == "Something to remember\n1/5/2030"
    assert daily[-1].trigger_at.date() == datetime.date(2030, 2, 3)


def test_reminder_instants() -> None:
    backend, scheduler = _scheduler()
    event = _event(reminder_times=["20:00", "fajr"])

    asyncio_run(scheduler.schedule_event_notifications([event], UserPreferences(), now=NOW))

    by_key = {request.key: request for request in backend.requests()}
    assert by_key["mid-shaban-1451-default"].trigger_at == datetime.datetime(2030, 1, 4, 23, 0, tzinfo=UTC)
    assert by_key["mid-shaban-1451-20:00"].trigger_at == datetime.datetime(2030, 1, 4, 20, 0, tzinfo=UTC)
    assert by_key["mid-shaban-1451-fajr"].trigger_at == datetime.datetime(2030, 1, 5, 5, 30, tzinfo=UTC)
    assert by_key["mid-shaban-1451-default"].data == {"event_id": "mid-shaban-1451", "kind": "reminder"}
    assert by_key["mid-shaban-1451-fajr"].data["kind"] == "custom"


def test_resolve_reminder_time_tokens() -> None:
    start = datetime.datetime(2030, 1, 5, tzinfo=UTC)
    prayers = PrayerTimes()

    assert resolve_reminder_time("20:00", start, prayers) == datetime.datetime(2030, 1, 4, 20, 0, tzinfo=UTC)
    assert resolve_reminder_time("00:00", start, prayers) == datetime.datetime(2030, 1, 4, 0, 0, tzinfo=UTC)
    assert resolve_reminder_time("maghrib", start, prayers) == datetime.datetime(2030, 1, 5, 18, 15, tzinfo=UTC)
    assert resolve_reminder_time("25:00", start, prayers) is None
    assert resolve_reminder_time("abc", start, prayers) is None
    assert resolve_reminder_time("after_fard", start, prayers) is None


def test_parse_clock_time() -> None:
    assert parse_clock_time("7:05") == datetime.time(7, 5)
    assert parse_clock_time("23:59") == datetime.time(23, 59)
    assert parse_clock_time("12:60") is None
    assert parse_clock_time("") is None
    assert parse_clock_time(None) is None


def test_past_reminders_are_skipped() -> None:
    backend, scheduler = _scheduler()
    now = datetime.datetime(2030, 1, 4, 21, 0, tzinfo=UTC)

    count = asyncio_run(scheduler.schedule_event_notifications([_event(reminder_times=["20:00"])], UserPreferences(), now=now))

    assert count == 1
    assert [request.key for request in backend.requests()] == ["mid-shaban-1451-default"]
    assert all(request.trigger_at > now for request in backend.requests())


def test_disabled_category_is_skipped() -> None:
    backend, scheduler = _scheduler()
    prefs = UserPreferences(notifications={"categories": {"fasting": False}})

    count = asyncio_run(
        scheduler.schedule_event_notifications(
            [_event(), _event("eid-fitr-1451", IbadahCategory.EID)], prefs, now=NOW
        )
    )

    assert count == 2
    assert {request.data["event_id"] for request in backend.requests()} == {"eid-fitr-1451"}


def test_event_reminder_times_override_custom_times() -> None:
    backend, scheduler = _scheduler()
    events = [_event("fallback-1451"), _event("no-custom-1451", reminder_times=[])]

    asyncio_run(scheduler.schedule_event_notifications(events, UserPreferences(), now=NOW))

    keys = {request.key for request in backend.requests()}
    assert keys == {"fallback-1451-default", "fallback-1451-20:00", "no-custom-1451-default"}


def test_takbeer_after_each_prayer() -> None:
    backend, scheduler = _scheduler()
    event = _event("takbeer-tashreeq-1451", IbadahCategory.TAKBEER, days=5, reminder_times=["after_fard"])

    count = asyncio_run(scheduler.schedule_event_notifications([event], UserPreferences(), now=NOW))

    assert count == 31
    assert _kinds(backend) == {"reminder": 1, "daily": 5, "takbeer": 25}
    by_key = {request.key: request for request in backend.requests()}
    first = by_key["takbeer-tashreeq-1451-takbeer-fajr-2030-01-05"]
    assert first.trigger_at == datetime.datetime(2030, 1, 5, 6, 0, tzinfo=UTC)
    assert first.data["prayer"] == "fajr"
    assert first.title == "Takbeer Tashreeq"
    assert first.body == "Time for Takbeer after Fajr prayer"


def test_backend_failure_does_not_stop_the_pass(caplog) -> None:
    class FlakyBackend(InMemoryNotificationBackend):
        async def schedule(self, request):
            if request.key.endswith("-default"):
                raise RuntimeError("delivery service unavailable")
            return await super().schedule(request)

    backend = FlakyBackend()
    scheduler = NotificationScheduler(backend)

    with caplog.at_level(logging.ERROR):
        count = asyncio_run(
            scheduler.schedule_event_notifications([_event(reminder_times=["20:00", "fajr"])], UserPreferences(), now=NOW)
        )

    assert count == 2
    assert {request.key for request in backend.requests()} == {"mid-shaban-1451-20:00", "mid-shaban-1451-fajr"}
    assert "Failed to schedule notification" in caplog.text


def test_cancel_event_notifications() -> None:
    backend, scheduler = _scheduler()
    events = [_event(), _event("eid-fitr-1451", IbadahCategory.EID, reminder_times=["07:00"])]
    asyncio_run(scheduler.schedule_event_notifications(events, UserPreferences(), now=NOW))

    removed = asyncio_run(scheduler.cancel_event_notifications("eid-fitr-1451"))

    assert removed == 2
    assert {request.data["event_id"] for request in backend.requests()} == {"mid-shaban-1451"}
    assert {item.event_id for item in scheduler.get_scheduled_notifications()} == {"mid-shaban-1451"}


def test_arabic_messages() -> None:
    backend, scheduler = _scheduler()
    prefs = UserPreferences(language="ar")
    event = _event("takbeer-tashreeq-1451", IbadahCategory.TAKBEER, days=2, reminder_times=["after_fard"])

    asyncio_run(scheduler.schedule_event_notifications([event], prefs, now=NOW))

    by_key = {request.key: request for request in backend.requests()}
    assert by_key["takbeer-tashreeq-1451-default"].title == "مناسبة تجريبية"
    assert by_key["takbeer-tashreeq-1451-daily-2030-01-05"].title == "مناسبة تجريبية - اليوم"
    assert by_key["takbeer-tashreeq-1451-daily-2030-01-05"].body == "شيء للتذكر\n5/1/2030"
    assert by_key["takbeer-tashreeq-1451-takbeer-isha-2030-01-06"].title == "تكبير التشريق"
    assert by_key["takbeer-tashreeq-1451-takbeer-isha-2030-01-06"].body == "وقت التكبير بعد صلاة العشاء"


def test_reminders_use_the_preferred_timezone() -> None:
    backend, scheduler = _scheduler()
    prefs = UserPreferences(timezone="Asia/Riyadh")

    asyncio_run(scheduler.schedule_event_notifications([_event(reminder_times=[])], prefs, now=NOW))

    (request,) = backend.requests()
    assert request.trigger_at == datetime.datetime(2030, 1, 4, 23, 0, tzinfo=ZoneInfo("Asia/Riyadh"))
    assert request.trigger_at.utcoffset() == datetime.timedelta(hours=3)


def test_send_test_notification() -> None:
    backend, scheduler = _scheduler()
    now = datetime.datetime(2030, 1, 1, 12, 0, tzinfo=UTC)

    notification_id = asyncio_run(scheduler.send_test_notification(now=now))

    request = backend.pending[notification_id]
    assert request.trigger_at == now + datetime.timedelta(seconds=5)
    assert request.data["kind"] == "test"


def test_unknown_timezone_keeps_existing_reminders(caplog) -> None:
    backend, scheduler = _scheduler()
    asyncio_run(scheduler.schedule_event_notifications([_event()], UserPreferences(), now=NOW))
    broken = UserPreferences().model_copy(update={"timezone": "Mars/Olympus"})

    with caplog.at_level(logging.ERROR):
        count = asyncio_run(scheduler.schedule_event_notifications([_event()], broken, now=NOW))

    assert count == 0
    assert len(backend.pending) == 2
    assert backend.cancel_all_calls == 1
    assert len(scheduler.get_scheduled_notifications()) == 2
    assert "Unknown timezone" in caplog.text


def test_repeated_token_is_scheduled_once() -> None:
    backend, scheduler = _scheduler()
    event = _event(reminder_times=["20:00", "20:00", "fajr", "fajr"])

    count = asyncio_run(scheduler.schedule_event_notifications([event], UserPreferences(), now=NOW))

    assert count == 3
    assert len(backend.pending) == 3
    assert asyncio_run(scheduler.cancel_event_notifications("mid-shaban-1451")) == 3
    assert backend.pending == {}


def test_repeated_custom_time_is_scheduled_once() -> None:
    backend, scheduler = _scheduler()
    prefs = UserPreferences(notifications={"reminder_times": {"custom_times": ["20:00", "20:00"]}})

    count = asyncio_run(scheduler.schedule_event_notifications([_event()], prefs, now=NOW))

    assert count == 2
    assert sorted(request.key for request in backend.requests()) == ["mid-shaban-1451-20:00", "mid-shaban-1451-default"]

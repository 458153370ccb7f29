from datetime import date, datetime, timezone

from challengehub.models.notification.notification import NotificationCreate
from challengehub.services.notification.notification_service import NotificationService
from challengehub.utils.clock import FixedClock, to_local_date
from challengehub.utils.currency import convert_from_usd, convert_to_usd


def test_naive_datetimes_are_read_as_utc():
    # 22:30 UTC is already the next day in Kigali (UTC+2)
    assert to_local_date(datetime(2025, 3, 9, 22, 30)) == date(2025, 3, 10)
    assert to_local_date(datetime(2025, 3, 9, 21, 59)) == date(2025, 3, 9)


def test_aware_datetimes_are_converted():
    value = datetime(2025, 3, 9, 23, 0, tzinfo=timezone.utc)
    assert to_local_date(value) == date(2025, 3, 10)


def test_strings():
    assert to_local_date("2025-03-13") == date(2025, 3, 13)
    assert to_local_date("2025-03-12T23:00:00Z") == date(2025, 3, 13)
    assert to_local_date("2025-03-12T23:00:00+02:00") == date(2025, 3, 12)


def test_missing_or_garbage_deadline():
    assert to_local_date(None) is None
    assert to_local_date("") is None
    assert to_local_date("next friday") is None
    assert to_local_date(42) is None


def test_fixed_clock():
    clock = FixedClock.at_date(date(2025, 4, 1))

    assert clock.today() == date(2025, 4, 1)
    assert clock.is_first_day_of_month()
    assert clock.days_from_today(3) == date(2025, 4, 4)
    # Local midnight is 22:00 UTC the day before
    assert clock.utcnow() == datetime(2025, 3, 31, 22, 0)


def test_currency_conversion():
    assert convert_to_usd(1400, "RWF") == 1
    assert convert_to_usd(100, "usd") == 100
    assert convert_to_usd(100, None) == 100
    assert convert_to_usd(100, "XYZ") == 100
    assert convert_from_usd(2, "KES") == 308


async def test_notifications_are_stamped_with_the_injected_clock(db):
    service = NotificationService(db, FixedClock.at_date(date(2025, 3, 10)))

    item = await service.add_notification("u1", NotificationCreate(type="info", title="Hi", message="Hello"))

    assert item["created_at"] == "2025-03-09T22:00:00+00:00"
    assert (await service.get_notifications("u1"))[0]["created_at"] == item["created_at"]

from datetime import date

import pandas as pd
from app.models.db_models import Booking, BookingStatus
from app.services.report_service import bookings_dataframe, daily_summary, status_counts


def make_booking(booking_id, day, start, status, price=50.0):
    return Booking(
        id=booking_id, business_id="biz-1", service_id="svc-60", customer_id="c-1",
        date=day, start_time=start, end_time="23:00", status=status, total_price=price,
    )


BOOKINGS = [
    make_booking("a", date(2024, 1, 1), "10:00", BookingStatus.COMPLETED),
    make_booking("b", date(2024, 1, 1), "09:00", BookingStatus.CANCELLED),
    make_booking("c", date(2024, 1, 2), "11:00", BookingStatus.PENDING, price=30.0),
    make_booking("d", date(2024, 1, 2), "12:00", BookingStatus.COMPLETED, price=30.0),
]


def test_dataframe_is_sorted_newest_first():
    df = bookings_dataframe(BOOKINGS)
    assert list(df["id"]) == ["c", "d", "b", "a"]
    assert pd.api.types.is_datetime64_any_dtype(df["date"])


def test_status_counts_cover_every_status():
    counts = status_counts(bookings_dataframe(BOOKINGS))
    assert counts["completed"] == 2
    assert counts["cancelled"] == 1
    assert counts["pending"] == 1
    assert counts["confirmed"] == 0
    assert counts["no_show"] == 0


def test_daily_summary_counts_revenue_from_completed_only():
    summary = daily_summary(bookings_dataframe(BOOKINGS))
    assert list(summary["bookings"]) == [2, 2]
    assert list(summary["revenue"]) == [50.0, 30.0]


def test_empty_input():
    df = bookings_dataframe([])
    assert df.empty
    assert status_counts(df).sum() == 0
    assert daily_summary(df).empty

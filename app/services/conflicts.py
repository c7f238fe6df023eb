from typing import Iterable, Optional
from datetime import date

from pydantic import BaseModel

from app.models.db_models import Booking, ACTIVE_STATUSES
from app.services.availability import parse_time, parse_date
from app.core.errors import ValidationError


class Availability(BaseModel):
    available: bool
    conflicting_booking: Optional[Booking] = None


def overlaps(start: int, end: int, other_start: int, other_end: int) -> bool:
    """Half-open intervals [start, end) and [other_start, other_end) intersect."""
    return start < other_end and other_start < end


def check_conflict(
    business_id: str,
    day,
    start_time: str,
    duration: int,
    existing: Iterable[Booking],
) -> Availability:
    """
    Check a proposed booking against the existing bookings of a business.

    Only active bookings on the same business and date are considered. Returns
    on the first overlap found.
    """
    if duration is None or duration <= 0:
        raise ValidationError("مدة الخدمة يجب أن تكون أكبر من صفر")

    day: date = parse_date(day)
    start = parse_time(start_time)
    end = start + duration

    for booking in existing:
        if booking.business_id != business_id or booking.date != day:
            continue
        if booking.status not in ACTIVE_STATUSES:
            continue
        if overlaps(start, end, parse_time(booking.start_time), parse_time(booking.end_time)):
            return Availability(available=False, conflicting_booking=booking)

    return Availability(available=True)

"""
Availability calculation.

Turns a business's weekly working hours into the ordered list of candidate
slots for one calendar day and one service duration. Times are "HH:MM" strings
on the wire and minutes-since-midnight internally.
"""
import re
from datetime import date, datetime
from typing import Dict, List, Optional, Iterable

from pydantic import BaseModel

from app.core.errors import ValidationError
from app.models.db_models import Booking, WorkingDay, ACTIVE_STATUSES

TIME_PATTERN = re.compile(r"^([0-1]?[0-9]|2[0-3]):([0-5][0-9])$")
MINUTES_PER_DAY = 24 * 60


class Slot(BaseModel):
    start_time: str
    end_time: str


def parse_time(value: str) -> int:
    """Parse "HH:MM" (one- or two-digit hour) into minutes since midnight."""
    match = TIME_PATTERN.match(value or "")
    if not match:
        raise ValidationError(f"صيغة الوقت غير صحيحة: {value!r}")
    return int(match.group(1)) * 60 + int(match.group(2))


def format_time(minutes: int) -> str:
    if not 0 <= minutes < MINUTES_PER_DAY:
        raise ValidationError(f"الوقت خارج اليوم: {minutes} دقيقة")
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def parse_date(value) -> date:
    """Accept a date, a datetime or a YYYY-MM-DD string."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return datetime.strptime(value, "%Y-%m-%d").date()
    except (TypeError, ValueError):
        raise ValidationError(f"تاريخ الحجز غير صحيح: {value!r}")


def add_minutes(start_time: str, duration: int) -> str:
    return format_time(parse_time(start_time) + duration)


def weekday_name(day: date) -> str:
    return day.strftime("%A").lower()


def get_working_day(working_hours: Dict[str, WorkingDay], day: date) -> Optional[WorkingDay]:
    """Opening hours for the weekday of `day`, or None when closed."""
    hours = working_hours.get(weekday_name(day))
    if hours is None:
        return None
    if isinstance(hours, dict):
        hours = WorkingDay(**hours)
    return hours if hours.is_open else None


def calculate_slots(
    working_hours: Dict[str, WorkingDay],
    day,
    duration: int,
    step: Optional[int] = None,
) -> List[Slot]:
    """
    Generate candidate slots for `day`.

    Slots start at the opening time and advance by `step` minutes (the service
    duration when `step` is None or 0). Generation stops once a slot would end
    after closing time. A closed day yields an empty list.
    """
    day = parse_date(day)
    if duration is None or duration <= 0:
        raise ValidationError("مدة الخدمة يجب أن تكون أكبر من صفر")
    if step is not None and step < 0:
        raise ValidationError("فاصل المواعيد يجب أن يكون أكبر من صفر")
    step = step or duration

    hours = get_working_day(working_hours, day)
    if hours is None:
        return []

    open_at = parse_time(hours.open)
    close_at = parse_time(hours.close)
    if open_at >= close_at:
        raise ValidationError(f"ساعات العمل غير صحيحة ({hours.open} - {hours.close})")

    slots = []
    start = open_at
    while start + duration <= close_at:
        slots.append(Slot(start_time=format_time(start), end_time=format_time(start + duration)))
        start += step
    return slots


def fits_opening_hours(working_hours: Dict[str, WorkingDay], day, start_time: str, duration: int) -> bool:
    hours = get_working_day(working_hours, parse_date(day))
    if hours is None:
        return False
    start = parse_time(start_time)
    return parse_time(hours.open) <= start and start + duration <= parse_time(hours.close)


def filter_free_slots(slots: Iterable[Slot], bookings: Iterable[Booking]) -> List[Slot]:
    """Drop every slot that overlaps an active booking."""
    busy = [
        (parse_time(b.start_time), parse_time(b.end_time))
        for b in bookings
        if b.status in ACTIVE_STATUSES
    ]
    free = []
    for slot in slots:
        start, end = parse_time(slot.start_time), parse_time(slot.end_time)
        if not any(start < b_end and b_start < end for b_start, b_end in busy):
            free.append(slot)
    return free

"""
Booking lifecycle state machine.

pending -> confirmed -> completed
pending/confirmed -> cancelled
confirmed -> no_show

completed, cancelled and no_show are terminal.
"""
from datetime import datetime
from typing import Dict, FrozenSet, Optional, Tuple

from app.core.errors import InvalidTransitionError, ForbiddenError
from app.models.db_models import Booking, BookingStatus, Business, Role

S = BookingStatus

STAFF = frozenset({Role.BUSINESS, Role.ADMIN})
ANYONE = frozenset({Role.CUSTOMER, Role.BUSINESS, Role.ADMIN})

# (from, to) -> roles allowed to trigger the transition
TRANSITIONS: Dict[Tuple[BookingStatus, BookingStatus], FrozenSet[Role]] = {
    (S.PENDING, S.CONFIRMED): STAFF,
    (S.PENDING, S.CANCELLED): ANYONE,
    (S.CONFIRMED, S.CANCELLED): STAFF,
    (S.CONFIRMED, S.COMPLETED): STAFF,
    (S.CONFIRMED, S.NO_SHOW): STAFF,
}

TERMINAL_STATUSES = frozenset({S.COMPLETED, S.CANCELLED, S.NO_SHOW})

STATUS_LABELS = {
    S.PENDING: "قيد الانتظار",
    S.CONFIRMED: "مؤكد",
    S.COMPLETED: "مكتمل",
    S.CANCELLED: "ملغي",
    S.NO_SHOW: "لم يحضر",
}


def is_transition_allowed(current: BookingStatus, target: BookingStatus) -> bool:
    return (BookingStatus(current), BookingStatus(target)) in TRANSITIONS


def allowed_targets(current: BookingStatus) -> FrozenSet[BookingStatus]:
    current = BookingStatus(current)
    return frozenset(to for (frm, to) in TRANSITIONS if frm == current)


def assert_transition(current: BookingStatus, target: BookingStatus) -> None:
    """Raise InvalidTransitionError unless current -> target is in the table."""
    current, target = BookingStatus(current), BookingStatus(target)
    if current == target:
        raise InvalidTransitionError(
            f"الحجز {STATUS_LABELS[current]} مسبقاً",
            details={"from": current.value, "to": target.value},
        )
    if current in TERMINAL_STATUSES:
        raise InvalidTransitionError(
            f"لا يمكن تغيير حجز {STATUS_LABELS[current]}",
            details={"from": current.value, "to": target.value},
        )
    if not is_transition_allowed(current, target):
        raise InvalidTransitionError(
            f"لا يمكن تغيير الحجز من {STATUS_LABELS[current]} إلى {STATUS_LABELS[target]}",
            details={"from": current.value, "to": target.value},
        )


def customer_may_cancel_confirmed(
    business: Business,
    now: datetime,
    start_at: datetime,
) -> bool:
    """Cancellation policy for customers once the business has confirmed."""
    policy = business.settings
    if not policy.allow_cancellation:
        return False
    hours_until = (start_at - now).total_seconds() / 3600
    return hours_until >= policy.cancellation_hours


def authorize_transition(
    booking: Booking,
    business: Business,
    actor_role: Role,
    target: BookingStatus,
    actor_id: Optional[str] = None,
    now: Optional[datetime] = None,
    start_at: Optional[datetime] = None,
) -> None:
    """
    Validate a transition and the actor triggering it.

    Illegal transitions fail with InvalidTransitionError whoever asks; legal
    ones requested by the wrong actor fail with ForbiddenError.
    """
    actor_role = Role(actor_role)
    target = BookingStatus(target)
    assert_transition(booking.status, target)

    # Only admins act without an identity
    if actor_role == Role.BUSINESS and (not actor_id or business.owner_id != actor_id):
        raise ForbiddenError("غير مصرح لك بإدارة حجوزات هذا النشاط التجاري")
    if actor_role == Role.CUSTOMER and (not actor_id or booking.customer_id != actor_id):
        raise ForbiddenError()

    if (booking.status, target) == (S.CONFIRMED, S.CANCELLED) and actor_role == Role.CUSTOMER:
        if now is None or start_at is None or not customer_may_cancel_confirmed(business, now, start_at):
            hours = business.settings.cancellation_hours
            if not business.settings.allow_cancellation:
                raise ForbiddenError("النشاط التجاري لا يسمح بإلغاء الحجوزات المؤكدة")
            raise ForbiddenError(f"لا يمكن إلغاء الحجز قبل أقل من {hours} ساعة من الموعد")
        return

    if actor_role not in TRANSITIONS[(booking.status, target)]:
        raise ForbiddenError(
            f"لا يمكنك تغيير حالة الحجز إلى {STATUS_LABELS[target]}",
            details={"role": actor_role.value, "to": target.value},
        )

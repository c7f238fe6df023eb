from datetime import timedelta

import pytest
from app.core.errors import ForbiddenError, InvalidTransitionError
from app.models.db_models import Booking, BookingStatus, Business, BusinessSettings, Role
from app.services.lifecycle import (
    TERMINAL_STATUSES,
    allowed_targets,
    assert_transition,
    authorize_transition,
)
from fakes import MONDAY, NOW

S = BookingStatus
START_AT = NOW + timedelta(days=2)


def booking(status):
    return Booking(
        id="bk-1", business_id="biz-1", service_id="svc-60", customer_id="cust-1",
        date=MONDAY, start_time="10:00", end_time="11:00", status=status,
    )


def business(**policy):
    return Business(id="biz-1", owner_id="owner-1", settings=BusinessSettings(**policy))


@pytest.mark.parametrize("current,target", [
    (S.PENDING, S.CONFIRMED),
    (S.PENDING, S.CANCELLED),
    (S.CONFIRMED, S.CANCELLED),
    (S.CONFIRMED, S.COMPLETED),
    (S.CONFIRMED, S.NO_SHOW),
])
def test_table_transitions_are_allowed(current, target):
    assert_transition(current, target)


@pytest.mark.parametrize("current,target", [
    (S.PENDING, S.COMPLETED),
    (S.PENDING, S.NO_SHOW),
    (S.CONFIRMED, S.PENDING),
    (S.COMPLETED, S.CANCELLED),
    (S.CANCELLED, S.CONFIRMED),
    (S.NO_SHOW, S.COMPLETED),
])
def test_other_transitions_are_rejected(current, target):
    with pytest.raises(InvalidTransitionError):
        assert_transition(current, target)


@pytest.mark.parametrize("status", list(S))
def test_same_status_is_rejected(status):
    with pytest.raises(InvalidTransitionError):
        assert_transition(status, status)


def test_terminal_states_have_no_exits():
    for status in TERMINAL_STATUSES:
        assert allowed_targets(status) == frozenset()
    assert allowed_targets(S.PENDING) == {S.CONFIRMED, S.CANCELLED}


@pytest.mark.parametrize("role", [Role.BUSINESS, Role.ADMIN])
def test_staff_can_confirm(role):
    authorize_transition(booking(S.PENDING), business(), role, S.CONFIRMED, actor_id="owner-1")


def test_customer_cannot_confirm_or_complete():
    with pytest.raises(ForbiddenError):
        authorize_transition(booking(S.PENDING), business(), Role.CUSTOMER, S.CONFIRMED)
    with pytest.raises(ForbiddenError):
        authorize_transition(booking(S.CONFIRMED), business(), Role.CUSTOMER, S.COMPLETED)


def test_customer_can_cancel_pending():
    authorize_transition(booking(S.PENDING), business(), Role.CUSTOMER, S.CANCELLED, actor_id="cust-1")


def test_illegal_transition_wins_over_wrong_actor():
    with pytest.raises(InvalidTransitionError):
        authorize_transition(booking(S.COMPLETED), business(), Role.CUSTOMER, S.CANCELLED)


def test_business_must_own_the_booking():
    with pytest.raises(ForbiddenError):
        authorize_transition(booking(S.PENDING), business(), Role.BUSINESS, S.CONFIRMED, actor_id="owner-2")
    authorize_transition(booking(S.PENDING), business(), Role.BUSINESS, S.CONFIRMED, actor_id="owner-1")


def test_customer_must_own_the_booking():
    with pytest.raises(ForbiddenError):
        authorize_transition(booking(S.PENDING), business(), Role.CUSTOMER, S.CANCELLED, actor_id="cust-2")


def test_customer_cancels_confirmed_inside_policy_window():
    authorize_transition(
        booking(S.CONFIRMED), business(cancellation_hours=24), Role.CUSTOMER, S.CANCELLED, actor_id="cust-1",
        now=NOW, start_at=START_AT,
    )


def test_customer_cannot_cancel_confirmed_too_late():
    with pytest.raises(ForbiddenError):
        authorize_transition(
            booking(S.CONFIRMED), business(cancellation_hours=72), Role.CUSTOMER, S.CANCELLED, actor_id="cust-1",
            now=NOW, start_at=START_AT,
        )


def test_customer_cannot_cancel_confirmed_when_disabled():
    with pytest.raises(ForbiddenError):
        authorize_transition(
            booking(S.CONFIRMED), business(allow_cancellation=False), Role.CUSTOMER, S.CANCELLED, actor_id="cust-1",
            now=NOW, start_at=START_AT,
        )


@pytest.mark.parametrize("role,target", [
    (Role.BUSINESS, S.CONFIRMED),
    (Role.BUSINESS, S.CANCELLED),
    (Role.CUSTOMER, S.CANCELLED),
])
def test_non_admin_without_identity_is_forbidden(role, target):
    with pytest.raises(ForbiddenError):
        authorize_transition(booking(S.PENDING), business(), role, target)


def test_admin_needs_no_identity():
    authorize_transition(booking(S.PENDING), business(), Role.ADMIN, S.CONFIRMED)

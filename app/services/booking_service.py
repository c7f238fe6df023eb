import asyncio
import math
import weakref
from datetime import date, datetime, time, timedelta
from typing import Callable, Dict, List, Optional, Tuple, Union
from zoneinfo import ZoneInfo

from app.core.config import Settings, settings as default_settings
from app.core.errors import (
    ValidationError,
    NotFoundError,
    OutOfHoursError,
    SlotConflictError,
    ForbiddenError,
    StorageError,
)
from app.core.logger import logger
from app.models.db_models import (
    ACTIVE_STATUSES,
    Booking,
    BookingNotes,
    BookingStatus,
    Business,
    Role,
    Service,
)
from app.models.schemas import BookingPage, BookingStats
from app.services.availability import (
    Slot,
    add_minutes,
    calculate_slots,
    filter_free_slots,
    fits_opening_hours,
    format_time,
    get_working_day,
    parse_date,
    parse_time,
)
from app.services.conflicts import check_conflict
from app.services.lifecycle import authorize_transition

MAX_NOTE_LENGTH = 500
MAX_REASON_LENGTH = 200


class BookingService:
    """
    Orchestrates booking creation and lifecycle changes.

    The store is the persistence collaborator (see DBService). Conflict checks
    and inserts for one (business, date) run under a shared asyncio.Lock, so
    two requests in this process can never both reserve overlapping slots.
    Cross-process safety comes from the bookings_no_overlap constraint, which
    the store reports as SlotConflictError.
    """

    def __init__(
        self,
        store=None,
        config: Optional[Settings] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        if store is None:
            from app.services.db_service import db_service
            store = db_service
        self.store = store
        self.config = config or default_settings
        self.tz = ZoneInfo(self.config.TIMEZONE)
        self._clock = clock or (lambda: datetime.now(self.tz))
        self._locks: "weakref.WeakValueDictionary[Tuple[str, date], asyncio.Lock]" = weakref.WeakValueDictionary()

    # --- helpers ---

    def _now(self) -> datetime:
        now = self._clock()
        return now if now.tzinfo else now.replace(tzinfo=self.tz)

    def _start_at(self, day: date, start_time: str) -> datetime:
        minutes = parse_time(start_time)
        return datetime.combine(day, time(minutes // 60, minutes % 60), tzinfo=self.tz)

    def _lock_for(self, business_id: str, day: date) -> asyncio.Lock:
        key = (business_id, day)
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock

    @staticmethod
    def _parse_role(role: Union[Role, str]) -> Role:
        try:
            return Role(role)
        except ValueError:
            raise ValidationError(f"دور المستخدم غير صحيح: {role!r}")

    @staticmethod
    def _parse_status(status: Union[BookingStatus, str]) -> BookingStatus:
        try:
            return BookingStatus(status)
        except ValueError:
            raise ValidationError(f"حالة الحجز غير صحيحة: {status!r}")

    @staticmethod
    def _normalize_notes(notes) -> BookingNotes:
        if notes is None:
            return BookingNotes()
        if isinstance(notes, str):
            notes = BookingNotes(customer=notes.strip())
        elif isinstance(notes, dict):
            notes = BookingNotes(**notes)
        if len(notes.customer) > MAX_NOTE_LENGTH or len(notes.business) > MAX_NOTE_LENGTH:
            raise ValidationError("ملاحظات الحجز لا يمكن أن تتجاوز 500 حرف")
        return notes

    async def _load_service(self, business_id: str, service_id: str) -> Service:
        service = await self.store.load_service(service_id)
        if not service or not service.is_active or service.business_id != business_id:
            raise NotFoundError("الخدمة غير موجودة أو غير متاحة")
        return service

    async def _load_business(self, business_id: str) -> Business:
        business = await self.store.load_business(business_id)
        if not business or not business.is_active:
            raise NotFoundError("النشاط التجاري غير موجود أو غير متاح")
        return business

    def _check_booking_window(self, business: Business, day: date, start_time: str) -> None:
        now = self._now()
        if self._start_at(day, start_time) < now:
            raise ValidationError("لا يمكن الحجز في تاريخ ماضي")
        horizon = now.date() + timedelta(days=business.settings.booking_advance_days)
        if day > horizon:
            raise ValidationError(
                f"لا يمكن الحجز لأكثر من {business.settings.booking_advance_days} يوماً مقدماً"
            )

    def _check_opening_hours(self, business: Business, day: date, start_time: str, duration: int) -> None:
        hours = get_working_day(business.working_hours, day)
        if hours is None:
            raise OutOfHoursError("النشاط التجاري مغلق في هذا اليوم")

        if not fits_opening_hours(business.working_hours, day, start_time, duration):
            raise OutOfHoursError(f"وقت الحجز خارج ساعات العمل ({hours.open} - {hours.close})")

        if self.config.ENFORCE_SLOT_GRID:
            slots = calculate_slots(business.working_hours, day, duration, self.config.SLOT_STEP_MINUTES)
            if not any(parse_time(s.start_time) == parse_time(start_time) for s in slots):
                raise OutOfHoursError("وقت الحجز لا يطابق المواعيد المتاحة")

    def _check_business_access(self, business: Business, actor_role: Role, actor_id: Optional[str]) -> None:
        if actor_role == Role.ADMIN:
            return
        if actor_role == Role.BUSINESS and actor_id and business.owner_id == actor_id:
            return
        raise ForbiddenError("غير مصرح لك بالوصول إلى حجوزات هذا النشاط التجاري")

    def _page(self, page: int, limit: Optional[int]) -> Tuple[int, int]:
        limit = limit or self.config.DEFAULT_PAGE_SIZE
        if page < 1 or limit < 1:
            raise ValidationError("رقم الصفحة غير صحيح")
        return page, min(limit, self.config.MAX_PAGE_SIZE)

    # --- booking creation ---

    async def create_booking(
        self,
        customer_id: str,
        business_id: str,
        service_id: str,
        date,
        start_time: str,
        notes=None,
    ) -> Booking:
        """
        Create a pending booking.

        Raises ValidationError, NotFoundError, OutOfHoursError,
        SlotConflictError or StorageError. Nothing is written unless every
        check passes.
        """
        if not customer_id:
            raise ValidationError("معرف العميل مطلوب")
        if not business_id or not service_id:
            raise ValidationError("معرف النشاط التجاري والخدمة مطلوبان")

        day = parse_date(date)
        start_time = format_time(parse_time(start_time))
        notes = self._normalize_notes(notes)

        logger.info(f"📥 Booking Request - Business: {business_id}, Service: {service_id}, Day: {day}, Time: {start_time}")

        service = await self._load_service(business_id, service_id)
        business = await self._load_business(business_id)

        self._check_booking_window(business, day, start_time)
        self._check_opening_hours(business, day, start_time, service.duration)

        booking = Booking(
            business_id=business_id,
            service_id=service_id,
            customer_id=customer_id,
            date=day,
            start_time=start_time,
            end_time=add_minutes(start_time, service.duration),
            status=BookingStatus.PENDING,
            notes=notes,
            service_name=service.name,
            duration=service.duration,
            total_price=service.price,
            currency=service.currency,
            created_at=self._now(),
        )

        # The timeout covers the lock wait and the conflict check only; once
        # the insert is sent its outcome is awaited.
        writing = asyncio.Event()
        reservation = asyncio.ensure_future(self._reserve(booking, writing))
        try:
            return await asyncio.wait_for(
                asyncio.shield(reservation),
                timeout=self.config.BOOKING_TIMEOUT_SECONDS,
            )
        except asyncio.TimeoutError as e:
            if reservation.done() or writing.is_set():
                logger.warning(f"⏱️ Booking for {business_id} on {day} {start_time} is slow, waiting for the insert")
                return await reservation
            reservation.cancel()
            logger.error(f"⏱️ Booking for {business_id} on {day} {start_time} timed out")
            raise StorageError("انتهت مهلة إنشاء الحجز، حاول مرة أخرى") from e

    async def _reserve(self, booking: Booking, writing: asyncio.Event) -> Booking:
        async with self._lock_for(booking.business_id, booking.date):
            existing = await self.store.load_bookings_for(booking.business_id, booking.date, ACTIVE_STATUSES)
            result = check_conflict(
                booking.business_id, booking.date, booking.start_time, booking.duration, existing
            )
            if not result.available:
                other = result.conflicting_booking
                logger.info(f"🚫 Slot {booking.start_time} on {booking.date} conflicts with booking {other.id}")
                raise SlotConflictError(
                    f"هذا الوقت محجوز مسبقاً ({other.start_time} - {other.end_time})",
                    details={"conflicting_booking_id": other.id},
                )

            writing.set()
            booking_id = await self.store.insert_booking(booking.to_record())

        logger.info(f"✅ Booking {booking_id} created ({booking.start_time}-{booking.end_time})")
        return booking.model_copy(update={"id": booking_id})

    # --- lifecycle ---

    async def transition_booking(
        self,
        booking_id: str,
        actor_role: Union[Role, str],
        target_status: Union[BookingStatus, str],
        actor_id: Optional[str] = None,
        reason: Optional[str] = None,
    ) -> Booking:
        """Apply a status change after checking the state machine and the actor."""
        role = self._parse_role(actor_role)
        target = self._parse_status(target_status)
        if reason and len(reason) > MAX_REASON_LENGTH:
            raise ValidationError("سبب الإلغاء لا يمكن أن يتجاوز 200 حرف")

        booking = await self.store.get_booking(booking_id)
        if not booking:
            raise NotFoundError("الحجز غير موجود")

        # Serialize with creations/transitions on the same calendar day
        async with self._lock_for(booking.business_id, booking.date):
            booking = await self.store.get_booking(booking_id)
            if not booking:
                raise NotFoundError("الحجز غير موجود")
            business = await self.store.load_business(booking.business_id)
            if not business:
                raise NotFoundError("النشاط التجاري غير موجود")

            now = self._now()
            authorize_transition(
                booking,
                business,
                role,
                target,
                actor_id=actor_id,
                now=now,
                start_at=self._start_at(booking.date, booking.start_time),
            )

            fields = {}
            if target == BookingStatus.CANCELLED:
                fields = {
                    "cancelled_by": role,
                    "cancelled_at": now,
                    "cancellation_reason": reason,
                }
            await self.store.update_booking_status(
                booking_id,
                target,
                **{key: getattr(value, "value", value) for key, value in fields.items()},
            )

        logger.info(f"🔄 Booking {booking_id}: {booking.status.value} -> {target.value} by {role.value}")
        return booking.model_copy(update={"status": target, "updated_at": now, **fields})

    # --- reads ---

    async def get_booking(
        self,
        booking_id: str,
        actor_role: Union[Role, str],
        actor_id: Optional[str] = None,
    ) -> Booking:
        role = self._parse_role(actor_role)
        booking = await self.store.get_booking(booking_id)
        if not booking:
            raise NotFoundError("الحجز غير موجود")

        if role == Role.CUSTOMER:
            if not actor_id or booking.customer_id != actor_id:
                raise ForbiddenError()
        elif role == Role.BUSINESS:
            business = await self.store.load_business(booking.business_id)
            if not business:
                raise NotFoundError("النشاط التجاري غير موجود")
            self._check_business_access(business, role, actor_id)
        return booking

    async def list_business_bookings(
        self,
        business_id: str,
        actor_role: Union[Role, str],
        actor_id: Optional[str] = None,
        status: Optional[Union[BookingStatus, str]] = None,
        date=None,
        page: int = 1,
        limit: Optional[int] = None,
    ) -> BookingPage:
        role = self._parse_role(actor_role)
        business = await self.store.load_business(business_id)
        if not business:
            raise NotFoundError("النشاط التجاري غير موجود")
        self._check_business_access(business, role, actor_id)

        filters = {
            "business_id": business_id,
            "status": self._parse_status(status).value if status else None,
            "date": parse_date(date) if date else None,
        }
        return await self._list(filters, page, limit)

    async def list_customer_bookings(
        self,
        customer_id: str,
        status: Optional[Union[BookingStatus, str]] = None,
        page: int = 1,
        limit: Optional[int] = None,
    ) -> BookingPage:
        if not customer_id:
            raise ValidationError("معرف العميل مطلوب")
        filters = {
            "customer_id": customer_id,
            "status": self._parse_status(status).value if status else None,
        }
        return await self._list(filters, page, limit)

    async def _list(self, filters: Dict, page: int, limit: Optional[int]) -> BookingPage:
        page, limit = self._page(page, limit)
        items, total = await self.store.list_bookings(filters, offset=(page - 1) * limit, limit=limit)
        return BookingPage(
            items=items,
            total=total,
            page=page,
            limit=limit,
            pages=math.ceil(total / limit) if total else 0,
        )

    async def get_available_slots(self, business_id: str, service_id: str, date) -> List[Slot]:
        """
        Free slots for a service on a date.

        Empty when the business is closed or the date has passed; for today
        only slots that have not started yet are offered.
        """
        day = parse_date(date)
        service = await self._load_service(business_id, service_id)
        working_hours = await self.store.load_business_hours(business_id)
        if working_hours is None:
            raise NotFoundError("النشاط التجاري غير موجود أو غير متاح")

        now = self._now()
        if day < now.date():
            return []
        slots = calculate_slots(working_hours, day, service.duration, self.config.SLOT_STEP_MINUTES)
        if day == now.date():
            cutoff = now.hour * 60 + now.minute
            slots = [s for s in slots if parse_time(s.start_time) >= cutoff]
        if not slots:
            return []
        existing = await self.store.load_bookings_for(business_id, day, ACTIVE_STATUSES)
        return filter_free_slots(slots, existing)

    async def get_booking_stats(
        self,
        business_id: str,
        actor_role: Union[Role, str] = Role.ADMIN,
        actor_id: Optional[str] = None,
    ) -> BookingStats:
        role = self._parse_role(actor_role)
        business = await self.store.load_business(business_id)
        if not business:
            raise NotFoundError("النشاط التجاري غير موجود")
        self._check_business_access(business, role, actor_id)

        bookings = await self.store.all_bookings_for_business(business_id)
        today = self._now().date()

        def count(status: BookingStatus) -> int:
            return sum(1 for b in bookings if b.status == status)

        return BookingStats(
            total_bookings=len(bookings),
            today_bookings=sum(1 for b in bookings if b.date == today and b.is_active),
            pending_bookings=count(BookingStatus.PENDING),
            confirmed_bookings=count(BookingStatus.CONFIRMED),
            completed_bookings=count(BookingStatus.COMPLETED),
            cancelled_bookings=count(BookingStatus.CANCELLED),
            no_show_bookings=count(BookingStatus.NO_SHOW),
            total_revenue=sum(b.total_price for b in bookings if b.status == BookingStatus.COMPLETED),
            total_customers=len({b.customer_id for b in bookings}),
        )

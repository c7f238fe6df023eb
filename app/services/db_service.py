from supabase import create_async_client, AsyncClient
from postgrest.exceptions import APIError
from app.core.config import settings
from app.core.errors import StorageError, SlotConflictError
from app.models.db_models import Booking, Business, Service, BookingStatus, WorkingDay, default_working_hours
import logging
from zoneinfo import ZoneInfo
from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Optional, Tuple

logger = logging.getLogger("app")

# Postgres codes raised by the bookings_no_overlap / unique constraints
CONFLICT_CODES = {"23505", "23P01"}


class DBService:
    """
    Supabase persistence for businesses, services and bookings.

    Every failure surfaces as StorageError; the booking core decides what to
    do with it. Overlap rejections from the database become SlotConflictError.
    """
    _instance = None
    _client: AsyncClient = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super(DBService, cls).__new__(cls)
        return cls._instance

    async def get_client(self) -> AsyncClient:
        if not self._client:
            if not (settings.SUPABASE_URL and settings.SUPABASE_KEY):
                logger.error("❌ Supabase credentials missing")
                raise StorageError("قاعدة البيانات غير متصلة")
            try:
                self._client = await create_async_client(settings.SUPABASE_URL, settings.SUPABASE_KEY)
                logger.info("✅ Supabase Async client initialized")
            except Exception as e:
                logger.error(f"❌ Failed to initialize Supabase Async: {e}")
                raise StorageError("قاعدة البيانات غير متصلة") from e
        return self._client

    async def _execute(self, query, operation: str):
        try:
            return await query.execute()
        except APIError as e:
            if e.code in CONFLICT_CODES:
                logger.warning(f"⚠️ DB rejected overlapping booking ({operation}): {e.message}")
                raise SlotConflictError() from e
            logger.error(f"❌ DB Error ({operation}): {e.message}")
            raise StorageError() from e
        except Exception as e:
            logger.error(f"❌ DB Error ({operation}): {e}")
            raise StorageError() from e

    async def load_business(self, business_id: str) -> Optional[Business]:
        client = await self.get_client()
        response = await self._execute(
            client.table('businesses').select("*").eq('id', business_id).limit(1),
            "load_business",
        )
        if not response.data:
            return None
        return Business(**response.data[0])

    async def load_business_hours(self, business_id: str) -> Optional[Dict[str, WorkingDay]]:
        """Weekly hours of an active business, None when missing or inactive."""
        client = await self.get_client()
        response = await self._execute(
            client.table('businesses').select("working_hours, is_active").eq('id', business_id).limit(1),
            "load_business_hours",
        )
        if not response.data or not response.data[0].get('is_active', True):
            return None
        hours = response.data[0].get('working_hours')
        if not hours:
            return default_working_hours()
        return {day: WorkingDay(**value) for day, value in hours.items()}

    async def load_service(self, service_id: str) -> Optional[Service]:
        client = await self.get_client()
        response = await self._execute(
            client.table('services').select("*").eq('id', service_id).limit(1),
            "load_service",
        )
        if not response.data:
            return None
        return Service(**response.data[0])

    async def load_bookings_for(
        self,
        business_id: str,
        day: date,
        statuses: Iterable[BookingStatus],
    ) -> List[Booking]:
        client = await self.get_client()
        response = await self._execute(
            client.table('bookings')
            .select("*")
            .eq('business_id', business_id)
            .eq('date', day.isoformat())
            .in_('status', [BookingStatus(s).value for s in statuses])
            .order('start_time', desc=False),
            "load_bookings_for",
        )
        return [Booking(**row) for row in response.data or []]

    async def insert_booking(self, record: Dict[str, Any]) -> str:
        client = await self.get_client()
        response = await self._execute(
            client.table('bookings').insert(record),
            "insert_booking",
        )
        if not response.data:
            logger.error("❌ DB Error (insert_booking): no row returned")
            raise StorageError()
        booking_id = str(response.data[0]['id'])
        logger.info(f"✅ Booking {booking_id} stored for business {record.get('business_id')}")
        return booking_id

    async def update_booking_status(self, booking_id: str, status: BookingStatus, **fields) -> None:
        client = await self.get_client()
        update = {
            key: (value.isoformat() if isinstance(value, datetime) else value)
            for key, value in fields.items()
        }
        update['status'] = BookingStatus(status).value
        update['updated_at'] = datetime.now(ZoneInfo(settings.TIMEZONE)).isoformat()
        response = await self._execute(
            client.table('bookings').update(update).eq('id', booking_id),
            "update_booking_status",
        )
        if not response.data:
            logger.error(f"❌ DB Error (update_booking_status): booking {booking_id} not updated")
            raise StorageError()
        logger.info(f"🔄 Booking {booking_id} -> {update['status']}")

    async def get_booking(self, booking_id: str) -> Optional[Booking]:
        client = await self.get_client()
        response = await self._execute(
            client.table('bookings').select("*").eq('id', booking_id).limit(1),
            "get_booking",
        )
        if not response.data:
            return None
        return Booking(**response.data[0])

    async def list_bookings(
        self,
        filters: Dict[str, Any],
        offset: int = 0,
        limit: int = 20,
    ) -> Tuple[List[Booking], int]:
        """
        Returns (page, total). Filters are exact-match columns; the newest
        dates come first.
        """
        client = await self.get_client()
        query = client.table('bookings').select("*", count="exact")
        for column, value in filters.items():
            if value is None:
                continue
            if isinstance(value, date):
                value = value.isoformat()
            query = query.eq(column, value)
        query = query.order('date', desc=True).order('start_time', desc=False).range(offset, offset + limit - 1)
        response = await self._execute(query, "list_bookings")
        bookings = [Booking(**row) for row in response.data or []]
        total = response.count if response.count is not None else len(bookings)
        return bookings, total

    async def all_bookings_for_business(self, business_id: str) -> List[Booking]:
        client = await self.get_client()
        response = await self._execute(
            client.table('bookings').select("*").eq('business_id', business_id),
            "all_bookings_for_business",
        )
        return [Booking(**row) for row in response.data or []]

db_service = DBService()

from typing import Optional, Dict, Any
from datetime import datetime, date as date_type
from enum import Enum
from pydantic import BaseModel, Field


class Role(str, Enum):
    CUSTOMER = "customer"
    BUSINESS = "business"
    ADMIN = "admin"


class BookingStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_SHOW = "no_show"


# Statuses that hold a slot on the business calendar
ACTIVE_STATUSES = (BookingStatus.PENDING, BookingStatus.CONFIRMED)

WEEKDAYS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")


class WorkingDay(BaseModel):
    is_open: bool = True
    open: str = "09:00"
    close: str = "17:00"


def default_working_hours() -> Dict[str, WorkingDay]:
    # Friday and Sunday are closed by default
    return {
        day: WorkingDay(is_open=day not in ("friday", "sunday"))
        for day in WEEKDAYS
    }


class BusinessSettings(BaseModel):
    booking_advance_days: int = Field(default=30, ge=1, le=365)
    allow_cancellation: bool = True
    cancellation_hours: int = Field(default=24, ge=0)
    require_confirmation: bool = False


class Business(BaseModel):
    id: str
    name: str = ""
    category: Optional[str] = None
    owner_id: str
    phone: Optional[str] = None
    email: Optional[str] = None
    is_active: bool = True
    working_hours: Dict[str, WorkingDay] = Field(default_factory=default_working_hours)
    settings: BusinessSettings = Field(default_factory=BusinessSettings)


class Service(BaseModel):
    id: str
    business_id: str
    name: str = ""
    duration: int = Field(gt=0)  # minutes
    price: float = Field(default=0, ge=0)
    currency: str = "SAR"
    category: Optional[str] = None
    is_active: bool = True


class BookingNotes(BaseModel):
    customer: str = ""
    business: str = ""


class Booking(BaseModel):
    id: Optional[str] = Field(default=None)
    business_id: str
    service_id: str
    customer_id: str
    date: date_type
    start_time: str
    end_time: str
    status: BookingStatus = BookingStatus.PENDING
    notes: BookingNotes = Field(default_factory=BookingNotes)

    # Snapshot of the service at booking time
    service_name: str = ""
    duration: int = 0
    total_price: float = 0
    currency: str = "SAR"

    cancelled_by: Optional[Role] = None
    cancellation_reason: Optional[str] = None
    cancelled_at: Optional[datetime] = None

    created_at: datetime = Field(default_factory=datetime.now)
    updated_at: Optional[datetime] = None

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_STATUSES

    def to_record(self) -> Dict[str, Any]:
        """Row shape used by the persistence layer (JSON-safe, no id)."""
        return self.model_dump(mode="json", exclude={"id"})

from pydantic import BaseModel, Field
from typing import Optional, List, Any

from app.models.db_models import Booking, BookingNotes, BookingStatus

# --- Incoming Request Models ---

class CreateBookingRequest(BaseModel):
    business_id: str
    service_id: str
    date: str  # YYYY-MM-DD
    start_time: str  # HH:MM
    notes: Optional[BookingNotes] = None

class UpdateStatusRequest(BaseModel):
    status: BookingStatus
    reason: Optional[str] = Field(default=None, max_length=200)

class CancelBookingRequest(BaseModel):
    reason: Optional[str] = Field(default=None, max_length=200)

# --- Outgoing Response Models ---

class BookingPage(BaseModel):
    items: List[Booking]
    total: int
    page: int
    limit: int
    pages: int

class BookingStats(BaseModel):
    """Aggregate counts for one business; revenue counts completed bookings only."""
    total_bookings: int = 0
    today_bookings: int = 0
    pending_bookings: int = 0
    confirmed_bookings: int = 0
    completed_bookings: int = 0
    cancelled_bookings: int = 0
    no_show_bookings: int = 0
    total_revenue: float = 0
    total_customers: int = 0

class ApiResponse(BaseModel):
    success: bool = True
    message: Optional[str] = None
    data: Any = None

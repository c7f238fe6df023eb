"""
Typed errors raised by the booking core.

Every error carries the HTTP status and a stable error code so the API layer
can map it without inspecting messages. Messages are user-facing (Arabic).
"""
from typing import Any, Dict, Optional


class BookingError(Exception):
    """Base class for all booking core failures."""
    status_code: int = 400
    error_code: str = "BOOKING_ERROR"
    default_message: str = "حدث خطأ في معالجة الحجز"

    def __init__(self, message: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        self.message = message or self.default_message
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        payload = {
            "success": False,
            "message": self.message,
            "error_code": self.error_code,
        }
        if self.details:
            payload["details"] = self.details
        return payload


class ValidationError(BookingError):
    """Malformed input: bad date/time format, non-positive duration, etc."""
    status_code = 400
    error_code = "VALIDATION_ERROR"
    default_message = "بيانات الحجز غير صحيحة"


class NotFoundError(BookingError):
    status_code = 404
    error_code = "NOT_FOUND"
    default_message = "العنصر المطلوب غير موجود"


class OutOfHoursError(BookingError):
    """Slot outside business hours, or the business is closed that day."""
    status_code = 422
    error_code = "OUT_OF_HOURS"
    default_message = "وقت الحجز خارج ساعات العمل"


class SlotConflictError(BookingError):
    status_code = 409
    error_code = "SLOT_CONFLICT"
    default_message = "هذا الوقت محجوز مسبقاً"


class InvalidTransitionError(BookingError):
    status_code = 409
    error_code = "INVALID_TRANSITION"
    default_message = "لا يمكن تغيير حالة الحجز"


class ForbiddenError(BookingError):
    status_code = 403
    error_code = "FORBIDDEN"
    default_message = "غير مصرح لك بالوصول إلى هذا الحجز"


class StorageError(BookingError):
    """Persistence collaborator failure. Not retried by the core."""
    status_code = 503
    error_code = "STORAGE_ERROR"
    default_message = "خطأ في قاعدة البيانات"

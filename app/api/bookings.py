from fastapi import APIRouter, Depends, HTTPException, Query
from typing import Optional

from app.core.security import Actor, get_actor, verify_secret_token
from app.models.db_models import BookingStatus, Role
from app.models.schemas import ApiResponse, CancelBookingRequest, CreateBookingRequest, UpdateStatusRequest
from app.services.booking_service import BookingService

router = APIRouter(prefix="/bookings", dependencies=[Depends(verify_secret_token)])
booking_service = BookingService()


def get_booking_service() -> BookingService:
    return booking_service


@router.post("/", status_code=201, response_model=ApiResponse)
async def create_booking(
    req: CreateBookingRequest,
    actor: Actor = Depends(get_actor),
    service: BookingService = Depends(get_booking_service),
):
    if actor.role != Role.CUSTOMER or not actor.id:
        raise HTTPException(status_code=403, detail="Only customers can create bookings")

    booking = await service.create_booking(
        actor.id, req.business_id, req.service_id, req.date, req.start_time, req.notes
    )
    return ApiResponse(message="تم إنشاء الحجز بنجاح", data=booking)


@router.get("/available-slots/{business_id}/{service_id}", response_model=ApiResponse)
async def available_slots(
    business_id: str,
    service_id: str,
    date: str = Query(...),
    service: BookingService = Depends(get_booking_service),
):
    slots = await service.get_available_slots(business_id, service_id, date)
    message = None if slots else "لا توجد أوقات متاحة في هذا اليوم"
    return ApiResponse(message=message, data=slots)


@router.get("/my-bookings", response_model=ApiResponse)
async def my_bookings(
    status: Optional[BookingStatus] = None,
    page: int = 1,
    limit: Optional[int] = None,
    actor: Actor = Depends(get_actor),
    service: BookingService = Depends(get_booking_service),
):
    if not actor.id:
        raise HTTPException(status_code=401, detail="Missing actor id")
    result = await service.list_customer_bookings(actor.id, status=status, page=page, limit=limit)
    return ApiResponse(data=result)


@router.get("/business/{business_id}", response_model=ApiResponse)
async def business_bookings(
    business_id: str,
    status: Optional[BookingStatus] = None,
    date: Optional[str] = None,
    page: int = 1,
    limit: Optional[int] = None,
    actor: Actor = Depends(get_actor),
    service: BookingService = Depends(get_booking_service),
):
    result = await service.list_business_bookings(
        business_id, actor.role, actor.id, status=status, date=date, page=page, limit=limit
    )
    return ApiResponse(data=result)


@router.get("/stats/{business_id}", response_model=ApiResponse)
async def booking_stats(
    business_id: str,
    actor: Actor = Depends(get_actor),
    service: BookingService = Depends(get_booking_service),
):
    stats = await service.get_booking_stats(business_id, actor.role, actor.id)
    return ApiResponse(data=stats)


@router.get("/{booking_id}", response_model=ApiResponse)
async def get_booking(
    booking_id: str,
    actor: Actor = Depends(get_actor),
    service: BookingService = Depends(get_booking_service),
):
    booking = await service.get_booking(booking_id, actor.role, actor.id)
    return ApiResponse(data=booking)


@router.put("/{booking_id}/status", response_model=ApiResponse)
async def update_status(
    booking_id: str,
    req: UpdateStatusRequest,
    actor: Actor = Depends(get_actor),
    service: BookingService = Depends(get_booking_service),
):
    booking = await service.transition_booking(
        booking_id, actor.role, req.status, actor_id=actor.id, reason=req.reason
    )
    return ApiResponse(message="تم تحديث حالة الحجز بنجاح", data=booking)


@router.put("/{booking_id}/cancel", response_model=ApiResponse)
async def cancel_booking(
    booking_id: str,
    req: CancelBookingRequest,
    actor: Actor = Depends(get_actor),
    service: BookingService = Depends(get_booking_service),
):
    booking = await service.transition_booking(
        booking_id, actor.role, BookingStatus.CANCELLED, actor_id=actor.id, reason=req.reason
    )
    return ApiResponse(message="تم إلغاء الحجز بنجاح", data=booking)

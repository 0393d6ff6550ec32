"""
Booking API routes.
"""
import math
from datetime import date, datetime
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field

from hhs.api.dependencies import get_booking_service, get_current_identity, require_roles
from hhs.models.bookings import Booking, BookingStatus, ConsultationType
from hhs.models.users import UserRole
from hhs.services.booking_service import BookingDetails, BookingService
from hhs.services.role_guard import AuthorizedIdentity


# Pydantic schemas
class BookingCreateRequest(BaseModel):
    """Booking request submitted by a client."""
    consultation_type: ConsultationType
    scheduled_date: date
    scheduled_time: str = Field(..., min_length=1, max_length=16)
    design_id: Optional[UUID] = None
    artist_id: Optional[UUID] = None
    event_date: Optional[date] = None
    message: Optional[str] = Field(None, max_length=2000)


class BookingStatusRequest(BaseModel):
    status: BookingStatus
    notes: Optional[str] = Field(None, max_length=2000)


class BookingResponse(BaseModel):
    id: UUID
    user_id: UUID
    artist_id: Optional[UUID] = None
    design_id: Optional[UUID] = None
    consultation_type: str
    status: str
    scheduled_date: date
    scheduled_time: str
    event_date: Optional[date] = None
    confirmation_code: str
    message: Optional[str] = None
    notes: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class PaginationResponse(BaseModel):
    page: int
    limit: int
    total: int
    pages: int


class BookingListResponse(BaseModel):
    bookings: List[BookingResponse]
    pagination: PaginationResponse


def _booking_response(booking: Booking) -> BookingResponse:
    return BookingResponse(
        id=booking.id,
        user_id=booking.user_id,
        artist_id=booking.artist_id,
        design_id=booking.design_id,
        consultation_type=booking.consultation_type.value,
        status=booking.status.value,
        scheduled_date=booking.scheduled_date,
        scheduled_time=booking.scheduled_time,
        event_date=booking.event_date,
        confirmation_code=booking.confirmation_code,
        message=booking.message,
        notes=booking.notes,
        created_at=booking.created_at,
        updated_at=booking.updated_at,
    )


# Router
router = APIRouter(prefix="/bookings", tags=["bookings"])


@router.post("", response_model=BookingResponse, status_code=status.HTTP_201_CREATED)
def create_booking(
    request: BookingCreateRequest,
    identity: AuthorizedIdentity = Depends(get_current_identity),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingResponse:
    """
    Request a consultation.

    The booking starts PENDING with a fresh HHS- confirmation code. The
    confirmation email is sent in the background; delivery failures never
    affect this response.
    """
    booking = booking_service.create(
        identity,
        BookingDetails(
            consultation_type=request.consultation_type,
            scheduled_date=request.scheduled_date,
            scheduled_time=request.scheduled_time,
            design_id=request.design_id,
            artist_id=request.artist_id,
            event_date=request.event_date,
            message=request.message,
        ),
    )
    return _booking_response(booking)


@router.get("/my", response_model=List[BookingResponse])
def my_bookings(
    identity: AuthorizedIdentity = Depends(get_current_identity),
    booking_service: BookingService = Depends(get_booking_service),
) -> List[BookingResponse]:
    """Bookings the caller requested."""
    return [_booking_response(b) for b in booking_service.list_for_user(identity.user_id)]


@router.get("", response_model=BookingListResponse)
def list_bookings(
    status_filter: Optional[BookingStatus] = Query(None, alias="status", description="Filter by status"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    actor: AuthorizedIdentity = Depends(require_roles(UserRole.ADMIN, UserRole.ARTIST)),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingListResponse:
    """
    Paginated booking list for staff.

    Admins see all bookings; artists see the bookings assigned to them.
    """
    bookings, total = booking_service.list_bookings(actor, status=status_filter, page=page, limit=limit)
    return BookingListResponse(
        bookings=[_booking_response(b) for b in bookings],
        pagination=PaginationResponse(
            page=page,
            limit=limit,
            total=total,
            pages=math.ceil(total / limit) if total else 0,
        ),
    )


@router.get("/{booking_id}", response_model=BookingResponse)
def get_booking(
    booking_id: UUID,
    identity: AuthorizedIdentity = Depends(get_current_identity),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingResponse:
    return _booking_response(booking_service.get_booking(booking_id, identity))


@router.patch("/{booking_id}/status", response_model=BookingResponse)
def update_booking_status(
    booking_id: UUID,
    request: BookingStatusRequest,
    actor: AuthorizedIdentity = Depends(require_roles(UserRole.ADMIN, UserRole.ARTIST)),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingResponse:
    """
    Move a booking along PENDING → CONFIRMED → COMPLETED (or to CANCELLED).

    Returns 409 when the requested status is not reachable from the
    current one.
    """
    booking = booking_service.set_status(booking_id, actor, request.status, notes=request.notes)
    return _booking_response(booking)


@router.post("/{booking_id}/cancel", response_model=BookingResponse)
def cancel_booking(
    booking_id: UUID,
    identity: AuthorizedIdentity = Depends(get_current_identity),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingResponse:
    return _booking_response(booking_service.cancel(booking_id, identity))

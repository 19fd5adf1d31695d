"""HTTP controller layer for meeting requests and booking lifecycle."""

from __future__ import annotations

from datetime import datetime
from typing import Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field, field_validator

from backend.controllers.dependencies import get_meeting_request_service
from backend.domain.models import (
    AllocationResult,
    AlternativeOption,
    Booking,
    ConfirmedBooking,
    MeetingRequestData,
    User,
)
from backend.services.booking_service import (
    AttendeeNotFoundError,
    BookingConflictError,
    BookingNotFoundError,
    DuplicateAttendeeError,
    MeetingRequestNotFoundError,
    MeetingRequestNotPendingError,
    MeetingRequestService,
    MeetingRequestValidationError,
)
from backend.services.catalog_service import RoomNotFoundError
from backend.utils.logger import get_logger


logger = get_logger(__name__)

router = APIRouter(tags=["bookings"])


class MeetingRequestCreate(BaseModel):
    """Input DTO validated before entering service layer."""

    organizer_id: int = Field(gt=0)
    duration: int = Field(gt=0, description="Meeting length in minutes")
    required_equipment: list[int] = Field(default_factory=list)
    preferred_start: datetime
    flexibility: int = Field(default=0, ge=0, description="Minutes the start may move")
    priority: Literal["low", "normal", "high", "urgent"] = "normal"
    attendees: list[int] = Field(min_length=1)

    @field_validator("attendees", "required_equipment")
    @classmethod
    def validate_positive_ids(cls, value: list[int]) -> list[int]:
        if any(item <= 0 for item in value):
            raise ValueError("ids must be positive integers")
        return value


class BookedRoomResponse(BaseModel):
    id: int
    name: str
    capacity: int = Field(ge=0)
    location: Optional[str] = None


class BookingConfirmationResponse(BaseModel):
    id: int
    room: BookedRoomResponse
    start_at: datetime
    end_at: datetime
    attendees: int = Field(ge=0)


class AlternativeOptionResponse(BaseModel):
    room_id: int
    room_name: str
    capacity: int = Field(ge=0)
    hourly_rate: float = Field(ge=0.0)
    location: Optional[str] = None
    suggested_start: datetime
    suggested_end: datetime
    cost_saved: float
    time_shift: int = Field(ge=0)


class PendingRequestResponse(BaseModel):
    id: int
    status: str
    preferred_start: datetime
    duration: int
    attendees: int


class MeetingRequestResponse(BaseModel):
    success: bool
    message: str
    booking: Optional[BookingConfirmationResponse] = None
    alternatives: list[AlternativeOptionResponse] = Field(default_factory=list)
    meeting_request: Optional[PendingRequestResponse] = None


class ConfirmAlternativeRequest(BaseModel):
    meeting_request_id: int = Field(gt=0)
    room_id: int = Field(gt=0)
    start_at: datetime


class CheckInResponse(BaseModel):
    success: bool
    message: str
    checked_in_at: Optional[datetime] = None


class AutoReleaseResponse(BaseModel):
    released: int = Field(ge=0)
    timestamp: datetime


class BookingResponse(BaseModel):
    id: int
    meeting_request_id: int
    room_id: Optional[int] = None
    start_at: datetime
    end_at: datetime
    status: str
    checked_in_at: Optional[datetime] = None


class AttendeeCreate(BaseModel):
    user_id: int = Field(gt=0)


class AttendeeResponse(BaseModel):
    id: int
    name: str
    email: str


def _booking_confirmation(booking: ConfirmedBooking) -> BookingConfirmationResponse:
    return BookingConfirmationResponse(
        id=booking.booking_id,
        room=BookedRoomResponse(
            id=booking.room.room_id,
            name=booking.room.name,
            capacity=booking.room.capacity,
            location=booking.room.location,
        ),
        start_at=booking.start_at,
        end_at=booking.end_at,
        attendees=booking.attendees,
    )


def _alternative(option: AlternativeOption) -> AlternativeOptionResponse:
    return AlternativeOptionResponse(
        room_id=option.room_id,
        room_name=option.room_name,
        capacity=option.capacity,
        hourly_rate=option.hourly_rate,
        location=option.location,
        suggested_start=option.suggested_start,
        suggested_end=option.suggested_end,
        cost_saved=option.cost_saved,
        time_shift=option.time_shift,
    )


def _meeting_request_response(result: AllocationResult) -> MeetingRequestResponse:
    pending = None
    if result.meeting_request is not None:
        pending = PendingRequestResponse(
            id=result.meeting_request.request_id,
            status=result.meeting_request.status,
            preferred_start=result.meeting_request.preferred_start,
            duration=result.meeting_request.duration,
            attendees=len(result.meeting_request.attendees),
        )
    return MeetingRequestResponse(
        success=result.success,
        message=result.message,
        booking=_booking_confirmation(result.booking) if result.booking is not None else None,
        alternatives=[_alternative(option) for option in result.alternatives],
        meeting_request=pending,
    )


def _booking(booking: Booking) -> BookingResponse:
    return BookingResponse(
        id=booking.booking_id,
        meeting_request_id=booking.meeting_request_id,
        room_id=booking.room_id,
        start_at=booking.start_at,
        end_at=booking.end_at,
        status=booking.status,
        checked_in_at=booking.checked_in_at,
    )


@router.post(
    "/meeting_requests",
    response_model=MeetingRequestResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_meeting_request(
    payload: MeetingRequestCreate,
    service: MeetingRequestService = Depends(get_meeting_request_service),
) -> MeetingRequestResponse:
    """Book a room at the preferred time or return ranked alternatives."""
    try:
        result = service.create_meeting_request(
            MeetingRequestData(
                organizer_id=payload.organizer_id,
                duration=payload.duration,
                preferred_start=payload.preferred_start,
                attendees=tuple(payload.attendees),
                required_equipment=tuple(payload.required_equipment),
                flexibility=payload.flexibility,
                priority=payload.priority,
            )
        )
    except MeetingRequestValidationError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc
    except Exception as exc:  # pragma: no cover - defensive fallback
        logger.exception("Unexpected allocation failure")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to process meeting request",
        ) from exc

    if result.invalid_attendees:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={
                "message": result.message,
                "invalid_attendees": result.invalid_attendees,
            },
        )
    return _meeting_request_response(result)


@router.post(
    "/bookings/confirm",
    response_model=BookingConfirmationResponse,
    status_code=status.HTTP_201_CREATED,
)
async def confirm_alternative(
    payload: ConfirmAlternativeRequest,
    service: MeetingRequestService = Depends(get_meeting_request_service),
) -> BookingConfirmationResponse:
    """Confirm one of the suggested alternatives for a pending request."""
    try:
        booking = service.confirm_alternative(
            meeting_request_id=payload.meeting_request_id,
            room_id=payload.room_id,
            start_at=payload.start_at,
        )
        return _booking_confirmation(booking)
    except (MeetingRequestNotFoundError, RoomNotFoundError) as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(exc),
        ) from exc
    except (MeetingRequestNotPendingError, BookingConflictError) as exc:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=str(exc),
        ) from exc
    except MeetingRequestValidationError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc
    except Exception as exc:  # pragma: no cover - defensive fallback
        logger.exception("Unexpected confirmation failure")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to confirm booking",
        ) from exc


@router.get(
    "/bookings",
    response_model=list[BookingResponse],
    status_code=status.HTTP_200_OK,
)
async def list_bookings(
    room_id: Optional[int] = Query(default=None, gt=0),
    booking_status: Optional[Literal["confirmed", "cancelled"]] = Query(
        default=None, alias="status"
    ),
    organizer_id: Optional[int] = Query(default=None, gt=0),
    start_from: Optional[datetime] = Query(
        default=None, description="Only bookings starting at or after this instant"
    ),
    start_to: Optional[datetime] = Query(
        default=None, description="Only bookings starting at or before this instant"
    ),
    service: MeetingRequestService = Depends(get_meeting_request_service),
) -> list[BookingResponse]:
    try:
        bookings = service.list_bookings(
            room_id=room_id,
            status=booking_status,
            organizer_id=organizer_id,
            start_from=start_from,
            start_to=start_to,
        )
    except MeetingRequestValidationError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc
    return [_booking(booking) for booking in bookings]


@router.post(
    "/bookings/auto_release",
    response_model=AutoReleaseResponse,
    status_code=status.HTTP_200_OK,
)
async def auto_release_unused_bookings(
    service: MeetingRequestService = Depends(get_meeting_request_service),
) -> AutoReleaseResponse:
    """Cancel confirmed bookings that were never checked into."""
    result = service.auto_release_unused_bookings()
    return AutoReleaseResponse(released=result.released, timestamp=result.timestamp)


@router.post(
    "/bookings/{booking_id}/check_in",
    response_model=CheckInResponse,
    status_code=status.HTTP_200_OK,
)
async def check_in_booking(
    booking_id: int,
    service: MeetingRequestService = Depends(get_meeting_request_service),
) -> CheckInResponse:
    result = service.check_in_booking(booking_id)
    if result.reason == "not_found":
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=result.message,
        )
    if not result.success:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=result.message,
        )
    return CheckInResponse(
        success=result.success,
        message=result.message,
        checked_in_at=result.checked_in_at,
    )


def _attendees(users: list[User]) -> list[AttendeeResponse]:
    return [AttendeeResponse(id=user.user_id, name=user.name, email=user.email) for user in users]


@router.get(
    "/bookings/{booking_id}/attendees",
    response_model=list[AttendeeResponse],
    status_code=status.HTTP_200_OK,
)
async def list_booking_attendees(
    booking_id: int,
    service: MeetingRequestService = Depends(get_meeting_request_service),
) -> list[AttendeeResponse]:
    try:
        return _attendees(service.list_booking_attendees(booking_id))
    except BookingNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc


@router.post(
    "/bookings/{booking_id}/attendees",
    response_model=list[AttendeeResponse],
    status_code=status.HTTP_201_CREATED,
)
async def add_booking_attendee(
    booking_id: int,
    payload: AttendeeCreate,
    service: MeetingRequestService = Depends(get_meeting_request_service),
) -> list[AttendeeResponse]:
    try:
        return _attendees(service.add_booking_attendee(booking_id, payload.user_id))
    except (BookingNotFoundError, AttendeeNotFoundError) as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except DuplicateAttendeeError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc


@router.delete(
    "/bookings/{booking_id}/attendees/{user_id}",
    status_code=status.HTTP_204_NO_CONTENT,
)
async def remove_booking_attendee(
    booking_id: int,
    user_id: int,
    service: MeetingRequestService = Depends(get_meeting_request_service),
) -> None:
    try:
        service.remove_booking_attendee(booking_id, user_id)
    except (BookingNotFoundError, AttendeeNotFoundError) as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc

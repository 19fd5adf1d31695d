"""Domain models for room allocation and alternative suggestion."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Literal, Optional


MeetingPriority = Literal["low", "normal", "high", "urgent"]
MeetingRequestStatus = Literal["pending", "approved", "rejected"]
BookingStatus = Literal["confirmed", "cancelled"]
CheckInFailureReason = Literal["not_found", "already_cancelled", "already_checked_in"]

MEETING_PRIORITIES: tuple[str, ...] = ("low", "normal", "high", "urgent")


@dataclass(frozen=True)
class User:
    user_id: int
    name: str
    email: str


@dataclass(frozen=True)
class Equipment:
    equipment_id: int
    name: str


@dataclass(frozen=True)
class RoomEquipmentLink:
    link_id: int
    room_id: int
    equipment_id: Optional[int]
    equipment: Optional[Equipment]


@dataclass(frozen=True)
class Room:
    room_id: int
    capacity: int
    hourly_rate: float
    name: Optional[str] = None
    location: Optional[str] = None
    equipment: tuple[RoomEquipmentLink, ...] = ()

    @property
    def display_name(self) -> str:
        return self.name or f"Room {self.room_id}"


@dataclass(frozen=True)
class MeetingRequestData:
    """Organizer input for one allocation call."""

    organizer_id: int
    duration: int
    preferred_start: datetime
    attendees: tuple[int, ...]
    required_equipment: tuple[int, ...] = ()
    flexibility: int = 0
    priority: MeetingPriority = "normal"

    @property
    def attendee_count(self) -> int:
        return len(self.attendees)


@dataclass(frozen=True)
class MeetingRequest:
    request_id: int
    organizer_id: int
    duration: int
    preferred_start: datetime
    attendees: tuple[int, ...]
    required_equipment: tuple[int, ...]
    flexibility: int
    priority: MeetingPriority
    status: MeetingRequestStatus


@dataclass(frozen=True)
class Booking:
    booking_id: int
    meeting_request_id: int
    room_id: Optional[int]
    start_at: datetime
    end_at: datetime
    status: BookingStatus
    checked_in_at: Optional[datetime] = None


@dataclass(frozen=True)
class AlternativeOption:
    room_id: int
    room_name: str
    capacity: int
    hourly_rate: float
    location: Optional[str]
    suggested_start: datetime
    suggested_end: datetime
    cost_saved: float
    time_shift: int


@dataclass(frozen=True)
class BookedRoom:
    room_id: int
    name: str
    capacity: int
    location: Optional[str]


@dataclass(frozen=True)
class ConfirmedBooking:
    booking_id: int
    room: BookedRoom
    start_at: datetime
    end_at: datetime
    attendees: int


@dataclass(frozen=True)
class AllocationResult:
    success: bool
    message: str
    booking: Optional[ConfirmedBooking] = None
    alternatives: list[AlternativeOption] = field(default_factory=list)
    meeting_request: Optional[MeetingRequest] = None
    invalid_attendees: Optional[int] = None


@dataclass(frozen=True)
class CheckInResult:
    success: bool
    message: str
    checked_in_at: Optional[datetime] = None
    reason: Optional[CheckInFailureReason] = None


@dataclass(frozen=True)
class AutoReleaseResult:
    released: int
    timestamp: datetime

"""Meeting request allocation orchestration and booking lifecycle."""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from backend.domain.constraints import AllocationConfig, validate_allocation_config
from backend.domain.models import (
    MEETING_PRIORITIES,
    AllocationResult,
    AutoReleaseResult,
    BookedRoom,
    Booking,
    CheckInResult,
    ConfirmedBooking,
    MeetingRequest,
    MeetingRequestData,
    Room,
    User,
)
from backend.repository.data_repository import BookingConflictError, DataRepository, to_utc
from backend.services.catalog_service import RoomNotFoundError
from backend.services.matching_service import (
    find_alternative_options,
    find_available_rooms,
    has_required_equipment,
)
from backend.utils.config import Settings, get_settings
from backend.utils.logger import get_logger, log_span


logger = get_logger(__name__)


class MeetingRequestValidationError(Exception):
    """Raised when meeting request inputs are invalid."""


class MeetingRequestNotFoundError(Exception):
    """Raised when a meeting request id does not exist in persisted state."""


class MeetingRequestNotPendingError(Exception):
    """Raised when a suggestion is confirmed for a request that is no longer pending."""


class BookingNotFoundError(Exception):
    """Raised when a booking id does not exist in persisted state."""


class AttendeeNotFoundError(Exception):
    """Raised when a user is unknown or not an attendee of the booking."""


class DuplicateAttendeeError(Exception):
    """Raised when a user is already an attendee of the booking."""


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def build_allocation_config(settings: Settings) -> AllocationConfig:
    return AllocationConfig(
        cleanup_buffer_minutes=settings.allocation_cleanup_buffer_minutes,
        slot_interval_minutes=settings.allocation_slot_interval_minutes,
        min_search_window_minutes=settings.allocation_min_search_window_minutes,
        search_padding_minutes=settings.allocation_search_padding_minutes,
        max_alternatives=settings.allocation_max_alternatives,
        auto_release_grace_minutes=settings.auto_release_grace_minutes,
    )


def _validate_request(data: MeetingRequestData) -> None:
    if data.duration <= 0:
        raise MeetingRequestValidationError("duration must be > 0 minutes")
    if data.flexibility < 0:
        raise MeetingRequestValidationError("flexibility must be >= 0 minutes")
    if data.priority not in MEETING_PRIORITIES:
        raise MeetingRequestValidationError(
            f"priority must be one of {', '.join(MEETING_PRIORITIES)}"
        )
    if not data.attendees:
        raise MeetingRequestValidationError("attendees must not be empty")


def _request_data(meeting_request: MeetingRequest) -> MeetingRequestData:
    return MeetingRequestData(
        organizer_id=meeting_request.organizer_id,
        duration=meeting_request.duration,
        preferred_start=meeting_request.preferred_start,
        attendees=meeting_request.attendees,
        required_equipment=meeting_request.required_equipment,
        flexibility=meeting_request.flexibility,
        priority=meeting_request.priority,
    )


def _confirmed_booking(booking: Booking, room: Room, attendee_count: int) -> ConfirmedBooking:
    return ConfirmedBooking(
        booking_id=booking.booking_id,
        room=BookedRoom(
            room_id=room.room_id,
            name=room.display_name,
            capacity=room.capacity,
            location=room.location,
        ),
        start_at=booking.start_at,
        end_at=booking.end_at,
        attendees=attendee_count,
    )


def _check_in_failure(booking: Optional[Booking]) -> Optional[CheckInResult]:
    if booking is None:
        return CheckInResult(
            success=False,
            message="Booking not found",
            reason="not_found",
        )
    if booking.status == "cancelled":
        return CheckInResult(
            success=False,
            message="Booking is already cancelled",
            reason="already_cancelled",
        )
    if booking.checked_in_at is not None:
        return CheckInResult(
            success=False,
            message="Already checked in",
            checked_in_at=booking.checked_in_at,
            reason="already_checked_in",
        )
    return None


class MeetingRequestService:
    """Allocates rooms for meeting requests and manages booking check-in/release."""

    def __init__(
        self,
        repository: Optional[DataRepository] = None,
        settings: Optional[Settings] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._repository = repository or DataRepository(self._settings)
        self._config = build_allocation_config(self._settings)
        validate_allocation_config(self._config)
        self._clock = clock or _utc_now

    @property
    def config(self) -> AllocationConfig:
        return self._config

    def create_meeting_request(self, data: MeetingRequestData) -> AllocationResult:
        """Confirm a room at the preferred start, or return ranked alternatives.

        Invalid attendees short-circuit before anything is written. Once the
        request is stored it is never rolled back: if a later step fails the
        request stays `pending`.
        """
        _validate_request(data)
        data = replace(data, preferred_start=to_utc(data.preferred_start))

        with log_span(logger, "validate_attendees", attendees=data.attendee_count) as span:
            existing = self._repository.count_existing_users(data.attendees)
            invalid_attendees = len(set(data.attendees)) - existing
            span["invalid_attendees"] = invalid_attendees
        if invalid_attendees > 0:
            return AllocationResult(
                success=False,
                message="Some attendees do not exist",
                invalid_attendees=invalid_attendees,
            )

        with log_span(logger, "persist_request", organizer_id=data.organizer_id) as span:
            meeting_request = self._repository.create_meeting_request(data)
            span["request_id"] = meeting_request.request_id

        with log_span(logger, "load_snapshot", request_id=meeting_request.request_id) as span:
            rooms = self._repository.list_rooms(with_equipment=True)
            bookings = self._repository.list_confirmed_bookings()
            span["rooms"] = len(rooms)
            span["bookings"] = len(bookings)

        with log_span(logger, "match_preferred_time", request_id=meeting_request.request_id) as span:
            candidates = find_available_rooms(
                data.preferred_start,
                data,
                rooms,
                bookings,
                self._config,
            )
            span["candidates"] = len(candidates)

        if candidates:
            best_room = candidates[0]
            try:
                with log_span(
                    logger,
                    "confirm_booking",
                    request_id=meeting_request.request_id,
                    room_id=best_room.room_id,
                ):
                    booking = self._repository.confirm_booking(
                        meeting_request_id=meeting_request.request_id,
                        room_id=best_room.room_id,
                        start_at=data.preferred_start,
                        end_at=data.preferred_start + timedelta(minutes=data.duration),
                        attendee_ids=data.attendees,
                        buffer_minutes=self._config.cleanup_buffer_minutes,
                    )
            except BookingConflictError as exc:
                # Another call confirmed this room first; the snapshot is stale.
                logger.warning(
                    "Preferred room taken before confirmation | request_id=%s | room_id=%s | %s",
                    meeting_request.request_id,
                    best_room.room_id,
                    exc,
                )
                bookings = self._repository.list_confirmed_bookings()
            else:
                logger.info(
                    "Booking confirmed | request_id=%s | booking_id=%s | room_id=%s",
                    meeting_request.request_id,
                    booking.booking_id,
                    best_room.room_id,
                )
                return AllocationResult(
                    success=True,
                    message="Meeting room booked successfully",
                    booking=_confirmed_booking(booking, best_room, data.attendee_count),
                    meeting_request=replace(meeting_request, status="approved"),
                )

        with log_span(logger, "search_alternatives", request_id=meeting_request.request_id) as span:
            alternatives = find_alternative_options(data, rooms, bookings, self._config)
            span["alternatives"] = len(alternatives)
        # Left for manual review rather than rejected.
        self._repository.update_meeting_request_status(meeting_request.request_id, "pending")

        return AllocationResult(
            success=False,
            message="No room available at preferred time. Please review alternatives.",
            alternatives=alternatives,
            meeting_request=meeting_request,
        )

    def confirm_alternative(
        self,
        *,
        meeting_request_id: int,
        room_id: int,
        start_at: datetime,
    ) -> ConfirmedBooking:
        """Book one of the suggested room/time combinations for a pending request."""
        meeting_request = self._repository.get_meeting_request(meeting_request_id)
        if meeting_request is None:
            raise MeetingRequestNotFoundError(f"Meeting request {meeting_request_id} not found")
        if meeting_request.status != "pending":
            raise MeetingRequestNotPendingError(
                f"Meeting request {meeting_request_id} is already {meeting_request.status}"
            )
        room = self._repository.get_room(room_id, with_equipment=True)
        if room is None:
            raise RoomNotFoundError(f"Room {room_id} not found")

        data = _request_data(meeting_request)
        start_at = to_utc(start_at)
        if room.capacity < data.attendee_count:
            raise MeetingRequestValidationError(
                f"Room {room_id} cannot seat {data.attendee_count} attendees"
            )
        if not has_required_equipment(room, data.required_equipment):
            raise MeetingRequestValidationError(
                f"Room {room_id} is missing required equipment"
            )
        bookings = self._repository.list_confirmed_bookings()
        if not find_available_rooms(start_at, data, [room], bookings, self._config):
            raise BookingConflictError(
                f"Room {room_id} is not available at {start_at.isoformat()}"
            )

        booking = self._repository.confirm_booking(
            meeting_request_id=meeting_request_id,
            room_id=room_id,
            start_at=start_at,
            end_at=start_at + timedelta(minutes=data.duration),
            attendee_ids=data.attendees,
            buffer_minutes=self._config.cleanup_buffer_minutes,
        )
        logger.info(
            "Alternative confirmed | request_id=%s | booking_id=%s | room_id=%s",
            meeting_request_id,
            booking.booking_id,
            room_id,
        )
        return _confirmed_booking(booking, room, data.attendee_count)

    def list_bookings(
        self,
        *,
        room_id: Optional[int] = None,
        status: Optional[str] = None,
        organizer_id: Optional[int] = None,
        start_from: Optional[datetime] = None,
        start_to: Optional[datetime] = None,
    ) -> list[Booking]:
        """List bookings, newest first. Either start bound may be given alone."""
        if start_from is not None and start_to is not None:
            if to_utc(start_from) > to_utc(start_to):
                raise MeetingRequestValidationError("start_from must not be after start_to")
        return self._repository.list_bookings(
            room_id=room_id,
            status=status,
            organizer_id=organizer_id,
            start_from=start_from,
            start_to=start_to,
        )

    def check_in_booking(self, booking_id: int) -> CheckInResult:
        booking = self._repository.get_booking(booking_id)
        failure = _check_in_failure(booking)
        if failure is not None:
            return failure

        checked_in_at = to_utc(self._clock())
        if not self._repository.update_booking_check_in(booking_id, checked_in_at):
            # Released or checked in between the read and the write.
            failure = _check_in_failure(self._repository.get_booking(booking_id))
            logger.info(
                "Check-in lost to concurrent update | booking_id=%s | reason=%s",
                booking_id,
                failure.reason if failure is not None else None,
            )
            if failure is not None:
                return failure
            return CheckInResult(
                success=False,
                message="Booking changed during check-in",
                reason="already_checked_in",
            )
        logger.info("Booking checked in | booking_id=%s", booking_id)
        return CheckInResult(
            success=True,
            message="Checked in successfully",
            checked_in_at=checked_in_at,
        )

    def auto_release_unused_bookings(self) -> AutoReleaseResult:
        """Cancel confirmed bookings nobody checked into within the grace period."""
        now = to_utc(self._clock())
        cutoff = now - timedelta(minutes=self._config.auto_release_grace_minutes)
        with log_span(logger, "auto_release", cutoff=cutoff.isoformat()) as span:
            released = self._repository.release_unchecked_bookings(cutoff)
            span["released"] = released
        return AutoReleaseResult(released=released, timestamp=now)

    def _require_booking(self, booking_id: int) -> Booking:
        booking = self._repository.get_booking(booking_id)
        if booking is None:
            raise BookingNotFoundError(f"Booking {booking_id} not found")
        return booking

    def list_booking_attendees(self, booking_id: int) -> list[User]:
        self._require_booking(booking_id)
        return self._repository.list_booking_attendees(booking_id)

    def add_booking_attendee(self, booking_id: int, user_id: int) -> list[User]:
        """Add one user to a booking and return the updated attendee list."""
        self._require_booking(booking_id)
        if self._repository.count_existing_users([user_id]) == 0:
            raise AttendeeNotFoundError(f"User {user_id} not found")
        if self._repository.add_booking_attendees(booking_id, [user_id]) == 0:
            raise DuplicateAttendeeError(
                f"User {user_id} is already an attendee for booking {booking_id}"
            )
        logger.info("Attendee added | booking_id=%s | user_id=%s", booking_id, user_id)
        return self._repository.list_booking_attendees(booking_id)

    def remove_booking_attendee(self, booking_id: int, user_id: int) -> None:
        self._require_booking(booking_id)
        if not self._repository.remove_booking_attendee(booking_id, user_id):
            raise AttendeeNotFoundError(
                f"User {user_id} is not an attendee for booking {booking_id}"
            )
        logger.info("Attendee removed | booking_id=%s | user_id=%s", booking_id, user_id)

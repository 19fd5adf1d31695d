"""Room matching and alternative-slot search.

Everything in this module is pure: rooms and bookings come in as an immutable
snapshot and nothing is written back. The orchestration that loads the
snapshot and persists outcomes lives in `booking_service`.
"""

from __future__ import annotations

import math
from collections import defaultdict
from datetime import datetime, timedelta
from typing import Iterable, Mapping, Optional, Sequence

from backend.domain.constraints import AllocationConfig
from backend.domain.models import AlternativeOption, Booking, MeetingRequestData, Room
from backend.utils.logger import get_logger


logger = get_logger(__name__)


def has_required_equipment(room: Room, required_equipment_ids: Iterable[int]) -> bool:
    """Set containment of required equipment ids in the room's installed set.

    Links whose equipment record is missing count as not installed.
    """
    required = set(required_equipment_ids)
    if not required:
        return True
    installed = {
        link.equipment_id
        for link in room.equipment
        if link.equipment_id is not None and link.equipment is not None
    }
    return required.issubset(installed)


def buffered_window(
    candidate_start: datetime,
    duration_minutes: int,
    buffer_minutes: int,
) -> tuple[datetime, datetime]:
    """Return the candidate interval widened by the cleanup buffer on both sides."""
    buffer = timedelta(minutes=buffer_minutes)
    candidate_end = candidate_start + timedelta(minutes=duration_minutes)
    return candidate_start - buffer, candidate_end + buffer


def is_room_available(
    room: Room,
    candidate_start: datetime,
    duration_minutes: int,
    confirmed_bookings: Iterable[Booking],
    config: Optional[AllocationConfig] = None,
) -> bool:
    config = config or AllocationConfig()
    buffered_start, buffered_end = buffered_window(
        candidate_start,
        duration_minutes,
        config.cleanup_buffer_minutes,
    )
    for booking in confirmed_bookings:
        if booking.room_id is None or booking.room_id != room.room_id:
            continue
        if booking.status != "confirmed":
            continue
        # Half-open intervals: touching bounds do not overlap.
        if booking.start_at < buffered_end and booking.end_at > buffered_start:
            return False
    return True


def index_bookings_by_room(bookings: Iterable[Booking]) -> dict[int, list[Booking]]:
    """Group confirmed bookings by room so each availability check scans one room."""
    indexed: dict[int, list[Booking]] = defaultdict(list)
    for booking in bookings:
        if booking.room_id is None or booking.status != "confirmed":
            continue
        indexed[booking.room_id].append(booking)
    return dict(indexed)


def _rank_rooms_at(
    candidate_start: datetime,
    request: MeetingRequestData,
    all_rooms: Sequence[Room],
    bookings_by_room: Mapping[int, Sequence[Booking]],
    config: AllocationConfig,
) -> list[Room]:
    attendee_count = request.attendee_count
    qualifying: list[Room] = []
    for room in all_rooms:
        if room.capacity < attendee_count:
            logger.debug(
                "Room rejected | room_id=%s | reason=capacity | capacity=%s | attendees=%s",
                room.room_id,
                room.capacity,
                attendee_count,
            )
            continue
        if not has_required_equipment(room, request.required_equipment):
            logger.debug(
                "Room rejected | room_id=%s | reason=equipment",
                room.room_id,
            )
            continue
        if not is_room_available(
            room,
            candidate_start,
            request.duration,
            bookings_by_room.get(room.room_id, ()),
            config,
        ):
            logger.debug(
                "Room rejected | room_id=%s | reason=occupied | start=%s",
                room.room_id,
                candidate_start.isoformat(),
            )
            continue
        qualifying.append(room)

    qualifying.sort(key=lambda room: (room.capacity - attendee_count, room.hourly_rate))
    return qualifying


def find_available_rooms(
    candidate_start: datetime,
    request: MeetingRequestData,
    all_rooms: Sequence[Room],
    confirmed_bookings: Iterable[Booking],
    config: Optional[AllocationConfig] = None,
) -> list[Room]:
    """Rooms usable at `candidate_start`, tightest fit first, then cheapest."""
    return _rank_rooms_at(
        candidate_start,
        request,
        all_rooms,
        index_bookings_by_room(confirmed_bookings),
        config or AllocationConfig(),
    )


def generate_time_slots(
    preferred_start: datetime,
    flexibility_minutes: int,
    config: Optional[AllocationConfig] = None,
) -> list[datetime]:
    """Preferred instant first, then earlier slots nearest-first, then later slots.

    The search range reaches past the raw flexibility so that slots just beyond
    a neighbour's buffer are still found.
    """
    config = config or AllocationConfig()
    interval = config.slot_interval_minutes
    search_window = max(flexibility_minutes, config.min_search_window_minutes)
    extended_window = search_window + config.cleanup_buffer_minutes + config.search_padding_minutes

    offsets = range(interval, extended_window + 1, interval)
    slots = [preferred_start]
    slots.extend(preferred_start - timedelta(minutes=offset) for offset in offsets)
    slots.extend(preferred_start + timedelta(minutes=offset) for offset in offsets)

    logger.debug(
        "Time slots generated | count=%s | window_minutes=%s",
        len(slots),
        extended_window,
    )
    return slots


def _round_cents(amount: float) -> float:
    # Half-cents round up, not to even.
    return math.floor(amount * 100 + 0.5) / 100


def _time_shift_minutes(slot: datetime, preferred_start: datetime) -> int:
    return int(round(abs((slot - preferred_start).total_seconds()) / 60.0))


def find_alternative_options(
    request: MeetingRequestData,
    all_rooms: Sequence[Room],
    confirmed_bookings: Iterable[Booking],
    config: Optional[AllocationConfig] = None,
) -> list[AlternativeOption]:
    """Search every generated slot across all rooms and return the best options.

    Ranking: smallest time shift, then cheapest hourly rate, then tightest fit.
    """
    config = config or AllocationConfig()
    bookings_by_room = index_bookings_by_room(confirmed_bookings)
    max_room_rate = max((room.hourly_rate for room in all_rooms), default=0.0)
    duration = timedelta(minutes=request.duration)

    slots = generate_time_slots(request.preferred_start, request.flexibility, config)
    alternatives: list[AlternativeOption] = []
    for slot in slots:
        for room in _rank_rooms_at(slot, request, all_rooms, bookings_by_room, config):
            cost_saved = (max_room_rate - room.hourly_rate) * request.duration / 60.0
            alternatives.append(
                AlternativeOption(
                    room_id=room.room_id,
                    room_name=room.display_name,
                    capacity=room.capacity,
                    hourly_rate=room.hourly_rate,
                    location=room.location,
                    suggested_start=slot,
                    suggested_end=slot + duration,
                    cost_saved=_round_cents(cost_saved),
                    time_shift=_time_shift_minutes(slot, request.preferred_start),
                )
            )

    attendee_count = request.attendee_count
    alternatives.sort(
        key=lambda option: (
            option.time_shift,
            option.hourly_rate,
            option.capacity - attendee_count,
        )
    )
    ranked = alternatives[: config.max_alternatives]

    logger.info(
        "Alternative search completed | slots=%s | matches=%s | returned=%s",
        len(slots),
        len(alternatives),
        len(ranked),
    )
    if not ranked:
        logger.info(
            "No alternatives in search window | preferred_start=%s | flexibility=%s",
            request.preferred_start.isoformat(),
            request.flexibility,
        )
    return ranked

"""Room, equipment and user catalogue maintenance."""

from __future__ import annotations

import sqlite3
from typing import Mapping, Optional

from backend.domain.models import Equipment, Room, RoomEquipmentLink, User
from backend.repository.data_repository import DataRepository
from backend.utils.config import Settings, get_settings
from backend.utils.logger import get_logger


logger = get_logger(__name__)


class CatalogError(Exception):
    """Base exception for catalogue maintenance failures."""


class CatalogValidationError(CatalogError):
    """Raised when catalogue input is invalid."""


class RoomNotFoundError(CatalogError):
    """Raised when a room id does not exist in persisted state."""


class EquipmentNotFoundError(CatalogError):
    """Raised when an equipment id does not exist in persisted state."""


class DuplicateRoomError(CatalogError):
    """Raised when a room name is already taken."""


class DuplicateEquipmentError(CatalogError):
    """Raised when an equipment name is already taken."""


class DuplicateUserError(CatalogError):
    """Raised when a user email is already registered."""


class DuplicateRoomEquipmentError(CatalogError):
    """Raised when equipment is already linked to the room."""


class RoomEquipmentNotFoundError(CatalogError):
    """Raised when a room equipment link id does not exist."""


def _validate_room_fields(fields: Mapping[str, object]) -> None:
    unknown = set(fields) - {"name", "capacity", "hourly_rate", "location"}
    if unknown:
        raise CatalogValidationError(f"unsupported room fields: {', '.join(sorted(unknown))}")
    name = fields.get("name")
    if "name" in fields and (name is None or not str(name).strip()):
        raise CatalogValidationError("room name must be non-empty")
    capacity = fields.get("capacity")
    if "capacity" in fields and (capacity is None or int(capacity) < 0):
        raise CatalogValidationError("capacity must be >= 0")
    hourly_rate = fields.get("hourly_rate")
    if "hourly_rate" in fields and (hourly_rate is None or float(hourly_rate) < 0):
        raise CatalogValidationError("hourly_rate must be >= 0")


class CatalogService:
    """Thin validation layer over catalogue persistence."""

    def __init__(
        self,
        repository: Optional[DataRepository] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._repository = repository or DataRepository(self._settings)

    def create_user(self, name: str, email: str) -> User:
        if not name.strip() or not email.strip():
            raise CatalogValidationError("name and email must be non-empty")
        if self._repository.get_user_by_email(email) is not None:
            raise DuplicateUserError(f"User with email {email} already exists")
        try:
            user = self._repository.create_user(name=name, email=email)
        except sqlite3.IntegrityError as exc:
            raise DuplicateUserError(f"User with email {email} already exists") from exc
        logger.info("User created | user_id=%s", user.user_id)
        return user

    # --- Rooms ---

    def create_room(
        self,
        name: str,
        capacity: int,
        hourly_rate: float,
        location: Optional[str] = None,
    ) -> Room:
        _validate_room_fields({"name": name, "capacity": capacity, "hourly_rate": hourly_rate})
        if self._repository.get_room_by_name(name) is not None:
            raise DuplicateRoomError("Room already exists")
        try:
            room = self._repository.create_room(
                name=name,
                capacity=capacity,
                hourly_rate=hourly_rate,
                location=location,
            )
        except sqlite3.IntegrityError as exc:
            raise DuplicateRoomError("Room already exists") from exc
        logger.info(
            "Room created | room_id=%s | capacity=%s | hourly_rate=%.2f",
            room.room_id,
            room.capacity,
            room.hourly_rate,
        )
        return room

    def get_room(self, room_id: int) -> Room:
        room = self._repository.get_room(room_id)
        if room is None:
            raise RoomNotFoundError(f"Room {room_id} not found")
        return room

    def list_rooms(self) -> list[Room]:
        return self._repository.list_rooms(with_equipment=True)

    def update_room(self, room_id: int, changes: Mapping[str, object]) -> Room:
        """Change any of name, capacity, hourly_rate, location on an existing room."""
        _validate_room_fields(changes)
        existing = self._repository.get_room(room_id, with_equipment=False)
        if existing is None:
            raise RoomNotFoundError(f"Room {room_id} not found")
        name = changes.get("name")
        if name is not None and name != existing.name:
            if self._repository.get_room_by_name(str(name)) is not None:
                raise DuplicateRoomError("Room already exists")
        try:
            updated = self._repository.update_room(room_id, changes)
        except sqlite3.IntegrityError as exc:
            raise DuplicateRoomError("Room already exists") from exc
        if not updated:
            raise RoomNotFoundError(f"Room {room_id} not found")
        logger.info("Room updated | room_id=%s | fields=%s", room_id, ",".join(sorted(changes)))
        return self.get_room(room_id)

    def delete_room(self, room_id: int) -> None:
        if not self._repository.delete_room(room_id):
            raise RoomNotFoundError(f"Room {room_id} not found")
        logger.info("Room deleted | room_id=%s", room_id)

    # --- Equipment ---

    def create_equipment(self, name: str) -> Equipment:
        if not name.strip():
            raise CatalogValidationError("equipment name must be non-empty")
        if self._repository.get_equipment_by_name(name) is not None:
            raise DuplicateEquipmentError("Equipment already exists")
        try:
            equipment = self._repository.create_equipment(name)
        except sqlite3.IntegrityError as exc:
            raise DuplicateEquipmentError("Equipment already exists") from exc
        logger.info("Equipment created | equipment_id=%s", equipment.equipment_id)
        return equipment

    def get_equipment(self, equipment_id: int) -> Equipment:
        equipment = self._repository.get_equipment(equipment_id)
        if equipment is None:
            raise EquipmentNotFoundError(f"Equipment {equipment_id} not found")
        return equipment

    def list_equipment(self) -> list[Equipment]:
        return self._repository.list_equipment()

    def update_equipment(self, equipment_id: int, name: str) -> Equipment:
        if not name.strip():
            raise CatalogValidationError("equipment name must be non-empty")
        existing = self.get_equipment(equipment_id)
        if name != existing.name and self._repository.get_equipment_by_name(name) is not None:
            raise DuplicateEquipmentError("Equipment already exists")
        try:
            updated = self._repository.update_equipment(equipment_id, name)
        except sqlite3.IntegrityError as exc:
            raise DuplicateEquipmentError("Equipment already exists") from exc
        if not updated:
            raise EquipmentNotFoundError(f"Equipment {equipment_id} not found")
        logger.info("Equipment updated | equipment_id=%s", equipment_id)
        return Equipment(equipment_id=equipment_id, name=name)

    def delete_equipment(self, equipment_id: int) -> None:
        """Delete equipment; rooms that had it no longer satisfy requests for it."""
        if not self._repository.delete_equipment(equipment_id):
            raise EquipmentNotFoundError(f"Equipment {equipment_id} not found")
        logger.info("Equipment deleted | equipment_id=%s", equipment_id)

    # --- Room equipment links ---

    def _check_link_references(self, room_id: int, equipment_id: int) -> None:
        if self._repository.get_room(room_id, with_equipment=False) is None:
            raise RoomNotFoundError(f"Room with id {room_id} does not exist")
        if self._repository.get_equipment(equipment_id) is None:
            raise EquipmentNotFoundError(f"Equipment with id {equipment_id} does not exist")

    def link_room_equipment(self, room_id: int, equipment_id: int) -> RoomEquipmentLink:
        self._check_link_references(room_id, equipment_id)
        try:
            link = self._repository.create_room_equipment(room_id, equipment_id)
        except sqlite3.IntegrityError as exc:
            raise DuplicateRoomEquipmentError(
                f"Equipment {equipment_id} is already linked to room {room_id}"
            ) from exc
        logger.info(
            "Room equipment linked | room_id=%s | equipment_id=%s",
            room_id,
            equipment_id,
        )
        return link

    def list_room_equipment(self, room_id: Optional[int] = None) -> list[RoomEquipmentLink]:
        return self._repository.list_room_equipment(room_id)

    def get_room_equipment(self, link_id: int) -> RoomEquipmentLink:
        link = self._repository.get_room_equipment(link_id)
        if link is None:
            raise RoomEquipmentNotFoundError(f"Room equipment link {link_id} not found")
        return link

    def update_room_equipment(
        self,
        link_id: int,
        *,
        room_id: Optional[int] = None,
        equipment_id: Optional[int] = None,
    ) -> RoomEquipmentLink:
        """Repoint a link at another room and/or equipment item."""
        existing = self.get_room_equipment(link_id)
        target_room = room_id if room_id is not None else existing.room_id
        target_equipment = equipment_id if equipment_id is not None else existing.equipment_id
        if target_equipment is None:
            raise CatalogValidationError(
                f"Room equipment link {link_id} has no equipment; pass equipment_id"
            )
        self._check_link_references(target_room, target_equipment)
        try:
            self._repository.update_room_equipment(link_id, target_room, target_equipment)
        except sqlite3.IntegrityError as exc:
            raise DuplicateRoomEquipmentError(
                f"Equipment {target_equipment} is already linked to room {target_room}"
            ) from exc
        logger.info(
            "Room equipment updated | link_id=%s | room_id=%s | equipment_id=%s",
            link_id,
            target_room,
            target_equipment,
        )
        return self.get_room_equipment(link_id)

    def unlink_room_equipment(self, link_id: int) -> None:
        if not self._repository.delete_room_equipment(link_id):
            raise RoomEquipmentNotFoundError(f"Room equipment link {link_id} not found")
        logger.info("Room equipment unlinked | link_id=%s", link_id)

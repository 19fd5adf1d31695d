"""HTTP controller layer for the room, equipment and user catalogue."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field

from backend.controllers.dependencies import get_catalog_service
from backend.domain.models import Room, RoomEquipmentLink
from backend.services.catalog_service import (
    CatalogService,
    CatalogValidationError,
    DuplicateEquipmentError,
    DuplicateRoomEquipmentError,
    DuplicateRoomError,
    DuplicateUserError,
    EquipmentNotFoundError,
    RoomEquipmentNotFoundError,
    RoomNotFoundError,
)


router = APIRouter(tags=["catalog"])


class UserCreate(BaseModel):
    name: str = Field(min_length=1)
    email: str = Field(pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


class UserResponse(BaseModel):
    id: int
    name: str
    email: str


class RoomCreate(BaseModel):
    name: str = Field(min_length=1)
    capacity: int = Field(ge=0)
    hourly_rate: float = Field(ge=0.0)
    location: Optional[str] = None


class RoomUpdate(BaseModel):
    """Partial room update; only fields present in the body are changed."""

    name: Optional[str] = Field(default=None, min_length=1)
    capacity: Optional[int] = Field(default=None, ge=0)
    hourly_rate: Optional[float] = Field(default=None, ge=0.0)
    location: Optional[str] = None


class EquipmentResponse(BaseModel):
    id: int
    name: str


class RoomResponse(BaseModel):
    id: int
    name: Optional[str] = None
    capacity: int
    hourly_rate: float
    location: Optional[str] = None
    equipment: list[EquipmentResponse] = Field(default_factory=list)


class EquipmentCreate(BaseModel):
    name: str = Field(min_length=1)


class RoomEquipmentCreate(BaseModel):
    room_id: int = Field(gt=0)
    equipment_id: int = Field(gt=0)


class RoomEquipmentUpdate(BaseModel):
    room_id: Optional[int] = Field(default=None, gt=0)
    equipment_id: Optional[int] = Field(default=None, gt=0)


class RoomEquipmentResponse(BaseModel):
    id: int
    room_id: int
    equipment_id: Optional[int] = None


def _room(room: Room) -> RoomResponse:
    return RoomResponse(
        id=room.room_id,
        name=room.name,
        capacity=room.capacity,
        hourly_rate=room.hourly_rate,
        location=room.location,
        equipment=[
            EquipmentResponse(id=link.equipment.equipment_id, name=link.equipment.name)
            for link in room.equipment
            if link.equipment is not None
        ],
    )


def _link(link: RoomEquipmentLink) -> RoomEquipmentResponse:
    return RoomEquipmentResponse(
        id=link.link_id,
        room_id=link.room_id,
        equipment_id=link.equipment_id,
    )


def _conflict(exc: Exception) -> HTTPException:
    return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))


def _not_found(exc: Exception) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))


def _bad_request(exc: Exception) -> HTTPException:
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))


@router.post("/users", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def create_user(
    payload: UserCreate,
    service: CatalogService = Depends(get_catalog_service),
) -> UserResponse:
    try:
        user = service.create_user(name=payload.name, email=payload.email)
    except DuplicateUserError as exc:
        raise _conflict(exc) from exc
    except CatalogValidationError as exc:
        raise _bad_request(exc) from exc
    return UserResponse(id=user.user_id, name=user.name, email=user.email)


@router.post("/rooms", response_model=RoomResponse, status_code=status.HTTP_201_CREATED)
async def create_room(
    payload: RoomCreate,
    service: CatalogService = Depends(get_catalog_service),
) -> RoomResponse:
    try:
        room = service.create_room(
            name=payload.name,
            capacity=payload.capacity,
            hourly_rate=payload.hourly_rate,
            location=payload.location,
        )
    except DuplicateRoomError as exc:
        raise _conflict(exc) from exc
    except CatalogValidationError as exc:
        raise _bad_request(exc) from exc
    return _room(room)


@router.get("/rooms", response_model=list[RoomResponse], status_code=status.HTTP_200_OK)
async def list_rooms(
    service: CatalogService = Depends(get_catalog_service),
) -> list[RoomResponse]:
    return [_room(room) for room in service.list_rooms()]


@router.get("/rooms/{room_id}", response_model=RoomResponse, status_code=status.HTTP_200_OK)
async def get_room(
    room_id: int,
    service: CatalogService = Depends(get_catalog_service),
) -> RoomResponse:
    try:
        return _room(service.get_room(room_id))
    except RoomNotFoundError as exc:
        raise _not_found(exc) from exc


@router.put("/rooms/{room_id}", response_model=RoomResponse, status_code=status.HTTP_200_OK)
async def update_room(
    room_id: int,
    payload: RoomUpdate,
    service: CatalogService = Depends(get_catalog_service),
) -> RoomResponse:
    try:
        room = service.update_room(room_id, payload.model_dump(exclude_unset=True))
    except RoomNotFoundError as exc:
        raise _not_found(exc) from exc
    except DuplicateRoomError as exc:
        raise _conflict(exc) from exc
    except CatalogValidationError as exc:
        raise _bad_request(exc) from exc
    return _room(room)


@router.delete("/rooms/{room_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_room(
    room_id: int,
    service: CatalogService = Depends(get_catalog_service),
) -> None:
    try:
        service.delete_room(room_id)
    except RoomNotFoundError as exc:
        raise _not_found(exc) from exc


@router.post(
    "/equipment",
    response_model=EquipmentResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_equipment(
    payload: EquipmentCreate,
    service: CatalogService = Depends(get_catalog_service),
) -> EquipmentResponse:
    try:
        equipment = service.create_equipment(payload.name)
    except DuplicateEquipmentError as exc:
        raise _conflict(exc) from exc
    except CatalogValidationError as exc:
        raise _bad_request(exc) from exc
    return EquipmentResponse(id=equipment.equipment_id, name=equipment.name)


@router.get(
    "/equipment",
    response_model=list[EquipmentResponse],
    status_code=status.HTTP_200_OK,
)
async def list_equipment(
    service: CatalogService = Depends(get_catalog_service),
) -> list[EquipmentResponse]:
    return [
        EquipmentResponse(id=item.equipment_id, name=item.name)
        for item in service.list_equipment()
    ]


@router.get(
    "/equipment/{equipment_id}",
    response_model=EquipmentResponse,
    status_code=status.HTTP_200_OK,
)
async def get_equipment(
    equipment_id: int,
    service: CatalogService = Depends(get_catalog_service),
) -> EquipmentResponse:
    try:
        equipment = service.get_equipment(equipment_id)
    except EquipmentNotFoundError as exc:
        raise _not_found(exc) from exc
    return EquipmentResponse(id=equipment.equipment_id, name=equipment.name)


@router.put(
    "/equipment/{equipment_id}",
    response_model=EquipmentResponse,
    status_code=status.HTTP_200_OK,
)
async def update_equipment(
    equipment_id: int,
    payload: EquipmentCreate,
    service: CatalogService = Depends(get_catalog_service),
) -> EquipmentResponse:
    try:
        equipment = service.update_equipment(equipment_id, payload.name)
    except EquipmentNotFoundError as exc:
        raise _not_found(exc) from exc
    except DuplicateEquipmentError as exc:
        raise _conflict(exc) from exc
    except CatalogValidationError as exc:
        raise _bad_request(exc) from exc
    return EquipmentResponse(id=equipment.equipment_id, name=equipment.name)


@router.delete("/equipment/{equipment_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_equipment(
    equipment_id: int,
    service: CatalogService = Depends(get_catalog_service),
) -> None:
    try:
        service.delete_equipment(equipment_id)
    except EquipmentNotFoundError as exc:
        raise _not_found(exc) from exc


@router.post(
    "/room_equipment",
    response_model=RoomEquipmentResponse,
    status_code=status.HTTP_201_CREATED,
)
async def link_room_equipment(
    payload: RoomEquipmentCreate,
    service: CatalogService = Depends(get_catalog_service),
) -> RoomEquipmentResponse:
    try:
        link = service.link_room_equipment(payload.room_id, payload.equipment_id)
    except (RoomNotFoundError, EquipmentNotFoundError) as exc:
        raise _not_found(exc) from exc
    except DuplicateRoomEquipmentError as exc:
        raise _conflict(exc) from exc
    return _link(link)


@router.get(
    "/room_equipment",
    response_model=list[RoomEquipmentResponse],
    status_code=status.HTTP_200_OK,
)
async def list_room_equipment(
    room_id: Optional[int] = Query(default=None, gt=0),
    service: CatalogService = Depends(get_catalog_service),
) -> list[RoomEquipmentResponse]:
    return [_link(link) for link in service.list_room_equipment(room_id)]


@router.get(
    "/room_equipment/{link_id}",
    response_model=RoomEquipmentResponse,
    status_code=status.HTTP_200_OK,
)
async def get_room_equipment(
    link_id: int,
    service: CatalogService = Depends(get_catalog_service),
) -> RoomEquipmentResponse:
    try:
        return _link(service.get_room_equipment(link_id))
    except RoomEquipmentNotFoundError as exc:
        raise _not_found(exc) from exc


@router.put(
    "/room_equipment/{link_id}",
    response_model=RoomEquipmentResponse,
    status_code=status.HTTP_200_OK,
)
async def update_room_equipment(
    link_id: int,
    payload: RoomEquipmentUpdate,
    service: CatalogService = Depends(get_catalog_service),
) -> RoomEquipmentResponse:
    try:
        link = service.update_room_equipment(
            link_id,
            room_id=payload.room_id,
            equipment_id=payload.equipment_id,
        )
    except (RoomEquipmentNotFoundError, RoomNotFoundError, EquipmentNotFoundError) as exc:
        raise _not_found(exc) from exc
    except DuplicateRoomEquipmentError as exc:
        raise _conflict(exc) from exc
    except CatalogValidationError as exc:
        raise _bad_request(exc) from exc
    return _link(link)


@router.delete("/room_equipment/{link_id}", status_code=status.HTTP_204_NO_CONTENT)
async def unlink_room_equipment(
    link_id: int,
    service: CatalogService = Depends(get_catalog_service),
) -> None:
    try:
        service.unlink_room_equipment(link_id)
    except RoomEquipmentNotFoundError as exc:
        raise _not_found(exc) from exc

from __future__ import annotations

from dataclasses import replace

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from backend.controllers.catalog_controller import router as catalog_router
from backend.repository.data_repository import DataRepository
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
from backend.utils.config import get_settings


def _build_repository(tmp_path, filename: str) -> DataRepository:
    settings = replace(get_settings(), database_path=tmp_path / filename, seed_demo_data=False)
    repository = DataRepository(settings)
    repository.initialize_database()
    return repository


def _build_test_client(tmp_path, filename: str) -> TestClient:
    app = FastAPI()
    app.include_router(catalog_router)
    # Catalog service is built lazily from the repository on first use.
    app.state.repository = _build_repository(tmp_path, filename)
    return TestClient(app)


def test_room_validation_and_duplicates(tmp_path):
    service = CatalogService(repository=_build_repository(tmp_path, "rooms.db"))

    room = service.create_room("Focus", capacity=6, hourly_rate=30.0, location="Floor 2")
    assert service.get_room(room.room_id).display_name == "Focus"

    with pytest.raises(DuplicateRoomError):
        service.create_room("Focus", capacity=2, hourly_rate=5.0)
    with pytest.raises(CatalogValidationError):
        service.create_room("   ", capacity=2, hourly_rate=5.0)
    with pytest.raises(CatalogValidationError):
        service.create_room("Negative", capacity=-1, hourly_rate=5.0)
    with pytest.raises(RoomNotFoundError):
        service.get_room(999)


def test_link_room_equipment_checks_references(tmp_path):
    service = CatalogService(repository=_build_repository(tmp_path, "links.db"))
    room = service.create_room("Team", capacity=10, hourly_rate=50.0)
    projector = service.create_equipment("Projector")

    with pytest.raises(RoomNotFoundError):
        service.link_room_equipment(999, projector.equipment_id)
    with pytest.raises(EquipmentNotFoundError):
        service.link_room_equipment(room.room_id, 999)

    link = service.link_room_equipment(room.room_id, projector.equipment_id)
    assert link.room_id == room.room_id
    assert link.equipment_id == projector.equipment_id

    with pytest.raises(DuplicateRoomEquipmentError):
        service.link_room_equipment(room.room_id, projector.equipment_id)

    listed = service.list_rooms()
    assert [item.equipment.name for item in listed[0].equipment] == ["Projector"]


def test_catalog_routes_map_conflicts_and_missing_references(tmp_path):
    client = _build_test_client(tmp_path, "catalog_routes.db")

    assert client.post("/rooms", json={"name": "Dup", "capacity": 4, "hourly_rate": 10.0}).status_code == 201
    duplicate = client.post("/rooms", json={"name": "Dup", "capacity": 8, "hourly_rate": 20.0})
    assert duplicate.status_code == 409

    assert client.post("/equipment", json={"name": "Whiteboard"}).status_code == 201
    assert client.post("/equipment", json={"name": "Whiteboard"}).status_code == 409

    assert client.post("/users", json={"name": "A", "email": "a@example.com"}).status_code == 201
    assert client.post("/users", json={"name": "B", "email": "a@example.com"}).status_code == 409
    assert client.post("/users", json={"name": "C", "email": "not-an-email"}).status_code == 422

    missing_room = client.post("/room_equipment", json={"room_id": 999, "equipment_id": 1})
    assert missing_room.status_code == 404
    missing_equipment = client.post("/room_equipment", json={"room_id": 1, "equipment_id": 999})
    assert missing_equipment.status_code == 404

    assert client.post("/room_equipment", json={"room_id": 1, "equipment_id": 1}).status_code == 201
    assert client.post("/room_equipment", json={"room_id": 1, "equipment_id": 1}).status_code == 409

    room = client.get("/rooms/1")
    assert room.status_code == 200
    assert [item["name"] for item in room.json()["equipment"]] == ["Whiteboard"]
    assert client.get("/rooms/999").status_code == 404

    equipment = client.get("/equipment")
    assert [item["name"] for item in equipment.json()] == ["Whiteboard"]


def test_room_update_and_delete(tmp_path):
    service = CatalogService(repository=_build_repository(tmp_path, "room_update.db"))
    focus = service.create_room("Focus", capacity=6, hourly_rate=30.0)
    service.create_room("Board", capacity=12, hourly_rate=90.0)

    updated = service.update_room(focus.room_id, {"capacity": 8, "hourly_rate": 35.5})
    assert (updated.name, updated.capacity, updated.hourly_rate) == ("Focus", 8, 35.5)
    assert service.update_room(focus.room_id, {"name": "Focus"}).name == "Focus"

    with pytest.raises(DuplicateRoomError):
        service.update_room(focus.room_id, {"name": "Board"})
    with pytest.raises(CatalogValidationError):
        service.update_room(focus.room_id, {"capacity": -2})
    with pytest.raises(CatalogValidationError):
        service.update_room(focus.room_id, {"floor": 3})
    with pytest.raises(RoomNotFoundError):
        service.update_room(999, {"capacity": 4})

    service.delete_room(focus.room_id)
    assert [room.name for room in service.list_rooms()] == ["Board"]
    with pytest.raises(RoomNotFoundError):
        service.delete_room(focus.room_id)


def test_equipment_update_and_delete(tmp_path):
    service = CatalogService(repository=_build_repository(tmp_path, "equipment_update.db"))
    room = service.create_room("Team", capacity=10, hourly_rate=50.0)
    projector = service.create_equipment("Projector")
    service.create_equipment("Whiteboard")
    link = service.link_room_equipment(room.room_id, projector.equipment_id)

    renamed = service.update_equipment(projector.equipment_id, "Beamer")
    assert service.get_equipment(projector.equipment_id) == renamed
    assert [item.equipment.name for item in service.get_room(room.room_id).equipment] == ["Beamer"]

    with pytest.raises(DuplicateEquipmentError):
        service.update_equipment(projector.equipment_id, "Whiteboard")
    with pytest.raises(EquipmentNotFoundError):
        service.update_equipment(999, "Speaker")

    service.delete_equipment(projector.equipment_id)
    with pytest.raises(EquipmentNotFoundError):
        service.get_equipment(projector.equipment_id)
    with pytest.raises(EquipmentNotFoundError):
        service.delete_equipment(projector.equipment_id)
    # The link outlives the equipment with a null reference.
    assert service.get_room_equipment(link.link_id).equipment_id is None


def test_room_equipment_links_can_be_listed_moved_and_removed(tmp_path):
    service = CatalogService(repository=_build_repository(tmp_path, "link_update.db"))
    team = service.create_room("Team", capacity=10, hourly_rate=50.0)
    focus = service.create_room("Focus", capacity=4, hourly_rate=20.0)
    projector = service.create_equipment("Projector")
    whiteboard = service.create_equipment("Whiteboard")
    first = service.link_room_equipment(team.room_id, projector.equipment_id)
    second = service.link_room_equipment(focus.room_id, whiteboard.equipment_id)

    assert [link.link_id for link in service.list_room_equipment()] == [first.link_id, second.link_id]
    assert [link.link_id for link in service.list_room_equipment(focus.room_id)] == [second.link_id]

    moved = service.update_room_equipment(first.link_id, room_id=focus.room_id)
    assert (moved.room_id, moved.equipment_id) == (focus.room_id, projector.equipment_id)
    with pytest.raises(DuplicateRoomEquipmentError):
        service.update_room_equipment(first.link_id, equipment_id=whiteboard.equipment_id)
    with pytest.raises(EquipmentNotFoundError):
        service.update_room_equipment(first.link_id, equipment_id=999)
    with pytest.raises(RoomEquipmentNotFoundError):
        service.update_room_equipment(999, room_id=team.room_id)

    service.unlink_room_equipment(second.link_id)
    assert [link.link_id for link in service.list_room_equipment(focus.room_id)] == [first.link_id]
    with pytest.raises(RoomEquipmentNotFoundError):
        service.get_room_equipment(second.link_id)
    with pytest.raises(RoomEquipmentNotFoundError):
        service.unlink_room_equipment(second.link_id)


def test_deleting_room_drops_its_links(tmp_path):
    service = CatalogService(repository=_build_repository(tmp_path, "room_cascade.db"))
    room = service.create_room("Team", capacity=10, hourly_rate=50.0)
    projector = service.create_equipment("Projector")
    service.link_room_equipment(room.room_id, projector.equipment_id)

    service.delete_room(room.room_id)

    assert service.list_room_equipment() == []
    assert service.get_equipment(projector.equipment_id).name == "Projector"


def test_unique_constraint_race_maps_to_duplicate_errors(tmp_path, monkeypatch):
    repository = _build_repository(tmp_path, "unique_race.db")
    service = CatalogService(repository=repository)
    service.create_room("Focus", capacity=6, hourly_rate=30.0)
    service.create_equipment("Projector")
    service.create_user("Ada", "ada@example.com")

    # Another writer got in between the existence check and the insert.
    monkeypatch.setattr(repository, "get_room_by_name", lambda name: None)
    monkeypatch.setattr(repository, "get_equipment_by_name", lambda name: None)
    monkeypatch.setattr(repository, "get_user_by_email", lambda email: None)

    with pytest.raises(DuplicateRoomError):
        service.create_room("Focus", capacity=2, hourly_rate=5.0)
    with pytest.raises(DuplicateEquipmentError):
        service.create_equipment("Projector")
    with pytest.raises(DuplicateUserError):
        service.create_user("Ada Again", "ada@example.com")


def test_catalog_update_and_delete_routes(tmp_path):
    client = _build_test_client(tmp_path, "catalog_update_routes.db")
    assert client.post("/rooms", json={"name": "Focus", "capacity": 4, "hourly_rate": 10.0}).status_code == 201
    assert client.post("/rooms", json={"name": "Board", "capacity": 12, "hourly_rate": 80.0}).status_code == 201
    assert client.post("/equipment", json={"name": "Projector"}).status_code == 201
    assert client.post("/equipment", json={"name": "Whiteboard"}).status_code == 201
    assert client.post("/room_equipment", json={"room_id": 1, "equipment_id": 1}).status_code == 201

    updated = client.put("/rooms/1", json={"capacity": 6})
    assert updated.status_code == 200
    assert (updated.json()["name"], updated.json()["capacity"]) == ("Focus", 6)
    assert client.put("/rooms/1", json={"name": "Board"}).status_code == 409
    assert client.put("/rooms/999", json={"capacity": 6}).status_code == 404
    assert client.put("/rooms/1", json={"capacity": -1}).status_code == 422

    renamed = client.put("/equipment/1", json={"name": "Beamer"})
    assert renamed.status_code == 200
    assert renamed.json() == {"id": 1, "name": "Beamer"}
    assert client.put("/equipment/1", json={"name": "Whiteboard"}).status_code == 409
    assert client.put("/equipment/999", json={"name": "Speaker"}).status_code == 404

    assert [item["id"] for item in client.get("/room_equipment").json()] == [1]
    assert client.get("/room_equipment", params={"room_id": 2}).json() == []
    moved = client.put("/room_equipment/1", json={"room_id": 2})
    assert moved.status_code == 200
    assert moved.json() == {"id": 1, "room_id": 2, "equipment_id": 1}
    assert client.get("/room_equipment/1").json()["room_id"] == 2
    assert client.get("/room_equipment/999").status_code == 404
    assert client.put("/room_equipment/1", json={"equipment_id": 999}).status_code == 404

    assert client.delete("/room_equipment/1").status_code == 204
    assert client.delete("/room_equipment/1").status_code == 404
    assert client.delete("/equipment/2").status_code == 204
    assert client.get("/equipment/2").status_code == 404
    assert client.delete("/rooms/1").status_code == 204
    assert client.delete("/rooms/1").status_code == 404
    assert [room["name"] for room in client.get("/rooms").json()] == ["Board"]

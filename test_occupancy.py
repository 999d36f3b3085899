import pytest

from app.core.exceptions import AccessDeniedError, BusinessRuleError, NotFoundError
from app.services.property_service import property_service
from app.services.room_service import compute_occupancy, room_service

# Async tests
pytestmark = pytest.mark.asyncio


def _assert_consistent(prop):
    assert prop["occupied"] + prop["vacancies"] == prop["total_rooms"]


async def test_recompute_matches_rooms(boarding_house):
    boarding_house.storage["rooms"]["room1"]["status"] = "occupied"

    occupancy = await room_service.update_property_occupancy_from_rooms("prop1")

    prop = boarding_house.doc("properties", "prop1")
    assert occupancy == {"total_rooms": 2, "occupied": 1, "vacancies": 1}
    assert prop["total_rooms"] == 2 and prop["occupied"] == 1
    _assert_consistent(prop)


async def test_maintenance_rooms_count_as_vacancies():
    rooms = [
        {"id": "a", "status": "occupied"},
        {"id": "b", "status": "maintenance"},
        {"id": "c", "status": "vacant"},
    ]
    assert compute_occupancy(rooms) == {"total_rooms": 3, "occupied": 1, "vacancies": 2}
    assert compute_occupancy(rooms, {"a": None, "d": "occupied"}) == {"total_rooms": 3, "occupied": 1, "vacancies": 2}


async def test_recompute_for_missing_property(fake_db):
    with pytest.raises(NotFoundError):
        await room_service.update_property_occupancy_from_rooms("ghost")


async def test_room_lifecycle_keeps_occupancy_current(boarding_house):
    room_id = await room_service.add_room("landlord1", "prop1", {
        "number": 103, "rent": 5000, "utilities": {"water": {"type": "fixed", "amount": 150}},
    })
    prop = boarding_house.doc("properties", "prop1")
    assert prop["total_rooms"] == 3
    _assert_consistent(prop)
    stored = boarding_house.doc("rooms", room_id)
    assert stored["number"] == "103"
    assert stored["utilities"]["water"]["type"] == "flat"

    await room_service.update_room("landlord1", room_id, {"status": "occupied"})
    prop = boarding_house.doc("properties", "prop1")
    assert prop["occupied"] == 1
    _assert_consistent(prop)

    await room_service.update_room("landlord1", room_id, {"status": "vacant"})
    await room_service.delete_room("landlord1", room_id)
    prop = boarding_house.doc("properties", "prop1")
    assert prop["total_rooms"] == 2 and prop["occupied"] == 0
    _assert_consistent(prop)


async def test_update_without_status_leaves_occupancy_alone(boarding_house):
    await room_service.update_room("landlord1", "room1", {"rent": 4500})

    assert boarding_house.doc("rooms", "room1")["rent"] == 4500
    assert boarding_house.doc("properties", "prop1")["total_rooms"] == 0


async def test_invalid_room_status_is_rejected(boarding_house):
    with pytest.raises(BusinessRuleError):
        await room_service.update_room("landlord1", "room1", {"status": "haunted"})


async def test_cannot_delete_occupied_room(boarding_house):
    await room_service.assign_tenant_to_room("landlord1", "room1", {"id": "tenant1", "name": "Juan Dela Cruz"})

    with pytest.raises(BusinessRuleError) as exc:
        await room_service.delete_room("landlord1", "room1")

    assert "Cannot delete room 101. It is currently occupied by Juan Dela Cruz." in str(exc.value)
    assert boarding_house.doc("rooms", "room1") is not None
    assert boarding_house.doc("properties", "prop1")["occupied"] == 1


async def test_cannot_delete_property_with_occupied_room(boarding_house):
    await room_service.assign_tenant_to_room("landlord1", "room2", {"id": "tenant2", "name": "Maria Reyes"})

    with pytest.raises(BusinessRuleError) as exc:
        await property_service.delete_property("landlord1", "prop1")

    assert "1 room(s) are currently occupied by: Room 102 (Maria Reyes)" in str(exc.value)
    assert boarding_house.doc("properties", "prop1") is not None
    assert boarding_house.doc("rooms", "room1") is not None


async def test_delete_empty_property_removes_rooms(boarding_house):
    await property_service.delete_property("landlord1", "prop1")

    assert boarding_house.doc("properties", "prop1") is None
    assert boarding_house.all("rooms") == []


async def test_ownership_is_enforced(boarding_house):
    with pytest.raises(AccessDeniedError):
        await room_service.delete_room("landlord2", "room1")
    with pytest.raises(AccessDeniedError):
        await property_service.get_property("landlord2", "prop1")
    with pytest.raises(AccessDeniedError):
        await room_service.add_room("landlord2", "prop1", {"number": "1", "rent": 1})


async def test_rooms_sorted_by_number(boarding_house):
    boarding_house.seed("rooms", "room10", {"property_id": "prop1", "owner_id": "landlord1", "number": "10", "rent": 1, "status": "vacant"})
    boarding_house.seed("rooms", "room9", {"property_id": "prop1", "owner_id": "landlord1", "number": "9", "rent": 1, "status": "vacant"})

    rooms = await room_service.get_property_rooms("landlord1", "prop1")

    assert [r["number"] for r in rooms] == ["9", "10", "101", "102"]


async def test_user_properties_report_live_occupancy(boarding_house):
    boarding_house.storage["rooms"]["room2"]["status"] = "occupied"

    properties = await property_service.get_user_properties("landlord1")
    stats = await property_service.get_property_stats("landlord1")

    assert properties[0]["occupied"] == 1 and properties[0]["total_rooms"] == 2
    assert stats == {
        "total_properties": 1,
        "total_rooms": 2,
        "total_occupied": 1,
        "total_vacant": 1,
        "total_revenue": 6500.0,
    }


async def test_available_rooms_filters(boarding_house):
    rooms = await room_service.get_available_rooms({"price_range": "under-4000"})
    assert rooms == []

    rooms = await room_service.get_available_rooms({"price_range": "4000-6000"})
    assert [r["id"] for r in rooms] == ["room1"]
    assert rooms[0]["deposit"] == 8000
    assert rooms[0]["title"] == "Single - Sunrise Dormitory"
    assert "Wifi" in rooms[0]["amenities"]

    rooms = await room_service.get_available_rooms({"search_query": "sunrise", "room_type": "double"})
    assert [r["id"] for r in rooms] == ["room2"]


async def test_add_property_sets_owner(fake_db):
    property_id = await property_service.add_property(
        "landlord1", {"name": "Blue House", "occupied": 99}, owner_email="owner@example.com"
    )

    prop = fake_db.doc("properties", property_id)
    assert prop["owner_id"] == "landlord1"
    assert prop["owner_email"] == "owner@example.com"
    assert prop["occupied"] == 0

import json

import pytest

from atelier import models
from atelier.errors import ValidationError
from atelier.services import items as item_service

from conftest import create_board, create_item, events_of, principal


def test_create_item_with_intelligence(client, designer, db):
    headers = designer[0]
    board_id = create_board(client, headers)
    resp = client.post(
        "/api/items",
        json={
            "title": "Dining table",
            "board_id": board_id,
            "sourcing_type": "furniture",
            "dimension_width": 2,
            "dimension_depth": 1,
            "dimension_height": 0.75,
            "dimension_units_original": "m",
        },
        headers=headers,
    )
    assert resp.status_code == 200, resp.text
    body = resp.json()
    assert body["message"] == "Item created successfully."
    assert body["added_to_board"] is True
    assert body["board_id"] == board_id
    item = body["item"]
    assert item["item_type"] == "furniture"
    assert item["status"] == "active"
    assert item["dimension_width_cm"] == pytest.approx(200.0)
    assert item["dimension_height_original"] == pytest.approx(0.75)
    assert item["cbm"] == pytest.approx(1.5)
    assert item["timeline_type"] == "6_step"

    item_id = body["item_id"]
    kinds = [
        event.event_type
        for event in db.query(models.Event).filter(models.Event.item_id == item_id).order_by(models.Event.id)
    ]
    assert kinds == [
        "item_created",
        "item_sourcing_type_set",
        "item_timeline_type_derived",
        "item_dimension_changed",
        "item_unit_normalized",
        "item_cbm_recalculated",
        "timeline_created",
        "item_added_to_board",
    ]
    snapshot = json.loads(events_of(db, "item_cbm_recalculated", item_id=item_id)[0].payload_json)
    assert snapshot["cbm"] == pytest.approx(1.5)
    assert snapshot["dimension_units_original"] == "m"


def test_create_item_defaults_and_errors(client, designer):
    headers = designer[0]
    plain = client.post("/api/items", json={"title": "Lamp"}, headers=headers).json()
    assert plain["added_to_board"] is False
    assert plain["board_id"] is None
    assert plain["item"]["cbm"] is None

    missing = client.post("/api/items", json={"description": "no title"}, headers=headers)
    assert missing.status_code == 400
    assert missing.json()["message"] == "Title is required."

    unknown = client.post("/api/items", json={"title": "X", "price": 10}, headers=headers)
    assert unknown.status_code == 400
    assert unknown.json()["details"] == {"unknown_fields": ["price"]}

    unit = client.post("/api/items", json={"title": "X", "dimension_width": 3, "dimension_units_original": "ft"}, headers=headers)
    assert unit.json()["message"] == "Invalid unit. Allowed: mm, cm, m, in"

    sourcing = client.post("/api/items", json={"title": "X", "sourcing_type": "bespoke"}, headers=headers)
    assert sourcing.json()["message"].startswith("Invalid sourcing type.")


def test_dimension_range_errors_are_collected(client, designer):
    resp = client.post(
        "/api/items",
        json={"title": "X", "dimension_width": -1, "dimension_depth": "wide", "dimension_height": 6000},
        headers=designer[0],
    )
    assert resp.status_code == 400
    body = resp.json()
    assert body["message"].startswith("Invalid dimensions:")
    assert len(body["details"]["errors"]) == 3


def test_converted_dimension_must_stay_in_range(client, designer):
    resp = client.post(
        "/api/items",
        json={"title": "X", "dimension_width": 60, "dimension_units_original": "m"},
        headers=designer[0],
    )
    assert resp.status_code == 400
    assert "after conversion" in resp.json()["message"]


def test_update_item_tracks_changes_and_version(client, designer, db):
    headers = designer[0]
    item_id = create_item(client, headers, title="Chair")

    resp = client.patch(
        f"/api/items/{item_id}",
        json={"title": "Arm chair", "sourcing_type": "global_sourcing"},
        headers=headers,
    )
    assert resp.status_code == 200
    body = resp.json()
    assert body["message"] == "Item updated successfully."
    assert set(body["changed_fields"]) == {"title", "sourcing_type", "timeline_type"}
    assert body["intelligence"] == {"cbm": None, "timeline_type": "4_step"}
    assert body["item"]["version"] == 2

    changed = json.loads(events_of(db, "item_field_changed", item_id=item_id)[0].payload_json)
    assert changed["version"] == 2
    assert [entry["field"] for entry in changed["changed_fields"]] == ["title"]

    noop = client.patch(f"/api/items/{item_id}", json={"title": "Arm chair"}, headers=headers)
    assert noop.json()["message"] == "No changes to update."

    switched = client.patch(f"/api/items/{item_id}", json={"sourcing_type": "furniture"}, headers=headers)
    assert switched.json()["item"]["timeline_type"] == "6_step"
    assert events_of(db, "item_sourcing_type_changed", item_id=item_id)


def test_unit_only_change_renormalises_originals(client, designer):
    headers = designer[0]
    item_id = create_item(
        client, headers, dimension_width=100, dimension_depth=50, dimension_height=40
    )
    resp = client.patch(f"/api/items/{item_id}", json={"dimension_units_original": "mm"}, headers=headers)
    item = resp.json()["item"]
    assert item["dimension_width_original"] == pytest.approx(100)
    assert item["dimension_width_cm"] == pytest.approx(10)
    assert item["cbm"] == pytest.approx(10 * 5 * 4 / 1_000_000)


def test_clearing_a_dimension_clears_cbm(client, designer):
    headers = designer[0]
    item_id = create_item(client, headers, dimension_width=10, dimension_depth=10, dimension_height=10)
    resp = client.patch(f"/api/items/{item_id}", json={"dimension_height": ""}, headers=headers)
    item = resp.json()["item"]
    assert item["dimension_height_cm"] is None
    assert item["cbm"] is None


def test_item_visibility(client, designer, other_designer, operator):
    item_id = create_item(client, designer[0])
    assert client.get(f"/api/items/{item_id}", headers=designer[0]).status_code == 200
    assert client.get(f"/api/items/{item_id}", headers=other_designer[0]).status_code == 403
    assert client.get(f"/api/items/{item_id}", headers=operator[0]).status_code == 200
    assert client.patch(f"/api/items/{item_id}", json={"title": "Mine"}, headers=other_designer[0]).status_code == 403

    own = client.get("/api/items", headers=designer[0]).json()["items"]
    assert item_id in [item["id"] for item in own]
    assert client.get("/api/items", headers=other_designer[0]).json()["items"] == []


def test_list_items_by_board(client, designer):
    headers = designer[0]
    board_id = create_board(client, headers)
    on_board = create_item(client, headers, board_id=board_id)
    create_item(client, headers, title="Loose")
    listed = client.get("/api/items", params={"board_id": board_id}, headers=headers).json()["items"]
    assert [item["id"] for item in listed] == [on_board]


def test_delete_item_closes_placements(client, designer, db):
    headers = designer[0]
    board_id = create_board(client, headers)
    item_id = create_item(client, headers, board_id=board_id)
    assert client.delete(f"/api/items/{item_id}", headers=headers).status_code == 200
    assert client.get(f"/api/items/{item_id}", headers=headers).status_code == 403
    assert client.get(f"/api/boards/{board_id}/items", headers=headers).json()["items"] == []
    payload = json.loads(events_of(db, "item_deleted", item_id=item_id)[0].payload_json)
    assert payload["removed_from_boards"] == [board_id]


def test_assign_item_to_room(client, designer, other_designer, db):
    headers = designer[0]
    board_id = create_board(client, headers)
    project_id = client.post(f"/api/boards/{board_id}/projects", json={"name": "P"}, headers=headers).json()["project"]["id"]
    room_id = client.post(f"/api/projects/{project_id}/rooms", json={"name": "R"}, headers=headers).json()["room"]["id"]
    item_id = create_item(client, headers)

    resp = client.put(f"/api/items/{item_id}/room", json={"room_id": room_id}, headers=headers)
    assert resp.json()["room_id"] == room_id
    event = events_of(db, "item_assigned_to_room", item_id=item_id)[0]
    assert event.board_id == board_id

    listed = client.get("/api/items", params={"room_id": room_id}, headers=headers).json()["items"]
    assert [item["id"] for item in listed] == [item_id]

    foreign = create_item(client, other_designer[0])
    denied = client.put(f"/api/items/{foreign}/room", json={"room_id": room_id}, headers=other_designer[0])
    assert denied.status_code == 403


def test_supplier_routing(client, designer, operator, supplier, other_designer):
    item_id = create_item(client, designer[0])
    supplier_id = supplier[1]
    denied = client.post(f"/api/items/{item_id}/suppliers", json={"supplier_id": supplier_id}, headers=designer[0])
    assert denied.status_code == 403

    routed = client.post(f"/api/items/{item_id}/suppliers", json={"supplier_id": supplier_id}, headers=operator[0])
    assert routed.status_code == 200
    dup = client.post(f"/api/items/{item_id}/suppliers", json={"supplier_id": supplier_id}, headers=operator[0])
    assert dup.status_code == 400

    not_supplier = client.post(
        f"/api/items/{item_id}/suppliers", json={"supplier_id": other_designer[1]}, headers=operator[0]
    )
    assert not_supplier.json()["message"] == "Supplier not found."
    assert client.get(f"/api/items/{item_id}", headers=supplier[0]).status_code == 200


def test_update_item_service_rejects_unknown_fields(db, designer, client):
    item_id = create_item(client, designer[0])
    ctx = principal(db, designer[1])
    with pytest.raises(ValidationError) as excinfo:
        item_service.update_item(db, ctx, item_id, {"owner_user_id": 99})
    assert excinfo.value.details == {"unknown_fields": ["owner_user_id"]}

import json

from atelier import cache, models

from conftest import create_board, create_item, events_of, register


def layout_item(**overrides):
    item = {"id": "a", "x": 10, "y": 20, "z": 5, "width": 200, "height": 300, "displayMode": "full"}
    item.update(overrides)
    return item


def test_board_crud_flow(client, designer, db):
    headers = designer[0]
    resp = client.post(
        "/api/boards", json={"name": "  Loft  ", "description": "Top floor", "view_mode": "list"}, headers=headers
    )
    assert resp.status_code == 200
    body = resp.json()
    assert body["success"] is True
    board_id = body["board_id"]
    assert body["board"]["name"] == "Loft"
    assert body["board"]["view_mode"] == "list"
    assert events_of(db, "board_created", board_id=board_id)

    listed = client.get("/api/boards", headers=headers).json()["boards"]
    assert [(b["id"], b["access"]) for b in listed] == [(board_id, "owner")]

    upd = client.patch(f"/api/boards/{board_id}", json={"view_mode": "3d"}, headers=headers)
    assert upd.json()["board"]["view_mode"] == "3d"
    assert events_of(db, "board_updated", board_id=board_id)

    assert client.delete(f"/api/boards/{board_id}", headers=headers).status_code == 200
    assert client.get(f"/api/boards/{board_id}", headers=headers).status_code == 403


def test_board_validation(client, designer):
    headers = designer[0]
    missing = client.post("/api/boards", json={"name": "   "}, headers=headers)
    assert missing.status_code == 400
    assert missing.json()["message"] == "Board name is required."
    long_name = client.post("/api/boards", json={"name": "x" * 256}, headers=headers)
    assert long_name.status_code == 400
    mode = client.post("/api/boards", json={"name": "B", "view_mode": "carousel"}, headers=headers)
    assert mode.json()["message"] == "Invalid view mode."


def test_designer_limited_to_one_live_board(client, designer):
    headers = designer[0]
    first = create_board(client, headers)
    again = client.post("/api/boards", json={"name": "Second"}, headers=headers)
    assert again.status_code == 400
    assert "only create one workspace" in again.json()["message"]

    client.delete(f"/api/boards/{first}", headers=headers)
    create_board(client, headers, name="Replacement")


def test_other_users_cannot_see_or_edit_board(client, designer, other_designer):
    board_id = create_board(client, designer[0])
    other = other_designer[0]
    assert client.get(f"/api/boards/{board_id}", headers=other).status_code == 403
    assert client.patch(f"/api/boards/{board_id}", json={"name": "Mine"}, headers=other).status_code == 403
    assert client.get(f"/api/boards/{board_id}/layout", headers=other).status_code == 403


def test_admin_sees_any_board(client, designer, admin):
    board_id = create_board(client, designer[0])
    resp = client.get(f"/api/boards/{board_id}", headers=admin[0])
    assert resp.status_code == 200
    assert resp.json()["board"]["access"] == "admin"


def test_board_items_add_remove_and_history(client, designer, db):
    headers = designer[0]
    board_id = create_board(client, headers)
    item_id = create_item(client, headers)

    added = client.post(f"/api/boards/{board_id}/items", json={"item_id": item_id}, headers=headers)
    assert added.status_code == 200
    dup = client.post(f"/api/boards/{board_id}/items", json={"item_id": item_id}, headers=headers)
    assert dup.status_code == 400

    items = client.get(f"/api/boards/{board_id}/items", headers=headers).json()["items"]
    assert [row["item_id"] for row in items] == [item_id]

    removed = client.delete(f"/api/boards/{board_id}/items/{item_id}", headers=headers)
    assert removed.status_code == 200
    again = client.delete(f"/api/boards/{board_id}/items/{item_id}", headers=headers)
    assert again.status_code == 404
    assert client.get(f"/api/boards/{board_id}/items", headers=headers).json()["items"] == []

    client.post(f"/api/boards/{board_id}/items", json={"item_id": item_id}, headers=headers)
    history = client.get(f"/api/boards/{board_id}/items/{item_id}/history", headers=headers).json()["history"]
    assert len(history) == 2
    assert history[0]["removed_at"] is not None
    assert history[1]["removed_at"] is None
    assert events_of(db, "item_removed_from_board", board_id=board_id, item_id=item_id)


def test_cannot_place_someone_elses_item(client, designer, other_designer):
    board_id = create_board(client, designer[0])
    foreign_item = create_item(client, other_designer[0])
    resp = client.post(f"/api/boards/{board_id}/items", json={"item_id": foreign_item}, headers=designer[0])
    assert resp.status_code == 404


def test_layout_defaults_to_empty_shape(client, designer):
    headers = designer[0]
    board_id = create_board(client, headers)
    resp = client.get(f"/api/boards/{board_id}/layout", headers=headers)
    assert resp.status_code == 200
    body = resp.json()
    assert body["board"]["id"] == board_id
    assert body["layout"] == {"items": []}


def test_layout_save_renumbers_z_and_round_trips(client, designer, db):
    headers = designer[0]
    board_id = create_board(client, headers)
    items = [
        layout_item(id="back", z=40),
        layout_item(id="front", z=90, sizeKey="XL", displayMode="photo_only"),
        layout_item(id="middle", z=41),
    ]
    resp = client.post(f"/api/boards/{board_id}/layout", json={"items": items}, headers=headers)
    assert resp.status_code == 200
    assert resp.json()["item_count"] == 3
    assert resp.json()["saved_at"]

    layout = client.get(f"/api/boards/{board_id}/layout", headers=headers).json()["layout"]["items"]
    assert [(entry["id"], entry["z"]) for entry in layout] == [("back", 1), ("middle", 2), ("front", 3)]
    assert layout[2]["sizeKey"] == "XL"

    event = events_of(db, "board_layout_updated", board_id=board_id)[-1]
    assert '"item_count":3' in event.payload_json


def test_layout_read_survives_cache_loss(client, designer):
    headers = designer[0]
    board_id = create_board(client, headers)
    client.post(f"/api/boards/{board_id}/layout", json={"items": [layout_item()]}, headers=headers)
    cache.invalidate_board(board_id)
    layout = client.get(f"/api/boards/{board_id}/layout", headers=headers).json()["layout"]["items"]
    assert [entry["id"] for entry in layout] == ["a"]


def test_layout_validation_errors(client, designer):
    headers = designer[0]
    board_id = create_board(client, headers)
    cases = [
        ("not-a-list", "Items must be a valid JSON array."),
        ([layout_item(extra=1)], "unknown keys: extra"),
        ([layout_item(id="")], "id is required"),
        ([layout_item(x="left")], "x must be numeric"),
        ([layout_item(width=50)], "width out of range"),
        ([layout_item(height=1001)], "height out of range"),
        ([layout_item(displayMode="huge")], "displayMode must be one of"),
        ([layout_item(sizeKey="M")], "sizeKey must be one of"),
        ([layout_item(x=100001)], "position out of range"),
    ]
    for items, message in cases:
        resp = client.post(f"/api/boards/{board_id}/layout", json={"items": items}, headers=headers)
        assert resp.status_code == 400, items
        assert message in resp.json()["message"]


def test_team_member_can_view_but_not_edit_firm_board(client, designer, db):
    from atelier import membership

    headers, owner_id, _email = designer
    member_headers, member_id, _member_email = register(client)
    firm = models.Firm(name="Studio", slug=f"studio-{owner_id}")
    db.add(firm)
    db.flush()
    membership.add_firm_member(db, firm_id=firm.id, user_id=owner_id)
    membership.add_firm_member(db, firm_id=firm.id, user_id=member_id)
    db.get(models.User, member_id).role = "team_member"
    db.commit()

    board_id = create_board(client, headers, owner_firm_id=firm.id)
    view = client.get(f"/api/boards/{board_id}", headers=member_headers)
    assert view.status_code == 200
    assert view.json()["board"]["access"] == "team"
    edit = client.post(f"/api/boards/{board_id}/layout", json={"items": []}, headers=member_headers)
    assert edit.status_code == 403


def test_unknown_or_deleted_firm_is_rejected(client, admin, db):
    resp = client.post("/api/boards", json={"name": "Firm board", "owner_firm_id": 424242}, headers=admin[0])
    assert resp.status_code == 400
    assert resp.json() == {"success": False, "message": "Firm not found."}

    firm = models.Firm(name="Closed", slug=f"closed-{admin[1]}", deleted_at=models.utcnow())
    db.add(firm)
    db.commit()
    closed = client.post("/api/boards", json={"name": "Firm board", "owner_firm_id": firm.id}, headers=admin[0])
    assert closed.status_code == 400
    assert db.query(models.Board).filter_by(owner_user_id=admin[1]).count() == 0


def test_board_list_covers_every_firm_of_the_viewer(client, designer, db):
    from atelier import membership

    headers, owner_id, _email = designer
    viewer_headers, viewer_id, _viewer_email = register(client)
    first = models.Firm(name="First", slug=f"first-{viewer_id}")
    second = models.Firm(name="Second", slug=f"second-{viewer_id}")
    db.add_all([first, second])
    db.flush()
    membership.add_firm_member(db, firm_id=first.id, user_id=viewer_id)
    membership.add_firm_member(db, firm_id=second.id, user_id=viewer_id)
    membership.add_firm_member(db, firm_id=second.id, user_id=owner_id)
    db.get(models.User, viewer_id).role = "team_member"
    db.commit()

    board_id = create_board(client, headers, owner_firm_id=second.id)
    listed = client.get("/api/boards", headers=viewer_headers).json()["boards"]
    assert [(board["id"], board["access"]) for board in listed] == [(board_id, "team")]


def placed_item(client, headers):
    board_id = create_board(client, headers)
    item_id = create_item(client, headers)
    client.post(f"/api/boards/{board_id}/items", json={"item_id": item_id}, headers=headers)
    return board_id, item_id


def test_placement_layout_upsert_keeps_unsent_sizes(client, designer, db):
    headers = designer[0]
    board_id, item_id = placed_item(client, headers)
    url = f"/api/boards/{board_id}/items/{item_id}/layout"

    default = client.get(url, headers=headers).json()["layout"]
    assert (default["position_x"], default["position_z"], default["view_mode"]) == (0.0, 0, "grid")

    first = client.put(
        url,
        json={"position_x": -120.5, "position_y": 40, "position_z": 3, "size_width": 320, "size_height": 240},
        headers=headers,
    )
    assert first.status_code == 200, first.text
    assert first.json()["message"] == "Board layout updated successfully."

    second = client.put(url, json={"position_x": 10, "view_mode": "list"}, headers=headers)
    layout = second.json()["layout"]
    assert (layout["position_x"], layout["position_y"], layout["position_z"]) == (10.0, 0.0, 0)
    assert (layout["size_width"], layout["size_height"]) == (320.0, 240.0)
    assert layout["view_mode"] == "list"
    assert client.get(url, headers=headers).json()["layout"] == layout
    assert db.query(models.BoardLayout).filter_by(board_id=board_id, item_id=item_id).count() == 1

    events = events_of(db, "board_layout_updated", board_id=board_id, item_id=item_id)
    assert len(events) == 2
    assert events[-1].object_type == "board_layout"
    assert json.loads(events[-1].payload_json) == {
        "position_x": 10.0,
        "position_y": 0.0,
        "position_z": 0,
        "view_mode": "list",
    }


def test_placement_layout_rules(client, designer, other_designer):
    headers = designer[0]
    board_id, item_id = placed_item(client, headers)
    url = f"/api/boards/{board_id}/items/{item_id}/layout"
    cases = [
        ({"position_x": 100001}, "Position values out of range."),
        ({"position_y": -100001}, "Position values out of range."),
        ({"size_width": -1}, "Size width out of range."),
        ({"size_height": 100001}, "Size height out of range."),
        ({"view_mode": "masonry"}, "Invalid view mode."),
    ]
    for body, message in cases:
        resp = client.put(url, json=body, headers=headers)
        assert resp.status_code == 400, body
        assert resp.json()["message"] == message
    assert client.put(url, json={"position_x": 100000, "position_y": -100000}, headers=headers).status_code == 200

    loose_item = create_item(client, headers, title="Not placed")
    off_board = client.put(f"/api/boards/{board_id}/items/{loose_item}/layout", json={}, headers=headers)
    assert off_board.status_code == 404
    assert off_board.json()["message"] == "Item is not on this board."
    assert client.put(url, json={}, headers=other_designer[0]).status_code == 403

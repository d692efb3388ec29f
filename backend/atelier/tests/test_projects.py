from conftest import create_board, create_item, events_of


def create_project(client, headers, board_id, name="Apartment"):
    resp = client.post(f"/api/boards/{board_id}/projects", json={"name": name}, headers=headers)
    assert resp.status_code == 200, resp.text
    return resp.json()["project"]["id"]


def create_room(client, headers, project_id, name):
    resp = client.post(f"/api/projects/{project_id}/rooms", json={"name": name}, headers=headers)
    assert resp.status_code == 200, resp.text
    return resp.json()["room"]


def test_project_flow(client, designer, db):
    headers = designer[0]
    board_id = create_board(client, headers)
    project_id = create_project(client, headers, board_id)
    assert events_of(db, "project_created", object_id=project_id)

    listed = client.get(f"/api/boards/{board_id}/projects", headers=headers).json()["projects"]
    assert [p["id"] for p in listed] == [project_id]
    assert listed[0]["status"] == "draft"

    upd = client.patch(f"/api/projects/{project_id}", json={"status": "active", "name": "Flat"}, headers=headers)
    assert upd.status_code == 200
    assert upd.json()["project"]["name"] == "Flat"
    bad = client.patch(f"/api/projects/{project_id}", json={"status": "paused"}, headers=headers)
    assert bad.status_code == 400

    assert client.delete(f"/api/projects/{project_id}", headers=headers).status_code == 200
    assert client.get(f"/api/projects/{project_id}", headers=headers).status_code == 403
    assert client.get(f"/api/boards/{board_id}/projects", headers=headers).json()["projects"] == []


def test_project_requires_board_edit(client, designer, other_designer):
    board_id = create_board(client, designer[0])
    resp = client.post(f"/api/boards/{board_id}/projects", json={"name": "Nope"}, headers=other_designer[0])
    assert resp.status_code == 403
    empty = client.post(f"/api/boards/{board_id}/projects", json={"name": ""}, headers=designer[0])
    assert empty.status_code == 400
    assert empty.json()["message"] == "Project name is required."


def test_rooms_are_appended_in_order(client, designer):
    headers = designer[0]
    project_id = create_project(client, headers, create_board(client, headers))
    kitchen = create_room(client, headers, project_id, "Kitchen")
    lounge = create_room(client, headers, project_id, "Lounge")
    assert (kitchen["display_order"], lounge["display_order"]) == (1, 2)

    rooms = client.get(f"/api/projects/{project_id}/rooms", headers=headers).json()["rooms"]
    assert [room["name"] for room in rooms] == ["Kitchen", "Lounge"]

    upd = client.patch(f"/api/rooms/{kitchen['id']}", json={"name": "Galley"}, headers=headers)
    assert upd.json()["room"]["name"] == "Galley"


def test_reorder_rooms_renumbers_densely(client, designer, db):
    headers = designer[0]
    project_id = create_project(client, headers, create_board(client, headers))
    a = create_room(client, headers, project_id, "A")["id"]
    b = create_room(client, headers, project_id, "B")["id"]
    c = create_room(client, headers, project_id, "C")["id"]

    resp = client.post(
        f"/api/projects/{project_id}/rooms/reorder",
        json={"orders": [{"room_id": c, "display_order": 0}, {"room_id": a, "display_order": 10}]},
        headers=headers,
    )
    assert resp.status_code == 200
    ordered = [(room["id"], room["display_order"]) for room in resp.json()["rooms"]]
    assert ordered == [(c, 1), (b, 2), (a, 3)]
    assert events_of(db, "rooms_reordered", object_id=project_id)


def test_reorder_rooms_validation(client, designer, other_designer):
    headers = designer[0]
    project_id = create_project(client, headers, create_board(client, headers))
    room_id = create_room(client, headers, project_id, "A")["id"]
    foreign_project = create_project(client, other_designer[0], create_board(client, other_designer[0]))
    foreign_room = create_room(client, other_designer[0], foreign_project, "X")["id"]

    url = f"/api/projects/{project_id}/rooms/reorder"
    assert client.post(url, json={"orders": []}, headers=headers).json()["message"] == "Room orders are required."
    wrong = client.post(url, json={"orders": [{"room_id": foreign_room, "display_order": 1}]}, headers=headers)
    assert wrong.json()["message"] == "Every room must belong to this project."
    negative = client.post(url, json={"orders": [{"room_id": room_id, "display_order": -1}]}, headers=headers)
    assert negative.status_code == 400
    junk = client.post(url, json={"orders": [{"room_id": room_id, "display_order": "first"}]}, headers=headers)
    assert junk.json()["message"] == "display_order must be an integer."


def test_rooms_with_items_cannot_be_deleted(client, designer):
    headers = designer[0]
    project_id = create_project(client, headers, create_board(client, headers))
    room_id = create_room(client, headers, project_id, "Study")["id"]
    item_id = create_item(client, headers, room_id=room_id)

    blocked = client.delete(f"/api/rooms/{room_id}", headers=headers)
    assert blocked.status_code == 400
    assert client.delete(f"/api/projects/{project_id}", headers=headers).status_code == 400

    client.put(f"/api/items/{item_id}/room", json={"room_id": None}, headers=headers)
    assert client.delete(f"/api/rooms/{room_id}", headers=headers).status_code == 200
    assert client.get(f"/api/projects/{project_id}/rooms", headers=headers).json()["rooms"] == []

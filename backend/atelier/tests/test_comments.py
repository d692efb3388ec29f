from conftest import create_item, events_of, timeline_steps


def comments_url(item_id, step_number):
    return f"/api/items/{item_id}/timeline/steps/{step_number}/comments"


def add_media(client, operator_headers, item_id, step_id, **extra):
    resp = client.post(
        f"/api/items/{item_id}/media-evidence",
        json={"step_id": step_id, "media_type": "image", "file_path": "photo.jpg", **extra},
        headers=operator_headers,
    )
    assert resp.status_code == 200, resp.text
    return resp.json()["evidence"]["id"]


def test_designer_comments_on_production_steps(client, designer, db):
    headers = designer[0]
    item_id = create_item(client, headers)
    first = client.post(comments_url(item_id, 4), json={"comment_text": "  Edge banding looks rough  "}, headers=headers)
    assert first.status_code == 200, first.text
    assert first.json()["message"] == "Comment added."
    assert first.json()["comment"]["comment_text"] == "Edge banding looks rough"
    assert first.json()["comment"]["designer_id"] == designer[1]

    client.post(comments_url(item_id, 4), json={"comment_text": "Fixed now", "media_version": 2}, headers=headers)
    listed = client.get(comments_url(item_id, 4), headers=headers).json()["comments"]
    assert [row["comment_text"] for row in listed] == ["Fixed now", "Edge banding looks rough"]
    assert listed[0]["media_version"] == 2
    assert len(events_of(db, "timeline_step_comment_added", item_id=item_id)) == 2


def test_step_comment_rules(client, designer, operator, admin):
    headers = designer[0]
    item_id = create_item(client, headers)

    early = client.post(comments_url(item_id, 3), json={"comment_text": "Too early"}, headers=headers)
    assert early.status_code == 400
    assert early.json()["message"] == "Comments only for Steps 4, 5, and 6."

    blank = client.post(comments_url(item_id, 5), json={"comment_text": "   "}, headers=headers)
    assert blank.json()["message"] == "Comment text is required."

    assert client.post(comments_url(item_id, 5), json={"comment_text": "Op"}, headers=operator[0]).status_code == 403
    assert client.post(comments_url(item_id, 5), json={"comment_text": "Admin"}, headers=admin[0]).status_code == 200
    assert client.get(comments_url(item_id, 5), headers=operator[0]).status_code == 200


def test_step_comments_have_no_edit_route(client, designer):
    headers = designer[0]
    item_id = create_item(client, headers)
    comment_id = client.post(comments_url(item_id, 6), json={"comment_text": "Keep"}, headers=headers).json()["comment"]["id"]
    resp = client.patch(f"{comments_url(item_id, 6)}/{comment_id}", json={"comment_text": "Edit"}, headers=headers)
    assert resp.status_code in (404, 405)


def test_evidence_comments_ascending(client, designer, operator, db):
    item_id = create_item(client, designer[0])
    step_id = timeline_steps(client, designer[0], item_id)[5]["step_id"]
    evidence_id = add_media(client, operator[0], item_id, step_id)

    url = f"/api/evidence/{evidence_id}/comments"
    assert client.post(url, json={"comment_text": "Is this the final finish?"}, headers=designer[0]).status_code == 200
    assert client.post(url, json={"comment_text": "Yes"}, headers=operator[0]).status_code == 200
    listed = client.get(url, headers=designer[0]).json()["comments"]
    assert [(row["comment_text"], row["user_id"]) for row in listed] == [
        ("Is this the final finish?", designer[1]),
        ("Yes", operator[1]),
    ]
    assert events_of(db, "evidence_comment_added", object_id=evidence_id)

    empty = client.post(url, json={"comment_text": ""}, headers=designer[0])
    assert empty.status_code == 400


def test_hidden_evidence_comments_are_not_found_for_designers(client, designer, operator):
    item_id = create_item(client, designer[0])
    step_id = timeline_steps(client, designer[0], item_id)[4]["step_id"]
    evidence_id = add_media(client, operator[0], item_id, step_id, hidden=True)
    url = f"/api/evidence/{evidence_id}/comments"
    assert client.post(url, json={"comment_text": "?"}, headers=designer[0]).status_code == 404
    assert client.get(url, headers=designer[0]).status_code == 404


def test_batch_evidence_comments(client, designer, operator, other_designer):
    item_id = create_item(client, designer[0])
    step_id = timeline_steps(client, designer[0], item_id)[4]["step_id"]
    first = add_media(client, operator[0], item_id, step_id)
    second = add_media(client, operator[0], item_id, step_id)
    client.post(f"/api/evidence/{first}/comments", json={"comment_text": "one"}, headers=designer[0])
    client.post(f"/api/evidence/{first}/comments", json={"comment_text": "two"}, headers=designer[0])

    resp = client.get("/api/evidence-comments", params={"evidence_ids": [first, second]}, headers=designer[0])
    assert resp.status_code == 200
    comments = resp.json()["comments"]
    assert [row["comment_text"] for row in comments[str(first)]] == ["one", "two"]
    assert comments[str(second)] == []

    assert client.get("/api/evidence-comments", headers=designer[0]).json()["comments"] == {}
    denied = client.get("/api/evidence-comments", params={"evidence_ids": [first]}, headers=other_designer[0])
    assert denied.status_code == 403

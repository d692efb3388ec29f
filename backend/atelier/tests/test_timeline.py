from atelier import models

from conftest import create_item, events_of, timeline_steps


def steps_url(item_id, step_number, action):
    return f"/api/items/{item_id}/timeline/steps/{step_number}/{action}"


def test_item_without_timeline_reads_as_pending_steps(client, designer, db):
    headers, user_id, _email = designer
    item = models.Item(owner_user_id=user_id, title="Legacy import", status="active")
    db.add(item)
    db.commit()

    before = db.query(models.Event).count()
    resp = client.get(f"/api/items/{item.id}/timeline", headers=headers)
    assert resp.status_code == 200
    timeline = resp.json()["timeline"]
    assert timeline["timeline_id"] is None
    assert [step["status"] for step in timeline["steps"]] == ["pending"] * 6
    assert all(step["step_id"] is None for step in timeline["steps"])
    assert db.query(models.ItemTimeline).filter_by(item_id=item.id).count() == 0
    assert db.query(models.Event).count() == before


def test_operator_mutation_creates_missing_timeline(client, designer, operator, db):
    _headers, user_id, _email = designer
    item = models.Item(owner_user_id=user_id, title="Legacy import", status="active")
    db.add(item)
    db.commit()

    resp = client.post(steps_url(item.id, 1, "start"), headers=operator[0])
    assert resp.status_code == 200, resp.text
    assert events_of(db, "timeline_created", item_id=item.id)
    assert events_of(db, "timeline_step_started", item_id=item.id)


def test_new_item_has_six_labelled_steps(client, designer):
    headers = designer[0]
    steps = timeline_steps(client, headers, create_item(client, headers))
    assert sorted(steps) == [1, 2, 3, 4, 5, 6]
    assert steps[1]["label"] == "Design & Specifications"
    assert steps[6]["label"] == "Ready for Delivery"
    assert all(step["evidence_required"] for step in steps.values())


def test_start_and_complete_with_verified_evidence(client, designer, operator, db):
    item_id = create_item(client, designer[0])
    op = operator[0]

    started = client.post(steps_url(item_id, 2, "start"), headers=op)
    assert started.status_code == 200
    assert started.json()["message"] == "Step started."
    assert started.json()["step"]["status"] == "in_progress"
    assert started.json()["step"]["started_at"]

    again = client.post(steps_url(item_id, 2, "start"), headers=op)
    assert again.status_code == 400
    assert again.json()["message"] == "Step is not pending."

    blocked = client.post(steps_url(item_id, 2, "complete"), headers=op)
    assert blocked.status_code == 400
    assert blocked.json()["message"] == "Evidence required to complete this step."

    verified = client.post(steps_url(item_id, 2, "verify-evidence"), headers=op)
    assert verified.json()["message"] == "Evidence marked as verified."
    assert verified.json()["step"]["evidence_verified_at"]

    done = client.post(steps_url(item_id, 2, "complete"), headers=op)
    assert done.status_code == 200
    assert done.json()["step"]["status"] == "completed"
    assert done.json()["step"]["completed_at"]

    kinds = [event.event_type for event in events_of(db, "timeline_step_completed", item_id=item_id)]
    assert kinds == ["timeline_step_completed"]
    assert events_of(db, "timeline_step_evidence_verified", item_id=item_id)


def test_complete_requires_step_in_progress(client, designer, operator):
    item_id = create_item(client, designer[0])
    resp = client.post(steps_url(item_id, 3, "complete"), headers=operator[0])
    assert resp.status_code == 400
    assert resp.json()["message"] == "Step is not in progress."


def test_only_operators_move_steps(client, designer, supplier):
    headers = designer[0]
    item_id = create_item(client, headers)
    for who in (headers, supplier[0]):
        resp = client.post(steps_url(item_id, 1, "start"), headers=who)
        assert resp.status_code == 403
    assert timeline_steps(client, headers, item_id)[1]["status"] == "pending"


def test_invalid_step_number(client, designer, operator):
    item_id = create_item(client, designer[0])
    resp = client.post(steps_url(item_id, 7, "start"), headers=operator[0])
    assert resp.status_code == 400
    assert resp.json()["message"] == "Invalid step number."


def test_evidence_override_is_admin_only(client, designer, operator, admin):
    item_id = create_item(client, designer[0])
    client.post(steps_url(item_id, 1, "start"), headers=operator[0])

    denied = client.post(
        steps_url(item_id, 1, "complete"), json={"evidence_verified_override": True}, headers=operator[0]
    )
    assert denied.status_code == 403

    forced = client.post(
        steps_url(item_id, 1, "complete"), json={"evidence_verified_override": True}, headers=admin[0]
    )
    assert forced.status_code == 200
    step = forced.json()["step"]
    assert step["status"] == "completed"
    assert step["evidence_verified_at"] is not None


def test_overdue_step_displays_as_delayed(client, designer, operator):
    headers = designer[0]
    item_id = create_item(client, headers)
    client.post(steps_url(item_id, 4, "start"), json={"expected_by": "2020-01-01T00:00:00Z"}, headers=operator[0])
    client.post(steps_url(item_id, 5, "start"), json={"expected_by": "2999-01-01T00:00:00Z"}, headers=operator[0])

    steps = timeline_steps(client, headers, item_id)
    assert steps[4]["status"] == "in_progress"
    assert steps[4]["display_status"] == "delayed"
    assert steps[4]["is_delayed"] is True
    assert steps[5]["display_status"] == "in_progress"
    assert steps[5]["is_delayed"] is False


def test_timeline_hidden_from_strangers(client, designer, other_designer):
    item_id = create_item(client, designer[0])
    resp = client.get(f"/api/items/{item_id}/timeline", headers=other_designer[0])
    assert resp.status_code == 403


def test_step_events_point_at_the_step(client, designer, operator, db):
    item_id = create_item(client, designer[0])
    step_id = timeline_steps(client, designer[0], item_id)[3]["step_id"]
    op = operator[0]
    client.post(steps_url(item_id, 3, "start"), headers=op)
    client.post(steps_url(item_id, 3, "verify-evidence"), headers=op)
    client.post(steps_url(item_id, 3, "complete"), headers=op)

    for kind in ("timeline_step_started", "timeline_step_evidence_verified", "timeline_step_completed"):
        [event] = events_of(db, kind, item_id=item_id)
        assert event.object_type == "item"
        assert event.object_id == step_id

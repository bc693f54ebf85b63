"""
Tests — phase tracker HTTP API (/api/v1/projects/<id>/...).

Auth is disabled in the testing config, so every call acts as an
anonymous admin.
"""

from app.models import db
from app.models.project import Project


def _advance(client, project_id, **body):
    return client.patch(f"/api/v1/projects/{project_id}/advance", json=body)


def test_list_phases(client, project):
    res = client.get(f"/api/v1/projects/{project['id']}/phases")
    assert res.status_code == 200
    body = res.get_json()
    assert body["project_id"] == project["id"]
    assert body["phases"][0]["key"] == "ONB"
    assert len(body["phases"]) == 8


def test_list_phases_unknown_project(client):
    res = client.get("/api/v1/projects/nope/phases")
    assert res.status_code == 404
    assert res.get_json()["code"] == "ERR_NOT_FOUND"


def test_advance_to_awaiting_approval(client, project):
    res = _advance(client, project["id"], key="ONB", status="awaiting_approval")
    assert res.status_code == 200
    assert res.get_json()["status"] == "awaiting_approval"


def test_advance_missing_key(client, project):
    res = _advance(client, project["id"], status="completed")
    assert res.status_code == 400
    assert res.get_json()["code"] == "ERR_VALIDATION_REQUIRED"


def test_advance_invalid_status(client, project):
    res = _advance(client, project["id"], key="ONB", status="finished")
    assert res.status_code == 400
    body = res.get_json()
    assert body["code"] == "ERR_VALIDATION_INVALID"
    assert "completed" in body["details"]["valid_statuses"]


def test_advance_override_must_be_boolean(client, project):
    res = _advance(client, project["id"], key="PROD", status="in_progress", override="yes")
    assert res.status_code == 400


def test_advance_out_of_order_is_422(client, project):
    res = _advance(client, project["id"], key="PROD", status="in_progress")
    assert res.status_code == 422
    body = res.get_json()
    assert body["code"] == "ERR_VALIDATION_CONSTRAINT"
    assert body["details"]["blocking"] == ["ONB", "IDEA", "DSGN", "REV"]


def test_advance_with_override(client, project):
    res = _advance(client, project["id"], key="PROD", status="in_progress", override=True)
    assert res.status_code == 200
    actions = [
        a["action"] for a in client.get(f"/api/v1/projects/{project['id']}/activity").get_json()["items"]
    ]
    assert "phase_order_override" in actions


def test_advance_approval_gate_is_422(client, project):
    res = _advance(client, project["id"], key="ONB", status="completed")
    assert res.status_code == 422


def test_approve_flow(client, project):
    pid = project["id"]
    _advance(client, pid, key="ONB", status="awaiting_approval")

    res = client.post(f"/api/v1/projects/{pid}/phases/ONB/approve", json={"notes": "Signed"})

    assert res.status_code == 200
    body = res.get_json()
    assert body["status"] == "completed"
    assert body["approved_at"] is not None
    assert db.session.get(Project, pid).current_phase_key == "IDEA"


def test_approve_without_body(client, project):
    pid = project["id"]
    _advance(client, pid, key="ONB", status="awaiting_approval")
    res = client.post(f"/api/v1/projects/{pid}/phases/ONB/approve")
    assert res.status_code == 200


def test_approve_not_awaiting_is_409(client, project):
    res = client.post(f"/api/v1/projects/{project['id']}/phases/ONB/approve", json={})
    assert res.status_code == 409
    assert res.get_json()["code"] == "ERR_CONFLICT_STATE"


def test_request_changes_requires_feedback(client, project):
    pid = project["id"]
    _advance(client, pid, key="ONB", status="awaiting_approval")
    res = client.post(f"/api/v1/projects/{pid}/phases/ONB/request-changes", json={})
    assert res.status_code == 400
    assert res.get_json()["code"] == "ERR_VALIDATION_REQUIRED"


def test_request_changes(client, project):
    pid = project["id"]
    _advance(client, pid, key="ONB", status="awaiting_approval")
    res = client.post(
        f"/api/v1/projects/{pid}/phases/ONB/request-changes",
        json={"feedback": "Swap the hero image"},
    )
    assert res.status_code == 200
    assert res.get_json()["status"] == "in_progress"


def test_activity_timeline(client, project):
    pid = project["id"]
    _advance(client, pid, key="ONB", status="awaiting_approval")
    res = client.get(f"/api/v1/projects/{pid}/activity")
    assert res.status_code == 200
    body = res.get_json()
    assert body["total"] == 2
    assert [i["action"] for i in body["items"]] == ["project_created", "phase_status_changed"]


def test_advance_on_archived_project_is_409(client, project):
    client.post(f"/api/v1/projects/{project['id']}/archive")
    res = _advance(client, project["id"], key="ONB", status="awaiting_approval")
    assert res.status_code == 409
    body = res.get_json()
    assert body["code"] == "ERR_CONFLICT_STATE"
    assert body["details"] == {"field": "status", "value": "archived"}

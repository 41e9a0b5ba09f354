import uuid

import pytest

ORG_ID = "11111111-1111-1111-1111-111111111111"
PROJECT_ID = "aaaaaaaa-0000-0000-0000-000000000001"
WEEK = "2025-06-09"


def _headers(user_id, role="member", org_id=ORG_ID):
    return {"X-User-Id": str(user_id), "X-Org-Id": org_id, "X-User-Role": role}


@pytest.fixture
def employee():
    return _headers(uuid.uuid4())


@pytest.fixture
def reviewer():
    return _headers(uuid.uuid4(), role="manager")


def _save(client, headers, status="draft", hours=8):
    body = {
        "week_start": WEEK,
        "status": status,
        "rows": [{"project_id": PROJECT_ID, "days": {"monday": {"hours": hours}}}],
    }
    return client.put("/api/v1/timesheets/grid", json=body, headers=headers)


def test_health(client):
    assert client.get("/health").json() == {"ok": True}


def test_open_draft_and_read_it_back(client, employee):
    resp = client.post("/api/v1/timesheets/drafts", json={"week_start": "2025-06-11"}, headers=employee)
    assert resp.status_code == 200
    draft = resp.json()
    assert draft["week_start_date"] == WEEK
    assert draft["status"] == "draft"
    assert draft["entries"] == []

    again = client.get(f"/api/v1/timesheets/{draft['id']}", headers=employee)
    assert again.status_code == 200
    assert again.json()["id"] == draft["id"]


def test_save_grid_returns_normalised_rows(client, employee):
    resp = _save(client, employee, hours=7.5)

    assert resp.status_code == 200
    body = resp.json()
    assert body["total_hours"] == 7.5
    monday = body["entries"][0]["days"]["monday"]
    assert monday == {"hours": 7.5, "start_time": "09:00", "end_time": "16:30"}
    assert body["entries"][0]["days"]["sunday"] == {"hours": None, "start_time": "09:00", "end_time": "09:00"}


def test_mismatched_slot_is_422(client, employee):
    body = {
        "week_start": WEEK,
        "rows": [{"project_id": PROJECT_ID, "days": {"monday": {"hours": 2, "start_time": "09:00", "end_time": "17:00"}}}],
    }
    resp = client.put("/api/v1/timesheets/grid", json=body, headers=employee)

    assert resp.status_code == 422
    assert resp.json()["code"] == "slot_mismatch"


def test_non_monday_draft_is_snapped(client, employee):
    resp = client.post("/api/v1/timesheets/drafts", json={"week_start": "2025-06-15"}, headers=employee)
    assert resp.json()["week_start_date"] == WEEK


def test_submit_then_approve(client, employee, reviewer):
    header = _save(client, employee, status="submitted").json()
    assert header["status"] == "submitted"

    resp = client.post(f"/api/v1/timesheets/{header['id']}/approve", json={"comment": "thanks"}, headers=reviewer)

    assert resp.status_code == 200
    assert resp.json()["status"] == "approved"
    assert resp.json()["review_comment"] == "thanks"


def test_approve_draft_is_409(client, employee, reviewer):
    header = _save(client, employee).json()

    resp = client.post(f"/api/v1/timesheets/{header['id']}/approve", headers=reviewer)

    assert resp.status_code == 409
    assert resp.json()["code"] == "not_submitted"
    assert client.get(f"/api/v1/timesheets/{header['id']}", headers=employee).json()["status"] == "draft"


def test_member_approve_is_403(client, employee):
    header = _save(client, employee, status="submitted").json()

    resp = client.post(f"/api/v1/timesheets/{header['id']}/approve", headers=employee)

    assert resp.status_code == 403
    assert resp.json()["code"] == "not_approver"


def test_unknown_timesheet_is_404(client, employee):
    resp = client.get(f"/api/v1/timesheets/{uuid.uuid4()}", headers=employee)
    assert resp.status_code == 404
    assert resp.json()["code"] == "timesheet_not_found"


def test_next_open_week_skips_submitted(client, employee):
    header = _save(client, employee, status="submitted").json()

    resp = client.get("/api/v1/timesheets/next-open-week", params={"start": WEEK}, headers=employee)

    assert resp.status_code == 200
    assert resp.json() == {"week_start": "2025-06-16", "draft_id": None}
    assert header["week_start_date"] == WEEK


def test_next_open_week_resumes_draft(client, employee):
    header = _save(client, employee).json()

    resp = client.get("/api/v1/timesheets/next-open-week", params={"start": WEEK}, headers=employee)

    assert resp.json() == {"week_start": WEEK, "draft_id": header["id"]}


def test_copy_previous(client, employee):
    empty = client.get("/api/v1/timesheets/copy-previous", params={"week_start": "2025-06-16"}, headers=employee)
    assert empty.status_code == 200
    assert empty.json()["rows"] == []
    assert empty.json()["message"]

    _save(client, employee)
    resp = client.get("/api/v1/timesheets/copy-previous", params={"week_start": "2025-06-16"}, headers=employee)

    assert resp.json()["source_week"] == WEEK
    assert resp.json()["rows"][0]["project_id"] == PROJECT_ID


def test_timer_stop(client, employee):
    body = {"start": "2025-06-10T09:00:00", "end": "2025-06-10T11:30:00", "project_id": PROJECT_ID}

    resp = client.post("/api/v1/timesheets/timer-stops", json=body, headers=employee)

    assert resp.status_code == 200
    tuesday = resp.json()["days"]["tuesday"]
    assert tuesday == {"hours": 2.5, "start_time": "09:00", "end_time": "11:30"}
    assert resp.json()["total_hours"] == 2.5


def test_timer_stop_without_project_is_422(client, employee):
    body = {"start": "2025-06-10T09:00:00", "end": "2025-06-10T11:30:00"}
    resp = client.post("/api/v1/timesheets/timer-stops", json=body, headers=employee)
    assert resp.status_code == 422
    assert resp.json()["code"] == "project_required"


def test_list_and_entries(client, employee):
    header = _save(client, employee, status="submitted").json()

    listed = client.get("/api/v1/timesheets/", params={"status": "submitted"}, headers=employee)
    entries = client.get(f"/api/v1/timesheets/{header['id']}/entries", headers=employee)

    assert [h["id"] for h in listed.json()] == [header["id"]]
    assert len(entries.json()) == 1
    assert entries.json()[0]["row_order"] == 0


def test_editable_weeks_after_rejection(client, employee, reviewer):
    header = _save(client, employee, status="submitted").json()
    client.post(f"/api/v1/timesheets/{header['id']}/reject", json={"comment": "redo"}, headers=reviewer)

    resp = client.get("/api/v1/timesheets/editable-weeks", headers=employee)

    assert resp.json() == [{"week_start": WEEK, "status": "rejected", "timesheet_id": header["id"]}]


def test_bad_identity_headers(client):
    assert client.get("/api/v1/timesheets/", headers={"X-User-Id": "nope"}).status_code == 400
    assert client.get("/api/v1/timesheets/", headers={"X-User-Role": "emperor"}).status_code == 400


def test_submit_route_and_history(client, employee):
    draft = client.post("/api/v1/timesheets/drafts", json={"week_start": WEEK}, headers=employee).json()

    submitted = client.post(f"/api/v1/timesheets/{draft['id']}/submit", headers=employee)
    again = client.post(f"/api/v1/timesheets/{draft['id']}/submit", headers=employee)
    history = client.get(f"/api/v1/timesheets/{draft['id']}/history", headers=employee)

    assert submitted.json()["status"] == "submitted"
    assert submitted.json()["submitted_at"] is not None
    assert again.status_code == 409
    assert [h["action"] for h in history.json()] == ["create", "submitted"]
    assert history.json()[1]["details"] == {"from": "draft"}


def test_audit_write_failure_is_503(client, employee, monkeypatch):
    from weekgrid.services import audit
    from weekgrid.services import timesheet_lifecycle as lifecycle

    def _log_without_user(db, org_id, user_id, *args, **kwargs):
        return audit.log_action(db, org_id, None, *args, **kwargs)

    monkeypatch.setattr(lifecycle, "log_action", _log_without_user)

    resp = client.post("/api/v1/timesheets/drafts", json={"week_start": WEEK}, headers=employee)

    assert resp.status_code == 503
    assert resp.json()["code"] == "persistence_failure"

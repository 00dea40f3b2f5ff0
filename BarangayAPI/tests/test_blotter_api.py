from datetime import datetime, timedelta

from BarangayAPI.models import BlotterCase


def _file(test_client, headers, **overrides):
    payload = {
        "accused_name": "Pedro Santos",
        "incident_date": (datetime.now() - timedelta(days=1)).isoformat(),
        "complaint_type": "Boundary dispute",
        "complaint_details": "Fence moved onto lot",
    }
    payload.update(overrides)
    return test_client.post("/blotter/", json=payload, headers=headers)


def test_blotter_mediation_flow(test_client, db, make_user, auth_headers):
    complainant = make_user(db)
    staff = make_user(db, role=3, full_name="Lupon Chair")
    staff_headers = auth_headers(staff)

    resp = _file(test_client, auth_headers(complainant))
    assert resp.status_code == 201, resp.text
    case = resp.json()
    assert case["status"] == "Pending"
    assert case["case_number"] == f"BB-{case['id']:06d}"
    case_id = case["id"]

    resp = test_client.post(f"/blotter/{case_id}/meetings", json={"date": datetime.now().isoformat()}, headers=staff_headers)
    assert resp.status_code == 409

    resp = test_client.post(f"/blotter/{case_id}/investigate", headers=staff_headers)
    assert resp.status_code == 200
    assert resp.json()["can_schedule_next_meeting"] is True

    for number in (1, 2, 3):
        resp = test_client.post(
            f"/blotter/{case_id}/meetings",
            json={
                "meeting_number": number,
                "date": (datetime.now() + timedelta(days=number)).isoformat(),
                "attendees": ["Complainant", "Respondent"],
                "status": "completed",
            },
            headers=staff_headers,
        )
        assert resp.status_code == 200, resp.text

    body = resp.json()
    assert body["current_meeting"] == 3
    assert body["can_schedule_next_meeting"] is False
    assert body["is_ready_for_cfa"] is True
    assert len(body["meetings"]) == 3

    resp = test_client.post(f"/blotter/{case_id}/meetings", json={"meeting_number": 4, "date": datetime.now().isoformat()}, headers=staff_headers)
    assert resp.status_code == 400

    resp = test_client.post(f"/blotter/{case_id}/cfa", json={}, headers=staff_headers)
    assert resp.status_code == 200, resp.text
    assert resp.json()["cfa_issued"] is True
    assert resp.json()["is_ready_for_cfa"] is False

    resp = test_client.post(f"/blotter/{case_id}/cfa", json={}, headers=staff_headers)
    assert resp.status_code == 409

    resp = test_client.get("/notifications", headers=auth_headers(complainant))
    events = [n["event"] for n in resp.json()]
    assert events.count("blotter.meeting_recorded") == 3
    assert "blotter.cfa_issued" in events


def test_contact_attempts_and_resolution(test_client, db, make_user, auth_headers):
    complainant = make_user(db)
    staff = make_user(db, role=3)
    staff_headers = auth_headers(staff)
    case_id = _file(test_client, auth_headers(complainant)).json()["id"]
    test_client.post(f"/blotter/{case_id}/investigate", headers=staff_headers)

    for _ in range(2):
        resp = test_client.post(
            f"/blotter/{case_id}/contact-attempts",
            json={"method": "SMS", "successful": False},
            headers=staff_headers,
        )
    assert resp.status_code == 200
    assert resp.json()["consecutive_failed_attempts"] == 2
    assert len(resp.json()["contact_history"]) == 2

    resp = test_client.post(
        f"/blotter/{case_id}/resolve",
        json={"outcome": "Resolved", "resolution_details": "Settled amicably with a written apology"},
        headers=staff_headers,
    )
    assert resp.status_code == 200
    assert resp.json()["status"] == "Resolved"
    assert "settlement" in [d["document_type"] for d in resp.json()["document_history"]]

    resp = test_client.post(
        f"/blotter/{case_id}/escalate",
        json={"resolution_details": "Respondent threatened complainant"},
        headers=staff_headers,
    )
    assert resp.status_code == 409


def test_overdue_filter_and_resident_visibility(test_client, db, make_user, auth_headers):
    complainant = make_user(db)
    other = make_user(db)
    staff = make_user(db, role=3)
    old_id = _file(
        test_client,
        auth_headers(complainant),
        date_reported=(datetime.now() - timedelta(days=10)).isoformat(),
    ).json()["id"]
    fresh_id = _file(test_client, auth_headers(complainant)).json()["id"]

    resp = test_client.get("/blotter/?overdue=true", headers=auth_headers(staff))
    ids = [c["id"] for c in resp.json()]
    assert old_id in ids
    assert fresh_id not in ids
    assert all(c["is_overdue"] for c in resp.json())

    resp = test_client.get(f"/blotter/{old_id}", headers=auth_headers(other))
    assert resp.status_code == 403
    resp = test_client.get("/blotter/", headers=auth_headers(other))
    assert resp.json() == []

    # residents cannot run staff actions
    resp = test_client.post(f"/blotter/{old_id}/investigate", headers=auth_headers(complainant))
    assert resp.status_code == 403
    assert db.query(BlotterCase).filter(BlotterCase.id == old_id).one().status.value == "Pending"

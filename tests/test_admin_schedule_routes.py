WEEK = {
    "Thứ 2": [{"start": "08:00", "end": "12:00"}],
    "Thứ 5": [{"start": "13:00", "end": "17:00"}],
}


def _create(api_client, **overrides):
    payload = {"doctor_id": "doc-a", "name": "Dr. An", "specialization": "Nhi, Nội khoa", "schedule": WEEK}
    payload.update(overrides)
    return api_client.post("/admin/doctors", json=payload)


def test_create_doctor(api_client):
    resp = _create(api_client, room_number="305", experience_years=7)
    assert resp.status_code == 201
    data = resp.get_json()["data"]
    assert data["id"] == "doc-a"
    assert list(data["schedule"]) == ["Thứ 2", "Thứ 5"]


def test_create_doctor_rejects_bad_template(api_client):
    resp = _create(api_client, schedule={"Thứ 2": [{"start": "12:00", "end": "08:00"}]})
    assert resp.status_code == 400
    assert resp.get_json()["error"] == {
        "rule": "order",
        "weekday": "Thứ 2",
        "message": resp.get_json()["errors"][0],
    }


def test_create_doctor_requires_name_and_specialization(api_client):
    resp = _create(api_client, name="", specialization=None)
    assert resp.status_code == 400
    assert len(resp.get_json()["errors"]) == 2


def test_create_doctor_twice_conflicts(api_client):
    assert _create(api_client).status_code == 201
    assert _create(api_client).status_code == 409


def test_get_and_replace_schedule(api_client):
    _create(api_client)
    first = api_client.get("/admin/doctors/doc-a/schedule").get_json()["data"]
    monday_id = first["Thứ 2"][0]["id"]

    resp = api_client.put(
        "/admin/doctors/doc-a/schedule",
        json={"schedule": {"Thứ 2": [{"start": "08:00", "end": "12:00"}]}, "max_patients_per_slot": 3},
    )
    assert resp.status_code == 200
    data = resp.get_json()["data"]
    assert data["changes"] == {"kept": 1, "removed": 1, "added": 0}
    assert data["schedule"] == {
        "Thứ 2": [{"id": monday_id, "start": "08:00", "end": "12:00", "max_patients_per_slot": 3}]
    }


def test_replace_schedule_errors(api_client):
    _create(api_client)
    empty = api_client.put("/admin/doctors/doc-a/schedule", json={"schedule": {}})
    assert empty.status_code == 400
    assert empty.get_json()["error"]["rule"] == "empty"
    assert api_client.put("/admin/doctors/nobody/schedule", json={"schedule": WEEK}).status_code == 404
    assert api_client.get("/admin/doctors/nobody/schedule").status_code == 404
    bad_cap = api_client.put("/admin/doctors/doc-a/schedule", json={"schedule": WEEK, "max_patients_per_slot": 0})
    assert bad_cap.status_code == 400


def test_validate_endpoint(api_client):
    ok = api_client.post(
        "/admin/schedules/validate",
        json={"schedule": {"T3": [{"start": "10:00", "end": "11:00"}, {"start": "08:00", "end": "10:00"}]}},
    )
    assert ok.status_code == 200
    assert ok.get_json()["data"] == {
        "Thứ 3": [{"start": "08:00", "end": "10:00"}, {"start": "10:00", "end": "11:00"}]
    }
    overlap = api_client.post(
        "/admin/schedules/validate",
        json={"schedule": {"Thứ 3": [{"start": "08:00", "end": "10:00"}, {"start": "09:59", "end": "11:00"}]}},
    )
    assert overlap.status_code == 400
    assert overlap.get_json()["error"]["rule"] == "overlap"


def test_authoring_helpers(api_client):
    assert api_client.post("/admin/schedules/format-time", json={"text": "1745"}).get_json()["data"] == "17:45"
    suggestion = api_client.post(
        "/admin/schedules/suggest", json={"ranges": [{"start": "08:00", "end": "10:00"}]}
    ).get_json()["data"]
    assert suggestion == {"start": "11:00", "end": "12:00"}
    assert api_client.post("/admin/schedules/suggest", json={}).get_json()["data"] == {"start": "08:00", "end": "09:00"}


def test_replace_schedule_rejects_boolean_capacity(api_client):
    _create(api_client)
    resp = api_client.put("/admin/doctors/doc-a/schedule", json={"schedule": WEEK, "max_patients_per_slot": True})
    assert resp.status_code == 400


def test_replace_schedule_rejects_non_list_day(api_client):
    _create(api_client)
    resp = api_client.put("/admin/doctors/doc-a/schedule", json={"schedule": {"Thứ 2": 5}})
    assert resp.status_code == 400
    assert resp.get_json()["error"] == {
        "rule": "format",
        "weekday": "Thứ 2",
        "message": resp.get_json()["errors"][0],
    }


def test_admin_writes_require_csrf_token(client):
    created = client.post("/admin/doctors", json={"doctor_id": "doc-a", "name": "Dr. An", "specialization": "Nhi", "schedule": WEEK})
    assert created.status_code == 400
    assert "CSRF" in created.get_json()["errors"][0]
    replaced = client.put("/admin/doctors/doc-a/schedule", json={"schedule": WEEK})
    assert replaced.status_code == 400
    # Editor helpers stay usable without a token.
    assert client.post("/admin/schedules/format-time", json={"text": "0800"}).status_code == 200

from conftest import POSTURES, create_patient, create_series


def test_therapy_types_catalog(client, instructor):
    assert client.get("/api/therapy-types").status_code == 401

    resp = client.get("/api/therapy-types", headers=instructor)
    assert resp.status_code == 200
    types = resp.json()
    assert [t["id"] for t in types] == ["anxiety", "arthritis", "back_pain"]
    assert types[2]["name"] == "Back Pain"
    assert all(len(t["postures"]) == 12 for t in types)
    first = types[0]["postures"][0]
    assert {"id", "name", "sanskrit", "instructions", "benefits", "modifications", "videoUrl", "image"} <= set(first)


def test_create_series_resolves_postures(client, instructor):
    series = create_series(
        client,
        instructor,
        postures=[{"id": 2, "name": "Gato-Vaca", "durationMinutes": 12}, {"id": "1", "name": "Niño"}],
        total_sessions="8",
    )
    assert series["message"] == "Series created successfully"
    assert series["total_sessions"] == 8
    assert series["therapy_type"] == "anxiety"
    assert [(p["id"], p["durationMinutes"]) for p in series["postures"]] == [(2, 12), (1, 5)]
    # names come from the catalog, not the request
    assert series["postures"][1]["name"] == "Postura del Niño"


def test_series_validation(client, instructor):
    def post(**overrides):
        payload = {"name": "Calma", "therapyType": "anxiety", "postures": POSTURES, "totalSessions": 4}
        payload.update(overrides)
        return client.post("/api/therapy-series", json=payload, headers=instructor)

    assert post(therapyType="migraine").json()["code"] == "INVALID_TYPE"
    assert post(postures=[]).json()["code"] == "EMPTY_ARRAY"
    assert post(totalSessions=0).json()["code"] == "OUT_OF_RANGE"

    resp = post(postures=[{"id": 13, "name": "Cobra"}])
    assert resp.status_code == 400
    assert resp.json()["code"] == "INVALID_POSTURE"
    assert resp.json()["field"] == "postures"

    assert post(postures=[{"id": 1, "name": "Niño", "durationMinutes": 2}]).json()["code"] == "OUT_OF_RANGE"

    assert post().status_code == 200
    resp = post(name="CALMA")
    assert resp.status_code == 400
    assert resp.json()["code"] == "DUPLICATE_NAME"


def test_list_series_with_stats(client, instructor, other_instructor):
    series = create_series(client, instructor)
    patient = create_patient(client, instructor)
    client.post(f"/api/patients/{patient['id']}/assign-series", json={"seriesId": series["id"]}, headers=instructor)

    listed = client.get("/api/therapy-series", headers=instructor).json()
    assert len(listed) == 1
    assert listed[0]["assigned_patients_count"] == 1
    assert listed[0]["total_sessions_count"] == 0

    assert client.get("/api/therapy-series", headers=other_instructor).json() == []


def test_delete_series(client, instructor, other_instructor):
    unused = create_series(client, instructor, name="Sin Uso")
    used = create_series(client, instructor, name="En Uso")
    patient = create_patient(client, instructor)
    client.post(f"/api/patients/{patient['id']}/assign-series", json={"seriesId": used["id"]}, headers=instructor)

    assert client.delete(f"/api/therapy-series/{unused['id']}", headers=other_instructor).status_code == 404

    resp = client.delete(f"/api/therapy-series/{used['id']}", headers=instructor)
    assert resp.status_code == 409
    assert resp.json() == {
        "error": "A series that is assigned to patients cannot be deleted",
        "code": "SERIES_IN_USE",
        "type": "conflict",
    }

    resp = client.delete(f"/api/therapy-series/{unused['id']}", headers=instructor)
    assert resp.status_code == 200
    assert [s["id"] for s in client.get("/api/therapy-series", headers=instructor).json()] == [used["id"]]

    # a soft-deleted patient keeps its snapshot, so the series stays in use
    assert client.delete(f"/api/patients/{patient['id']}", headers=instructor).status_code == 200
    resp = client.delete(f"/api/therapy-series/{used['id']}", headers=instructor)
    assert resp.status_code == 409
    assert resp.json()["code"] == "SERIES_IN_USE"
    assert [s["id"] for s in client.get("/api/therapy-series", headers=instructor).json()] == [used["id"]]


def test_patients_cannot_manage_series(client, patient_user):
    resp = client.post(
        "/api/therapy-series",
        json={"name": "Calma", "therapyType": "anxiety", "postures": POSTURES, "totalSessions": 4},
        headers=patient_user,
    )
    assert resp.status_code == 403

import asyncio

from conftest import create_patient, create_series
from softzen.errors import NotFoundError
from softzen.services import patient_service, series_service


def test_create_and_list_patients(client, instructor):
    assert client.get("/api/patients", headers=instructor).json() == []

    created = create_patient(client, instructor, email="Lucia@Example.com", condition="Lower Back Pain")
    assert created["message"] == "Patient created successfully"
    assert created["email"] == "lucia@example.com"
    assert created["condition"] == "lower_back_pain"
    assert created["current_session"] == 0
    assert created["assigned_series"] is None

    # the cached empty list was dropped by the write
    patients = client.get("/api/patients", headers=instructor).json()
    assert [p["id"] for p in patients] == [created["id"]]
    assert patients[0]["total_sessions_completed"] == 0
    assert patients[0]["avg_pain_improvement"] is None


def test_patient_validation_errors(client, instructor):
    resp = client.post(
        "/api/patients",
        json={"name": "Lucia Torres", "email": "lucia@example.com", "age": 130, "condition": "anxiety"},
        headers=instructor,
    )
    assert resp.status_code == 400
    assert resp.json() == {
        "error": "Age must be between 1 and 120",
        "field": "age",
        "code": "OUT_OF_RANGE",
        "type": "validation_error",
    }

    resp = client.post("/api/patients", json={"email": "lucia@example.com"}, headers=instructor)
    assert resp.status_code == 400
    assert resp.json()["field"] == "name"
    assert resp.json()["code"] == "REQUIRED"


def test_patient_email_is_unique_per_instructor(client, instructor, other_instructor):
    create_patient(client, instructor)

    resp = client.post(
        "/api/patients",
        json={"name": "Lucia Otra", "email": "LUCIA@example.com", "age": 30, "condition": "stress"},
        headers=instructor,
    )
    assert resp.status_code == 400
    assert resp.json()["code"] == "DUPLICATE_EMAIL"

    create_patient(client, other_instructor)


def test_update_patient(client, instructor, other_instructor):
    patient = create_patient(client, instructor)
    other = create_patient(client, instructor, email="marta@example.com", name="Marta Gil")

    payload = {"name": "Lucia Torres Vega", "email": "lucia@example.com", "age": "43", "condition": "arthritis"}
    resp = client.put(f"/api/patients/{patient['id']}", json=payload, headers=instructor)
    assert resp.status_code == 200
    body = resp.json()
    assert body["message"] == "Patient updated successfully"
    assert body["name"] == "Lucia Torres Vega"
    assert body["age"] == 43

    payload["email"] = "marta@example.com"
    resp = client.put(f"/api/patients/{patient['id']}", json=payload, headers=instructor)
    assert resp.json()["code"] == "DUPLICATE_EMAIL"

    resp = client.put(f"/api/patients/{other['id']}", json=payload, headers=other_instructor)
    assert resp.status_code == 404


def test_soft_delete_patient(client, instructor, other_instructor):
    patient = create_patient(client, instructor)

    assert client.delete(f"/api/patients/{patient['id']}", headers=other_instructor).status_code == 404

    resp = client.delete(f"/api/patients/{patient['id']}", headers=instructor)
    assert resp.status_code == 200
    assert resp.json() == {"message": "Patient deleted successfully"}
    assert client.get("/api/patients", headers=instructor).json() == []
    assert client.delete(f"/api/patients/{patient['id']}", headers=instructor).status_code == 404

    # the address is free again once the old record is inactive
    create_patient(client, instructor)


def test_assign_series(client, instructor, other_instructor):
    patient = create_patient(client, instructor)
    series = create_series(client, instructor, total_sessions=6)

    resp = client.post(
        f"/api/patients/{patient['id']}/assign-series", json={"seriesId": "abc"}, headers=instructor
    )
    assert resp.status_code == 400
    assert resp.json()["code"] == "NOT_A_NUMBER"

    resp = client.post(
        f"/api/patients/{patient['id']}/assign-series", json={"seriesId": 9999}, headers=instructor
    )
    assert resp.status_code == 404
    assert resp.json() == {"error": "Patient or series not found", "type": "not_found"}

    resp = client.post(
        f"/api/patients/{patient['id']}/assign-series", json={"seriesId": series["id"]}, headers=other_instructor
    )
    assert resp.status_code == 404

    resp = client.post(
        f"/api/patients/{patient['id']}/assign-series", json={"seriesId": str(series["id"])}, headers=instructor
    )
    assert resp.status_code == 200
    body = resp.json()
    assert body["message"] == "Series assigned successfully"
    assert body["current_session"] == 0
    assert body["assigned_series"]["id"] == series["id"]
    assert body["assigned_series"]["name"] == "Calma Profunda"
    assert body["assigned_series"]["total_sessions"] == 6
    assert [p["id"] for p in body["assigned_series"]["postures"]] == [1, 2]


def test_assign_series_waits_for_both_lookups(client, instructor, monkeypatch):
    patient = create_patient(client, instructor)
    settled = []
    lookup_patient = patient_service.get_owned

    async def slow_patient_lookup(*args, **kwargs):
        await asyncio.sleep(0.05)
        settled.append("patient")
        return await lookup_patient(*args, **kwargs)

    async def missing_series_lookup(*args, **kwargs):
        raise NotFoundError("Series not found")

    monkeypatch.setattr(patient_service, "get_owned", slow_patient_lookup)
    monkeypatch.setattr(series_service, "get_owned", missing_series_lookup)

    resp = client.post(
        f"/api/patients/{patient['id']}/assign-series", json={"seriesId": 1}, headers=instructor
    )
    assert resp.status_code == 404
    assert resp.json() == {"error": "Series not found", "type": "not_found"}
    assert settled == ["patient"]


def test_patient_sessions_of_unknown_patient(client, instructor):
    assert client.get("/api/patients/999/sessions", headers=instructor).status_code == 404

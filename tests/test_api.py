"""Tests for the FastAPI REST API layer (routes, schemas, error mapping)."""

from __future__ import annotations

import sys
from datetime import date, timedelta
from pathlib import Path

from fastapi.testclient import TestClient

from tests.test_assignment import _seed_foundation, _setup_db


def _purge_api_modules() -> None:
    for name in ["api.main", "api.routes"]:
        sys.modules.pop(name, None)


def _build_client(tmp_path: Path, monkeypatch, env_overrides: dict[str, str] | None = None) -> TestClient:
    monkeypatch.setenv("CORS_ORIGINS", "http://localhost:5173")
    if env_overrides:
        for key, value in env_overrides.items():
            monkeypatch.setenv(key, value)
    _setup_db(tmp_path, monkeypatch)
    _seed_foundation()
    _purge_api_modules()

    from api.main import create_app

    return TestClient(create_app())


def _enroll(client: TestClient, user_id: str = "user-1", offsets=None) -> str:
    resp = client.post(
        "/api/v1/enrollments",
        json={
            "user_id": user_id,
            "template_slug": "foundation-12wk",
            "start_date": date.today().isoformat(),
            "weekday_offsets": offsets if offsets is not None else [0, 2, 4],
        },
    )
    assert resp.status_code == 201, resp.text
    return resp.json()["enrollment_id"]


def test_health_echoes_or_generates_request_id_header(tmp_path, monkeypatch):
    with _build_client(tmp_path, monkeypatch) as client:
        resp = client.get("/api/v1/health", headers={"X-Request-ID": "req-test-123"})
        assert resp.status_code == 200, resp.text
        assert resp.json()["status"] == "ok"
        assert resp.json()["queries"]["total"] >= 0
        assert resp.headers["X-Request-ID"] == "req-test-123"

        generated = client.get("/api/v1/health")
        assert generated.headers.get("X-Request-ID")


def test_enrollment_flow(tmp_path, monkeypatch):
    with _build_client(tmp_path, monkeypatch) as client:
        enrollment_id = _enroll(client)

        active = client.get("/api/v1/users/user-1/enrollment")
        assert active.status_code == 200, active.text
        assert active.json()["id"] == enrollment_id
        assert active.json()["weekday_offsets"] == [0, 2, 4]

        today = client.get("/api/v1/users/user-1/workouts/today")
        assert today.status_code == 200
        assert today.json()["week_index"] == 1

        structure = client.get(f"/api/v1/enrollments/{enrollment_id}/structure").json()
        assert len(structure["phases"]) == 3
        assert len(structure["weeks"]) == 12
        assert len(structure["workouts"]) == 36

        workout_id = structure["workouts"][0]["id"]
        blocks = client.get(f"/api/v1/workouts/{workout_id}/blocks").json()
        assert [b["category_label_snapshot"] for b in blocks] == ["mobility", "strength", "aerobic"]
        items = client.get(f"/api/v1/blocks/{blocks[1]['id']}/items").json()
        assert items[0]["planned_dose"] == items[0]["base_dose_snapshot"]


def test_upcoming_and_history(tmp_path, monkeypatch):
    with _build_client(tmp_path, monkeypatch) as client:
        _enroll(client)
        upcoming = client.get("/api/v1/users/user-1/workouts/upcoming", params={"limit": 4}).json()
        assert upcoming["count"] == 4
        dates = [w["scheduled_date"] for w in upcoming["items"]]
        assert dates == sorted(dates)

        workout_id = upcoming["items"][0]["id"]
        done = client.patch(
            f"/api/v1/workouts/{workout_id}/status",
            json={"status": "completed", "rpe_session": 6.5, "duration_minutes_actual": 40},
        )
        assert done.status_code == 200, done.text
        assert done.json()["status"] == "completed"
        assert done.json()["completed_at"]

        history = client.get("/api/v1/users/user-1/workouts/history").json()
        assert [w["id"] for w in history["items"]] == [workout_id]


def test_illegal_transition_returns_409(tmp_path, monkeypatch):
    with _build_client(tmp_path, monkeypatch) as client:
        enrollment_id = _enroll(client)
        workout_id = client.get(f"/api/v1/enrollments/{enrollment_id}/structure").json()["workouts"][0]["id"]
        assert client.patch(f"/api/v1/workouts/{workout_id}/status", json={"status": "skipped"}).status_code == 200

        resp = client.patch(f"/api/v1/workouts/{workout_id}/status", json={"status": "in_progress"})
        assert resp.status_code == 409, resp.text
        assert resp.json()["detail"]["code"] == "STATE_ERROR"


def test_movement_status_endpoint(tmp_path, monkeypatch):
    with _build_client(tmp_path, monkeypatch) as client:
        enrollment_id = _enroll(client)
        workout_id = client.get(f"/api/v1/enrollments/{enrollment_id}/structure").json()["workouts"][0]["id"]
        block_id = client.get(f"/api/v1/workouts/{workout_id}/blocks").json()[1]["id"]
        item_id = client.get(f"/api/v1/blocks/{block_id}/items").json()[0]["id"]

        resp = client.patch(
            f"/api/v1/block-items/{item_id}/status",
            json={"status": "completed", "actual_dose": {"sets": 3, "reps": 10, "load_kg": 18}},
        )
        assert resp.status_code == 200, resp.text
        assert resp.json()["actual_dose"] == {"sets": 3, "reps": 10, "load_kg": 18}

        bad = client.patch(
            f"/api/v1/block-items/{item_id}/status", json={"status": "completed", "actual_dose": {"reps": 1}}
        )
        assert bad.status_code == 409


def test_engine_errors_map_to_status_codes(tmp_path, monkeypatch):
    with _build_client(tmp_path, monkeypatch) as client:
        missing = client.post(
            "/api/v1/enrollments",
            json={
                "user_id": "user-1",
                "template_slug": "nope",
                "start_date": date.today().isoformat(),
                "weekday_offsets": [0],
            },
        )
        assert missing.status_code == 404
        assert missing.json()["detail"]["code"] == "NOT_FOUND"

        conflict = client.post(
            "/api/v1/enrollments",
            json={
                "user_id": "user-1",
                "template_slug": "foundation-12wk",
                "start_date": date.today().isoformat(),
                "weekday_offsets": ["Mon", "Tue"],
            },
        )
        assert conflict.status_code == 409
        assert conflict.json()["detail"]["code"] == "SCHEDULING_CONFLICT"

        stale = client.post(
            "/api/v1/enrollments",
            json={
                "user_id": "user-1",
                "template_slug": "foundation-12wk",
                "start_date": (date.today() - timedelta(days=400)).isoformat(),
                "weekday_offsets": [0, 2, 4],
            },
        )
        assert stale.status_code == 409

        assert client.get("/api/v1/users/user-1/enrollment").status_code == 404
        assert client.get("/api/v1/enrollments/missing/structure").status_code == 404
        assert client.get("/api/v1/workouts/9999/blocks").json()["detail"]["code"] == "NOT_FOUND"


def test_request_validation_rejects_bad_payloads(tmp_path, monkeypatch):
    with _build_client(tmp_path, monkeypatch) as client:
        resp = client.post(
            "/api/v1/enrollments",
            json={"user_id": "u", "template_slug": "foundation-12wk", "start_date": "2024-01-01", "weekday_offsets": [9]},
        )
        assert resp.status_code == 422

        enrollment_id = _enroll(client)
        workout_id = client.get(f"/api/v1/enrollments/{enrollment_id}/structure").json()["workouts"][0]["id"]
        resp = client.patch(f"/api/v1/workouts/{workout_id}/status", json={"status": "completed", "rpe_session": 12})
        assert resp.status_code == 422


def test_dose_preview(tmp_path, monkeypatch):
    with _build_client(tmp_path, monkeypatch) as client:
        resp = client.post(
            "/api/v1/doses/preview", json={"week_index": 5, "category": "strength", "base_dose": {"load_kg": 40, "reps": 8}}
        )
        assert resp.status_code == 200, resp.text
        assert resp.json()["planned_dose"] == {"load_kg": 44, "reps": 8}

        bad = client.post("/api/v1/doses/preview", json={"week_index": 2, "category": "strength", "base_dose": {"reps": 900}})
        assert bad.status_code == 422
        assert bad.json()["detail"]["code"] == "VALIDATION_ERROR"


def test_admin_catalog_endpoints(tmp_path, monkeypatch):
    with _build_client(tmp_path, monkeypatch) as client:
        rebuilt = client.post("/api/v1/admin/catalog/rebuild")
        assert rebuilt.status_code == 200
        assert rebuilt.json()["rows"] > 0

        report = client.post("/api/v1/admin/catalog/sync").json()
        assert report == {"inserted": 0, "updated": 0, "unchanged": rebuilt.json()["rows"], "orphaned": 0}

from __future__ import annotations

from datetime import date

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from fitpath.catalog_routes import admin_router
from fitpath.domain import Exercise, Prerequisite
from fitpath.fitness_store import fitness_store
from fitpath.main import app

HEADER = "X-Fitpath-Identity"


def _as(identity: str) -> dict[str, str]:
    return {HEADER: identity}


def _born(age: int) -> str:
    return date(date.today().year - age, 1, 1).isoformat()


@pytest.fixture
def client(database) -> TestClient:
    return TestClient(app)


@pytest.fixture
def family(client: TestClient) -> dict[str, str]:
    client.post("/api/family/parents", json={"display_name": "Alex"}, headers=_as("parent-a"))
    client.post("/api/family/parents", json={"display_name": "Blake"}, headers=_as("parent-b"))
    response = client.post(
        "/api/family/children",
        json={"display_name": "Emma", "date_of_birth": _born(9)},
        headers=_as("parent-a"),
    )
    assert response.status_code == 201
    body = response.json()
    return {"child_id": body["profile"]["profile_id"], "relationship_id": body["relationship"]["relationship_id"]}


def test_requests_without_identity_are_rejected(client: TestClient) -> None:
    assert client.get("/api/family/children").status_code == 401
    assert client.get("/api/family/children", headers=_as("   ")).status_code == 401
    assert client.get("/api/family/children", headers=_as("nobody")).status_code == 401


def test_parent_registration_and_duplicate(client: TestClient) -> None:
    created = client.post("/api/family/parents", json={"display_name": "Alex"}, headers=_as("parent-a"))
    assert created.status_code == 201
    assert created.json()["external_id"] == "parent-a"
    assert created.json()["is_child"] is False

    again = client.post("/api/family/parents", json={"display_name": "Alex"}, headers=_as("parent-a"))
    assert again.status_code == 409
    assert again.json()["detail"]["code"] == "duplicate_profile"


def test_child_creation_and_listing(client: TestClient, family: dict[str, str]) -> None:
    children = client.get("/api/family/children", headers=_as("parent-a"))
    assert [item["profile_id"] for item in children.json()] == [family["child_id"]]
    assert client.get("/api/family/children", headers=_as("parent-b")).json() == []

    accessible = client.get("/api/family/accessible-profiles", headers=_as("parent-a")).json()
    assert accessible["profile_ids"][1:] == [family["child_id"]]


def test_child_outside_age_band_returns_422(client: TestClient, family: dict[str, str]) -> None:
    response = client.post(
        "/api/family/children",
        json={"display_name": "Grown", "date_of_birth": _born(30)},
        headers=_as("parent-a"),
    )
    assert response.status_code == 422
    assert response.json()["detail"]["code"] == "child_age_out_of_range"


def test_strangers_and_missing_profiles_look_identical(client: TestClient, family: dict[str, str]) -> None:
    fitness_store.add_exercise(_exercise("e1"))
    stranger = client.get(f"/api/progress/{family['child_id']}/summary", headers=_as("parent-b"))
    missing = client.get("/api/progress/no-such-profile/summary", headers=_as("parent-b"))
    assert stranger.status_code == missing.status_code == 404
    assert stranger.json() == missing.json()

    body = {"exercise_id": "e1", "quality_rating": 4}
    stranger_write = client.post(f"/api/progress/{family['child_id']}/sessions", json=body, headers=_as("parent-b"))
    missing_write = client.post("/api/progress/no-such-profile/sessions", json=body, headers=_as("parent-b"))
    assert stranger_write.status_code == missing_write.status_code == 404
    assert stranger_write.json() == missing_write.json()

    listed = client.get(f"/api/progress/{family['child_id']}/sessions", headers=_as("parent-b"))
    assert listed.status_code == 200
    assert listed.json() == []


def test_recording_sessions_over_http(client: TestClient, family: dict[str, str]) -> None:
    fitness_store.add_exercise(_exercise("e1"))
    fitness_store.add_exercise(_exercise("e2"))
    fitness_store.add_prerequisite(Prerequisite(exercise_id="e2", required_exercise_id="e1"))
    child_id = family["child_id"]

    locked = client.post(
        f"/api/progress/{child_id}/sessions",
        json={"exercise_id": "e2", "quality_rating": 5},
        headers=_as("parent-a"),
    )
    assert locked.status_code == 409
    assert locked.json()["detail"]["code"] == "exercise_locked"

    recorded = client.post(
        f"/api/progress/{child_id}/sessions",
        json={"exercise_id": "e1", "quality_rating": 5, "duration_minutes": 4},
        headers=_as("parent-a"),
    )
    assert recorded.status_code == 201
    assert recorded.json()["session"]["points_earned"] == 10
    assert recorded.json()["aggregate"]["total_points"] == 10

    unlock = client.get(f"/api/progress/{child_id}/exercises/e2/unlock", headers=_as("parent-a"))
    assert unlock.status_code == 200
    assert unlock.json()["unlocked"] is True

    summary = client.get(f"/api/progress/{child_id}/summary", headers=_as("parent-a"))
    assert summary.json()["total_exercises_completed"] == 1

    invalid = client.post(
        f"/api/progress/{child_id}/sessions",
        json={"exercise_id": "e1", "quality_rating": 6},
        headers=_as("parent-a"),
    )
    assert invalid.status_code == 422


def test_guardian_link_and_deactivation_over_http(client: TestClient, family: dict[str, str]) -> None:
    guardian_id = fitness_store.resolve_caller("parent-b").profile_id
    denied = client.post(
        "/api/family/relationships",
        json={"parent_id": guardian_id, "child_id": family["child_id"]},
        headers=_as("parent-b"),
    )
    assert denied.status_code == 404

    linked = client.post(
        "/api/family/relationships",
        json={"parent_id": guardian_id, "child_id": family["child_id"], "relationship_type": "guardian"},
        headers=_as("parent-a"),
    )
    assert linked.status_code == 201
    assert client.get(f"/api/progress/{family['child_id']}/summary", headers=_as("parent-b")).status_code == 200

    stolen = client.post(f"/api/family/relationships/{family['relationship_id']}/deactivate", headers=_as("parent-b"))
    assert stolen.status_code == 404

    response = client.post(
        f"/api/family/relationships/{family['relationship_id']}/deactivate", headers=_as("parent-a")
    )
    assert response.status_code == 200
    assert response.json()["active"] is False
    assert client.get(f"/api/progress/{family['child_id']}/summary", headers=_as("parent-a")).status_code == 404
    assert client.get(f"/api/progress/{family['child_id']}/summary", headers=_as("parent-b")).status_code == 200


def test_catalog_writes_are_not_mounted_by_default(client: TestClient) -> None:
    response = client.post("/api/catalog/exercises", json={"name": "Burpees"})
    assert response.status_code == 405
    assert client.get("/api/catalog/exercises").status_code == 200


def test_catalog_admin_requires_identity_and_reports_duplicates(database) -> None:
    admin_app = FastAPI()
    admin_app.include_router(admin_router)
    admin = TestClient(admin_app)
    fitness_store.register_parent("curator", "Casey")
    body = {"exercise_id": "burpees", "name": "Burpees"}

    assert admin.post("/api/catalog/exercises", json=body).status_code == 401
    assert admin.post("/api/catalog/exercises", json=body, headers=_as("nobody")).status_code == 401

    created = admin.post("/api/catalog/exercises", json=body, headers=_as("curator"))
    assert created.status_code == 201
    again = admin.post("/api/catalog/exercises", json=body, headers=_as("curator"))
    assert again.status_code == 409
    assert again.json()["detail"]["code"] == "duplicate_exercise"

    achievement = {"achievement_id": "a1", "title": "First", "achievement_type": "total_points", "threshold": 10}
    assert admin.post("/api/catalog/achievements", json=achievement, headers=_as("curator")).status_code == 201
    duplicate = admin.post("/api/catalog/achievements", json=achievement, headers=_as("curator"))
    assert duplicate.status_code == 409
    assert duplicate.json()["detail"]["code"] == "duplicate_achievement"


def _exercise(exercise_id: str) -> Exercise:
    return Exercise(exercise_id=exercise_id, name=exercise_id.upper(), adventure_points=10)

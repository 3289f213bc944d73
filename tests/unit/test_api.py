"""
API tests using FastAPI's TestClient in Snowflake mock mode.
"""

import pytest
from fastapi.testclient import TestClient

from src.api.dependencies import get_mock_connection, reset_mock_connection
from src.config.settings import get_settings
from src.core.workouts.weeks import get_week_start
from src.main import create_app

HEADERS = {"X-API-Key": "test-key"}


@pytest.fixture
def client(monkeypatch):
    monkeypatch.setenv("SNOWFLAKE_MOCK_MODE", "true")
    monkeypatch.setenv("API_KEYS", "test-key")
    get_settings.cache_clear()
    reset_mock_connection()

    with TestClient(create_app()) as test_client:
        yield test_client

    reset_mock_connection()
    get_settings.cache_clear()


@pytest.fixture
def this_week() -> str:
    return get_week_start().isoformat()


def workout_payload(week, slot=1, client_id="client-1", exercise="Goblet Squat", **extra):
    payload = {
        "client_id": client_id,
        "trainer_id": "trainer-1",
        "week_start_date": week,
        "workout_slot": slot,
        "prescription": {
            "exercise_name": exercise,
            "sets": 3,
            "reps": "8-10",
            "modifications": [{"title": "Bodyweight only"}],
        },
    }
    payload.update(extra)
    return payload


class TestHealth:

    def test_health_needs_no_key(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["details"]["mock_mode"]["snowflake"] is True

    def test_ready_in_mock_mode(self, client):
        response = client.get("/health/ready")

        assert response.status_code == 200
        assert response.json()["status"] == "ready"


class TestAuth:

    def test_missing_key_is_rejected(self, client, this_week):
        response = client.get("/api/v1/workouts/clients/client-1/week")
        assert response.status_code == 403

    def test_wrong_key_is_rejected(self, client):
        response = client.get(
            "/api/v1/workouts/clients/client-1/week",
            headers={"X-API-Key": "nope"},
        )
        assert response.status_code == 403


class TestWorkoutEndpoints:

    def test_assign_conflict_replace(self, client, this_week):
        first = client.post("/api/v1/workouts", json=workout_payload(this_week), headers=HEADERS)
        assert first.status_code == 201
        first_id = first.json()["workout"]["id"]

        second = client.post(
            "/api/v1/workouts",
            json=workout_payload(this_week, exercise="Front Squat"),
            headers=HEADERS,
        )
        assert second.status_code == 409
        body = second.json()
        assert body["success"] is False
        assert body["conflict"]["id"] == first_id
        assert body["states"][-1] == "awaiting_user_decision"

        replaced = client.post(
            f"/api/v1/workouts/{first_id}/replace",
            json=workout_payload(this_week, exercise="Front Squat"),
            headers=HEADERS,
        )
        assert replaced.status_code == 201

        week = client.get("/api/v1/workouts/clients/client-1/week", headers=HEADERS).json()
        assert week["total"] == 1
        assert week["workouts"][0]["prescription"]["exercise_name"] == "Front Squat"
        assert week["week_display"].startswith("Week of ")

    def test_force_skips_conflict_check(self, client, this_week):
        client.post("/api/v1/workouts", json=workout_payload(this_week), headers=HEADERS)

        forced = client.post(
            "/api/v1/workouts",
            json=workout_payload(this_week, force=True),
            headers=HEADERS,
        )

        assert forced.status_code == 201
        week = client.get("/api/v1/workouts/clients/client-1/week", headers=HEADERS).json()
        assert week["total"] == 2

    def test_conflict_endpoint(self, client, this_week):
        client.post("/api/v1/workouts", json=workout_payload(this_week, slot=3), headers=HEADERS)

        taken = client.get(
            "/api/v1/workouts/conflicts",
            params={"client_id": "client-1", "week_start_date": this_week, "slot": 3},
            headers=HEADERS,
        ).json()
        free = client.get(
            "/api/v1/workouts/conflicts",
            params={"client_id": "client-1", "week_start_date": this_week, "slot": 4},
            headers=HEADERS,
        ).json()

        assert taken["conflict_found"] is True
        assert free["conflict_found"] is False

    def test_slot_out_of_range_is_rejected(self, client, this_week):
        response = client.post(
            "/api/v1/workouts",
            json=workout_payload(this_week, slot=5),
            headers=HEADERS,
        )
        assert response.status_code == 422

    def test_edit_complete_delete(self, client, this_week):
        created = client.post("/api/v1/workouts", json=workout_payload(this_week), headers=HEADERS)
        workout_id = created.json()["workout"]["id"]

        edited = client.patch(
            f"/api/v1/workouts/{workout_id}",
            json={"sets": 5, "tempo": "3-1-1"},
            headers=HEADERS,
        )
        assert edited.status_code == 200
        assert edited.json()["prescription"]["sets"] == 5
        assert edited.json()["prescription"]["reps"] == "8-10"
        assert edited.json()["workout_slot"] == 1

        completed = client.post(f"/api/v1/workouts/{workout_id}/complete", headers=HEADERS)
        assert completed.json()["status"] == "completed"
        assert completed.json()["updated_label"] == "Updated today"

        assert client.delete(f"/api/v1/workouts/{workout_id}", headers=HEADERS).status_code == 204
        assert client.get(f"/api/v1/workouts/{workout_id}", headers=HEADERS).status_code == 404

    def test_edit_missing_workout(self, client):
        response = client.patch("/api/v1/workouts/missing", json={"sets": 2}, headers=HEADERS)
        assert response.status_code == 404

    def test_unreadable_store_blocks_assignment(self, client, this_week):
        get_mock_connection()._fail_next("select")

        response = client.post("/api/v1/workouts", json=workout_payload(this_week), headers=HEADERS)

        assert response.status_code == 503
        assert get_mock_connection()._rows() == []

    def test_replace_reports_cleared_slot(self, client, this_week):
        created = client.post("/api/v1/workouts", json=workout_payload(this_week), headers=HEADERS)
        workout_id = created.json()["workout"]["id"]
        get_mock_connection()._fail_next("insert")

        response = client.post(
            f"/api/v1/workouts/{workout_id}/replace",
            json=workout_payload(this_week, exercise="Front Squat"),
            headers=HEADERS,
        )

        assert response.status_code == 502
        assert response.json()["detail"]["slot_cleared"] is True
        week = client.get("/api/v1/workouts/clients/client-1/week", headers=HEADERS).json()
        assert week["total"] == 0


class TestAdherenceEndpoints:

    def test_trainer_attention_list(self, client, this_week):
        ids = []
        for slot in (1, 2, 3):
            created = client.post(
                "/api/v1/workouts",
                json=workout_payload(this_week, slot=slot),
                headers=HEADERS,
            )
            ids.append(created.json()["workout"]["id"])
        client.post(f"/api/v1/workouts/{ids[0]}/complete", headers=HEADERS)

        response = client.get(
            "/api/v1/adherence/trainers/trainer-1",
            params={"client_ids": ["client-new"]},
            headers=HEADERS,
        )

        assert response.status_code == 200
        body = response.json()
        assert [(s["client_id"], s["status"]) for s in body["signals"]] == [
            ("client-new", "Inactive"),
            ("client-1", "At Risk"),
        ]
        assert body["inactive_count"] == 1
        assert body["at_risk_count"] == 1
        assert body["signals"][1]["missed_workouts_last_7_days"] == 2

    def test_client_summary(self, client, this_week):
        created = client.post("/api/v1/workouts", json=workout_payload(this_week), headers=HEADERS)
        client.post(f"/api/v1/workouts/{created.json()['workout']['id']}/complete", headers=HEADERS)

        summary = client.get("/api/v1/adherence/clients/client-1/summary", headers=HEADERS).json()

        assert summary["completed"] == 1
        assert summary["completion_rate"] == 100

    def test_store_failure_is_503(self, client):
        get_mock_connection()._fail_next("select")

        response = client.get("/api/v1/adherence/clients/client-1", headers=HEADERS)

        assert response.status_code == 503


class TestFeedbackEndpoints:

    def test_feedback_shows_in_client_signal(self, client, this_week):
        created = client.post("/api/v1/workouts", json=workout_payload(this_week), headers=HEADERS)
        workout_id = created.json()["workout"]["id"]

        for value in (5, 4):
            response = client.post(
                "/api/v1/adherence/feedback",
                json={"client_id": "client-1", "workout_id": workout_id, "difficulty_rating": value},
                headers=HEADERS,
            )
            assert response.status_code == 201

        signal = client.get("/api/v1/adherence/clients/client-1", headers=HEADERS).json()

        assert signal["avg_difficulty"] == 4.5
        assert signal["difficulty_flag"] == "Too Hard"

    def test_rating_out_of_range_is_rejected(self, client):
        response = client.post(
            "/api/v1/adherence/feedback",
            json={"client_id": "client-1", "workout_id": "w-1", "difficulty_rating": 6},
            headers=HEADERS,
        )

        assert response.status_code == 422
        assert get_mock_connection()._rows("client_workout_feedback") == []

    def test_recent_feedback_listing(self, client):
        client.post(
            "/api/v1/adherence/feedback",
            json={
                "client_id": "client-1",
                "workout_id": "w-1",
                "difficulty_rating": 2,
                "feedback_note": "Felt light",
            },
            headers=HEADERS,
        )

        listed = client.get("/api/v1/adherence/clients/client-1/feedback", headers=HEADERS).json()

        assert len(listed) == 1
        assert listed[0]["feedback_note"] == "Felt light"

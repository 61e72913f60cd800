"""
Tests for the HTTP API
"""
import pytest
from fastapi.testclient import TestClient

from esmc.api.dependencies import get_checkpoint, get_ledger, get_tier_manager
from esmc.main import app
from esmc.services.halt_checkpoint import HaltCheckpoint
from esmc.services.tier_manager import TierManager


@pytest.fixture
def client(ledger, tmp_path):
    checkpoint = HaltCheckpoint(ledger=ledger)

    def tier_manager():
        manager = TierManager(tmp_path / "credentials.json")
        manager.initialize()
        return manager

    app.dependency_overrides[get_ledger] = lambda: ledger
    app.dependency_overrides[get_checkpoint] = lambda: checkpoint
    app.dependency_overrides[get_tier_manager] = tier_manager
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
    assert "x-request-id" in response.headers


class TestHaltEndpoint:
    """POST /api/halt/evaluate"""

    def test_clear_proposal(self, client):
        response = client.post("/api/halt/evaluate", json={"description": "Add a footer link"})

        assert response.status_code == 200
        assert response.json()["shouldHalt"] is False

    def test_halting_proposal_records_lesson(self, client):
        response = client.post(
            "/api/halt/evaluate",
            json={"description": "Fix the circular import in reports", "keywords": ["reports"]},
        )

        body = response.json()
        assert body["shouldHalt"] is True
        assert body["severity"] == "critical"
        assert body["dialogue"].startswith("PHC CHECKPOINT: HALT")

        lessons = client.get("/api/lessons/").json()
        assert lessons["total"] == 1
        assert lessons["lessons"][0]["id"] == body["lesson_id"]

    def test_iteration_counter_spans_requests(self, client):
        payload = {"description": "retry the deploy", "keywords": ["deploy"], "approach": "redeploy",
                   "session_id": "s1"}
        counts = [
            client.post("/api/halt/evaluate", json=payload).json()["component_results"]["iteration"]["count"]
            for _ in range(3)
        ]

        assert counts == [1, 2, 3]

    def test_missing_description_rejected(self, client):
        response = client.post("/api/halt/evaluate", json={"keywords": ["x"]})

        assert response.status_code == 400
        body = response.json()
        assert body["error"] == "Invalid input"
        assert body["details"][0]["loc"] == ["body", "description"]


class TestSynthesisEndpoint:
    """POST /api/synthesize"""

    def test_objects_and_strings(self, client):
        response = client.post("/api/synthesize/", json={
            "piu": {"goals": ["Index search"]},
            "dki": '{"domains": ["search"]}',
            "uip": {"workflow": "kanban"},
            "pca": {"patterns": []},
        })

        assert response.status_code == 200
        summary = response.json()["technical_summary"]
        assert summary["domains"] == "search"
        assert summary["primary_pattern"] == "none identified"

    def test_invalid_fragment_is_400(self, client):
        response = client.post("/api/synthesize/", json={"piu": "{", "dki": {}, "uip": {}, "pca": {}})

        assert response.status_code == 400
        assert "PIU" in response.json()["detail"]

    def test_missing_fragments_are_400(self, client):
        response = client.post("/api/synthesize/", json={"piu": "{}"})

        assert response.status_code == 400
        missing = {tuple(error["loc"]) for error in response.json()["details"]}
        assert ("body", "dki") in missing


def test_tier_defaults_to_free(client):
    body = client.get("/api/tier/").json()

    assert body["tier"] == "FREE"
    assert body["user"] is None

import pytest
from fastapi.testclient import TestClient

from trailkeeper_ai.llm.fallback_bank import ITALY_EXAMPLE_ROUTE
from trailkeeper_ai.main import create_app
from trailkeeper_ai.schemas.ai_schemas import ErrorKind, Phase

from .factories import make_request


@pytest.fixture
def client(orchestrator):
    with TestClient(create_app(orchestrator)) as test_client:
        yield test_client


def chat_payload(message: str, phase: Phase = Phase.WELCOME, session_id: str = "api-session") -> dict:
    return make_request(message, session_id=session_id, phase=phase).model_dump(mode="json")


def test_root(client):
    body = client.get("/").json()
    assert body["status"] == "running"
    assert "/api/ai/chat" in body["endpoints"]


def test_health(client):
    body = client.get("/api/ai/health").json()
    assert body["status"] == "healthy"
    assert body["llm"] == "fallback-bank"
    assert body["rate_limit_remaining"] == 60


def test_chat_turn(client):
    response = client.post("/api/ai/chat", json=chat_payload("Ich möchte nach Italien reisen"))

    assert response.status_code == 200
    body = response.json()
    assert body["response"]["phase"] == "preferences_collection"
    assert body["response"]["fallback_reason"] == ErrorKind.MISSING_CREDENTIALS.value
    assert body["session"]["context"]["destination"] == "Italien"


def test_chat_rejects_invalid_request(client):
    payload = chat_payload("Hallo")
    payload["session_id"] = ""
    assert client.post("/api/ai/chat", json=payload).status_code == 422


def test_chat_accepts_mixed_timezone_dates(client):
    payload = chat_payload("Ich möchte nach Italien reisen")
    payload["context"]["trip_dates"] = {
        "start_date": "2025-06-01T00:00:00Z",
        "end_date": "2025-06-08T00:00:00",
    }

    response = client.post("/api/ai/chat", json=payload)

    assert response.status_code == 200
    assert response.json()["session"]["context"]["trip_dates"]["end_date"].startswith("2025-06-08T00:00:00")


def test_chat_rejects_reversed_mixed_timezone_dates(client):
    payload = chat_payload("Hallo")
    payload["context"]["trip_dates"] = {
        "start_date": "2025-06-08T00:00:00",
        "end_date": "2025-06-01T00:00:00Z",
    }
    assert client.post("/api/ai/chat", json=payload).status_code == 422


def test_feedback_validation(client):
    assert client.post("/api/ai/feedback", json={"message_id": "m", "rating": 9}).status_code == 422

    response = client.post("/api/ai/feedback", json={"message_id": "m", "rating": 4})
    assert response.status_code == 200
    assert "matched" in response.json()


def test_route_feedback(client):
    response = client.post("/api/ai/route-feedback", json={"route_id": "r1", "accepted": True})
    assert response.status_code == 200
    assert response.json() == {"updated_weights": {}}


def test_modify_route_offline(client):
    response = client.post("/api/ai/routes/modify", json={
        "route": ITALY_EXAMPLE_ROUTE,
        "modifications": "Mehr Zeit in Venedig",
        "session_id": "api-session",
    })

    assert response.status_code == 200
    body = response.json()
    assert body["modified"] is False
    assert body["route"]["id"] == ITALY_EXAMPLE_ROUTE["id"]


def test_interactions_and_session_lookup(client):
    assert client.get("/api/ai/sessions/nobody").status_code == 404

    response = client.post("/api/ai/interactions", json={
        "session_id": "api-session",
        "pattern": {"action": "open_map", "frequency": 2, "time_spent": 3.5},
    })
    assert response.json()["frequency"] == 2

    session = client.get("/api/ai/sessions/api-session").json()
    assert [p["action"] for p in session["patterns"]] == ["open_map"]


def test_weights_and_analytics(client):
    weights = client.get("/api/ai/weights").json()["weights"]
    assert "culture,history|moderate|100-200" in weights

    analytics = client.get("/api/ai/analytics").json()
    assert analytics["total_interactions"] == 0

    recommendations = client.get("/api/ai/analytics/recommendations").json()
    assert set(recommendations["metrics"]) >= {"accuracy", "user_satisfaction", "completion_rate"}
    assert recommendations["recommendations"]


def test_end_session(client):
    client.post("/api/ai/interactions", json={"session_id": "done", "pattern": {"action": "share"}})

    assert client.delete("/api/ai/sessions/done").status_code == 204
    assert client.get("/api/ai/sessions/done").status_code == 404
    assert client.delete("/api/ai/sessions/done").status_code == 404

import pytest
from fastapi.testclient import TestClient

from smartcards.consts import VERSION
from smartcards.server import app, reset_engine

client = TestClient(app)

CARDS = [
    {"id": "fr", "question": "Capital of France?", "answer": "Paris"},
    {
        "id": "jp",
        "question": "Capital of Japan?",
        "answer": "Tokyo",
        "answer_type": "text_input",
        "stats": {"correct_count": 0, "incorrect_count": 2, "streak": -2},
    },
]


@pytest.fixture(autouse=True)
def fresh_engine(mock_home, monkeypatch):
    monkeypatch.delenv("SMARTCARDS_SEED", raising=False)
    reset_engine()
    yield
    reset_engine()


def start(cards=CARDS, seed=7):
    return client.post("/session/start", json={"cards": cards, "seed": seed})


def test_health_check():
    response = client.get("/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ok"
    assert data["version"] == VERSION
    assert data["uptime_seconds"] >= 0


def test_version():
    assert client.get("/version").json() == {"version": VERSION}


def test_idle_session():
    data = client.get("/session").json()
    assert data["phase"] == "idle"
    assert data["current_card"] is None
    assert data["pool_size"] == 0


def test_start_session():
    response = start()
    assert response.status_code == 200
    data = response.json()
    assert data["phase"] == "active"
    assert data["pool_size"] == 2
    assert data["current_card"]["id"] in {"fr", "jp"}
    assert data["session_total"] == 0


def test_start_empty_deck():
    response = start(cards=[])
    assert response.status_code == 422


def test_start_duplicate_ids():
    response = start(cards=[CARDS[0], CARDS[0]])
    assert response.status_code == 400


def test_answer_moves_to_other_card():
    current = start().json()["current_card"]["id"]

    response = client.post("/session/answer", json={"is_correct": True})
    assert response.status_code == 200
    data = response.json()
    assert data["previous_card_id"] == current
    assert data["was_correct"] is True
    assert data["stats"]["correct_count"] >= 1
    assert data["stats"]["last_reviewed"] is not None
    assert data["next_card"]["id"] != current
    assert data["session"]["session_correct"] == 1
    assert data["session"]["session_total"] == 1


def test_submit_grades_text():
    start()
    current = client.get("/session").json()["current_card"]
    answer = "paris" if current["id"] == "fr" else "  TOKYO "

    data = client.post("/session/submit", json={"text": answer}).json()
    assert data["was_correct"] is True

    data = client.post("/session/submit", json={"text": "Lima"}).json()
    assert data["was_correct"] is False
    assert data["session"]["session_total"] == 2
    assert data["session"]["session_accuracy"] == 0.5


def test_skip_keeps_counters():
    start()
    data = client.post("/session/skip").json()
    assert data["phase"] == "active"
    assert data["session_total"] == 0
    assert data["current_card"] is not None


def test_weights():
    start()
    rows = {row["card_id"]: row for row in client.get("/session/weights").json()}
    assert rows["fr"]["novelty"] == 1.5
    assert rows["jp"]["difficulty"] == 3.0
    assert rows["jp"]["streak_momentum"] == 2.0


def test_end_then_answer_conflicts():
    start()
    assert client.post("/session/end").json()["phase"] == "finished"

    assert client.post("/session/answer", json={"is_correct": True}).status_code == 409
    assert client.post("/session/skip").status_code == 409
    assert client.post("/session/end").status_code == 409


def test_answer_before_start_conflicts():
    assert client.post("/session/answer", json={"is_correct": False}).status_code == 409


def test_restart_wipes_stats():
    start()
    client.post("/session/answer", json={"is_correct": False})
    client.post("/session/end")

    data = client.post("/session/restart").json()
    assert data["phase"] == "active"
    assert data["session_total"] == 0
    assert data["mastery_progress"] == 0.0
    assert data["current_card"]["stats"]["incorrect_count"] == 0

    rows = client.get("/session/weights").json()
    assert all(row["novelty"] == 1.5 for row in rows)


def test_restart_without_cards():
    assert client.post("/session/restart").status_code == 422

"""
Integration tests for the session, transcript and feedback endpoints.
"""
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.main import app
from app.core import config
from app.db.base import Base
from app.db.session import get_db
from app.services import feedback_jobs


# Setup in-memory SQLite database for testing
TEST_DATABASE_URL = "sqlite:///:memory:"
test_engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=test_engine)


def override_get_db():
    """Override get_db dependency for testing."""
    db = TestSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture(scope="function", autouse=True)
def setup_db(monkeypatch):
    """Create and drop tables for each test; keep analysis offline."""
    app.dependency_overrides[get_db] = override_get_db
    monkeypatch.setattr(feedback_jobs, "SessionLocal", TestSessionLocal)
    monkeypatch.setattr(config, "ANALYSIS_BACKEND", "heuristic")
    Base.metadata.create_all(bind=test_engine)
    yield
    Base.metadata.drop_all(bind=test_engine)
    app.dependency_overrides.pop(get_db, None)


@pytest.fixture
def client():
    return TestClient(app)


def _create(client, **overrides):
    payload = {
        "user_id": "user-1",
        "job_title": "Backend Engineer",
        "company": "Acme",
        "interview_type": "technical",
        "jd_context": "Python, Postgres and Kafka",
        "resume_snapshot": {"skills": ["python", "kafka"]},
    }
    payload.update(overrides)
    response = client.post("/sessions", json=payload)
    assert response.status_code == 201
    return response.json()


def _signal(client, session_id, signal, **extra):
    return client.post(f"/sessions/{session_id}/events", json={"signal": signal, **extra})


def _talk(client, session_id):
    turns = [
        ("interviewer", "Tell me about a system you built."),
        ("candidate", "I built an ingestion service in Python that reads from Kafka and writes to Postgres."),
        ("interviewer", "How did you handle failures?"),
        ("candidate", "I implemented retries with backoff and as a result we reduced data loss to zero."),
    ]
    for role, content in turns:
        response = client.post(f"/sessions/{session_id}/turns", json={"role": role, "content": content})
        assert response.status_code == 201


def test_full_interview_flow(client):
    session = _create(client)
    assert session["status"] == "PENDING"
    assert session["feedback_status"] == "NONE"

    connected = _signal(client, session["id"], "connected", openai_session_id="rt_123").json()
    assert connected["changed"] is True
    assert connected["session"]["status"] == "ACTIVE"
    assert connected["session"]["fallback_mode"] is False

    _talk(client, session["id"])

    turns = client.get(f"/sessions/{session['id']}/turns").json()["turns"]
    assert [turn["sequence_number"] for turn in turns] == [1, 2, 3, 4]
    assert turns[1]["role"] == "candidate"

    ended = _signal(client, session["id"], "ended").json()
    assert ended["changed"] is True
    assert ended["feedback_scheduled"] is True
    assert ended["session"]["status"] == "COMPLETED"
    assert ended["session"]["duration_seconds"] is not None

    # The background job has run by the time the client returns
    feedback = client.get(f"/sessions/{session['id']}/feedback")
    assert feedback.status_code == 200
    body = feedback.json()
    assert 0 <= body["overall_score"] <= 100
    assert body["enhanced_feedback_generated"] is False

    refreshed = client.get(f"/sessions/{session['id']}").json()
    assert refreshed["feedback_status"] == "READY"


def test_duplicate_ended_is_noop(client):
    session = _create(client)
    _signal(client, session["id"], "connected", openai_session_id="rt_1")
    _talk(client, session["id"])
    _signal(client, session["id"], "ended")

    again = _signal(client, session["id"], "ended").json()

    assert again["changed"] is False
    assert again["feedback_scheduled"] is False


def test_fallback_session_flow(client):
    session = _create(client, company=None)

    fallback = _signal(client, session["id"], "fallback_engaged").json()
    assert fallback["session"]["status"] == "ACTIVE"
    assert fallback["session"]["fallback_mode"] is True
    assert fallback["session"]["openai_session_id"] is None

    _talk(client, session["id"])
    ended = _signal(client, session["id"], "ended").json()
    assert ended["session"]["status"] == "COMPLETED"

    assert client.get(f"/sessions/{session['id']}/feedback").status_code == 200


def test_errored_signal_fails_session(client):
    session = _create(client)
    _signal(client, session["id"], "connected", openai_session_id="rt_2")

    failed = _signal(client, session["id"], "errored", reason="socket closed").json()

    assert failed["session"]["status"] == "FAILED"
    assert failed["session"]["failure_reason"] == "socket closed"
    assert failed["feedback_scheduled"] is False

    # A late "ended" cannot resurrect a failed session
    assert _signal(client, session["id"], "ended").status_code == 409


def test_append_turn_requires_active_session(client):
    session = _create(client)

    response = client.post(f"/sessions/{session['id']}/turns", json={"role": "candidate", "content": "hello"})

    assert response.status_code == 409
    assert response.json()["detail"]["error"] == "InvalidSessionStateError"


def test_append_turn_rejects_unknown_role(client):
    session = _create(client)
    _signal(client, session["id"], "connected", openai_session_id="rt_3")

    response = client.post(f"/sessions/{session['id']}/turns", json={"role": "narrator", "content": "hi"})

    assert response.status_code == 400


def test_append_turn_accepts_role_aliases(client):
    session = _create(client)
    _signal(client, session["id"], "connected", openai_session_id="rt_4")

    response = client.post(
        f"/sessions/{session['id']}/turns",
        json={"role": "assistant", "content": "Welcome", "metadata": {"item_id": "it_1"}},
    )

    assert response.status_code == 201
    assert response.json()["role"] == "interviewer"
    assert response.json()["metadata"] == {"item_id": "it_1"}


def test_unknown_session_is_404(client):
    assert client.get("/sessions/does-not-exist").status_code == 404
    assert _signal(client, "does-not-exist", "connected").status_code == 404
    assert client.get("/sessions/does-not-exist/feedback").status_code == 404


def test_unknown_signal_is_rejected(client):
    session = _create(client)
    assert _signal(client, session["id"], "paused").status_code == 422


def test_feedback_before_completion(client):
    session = _create(client)
    _signal(client, session["id"], "connected", openai_session_id="rt_5")

    assert client.post(f"/sessions/{session['id']}/feedback").status_code == 409
    assert client.get(f"/sessions/{session['id']}/feedback").status_code == 404
    assert client.post(f"/sessions/{session['id']}/feedback/enhanced").status_code == 404


def test_feedback_trigger_is_idempotent(client):
    session = _create(client)
    _signal(client, session["id"], "connected", openai_session_id="rt_6")
    _talk(client, session["id"])
    _signal(client, session["id"], "ended")

    first = client.post(f"/sessions/{session['id']}/feedback").json()
    second = client.post(f"/sessions/{session['id']}/feedback").json()

    assert first["feedback_status"] == "READY"
    assert first["feedback"]["overall_score"] == second["feedback"]["overall_score"]


def test_enhanced_feedback_runs_in_background(client):
    session = _create(client)
    _signal(client, session["id"], "connected", openai_session_id="rt_7")
    _talk(client, session["id"])
    _signal(client, session["id"], "ended")

    queued = client.post(f"/sessions/{session['id']}/feedback/enhanced")

    assert queued.status_code == 202
    assert queued.json()["scheduled"] is True
    assert queued.json()["enhanced_status"] == "NONE"

    # The background job has run by the time the client returns
    body = client.get(f"/sessions/{session['id']}/feedback").json()
    assert body["enhanced_feedback_generated"] is True
    assert body["enhanced_status"] == "READY"
    assert len(body["sentiment_progression"]) == 2
    assert 0 <= body["keyword_relevance_score"] <= 100

    again = client.post(f"/sessions/{session['id']}/feedback/enhanced")
    assert again.status_code == 200
    assert again.json()["scheduled"] is False
    assert again.json()["feedback"]["enhanced_generated_at"] == body["enhanced_generated_at"]


def test_empty_transcript_feedback_is_422(client):
    session = _create(client)
    _signal(client, session["id"], "connected", openai_session_id="rt_8")
    _signal(client, session["id"], "ended")

    response = client.post(f"/sessions/{session['id']}/feedback")

    assert response.status_code == 422
    refreshed = client.get(f"/sessions/{session['id']}").json()
    assert refreshed["feedback_status"] == "FAILED"


def test_delete_session(client):
    session = _create(client)

    assert client.delete(f"/sessions/{session['id']}").status_code == 204
    assert client.get(f"/sessions/{session['id']}").status_code == 404


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["database"] == "connected"

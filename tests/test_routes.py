"""
Tests for the HTTP surface.

Tests:
- Upload validation errors
- Session lookup and deletion
- Follow-up and what-if turns recorded in order
- AI service and configuration errors
"""

import pytest
from fastapi.testclient import TestClient

from main import create_app
from utils.config import Settings
from utils.errors import AnalysisServiceError

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64


def upload(client, data=PNG_BYTES, content_type="image/png", difficulty="Beginner"):
    return client.post(
        "/api/analyze",
        files={"image": ("photo.png", data, content_type)},
        data={"difficulty": difficulty},
    )


def new_session(client) -> str:
    response = upload(client)
    assert response.status_code == 200
    return response.json()["sessionId"]


class TestAnalyze:

    def test_analyze_creates_session(self, client, fake_explainer):
        response = upload(client, difficulty="advanced")

        assert response.status_code == 200
        body = response.json()
        assert body["analysis"] == "A bicycle with a chain drive."
        assert body["components"][0] == {"name": "Chain", "x": 40.0, "y": 70.0}
        assert fake_explainer.calls[0]["difficulty"] == "Advanced"

        info = client.get(f"/api/session/{body['sessionId']}").json()
        assert info == {
            "exists": True,
            "imageInfo": {"mimeType": "image/png", "hasImage": True},
            "conversationLength": 1,
        }

    def test_missing_file(self, client):
        response = client.post("/api/analyze", data={"difficulty": "Beginner"})

        assert response.status_code == 400
        assert response.json()["error"] == "No image file provided"

    def test_invalid_file_type(self, client):
        response = upload(client, data=b"plain text", content_type="text/plain")

        assert response.status_code == 400
        assert response.json()["error"] == "Invalid file type"

    def test_oversize_upload(self, client, fake_explainer):
        response = upload(client, data=b"\x00" * (15 * 1024 * 1024))

        assert response.status_code == 413
        assert "10MB" in response.json()["message"]
        assert fake_explainer.calls == []

    def test_ai_failure_is_503(self, client, fake_explainer):
        fake_explainer.error = AnalysisServiceError("The AI service is temporarily unavailable. Please try again.")

        response = upload(client)

        assert response.status_code == 503
        assert response.json()["error"] == "AI Service Error"

    def test_missing_openai_key_is_500(self, unconfigured_client):
        response = upload(unconfigured_client)

        assert response.status_code == 500
        assert response.json()["error"] == "Configuration Error"


class TestConversation:

    def test_ask_unknown_session(self, client):
        response = client.post("/api/ask", json={"sessionId": "never-created", "question": "Why?"})

        assert response.status_code == 404
        assert "Session" in response.json()["message"]

    @pytest.mark.parametrize(
        "payload, missing",
        [
            ({"question": "Why?"}, "Session ID"),
            ({"sessionId": "abc"}, "Question"),
            ({"sessionId": "abc", "question": "   "}, "Question"),
        ],
    )
    def test_ask_missing_fields(self, client, payload, missing):
        response = client.post("/api/ask", json=payload)

        assert response.status_code == 400
        assert response.json()["message"] == f"{missing} is required"

    def test_what_if_missing_scenario(self, client):
        response = client.post("/api/what-if", json={"sessionId": "abc"})

        assert response.status_code == 400
        assert response.json()["error"] == "Missing field"

    def test_what_if_unknown_session(self, client):
        response = client.post("/api/what-if", json={"sessionId": "gone", "scenario": "it rains"})

        assert response.status_code == 404

    def test_invalid_tap_point(self, client):
        session_id = new_session(client)

        response = client.post(
            "/api/ask", json={"sessionId": session_id, "question": "This?", "tapPoint": {"x": 150, "y": 10}}
        )

        assert response.status_code == 400
        assert response.json()["error"] == "Invalid request"

    def test_turns_accumulate_in_order(self, client, fake_explainer):
        session_id = new_session(client)

        first = client.post(
            "/api/ask",
            json={"sessionId": session_id, "question": "What is this?", "tapPoint": {"x": 40, "y": 70}},
        )
        assert first.status_code == 200
        assert first.json() == {"answer": "Answer to: What is this?"}

        what_if = client.post("/api/what-if", json={"sessionId": session_id, "scenario": "the chain snaps"})
        assert what_if.status_code == 200

        client.post("/api/ask", json={"sessionId": session_id, "question": "And then?", "difficulty": "Expert"})

        last_call = fake_explainer.calls[-1]
        history = last_call["history"]
        assert [turn.role for turn in history] == ["assistant", "user", "assistant", "user", "assistant"]
        assert history[1].content == "What is this?"
        assert history[1].tap_point.x == 40
        assert history[3].content == "[What-If Mode] the chain snaps"
        assert history[4].is_what_if is True
        assert last_call["difficulty"] == "Expert"

        info = client.get(f"/api/session/{session_id}").json()
        assert info["conversationLength"] == 7

    def test_difficulty_defaults_to_session_level(self, client, fake_explainer):
        response = upload(client, difficulty="Novice")
        session_id = response.json()["sessionId"]

        client.post("/api/ask", json={"sessionId": session_id, "question": "Why?"})

        assert fake_explainer.calls[-1]["difficulty"] == "Novice"

    def test_failed_answer_does_not_record_turns(self, client, fake_explainer):
        session_id = new_session(client)
        fake_explainer.error = AnalysisServiceError("down")

        response = client.post("/api/ask", json={"sessionId": session_id, "question": "Why?"})

        assert response.status_code == 503
        assert client.get(f"/api/session/{session_id}").json()["conversationLength"] == 1


class TestSessionRoutes:

    def test_unknown_session_info(self, client):
        assert client.get("/api/session/missing").json() == {"exists": False}

    def test_delete_session(self, client):
        session_id = new_session(client)

        assert client.delete(f"/api/session/{session_id}").json() == {"success": True, "existed": True}
        assert client.get(f"/api/session/{session_id}").json() == {"exists": False}
        assert client.delete(f"/api/session/{session_id}").json() == {"success": True, "existed": False}

    def test_health_reports_memory_backend(self, client):
        new_session(client)

        body = client.get("/health").json()

        assert body["status"] == "healthy"
        assert body["openaiConfigured"] is False
        assert body["sessions"] == {"activeSessions": 1, "ttlMinutes": 60, "backend": "memory"}


class TestPersistentApp:

    @pytest.fixture
    def app_settings(self, tmp_path):
        return Settings(session_database_dir=tmp_path / "sessions")

    def test_sessions_use_sqlite_backend(self, client, tmp_path):
        session_id = new_session(client)

        assert (tmp_path / "sessions" / "sessions.db").exists()
        assert client.get("/health").json()["sessions"]["backend"] == "persistent"
        assert client.get(f"/api/session/{session_id}").json()["exists"] is True


class TestStartup:

    def test_client_failure_happens_before_sweep_starts(self, monkeypatch):
        def broken_client(**kwargs):
            raise ValueError("bad proxy settings")

        monkeypatch.setattr("main.AsyncOpenAI", broken_client)
        app = create_app(Settings(openai_api_key="sk-test"))

        with pytest.raises(RuntimeError, match="OpenAI"):
            with TestClient(app):
                pass

        assert not hasattr(app.state, "session_manager")

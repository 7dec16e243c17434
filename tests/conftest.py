"""
Pytest fixtures for the visual explainer tests.
"""

from typing import Any, Dict, List, Optional

import pytest
from fastapi.testclient import TestClient

from dal.session_dal import SQLiteSessionBackend
from main import create_app
from models.session_models import ConversationTurn, TapPoint
from services.session.expiry import ExpiryPolicy
from services.session.session_manager import SessionManager
from services.session.session_store import SessionBackend
from utils.config import Settings
from utils.database_init import AsyncDatabaseInitializer

TTL_SECONDS = 3600


class FakeClock:
    """Manually advanced clock, in epoch seconds."""

    def __init__(self, now: float = 0.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FailingBackend(SessionBackend):
    """Persistent backend stand-in whose every call fails like a dropped connection."""

    name = "failing"

    def __init__(self) -> None:
        self.calls: List[str] = []

    def _fail(self, op: str):
        self.calls.append(op)
        raise ConnectionError(f"store unreachable during {op}")

    async def upsert(self, record):
        self._fail("upsert")

    async def get(self, session_id, now):
        self._fail("get")

    async def update(self, session_id, fields):
        self._fail("update")

    async def delete(self, session_id):
        self._fail("delete")

    async def count_live(self, now):
        self._fail("count_live")

    async def delete_expired(self, now):
        self._fail("delete_expired")

    async def clear(self):
        self._fail("clear")


class FakeExplainer:
    """Records calls and returns canned answers instead of calling OpenAI."""

    def __init__(self, error: Optional[Exception] = None) -> None:
        self.error = error
        self.calls: List[Dict[str, Any]] = []

    async def analyze_image(self, image_b64: str, mime_type: str, difficulty: str) -> Dict[str, Any]:
        self.calls.append({"op": "analyze", "mime_type": mime_type, "difficulty": difficulty})
        if self.error:
            raise self.error
        return {
            "analysis": "A bicycle with a chain drive.",
            "components": [{"name": "Chain", "x": 40.0, "y": 70.0}, {"name": "Saddle", "x": 55.0, "y": 20.0}],
        }

    async def ask_follow_up(
        self,
        image_b64: str,
        mime_type: str,
        question: str,
        tap_point: Optional[TapPoint],
        difficulty: str,
        history: List[ConversationTurn],
    ) -> str:
        self.calls.append(
            {
                "op": "ask",
                "question": question,
                "tap_point": tap_point,
                "difficulty": difficulty,
                "history": list(history),
            }
        )
        if self.error:
            raise self.error
        return f"Answer to: {question}"

    async def ask_what_if(
        self,
        image_b64: str,
        mime_type: str,
        scenario: str,
        difficulty: str,
        history: List[ConversationTurn],
    ) -> str:
        self.calls.append(
            {"op": "what-if", "scenario": scenario, "difficulty": difficulty, "history": list(history)}
        )
        if self.error:
            raise self.error
        return f"If {scenario}, the chain would slip."


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def policy(clock) -> ExpiryPolicy:
    return ExpiryPolicy(TTL_SECONDS, clock=clock)


@pytest.fixture
def memory_manager(policy) -> SessionManager:
    """Manager with no persistent backend configured."""
    return SessionManager(policy=policy)


@pytest.fixture
def failing_backend() -> FailingBackend:
    return FailingBackend()


@pytest.fixture
def degraded_manager(policy, failing_backend) -> SessionManager:
    """Manager whose persistent backend is configured but failing on every call."""
    return SessionManager(failing_backend, policy=policy)


@pytest.fixture
def sqlite_backend(tmp_path) -> SQLiteSessionBackend:
    return SQLiteSessionBackend(AsyncDatabaseInitializer(tmp_path / "db"))


@pytest.fixture
def sqlite_manager(policy, sqlite_backend) -> SessionManager:
    return SessionManager(sqlite_backend, policy=policy)


@pytest.fixture
def session_data() -> Dict[str, Any]:
    return {
        "image_data": "aGVsbG8=",
        "image_type": "image/png",
        "image_description": "A bicycle.",
        "components": [{"name": "Wheel", "x": 20, "y": 80}],
        "conversation_history": [{"role": "assistant", "content": "A bicycle."}],
    }


@pytest.fixture
def fake_explainer() -> FakeExplainer:
    return FakeExplainer()


@pytest.fixture
def app_settings() -> Settings:
    return Settings()


@pytest.fixture
def client(app_settings, fake_explainer):
    """Test client with the lifespan running and the explainer replaced by a fake."""
    app = create_app(app_settings)
    with TestClient(app) as test_client:
        app.state.explainer = fake_explainer
        yield test_client


@pytest.fixture
def unconfigured_client(app_settings):
    """Test client using the real explainer with no OpenAI key configured."""
    app = create_app(app_settings)
    with TestClient(app) as test_client:
        yield test_client

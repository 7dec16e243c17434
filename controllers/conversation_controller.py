"""Follow-up and what-if turns for an existing session."""

from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import Request

from models.session_models import SessionRecord, TapPoint, normalize_difficulty
from services.openai.visual_explainer import VisualExplainer
from services.session.session_manager import SessionManager
from utils.errors import MissingFieldError, SessionNotFoundError

WHAT_IF_PREFIX = "[What-If Mode]"


def _require_text(value: Optional[str], label: str) -> str:
    text = (value or "").strip()
    if not text:
        raise MissingFieldError(f"{label} is required")
    return text


async def _load_session(sessions: SessionManager, session_id: str) -> SessionRecord:
    session = await sessions.get(session_id)
    if session is None:
        raise SessionNotFoundError(session_id)
    return session


async def _save_turns(
    sessions: SessionManager, session: SessionRecord, difficulty: Optional[str]
) -> None:
    """Write the extended history back, remembering an explicitly chosen level."""
    updates: Dict[str, Any] = {"conversation_history": session.conversation_history}
    if difficulty:
        updates["difficulty"] = session.difficulty
    await sessions.update(session.session_id, **updates)


async def ask_question(
    request: Request,
    session_id: Optional[str],
    question: Optional[str],
    tap_point: Optional[TapPoint] = None,
    difficulty: Optional[str] = None,
) -> Dict[str, Any]:
    """Answer a follow-up question about the session's image and record both turns.

    Raises:
        MissingFieldError: If the session id or question is blank.
        SessionNotFoundError: If the session is unknown or expired.
    """
    session_id = _require_text(session_id, "Session ID")
    question = _require_text(question, "Question")

    sessions: SessionManager = request.app.state.session_manager
    explainer: VisualExplainer = request.app.state.explainer

    session = await _load_session(sessions, session_id)
    if difficulty:
        session.difficulty = normalize_difficulty(difficulty)

    answer = await explainer.ask_follow_up(
        session.image_data,
        session.image_type,
        question,
        tap_point,
        session.difficulty,
        list(session.conversation_history),
    )

    session.add_turn("user", question, tap_point=tap_point)
    session.add_turn("assistant", answer)
    await _save_turns(sessions, session, difficulty)

    return {"answer": answer}


async def ask_what_if(
    request: Request,
    session_id: Optional[str],
    scenario: Optional[str],
    difficulty: Optional[str] = None,
) -> Dict[str, Any]:
    """Answer a hypothetical scenario about the session's image and record both turns.

    Raises:
        MissingFieldError: If the session id or scenario is blank.
        SessionNotFoundError: If the session is unknown or expired.
    """
    session_id = _require_text(session_id, "Session ID")
    scenario = _require_text(scenario, "Scenario")

    sessions: SessionManager = request.app.state.session_manager
    explainer: VisualExplainer = request.app.state.explainer

    session = await _load_session(sessions, session_id)
    if difficulty:
        session.difficulty = normalize_difficulty(difficulty)

    answer = await explainer.ask_what_if(
        session.image_data,
        session.image_type,
        scenario,
        session.difficulty,
        list(session.conversation_history),
    )

    session.add_turn("user", f"{WHAT_IF_PREFIX} {scenario}")
    session.add_turn("assistant", answer, is_what_if=True)
    await _save_turns(sessions, session, difficulty)

    return {"answer": answer}

"""Session lookup and deletion helpers."""

from __future__ import annotations

from typing import Any, Dict

from fastapi import Request

from services.session.session_manager import SessionManager


async def get_session_info(request: Request, session_id: str) -> Dict[str, Any]:
	"""Describe a session without returning the image itself."""
	sessions: SessionManager = request.app.state.session_manager
	session = await sessions.get(session_id)
	if session is None:
		return {"exists": False}
	return {
		"exists": True,
		"imageInfo": {
			"mimeType": session.image_type,
			"hasImage": bool(session.image_data),
		},
		"conversationLength": len(session.conversation_history),
	}


async def delete_session(request: Request, session_id: str) -> Dict[str, Any]:
	"""Delete a session and report whether it existed."""
	sessions: SessionManager = request.app.state.session_manager
	existed = await sessions.delete(session_id)
	return {"success": True, "existed": existed}

"""FastAPI routes for session lookup and deletion."""

from fastapi import APIRouter, Request

from controllers.session_controller import delete_session, get_session_info

router = APIRouter(prefix="/api/session", tags=["session"])


@router.get("/{session_id}")
async def get_session_route(request: Request, session_id: str):
	"""Report whether a session is live, without returning its image."""
	return await get_session_info(request, session_id)


@router.delete("/{session_id}")
async def delete_session_route(request: Request, session_id: str):
	return await delete_session(request, session_id)

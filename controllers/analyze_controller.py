from typing import Any, Dict, Optional
from uuid import uuid4

from fastapi import Request, UploadFile

from models.session_models import ConversationTurn, normalize_difficulty
from services.openai.visual_explainer import VisualExplainer
from services.session.session_manager import SessionManager
from utils.media_validation import read_image_upload


async def analyze_image(
    request: Request,
    image: Optional[UploadFile],
    difficulty: Optional[str] = None,
) -> Dict[str, Any]:
    """Validate an upload, break the image down, and open a session for it.

    Args:
        request: FastAPI Request object (used to access app.state for shared services).
        image: Uploaded image file (JPEG, PNG, WebP or GIF).
        difficulty: Requested explanation level; unknown values fall back to the default.

    Returns:
        A dict containing: sessionId, analysis, components.
    """
    settings = request.app.state.settings
    image_b64, mime_type = await read_image_upload(image, settings.max_upload_bytes)
    level = normalize_difficulty(difficulty)

    explainer: VisualExplainer = request.app.state.explainer
    sessions: SessionManager = request.app.state.session_manager

    result = await explainer.analyze_image(image_b64, mime_type, level)

    # The analysis opens the conversation so follow-ups are answered in its context.
    session_id = str(uuid4())
    await sessions.create(
        session_id,
        {
            "image_data": image_b64,
            "image_type": mime_type,
            "image_description": result["analysis"],
            "components": result["components"],
            "conversation_history": [ConversationTurn(role="assistant", content=result["analysis"])],
            "difficulty": level,
        },
    )

    return {
        "sessionId": session_id,
        "analysis": result["analysis"],
        "components": result["components"],
    }

"""Utilities to build multimodal input payloads for the Responses API."""

from typing import Any, Dict, List, Sequence

from models.session_models import ConversationTurn


def to_image_data_url(image_b64: str, mime_type: str) -> str:
    """Convert base64 image text into a data URL suitable for vision input."""
    if not image_b64:
        raise ValueError("Image data is required.")
    return f"data:{mime_type};base64,{image_b64}"


def text_message(role: str, text: str) -> Dict[str, Any]:
    content_type = "output_text" if role == "assistant" else "input_text"
    return {"type": "message", "role": role, "content": [{"type": content_type, "text": text}]}


def build_history_messages(history: Sequence[ConversationTurn]) -> List[Dict[str, Any]]:
    """Replay prior turns in order so the model sees the whole conversation."""
    return [text_message(turn.role, turn.content) for turn in history if turn.content]


def build_inputs(
    system_prompt: str,
    user_prompt: str,
    *,
    image_b64: str,
    mime_type: str,
    history: Sequence[ConversationTurn] = (),
) -> List[Dict[str, Any]]:
    """Build the Responses API input array: system, image, history, then the new prompt."""
    image_url = to_image_data_url(image_b64, mime_type)
    inputs: List[Dict[str, Any]] = [
        text_message("system", system_prompt),
        {"type": "message", "role": "user", "content": [{"type": "input_image", "image_url": image_url}]},
    ]
    inputs.extend(build_history_messages(history))
    inputs.append(text_message("user", user_prompt))
    return inputs

"""Image breakdown and conversation answers using OpenAI's Responses API."""

import logging
import time
from typing import Any, Dict, List, Optional, Sequence

from openai import AsyncOpenAI

from models.session_models import ConversationTurn, TapPoint, normalize_difficulty
from services.openai.explain_prompts import (
    build_analysis_prompt,
    build_follow_up_prompt,
    build_system_prompt,
    build_what_if_prompt,
)
from services.openai.explain_schema import FUNCTION_DEFINITION, FUNCTION_NAME
from services.openai.media_inputs import build_inputs
from services.openai.response_parser import extract_text, extract_usage, parse_function_call
from utils.config import DEFAULT_OPENAI_MODEL
from utils.errors import AnalysisServiceError, ConfigurationError

LOGGER = logging.getLogger(__name__)


class VisualExplainer:
    """Ask the model about one image at a chosen explanation level.

    The explainer keeps no state: every call receives the image and the
    conversation so far, as stored in the session.
    """

    def __init__(self, client: Optional[AsyncOpenAI], model: str = DEFAULT_OPENAI_MODEL) -> None:
        """Initialize the explainer.

        Args:
            client: Shared async OpenAI client, or None when OPENAI_API_KEY is not set.
                Calls then fail with `ConfigurationError`.
            model: Responses API model name.
        """
        self.client = client
        self.model = model

    async def analyze_image(self, image_b64: str, mime_type: str, difficulty: str) -> Dict[str, Any]:
        """Return `{"analysis": str, "components": [{"name", "x", "y"}]}` for an image."""
        difficulty = normalize_difficulty(difficulty)
        inputs = build_inputs(
            build_system_prompt(difficulty),
            build_analysis_prompt(),
            image_b64=image_b64,
            mime_type=mime_type,
        )
        response = await self._create_response(
            inputs,
            tools=[FUNCTION_DEFINITION],
            tool_choice={"type": "function", "name": FUNCTION_NAME},
        )
        try:
            result = parse_function_call(response, tool_name=FUNCTION_NAME)
        except Exception as exc:
            LOGGER.error("Error parsing OpenAI analysis response: %s", exc)
            LOGGER.debug("Full response object: %r", response)
            raise AnalysisServiceError("The AI service returned an unreadable analysis.") from exc

        if not result["analysis"]:
            raise AnalysisServiceError("The AI service returned an empty analysis.")
        return result

    async def ask_follow_up(
        self,
        image_b64: str,
        mime_type: str,
        question: str,
        tap_point: Optional[TapPoint],
        difficulty: str,
        history: Sequence[ConversationTurn],
    ) -> str:
        """Answer a question about the image, optionally focused on a tap point."""
        difficulty = normalize_difficulty(difficulty)
        inputs = build_inputs(
            build_system_prompt(difficulty),
            build_follow_up_prompt(question, tap_point),
            image_b64=image_b64,
            mime_type=mime_type,
            history=history,
        )
        return self._answer_text(await self._create_response(inputs))

    async def ask_what_if(
        self,
        image_b64: str,
        mime_type: str,
        scenario: str,
        difficulty: str,
        history: Sequence[ConversationTurn],
    ) -> str:
        """Answer a hypothetical scenario about the image."""
        difficulty = normalize_difficulty(difficulty)
        inputs = build_inputs(
            build_system_prompt(difficulty),
            build_what_if_prompt(scenario),
            image_b64=image_b64,
            mime_type=mime_type,
            history=history,
        )
        return self._answer_text(await self._create_response(inputs))

    async def _create_response(self, inputs: List[Dict[str, Any]], **kwargs: Any) -> Any:
        """Send the request, translating failures into service errors."""
        if self.client is None:
            raise ConfigurationError("The server is not properly configured: OPENAI_API_KEY is not set.")

        start_time = time.time()
        try:
            response = await self.client.responses.create(model=self.model, input=inputs, **kwargs)
        except Exception as exc:
            LOGGER.error("Error during OpenAI Responses API call: %s", exc)
            raise AnalysisServiceError("The AI service is temporarily unavailable. Please try again.") from exc

        usage = extract_usage(response)
        LOGGER.info(
            "OpenAI response in %.3fs (input_tokens=%s, output_tokens=%s)",
            time.time() - start_time,
            usage["input_tokens"],
            usage["output_tokens"],
        )
        return response

    @staticmethod
    def _answer_text(response: Any) -> str:
        answer = extract_text(response).strip()
        if not answer:
            raise AnalysisServiceError("The AI service returned an empty answer.")
        return answer

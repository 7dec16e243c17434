"""FastAPI routes for follow-up questions and what-if scenarios."""

from typing import Optional

from fastapi import APIRouter, Request
from pydantic import BaseModel, ConfigDict, Field

from controllers.conversation_controller import ask_question, ask_what_if
from models.session_models import TapPoint

router = APIRouter(prefix="/api", tags=["conversation"])


class TapPointPayload(BaseModel):
    x: float = Field(ge=0, le=100)
    y: float = Field(ge=0, le=100)


class AskPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    session_id: Optional[str] = Field(None, alias="sessionId")
    question: Optional[str] = None
    tap_point: Optional[TapPointPayload] = Field(None, alias="tapPoint")
    difficulty: Optional[str] = None


class WhatIfPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    session_id: Optional[str] = Field(None, alias="sessionId")
    scenario: Optional[str] = None
    difficulty: Optional[str] = None


@router.post("/ask")
async def ask_route(request: Request, payload: AskPayload):
    """Ask a follow-up question about the analyzed image."""
    tap_point = TapPoint(x=payload.tap_point.x, y=payload.tap_point.y) if payload.tap_point else None
    return await ask_question(request, payload.session_id, payload.question, tap_point, payload.difficulty)


@router.post("/what-if")
async def what_if_route(request: Request, payload: WhatIfPayload):
    """Ask a hypothetical what-if question about the analyzed image."""
    return await ask_what_if(request, payload.session_id, payload.scenario, payload.difficulty)

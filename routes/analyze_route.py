from typing import Optional

from fastapi import APIRouter, File, Form, Request, UploadFile

from controllers.analyze_controller import analyze_image

router = APIRouter(prefix="/api", tags=["analyze"])


@router.post("/analyze", summary="Upload and analyze an image")
async def analyze_image_route(
    request: Request,
    image: Optional[UploadFile] = File(None),
    difficulty: Optional[str] = Form(None),
):
    """Break down an uploaded image and open a conversation session for it.

    Validation, session and AI service errors are rendered by the handlers
    registered in `utils.errors`.
    """
    return await analyze_image(request, image, difficulty)

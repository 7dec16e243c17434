"""Validation helpers for uploaded images."""

import base64

from fastapi import UploadFile

from utils.config import DEFAULT_MAX_UPLOAD_BYTES
from utils.errors import FileTooLargeError, InvalidFileTypeError, NoImageError

ALLOWED_IMAGE_TYPES = {
    "image/jpeg",
    "image/png",
    "image/webp",
    "image/gif",
}


def normalize_content_type(content_type: str | None) -> str:
    return (content_type or "").lower().split(";", 1)[0].strip()


def validate_image_type(image_file: UploadFile) -> str:
    """Return the normalized MIME type, rejecting anything but common web image formats."""
    content_type = normalize_content_type(image_file.content_type)
    if content_type not in ALLOWED_IMAGE_TYPES:
        raise InvalidFileTypeError("Only JPEG, PNG, WebP, and GIF images are allowed")
    return content_type


def _format_limit(max_bytes: int) -> str:
    return f"{max_bytes // (1024 * 1024)}MB" if max_bytes >= 1024 * 1024 else f"{max_bytes} bytes"


async def read_image_upload(
    image_file: UploadFile | None,
    max_bytes: int = DEFAULT_MAX_UPLOAD_BYTES,
) -> tuple[str, str]:
    """Validate an uploaded image and return `(base64_text, mime_type)`.

    Raises:
        NoImageError: If no file was sent or it is empty.
        InvalidFileTypeError: If the MIME type is not an allowed image type.
        FileTooLargeError: If the file is larger than `max_bytes`.
    """
    if image_file is None or not image_file.filename:
        raise NoImageError("No image file provided")

    mime_type = validate_image_type(image_file)

    # Read one byte past the limit so oversize uploads are caught without loading all of them.
    raw = await image_file.read(max_bytes + 1)
    if len(raw) > max_bytes:
        raise FileTooLargeError(f"Image must be less than {_format_limit(max_bytes)}")
    if not raw:
        raise NoImageError("Uploaded image file is empty")

    return base64.b64encode(raw).decode("ascii"), mime_type

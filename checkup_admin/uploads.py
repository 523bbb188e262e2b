"""Validation and upload of template and question images."""

from __future__ import annotations

from typing import Optional

from checkup_admin.api_client import AdminApiClient, ApiError, SessionExpiredError
from checkup_admin.log import get_logger

logger = get_logger(__name__)

TEMPLATE_IMAGE_MAX_BYTES = 5 * 1024 * 1024
QUESTION_IMAGE_MAX_BYTES = 500 * 1024


class UploadError(Exception):
    """Raised when an image is rejected or could not be uploaded."""


def _format_limit(max_bytes: int) -> str:
    if max_bytes >= 1024 * 1024:
        return f"{max_bytes // (1024 * 1024)} MB"
    return f"{max_bytes // 1024} KB"


def validate_image(content: bytes, content_type: Optional[str], max_bytes: int) -> None:
    """Reject non-image files and files above ``max_bytes``."""

    if not content_type or not content_type.startswith("image/"):
        raise UploadError("Please choose an image file.")
    if len(content) > max_bytes:
        raise UploadError(f"The image must not exceed {_format_limit(max_bytes)}.")


def upload_image(
    client: AdminApiClient,
    filename: str,
    content: bytes,
    content_type: Optional[str],
    max_bytes: int = TEMPLATE_IMAGE_MAX_BYTES,
) -> str:
    """Validate and upload an image, returning the stored URL."""

    validate_image(content, content_type, max_bytes)
    try:
        url = client.upload_file(filename, content, content_type or "application/octet-stream")
    except SessionExpiredError:
        raise
    except ApiError as exc:
        raise UploadError("Could not upload the image.") from exc
    logger.info("Uploaded %s (%d bytes)", filename, len(content))
    return url

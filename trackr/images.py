"""Cover image ingestion for ComicTrackr.

Covers are stored inline as `data:<mime>;base64,...` strings. Ingestion only
validates type and size; images are never resized or re-encoded.
"""

from __future__ import annotations

import base64
import mimetypes
from io import BytesIO
from pathlib import Path
from typing import Optional

from PIL import Image, UnidentifiedImageError

from .config import MAX_COVER_BYTES
from .errors import ValidationError
from .logging_config import get_logger

logger = get_logger(__name__)

COVER_FIELD = "cover_image"


def _format_size(num_bytes: int) -> str:
    return f"{num_bytes / (1024 * 1024):.0f}MB"


def sniff_mime(data: bytes) -> Optional[str]:
    """Return the MIME type Pillow recognises for data, or None."""
    try:
        with Image.open(BytesIO(data)) as im:
            return Image.MIME.get(im.format or "")
    except (UnidentifiedImageError, OSError):
        return None


def encode_data_url(data: bytes, mime: str) -> str:
    return f"data:{mime};base64,{base64.b64encode(data).decode('ascii')}"


def decoded_size(cover: str) -> int:
    """Decoded byte size of a data URL or bare base64 string."""
    payload = cover.split(",", 1)[1] if cover.startswith("data:") and "," in cover else cover
    payload = "".join(payload.split())
    padding = len(payload) - len(payload.rstrip("="))
    return max(0, len(payload) * 3 // 4 - padding)


def check_cover_size(cover: str, max_bytes: int = MAX_COVER_BYTES) -> None:
    if decoded_size(cover) > max_bytes:
        raise ValidationError(
            COVER_FIELD, f"Image file is too large (max {_format_size(max_bytes)})."
        )


def ingest_cover(
    data: bytes,
    content_type: Optional[str] = None,
    max_bytes: int = MAX_COVER_BYTES,
) -> str:
    """Validate raw image bytes and return them as a data URL.

    Size is checked before the type so oversized uploads are never parsed.
    When no content type is given the bytes are sniffed.
    """
    if len(data) > max_bytes:
        raise ValidationError(
            COVER_FIELD, f"Image file is too large (max {_format_size(max_bytes)})."
        )

    mime = (content_type or "").strip().lower() or sniff_mime(data)
    if not mime or not mime.startswith("image/"):
        raise ValidationError(
            COVER_FIELD, "Please select a valid image file (JPEG, PNG, GIF, WebP)."
        )

    logger.debug(f"Accepted cover image ({mime}, {len(data)} bytes)")
    return encode_data_url(data, mime)


def ingest_cover_file(path: Path, max_bytes: int = MAX_COVER_BYTES) -> str:
    """Read an image file and return it as a data URL."""
    try:
        size = path.stat().st_size
    except OSError as exc:
        raise ValidationError(COVER_FIELD, f"Error reading image file: {exc}") from exc
    if size > max_bytes:
        raise ValidationError(
            COVER_FIELD, f"Image file is too large (max {_format_size(max_bytes)})."
        )

    content_type, _ = mimetypes.guess_type(path.name)
    try:
        data = path.read_bytes()
    except OSError as exc:
        raise ValidationError(COVER_FIELD, f"Error reading image file: {exc}") from exc
    return ingest_cover(data, content_type, max_bytes=max_bytes)

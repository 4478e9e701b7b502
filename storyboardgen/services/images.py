"""
Image Payload Helpers

Decoding of ``data:`` URLs, mime detection and file extensions for stored
outputs.
"""

import base64
import binascii
import io
from typing import Optional, Tuple

from PIL import Image, UnidentifiedImageError

from storyboardgen.models.generation import DATA_URL_PATTERN

PREVIOUS_IMAGE_ID = "previous"
DEFAULT_MIME_TYPE = "image/png"


def decode_data_url(url: str) -> Tuple[bytes, str]:
    """Split a base64 ``data:`` URL into bytes and mime type."""
    match = DATA_URL_PATTERN.match(url)
    if not match:
        raise ValueError("Not a base64 data URL")
    try:
        data = base64.b64decode(match.group("data"), validate=True)
    except (binascii.Error, ValueError) as e:
        raise ValueError("Invalid base64 payload in data URL") from e
    return data, match.group("mime")


def extension_for(mime_type: str) -> str:
    """``image/jpeg`` -> ``jpeg``; falls back to ``png``."""
    parts = (mime_type or "").split("/")
    return parts[1] if len(parts) > 1 and parts[1] else "png"


def sniff_mime_type(data: bytes) -> Optional[str]:
    """Mime type from the image bytes themselves, or None if not an image."""
    try:
        with Image.open(io.BytesIO(data)) as image:
            fmt = image.format
    except (UnidentifiedImageError, OSError):
        return None
    return Image.MIME.get(fmt) if fmt else None

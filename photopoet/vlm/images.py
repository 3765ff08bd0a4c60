"""
Purpose:
- Turn uploaded bytes into a photo reference (base64 data URI) after checking it is a real image.
- Resolve a photo reference back into a PIL image for local backends (data URI or http(s) fetch).

Notes:
- Oversized images are downscaled before encoding so prompts stay small.
"""

from __future__ import annotations
import base64
import binascii
from io import BytesIO
from typing import Optional

import httpx
from PIL import Image, ImageOps, UnidentifiedImageError

from ..core.errors import CapabilityError, InvalidInput
from ..core.settings import settings

NO_FILE_MESSAGE = "No file selected."
READ_FAILED_MESSAGE = "Failed to read file."

_MIME_BY_FORMAT = {
    "JPEG": "image/jpeg",
    "PNG": "image/png",
    "GIF": "image/gif",
    "WEBP": "image/webp",
}


def _to_data_uri(raw: bytes, mime: str) -> str:
    return f"data:{mime};base64,{base64.b64encode(raw).decode('ascii')}"


def encode_upload(raw: Optional[bytes], max_bytes: Optional[int] = None, max_side: Optional[int] = None) -> str:
    """
    Validate uploaded bytes and return a data URI photo reference.
    Raises InvalidInput with a user-facing message on any failure.
    """
    max_bytes = max_bytes or settings.max_upload_bytes
    max_side = max_side or settings.max_image_side

    if not raw:
        raise InvalidInput(NO_FILE_MESSAGE)
    if len(raw) > max_bytes:
        raise InvalidInput(f"File is too large (max {max_bytes // (1024 * 1024)} MB).")

    try:
        with Image.open(BytesIO(raw)) as probe:
            probe.verify()
        img = Image.open(BytesIO(raw))
        img.load()
    except (UnidentifiedImageError, OSError, SyntaxError, ValueError) as e:
        raise InvalidInput(READ_FAILED_MESSAGE) from e

    fmt = (img.format or "").upper()
    allowed = {f.upper() for f in settings.allowed_image_formats}
    if fmt not in allowed or fmt not in _MIME_BY_FORMAT:
        raise InvalidInput(f"Unsupported image type '{fmt or 'unknown'}'. Allowed: {', '.join(sorted(allowed))}")

    if max(img.size) <= max_side:
        return _to_data_uri(raw, _MIME_BY_FORMAT[fmt])

    # Downscale, honoring EXIF orientation; keep alpha as PNG, everything else as JPEG
    img = ImageOps.exif_transpose(img)
    img.thumbnail((max_side, max_side))
    buf = BytesIO()
    if img.mode in ("RGBA", "LA", "P"):
        img.save(buf, format="PNG")
        return _to_data_uri(buf.getvalue(), "image/png")
    img.convert("RGB").save(buf, format="JPEG", quality=90)
    return _to_data_uri(buf.getvalue(), "image/jpeg")


def decode_data_uri(ref: str) -> bytes:
    header, sep, payload = ref.partition(",")
    if not sep or not header.startswith("data:") or ";base64" not in header:
        raise CapabilityError("photo reference is not a base64 data URI")
    try:
        return base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as e:
        raise CapabilityError(f"photo reference has invalid base64: {e}") from e


def fetch_bytes(url: str, timeout: Optional[float] = None) -> bytes:
    try:
        resp = httpx.get(url, timeout=timeout or settings.remote_fetch_timeout, follow_redirects=True)
        resp.raise_for_status()
    except httpx.HTTPError as e:
        raise CapabilityError(f"could not fetch photo {url}: {e}") from e
    return resp.content


def load_image(ref: str) -> Image.Image:
    """
    Resolve a photo reference into an RGB image with EXIF orientation applied.
    """
    ref = (ref or "").strip()
    if ref.startswith("data:"):
        raw = decode_data_uri(ref)
    elif ref.startswith(("http://", "https://")):
        raw = fetch_bytes(ref)
    else:
        raise CapabilityError("unsupported photo reference")
    try:
        img = Image.open(BytesIO(raw))
        return ImageOps.exif_transpose(img).convert("RGB")
    except (UnidentifiedImageError, OSError) as e:
        raise CapabilityError(f"photo reference is not a readable image: {e}") from e

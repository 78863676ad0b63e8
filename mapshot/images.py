"""Validation and persistence of rasterized captures."""

from __future__ import annotations

import io
import logging
from pathlib import Path
from typing import Optional

from filetype import guess
from PIL import Image, UnidentifiedImageError

from .models import CaptureResult

logger = logging.getLogger("mapshot")

MIN_CAPTURE_BYTES = 4096
SIGNATURES = {
    "png": b"\x89PNG\r\n\x1a\n",
    "jpeg": b"\xff\xd8\xff",
}


def detect_image_format(data: bytes) -> Optional[str]:
    """Detect image type using filetype; returns lowercase format name."""
    kind = guess(data)
    if kind and kind.mime.startswith("image/"):
        ext = kind.extension.lower()
        if ext in ("jpg", "jpeg"):
            return "jpeg"
        return ext
    return None


def is_uniform(data: bytes) -> bool:
    """True when every pixel in the image has the same value."""
    with Image.open(io.BytesIO(data)) as image:
        extrema = image.getextrema()
    if extrema and isinstance(extrema[0], tuple):
        return all(low == high for low, high in extrema)
    low, high = extrema
    return low == high


def validate_capture(
    data: Optional[bytes],
    expected_format: str = "png",
    min_bytes: int = MIN_CAPTURE_BYTES,
    reject_blank: bool = True,
) -> CaptureResult:
    """Check signature, size and content of a screenshot buffer."""
    if not data:
        return CaptureResult(reason="empty buffer")
    signature = SIGNATURES.get(expected_format)
    if signature is None or not data.startswith(signature):
        return CaptureResult(reason=f"missing {expected_format} signature")
    detected = detect_image_format(data)
    if detected != expected_format:
        return CaptureResult(reason=f"detected {detected or 'unknown'} data, expected {expected_format}")
    if len(data) <= min_bytes:
        return CaptureResult(reason=f"buffer too small ({len(data)} <= {min_bytes} bytes)")
    if reject_blank:
        try:
            if is_uniform(data):
                return CaptureResult(reason="capture is a single flat colour")
        except (UnidentifiedImageError, OSError) as exc:
            return CaptureResult(reason=f"image could not be decoded: {exc}")
    return CaptureResult(data=data, image_format=expected_format)


def write_image(destination: Path, data: bytes) -> Path:
    """Persist image bytes, creating the parent directory when needed."""
    destination.parent.mkdir(parents=True, exist_ok=True)
    destination.write_bytes(data)
    logger.debug("Wrote %d bytes to %s", len(data), destination)
    return destination

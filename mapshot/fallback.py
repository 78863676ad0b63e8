"""Placeholder output for targets whose capture could not be completed."""

from __future__ import annotations

import base64
import logging
from pathlib import Path

from .images import write_image
from .models import Target

logger = logging.getLogger("mapshot")

# Smallest valid PNG: a single RGBA pixel.
PLACEHOLDER_PNG = base64.b64decode(
    "iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAYAAAAfFcSJAAAADUlEQVR42mNkYPhfDwAChwGA60e6kgAAAABJRU5ErkJggg=="
)


def write_placeholder(target: Target, destination: Path, reason: str, attempts: int) -> Path:
    """Write the placeholder image so the target's output path always exists."""
    write_image(destination, PLACEHOLDER_PNG)
    logger.warning(
        "Capture of %s failed after %d attempt(s) (%s); wrote placeholder to %s",
        target.identifier,
        attempts,
        reason,
        destination,
    )
    return destination

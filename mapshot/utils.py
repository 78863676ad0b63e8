"""Utility helpers for target identifiers and output filenames."""

from __future__ import annotations

import re
from pathlib import Path

SLUG_PATTERN = re.compile(r"[^a-z0-9]+")


def slugify(value: str, fallback: str = "map") -> str:
    """Generate a filesystem-friendly slug using ASCII characters only."""
    normalized = value.encode("ascii", "ignore").decode("ascii").lower()
    normalized = SLUG_PATTERN.sub("-", normalized).strip("-")
    return normalized or fallback


def default_output_name(identifier: str, extension: str = "png") -> Path:
    return Path(f"{slugify(identifier)[:80]}.{extension}")

"""Configuration objects and constants for map capture."""

from __future__ import annotations

import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Callable, Mapping, Optional, Tuple

from .errors import ConfigError

DEFAULT_OUTPUT_DIR = "docs"
SUPPORTED_FORMATS = ("png", "jpeg")

# Control overlays drawn on top of the map. Hidden with visibility so layout and
# geometry of the map itself are untouched.
DEFAULT_CHROME_CSS = """
.leaflet-control-container,
.maplibregl-control-container,
.mapboxgl-control-container,
.ol-overlaycontainer-stopevent,
.gm-style-cc,
[role="dialog"],
.cookie-banner {
  visibility: hidden !important;
}
"""


@dataclass
class CaptureConfig:
    """Top-level settings that control navigation, detection and capture."""

    output_root: Path = Path(DEFAULT_OUTPUT_DIR)
    viewport_width: int = 1600
    viewport_height: int = 1000
    device_scale: float = 1.5
    stabilize_ms: int = 800
    stabilize_timeout_ms: int = 14_000
    poll_interval_ms: int = 150
    padding: int = 8
    min_visible_width: int = 100
    min_visible_height: int = 100
    max_attempts: int = 3
    retry_backoff: float = 2.0
    navigation_timeout: float = 120.0
    wait_until: str = "networkidle"
    wait_after_load: float = 1.0
    viewport_margin: int = 16
    max_viewport_side: int = 8192
    settle_after_resize_ms: int = 300
    image_format: str = "png"
    jpeg_quality: int = 90
    min_capture_bytes: int = 4096
    reject_blank: bool = True
    viewport_fallback: bool = True
    headless: bool = True
    chrome_css: str = DEFAULT_CHROME_CSS

    def __post_init__(self) -> None:
        self.output_root = Path(self.output_root)
        self.image_format = self.image_format.lower()
        if self.image_format == "jpg":
            self.image_format = "jpeg"
        if self.image_format not in SUPPORTED_FORMATS:
            raise ConfigError(f"Unsupported capture format: {self.image_format}")
        for name in ("viewport_width", "viewport_height", "max_attempts", "poll_interval_ms"):
            if getattr(self, name) <= 0:
                raise ConfigError(f"{name} must be positive")
        if self.device_scale <= 0:
            raise ConfigError("device_scale must be positive")
        for name in ("padding", "stabilize_ms", "stabilize_timeout_ms", "min_capture_bytes"):
            if getattr(self, name) < 0:
                raise ConfigError(f"{name} must not be negative")

    @property
    def output_extension(self) -> str:
        return "jpg" if self.image_format == "jpeg" else "png"

    @classmethod
    def from_env(
        cls,
        environ: Optional[Mapping[str, str]] = None,
        **overrides,
    ) -> "CaptureConfig":
        """Build a config from environment variables, then apply explicit overrides."""
        env = os.environ if environ is None else environ
        values = {}
        for var, (name, parse) in ENV_FIELDS.items():
            raw = env.get(var)
            if raw is None or not raw.strip():
                continue
            try:
                values[name] = parse(raw.strip())
            except ValueError as exc:
                raise ConfigError(f"{var}={raw!r} is not valid: {exc}") from exc
        values.update({key: value for key, value in overrides.items() if value is not None})
        known = {item.name for item in fields(cls)}
        unknown = set(values) - known
        if unknown:
            raise ConfigError(f"Unknown configuration fields: {', '.join(sorted(unknown))}")
        return cls(**values)


def _parse_bool(value: str) -> bool:
    lowered = value.lower()
    if lowered in {"1", "true", "yes", "on"}:
        return True
    if lowered in {"0", "false", "no", "off"}:
        return False
    raise ValueError("expected a boolean")


ENV_FIELDS: Mapping[str, Tuple[str, Callable[[str], object]]] = {
    "OUTPUT_DIR": ("output_root", Path),
    "VIEWPORT_W": ("viewport_width", int),
    "VIEWPORT_H": ("viewport_height", int),
    "DEVICE_SCALE": ("device_scale", float),
    "STABILIZE_MS": ("stabilize_ms", int),
    "STABILIZE_TIMEOUT_MS": ("stabilize_timeout_ms", int),
    "POLL_INTERVAL_MS": ("poll_interval_ms", int),
    "MAP_PADDING": ("padding", int),
    "MAX_ATTEMPTS": ("max_attempts", int),
    "NAV_TIMEOUT": ("navigation_timeout", float),
    "CAPTURE_FORMAT": ("image_format", str),
    "JPEG_QUALITY": ("jpeg_quality", int),
    "MIN_CAPTURE_BYTES": ("min_capture_bytes", int),
    "HEADLESS": ("headless", _parse_bool),
}

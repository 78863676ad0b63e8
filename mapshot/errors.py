"""Exception types raised while capturing a map."""

from __future__ import annotations


class ConfigError(ValueError):
    """Invalid configuration or target definitions."""


class CaptureError(Exception):
    """Failure of a single capture attempt."""

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


class NavigationFailure(CaptureError):
    """The page could not be loaded (network error or timeout)."""


class NoRegionFound(CaptureError):
    """No visible element qualified as the map region."""


class InvalidCapture(CaptureError):
    """The rasterized buffer failed format or size validation."""


class ViewportInsufficient(InvalidCapture):
    """The region could not be made to fit inside the viewport."""


class PageFailure(CaptureError):
    """The page, its context or the browser failed in the middle of an attempt."""

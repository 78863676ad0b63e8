"""Data models used throughout the capture pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Tuple

POLICY_LARGEST = "largest"
POLICY_UNION = "union"
POLICIES = (POLICY_LARGEST, POLICY_UNION)

ROLE_CANDIDATE = "candidate"
ROLE_LAYER = "layer"
ROLE_CONTAINER = "container"

STATUS_CAPTURED = "captured"
STATUS_PLACEHOLDER = "placeholder"


@dataclass(frozen=True)
class Target:
    """A named map page and the file its capture is written to."""

    identifier: str
    url: str
    output_path: Path
    selector: Optional[str] = None
    policy: str = POLICY_LARGEST
    layers: Tuple[str, ...] = ()
    exclude: Tuple[str, ...] = ()
    container: Optional[str] = None


@dataclass(frozen=True)
class BoundingBox:
    """Rectangle in page-relative CSS pixels."""

    x: float
    y: float
    width: float
    height: float

    @property
    def right(self) -> float:
        return self.x + self.width

    @property
    def bottom(self) -> float:
        return self.y + self.height

    @property
    def area(self) -> float:
        return self.width * self.height

    def key(self) -> Tuple[int, int, int, int]:
        """Quantized fingerprint used to compare geometry between samples."""
        return (
            int(round(self.x)),
            int(round(self.y)),
            int(round(self.width)),
            int(round(self.height)),
        )

    def union(self, other: "BoundingBox") -> "BoundingBox":
        left = min(self.x, other.x)
        top = min(self.y, other.y)
        return BoundingBox(
            left,
            top,
            max(self.right, other.right) - left,
            max(self.bottom, other.bottom) - top,
        )

    def intersect(self, other: "BoundingBox") -> Optional["BoundingBox"]:
        left = max(self.x, other.x)
        top = max(self.y, other.y)
        right = min(self.right, other.right)
        bottom = min(self.bottom, other.bottom)
        if right <= left or bottom <= top:
            return None
        return BoundingBox(left, top, right - left, bottom - top)

    def pad(self, padding: float) -> "BoundingBox":
        """Grow the box on every side, never moving the top-left below zero."""
        left = max(0.0, self.x - padding)
        top = max(0.0, self.y - padding)
        return BoundingBox(
            left,
            top,
            self.right + padding - left,
            self.bottom + padding - top,
        )

    def shift(self, dx: float, dy: float) -> "BoundingBox":
        return BoundingBox(self.x + dx, self.y + dy, self.width, self.height)

    def as_clip(self) -> dict:
        return {"x": self.x, "y": self.y, "width": self.width, "height": self.height}


@dataclass(frozen=True)
class SelectorSpec:
    """A selector the probe queries, with the role and tier of its matches."""

    selector: str
    role: str = ROLE_CANDIDATE
    priority: int = 0


@dataclass(frozen=True)
class CandidateElement:
    """An element reported by one probe call."""

    ref: int
    tag: str
    selector: str
    role: str
    priority: int
    box: BoundingBox
    visible: bool = True
    excluded: bool = False


@dataclass
class CaptureResult:
    """Outcome of validating one rasterized buffer."""

    data: Optional[bytes] = None
    image_format: Optional[str] = None
    reason: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.data is not None and self.reason is None

    @property
    def byte_length(self) -> int:
        return len(self.data) if self.data else 0


@dataclass
class TargetOutcome:
    """Per-target result reported back to the runner."""

    target: Target
    status: str
    output_path: Path
    attempts: int
    total_seconds: float
    reason: Optional[str] = None
    region: Optional[BoundingBox] = None
    byte_length: int = 0

    @property
    def captured(self) -> bool:
        return self.status == STATUS_CAPTURED


@dataclass
class RunSummary:
    """Aggregate of every target processed during one run."""

    outcomes: List[TargetOutcome] = field(default_factory=list)
    total_seconds: float = 0.0

    @property
    def captured(self) -> List[TargetOutcome]:
        return [outcome for outcome in self.outcomes if outcome.captured]

    @property
    def placeholders(self) -> List[TargetOutcome]:
        return [outcome for outcome in self.outcomes if not outcome.captured]

    @property
    def all_captured(self) -> bool:
        return not self.placeholders

"""Region selection over probed candidates.

Everything here is pure: the functions take the candidates reported by one probe
call and return boxes, so they can be exercised without a browser.

Candidates are ranked by selector tier first (a target's selector hint, then the
known map frameworks, then generic map-like tags), then by area, then by the order
the page reported them. The "largest" policy takes the head of that ranking; the
"union" policy merges every layer element into one box.
"""

from __future__ import annotations

from functools import reduce
from typing import Iterable, List, Optional, Sequence

from .errors import NoRegionFound
from .models import (
    POLICY_UNION,
    ROLE_CANDIDATE,
    ROLE_CONTAINER,
    ROLE_LAYER,
    BoundingBox,
    CandidateElement,
)


def rank_candidates(
    candidates: Iterable[CandidateElement],
    roles: Sequence[str] = (ROLE_CANDIDATE,),
) -> List[CandidateElement]:
    """Order visible candidates by tier, then area (largest first), then first-seen."""
    indexed = [
        (index, candidate)
        for index, candidate in enumerate(candidates)
        if candidate.visible and candidate.role in roles
    ]
    indexed.sort(key=lambda item: (item[1].priority, -item[1].box.area, item[0]))
    return [candidate for _, candidate in indexed]


def largest_box(
    candidates: Iterable[CandidateElement],
    roles: Sequence[str] = (ROLE_CANDIDATE,),
) -> Optional[BoundingBox]:
    ranked = rank_candidates(candidates, roles)
    for candidate in ranked:
        if candidate.box.area > 0:
            return candidate.box
    return None


def union_box(
    candidates: Iterable[CandidateElement],
    clip: Optional[BoundingBox] = None,
) -> Optional[BoundingBox]:
    """Bounding box of every visible, non-excluded layer element."""
    boxes = [
        candidate.box
        for candidate in candidates
        if candidate.role == ROLE_LAYER and candidate.visible and not candidate.excluded
    ]
    if not boxes:
        return None
    merged = reduce(lambda left, right: left.union(right), boxes)
    if clip is not None:
        merged = merged.intersect(clip)
    if merged is None or merged.width <= 0 or merged.height <= 0:
        return None
    return merged


def region_for_policy(
    candidates: Sequence[CandidateElement],
    policy: str,
) -> Optional[BoundingBox]:
    """Raw (unpadded) region for a policy; union falls back to the largest element."""
    if policy == POLICY_UNION:
        container = largest_box(candidates, roles=(ROLE_CONTAINER,))
        merged = union_box(candidates, clip=container)
        if merged is not None:
            return merged
    return largest_box(candidates)


def finalize_region(box: Optional[BoundingBox], padding: float) -> BoundingBox:
    """Pad a region and guarantee it has a positive area."""
    if box is None:
        raise NoRegionFound("no visible map candidate")
    if box.width <= 0 or box.height <= 0:
        raise NoRegionFound(f"region has no area: {box.key()}")
    return box.pad(padding)


def select_largest(candidates: Sequence[CandidateElement], padding: float) -> BoundingBox:
    return finalize_region(largest_box(candidates), padding)


def select_union(
    candidates: Sequence[CandidateElement],
    padding: float,
    clip: Optional[BoundingBox] = None,
) -> BoundingBox:
    return finalize_region(union_box(candidates, clip=clip), padding)

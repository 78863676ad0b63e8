"""Geometry probe: read bounding boxes of map-like elements from the live page."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Sequence

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Page

from .models import (
    POLICY_UNION,
    ROLE_CANDIDATE,
    ROLE_CONTAINER,
    ROLE_LAYER,
    BoundingBox,
    CandidateElement,
    SelectorSpec,
    Target,
)

logger = logging.getLogger("mapshot")

# Each entry is its own tier, tried in this order.
DEFAULT_CANDIDATE_SELECTORS = (
    "canvas.maplibregl-canvas",
    ".maplibregl-canvas",
    "canvas.mapboxgl-canvas",
    "#map canvas",
    "#map",
    ".leaflet-pane .leaflet-layer",
    ".leaflet-pane",
    ".leaflet-container",
    "main canvas",
    "canvas",
)

# Last tier: any map-like tag.
BROAD_SELECTORS = (
    "canvas",
    "svg",
    "img",
    "[id*='map']",
    "[class*='map']",
)

DEFAULT_LAYER_SELECTORS = (
    ".leaflet-tile-pane img.leaflet-tile",
    ".leaflet-overlay-pane svg",
    ".leaflet-overlay-pane canvas",
    ".leaflet-marker-pane img",
    "canvas.maplibregl-canvas",
    "canvas.mapboxgl-canvas",
    ".ol-layer canvas",
)

DEFAULT_CONTAINER_SELECTORS = (
    ".leaflet-container",
    ".maplibregl-map",
    ".mapboxgl-map",
    ".ol-viewport",
)

DEFAULT_EXCLUDE_SELECTORS = (
    ".leaflet-control-container",
    ".maplibregl-control-container",
    ".mapboxgl-control-container",
    ".ol-control",
)

PROBE_SCRIPT = """
({ specs, exclude }) => {
  const doc = document.documentElement;
  const viewport = {
    width: Math.max(doc ? doc.clientWidth : 0, window.innerWidth || 0),
    height: Math.max(doc ? doc.clientHeight : 0, window.innerHeight || 0),
  };
  const seen = {};
  const elements = [];
  specs.forEach((spec, specIndex) => {
    let nodes = [];
    try {
      nodes = document.querySelectorAll(spec.selector);
    } catch (err) {
      return;
    }
    const roleSeen = seen[spec.role] || (seen[spec.role] = new Set());
    for (const el of nodes) {
      if (roleSeen.has(el)) continue;
      roleSeen.add(el);
      const rect = el.getBoundingClientRect();
      const style = window.getComputedStyle(el);
      let visible = style.display !== "none"
        && style.visibility !== "hidden"
        && style.visibility !== "collapse"
        && parseFloat(style.opacity || "1") > 0;
      if (visible && typeof el.checkVisibility === "function") {
        visible = el.checkVisibility({ opacityProperty: true, visibilityProperty: true });
      }
      const excluded = exclude.some((sel) => {
        try {
          return Boolean(el.closest(sel));
        } catch (err) {
          return false;
        }
      });
      elements.push({
        ref: elements.length,
        spec: specIndex,
        tag: el.tagName.toLowerCase(),
        x: rect.left,
        y: rect.top,
        width: rect.width,
        height: rect.height,
        visible,
        excluded,
      });
    }
  });
  return {
    viewport,
    scroll: { x: window.scrollX || 0, y: window.scrollY || 0 },
    elements,
  };
}
"""


SCROLL_SCRIPT = "() => ({ x: window.scrollX || 0, y: window.scrollY || 0 })"


def candidate_specs(hint: Optional[str] = None) -> List[SelectorSpec]:
    """Selector tiers for the largest-element policy."""
    selectors: List[str] = []
    if hint:
        selectors.append(hint)
    selectors.extend(DEFAULT_CANDIDATE_SELECTORS)
    specs = [
        SelectorSpec(selector, ROLE_CANDIDATE, priority)
        for priority, selector in enumerate(selectors)
    ]
    broad_tier = len(specs)
    specs.extend(SelectorSpec(selector, ROLE_CANDIDATE, broad_tier) for selector in BROAD_SELECTORS)
    return specs


def build_selector_plan(target: Target) -> List[SelectorSpec]:
    """All selectors the probe needs for a target, according to its policy."""
    specs: List[SelectorSpec] = []
    if target.policy == POLICY_UNION:
        layers = target.layers or DEFAULT_LAYER_SELECTORS
        specs.extend(SelectorSpec(selector, ROLE_LAYER) for selector in layers)
        containers = (target.container,) if target.container else DEFAULT_CONTAINER_SELECTORS
        specs.extend(SelectorSpec(selector, ROLE_CONTAINER) for selector in containers)
    specs.extend(candidate_specs(target.selector))
    return specs


def exclude_selectors(target: Target) -> List[str]:
    return list(target.exclude or DEFAULT_EXCLUDE_SELECTORS)


def _on_screen(rect: Dict[str, float], viewport: Dict[str, float]) -> bool:
    bottom = rect["y"] + rect["height"]
    right = rect["x"] + rect["width"]
    return (
        bottom > 0
        and right > 0
        and rect["y"] < viewport.get("height", 0)
        and rect["x"] < viewport.get("width", 0)
    )


def parse_probe_payload(
    payload: Any,
    specs: Sequence[SelectorSpec],
    min_width: float,
    min_height: float,
) -> List[CandidateElement]:
    """Turn the raw probe result into candidates that pass the visibility rules."""
    if not isinstance(payload, dict):
        return []
    viewport = payload.get("viewport") or {}
    scroll = payload.get("scroll") or {}
    scroll_x = float(scroll.get("x") or 0)
    scroll_y = float(scroll.get("y") or 0)

    candidates: List[CandidateElement] = []
    for raw in payload.get("elements") or []:
        try:
            spec = specs[int(raw["spec"])]
            rect = {key: float(raw[key]) for key in ("x", "y", "width", "height")}
        except (KeyError, IndexError, TypeError, ValueError):
            logger.debug("Ignoring malformed probe entry: %r", raw)
            continue
        if not raw.get("visible", False):
            continue
        if rect["width"] <= min_width or rect["height"] <= min_height:
            continue
        if not _on_screen(rect, viewport):
            continue
        candidates.append(
            CandidateElement(
                ref=int(raw.get("ref", len(candidates))),
                tag=str(raw.get("tag", "")),
                selector=spec.selector,
                role=spec.role,
                priority=spec.priority,
                box=BoundingBox(
                    rect["x"] + scroll_x,
                    rect["y"] + scroll_y,
                    rect["width"],
                    rect["height"],
                ),
                visible=True,
                excluded=bool(raw.get("excluded", False)),
            )
        )
    return candidates


class GeometryProbe:
    """Callable that samples candidate geometry from a page."""

    def __init__(
        self,
        page: Page,
        specs: Sequence[SelectorSpec],
        exclude: Sequence[str] = (),
        min_width: float = 100,
        min_height: float = 100,
    ) -> None:
        self.page = page
        self.specs = list(specs)
        self.exclude = list(exclude)
        self.min_width = min_width
        self.min_height = min_height

    async def __call__(self) -> List[CandidateElement]:
        arg = {
            "specs": [{"selector": spec.selector, "role": spec.role} for spec in self.specs],
            "exclude": self.exclude,
        }
        try:
            payload = await self.page.evaluate(PROBE_SCRIPT, arg)
        except PlaywrightError as exc:
            # The document can be swapped out mid-evaluate while the map app routes.
            logger.debug("Geometry probe failed: %s", exc)
            return []
        return parse_probe_payload(payload, self.specs, self.min_width, self.min_height)

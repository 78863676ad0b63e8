from __future__ import annotations

import asyncio
from pathlib import Path

from fakes import FakePage, element, payload
from playwright.async_api import Error as PlaywrightError

from mapshot.models import (
    POLICY_UNION,
    ROLE_CANDIDATE,
    ROLE_CONTAINER,
    ROLE_LAYER,
    BoundingBox,
    SelectorSpec,
    Target,
)
from mapshot.probe import (
    BROAD_SELECTORS,
    DEFAULT_CANDIDATE_SELECTORS,
    DEFAULT_EXCLUDE_SELECTORS,
    DEFAULT_LAYER_SELECTORS,
    GeometryProbe,
    build_selector_plan,
    candidate_specs,
    exclude_selectors,
    parse_probe_payload,
)

SPECS = [
    SelectorSpec("canvas.maplibregl-canvas", ROLE_CANDIDATE, 0),
    SelectorSpec(".leaflet-tile", ROLE_LAYER, 1),
]


def _parse(raw, min_size=100):
    return parse_probe_payload(raw, SPECS, min_size, min_size)


def test_parse_keeps_visible_on_screen_elements() -> None:
    candidates = _parse(payload(element(10, 20, 800, 600)))
    assert len(candidates) == 1
    candidate = candidates[0]
    assert candidate.box == BoundingBox(10, 20, 800, 600)
    assert candidate.selector == "canvas.maplibregl-canvas"
    assert candidate.role == ROLE_CANDIDATE
    assert candidate.visible


def test_parse_drops_hidden_and_undersized_elements() -> None:
    raw = payload(
        element(0, 0, 800, 600, visible=False),
        element(0, 0, 100, 600),
        element(0, 0, 600, 90),
    )
    assert _parse(raw) == []


def test_parse_drops_elements_outside_the_viewport() -> None:
    raw = payload(
        element(0, -700, 800, 600),
        element(-900, 0, 800, 600),
        element(0, 1000, 800, 600),
        element(1600, 0, 800, 600),
    )
    assert _parse(raw) == []


def test_parse_keeps_partially_visible_elements() -> None:
    raw = payload(element(-200, 900, 800, 600))
    assert [c.box for c in _parse(raw)] == [BoundingBox(-200, 900, 800, 600)]


def test_parse_converts_to_page_coordinates() -> None:
    raw = payload(element(10, 20, 800, 600), scroll=(0, 300))
    assert _parse(raw)[0].box == BoundingBox(10, 320, 800, 600)


def test_parse_carries_role_priority_and_exclusion() -> None:
    raw = payload(element(0, 0, 256, 256, spec=1, excluded=True, tag="img"))
    candidate = _parse(raw)[0]
    assert candidate.role == ROLE_LAYER
    assert candidate.priority == 1
    assert candidate.excluded
    assert candidate.tag == "img"


def test_parse_tolerates_malformed_payloads() -> None:
    assert _parse(None) == []
    assert _parse({"elements": None}) == []
    raw = payload(element(0, 0, 800, 600, spec=7), {"spec": 0, "x": "wide"})
    assert _parse(raw) == []


def test_candidate_specs_put_hint_first_and_broad_tags_last() -> None:
    specs = candidate_specs("#world-map")
    assert specs[0] == SelectorSpec("#world-map", ROLE_CANDIDATE, 0)
    assert [s.selector for s in specs[1 : 1 + len(DEFAULT_CANDIDATE_SELECTORS)]] == list(
        DEFAULT_CANDIDATE_SELECTORS
    )
    broad = specs[-len(BROAD_SELECTORS) :]
    assert [s.selector for s in broad] == list(BROAD_SELECTORS)
    assert len({s.priority for s in broad}) == 1
    assert broad[0].priority > specs[-len(BROAD_SELECTORS) - 1].priority


def test_union_plan_includes_layers_and_containers() -> None:
    target = Target("t", "https://example.com", Path("t.png"), policy=POLICY_UNION)
    specs = build_selector_plan(target)
    roles = [spec.role for spec in specs]
    assert roles[: len(DEFAULT_LAYER_SELECTORS)] == [ROLE_LAYER] * len(DEFAULT_LAYER_SELECTORS)
    assert ROLE_CONTAINER in roles
    assert ROLE_CANDIDATE in roles
    assert exclude_selectors(target) == list(DEFAULT_EXCLUDE_SELECTORS)


def test_union_plan_honours_target_overrides() -> None:
    target = Target(
        "t",
        "https://example.com",
        Path("t.png"),
        policy=POLICY_UNION,
        layers=(".tiles img",),
        container="#viewer",
        exclude=(".toolbar",),
    )
    specs = build_selector_plan(target)
    assert specs[0] == SelectorSpec(".tiles img", ROLE_LAYER, 0)
    assert specs[1] == SelectorSpec("#viewer", ROLE_CONTAINER, 0)
    assert exclude_selectors(target) == [".toolbar"]


def test_largest_plan_has_only_candidates() -> None:
    target = Target("t", "https://example.com", Path("t.png"))
    assert {spec.role for spec in build_selector_plan(target)} == {ROLE_CANDIDATE}


def test_geometry_probe_sends_selectors_and_parses_result() -> None:
    page = FakePage(payloads=[payload(element(0, 0, 640, 480))])
    probe = GeometryProbe(page, SPECS, exclude=[".controls"])
    candidates = asyncio.run(probe())
    assert [c.box for c in candidates] == [BoundingBox(0, 0, 640, 480)]
    sent = page.evaluate_calls[0]
    assert sent["exclude"] == [".controls"]
    assert sent["specs"][1] == {"selector": ".leaflet-tile", "role": ROLE_LAYER}


def test_geometry_probe_returns_empty_when_evaluate_fails() -> None:
    class BrokenPage(FakePage):
        async def evaluate(self, script, arg=None):
            raise PlaywrightError("Execution context was destroyed")

    probe = GeometryProbe(BrokenPage(), SPECS)
    assert asyncio.run(probe()) == []

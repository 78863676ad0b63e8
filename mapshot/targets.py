"""Built-in capture targets and loading of target lists from JSON."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Iterable, List, Optional, Sequence

from .errors import ConfigError
from .models import POLICIES, POLICY_LARGEST, Target
from .utils import default_output_name

logger = logging.getLogger("mapshot")

DEFAULT_TARGETS: List[Target] = [
    Target(
        identifier="kilima",
        url="https://palia.th.gl/rummage-pile?map=kilima-valley",
        output_path=Path("kilima.png"),
    ),
    Target(
        identifier="bahari",
        url="https://palia.th.gl/rummage-pile?map=bahari-bay",
        output_path=Path("bahari.png"),
    ),
    Target(
        identifier="elderwood",
        url="https://palia.th.gl/rummage-pile?map=elderwood",
        output_path=Path("elderwood.png"),
    ),
]


def _string_tuple(value, field_name: str, identifier: str) -> tuple:
    if value is None:
        return ()
    if isinstance(value, str):
        return (value,)
    if isinstance(value, list) and all(isinstance(item, str) for item in value):
        return tuple(value)
    raise ConfigError(f"Target {identifier!r}: {field_name} must be a string or list of strings")


def target_from_dict(entry: dict, extension: str = "png") -> Target:
    """Convert one JSON object into a Target."""
    if not isinstance(entry, dict):
        raise ConfigError(f"Target entries must be objects, got {type(entry).__name__}")
    url = entry.get("url")
    if not url or not isinstance(url, str):
        raise ConfigError(f"Target entry is missing a url: {entry!r}")
    identifier = entry.get("id") or entry.get("identifier") or url
    out = entry.get("out") or entry.get("output")
    output_path = Path(out) if out else default_output_name(identifier, extension)
    policy = entry.get("policy", POLICY_LARGEST)
    if policy not in POLICIES:
        raise ConfigError(f"Target {identifier!r}: unknown policy {policy!r}")
    return Target(
        identifier=identifier,
        url=url,
        output_path=output_path,
        selector=entry.get("selector") or None,
        policy=policy,
        layers=_string_tuple(entry.get("layers"), "layers", identifier),
        exclude=_string_tuple(entry.get("exclude"), "exclude", identifier),
        container=entry.get("container") or None,
    )


def load_targets(path: Path, extension: str = "png") -> List[Target]:
    """Read an ordered list of targets from a JSON file."""
    try:
        raw = json.loads(Path(path).read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise ConfigError(f"Could not read targets from {path}: {exc}") from exc
    if isinstance(raw, dict):
        raw = raw.get("targets")
    if not isinstance(raw, list) or not raw:
        raise ConfigError(f"{path} does not contain a non-empty list of targets")
    targets = [target_from_dict(entry, extension) for entry in raw]
    _check_unique(targets)
    logger.debug("Loaded %d target(s) from %s", len(targets), path)
    return targets


def _check_unique(targets: Iterable[Target]) -> None:
    seen_ids = set()
    seen_paths = set()
    for target in targets:
        if target.identifier in seen_ids:
            raise ConfigError(f"Duplicate target identifier: {target.identifier}")
        if target.output_path in seen_paths:
            raise ConfigError(f"Duplicate output path: {target.output_path}")
        seen_ids.add(target.identifier)
        seen_paths.add(target.output_path)


def filter_targets(
    targets: Sequence[Target],
    only: Optional[Sequence[str]] = None,
) -> List[Target]:
    """Keep only the named targets, preserving the configured order."""
    if not only:
        return list(targets)
    wanted = set(only)
    known = {target.identifier for target in targets}
    missing = wanted - known
    if missing:
        raise ConfigError(f"Unknown target(s): {', '.join(sorted(missing))}")
    return [target for target in targets if target.identifier in wanted]

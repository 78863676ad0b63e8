"""MCP server exposing a single-page map capture tool."""

from __future__ import annotations

import logging
import tempfile
from pathlib import Path

from mcp.server.fastmcp import FastMCP, Image

from .config import CaptureConfig
from .errors import ConfigError
from .models import POLICIES, Target
from .runner import run_capture

logger = logging.getLogger("mapshot.mcp")
logger.setLevel(logging.ERROR)

mcp = FastMCP(name="mapshot")


async def _capture_once(url: str, policy: str, config: CaptureConfig) -> bytes:
    target = Target(
        identifier="mcp",
        url=url,
        output_path=Path(f"capture.{config.output_extension}"),
        policy=policy,
    )
    summary = await run_capture([target], config)
    outcome = summary.outcomes[0]
    if not outcome.captured:
        logger.error("Capture of %s fell back to a placeholder: %s", url, outcome.reason)
        raise RuntimeError(f"Failed to capture {url}: {outcome.reason}")
    return outcome.output_path.read_bytes()


@mcp.tool()
async def capture(
    url: str,
    policy: str = "largest",
) -> Image:
    """Render a web map with Playwright and return an image of the map area."""

    if policy not in POLICIES:
        raise ConfigError(f"policy must be one of {', '.join(POLICIES)}")
    with tempfile.TemporaryDirectory(prefix="mapshot-") as tmp_dir:
        config = CaptureConfig.from_env(output_root=Path(tmp_dir), max_attempts=2)
        data = await _capture_once(url, policy, config)
    return Image(data=data, format=config.output_extension)


def main() -> None:
    """Entry point for running the MCP server."""
    logging.basicConfig(level=logging.ERROR)
    mcp.run()


if __name__ == "__main__":
    main()

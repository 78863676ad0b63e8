"""High-level orchestration: one browser, one fresh context per target."""

from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import List, Optional, Sequence

from playwright.async_api import Browser, BrowserContext, async_playwright
from playwright.async_api import Error as PlaywrightError

from .capture import MapCapturer
from .config import CaptureConfig
from .models import RunSummary, Target

logger = logging.getLogger("mapshot")


def prepare_output_root(config: CaptureConfig) -> Path:
    """Create the output directory; failures here abort the run."""
    config.output_root.mkdir(parents=True, exist_ok=True)
    return config.output_root


async def close_context(context: BrowserContext) -> None:
    try:
        await context.close()
    except PlaywrightError as exc:
        logger.debug("Could not close browser context: %s", exc)


async def capture_targets(
    browser: Browser,
    targets: Sequence[Target],
    config: CaptureConfig,
    capturer: Optional[MapCapturer] = None,
) -> RunSummary:
    """Capture each target sequentially, isolating them in separate contexts."""
    capturer = capturer or MapCapturer(config)
    summary = RunSummary()
    overall_start = time.perf_counter()
    for index, target in enumerate(targets, start=1):
        logger.info("Capturing %s (%d/%d)", target.identifier, index, len(targets))
        context = None
        try:
            context = await browser.new_context(
                viewport={"width": config.viewport_width, "height": config.viewport_height},
                device_scale_factor=config.device_scale,
            )
            page = await context.new_page()
            outcome = await capturer.capture_target(page, target)
        except PlaywrightError as exc:
            outcome = capturer.give_up(target, f"PageFailure: could not open a page: {exc}", 0)
        finally:
            if context is not None:
                await close_context(context)
        summary.outcomes.append(outcome)
    summary.total_seconds = time.perf_counter() - overall_start
    return summary


async def run_capture(
    targets: List[Target],
    config: CaptureConfig,
    capturer: Optional[MapCapturer] = None,
) -> RunSummary:
    """Launch Chromium and capture every target into the output directory."""
    prepare_output_root(config)
    async with async_playwright() as playwright:
        browser = await playwright.chromium.launch(headless=config.headless)
        try:
            return await capture_targets(browser, targets, config, capturer)
        finally:
            await browser.close()

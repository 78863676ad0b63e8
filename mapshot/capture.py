"""Per-target capture: navigate, locate the map, rasterize, validate, retry."""

from __future__ import annotations

import asyncio
import logging
import math
import time
from pathlib import Path
from typing import Awaitable, Callable, Optional, Tuple

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Page
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from .config import CaptureConfig
from .errors import (
    CaptureError,
    InvalidCapture,
    NavigationFailure,
    PageFailure,
    ViewportInsufficient,
)
from .fallback import write_placeholder
from .images import validate_capture, write_image
from .models import (
    STATUS_CAPTURED,
    STATUS_PLACEHOLDER,
    BoundingBox,
    CaptureResult,
    Target,
    TargetOutcome,
)
from .probe import SCROLL_SCRIPT, GeometryProbe, build_selector_plan, exclude_selectors
from .selection import finalize_region, region_for_policy
from .stabilize import StabilizationDetector

logger = logging.getLogger("mapshot")


class MapCapturer:
    """Runs the capture attempts for one target at a time on a given page."""

    def __init__(
        self,
        config: CaptureConfig,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.config = config
        self.clock = clock
        self.sleep = sleep

    def output_path_for(self, target: Target) -> Path:
        if target.output_path.is_absolute():
            return target.output_path
        return self.config.output_root / target.output_path

    async def navigate(self, page: Page, target: Target) -> None:
        logger.info("Loading %s", target.url)
        try:
            response = await page.goto(
                target.url,
                wait_until=self.config.wait_until,
                timeout=self.config.navigation_timeout * 1000,
            )
        except PlaywrightTimeoutError as exc:
            raise NavigationFailure(f"timeout while loading {target.url}: {exc}") from exc
        except PlaywrightError as exc:
            raise NavigationFailure(f"error while loading {target.url}: {exc}") from exc
        if response is not None and response.status >= 400:
            raise NavigationFailure(f"{target.url} answered HTTP {response.status}")
        if self.config.wait_after_load:
            await page.wait_for_timeout(int(self.config.wait_after_load * 1000))

    async def suppress_chrome(self, page: Page) -> None:
        css = self.config.chrome_css
        if not css or not css.strip():
            return
        try:
            await page.add_style_tag(content=css)
        except PlaywrightError as exc:
            logger.debug("Could not inject chrome overrides: %s", exc)

    async def locate_region(
        self,
        page: Page,
        target: Target,
        final_attempt: bool = False,
    ) -> Optional[BoundingBox]:
        """Wait for the map geometry to settle and return the padded region.

        Returns None only on the final attempt with the viewport fallback enabled.
        """
        config = self.config
        probe = GeometryProbe(
            page,
            build_selector_plan(target),
            exclude_selectors(target),
            min_width=config.min_visible_width,
            min_height=config.min_visible_height,
        )
        detector = StabilizationDetector(
            probe,
            select=lambda candidates: region_for_policy(candidates, target.policy),
            threshold=config.stabilize_ms / 1000,
            timeout=config.stabilize_timeout_ms / 1000,
            interval=config.poll_interval_ms / 1000,
            clock=self.clock,
            sleep=self.sleep,
        )
        result = await detector.run()
        if result.box is None and final_attempt and config.viewport_fallback:
            logger.info("No map region found for %s; capturing the viewport", target.identifier)
            return None
        return finalize_region(result.box, config.padding)

    async def viewport_clip(self, page: Page, region: BoundingBox) -> BoundingBox:
        """Translate a page-relative region into the viewport-relative clip screenshots use."""
        offset = await page.evaluate(SCROLL_SCRIPT)
        scroll_x = float((offset or {}).get("x") or 0)
        scroll_y = float((offset or {}).get("y") or 0)
        return region.shift(-scroll_x, -scroll_y)

    async def ensure_viewport(self, page: Page, region: BoundingBox) -> bool:
        """Grow the viewport so the viewport-relative region plus margin fits.

        Returns True if the viewport was resized.
        """
        config = self.config
        current = page.viewport_size or {
            "width": config.viewport_width,
            "height": config.viewport_height,
        }
        needed_width = math.ceil(region.right + config.viewport_margin)
        needed_height = math.ceil(region.bottom + config.viewport_margin)
        if needed_width <= current["width"] and needed_height <= current["height"]:
            return False
        if needed_width > config.max_viewport_side or needed_height > config.max_viewport_side:
            raise ViewportInsufficient(
                f"region {region.key()} needs a {needed_width}x{needed_height} viewport"
            )
        size = {
            "width": max(current["width"], needed_width),
            "height": max(current["height"], needed_height),
        }
        logger.info("Enlarging viewport to %dx%d", size["width"], size["height"])
        try:
            await page.set_viewport_size(size)
        except PlaywrightError as exc:
            raise ViewportInsufficient(f"could not resize viewport: {exc}") from exc
        applied = page.viewport_size or size
        if applied["width"] < needed_width or applied["height"] < needed_height:
            raise ViewportInsufficient(
                f"viewport is {applied['width']}x{applied['height']}, "
                f"needed {needed_width}x{needed_height}"
            )
        if config.settle_after_resize_ms:
            await page.wait_for_timeout(config.settle_after_resize_ms)
        return True

    async def rasterize(self, page: Page, clip: Optional[BoundingBox]) -> CaptureResult:
        """Screenshot the viewport-relative clip, or the whole viewport when clip is None."""
        config = self.config
        options = {
            "type": config.image_format,
            "timeout": config.navigation_timeout * 1000,
        }
        if clip is not None:
            options["clip"] = clip.as_clip()
        if config.image_format == "jpeg":
            options["quality"] = config.jpeg_quality
        try:
            data = await page.screenshot(**options)
        except PlaywrightError as exc:
            raise InvalidCapture(f"screenshot failed: {exc}") from exc
        result = validate_capture(
            data,
            expected_format=config.image_format,
            min_bytes=config.min_capture_bytes,
            reject_blank=config.reject_blank,
        )
        if not result.ok:
            raise InvalidCapture(result.reason or "invalid capture")
        return result

    async def attempt(
        self,
        page: Page,
        target: Target,
        final_attempt: bool = False,
    ) -> Tuple[CaptureResult, Optional[BoundingBox]]:
        """One pass over navigate, detect, resize, rasterize and validate.

        The returned region is page-relative, or None for a viewport capture.
        """
        try:
            await self.navigate(page, target)
            await self.suppress_chrome(page)
            region = await self.locate_region(page, target, final_attempt)
            if region is None:
                return await self.rasterize(page, None), None
            clip = await self.viewport_clip(page, region)
            if await self.ensure_viewport(page, clip):
                clip = await self.viewport_clip(page, region)
            return await self.rasterize(page, clip), region
        except PlaywrightError as exc:
            raise PageFailure(f"browser error while capturing {target.url}: {exc}") from exc

    def give_up(
        self,
        target: Target,
        reason: str,
        attempts: int,
        start: Optional[float] = None,
    ) -> TargetOutcome:
        """Write the placeholder for a target and report it."""
        destination = self.output_path_for(target)
        write_placeholder(target, destination, reason, attempts)
        elapsed = time.perf_counter() - start if start is not None else 0.0
        return TargetOutcome(
            target=target,
            status=STATUS_PLACEHOLDER,
            output_path=destination,
            attempts=attempts,
            total_seconds=elapsed,
            reason=reason,
        )

    async def capture_target(self, page: Page, target: Target) -> TargetOutcome:
        """Capture a target with retries; writes exactly one file either way."""
        destination = self.output_path_for(target)
        max_attempts = self.config.max_attempts
        start = time.perf_counter()
        reason = "no attempt was made"

        for attempt in range(1, max_attempts + 1):
            final_attempt = attempt == max_attempts
            try:
                result, region = await self.attempt(page, target, final_attempt)
            except CaptureError as exc:
                reason = f"{type(exc).__name__}: {exc.reason}"
                logger.info(
                    "Attempt %d/%d for %s failed: %s",
                    attempt,
                    max_attempts,
                    target.identifier,
                    reason,
                )
                if not final_attempt and self.config.retry_backoff:
                    await self.sleep(self.config.retry_backoff)
                continue

            write_image(destination, result.data)
            logger.info(
                "Saved %s (%d bytes, region %s) to %s",
                target.identifier,
                result.byte_length,
                region.key() if region else "viewport",
                destination,
            )
            return TargetOutcome(
                target=target,
                status=STATUS_CAPTURED,
                output_path=destination,
                attempts=attempt,
                total_seconds=time.perf_counter() - start,
                region=region,
                byte_length=result.byte_length,
            )

        return self.give_up(target, reason, max_attempts, start)

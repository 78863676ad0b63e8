"""Poll the geometry probe until the map region stops moving."""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, List, Optional, Sequence, Tuple

from .models import BoundingBox, CandidateElement
from .selection import largest_box

logger = logging.getLogger("mapshot")

PROBING = "probing"
STABLE = "stable"
TIMEOUT = "timeout"

Probe = Callable[[], Awaitable[List[CandidateElement]]]
RegionRule = Callable[[Sequence[CandidateElement]], Optional[BoundingBox]]


@dataclass
class StabilizationResult:
    """Terminal state of one detector run."""

    state: str
    box: Optional[BoundingBox]
    ticks: int
    elapsed: float

    @property
    def stable(self) -> bool:
        return self.state == STABLE


class StabilizationDetector:
    """State machine: PROBING until the region key holds for ``threshold`` seconds.

    ``observe`` is the pure transition and takes timestamps explicitly; ``run``
    drives it from the injected clock and sleep so tests never wait for real.
    """

    def __init__(
        self,
        probe: Probe,
        select: RegionRule = largest_box,
        threshold: float = 0.8,
        timeout: float = 14.0,
        interval: float = 0.15,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.probe = probe
        self.select = select
        self.threshold = threshold
        self.timeout = timeout
        self.interval = interval
        self.clock = clock
        self.sleep = sleep
        self.reset(0.0)

    def reset(self, now: float) -> None:
        self.state = PROBING
        self.started_at = now
        self.last_key: Optional[Tuple[int, int, int, int]] = None
        self.stable_since: Optional[float] = None
        self.best: Optional[BoundingBox] = None
        self.ticks = 0

    def observe(self, box: Optional[BoundingBox], now: float) -> str:
        """Feed one sample taken at ``now`` and return the resulting state."""
        if self.state != PROBING:
            return self.state
        self.ticks += 1
        if box is None:
            self.last_key = None
            self.stable_since = None
        else:
            self.best = box
            key = box.key()
            if key == self.last_key and self.stable_since is not None:
                if now - self.stable_since >= self.threshold:
                    self.state = STABLE
            else:
                self.last_key = key
                self.stable_since = now
        if self.state == PROBING and now - self.started_at >= self.timeout:
            self.state = TIMEOUT
        return self.state

    def result(self, now: float) -> StabilizationResult:
        box = self.best if self.state in (STABLE, TIMEOUT) else None
        return StabilizationResult(self.state, box, self.ticks, now - self.started_at)

    async def _sample(self, remaining: float) -> List[CandidateElement]:
        try:
            return await asyncio.wait_for(self.probe(), timeout=remaining)
        except asyncio.TimeoutError:
            logger.debug("Geometry probe did not answer within %.2fs", remaining)
            return []

    async def run(self) -> StabilizationResult:
        self.reset(self.clock())
        while True:
            now = self.clock()
            remaining = self.timeout - (now - self.started_at)
            if remaining <= 0:
                self.state = TIMEOUT
                break
            candidates = await self._sample(remaining)
            now = self.clock()
            box = self.select(candidates)
            state = self.observe(box, now)
            logger.debug(
                "Stabilization tick %d: %s -> %s",
                self.ticks,
                box.key() if box else None,
                state,
            )
            if state != PROBING:
                break
            remaining = self.timeout - (now - self.started_at)
            await self.sleep(max(0.0, min(self.interval, remaining)))

        result = self.result(self.clock())
        if result.stable:
            logger.debug(
                "Region settled at %s after %d tick(s) (%.2fs)",
                result.box.key() if result.box else None,
                result.ticks,
                result.elapsed,
            )
        elif result.box is not None:
            logger.warning(
                "Region did not settle within %.1fs; using last seen %s",
                self.timeout,
                result.box.key(),
            )
        else:
            logger.warning("No map candidate appeared within %.1fs", self.timeout)
        return result

"""
Human-like pointer operations on a Playwright page.

Coordinates are CSS pixels in the page viewport. Playwright does not
report the pointer position, so each Pointer remembers where it last
left the mouse; one Pointer per page.
"""

from __future__ import annotations

import asyncio
import math
import random

from login_agent.profile import NORMAL, HumanProfile

from . import humanize


class ElementNotInteractable(Exception):
    """The element has no bounding box (hidden, detached or zero-size)."""


class Pointer:
    def __init__(self, page, profile: HumanProfile = NORMAL) -> None:
        self._page = page
        self._profile = profile
        vp = getattr(page, 'viewport_size', None) or {'width': 1280, 'height': 800}
        # Start somewhere plausible rather than at (0, 0)
        self.position: tuple[float, float] = (
            random.uniform(0.2, 0.8) * vp['width'],
            random.uniform(0.2, 0.8) * vp['height'],
        )

    async def move_to(self, x: float, y: float) -> None:
        """
        Move along a jittered Bezier path in discrete steps.

        mouse_fast profiles use a single straight multi-step move.
        """
        sx, sy = self.position
        distance = math.hypot(x - sx, y - sy)
        steps = humanize.num_waypoints(distance)

        if self._profile.mouse_fast or distance < 2:
            await self._page.mouse.move(x, y, steps=max(1, steps // 2))
            self.position = (x, y)
            return

        points = humanize.bezier_curve((sx, sy), (x, y), num_points=steps)
        points = humanize.apply_jitter(points, magnitude=0.15 + distance * 0.00025)
        points = humanize.apply_overshoot(points, (x, y))
        delays = humanize.velocity_profile(len(points) - 1, humanize.movement_duration(distance))

        for (px, py), delay in zip(points[1:], delays):
            await self._page.mouse.move(px, py)
            if delay > 0:
                await asyncio.sleep(delay)
        self.position = (x, y)

    async def click(self, element) -> tuple[float, float]:
        """
        Click a uniformly random point inside the element's bounding box.

        Moves there first, pauses briefly, then presses with a randomized
        hold. Returns the clicked point.
        """
        box = await element.bounding_box()
        if not box or box.get('width', 0) <= 0 or box.get('height', 0) <= 0:
            raise ElementNotInteractable('Element has no bounding box')

        x, y = humanize.random_point_in_box(box)
        await self.move_to(x, y)

        pause = humanize.uniform_delay(self._profile.hover_pause)
        if pause:
            await asyncio.sleep(pause)

        hold_ms = humanize.uniform_delay(self._profile.click_hold_ms)
        await self._page.mouse.click(x, y, delay=hold_ms)
        return x, y

    async def wander(self, count: int = 4) -> None:
        """A few idle moves across the viewport, as a reader scanning the page."""
        vp = getattr(self._page, 'viewport_size', None) or {'width': 1280, 'height': 800}
        for _ in range(count):
            await self.move_to(
                random.uniform(0.1, 0.6) * vp['width'],
                random.uniform(0.1, 0.5) * vp['height'],
            )
            pause = humanize.uniform_delay((0.3, 0.7)) if not self._profile.mouse_fast else 0.0
            if pause:
                await asyncio.sleep(pause)

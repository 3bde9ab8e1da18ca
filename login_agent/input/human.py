"""Human interaction simulator: the only way the login flow touches the page."""

from __future__ import annotations

from login_agent.profile import NORMAL, HumanProfile

from . import keyboard
from .mouse import Pointer


class HumanInput:
    """Per-page click/type facade bound to one behavioral profile."""

    def __init__(self, page, profile: HumanProfile = NORMAL) -> None:
        self.page = page
        self.profile = profile
        self.pointer = Pointer(page, profile)

    async def click(self, element) -> None:
        await self.pointer.click(element)

    async def type(self, element, text: str) -> None:
        await keyboard.type_into(self.page, element, text, self.pointer, self.profile)

    async def wander(self, count: int = 4) -> None:
        await self.pointer.wander(count)

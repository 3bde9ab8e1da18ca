"""
Human-like typing into a page element.

Focus with a real click, clear, then emit one keystroke at a time with
independent randomized delays and optional typo/backspace corrections.
The field value is never assigned directly, except for the initial clear.
"""

from __future__ import annotations

import asyncio
import random

from login_agent.profile import NORMAL, HumanProfile

from . import humanize
from .mouse import Pointer

_CLEAR_JS = """el => {
  el.value = '';
  el.dispatchEvent(new Event('input', { bubbles: true }));
}"""

_CHANGE_JS = "el => el.dispatchEvent(new Event('change', { bubbles: true }))"


async def type_into(
    page,
    element,
    text: str,
    pointer: Pointer,
    profile: HumanProfile = NORMAL,
) -> None:
    """
    Type text into an input with human-like timing.

    speed 'instant' still types one key at a time, only without delays.
    """
    await element.scroll_into_view_if_needed()
    await asyncio.sleep(humanize.uniform_delay(profile.focus_pause))

    await pointer.click(element)
    await asyncio.sleep(humanize.uniform_delay(profile.focus_pause))

    await element.evaluate(_CLEAR_JS)

    prev = ''
    for stroke in humanize.typo_generator(text, accuracy=profile.type_accuracy):
        if stroke.wrong:
            await _key(page, stroke.wrong, humanize.typing_delay(profile.type_speed, stroke.wrong, prev))
            # Noticing the mistake
            await asyncio.sleep(random.uniform(0.2, 0.5))
            await page.keyboard.press('Backspace')
            await _key(page, stroke.char, random.uniform(0.05, 0.15))
        else:
            await _key(page, stroke.char, humanize.typing_delay(profile.type_speed, stroke.char, prev))
        prev = stroke.char

    await element.evaluate(_CHANGE_JS)


async def _key(page, char: str, delay: float) -> None:
    if delay > 0:
        await asyncio.sleep(delay)
    await page.keyboard.type(char)

"""Tests for Pointer clicks and human-like typing on a fake page."""

from __future__ import annotations

import random

import pytest

from login_agent.input.human import HumanInput
from login_agent.input.keyboard import type_into
from login_agent.input.mouse import ElementNotInteractable, Pointer
from login_agent.profile import FAST, HumanProfile

# Real path shape, no sleeping
SMOOTH = HumanProfile(
    mouse_fast=False,
    type_speed='instant',
    type_accuracy='low',
    hover_pause=(0.0, 0.0),
    click_hold_ms=(50.0, 150.0),
    focus_pause=(0.0, 0.0),
    step_pause=(0.0, 0.0),
    settle_pause=(0.0, 0.0),
)


class TestPointer:
    @pytest.mark.asyncio
    async def test_click_lands_inside_box(self, page, element) -> None:
        random.seed(11)
        pointer = Pointer(page, FAST)
        for _ in range(20):
            x, y = await pointer.click(element)
            assert 100 <= x <= 220
            assert 200 <= y <= 230
        assert page.mouse.click.await_count == 20

    @pytest.mark.asyncio
    async def test_click_hold_is_randomized(self, page, element, monkeypatch) -> None:
        async def no_sleep(_delay):
            return None

        monkeypatch.setattr('login_agent.input.mouse.asyncio.sleep', no_sleep)
        random.seed(12)
        pointer = Pointer(page, SMOOTH)
        for _ in range(5):
            await pointer.click(element)
        holds = [c.kwargs['delay'] for c in page.mouse.click.await_args_list]
        assert all(50 <= h <= 150 for h in holds)
        assert len(set(holds)) > 1

    @pytest.mark.asyncio
    async def test_smooth_move_takes_many_steps(self, page, monkeypatch) -> None:
        async def no_sleep(_delay):
            return None

        monkeypatch.setattr('login_agent.input.mouse.asyncio.sleep', no_sleep)
        pointer = Pointer(page, SMOOTH)
        pointer.position = (0.0, 0.0)
        await pointer.move_to(800.0, 600.0)
        assert page.mouse.move.await_count >= 10
        assert page.mouse.move.await_args_list[-1].args[:2] == (800.0, 600.0)
        assert pointer.position == (800.0, 600.0)

    @pytest.mark.asyncio
    async def test_click_without_box_raises(self, page, make_element) -> None:
        el = make_element(box={})
        el.bounding_box.return_value = None
        with pytest.raises(ElementNotInteractable):
            await Pointer(page, FAST).click(el)
        page.mouse.click.assert_not_awaited()


class TestTyping:
    @pytest.mark.asyncio
    async def test_focus_clear_type_change(self, page, element) -> None:
        pointer = Pointer(page, FAST)
        await type_into(page, element, 'user@example.com', pointer, FAST)

        element.scroll_into_view_if_needed.assert_awaited_once()
        page.mouse.click.assert_awaited_once()
        typed = ''.join(c.args[0] for c in page.keyboard.type.await_args_list)
        assert typed == 'user@example.com'
        assert page.keyboard.type.await_count == len('user@example.com')
        # clear before typing, change event after
        scripts = [c.args[0] for c in element.evaluate.await_args_list]
        assert "el.value = ''" in scripts[0]
        assert 'change' in scripts[-1]

    @pytest.mark.asyncio
    async def test_typos_are_corrected(self, page, element, monkeypatch) -> None:
        async def no_sleep(_delay):
            return None

        monkeypatch.setattr('login_agent.input.keyboard.asyncio.sleep', no_sleep)
        random.seed(3)
        text = 'asdfghjkl' * 10
        await type_into(page, element, text, Pointer(page, FAST), SMOOTH)

        backspaces = page.keyboard.press.await_count
        assert backspaces > 0
        keys = [c.args[0] for c in page.keyboard.type.await_args_list]
        assert len(keys) == len(text) + backspaces

    @pytest.mark.asyncio
    async def test_facade(self, page, element) -> None:
        human = HumanInput(page, FAST)
        await human.click(element)
        await human.type(element, 'pw')
        await human.wander(count=2)
        assert page.mouse.click.await_count == 2
        assert page.mouse.move.await_count >= 2

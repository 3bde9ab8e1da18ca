"""Shared pytest configuration for login agent tests."""

from __future__ import annotations

import sys
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest

# login_agent/ is a namespace package (no __init__.py). Modules inside use
# `from login_agent.xxx import ...` style imports, so the PROJECT ROOT must be
# on sys.path and login_agent/ itself must NOT be (it would shadow the package).
_PROJECT_ROOT = str(Path(__file__).resolve().parent.parent.parent)
_PACKAGE_DIR = str(Path(__file__).resolve().parent.parent)

sys.path[:] = [p for p in sys.path if p != _PACKAGE_DIR]

if _PROJECT_ROOT not in sys.path:
    sys.path.insert(0, _PROJECT_ROOT)


# ---------------------------------------------------------------------------
# Fake Playwright objects
#
# Only the surface the login flow touches. Async Playwright methods are
# AsyncMocks; properties are plain attributes.
# ---------------------------------------------------------------------------

def _fake_element(box: dict | None = None, enabled: bool = True) -> MagicMock:
    el = MagicMock()
    el.bounding_box = AsyncMock(
        return_value=box if box is not None else {'x': 100, 'y': 200, 'width': 120, 'height': 30},
    )
    el.is_enabled = AsyncMock(return_value=enabled)
    el.scroll_into_view_if_needed = AsyncMock()
    el.evaluate = AsyncMock()
    return el


def _fake_page(url: str = 'https://www.naukri.com/') -> MagicMock:
    page = MagicMock()
    page.url = url
    page.viewport_size = {'width': 1920, 'height': 1080}
    page.goto = AsyncMock(return_value=None)
    page.screenshot = AsyncMock(return_value=b'')
    page.wait_for_selector = AsyncMock(side_effect=lambda *a, **kw: _fake_element())
    page.wait_for_function = AsyncMock()
    page.wait_for_event = AsyncMock()
    page.query_selector = AsyncMock(return_value=None)
    page.eval_on_selector_all = AsyncMock(return_value=[])
    page.evaluate = AsyncMock(return_value='Browser Test')
    page.add_init_script = AsyncMock()
    page.mouse.move = AsyncMock()
    page.mouse.click = AsyncMock()
    page.keyboard.type = AsyncMock()
    page.keyboard.press = AsyncMock()
    return page


@pytest.fixture
def make_page():
    """Factory for fake pages: make_page(url=...)."""
    return _fake_page


@pytest.fixture
def make_element():
    """Factory for fake element handles: make_element(box=..., enabled=...)."""
    return _fake_element


@pytest.fixture
def page() -> MagicMock:
    return _fake_page()


@pytest.fixture
def element() -> MagicMock:
    return _fake_element()

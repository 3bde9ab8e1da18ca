"""Tests for stealth patch sets, launch options and context options."""

from __future__ import annotations

import pytest

from login_agent import stealth
from login_agent.browser import launch_options
from login_agent.config import AgentConfig
from login_agent.stealth import DEFAULT_PATCHES, StealthPatch, StealthPatchSet


class TestPatchSet:
    def test_default_patches_cover_automation_markers(self) -> None:
        names = DEFAULT_PATCHES.names
        for expected in ('webdriver', 'plugins', 'languages', 'permissions'):
            assert any(expected in n for n in names), expected
        assert len(set(names)) == len(names)

    def test_duplicate_names_rejected(self) -> None:
        patch = StealthPatch('webdriver', '() => {}')
        with pytest.raises(ValueError):
            StealthPatchSet((patch, patch))

    def test_without(self) -> None:
        first = DEFAULT_PATCHES.names[0]
        trimmed = DEFAULT_PATCHES.without(first)
        assert first not in trimmed.names
        assert len(trimmed) == len(DEFAULT_PATCHES) - 1
        assert first in DEFAULT_PATCHES.names

    @pytest.mark.asyncio
    async def test_apply_installs_every_script_in_order(self, page) -> None:
        await DEFAULT_PATCHES.apply(page, 'abc')
        scripts = [c.kwargs['script'] for c in page.add_init_script.await_args_list]
        assert scripts == [p.script for p in DEFAULT_PATCHES]
        page.goto.assert_not_awaited()


class TestOptions:
    def test_context_options(self) -> None:
        opts = stealth.context_options()
        assert opts['user_agent'] in stealth.USER_AGENTS
        assert opts['viewport'] == {'width': 1920, 'height': 1080}
        assert opts['locale'] == 'en-US'
        assert opts['extra_http_headers']

    def test_explicit_user_agent(self) -> None:
        assert stealth.context_options('UA/1.0')['user_agent'] == 'UA/1.0'

    def test_launch_options_hide_automation(self) -> None:
        opts = launch_options(AgentConfig())
        assert '--disable-blink-features=AutomationControlled' in opts['args']
        assert opts['ignore_default_args'] == ['--enable-automation']
        assert opts['headless'] is True
        assert 'executable_path' not in opts

    def test_launch_options_with_executable(self) -> None:
        opts = launch_options(AgentConfig(browser_executable='/usr/bin/chromium'))
        assert opts['executable_path'] == '/usr/bin/chromium'

"""Tests for NavigationController strategy escalation, domain check and exhaustion."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import AsyncMock

import pytest

from login_agent.actions import ActionExecutor
from login_agent.diagnostics import DiagnosticStore
from login_agent.errors import NavigationExhausted
from login_agent.navigation import STRATEGIES, NavigationController

TARGET = 'https://www.naukri.com/'


def _controller(tmp_path: Path) -> NavigationController:
    return NavigationController(
        ActionExecutor(backoff=(0.0, 0.0)),
        DiagnosticStore(tmp_path),
        attempt_timeout=5.0,
        backoff=0.0,
    )


def _strategies(page) -> list[str]:
    return [c.kwargs['wait_until'] for c in page.goto.await_args_list]


class TestStrategyLadder:
    def test_ladder(self) -> None:
        assert STRATEGIES == ('networkidle', 'domcontentloaded', 'load')
        assert [NavigationController.strategy_for(n) for n in (1, 2, 3, 4, 5)] == [
            'networkidle', 'domcontentloaded', 'load', 'load', 'load',
        ]


class TestNavigate:
    @pytest.mark.asyncio
    async def test_first_attempt_succeeds(self, tmp_path: Path, page) -> None:
        result = await _controller(tmp_path).navigate(page, TARGET, 'naukri.com', session_id='abc')
        assert result.attempts == 1
        assert result.strategy == 'networkidle'
        assert result.url == TARGET
        page.goto.assert_awaited_once_with(TARGET, wait_until='networkidle', timeout=5000.0)
        page.wait_for_function.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_escalates_until_success(self, tmp_path: Path, page) -> None:
        page.goto = AsyncMock(side_effect=[
            TimeoutError('Timeout 5000ms exceeded'),
            TimeoutError('Timeout 5000ms exceeded'),
            None,
        ])
        result = await _controller(tmp_path).navigate(page, TARGET, 'naukri.com', max_attempts=3)
        assert result.attempts == 3
        assert result.strategy == 'load'
        assert _strategies(page) == ['networkidle', 'domcontentloaded', 'load']

    @pytest.mark.asyncio
    async def test_exhaustion_captures_and_raises(self, tmp_path: Path, page) -> None:
        page.goto = AsyncMock(side_effect=TimeoutError('net::ERR_TIMED_OUT'))
        with pytest.raises(NavigationExhausted) as info:
            await _controller(tmp_path).navigate(page, TARGET, 'naukri.com', max_attempts=3, session_id='abc')
        assert info.value.attempts == 3
        assert 'ERR_TIMED_OUT' in info.value.last_error
        assert page.goto.await_count == 3
        shot_path = page.screenshot.await_args.kwargs['path']
        assert 'debug-abc-01-navigation-failed-' in shot_path

    @pytest.mark.asyncio
    async def test_unexpected_redirect_is_a_failed_attempt(self, tmp_path: Path, make_page) -> None:
        page = make_page(url='https://captcha.example.net/challenge')
        with pytest.raises(NavigationExhausted) as info:
            await _controller(tmp_path).navigate(page, TARGET, 'naukri.com', max_attempts=2)
        assert 'Unexpected redirect' in info.value.last_error
        assert page.goto.await_count == 2

    @pytest.mark.asyncio
    async def test_readiness_failure_is_not_fatal(self, tmp_path: Path, page) -> None:
        page.wait_for_function = AsyncMock(side_effect=TimeoutError('readyState'))
        result = await _controller(tmp_path).navigate(page, TARGET, 'naukri.com')
        assert result.attempts == 1

    @pytest.mark.asyncio
    async def test_transient_goto_retried_within_attempt(self, tmp_path: Path, page) -> None:
        page.goto = AsyncMock(side_effect=[RuntimeError('Frame was detached'), None])
        result = await _controller(tmp_path).navigate(page, TARGET, 'naukri.com')
        assert result.attempts == 1
        assert _strategies(page) == ['networkidle', 'networkidle']

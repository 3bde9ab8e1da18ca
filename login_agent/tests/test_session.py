"""Tests for the login state machine, session bookkeeping and result payloads."""

from __future__ import annotations

import re
import time

import pytest

from login_agent.errors import NoMatchingLocator, OverallDeadlineExceeded
from login_agent.session import (
    TRANSITIONS,
    Cookie,
    IllegalTransition,
    LoginResult,
    LoginSession,
    LoginState,
    Outcome,
    new_session_id,
)

_PATH = [
    LoginState.STEALTH_APPLIED,
    LoginState.NAVIGATED,
    LoginState.ENTRY_ACTIVATED,
    LoginState.CREDENTIALS_ENTERED,
    LoginState.SUBMITTED,
    LoginState.COMPLETION_DETECTED,
    LoginState.EXTRACTED,
]


def _session() -> LoginSession:
    return LoginSession(session_id='abc123', overall_deadline=time.monotonic() + 60)


class TestTransitions:
    def test_happy_path_is_legal(self) -> None:
        s = _session()
        for state in _PATH:
            s.advance(state)
        assert s.state is LoginState.EXTRACTED
        assert s.state.terminal

    def test_skipping_a_state_is_illegal(self) -> None:
        s = _session()
        with pytest.raises(IllegalTransition):
            s.advance(LoginState.NAVIGATED)

    def test_failed_reachable_from_every_non_terminal_state(self) -> None:
        for state, targets in TRANSITIONS.items():
            if not state.terminal:
                assert LoginState.FAILED in targets

    def test_terminal_states_have_no_exits(self) -> None:
        assert TRANSITIONS[LoginState.EXTRACTED] == frozenset()
        assert TRANSITIONS[LoginState.FAILED] == frozenset()

    def test_failure_records_stage(self) -> None:
        s = _session()
        s.advance(LoginState.STEALTH_APPLIED)
        s.advance(LoginState.NAVIGATED)
        s.advance(LoginState.FAILED)
        assert s.failed_stage is LoginState.NAVIGATED
        with pytest.raises(IllegalTransition):
            s.advance(LoginState.ENTRY_ACTIVATED)


class TestOutcome:
    def test_outcome_is_set_once(self) -> None:
        s = _session()
        s.succeed('https://www.naukri.com/mnjuser/homepage')
        assert s.outcome is Outcome.SUCCEEDED
        with pytest.raises(RuntimeError):
            s.fail(ValueError('late'))
        assert s.outcome is Outcome.SUCCEEDED

    def test_cookies_unique_by_name_and_domain(self) -> None:
        s = _session()
        s.add_cookie(Cookie('nauk_at', 'one', '.naukri.com'))
        s.add_cookie(Cookie('nauk_at', 'two', '.naukri.com'))
        s.add_cookie(Cookie('nauk_at', 'three', 'www.naukri.com'))
        assert len(s.cookies) == 2
        assert Cookie('nauk_at', 'two', '.naukri.com') in s.cookies

    def test_remaining_never_negative(self) -> None:
        s = LoginSession(session_id='x', overall_deadline=time.monotonic() - 5)
        assert s.remaining() == 0.0


class TestLoginResult:
    def test_success_payload(self) -> None:
        s = _session()
        s.add_cookie(Cookie('nauk_at', 'tok', '.naukri.com'))
        s.succeed('https://www.naukri.com/mnjuser/homepage')
        body = LoginResult.from_session(s, 12.5).to_dict()
        assert body == {
            'success': True,
            'sessionId': 'abc123',
            'url': 'https://www.naukri.com/mnjuser/homepage',
            'cookies': [{'name': 'nauk_at', 'value': 'tok', 'domain': '.naukri.com'}],
        }

    def test_failure_payload(self) -> None:
        s = _session()
        s.advance(LoginState.STEALTH_APPLIED)
        s.advance(LoginState.NAVIGATED)
        s.advance(LoginState.ENTRY_ACTIVATED)
        s.advance(LoginState.FAILED)
        s.fail(NoMatchingLocator('login-entry-link', stage='entry-activated'))
        result = LoginResult.from_session(s, 3.0)
        assert result.success is False
        assert result.error_kind == 'NoMatchingLocator'
        assert result.stage == 'entry-activated'
        body = result.to_dict()
        assert body['error'] == 'Browser automation login failed'
        assert body['sessionId'] == 'abc123'
        assert 'login-entry-link' in body['details']
        assert 'cookies' not in body

    def test_deadline_kind(self) -> None:
        s = _session()
        s.advance(LoginState.FAILED)
        s.fail(OverallDeadlineExceeded(120, stage='launching'))
        result = LoginResult.from_session(s, 120.0)
        assert result.error_kind == 'OverallDeadlineExceeded'
        assert 'launching' in result.details


def test_session_ids_are_filename_safe() -> None:
    ids = {new_session_id() for _ in range(50)}
    assert len(ids) == 50
    assert all(re.fullmatch(r'[a-z0-9]{8}', i) for i in ids)

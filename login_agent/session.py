"""Login session data structures: state machine, outcome, cookies, results."""

from __future__ import annotations

import secrets
import string
import time
from dataclasses import dataclass, field
from enum import Enum


# ---------------------------------------------------------------------------
# State machine
# ---------------------------------------------------------------------------

class LoginState(str, Enum):
    LAUNCHING = 'launching'
    STEALTH_APPLIED = 'stealth-applied'
    NAVIGATED = 'navigated'
    ENTRY_ACTIVATED = 'entry-activated'
    CREDENTIALS_ENTERED = 'credentials-entered'
    SUBMITTED = 'submitted'
    COMPLETION_DETECTED = 'completion-detected'
    EXTRACTED = 'extracted'
    FAILED = 'failed'

    @property
    def terminal(self) -> bool:
        return self in (LoginState.EXTRACTED, LoginState.FAILED)


# Strictly linear happy path; FAILED is reachable from every non-terminal state.
_HAPPY_PATH = (
    LoginState.LAUNCHING,
    LoginState.STEALTH_APPLIED,
    LoginState.NAVIGATED,
    LoginState.ENTRY_ACTIVATED,
    LoginState.CREDENTIALS_ENTERED,
    LoginState.SUBMITTED,
    LoginState.COMPLETION_DETECTED,
    LoginState.EXTRACTED,
)

TRANSITIONS: dict[LoginState, frozenset[LoginState]] = {
    state: frozenset({nxt, LoginState.FAILED})
    for state, nxt in zip(_HAPPY_PATH, _HAPPY_PATH[1:])
}
TRANSITIONS[LoginState.EXTRACTED] = frozenset()
TRANSITIONS[LoginState.FAILED] = frozenset()


class IllegalTransition(AssertionError):
    pass


class Outcome(str, Enum):
    PENDING = 'pending'
    SUCCEEDED = 'succeeded'
    FAILED = 'failed'


# ---------------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Cookie:
    name: str
    value: str
    domain: str

    def to_dict(self) -> dict:
        return {'name': self.name, 'value': self.value, 'domain': self.domain}


@dataclass(frozen=True)
class AttemptRecord:
    """One attempt of one step. Logged, never persisted."""

    component: str
    step_name: str
    attempt_index: int
    outcome: str               # ok, retry, failed
    error_kind: str = ''


def new_session_id(length: int = 8) -> str:
    """Short opaque id, lowercase alphanumeric so it is safe in filenames."""
    alphabet = string.ascii_lowercase + string.digits
    return ''.join(secrets.choice(alphabet) for _ in range(length))


# ---------------------------------------------------------------------------
# LoginSession
# ---------------------------------------------------------------------------

@dataclass
class LoginSession:
    """State of one login attempt. Owned by the orchestrator for one request."""

    session_id: str
    overall_deadline: float                    # monotonic clock
    created_at: float = field(default_factory=time.time)
    state: LoginState = LoginState.LAUNCHING
    outcome: Outcome = Outcome.PENDING
    collected_cookies: dict[tuple[str, str], Cookie] = field(default_factory=dict)
    final_url: str = ''
    failure: Exception | None = None
    failed_stage: LoginState | None = None

    def advance(self, next_state: LoginState) -> None:
        """Move to `next_state`, rejecting anything off the transition table."""
        if next_state not in TRANSITIONS[self.state]:
            raise IllegalTransition(
                f'{self.session_id}: illegal transition {self.state.value} -> {next_state.value}'
            )
        if next_state is LoginState.FAILED:
            self.failed_stage = self.state
        self.state = next_state

    def add_cookie(self, cookie: Cookie) -> None:
        self.collected_cookies[(cookie.name, cookie.domain)] = cookie

    @property
    def cookies(self) -> list[Cookie]:
        return list(self.collected_cookies.values())

    def succeed(self, final_url: str) -> None:
        self._finish(Outcome.SUCCEEDED)
        self.final_url = final_url

    def fail(self, exc: Exception) -> None:
        self._finish(Outcome.FAILED)
        self.failure = exc

    def _finish(self, outcome: Outcome) -> None:
        if self.outcome is not Outcome.PENDING:
            raise RuntimeError(
                f'{self.session_id}: outcome already {self.outcome.value}, cannot set {outcome.value}'
            )
        self.outcome = outcome

    def remaining(self) -> float:
        return max(0.0, self.overall_deadline - time.monotonic())


# ---------------------------------------------------------------------------
# LoginResult
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class LoginResult:
    """What the HTTP layer reports for one attempt."""

    session_id: str
    success: bool
    url: str = ''
    cookies: tuple[Cookie, ...] = ()
    error_kind: str = ''
    details: str = ''
    stage: str = ''
    duration_seconds: float = 0.0

    @staticmethod
    def from_session(session: LoginSession, duration: float) -> LoginResult:
        if session.outcome is Outcome.SUCCEEDED:
            return LoginResult(
                session_id=session.session_id,
                success=True,
                url=session.final_url,
                cookies=tuple(session.cookies),
                duration_seconds=duration,
            )
        exc = session.failure
        describe = getattr(exc, 'describe', None)
        return LoginResult(
            session_id=session.session_id,
            success=False,
            error_kind=getattr(exc, 'kind', type(exc).__name__),
            details=describe() if describe else str(exc),
            stage=session.failed_stage.value if session.failed_stage else '',
            duration_seconds=duration,
        )

    def to_dict(self) -> dict:
        if self.success:
            return {
                'success': True,
                'sessionId': self.session_id,
                'url': self.url,
                'cookies': [c.to_dict() for c in self.cookies],
            }
        return {
            'error': 'Browser automation login failed',
            'details': self.details,
            'sessionId': self.session_id,
        }

"""Agent configuration: locator tables, timeouts, paths, browser discovery.

Frozen dataclass loaded from environment variables once per process and
passed by reference into the orchestrator, the navigation controller,
the diagnostic store and the HTTP server. Nothing else reads os.environ.

Loads ~/.login-agent/shared.env first, then ~/.login-agent/agent.env
(component-specific overrides).
"""

from __future__ import annotations

import glob
import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

ENV_DIR = Path.home() / '.login-agent'

PRODUCTION = 'production'
DEVELOPMENT = 'development'

# Browser binaries tried in production, in order. Glob patterns allowed.
PRODUCTION_BROWSER_PATHS = (
    '/opt/render/.cache/ms-playwright/chromium-*/chrome-linux/chrome',
    '/usr/bin/google-chrome-stable',
    '/usr/bin/google-chrome',
    '/usr/bin/chromium-browser',
    '/usr/bin/chromium',
)


@dataclass(frozen=True)
class CandidateLocatorList:
    """Ordered fallback locators for one logical UI role.

    Ordered from most specific/stable to most generic. Consulted strictly
    in order; the first locator that yields a successful interaction wins.
    """

    role: str
    locators: tuple[str, ...]

    def __post_init__(self) -> None:
        if not self.locators:
            raise ValueError(f'Locator list for {self.role!r} is empty')

    def __iter__(self):
        return iter(self.locators)

    def __len__(self) -> int:
        return len(self.locators)


@dataclass(frozen=True)
class LocatorTable:
    """Static candidate locators for every role the login flow touches."""

    entry_link: CandidateLocatorList = CandidateLocatorList('login-entry-link', (
        'a[title="Jobseeker Login"]',
        'a[title*="Login"]',
        '.login-link',
        '.jobseeker-login',
        'a[href*="login"]',
        'a:has-text("Login")',
        '.header-login a',
        '.nav-login',
    ))
    username: CandidateLocatorList = CandidateLocatorList('username-input', (
        '.form-row:first-child input',
        '.form-row input[type="text"]',
        '.form-row input[type="email"]',
        'input[name="username"]',
        'input[name="email"]',
        'input[placeholder*="Email"]',
        'input[placeholder*="Username"]',
        'input[id*="username"]',
        'input[id*="email"]',
        '.login-form input:first-of-type',
        '#login-form input:first-of-type',
        '.modal-body input:first-of-type',
    ))
    password: CandidateLocatorList = CandidateLocatorList('password-input', (
        '.form-row:nth-child(2) input',
        '.form-row input[type="password"]',
        'input[name="password"]',
        'input[placeholder*="Password"]',
        'input[id*="password"]',
        '.login-form input[type="password"]',
        '#login-form input[type="password"]',
        '.modal-body input[type="password"]',
        '.form-row:last-child input',
    ))
    submit: CandidateLocatorList = CandidateLocatorList('submit-control', (
        'button.btn-primary.loginButton',
        'button[type="submit"]',
        '.login-button',
        '.btn-login',
        'button:has-text("Login")',
        'input[type="submit"]',
        '.modal-footer button',
        '.form-actions button',
        'button.primary',
    ))
    success_indicator: CandidateLocatorList = CandidateLocatorList('success-indicator', (
        '.user-name',
        '.profile-name',
        '.user-profile',
        '[data-test="profile-menu"]',
        '.profile-dropdown',
        '.logout-link',
        '.user-menu',
    ))
    form_container: CandidateLocatorList = CandidateLocatorList('login-form-container', (
        '.login-form',
        '#login-form',
        '.modal-body',
        '.form-row',
    ))


@dataclass(frozen=True)
class CompletionHeuristics:
    """Signals raced after submit to decide whether the login went through.

    These are empirical guesses about the target UI, kept configurable.
    """

    navigation_timeout: float = 20.0
    poll_interval: float = 1.0
    step_timeout: float = 30.0
    # A URL containing any of these is still considered a login page.
    login_path_markers: tuple[str, ...] = ('login',)
    use_success_indicator: bool = True
    use_form_disappearance: bool = True
    use_url_change: bool = True


@dataclass(frozen=True)
class AgentConfig:
    """Immutable agent configuration."""

    # Environment
    environment: str = DEVELOPMENT
    browser_executable: str | None = None
    headless: bool = True

    # Target property
    target_url: str = 'https://www.naukri.com/'
    target_domain: str = 'naukri.com'
    upstream_base_url: str = 'https://www.naukri.com'

    # Diagnostics
    diagnostic_dir: Path = Path('snapshots')
    retention_seconds: float = 24 * 3600.0

    # Timeouts (seconds)
    overall_deadline: float = 120.0
    launch_timeout: float = 60.0
    navigation_attempts: int = 3
    navigation_timeout: float = 30.0
    navigation_backoff: float = 2.0
    default_timeout: float = 30.0
    entry_locator_timeout: float = 30.0
    input_locator_timeout: float = 10.0
    submit_locator_timeout: float = 20.0
    form_wait_timeout: float = 20.0
    close_timeout: float = 5.0          # per teardown call

    # Retry
    action_max_retries: int = 3
    action_backoff: tuple[float, float] = (2.0, 4.0)

    # Behaviour
    profile_name: str = 'normal'
    locators: LocatorTable = field(default_factory=LocatorTable)
    completion: CompletionHeuristics = field(default_factory=CompletionHeuristics)

    # Server
    host: str = '0.0.0.0'
    port: int = 3000
    max_concurrent_logins: int = 3
    log_level: str = 'INFO'

    @property
    def is_production(self) -> bool:
        return self.environment == PRODUCTION

    @classmethod
    def load(cls, env_dir: Path | None = None) -> AgentConfig:
        """Load configuration from environment variables.

        Env files are read before anything else so their values win over
        the dataclass defaults. Raises ValueError if a numeric variable
        does not parse.
        """
        ub_dir = env_dir or ENV_DIR
        shared_env = ub_dir / 'shared.env'
        component_env = ub_dir / 'agent.env'
        if shared_env.exists():
            load_dotenv(shared_env)
        if component_env.exists():
            load_dotenv(component_env, override=True)

        environment = os.environ.get('APP_ENV', DEVELOPMENT).strip().lower()
        if environment not in (PRODUCTION, DEVELOPMENT):
            raise ValueError(
                f'APP_ENV must be {PRODUCTION!r} or {DEVELOPMENT!r}, got {environment!r}'
            )

        override = os.environ.get('BROWSER_EXECUTABLE_PATH', '').strip() or None
        diag_env = os.environ.get('DIAGNOSTIC_DIR', '').strip()
        if diag_env:
            diagnostic_dir = Path(diag_env)
        elif environment == PRODUCTION:
            diagnostic_dir = Path('/tmp/login-agent-snapshots')
        else:
            diagnostic_dir = Path.cwd() / 'snapshots'

        return cls(
            environment=environment,
            browser_executable=resolve_executable(environment, override),
            headless=_bool('HEADLESS', 'true'),
            target_url=os.environ.get('TARGET_URL', cls.target_url).strip(),
            target_domain=os.environ.get('TARGET_DOMAIN', cls.target_domain).strip(),
            upstream_base_url=os.environ.get(
                'UPSTREAM_BASE_URL', cls.upstream_base_url,
            ).strip().rstrip('/'),
            diagnostic_dir=diagnostic_dir,
            retention_seconds=_float('SNAPSHOT_RETENTION_HOURS', '24') * 3600.0,
            overall_deadline=_float('LOGIN_DEADLINE_SECONDS', '120'),
            navigation_attempts=_int('NAVIGATION_ATTEMPTS', '3'),
            navigation_timeout=_float('NAVIGATION_TIMEOUT_SECONDS', '30'),
            close_timeout=_float('BROWSER_CLOSE_TIMEOUT_SECONDS', '5'),
            action_max_retries=_int('ACTION_MAX_RETRIES', '3'),
            profile_name=os.environ.get('HUMAN_PROFILE', 'normal').strip().lower(),
            host=os.environ.get('AGENT_HOST', '0.0.0.0').strip(),
            port=_int('AGENT_PORT', os.environ.get('PORT', '3000')),
            max_concurrent_logins=_int('MAX_CONCURRENT_LOGINS', '3'),
            log_level=os.environ.get('LOG_LEVEL', 'INFO').strip().upper(),
        )


def resolve_executable(environment: str, override: str | None = None) -> str | None:
    """Pick the browser binary to launch.

    An explicit override always wins. In development we return None and
    let Playwright use its own managed Chromium. In production the first
    existing candidate is used; None if nothing is installed.
    """
    if override:
        return override
    if environment != PRODUCTION:
        return None
    for candidate in PRODUCTION_BROWSER_PATHS:
        if '*' in candidate:
            matches = sorted(glob.glob(candidate))
            if matches:
                return matches[-1]
        elif os.path.exists(candidate):
            return candidate
    return None


def _bool(key: str, default: str) -> bool:
    return os.environ.get(key, default).strip().lower() in ('1', 'true', 'yes')


def _int(key: str, default: str) -> int:
    raw = os.environ.get(key, default).strip()
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f'{key} must be an integer, got {raw!r}') from None


def _float(key: str, default: str) -> float:
    raw = os.environ.get(key, default).strip()
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f'{key} must be a number, got {raw!r}') from None

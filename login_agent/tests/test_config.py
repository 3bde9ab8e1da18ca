"""Tests for AgentConfig loading, locator tables and browser discovery."""

from __future__ import annotations

from dataclasses import FrozenInstanceError
from pathlib import Path

import pytest

from login_agent import config as config_mod
from login_agent.config import (
    AgentConfig,
    CandidateLocatorList,
    LocatorTable,
    resolve_executable,
)

_ENV_KEYS = (
    'APP_ENV', 'BROWSER_EXECUTABLE_PATH', 'HEADLESS', 'DIAGNOSTIC_DIR',
    'SNAPSHOT_RETENTION_HOURS', 'LOGIN_DEADLINE_SECONDS', 'NAVIGATION_ATTEMPTS',
    'NAVIGATION_TIMEOUT_SECONDS', 'ACTION_MAX_RETRIES', 'TARGET_URL',
    'TARGET_DOMAIN', 'UPSTREAM_BASE_URL', 'HUMAN_PROFILE', 'AGENT_HOST',
    'AGENT_PORT', 'PORT', 'MAX_CONCURRENT_LOGINS', 'LOG_LEVEL',
    'BROWSER_CLOSE_TIMEOUT_SECONDS',
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    # setenv first so teardown also removes values load_dotenv() wrote
    for key in _ENV_KEYS:
        monkeypatch.setenv(key, '')
        monkeypatch.delenv(key)


class TestLoad:
    def test_defaults(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.chdir(tmp_path)
        cfg = AgentConfig.load(env_dir=tmp_path)
        assert cfg.environment == 'development'
        assert cfg.is_production is False
        assert cfg.browser_executable is None
        assert cfg.headless is True
        assert cfg.overall_deadline == 120.0
        assert cfg.navigation_attempts == 3
        assert cfg.retention_seconds == 24 * 3600.0
        assert cfg.port == 3000
        assert cfg.diagnostic_dir == tmp_path / 'snapshots'

    def test_env_overrides(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv('LOGIN_DEADLINE_SECONDS', '90')
        monkeypatch.setenv('NAVIGATION_ATTEMPTS', '5')
        monkeypatch.setenv('HEADLESS', 'false')
        monkeypatch.setenv('SNAPSHOT_RETENTION_HOURS', '1')
        monkeypatch.setenv('DIAGNOSTIC_DIR', str(tmp_path / 'diag'))
        monkeypatch.setenv('HUMAN_PROFILE', 'Cautious')
        monkeypatch.setenv('UPSTREAM_BASE_URL', 'https://upstream.test/')
        monkeypatch.setenv('BROWSER_CLOSE_TIMEOUT_SECONDS', '2.5')
        cfg = AgentConfig.load(env_dir=tmp_path)
        assert cfg.overall_deadline == 90.0
        assert cfg.navigation_attempts == 5
        assert cfg.headless is False
        assert cfg.retention_seconds == 3600.0
        assert cfg.diagnostic_dir == tmp_path / 'diag'
        assert cfg.profile_name == 'cautious'
        assert cfg.upstream_base_url == 'https://upstream.test'
        assert cfg.close_timeout == 2.5

    def test_port_falls_back_to_port(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv('PORT', '8080')
        assert AgentConfig.load(env_dir=tmp_path).port == 8080

    def test_env_file_is_read(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        (tmp_path / 'shared.env').write_text('MAX_CONCURRENT_LOGINS=2\nLOG_LEVEL=debug\n')
        (tmp_path / 'agent.env').write_text('MAX_CONCURRENT_LOGINS=7\n')
        cfg = AgentConfig.load(env_dir=tmp_path)
        assert cfg.max_concurrent_logins == 7
        assert cfg.log_level == 'DEBUG'

    def test_invalid_number_names_variable(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv('NAVIGATION_ATTEMPTS', 'three')
        with pytest.raises(ValueError, match='NAVIGATION_ATTEMPTS'):
            AgentConfig.load(env_dir=tmp_path)

    def test_invalid_environment(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv('APP_ENV', 'staging')
        with pytest.raises(ValueError, match='APP_ENV'):
            AgentConfig.load(env_dir=tmp_path)

    def test_production_snapshot_dir(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv('APP_ENV', 'production')
        monkeypatch.setattr(config_mod, 'PRODUCTION_BROWSER_PATHS', ())
        cfg = AgentConfig.load(env_dir=tmp_path)
        assert cfg.is_production
        assert cfg.diagnostic_dir == Path('/tmp/login-agent-snapshots')
        assert cfg.browser_executable is None

    def test_frozen(self) -> None:
        cfg = AgentConfig()
        with pytest.raises(FrozenInstanceError):
            cfg.port = 1  # type: ignore[misc]


class TestResolveExecutable:
    def test_override_wins(self) -> None:
        assert resolve_executable('development', '/opt/chrome') == '/opt/chrome'
        assert resolve_executable('production', '/opt/chrome') == '/opt/chrome'

    def test_development_uses_managed_browser(self) -> None:
        assert resolve_executable('development') is None

    def test_production_first_existing(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        present = tmp_path / 'chromium'
        present.write_text('')
        monkeypatch.setattr(
            config_mod, 'PRODUCTION_BROWSER_PATHS',
            (str(tmp_path / 'missing'), str(present)),
        )
        assert resolve_executable('production') == str(present)

    def test_production_glob(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        for version in ('1000', '1100'):
            d = tmp_path / f'chromium-{version}'
            d.mkdir()
            (d / 'chrome').write_text('')
        monkeypatch.setattr(
            config_mod, 'PRODUCTION_BROWSER_PATHS', (str(tmp_path / 'chromium-*' / 'chrome'),),
        )
        assert resolve_executable('production') == str(tmp_path / 'chromium-1100' / 'chrome')


class TestLocators:
    def test_empty_list_rejected(self) -> None:
        with pytest.raises(ValueError):
            CandidateLocatorList('username-input', ())

    def test_iteration_keeps_declared_order(self) -> None:
        cl = CandidateLocatorList('submit-control', ('a', 'b', 'c'))
        assert list(cl) == ['a', 'b', 'c']
        assert len(cl) == 3

    def test_default_table_roles(self) -> None:
        table = LocatorTable()
        assert table.entry_link.role == 'login-entry-link'
        assert table.username.role == 'username-input'
        assert table.password.role == 'password-input'
        assert table.submit.role == 'submit-control'
        assert table.success_indicator.role == 'success-indicator'
        assert table.form_container.role == 'login-form-container'
        assert table.submit.locators[0] == 'button.btn-primary.loginButton'

"""Login orchestrator: drive one browser through the visible login flow.

One call to LoginOrchestrator.login() is one attempt:

  launching -> stealth-applied -> navigated -> entry-activated ->
  credentials-entered -> submitted -> completion-detected -> extracted

Each state names the step being performed; the driver loop runs the step
for the current state and advances along the transition table. Cookie
extraction runs as the tail of completion detection, so `extracted` is
only ever entered on success. Any failure moves the session to `failed`
with the state it happened in, after a best-effort snapshot. A supervisor
enforces the overall deadline independently of per-step timeouts and
force-closes the browser on expiry. The browser is always closed before
login() returns.
"""

from __future__ import annotations

import asyncio
import json
import logging
import random
import time
from typing import Awaitable, Callable

from login_agent import browser as browser_mod
from login_agent.actions import ActionExecutor
from login_agent.browser import BrowserSession
from login_agent.config import AgentConfig
from login_agent.diagnostics import DiagnosticStore
from login_agent.errors import (
    CompletionUndetected,
    LaunchFailure,
    LoginError,
    LoginValidationError,
    NavigationExhausted,
    NoMatchingLocator,
    OverallDeadlineExceeded,
)
from login_agent.input.human import HumanInput
from login_agent.locators import Interaction, SelectorResolver
from login_agent.navigation import NavigationController
from login_agent.profile import NORMAL, PROFILES, HumanProfile
from login_agent.session import (
    Cookie,
    LoginResult,
    LoginSession,
    LoginState,
    Outcome,
    new_session_id,
)
from login_agent.stealth import DEFAULT_PATCHES, StealthPatchSet

log = logging.getLogger(__name__)

Launcher = Callable[[AgentConfig, str], Awaitable[BrowserSession]]

# Page-state enumeration for post-mortems. Never reads input values.
_INPUTS_JS = """els => els.map(el => ({
  type: el.type, name: el.name, id: el.id, className: el.className,
  placeholder: el.placeholder, visible: el.offsetParent !== null,
}))"""

_LINKS_JS = """els => els.map(el => ({
  text: (el.textContent || '').trim(), title: el.title, href: el.href, className: el.className,
})).filter(el => [el.text, el.title, el.href].some(v => (v || '').toLowerCase().includes('login')))"""

_BUTTONS_JS = """els => els.map(el => ({
  type: el.type, className: el.className, id: el.id,
  text: (el.textContent || '').trim(), visible: el.offsetParent !== null,
}))"""

_NEXT = {
    LoginState.LAUNCHING: LoginState.STEALTH_APPLIED,
    LoginState.STEALTH_APPLIED: LoginState.NAVIGATED,
    LoginState.NAVIGATED: LoginState.ENTRY_ACTIVATED,
    LoginState.ENTRY_ACTIVATED: LoginState.CREDENTIALS_ENTERED,
    LoginState.CREDENTIALS_ENTERED: LoginState.SUBMITTED,
    LoginState.SUBMITTED: LoginState.COMPLETION_DETECTED,
    LoginState.COMPLETION_DETECTED: LoginState.EXTRACTED,
}


def check_credentials(username, password) -> None:
    """Raise LoginValidationError unless both values are non-blank strings."""
    for value in (username, password):
        if not isinstance(value, str) or not value.strip():
            raise LoginValidationError('username and password are required')


class LoginOrchestrator:
    """Process-wide entry point. Holds configuration, never per-attempt state.

    Args:
        config: Agent configuration, built once per process.
        diagnostics: Snapshot store; defaults to one over config.diagnostic_dir.
        launcher: Coroutine creating a BrowserSession (injectable for tests).
        patches: Stealth patch set applied to every fresh page.
        profile: Human behavioral profile; defaults to config.profile_name.
    """

    def __init__(
        self,
        config: AgentConfig,
        diagnostics: DiagnosticStore | None = None,
        launcher: Launcher = browser_mod.launch_session,
        patches: StealthPatchSet = DEFAULT_PATCHES,
        profile: HumanProfile | None = None,
    ) -> None:
        self.config = config
        self.diagnostics = diagnostics or DiagnosticStore(
            config.diagnostic_dir, retention_seconds=config.retention_seconds,
        )
        self._launcher = launcher
        self._patches = patches
        self.profile = profile or PROFILES.get(config.profile_name, NORMAL)

    async def login(self, username: str, password: str) -> LoginResult:
        """Run one complete login attempt under the overall deadline.

        Raises LoginValidationError (before any browser exists) unless both
        credentials are non-blank strings. Every other failure is reported
        in the LoginResult.
        """
        check_credentials(username, password)

        swept = self.diagnostics.sweep_expired()
        if swept:
            log.info('Swept %d expired snapshots', swept)

        budget = self.config.overall_deadline
        session = LoginSession(
            session_id=new_session_id(),
            overall_deadline=time.monotonic() + budget,
        )
        sid = session.session_id
        log.info('[%s] Starting login automation (env=%s, snapshots=%s)',
                 sid, self.config.environment, self.diagnostics.directory)

        run = _LoginRun(self, session, username, password)
        start = time.monotonic()
        task = asyncio.create_task(run.drive(), name=f'login-{sid}')
        try:
            done, _ = await asyncio.wait({task}, timeout=session.remaining())
            if not done:
                stage = session.state
                log.error('[%s] Overall process timeout after %gs (during %s)', sid, budget, stage.value)
                run.deadline_expired = True
                task.cancel()
                # The pipeline closes the browser on its way out, one bounded call at a time
                grace = 2 * self.config.close_timeout + 1.0
                done, _ = await asyncio.wait({task}, timeout=grace)
                if not done:
                    log.error('[%s] Login pipeline did not stop within %gs of cancellation', sid, grace)
                if session.outcome is Outcome.PENDING:
                    if not session.state.terminal:
                        session.advance(LoginState.FAILED)
                    session.fail(OverallDeadlineExceeded(budget, stage=stage.value))
            else:
                task.result()
        finally:
            if not task.done():
                task.cancel()
            await run.close()

        duration = time.monotonic() - start
        result = LoginResult.from_session(session, duration)
        if result.success:
            log.info('[%s] Login succeeded in %.1fs (%d cookies)', sid, duration, len(result.cookies))
        else:
            log.warning('[%s] Login failed in %.1fs: %s', sid, duration, result.details)
        return result

    async def browser_test(self) -> dict:
        """Launch, render a test page, snapshot it, close. For /debug/browser-test."""
        sid = new_session_id()
        session = None
        try:
            session = await self._launcher(self.config, sid)
            title = await browser_mod.probe(session.page, sid)
            path = await self.diagnostics.capture(session.page, 'browser-test', sid)
            return {
                'success': True,
                'sessionId': sid,
                'title': title,
                'screenshotSaved': path is not None,
                'screenshotPath': str(path) if path else None,
            }
        finally:
            if session is not None:
                await session.close()


class _LoginRun:
    """Per-attempt state: one browser, one page, one session."""

    def __init__(
        self,
        owner: LoginOrchestrator,
        session: LoginSession,
        username: str,
        password: str,
    ) -> None:
        self._owner = owner
        self._config = owner.config
        self._store = owner.diagnostics
        self._profile = owner.profile
        self.session = session
        self._username = username
        self._password = password

        self._executor = ActionExecutor(
            max_retries=self._config.action_max_retries,
            backoff=self._config.action_backoff,
        )
        self._browser: BrowserSession | None = None
        self._page = None
        self._human: HumanInput | None = None
        self._resolver: SelectorResolver | None = None

        self._form_seen = False
        self._submit_url = ''
        self._nav_waiter: asyncio.Future | None = None
        self._failure_captured = False
        self.deadline_expired = False

        self._steps = {
            LoginState.LAUNCHING: self._launch,
            LoginState.STEALTH_APPLIED: self._apply_stealth,
            LoginState.NAVIGATED: self._navigate,
            LoginState.ENTRY_ACTIVATED: self._activate_entry,
            LoginState.CREDENTIALS_ENTERED: self._enter_credentials,
            LoginState.SUBMITTED: self._submit,
            LoginState.COMPLETION_DETECTED: self._detect_and_extract,
        }

    @property
    def sid(self) -> str:
        return self.session.session_id

    # ------------------------------------------------------------------
    # Driver
    # ------------------------------------------------------------------

    async def drive(self) -> None:
        session = self.session
        try:
            while not session.state.terminal:
                state = session.state
                log.info('[%s] Step: %s (%.0fs left)', self.sid, state.value, session.remaining())
                await self._steps[state]()
                session.advance(_NEXT[state])
            session.succeed(self._page.url)
        except LoginError as exc:
            if self.deadline_expired:
                return
            exc.stage = exc.stage or session.state.value
            await self._fail(exc)
        except Exception as exc:
            if self.deadline_expired:
                return
            log.exception('[%s] Error in login automation at %s', self.sid, session.state.value)
            if session.state is LoginState.LAUNCHING:
                wrapped: LoginError = LaunchFailure(str(exc), stage=session.state.value)
            else:
                wrapped = LoginError(f'{type(exc).__name__}: {exc}', stage=session.state.value)
            await self._fail(wrapped)
        finally:
            self._cancel_nav_waiter()
            await self.close()

    async def _fail(self, exc: LoginError) -> None:
        if not self._failure_captured:
            await self._snapshot(f'failed-{self.session.state.value}')
        self.session.advance(LoginState.FAILED)
        self.session.fail(exc)

    async def close(self) -> None:
        if self._browser is not None:
            await self._browser.close()

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    async def _launch(self) -> None:
        log.info('[%s] Launching browser...', self.sid)
        try:
            self._browser = await self._owner._launcher(self._config, self.sid)
        except Exception as exc:
            raise LaunchFailure(f'Browser launch failed: {exc}') from exc
        self._page = self._browser.page
        self._human = HumanInput(self._page, self._profile)
        self._resolver = SelectorResolver(self._human, self._executor)

    async def _apply_stealth(self) -> None:
        try:
            await self._owner._patches.apply(self._page, self.sid)
        except Exception as exc:
            raise LaunchFailure(f'Stealth patches failed: {exc}') from exc
        try:
            await browser_mod.probe(self._page, self.sid)
        except Exception as exc:
            raise LaunchFailure(f'Browser navigation not working: {exc}') from exc

    async def _navigate(self) -> None:
        controller = NavigationController(
            self._executor,
            self._store,
            attempt_timeout=self._config.navigation_timeout,
            backoff=self._config.navigation_backoff,
            human=self._human,
            settle=self._profile.settle_pause,
        )
        try:
            result = await controller.navigate(
                self._page,
                self._config.target_url,
                self._config.target_domain,
                max_attempts=self._config.navigation_attempts,
                session_id=self.sid,
            )
        except NavigationExhausted:
            self._failure_captured = True
            raise
        log.info('[%s] Navigation successful after %d attempt(s) (%s): %s',
                 self.sid, result.attempts, result.strategy, result.url)
        await self._snapshot('01-pageload')
        await self._pause(self._profile.settle_pause)

    async def _activate_entry(self) -> None:
        locators = self._config.locators
        ok = await self._resolver.resolve_and_act(
            self._page, locators.entry_link, Interaction.CLICK,
            self._config.entry_locator_timeout, session_id=self.sid,
        )
        if not ok:
            await self._snapshot('01-login-link-not-found', failure=True)
            await self._enumerate('a', _LINKS_JS, 'login-related links')
            raise NoMatchingLocator(locators.entry_link.role)

        await self._pause(self._profile.settle_pause)
        self._form_seen = await self._wait_for_form()
        await self._pause(self._profile.step_pause)
        await self._snapshot('02-after-click')

    async def _enter_credentials(self) -> None:
        locators = self._config.locators
        fields = (
            (locators.username, self._username, '02-username-field-not-found'),
            (locators.password, self._password, '02-password-field-not-found'),
        )
        for candidates, value, failure_step in fields:
            ok = await self._resolver.resolve_and_act(
                self._page, candidates, Interaction.TYPE,
                self._config.input_locator_timeout, text=value, session_id=self.sid,
            )
            if not ok:
                await self._snapshot(failure_step, failure=True)
                await self._enumerate('input', _INPUTS_JS, 'input fields')
                raise NoMatchingLocator(candidates.role)
            await self._pause(self._profile.step_pause)

        await self._snapshot('03-before-login')

    async def _submit(self) -> None:
        locators = self._config.locators
        self._submit_url = self._page.url
        # Armed before the click so a fast redirect is not missed; widened by
        # the worst-case submit lookup so the click still gets the full window
        window = (
            self._config.completion.navigation_timeout
            + self._config.submit_locator_timeout * len(locators.submit)
        )
        self._nav_waiter = asyncio.ensure_future(self._page.wait_for_event(
            'framenavigated',
            predicate=lambda frame: frame == self._page.main_frame,
            timeout=window * 1000,
        ))
        ok = await self._resolver.resolve_and_act(
            self._page, locators.submit, Interaction.CLICK,
            self._config.submit_locator_timeout, session_id=self.sid,
        )
        if not ok:
            self._cancel_nav_waiter()
            await self._snapshot('03-login-button-not-found', failure=True)
            await self._enumerate('button, input[type="submit"]', _BUTTONS_JS, 'buttons')
            raise NoMatchingLocator(locators.submit.role)

    async def _detect_and_extract(self) -> None:
        await self._detect_completion()
        await self._extract()

    async def _detect_completion(self) -> None:
        heur = self._config.completion
        loop = asyncio.get_running_loop()
        deadline = loop.time() + heur.step_timeout

        nav = self._nav_waiter
        self._nav_waiter = None
        pending = {asyncio.ensure_future(self._poll_signals())}
        if nav is not None:
            pending.add(nav)

        signal = None
        try:
            while pending and signal is None:
                remaining = deadline - loop.time()
                if remaining <= 0:
                    break
                done, pending = await asyncio.wait(
                    pending, timeout=remaining, return_when=asyncio.FIRST_COMPLETED,
                )
                for task in done:
                    if task.cancelled():
                        continue
                    exc = task.exception()
                    if exc is not None:
                        log.info('[%s] No navigation detected after login (%s), '
                                 'checking other success indicators...', self.sid, type(exc).__name__)
                        continue
                    signal = 'navigation' if task is nav else task.result()
                    break
        finally:
            for task in pending:
                task.cancel()
            if pending:
                await asyncio.gather(*pending, return_exceptions=True)

        if signal is None:
            await self._snapshot('04-completion-undetected', failure=True)
            raise CompletionUndetected(
                f'No login completion signal within {heur.step_timeout:.0f}s'
            )
        log.info('[%s] Login completion detected: %s', self.sid, signal)
        await self._snapshot('04-after-login')

    async def _extract(self) -> None:
        domain = self._config.target_domain
        raw = await self._browser.context.cookies()
        for c in raw:
            if domain in (c.get('domain') or ''):
                self.session.add_cookie(Cookie(
                    name=c.get('name', ''), value=c.get('value', ''), domain=c['domain'],
                ))
        if not self.session.collected_cookies:
            await self._snapshot('05-no-session-cookies', failure=True)
            raise CompletionUndetected(f'Login appeared to complete but no cookies for {domain} were set')
        log.info('[%s] Final URL after login: %s (%d cookies)',
                 self.sid, self._page.url, len(self.session.collected_cookies))

    # ------------------------------------------------------------------
    # Completion signals
    # ------------------------------------------------------------------

    async def _poll_signals(self) -> str:
        interval = self._config.completion.poll_interval
        while True:
            signal = await self._check_signals()
            if signal:
                return signal
            await asyncio.sleep(interval)

    async def _check_signals(self) -> str | None:
        """One polling round. Page errors mid-navigation count as 'no signal yet'."""
        heur = self._config.completion
        locators = self._config.locators
        try:
            if heur.use_success_indicator:
                for loc in locators.success_indicator:
                    if await self._page.query_selector(loc):
                        return f'success indicator {loc}'

            if heur.use_form_disappearance and self._form_seen:
                present = False
                for loc in locators.form_container:
                    if await self._page.query_selector(loc):
                        present = True
                        break
                if not present:
                    return 'login form disappeared'

            if heur.use_url_change:
                url = self._page.url
                if (
                    url != self._submit_url
                    and self._config.target_domain in url
                    and not any(m in url.lower() for m in heur.login_path_markers)
                ):
                    return f'URL changed to {url}'
        except Exception as exc:
            log.debug('[%s] Error checking login success: %s', self.sid, exc)
        return None

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _wait_for_form(self) -> bool:
        selector = ', '.join(self._config.locators.form_container)
        try:
            await self._page.wait_for_selector(
                selector, state='visible', timeout=self._config.form_wait_timeout * 1000,
            )
        except Exception:
            log.info('[%s] No standard form container found, continuing...', self.sid)
            return False
        log.info('[%s] Login form container found', self.sid)
        return True

    async def _snapshot(self, step: str, failure: bool = False) -> None:
        if self._page is None:
            return
        await self._store.capture(self._page, step, self.sid)
        if failure:
            self._failure_captured = True

    async def _enumerate(self, selector: str, script: str, label: str) -> None:
        """Log the interactive elements on the page. Best effort."""
        try:
            found = await self._page.eval_on_selector_all(selector, script)
            log.info('[%s] Available %s: %s', self.sid, label, json.dumps(found, indent=2, default=str))
        except Exception as exc:
            log.warning('[%s] Could not enumerate %s: %s', self.sid, label, exc)

    async def _pause(self, bounds: tuple[float, float]) -> None:
        lo, hi = bounds
        if hi > 0:
            await asyncio.sleep(random.uniform(lo, hi))

    def _cancel_nav_waiter(self) -> None:
        waiter, self._nav_waiter = self._nav_waiter, None
        if waiter is None:
            return
        if not waiter.done():
            waiter.cancel()
        elif not waiter.cancelled():
            # Consume a timeout so asyncio doesn't report it as unretrieved
            waiter.exception()

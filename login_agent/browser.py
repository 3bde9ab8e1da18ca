"""
Browser lifecycle management.

Launch one headless Chromium per login attempt with stealth-safe flags,
one context and one page, attach page-level diagnostic listeners, and
tear the whole thing down afterwards. Nothing is shared between
sessions: every attempt starts its own Playwright driver.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field

from playwright.async_api import async_playwright

from login_agent import stealth
from login_agent.config import AgentConfig

log = logging.getLogger(__name__)

PROBE_URL = 'data:text/html,<h1>Browser Test</h1>'


@dataclass
class BrowserSession:
    session_id: str
    playwright: object
    browser: object
    context: object
    page: object
    user_agent: str = ''
    close_timeout: float = 5.0
    closed: bool = field(default=False)

    async def close(self) -> None:
        """Close browser and driver. Idempotent, safe to call from a supervisor.

        Each teardown call is bounded by close_timeout; a hung call is
        logged and abandoned.
        """
        if self.closed:
            return
        self.closed = True
        log.info('[%s] Closing browser...', self.session_id)
        for label, closer in (('Browser close', self.browser.close), ('Playwright stop', self.playwright.stop)):
            try:
                await asyncio.wait_for(closer(), timeout=self.close_timeout)
            except asyncio.TimeoutError:
                log.error('[%s] %s still pending after %gs, abandoning it',
                          self.session_id, label, self.close_timeout)
            except Exception as exc:
                log.warning('[%s] %s failed: %s', self.session_id, label, exc)
        log.info('[%s] Browser closed', self.session_id)


def launch_options(config: AgentConfig) -> dict:
    """Keyword arguments for chromium.launch()."""
    options = {
        'headless': config.headless,
        'args': list(stealth.LAUNCH_ARGS),
        'ignore_default_args': list(stealth.IGNORE_DEFAULT_ARGS),
        'timeout': config.launch_timeout * 1000,
    }
    if config.browser_executable:
        options['executable_path'] = config.browser_executable
    return options


def attach_listeners(page, session_id: str) -> None:
    """Log page-level errors and frame churn for post-mortem diagnosis."""
    page.on('pageerror', lambda error: log.warning('[%s] Page JavaScript error: %s', session_id, error))
    page.on('crash', lambda _page: log.error('[%s] Page crashed', session_id))
    page.on('framedetached', lambda frame: log.info('[%s] Frame detached: %s', session_id, frame.url))
    page.on('framenavigated', lambda frame: log.info('[%s] Frame navigated to: %s', session_id, frame.url))

    def _on_console(msg) -> None:
        if msg.type == 'error':
            log.debug('[%s] Console error: %s', session_id, msg.text)

    page.on('console', _on_console)


async def probe(page, session_id: str, timeout: float = 5.0) -> str:
    """Render a data: URL and read its heading, proving the browser works."""
    await page.goto(PROBE_URL, wait_until='domcontentloaded', timeout=timeout * 1000)
    title = await page.evaluate("() => document.querySelector('h1').textContent")
    log.info('[%s] Basic navigation test passed', session_id)
    return title


async def launch_session(config: AgentConfig, session_id: str) -> BrowserSession:
    """
    Launch Chromium with a fresh context and page.

    Raises whatever Playwright raises; the caller maps it to LaunchFailure.
    Partially started resources are cleaned up before re-raising.
    """
    pw = await async_playwright().start()
    browser = None
    try:
        if config.browser_executable:
            log.info('[%s] Using browser at: %s', session_id, config.browser_executable)
        else:
            log.info('[%s] Using Playwright-managed Chromium', session_id)
        browser = await pw.chromium.launch(**launch_options(config))
        log.info('[%s] Browser launched successfully', session_id)

        ctx_opts = stealth.context_options()
        context = await browser.new_context(**ctx_opts)
        page = await context.new_page()
        page.set_default_timeout(config.default_timeout * 1000)
        page.set_default_navigation_timeout(config.navigation_timeout * 1000 * 1.5)
        attach_listeners(page, session_id)
        log.info('[%s] New page created (User-Agent: %s)', session_id, ctx_opts['user_agent'])
    except BaseException:
        if browser is not None:
            try:
                await browser.close()
            except Exception as exc:
                log.debug('[%s] Close after failed launch: %s', session_id, exc)
        await pw.stop()
        raise

    return BrowserSession(
        session_id=session_id,
        playwright=pw,
        browser=browser,
        context=context,
        page=page,
        user_agent=ctx_opts['user_agent'],
        close_timeout=config.close_timeout,
    )

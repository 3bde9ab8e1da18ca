"""Navigation controller: load a URL with escalating completion strategies.

The target's load behaviour is not stable (dynamic content finishes at
different times), so each retry relaxes the completion criterion instead
of repeating the same one: network idle, then DOM parsed, then load event.
"""

from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import dataclass

from login_agent.actions import ActionExecutor
from login_agent.diagnostics import DiagnosticStore
from login_agent.errors import NavigationExhausted
from login_agent.input.human import HumanInput

log = logging.getLogger(__name__)

STRATEGIES = ('networkidle', 'domcontentloaded', 'load')

_READY_JS = "() => document.readyState === 'complete'"


@dataclass(frozen=True)
class NavigationResult:
    url: str
    attempts: int
    strategy: str


class UnexpectedRedirect(Exception):
    pass


class NavigationController:
    """
    Args:
        executor: Action executor wrapping each goto (retries frame hiccups).
        diagnostics: Snapshot store for the exhaustion case.
        attempt_timeout: Seconds per goto.
        backoff: Base seconds; wait before attempt n+1 is base * n plus jitter.
        ready_timeout: Seconds to wait for document.readyState == 'complete'.
        human: Optional interaction simulator for post-load warm-up moves.
    """

    def __init__(
        self,
        executor: ActionExecutor,
        diagnostics: DiagnosticStore,
        attempt_timeout: float = 30.0,
        backoff: float = 2.0,
        ready_timeout: float = 10.0,
        human: HumanInput | None = None,
        settle: tuple[float, float] = (0.0, 0.0),
    ) -> None:
        self._executor = executor
        self._diagnostics = diagnostics
        self.attempt_timeout = attempt_timeout
        self.backoff = backoff
        self.ready_timeout = ready_timeout
        self._human = human
        self._settle = settle

    @staticmethod
    def strategy_for(attempt: int) -> str:
        """Strategy for 1-based attempt n; the laxest one repeats past the ladder."""
        return STRATEGIES[min(attempt - 1, len(STRATEGIES) - 1)]

    async def navigate(
        self,
        page,
        target_url: str,
        expected_domain: str,
        max_attempts: int = 3,
        session_id: str = '',
    ) -> NavigationResult:
        """Navigate and verify the resolved URL. Raises NavigationExhausted."""
        last_error = ''
        for attempt in range(1, max_attempts + 1):
            strategy = self.strategy_for(attempt)
            log.info('[%s] Navigation attempt %d/%d (wait_until=%s)',
                     session_id, attempt, max_attempts, strategy)
            try:
                await self._executor.execute(
                    lambda: page.goto(
                        target_url, wait_until=strategy, timeout=self.attempt_timeout * 1000,
                    ),
                    session_id,
                    f'goto {target_url}',
                )
                url = page.url
                log.info('[%s] Page loaded, current URL: %s', session_id, url)
                if expected_domain not in url:
                    raise UnexpectedRedirect(f'Unexpected redirect to: {url}')
            except Exception as exc:
                last_error = str(exc)
                log.warning('[%s] Navigation attempt %d failed: %s', session_id, attempt, exc)
                if attempt < max_attempts:
                    wait = self.backoff * attempt + random.uniform(0, self.backoff / 2)
                    log.info('[%s] Retrying navigation in %.1fs...', session_id, wait)
                    await asyncio.sleep(wait)
                continue

            await self._settle_page(page, session_id)
            return NavigationResult(url=page.url, attempts=attempt, strategy=strategy)

        await self._diagnostics.capture(page, '01-navigation-failed', session_id)
        raise NavigationExhausted(max_attempts, last_error)

    async def _settle_page(self, page, session_id: str) -> None:
        """Best-effort readiness wait plus a short human pause. Never fails."""
        try:
            await page.wait_for_function(_READY_JS, timeout=self.ready_timeout * 1000)
        except Exception as exc:
            log.info('[%s] Page readiness check failed, continuing anyway: %s', session_id, exc)

        lo, hi = self._settle
        if hi > 0:
            await asyncio.sleep(random.uniform(lo, hi))
        if self._human is not None:
            try:
                await self._human.wander()
            except Exception as exc:
                log.debug('[%s] Warm-up pointer moves failed: %s', session_id, exc)

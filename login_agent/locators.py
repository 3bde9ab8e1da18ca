"""Selector resolver: find one logical UI element through ordered fallbacks.

A role (username field, submit button...) has a static list of candidate
locators, most specific first. Each is tried in turn; the first one that
can be located AND interacted with wins, and nothing after it is tried.
Whether exhausting the list is fatal is the caller's decision.
"""

from __future__ import annotations

import logging
from enum import Enum

from login_agent.actions import ActionExecutor
from login_agent.config import CandidateLocatorList
from login_agent.errors import ActionFailed
from login_agent.input.human import HumanInput

log = logging.getLogger(__name__)


class Interaction(str, Enum):
    CLICK = 'click'
    TYPE = 'type'


class SelectorResolver:
    """Ordered candidate iteration with a single success/failure contract."""

    def __init__(self, human: HumanInput, executor: ActionExecutor) -> None:
        self._human = human
        self._executor = executor
        self.last_match: str | None = None
        self.tried: list[str] = []

    async def resolve_and_act(
        self,
        page,
        candidates: CandidateLocatorList,
        action: Interaction,
        timeout_per_candidate: float,
        text: str | None = None,
        session_id: str = '',
    ) -> bool:
        """Try each candidate in declared order. True on the first success."""
        if action is Interaction.TYPE and text is None:
            raise ValueError('TYPE interaction needs text')

        self.last_match = None
        self.tried = []
        timeout_ms = timeout_per_candidate * 1000

        for locator in candidates:
            self.tried.append(locator)
            log.info('[%s] Trying %s selector: %s', session_id, candidates.role, locator)

            async def attempt(locator: str = locator) -> None:
                element = await page.wait_for_selector(locator, state='visible', timeout=timeout_ms)
                if element is None:
                    raise LookupError(f'Element not found: {locator}')
                if action is Interaction.TYPE:
                    if not await element.is_enabled():
                        raise LookupError(f'Element disabled: {locator}')
                    await self._human.type(element, text)
                else:
                    await self._human.click(element)

            try:
                await self._executor.execute(
                    attempt, session_id, f'{action.value} {candidates.role} via {locator}',
                )
            except ActionFailed as exc:
                log.warning('[%s] Selector %s gave up after %d attempts, trying next...',
                            session_id, locator, exc.attempts)
                continue
            except Exception as exc:
                log.info('[%s] Selector %s failed (%s), trying next...',
                         session_id, locator, type(exc).__name__)
                continue

            self.last_match = locator
            log.info('[%s] %s %s succeeded with: %s', session_id, candidates.role, action.value, locator)
            return True

        log.warning('[%s] No %s candidate matched (%d tried)', session_id, candidates.role, len(self.tried))
        return False

"""Action executor: run one browser operation with bounded retry.

Only transient environment failures (detached frames, closed targets,
protocol desync) are retried. Anything else, including "element not
found" timeouts, propagates on the first attempt so the selector
resolver can move on to its next candidate without burning retries.
"""

from __future__ import annotations

import asyncio
import logging
import random
from typing import Awaitable, Callable, TypeVar

from login_agent.errors import ActionFailed
from login_agent.session import AttemptRecord

log = logging.getLogger(__name__)

T = TypeVar('T')

TRANSIENT_SIGNATURES = (
    'detached',
    'Target closed',
    'Target page, context or browser has been closed',
    'Protocol error',
    'Execution context was destroyed',
)


def is_transient(exc: BaseException) -> bool:
    """True if the failure comes from the harness, not from the page logic."""
    if isinstance(exc, ActionFailed):
        return False
    message = str(exc)
    return any(sig in message for sig in TRANSIENT_SIGNATURES)


class ActionExecutor:
    """Retry wrapper for browser actions.

    Args:
        max_retries: Default total attempts per action.
        backoff: (lo, hi) seconds of randomized wait between attempts.
    """

    def __init__(
        self,
        max_retries: int = 3,
        backoff: tuple[float, float] = (2.0, 4.0),
    ) -> None:
        if max_retries < 1:
            raise ValueError('max_retries must be >= 1')
        self.max_retries = max_retries
        self.backoff = backoff

    async def execute(
        self,
        action: Callable[[], Awaitable[T]],
        session_id: str,
        action_name: str,
        max_retries: int | None = None,
    ) -> T:
        """Run `action()`; retry transient failures, re-raise everything else.

        Raises ActionFailed once transient failures exhaust the budget.
        """
        budget = max_retries or self.max_retries
        attempt = 0
        while True:
            attempt += 1
            log.debug('[%s] Executing %s (attempt %d/%d)', session_id, action_name, attempt, budget)
            try:
                result = await action()
            except Exception as exc:
                transient = is_transient(exc)
                record = AttemptRecord(
                    component='action-executor',
                    step_name=action_name,
                    attempt_index=attempt,
                    outcome='retry' if transient and attempt < budget else 'failed',
                    error_kind='transient' if transient else type(exc).__name__,
                )
                log.warning('[%s] %s failed: %s (%s)', session_id, action_name, exc, record)

                if not transient:
                    raise
                if attempt >= budget:
                    raise ActionFailed(action_name, attempt, exc) from exc

                log.info('[%s] Frame/target issue detected, waiting before retry...', session_id)
                lo, hi = self.backoff
                await asyncio.sleep(random.uniform(lo, hi))
                continue

            log.debug('[%s] %s', session_id, AttemptRecord(
                component='action-executor',
                step_name=action_name,
                attempt_index=attempt,
                outcome='ok',
            ))
            return result

"""Failure taxonomy for a login attempt.

Every LoginError carries the pipeline stage it happened in, so the HTTP
layer can report it without knowing how the pipeline is built. Messages
never contain credential values.
"""

from __future__ import annotations


class LoginError(Exception):
    """Base class: a login attempt failed at `stage`."""

    kind = 'LoginError'

    def __init__(self, message: str, stage: str = '') -> None:
        super().__init__(message)
        self.message = message
        self.stage = stage

    def describe(self) -> str:
        where = f' at {self.stage}' if self.stage else ''
        return f'{self.kind}{where}: {self.message}'


class LaunchFailure(LoginError):
    kind = 'LaunchFailure'


class NavigationExhausted(LoginError):
    """All navigation attempts failed."""

    kind = 'NavigationExhausted'

    def __init__(self, attempts: int, last_error: str, stage: str = '') -> None:
        super().__init__(
            f'Navigation failed after {attempts} attempts: {last_error}', stage,
        )
        self.attempts = attempts
        self.last_error = last_error


class NoMatchingLocator(LoginError):
    """No candidate locator for `role` could be found and interacted with."""

    kind = 'NoMatchingLocator'

    def __init__(self, role: str, stage: str = '') -> None:
        super().__init__(f'No candidate locator matched for {role}', stage)
        self.role = role


class ActionFailed(LoginError):
    """A browser action kept hitting transient environment failures."""

    kind = 'ActionFailed'

    def __init__(
        self, action_name: str, attempts: int, cause: BaseException, stage: str = '',
    ) -> None:
        super().__init__(
            f'{action_name} failed after {attempts} attempts due to '
            f'frame/target failure: {cause}',
            stage,
        )
        self.action_name = action_name
        self.attempts = attempts
        self.cause = cause


class CompletionUndetected(LoginError):
    kind = 'CompletionUndetected'


class OverallDeadlineExceeded(LoginError):
    kind = 'OverallDeadlineExceeded'

    def __init__(self, budget: float, stage: str = '') -> None:
        super().__init__(f'Overall login deadline of {budget:g}s exceeded', stage)
        self.budget = budget


class LoginValidationError(ValueError):
    """Missing or empty credentials. Raised before any browser is launched."""


class InvalidSnapshotName(ValueError):
    """A snapshot filename failed validation (path traversal guard)."""

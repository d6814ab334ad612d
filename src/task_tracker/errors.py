"""Error taxonomy surfaced to the presentation layer."""

from __future__ import annotations


class TaskTrackerError(Exception):
    """Base class for errors a user action can end with."""


class AuthError(TaskTrackerError):
    """A session could not be established."""


class ValidationError(TaskTrackerError):
    """Required input is missing or malformed."""


class StoreError(TaskTrackerError):
    """Network failure or backend rejection, including authorization denial."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code

    @property
    def is_authorization_failure(self) -> bool:
        return self.status_code in (401, 403)

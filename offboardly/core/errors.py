from __future__ import annotations


class OffboardlyError(Exception):
    """Base error for offboardly."""


class CredentialsNotFound(OffboardlyError):
    """No usable directory credential for the tenant or session."""


class CredentialDecryptionError(CredentialsNotFound):
    """Stored credential bundle could not be decrypted or parsed."""


class AuthenticationError(OffboardlyError):
    """Token exchange with the identity provider was rejected."""

    def __init__(self, message: str, *, error_code: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.error_code = error_code


class ActionExecutionError(OffboardlyError):
    """A single directory API call failed."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        error_code: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.error_code = error_code


class UnsupportedActionWarning(OffboardlyError):
    """Configured action has no server-side equivalent; surfaced as warning or skipped."""

    def __init__(self, message: str, *, status: str = "warning") -> None:
        super().__init__(message)
        self.message = message
        self.status = status


class InvalidTransitionError(OffboardlyError):
    """Lifecycle status transition is not allowed."""


class InvalidScheduleError(OffboardlyError):
    """Scheduling input (date, time, timezone, or actions) is invalid."""

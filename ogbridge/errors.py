"""
Exception types raised by the OurGroceries client.
"""

from __future__ import annotations

from typing import Optional


class OurGroceriesError(Exception):
    """Base exception for all ogbridge errors."""


class AuthenticationError(OurGroceriesError):
    """Login was rejected or the sign-in page contract changed."""


class NetworkError(OurGroceriesError):
    """Transport-level failure (timeout, connection reset, DNS)."""


class CommandError(OurGroceriesError):
    """
    A command call failed with an HTTP error status.

    Attributes:
        command: Name of the command that failed
        status_code: Final HTTP status returned by the service
        retried: True if the failure happened after a fresh login
        reason: Extra detail when the status alone does not explain it
    """

    def __init__(
        self,
        command: str,
        status_code: int,
        retried: bool = False,
        reason: Optional[str] = None,
    ) -> None:
        self.command = command
        self.status_code = status_code
        self.retried = retried
        self.reason = reason
        suffix = " after re-auth" if retried else ""
        message = f"API call '{command}' failed{suffix}: {status_code}"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message)


class SuggestionError(OurGroceriesError):
    """The language model returned something that is not an ingredient list."""

    def __init__(self, message: str, raw_text: Optional[str] = None) -> None:
        self.raw_text = raw_text
        super().__init__(message)

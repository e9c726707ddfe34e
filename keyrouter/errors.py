"""
Exceptions raised by the routing engine.
"""

from typing import Optional


class KeyRouterError(Exception):
    """Base class for routing engine errors."""


class NoCredentialsAvailable(KeyRouterError):
    """No credential could be sourced and no fallback key is configured."""

    def __init__(self, message: str = "No AI credentials available. Add an API key or configure GEMINI_API_KEY."):
        super().__init__(message)


class AggregateFailure(KeyRouterError):
    """Every (credential, model) pair was tried and none succeeded."""

    def __init__(self, last_error: Optional[str], attempts: int = 0):
        self.last_error = last_error
        self.attempts = attempts
        super().__init__(
            f"AI generation failed after {attempts} attempt(s): {last_error or 'unknown error'}"
        )


class CredentialRevealError(KeyRouterError):
    """A stored secret could not be decrypted."""


class ProviderError(KeyRouterError):
    """Provider returned an unusable response."""

    def __init__(self, message: str, code: Optional[int] = None):
        self.code = code
        super().__init__(message)

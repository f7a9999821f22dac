"""Exception types raised inside pocketauth.

Public seams (vault, OAuth flows) convert most of these into structured
results. ``ConfigFileError`` and ``CredentialWriteError`` propagate to callers.
"""

from __future__ import annotations

# Error codes returned in CompleteResult / PollResult
INVALID_STATE = "invalid_state"
STATE_MISMATCH = "state_mismatch"
EXPIRED = "expired"


class PocketAuthError(Exception):
    """Base class for pocketauth errors."""


class ConfigFileError(PocketAuthError):
    """The app config file could not be read or written."""


class CredentialWriteError(PocketAuthError):
    """Credential material could not be persisted for a profile."""


class UnknownProviderError(PocketAuthError):
    def __init__(self, provider_id: str):
        super().__init__(f"Unknown OAuth provider: {provider_id}")
        self.provider_id = provider_id


class OAuthError(PocketAuthError):
    """An OAuth protocol step failed."""


class TokenExchangeError(OAuthError):
    """The provider rejected the code exchange or returned an unusable payload."""

"""
OAuth Protocol - interfaces shared by every provider flow.
Created: 2026-02-21

Each provider is one implementation of ``OAuthFlow``; the redirect-based
ones differ only in their ``PkceStrategy`` (URL building, code exchange,
identity lookup).
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import Protocol

from pocketauth.oauth.models import CompleteResult, DeviceStartResult, PollResult, StartResult, TokenResult


class OAuthFlow(Protocol):
    """Interface the service facade calls into."""

    provider_id: str

    async def start(self) -> StartResult:
        """Register a session and return the URL to show the user."""
        ...

    async def complete(self, state: str, callback_input: str) -> CompleteResult:
        """Validate the callback for *state*, exchange it, and persist the result."""
        ...


class DeviceFlow(Protocol):
    provider_id: str

    async def start(self) -> DeviceStartResult: ...

    async def poll(self, state: str) -> PollResult: ...


class PkceStrategy(Protocol):
    """Provider-specific pieces of an authorization-code + PKCE flow."""

    redirect_uri: str

    def build_auth_url(self, challenge: str, state: str) -> str: ...

    async def exchange_code(self, code: str, verifier: str) -> TokenResult: ...

    async def resolve_identity(self, token: TokenResult) -> TokenResult:
        """Fill in account email / project id after the exchange."""
        ...


# Embedded login runner: drives a provider's own login routine, reporting the
# authorization URL through ``on_auth`` and asking for user input via
# ``on_prompt``. Returns the exchanged tokens, or None if login was abandoned.
AuthCallback = Callable[[str], Awaitable[None]]
PromptCallback = Callable[[str], Awaitable[str]]
LoginRunner = Callable[[AuthCallback, PromptCallback], Awaitable[TokenResult | None]]

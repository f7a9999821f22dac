"""OAuth session coordination for third-party model providers.

Flows live in ``pocketauth.oauth.flows``, provider wiring in
``pocketauth.oauth.providers`` and the entry point in
``pocketauth.oauth.service``.

Created: 2026-02-21
"""

from pocketauth.oauth.models import (
    CompleteResult,
    DeviceStartResult,
    OAuthSession,
    PollResult,
    SessionStatus,
    StartResult,
    TokenResult,
)
from pocketauth.oauth.protocol import DeviceFlow, OAuthFlow, PkceStrategy

__all__ = [
    "CompleteResult",
    "DeviceFlow",
    "DeviceStartResult",
    "OAuthFlow",
    "OAuthSession",
    "PkceStrategy",
    "PollResult",
    "SessionStatus",
    "StartResult",
    "TokenResult",
]

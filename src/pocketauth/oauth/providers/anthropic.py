# Anthropic setup token: the user pastes a long-lived token minted by
# `claude setup-token`; no redirect involved.
# Created: 2026-02-21

from __future__ import annotations

from pocketauth.auth_profiles import build_profile_id
from pocketauth.oauth.models import CompleteResult
from pocketauth.profile_writer import AuthProfileWriter

PROVIDER_ID = "anthropic"
SETUP_TOKEN_PREFIX = "sk-ant-oat01-"
SETUP_TOKEN_MIN_LENGTH = 80


def validate_setup_token(token: str) -> str | None:
    """Return an error message, or None if *token* looks like a setup token."""
    if not token:
        return "Token is required"
    if not token.startswith(SETUP_TOKEN_PREFIX):
        return f"Expected token starting with {SETUP_TOKEN_PREFIX}"
    if len(token) < SETUP_TOKEN_MIN_LENGTH:
        return "Token looks too short; paste the full setup-token"
    return None


def complete_anthropic_setup_token(
    token: str,
    name: str | None = None,
    writer: AuthProfileWriter | None = None,
) -> CompleteResult:
    token = str(token or "").strip()
    error = validate_setup_token(token)
    if error:
        return CompleteResult.failure(error)
    profile_id = build_profile_id(PROVIDER_ID, name)
    (writer or AuthProfileWriter()).commit_token(PROVIDER_ID, token, profile_id)
    return CompleteResult.success()

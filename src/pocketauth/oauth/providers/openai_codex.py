# OpenAI Codex (ChatGPT account) login: runs as an embedded login routine:
# it announces its authorization URL, then waits for the user to paste the
# redirect URL from the browser.
# Created: 2026-02-21

from __future__ import annotations

import logging
import urllib.parse
from dataclasses import replace

from pocketauth.config import get_settings
from pocketauth.errors import STATE_MISMATCH, OAuthError
from pocketauth.oauth.callback import CallbackError, parse_callback_input, states_match
from pocketauth.oauth.models import TokenResult
from pocketauth.oauth.pkce import generate_pkce, generate_state
from pocketauth.oauth.protocol import AuthCallback, PromptCallback
from pocketauth.oauth.providers._http import parse_jwt_claims, post_form, token_result_from_payload
from pocketauth.profile_writer import ProviderDefaults

logger = logging.getLogger(__name__)

PROVIDER_ID = "openai-codex"
PROFILE_ID = "openai-codex:default"
DEFAULT_MODEL = "openai-codex/gpt-5.2"

AUTHORIZE_URL = "https://auth.openai.com/oauth/authorize"
TOKEN_URL = "https://auth.openai.com/oauth/token"
REDIRECT_URI = "http://localhost:1455/auth/callback"
SCOPE = "openid profile email offline_access"
_AUTH_CLAIM = "https://api.openai.com/auth"

DEFAULTS = ProviderDefaults(
    provider_id=PROVIDER_ID,
    default_model=DEFAULT_MODEL,
    profile_id=PROFILE_ID,
)


def _account_details(token: TokenResult, id_token: str | None) -> TokenResult:
    claims = parse_jwt_claims(id_token or "") or parse_jwt_claims(token.access) or {}
    email = claims.get("email")
    auth = claims.get(_AUTH_CLAIM)
    account_id = auth.get("chatgpt_account_id") if isinstance(auth, dict) else None
    extra = dict(token.extra)
    if account_id:
        extra["account_id"] = account_id
    return replace(token, email=email if isinstance(email, str) else None, extra=extra)


class CodexLoginRunner:
    """Authorization code + PKCE login against auth.openai.com."""

    def build_auth_url(self, challenge: str, state: str) -> str:
        params = {
            "response_type": "code",
            "client_id": get_settings().openai_codex_client_id,
            "redirect_uri": REDIRECT_URI,
            "scope": SCOPE,
            "code_challenge": challenge,
            "code_challenge_method": "S256",
            "state": state,
            "id_token_add_organizations": "true",
            "codex_cli_simplified_flow": "true",
        }
        return f"{AUTHORIZE_URL}?{urllib.parse.urlencode(params)}"

    async def __call__(self, on_auth: AuthCallback, on_prompt: PromptCallback) -> TokenResult | None:
        verifier, challenge = generate_pkce()
        state = generate_state()
        await on_auth(self.build_auth_url(challenge, state))

        raw = await on_prompt("Paste the full redirect URL after login")
        if not str(raw or "").strip():
            logger.info("Codex login abandoned: no redirect URL supplied")
            return None

        parsed = parse_callback_input(raw)
        if isinstance(parsed, CallbackError):
            raise OAuthError(parsed.error)
        if not states_match(state, parsed.state):
            raise OAuthError(STATE_MISMATCH)

        payload = await post_form(
            TOKEN_URL,
            {
                "grant_type": "authorization_code",
                "client_id": get_settings().openai_codex_client_id,
                "code": parsed.code,
                "code_verifier": verifier,
                "redirect_uri": REDIRECT_URI,
            },
        )
        token = token_result_from_payload(payload)
        id_token = payload.get("id_token")
        return _account_details(token, id_token if isinstance(id_token, str) else None)

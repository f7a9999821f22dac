# Qwen portal: PKCE-bound device login against chat.qwen.ai. A successful
# login also registers the qwen-portal provider (OpenAI-compatible API) and
# its coder/vision models in config.
# Created: 2026-02-21

from __future__ import annotations

import uuid
from typing import Any

from pocketauth.config import get_settings
from pocketauth.errors import EXPIRED, OAuthError
from pocketauth.oauth.models import OAuthSession, TokenResult
from pocketauth.oauth.providers._http import describe_error_payload, token_result_from_payload
from pocketauth.oauth.providers._portal import (
    DEFAULT_EXPIRES_SECONDS,
    DEFAULT_INTERVAL_SECONDS,
    DeviceAuthorization,
    PortalDeviceFlow,
    TokenPoll,
    model_definition,
    post_form_reply,
    seconds,
)
from pocketauth.profile_writer import ProviderDefaults

PROVIDER_ID = "qwen-portal"
DEFAULT_MODEL = "qwen-portal/coder-model"

OAUTH_BASE_URL = "https://chat.qwen.ai"
DEVICE_CODE_URL = f"{OAUTH_BASE_URL}/api/v1/oauth2/device/code"
TOKEN_URL = f"{OAUTH_BASE_URL}/api/v1/oauth2/token"
SCOPE = "openid profile email model.completion"
DEVICE_GRANT = "urn:ietf:params:oauth:grant-type:device_code"

DEFAULT_API_BASE_URL = "https://portal.qwen.ai/v1"
CONTEXT_WINDOW = 128000
MAX_TOKENS = 8192
# config holds a marker, the real token lives in the auth profile
OAUTH_PLACEHOLDER = "qwen-oauth"


def normalize_base_url(value: str | None) -> str:
    """``portal.qwen.ai`` -> ``https://portal.qwen.ai/v1``."""
    raw = str(value or "").strip() or DEFAULT_API_BASE_URL
    if not raw.startswith("http"):
        raw = f"https://{raw}"
    return raw if raw.endswith("/v1") else f"{raw.rstrip('/')}/v1"


def build_config_patch(base_url: str) -> dict[str, Any]:
    return {
        "models": {
            "providers": {
                PROVIDER_ID: {
                    "baseUrl": base_url,
                    "apiKey": OAUTH_PLACEHOLDER,
                    "api": "openai-completions",
                    "models": [
                        model_definition(
                            "coder-model", "Qwen Coder", ["text"], CONTEXT_WINDOW, MAX_TOKENS
                        ),
                        model_definition(
                            "vision-model",
                            "Qwen Vision",
                            ["text", "image"],
                            CONTEXT_WINDOW,
                            MAX_TOKENS,
                        ),
                    ],
                }
            }
        },
        "agents": {
            "defaults": {
                "models": {
                    "qwen-portal/coder-model": {"alias": "qwen"},
                    "qwen-portal/vision-model": {},
                }
            }
        },
    }


class QwenPortalDeviceFlow(PortalDeviceFlow):
    provider_id = PROVIDER_ID
    label = "Qwen"

    async def _authorize(self, session: OAuthSession) -> DeviceAuthorization:
        status, reply = await post_form_reply(
            DEVICE_CODE_URL,
            {
                "client_id": get_settings().qwen_portal_client_id,
                "scope": SCOPE,
                "code_challenge": session.challenge,
                "code_challenge_method": "S256",
            },
            headers={"x-request-id": str(uuid.uuid4())},
        )
        if status >= 400:
            raise OAuthError(
                f"Qwen device authorization failed: {describe_error_payload(reply, status)}"
            )
        if not reply.get("device_code") or not reply.get("user_code") or not reply.get(
            "verification_uri"
        ):
            raise OAuthError("Qwen device authorization response missing fields")
        return DeviceAuthorization(
            user_code=reply["user_code"],
            # the complete URI carries the user code, so the user only has to approve
            verification_url=reply.get("verification_uri_complete") or reply["verification_uri"],
            expires_in=seconds(reply.get("expires_in"), DEFAULT_EXPIRES_SECONDS, "expires_in"),
            interval=seconds(reply.get("interval"), DEFAULT_INTERVAL_SECONDS, "interval"),
            extra={"device_code": reply["device_code"]},
        )

    async def _request_token(self, session: OAuthSession) -> TokenPoll:
        status, reply = await post_form_reply(
            TOKEN_URL,
            {
                "grant_type": DEVICE_GRANT,
                "client_id": get_settings().qwen_portal_client_id,
                "device_code": session.extra["device_code"],
                "code_verifier": session.verifier,
            },
        )
        error = reply.get("error")
        if status >= 400 or error:
            if error in ("authorization_pending", "slow_down"):
                return TokenPoll(status="pending" if error == "authorization_pending" else error)
            if error == "expired_token":
                return TokenPoll(status=EXPIRED)
            return TokenPoll(
                status="error", error=f"Qwen login failed: {describe_error_payload(reply, status)}"
            )

        token = token_result_from_payload(reply)
        resource_url = reply.get("resource_url")
        if isinstance(resource_url, str) and resource_url.strip():
            token.extra["resource_url"] = resource_url.strip()
        return TokenPoll(status="success", token=token)

    def _defaults(self, token: TokenResult, session: OAuthSession) -> ProviderDefaults:
        base_url = normalize_base_url(token.extra.get("resource_url"))
        return ProviderDefaults(
            provider_id=PROVIDER_ID,
            default_model=DEFAULT_MODEL,
            config_patch=build_config_patch(base_url),
            profile_id=self.profile_id,
        )

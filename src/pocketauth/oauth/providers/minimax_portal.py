# MiniMax portal: PKCE-bound user-code login. Accounts live in one of two
# regions (global api.minimax.io, mainland China api.minimaxi.com); both the
# OAuth endpoints and the default API base URL follow the region.
# Created: 2026-02-21

from __future__ import annotations

import time
from collections.abc import Callable
from typing import Any

from pocketauth.config import get_settings
from pocketauth.errors import OAuthError
from pocketauth.oauth.callback import states_match
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
from pocketauth.profile_writer import AuthProfileWriter, ProviderDefaults

PROVIDER_ID = "minimax-portal"
DEFAULT_MODEL_ID = "MiniMax-M2.1"

# region -> (OAuth host, Anthropic-compatible API base)
REGIONS = {
    "global": ("https://api.minimax.io", "https://api.minimax.io/anthropic"),
    "cn": ("https://api.minimaxi.com", "https://api.minimaxi.com/anthropic"),
}
SCOPE = "group_id profile model.completion"
USER_CODE_GRANT = "urn:ietf:params:oauth:grant-type:user_code"

CONTEXT_WINDOW = 200000
MAX_TOKENS = 8192
OAUTH_PLACEHOLDER = "minimax-oauth"


def model_ref(model_id: str) -> str:
    return f"{PROVIDER_ID}/{model_id}"


def build_config_patch(base_url: str) -> dict[str, Any]:
    return {
        "models": {
            "providers": {
                PROVIDER_ID: {
                    "baseUrl": base_url,
                    "apiKey": OAUTH_PLACEHOLDER,
                    "api": "anthropic-messages",
                    "models": [
                        model_definition(
                            "MiniMax-M2.1", "MiniMax M2.1", ["text"], CONTEXT_WINDOW, MAX_TOKENS
                        ),
                        model_definition(
                            "MiniMax-M2.1-lightning",
                            "MiniMax M2.1 Lightning",
                            ["text"],
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
                    model_ref("MiniMax-M2.1"): {"alias": "minimax-m2.1"},
                    model_ref("MiniMax-M2.1-lightning"): {"alias": "minimax-m2.1-lightning"},
                }
            }
        },
    }


class MiniMaxPortalDeviceFlow(PortalDeviceFlow):
    provider_id = PROVIDER_ID
    label = "MiniMax"

    def __init__(
        self,
        writer: AuthProfileWriter | None = None,
        region: str | None = None,
        clock: Callable[[], float] = time.time,
    ):
        super().__init__(writer=writer, clock=clock)
        self.region = region or get_settings().minimax_region
        if self.region not in REGIONS:
            raise ValueError(f"Unknown MiniMax region: {self.region}")

    @property
    def oauth_base_url(self) -> str:
        return REGIONS[self.region][0]

    async def _authorize(self, session: OAuthSession) -> DeviceAuthorization:
        status, reply = await post_form_reply(
            f"{self.oauth_base_url}/oauth/code",
            {
                "response_type": "code",
                "client_id": get_settings().minimax_portal_client_id,
                "scope": SCOPE,
                "code_challenge": session.challenge,
                "code_challenge_method": "S256",
                "state": session.state,
            },
        )
        if status >= 400:
            raise OAuthError(
                f"MiniMax authorization failed: {describe_error_payload(reply, status)}"
            )
        if not reply.get("user_code") or not reply.get("verification_uri"):
            raise OAuthError("MiniMax authorization response missing fields")
        if not states_match(session.state, str(reply.get("state") or "")):
            raise OAuthError("MiniMax authorization state mismatch")
        return DeviceAuthorization(
            user_code=reply["user_code"],
            verification_url=reply["verification_uri"],
            expires_in=seconds(reply.get("expired_in"), DEFAULT_EXPIRES_SECONDS, "expired_in"),
            interval=seconds(reply.get("interval"), DEFAULT_INTERVAL_SECONDS, "interval"),
            extra={"region": self.region},
        )

    async def _request_token(self, session: OAuthSession) -> TokenPoll:
        status, reply = await post_form_reply(
            f"{REGIONS[session.extra['region']][0]}/oauth/token",
            {
                "grant_type": USER_CODE_GRANT,
                "client_id": get_settings().minimax_portal_client_id,
                "user_code": session.extra["user_code"],
                "code_verifier": session.verifier,
            },
        )
        if status >= 400:
            return TokenPoll(
                status="error",
                error=f"MiniMax login failed: {describe_error_payload(reply, status)}",
            )
        outcome = reply.get("status")
        if outcome == "error":
            message = reply.get("message") or describe_error_payload(reply, status)
            return TokenPoll(status="error", error=f"MiniMax login failed: {message}")
        if outcome != "success":
            return TokenPoll(status="pending")

        token = token_result_from_payload({**reply, "expires_in": reply.get("expired_in")})
        resource_url = reply.get("resource_url")
        if isinstance(resource_url, str) and resource_url.strip():
            token.extra["resource_url"] = resource_url.strip()
        return TokenPoll(status="success", token=token)

    def _defaults(self, token: TokenResult, session: OAuthSession) -> ProviderDefaults:
        base_url = token.extra.get("resource_url") or REGIONS[session.extra["region"]][1]
        return ProviderDefaults(
            provider_id=PROVIDER_ID,
            default_model=model_ref(DEFAULT_MODEL_ID),
            config_patch=build_config_patch(base_url),
            profile_id=self.profile_id,
        )

# Google installed-app OAuth (Antigravity, Gemini CLI): authorization code
# + PKCE against accounts.google.com, then identity lookup.
# Created: 2026-02-21

from __future__ import annotations

import logging
import urllib.parse
from dataclasses import dataclass, replace

from pocketauth.config import get_settings
from pocketauth.oauth.models import TokenResult
from pocketauth.oauth.providers._http import get_json, post_form, post_json, token_result_from_payload
from pocketauth.profile_writer import ProviderDefaults

logger = logging.getLogger(__name__)

GOOGLE_AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
GOOGLE_USERINFO_URL = "https://www.googleapis.com/oauth2/v1/userinfo?alt=json"
CODE_ASSIST_URL = "https://cloudcode-pa.googleapis.com/v1internal:loadCodeAssist"

_BASE_SCOPES = [
    "https://www.googleapis.com/auth/cloud-platform",
    "https://www.googleapis.com/auth/userinfo.email",
    "https://www.googleapis.com/auth/userinfo.profile",
]


@dataclass(frozen=True)
class GoogleClient:
    """Static description of one Google installed-app client."""

    provider_id: str
    redirect_uri: str
    scopes: tuple[str, ...]
    default_model: str
    # used when Code Assist does not report a project
    fallback_project_id: str | None = None


ANTIGRAVITY = GoogleClient(
    provider_id="google-antigravity",
    redirect_uri="http://localhost:51121/oauth-callback",
    scopes=(
        *_BASE_SCOPES,
        "https://www.googleapis.com/auth/cclog",
        "https://www.googleapis.com/auth/experimentsandconfigs",
    ),
    default_model="google-antigravity/claude-opus-4-5-thinking",
    fallback_project_id="rising-fact-p41fc",
)

GEMINI_CLI = GoogleClient(
    provider_id="google-gemini-cli",
    redirect_uri="http://localhost:8085/oauth2callback",
    scopes=tuple(_BASE_SCOPES),
    default_model="google-gemini-cli/gemini-3-pro-preview",
)


def _credentials(client: GoogleClient) -> tuple[str, str | None]:
    settings = get_settings()
    if client is ANTIGRAVITY:
        return settings.antigravity_client_id, settings.antigravity_client_secret
    return settings.gemini_cli_client_id, settings.gemini_cli_client_secret


def _project_from_code_assist(data: dict | None) -> str | None:
    if not data:
        return None
    project = data.get("cloudaicompanionProject")
    if isinstance(project, str) and project.strip():
        return project.strip()
    if isinstance(project, dict) and str(project.get("id") or "").strip():
        return str(project["id"]).strip()
    return None


class GoogleStrategy:
    """PKCE strategy for a Google installed-app client."""

    def __init__(self, client: GoogleClient):
        self.client = client
        self.redirect_uri = client.redirect_uri

    def build_auth_url(self, challenge: str, state: str) -> str:
        client_id, _ = _credentials(self.client)
        params = {
            "client_id": client_id,
            "response_type": "code",
            "redirect_uri": self.redirect_uri,
            "scope": " ".join(self.client.scopes),
            "code_challenge": challenge,
            "code_challenge_method": "S256",
            "state": state,
            "access_type": "offline",
            "prompt": "consent",
        }
        return f"{GOOGLE_AUTH_URL}?{urllib.parse.urlencode(params)}"

    async def exchange_code(self, code: str, verifier: str) -> TokenResult:
        client_id, client_secret = _credentials(self.client)
        data = {
            "client_id": client_id,
            "code": code,
            "grant_type": "authorization_code",
            "redirect_uri": self.redirect_uri,
            "code_verifier": verifier,
        }
        if client_secret:
            data["client_secret"] = client_secret
        payload = await post_form(GOOGLE_TOKEN_URL, data)
        return token_result_from_payload(payload)

    async def resolve_identity(self, token: TokenResult) -> TokenResult:
        """Look up the account email and the Code Assist project.

        Both lookups are best-effort; a missing email yields the
        ``<provider>:default`` profile.
        """
        userinfo = await get_json(GOOGLE_USERINFO_URL, token.access)
        email = str((userinfo or {}).get("email") or "").strip() or None

        code_assist = await post_json(
            CODE_ASSIST_URL,
            token.access,
            {
                "metadata": {
                    "ideType": "IDE_UNSPECIFIED",
                    "platform": "PLATFORM_UNSPECIFIED",
                    "pluginType": "GEMINI",
                }
            },
        )
        project_id = _project_from_code_assist(code_assist) or self.client.fallback_project_id
        if project_id is None:
            logger.warning("%s: no Code Assist project for this account", self.client.provider_id)
        return replace(token, email=email, project_id=project_id)


def defaults_for(client: GoogleClient) -> ProviderDefaults:
    return ProviderDefaults(provider_id=client.provider_id, default_model=client.default_model)

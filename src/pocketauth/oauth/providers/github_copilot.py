# GitHub Copilot: OAuth device flow. The user enters a short code on
# github.com while the caller polls poll(state) at the advertised interval.
# Created: 2026-02-21

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from typing import Any

import httpx

from pocketauth.config import get_settings
from pocketauth.errors import EXPIRED, INVALID_STATE, OAuthError
from pocketauth.oauth.models import DeviceStartResult, OAuthSession, PollResult, SessionStatus
from pocketauth.oauth.pkce import generate_state
from pocketauth.oauth.sessions import SessionRegistry
from pocketauth.profile_writer import AuthProfileWriter

logger = logging.getLogger(__name__)

PROVIDER_ID = "github-copilot"
DEFAULT_PROFILE_ID = "github-copilot:github"

DEVICE_CODE_URL = "https://github.com/login/device/code"
ACCESS_TOKEN_URL = "https://github.com/login/oauth/access_token"
DEVICE_GRANT = "urn:ietf:params:oauth:grant-type:device_code"
SLOW_DOWN_STEP_MS = 2000


async def _post(url: str, data: dict[str, str]) -> dict[str, Any]:
    async with httpx.AsyncClient(timeout=get_settings().http_timeout_seconds) as client:
        resp = await client.post(
            url,
            data=data,
            headers={"Accept": "application/json"},
        )
        resp.raise_for_status()
        payload = resp.json()
    if not isinstance(payload, dict):
        raise OAuthError("Unexpected response from GitHub")
    return payload


class GitHubCopilotDeviceFlow:
    """Device-code login that stores a token-mode profile."""

    provider_id = PROVIDER_ID

    def __init__(
        self,
        writer: AuthProfileWriter | None = None,
        profile_id: str = DEFAULT_PROFILE_ID,
        clock: Callable[[], float] = time.time,
    ):
        self.writer = writer or AuthProfileWriter()
        self.profile_id = profile_id
        self._clock = clock
        self.sessions = SessionRegistry(get_settings().oauth_session_ttl_seconds)

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    async def start(self, profile_id: str | None = None) -> DeviceStartResult:
        device = await _post(
            DEVICE_CODE_URL,
            {"client_id": get_settings().github_copilot_client_id, "scope": "read:user"},
        )
        if not device.get("device_code") or not device.get("user_code") or not device.get(
            "verification_uri"
        ):
            raise OAuthError("GitHub device code response missing fields")

        interval_ms = max(1000, int(device.get("interval") or 5) * 1000)
        expires_at_ms = self._now_ms() + int(device.get("expires_in") or 900) * 1000
        session = OAuthSession(
            state=generate_state(),
            status=SessionStatus.AWAITING_CALLBACK,
            extra={
                "device_code": device["device_code"],
                "interval_ms": interval_ms,
                "expires_at_ms": expires_at_ms,
                "profile_id": str(profile_id or "").strip() or self.profile_id,
            },
        )
        self.sessions.add(session)
        logger.info("Started GitHub device login %s…", session.state[:8])
        return DeviceStartResult(
            state=session.state,
            verification_url=device["verification_uri"],
            user_code=device["user_code"],
            interval_ms=interval_ms,
            expires_at_ms=expires_at_ms,
        )

    async def _request_token(self, device_code: str) -> dict[str, Any]:
        return await _post(
            ACCESS_TOKEN_URL,
            {
                "client_id": get_settings().github_copilot_client_id,
                "device_code": device_code,
                "grant_type": DEVICE_GRANT,
            },
        )

    async def poll(self, state: str) -> PollResult:
        session = self.sessions.get(state)
        if session is None:
            return PollResult(status="error", error=INVALID_STATE)
        if session.status is SessionStatus.EXCHANGING:
            # another poll for this state is in flight
            return PollResult(status="pending")
        if self._now_ms() > session.extra["expires_at_ms"]:
            self.sessions.pop(state)
            return PollResult(status=EXPIRED)

        session.status = SessionStatus.EXCHANGING
        try:
            reply = await self._request_token(session.extra["device_code"])
        except (OAuthError, httpx.HTTPError) as e:
            self.sessions.pop(state)
            session.status = SessionStatus.FAILED
            logger.warning("GitHub device token request failed: %s", e)
            return PollResult(status="error", error=f"GitHub device token failed: {e}")

        access_token = reply.get("access_token")
        if isinstance(access_token, str) and access_token:
            self.sessions.pop(state)
            profile_id = session.extra["profile_id"]
            try:
                self.writer.commit_token(PROVIDER_ID, access_token, profile_id)
            except Exception:
                session.status = SessionStatus.FAILED
                raise
            session.status = SessionStatus.COMPLETE
            return PollResult(status="success", profile_id=profile_id)

        error = str(reply.get("error") or "unknown")
        if error in ("authorization_pending", "slow_down"):
            session.status = SessionStatus.AWAITING_CALLBACK
            if error == "slow_down":
                session.extra["interval_ms"] += SLOW_DOWN_STEP_MS
                return PollResult(status="pending", interval_ms=session.extra["interval_ms"])
            return PollResult(status="pending")

        self.sessions.pop(state)
        session.status = SessionStatus.FAILED
        if error == "expired_token":
            return PollResult(status=EXPIRED)
        if error == "access_denied":
            return PollResult(status="error", error="GitHub login cancelled")
        return PollResult(status="error", error=f"GitHub device flow error: {error}")

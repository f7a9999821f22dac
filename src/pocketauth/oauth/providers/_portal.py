# Portal device logins (Qwen, MiniMax): device/user codes bound to a PKCE
# challenge. The verifier stays in the session and only goes out with the
# token poll.
# Created: 2026-02-21

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

import httpx

from pocketauth.config import get_settings
from pocketauth.errors import EXPIRED, INVALID_STATE, OAuthError
from pocketauth.oauth.models import (
    DeviceStartResult,
    OAuthSession,
    PollResult,
    SessionStatus,
    TokenResult,
)
from pocketauth.oauth.pkce import generate_pkce, generate_state
from pocketauth.oauth.sessions import SessionRegistry
from pocketauth.profile_writer import AuthProfileWriter, ProviderDefaults

logger = logging.getLogger(__name__)

SLOW_DOWN_STEP_MS = 2000
DEFAULT_INTERVAL_SECONDS = 2
DEFAULT_EXPIRES_SECONDS = 900


@dataclass
class DeviceAuthorization:
    """What the provider hands back when a device login is opened."""

    user_code: str
    verification_url: str
    expires_in: int  # seconds
    interval: int = DEFAULT_INTERVAL_SECONDS  # seconds
    extra: dict[str, Any] = field(default_factory=dict)


@dataclass
class TokenPoll:
    status: str  # "pending" | "slow_down" | "success" | "expired" | "error"
    token: TokenResult | None = None
    error: str | None = None


def seconds(value: Any, default: int, what: str) -> int:
    try:
        return int(value or default)
    except (TypeError, ValueError) as e:
        raise OAuthError(f"Invalid {what} in device authorization response") from e


def model_definition(
    model_id: str, name: str, inputs: list[str], context_window: int, max_tokens: int
) -> dict[str, Any]:
    return {
        "id": model_id,
        "name": name,
        "reasoning": False,
        "input": inputs,
        "cost": {"input": 0, "output": 0, "cacheRead": 0, "cacheWrite": 0},
        "contextWindow": context_window,
        "maxTokens": max_tokens,
    }


async def post_form_reply(
    url: str, data: dict[str, str], headers: dict[str, str] | None = None
) -> tuple[int, dict[str, Any]]:
    """POST a form and return ``(status_code, json_object)``.

    Error statuses are returned, not raised: device endpoints report
    "still pending" as an HTTP 400 with an error code in the body.
    """
    async with httpx.AsyncClient(timeout=get_settings().http_timeout_seconds) as client:
        resp = await client.post(
            url,
            data=data,
            headers={"Accept": "application/json", **(headers or {})},
        )
    try:
        payload = resp.json()
    except ValueError:
        payload = None
    if not isinstance(payload, dict):
        raise OAuthError(f"Unexpected response from {url} (HTTP {resp.status_code})")
    return resp.status_code, payload


class PortalDeviceFlow:
    """Device login whose result is an OAuth credential plus a provider config patch.

    Subclasses open the login (``_authorize``), poll the token endpoint
    (``_request_token``) and describe what the login adds to config
    (``_defaults``).
    """

    provider_id = ""
    label = ""

    def __init__(
        self,
        writer: AuthProfileWriter | None = None,
        clock: Callable[[], float] = time.time,
    ):
        self.writer = writer or AuthProfileWriter()
        self.profile_id = f"{self.provider_id}:default"
        self._clock = clock
        self.sessions = SessionRegistry(get_settings().oauth_session_ttl_seconds)

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    async def _authorize(self, session: OAuthSession) -> DeviceAuthorization:
        raise NotImplementedError

    async def _request_token(self, session: OAuthSession) -> TokenPoll:
        raise NotImplementedError

    def _defaults(self, token: TokenResult, session: OAuthSession) -> ProviderDefaults:
        raise NotImplementedError

    async def start(self) -> DeviceStartResult:
        verifier, challenge = generate_pkce()
        session = OAuthSession(state=generate_state(), verifier=verifier, challenge=challenge)
        auth = await self._authorize(session)

        interval_ms = max(1000, auth.interval * 1000)
        expires_at_ms = self._now_ms() + auth.expires_in * 1000
        session.extra.update(auth.extra)
        session.extra["user_code"] = auth.user_code
        session.extra["interval_ms"] = interval_ms
        session.extra["expires_at_ms"] = expires_at_ms
        session.status = SessionStatus.AWAITING_CALLBACK
        self.sessions.add(session)
        logger.info("Started %s device login %s…", self.label, session.state[:8])
        return DeviceStartResult(
            state=session.state,
            verification_url=auth.verification_url,
            user_code=auth.user_code,
            interval_ms=interval_ms,
            expires_at_ms=expires_at_ms,
        )

    async def poll(self, state: str) -> PollResult:
        session = self.sessions.get(state)
        if session is None:
            return PollResult(status="error", error=INVALID_STATE)
        if session.status is SessionStatus.EXCHANGING:
            return PollResult(status="pending")
        if self._now_ms() > session.extra["expires_at_ms"]:
            self.sessions.pop(state)
            return PollResult(status=EXPIRED)

        session.status = SessionStatus.EXCHANGING
        try:
            reply = await self._request_token(session)
        except (OAuthError, httpx.HTTPError) as e:
            self.sessions.pop(state)
            session.status = SessionStatus.FAILED
            logger.warning("%s token poll failed: %s", self.label, e)
            return PollResult(status="error", error=f"{self.label} login failed: {e}")

        if reply.status in ("pending", "slow_down"):
            session.status = SessionStatus.AWAITING_CALLBACK
            if reply.status == "slow_down":
                session.extra["interval_ms"] += SLOW_DOWN_STEP_MS
                return PollResult(status="pending", interval_ms=session.extra["interval_ms"])
            return PollResult(status="pending")

        self.sessions.pop(state)
        if reply.status != "success" or reply.token is None:
            session.status = SessionStatus.FAILED
            if reply.status == EXPIRED:
                return PollResult(status=EXPIRED)
            return PollResult(status="error", error=reply.error or f"{self.label} login failed")

        defaults = self._defaults(reply.token, session)
        try:
            self.writer.commit(reply.token, defaults)
        except Exception:
            session.status = SessionStatus.FAILED
            raise
        session.status = SessionStatus.COMPLETE
        return PollResult(status="success", profile_id=defaults.profile_id)

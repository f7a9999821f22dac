"""HTTP helpers shared by provider strategies."""

from __future__ import annotations

import base64
import json
import logging
import time
from typing import Any

import httpx

from pocketauth.config import get_settings
from pocketauth.errors import TokenExchangeError
from pocketauth.oauth.models import TokenResult

logger = logging.getLogger(__name__)

# Treat tokens as expired a little early so callers refresh in time
EXPIRY_SKEW_MS = 5 * 60 * 1000


def _timeout() -> float:
    return get_settings().http_timeout_seconds


def describe_error_payload(data: Any, status_code: int) -> str:
    """Best human-readable error from an OAuth-style error body."""
    if isinstance(data, dict):
        error = data.get("error")
        if isinstance(error, dict):
            error = error.get("message") or error.get("status")
        description = data.get("error_description")
        if error and description:
            return f"{error}: {description}"
        if error:
            return str(error)
    return f"HTTP {status_code}"


def _describe_error(resp: httpx.Response) -> str:
    try:
        data = resp.json()
    except ValueError:
        data = None
    return describe_error_payload(data, resp.status_code)


async def post_form(url: str, data: dict[str, str]) -> dict[str, Any]:
    """POST a form-encoded body and return the JSON object reply.

    Raises TokenExchangeError on an HTTP error status or a non-object body.
    """
    async with httpx.AsyncClient(timeout=_timeout()) as client:
        resp = await client.post(
            url,
            data=data,
            headers={"Accept": "application/json"},
        )
    if resp.status_code >= 400:
        raise TokenExchangeError(f"Token request failed: {_describe_error(resp)}")
    try:
        payload = resp.json()
    except ValueError as e:
        raise TokenExchangeError("Token endpoint returned invalid JSON") from e
    if not isinstance(payload, dict):
        raise TokenExchangeError("Token endpoint returned an unexpected payload")
    return payload


def token_result_from_payload(payload: dict[str, Any]) -> TokenResult:
    access = payload.get("access_token")
    refresh = payload.get("refresh_token")
    if not isinstance(access, str) or not access:
        raise TokenExchangeError("Token response missing access_token")
    if not isinstance(refresh, str) or not refresh:
        raise TokenExchangeError("Token response missing refresh_token")
    try:
        expires_in = int(payload.get("expires_in") or 3600)
    except (TypeError, ValueError) as e:
        raise TokenExchangeError("Token response has invalid expires_in") from e
    return TokenResult(
        access=access,
        refresh=refresh,
        expires=int(time.time() * 1000) + expires_in * 1000 - EXPIRY_SKEW_MS,
    )


async def get_json(url: str, access_token: str) -> dict[str, Any] | None:
    """Best-effort authenticated GET. Returns None on any failure."""
    try:
        async with httpx.AsyncClient(timeout=_timeout()) as client:
            resp = await client.get(url, headers={"Authorization": f"Bearer {access_token}"})
            resp.raise_for_status()
            data = resp.json()
    except (httpx.HTTPError, ValueError) as e:
        logger.warning("GET %s failed: %s", url, e)
        return None
    return data if isinstance(data, dict) else None


async def post_json(url: str, access_token: str, body: dict[str, Any]) -> dict[str, Any] | None:
    """Best-effort authenticated JSON POST. Returns None on any failure."""
    try:
        async with httpx.AsyncClient(timeout=_timeout()) as client:
            resp = await client.post(
                url,
                json=body,
                headers={"Authorization": f"Bearer {access_token}"},
            )
            resp.raise_for_status()
            data = resp.json()
    except (httpx.HTTPError, ValueError) as e:
        logger.warning("POST %s failed: %s", url, e)
        return None
    return data if isinstance(data, dict) else None


def parse_jwt_claims(token: str) -> dict[str, Any] | None:
    """Decode a JWT payload without verifying it. Returns None if malformed."""
    parts = token.split(".")
    if len(parts) != 3:
        return None
    payload = parts[1] + "=" * (-len(parts[1]) % 4)
    try:
        claims = json.loads(base64.urlsafe_b64decode(payload).decode("utf-8"))
    except (ValueError, UnicodeDecodeError):
        return None
    return claims if isinstance(claims, dict) else None

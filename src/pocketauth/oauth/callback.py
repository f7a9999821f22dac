# Parse the redirect URL (or pasted query string) a user brings back from
# the provider's consent page.
# Created: 2026-02-21

from __future__ import annotations

import hmac
import urllib.parse
from dataclasses import dataclass


@dataclass(frozen=True)
class CallbackParams:
    code: str
    state: str


@dataclass(frozen=True)
class CallbackError:
    error: str


def _extract_query(raw: str) -> str:
    parsed = urllib.parse.urlsplit(raw)
    if parsed.scheme and (parsed.query or parsed.fragment):
        return parsed.query or parsed.fragment
    if raw.startswith("?") or raw.startswith("#"):
        return raw[1:]
    return raw


def parse_callback_input(raw: str) -> CallbackParams | CallbackError:
    """Split a callback payload into ``code``/``state`` or a carried error.

    Accepts a full redirect URL, a bare ``code=...&state=...`` query string,
    or a ``#fragment``. A provider-reported ``error`` wins over everything
    else.
    """
    text = str(raw or "").strip()
    if not text:
        return CallbackError("empty_input")

    params = urllib.parse.parse_qs(_extract_query(text), keep_blank_values=True)

    def first(name: str) -> str:
        values = params.get(name) or [""]
        return values[0].strip()

    error = first("error")
    if error:
        description = first("error_description")
        return CallbackError(f"{error}: {description}" if description else error)

    code = first("code")
    if not code:
        return CallbackError("missing_code")
    state = first("state")
    if not state:
        return CallbackError("missing_state")
    return CallbackParams(code=code, state=state)


def states_match(expected: str, actual: str) -> bool:
    """Exact, constant-time comparison of state tokens."""
    return hmac.compare_digest(expected.encode(), actual.encode())

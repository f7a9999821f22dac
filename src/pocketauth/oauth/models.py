# OAuth session and result models.
# Created: 2026-02-21

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class SessionStatus(str, Enum):
    CREATED = "created"
    AWAITING_CALLBACK = "awaiting_callback"
    EXCHANGING = "exchanging"
    COMPLETE = "complete"
    FAILED = "failed"


@dataclass
class OAuthSession:
    """One in-flight authorization attempt, keyed by its state token.

    Held in memory only; a process restart invalidates every session.
    """

    state: str
    verifier: str = ""
    challenge: str = ""
    created_at: float = field(default_factory=time.monotonic)
    status: SessionStatus = SessionStatus.CREATED
    extra: dict[str, Any] = field(default_factory=dict)


@dataclass
class TokenResult:
    """Output of a successful code exchange. Consumed once by the profile writer."""

    access: str
    refresh: str
    expires: int  # absolute, epoch milliseconds
    email: str | None = None
    project_id: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)


@dataclass
class StartResult:
    state: str
    authorization_url: str
    redirect_hint: str = ""

    def to_dict(self) -> dict[str, str]:
        return {
            "state": self.state,
            "authorizationUrl": self.authorization_url,
            "redirectHint": self.redirect_hint,
        }


@dataclass
class CompleteResult:
    status: str  # "success" | "error"
    error: str | None = None

    @classmethod
    def success(cls) -> CompleteResult:
        return cls(status="success")

    @classmethod
    def failure(cls, error: str) -> CompleteResult:
        return cls(status="error", error=error)

    @property
    def ok(self) -> bool:
        return self.status == "success"

    def to_dict(self) -> dict[str, str]:
        if self.ok:
            return {"status": "success"}
        return {"status": "error", "error": self.error or "unknown_error"}


@dataclass
class DeviceStartResult:
    """Device-code flows: the user enters ``user_code`` at ``verification_url``."""

    state: str
    verification_url: str
    user_code: str
    interval_ms: int
    expires_at_ms: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "state": self.state,
            "verificationUrl": self.verification_url,
            "userCode": self.user_code,
            "intervalMs": self.interval_ms,
            "expiresAtMs": self.expires_at_ms,
        }


@dataclass
class PollResult:
    status: str  # "pending" | "success" | "expired" | "error"
    error: str | None = None
    interval_ms: int | None = None
    profile_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"status": self.status}
        if self.error:
            data["error"] = self.error
        if self.interval_ms is not None:
            data["intervalMs"] = self.interval_ms
        if self.profile_id:
            data["profileId"] = self.profile_id
        return data

# Auth Profiles: non-secret profile records per agent directory, with the
# credential material itself kept in the CredentialVault.
# Created: 2026-02-21

from __future__ import annotations

import json
import logging
import os
import stat
from dataclasses import asdict, dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from pocketauth.errors import CredentialWriteError
from pocketauth.vault import CredentialVault

logger = logging.getLogger(__name__)

PROFILES_FILE = "auth-profiles.json"
SECRET_REF_PREFIX = "auth-profile"

_PROVIDER_ALIASES = {
    "qwen": "qwen-portal",
    "z.ai": "zai",
    "z-ai": "zai",
}


def normalize_provider_id(provider: str) -> str:
    normalized = str(provider or "").strip().lower()
    return _PROVIDER_ALIASES.get(normalized, normalized)


def build_profile_id(provider: str, account: str | None = None) -> str:
    """One profile per (provider, account): ``google-gemini-cli:me@example.com``."""
    account = str(account or "").strip() or "default"
    return f"{normalize_provider_id(provider)}:{account}"


@dataclass
class OAuthCredential:
    """OAuth token set for a provider account."""

    provider: str
    access: str
    refresh: str
    expires: int  # epoch milliseconds
    email: str | None = None
    project_id: str | None = None
    type: str = "oauth"


@dataclass
class TokenCredential:
    """Static bearer token (device flows, setup tokens)."""

    provider: str
    token: str
    type: str = "token"


Credential = OAuthCredential | TokenCredential


@dataclass
class AuthProfile:
    """Where a provider account's credential lives. Contains no secrets."""

    profile_id: str
    provider: str
    mode: str
    secret_ref: str
    email: str | None = None
    project_id: str | None = None
    updated_at: str = field(default_factory=lambda: datetime.now(UTC).isoformat())


def _credential_from_dict(data: dict[str, Any]) -> Credential:
    if data.get("type") == "token":
        return TokenCredential(provider=data["provider"], token=data["token"])
    return OAuthCredential(
        provider=data["provider"],
        access=data["access"],
        refresh=data["refresh"],
        expires=int(data["expires"]),
        email=data.get("email"),
        project_id=data.get("project_id"),
    )


class AuthProfileStore:
    """Profile index at ``<agent_dir>/auth-profiles.json`` (chmod 0600).

    Re-authenticating the same account overwrites its profile in place.
    """

    def __init__(self, agent_dir: Path, vault: CredentialVault | None = None):
        self.agent_dir = agent_dir
        self.vault = vault or CredentialVault()

    @property
    def path(self) -> Path:
        return self.agent_dir / PROFILES_FILE

    def _load(self) -> dict[str, AuthProfile]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
            return {pid: AuthProfile(**entry) for pid, entry in data.get("profiles", {}).items()}
        except (json.JSONDecodeError, OSError, TypeError, AttributeError) as e:
            logger.warning("Failed to load auth profiles from %s: %s", self.path, e)
            return {}

    def _save(self, profiles: dict[str, AuthProfile]) -> None:
        self.agent_dir.mkdir(parents=True, exist_ok=True)
        data = {"version": 1, "profiles": {pid: asdict(p) for pid, p in profiles.items()}}
        tmp = self.path.with_suffix(".json.tmp")
        tmp.write_text(json.dumps(data, indent=2), encoding="utf-8")
        os.chmod(tmp, stat.S_IRUSR | stat.S_IWUSR)
        os.replace(tmp, self.path)

    def upsert(self, profile_id: str, credential: Credential) -> AuthProfile:
        """Store *credential* in the vault, then record the profile.

        Raises CredentialWriteError if the vault rejects the write; the
        profile index is left untouched in that case.
        """
        secret_ref = f"{SECRET_REF_PREFIX}:{profile_id}"
        result = self.vault.set(secret_ref, json.dumps(asdict(credential)))
        if not result.ok:
            raise CredentialWriteError(
                f"Could not store credential for {profile_id}: {result.error}"
            )

        profile = AuthProfile(
            profile_id=profile_id,
            provider=credential.provider,
            mode=credential.type,
            secret_ref=secret_ref,
            email=getattr(credential, "email", None),
            project_id=getattr(credential, "project_id", None),
        )
        profiles = self._load()
        profiles[profile_id] = profile
        self._save(profiles)
        logger.info("Saved auth profile %s (%s)", profile_id, profile.mode)
        return profile

    def get(self, profile_id: str) -> AuthProfile | None:
        return self._load().get(profile_id)

    def list(self) -> list[AuthProfile]:
        return list(self._load().values())

    def load_credential(self, profile_id: str) -> Credential | None:
        """Load the credential behind a profile. Returns None if not found."""
        profile = self.get(profile_id)
        if profile is None:
            return None
        raw = self.vault.get(profile.secret_ref)
        if raw is None:
            return None
        try:
            return _credential_from_dict(json.loads(raw))
        except (json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
            logger.warning("Stored credential for %s is unreadable: %s", profile_id, e)
            return None

    def remove(self, profile_id: str) -> bool:
        """Delete a profile and its credential. Returns True if it existed."""
        profiles = self._load()
        profile = profiles.pop(profile_id, None)
        if profile is None:
            return False
        self.vault.delete(profile.secret_ref)
        self._save(profiles)
        logger.info("Removed auth profile %s", profile_id)
        return True

# Credential Vault: secret refs backed by the OS credential store (through
# keyring), with a chmod-0600 JSON file fallback at <state_dir>/credentials/.
# Created: 2026-02-21
#
# The backend is chosen on every call: availability of the OS store depends
# on the runtime environment (e.g. no D-Bus session under a service manager).

from __future__ import annotations

import json
import logging
import os
import re
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

import keyring
from keyring.backend import KeyringBackend
from keyring.backends import chainer, fail
from keyring.errors import PasswordDeleteError

from pocketauth.config import get_config_dir, get_settings

logger = logging.getLogger(__name__)


@dataclass
class VaultResult:
    """Outcome of a vault mutation."""

    ok: bool
    error: str | None = None


class SecretBackend(Protocol):
    name: str

    def set(self, ref: str, value: str) -> None: ...

    def get(self, ref: str) -> str | None: ...

    def delete(self, ref: str) -> None: ...


def _describe(exc: BaseException) -> str:
    return str(exc) or exc.__class__.__name__


class KeyringSecretBackend:
    """OS credential store (Keychain, Credential Locker, Secret Service).

    Refs are stored as usernames under one service name.
    """

    def __init__(self, service: str, store: KeyringBackend):
        self.service = service
        self.store = store
        self.name = f"keyring:{type(store).__name__}"

    def set(self, ref: str, value: str) -> None:
        self.store.set_password(self.service, ref, value)

    def get(self, ref: str) -> str | None:
        return self.store.get_password(self.service, ref)

    def delete(self, ref: str) -> None:
        try:
            self.store.delete_password(self.service, ref)
        except PasswordDeleteError:
            # nothing stored under this ref
            pass


# ── Fallback: single JSON object file ──────────────────────────────────


class FileBackend:
    """``{ref: secret}`` JSON file, owner read/write only.

    Every mutation is a whole-file read-modify-write swapped in atomically.
    Writers in different processes are not coordinated (last write wins).
    """

    name = "file"

    def __init__(self, path: Path):
        self.path = path

    def read_all(self) -> dict[str, str]:
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return {}
        except (OSError, ValueError) as e:
            logger.warning("Ignoring unreadable secrets file %s: %s", self.path, e)
            return {}
        if not isinstance(data, dict):
            logger.warning("Ignoring secrets file %s: not a JSON object", self.path)
            return {}
        store: dict[str, str] = {}
        for key, value in data.items():
            ref = str(key or "").strip()
            if ref and isinstance(value, str) and value.strip():
                store[ref] = value
        return store

    def write_all(self, store: dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True, mode=0o700)
        fd, tmp_name = tempfile.mkstemp(prefix=f".{self.path.name}.", dir=self.path.parent)
        try:
            os.chmod(tmp_name, 0o600)
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(store, fh, indent=2)
                fh.flush()
                os.fsync(fh.fileno())
            os.replace(tmp_name, self.path)
        except BaseException:
            try:
                os.unlink(tmp_name)
            except OSError:
                pass
            raise
        os.chmod(self.path, 0o600)

    def set(self, ref: str, value: str) -> None:
        store = self.read_all()
        store[ref] = value
        self.write_all(store)

    def get(self, ref: str) -> str | None:
        return self.read_all().get(ref)

    def delete(self, ref: str) -> None:
        store = self.read_all()
        if ref in store:
            del store[ref]
            self.write_all(store)


def _usable(store: KeyringBackend) -> bool:
    if isinstance(store, fail.Keyring):
        return False
    if isinstance(store, chainer.ChainerBackend):
        return bool(store.backends)
    return True


def _native_backend(service: str) -> SecretBackend | None:
    """Resolve the host's OS-native secure store. Returns None if there is none."""
    store = keyring.get_keyring()
    if not _usable(store):
        return None
    return KeyringSecretBackend(service, store)


def default_fallback_path() -> Path:
    return get_config_dir() / "credentials" / get_settings().credentials_file


class CredentialVault:
    """Maps opaque secret refs to secret values.

    Mutations return ``VaultResult``; no backend exception escapes. ``get``
    returns None for absent refs and for unreadable stores.
    """

    def __init__(self, service: str | None = None, fallback_path: Path | None = None):
        self.service = service or get_settings().keychain_service
        self._fallback_path = fallback_path

    def backend(self) -> SecretBackend:
        native = _native_backend(self.service)
        if native is not None:
            return native
        return FileBackend(self._fallback_path or default_fallback_path())

    def set(self, ref: str, value: str) -> VaultResult:
        ref = str(ref or "").strip()
        value = str(value or "")
        if not ref:
            return VaultResult(ok=False, error="secret ref is required")
        if not value.strip():
            return VaultResult(ok=False, error="secret value is required")
        try:
            backend = self.backend()
            backend.set(ref, value)
        except Exception as e:
            logger.error("Failed to store secret %s: %s", ref, _describe(e))
            return VaultResult(ok=False, error=_describe(e) or "set secret failed")
        logger.info("Stored secret %s (%s)", ref, backend.name)
        return VaultResult(ok=True)

    def get(self, ref: str) -> str | None:
        """Return the secret for *ref*, or None if absent.

        Raises ValueError for a blank ref so callers can tell malformed input
        apart from a missing secret.
        """
        ref = str(ref or "").strip()
        if not ref:
            raise ValueError("secret ref is required")
        try:
            value = self.backend().get(ref)
        except Exception as e:
            logger.warning("Failed to read secret %s: %s", ref, _describe(e))
            return None
        return value if value and value.strip() else None

    def delete(self, ref: str) -> VaultResult:
        ref = str(ref or "").strip()
        if not ref:
            return VaultResult(ok=True)
        try:
            backend = self.backend()
            backend.delete(ref)
        except Exception as e:
            logger.error("Failed to delete secret %s: %s", ref, _describe(e))
            return VaultResult(ok=False, error=_describe(e) or "delete secret failed")
        logger.info("Deleted secret %s (%s)", ref, backend.name)
        return VaultResult(ok=True)

    def has(self, ref: str) -> bool:
        if not str(ref or "").strip():
            return False
        return self.get(ref) is not None


_UNSAFE_REF_CHARS = re.compile(r"[^a-z0-9:_-]", re.IGNORECASE)


def build_secret_ref(namespace: str, *parts: str) -> str:
    """Build a normalised ref such as ``mcp:provider:github:token``."""
    cleaned = [_UNSAFE_REF_CHARS.sub("_", str(p or "").strip()).lower() for p in (namespace, *parts)]
    return ":".join(cleaned)

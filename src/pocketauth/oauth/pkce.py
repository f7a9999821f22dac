"""PKCE (RFC 7636) helpers: S256 challenge = BASE64URL(SHA256(verifier))."""

import base64
import hashlib
import secrets

__all__ = ["generate_pkce", "generate_state", "s256_challenge"]


def s256_challenge(verifier: str) -> str:
    digest = hashlib.sha256(verifier.encode()).digest()
    return base64.urlsafe_b64encode(digest).rstrip(b"=").decode()


def generate_pkce() -> tuple[str, str]:
    """Return a fresh ``(verifier, challenge)`` pair."""
    verifier = secrets.token_urlsafe(32)
    return verifier, s256_challenge(verifier)


def generate_state() -> str:
    return secrets.token_urlsafe(32)

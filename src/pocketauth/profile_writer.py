# Auth Profile Writer: persist a finished OAuth login: credential into the
# vault, profile + model defaults into the app config.
# Created: 2026-02-21

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from pocketauth.auth_profiles import (
    AuthProfileStore,
    OAuthCredential,
    TokenCredential,
    build_profile_id,
    normalize_provider_id,
)
from pocketauth.config_file import load_config, write_config_file
from pocketauth.config_patch import (
    apply_auth_profile_config,
    apply_default_model,
    merge_patch,
    resolve_agent_dir,
    resolve_default_agent_id,
)
from pocketauth.oauth.models import TokenResult
from pocketauth.vault import CredentialVault

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProviderDefaults:
    """What a provider contributes to config after a successful login."""

    provider_id: str
    default_model: str | None = None
    config_patch: dict[str, Any] = field(default_factory=dict)
    mode: str = "oauth"
    # fixed profile id; otherwise derived from provider + account email
    profile_id: str | None = None

    def patch(self) -> dict[str, Any]:
        if not self.default_model:
            return merge_patch({}, self.config_patch)
        # provider patch applied second so an alias it sets for the model wins
        return merge_patch(
            {"agents": {"defaults": {"models": {self.default_model: {}}}}}, self.config_patch
        )


class AuthProfileWriter:
    """Applies one login to disk.

    The credential is always stored before the config is written, so a crash
    in between never leaves config pointing at a profile with no credential.
    """

    def __init__(self, vault: CredentialVault | None = None, config_path: Path | None = None):
        self.vault = vault or CredentialVault()
        self.config_path = config_path

    def _profile_store(self, cfg: dict[str, Any]) -> AuthProfileStore:
        agent_id = resolve_default_agent_id(cfg)
        return AuthProfileStore(resolve_agent_dir(cfg, agent_id), self.vault)

    def commit(self, token: TokenResult, defaults: ProviderDefaults) -> dict[str, Any]:
        """Persist *token* for ``defaults.provider_id`` and return the new config."""
        provider = normalize_provider_id(defaults.provider_id)

        cfg = load_config(self.config_path)
        next_cfg = merge_patch(cfg, defaults.patch())

        store = self._profile_store(next_cfg)
        profile_id = defaults.profile_id or build_profile_id(provider, token.email)
        store.upsert(
            profile_id,
            OAuthCredential(
                provider=provider,
                access=token.access,
                refresh=token.refresh,
                expires=token.expires,
                email=token.email,
                project_id=token.project_id,
            ),
        )

        next_cfg = apply_auth_profile_config(
            next_cfg, profile_id=profile_id, provider=provider, mode=defaults.mode, email=token.email
        )
        if defaults.default_model:
            next_cfg = apply_default_model(next_cfg, defaults.default_model)

        write_config_file(next_cfg, self.config_path)
        logger.info("Committed OAuth login for %s as %s", provider, profile_id)
        return next_cfg

    def commit_token(self, provider: str, token: str, profile_id: str) -> dict[str, Any]:
        """Token-mode variant (device flows, setup tokens); no model defaults."""
        provider = normalize_provider_id(provider)
        cfg = load_config(self.config_path)
        self._profile_store(cfg).upsert(profile_id, TokenCredential(provider=provider, token=token))
        next_cfg = apply_auth_profile_config(
            cfg, profile_id=profile_id, provider=provider, mode="token"
        )
        write_config_file(next_cfg, self.config_path)
        logger.info("Committed token for %s as %s", provider, profile_id)
        return next_cfg

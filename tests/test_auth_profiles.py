# Tests for auth_profiles.py and profile_writer.py
# Created: 2026-02-21

import json
import stat
from unittest.mock import MagicMock

import pytest

from pocketauth.auth_profiles import (
    AuthProfileStore,
    OAuthCredential,
    TokenCredential,
    build_profile_id,
    normalize_provider_id,
)
from pocketauth.config_file import load_config, write_config_file
from pocketauth.errors import ConfigFileError, CredentialWriteError
from pocketauth.oauth.models import TokenResult
from pocketauth.profile_writer import AuthProfileWriter, ProviderDefaults
from pocketauth.vault import CredentialVault, VaultResult


def _token(**overrides):
    data = dict(access="at", refresh="rt", expires=1_900_000_000_000, email="me@example.com")
    data.update(overrides)
    return TokenResult(**data)


# ---------------------------------------------------------------------------
# Profile ids
# ---------------------------------------------------------------------------


class TestProfileIds:
    def test_account_based_id(self):
        assert build_profile_id("google-gemini-cli", "me@example.com") == (
            "google-gemini-cli:me@example.com"
        )

    def test_default_account(self):
        assert build_profile_id("openai-codex") == "openai-codex:default"
        assert build_profile_id("openai-codex", "  ") == "openai-codex:default"

    @pytest.mark.parametrize(
        "raw, expected",
        [("Qwen", "qwen-portal"), ("z.ai", "zai"), ("Z-AI", "zai"), (" Anthropic ", "anthropic")],
    )
    def test_normalize_provider(self, raw, expected):
        assert normalize_provider_id(raw) == expected


# ---------------------------------------------------------------------------
# AuthProfileStore
# ---------------------------------------------------------------------------


class TestAuthProfileStore:
    def test_upsert_stores_secret_in_vault(self, tmp_path):
        vault = CredentialVault()
        store = AuthProfileStore(tmp_path / "agent", vault)
        cred = OAuthCredential(provider="p", access="at", refresh="rt", expires=1, email="e")
        profile = store.upsert("p:e", cred)

        assert profile.secret_ref == "auth-profile:p:e"
        assert json.loads(vault.get("auth-profile:p:e"))["access"] == "at"

        # the profile index carries no token material
        raw = store.path.read_text()
        assert "at" not in json.loads(raw)["profiles"]["p:e"].values()
        assert "rt" not in raw
        assert stat.S_IMODE(store.path.stat().st_mode) == 0o600

    def test_load_credential(self, tmp_path):
        store = AuthProfileStore(tmp_path / "agent")
        store.upsert("p:e", OAuthCredential(provider="p", access="at", refresh="rt", expires=5))
        store.upsert("q:default", TokenCredential(provider="q", token="tok"))

        oauth = store.load_credential("p:e")
        assert isinstance(oauth, OAuthCredential)
        assert oauth.refresh == "rt"
        assert oauth.expires == 5
        assert store.load_credential("q:default") == TokenCredential(provider="q", token="tok")
        assert store.load_credential("missing") is None

    def test_reauth_overwrites(self, tmp_path):
        store = AuthProfileStore(tmp_path / "agent")
        store.upsert("p:e", OAuthCredential(provider="p", access="a1", refresh="r1", expires=1))
        store.upsert("p:e", OAuthCredential(provider="p", access="a2", refresh="r2", expires=2))
        assert len(store.list()) == 1
        assert store.load_credential("p:e").access == "a2"

    def test_vault_failure_leaves_index_untouched(self, tmp_path):
        vault = MagicMock()
        vault.set.return_value = VaultResult(ok=False, error="keychain locked")
        store = AuthProfileStore(tmp_path / "agent", vault)

        with pytest.raises(CredentialWriteError, match="keychain locked"):
            store.upsert("p:e", TokenCredential(provider="p", token="tok"))
        assert not store.path.exists()

    def test_remove(self, tmp_path):
        vault = CredentialVault()
        store = AuthProfileStore(tmp_path / "agent", vault)
        store.upsert("p:e", TokenCredential(provider="p", token="tok"))

        assert store.remove("p:e") is True
        assert store.get("p:e") is None
        assert vault.has("auth-profile:p:e") is False
        assert store.remove("p:e") is False

    def test_corrupt_index_reads_empty(self, tmp_path):
        store = AuthProfileStore(tmp_path)
        store.path.write_text("nope")
        assert store.list() == []


# ---------------------------------------------------------------------------
# AuthProfileWriter
# ---------------------------------------------------------------------------


GEMINI = ProviderDefaults(
    provider_id="google-gemini-cli",
    default_model="google-gemini-cli/gemini-3-pro-preview",
)


class TestAuthProfileWriter:
    def test_commit_writes_profile_and_defaults(self, state_dir):
        cfg = AuthProfileWriter().commit(_token(), GEMINI)

        assert load_config() == cfg
        assert cfg["auth"]["profiles"]["google-gemini-cli:me@example.com"] == {
            "provider": "google-gemini-cli",
            "mode": "oauth",
            "email": "me@example.com",
        }
        assert cfg["agents"]["defaults"]["model"] == {
            "primary": "google-gemini-cli/gemini-3-pro-preview"
        }
        store = AuthProfileStore(state_dir / "agent")
        cred = store.load_credential("google-gemini-cli:me@example.com")
        assert cred.access == "at"
        assert cred.refresh == "rt"

    def test_commit_preserves_unrelated_config(self, tmp_path):
        path = tmp_path / "config.json"
        write_config_file(
            {"ui": {"theme": "dark"}, "agents": {"defaults": {"model": {"primary": "x/y"}}}}, path
        )
        cfg = AuthProfileWriter(config_path=path).commit(_token(), GEMINI)
        assert cfg["ui"] == {"theme": "dark"}
        assert cfg["agents"]["defaults"]["model"] == {"primary": "x/y"}
        assert "google-gemini-cli/gemini-3-pro-preview" in cfg["agents"]["defaults"]["models"]

    def test_fixed_profile_id(self):
        defaults = ProviderDefaults(provider_id="openai-codex", profile_id="openai-codex:default")
        cfg = AuthProfileWriter().commit(_token(), defaults)
        assert list(cfg["auth"]["profiles"]) == ["openai-codex:default"]

    def test_provider_patch_merged(self):
        defaults = ProviderDefaults(
            provider_id="p",
            default_model="p/m",
            config_patch={"agents": {"defaults": {"models": {"p/m": {"alias": "m"}}}}},
        )
        cfg = AuthProfileWriter().commit(_token(), defaults)
        assert cfg["agents"]["defaults"]["models"]["p/m"] == {"alias": "m"}

    def test_credential_written_before_config(self, monkeypatch):
        calls = []
        vault = MagicMock()
        vault.set.side_effect = lambda ref, value: calls.append("vault") or VaultResult(ok=True)

        def tracking_write(cfg, path=None):
            calls.append("config")
            write_config_file(cfg, path)

        monkeypatch.setattr("pocketauth.profile_writer.write_config_file", tracking_write)
        AuthProfileWriter(vault=vault).commit(_token(), GEMINI)
        assert calls == ["vault", "config"]

    def test_vault_failure_writes_no_config(self, state_dir):
        vault = MagicMock()
        vault.set.return_value = VaultResult(ok=False, error="denied")
        with pytest.raises(CredentialWriteError):
            AuthProfileWriter(vault=vault).commit(_token(), GEMINI)
        assert not (state_dir / "config.json").exists()

    def test_config_write_failure_propagates(self, monkeypatch):
        def boom(cfg, path=None):
            raise ConfigFileError("disk full")

        monkeypatch.setattr("pocketauth.profile_writer.write_config_file", boom)
        with pytest.raises(ConfigFileError, match="disk full"):
            AuthProfileWriter().commit(_token(), GEMINI)

    def test_commit_token(self, state_dir):
        cfg = AuthProfileWriter().commit_token("github-copilot", "ghu_x", "github-copilot:github")
        assert cfg["auth"]["profiles"]["github-copilot:github"] == {
            "provider": "github-copilot",
            "mode": "token",
        }
        cred = AuthProfileStore(state_dir / "agent").load_credential("github-copilot:github")
        assert cred == TokenCredential(provider="github-copilot", token="ghu_x")

    def test_defaults_patch_without_model(self):
        defaults = ProviderDefaults(provider_id="p", config_patch={"a": {"b": 1}})
        assert defaults.patch() == {"a": {"b": 1}}

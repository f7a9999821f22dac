"""Settings for pocketauth.

Values come from ``POCKETAUTH_*`` environment variables or a local ``.env``
file. Everything persistent lives under a single state directory
(``~/.pocketauth`` unless overridden).
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime configuration."""

    model_config = SettingsConfigDict(
        env_prefix="POCKETAUTH_",
        env_file=".env",
        extra="ignore",
    )

    # Storage
    state_dir: Path | None = Field(
        default=None, description="Override for the state directory (default ~/.pocketauth)"
    )
    config_file: str = Field(default="config.json", description="App config file name")
    keychain_service: str = Field(
        default="pocketauth.credentials",
        description="Service/resource name for OS-native secret entries",
    )
    credentials_file: str = Field(
        default="secrets.json", description="Fallback secret file under credentials/"
    )

    # OAuth sessions
    oauth_session_ttl_seconds: int = Field(
        default=900, ge=1, description="Evict abandoned OAuth sessions after this many seconds"
    )
    http_timeout_seconds: float = Field(default=15.0, gt=0)

    # Installed-app client ids (public, not secrets)
    antigravity_client_id: str = (
        "1071006060591-tmhssin2h21lcre235vtolojh4g403ep.apps.googleusercontent.com"
    )
    antigravity_client_secret: str | None = None
    gemini_cli_client_id: str = (
        "681255809395-oo8ft2oprdrnp9e3aqf6av3hmdib135j.apps.googleusercontent.com"
    )
    gemini_cli_client_secret: str | None = None
    openai_codex_client_id: str = "app_EMoamEEZ73f0CkXaXp7hrann"
    github_copilot_client_id: str = "Iv1.b507a08c87ecfe98"
    qwen_portal_client_id: str = "f0304373b74a44d2b584a3fb70ca9e56"
    minimax_portal_client_id: str = "78257093-7e40-4613-99e0-527b14b39113"
    minimax_region: Literal["global", "cn"] = Field(
        default="global", description="MiniMax account region (api.minimax.io or api.minimaxi.com)"
    )


def get_config_dir() -> Path:
    """Get/create the state directory."""
    settings = get_settings()
    d = settings.state_dir or (Path.home() / ".pocketauth")
    d.mkdir(parents=True, exist_ok=True)
    return d


def get_config_path() -> Path:
    return get_config_dir() / get_settings().config_file


@lru_cache
def get_settings() -> Settings:
    return Settings()

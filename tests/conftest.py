# Shared fixtures: every test gets its own state directory and never touches
# the host's real keychain / credential locker.

import pytest

from pocketauth.config import get_settings


@pytest.fixture(autouse=True)
def state_dir(tmp_path, monkeypatch):
    d = tmp_path / "state"
    monkeypatch.setenv("POCKETAUTH_STATE_DIR", str(d))
    monkeypatch.setattr("pocketauth.vault._native_backend", lambda service: None)
    get_settings.cache_clear()
    yield d
    get_settings.cache_clear()

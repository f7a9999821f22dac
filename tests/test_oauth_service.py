# Tests for oauth/service.py: provider routing and end-to-end login.
# Created: 2026-02-21

import urllib.parse
from dataclasses import replace
from unittest.mock import AsyncMock, MagicMock

import pytest

from pocketauth.auth_profiles import AuthProfileStore
from pocketauth.config_file import load_config
from pocketauth.errors import UnknownProviderError
from pocketauth.oauth.flows import EmbeddedLoginFlow, PkceRedirectFlow
from pocketauth.oauth.models import PollResult, TokenResult
from pocketauth.oauth.service import OAuthService, get_oauth_service, reset_oauth_service
from pocketauth.profile_writer import AuthProfileWriter, ProviderDefaults


class FakeStrategy:
    redirect_uri = "http://localhost:9999/cb"

    def build_auth_url(self, challenge, state):
        return "https://auth.example.com/authorize?" + urllib.parse.urlencode(
            {"code_challenge": challenge, "state": state}
        )

    async def exchange_code(self, code, verifier):
        return TokenResult(access="at", refresh="rt", expires=1_900_000_000_000)

    async def resolve_identity(self, token):
        return replace(token, email="me@example.com")


@pytest.fixture
def service():
    writer = AuthProfileWriter()
    flow = PkceRedirectFlow(
        FakeStrategy(), ProviderDefaults("fake", default_model="fake/model-1"), writer=writer
    )
    device = MagicMock()
    device.provider_id = "fake-device"
    device.poll = AsyncMock(return_value=PollResult(status="pending"))
    return OAuthService(flows={"fake": flow}, device_flows={"fake-device": device}, writer=writer)


@pytest.fixture(autouse=True)
def _reset_singleton():
    reset_oauth_service()
    yield
    reset_oauth_service()


class TestOAuthService:
    async def test_end_to_end_login(self, service, state_dir):
        started = await service.start("fake")
        assert set(started) == {"state", "authorizationUrl", "redirectHint"}

        callback = f"http://localhost:9999/cb?code=c1&state={started['state']}"
        result = await service.complete("fake", started["state"], callback)

        assert result == {"status": "success"}
        cfg = load_config()
        assert cfg["auth"]["profiles"]["fake:me@example.com"]["mode"] == "oauth"
        assert cfg["agents"]["defaults"]["model"] == {"primary": "fake/model-1"}
        cred = AuthProfileStore(state_dir / "agent").load_credential("fake:me@example.com")
        assert cred.access == "at"

    async def test_complete_blank_state(self, service):
        assert await service.complete("fake", "  ", "x") == {
            "status": "error",
            "error": "invalid_state",
        }

    async def test_complete_unknown_state(self, service):
        result = await service.complete("fake", "nope", "http://localhost:9999/cb?code=c&state=nope")
        assert result == {"status": "error", "error": "invalid_state"}

    async def test_unknown_provider(self, service):
        with pytest.raises(UnknownProviderError) as exc_info:
            await service.start("nope")
        assert exc_info.value.provider_id == "nope"
        with pytest.raises(UnknownProviderError):
            await service.complete("nope", "s", "x")

    async def test_poll_routes_to_device_flow(self, service):
        assert await service.poll("fake-device", "s1") == {"status": "pending"}
        service.device_flows["fake-device"].poll.assert_awaited_once_with("s1")

    async def test_poll_blank_state(self, service):
        result = await service.poll("fake-device", "")
        assert result == {"status": "error", "error": "invalid_state"}

    async def test_poll_non_device_provider(self, service):
        with pytest.raises(UnknownProviderError):
            await service.poll("fake", "s1")

    def test_providers(self, service):
        assert service.providers() == ["fake", "fake-device"]

    def test_setup_token(self, service, state_dir):
        result = service.complete_setup_token("sk-ant-oat01-" + "x" * 80)
        assert result == {"status": "success"}
        assert load_config()["auth"]["profiles"]["anthropic:default"]["mode"] == "token"

    def test_shutdown_cancels_embedded_flows(self):
        embedded = MagicMock(spec=EmbeddedLoginFlow)
        svc = OAuthService(flows={"e": embedded}, device_flows={}, writer=MagicMock())
        svc.shutdown()
        embedded.shutdown.assert_called_once()


class TestSingleton:
    def test_get_returns_same_instance(self):
        assert get_oauth_service() is get_oauth_service()

    def test_default_providers(self):
        assert get_oauth_service().providers() == [
            "github-copilot",
            "google-antigravity",
            "google-gemini-cli",
            "minimax-portal",
            "openai-codex",
            "qwen-portal",
        ]

    def test_reset(self):
        first = get_oauth_service()
        reset_oauth_service()
        assert get_oauth_service() is not first

"""Provider wiring: one flow instance per supported provider."""

from __future__ import annotations

from pocketauth.oauth.flows import EmbeddedLoginFlow, PkceRedirectFlow
from pocketauth.oauth.protocol import DeviceFlow, OAuthFlow
from pocketauth.oauth.providers import google, openai_codex
from pocketauth.oauth.providers.github_copilot import GitHubCopilotDeviceFlow
from pocketauth.oauth.providers.minimax_portal import MiniMaxPortalDeviceFlow
from pocketauth.oauth.providers.qwen_portal import QwenPortalDeviceFlow
from pocketauth.profile_writer import AuthProfileWriter


def build_flows(writer: AuthProfileWriter | None = None) -> dict[str, OAuthFlow]:
    """Redirect/paste-back flows keyed by provider id."""
    writer = writer or AuthProfileWriter()
    flows: list[OAuthFlow] = [
        PkceRedirectFlow(
            google.GoogleStrategy(google.ANTIGRAVITY),
            google.defaults_for(google.ANTIGRAVITY),
            writer=writer,
        ),
        PkceRedirectFlow(
            google.GoogleStrategy(google.GEMINI_CLI),
            google.defaults_for(google.GEMINI_CLI),
            writer=writer,
        ),
        EmbeddedLoginFlow(
            openai_codex.CodexLoginRunner(),
            openai_codex.DEFAULTS,
            writer=writer,
        ),
    ]
    return {flow.provider_id: flow for flow in flows}


def build_device_flows(writer: AuthProfileWriter | None = None) -> dict[str, DeviceFlow]:
    writer = writer or AuthProfileWriter()
    flows: list[DeviceFlow] = [
        GitHubCopilotDeviceFlow(writer=writer),
        QwenPortalDeviceFlow(writer=writer),
        MiniMaxPortalDeviceFlow(writer=writer),
    ]
    return {flow.provider_id: flow for flow in flows}

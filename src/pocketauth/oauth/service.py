# OAuth service: entry point the RPC layer calls into.
# Created: 2026-02-21
#
# start(provider)            -> {state, authorizationUrl, redirectHint}
# complete(provider, state, payload) -> {status: "success"} | {status: "error", error}
# poll(provider, state)      -> device flows only

from __future__ import annotations

import logging
from typing import Any

from pocketauth.errors import INVALID_STATE, UnknownProviderError
from pocketauth.oauth.flows import EmbeddedLoginFlow
from pocketauth.oauth.models import CompleteResult, PollResult
from pocketauth.oauth.protocol import DeviceFlow, OAuthFlow
from pocketauth.oauth.providers import build_device_flows, build_flows
from pocketauth.oauth.providers.anthropic import complete_anthropic_setup_token
from pocketauth.profile_writer import AuthProfileWriter

logger = logging.getLogger(__name__)


class OAuthService:
    """Routes requests to the per-provider flow instances."""

    def __init__(
        self,
        flows: dict[str, OAuthFlow] | None = None,
        device_flows: dict[str, DeviceFlow] | None = None,
        writer: AuthProfileWriter | None = None,
    ):
        self.writer = writer or AuthProfileWriter()
        self.flows = flows if flows is not None else build_flows(self.writer)
        self.device_flows = (
            device_flows if device_flows is not None else build_device_flows(self.writer)
        )

    def providers(self) -> list[str]:
        return sorted({*self.flows, *self.device_flows})

    def _flow(self, provider_id: str) -> OAuthFlow:
        flow = self.flows.get(str(provider_id or "").strip())
        if flow is None:
            raise UnknownProviderError(provider_id)
        return flow

    def _device_flow(self, provider_id: str) -> DeviceFlow:
        flow = self.device_flows.get(str(provider_id or "").strip())
        if flow is None:
            raise UnknownProviderError(provider_id)
        return flow

    async def start(self, provider_id: str) -> dict[str, Any]:
        provider_id = str(provider_id or "").strip()
        if provider_id in self.device_flows:
            return (await self._device_flow(provider_id).start()).to_dict()
        return (await self._flow(provider_id).start()).to_dict()

    async def complete(self, provider_id: str, state: str, payload: str) -> dict[str, str]:
        flow = self._flow(provider_id)
        state = str(state or "").strip()
        if not state:
            return CompleteResult.failure(INVALID_STATE).to_dict()
        result = await flow.complete(state, str(payload or ""))
        if result.ok:
            logger.info("OAuth login for %s completed", flow.provider_id)
        return result.to_dict()

    async def poll(self, provider_id: str, state: str) -> dict[str, Any]:
        flow = self._device_flow(provider_id)
        state = str(state or "").strip()
        if not state:
            return PollResult(status="error", error=INVALID_STATE).to_dict()
        return (await flow.poll(state)).to_dict()

    def complete_setup_token(self, token: str, name: str | None = None) -> dict[str, str]:
        return complete_anthropic_setup_token(token, name, writer=self.writer).to_dict()

    def shutdown(self) -> None:
        """Abandon in-flight embedded logins."""
        for flow in self.flows.values():
            if isinstance(flow, EmbeddedLoginFlow):
                flow.shutdown()


# Singleton
_service: OAuthService | None = None


def get_oauth_service() -> OAuthService:
    global _service
    if _service is None:
        _service = OAuthService()
    return _service


def reset_oauth_service() -> None:
    global _service
    if _service is not None:
        _service.shutdown()
    _service = None

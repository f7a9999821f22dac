# OAuth flows: the per-provider session coordinators.
# Created: 2026-02-21
#
# PkceRedirectFlow: classic authorization code + PKCE. The user's browser
#   lands on a redirect URL which is handed back to complete().
# EmbeddedLoginFlow: the provider's own login routine owns the PKCE exchange;
#   we only relay its authorization URL out and the user's pasted redirect in.
#
# Both remove the session before returning from complete(), so a captured
# callback URL cannot be replayed.

from __future__ import annotations

import asyncio
import logging

import httpx

from pocketauth.config import get_settings
from pocketauth.errors import INVALID_STATE, STATE_MISMATCH, OAuthError
from pocketauth.oauth.callback import CallbackError, parse_callback_input, states_match
from pocketauth.oauth.models import (
    CompleteResult,
    OAuthSession,
    SessionStatus,
    StartResult,
    TokenResult,
)
from pocketauth.oauth.pkce import generate_pkce, generate_state
from pocketauth.oauth.protocol import LoginRunner, PkceStrategy
from pocketauth.oauth.sessions import SessionRegistry
from pocketauth.profile_writer import AuthProfileWriter, ProviderDefaults

logger = logging.getLogger(__name__)

LOGIN_CANCELLED = "login_cancelled"


def _short(state: str) -> str:
    return state[:8]


def _error_message(exc: BaseException) -> str:
    if isinstance(exc, httpx.HTTPStatusError):
        return f"HTTP {exc.response.status_code} from {exc.request.url.host}"
    return str(exc) or exc.__class__.__name__


class PkceRedirectFlow:
    """Authorization code + PKCE flow driven by a provider strategy."""

    def __init__(
        self,
        strategy: PkceStrategy,
        defaults: ProviderDefaults,
        writer: AuthProfileWriter | None = None,
        ttl_seconds: float | None = None,
        redirect_hint: str = "",
    ):
        self.provider_id = defaults.provider_id
        self.strategy = strategy
        self.defaults = defaults
        self.writer = writer or AuthProfileWriter()
        self.redirect_hint = redirect_hint or (
            f"After login, paste the full redirect URL (starts with {strategy.redirect_uri})"
        )
        self.sessions = SessionRegistry(ttl_seconds or get_settings().oauth_session_ttl_seconds)

    async def start(self) -> StartResult:
        verifier, challenge = generate_pkce()
        session = OAuthSession(state=generate_state(), verifier=verifier, challenge=challenge)
        url = self.strategy.build_auth_url(challenge, session.state)
        self.sessions.add(session)
        session.status = SessionStatus.AWAITING_CALLBACK
        logger.info("Started %s OAuth session %s…", self.provider_id, _short(session.state))
        return StartResult(
            state=session.state, authorization_url=url, redirect_hint=self.redirect_hint
        )

    async def complete(self, state: str, callback_input: str) -> CompleteResult:
        session = self.sessions.pop(state)
        if session is None:
            logger.warning("%s OAuth callback for unknown state", self.provider_id)
            return CompleteResult.failure(INVALID_STATE)

        parsed = parse_callback_input(callback_input)
        if isinstance(parsed, CallbackError):
            session.status = SessionStatus.FAILED
            logger.warning("%s OAuth callback carried error: %s", self.provider_id, parsed.error)
            return CompleteResult.failure(parsed.error)

        if not states_match(session.state, parsed.state):
            session.status = SessionStatus.FAILED
            logger.warning("%s OAuth state mismatch for %s…", self.provider_id, _short(state))
            return CompleteResult.failure(STATE_MISMATCH)

        session.status = SessionStatus.EXCHANGING
        try:
            token = await self.strategy.exchange_code(parsed.code, session.verifier)
            token = await self.strategy.resolve_identity(token)
        except (OAuthError, httpx.HTTPError) as e:
            session.status = SessionStatus.FAILED
            logger.warning("%s token exchange failed: %s", self.provider_id, _error_message(e))
            return CompleteResult.failure(_error_message(e))

        try:
            self.writer.commit(token, self.defaults)
        except Exception:
            session.status = SessionStatus.FAILED
            raise
        session.status = SessionStatus.COMPLETE
        return CompleteResult.success()


class EmbeddedLoginFlow:
    """Flow whose login routine reports its URL asynchronously.

    Two single-shot futures decouple the signals: ``url_ready`` is resolved
    by the runner's ``on_auth`` callback, ``user_input`` by ``complete()``
    and awaited by the runner's ``on_prompt`` callback. ``start()`` awaits
    only ``url_ready``.
    """

    def __init__(
        self,
        runner: LoginRunner,
        defaults: ProviderDefaults,
        writer: AuthProfileWriter | None = None,
        ttl_seconds: float | None = None,
        redirect_hint: str = "Paste the full redirect URL after login",
    ):
        self.provider_id = defaults.provider_id
        self.runner = runner
        self.defaults = defaults
        self.writer = writer or AuthProfileWriter()
        self.redirect_hint = redirect_hint
        self.sessions = SessionRegistry(
            ttl_seconds or get_settings().oauth_session_ttl_seconds,
            on_evict=self._abandon,
        )

    @staticmethod
    def _abandon(session: OAuthSession) -> None:
        user_input: asyncio.Future = session.extra["user_input"]
        task: asyncio.Task = session.extra["task"]
        if not user_input.done():
            user_input.cancel()
        task.cancel()
        session.status = SessionStatus.FAILED

    def _log_outcome(self, task: asyncio.Task) -> None:
        # also marks the exception retrieved when nobody ever awaits the task
        if not task.cancelled() and task.exception() is not None:
            logger.debug("%s login task ended with %r", self.provider_id, task.exception())

    async def _run(self, session: OAuthSession) -> None:
        url_ready: asyncio.Future = session.extra["url_ready"]
        user_input: asyncio.Future = session.extra["user_input"]

        async def on_auth(url: str) -> None:
            if not url_ready.done():
                url_ready.set_result(url)

        async def on_prompt(message: str) -> str:
            logger.debug("%s login waiting for input: %s", self.provider_id, message)
            return await user_input

        try:
            try:
                token: TokenResult | None = await self.runner(on_auth, on_prompt)
            except (OAuthError, httpx.HTTPError):
                raise
            except Exception as e:
                # provider login routines raise their own error types
                raise OAuthError(f"{self.provider_id} login failed: {_error_message(e)}") from e
            if token is None:
                session.status = SessionStatus.FAILED
                return
            self.writer.commit(token, self.defaults)
            session.status = SessionStatus.COMPLETE
        except BaseException:
            session.status = SessionStatus.FAILED
            raise
        finally:
            self.sessions.pop(session.state)

    async def start(self) -> StartResult:
        loop = asyncio.get_running_loop()
        session = OAuthSession(state=generate_state())
        url_ready: asyncio.Future[str] = loop.create_future()
        session.extra["url_ready"] = url_ready
        session.extra["user_input"] = loop.create_future()
        task = asyncio.create_task(self._run(session), name=f"oauth-login-{self.provider_id}")
        task.add_done_callback(self._log_outcome)
        session.extra["task"] = task
        self.sessions.add(session)

        await asyncio.wait({url_ready, task}, return_when=asyncio.FIRST_COMPLETED)
        if not url_ready.done():
            # runner ended before producing a URL
            self.sessions.pop(session.state)
            url_ready.cancel()
            if task.cancelled():
                raise OAuthError(f"{self.provider_id} login was cancelled")
            exc = task.exception()
            if isinstance(exc, OAuthError):
                raise OAuthError(str(exc)) from exc
            if exc is not None:
                raise OAuthError(f"{self.provider_id} login failed: {exc}") from exc
            raise OAuthError(f"{self.provider_id} login ended without an authorization URL")

        session.status = SessionStatus.AWAITING_CALLBACK
        logger.info("Started %s OAuth session %s…", self.provider_id, _short(session.state))
        return StartResult(
            state=session.state,
            authorization_url=url_ready.result(),
            redirect_hint=self.redirect_hint,
        )

    async def complete(self, state: str, callback_input: str) -> CompleteResult:
        session = self.sessions.pop(state)
        if session is None:
            logger.warning("%s OAuth callback for unknown state", self.provider_id)
            return CompleteResult.failure(INVALID_STATE)

        user_input: asyncio.Future = session.extra["user_input"]
        task: asyncio.Task = session.extra["task"]
        if not user_input.done():
            user_input.set_result(callback_input)
        session.status = SessionStatus.EXCHANGING

        if task.done() and task.cancelled():
            return CompleteResult.failure(LOGIN_CANCELLED)
        try:
            await task
        except asyncio.CancelledError:
            current = asyncio.current_task()
            if current is not None and current.cancelling():
                raise
            # the login task was cancelled under us (shutdown), not this caller
            return CompleteResult.failure(LOGIN_CANCELLED)
        except (OAuthError, httpx.HTTPError) as e:
            logger.warning("%s login failed: %s", self.provider_id, _error_message(e))
            return CompleteResult.failure(_error_message(e))

        if session.status is not SessionStatus.COMPLETE:
            return CompleteResult.failure(LOGIN_CANCELLED)
        return CompleteResult.success()

    def shutdown(self) -> None:
        """Cancel every pending login (process teardown)."""
        for session in self.sessions.clear():
            self._abandon(session)

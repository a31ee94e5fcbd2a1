"""
Bybit private stream session.

Layers authentication on a WebSocketTransport: every time the transport
reaches CONNECTED a fresh handshake is signed and sent, and nothing else
may be sent until the server acknowledges it. Auth state never survives a
reconnect.
"""

import asyncio
import itertools
from typing import Awaitable, Callable, List, Optional, Union

from config.structs import Credential
from infrastructure.exceptions.exchange import (
    AuthFailedError, InvalidCredentialError, NotAuthenticatedError, NotConnectedError
)
from infrastructure.logging import LoggerInterface, get_exchange_logger
from infrastructure.networking.websocket import ConnectionState, WebSocketTransport
from exchanges.integrations.bybit.signer import auth_expiry_ms, build_auth_signature
from exchanges.integrations.bybit.ws.structs import AuthHandshake, AuthResult
from utils import get_current_timestamp
from utils.task_utils import invoke_handler

AuthenticatedHandler = Callable[[], Union[None, Awaitable[None]]]


class BybitPrivateSession:
    """
    Authenticated session over one transport.

    Args:
        transport: Connection to the private stream
        credential: API key and secret
        auth_window_ms: Handshake expiry window; transport config when omitted
        time_ms: Millisecond wall clock used for handshake expiry
        logger: Injected logger
    """

    def __init__(
        self,
        transport: WebSocketTransport,
        credential: Credential,
        auth_window_ms: Optional[int] = None,
        time_ms: Callable[[], int] = get_current_timestamp,
        logger: Optional[LoggerInterface] = None,
    ):
        if not credential.key_id or not credential.secret:
            raise InvalidCredentialError("Private session requires an API key and secret")

        self.transport = transport
        self.credential = credential
        self.auth_window_ms = auth_window_ms or transport.config.auth_expiry_window_ms
        self._time_ms = time_ms
        self.logger = logger or get_exchange_logger('bybit', 'ws.session')

        self._auth_result = AuthResult(authenticated=False)
        self._authenticating = False
        self._auth_waiter: Optional[asyncio.Future] = None
        self._authenticated_handlers: List[AuthenticatedHandler] = []
        self._req_ids = itertools.count(1)

        self.last_handshake: Optional[AuthHandshake] = None
        self.handshake_count = 0

        # Registered first so auth acks are seen before any other consumer
        transport.on_state_change(self._on_transport_state)
        transport.on_message(self._on_message)

    @property
    def is_authenticated(self) -> bool:
        return self._auth_result.authenticated

    @property
    def auth_result(self) -> AuthResult:
        return self._auth_result

    @property
    def state(self) -> ConnectionState:
        if self._auth_result.authenticated:
            return ConnectionState.AUTHENTICATED
        if self._authenticating:
            return ConnectionState.AUTHENTICATING
        return self.transport.state

    def on_authenticated(self, handler: AuthenticatedHandler) -> AuthenticatedHandler:
        """Called after every successful handshake, including after reconnects."""
        self._authenticated_handlers.append(handler)
        return handler

    async def start(self) -> None:
        await self.transport.connect()

    async def close(self) -> None:
        await self.transport.close()

    async def wait_authenticated(self, timeout: Optional[float] = None) -> None:
        """
        Wait until the server accepts a handshake.

        Raises:
            AuthFailedError: The server rejected the handshake
            asyncio.TimeoutError: timeout elapsed first
        """
        if self._auth_result.authenticated:
            return
        if self._auth_waiter is None or self._auth_waiter.done():
            self._auth_waiter = asyncio.get_running_loop().create_future()
            self._auth_waiter.add_done_callback(lambda f: f.cancelled() or f.exception())

        waiter = asyncio.shield(self._auth_waiter)
        if timeout is None:
            await waiter
        else:
            await asyncio.wait_for(waiter, timeout)

    async def send(self, message: dict) -> None:
        """
        Send a message on the authenticated connection.

        Raises:
            NotAuthenticatedError: No accepted handshake on the current connection
        """
        if not self._auth_result.authenticated:
            raise NotAuthenticatedError("Session is not authenticated")
        await self.transport.send(message)

    def next_req_id(self, prefix: str) -> str:
        return f"{prefix}-{next(self._req_ids)}"

    def build_handshake(self) -> AuthHandshake:
        expires_at = auth_expiry_ms(self._time_ms(), self.auth_window_ms)
        return AuthHandshake(
            api_key=self.credential.key_id,
            expires_at_ms=expires_at,
            signature=build_auth_signature(self.credential.secret, self.credential.key_id, expires_at),
            req_id=self.next_req_id("auth"),
        )

    async def _on_transport_state(self, state: ConnectionState) -> None:
        if state == ConnectionState.CONNECTED:
            self._auth_result = AuthResult(authenticated=False)
            await self._send_handshake()
        elif self._auth_result.authenticated or self._authenticating:
            self._auth_result = AuthResult(authenticated=False, error=f"connection {state.value}")
            self._authenticating = False
            self.logger.info("Session lost authentication", state=state.value)

    async def _send_handshake(self) -> None:
        handshake = self.build_handshake()
        self.last_handshake = handshake
        self.handshake_count += 1
        self._authenticating = True

        self.logger.debug("Sending auth handshake",
                          api_key=self.credential.get_preview(),
                          expires_at_ms=handshake.expires_at_ms,
                          req_id=handshake.req_id)
        try:
            await self.transport.send(handshake.to_message())
        except NotConnectedError as e:
            self._authenticating = False
            self.logger.warning("Auth handshake not sent", error=str(e))

    async def _on_message(self, message) -> None:
        if not isinstance(message, dict) or message.get('op') != 'auth':
            return

        self._authenticating = False
        if message.get('success'):
            self._auth_result = AuthResult(authenticated=True, conn_id=message.get('conn_id'))
            self.logger.info("Session authenticated", conn_id=message.get('conn_id'),
                             api_key=self.credential.get_preview())
            if self._auth_waiter is not None and not self._auth_waiter.done():
                self._auth_waiter.set_result(None)

            for handler in list(self._authenticated_handlers):
                try:
                    await invoke_handler(handler)
                except Exception as e:
                    self.logger.error("Authenticated handler failed", error=repr(e))
            return

        reason = message.get('ret_msg') or "authentication rejected"
        self._auth_result = AuthResult(authenticated=False, error=reason)
        self.logger.error("Session authentication failed", reason=reason,
                          api_key=self.credential.get_preview())
        self.logger.counter("ws_auth_failures")
        if self._auth_waiter is not None and not self._auth_waiter.done():
            self._auth_waiter.set_exception(AuthFailedError(reason))

        await self.transport.force_reconnect(f"auth failed: {reason}")

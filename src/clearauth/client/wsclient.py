from __future__ import annotations
import asyncio
import time
from typing import Callable, Optional

import structlog

from clearauth.config import AuthConfig
from clearauth.crypto.signer import EthAccountSigner, Signer
from clearauth.protocol.constants import FailureKind, REASON_CONNECTION_CLOSED, REASON_TIMEOUT
from clearauth.protocol.errors import AuthError, AuthRejected, HandshakeInProgressError, SigningError

from .connection import Connection, WebSocketConnection
from .machine import AuthStateMachine
from .session import AuthOutcome, Failure, SessionContext


class AuthClient:
    def __init__(self, config: AuthConfig, signer: Optional[Signer] = None,
                 connection: Optional[Connection] = None,
                 clock: Callable[[], float] = time.time, logger=None):
        self.config = config
        self.logger = logger or structlog.get_logger("clearauth.client")
        self.signer = signer
        self.connection = connection or WebSocketConnection(logger=self.logger)
        self.clock = clock
        self.machine: Optional[AuthStateMachine] = None
        self._running = False

    async def run(self, timeout: Optional[float] = None) -> AuthOutcome:
        """Run one handshake to its terminal outcome.

        ``timeout`` (default: ``config.handshake_timeout``) bounds the whole
        handshake; ``None`` waits until the node answers or the socket closes.
        """
        if self._running:
            raise HandshakeInProgressError("a handshake is already running on this client")
        self._running = True
        try:
            try:
                signer = self.signer or EthAccountSigner(self.config.private_key.get_secret_value())
            except SigningError as e:
                return Failure(reason=f"signing failed: {e}", kind=FailureKind.SIGNING)

            self.machine = AuthStateMachine(self.config, signer, self.connection,
                                            clock=self.clock, logger=self.logger)
            timeout = self.config.handshake_timeout if timeout is None else timeout
            try:
                await asyncio.wait_for(self._pump(), timeout=timeout)
            except asyncio.TimeoutError:
                self.logger.error("handshake_timeout", timeout=timeout, phase=self.machine.phase.name)
                await self.machine.abort(REASON_TIMEOUT, FailureKind.TIMEOUT)
            return self.machine.outcome
        finally:
            await self.close()
            self._running = False

    async def authenticate(self, timeout: Optional[float] = None) -> SessionContext:
        """Like ``run`` but returns the session or raises on failure."""
        outcome = await self.run(timeout)
        if isinstance(outcome, Failure):
            if outcome.kind == FailureKind.REJECTED:
                raise AuthRejected(outcome.reason)
            raise AuthError(outcome.reason)
        return outcome.session

    async def _pump(self):
        await self.connection.connect(self.config.endpoint)
        async for event in self.connection.events():
            await self.machine.handle(event)
            if self.machine.is_terminal:
                break
        if not self.machine.is_terminal:
            await self.machine.abort(REASON_CONNECTION_CLOSED, FailureKind.CONNECTION)

    async def close(self):
        try:
            await self.connection.close()
        except Exception as e:
            self.logger.warning("close_failed", error=str(e))

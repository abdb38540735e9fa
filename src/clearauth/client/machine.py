"""
Authentication state machine.

One instance drives one handshake over one connection:

    IDLE -> REQUEST_SENT -> CHALLENGE_RECEIVED -> VERIFY_SENT -> AUTHENTICATED
                  \\______________ any non-terminal ______________/-> FAILED

Events are handled strictly one at a time in arrival order. Signing is local
and runs inline; the only awaited work is handing frames to the connection.
Dispatch is a table keyed by (phase, event type); anything without an entry
is an out-of-order or stray event and is logged, never acted upon.
"""
from __future__ import annotations

import time
from typing import Awaitable, Callable, Optional

import structlog

from clearauth.config import AuthConfig
from clearauth.crypto.primitives import text_id
from clearauth.crypto.signer import Signer
from clearauth.crypto.typed_data import POLICY_TYPES, build_domain, build_policy
from clearauth.protocol.codec import decode_frame, encode_envelope, encode_request
from clearauth.protocol.constants import (
    FailureKind, REASON_CONNECTION_CLOSED, REASON_NO_CREDENTIAL, REASON_REJECTED,
)
from clearauth.protocol.errors import (
    ConnectionLostError, DecodeError, HandshakeInProgressError, SigningError,
)
from clearauth.protocol.events import (
    ChallengeEvent, Closed, ConnectionEvent, Errored, ErrorEvent, FrameReceived,
    Opened, RPCEvent, Unrecognized, VerifyResultEvent,
)
from clearauth.protocol.models import AuthRequest, Envelope, VerifyRequest
from clearauth.protocol.phases import Phase

from .connection import Connection
from .session import AuthOutcome, Failure, SessionContext, Success
from .state import AuthState

Handler = Callable[["AuthStateMachine", RPCEvent], Awaitable[None]]


class AuthStateMachine:
    def __init__(self, config: AuthConfig, signer: Signer, connection: Connection,
                 clock: Callable[[], float] = time.time, logger=None):
        self.config = config
        self.signer = signer
        self.connection = connection
        self.clock = clock
        self.logger = logger or structlog.get_logger("clearauth.machine")
        self.state = AuthState()

    @property
    def phase(self) -> Phase:
        return self.state.phase

    @property
    def is_terminal(self) -> bool:
        return self.state.phase.is_terminal

    @property
    def outcome(self) -> Optional[AuthOutcome]:
        return self.state.outcome

    @property
    def session(self) -> Optional[SessionContext]:
        return self.state.session

    @property
    def pending_request(self) -> Optional[AuthRequest]:
        return self.state.pending_request

    async def handle(self, event: ConnectionEvent) -> None:
        if isinstance(event, Opened):
            await self._on_opened(event)
        elif isinstance(event, FrameReceived):
            await self._on_frame(event)
        elif isinstance(event, (Closed, Errored)):
            self._on_connection_lost(event)
        else:
            raise TypeError(f"not a connection event: {event!r}")

    async def abort(self, reason: str, kind: str = FailureKind.CONNECTION) -> None:
        """Force FAILED from any non-terminal phase; no-op once terminal."""
        if self.is_terminal:
            return
        self._fail(reason, kind)

    # -- connection events -------------------------------------------------

    async def _on_opened(self, event: Opened) -> None:
        if self.is_terminal:
            self.logger.warning("event_after_terminal", rpc="Opened", phase=self.phase.name)
            return
        if self.phase is not Phase.IDLE:
            raise HandshakeInProgressError(f"handshake already in progress ({self.phase.name})")

        cfg = self.config
        request = AuthRequest(
            wallet_address=cfg.wallet_address,
            participant_address=cfg.participant_address,
            application_name=cfg.app_name,
            expire_at=int(self.clock()) + cfg.session_expiry,
            scope=cfg.scope,
            application_address=cfg.application,
            allowances=cfg.allowances,
        )
        try:
            signature = self.signer.sign_digest(text_id(encode_request(request)))
        except SigningError as e:
            self._fail(f"signing failed: {e}", FailureKind.SIGNING)
            return

        self.state.pending_request = request
        self.state.phase = Phase.REQUEST_SENT
        if await self._send(Envelope(req=request, sig=(signature,))):
            self.logger.info("auth_request_sent", wallet=request.wallet_address,
                             app=request.application_name, expire=request.expire_at)

    async def _on_frame(self, event: FrameReceived) -> None:
        try:
            rpc = decode_frame(event.data)
        except DecodeError as e:
            self.state.decode_failures += 1
            self.logger.warning("frame_dropped", error=str(e), phase=self.phase.name)
            return

        if self.is_terminal:
            self.logger.info("event_after_terminal", rpc=type(rpc).__name__, phase=self.phase.name)
            return
        if isinstance(rpc, Unrecognized):
            self.logger.info("unrecognized_method", method=rpc.method, phase=self.phase.name)
            return

        handler = _HANDLERS.get((self.phase, type(rpc))) or _GLOBAL_HANDLERS.get(type(rpc))
        if handler is None:
            self.state.out_of_order_count += 1
            self.logger.warning("out_of_order_event", rpc=type(rpc).__name__, phase=self.phase.name)
            return
        await handler(self, rpc)

    def _on_connection_lost(self, event: Closed | Errored) -> None:
        if self.is_terminal:
            self.logger.info("connection_closed", phase=self.phase.name)
            return
        if isinstance(event, Errored):
            self.logger.error("connection_error", error=str(event.cause), phase=self.phase.name)
        else:
            self.logger.warning("connection_closed", code=event.code, reason=event.reason,
                                phase=self.phase.name)
        self._fail(REASON_CONNECTION_CLOSED, FailureKind.CONNECTION)

    # -- RPC handlers ------------------------------------------------------

    async def _handle_challenge(self, event: ChallengeEvent) -> None:
        request = self.state.pending_request
        self.state.phase = Phase.CHALLENGE_RECEIVED
        self.state.challenge = event.challenge
        self.logger.info("auth_challenge_received")

        try:
            message = build_policy(request, event.challenge)
            signature = self.signer.sign_typed_data(build_domain(self.config.domain_name),
                                                    POLICY_TYPES, message)
        except (SigningError, ValueError) as e:
            self._fail(f"signing failed: {e}", FailureKind.SIGNING)
            return

        self.state.phase = Phase.VERIFY_SENT
        if await self._send(Envelope(req=VerifyRequest(challenge=event.challenge), sig=(signature,))):
            self.logger.info("auth_verify_sent")

    async def _handle_verify_result(self, event: VerifyResultEvent) -> None:
        if not event.success:
            self._fail(REASON_REJECTED, FailureKind.REJECTED)
            return
        if not event.credential:
            self._fail(REASON_NO_CREDENTIAL, FailureKind.PROTOCOL)
            return

        request = self.state.pending_request
        session = SessionContext(
            wallet_address=request.wallet_address,
            credential=event.credential,
            expires_at=request.expire_at,
        )
        self.state.outcome = Success(session=session)
        self.state.phase = Phase.AUTHENTICATED
        self.state.cleanup()
        self.logger.info("authenticated", wallet=session.wallet_address,
                         expires_at=session.expires_at, credential="present")

    async def _handle_error(self, event: ErrorEvent) -> None:
        self._fail(event.message, FailureKind.REMOTE_ERROR)

    # -- helpers -----------------------------------------------------------

    async def _send(self, envelope: Envelope) -> bool:
        try:
            await self.connection.send(encode_envelope(envelope))
        except ConnectionLostError as e:
            self.logger.error("send_failed", error=str(e), phase=self.phase.name)
            self._fail(REASON_CONNECTION_CLOSED, FailureKind.CONNECTION)
            return False
        self.state.frames_sent += 1
        return True

    def _fail(self, reason: str, kind: str) -> None:
        self.state.outcome = Failure(reason=reason, kind=kind)
        self.state.phase = Phase.FAILED
        self.state.cleanup()
        self.logger.error("auth_failed", reason=reason, kind=kind)


# Phase-specific handlers: (phase, event type) -> handler
_HANDLERS: dict[tuple[Phase, type], Handler] = {
    (Phase.REQUEST_SENT, ChallengeEvent): AuthStateMachine._handle_challenge,
    (Phase.VERIFY_SENT, VerifyResultEvent): AuthStateMachine._handle_verify_result,
}

# Any non-terminal phase
_GLOBAL_HANDLERS: dict[type, Handler] = {
    ErrorEvent: AuthStateMachine._handle_error,
}

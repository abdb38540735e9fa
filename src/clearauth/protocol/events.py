"""
Events consumed by the authentication state machine.

Two families arrive on the same ordered path: connection events produced by
the transport, and RPC events the codec decodes out of received frames.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Union


# === Connection Events ===

@dataclass(frozen=True)
class Opened:
    """The socket is open and ready to carry the auth request."""
    endpoint: str = ""


@dataclass(frozen=True)
class FrameReceived:
    """One raw frame, exactly as delivered by the socket."""
    data: str | bytes


@dataclass(frozen=True)
class Closed:
    code: int | None = None
    reason: str = ""


@dataclass(frozen=True)
class Errored:
    cause: BaseException


ConnectionEvent = Union[Opened, FrameReceived, Closed, Errored]


# === RPC Events ===

@dataclass(frozen=True)
class ChallengeEvent:
    """Node asks the client to sign the policy bound to this challenge."""
    challenge: str
    params: dict[str, Any] = field(default_factory=dict, compare=False)


@dataclass(frozen=True)
class VerifyResultEvent:
    success: bool
    credential: str | None = None


@dataclass(frozen=True)
class ErrorEvent:
    message: str


@dataclass(frozen=True)
class Unrecognized:
    """Any method outside the closed set; observable, never acted upon."""
    method: str
    params: Any = None


RPCEvent = Union[ChallengeEvent, VerifyResultEvent, ErrorEvent, Unrecognized]

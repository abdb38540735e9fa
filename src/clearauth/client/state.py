from __future__ import annotations
from dataclasses import dataclass
from typing import Optional

from clearauth.protocol.models import AuthRequest
from clearauth.protocol.phases import Phase
from .session import AuthOutcome, SessionContext

@dataclass
class AuthState:
    phase: Phase = Phase.IDLE
    pending_request: Optional[AuthRequest] = None
    challenge: Optional[str] = None
    outcome: Optional[AuthOutcome] = None
    frames_sent: int = 0
    out_of_order_count: int = 0
    decode_failures: int = 0

    @property
    def session(self) -> Optional[SessionContext]:
        return getattr(self.outcome, "session", None)

    def cleanup(self):
        self.pending_request = None
        self.challenge = None

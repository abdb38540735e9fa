"""Terminal outcome of a handshake and the session handed to the caller."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Union


@dataclass(frozen=True)
class SessionContext:
    wallet_address: str
    credential: str
    expires_at: int
    authenticated: bool = True

    def __repr__(self) -> str:
        # bearer tokens stay out of logs and tracebacks
        return (f"SessionContext(wallet_address={self.wallet_address!r}, credential=<redacted>, "
                f"expires_at={self.expires_at}, authenticated={self.authenticated})")


@dataclass(frozen=True)
class Success:
    session: SessionContext

    @property
    def credential(self) -> str:
        return self.session.credential


@dataclass(frozen=True)
class Failure:
    reason: str
    kind: str


AuthOutcome = Union[Success, Failure]

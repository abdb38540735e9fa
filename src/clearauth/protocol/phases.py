from __future__ import annotations
from enum import Enum, auto


class Phase(Enum):
    IDLE = auto()
    REQUEST_SENT = auto()
    # challenge consumed, verify not yet on the wire; never retried
    CHALLENGE_RECEIVED = auto()
    VERIFY_SENT = auto()
    AUTHENTICATED = auto()
    FAILED = auto()

    @property
    def is_terminal(self) -> bool:
        return self in (Phase.AUTHENTICATED, Phase.FAILED)

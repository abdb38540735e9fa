"""Error taxonomy for the authentication handshake.

Fatal categories (connection loss, signing, rejection) end the handshake in
the FAILED phase; the machine records them as a Failure outcome instead of
raising. DecodeError and ProtocolSequenceError are diagnostics: the offending
frame is dropped and the machine keeps its phase.
"""
from __future__ import annotations


class AuthError(Exception):
    pass


class ConnectionLostError(AuthError):
    pass


class DecodeError(AuthError):
    pass


class SigningError(AuthError):
    pass


class AuthRejected(AuthError):
    pass


class ProtocolSequenceError(AuthError):
    pass


class HandshakeInProgressError(AuthError):
    pass


class ConfigError(AuthError):
    pass

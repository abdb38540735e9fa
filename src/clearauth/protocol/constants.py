from __future__ import annotations

DEFAULT_ENDPOINT = "wss://clearnet.yellow.com/ws"
DEFAULT_APP_NAME = "yellow-test_AGR"
DEFAULT_SCOPE = "console"
DEFAULT_DOMAIN_NAME = "Yellow Demo App"
DEFAULT_SESSION_EXPIRY_S = 3600
ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"


class RPCMethod:
    AUTH_REQUEST = "auth_request"
    AUTH_CHALLENGE = "auth_challenge"
    AUTH_VERIFY = "auth_verify"
    ERROR = "error"


class FailureKind:
    CONNECTION = "connection"
    SIGNING = "signing"
    REJECTED = "rejected"
    REMOTE_ERROR = "remote_error"
    TIMEOUT = "timeout"
    PROTOCOL = "protocol"


REASON_CONNECTION_CLOSED = "connection closed before handshake completed"
REASON_REJECTED = "rejected by remote authority"
REASON_NO_CREDENTIAL = "remote authority returned no credential"
REASON_TIMEOUT = "handshake timed out"

CHALLENGE_KEYS = ("challenge_message", "challengeMessage", "challenge")
CREDENTIAL_KEYS = ("jwtToken", "jwt_token")

ADDRESS_PATTERN = r"^0x[0-9a-fA-F]{40}$"
SIGNATURE_PATTERN = r"^0x[0-9a-fA-F]+$"

MAX_MSG_BYTES = 64 * 1024
MAX_JSON_DEPTH = 10
MAX_JSON_KEYS = 100

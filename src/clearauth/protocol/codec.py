"""Wire codec: canonical envelope encoding and inbound frame classification.

Inbound frames come in the node's response shape::

    {"res": [request_id, method, params, timestamp], "sig": [...]}

or the flat shape ``{"method": ..., "params": ...}``. ``params`` is either an
object or a one-element list wrapping the object.
"""
from __future__ import annotations

from typing import Any

from pydantic import ValidationError

from .constants import RPCMethod, CHALLENGE_KEYS, CREDENTIAL_KEYS
from .errors import DecodeError
from .events import (
    RPCEvent, ChallengeEvent, VerifyResultEvent, ErrorEvent, Unrecognized,
)
from .models import AuthRequest, Envelope
from .validation import bounded_json_loads, json_dumps_canonical

_KNOWN_METHODS = frozenset({RPCMethod.AUTH_CHALLENGE, RPCMethod.AUTH_VERIFY, RPCMethod.ERROR})


def encode_request(request: AuthRequest) -> str:
    return json_dumps_canonical(request.to_wire())


def encode_envelope(envelope: Envelope) -> str:
    return json_dumps_canonical(envelope.to_wire())


def decode_envelope(raw: str | bytes) -> Envelope:
    obj = _loads(raw)
    try:
        return Envelope.model_validate(obj)
    except ValidationError as e:
        raise DecodeError(f"invalid envelope: {e.error_count()} error(s)") from e


def decode_frame(raw: str | bytes) -> RPCEvent:
    obj = _loads(raw)
    if not isinstance(obj, dict):
        raise DecodeError("frame is not a JSON object")

    method, params = _split_frame(obj)
    if method not in _KNOWN_METHODS:
        return Unrecognized(method=method, params=params)
    params = _unwrap_params(params)

    if method == RPCMethod.AUTH_CHALLENGE:
        challenge = _first_str(params, CHALLENGE_KEYS)
        if not challenge:
            raise DecodeError("auth_challenge without challenge message")
        return ChallengeEvent(challenge=challenge, params=params)

    if method == RPCMethod.AUTH_VERIFY:
        success = params.get("success")
        if not isinstance(success, bool):
            raise DecodeError("auth_verify without boolean success")
        return VerifyResultEvent(success=success, credential=_first_str(params, CREDENTIAL_KEYS))

    message = params.get("error")
    if not isinstance(message, str):
        raise DecodeError("error frame without error message")
    return ErrorEvent(message=message)


def _loads(raw: str | bytes) -> Any:
    try:
        return bounded_json_loads(raw)
    except ValueError as e:
        raise DecodeError(f"malformed frame: {e}") from e


def _split_frame(obj: dict[str, Any]) -> tuple[str, Any]:
    res = obj.get("res")
    if res is not None:
        if not isinstance(res, list) or len(res) < 3 or not isinstance(res[1], str):
            raise DecodeError("res must be [request_id, method, params, ...]")
        return res[1], res[2]

    method = obj.get("method")
    if not isinstance(method, str):
        raise DecodeError("frame carries no method")
    return method, obj.get("params", {})


def _unwrap_params(params: Any) -> dict[str, Any]:
    if isinstance(params, list) and len(params) == 1:
        params = params[0]
    if params is None:
        return {}
    if not isinstance(params, dict):
        raise DecodeError(f"params must be an object, got {type(params).__name__}")
    return params


def _first_str(params: dict[str, Any], keys: tuple[str, ...]) -> str | None:
    for key in keys:
        value = params.get(key)
        if isinstance(value, str) and value:
            return value
    return None

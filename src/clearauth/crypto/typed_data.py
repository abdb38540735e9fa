"""EIP-712 schema of the policy signed in answer to an auth challenge."""
from __future__ import annotations

from typing import Any

from clearauth.protocol.models import AuthRequest

PRIMARY_TYPE = "Policy"

DOMAIN_TYPE = [
    {"name": "name", "type": "string"},
]

POLICY_TYPES: dict[str, list[dict[str, str]]] = {
    "Policy": [
        {"name": "challenge", "type": "string"},
        {"name": "scope", "type": "string"},
        {"name": "wallet", "type": "address"},
        {"name": "application", "type": "address"},
        {"name": "participant", "type": "address"},
        {"name": "expire", "type": "uint256"},
        {"name": "allowances", "type": "Allowance[]"},
    ],
    "Allowance": [
        {"name": "asset", "type": "string"},
        {"name": "amount", "type": "uint256"},
    ],
}


def build_domain(name: str) -> dict[str, Any]:
    return {"name": name}


def build_policy(request: AuthRequest, challenge: str) -> dict[str, Any]:
    """Policy message for ``challenge``, bound to the fields of the pending request.

    Allowance amounts travel as decimal strings on the wire but are uint256
    here; a non-integer amount raises ValueError. Addresses are lowercased so
    mixed-case input without a valid checksum still encodes.
    """
    return {
        "challenge": challenge,
        "scope": request.scope,
        "wallet": request.wallet_address.lower(),
        "application": request.application_address.lower(),
        "participant": request.participant_address.lower(),
        "expire": request.expire_at,
        "allowances": [
            {"asset": a.asset, "amount": _uint256(a.amount)} for a in request.allowances
        ],
    }


def full_message(domain: dict[str, Any], types: dict[str, Any], message: dict[str, Any],
                 primary_type: str = PRIMARY_TYPE) -> dict[str, Any]:
    return {
        "types": {"EIP712Domain": DOMAIN_TYPE, **types},
        "primaryType": primary_type,
        "domain": domain,
        "message": message,
    }


def _uint256(amount: str) -> int:
    if not amount.isdigit():
        raise ValueError(f"allowance amount is not an unsigned integer: {amount!r}")
    value = int(amount)
    if value >= 2 ** 256:
        raise ValueError("allowance amount exceeds uint256")
    return value

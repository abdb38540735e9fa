from __future__ import annotations
from importlib.util import find_spec

# import name -> distribution name on the index
REQUIRED = {
    "websockets": "websockets",
    "eth_account": "eth-account",
    "eth_utils": "eth-utils",
    "structlog": "structlog",
    "pydantic": "pydantic",
}


def check_dependencies() -> tuple[bool, list[str]]:
    """Report which runtime distributions cannot be imported."""
    missing = [dist for module, dist in REQUIRED.items() if find_spec(module) is None]
    return not missing, missing

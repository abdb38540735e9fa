from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

from eth_account import Account
from eth_account.messages import encode_defunct, encode_typed_data
from eth_utils import to_checksum_address

from clearauth.crypto.primitives import hex0x, unhex0x, validate_bytes_length
from clearauth.crypto.typed_data import PRIMARY_TYPE, full_message
from clearauth.protocol.errors import SigningError


@runtime_checkable
class Signer(Protocol):
    @property
    def address(self) -> str:  # EIP-55
        ...

    def sign_digest(self, digest: bytes) -> str:
        """Sign a 32-byte digest with EIP-191 (ethers signMessage(arrayify(digest)))."""

    def sign_typed_data(self, domain: dict[str, Any], types: dict[str, Any],
                        message: dict[str, Any], primary_type: str = PRIMARY_TYPE) -> str:
        """Sign an EIP-712 structured message under ``domain``."""


class EthAccountSigner:
    def __init__(self, private_key: str | bytes | None):
        if not private_key:
            raise SigningError("private key is missing")
        try:
            self._acct = Account.from_key(private_key)
        except Exception as e:  # noqa: BLE001
            raise SigningError("invalid private key") from e

    @property
    def address(self) -> str:
        return to_checksum_address(self._acct.address)

    def sign_digest(self, digest: bytes) -> str:
        try:
            validate_bytes_length(digest, "digest", 32, 32)
        except ValueError as e:
            raise SigningError(str(e)) from e
        sig = self._acct.sign_message(encode_defunct(primitive=digest)).signature
        return _checked(sig)

    def sign_typed_data(self, domain: dict[str, Any], types: dict[str, Any],
                        message: dict[str, Any], primary_type: str = PRIMARY_TYPE) -> str:
        try:
            signable = encode_typed_data(full_message=full_message(domain, types, message, primary_type))
        except Exception as e:  # noqa: BLE001
            raise SigningError(f"typed data cannot be encoded: {e}") from e
        return _checked(self._acct.sign_message(signable).signature)


def recover_digest_signer(digest: bytes, signature: str) -> str:
    addr = Account.recover_message(encode_defunct(primitive=digest), signature=unhex0x(signature))
    return to_checksum_address(addr)


def recover_typed_data_signer(domain: dict[str, Any], types: dict[str, Any], message: dict[str, Any],
                              signature: str, primary_type: str = PRIMARY_TYPE) -> str:
    signable = encode_typed_data(full_message=full_message(domain, types, message, primary_type))
    return to_checksum_address(Account.recover_message(signable, signature=unhex0x(signature)))


def _checked(sig: bytes) -> str:
    if len(sig) != 65:
        raise SigningError("signature must be 65 bytes")
    return hex0x(sig)

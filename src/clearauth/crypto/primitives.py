from __future__ import annotations
from eth_utils import keccak

def text_id(s: str) -> bytes:
    # keccak256 over the UTF-8 text, as ethers utils.id computes it
    return keccak(text=s)

def hex0x(b: bytes) -> str:
    return "0x" + bytes(b).hex()

def unhex0x(s: str) -> bytes:
    if s.startswith(("0x", "0X")):
        s = s[2:]
    return bytes.fromhex(s)

def validate_bytes_length(data: bytes, name: str, min_len: int, max_len: int | None = None):
    if len(data) < min_len:
        raise ValueError(f"{name} too short: {len(data)} < {min_len}")
    if max_len and len(data) > max_len:
        raise ValueError(f"{name} too long: {len(data)} > {max_len}")

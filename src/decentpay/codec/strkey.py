"""
Strkey address encoding.

A strkey is ``base32(version_byte || payload || crc16_xmodem(le))``. Accounts
(``G...``) carry an ed25519 public key, contracts (``C...``) a 32-byte hash.
"""

from __future__ import annotations

import base64
import binascii

from decentpay.core.ledger_exceptions import UnsupportedKind

VERSION_ACCOUNT = 6 << 3  # 'G'
VERSION_CONTRACT = 2 << 3  # 'C'

_PAYLOAD_LEN = 32
_ENCODED_LEN = 56


def _checksum(data: bytes) -> bytes:
    return binascii.crc_hqx(data, 0).to_bytes(2, "little")


def encode(version: int, payload: bytes) -> str:
    if len(payload) != _PAYLOAD_LEN:
        raise UnsupportedKind(f"strkey payload must be {_PAYLOAD_LEN} bytes, got {len(payload)}")
    body = bytes([version]) + payload
    return base64.b32encode(body + _checksum(body)).decode("ascii")


def decode(version: int, address: str) -> bytes:
    """Decode a strkey of the given version, validating length and checksum."""
    if not isinstance(address, str) or len(address) != _ENCODED_LEN:
        raise UnsupportedKind(f"Invalid strkey: {address!r}")
    try:
        raw = base64.b32decode(address.encode("ascii"))
    except (binascii.Error, UnicodeEncodeError, ValueError) as exc:
        raise UnsupportedKind(f"Invalid strkey encoding: {address!r}") from exc

    body, checksum = raw[:-2], raw[-2:]
    if body[0] != version:
        raise UnsupportedKind(f"Unexpected strkey version for {address!r}")
    if _checksum(body) != checksum:
        raise UnsupportedKind(f"Strkey checksum mismatch for {address!r}")
    return body[1:]


def encode_account(public_key: bytes) -> str:
    return encode(VERSION_ACCOUNT, public_key)


def encode_contract(contract_hash: bytes) -> str:
    return encode(VERSION_CONTRACT, contract_hash)


def decode_account(address: str) -> bytes:
    return decode(VERSION_ACCOUNT, address)


def decode_contract(address: str) -> bytes:
    return decode(VERSION_CONTRACT, address)


def is_valid(address: str) -> bool:
    if not isinstance(address, str) or not address:
        return False
    version = {"G": VERSION_ACCOUNT, "C": VERSION_CONTRACT}.get(address[0])
    if version is None:
        return False
    try:
        decode(version, address)
    except UnsupportedKind:
        return False
    return True

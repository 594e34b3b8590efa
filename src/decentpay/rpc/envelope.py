"""
Transaction envelope assembly.

Builds (and reads back) the XDR ``TransactionEnvelope`` for a single
contract invocation: one ``InvokeHostFunction`` operation, time bounds,
no memo, and the Soroban resource data attached at prepare time.

Authorization entries and Soroban transaction data are carried as raw XDR;
only the parts the client reasons about (credentials, invoked function)
are parsed.
"""

from __future__ import annotations

import base64
import hashlib
import time
from dataclasses import dataclass, replace
from typing import List, Optional, Tuple

from decentpay.codec import strkey
from decentpay.codec.ledger_value import LedgerValue, Void
from decentpay.codec.xdr import (
    SYMBOL_MAX_LEN,
    Reader,
    Writer,
    b64decode,
    read_account_id,
    read_address,
    read_scval,
    write_address,
    write_scval,
)
from decentpay.core.ledger_exceptions import DecodeError

ENVELOPE_TYPE_TX = 2
KEY_TYPE_ED25519 = 0
KEY_TYPE_MUXED_ED25519 = 0x100

PRECOND_NONE = 0
PRECOND_TIME = 1

MEMO_NONE = 0
MEMO_TEXT = 1
MEMO_ID = 2
MEMO_HASH = 3
MEMO_RETURN = 4

OP_INVOKE_HOST_FUNCTION = 24
HOST_FUNCTION_INVOKE_CONTRACT = 0

CREDENTIALS_SOURCE_ACCOUNT = 0
CREDENTIALS_ADDRESS = 1

AUTHORIZED_FUNCTION_CONTRACT = 0

MAX_SIGNATURES = 20


@dataclass(frozen=True)
class Invocation:
    """A call of one contract entry point with encoded arguments."""

    contract_id: str
    function: str
    args: Tuple[LedgerValue, ...] = ()


@dataclass(frozen=True)
class AuthObligation:
    """One ``SorobanAuthorizationEntry``.

    ``xdr`` is the complete entry; the other fields are parsed from it.
    Entries with address credentials need a signature from ``address``;
    source-account entries are covered by the envelope signature.
    """

    xdr: bytes
    credential_type: int
    address: Optional[str] = None
    nonce: Optional[int] = None
    signature_expiration_ledger: Optional[int] = None
    signature: LedgerValue = Void()
    contract_id: Optional[str] = None
    function: Optional[str] = None

    @property
    def needs_signature(self) -> bool:
        return self.credential_type == CREDENTIALS_ADDRESS

    @property
    def is_signed(self) -> bool:
        return not isinstance(self.signature, Void)

    @classmethod
    def from_xdr(cls, data: bytes) -> "AuthObligation":
        r = Reader(data)
        obligation = read_auth_entry(r)
        r.expect_end()
        return obligation

    @classmethod
    def from_base64(cls, data: str) -> "AuthObligation":
        return cls.from_xdr(b64decode(data))

    def to_base64(self) -> str:
        return base64.b64encode(self.xdr).decode("ascii")


def _read_invocation_tree(r: Reader) -> Tuple[str, str]:
    fn_type = r.read_u32()
    if fn_type != AUTHORIZED_FUNCTION_CONTRACT:
        raise DecodeError(f"Unsupported authorized function type {fn_type}")
    contract_id = read_address(r)
    function = r.read_string(SYMBOL_MAX_LEN)
    for _ in range(r.read_u32()):
        read_scval(r)
    for _ in range(r.read_u32()):
        _read_invocation_tree(r)
    return contract_id, function


def read_auth_entry(r: Reader) -> AuthObligation:
    start = r.pos
    credential_type = r.read_u32()
    fields = {}
    if credential_type == CREDENTIALS_ADDRESS:
        fields["address"] = read_address(r)
        fields["nonce"] = r.read_i64()
        fields["signature_expiration_ledger"] = r.read_u32()
        fields["signature"] = read_scval(r)
    elif credential_type != CREDENTIALS_SOURCE_ACCOUNT:
        raise DecodeError(f"Unsupported credentials type {credential_type}")
    contract_id, function = _read_invocation_tree(r)
    return AuthObligation(
        xdr=r.data[start:r.pos],
        credential_type=credential_type,
        contract_id=contract_id,
        function=function,
        **fields,
    )


# ==================== Soroban transaction data ====================


def _skip_ledger_key(r: Reader) -> None:
    key_type = r.read_u32()
    if key_type == 0:  # account
        read_account_id(r)
    elif key_type == 1:  # trustline
        read_account_id(r)
        asset_type = r.read_u32()
        if asset_type == 1:
            r.read_fixed(4)
            read_account_id(r)
        elif asset_type == 2:
            r.read_fixed(12)
            read_account_id(r)
        elif asset_type == 3:
            r.read_fixed(32)
        elif asset_type != 0:
            raise DecodeError(f"Unsupported trustline asset type {asset_type}")
    elif key_type == 6:  # contract data
        read_address(r)
        read_scval(r)
        r.read_u32()
    elif key_type == 7:  # contract code
        r.read_fixed(32)
    else:
        raise DecodeError(f"Unsupported footprint key type {key_type}")


def read_soroban_data(r: Reader) -> bytes:
    """Consume a ``SorobanTransactionData`` and return its raw XDR."""
    start = r.pos
    ext = r.read_u32()
    if ext == 1:
        for _ in range(r.read_u32()):
            r.read_u32()
    elif ext != 0:
        raise DecodeError(f"Unsupported Soroban data extension {ext}")
    for _ in range(2):  # readOnly, readWrite
        for _ in range(r.read_u32()):
            _skip_ledger_key(r)
    r.read_u32()  # instructions
    r.read_u32()  # disk read bytes
    r.read_u32()  # write bytes
    r.read_i64()  # resource fee
    return r.data[start:r.pos]


def soroban_resource_fee(data: bytes) -> int:
    """Resource fee declared in raw ``SorobanTransactionData``."""
    r = Reader(data)
    read_soroban_data(r)
    return int.from_bytes(data[r.pos - 8:r.pos], "big", signed=True)


# ==================== Transaction ====================


@dataclass(frozen=True)
class DecoratedSignature:
    hint: bytes
    signature: bytes


@dataclass(frozen=True)
class Transaction:
    source: str
    sequence: int
    invocation: Invocation
    fee: int
    time_bounds: Tuple[int, int] = (0, 0)
    auth: Tuple[AuthObligation, ...] = ()
    soroban_data: Optional[bytes] = None

    def with_auth(self, auth: Tuple[AuthObligation, ...]) -> "Transaction":
        return replace(self, auth=tuple(auth))

    def to_xdr(self) -> bytes:
        w = Writer()
        self._write(w)
        return w.to_bytes()

    def _write(self, w: Writer) -> None:
        w.write_u32(KEY_TYPE_ED25519)
        w.write_fixed(strkey.decode_account(self.source))
        w.write_u32(self.fee)
        w.write_i64(self.sequence)

        w.write_u32(PRECOND_TIME)
        w.write_u64(self.time_bounds[0])
        w.write_u64(self.time_bounds[1])

        w.write_u32(MEMO_NONE)

        w.write_u32(1)  # one operation
        w.write_u32(0)  # no operation source
        w.write_u32(OP_INVOKE_HOST_FUNCTION)
        w.write_u32(HOST_FUNCTION_INVOKE_CONTRACT)
        write_address(w, self.invocation.contract_id)
        w.write_string(self.invocation.function)
        w.write_u32(len(self.invocation.args))
        for arg in self.invocation.args:
            write_scval(w, arg)
        w.write_u32(len(self.auth))
        for entry in self.auth:
            w.write_fixed(entry.xdr)

        if self.soroban_data is None:
            w.write_u32(0)
        else:
            w.write_u32(1)
            w.write_fixed(self.soroban_data)

    def hash(self, network_passphrase: str) -> bytes:
        """Signature payload hash: sha256(network_id || ENVELOPE_TYPE_TX || tx)."""
        network_id = hashlib.sha256(network_passphrase.encode("utf-8")).digest()
        payload = network_id + ENVELOPE_TYPE_TX.to_bytes(4, "big") + self.to_xdr()
        return hashlib.sha256(payload).digest()

    def hash_hex(self, network_passphrase: str) -> str:
        return self.hash(network_passphrase).hex()


def _read_muxed_account(r: Reader) -> str:
    key_type = r.read_u32()
    if key_type == KEY_TYPE_ED25519:
        return strkey.encode_account(r.read_fixed(32))
    if key_type == KEY_TYPE_MUXED_ED25519:
        r.read_u64()
        return strkey.encode_account(r.read_fixed(32))
    raise DecodeError(f"Unsupported account key type {key_type}")


def _skip_memo(r: Reader) -> None:
    memo_type = r.read_u32()
    if memo_type == MEMO_TEXT:
        r.read_opaque(28)
    elif memo_type == MEMO_ID:
        r.read_u64()
    elif memo_type in (MEMO_HASH, MEMO_RETURN):
        r.read_fixed(32)
    elif memo_type != MEMO_NONE:
        raise DecodeError(f"Unsupported memo type {memo_type}")


def read_transaction(r: Reader) -> Transaction:
    source = _read_muxed_account(r)
    fee = r.read_u32()
    sequence = r.read_i64()

    cond = r.read_u32()
    if cond == PRECOND_TIME:
        time_bounds = (r.read_u64(), r.read_u64())
    elif cond == PRECOND_NONE:
        time_bounds = (0, 0)
    else:
        raise DecodeError(f"Unsupported precondition type {cond}")

    _skip_memo(r)

    op_count = r.read_u32()
    if op_count != 1:
        raise DecodeError(f"Expected one operation, got {op_count}")
    if r.read_u32():
        _read_muxed_account(r)
    op_type = r.read_u32()
    if op_type != OP_INVOKE_HOST_FUNCTION:
        raise DecodeError(f"Expected InvokeHostFunction, got operation type {op_type}")
    fn_type = r.read_u32()
    if fn_type != HOST_FUNCTION_INVOKE_CONTRACT:
        raise DecodeError(f"Unsupported host function type {fn_type}")
    contract_id = read_address(r)
    function = r.read_string(SYMBOL_MAX_LEN)
    args = tuple(read_scval(r) for _ in range(r.read_u32()))
    auth = tuple(read_auth_entry(r) for _ in range(r.read_u32()))

    ext = r.read_u32()
    if ext == 1:
        soroban_data: Optional[bytes] = read_soroban_data(r)
    elif ext == 0:
        soroban_data = None
    else:
        raise DecodeError(f"Unsupported transaction extension {ext}")

    return Transaction(
        source=source,
        sequence=sequence,
        invocation=Invocation(contract_id, function, args),
        fee=fee,
        time_bounds=time_bounds,
        auth=auth,
        soroban_data=soroban_data,
    )


@dataclass(frozen=True)
class TransactionEnvelope:
    transaction: Transaction
    signatures: Tuple[DecoratedSignature, ...] = ()

    def to_xdr(self) -> bytes:
        w = Writer()
        w.write_u32(ENVELOPE_TYPE_TX)
        self.transaction._write(w)
        w.write_u32(len(self.signatures))
        for sig in self.signatures:
            w.write_fixed(sig.hint)
            w.write_opaque(sig.signature)
        return w.to_bytes()

    def to_base64(self) -> str:
        return base64.b64encode(self.to_xdr()).decode("ascii")

    @classmethod
    def from_xdr(cls, data: bytes) -> "TransactionEnvelope":
        r = Reader(data)
        envelope_type = r.read_u32()
        if envelope_type != ENVELOPE_TYPE_TX:
            raise DecodeError(f"Unsupported envelope type {envelope_type}")
        tx = read_transaction(r)
        count = r.read_u32()
        if count > MAX_SIGNATURES:
            raise DecodeError(f"Too many signatures: {count}")
        signatures: List[DecoratedSignature] = []
        for _ in range(count):
            hint = r.read_fixed(4)
            signatures.append(DecoratedSignature(hint, r.read_opaque(64)))
        r.expect_end()
        return cls(tx, tuple(signatures))

    @classmethod
    def from_base64(cls, data: str) -> "TransactionEnvelope":
        return cls.from_xdr(b64decode(data))


def build_invocation(
    source: str,
    sequence: int,
    invocation: Invocation,
    fee: int,
    timeout: int,
    now: Optional[float] = None,
) -> Transaction:
    """Unprepared transaction valid for ``timeout`` seconds from now."""
    now = time.time() if now is None else now
    return Transaction(
        source=source,
        sequence=sequence,
        invocation=invocation,
        fee=fee,
        time_bounds=(0, int(now) + timeout),
    )

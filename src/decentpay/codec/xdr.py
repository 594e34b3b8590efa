"""
XDR wire format for contract values and ledger keys/entries.

Implements the subset of the Stellar XDR schema the contract layer needs:
``SCVal``, ``SCAddress``, ``LedgerKey`` and ``LedgerEntryData`` for accounts
and contract data. All integers are big-endian; variable-length opaque data
and strings are length-prefixed and zero-padded to a 4-byte boundary.
"""

from __future__ import annotations

import base64
import binascii
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Tuple

from decentpay.codec import strkey
from decentpay.codec.ledger_value import (
    Address,
    Bool,
    Bytes,
    ContractExecutable,
    ContractInstance,
    I32,
    I64,
    I128,
    LedgerKeyContractInstance,
    LedgerValue,
    Map,
    String,
    Symbol,
    U32,
    U64,
    U128,
    Vector,
    Void,
)
from decentpay.core.ledger_exceptions import DecodeError, UnsupportedKind

# SCValType
SCV_BOOL = 0
SCV_VOID = 1
SCV_ERROR = 2
SCV_U32 = 3
SCV_I32 = 4
SCV_U64 = 5
SCV_I64 = 6
SCV_TIMEPOINT = 7
SCV_DURATION = 8
SCV_U128 = 9
SCV_I128 = 10
SCV_U256 = 11
SCV_I256 = 12
SCV_BYTES = 13
SCV_STRING = 14
SCV_SYMBOL = 15
SCV_VEC = 16
SCV_MAP = 17
SCV_ADDRESS = 18
SCV_CONTRACT_INSTANCE = 19
SCV_LEDGER_KEY_CONTRACT_INSTANCE = 20
SCV_LEDGER_KEY_NONCE = 21

SC_ADDRESS_TYPE_ACCOUNT = 0
SC_ADDRESS_TYPE_CONTRACT = 1
PUBLIC_KEY_TYPE_ED25519 = 0

CONTRACT_EXECUTABLE_WASM = 0
CONTRACT_EXECUTABLE_STELLAR_ASSET = 1

LEDGER_ENTRY_ACCOUNT = 0
LEDGER_ENTRY_CONTRACT_DATA = 6

DURABILITY_TEMPORARY = 0
DURABILITY_PERSISTENT = 1

SYMBOL_MAX_LEN = 32


@dataclass
class Writer:
    buf: bytearray = field(default_factory=bytearray)

    def write_u32(self, v: int) -> None:
        self.buf.extend(int(v).to_bytes(4, "big", signed=False))

    def write_i32(self, v: int) -> None:
        self.buf.extend(int(v).to_bytes(4, "big", signed=True))

    def write_u64(self, v: int) -> None:
        self.buf.extend(int(v).to_bytes(8, "big", signed=False))

    def write_i64(self, v: int) -> None:
        self.buf.extend(int(v).to_bytes(8, "big", signed=True))

    def write_bool(self, v: bool) -> None:
        self.write_u32(1 if v else 0)

    def write_fixed(self, b: bytes) -> None:
        self.buf.extend(b)
        self._pad(len(b))

    def write_opaque(self, b: bytes) -> None:
        self.write_u32(len(b))
        self.write_fixed(b)

    def write_string(self, s: str) -> None:
        self.write_opaque(s.encode("utf-8"))

    def _pad(self, length: int) -> None:
        self.buf.extend(b"\x00" * ((4 - length % 4) % 4))

    def to_bytes(self) -> bytes:
        return bytes(self.buf)


class Reader:
    def __init__(self, data: bytes) -> None:
        self.data = bytes(data)
        self.pos = 0

    def _take(self, n: int) -> bytes:
        if self.pos + n > len(self.data):
            raise DecodeError(
                f"XDR truncated: need {n} bytes at offset {self.pos}, have {len(self.data) - self.pos}"
            )
        chunk = self.data[self.pos:self.pos + n]
        self.pos += n
        return chunk

    def read_u32(self) -> int:
        return int.from_bytes(self._take(4), "big", signed=False)

    def read_i32(self) -> int:
        return int.from_bytes(self._take(4), "big", signed=True)

    def read_u64(self) -> int:
        return int.from_bytes(self._take(8), "big", signed=False)

    def read_i64(self) -> int:
        return int.from_bytes(self._take(8), "big", signed=True)

    def read_bool(self) -> bool:
        raw = self.read_u32()
        if raw not in (0, 1):
            raise DecodeError(f"Invalid XDR bool: {raw}")
        return raw == 1

    def read_fixed(self, n: int) -> bytes:
        value = self._take(n)
        padding = self._take((4 - n % 4) % 4)
        if padding.strip(b"\x00"):
            raise DecodeError("Non-zero XDR padding")
        return value

    def read_opaque(self, max_len: Optional[int] = None) -> bytes:
        length = self.read_u32()
        if max_len is not None and length > max_len:
            raise DecodeError(f"XDR opaque length {length} exceeds {max_len}")
        return self.read_fixed(length)

    def read_string(self, max_len: Optional[int] = None) -> str:
        raw = self.read_opaque(max_len)
        try:
            return raw.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise DecodeError("XDR string is not valid UTF-8") from exc

    @property
    def remaining(self) -> int:
        return len(self.data) - self.pos

    def expect_end(self) -> None:
        if self.remaining:
            raise DecodeError(f"{self.remaining} trailing bytes after XDR value")


# ==================== SCAddress ====================


def write_address(w: Writer, address: str) -> None:
    if address.startswith("G"):
        w.write_u32(SC_ADDRESS_TYPE_ACCOUNT)
        w.write_u32(PUBLIC_KEY_TYPE_ED25519)
        w.write_fixed(strkey.decode_account(address))
    elif address.startswith("C"):
        w.write_u32(SC_ADDRESS_TYPE_CONTRACT)
        w.write_fixed(strkey.decode_contract(address))
    else:
        raise UnsupportedKind(f"Unsupported address: {address!r}")


def read_address(r: Reader) -> str:
    kind = r.read_u32()
    if kind == SC_ADDRESS_TYPE_ACCOUNT:
        key_type = r.read_u32()
        if key_type != PUBLIC_KEY_TYPE_ED25519:
            raise DecodeError(f"Unsupported public key type {key_type}")
        return strkey.encode_account(r.read_fixed(32))
    if kind == SC_ADDRESS_TYPE_CONTRACT:
        return strkey.encode_contract(r.read_fixed(32))
    raise DecodeError(f"Unsupported SCAddress type {kind}")


def write_account_id(w: Writer, account: str) -> None:
    w.write_u32(PUBLIC_KEY_TYPE_ED25519)
    w.write_fixed(strkey.decode_account(account))


def read_account_id(r: Reader) -> str:
    key_type = r.read_u32()
    if key_type != PUBLIC_KEY_TYPE_ED25519:
        raise DecodeError(f"Unsupported public key type {key_type}")
    return strkey.encode_account(r.read_fixed(32))


# ==================== SCVal ====================


def _write_map_body(w: Writer, value: Map) -> None:
    w.write_u32(len(value.entries))
    for key, val in value.entries:
        write_scval(w, key)
        write_scval(w, val)


def write_scval(w: Writer, value: LedgerValue) -> None:
    if isinstance(value, Bool):
        w.write_u32(SCV_BOOL)
        w.write_bool(value.value)
    elif isinstance(value, Void):
        w.write_u32(SCV_VOID)
    elif isinstance(value, U32):
        w.write_u32(SCV_U32)
        w.write_u32(value.value)
    elif isinstance(value, I32):
        w.write_u32(SCV_I32)
        w.write_i32(value.value)
    elif isinstance(value, U64):
        w.write_u32(SCV_U64)
        w.write_u64(value.value)
    elif isinstance(value, I64):
        w.write_u32(SCV_I64)
        w.write_i64(value.value)
    elif isinstance(value, U128):
        w.write_u32(SCV_U128)
        w.write_u64(value.hi)
        w.write_u64(value.lo)
    elif isinstance(value, I128):
        w.write_u32(SCV_I128)
        w.write_i64(value.hi)
        w.write_u64(value.lo)
    elif isinstance(value, Bytes):
        w.write_u32(SCV_BYTES)
        w.write_opaque(value.value)
    elif isinstance(value, String):
        w.write_u32(SCV_STRING)
        w.write_string(value.value)
    elif isinstance(value, Symbol):
        w.write_u32(SCV_SYMBOL)
        w.write_string(value.value)
    elif isinstance(value, Vector):
        w.write_u32(SCV_VEC)
        w.write_u32(1)  # present
        w.write_u32(len(value.items))
        for item in value.items:
            write_scval(w, item)
    elif isinstance(value, Map):
        w.write_u32(SCV_MAP)
        w.write_u32(1)
        _write_map_body(w, value)
    elif isinstance(value, Address):
        w.write_u32(SCV_ADDRESS)
        write_address(w, value.value)
    elif isinstance(value, ContractInstance):
        w.write_u32(SCV_CONTRACT_INSTANCE)
        if value.executable.is_stellar_asset:
            w.write_u32(CONTRACT_EXECUTABLE_STELLAR_ASSET)
        else:
            w.write_u32(CONTRACT_EXECUTABLE_WASM)
            w.write_fixed(value.executable.wasm_hash)
        if value.storage is None:
            w.write_u32(0)
        else:
            w.write_u32(1)
            _write_map_body(w, value.storage)
    elif isinstance(value, LedgerKeyContractInstance):
        w.write_u32(SCV_LEDGER_KEY_CONTRACT_INSTANCE)
    else:
        raise UnsupportedKind(f"Cannot serialize {type(value).__name__} as XDR")


def _read_optional(r: Reader, read_body: Callable[[Reader], LedgerValue], empty: LedgerValue) -> LedgerValue:
    present = r.read_u32()
    if present == 0:
        return empty
    if present != 1:
        raise DecodeError(f"Invalid XDR optional marker: {present}")
    return read_body(r)


def _read_vec_body(r: Reader) -> Vector:
    count = r.read_u32()
    return Vector(tuple(read_scval(r) for _ in range(count)))


def _read_map_body(r: Reader) -> Map:
    count = r.read_u32()
    entries: List[Tuple[LedgerValue, LedgerValue]] = []
    for _ in range(count):
        key = read_scval(r)
        entries.append((key, read_scval(r)))
    return Map(tuple(entries))


def read_scval(r: Reader) -> LedgerValue:
    kind = r.read_u32()
    if kind == SCV_BOOL:
        return Bool(r.read_bool())
    if kind == SCV_VOID:
        return Void()
    if kind == SCV_U32:
        return U32(r.read_u32())
    if kind == SCV_I32:
        return I32(r.read_i32())
    if kind == SCV_U64:
        return U64(r.read_u64())
    if kind == SCV_I64:
        return I64(r.read_i64())
    if kind == SCV_U128:
        hi = r.read_u64()
        return U128(hi, r.read_u64())
    if kind == SCV_I128:
        hi = r.read_i64()
        return I128(hi, r.read_u64())
    if kind == SCV_BYTES:
        return Bytes(r.read_opaque())
    if kind == SCV_STRING:
        return String(r.read_string())
    if kind == SCV_SYMBOL:
        return Symbol(r.read_string(SYMBOL_MAX_LEN))
    if kind == SCV_VEC:
        return _read_optional(r, _read_vec_body, Vector(()))
    if kind == SCV_MAP:
        return _read_optional(r, _read_map_body, Map(()))
    if kind == SCV_ADDRESS:
        return Address(read_address(r))
    if kind == SCV_CONTRACT_INSTANCE:
        exec_type = r.read_u32()
        if exec_type == CONTRACT_EXECUTABLE_WASM:
            executable = ContractExecutable(wasm_hash=r.read_fixed(32))
        elif exec_type == CONTRACT_EXECUTABLE_STELLAR_ASSET:
            executable = ContractExecutable()
        else:
            raise DecodeError(f"Unsupported contract executable type {exec_type}")
        storage = _read_optional(r, _read_map_body, Void())
        return ContractInstance(executable, None if isinstance(storage, Void) else storage)
    if kind == SCV_LEDGER_KEY_CONTRACT_INSTANCE:
        return LedgerKeyContractInstance()
    raise DecodeError(f"Unsupported SCVal type {kind}")


def to_xdr(value: LedgerValue) -> bytes:
    w = Writer()
    write_scval(w, value)
    return w.to_bytes()


def from_xdr(data: bytes) -> LedgerValue:
    r = Reader(data)
    value = read_scval(r)
    r.expect_end()
    return value


def b64decode(data: str) -> bytes:
    try:
        return base64.b64decode(data, validate=True)
    except (binascii.Error, ValueError, TypeError) as exc:
        raise DecodeError(f"Invalid base64 payload: {str(data)[:32]!r}") from exc


def to_base64(value: LedgerValue) -> str:
    return base64.b64encode(to_xdr(value)).decode("ascii")


def from_base64(data: str) -> LedgerValue:
    return from_xdr(b64decode(data))


# ==================== Ledger keys and entries ====================


def account_ledger_key(account: str) -> str:
    """Base64 ``LedgerKey::Account``."""
    w = Writer()
    w.write_u32(LEDGER_ENTRY_ACCOUNT)
    write_account_id(w, account)
    return base64.b64encode(w.to_bytes()).decode("ascii")


def contract_data_ledger_key(
    contract_id: str,
    key: LedgerValue,
    durability: int = DURABILITY_PERSISTENT,
) -> str:
    """Base64 ``LedgerKey::ContractData``."""
    w = Writer()
    w.write_u32(LEDGER_ENTRY_CONTRACT_DATA)
    write_address(w, contract_id)
    write_scval(w, key)
    w.write_u32(durability)
    return base64.b64encode(w.to_bytes()).decode("ascii")


@dataclass(frozen=True)
class AccountEntry:
    account_id: str
    balance: int
    sequence: int


@dataclass(frozen=True)
class ContractDataEntry:
    contract: str
    key: LedgerValue
    durability: int
    value: LedgerValue


def read_ledger_entry_data(data: bytes):
    """Decode ``LedgerEntryData`` for account and contract-data entries.

    Account entries are read only up to the sequence number; the remaining
    fields (thresholds, signers, extensions) are not needed.
    """
    r = Reader(data)
    entry_type = r.read_u32()
    if entry_type == LEDGER_ENTRY_ACCOUNT:
        account_id = read_account_id(r)
        balance = r.read_i64()
        return AccountEntry(account_id, balance, r.read_i64())
    if entry_type == LEDGER_ENTRY_CONTRACT_DATA:
        ext = r.read_u32()
        if ext != 0:
            raise DecodeError(f"Unsupported contract data extension {ext}")
        contract = read_address(r)
        key = read_scval(r)
        durability = r.read_u32()
        value = read_scval(r)
        r.expect_end()
        return ContractDataEntry(contract, key, durability, value)
    raise DecodeError(f"Unsupported ledger entry type {entry_type}")


def write_account_entry(account: str, balance: int, sequence: int) -> bytes:
    """Serialize a minimal ``AccountEntry`` as ``LedgerEntryData``."""
    w = Writer()
    w.write_u32(LEDGER_ENTRY_ACCOUNT)
    write_account_id(w, account)
    w.write_i64(balance)
    w.write_i64(sequence)
    w.write_u32(0)  # numSubEntries
    w.write_u32(0)  # inflationDest absent
    w.write_u32(0)  # flags
    w.write_string("")  # homeDomain
    w.write_fixed(b"\x01\x00\x00\x00")  # thresholds
    w.write_u32(0)  # signers
    w.write_u32(0)  # ext
    return w.to_bytes()


def write_contract_data_entry(
    contract_id: str,
    key: LedgerValue,
    value: LedgerValue,
    durability: int = DURABILITY_PERSISTENT,
) -> bytes:
    w = Writer()
    w.write_u32(LEDGER_ENTRY_CONTRACT_DATA)
    w.write_u32(0)
    write_address(w, contract_id)
    write_scval(w, key)
    w.write_u32(durability)
    write_scval(w, value)
    return w.to_bytes()

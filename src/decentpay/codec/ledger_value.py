"""
LedgerValue: the tagged value exchanged with the contract VM.

Every variant is an immutable, hashable dataclass so values can be used as
map keys (contract storage is keyed by arbitrary values).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator, Optional, Tuple

from decentpay.core.ledger_exceptions import DecodeError, UnsupportedKind

U32_MAX = 2**32 - 1
I32_MIN, I32_MAX = -(2**31), 2**31 - 1
U64_MAX = 2**64 - 1
I64_MIN, I64_MAX = -(2**63), 2**63 - 1
U128_MAX = 2**128 - 1
I128_MIN, I128_MAX = -(2**127), 2**127 - 1

_LO_MASK = 2**64 - 1


class LedgerValue:
    """Base class of all wire value variants."""

    __slots__ = ()
    type_name = "unknown"


@dataclass(frozen=True)
class Void(LedgerValue):
    type_name = "void"


@dataclass(frozen=True)
class Bool(LedgerValue):
    value: bool
    type_name = "bool"


@dataclass(frozen=True)
class U32(LedgerValue):
    value: int
    type_name = "u32"


@dataclass(frozen=True)
class I32(LedgerValue):
    value: int
    type_name = "i32"


@dataclass(frozen=True)
class U64(LedgerValue):
    value: int
    type_name = "u64"


@dataclass(frozen=True)
class I64(LedgerValue):
    value: int
    type_name = "i64"


def _split_128(value: int) -> Tuple[int, int]:
    return value >> 64, value & _LO_MASK


@dataclass(frozen=True)
class U128(LedgerValue):
    hi: int
    lo: int
    type_name = "u128"

    @property
    def value(self) -> int:
        return (self.hi << 64) | self.lo

    @classmethod
    def from_int(cls, value: int) -> "U128":
        if not 0 <= value <= U128_MAX:
            raise UnsupportedKind(f"u128 out of range: {value}")
        return cls(*_split_128(value))


@dataclass(frozen=True)
class I128(LedgerValue):
    """Signed 128-bit integer as a signed high half and an unsigned low half."""

    hi: int
    lo: int
    type_name = "i128"

    @property
    def value(self) -> int:
        return (self.hi << 64) | self.lo

    @classmethod
    def from_int(cls, value: int) -> "I128":
        if not I128_MIN <= value <= I128_MAX:
            raise UnsupportedKind(f"i128 out of range: {value}")
        return cls(*_split_128(value))

    @classmethod
    def from_parts(cls, hi: int, lo: int) -> "I128":
        if not I64_MIN <= hi <= I64_MAX:
            raise DecodeError(f"i128 high half out of range: {hi}")
        if not 0 <= lo <= U64_MAX:
            raise DecodeError(f"i128 low half out of range: {lo}")
        return cls(hi, lo)


@dataclass(frozen=True)
class Bytes(LedgerValue):
    value: bytes
    type_name = "bytes"


@dataclass(frozen=True)
class String(LedgerValue):
    value: str
    type_name = "string"


@dataclass(frozen=True)
class Symbol(LedgerValue):
    value: str
    type_name = "symbol"


@dataclass(frozen=True)
class Address(LedgerValue):
    """Account (``G...``) or contract (``C...``) strkey."""

    value: str
    type_name = "address"

    @property
    def is_contract(self) -> bool:
        return self.value.startswith("C")


@dataclass(frozen=True)
class Vector(LedgerValue):
    items: Tuple[LedgerValue, ...] = ()
    type_name = "vec"

    def __iter__(self) -> Iterator[LedgerValue]:
        return iter(self.items)

    def __len__(self) -> int:
        return len(self.items)


@dataclass(frozen=True)
class Map(LedgerValue):
    """Ordered key/value pairs in wire order."""

    entries: Tuple[Tuple[LedgerValue, LedgerValue], ...] = ()
    type_name = "map"

    def __len__(self) -> int:
        return len(self.entries)

    def get(self, key: LedgerValue) -> Optional[LedgerValue]:
        for entry_key, entry_value in self.entries:
            if entry_key == key:
                return entry_value
        return None

    def keys(self) -> Tuple[LedgerValue, ...]:
        return tuple(key for key, _ in self.entries)


@dataclass(frozen=True)
class ContractExecutable:
    """Either an uploaded wasm (by hash) or the built-in asset contract."""

    wasm_hash: Optional[bytes] = None

    @property
    def is_stellar_asset(self) -> bool:
        return self.wasm_hash is None


@dataclass(frozen=True)
class ContractInstance(LedgerValue):
    executable: ContractExecutable
    storage: Optional[Map] = None
    type_name = "contract_instance"


@dataclass(frozen=True)
class LedgerKeyContractInstance(LedgerValue):
    type_name = "ledger_key_contract_instance"


def symbol_vec(name: str, *args: LedgerValue) -> Vector:
    """Build the ``Vec[Symbol(name), args...]`` encoding of an enum case."""
    return Vector((Symbol(name),) + tuple(args))

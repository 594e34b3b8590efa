"""
Conversion between native Python values and LedgerValue.

Encoding is driven by an explicit KindSpec, never by the native type: a u32
counter and an i128 amount are both plain ints on the Python side.

Decoding accepts three wire shapes for the same logical value:

* tagged objects, e.g. ``{"i128": {"hi": "0", "lo": "10000000000"}}``
* nested serializer objects, e.g.
  ``{"_switch": {"name": "scvU32"}, "_value": 5}``
* bare values (``5``, ``"Pending"``, ``["Pending"]``), interpreted by kind

All three normalize to the same LedgerValue before conversion to native.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple, Union

from decentpay.codec import strkey
from decentpay.codec.ledger_value import (
    I32_MAX,
    I32_MIN,
    I64_MAX,
    I64_MIN,
    U32_MAX,
    U64_MAX,
    Address,
    Bool,
    Bytes,
    I32,
    I64,
    I128,
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
from decentpay.core.ledger_exceptions import AbsentEntity, DecodeError, UnsupportedKind


class ValueKind(Enum):
    VOID = "void"
    BOOL = "bool"
    U32 = "u32"
    I32 = "i32"
    U64 = "u64"
    I64 = "i64"
    U128 = "u128"
    I128 = "i128"
    BYTES = "bytes"
    STRING = "string"
    SYMBOL = "symbol"
    ADDRESS = "address"
    OPTION = "option"
    VEC = "vec"
    TUPLE = "tuple"
    RECORD = "record"
    ENUM = "enum"


@dataclass(frozen=True)
class FieldSpec:
    name: str
    kind: "KindSpec"
    required: bool = True


@dataclass(frozen=True)
class KindSpec:
    kind: ValueKind
    inner: Optional["KindSpec"] = None
    items: Tuple["KindSpec", ...] = ()
    fields: Tuple[FieldSpec, ...] = ()
    variants: Tuple[str, ...] = ()
    aliases: Tuple[Tuple[str, str], ...] = ()
    ordinals: Tuple[str, ...] = ()

    def __repr__(self) -> str:
        if self.kind in (ValueKind.OPTION, ValueKind.VEC):
            return f"{self.kind.value}<{self.inner!r}>"
        if self.kind is ValueKind.TUPLE:
            return f"tuple<{', '.join(map(repr, self.items))}>"
        if self.kind is ValueKind.RECORD:
            return f"record<{', '.join(f.name for f in self.fields)}>"
        if self.kind is ValueKind.ENUM:
            return f"enum<{'|'.join(self.variants)}>"
        return self.kind.value


VOID = KindSpec(ValueKind.VOID)
BOOL = KindSpec(ValueKind.BOOL)
U32_KIND = KindSpec(ValueKind.U32)
I32_KIND = KindSpec(ValueKind.I32)
U64_KIND = KindSpec(ValueKind.U64)
I64_KIND = KindSpec(ValueKind.I64)
U128_KIND = KindSpec(ValueKind.U128)
I128_KIND = KindSpec(ValueKind.I128)
BYTES = KindSpec(ValueKind.BYTES)
STRING = KindSpec(ValueKind.STRING)
SYMBOL = KindSpec(ValueKind.SYMBOL)
ADDRESS = KindSpec(ValueKind.ADDRESS)


def option_of(inner: KindSpec) -> KindSpec:
    return KindSpec(ValueKind.OPTION, inner=inner)


def vec_of(inner: KindSpec) -> KindSpec:
    return KindSpec(ValueKind.VEC, inner=inner)


def tuple_of(*items: KindSpec) -> KindSpec:
    return KindSpec(ValueKind.TUPLE, items=tuple(items))


def record_of(*fields: Union[FieldSpec, Tuple[Any, ...]]) -> KindSpec:
    """Record kind from FieldSpecs or ``(name, kind[, required])`` tuples."""
    specs = tuple(f if isinstance(f, FieldSpec) else FieldSpec(*f) for f in fields)
    return KindSpec(ValueKind.RECORD, fields=specs)


def enum_of(
    *variants: str,
    aliases: Optional[Mapping] = None,
    ordinals: Optional[Sequence[str]] = None,
) -> KindSpec:
    """
    Unit-variant enum.

    ``aliases`` maps alternative names onto variants. ``ordinals`` lists the
    variant for each integer code when the integer coding differs from the
    declaration order; it defaults to ``variants``.
    """
    ordinals = tuple(ordinals) if ordinals is not None else tuple(variants)
    unknown = [name for name in ordinals if name not in variants]
    if unknown:
        raise UnsupportedKind(f"Ordinals name unknown variants: {unknown}")
    return KindSpec(
        ValueKind.ENUM,
        variants=tuple(variants),
        aliases=tuple(sorted((aliases or {}).items())),
        ordinals=ordinals,
    )


_INT_RANGES = {
    ValueKind.U32: (0, U32_MAX, U32),
    ValueKind.I32: (I32_MIN, I32_MAX, I32),
    ValueKind.U64: (0, U64_MAX, U64),
    ValueKind.I64: (I64_MIN, I64_MAX, I64),
}

_SYMBOL_RE = re.compile(r"^[A-Za-z0-9_]{0,32}$")


# ==================== Encoding ====================


def _require_int(value: Any, kind: KindSpec) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise UnsupportedKind(f"{kind!r} requires an int, got {type(value).__name__}")
    return value


def _require_wide_int(value: Any, kind: KindSpec) -> int:
    # 128-bit amounts also travel as base-10 strings
    if isinstance(value, str):
        try:
            return int(value.strip(), 10)
        except ValueError as exc:
            raise UnsupportedKind(f"{kind!r} requires a base-10 integer, got {value!r}") from exc
    if isinstance(value, Decimal) and value == value.to_integral_value():
        return int(value)
    return _require_int(value, kind)


def encode(value: Any, kind: KindSpec) -> LedgerValue:
    """Encode a native value as the given kind.

    Raises:
        UnsupportedKind: value does not fit the kind (type or range)
    """
    if isinstance(value, LedgerValue):
        if not matches_kind(value, kind):
            raise UnsupportedKind(f"{kind!r} cannot carry a {value.type_name} value")
        return value

    k = kind.kind
    if k is ValueKind.VOID:
        if value is not None:
            raise UnsupportedKind(f"void requires None, got {value!r}")
        return Void()
    if k is ValueKind.BOOL:
        if not isinstance(value, bool):
            raise UnsupportedKind(f"bool requires a bool, got {type(value).__name__}")
        return Bool(value)
    if k in _INT_RANGES:
        low, high, cls = _INT_RANGES[k]
        number = _require_int(value, kind)
        if not low <= number <= high:
            raise UnsupportedKind(f"{k.value} out of range: {number}")
        return cls(number)
    if k is ValueKind.I128:
        return I128.from_int(_require_wide_int(value, kind))
    if k is ValueKind.U128:
        return U128.from_int(_require_wide_int(value, kind))
    if k is ValueKind.BYTES:
        if not isinstance(value, (bytes, bytearray)):
            raise UnsupportedKind(f"bytes requires bytes, got {type(value).__name__}")
        return Bytes(bytes(value))
    if k is ValueKind.STRING:
        if not isinstance(value, str):
            raise UnsupportedKind(f"string requires a str, got {type(value).__name__}")
        return String(value)
    if k is ValueKind.SYMBOL:
        if not isinstance(value, str) or not _SYMBOL_RE.match(value):
            raise UnsupportedKind(f"Invalid symbol: {value!r}")
        return Symbol(value)
    if k is ValueKind.ADDRESS:
        if not strkey.is_valid(value):
            raise UnsupportedKind(f"Invalid address: {value!r}")
        return Address(value)
    if k is ValueKind.OPTION:
        return Void() if value is None else encode(value, kind.inner)
    if k is ValueKind.VEC:
        if isinstance(value, (str, bytes)) or not isinstance(value, Sequence):
            raise UnsupportedKind(f"vec requires a sequence, got {type(value).__name__}")
        return Vector(tuple(encode(item, kind.inner) for item in value))
    if k is ValueKind.TUPLE:
        if isinstance(value, (str, bytes)) or not isinstance(value, Sequence):
            raise UnsupportedKind(f"tuple requires a sequence, got {type(value).__name__}")
        if len(value) != len(kind.items):
            raise UnsupportedKind(f"{kind!r} requires {len(kind.items)} items, got {len(value)}")
        return Vector(tuple(encode(item, item_kind) for item, item_kind in zip(value, kind.items)))
    if k is ValueKind.RECORD:
        return _encode_record(value, kind)
    if k is ValueKind.ENUM:
        if isinstance(value, str):
            value = dict(kind.aliases).get(value, value)
        if value not in kind.variants:
            raise UnsupportedKind(f"Unknown variant {value!r} for {kind!r}")
        return Vector((Symbol(value),))
    raise UnsupportedKind(f"Cannot encode kind {kind!r}")


_LEDGER_CLASSES = {
    ValueKind.VOID: Void,
    ValueKind.BOOL: Bool,
    ValueKind.U32: U32,
    ValueKind.I32: I32,
    ValueKind.U64: U64,
    ValueKind.I64: I64,
    ValueKind.U128: U128,
    ValueKind.I128: I128,
    ValueKind.BYTES: Bytes,
    ValueKind.STRING: String,
    ValueKind.SYMBOL: Symbol,
    ValueKind.ADDRESS: Address,
}


def matches_kind(value: LedgerValue, kind: KindSpec) -> bool:
    """True when an already-encoded value has the wire shape of ``kind``."""
    k = kind.kind
    if k in _LEDGER_CLASSES:
        return isinstance(value, _LEDGER_CLASSES[k])
    if k is ValueKind.OPTION:
        return isinstance(value, Void) or matches_kind(value, kind.inner)
    if k is ValueKind.VEC:
        return isinstance(value, Vector) and all(matches_kind(item, kind.inner) for item in value.items)
    if k is ValueKind.TUPLE:
        return (
            isinstance(value, Vector)
            and len(value.items) == len(kind.items)
            and all(matches_kind(item, item_kind) for item, item_kind in zip(value.items, kind.items))
        )
    if k is ValueKind.RECORD:
        if not isinstance(value, Map):
            return False
        fields = {f.name: f for f in kind.fields}
        seen = set()
        for key, item in value.entries:
            if not isinstance(key, Symbol) or key.value not in fields:
                return False
            if not matches_kind(item, fields[key.value].kind):
                return False
            seen.add(key.value)
        return all(f.name in seen or f.kind.kind is ValueKind.OPTION for f in kind.fields)
    if k is ValueKind.ENUM:
        return (
            isinstance(value, Vector)
            and len(value.items) == 1
            and isinstance(value.items[0], Symbol)
            and value.items[0].value in kind.variants
        )
    return False


def _encode_record(value: Any, kind: KindSpec) -> Map:
    if not isinstance(value, Mapping):
        raise UnsupportedKind(f"record requires a mapping, got {type(value).__name__}")
    known = {f.name for f in kind.fields}
    extra = set(value) - known
    if extra:
        raise UnsupportedKind(f"Unknown record fields: {sorted(extra)}")

    entries = []
    # contract structs are stored with fields sorted by name
    for f in sorted(kind.fields, key=lambda f: f.name.encode("utf-8")):
        if f.name not in value and f.kind.kind is not ValueKind.OPTION:
            raise UnsupportedKind(f"Missing record field {f.name!r}")
        entries.append((Symbol(f.name), encode(value.get(f.name), f.kind)))
    return Map(tuple(entries))


# ==================== Normalization ====================

_TAG_ALIASES = {
    "void": "void",
    "bool": "bool",
    "b": "bool",
    "u32": "u32",
    "i32": "i32",
    "u64": "u64",
    "i64": "i64",
    "u128": "u128",
    "i128": "i128",
    "bytes": "bytes",
    "string": "string",
    "str": "string",
    "symbol": "symbol",
    "sym": "symbol",
    "vec": "vec",
    "map": "map",
    "address": "address",
}

_SWITCH_NAMES = {
    "scvbool": "bool",
    "scvvoid": "void",
    "scvu32": "u32",
    "scvi32": "i32",
    "scvu64": "u64",
    "scvi64": "i64",
    "scvu128": "u128",
    "scvi128": "i128",
    "scvbytes": "bytes",
    "scvstring": "string",
    "scvsymbol": "symbol",
    "scvvec": "vec",
    "scvmap": "map",
    "scvaddress": "address",
}

_SWITCH_CODES = {
    0: "bool",
    1: "void",
    3: "u32",
    4: "i32",
    5: "u64",
    6: "i64",
    9: "u128",
    10: "i128",
    13: "bytes",
    14: "string",
    15: "symbol",
    16: "vec",
    17: "map",
    18: "address",
}


def _unwrap(raw: Any) -> Any:
    """Strip ``{"_value": x}`` wrappers used for hyper integers."""
    while isinstance(raw, Mapping) and "_value" in raw and "_switch" not in raw and len(raw) == 1:
        raw = raw["_value"]
    return raw


def _as_int(raw: Any) -> int:
    raw = _unwrap(raw)
    if isinstance(raw, bool):
        raise DecodeError("Expected an integer, got a bool")
    if isinstance(raw, int):
        return raw
    if isinstance(raw, str):
        try:
            return int(raw.strip(), 10)
        except ValueError as exc:
            raise DecodeError(f"Expected a base-10 integer, got {raw!r}") from exc
    if isinstance(raw, Decimal) and raw == raw.to_integral_value():
        return int(raw)
    if isinstance(raw, Mapping) and {"low", "high"} <= set(raw):
        # 64-bit value split into two 32-bit halves
        low = _as_int(raw["low"]) & 0xFFFFFFFF
        high = _as_int(raw["high"])
        if raw.get("unsigned"):
            high &= 0xFFFFFFFF
        return (high << 32) | low
    raise DecodeError(f"Expected an integer, got {type(raw).__name__}")


def _as_bytes(raw: Any) -> bytes:
    raw = _unwrap(raw)
    if isinstance(raw, (bytes, bytearray)):
        return bytes(raw)
    if isinstance(raw, Mapping) and raw.get("type") == "Buffer" and "data" in raw:
        raw = raw["data"]
    if isinstance(raw, (list, tuple)):
        try:
            return bytes(raw)
        except (TypeError, ValueError) as exc:
            raise DecodeError("Byte list contains non-byte values") from exc
    if isinstance(raw, str):
        try:
            return bytes.fromhex(raw)
        except ValueError as exc:
            raise DecodeError(f"Expected hex bytes, got {raw[:32]!r}") from exc
    raise DecodeError(f"Expected bytes, got {type(raw).__name__}")


def _as_text(raw: Any) -> str:
    raw = _unwrap(raw)
    if isinstance(raw, str):
        return raw
    try:
        return _as_bytes(raw).decode("utf-8")
    except UnicodeDecodeError as exc:
        raise DecodeError("Text is not valid UTF-8") from exc


def int128_from(raw: Any, signed: bool = True) -> LedgerValue:
    """Rebuild a 128-bit integer from any tolerated shape.

    Accepts an I128/U128 value, a ``{"hi", "lo"}`` pair (optionally under
    ``_attributes``), a tagged ``{"i128": ...}`` object, or an already
    converted int or base-10 string.
    """
    if isinstance(raw, (I128, U128)):
        return raw
    raw = _unwrap(raw)
    if isinstance(raw, Mapping):
        if "_attributes" in raw:
            raw = raw["_attributes"]
        elif "_switch" in raw or (len(raw) == 1 and next(iter(raw)) in ("i128", "u128")):
            value = normalize(raw)
            if not isinstance(value, (I128, U128)):
                raise DecodeError(f"Expected a 128-bit integer, got {value.type_name}")
            return value
        if "hi" in raw and "lo" in raw:
            hi, lo = _as_int(raw["hi"]), _as_int(raw["lo"])
            if signed:
                return I128.from_parts(hi, lo)
            if not 0 <= hi <= U64_MAX or not 0 <= lo <= U64_MAX:
                raise DecodeError(f"u128 halves out of range: hi={hi} lo={lo}")
            return U128(hi, lo)
        raise DecodeError(f"Unrecognized 128-bit integer shape: {sorted(raw)}")
    number = _as_int(raw)
    try:
        return I128.from_int(number) if signed else U128.from_int(number)
    except UnsupportedKind as exc:
        raise DecodeError(str(exc)) from exc


def _map_entries(raw: Any) -> Tuple[Tuple[LedgerValue, LedgerValue], ...]:
    if raw is None:
        return ()
    entries = []
    for entry in raw:
        if isinstance(entry, Mapping):
            entry = entry.get("_attributes", entry)
            if "key" not in entry or "val" not in entry:
                raise DecodeError(f"Map entry without key/val: {sorted(entry)}")
            entries.append((normalize(entry["key"]), normalize(entry["val"])))
        elif isinstance(entry, (list, tuple)) and len(entry) == 2:
            entries.append((normalize(entry[0]), normalize(entry[1])))
        else:
            raise DecodeError(f"Unrecognized map entry: {entry!r}")
    return tuple(entries)


def _address_from(raw: Any) -> Address:
    raw = _unwrap(raw)
    if isinstance(raw, Address):
        return raw
    if isinstance(raw, str):
        return Address(raw)
    if isinstance(raw, Mapping) and "_switch" in raw:
        arm = _switch_name(raw["_switch"])
        body = raw.get("_value")
        if arm in ("scaddresstypeaccount", "0", "account"):
            if isinstance(body, Mapping) and "_value" in body:
                body = body["_value"]
            return Address(strkey.encode_account(_as_bytes(body)))
        if arm in ("scaddresstypecontract", "1", "contract"):
            return Address(strkey.encode_contract(_as_bytes(body)))
        raise DecodeError(f"Unsupported address arm {arm!r}")
    raise DecodeError(f"Unrecognized address shape: {type(raw).__name__}")


def _build(tag: str, payload: Any) -> LedgerValue:
    if tag == "void":
        return Void()
    if tag == "bool":
        payload = _unwrap(payload)
        if not isinstance(payload, bool):
            raise DecodeError(f"Expected a bool, got {payload!r}")
        return Bool(payload)
    if tag in ("u32", "i32", "u64", "i64"):
        kind = ValueKind(tag)
        low, high, cls = _INT_RANGES[kind]
        number = _as_int(payload)
        if not low <= number <= high:
            raise DecodeError(f"{tag} out of range: {number}")
        return cls(number)
    if tag == "i128":
        return int128_from(payload, signed=True)
    if tag == "u128":
        return int128_from(payload, signed=False)
    if tag == "bytes":
        return Bytes(_as_bytes(payload))
    if tag == "string":
        return String(_as_text(payload))
    if tag == "symbol":
        return Symbol(_as_text(payload))
    if tag == "vec":
        payload = _unwrap(payload)
        return Vector(tuple(normalize(item) for item in (payload or ())))
    if tag == "map":
        return Map(_map_entries(_unwrap(payload)))
    if tag == "address":
        return _address_from(payload)
    raise DecodeError(f"Unsupported value tag {tag!r}")


def _switch_name(switch: Any) -> str:
    if isinstance(switch, Mapping):
        switch = switch.get("name", switch.get("value"))
    return str(switch).lower()


def _from_nested(raw: Mapping) -> LedgerValue:
    switch = raw.get("_switch")
    if isinstance(switch, Mapping) and "name" not in switch and "value" in switch:
        switch = switch["value"]
    if isinstance(switch, int) and not isinstance(switch, bool):
        tag = _SWITCH_CODES.get(switch)
    else:
        tag = _SWITCH_NAMES.get(_switch_name(switch))
    if tag is None:
        arm = raw.get("_arm")
        tag = _TAG_ALIASES.get(str(arm).lower()) if arm is not None else None
    if tag is None:
        raise DecodeError(f"Unsupported nested value switch {switch!r}")
    return _build(tag, raw.get("_value"))


def _tagged_key(raw: Mapping, kind: Optional[KindSpec]) -> Optional[str]:
    if len(raw) != 1:
        return None
    key = next(iter(raw))
    if not isinstance(key, str):
        return None
    if kind is not None and kind.kind is ValueKind.RECORD and key in {f.name for f in kind.fields}:
        return None
    return _TAG_ALIASES.get(key.lower())


def is_self_describing(raw: Any) -> bool:
    if isinstance(raw, LedgerValue):
        return True
    if isinstance(raw, Mapping):
        return "_switch" in raw or _tagged_key(raw, None) is not None
    return False


def normalize(raw: Any, kind: Optional[KindSpec] = None) -> LedgerValue:
    """Reduce any tolerated wire shape to a LedgerValue.

    Self-describing shapes (LedgerValue, tagged object, nested ``_switch``
    object) need no kind. Bare values are interpreted by ``kind``; a bare
    value without a kind is rejected, except ``None`` which is Void.

    Raises:
        DecodeError: shape cannot be reconciled with any tolerated variant
    """
    if isinstance(raw, LedgerValue):
        return raw
    if isinstance(raw, Mapping):
        if "_switch" in raw:
            return _from_nested(raw)
        tag = _tagged_key(raw, kind)
        if tag is not None:
            return _build(tag, raw[next(iter(raw))])
    if raw is None:
        return Void()
    if kind is None:
        raise DecodeError(f"Cannot interpret bare {type(raw).__name__} without a kind")
    return _from_bare(raw, kind)


def _from_bare(raw: Any, kind: KindSpec) -> LedgerValue:
    k = kind.kind
    if k is ValueKind.VOID:
        raise DecodeError(f"Expected no value, got {raw!r}")
    if k is ValueKind.OPTION:
        return normalize(raw, kind.inner)
    if k in (ValueKind.BOOL, ValueKind.U32, ValueKind.I32, ValueKind.U64, ValueKind.I64):
        return _build(k.value, raw)
    if k is ValueKind.I128:
        return int128_from(raw, signed=True)
    if k is ValueKind.U128:
        return int128_from(raw, signed=False)
    if k is ValueKind.BYTES:
        return Bytes(_as_bytes(raw))
    if k is ValueKind.STRING:
        return String(_as_text(raw))
    if k is ValueKind.SYMBOL:
        return Symbol(_as_text(raw))
    if k is ValueKind.ADDRESS:
        return _address_from(raw)
    if k is ValueKind.VEC:
        if not isinstance(raw, (list, tuple)):
            raise DecodeError(f"Expected a list for {kind!r}, got {type(raw).__name__}")
        return Vector(tuple(normalize(item, kind.inner) for item in raw))
    if k is ValueKind.TUPLE:
        if not isinstance(raw, (list, tuple)) or len(raw) != len(kind.items):
            raise DecodeError(f"Expected {len(kind.items)} items for {kind!r}")
        return Vector(tuple(normalize(item, item_kind) for item, item_kind in zip(raw, kind.items)))
    if k is ValueKind.RECORD:
        if not isinstance(raw, Mapping):
            raise DecodeError(f"Expected a mapping for {kind!r}, got {type(raw).__name__}")
        kinds = {f.name: f.kind for f in kind.fields}
        return Map(tuple((Symbol(str(key)), normalize(val, kinds.get(key))) for key, val in raw.items()))
    if k is ValueKind.ENUM:
        return Vector((Symbol(decode_enum_variant(raw, kind.variants, dict(kind.aliases), kind.ordinals)),))
    raise DecodeError(f"Unsupported kind {kind!r}")


# ==================== Decoding ====================


def decode_i128(raw: Any) -> str:
    """Decode a 128-bit amount to its base-10 string."""
    value = raw if isinstance(raw, (I128, U128)) else int128_from(raw)
    return str(value.value)


def decode_enum_variant(
    raw: Any,
    variants: Sequence[str],
    aliases: Optional[Mapping] = None,
    ordinals: Optional[Sequence[str]] = None,
) -> str:
    """Return the variant name of an enum value in any tolerated encoding.

    Integer codes index ``ordinals`` (``variants`` when not given); names
    are matched exactly, then through ``aliases``, then case-insensitively.
    """
    name: Any = raw
    if is_self_describing(raw):
        value = normalize(raw)
        if isinstance(value, Vector) and value.items:
            value = value.items[0]
        if isinstance(value, (Symbol, String)):
            name = value.value
        elif isinstance(value, (U32, I32, U64, I64)):
            name = value.value
        else:
            raise DecodeError(f"Cannot read an enum variant from {value.type_name}")
    elif isinstance(raw, (list, tuple)):
        if not raw:
            raise DecodeError("Empty list cannot encode an enum variant")
        return decode_enum_variant(raw[0], variants, aliases, ordinals)
    elif isinstance(raw, Mapping):
        for key in ("variant", "tag", "name"):
            if key in raw:
                return decode_enum_variant(raw[key], variants, aliases, ordinals)
        raise DecodeError(f"Unrecognized enum shape: {sorted(raw)}")

    if isinstance(name, bool):
        raise DecodeError("A bool is not an enum variant")
    if isinstance(name, int):
        codes = ordinals or variants
        if not 0 <= name < len(codes):
            raise DecodeError(f"Enum ordinal {name} out of range")
        return codes[name]
    if isinstance(name, str):
        if name in variants:
            return name
        if aliases and name in aliases:
            return aliases[name]
        folded = {v.lower(): v for v in variants}
        folded.update({k.lower(): v for k, v in (aliases or {}).items()})
        if name.lower() in folded:
            return folded[name.lower()]
        raise DecodeError(f"Unknown variant {name!r}; expected one of {list(variants)}")
    raise DecodeError(f"Unrecognized enum value {type(name).__name__}")


def _int_native(value: LedgerValue, kind: KindSpec) -> int:
    if not isinstance(value, (U32, I32, U64, I64)):
        raise DecodeError(f"Expected {kind!r}, got {value.type_name}")
    low, high, _ = _INT_RANGES[kind.kind]
    if not low <= value.value <= high:
        raise DecodeError(f"{kind!r} out of range: {value.value}")
    return value.value


def _native(value: LedgerValue, kind: KindSpec) -> Any:
    k = kind.kind
    if k is ValueKind.OPTION:
        return None if isinstance(value, Void) else _native(value, kind.inner)
    if k is ValueKind.VOID:
        if not isinstance(value, Void):
            raise DecodeError(f"Expected void, got {value.type_name}")
        return None
    if k is ValueKind.BOOL:
        if not isinstance(value, Bool):
            raise DecodeError(f"Expected bool, got {value.type_name}")
        return value.value
    if k in _INT_RANGES:
        return _int_native(value, kind)
    if k in (ValueKind.I128, ValueKind.U128):
        if isinstance(value, (I128, U128)):
            return str(value.value)
        if isinstance(value, (U32, I32, U64, I64)):
            return str(value.value)
        raise DecodeError(f"Expected {kind!r}, got {value.type_name}")
    if k is ValueKind.BYTES:
        if not isinstance(value, Bytes):
            raise DecodeError(f"Expected bytes, got {value.type_name}")
        return value.value
    if k in (ValueKind.STRING, ValueKind.SYMBOL):
        if not isinstance(value, (String, Symbol)):
            raise DecodeError(f"Expected {kind!r}, got {value.type_name}")
        return value.value
    if k is ValueKind.ADDRESS:
        if isinstance(value, Address) or (isinstance(value, String) and strkey.is_valid(value.value)):
            return value.value
        raise DecodeError(f"Expected address, got {value.type_name}")
    if k is ValueKind.VEC:
        if not isinstance(value, Vector):
            raise DecodeError(f"Expected vec, got {value.type_name}")
        return [_native(item, kind.inner) for item in value.items]
    if k is ValueKind.TUPLE:
        if not isinstance(value, Vector) or len(value.items) != len(kind.items):
            raise DecodeError(f"Expected {kind!r}, got {value.type_name}")
        return tuple(_native(item, item_kind) for item, item_kind in zip(value.items, kind.items))
    if k is ValueKind.RECORD:
        return decode_record(value, kind)
    if k is ValueKind.ENUM:
        return decode_enum_variant(value, kind.variants, dict(kind.aliases), kind.ordinals)
    raise DecodeError(f"Unsupported kind {kind!r}")


def _generic_native(value: LedgerValue) -> Any:
    if isinstance(value, Void):
        return None
    if isinstance(value, (Bool, U32, I32, U64, I64)):
        return value.value
    if isinstance(value, (I128, U128)):
        return str(value.value)
    if isinstance(value, (Bytes, String, Symbol, Address)):
        return value.value
    if isinstance(value, Vector):
        return [_generic_native(item) for item in value.items]
    if isinstance(value, Map):
        result: Dict[str, Any] = {}
        for key, val in value.entries:
            if not isinstance(key, Symbol):
                raise DecodeError(f"Map key must be a symbol, got {key.type_name}")
            result[key.value] = _generic_native(val)
        return result
    raise DecodeError(f"{value.type_name} has no native form")


def decode(raw: Any, kind: Optional[KindSpec] = None) -> Any:
    """Decode any tolerated wire shape to a native value.

    Without a kind the result follows the value's own tag: Void is None,
    128-bit integers are base-10 strings, maps become dicts (symbol keys).
    """
    value = normalize(raw, kind)
    if kind is None:
        return _generic_native(value)
    return _native(value, kind)


def _record_items(raw: Any, kind: KindSpec) -> Tuple[Union[Dict[Any, Any], List[Any]], bool]:
    """Split a record into its items and whether they are bare natives."""
    if isinstance(raw, Mapping) and "_switch" not in raw and _tagged_key(raw, kind) is None:
        return dict(raw), True
    if isinstance(raw, (list, tuple)):
        return list(raw), True
    value = normalize(raw)
    if isinstance(value, Void):
        raise AbsentEntity("Record is absent")
    if isinstance(value, Map):
        items: Dict[Any, Any] = {}
        for key, val in value.entries:
            if not isinstance(key, Symbol):
                raise DecodeError(f"Record key must be a symbol, got {key.type_name}")
            items[key.value] = val
        return items, False
    if isinstance(value, Vector):
        return list(value.items), False
    raise DecodeError(f"Expected a record, got {value.type_name}")


def decode_record(raw: Any, kind: KindSpec) -> Dict[str, Any]:
    """Decode a record (map or positional tuple) using its field schema.

    Unknown keys are preserved, decoded by their own tag. A missing required
    field raises AbsentEntity: that is the existence test for ledger records.
    """
    items, bare = _record_items(raw, kind)
    if not items:
        raise AbsentEntity("Record is empty")

    if isinstance(items, list):
        positional = items
        items = {}
        for index, item in enumerate(positional):
            name = kind.fields[index].name if index < len(kind.fields) else str(index)
            items[name] = item

    result: Dict[str, Any] = {}
    for f in kind.fields:
        present = f.name in items and items[f.name] is not None
        if not present:
            if f.required:
                raise AbsentEntity(f"Record is missing required field {f.name!r}")
            result[f.name] = None
            continue
        result[f.name] = decode(items[f.name], f.kind)

    known = {f.name for f in kind.fields}
    for key, val in items.items():
        if key in known:
            continue
        if bare and not is_self_describing(val):
            result[key] = val
        else:
            result[key] = decode(val)
    return result


def encode_all(values: Iterable[Any], kinds: Iterable[KindSpec]) -> List[LedgerValue]:
    return [encode(value, kind) for value, kind in zip(values, kinds)]

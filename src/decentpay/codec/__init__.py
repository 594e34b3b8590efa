"""
Value codec: native values <-> LedgerValue <-> XDR.
"""

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
    symbol_vec,
)
from decentpay.codec.value_codec import (
    ADDRESS,
    BOOL,
    BYTES,
    I128_KIND,
    STRING,
    SYMBOL,
    U32_KIND,
    U64_KIND,
    FieldSpec,
    KindSpec,
    ValueKind,
    decode,
    decode_enum_variant,
    decode_i128,
    decode_record,
    encode,
    enum_of,
    matches_kind,
    normalize,
    option_of,
    record_of,
    tuple_of,
    vec_of,
)
from decentpay.codec.xdr import from_base64, from_xdr, to_base64, to_xdr

__all__ = [
    "ADDRESS",
    "BOOL",
    "BYTES",
    "I128_KIND",
    "STRING",
    "SYMBOL",
    "U32_KIND",
    "U64_KIND",
    "Address",
    "Bool",
    "Bytes",
    "ContractExecutable",
    "ContractInstance",
    "FieldSpec",
    "I32",
    "I64",
    "I128",
    "KindSpec",
    "LedgerKeyContractInstance",
    "LedgerValue",
    "Map",
    "String",
    "Symbol",
    "U32",
    "U64",
    "U128",
    "ValueKind",
    "Vector",
    "Void",
    "decode",
    "decode_enum_variant",
    "decode_i128",
    "decode_record",
    "encode",
    "enum_of",
    "from_base64",
    "from_xdr",
    "matches_kind",
    "normalize",
    "option_of",
    "record_of",
    "symbol_vec",
    "to_base64",
    "to_xdr",
    "tuple_of",
    "vec_of",
]

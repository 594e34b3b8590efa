"""
Tests for the SCVal XDR form of LedgerValue.
"""

import pytest

from decentpay.codec import strkey
from decentpay.codec.ledger_value import (
    Address,
    Bool,
    Bytes,
    ContractExecutable,
    ContractInstance,
    I128,
    LedgerKeyContractInstance,
    Map,
    String,
    Symbol,
    U32,
    U64,
    Vector,
    Void,
    symbol_vec,
)
from decentpay.codec.xdr import (
    AccountEntry,
    ContractDataEntry,
    b64decode,
    from_base64,
    from_xdr,
    read_ledger_entry_data,
    to_base64,
    to_xdr,
    write_account_entry,
    write_contract_data_entry,
)
from decentpay.core.ledger_exceptions import DecodeError, UnsupportedKind


def words(*values: int) -> bytes:
    return b"".join(v.to_bytes(4, "big") for v in values)


class TestScValLayout:
    def test_void(self):
        assert to_xdr(Void()) == words(1)

    def test_bool(self):
        assert to_xdr(Bool(True)) == words(0, 1)
        assert to_xdr(Bool(False)) == words(0, 0)

    def test_u32(self):
        assert to_xdr(U32(7)) == words(3, 7)

    def test_i128_halves(self):
        value = I128.from_int(10_000_000_000)
        expected = words(10) + (0).to_bytes(8, "big") + (10_000_000_000).to_bytes(8, "big")
        assert to_xdr(value) == expected

    def test_negative_i128(self):
        value = I128.from_int(-1)
        assert to_xdr(value) == words(10) + b"\xff" * 16

    def test_symbol_is_padded(self):
        assert to_xdr(Symbol("abc")) == words(15, 3) + b"abc\x00"

    def test_string_is_padded(self):
        assert to_xdr(String("hello")) == words(14, 5) + b"hello\x00\x00\x00"

    def test_account_address(self):
        key = bytes([9]) * 32
        value = Address(strkey.encode_account(key))
        assert to_xdr(value) == words(18, 0, 0) + key

    def test_contract_address(self):
        contract_hash = bytes([8]) * 32
        value = Address(strkey.encode_contract(contract_hash))
        assert to_xdr(value) == words(18, 1) + contract_hash

    def test_vec_carries_presence_flag(self):
        assert to_xdr(Vector((U32(1),))) == words(16, 1, 1) + words(3, 1)

    def test_map(self):
        value = Map(((Symbol("a"), U32(2)),))
        assert to_xdr(value) == words(17, 1, 1) + words(15, 1) + b"a\x00\x00\x00" + words(3, 2)


class TestScValRoundTrip:
    @pytest.mark.parametrize(
        "value",
        [
            Void(),
            Bool(True),
            U32(4_294_967_295),
            U64(2**64 - 1),
            I128.from_int(2**127 - 1),
            I128.from_int(-(2**127)),
            Bytes(b"\x00\x01\x02"),
            String("Milestone 1: wireframes"),
            Symbol("Released"),
            symbol_vec("Escrow", U32(3)),
            Map(((Symbol("depositor"), Address(strkey.encode_account(bytes(32)))),)),
            ContractInstance(ContractExecutable(wasm_hash=bytes([1]) * 32), Map(((symbol_vec("Owner"), Bool(True)),))),
            ContractInstance(ContractExecutable()),
            LedgerKeyContractInstance(),
        ],
    )
    def test_round_trip(self, value):
        assert from_xdr(to_xdr(value)) == value
        assert from_base64(to_base64(value)) == value

    def test_i128_reconstruction_matches_arithmetic(self):
        for hi, lo in [(0, 10_000_000_000), (1, 0), (-1, 2**64 - 1), (12345, 67890), (2**62, 2**63)]:
            decoded = from_xdr(to_xdr(I128(hi, lo)))
            assert decoded.value == hi * 2**64 + lo


class TestDecodeErrors:
    def test_truncated_input(self):
        with pytest.raises(DecodeError):
            from_xdr(words(3))

    def test_trailing_bytes(self):
        with pytest.raises(DecodeError):
            from_xdr(words(1, 0))

    def test_unknown_type(self):
        with pytest.raises(DecodeError):
            from_xdr(words(99))

    def test_nonzero_padding(self):
        with pytest.raises(DecodeError):
            from_xdr(words(15, 1) + b"a\x00\x00\x01")

    def test_invalid_base64(self):
        with pytest.raises(DecodeError):
            b64decode("not base64!!")

    def test_unserializable_value(self):
        with pytest.raises(UnsupportedKind):
            to_xdr(object())


class TestLedgerEntries:
    def test_account_entry(self):
        account = strkey.encode_account(bytes([1]) * 32)
        entry = read_ledger_entry_data(write_account_entry(account, 500, 77))

        assert entry == AccountEntry(account, 500, 77)

    def test_contract_data_entry(self):
        contract = strkey.encode_contract(bytes([2]) * 32)
        storage = Map(((symbol_vec("NextEscrowId"), U32(4)),))
        instance = ContractInstance(ContractExecutable(wasm_hash=bytes(32)), storage)

        entry = read_ledger_entry_data(write_contract_data_entry(contract, LedgerKeyContractInstance(), instance))

        assert isinstance(entry, ContractDataEntry)
        assert entry.contract == contract
        assert entry.value.storage.get(symbol_vec("NextEscrowId")) == U32(4)

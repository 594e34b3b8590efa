"""
Tests for native <-> LedgerValue conversion.
"""

from decimal import Decimal

import pytest

from decentpay.codec.ledger_value import (
    Address,
    Bool,
    I128,
    Map,
    String,
    Symbol,
    U32,
    U64,
    Vector,
    Void,
)
from decentpay.codec.value_codec import (
    ADDRESS,
    BOOL,
    I128_KIND,
    STRING,
    SYMBOL,
    U32_KIND,
    U64_KIND,
    decode,
    decode_enum_variant,
    decode_i128,
    decode_record,
    encode,
    enum_of,
    normalize,
    option_of,
    record_of,
    tuple_of,
    vec_of,
)
from decentpay.core.ledger_exceptions import AbsentEntity, DecodeError, UnsupportedKind
from decentpay_tests.fakes import DEPOSITOR, FREELANCER

STATUS_KIND = enum_of("Pending", "InProgress", "Released", aliases={"Active": "InProgress"})

PERSON_KIND = record_of(
    ("depositor", ADDRESS),
    ("total_amount", I128_KIND, False),
    ("title", STRING, False),
)


class TestEncode:
    def test_encoding_follows_kind_not_type(self):
        assert encode(5, U32_KIND) == U32(5)
        assert encode(5, I128_KIND) == I128(0, 5)
        assert encode(5, U64_KIND) == U64(5)

    def test_i128_from_string_and_decimal(self):
        assert encode("10000000000", I128_KIND) == I128.from_int(10_000_000_000)
        assert encode(Decimal("42"), I128_KIND) == I128.from_int(42)

    @pytest.mark.parametrize(
        "value,kind",
        [
            (-1, U32_KIND),
            (2**32, U32_KIND),
            (True, U32_KIND),
            ("7", U32_KIND),
            (2**127, I128_KIND),
            ("1.5", I128_KIND),
            (1, BOOL),
            (5, STRING),
            ("has space", SYMBOL),
            ("GNOTANADDRESS", ADDRESS),
            ("abc", vec_of(U32_KIND)),
            ([1], tuple_of(U32_KIND, STRING)),
            ("Unknown", STATUS_KIND),
        ],
    )
    def test_rejects_mismatch(self, value, kind):
        with pytest.raises(UnsupportedKind):
            encode(value, kind)

    def test_option(self):
        assert encode(None, option_of(ADDRESS)) == Void()
        assert encode(DEPOSITOR, option_of(ADDRESS)) == Address(DEPOSITOR)

    def test_milestone_tuples(self):
        kind = vec_of(tuple_of(I128_KIND, STRING))
        value = encode([(6_000_000_000, "Design"), (4_000_000_000, "Build")], kind)

        assert value == Vector(
            (
                Vector((I128.from_int(6_000_000_000), String("Design"))),
                Vector((I128.from_int(4_000_000_000), String("Build"))),
            )
        )

    def test_enum_is_symbol_vec(self):
        assert encode("Pending", STATUS_KIND) == Vector((Symbol("Pending"),))
        assert encode("Active", STATUS_KIND) == Vector((Symbol("InProgress"),))

    def test_record_fields_sorted_by_name(self):
        value = encode({"title": "x", "depositor": DEPOSITOR, "total_amount": 1}, PERSON_KIND)

        assert [key.value for key in value.keys()] == ["depositor", "title", "total_amount"]

    def test_record_rejects_unknown_and_missing(self):
        with pytest.raises(UnsupportedKind):
            encode({"depositor": DEPOSITOR, "surprise": 1}, PERSON_KIND)
        with pytest.raises(UnsupportedKind):
            encode({"title": "x"}, PERSON_KIND)

    def test_matching_ledger_values_pass_through(self):
        assert encode(U32(3), U32_KIND) == U32(3)
        assert encode(Void(), option_of(ADDRESS)) == Void()
        assert encode(Vector((Symbol("Released"),)), STATUS_KIND) == Vector((Symbol("Released"),))
        assert encode([I128(0, 1), 2], vec_of(I128_KIND)) == Vector((I128(0, 1), I128(0, 2)))

    @pytest.mark.parametrize(
        "value,kind",
        [
            (U32(3), I128_KIND),
            (I128(0, 3), U32_KIND),
            (String("x"), SYMBOL),
            (Address(DEPOSITOR), option_of(STRING)),
            (Vector((U32(1),)), vec_of(I128_KIND)),
            (Vector((U32(1),)), tuple_of(U32_KIND, STRING)),
            (Vector((Symbol("Cancelled"),)), STATUS_KIND),
            (Map(((Symbol("title"), String("x")),)), PERSON_KIND),
            (Map(((Symbol("depositor"), Address(DEPOSITOR)), (Symbol("total_amount"), U32(1)))), PERSON_KIND),
        ],
    )
    def test_mismatched_ledger_values_rejected(self, value, kind):
        with pytest.raises(UnsupportedKind):
            encode(value, kind)

    def test_matching_record_passes(self):
        value = Map(((Symbol("depositor"), Address(DEPOSITOR)), (Symbol("total_amount"), I128(0, 1))))

        assert encode(value, PERSON_KIND) is value


class TestI128Shapes:
    TAGGED = {"i128": {"hi": 0, "lo": 10000000000}}
    BARE = {"hi": "0", "lo": "10000000000"}
    NESTED = {
        "_switch": {"name": "scvI128", "value": 10},
        "_value": {"_attributes": {"hi": {"_value": "0"}, "lo": {"_value": "10000000000"}}},
    }

    @pytest.mark.parametrize("raw", [TAGGED, BARE, NESTED, I128(0, 10_000_000_000), 10_000_000_000])
    def test_shapes_decode_identically(self, raw):
        assert decode(raw, I128_KIND) == "10000000000"
        assert decode_i128(raw) == "10000000000"

    def test_self_describing_shapes_need_no_kind(self):
        assert decode(self.TAGGED) == "10000000000"
        assert decode(self.NESTED) == "10000000000"

    def test_negative(self):
        assert decode({"hi": -1, "lo": str(2**64 - 1)}, I128_KIND) == "-1"

    def test_large_value_uses_both_halves(self):
        hi, lo = 3, 5
        assert decode_i128({"hi": hi, "lo": lo}) == str(hi * 2**64 + lo)

    def test_split_64_bit_halves(self):
        raw = {"hi": 0, "lo": {"low": 1, "high": 1, "unsigned": True}}
        assert decode_i128(raw) == str(2**32 + 1)

    def test_out_of_range_half(self):
        with pytest.raises(DecodeError):
            decode({"hi": 0, "lo": -1}, I128_KIND)

    def test_unrecognized_shape(self):
        with pytest.raises(DecodeError):
            decode({"high": 0, "low": 1, "extra": 2}, I128_KIND)


class TestNormalize:
    def test_nested_u32(self):
        assert normalize({"_switch": {"name": "scvU32"}, "_value": 5}) == U32(5)

    def test_nested_by_code(self):
        assert normalize({"_switch": {"value": 0}, "_value": True}) == Bool(True)

    def test_tagged_vec_and_map(self):
        raw = {"map": [{"key": {"sym": "a"}, "val": {"u32": 1}}]}
        assert normalize(raw) == Map(((Symbol("a"), U32(1)),))
        assert normalize({"vec": [{"u32": 1}]}) == Vector((U32(1),))

    def test_none_is_void(self):
        assert normalize(None) == Void()

    def test_bare_value_needs_kind(self):
        with pytest.raises(DecodeError):
            normalize(5)

    def test_unknown_switch(self):
        with pytest.raises(DecodeError):
            normalize({"_switch": {"name": "scvTimepoint"}, "_value": 1})


class TestEnumVariants:
    VARIANTS = ("Pending", "InProgress", "Released")

    @pytest.mark.parametrize(
        "raw",
        [
            Vector((Symbol("InProgress"),)),
            {"vec": [{"sym": "InProgress"}]},
            "InProgress",
            "inprogress",
            ["InProgress"],
            {"variant": "InProgress"},
            {"tag": "InProgress"},
            1,
            Symbol("InProgress"),
            U32(1),
        ],
    )
    def test_shapes(self, raw):
        assert decode_enum_variant(raw, self.VARIANTS) == "InProgress"

    def test_alias(self):
        assert decode("Active", STATUS_KIND) == "InProgress"

    def test_separate_integer_codes(self):
        kind = enum_of("Pending", "Refunded", "Disputed", ordinals=("Pending", "Disputed", "Refunded"))

        assert decode(1, kind) == "Disputed"
        assert decode(U32(2), kind) == "Refunded"
        assert decode("Refunded", kind) == "Refunded"

    def test_integer_codes_default_to_declaration_order(self):
        assert decode(2, STATUS_KIND) == "Released"

    def test_ordinals_must_name_variants(self):
        with pytest.raises(UnsupportedKind):
            enum_of("Pending", "Active", ordinals=("Pending", "Done"))

    @pytest.mark.parametrize("raw", [5, -1, True, [], "Cancelled", {"other": 1}, Bool(True)])
    def test_unknown(self, raw):
        with pytest.raises(DecodeError):
            decode_enum_variant(raw, self.VARIANTS)


class TestRecords:
    def test_map_record(self):
        raw = encode({"depositor": DEPOSITOR, "total_amount": 7, "title": "t"}, PERSON_KIND)

        assert decode_record(raw, PERSON_KIND) == {
            "depositor": DEPOSITOR,
            "total_amount": "7",
            "title": "t",
        }

    def test_missing_required_field_means_absent(self):
        raw = Map(((Symbol("title"), String("t")),))
        with pytest.raises(AbsentEntity):
            decode_record(raw, PERSON_KIND)

    def test_void_and_empty_are_absent(self):
        with pytest.raises(AbsentEntity):
            decode_record(Void(), PERSON_KIND)
        with pytest.raises(AbsentEntity):
            decode_record(Map(), PERSON_KIND)

    def test_optional_fields_default_to_none(self):
        assert decode_record({"depositor": DEPOSITOR}, PERSON_KIND) == {
            "depositor": DEPOSITOR,
            "total_amount": None,
            "title": None,
        }

    def test_unknown_keys_preserved(self):
        raw = Map(
            (
                (Symbol("depositor"), Address(DEPOSITOR)),
                (Symbol("referrer"), Address(FREELANCER)),
                (Symbol("bonus"), I128.from_int(5)),
            )
        )

        record = decode_record(raw, PERSON_KIND)

        assert record["referrer"] == FREELANCER
        assert record["bonus"] == "5"

    def test_bare_unknown_keys_kept_as_is(self):
        record = decode_record({"depositor": DEPOSITOR, "note": "hi"}, PERSON_KIND)
        assert record["note"] == "hi"

    def test_positional_record(self):
        record = decode_record([DEPOSITOR, "9", "t"], PERSON_KIND)
        assert record == {"depositor": DEPOSITOR, "total_amount": "9", "title": "t"}

    def test_non_symbol_key(self):
        raw = Map(((U32(1), Address(DEPOSITOR)),))
        with pytest.raises(DecodeError):
            decode_record(raw, PERSON_KIND)


class TestDecode:
    def test_generic_map(self):
        raw = Map(((Symbol("a"), U32(1)), (Symbol("b"), I128.from_int(2))))
        assert decode(raw) == {"a": 1, "b": "2"}

    def test_generic_map_rejects_non_symbol_keys(self):
        with pytest.raises(DecodeError):
            decode(Map(((String("a"), U32(1)),)))

    def test_option(self):
        assert decode(Void(), option_of(ADDRESS)) is None
        assert decode(Address(DEPOSITOR), option_of(ADDRESS)) == DEPOSITOR

    def test_tuple(self):
        assert decode(Vector((U32(12), U32(3))), tuple_of(U32_KIND, U32_KIND)) == (12, 3)

    def test_kind_mismatch(self):
        with pytest.raises(DecodeError):
            decode(String("x"), U32_KIND)
        with pytest.raises(DecodeError):
            decode(U32(1), BOOL)

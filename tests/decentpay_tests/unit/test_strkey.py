"""
Tests for strkey address encoding.
"""

import pytest

from decentpay.codec import strkey
from decentpay.core.config import DEFAULT_CONTRACT_ID, READ_SOURCE_ACCOUNT
from decentpay.core.ledger_exceptions import UnsupportedKind


class TestStrkey:
    def test_zero_account_matches_known_address(self):
        assert strkey.encode_account(bytes(32)) == READ_SOURCE_ACCOUNT

    def test_account_round_trip(self):
        key = bytes(range(32))
        address = strkey.encode_account(key)

        assert address.startswith("G")
        assert len(address) == 56
        assert strkey.decode_account(address) == key

    def test_contract_round_trip(self):
        contract_hash = bytes([0xAB]) * 32
        address = strkey.encode_contract(contract_hash)

        assert address.startswith("C")
        assert strkey.decode_contract(address) == contract_hash

    def test_deployed_contract_id_is_valid(self):
        assert strkey.is_valid(DEFAULT_CONTRACT_ID)
        assert len(strkey.decode_contract(DEFAULT_CONTRACT_ID)) == 32

    def test_checksum_mismatch_rejected(self):
        address = strkey.encode_account(bytes([5]) * 32)
        tampered = address[:-1] + ("A" if address[-1] != "A" else "B")

        assert not strkey.is_valid(tampered)
        with pytest.raises(UnsupportedKind):
            strkey.decode_account(tampered)

    def test_version_mismatch_rejected(self):
        account = strkey.encode_account(bytes([5]) * 32)
        with pytest.raises(UnsupportedKind):
            strkey.decode_contract(account)

    @pytest.mark.parametrize("value", ["", "G", "not-an-address", None, 42])
    def test_garbage_is_invalid(self, value):
        assert not strkey.is_valid(value)

    def test_payload_length_enforced(self):
        with pytest.raises(UnsupportedKind):
            strkey.encode_account(b"\x00" * 31)

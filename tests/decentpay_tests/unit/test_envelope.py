"""
Tests for transaction envelope assembly.
"""

import hashlib
from dataclasses import replace

import pytest

from decentpay.codec.ledger_value import Bytes, I128, String, U32
from decentpay.core.ledger_exceptions import DecodeError
from decentpay.rpc.envelope import (
    CREDENTIALS_ADDRESS,
    CREDENTIALS_SOURCE_ACCOUNT,
    AuthObligation,
    DecoratedSignature,
    Invocation,
    TransactionEnvelope,
    build_invocation,
    soroban_resource_fee,
)
from decentpay_tests.fakes import CONTRACT_ID, DEPOSITOR, FREELANCER, auth_entry_xdr, soroban_data

PASSPHRASE = "Test SDF Network ; September 2015"


def _transaction(**overrides):
    params = dict(
        source=DEPOSITOR,
        sequence=1_001,
        invocation=Invocation(CONTRACT_ID, "approve_milestone", (U32(3), U32(0), String("ok"))),
        fee=100,
        timeout=30,
        now=1_700_000_000,
    )
    params.update(overrides)
    return build_invocation(**params)


class TestBuildInvocation:
    def test_time_bounds(self):
        tx = _transaction()
        assert tx.time_bounds == (0, 1_700_000_030)

    def test_unprepared(self):
        tx = _transaction()
        assert tx.auth == ()
        assert tx.soroban_data is None


class TestEnvelopeRoundTrip:
    def test_unsigned(self):
        tx = _transaction()
        envelope = TransactionEnvelope.from_base64(TransactionEnvelope(tx).to_base64())

        assert envelope.transaction == tx
        assert envelope.signatures == ()

    def test_prepared_and_signed(self):
        obligation = AuthObligation.from_xdr(auth_entry_xdr(FREELANCER, "approve_milestone"))
        tx = _transaction(
            invocation=Invocation(CONTRACT_ID, "create_escrow", (I128.from_int(-5), Bytes(b"abc"))),
        ).with_auth((obligation,))
        tx = replace(tx, soroban_data=soroban_data(123), fee=52_100)
        signature = DecoratedSignature(hint=b"\x01\x02\x03\x04", signature=b"\x07" * 64)

        decoded = TransactionEnvelope.from_xdr(TransactionEnvelope(tx, (signature,)).to_xdr())

        assert decoded.transaction == tx
        assert decoded.signatures == (signature,)
        assert soroban_resource_fee(decoded.transaction.soroban_data) == 123

    def test_wrong_envelope_type(self):
        data = bytearray(TransactionEnvelope(_transaction()).to_xdr())
        data[3] = 5
        with pytest.raises(DecodeError):
            TransactionEnvelope.from_xdr(bytes(data))


class TestHash:
    def test_hash_covers_network_and_transaction(self):
        tx = _transaction()
        network_id = hashlib.sha256(PASSPHRASE.encode()).digest()
        expected = hashlib.sha256(network_id + b"\x00\x00\x00\x02" + tx.to_xdr()).hexdigest()

        assert tx.hash_hex(PASSPHRASE) == expected

    def test_hash_depends_on_passphrase_and_sequence(self):
        tx = _transaction()
        assert tx.hash_hex(PASSPHRASE) != tx.hash_hex("Public Global Stellar Network ; September 2015")
        assert tx.hash_hex(PASSPHRASE) != _transaction(sequence=1_002).hash_hex(PASSPHRASE)


class TestAuthObligation:
    def test_address_credentials(self):
        obligation = AuthObligation.from_xdr(auth_entry_xdr(FREELANCER, "accept_freelancer", nonce=99, expiration=555))

        assert obligation.credential_type == CREDENTIALS_ADDRESS
        assert obligation.needs_signature
        assert not obligation.is_signed
        assert obligation.address == FREELANCER
        assert obligation.nonce == 99
        assert obligation.signature_expiration_ledger == 555
        assert obligation.contract_id == CONTRACT_ID
        assert obligation.function == "accept_freelancer"

    def test_source_account_credentials(self):
        obligation = AuthObligation.from_xdr(auth_entry_xdr(None, "start_work"))

        assert obligation.credential_type == CREDENTIALS_SOURCE_ACCOUNT
        assert not obligation.needs_signature
        assert obligation.address is None

    def test_signed_entry(self):
        obligation = AuthObligation.from_xdr(auth_entry_xdr(FREELANCER, "f", signature=Bytes(b"\x09" * 64)))
        assert obligation.is_signed

    def test_base64_round_trip(self):
        obligation = AuthObligation.from_xdr(auth_entry_xdr(FREELANCER, "f"))
        assert AuthObligation.from_base64(obligation.to_base64()) == obligation

    def test_unknown_credentials(self):
        with pytest.raises(DecodeError):
            AuthObligation.from_xdr(b"\x00\x00\x00\x05")

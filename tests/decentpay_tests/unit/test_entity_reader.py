"""
Tests for read-only contract calls.
"""

import pytest

from decentpay.codec.ledger_value import Map, String, Symbol, U32, Void
from decentpay.contracts.entity_reader import EntityReader
from decentpay.contracts.models import EscrowStatus
from decentpay.core.config import READ_SOURCE_ACCOUNT
from decentpay.core.ledger_exceptions import ProtocolError
from decentpay_tests.fakes import DEPOSITOR, FREELANCER, escrow_record


@pytest.fixture
def reader(rpc, settings):
    return EntityReader(rpc, settings)


class TestCallView:
    @pytest.mark.asyncio
    async def test_simulated_from_read_source(self, reader, ledger):
        ledger.views["get_owner"] = lambda args: String("owner")

        assert await reader.call_view("get_owner") == String("owner")

        envelope = ledger.simulated[-1]
        assert envelope.transaction.source == READ_SOURCE_ACCOUNT
        assert envelope.signatures == ()
        assert not ledger.method_calls("sendTransaction")
        assert not ledger.method_calls("getLedgerEntries")

    @pytest.mark.asyncio
    async def test_failure_keeps_remote_message(self, reader, ledger):
        ledger.simulation_errors["get_owner"] = "HostError: Error(Contract, #1003)"

        with pytest.raises(ProtocolError) as exc_info:
            await reader.call_view("get_owner")

        assert exc_info.value.message == "HostError: Error(Contract, #1003)"
        assert exc_info.value.details == {"function": "get_owner"}


class TestReadEntity:
    @pytest.mark.asyncio
    async def test_existing_escrow(self, reader, ledger):
        ledger.views["get_escrow"] = lambda args: escrow_record(status="InProgress")

        escrow = await reader.read_entity(7)

        assert escrow.id == 7
        assert escrow.depositor == DEPOSITOR
        assert escrow.beneficiary == FREELANCER
        assert escrow.status is EscrowStatus.ACTIVE
        assert escrow.total_amount == "10000000000"
        assert ledger.simulated[-1].transaction.invocation.args == (U32(7),)

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "value",
        [
            None,
            Void(),
            Map(),
            Map(((Symbol("project_title"), String("orphan")),)),
        ],
    )
    async def test_absent_escrow(self, reader, ledger, value):
        ledger.views["get_escrow"] = lambda args: value

        assert await reader.read_entity(1) is None

    @pytest.mark.asyncio
    async def test_failed_read_is_not_absence(self, reader, ledger):
        ledger.simulation_errors["get_escrow"] = "HostError: Error(Contract, #1100)"

        with pytest.raises(ProtocolError):
            await reader.read_entity(1)

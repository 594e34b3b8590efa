import pytest

from decentpay.core.config import ClientSettings
from decentpay.rpc.ledger_rpc import LedgerRpc
from decentpay_tests.fakes import ARBITER, CONTRACT_ID, DEPOSITOR, FREELANCER, FakeLedger, RecordingSigner


@pytest.fixture
def settings():
    """Settings against the fake contract with instant polling."""
    return ClientSettings.for_network(
        "testnet",
        contract_id=CONTRACT_ID,
        poll_interval=0,
        max_poll_attempts=30,
    )


@pytest.fixture
def ledger(settings):
    fake = FakeLedger(settings)
    fake.accounts[DEPOSITOR] = 1_000
    fake.accounts[FREELANCER] = 2_000
    fake.accounts[ARBITER] = 3_000
    return fake


@pytest.fixture
def rpc(ledger, settings):
    return LedgerRpc(ledger, settings)


@pytest.fixture
def signer():
    return RecordingSigner()

"""
Soroban RPC surface used by the contract layer.

Wraps the JSON-RPC methods (``simulateTransaction``, ``sendTransaction``,
``getTransaction``, ``getLedgerEntries``) in typed results and performs the
client-side prepare step (fees, resource data, simulated authorization).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional, Sequence, Tuple

from decentpay.codec.ledger_value import LedgerValue
from decentpay.codec.xdr import (
    DURABILITY_PERSISTENT,
    AccountEntry,
    ContractDataEntry,
    account_ledger_key,
    b64decode,
    contract_data_ledger_key,
    from_base64,
    read_ledger_entry_data,
)
from decentpay.core.config import ClientSettings
from decentpay.core.ledger_exceptions import (
    AbsentEntity,
    DecodeError,
    ProtocolError,
    SimulationError,
)
from decentpay.rpc.envelope import AuthObligation, Transaction, TransactionEnvelope
from decentpay.rpc.http_client import JsonRpcClient

logger = logging.getLogger(__name__)

SEND_PENDING = "PENDING"
SEND_DUPLICATE = "DUPLICATE"
SEND_TRY_AGAIN_LATER = "TRY_AGAIN_LATER"
SEND_ERROR = "ERROR"

TX_SUCCESS = "SUCCESS"
TX_FAILED = "FAILED"
TX_NOT_FOUND = "NOT_FOUND"
TX_PENDING = "PENDING"


@dataclass(frozen=True)
class SimulationResult:
    return_value: Optional[LedgerValue] = None
    auth: Tuple[AuthObligation, ...] = ()
    transaction_data: Optional[bytes] = None
    min_resource_fee: int = 0
    latest_ledger: Optional[int] = None
    error: Optional[str] = None

    @property
    def failed(self) -> bool:
        return self.error is not None


@dataclass(frozen=True)
class SendResult:
    status: str
    hash: str
    error_result_xdr: Optional[str] = None


@dataclass(frozen=True)
class TransactionStatus:
    status: str
    hash: str
    return_value: Optional[LedgerValue] = None
    ledger: Optional[int] = None
    result_xdr: Optional[str] = None
    raw: Dict[str, Any] = field(default_factory=dict, compare=False)


def _optional_int(value: Any) -> Optional[int]:
    if value is None:
        return None
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise ProtocolError(f"Expected an integer in RPC response, got {value!r}") from exc


class LedgerRpc:
    """Typed access to the Soroban RPC methods the client consumes."""

    def __init__(self, client: JsonRpcClient, settings: ClientSettings) -> None:
        self.client = client
        self.settings = settings

    async def close(self) -> None:
        await self.client.close()

    # ==================== Ledger entries ====================

    async def get_ledger_entries(self, keys: Sequence[str]) -> List[Dict[str, Any]]:
        result = await self.client.call("getLedgerEntries", {"keys": list(keys)})
        if not isinstance(result, dict):
            raise ProtocolError("Malformed getLedgerEntries response")
        return list(result.get("entries") or [])

    async def get_account(self, account: str) -> AccountEntry:
        entries = await self.get_ledger_entries([account_ledger_key(account)])
        if not entries:
            raise AbsentEntity(f"Account {account} does not exist on the ledger")
        entry = read_ledger_entry_data(b64decode(entries[0]["xdr"]))
        if not isinstance(entry, AccountEntry):
            raise ProtocolError("Account key returned a non-account entry")
        return entry

    async def get_account_sequence(self, account: str) -> int:
        """Current sequence number of ``account``."""
        return (await self.get_account(account)).sequence

    async def read_contract_data(
        self,
        contract_id: str,
        key: LedgerValue,
        durability: int = DURABILITY_PERSISTENT,
    ) -> Optional[ContractDataEntry]:
        """Raw contract storage read; None when the entry does not exist."""
        ledger_key = contract_data_ledger_key(contract_id, key, durability)
        entries = await self.get_ledger_entries([ledger_key])
        if not entries:
            return None
        entry = read_ledger_entry_data(b64decode(entries[0]["xdr"]))
        if not isinstance(entry, ContractDataEntry):
            raise ProtocolError("Contract data key returned a non-contract-data entry")
        return entry

    # ==================== Simulation and prepare ====================

    async def simulate(self, tx: Transaction) -> SimulationResult:
        envelope_xdr = TransactionEnvelope(tx).to_base64()
        result = await self.client.call("simulateTransaction", {"transaction": envelope_xdr})
        if not isinstance(result, dict):
            raise ProtocolError("Malformed simulateTransaction response")

        latest_ledger = _optional_int(result.get("latestLedger"))
        error = result.get("error")
        if error:
            logger.debug(
                "Simulation reported an error",
                extra={"event": "rpc.simulation_error", "function": tx.invocation.function},
            )
            return SimulationResult(latest_ledger=latest_ledger, error=str(error))

        return_value = None
        auth: Tuple[AuthObligation, ...] = ()
        results = result.get("results") or []
        if results:
            first = results[0]
            if first.get("xdr"):
                return_value = from_base64(first["xdr"])
            auth = tuple(AuthObligation.from_base64(entry) for entry in first.get("auth") or [])

        data = result.get("transactionData")
        return SimulationResult(
            return_value=return_value,
            auth=auth,
            transaction_data=b64decode(data) if data else None,
            min_resource_fee=_optional_int(result.get("minResourceFee")) or 0,
            latest_ledger=latest_ledger,
        )

    def prepare(self, tx: Transaction, simulation: SimulationResult) -> Transaction:
        """Attach simulated resources, fee and (if absent) authorization."""
        if simulation.failed:
            raise SimulationError(simulation.error)
        if simulation.transaction_data is None:
            raise ProtocolError("Simulation returned no transaction data")
        return replace(
            tx,
            fee=self.settings.base_fee + simulation.min_resource_fee,
            soroban_data=simulation.transaction_data,
            auth=tx.auth if tx.auth else simulation.auth,
        )

    # ==================== Submission and status ====================

    async def send(self, envelope_xdr: str) -> SendResult:
        result = await self.client.call("sendTransaction", {"transaction": envelope_xdr})
        if not isinstance(result, dict) or "status" not in result:
            raise ProtocolError("Malformed sendTransaction response")
        return SendResult(
            status=str(result["status"]),
            hash=str(result.get("hash", "")),
            error_result_xdr=result.get("errorResultXdr"),
        )

    async def get_transaction(self, tx_hash: str) -> TransactionStatus:
        result = await self.client.call("getTransaction", {"hash": tx_hash})
        if not isinstance(result, dict) or "status" not in result:
            raise ProtocolError("Malformed getTransaction response")

        return_value = None
        if result.get("returnValue"):
            try:
                return_value = from_base64(result["returnValue"])
            except DecodeError as e:
                logger.warning(
                    f"Could not decode transaction return value: {e}",
                    extra={"event": "rpc.return_value_undecodable", "tx_hash": tx_hash},
                )

        return TransactionStatus(
            status=str(result["status"]),
            hash=tx_hash,
            return_value=return_value,
            ledger=_optional_int(result.get("ledger")),
            result_xdr=result.get("resultXdr"),
            raw=result,
        )

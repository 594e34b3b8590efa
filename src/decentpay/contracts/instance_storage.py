"""
Raw reads of the escrow contract's instance storage.

The contract keeps all of its state in instance storage, a single ledger
entry holding one map keyed by ``DataKey`` enum cases. Reading it directly
bypasses view calls, which makes it the authoritative source for the escrow
counter and a fallback when a view call fails.
"""

import logging
from typing import List, Optional

from decentpay.codec.ledger_value import (
    ContractInstance,
    LedgerKeyContractInstance,
    LedgerValue,
    Map,
    U32,
    Vector,
    symbol_vec,
)
from decentpay.codec.value_codec import U32_KIND, decode
from decentpay.codec.xdr import DURABILITY_PERSISTENT
from decentpay.contracts.models import Application
from decentpay.core.config import MAX_APPLICATIONS_PER_JOB, ClientSettings
from decentpay.core.ledger_exceptions import AbsentEntity, DecodeError, ProtocolError
from decentpay.rpc.ledger_rpc import LedgerRpc

logger = logging.getLogger(__name__)

# NextEscrowId is the ID the next create_escrow call will assign
FIRST_ESCROW_ID = 1


def data_key(name: str, *args: LedgerValue) -> Vector:
    """Encode a ``DataKey`` case, e.g. ``data_key("Application", U32(3), U32(0))``."""
    return symbol_vec(name, *args)


class InstanceStorage:
    def __init__(self, rpc: LedgerRpc, settings: ClientSettings) -> None:
        self.rpc = rpc
        self.settings = settings

    async def snapshot(self) -> Map:
        """
        Read the whole instance storage map.

        Raises:
            AbsentEntity: the contract instance does not exist
            ProtocolError: the entry is not a contract instance
        """
        entry = await self.rpc.read_contract_data(
            self.settings.contract_id,
            LedgerKeyContractInstance(),
            DURABILITY_PERSISTENT,
        )
        if entry is None:
            raise AbsentEntity(f"Contract {self.settings.contract_id} has no instance entry")
        if not isinstance(entry.value, ContractInstance):
            raise ProtocolError(
                f"Instance entry of {self.settings.contract_id} is a {entry.value.type_name}"
            )
        return entry.value.storage or Map()

    async def get(self, name: str, *args: LedgerValue) -> Optional[LedgerValue]:
        storage = await self.snapshot()
        return storage.get(data_key(name, *args))

    async def next_escrow_id(self) -> int:
        value = await self.get("NextEscrowId")
        if value is None:
            return FIRST_ESCROW_ID
        try:
            return decode(value, U32_KIND)
        except DecodeError as e:
            raise ProtocolError(f"NextEscrowId is not a u32: {e}") from e

    async def scan_applications(
        self,
        escrow_id: int,
        limit: int = MAX_APPLICATIONS_PER_JOB,
    ) -> List[Application]:
        """
        Applications of one job read slot by slot from a single snapshot.

        Slots are filled first-free, so empty slots are skipped rather than
        ending the scan.
        """
        storage = await self.snapshot()
        applications = []
        for index in range(limit):
            raw = storage.get(data_key("Application", U32(escrow_id), U32(index)))
            if raw is None:
                continue
            try:
                applications.append(Application.decode(raw))
            except (AbsentEntity, DecodeError) as e:
                logger.warning(
                    f"Skipping unreadable application {escrow_id}/{index}: {e}",
                    extra={"event": "storage.application_skipped", "escrow_id": escrow_id, "slot": index},
                )
        logger.debug(
            f"Scanned {limit} application slots for escrow {escrow_id}",
            extra={"event": "storage.applications_scanned", "escrow_id": escrow_id, "found": len(applications)},
        )
        return applications

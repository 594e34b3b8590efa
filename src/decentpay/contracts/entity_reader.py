"""
Read-only contract calls.

Every read is a simulated invocation from a fixed read-source account: no
signature, no submission, no fee. ``read_entity`` tells an escrow that does
not exist (``None``) apart from a failed read (``ProtocolError``).
"""

import logging
from typing import Optional, Sequence

from decentpay.codec.ledger_value import LedgerValue, U32, Void
from decentpay.contracts.models import Escrow
from decentpay.core.config import ClientSettings
from decentpay.core.ledger_exceptions import AbsentEntity, ProtocolError
from decentpay.rpc.envelope import Invocation, build_invocation
from decentpay.rpc.ledger_rpc import LedgerRpc

logger = logging.getLogger(__name__)


class EntityReader:
    def __init__(self, rpc: LedgerRpc, settings: ClientSettings) -> None:
        self.rpc = rpc
        self.settings = settings

    async def call_view(
        self,
        function: str,
        args: Sequence[LedgerValue] = (),
    ) -> Optional[LedgerValue]:
        """
        Simulate a view entry point and return its raw result.

        Returns:
            The returned value, or None when the simulation produced none

        Raises:
            ProtocolError: simulation failed; the remote message is kept verbatim
        """
        tx = build_invocation(
            source=self.settings.read_source,
            sequence=1,
            invocation=Invocation(self.settings.contract_id, function, tuple(args)),
            fee=self.settings.base_fee,
            timeout=self.settings.tx_timeout,
        )
        simulation = await self.rpc.simulate(tx)
        if simulation.failed:
            logger.debug(
                f"View call {function} failed: {simulation.error}",
                extra={"event": "reader.view_failed", "function": function},
            )
            raise ProtocolError(simulation.error, details={"function": function})
        return simulation.return_value

    async def read_entity(self, escrow_id: int) -> Optional[Escrow]:
        """Read one escrow; None when it does not exist."""
        value = await self.call_view("get_escrow", [U32(escrow_id)])
        if value is None or isinstance(value, Void):
            return None
        try:
            return Escrow.decode(escrow_id, value)
        except AbsentEntity as e:
            logger.debug(
                f"Escrow {escrow_id} is absent: {e}",
                extra={"event": "reader.absent", "escrow_id": escrow_id},
            )
            return None

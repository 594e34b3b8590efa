"""
Write path for contract calls.

One ``TransactionLifecycle`` serves every write entry point:

    built -> simulated -> [authorized -> reprepared] -> prepared -> signed
          -> submitted -> (pending, polled) -> success | failed | timed out

Each transition is logged. Writes are never retried automatically; only the
status poll and the return-value recovery read repeat.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, List, Optional, Sequence, Tuple

from decentpay.codec.ledger_value import LedgerValue
from decentpay.codec.value_codec import KindSpec, decode
from decentpay.core.config import ClientSettings
from decentpay.core.ledger_exceptions import (
    ConfirmationFailed,
    ConfirmationTimedOut,
    LedgerError,
    ReturnValueUnavailable,
    RpcError,
    SigningError,
    SimulationError,
    SubmissionError,
)
from decentpay.rpc.envelope import (
    AuthObligation,
    Invocation,
    Transaction,
    TransactionEnvelope,
    build_invocation,
)
from decentpay.rpc.ledger_rpc import (
    SEND_DUPLICATE,
    SEND_ERROR,
    SEND_PENDING,
    SEND_TRY_AGAIN_LATER,
    TX_FAILED,
    TX_NOT_FOUND,
    TX_SUCCESS,
    LedgerRpc,
    SimulationResult,
    TransactionStatus,
)
from decentpay.signing.signer import SignedObligation, Signer

logger = logging.getLogger(__name__)

OUTCOME_SUCCESS = "SUCCESS"
OUTCOME_DUPLICATE = "DUPLICATE"


@dataclass(frozen=True)
class TransactionOutcome:
    hash: str
    status: str
    return_value: Optional[LedgerValue] = None
    ledger: Optional[int] = None

    @property
    def is_duplicate(self) -> bool:
        return self.status == OUTCOME_DUPLICATE

    def decoded(self, kind: Optional[KindSpec] = None) -> Any:
        if self.return_value is None:
            raise ReturnValueUnavailable(
                "Transaction confirmed without a return value",
                tx_hash=self.hash,
            )
        return decode(self.return_value, kind)


class TransactionLifecycle:
    """Runs build, simulate, authorize, sign, submit and confirm for one call."""

    def __init__(self, rpc: LedgerRpc, signer: Signer, settings: ClientSettings) -> None:
        self.rpc = rpc
        self.signer = signer
        self.settings = settings

    def _log(self, state: str, function: str, identity: str, level: int = logging.INFO, **context: Any) -> None:
        logger.log(
            level,
            f"{function}: {state}",
            extra={"event": f"lifecycle.{state}", "entry_point": function, "identity": identity, **context},
        )

    async def _build(self, invocation: Invocation, identity: str) -> Transaction:
        account_sequence = await self.rpc.get_account_sequence(identity)
        return build_invocation(
            source=identity,
            sequence=account_sequence + 1,
            invocation=invocation,
            fee=self.settings.base_fee,
            timeout=self.settings.tx_timeout,
        )

    async def _simulate(self, tx: Transaction, identity: str) -> SimulationResult:
        simulation = await self.rpc.simulate(tx)
        if simulation.failed:
            error = SimulationError(
                simulation.error,
                details={"function": tx.invocation.function, "latest_ledger": simulation.latest_ledger},
            )
            self._log(
                "simulation_failed",
                tx.invocation.function,
                identity,
                level=logging.ERROR,
                contract_error=error.contract_error,
            )
            raise error
        return simulation

    async def _authorize(
        self,
        obligations: Tuple[AuthObligation, ...],
        identity: str,
    ) -> Tuple[AuthObligation, ...]:
        """Sign address-credential obligations; source-account ones pass through."""
        pending = [o for o in obligations if o.needs_signature]
        try:
            returned = await self.signer.sign_obligations(pending, identity)
        except LedgerError:
            raise
        except Exception as e:
            raise SigningError(f"Signer failed on authorization entries: {e}") from e

        signed: List[AuthObligation] = [self._as_obligation(item) for item in returned or ()]
        if len(signed) != len(pending):
            raise SigningError(
                f"Signer returned {len(signed)} authorization entries for {len(pending)} obligations"
            )

        replacements = iter(signed)
        return tuple(next(replacements) if o.needs_signature else o for o in obligations)

    @staticmethod
    def _as_obligation(item: SignedObligation) -> AuthObligation:
        if isinstance(item, AuthObligation):
            return item
        if isinstance(item, str) and item:
            return AuthObligation.from_base64(item)
        raise SigningError("Signer returned an empty authorization entry")

    async def _sign(self, tx: Transaction, identity: str) -> str:
        envelope_xdr = TransactionEnvelope(tx).to_base64()
        try:
            signed_xdr = await self.signer.sign_envelope(envelope_xdr, identity)
        except LedgerError:
            raise
        except Exception as e:
            raise SigningError(f"Signer failed on transaction: {e}") from e

        if not signed_xdr or signed_xdr == envelope_xdr:
            raise SigningError("Signer returned the transaction unsigned")
        if not TransactionEnvelope.from_base64(signed_xdr).signatures:
            raise SigningError("Signed transaction carries no signatures")
        return signed_xdr

    async def _poll(self, tx_hash: str, function: str, identity: str) -> TransactionStatus:
        attempts = self.settings.max_poll_attempts
        for attempt in range(1, attempts + 1):
            await asyncio.sleep(self.settings.poll_interval)
            try:
                status = await self.rpc.get_transaction(tx_hash)
            except RpcError as e:
                self._log("poll_error", function, identity, level=logging.WARNING, attempt=attempt, error=str(e))
                continue

            self._log("polled", function, identity, level=logging.DEBUG, attempt=attempt, status=status.status)
            if status.status == TX_SUCCESS:
                return status
            if status.status == TX_FAILED:
                self._log("failed", function, identity, level=logging.ERROR, tx_hash=tx_hash)
                raise ConfirmationFailed(
                    f"Transaction {tx_hash} failed on the ledger",
                    tx_hash=tx_hash,
                    details={"result_xdr": status.result_xdr, "ledger": status.ledger},
                )

        self._log("timed_out", function, identity, level=logging.ERROR, tx_hash=tx_hash, attempts=attempts)
        raise ConfirmationTimedOut(
            f"Transaction {tx_hash} not confirmed after {attempts} attempts",
            attempts=attempts,
            tx_hash=tx_hash,
        )

    async def _recover_return_value(self, tx_hash: str) -> Optional[LedgerValue]:
        """Fetch the committed transaction again; one retry on NOT_FOUND."""
        for attempt in range(2):
            if attempt:
                await asyncio.sleep(self.settings.poll_interval)
            try:
                status = await self.rpc.get_transaction(tx_hash)
            except RpcError as e:
                logger.warning(
                    f"Return value recovery for {tx_hash} failed: {e}",
                    extra={"event": "lifecycle.recovery_error", "tx_hash": tx_hash},
                )
                continue
            if status.status != TX_NOT_FOUND:
                return status.return_value
        return None

    async def invoke(
        self,
        function: str,
        args: Sequence[LedgerValue],
        identity: str,
        *,
        need_return: bool = False,
    ) -> TransactionOutcome:
        """
        Run one contract call to confirmation.

        Args:
            function: Contract entry point
            args: Encoded arguments
            identity: Paying and sequencing account (also the signer identity)
            need_return: Raise ReturnValueUnavailable when no return value
                can be obtained from any path

        Raises:
            SimulationError, SigningError, SigningRejected, SubmissionError,
            ConfirmationFailed, ConfirmationTimedOut, ReturnValueUnavailable
        """
        invocation = Invocation(self.settings.contract_id, function, tuple(args))

        tx = await self._build(invocation, identity)
        self._log("built", function, identity, sequence=tx.sequence)

        simulation = await self._simulate(tx, identity)
        self._log("simulated", function, identity, auth_entries=len(simulation.auth))

        if any(o.needs_signature for o in simulation.auth):
            auth = await self._authorize(simulation.auth, identity)
            self._log("authorized", function, identity, auth_entries=len(auth))
            # sequence may have advanced while the user was signing
            tx = (await self._build(invocation, identity)).with_auth(auth)
            simulation = await self._simulate(tx, identity)
            self._log("reprepared", function, identity, sequence=tx.sequence)

        prepared = self.rpc.prepare(tx, simulation)
        self._log("prepared", function, identity, fee=prepared.fee)

        signed_xdr = await self._sign(prepared, identity)
        self._log("signed", function, identity)

        sent = await self.rpc.send(signed_xdr)
        self._log("submitted", function, identity, tx_hash=sent.hash, status=sent.status)

        return_value = simulation.return_value
        if sent.status == SEND_DUPLICATE:
            self._log("duplicate", function, identity, tx_hash=sent.hash)
            if return_value is None and need_return:
                return_value = await self._recover_return_value(sent.hash)
            outcome = TransactionOutcome(sent.hash, OUTCOME_DUPLICATE, return_value)
        elif sent.status == SEND_PENDING:
            status = await self._poll(sent.hash, function, identity)
            if return_value is None:
                return_value = status.return_value
            if return_value is None and need_return:
                return_value = await self._recover_return_value(sent.hash)
            outcome = TransactionOutcome(sent.hash, OUTCOME_SUCCESS, return_value, status.ledger)
            self._log("confirmed", function, identity, tx_hash=sent.hash, ledger=status.ledger)
        elif sent.status == SEND_TRY_AGAIN_LATER:
            self._log("try_again_later", function, identity, level=logging.WARNING, tx_hash=sent.hash)
            raise SubmissionError(
                "Ledger is congested, submit the transaction again later",
                status=sent.status,
                tx_hash=sent.hash,
                recoverable=True,
            )
        elif sent.status == SEND_ERROR:
            self._log("submission_failed", function, identity, level=logging.ERROR, tx_hash=sent.hash)
            raise SubmissionError(
                f"Transaction rejected on submission: {sent.error_result_xdr or 'no result'}",
                status=sent.status,
                tx_hash=sent.hash,
                details={"error_result_xdr": sent.error_result_xdr},
            )
        else:
            raise SubmissionError(f"Unexpected submission status {sent.status!r}", status=sent.status, tx_hash=sent.hash)

        if need_return and outcome.return_value is None:
            raise ReturnValueUnavailable(
                f"{function} confirmed but its return value could not be read",
                tx_hash=outcome.hash,
            )
        return outcome

"""
Signing capability consumed by the transaction lifecycle.

Keys never reach this package. A ``Signer`` is whatever holds them: a
browser wallet bridge, a hardware device or a local keypair. ``CallbackSigner``
adapts wallet-style callbacks and maps their failures onto the error
taxonomy; a user who declines is reported as ``SigningRejected``.
"""

from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional, Protocol, Sequence, Union

from decentpay.core.ledger_exceptions import LedgerError, SigningError, SigningRejected
from decentpay.rpc.envelope import AuthObligation

logger = logging.getLogger(__name__)

# Wallet error code for "user declined"
USER_REJECTED_CODE = -4

SignedObligation = Union[AuthObligation, str]
WalletCallback = Callable[[str, Dict[str, Any]], Awaitable[Any]]


class Signer(Protocol):
    async def sign_envelope(self, envelope_xdr: str, identity: str) -> str:
        """Return the envelope (base64 XDR) carrying ``identity``'s signature."""
        ...

    async def sign_obligations(
        self,
        obligations: Sequence[AuthObligation],
        identity: str,
    ) -> Sequence[SignedObligation]:
        """Return the obligations, in order, with their credentials signed."""
        ...


def _is_rejection(code: Any, message: str) -> bool:
    return code == USER_REJECTED_CODE or "rejected" in message.lower()


def _raise_wallet_error(code: Any, message: str, action: str) -> None:
    if _is_rejection(code, message):
        raise SigningRejected(f"User rejected {action}: {message}", details={"code": code})
    raise SigningError(f"Wallet failed to sign {action}: {message}", details={"code": code})


def _extract(result: Any, keys: Sequence[str], action: str) -> str:
    if isinstance(result, dict):
        error = result.get("error")
        if error:
            if isinstance(error, dict):
                _raise_wallet_error(error.get("code"), str(error.get("message", "")), action)
            _raise_wallet_error(None, str(error), action)
        for key in keys:
            if result.get(key):
                return result[key]
        raise SigningError(f"Wallet returned no signed {action}")
    if isinstance(result, (bytes, bytearray)):
        result = result.decode("ascii")
    if not isinstance(result, str) or not result:
        raise SigningError(f"Wallet returned no signed {action}")
    return result


class CallbackSigner:
    """
    Signer backed by wallet callbacks.

    Both callbacks receive ``(xdr_base64, {"networkPassphrase", "address"})``
    and may return the signed XDR as a string, a dict
    (``signedTxXdr`` / ``signedAuthEntry``), or a dict with an ``error``
    object. Exceptions raised by a callback are classified the same way.
    """

    def __init__(
        self,
        sign_transaction: WalletCallback,
        sign_auth_entry: Optional[WalletCallback] = None,
        network_passphrase: str = "",
    ) -> None:
        self._sign_transaction = sign_transaction
        self._sign_auth_entry = sign_auth_entry
        self.network_passphrase = network_passphrase

    def _options(self, identity: str) -> Dict[str, Any]:
        return {"networkPassphrase": self.network_passphrase, "address": identity}

    async def _invoke(self, callback: WalletCallback, payload: str, identity: str, action: str) -> Any:
        try:
            return await callback(payload, self._options(identity))
        except LedgerError:
            raise
        except Exception as e:
            _raise_wallet_error(getattr(e, "code", None), str(e), action)

    async def sign_envelope(self, envelope_xdr: str, identity: str) -> str:
        result = await self._invoke(self._sign_transaction, envelope_xdr, identity, "transaction")
        signed = _extract(result, ("signedTxXdr", "signed_envelope", "signedXdr"), "transaction")
        if signed == envelope_xdr:
            raise SigningError("Wallet returned the transaction unsigned")
        return signed

    async def sign_obligations(
        self,
        obligations: Sequence[AuthObligation],
        identity: str,
    ) -> List[SignedObligation]:
        if self._sign_auth_entry is None:
            raise SigningError("Signer cannot sign authorization entries")

        signed: List[SignedObligation] = []
        for index, obligation in enumerate(obligations):
            logger.info(
                f"Requesting authorization signature {index + 1}/{len(obligations)}",
                extra={"event": "signer.sign_obligation", "identity": identity, "function": obligation.function},
            )
            original = obligation.to_base64()
            result = await self._invoke(self._sign_auth_entry, original, identity, "authorization")
            entry = _extract(result, ("signedAuthEntry", "signed_entry"), "authorization")
            if entry == original:
                raise SigningError("Wallet returned the authorization entry unsigned")
            signed.append(entry)
        return signed

"""
Ledger-specific exception hierarchy for DecentPay.

Provides typed exceptions for contract interaction so callers can tell an
absent entity from a transient RPC failure, a user who declined to sign from
a broken signer, and a confirmation timeout from an explicit on-ledger failure.
"""

from __future__ import annotations

import re
from typing import Any, Dict, Optional


class LedgerError(Exception):
    """Base exception for all contract-interaction errors.

    Attributes:
        message: Human-readable error description
        details: Additional context about the error
        recoverable: Whether the operation can be retried
    """

    recoverable_default = False

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        recoverable: Optional[bool] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.recoverable = self.recoverable_default if recoverable is None else recoverable


class ConfigurationError(LedgerError):
    """Raised when required configuration is missing or invalid."""
    pass


class ValidationError(LedgerError):
    """Raised when caller-supplied parameters are rejected before any RPC."""
    pass


# ==================== Codec Errors ====================


class CodecError(LedgerError):
    """Base class for value encoding and decoding failures."""
    pass


class DecodeError(CodecError):
    """Raised when a wire value cannot be reconciled with any tolerated shape."""
    pass


class UnsupportedKind(CodecError):
    """Raised when a native value cannot be encoded as the requested kind."""
    pass


class AbsentEntity(LedgerError):
    """Raised when a ledger record does not exist.

    Distinct from an error: readers translate it into a ``None`` result.
    """
    pass


# ==================== RPC Errors ====================


class RpcError(LedgerError):
    """Base class for RPC transport and protocol failures."""

    recoverable_default = True

    def __init__(
        self,
        message: str,
        code: Optional[int] = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, **kwargs)
        self.code = code


class NetworkError(RpcError):
    """Raised when the RPC endpoint cannot be reached."""
    pass


class RpcTimeoutError(RpcError):
    """Raised when an RPC request exceeds its timeout."""
    pass


class ProtocolError(RpcError):
    """Raised when the RPC answers with an error or a malformed payload.

    Also used by read-only simulations that fail for any reason other than
    the entity being absent.
    """
    pass


# ==================== Transaction Errors ====================


class TransactionError(LedgerError):
    """Base class for write-path failures."""

    def __init__(
        self,
        message: str,
        tx_hash: Optional[str] = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, **kwargs)
        self.tx_hash = tx_hash


class SimulationError(TransactionError):
    """Raised when the ledger rejects a call during simulation.

    No state has changed. The remote message is kept verbatim in ``message``;
    ``contract_error`` holds the contract error name when one could be parsed.
    """

    def __init__(self, message: str, **kwargs: Any) -> None:
        super().__init__(message, **kwargs)
        self.contract_error_code = parse_contract_error_code(message)
        self.contract_error = CONTRACT_ERRORS.get(self.contract_error_code)


class SigningError(TransactionError):
    """Raised when the external signer fails to produce a signature."""
    pass


class SigningRejected(SigningError):
    """Raised when the user explicitly declines to sign in their wallet."""
    pass


class SubmissionError(TransactionError):
    """Raised when a signed envelope could not be submitted."""

    def __init__(self, message: str, status: Optional[str] = None, **kwargs: Any) -> None:
        super().__init__(message, **kwargs)
        self.status = status


class ConfirmationFailed(TransactionError):
    """Raised when the ledger explicitly rejects a submitted transaction."""
    pass


class ConfirmationTimedOut(TransactionError):
    """Raised when polling ends without the transaction reaching a terminal state."""

    recoverable_default = True

    def __init__(self, message: str, attempts: int = 0, **kwargs: Any) -> None:
        super().__init__(message, **kwargs)
        self.attempts = attempts


class ReturnValueUnavailable(TransactionError):
    """Raised when a confirmed call's return value could not be obtained."""
    pass


# ==================== Contract Error Codes ====================

CONTRACT_ERRORS: Dict[Optional[int], str] = {
    1000: "AlreadyInitialized",
    1001: "FeeTooHigh",
    1002: "NotOwner",
    1003: "NotInitialized",
    1100: "EscrowNotFound",
    1101: "EscrowNotActive",
    1102: "InvalidEscrowStatus",
    1103: "WorkAlreadyStarted",
    1104: "WorkNotStarted",
    1200: "JobCreationPaused",
    1201: "InvalidDuration",
    1202: "MilestoneCountMismatch",
    1203: "TooManyMilestones",
    1204: "TooManyArbiters",
    1205: "InvalidConfirmations",
    1206: "TokenNotWhitelisted",
    1300: "NotOpenJob",
    1301: "JobClosed",
    1302: "CannotApplyToOwnJob",
    1303: "TooManyApplications",
    1304: "OnlyDepositor",
    1305: "FreelancerNotApplied",
    1306: "AlreadyApplied",
    1400: "InvalidMilestone",
    1401: "MilestoneAlreadySubmitted",
    1402: "MilestoneNotSubmitted",
    1403: "MilestoneAlreadyProcessed",
    1500: "NothingToRefund",
    1501: "DeadlineNotPassed",
    1502: "EmergencyPeriodNotReached",
    1503: "CannotRefund",
    1504: "InvalidExtension",
    1505: "CannotExtend",
    1600: "OnlyBeneficiary",
    1601: "Unauthorized",
    1700: "InvalidAmount",
    1701: "InvalidAddress",
    1702: "InvalidParameter",
    1800: "EscrowNotCompleted",
    1801: "RatingAlreadySubmitted",
    1802: "InvalidRating",
    1803: "OnlyDepositorCanRate",
}

_CONTRACT_ERROR_PATTERN = re.compile(r"Error\(Contract, #(\d+)\)")


def parse_contract_error_code(message: str) -> Optional[int]:
    """Extract the numeric contract error code from a host error message."""
    match = _CONTRACT_ERROR_PATTERN.search(message or "")
    if not match:
        return None
    return int(match.group(1))

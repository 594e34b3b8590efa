"""
Domain operations on the escrow marketplace contract.

Every write maps to exactly one ``TransactionLifecycle`` run, configured by
the entry-point name and the arguments encoded from ``METHOD_SIGNATURES``.
Every read is a simulated view call through ``EntityReader``. The signing
identity is always an explicit argument.

Amounts passed to writes are display amounts (``Decimal``, ``str`` or
``int``) converted to base units here; amounts on returned models are
base-10 strings of base units.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple

from decentpay.codec.ledger_value import LedgerValue, Vector, Void
from decentpay.codec.value_codec import (
    ADDRESS,
    BOOL,
    I128_KIND,
    STRING,
    U32_KIND,
    KindSpec,
    decode,
    encode,
    option_of,
    tuple_of,
    vec_of,
)
from decentpay.contracts.entity_discovery import EntityDiscovery
from decentpay.contracts.entity_reader import EntityReader
from decentpay.contracts.instance_storage import InstanceStorage
from decentpay.contracts.models import (
    Application,
    Badge,
    Escrow,
    Milestone,
    Rating,
    RatingSummary,
    badge_from,
)
from decentpay.contracts.transaction_lifecycle import TransactionLifecycle, TransactionOutcome
from decentpay.core.config import ClientSettings
from decentpay.core.ledger_exceptions import (
    AbsentEntity,
    ConfigurationError,
    DecodeError,
    LedgerError,
    ProtocolError,
    RpcError,
    ValidationError,
)
from decentpay.core.units import to_base_units
from decentpay.rpc.http_client import JsonRpcClient
from decentpay.rpc.ledger_rpc import LedgerRpc
from decentpay.signing.signer import Signer

logger = logging.getLogger(__name__)

# Limits enforced by the contract, checked before any RPC
MIN_DURATION_SECONDS = 3600
MAX_DURATION_SECONDS = 365 * 24 * 3600
MAX_MILESTONES = 20
MAX_ARBITERS = 5
MAX_DEADLINE_EXTENSION_SECONDS = 30 * 24 * 3600
MAX_PLATFORM_FEE_BP = 1000
MIN_RATING = 1
MAX_RATING = 5

_ESCROW_ID = ("escrow_id", U32_KIND)
_MILESTONE_INDEX = ("milestone_index", U32_KIND)

METHOD_SIGNATURES: Dict[str, Tuple[Tuple[str, KindSpec], ...]] = {
    # writes
    "initialize": (("owner", ADDRESS), ("fee_collector", ADDRESS), ("platform_fee_bp", U32_KIND)),
    "create_escrow": (
        ("depositor", ADDRESS),
        ("beneficiary", option_of(ADDRESS)),
        ("arbiters", vec_of(ADDRESS)),
        ("required_confirmations", U32_KIND),
        ("milestones", vec_of(tuple_of(I128_KIND, STRING))),
        ("token", option_of(ADDRESS)),
        ("total_amount", I128_KIND),
        ("duration", U32_KIND),
        ("project_title", STRING),
        ("project_description", STRING),
    ),
    "start_work": (_ESCROW_ID, ("beneficiary", ADDRESS)),
    "submit_milestone": (_ESCROW_ID, _MILESTONE_INDEX, ("description", STRING), ("beneficiary", ADDRESS)),
    "resubmit_milestone": (_ESCROW_ID, _MILESTONE_INDEX, ("description", STRING), ("beneficiary", ADDRESS)),
    "approve_milestone": (_ESCROW_ID, _MILESTONE_INDEX, ("depositor", ADDRESS)),
    "reject_milestone": (_ESCROW_ID, _MILESTONE_INDEX, ("reason", STRING), ("depositor", ADDRESS)),
    "dispute_milestone": (_ESCROW_ID, _MILESTONE_INDEX, ("reason", STRING), ("disputer", ADDRESS)),
    "resolve_dispute": (
        _ESCROW_ID,
        _MILESTONE_INDEX,
        ("beneficiary_amount", I128_KIND),
        ("arbiter", ADDRESS),
    ),
    "refund_escrow": (_ESCROW_ID, ("depositor", ADDRESS)),
    "emergency_refund_after_deadline": (_ESCROW_ID, ("depositor", ADDRESS)),
    "extend_deadline": (_ESCROW_ID, ("extra_seconds", U32_KIND), ("depositor", ADDRESS)),
    "apply_to_job": (
        _ESCROW_ID,
        ("cover_letter", STRING),
        ("proposed_timeline", U32_KIND),
        ("freelancer", ADDRESS),
    ),
    "accept_freelancer": (_ESCROW_ID, ("freelancer", ADDRESS), ("depositor", ADDRESS)),
    "pause_job_creation": (),
    "unpause_job_creation": (),
    "set_platform_fee_bp": (("fee_bp", U32_KIND),),
    "set_fee_collector": (("fee_collector", ADDRESS),),
    "set_owner": (("new_owner", ADDRESS),),
    "whitelist_token": (("token", ADDRESS),),
    "authorize_arbiter": (("arbiter", ADDRESS),),
    "submit_rating": (_ESCROW_ID, ("rating", U32_KIND), ("review", STRING), ("client", ADDRESS)),
    # views
    "get_escrow": (_ESCROW_ID,),
    "get_milestones": (_ESCROW_ID,),
    "get_milestone": (_ESCROW_ID, _MILESTONE_INDEX),
    "get_applications": (_ESCROW_ID,),
    "get_application": (_ESCROW_ID, ("freelancer", ADDRESS)),
    "has_applied": (_ESCROW_ID, ("freelancer", ADDRESS)),
    "get_user_escrows": (("user", ADDRESS),),
    "get_reputation": (("user", ADDRESS),),
    "get_completed_escrows": (("user", ADDRESS),),
    "get_rating": (_ESCROW_ID,),
    "get_average_rating": (("freelancer", ADDRESS),),
    "get_badge": (("freelancer", ADDRESS),),
    "get_owner": (),
    "is_job_creation_paused": (),
    "is_authorized_arbiter": (("arbiter", ADDRESS),),
}


def encode_arguments(function: str, params: Dict[str, Any]) -> List[LedgerValue]:
    """
    Encode named parameters in the entry point's declared order.

    Raises:
        ValidationError: unknown entry point or missing/unexpected parameters
        UnsupportedKind: a value does not fit its declared kind
    """
    signature = METHOD_SIGNATURES.get(function)
    if signature is None:
        raise ValidationError(f"Unknown contract entry point {function!r}")
    names = [name for name, _ in signature]
    missing = [name for name in names if name not in params]
    unexpected = sorted(set(params) - set(names))
    if missing or unexpected:
        raise ValidationError(
            f"Bad arguments for {function}",
            details={"missing": missing, "unexpected": unexpected},
        )
    return [encode(params[name], kind) for name, kind in signature]


@dataclass(frozen=True)
class MilestoneSpec:
    """One milestone of a new escrow, amount in display units."""

    amount: Any
    description: str


@dataclass(frozen=True)
class CreatedEscrow:
    escrow_id: int
    outcome: TransactionOutcome


def _is_void(value: Optional[LedgerValue]) -> bool:
    return value is None or isinstance(value, Void)


def _positive_amount(value: Any, name: str) -> int:
    try:
        amount = to_base_units(value)
    except ValidationError as e:
        raise ValidationError(f"Invalid {name}: {e.message}") from e
    if amount <= 0:
        raise ValidationError(f"{name} must be positive")
    return amount


class EscrowService:
    """
    Read and write operations of one deployed escrow contract.

    ``signer`` may be omitted for read-only use; writes then raise
    ``ConfigurationError``.
    """

    def __init__(self, rpc: LedgerRpc, settings: ClientSettings, signer: Optional[Signer] = None) -> None:
        self.rpc = rpc
        self.settings = settings
        self.signer = signer
        self.reader = EntityReader(rpc, settings)
        self.discovery = EntityDiscovery(self.reader)
        self.storage = InstanceStorage(rpc, settings)
        self._lifecycle = TransactionLifecycle(rpc, signer, settings) if signer is not None else None

    @classmethod
    def from_settings(
        cls,
        settings: Optional[ClientSettings] = None,
        signer: Optional[Signer] = None,
    ) -> "EscrowService":
        settings = settings or ClientSettings.from_env()
        client = JsonRpcClient(
            settings.rpc_url,
            timeout=settings.rpc_timeout,
            max_retries=settings.rpc_max_retries,
        )
        return cls(LedgerRpc(client, settings), settings, signer)

    async def close(self) -> None:
        await self.rpc.close()

    async def __aenter__(self) -> "EscrowService":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    # ==================== Write path ====================

    async def _invoke(
        self,
        function: str,
        identity: str,
        need_return: bool = False,
        **params: Any,
    ) -> TransactionOutcome:
        if self._lifecycle is None:
            raise ConfigurationError(f"{function} needs a signer; this service is read-only")
        args = encode_arguments(function, params)
        return await self._lifecycle.invoke(function, args, identity, need_return=need_return)

    async def initialize(self, owner: str, fee_collector: str, platform_fee_bp: int) -> TransactionOutcome:
        self._check_fee(platform_fee_bp)
        return await self._invoke(
            "initialize", owner, owner=owner, fee_collector=fee_collector, platform_fee_bp=platform_fee_bp
        )

    async def create_escrow(
        self,
        depositor: str,
        milestones: Sequence[MilestoneSpec],
        total_amount: Any,
        duration: int,
        project_title: str,
        project_description: str,
        beneficiary: Optional[str] = None,
        arbiters: Sequence[str] = (),
        required_confirmations: int = 0,
        token: Optional[str] = None,
    ) -> CreatedEscrow:
        """
        Create an escrow and return its newly assigned ID.

        ``beneficiary=None`` publishes an open job. ``token=None`` escrows
        the native asset. Milestone amounts must add up to ``total_amount``
        exactly, compared in base units.

        Raises:
            ValidationError: parameters the contract would reject
            ReturnValueUnavailable: confirmed but the new ID could not be read
        """
        if not MIN_DURATION_SECONDS <= duration <= MAX_DURATION_SECONDS:
            raise ValidationError(
                f"duration must be between {MIN_DURATION_SECONDS} and {MAX_DURATION_SECONDS} seconds"
            )
        if not milestones:
            raise ValidationError("At least one milestone is required")
        if len(milestones) > MAX_MILESTONES:
            raise ValidationError(f"At most {MAX_MILESTONES} milestones are allowed")
        if len(arbiters) > MAX_ARBITERS:
            raise ValidationError(f"At most {MAX_ARBITERS} arbiters are allowed")
        if required_confirmations > len(arbiters):
            raise ValidationError("required_confirmations exceeds the number of arbiters")

        total = _positive_amount(total_amount, "total_amount")
        encoded_milestones = [
            (_positive_amount(m.amount, f"milestone {index} amount"), m.description)
            for index, m in enumerate(milestones)
        ]
        milestone_sum = sum(amount for amount, _ in encoded_milestones)
        if milestone_sum != total:
            raise ValidationError(
                "Milestone amounts do not add up to the total",
                details={"total": str(total), "milestones": str(milestone_sum)},
            )

        outcome = await self._invoke(
            "create_escrow",
            depositor,
            need_return=True,
            depositor=depositor,
            beneficiary=beneficiary,
            arbiters=list(arbiters),
            required_confirmations=required_confirmations,
            milestones=encoded_milestones,
            token=token,
            total_amount=total,
            duration=duration,
            project_title=project_title,
            project_description=project_description,
        )
        escrow_id = outcome.decoded(U32_KIND)
        logger.info(
            f"Created escrow {escrow_id}",
            extra={"event": "escrow.created", "escrow_id": escrow_id, "tx_hash": outcome.hash},
        )
        return CreatedEscrow(escrow_id=escrow_id, outcome=outcome)

    async def start_work(self, escrow_id: int, beneficiary: str) -> TransactionOutcome:
        return await self._invoke("start_work", beneficiary, escrow_id=escrow_id, beneficiary=beneficiary)

    async def submit_milestone(
        self, escrow_id: int, milestone_index: int, description: str, beneficiary: str
    ) -> TransactionOutcome:
        return await self._invoke(
            "submit_milestone",
            beneficiary,
            escrow_id=escrow_id,
            milestone_index=milestone_index,
            description=description,
            beneficiary=beneficiary,
        )

    async def resubmit_milestone(
        self, escrow_id: int, milestone_index: int, description: str, beneficiary: str
    ) -> TransactionOutcome:
        return await self._invoke(
            "resubmit_milestone",
            beneficiary,
            escrow_id=escrow_id,
            milestone_index=milestone_index,
            description=description,
            beneficiary=beneficiary,
        )

    async def approve_milestone(self, escrow_id: int, milestone_index: int, depositor: str) -> TransactionOutcome:
        return await self._invoke(
            "approve_milestone",
            depositor,
            escrow_id=escrow_id,
            milestone_index=milestone_index,
            depositor=depositor,
        )

    async def reject_milestone(
        self, escrow_id: int, milestone_index: int, reason: str, depositor: str
    ) -> TransactionOutcome:
        return await self._invoke(
            "reject_milestone",
            depositor,
            escrow_id=escrow_id,
            milestone_index=milestone_index,
            reason=reason,
            depositor=depositor,
        )

    async def dispute_milestone(
        self, escrow_id: int, milestone_index: int, reason: str, disputer: str
    ) -> TransactionOutcome:
        return await self._invoke(
            "dispute_milestone",
            disputer,
            escrow_id=escrow_id,
            milestone_index=milestone_index,
            reason=reason,
            disputer=disputer,
        )

    async def resolve_dispute(
        self, escrow_id: int, milestone_index: int, beneficiary_amount: Any, arbiter: str
    ) -> TransactionOutcome:
        """Settle a disputed milestone; ``beneficiary_amount`` goes to the freelancer, the rest back."""
        try:
            amount = to_base_units(beneficiary_amount)
        except ValidationError as e:
            raise ValidationError(f"Invalid beneficiary_amount: {e.message}") from e
        return await self._invoke(
            "resolve_dispute",
            arbiter,
            escrow_id=escrow_id,
            milestone_index=milestone_index,
            beneficiary_amount=amount,
            arbiter=arbiter,
        )

    async def refund_escrow(self, escrow_id: int, depositor: str) -> TransactionOutcome:
        return await self._invoke("refund_escrow", depositor, escrow_id=escrow_id, depositor=depositor)

    async def emergency_refund_after_deadline(self, escrow_id: int, depositor: str) -> TransactionOutcome:
        return await self._invoke(
            "emergency_refund_after_deadline", depositor, escrow_id=escrow_id, depositor=depositor
        )

    async def extend_deadline(self, escrow_id: int, extra_seconds: int, depositor: str) -> TransactionOutcome:
        if not 0 < extra_seconds <= MAX_DEADLINE_EXTENSION_SECONDS:
            raise ValidationError(
                f"extra_seconds must be between 1 and {MAX_DEADLINE_EXTENSION_SECONDS}"
            )
        return await self._invoke(
            "extend_deadline",
            depositor,
            escrow_id=escrow_id,
            extra_seconds=extra_seconds,
            depositor=depositor,
        )

    async def apply_to_job(
        self,
        escrow_id: int,
        cover_letter: str,
        freelancer: str,
        proposed_timeline: Optional[int] = None,
    ) -> TransactionOutcome:
        # 0 leaves the timeline open
        return await self._invoke(
            "apply_to_job",
            freelancer,
            escrow_id=escrow_id,
            cover_letter=cover_letter,
            proposed_timeline=proposed_timeline or 0,
            freelancer=freelancer,
        )

    async def accept_freelancer(self, escrow_id: int, freelancer: str, depositor: str) -> TransactionOutcome:
        return await self._invoke(
            "accept_freelancer",
            depositor,
            escrow_id=escrow_id,
            freelancer=freelancer,
            depositor=depositor,
        )

    async def pause_job_creation(self, identity: str) -> TransactionOutcome:
        return await self._invoke("pause_job_creation", identity)

    async def unpause_job_creation(self, identity: str) -> TransactionOutcome:
        return await self._invoke("unpause_job_creation", identity)

    @staticmethod
    def _check_fee(fee_bp: int) -> None:
        if not 0 <= fee_bp <= MAX_PLATFORM_FEE_BP:
            raise ValidationError(f"Platform fee must be between 0 and {MAX_PLATFORM_FEE_BP} basis points")

    async def set_platform_fee_bp(self, fee_bp: int, identity: str) -> TransactionOutcome:
        self._check_fee(fee_bp)
        return await self._invoke("set_platform_fee_bp", identity, fee_bp=fee_bp)

    async def set_fee_collector(self, fee_collector: str, identity: str) -> TransactionOutcome:
        return await self._invoke("set_fee_collector", identity, fee_collector=fee_collector)

    async def set_owner(self, new_owner: str, identity: str) -> TransactionOutcome:
        return await self._invoke("set_owner", identity, new_owner=new_owner)

    async def whitelist_token(self, token: str, identity: str) -> TransactionOutcome:
        return await self._invoke("whitelist_token", identity, token=token)

    async def authorize_arbiter(self, arbiter: str, identity: str) -> TransactionOutcome:
        return await self._invoke("authorize_arbiter", identity, arbiter=arbiter)

    async def submit_rating(self, escrow_id: int, rating: int, review: str, client: str) -> TransactionOutcome:
        if not MIN_RATING <= rating <= MAX_RATING:
            raise ValidationError(f"rating must be between {MIN_RATING} and {MAX_RATING}")
        return await self._invoke(
            "submit_rating", client, escrow_id=escrow_id, rating=rating, review=review, client=client
        )

    # ==================== Read path ====================

    async def _view(self, function: str, **params: Any) -> Optional[LedgerValue]:
        return await self.reader.call_view(function, encode_arguments(function, params))

    async def _view_decoded(self, function: str, kind: KindSpec, default: Any = None, **params: Any) -> Any:
        value = await self._view(function, **params)
        if _is_void(value):
            return default
        return decode(value, kind)

    async def get_escrow(self, escrow_id: int) -> Optional[Escrow]:
        """The escrow with its milestones, or None when it does not exist."""
        escrow = await self.reader.read_entity(escrow_id)
        if escrow is None:
            return None
        return escrow.with_milestones(tuple(await self.get_milestones(escrow_id)))

    async def get_milestones(self, escrow_id: int) -> List[Milestone]:
        value = await self._view("get_milestones", escrow_id=escrow_id)
        if _is_void(value):
            return []
        if not isinstance(value, Vector):
            raise DecodeError(f"get_milestones returned a {value.type_name}, expected a vec")
        return [Milestone.decode(item, index) for index, item in enumerate(value)]

    async def get_milestone(self, escrow_id: int, milestone_index: int) -> Optional[Milestone]:
        value = await self._view("get_milestone", escrow_id=escrow_id, milestone_index=milestone_index)
        if _is_void(value):
            return None
        return Milestone.decode(value, milestone_index)

    async def _annotate(self, application: Application) -> Application:
        badge, rating = await asyncio.gather(
            self.get_badge(application.freelancer),
            self.get_average_rating(application.freelancer),
            return_exceptions=True,
        )
        for name, result in (("badge", badge), ("rating", rating)):
            if isinstance(result, BaseException):
                if not isinstance(result, LedgerError):
                    raise result
                logger.warning(
                    f"No {name} for {application.freelancer}: {result}",
                    extra={"event": "escrow.annotation_failed", "freelancer": application.freelancer},
                )
        return Application(
            freelancer=application.freelancer,
            cover_letter=application.cover_letter,
            proposed_timeline=application.proposed_timeline,
            applied_at=application.applied_at,
            badge=None if isinstance(badge, BaseException) else badge,
            rating=None if isinstance(rating, BaseException) else rating,
        )

    async def get_applications(self, escrow_id: int, annotate: bool = True) -> List[Application]:
        """
        Applications to an open job, annotated with each freelancer's badge
        and rating.

        When the view call fails the applications are read from contract
        storage instead.
        """
        try:
            value = await self._view("get_applications", escrow_id=escrow_id)
            if _is_void(value):
                applications = []
            elif isinstance(value, Vector):
                applications = [Application.decode(item) for item in value]
            else:
                raise DecodeError(f"get_applications returned a {value.type_name}, expected a vec")
        except (RpcError, DecodeError) as e:
            logger.warning(
                f"get_applications failed for escrow {escrow_id}, scanning storage: {e}",
                extra={"event": "escrow.applications_fallback", "escrow_id": escrow_id},
            )
            applications = await self.storage.scan_applications(escrow_id)

        if not annotate or not applications:
            return applications
        return list(await asyncio.gather(*(self._annotate(a) for a in applications)))

    async def get_application(self, escrow_id: int, freelancer: str) -> Optional[Application]:
        value = await self._view("get_application", escrow_id=escrow_id, freelancer=freelancer)
        if _is_void(value):
            return None
        return Application.decode(value)

    async def has_applied(self, escrow_id: int, freelancer: str) -> bool:
        try:
            return await self._view_decoded("has_applied", BOOL, False, escrow_id=escrow_id, freelancer=freelancer)
        except (RpcError, DecodeError) as e:
            logger.warning(
                f"has_applied failed for escrow {escrow_id}, checking applications: {e}",
                extra={"event": "escrow.has_applied_fallback", "escrow_id": escrow_id},
            )
        applications = await self.get_applications(escrow_id, annotate=False)
        return any(a.freelancer == freelancer for a in applications)

    async def discover_highest_id(self, upper_bound: Optional[int] = None) -> int:
        return await self.discovery.find_highest_existing_id(upper_bound or self.settings.discovery_upper_bound)

    async def next_escrow_id(self) -> int:
        """
        ID the next created escrow will get.

        Reads the contract's counter; falls back to discovery (highest
        existing ID + 1) when storage cannot be read.
        """
        try:
            return await self.storage.next_escrow_id()
        except (RpcError, AbsentEntity, DecodeError) as e:
            logger.warning(
                f"Escrow counter unreadable, falling back to discovery: {e}",
                extra={"event": "escrow.counter_fallback"},
            )
        return await self.discover_highest_id() + 1

    async def get_badge(self, freelancer: str) -> Badge:
        value = await self._view("get_badge", freelancer=freelancer)
        if _is_void(value):
            raise ProtocolError("get_badge returned no value", details={"freelancer": freelancer})
        return badge_from(value)

    async def get_average_rating(self, freelancer: str) -> RatingSummary:
        value = await self._view("get_average_rating", freelancer=freelancer)
        if _is_void(value):
            return RatingSummary(total=0, count=0)
        return RatingSummary.decode(value)

    async def get_rating(self, escrow_id: int) -> Optional[Rating]:
        value = await self._view("get_rating", escrow_id=escrow_id)
        if _is_void(value):
            return None
        return Rating.decode(value)

    async def get_owner(self) -> str:
        owner = await self._view_decoded("get_owner", ADDRESS)
        if owner is None:
            raise ProtocolError("get_owner returned no value")
        return owner

    async def is_job_creation_paused(self) -> bool:
        return await self._view_decoded("is_job_creation_paused", BOOL, False)

    async def get_user_escrows(self, user: str) -> List[int]:
        return await self._view_decoded("get_user_escrows", vec_of(U32_KIND), [], user=user)

    async def get_reputation(self, user: str) -> int:
        return await self._view_decoded("get_reputation", U32_KIND, 0, user=user)

    async def get_completed_escrows(self, user: str) -> int:
        return await self._view_decoded("get_completed_escrows", U32_KIND, 0, user=user)

    async def is_authorized_arbiter(self, arbiter: str) -> bool:
        return await self._view_decoded("is_authorized_arbiter", BOOL, False, arbiter=arbiter)

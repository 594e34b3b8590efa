"""
Domain models for the escrow marketplace contract.

Each model declares the record kind it is decoded from and a ``from_record``
constructor over the decoded dict. Amounts stay base-10 strings of base
units; use ``decentpay.core.units`` for display conversion.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from decentpay.codec.value_codec import (
    ADDRESS,
    BOOL,
    I128_KIND,
    STRING,
    U32_KIND,
    U64_KIND,
    decode,
    decode_record,
    enum_of,
    option_of,
    record_of,
    tuple_of,
    vec_of,
)
from decentpay.core.ledger_exceptions import DecodeError
from decentpay.core.units import from_base_units


class EscrowStatus(Enum):
    PENDING = 0
    ACTIVE = 1
    COMPLETED = 2
    DISPUTED = 3
    REFUNDED = 4
    EXPIRED = 5


class MilestoneStatus(Enum):
    PENDING = 0
    SUBMITTED = 1
    APPROVED = 2
    REJECTED = 3
    DISPUTED = 4
    RESOLVED = 5


class Badge(Enum):
    BEGINNER = 0
    INTERMEDIATE = 1
    ADVANCED = 2
    EXPERT = 3


# Variant names follow the contract; integer codes follow the domain enums.
ESCROW_STATUS_KIND = enum_of(
    "Pending", "InProgress", "Released", "Refunded", "Disputed", "Expired",
    aliases={"Active": "InProgress", "Completed": "Released"},
    ordinals=("Pending", "InProgress", "Released", "Disputed", "Refunded", "Expired"),
)
MILESTONE_STATUS_KIND = enum_of(
    "NotStarted", "Submitted", "Approved", "Disputed", "Resolved", "Rejected",
    aliases={"Pending": "NotStarted"},
    ordinals=("NotStarted", "Submitted", "Approved", "Rejected", "Disputed", "Resolved"),
)
BADGE_KIND = enum_of("Beginner", "Intermediate", "Advanced", "Expert")

_ESCROW_STATUS = {
    "Pending": EscrowStatus.PENDING,
    "InProgress": EscrowStatus.ACTIVE,
    "Released": EscrowStatus.COMPLETED,
    "Refunded": EscrowStatus.REFUNDED,
    "Disputed": EscrowStatus.DISPUTED,
    "Expired": EscrowStatus.EXPIRED,
}
_MILESTONE_STATUS = {
    "NotStarted": MilestoneStatus.PENDING,
    "Submitted": MilestoneStatus.SUBMITTED,
    "Approved": MilestoneStatus.APPROVED,
    "Disputed": MilestoneStatus.DISPUTED,
    "Resolved": MilestoneStatus.RESOLVED,
    "Rejected": MilestoneStatus.REJECTED,
}
_BADGE = {
    "Beginner": Badge.BEGINNER,
    "Intermediate": Badge.INTERMEDIATE,
    "Advanced": Badge.ADVANCED,
    "Expert": Badge.EXPERT,
}

MILESTONE_KIND = record_of(
    ("description", STRING),
    ("amount", I128_KIND),
    ("status", MILESTONE_STATUS_KIND),
    ("submitted_at", U64_KIND, False),
    ("approved_at", U64_KIND, False),
    ("disputed_at", U64_KIND, False),
    ("disputed_by", option_of(ADDRESS), False),
    ("dispute_reason", option_of(STRING), False),
    ("rejection_reason", option_of(STRING), False),
    ("resolved_at", U64_KIND, False),
    ("resolved_by", option_of(ADDRESS), False),
    ("resolution_amount", option_of(I128_KIND), False),
)

ESCROW_KIND = record_of(
    ("depositor", ADDRESS),
    ("beneficiary", option_of(ADDRESS), False),
    ("arbiters", vec_of(ADDRESS), False),
    ("required_confirmations", U32_KIND, False),
    ("token", option_of(ADDRESS), False),
    ("total_amount", I128_KIND, False),
    ("paid_amount", I128_KIND, False),
    ("platform_fee", I128_KIND, False),
    ("deadline", U64_KIND, False),
    ("status", ESCROW_STATUS_KIND, False),
    ("work_started", BOOL, False),
    ("created_at", U64_KIND, False),
    ("milestone_count", U32_KIND, False),
    ("is_open_job", BOOL, False),
    ("project_title", STRING, False),
    ("project_description", STRING, False),
)

APPLICATION_KIND = record_of(
    ("freelancer", ADDRESS),
    ("cover_letter", STRING, False),
    ("proposed_timeline", U32_KIND, False),
    ("applied_at", U64_KIND, False),
)

RATING_KIND = record_of(
    ("escrow_id", U32_KIND),
    ("freelancer", ADDRESS),
    ("client", ADDRESS),
    ("rating", U32_KIND),
    ("review", STRING, False),
    ("rated_at", U64_KIND, False),
)

AVERAGE_RATING_KIND = tuple_of(U32_KIND, U32_KIND)


def _timestamp(value: Optional[int]) -> Optional[int]:
    # the contract stores 0 for "not yet"
    return value or None


def _extra(record: Dict[str, Any], kind) -> Dict[str, Any]:
    known = {f.name for f in kind.fields}
    return {k: v for k, v in record.items() if k not in known}


def _require(record: Dict[str, Any], name: str, entity: str) -> Any:
    value = record.get(name)
    if value is None:
        raise DecodeError(f"{entity} record has no {name!r}")
    return value


def escrow_status_from(raw: Any) -> EscrowStatus:
    return _ESCROW_STATUS[decode(raw, ESCROW_STATUS_KIND)]


def milestone_status_from(raw: Any) -> MilestoneStatus:
    return _MILESTONE_STATUS[decode(raw, MILESTONE_STATUS_KIND)]


def badge_from(raw: Any) -> Badge:
    return _BADGE[decode(raw, BADGE_KIND)]


@dataclass(frozen=True)
class Milestone:
    index: int
    description: str
    amount: str
    status: MilestoneStatus
    submitted_at: Optional[int] = None
    approved_at: Optional[int] = None
    disputed_at: Optional[int] = None
    disputed_by: Optional[str] = None
    dispute_reason: Optional[str] = None
    rejection_reason: Optional[str] = None
    resolved_at: Optional[int] = None
    resolved_by: Optional[str] = None
    resolution_amount: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict, compare=False)

    @classmethod
    def from_record(cls, record: Dict[str, Any], index: int) -> "Milestone":
        return cls(
            index=index,
            description=record["description"],
            amount=record["amount"],
            status=_MILESTONE_STATUS[record["status"]],
            submitted_at=_timestamp(record.get("submitted_at")),
            approved_at=_timestamp(record.get("approved_at")),
            disputed_at=_timestamp(record.get("disputed_at")),
            disputed_by=record.get("disputed_by"),
            dispute_reason=record.get("dispute_reason"),
            rejection_reason=record.get("rejection_reason"),
            resolved_at=_timestamp(record.get("resolved_at")),
            resolved_by=record.get("resolved_by"),
            resolution_amount=record.get("resolution_amount"),
            extra=_extra(record, MILESTONE_KIND),
        )

    @classmethod
    def decode(cls, raw: Any, index: int) -> "Milestone":
        return cls.from_record(decode_record(raw, MILESTONE_KIND), index)


@dataclass(frozen=True)
class Escrow:
    id: int
    depositor: str
    beneficiary: Optional[str]
    status: EscrowStatus
    token: Optional[str]
    total_amount: str
    paid_amount: str
    created_at: Optional[int]
    deadline: Optional[int]
    project_title: str
    project_description: str
    is_open_job: bool
    milestones: Tuple[Milestone, ...] = ()
    arbiters: Tuple[str, ...] = ()
    required_confirmations: Optional[int] = None
    platform_fee: Optional[str] = None
    work_started: Optional[bool] = None
    milestone_count: Optional[int] = None
    extra: Dict[str, Any] = field(default_factory=dict, compare=False)

    @classmethod
    def from_record(cls, escrow_id: int, record: Dict[str, Any]) -> "Escrow":
        return cls(
            id=escrow_id,
            depositor=record["depositor"],
            beneficiary=record.get("beneficiary"),
            status=_ESCROW_STATUS[_require(record, "status", "Escrow")],
            token=record.get("token"),
            total_amount=_require(record, "total_amount", "Escrow"),
            paid_amount=record.get("paid_amount") or "0",
            created_at=_timestamp(record.get("created_at")),
            deadline=_timestamp(record.get("deadline")),
            project_title=record.get("project_title") or "",
            project_description=record.get("project_description") or "",
            is_open_job=bool(record.get("is_open_job")),
            arbiters=tuple(record.get("arbiters") or ()),
            required_confirmations=record.get("required_confirmations"),
            platform_fee=record.get("platform_fee"),
            work_started=record.get("work_started"),
            milestone_count=record.get("milestone_count"),
            extra=_extra(record, ESCROW_KIND),
        )

    @classmethod
    def decode(cls, escrow_id: int, raw: Any) -> "Escrow":
        """Decode an escrow record; raises AbsentEntity when it does not exist."""
        return cls.from_record(escrow_id, decode_record(raw, ESCROW_KIND))

    def with_milestones(self, milestones: Tuple[Milestone, ...]) -> "Escrow":
        return replace(self, milestones=tuple(milestones))

    @property
    def is_native_token(self) -> bool:
        return self.token is None

    @property
    def remaining_amount(self) -> str:
        return str(int(self.total_amount) - int(self.paid_amount))

    @property
    def total_display(self) -> Decimal:
        return from_base_units(self.total_amount)


@dataclass(frozen=True)
class RatingSummary:
    total: int
    count: int

    @property
    def average(self) -> Optional[Decimal]:
        if not self.count:
            return None
        return (Decimal(self.total) / Decimal(self.count)).quantize(Decimal("0.01"))

    @classmethod
    def decode(cls, raw: Any) -> "RatingSummary":
        total, count = decode(raw, AVERAGE_RATING_KIND)
        return cls(total=total, count=count)


@dataclass(frozen=True)
class Application:
    freelancer: str
    cover_letter: str
    proposed_timeline: Optional[int]
    applied_at: Optional[int]
    badge: Optional[Badge] = None
    rating: Optional[RatingSummary] = None

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "Application":
        return cls(
            freelancer=record["freelancer"],
            cover_letter=record.get("cover_letter") or "",
            # 0 means the freelancer left it open
            proposed_timeline=record.get("proposed_timeline") or None,
            applied_at=_timestamp(record.get("applied_at")),
        )

    @classmethod
    def decode(cls, raw: Any) -> "Application":
        return cls.from_record(decode_record(raw, APPLICATION_KIND))


@dataclass(frozen=True)
class Rating:
    escrow_id: int
    freelancer: str
    client: str
    rating: int
    review: str
    rated_at: Optional[int]

    @classmethod
    def decode(cls, raw: Any) -> "Rating":
        record = decode_record(raw, RATING_KIND)
        return cls(
            escrow_id=record["escrow_id"],
            freelancer=record["freelancer"],
            client=record["client"],
            rating=record["rating"],
            review=record.get("review") or "",
            rated_at=_timestamp(record.get("rated_at")),
        )

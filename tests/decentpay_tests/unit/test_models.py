"""
Tests for the escrow marketplace domain models.
"""

from decimal import Decimal

import pytest

from decentpay.codec.ledger_value import Map, String, Symbol, U32, Vector
from decentpay.codec.value_codec import encode
from decentpay.contracts.models import (
    APPLICATION_KIND,
    RATING_KIND,
    Application,
    Badge,
    Escrow,
    EscrowStatus,
    Milestone,
    MilestoneStatus,
    Rating,
    RatingSummary,
    badge_from,
    escrow_status_from,
    milestone_status_from,
)
from decentpay.core.ledger_exceptions import AbsentEntity, DecodeError
from decentpay_tests.fakes import ARBITER, DEPOSITOR, FREELANCER, TOKEN, escrow_record, milestone_record


class TestStatusMapping:
    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("Pending", EscrowStatus.PENDING),
            ("InProgress", EscrowStatus.ACTIVE),
            ("Active", EscrowStatus.ACTIVE),
            ("Released", EscrowStatus.COMPLETED),
            ("Completed", EscrowStatus.COMPLETED),
            ("Refunded", EscrowStatus.REFUNDED),
            ("Disputed", EscrowStatus.DISPUTED),
            ("Expired", EscrowStatus.EXPIRED),
            (Vector((Symbol("Released"),)), EscrowStatus.COMPLETED),
            (1, EscrowStatus.ACTIVE),
        ],
    )
    def test_escrow_status(self, raw, expected):
        assert escrow_status_from(raw) is expected

    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("NotStarted", MilestoneStatus.PENDING),
            ("Pending", MilestoneStatus.PENDING),
            ("Submitted", MilestoneStatus.SUBMITTED),
            ("Rejected", MilestoneStatus.REJECTED),
            (3, MilestoneStatus.REJECTED),
            (5, MilestoneStatus.RESOLVED),
        ],
    )
    def test_milestone_status(self, raw, expected):
        assert milestone_status_from(raw) is expected

    @pytest.mark.parametrize("status", list(EscrowStatus))
    def test_escrow_integer_codes(self, status):
        assert escrow_status_from(status.value) is status
        assert escrow_status_from(U32(status.value)) is status
        assert escrow_status_from({"u32": status.value}) is status

    @pytest.mark.parametrize("status", list(MilestoneStatus))
    def test_milestone_integer_codes(self, status):
        assert milestone_status_from(status.value) is status
        assert milestone_status_from(U32(status.value)) is status

    def test_disputed_code(self):
        assert escrow_status_from(3) is EscrowStatus.DISPUTED
        assert escrow_status_from(4) is EscrowStatus.REFUNDED

    def test_integer_code_out_of_range(self):
        with pytest.raises(DecodeError):
            escrow_status_from(6)

    def test_escrow_record_with_integer_status(self):
        record = escrow_record()
        raw = Map(tuple((key, U32(3)) if key == Symbol("status") else (key, value) for key, value in record.entries))

        escrow = Escrow.decode(2, raw)

        assert escrow.status is EscrowStatus.DISPUTED

    def test_badge(self):
        assert badge_from(Vector((Symbol("Expert"),))) is Badge.EXPERT
        assert badge_from("beginner") is Badge.BEGINNER

    def test_unknown_status(self):
        with pytest.raises(DecodeError):
            escrow_status_from("Cancelled")


class TestEscrow:
    def test_decode(self):
        escrow = Escrow.decode(3, escrow_record(status="Released", paid_amount=2_500_000_000, arbiters=[ARBITER]))

        assert escrow.id == 3
        assert escrow.depositor == DEPOSITOR
        assert escrow.beneficiary == FREELANCER
        assert escrow.status is EscrowStatus.COMPLETED
        assert escrow.arbiters == (ARBITER,)
        assert escrow.total_amount == "10000000000"
        assert escrow.remaining_amount == "7500000000"
        assert escrow.total_display == Decimal("1000")
        assert escrow.is_native_token
        assert escrow.milestones == ()
        assert escrow.created_at == 1_700_000_000
        assert escrow.deadline == 1_700_086_400

    def test_zero_timestamps_are_none(self):
        escrow = Escrow.decode(1, escrow_record(created_at=0, deadline=0))

        assert escrow.created_at is None
        assert escrow.deadline is None

    def test_open_job_with_token(self):
        escrow = Escrow.decode(1, escrow_record(beneficiary=None, is_open_job=True, token=TOKEN))

        assert escrow.beneficiary is None
        assert escrow.is_open_job
        assert escrow.token == TOKEN
        assert not escrow.is_native_token

    def test_missing_depositor_is_absent(self):
        raw = Map(((Symbol("project_title"), String("x")),))
        with pytest.raises(AbsentEntity):
            Escrow.decode(1, raw)

    def test_unknown_fields_kept(self):
        raw = escrow_record()
        raw = Map(raw.entries + ((Symbol("dispute_window"), U32(86_400)),))

        escrow = Escrow.decode(1, raw)

        assert escrow.extra == {"dispute_window": 86_400}

    def test_with_milestones(self):
        escrow = Escrow.decode(1, escrow_record())
        milestone = Milestone.decode(milestone_record("Design", 6_000_000_000), 0)

        assert escrow.with_milestones((milestone,)).milestones == (milestone,)


class TestMilestone:
    def test_zero_timestamps_are_none(self):
        milestone = Milestone.decode(milestone_record("Design", 6_000_000_000), 0)

        assert milestone.index == 0
        assert milestone.amount == "6000000000"
        assert milestone.status is MilestoneStatus.PENDING
        assert milestone.submitted_at is None
        assert milestone.approved_at is None
        assert milestone.disputed_by is None

    def test_dispute_fields(self):
        raw = milestone_record(
            "Build",
            4_000_000_000,
            status="Resolved",
            disputed_at=1_700_000_500,
            disputed_by=DEPOSITOR,
            dispute_reason="late",
            resolved_by=ARBITER,
            resolution_amount=1_000_000_000,
        )

        milestone = Milestone.decode(raw, 1)

        assert milestone.status is MilestoneStatus.RESOLVED
        assert milestone.disputed_at == 1_700_000_500
        assert milestone.disputed_by == DEPOSITOR
        assert milestone.dispute_reason == "late"
        assert milestone.resolved_by == ARBITER
        assert milestone.resolution_amount == "1000000000"


class TestApplicationAndRating:
    def test_application(self):
        raw = encode(
            {"freelancer": FREELANCER, "cover_letter": "Hire me", "proposed_timeline": 0, "applied_at": 9},
            APPLICATION_KIND,
        )

        application = Application.decode(raw)

        assert application.freelancer == FREELANCER
        assert application.cover_letter == "Hire me"
        assert application.proposed_timeline is None
        assert application.badge is None
        assert application.applied_at == 9

    def test_application_zero_applied_at(self):
        raw = encode(
            {"freelancer": FREELANCER, "cover_letter": "", "proposed_timeline": 3, "applied_at": 0},
            APPLICATION_KIND,
        )

        assert Application.decode(raw).applied_at is None

    def test_rating(self):
        raw = encode(
            {
                "escrow_id": 4,
                "freelancer": FREELANCER,
                "client": DEPOSITOR,
                "rating": 5,
                "review": "Great",
                "rated_at": 10,
            },
            RATING_KIND,
        )

        rating = Rating.decode(raw)

        assert rating.escrow_id == 4
        assert rating.rating == 5
        assert rating.client == DEPOSITOR

    def test_rating_summary(self):
        summary = RatingSummary.decode(Vector((U32(14), U32(3))))

        assert summary == RatingSummary(total=14, count=3)
        assert summary.average == Decimal("4.67")

    def test_empty_rating_summary(self):
        assert RatingSummary(total=0, count=0).average is None

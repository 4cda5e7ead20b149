"""Unit tests for lazy expiry predicates and eligibility rules."""

from datetime import datetime, timedelta

import pytest

from hostmatch.models import ClaimStatus, InvitationStatus, ManagementInvitation, ReassignmentToken, RequestClaim
from hostmatch.schemas.eligibility import HostStats
from hostmatch.services.eligibility import LOSS_OF_USE_RULE, EligibilityRule
from hostmatch.services.expiry import claim_is_lapsed, invitation_is_lapsed, is_past, token_is_lapsed

NOW = datetime(2030, 1, 1, 12, 0, 0)


def test_is_past_is_strict():
    assert is_past(NOW - timedelta(seconds=1), NOW)
    assert not is_past(NOW, NOW)
    assert not is_past(NOW + timedelta(seconds=1), NOW)
    assert not is_past(None, NOW)


@pytest.mark.parametrize(
    "status,lapsed",
    [
        (ClaimStatus.PENDING_CAR, True),
        (ClaimStatus.CAR_SELECTED, False),
        (ClaimStatus.RELEASED, False),
        (ClaimStatus.EXPIRED, False),
    ],
)
def test_only_pending_claims_lapse(status, lapsed):
    claim = RequestClaim(status=status, claim_expires_at=NOW - timedelta(minutes=1))
    assert claim_is_lapsed(claim, NOW) is lapsed


@pytest.mark.parametrize(
    "status,lapsed",
    [
        (InvitationStatus.PENDING, True),
        (InvitationStatus.COUNTER_OFFERED, True),
        (InvitationStatus.ACCEPTED, False),
        (InvitationStatus.DECLINED, False),
    ],
)
def test_only_open_invitations_lapse(status, lapsed):
    invitation = ManagementInvitation(status=status, expires_at=NOW - timedelta(days=1))
    assert invitation_is_lapsed(invitation, NOW) is lapsed


def test_consumed_token_never_lapses():
    token = ReassignmentToken(expires_at=NOW - timedelta(hours=1), consumed_at=NOW - timedelta(hours=2))
    assert not token_is_lapsed(token, NOW)

    token.consumed_at = None
    assert token_is_lapsed(token, NOW)


@pytest.mark.parametrize(
    "days,trips,claims,eligible,path",
    [
        (30, 10, 0, True, "primary"),
        (29, 10, 0, False, None),
        (30, 9, 0, False, None),
        (5, 25, 0, True, "alternate"),
        (400, 100, 1, False, None),
        (0, 0, 0, False, None),
    ],
)
def test_loss_of_use_rule(days, trips, claims, eligible, path):
    result = LOSS_OF_USE_RULE.evaluate(HostStats(days_active=days, completed_trips=trips, at_fault_claims=claims))
    assert result.eligible is eligible
    assert result.path == path
    assert bool(result.reasons) is not eligible


def test_clean_record_gate_checked_first():
    rule = EligibilityRule(min_days_active=0, min_trips=0, alternate_min_trips=0, max_at_fault_claims=1)
    result = rule.evaluate(HostStats(days_active=0, completed_trips=0, at_fault_claims=2))
    assert not result.eligible
    assert "at-fault" in result.reasons[0]

"""Threshold-based eligibility rules for host programs."""

from typing import NamedTuple

from ..schemas.eligibility import HostStats


class EligibilityResult(NamedTuple):
    eligible: bool
    path: str | None
    reasons: list[str]


class EligibilityRule(NamedTuple):
    """
    Two-path eligibility gate.

    A host qualifies when the clean-record gate holds and either the primary
    path (enough days active and enough trips) or the alternate path (enough
    trips alone) is met.
    """

    min_days_active: int
    min_trips: int
    alternate_min_trips: int
    max_at_fault_claims: int = 0

    def evaluate(self, stats: HostStats) -> EligibilityResult:
        reasons: list[str] = []

        if stats.at_fault_claims > self.max_at_fault_claims:
            reasons.append(
                f"at-fault claims {stats.at_fault_claims} exceed the allowed {self.max_at_fault_claims}"
            )
            return EligibilityResult(eligible=False, path=None, reasons=reasons)

        if stats.days_active >= self.min_days_active and stats.completed_trips >= self.min_trips:
            return EligibilityResult(eligible=True, path="primary", reasons=[])

        if stats.completed_trips >= self.alternate_min_trips:
            return EligibilityResult(eligible=True, path="alternate", reasons=[])

        if stats.days_active < self.min_days_active:
            reasons.append(f"needs {self.min_days_active} days active, has {stats.days_active}")
        if stats.completed_trips < self.min_trips:
            reasons.append(f"needs {self.min_trips} completed trips, has {stats.completed_trips}")
        reasons.append(
            f"or {self.alternate_min_trips} completed trips regardless of tenure, has {stats.completed_trips}"
        )
        return EligibilityResult(eligible=False, path=None, reasons=reasons)


# Loss-of-use protection: 30 days and 10 trips, or 25 trips, with a clean record
LOSS_OF_USE_RULE = EligibilityRule(
    min_days_active=30,
    min_trips=10,
    alternate_min_trips=25,
    max_at_fault_claims=0,
)

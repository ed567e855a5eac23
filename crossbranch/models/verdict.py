"""Data models for validation verdicts."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, FrozenSet, List, Optional


class Verdict(Enum):
    """Single validation outcome for a PR in one reconciliation pass."""
    PASS = "PASS"
    PASS_OVERRIDE = "PASS_OVERRIDE"
    WARN_IMBALANCE = "WARN_IMBALANCE"
    FAIL_MISSING = "FAIL_MISSING"
    FAIL_MISMATCH = "FAIL_MISMATCH"
    PENDING = "PENDING"

    @property
    def allows_merge(self) -> bool:
        return self in (Verdict.PASS, Verdict.PASS_OVERRIDE, Verdict.WARN_IMBALANCE)

    @property
    def is_failure(self) -> bool:
        return self in (Verdict.FAIL_MISSING, Verdict.FAIL_MISMATCH)


class OverrideStatus(Enum):
    """Outcome of checking a PR's override claim."""
    NONE = "none"
    PENDING_JUSTIFICATION = "pending_justification"
    REJECTED_UNAUTHORIZED = "rejected_unauthorized"
    GRANTED = "granted"


@dataclass
class OverrideDecision:
    """Override status plus who applied the label."""
    status: OverrideStatus
    actor: Optional[str] = None
    justification: Optional[str] = None


@dataclass
class Assessment:
    """Everything that went into one PR's verdict."""
    pr_number: int
    branch: str
    comparison_branch: str
    references: FrozenSet[int]
    verdict: Verdict
    matching_prs: List[int] = field(default_factory=list)
    uncovered: FrozenSet[int] = frozenset()
    counts: Dict[int, Dict[str, int]] = field(default_factory=dict)  # ref -> branch -> n
    imbalance: int = 0
    override: OverrideDecision = field(
        default_factory=lambda: OverrideDecision(OverrideStatus.NONE)
    )
    pending_on: List[int] = field(default_factory=list)  # Siblings mid-evaluation

    def prs_on(self, branch: str) -> int:
        """Highest per-issue PR count on ``branch``."""
        return max((c.get(branch, 0) for c in self.counts.values()), default=0)

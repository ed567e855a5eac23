"""Data models for coverage groups and matching policy."""

from dataclasses import dataclass, field
from typing import Dict, FrozenSet, List

from .change_request import ChangeRequest, PRState


@dataclass(frozen=True)
class MatchPolicy:
    """
    How a comparison branch must cover a PR's references.

    require_exact_match: reference sets must be equal instead of superset
    distributed: coverage may be spread over several PRs (the union of
        their references is compared) instead of needing one PR
    """
    require_exact_match: bool = True
    distributed: bool = True


@dataclass(frozen=True)
class InclusionFilter:
    """Which PR lifecycle states count towards coverage."""
    include_drafts: bool = False
    include_closed: bool = False
    include_merged: bool = False

    def admits(self, pr: ChangeRequest) -> bool:
        if pr.state == PRState.OPEN:
            return True
        if pr.state == PRState.DRAFT:
            return self.include_drafts
        if pr.state == PRState.CLOSED:
            return self.include_closed
        if pr.state == PRState.MERGED:
            return self.include_merged
        return False


@dataclass
class CoverageGroup:
    """
    All PRs connected to the triggering PR by shared references.

    Recomputed on every pass and never persisted.
    """
    references: FrozenSet[int]
    branches: Dict[str, List[ChangeRequest]]      # Eligible PRs per branch
    members: Dict[int, ChangeRequest] = field(default_factory=dict)  # Every PR found
    member_refs: Dict[int, FrozenSet[int]] = field(default_factory=dict)

    def refs_of(self, pr_number: int) -> FrozenSet[int]:
        return self.member_refs.get(pr_number, frozenset())

    def eligible(self, branch: str) -> List[ChangeRequest]:
        return self.branches.get(branch, [])

    def candidates(self, branch: str, references: FrozenSet[int]) -> List[ChangeRequest]:
        """Eligible PRs on ``branch`` sharing at least one reference."""
        return [
            pr for pr in self.eligible(branch)
            if self.refs_of(pr.number) & references
        ]

    def counts_for(self, reference: int) -> Dict[str, int]:
        """Number of eligible PRs per branch declaring ``reference``."""
        return {
            branch: sum(1 for pr in prs if reference in self.refs_of(pr.number))
            for branch, prs in self.branches.items()
        }

    def is_eligible(self, pr_number: int) -> bool:
        return any(
            pr.number == pr_number
            for prs in self.branches.values()
            for pr in prs
        )


@dataclass
class CoverageMatch:
    """Matching policy result for one PR."""
    covered: bool
    matching_prs: List[int] = field(default_factory=list)
    uncovered: FrozenSet[int] = frozenset()
    has_candidates: bool = False

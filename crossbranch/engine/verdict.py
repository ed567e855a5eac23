"""Verdict decision lattice."""

from typing import Collection, Dict, List, Mapping, Optional

from ..config import ValidationConfig
from ..models import (
    Assessment,
    ChangeRequest,
    CoverageGroup,
    CoverageMatch,
    OverrideDecision,
    OverrideStatus,
    Verdict,
)
from .imbalance import evaluate_imbalance, imbalance_warns
from .matching import evaluate_coverage


def decide_verdict(
    match: CoverageMatch,
    warn_imbalance: bool,
    override: OverrideStatus,
    require_exact_match: bool,
    pending: bool = False
) -> Verdict:
    """
    Fold coverage, imbalance, override and coordination into one verdict.

    PENDING wins over everything; an override only lifts a coverage
    failure; imbalance is only looked at once coverage holds.
    """
    if pending:
        return Verdict.PENDING

    if not match.covered:
        if override == OverrideStatus.GRANTED:
            return Verdict.PASS_OVERRIDE
        if match.has_candidates and require_exact_match:
            return Verdict.FAIL_MISMATCH
        return Verdict.FAIL_MISSING

    if warn_imbalance:
        return Verdict.WARN_IMBALANCE

    return Verdict.PASS


def evaluation_targets(
    group: CoverageGroup,
    trigger_number: Optional[int] = None
) -> List[ChangeRequest]:
    """
    PRs that receive a verdict this pass.

    Members declaring a reference in the group that pass the inclusion
    filter, plus the triggering PR whatever its state.
    """
    targets = []
    for number in sorted(group.members):
        refs = group.refs_of(number)
        if not refs or not refs & group.references:
            continue
        if number == trigger_number or group.is_eligible(number):
            targets.append(group.members[number])
    return targets


def assess_change_request(
    pr: ChangeRequest,
    group: CoverageGroup,
    config: ValidationConfig,
    override: Optional[OverrideDecision] = None,
    pending_on: Collection[int] = ()
) -> Assessment:
    """Compute the verdict and its supporting details for one PR."""
    override = override or OverrideDecision(OverrideStatus.NONE)
    refs = group.refs_of(pr.number)
    comparison = config.comparison_branch(pr.branch)

    candidates = {
        candidate.number: group.refs_of(candidate.number)
        for candidate in group.candidates(comparison, refs)
        if candidate.number != pr.number
    }
    match = evaluate_coverage(refs, candidates, config.match_policy)
    imbalance, counts = evaluate_imbalance(refs, group, config.branches)

    verdict = decide_verdict(
        match,
        warn_imbalance=imbalance_warns(imbalance, config.max_imbalance),
        override=override.status,
        require_exact_match=config.require_exact_match,
        pending=bool(pending_on),
    )

    return Assessment(
        pr_number=pr.number,
        branch=pr.branch,
        comparison_branch=comparison,
        references=refs,
        verdict=verdict,
        matching_prs=match.matching_prs,
        uncovered=match.uncovered,
        counts=counts,
        imbalance=imbalance,
        override=override,
        pending_on=sorted(pending_on),
    )


def assess_group(
    group: CoverageGroup,
    config: ValidationConfig,
    overrides: Mapping[int, OverrideDecision],
    trigger_number: Optional[int] = None,
    in_flight: Collection[int] = ()
) -> Dict[int, Assessment]:
    """
    Assess every PR in the group against the same snapshot.

    Args:
        group: Coverage group for this pass
        config: Validation configuration
        overrides: PR number -> override decision
        trigger_number: PR whose event started the pass
        in_flight: PRs currently claimed by another pass

    Returns:
        PR number -> Assessment, exactly one per evaluated PR
    """
    results: Dict[int, Assessment] = {}
    for pr in evaluation_targets(group, trigger_number):
        refs = group.refs_of(pr.number)
        pending_on = [
            other for other in in_flight
            if other != pr.number and group.refs_of(other) & refs
        ]
        results[pr.number] = assess_change_request(
            pr,
            group,
            config,
            override=overrides.get(pr.number),
            pending_on=pending_on,
        )
    return results

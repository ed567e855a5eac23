"""Matching policy: does a comparison branch cover a PR's references."""

from typing import Dict, FrozenSet, List

from ..models import CoverageMatch, MatchPolicy


def references_match(
    candidate: FrozenSet[int],
    required: FrozenSet[int],
    require_exact_match: bool
) -> bool:
    """Exact mode needs equal sets, superset mode tolerates extra references."""
    if require_exact_match:
        return candidate == required
    return candidate >= required


def evaluate_coverage(
    required: FrozenSet[int],
    candidates: Dict[int, FrozenSet[int]],
    policy: MatchPolicy
) -> CoverageMatch:
    """
    Check whether comparison-branch candidates cover ``required``.

    Args:
        required: References declared by the PR being validated
        candidates: Eligible comparison-branch PR number -> its references.
            Only PRs sharing at least one reference should be passed.
        policy: Matching policy

    Returns:
        CoverageMatch with the PRs that satisfied the policy
    """
    related = {
        number: refs for number, refs in candidates.items()
        if refs & required
    }
    if not related:
        return CoverageMatch(covered=False, uncovered=required, has_candidates=False)

    # Any single PR that matches on its own always covers
    single: List[int] = sorted(
        number for number, refs in related.items()
        if references_match(refs, required, policy.require_exact_match)
    )
    if single:
        return CoverageMatch(covered=True, matching_prs=single, has_candidates=True)

    union: FrozenSet[int] = frozenset().union(*related.values())
    uncovered = required - union

    if not policy.distributed:
        return CoverageMatch(
            covered=False,
            uncovered=uncovered,
            has_candidates=True,
        )

    covered = references_match(union, required, policy.require_exact_match)
    return CoverageMatch(
        covered=covered,
        matching_prs=sorted(related) if covered else [],
        uncovered=uncovered,
        has_candidates=True,
    )

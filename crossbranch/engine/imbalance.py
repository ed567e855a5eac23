"""Branch imbalance scoring."""

from typing import Dict, FrozenSet, Tuple

from ..models import CoverageGroup


def calculate_imbalance(count_a: int, count_b: int) -> int:
    """Absolute difference between per-branch PR counts."""
    return abs(count_a - count_b)


def evaluate_imbalance(
    references: FrozenSet[int],
    group: CoverageGroup,
    branches: Tuple[str, str]
) -> Tuple[int, Dict[int, Dict[str, int]]]:
    """
    Score imbalance for every reference a PR declares.

    Returns:
        (worst imbalance across references, ref -> branch -> PR count)
    """
    first, second = branches
    counts: Dict[int, Dict[str, int]] = {}
    worst = 0
    for ref in sorted(references):
        per_branch = group.counts_for(ref)
        counts[ref] = {
            first: per_branch.get(first, 0),
            second: per_branch.get(second, 0),
        }
        worst = max(worst, calculate_imbalance(counts[ref][first], counts[ref][second]))
    return worst, counts


def imbalance_warns(imbalance: int, max_imbalance: int) -> bool:
    """Imbalance above the threshold is reported, never blocking."""
    return imbalance > max_imbalance

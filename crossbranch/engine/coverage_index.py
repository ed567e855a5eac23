"""Coverage index: group PRs by issue reference and by branch."""

from typing import Dict, FrozenSet, Iterable, Set, Tuple

from ..models import ChangeRequest, CoverageGroup, InclusionFilter
from ..tools.platform import Platform
from ..utils import get_logger
from .references import extract_references


def index_change_requests(
    references: FrozenSet[int],
    change_requests: Iterable[ChangeRequest],
    branches: Tuple[str, str],
    inclusion: InclusionFilter
) -> CoverageGroup:
    """
    Bucket PRs into a coverage group.

    A PR lands in its branch's bucket iff it targets a monitored branch,
    its own references intersect ``references`` and its state passes the
    inclusion filter. Every monitored-branch PR is kept in ``members``.

    Args:
        references: Query reference set
        change_requests: Candidate PRs (duplicates by number are collapsed)
        branches: The monitored branch pair
        inclusion: Lifecycle state filter
    """
    members: Dict[int, ChangeRequest] = {}
    member_refs: Dict[int, FrozenSet[int]] = {}
    for pr in change_requests:
        if pr.branch not in branches or pr.number in members:
            continue
        members[pr.number] = pr
        member_refs[pr.number] = extract_references(pr.text)

    buckets: Dict[str, list] = {branch: [] for branch in branches}
    for number in sorted(members):
        pr = members[number]
        if member_refs[number] & references and inclusion.admits(pr):
            buckets[pr.branch].append(pr)

    return CoverageGroup(
        references=references,
        branches=buckets,
        members=members,
        member_refs=member_refs,
    )


class CoverageIndex:
    """
    Builds the coverage group reachable from a triggering PR.

    Discovery expands to a fixed point: references found on linked PRs are
    queried in the next round, one batched platform call per round.
    """

    def __init__(
        self,
        platform: Platform,
        branches: Tuple[str, str],
        inclusion: InclusionFilter,
        max_rounds: int = 5
    ):
        self.platform = platform
        self.branches = branches
        self.inclusion = inclusion
        self.max_rounds = max_rounds
        self.logger = get_logger()

    async def build(self, trigger: ChangeRequest) -> CoverageGroup:
        """
        Collect every PR connected to ``trigger`` by shared references.

        Args:
            trigger: The PR whose event started the pass

        Returns:
            CoverageGroup over the closure of referenced issues
        """
        found: Dict[int, ChangeRequest] = {trigger.number: trigger}
        queried: Set[int] = set()
        frontier = set(extract_references(trigger.text))
        rounds = 0

        while frontier and rounds < self.max_rounds:
            linked = await self.platform.find_linked_change_requests(frozenset(frontier))
            rounds += 1
            queried |= frontier

            for pr in linked:
                if pr.branch in self.branches:
                    # Keep the trigger as fetched directly
                    found.setdefault(pr.number, pr)

            discovered: Set[int] = set()
            for pr in found.values():
                if pr.branch in self.branches:
                    discovered |= extract_references(pr.text)
            frontier = discovered - queried

        if frontier:
            self.logger.warning(
                f"Stopped group expansion after {rounds} round(s); "
                f"{len(frontier)} reference(s) not queried"
            )

        group = index_change_requests(
            frozenset(queried) or extract_references(trigger.text),
            found.values(),
            self.branches,
            self.inclusion,
        )

        self.logger.info(
            f"Coverage group for PR #{trigger.number}: {len(group.members)} PR(s), "
            f"{len(group.references)} reference(s) in {rounds} batched round(s)"
        )
        return group

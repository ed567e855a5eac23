"""Tests for the coverage index."""

import asyncio

from crossbranch.engine.coverage_index import CoverageIndex, index_change_requests
from crossbranch.models import InclusionFilter, PRState

from conftest import FakePlatform, make_pr

BRANCHES = ("main", "release")


class TestIndexChangeRequests:
    """Tests for bucketing PRs by branch."""

    def test_buckets_by_branch_and_reference(self):
        """Given PRs on both branches, should bucket those sharing a reference."""
        # Given
        prs = [
            make_pr(1, "main", "Fix #1"),
            make_pr(2, "release", "Backport #1"),
            make_pr(3, "release", "Unrelated #9"),
            make_pr(4, "feature-x", "Fix #1 on a feature branch"),
        ]

        # When
        group = index_change_requests(frozenset({1}), prs, BRANCHES, InclusionFilter())

        # Then
        assert [pr.number for pr in group.eligible("main")] == [1]
        assert [pr.number for pr in group.eligible("release")] == [2]
        assert 4 not in group.members

    def test_inclusion_filter(self):
        """Given drafts, closed and merged PRs, should only admit what the filter allows."""
        prs = [
            make_pr(1, "release", "#1", state=PRState.OPEN),
            make_pr(2, "release", "#1", state=PRState.DRAFT),
            make_pr(3, "release", "#1", state=PRState.CLOSED),
            make_pr(4, "release", "#1", state=PRState.MERGED),
        ]

        default = index_change_requests(frozenset({1}), prs, BRANCHES, InclusionFilter())
        everything = index_change_requests(
            frozenset({1}), prs, BRANCHES,
            InclusionFilter(include_drafts=True, include_closed=True, include_merged=True),
        )
        merged_only = index_change_requests(
            frozenset({1}), prs, BRANCHES, InclusionFilter(include_merged=True)
        )

        assert [pr.number for pr in default.eligible("release")] == [1]
        assert [pr.number for pr in everything.eligible("release")] == [1, 2, 3, 4]
        assert [pr.number for pr in merged_only.eligible("release")] == [1, 4]
        # Filtered PRs are still group members
        assert set(default.members) == {1, 2, 3, 4}


class TestCoverageIndex:
    """Tests for group discovery against the platform."""

    def test_single_batched_query_for_all_references(self):
        """Given a PR with three references, should query them in one call."""
        # Given
        trigger = make_pr(1, "main", "Fix #1 #2 #3")
        platform = FakePlatform([
            trigger,
            make_pr(2, "release", "#1 #2 #3"),
        ])
        index = CoverageIndex(platform, BRANCHES, InclusionFilter())

        # When
        group = asyncio.run(index.build(trigger))

        # Then
        assert platform.queries == [frozenset({1, 2, 3})]
        assert set(group.members) == {1, 2}

    def test_expands_to_references_of_siblings(self):
        """Given a sibling declaring another issue, should pull in that issue's PRs."""
        # Given - PR 2 links #1 to #5, PR 3 only mentions #5
        trigger = make_pr(1, "main", "Fix #1")
        platform = FakePlatform([
            trigger,
            make_pr(2, "release", "Backport #1 #5"),
            make_pr(3, "main", "Fix #5"),
        ])
        index = CoverageIndex(platform, BRANCHES, InclusionFilter())

        # When
        group = asyncio.run(index.build(trigger))

        # Then
        assert platform.queries == [frozenset({1}), frozenset({5})]
        assert set(group.members) == {1, 2, 3}
        assert group.references == frozenset({1, 5})

    def test_expansion_is_bounded(self):
        """Given a long chain of references, should stop after max_rounds queries."""
        trigger = make_pr(1, "main", "#1")
        chain = [make_pr(n, "release" if n % 2 else "main", f"#{n - 1} #{n}") for n in range(2, 12)]
        platform = FakePlatform([trigger] + chain)
        index = CoverageIndex(platform, BRANCHES, InclusionFilter(), max_rounds=3)

        asyncio.run(index.build(trigger))

        assert len(platform.queries) == 3

    def test_trigger_always_in_group(self):
        """Given the platform has not indexed the trigger yet, it is still a member."""
        trigger = make_pr(1, "main", "Fix #1")
        platform = FakePlatform([make_pr(2, "release", "#1")])
        index = CoverageIndex(platform, BRANCHES, InclusionFilter())

        group = asyncio.run(index.build(trigger))

        assert set(group.members) == {1, 2}

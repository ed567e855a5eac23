"""Shared fixtures: an in-memory hosting platform.

Only the external platform is faked; the engine runs for real.
"""

import asyncio
import copy
from datetime import datetime, timezone
from typing import Dict, FrozenSet, List, Optional, Set, Tuple

import pytest

from crossbranch.config import ValidationConfig
from crossbranch.engine.references import extract_references
from crossbranch.exceptions import PlatformUnavailableError
from crossbranch.models import ChangeRequest, Comment, LabelEvent, PRState

BOT = "crossbranch-bot"


def make_pr(
    number: int,
    branch: str,
    title: str,
    body: str = "",
    state: PRState = PRState.OPEN,
    labels: Optional[List[str]] = None,
    **kwargs
) -> ChangeRequest:
    """Build a ChangeRequest for tests."""
    return ChangeRequest(
        number=number,
        branch=branch,
        state=state,
        title=title,
        body=body,
        labels=list(labels or []),
        author=kwargs.pop("author", "dev"),
        **kwargs
    )


class FakePlatform:
    """
    In-memory stand-in for GitHub.

    Linked PRs are found by scanning PR text, like GitHub's cross-reference
    events. Every read returns a copy so the engine only sees snapshots.
    """

    def __init__(self, prs: List[ChangeRequest] = (), branches=("main", "release")):
        self.prs: Dict[int, ChangeRequest] = {pr.number: pr for pr in prs}
        self.branches: Set[str] = set(branches)
        self.teams: Dict[Tuple[str, str], Set[str]] = {}
        self.queries: List[FrozenSet[int]] = []
        self.mutations: List[tuple] = []
        self.query_delay: float = 0.0
        self.query_error: Optional[Exception] = None
        self.mutation_error: Optional[Exception] = None
        self.failing_labels: Set[str] = set()
        self.event_window = 100
        self._next_comment_id = 1000

    def add(self, pr: ChangeRequest) -> ChangeRequest:
        self.prs[pr.number] = pr
        return pr

    def labels(self, number: int) -> List[str]:
        return sorted(self.prs[number].labels)

    def comments(self, number: int) -> List[str]:
        return [c.body for c in self.prs[number].comments]

    def snapshot(self) -> Dict[int, tuple]:
        """Labels and comment bodies of every PR."""
        return {
            number: (self.labels(number), self.comments(number))
            for number in sorted(self.prs)
        }

    # Platform interface

    async def get_change_request(self, number: int) -> ChangeRequest:
        if self.query_error:
            raise self.query_error
        return self._read(self.prs[number])

    async def find_linked_change_requests(self, references: FrozenSet[int]) -> List[ChangeRequest]:
        self.queries.append(frozenset(references))
        if self.query_delay:
            await asyncio.sleep(self.query_delay)
        if self.query_error:
            raise self.query_error
        return [
            self._read(pr) for number, pr in sorted(self.prs.items())
            if extract_references(pr.text) & references
        ]

    async def find_label_actor(self, number: int, label: str) -> Optional[str]:
        events = [e for e in self.prs[number].label_events if e.label == label]
        return events[-1].actor if events else None

    async def branch_exists(self, name: str) -> bool:
        return name in self.branches

    async def add_label(self, number: int, label: str) -> None:
        self._check_mutation()
        if label in self.failing_labels:
            raise PlatformUnavailableError(f"add label '{label}'", 4)
        self.mutations.append(("add_label", number, label))
        pr = self.prs[number]
        if label not in pr.labels:
            pr.labels.append(label)
            pr.label_events.append(LabelEvent(label, BOT, datetime.now(timezone.utc)))
        pr.updated_at = datetime.now(timezone.utc)

    async def remove_label(self, number: int, label: str) -> None:
        self._check_mutation()
        self.mutations.append(("remove_label", number, label))
        pr = self.prs[number]
        if label in pr.labels:
            pr.labels.remove(label)
        pr.updated_at = datetime.now(timezone.utc)

    async def create_comment(self, number: int, body: str) -> int:
        self._check_mutation()
        self._next_comment_id += 1
        self.mutations.append(("create_comment", number, self._next_comment_id))
        self.prs[number].comments.append(
            Comment(self._next_comment_id, body, BOT, datetime.now(timezone.utc))
        )
        return self._next_comment_id

    async def update_comment(self, number: int, comment_id: int, body: str) -> None:
        self._check_mutation()
        self.mutations.append(("update_comment", number, comment_id))
        for comment in self.prs[number].comments:
            if comment.comment_id == comment_id:
                comment.body = body

    async def is_team_member(self, org: str, team_slug: str, login: str) -> bool:
        return login in self.teams.get((org, team_slug), set())

    def _read(self, pr: ChangeRequest) -> ChangeRequest:
        """Copy of ``pr`` with only the most recent label events, like the timeline query."""
        snapshot = copy.deepcopy(pr)
        snapshot.label_events = snapshot.label_events[-self.event_window:]
        return snapshot

    def _check_mutation(self):
        if self.mutation_error:
            raise self.mutation_error


@pytest.fixture
def config() -> ValidationConfig:
    return ValidationConfig(
        repo="acme/widgets",
        primary_branch="main",
        release_branch="release",
    )


@pytest.fixture
def platform() -> FakePlatform:
    return FakePlatform()

"""Interface to the hosting platform consumed by the engine."""

from typing import FrozenSet, List, Optional, Protocol

from ..models import ChangeRequest


class Platform(Protocol):
    """
    Narrow view of the hosting platform.

    Implementations own retries: every method either succeeds, raises
    PlatformError for a permanent failure, or PlatformUnavailableError once
    transient failures exhaust their retry budget.
    """

    async def get_change_request(self, number: int) -> ChangeRequest:
        """Fetch a single PR with labels, comments and label events."""
        ...

    async def find_linked_change_requests(
        self,
        references: FrozenSet[int]
    ) -> List[ChangeRequest]:
        """All PRs linked to any of ``references``, in one batched call."""
        ...

    async def find_label_actor(self, number: int, label: str) -> Optional[str]:
        """Actor of the most recent event that applied ``label``, from the full history."""
        ...

    async def branch_exists(self, name: str) -> bool:
        ...

    async def add_label(self, number: int, label: str) -> None:
        ...

    async def remove_label(self, number: int, label: str) -> None:
        ...

    async def create_comment(self, number: int, body: str) -> int:
        """Create a comment and return its id."""
        ...

    async def update_comment(self, number: int, comment_id: int, body: str) -> None:
        ...

    async def is_team_member(self, org: str, team_slug: str, login: str) -> bool:
        """Resolve whether ``login`` belongs to an approver team."""
        ...

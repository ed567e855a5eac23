"""Data models for change requests on the hosting platform."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional


class PRState(Enum):
    """Lifecycle state of a change request."""
    OPEN = "open"
    DRAFT = "draft"
    CLOSED = "closed"     # Closed without merging
    MERGED = "merged"


@dataclass
class Comment:
    """An issue comment on a PR."""
    comment_id: int
    body: str
    author: str = ""
    created_at: Optional[datetime] = None


@dataclass
class LabelEvent:
    """A ``labeled`` event from a PR timeline."""
    label: str
    actor: str
    created_at: Optional[datetime] = None


@dataclass
class ChangeRequest:
    """
    A pull request as seen by the validator.

    Owned by the platform; the engine never changes these fields. Only
    labels and comments are written back, through the synchronizer.
    """
    number: int
    branch: str                   # Target (base) branch
    state: PRState = PRState.OPEN
    title: str = ""
    body: str = ""
    labels: List[str] = field(default_factory=list)
    author: str = ""
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    comments: List[Comment] = field(default_factory=list)
    label_events: List[LabelEvent] = field(default_factory=list)
    url: str = ""

    @property
    def text(self) -> str:
        """Title and body joined for reference extraction."""
        return f"{self.title} {self.body or ''}"

    @property
    def is_writable(self) -> bool:
        """Closed and merged PRs are history and never mutated."""
        return self.state in (PRState.OPEN, PRState.DRAFT)

    def has_label(self, name: str) -> bool:
        return name in self.labels

    def last_labeled_by(self, label: str) -> Optional[str]:
        """Actor of the most recent ``labeled`` event for ``label``."""
        events = [e for e in self.label_events if e.label == label]
        if not events:
            return None
        if all(e.created_at is not None for e in events):
            events.sort(key=lambda e: e.created_at)
        return events[-1].actor

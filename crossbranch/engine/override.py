"""Override authorization."""

from typing import Dict, Optional

from ..config import ValidationConfig
from ..models import ChangeRequest, OverrideDecision, OverrideStatus
from ..tools.comment_renderer import is_engine_comment
from ..tools.platform import Platform
from ..utils import get_logger


def parse_team(entry: str) -> Optional[tuple[str, str]]:
    """Split an ``org/team`` approver entry; plain logins return None."""
    entry = entry.strip().lstrip("@")
    if "/" not in entry:
        return None
    org, _, slug = entry.partition("/")
    if not org or not slug:
        return None
    return org, slug


class OverrideAuthorizer:
    """
    Validates override claims on PRs.

    Rules, in order:
    1. No override label -> NONE
    2. Label applied by someone outside a non-empty allow-list -> REJECTED_UNAUTHORIZED
    3. Justification required but missing -> PENDING_JUSTIFICATION
    4. Otherwise -> GRANTED

    One instance lives for one pass; team lookups are memoized for that pass only.
    """

    def __init__(self, config: ValidationConfig, platform: Optional[Platform] = None):
        self.config = config
        self.platform = platform
        self.logger = get_logger()
        self._membership: Dict[tuple[str, str, str], bool] = {}

    async def authorize(self, pr: ChangeRequest) -> OverrideDecision:
        """Decide the override status for a single PR."""
        label = self.config.override_label
        if not pr.has_label(label):
            return OverrideDecision(OverrideStatus.NONE)

        actor = pr.last_labeled_by(label)
        if actor is None and self.platform is not None:
            # Fetched timeline is a window of recent events only
            actor = await self.platform.find_label_actor(pr.number, label)

        if self.config.allowed_approvers and not await self.is_approver(actor):
            self.logger.warning(
                f"PR #{pr.number}: override label '{label}' applied by "
                f"unauthorized actor {actor or '<unknown>'}"
            )
            return OverrideDecision(OverrideStatus.REJECTED_UNAUTHORIZED, actor=actor)

        justification = self.find_justification(pr)
        if self.config.require_justification and justification is None:
            return OverrideDecision(OverrideStatus.PENDING_JUSTIFICATION, actor=actor)

        return OverrideDecision(
            OverrideStatus.GRANTED,
            actor=actor,
            justification=justification
        )

    async def is_approver(self, actor: Optional[str]) -> bool:
        """Check ``actor`` against logins and teams in the allow-list."""
        if not actor:
            return False

        for entry in self.config.allowed_approvers:
            team = parse_team(entry)
            if team is None:
                if entry.strip().lstrip("@").lower() == actor.lower():
                    return True
                continue

            if self.platform is None:
                continue
            org, slug = team
            key = (org, slug, actor.lower())
            if key not in self._membership:
                self._membership[key] = await self.platform.is_team_member(org, slug, actor)
            if self._membership[key]:
                return True

        return False

    def find_justification(self, pr: ChangeRequest) -> Optional[str]:
        """Most recent human comment long enough to justify the override."""
        minimum = self.config.min_justification_length
        for comment in reversed(pr.comments):
            if is_engine_comment(comment.body):
                continue
            text = comment.body.strip()
            if text and len(text) >= minimum:
                return text
        return None

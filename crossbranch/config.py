"""Configuration for cross-branch validation."""

from dataclasses import dataclass, field
from typing import List, Optional
import os

from .exceptions import ConfigurationError
from .models import InclusionFilter, MatchPolicy, Verdict


def _env_bool(name: str, default: bool) -> bool:
    return os.environ.get(name, str(default)).lower() == "true"


def _env_number(name: str, default: str, kind=int):
    raw = os.environ.get(name, default)
    try:
        return kind(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be a number, got '{raw}'") from None


def _env_list(name: str) -> List[str]:
    raw = os.environ.get(name, "")
    return [item.strip() for item in raw.split(",") if item.strip()]


@dataclass
class ValidationConfig:
    """Configuration for the cross-branch validator."""

    # GitHub settings
    repo: str = ""
    pr_number: int = 0
    github_token: Optional[str] = None

    # Monitored branch pair
    primary_branch: str = "master"
    release_branch: str = "release"

    # Matching policy
    require_exact_match: bool = True
    distributed: bool = True      # Coverage may be spread across several PRs

    # Imbalance (always advisory)
    max_imbalance: int = 0
    warn_only: bool = True

    # Which PR states count as coverage
    include_drafts: bool = False
    include_closed: bool = False
    include_merged: bool = False

    # Override
    override_label: str = "approved:single-branch-merge"
    require_justification: bool = True
    min_justification_length: int = 20
    allowed_approvers: List[str] = field(default_factory=list)  # Empty = anyone

    # Labels written by the synchronizer
    validated_label: str = "cross-branch:validated"
    warning_label: str = "cross-branch:imbalance-warning"
    blocked_label: str = "cross-branch:blocked"
    pending_label: str = "cross-branch:pending"
    evaluating_label: str = "cross-branch:evaluating"  # Claim held during a pass

    # Runtime
    timeout_seconds: float = 120.0
    max_retries: int = 3
    retry_base_delay: float = 1.0
    claim_ttl_seconds: float = 600.0
    pending_retries: int = 2
    pending_delay_seconds: float = 5.0
    max_expansion_rounds: int = 5

    @classmethod
    def from_env(cls) -> "ValidationConfig":
        """Create config from environment variables."""
        defaults = cls()
        return cls(
            repo=os.environ.get("GITHUB_REPOSITORY", ""),
            pr_number=_env_number("PR_NUMBER", "0"),
            github_token=os.environ.get("GITHUB_TOKEN"),
            primary_branch=os.environ.get("PRIMARY_BRANCH", defaults.primary_branch),
            release_branch=os.environ.get("RELEASE_BRANCH", defaults.release_branch),
            require_exact_match=_env_bool("REQUIRE_EXACT_MATCH", True),
            distributed=os.environ.get("MULTI_ISSUE_STRATEGY", "all").lower() != "single",
            max_imbalance=_env_number("MAX_IMBALANCE", "0"),
            warn_only=_env_bool("IMBALANCE_WARN_ONLY", True),
            include_drafts=_env_bool("INCLUDE_DRAFTS", False),
            include_closed=_env_bool("INCLUDE_CLOSED", False),
            include_merged=_env_bool("INCLUDE_MERGED", False),
            override_label=os.environ.get("OVERRIDE_LABEL", defaults.override_label),
            require_justification=_env_bool("REQUIRE_JUSTIFICATION", True),
            min_justification_length=_env_number("MIN_JUSTIFICATION_LENGTH", "20"),
            allowed_approvers=_env_list("ALLOWED_APPROVERS"),
            timeout_seconds=_env_number("VALIDATION_TIMEOUT", "120", float),
        )

    def validate(self) -> None:
        """Raise ConfigurationError if the configuration cannot work."""
        if not self.primary_branch or not self.release_branch:
            raise ConfigurationError("Both monitored branches must be set")
        if self.primary_branch == self.release_branch:
            raise ConfigurationError(
                f"Monitored branches must differ (got '{self.primary_branch}' twice)"
            )
        if self.max_imbalance < 0:
            raise ConfigurationError(f"max_imbalance must be >= 0, got {self.max_imbalance}")
        if self.min_justification_length < 0:
            raise ConfigurationError(
                f"min_justification_length must be >= 0, got {self.min_justification_length}"
            )
        if self.timeout_seconds <= 0:
            raise ConfigurationError(f"timeout_seconds must be > 0, got {self.timeout_seconds}")
        if self.max_retries < 0 or self.pending_retries < 0:
            raise ConfigurationError("Retry counts must be >= 0")
        if self.max_expansion_rounds < 1:
            raise ConfigurationError("max_expansion_rounds must be >= 1")
        if not self.override_label:
            raise ConfigurationError("override_label must not be empty")

    @property
    def branches(self) -> tuple[str, str]:
        return self.primary_branch, self.release_branch

    def comparison_branch(self, branch: str) -> str:
        """The other monitored branch."""
        if branch == self.primary_branch:
            return self.release_branch
        if branch == self.release_branch:
            return self.primary_branch
        raise ConfigurationError(f"'{branch}' is not a monitored branch")

    @property
    def match_policy(self) -> MatchPolicy:
        return MatchPolicy(
            require_exact_match=self.require_exact_match,
            distributed=self.distributed,
        )

    @property
    def inclusion_filter(self) -> InclusionFilter:
        return InclusionFilter(
            include_drafts=self.include_drafts,
            include_closed=self.include_closed,
            include_merged=self.include_merged,
        )

    def label_for(self, verdict: Verdict) -> str:
        """Label that reflects ``verdict`` on a PR."""
        if verdict.is_failure:
            return self.blocked_label
        if verdict == Verdict.WARN_IMBALANCE:
            return self.warning_label
        if verdict == Verdict.PENDING:
            return self.pending_label
        return self.validated_label

    @property
    def verdict_labels(self) -> List[str]:
        """All labels owned by the synchronizer's verdict mapping."""
        return [
            self.validated_label,
            self.warning_label,
            self.blocked_label,
            self.pending_label,
        ]


# Default configuration
DEFAULT_CONFIG = ValidationConfig()

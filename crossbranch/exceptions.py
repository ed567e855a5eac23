"""Exceptions for cross-branch validation."""

from typing import Optional


class CrossBranchError(Exception):
    """Base exception for all cross-branch validation errors."""


class ConfigurationError(CrossBranchError):
    """Invalid or unresolvable configuration (fatal for the pass)."""


class PlatformError(CrossBranchError):
    """Non-retryable failure reported by the hosting platform."""


class PlatformUnavailableError(PlatformError):
    """Raised when retries against the hosting platform are exhausted.

    Distinct from a coverage failure: the PR is blocked by an outage, not by
    policy.
    """

    def __init__(self, operation: str, attempts: int, cause: Optional[Exception] = None):
        self.operation = operation
        self.attempts = attempts
        self.cause = cause
        super().__init__(
            f"{operation} failed after {attempts} attempt(s): {cause}"
        )


class PassTimeoutError(CrossBranchError):
    """The reconciliation pass ran out of time before its apply phase."""


class PassSuperseded(CrossBranchError):
    """A newer pass for the same PR was submitted; this result is discarded."""

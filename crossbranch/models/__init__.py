"""Data models for cross-branch validation."""

from .change_request import PRState, Comment, LabelEvent, ChangeRequest
from .coverage import MatchPolicy, InclusionFilter, CoverageGroup, CoverageMatch
from .verdict import Verdict, OverrideStatus, OverrideDecision, Assessment

__all__ = [
    "PRState",
    "Comment",
    "LabelEvent",
    "ChangeRequest",
    "MatchPolicy",
    "InclusionFilter",
    "CoverageGroup",
    "CoverageMatch",
    "Verdict",
    "OverrideStatus",
    "OverrideDecision",
    "Assessment",
]

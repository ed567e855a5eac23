"""Hosting platform tools for cross-branch validation."""

from .platform import Platform
from .github_tool import GitHubTool
from .comment_renderer import (
    STATUS_MARKER,
    REJECTION_MARKER,
    JUSTIFICATION_MARKER,
    render_status_comment,
    find_marked_comment,
    is_engine_comment,
)

__all__ = [
    "Platform",
    "GitHubTool",
    "STATUS_MARKER",
    "REJECTION_MARKER",
    "JUSTIFICATION_MARKER",
    "render_status_comment",
    "find_marked_comment",
    "is_engine_comment",
]

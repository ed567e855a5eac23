"""Command-line helpers."""

from .init_cmd import init_repository, render_workflow

__all__ = ["init_repository", "render_workflow"]

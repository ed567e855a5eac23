#!/usr/bin/env python3
"""
Cross-Branch PR Validation - Main Entry Point

Checks that a PR landing in one of two monitored branches (e.g. master and
release) has a matching PR in the other branch, and keeps the verdict on
every related PR in sync.

Usage:
    python -m crossbranch.main validate --repo owner/repo --pr-number 123

Or via GitHub Actions (see `crossbranch init`)
"""

import argparse
import asyncio
import json
import sys

from .config import ValidationConfig
from .engine import ReconcileResult, run_validation
from .exceptions import (
    ConfigurationError,
    PassSuperseded,
    PassTimeoutError,
    PlatformError,
    PlatformUnavailableError,
)
from .tools import GitHubTool
from .utils import setup_logging, get_logger

EXIT_ALLOWED = 0
EXIT_BLOCKED = 1          # Blocked by policy
EXIT_INFRASTRUCTURE = 2   # Blocked by outage, timeout or platform error
EXIT_CONFIGURATION = 3


def build_config(args) -> ValidationConfig:
    """Environment first, command-line flags on top."""
    config = ValidationConfig.from_env()

    if args.repo:
        config.repo = args.repo
    if args.pr_number:
        config.pr_number = args.pr_number
    if args.primary_branch:
        config.primary_branch = args.primary_branch
    if args.release_branch:
        config.release_branch = args.release_branch
    if args.require_exact_match:
        config.require_exact_match = True
    if args.allow_superset:
        config.require_exact_match = False
    if args.single_pr_coverage:
        config.distributed = False
    if args.max_imbalance is not None:
        config.max_imbalance = args.max_imbalance
    if args.include_drafts:
        config.include_drafts = True
    if args.include_closed:
        config.include_closed = True
    if args.include_merged:
        config.include_merged = True
    if args.override_label:
        config.override_label = args.override_label
    if args.no_justification:
        config.require_justification = False
    if args.min_justification_length is not None:
        config.min_justification_length = args.min_justification_length
    if args.allowed_approvers is not None:
        config.allowed_approvers = [
            a.strip() for a in args.allowed_approvers.split(",") if a.strip()
        ]
    if args.timeout is not None:
        config.timeout_seconds = args.timeout

    return config


def print_result(result: ReconcileResult, as_json: bool = False):
    """Print the per-PR verdict map."""
    if as_json:
        print(json.dumps(result.to_dict(), indent=2))
        return

    print("\n=== Cross-Branch Validation ===")
    if result.skipped:
        print(f"PR #{result.trigger}: skipped ({result.skip_reason})")
        return

    for number, assessment in sorted(result.assessments.items()):
        marker = "*" if number == result.trigger else " "
        refs = ", ".join(f"#{r}" for r in sorted(assessment.references))
        print(
            f"{marker} PR #{number} [{assessment.branch}] "
            f"{assessment.verdict.value} (refs: {refs})"
        )

    if result.dry_run:
        print(f"\nDry run: {len(result.mutations)} change(s) planned")
        for mutation in result.mutations:
            print(f"  - {mutation.describe()}")
    else:
        print(f"\nApplied {result.applied} change(s)")

    print(f"Merge allowed: {'yes' if result.merge_allowed else 'no'}")


def cmd_init(args):
    """Handle 'init' subcommand."""
    from pathlib import Path
    from .cli import init_repository

    target = Path(args.path) if args.path else Path.cwd()
    success = init_repository(
        target,
        primary_branch=args.primary_branch,
        release_branch=args.release_branch,
        source=args.source,
    )
    sys.exit(0 if success else 1)


def cmd_validate(args):
    """Handle 'validate' subcommand."""
    import logging
    setup_logging(level=logging.DEBUG if args.debug else logging.INFO)
    logger = get_logger()

    try:
        config = build_config(args)
    except ConfigurationError as e:
        logger.error(f"Configuration error: {e}")
        sys.exit(EXIT_CONFIGURATION)

    if not config.repo:
        logger.error("Repository required. Use --repo or set GITHUB_REPOSITORY env var")
        sys.exit(EXIT_CONFIGURATION)
    if not config.pr_number:
        logger.error("PR number required. Use --pr-number or set PR_NUMBER env var")
        sys.exit(EXIT_CONFIGURATION)

    try:
        config.validate()
        platform = GitHubTool(
            repo=config.repo,
            token=config.github_token,
            max_retries=config.max_retries,
            retry_base_delay=config.retry_base_delay,
        )
        result = asyncio.run(run_validation(platform, config, dry_run=args.dry_run))
    except (ConfigurationError, ValueError) as e:
        logger.error(f"Configuration error: {e}")
        sys.exit(EXIT_CONFIGURATION)
    except PlatformUnavailableError as e:
        logger.error(f"Blocked by infrastructure (existing labels left untouched): {e}")
        sys.exit(EXIT_INFRASTRUCTURE)
    except (PassTimeoutError, PassSuperseded) as e:
        logger.error(f"Pass aborted without changes: {e}")
        sys.exit(EXIT_INFRASTRUCTURE)
    except PlatformError as e:
        logger.error(f"GitHub API error: {e}")
        sys.exit(EXIT_INFRASTRUCTURE)

    print_result(result, as_json=args.json)
    sys.exit(EXIT_ALLOWED if result.merge_allowed else EXIT_BLOCKED)


def main():
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Cross-branch PR validation"
    )
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # init command
    init_parser = subparsers.add_parser("init", help="Add the validation workflow to a repository")
    init_parser.add_argument(
        "path",
        nargs="?",
        help="Target repository path (default: current directory)"
    )
    init_parser.add_argument(
        "--primary-branch",
        type=str,
        default="master",
        help="Primary branch (default: master)"
    )
    init_parser.add_argument(
        "--release-branch",
        type=str,
        default="release",
        help="Release branch (default: release)"
    )
    init_parser.add_argument(
        "--source",
        type=str,
        help="Install the validator from this git URL or path (default: uv sync in the repository)"
    )

    # validate command
    validate_parser = subparsers.add_parser("validate", help="Validate cross-branch coverage for a PR")
    validate_parser.add_argument(
        "--repo",
        type=str,
        help="Repository in format owner/repo"
    )
    validate_parser.add_argument(
        "--pr-number",
        type=int,
        help="Triggering pull request number"
    )
    validate_parser.add_argument(
        "--primary-branch",
        type=str,
        help="Primary branch (default: master or PRIMARY_BRANCH)"
    )
    validate_parser.add_argument(
        "--release-branch",
        type=str,
        help="Release branch (default: release or RELEASE_BRANCH)"
    )
    match_group = validate_parser.add_mutually_exclusive_group()
    match_group.add_argument(
        "--require-exact-match",
        action="store_true",
        help="Reference sets must match exactly (default)"
    )
    match_group.add_argument(
        "--allow-superset",
        action="store_true",
        help="Accept comparison PRs that reference additional issues"
    )
    validate_parser.add_argument(
        "--single-pr-coverage",
        action="store_true",
        help="Require one PR to cover all references instead of several"
    )
    validate_parser.add_argument(
        "--max-imbalance",
        type=int,
        help="Per-issue PR count difference before warning (default: 0)"
    )
    validate_parser.add_argument(
        "--include-drafts",
        action="store_true",
        help="Count draft PRs as coverage"
    )
    validate_parser.add_argument(
        "--include-closed",
        action="store_true",
        help="Count closed (unmerged) PRs as coverage"
    )
    validate_parser.add_argument(
        "--include-merged",
        action="store_true",
        help="Count merged PRs as coverage"
    )
    validate_parser.add_argument(
        "--override-label",
        type=str,
        help="Label that waives the requirement (default: approved:single-branch-merge)"
    )
    validate_parser.add_argument(
        "--no-justification",
        action="store_true",
        help="Don't require a justification comment for overrides"
    )
    validate_parser.add_argument(
        "--min-justification-length",
        type=int,
        help="Minimum justification comment length (default: 20)"
    )
    validate_parser.add_argument(
        "--allowed-approvers",
        type=str,
        help="Comma-separated logins or org/team slugs allowed to override"
    )
    validate_parser.add_argument(
        "--timeout",
        type=float,
        help="Pass timeout in seconds (default: 120)"
    )
    validate_parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Compute verdicts and planned changes without writing"
    )
    validate_parser.add_argument(
        "--json",
        action="store_true",
        help="Print the verdict map as JSON"
    )
    validate_parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging"
    )

    args = parser.parse_args()

    # Route to subcommand
    if args.command == "init":
        cmd_init(args)
    elif args.command == "validate":
        cmd_validate(args)
    else:
        # No subcommand - show help
        parser.print_help()
        sys.exit(0)


if __name__ == "__main__":
    main()

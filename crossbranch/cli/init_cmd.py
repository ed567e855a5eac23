"""Add the cross-branch validation workflow to a repository."""

from pathlib import Path
from typing import Optional


WORKFLOW_TEMPLATE = '''name: Cross-Branch PR Validation

on:
  pull_request:
    types: [opened, edited, synchronize, reopened, ready_for_review, labeled, unlabeled, closed]
    branches: [__PRIMARY__, __RELEASE__]
  issue_comment:
    types: [created, edited]

permissions:
  contents: read
  issues: write
  pull-requests: write

jobs:
  validate:
    name: Cross-Branch Validation
    if: github.event_name == 'pull_request' || github.event.issue.pull_request
    runs-on: ubuntu-latest

    steps:
      - uses: actions/checkout@v4

      - uses: astral-sh/setup-uv@v4

      - name: Install validator
        run: __INSTALL__

      - name: Validate cross-branch coverage
        env:
          GITHUB_TOKEN: ${{ secrets.GITHUB_TOKEN }}
          PRIMARY_BRANCH: __PRIMARY__
          RELEASE_BRANCH: __RELEASE__
        run: |
          __RUN__crossbranch validate \\
            --repo "${{ github.repository }}" \\
            --pr-number "${{ github.event.pull_request.number || github.event.issue.number }}"
'''


def render_workflow(
    primary_branch: str = "master",
    release_branch: str = "release",
    source: Optional[str] = None
) -> str:
    """
    Workflow YAML for a monitored branch pair.

    Without ``source`` the validator is expected in the repository's own
    uv project (``uv sync`` then ``uv run``). With ``source`` (a git URL or
    path uv accepts) it is installed as a uv tool.
    """
    if source:
        install = f'uv tool install "{source}"'
        run = ""
    else:
        install = "uv sync"
        run = "uv run "
    return (
        WORKFLOW_TEMPLATE
        .replace("__PRIMARY__", primary_branch)
        .replace("__RELEASE__", release_branch)
        .replace("__INSTALL__", install)
        .replace("__RUN__", run)
    )


def init_repository(
    target_dir: Path = None,
    primary_branch: str = "master",
    release_branch: str = "release",
    source: Optional[str] = None
):
    """
    Initialize cross-branch validation in a repository.

    Creates:
      - .github/workflows/cross-branch-validation.yml
    """
    target = target_dir or Path.cwd()

    # Check if git repo
    if not (target / ".git").exists():
        print(f"Error: {target} is not a git repository")
        return False

    workflow_dir = target / ".github" / "workflows"
    workflow_dir.mkdir(parents=True, exist_ok=True)

    workflow_file = workflow_dir / "cross-branch-validation.yml"
    if workflow_file.exists():
        print(f"Already exists: {workflow_file}")
        print("\nAlready configured. No changes needed.")
        return True

    workflow_file.write_text(render_workflow(primary_branch, release_branch, source))
    print(f"Created: {workflow_file}")

    print("\nNext steps:")
    print("  1. git add . && git commit -m 'Add cross-branch PR validation'")
    print("  2. git push")
    print("  3. Make 'Cross-Branch Validation' a required status check on both branches")

    return True


if __name__ == "__main__":
    init_repository()

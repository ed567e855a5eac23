"""GitHub API wrapper for cross-branch validation."""

import asyncio
import os
from datetime import datetime
from typing import Any, Callable, Dict, FrozenSet, List, Optional, TypeVar

from github import Auth, Github, GithubException, UnknownObjectException
from github.Repository import Repository

from ..exceptions import PlatformError
from ..models import ChangeRequest, Comment, LabelEvent, PRState
from ..utils import get_logger, with_retries
from .comment_renderer import is_engine_comment

T = TypeVar("T")

PR_FRAGMENT = """
fragment PRFields on PullRequest {
  number
  title
  body
  url
  baseRefName
  state
  isDraft
  createdAt
  updatedAt
  repository { nameWithOwner }
  author { login }
  labels(first: 50) { nodes { name } }
  comments(last: 50) {
    totalCount
    nodes { databaseId body createdAt author { login } }
  }
  timelineItems(itemTypes: [LABELED_EVENT], last: 100) {
    nodes {
      ... on LabeledEvent { createdAt actor { login } label { name } }
    }
  }
}
"""

PULL_REQUEST_QUERY = PR_FRAGMENT + """
query($owner: String!, $name: String!, $number: Int!) {
  repository(owner: $owner, name: $name) {
    pullRequest(number: $number) { ...PRFields }
  }
}
"""

LINKED_ISSUE_BLOCK = """
    issue_%(number)d: issueOrPullRequest(number: %(number)d) {
      ... on Issue {
        timelineItems(itemTypes: [CROSS_REFERENCED_EVENT], first: 100) {
          nodes {
            ... on CrossReferencedEvent {
              source { ... on PullRequest { ...PRFields } }
            }
          }
        }
      }
    }
"""


def build_linked_query(references: FrozenSet[int]) -> str:
    """One aliased lookup per issue so all references resolve in a single request."""
    blocks = "".join(
        LINKED_ISSUE_BLOCK % {"number": ref} for ref in sorted(references)
    )
    return (
        PR_FRAGMENT
        + "query($owner: String!, $name: String!) {\n"
        + "  repository(owner: $owner, name: $name) {"
        + blocks
        + "  }\n}\n"
    )


def _parse_time(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


def _login(node: Optional[dict]) -> str:
    return (node or {}).get("login") or ""


def is_unresolved_reference(error: Dict[str, Any]) -> bool:
    """NOT_FOUND on an ``issue_N`` alias: the number is not an issue or PR here."""
    path = error.get("path") or []
    return error.get("type") == "NOT_FOUND" and any(
        isinstance(part, str) and part.startswith("issue_") for part in path
    )


def comments_truncated(node: Dict[str, Any]) -> bool:
    """True when the PR has more comments than the fragment fetched."""
    comments = node.get("comments") or {}
    return comments.get("totalCount", 0) > len(comments.get("nodes") or [])


def parse_pull_request(node: Dict[str, Any]) -> ChangeRequest:
    """Convert a ``PRFields`` GraphQL node into a ChangeRequest."""
    state = node.get("state", "OPEN")
    if state == "MERGED":
        pr_state = PRState.MERGED
    elif state == "CLOSED":
        pr_state = PRState.CLOSED
    elif node.get("isDraft"):
        pr_state = PRState.DRAFT
    else:
        pr_state = PRState.OPEN

    comments = [
        Comment(
            comment_id=c["databaseId"],
            body=c.get("body") or "",
            author=_login(c.get("author")),
            created_at=_parse_time(c.get("createdAt")),
        )
        for c in (node.get("comments") or {}).get("nodes") or []
        if c
    ]

    label_events = [
        LabelEvent(
            label=(e.get("label") or {}).get("name", ""),
            actor=_login(e.get("actor")),
            created_at=_parse_time(e.get("createdAt")),
        )
        for e in (node.get("timelineItems") or {}).get("nodes") or []
        if e and e.get("label")
    ]

    kwargs = {}
    created_at = _parse_time(node.get("createdAt"))
    updated_at = _parse_time(node.get("updatedAt"))
    if created_at:
        kwargs["created_at"] = created_at
    if updated_at:
        kwargs["updated_at"] = updated_at

    return ChangeRequest(
        number=node["number"],
        branch=node.get("baseRefName", ""),
        state=pr_state,
        title=node.get("title") or "",
        body=node.get("body") or "",
        labels=[l["name"] for l in (node.get("labels") or {}).get("nodes") or [] if l],
        author=_login(node.get("author")),
        comments=comments,
        label_events=label_events,
        url=node.get("url") or "",
        **kwargs,
    )


class GitHubTool:
    """
    GitHub implementation of the platform interface.

    Handles:
    - Batched GraphQL lookup of PRs linked to issues
    - Label and comment mutations
    - Approver team membership checks
    - Retries with exponential backoff on every call
    """

    def __init__(
        self,
        repo: str,
        token: Optional[str] = None,
        max_retries: int = 3,
        retry_base_delay: float = 1.0,
        request_timeout: int = 15,
    ):
        """
        Initialize GitHub tool.

        Args:
            repo: Repository in format "owner/repo"
            token: GitHub token (defaults to GITHUB_TOKEN env var)
            max_retries: Retries for transient failures
            retry_base_delay: First backoff delay in seconds
            request_timeout: Per-request HTTP timeout in seconds
        """
        self.token = token or os.environ.get("GITHUB_TOKEN")
        if not self.token:
            raise ValueError("GitHub token required. Set GITHUB_TOKEN env var or pass token parameter.")

        if "/" not in repo:
            raise ValueError(f"Repository must be in format owner/repo, got '{repo}'")

        self.repo_name = repo
        self.owner, self.name = repo.split("/", 1)
        self.max_retries = max_retries
        self.retry_base_delay = retry_base_delay
        self.logger = get_logger()

        # Retries are handled here, not inside PyGithub
        self.gh = Github(auth=Auth.Token(self.token), retry=None, timeout=request_timeout)
        self.repo: Repository = self.gh.get_repo(repo, lazy=True)

    async def _call(self, operation: str, func: Callable[[], T]) -> T:
        """Run a blocking PyGithub call in a worker thread with retries."""
        return await with_retries(
            operation,
            lambda: asyncio.to_thread(func),
            max_retries=self.max_retries,
            base_delay=self.retry_base_delay,
        )

    def _graphql(self, query: str, variables: Dict[str, Any]) -> Dict[str, Any]:
        """
        Run a GraphQL query and return its ``data``.

        PyGithub raises as soon as a response carries ``errors``. Errors that
        only say an ``issue_N`` alias does not resolve are expected (a ``#N``
        that is not an issue) and the partial data is kept; anything else
        propagates.
        """
        try:
            _, data = self.gh.requester.graphql_query(query, variables)
        except GithubException as e:
            data = e.data if isinstance(e.data, dict) else {}
            errors = data.get("errors") or []
            if not errors or not all(
                isinstance(err, dict) and is_unresolved_reference(err) for err in errors
            ):
                raise
            skipped = sorted(str(err["path"][-1]) for err in errors)
            self.logger.info(f"Skipping references that are not issues: {', '.join(skipped)}")
        return data.get("data") or {}

    def _rest_comments(self, number: int) -> List[Comment]:
        return [
            Comment(
                comment_id=c.id,
                body=c.body or "",
                author=c.user.login if c.user else "",
                created_at=c.created_at,
            )
            for c in self.repo.get_issue(number).get_comments()
        ]

    async def _load_engine_comments(self, pr: ChangeRequest) -> None:
        """Add marker comments that fell outside the fetched comment window."""
        known = {c.comment_id for c in pr.comments}
        everything = await self._call(
            f"list comments on PR #{pr.number}",
            lambda: self._rest_comments(pr.number)
        )
        older = [
            c for c in everything
            if c.comment_id not in known and is_engine_comment(c.body)
        ]
        pr.comments = older + pr.comments

    async def _parse(self, node: Dict[str, Any]) -> ChangeRequest:
        pr = parse_pull_request(node)
        if comments_truncated(node):
            await self._load_engine_comments(pr)
        return pr

    async def get_change_request(self, number: int) -> ChangeRequest:
        variables = {"owner": self.owner, "name": self.name, "number": number}
        data = await self._call(
            f"fetch PR #{number}",
            lambda: self._graphql(PULL_REQUEST_QUERY, variables)
        )
        node = (data.get("repository") or {}).get("pullRequest")
        if not node:
            raise PlatformError(f"PR #{number} not found in {self.repo_name}")
        return await self._parse(node)

    async def find_linked_change_requests(
        self,
        references: FrozenSet[int]
    ) -> List[ChangeRequest]:
        if not references:
            return []

        query = build_linked_query(references)
        variables = {"owner": self.owner, "name": self.name}
        data = await self._call(
            f"query PRs linked to {len(references)} issue(s)",
            lambda: self._graphql(query, variables)
        )

        nodes: Dict[int, Dict[str, Any]] = {}
        for issue in (data.get("repository") or {}).values():
            if not issue:
                continue  # Reference is not an issue in this repository
            for event in (issue.get("timelineItems") or {}).get("nodes") or []:
                source = (event or {}).get("source") or {}
                if "number" not in source:
                    continue
                origin = (source.get("repository") or {}).get("nameWithOwner", "")
                if origin and origin.lower() != self.repo_name.lower():
                    continue
                nodes[source["number"]] = source

        self.logger.debug(
            f"Found {len(nodes)} linked PRs for {len(references)} issue reference(s)"
        )
        return [await self._parse(nodes[n]) for n in sorted(nodes)]

    async def find_label_actor(self, number: int, label: str) -> Optional[str]:
        def latest() -> Optional[str]:
            for event in self.repo.get_issue(number).get_events().reversed:
                if event.event == "labeled" and event.label is not None and event.label.name == label:
                    return event.actor.login if event.actor else None
            return None

        return await self._call(f"find who labeled PR #{number} '{label}'", latest)

    async def branch_exists(self, name: str) -> bool:
        def check() -> bool:
            try:
                self.repo.get_branch(name)
                return True
            except UnknownObjectException:
                return False

        return await self._call(f"resolve branch '{name}'", check)

    async def add_label(self, number: int, label: str) -> None:
        await self._call(
            f"add label '{label}' to PR #{number}",
            lambda: self.repo.get_issue(number).add_to_labels(label)
        )

    async def remove_label(self, number: int, label: str) -> None:
        def remove() -> None:
            try:
                self.repo.get_issue(number).remove_from_labels(label)
            except UnknownObjectException:
                pass  # Already gone

        await self._call(f"remove label '{label}' from PR #{number}", remove)

    async def create_comment(self, number: int, body: str) -> int:
        comment = await self._call(
            f"comment on PR #{number}",
            lambda: self.repo.get_issue(number).create_comment(body)
        )
        return comment.id

    async def update_comment(self, number: int, comment_id: int, body: str) -> None:
        await self._call(
            f"update comment {comment_id} on PR #{number}",
            lambda: self.repo.get_issue(number).get_comment(comment_id).edit(body)
        )

    async def is_team_member(self, org: str, team_slug: str, login: str) -> bool:
        def check() -> bool:
            try:
                team = self.gh.get_organization(org).get_team_by_slug(team_slug)
                return team.has_in_members(self.gh.get_user(login))
            except UnknownObjectException:
                self.logger.warning(f"Approver team {org}/{team_slug} or user {login} not found")
                return False

        return await self._call(f"check {login} in {org}/{team_slug}", check)

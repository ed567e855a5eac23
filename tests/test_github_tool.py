"""Tests for the GitHub adapter. No network access: GraphQL responses are canned."""

import asyncio
from types import SimpleNamespace

import pytest

from crossbranch.exceptions import PlatformError
from crossbranch.models import Comment, PRState
from crossbranch.tools.comment_renderer import STATUS_MARKER
from crossbranch.tools.github_tool import GitHubTool, build_linked_query, parse_pull_request


def pr_node(number, base="main", state="OPEN", draft=False, repo="acme/widgets", **extra):
    node = {
        "number": number,
        "title": f"Fix #{number}",
        "body": "",
        "url": f"https://github.com/{repo}/pull/{number}",
        "baseRefName": base,
        "state": state,
        "isDraft": draft,
        "createdAt": "2024-05-01T10:00:00Z",
        "updatedAt": "2024-05-02T10:00:00Z",
        "repository": {"nameWithOwner": repo},
        "author": {"login": "dev"},
        "labels": {"nodes": [{"name": "bug"}]},
        "comments": {"nodes": []},
        "timelineItems": {"nodes": []},
    }
    node.update(extra)
    return node


def linked(*nodes):
    return {"timelineItems": {"nodes": [{"source": n} for n in nodes]}}


@pytest.fixture
def tool():
    return GitHubTool("acme/widgets", token="test-token", max_retries=0)


class TestParsePullRequest:
    """Tests for parse_pull_request."""

    @pytest.mark.parametrize("state,draft,expected", [
        ("OPEN", False, PRState.OPEN),
        ("OPEN", True, PRState.DRAFT),
        ("CLOSED", False, PRState.CLOSED),
        ("MERGED", False, PRState.MERGED),
    ])
    def test_state_mapping(self, state, draft, expected):
        assert parse_pull_request(pr_node(1, state=state, draft=draft)).state == expected

    def test_fields(self):
        node = pr_node(
            7,
            base="release",
            comments={"nodes": [
                {"databaseId": 99, "body": "LGTM", "createdAt": "2024-05-03T00:00:00Z",
                 "author": {"login": "lead"}},
            ]},
            timelineItems={"nodes": [
                {"createdAt": "2024-05-03T00:00:00Z", "actor": {"login": "lead"},
                 "label": {"name": "approved:single-branch-merge"}},
                {},
            ]},
        )

        pr = parse_pull_request(node)

        assert pr.number == 7
        assert pr.branch == "release"
        assert pr.labels == ["bug"]
        assert pr.comments[0].comment_id == 99
        assert pr.comments[0].author == "lead"
        assert pr.last_labeled_by("approved:single-branch-merge") == "lead"
        assert pr.updated_at.year == 2024

    def test_missing_author_and_body(self):
        pr = parse_pull_request(pr_node(3, author=None, body=None))

        assert pr.author == ""
        assert pr.body == ""


class TestBuildLinkedQuery:
    """Tests for the batched linked-PR query."""

    def test_one_alias_per_reference(self):
        query = build_linked_query(frozenset({12, 3}))

        assert "issue_3: issueOrPullRequest(number: 3)" in query
        assert "issue_12: issueOrPullRequest(number: 12)" in query
        assert query.index("issue_3:") < query.index("issue_12:")
        assert "CROSS_REFERENCED_EVENT" in query
        assert "fragment PRFields" in query


class TestGitHubTool:
    """Tests for GitHubTool."""

    def test_token_required(self, monkeypatch):
        monkeypatch.delenv("GITHUB_TOKEN", raising=False)

        with pytest.raises(ValueError, match="token"):
            GitHubTool("acme/widgets")

    def test_repo_format(self):
        with pytest.raises(ValueError, match="owner/repo"):
            GitHubTool("widgets", token="t")

    def test_linked_prs_are_deduplicated_and_filtered(self, tool, monkeypatch):
        """Given PRs from forks of other repos, only this repository's PRs are kept."""
        data = {"repository": {
            "issue_1": linked(pr_node(5), pr_node(6, base="release"), {}),
            "issue_2": linked(pr_node(5), pr_node(8, repo="someone/else")),
            "issue_3": None,
        }}
        queries = []

        def fake_graphql(query, variables):
            queries.append((query, variables))
            return data

        monkeypatch.setattr(tool, "_graphql", fake_graphql)

        prs = asyncio.run(tool.find_linked_change_requests(frozenset({1, 2, 3})))

        assert [pr.number for pr in prs] == [5, 6]
        assert len(queries) == 1
        assert queries[0][1] == {"owner": "acme", "name": "widgets"}

    def test_no_references_means_no_query(self, tool, monkeypatch):
        monkeypatch.setattr(tool, "_graphql", lambda q, v: pytest.fail("unexpected query"))

        assert asyncio.run(tool.find_linked_change_requests(frozenset())) == []

    def test_get_change_request(self, tool, monkeypatch):
        monkeypatch.setattr(
            tool, "_graphql",
            lambda q, v: {"repository": {"pullRequest": pr_node(v["number"])}},
        )

        pr = asyncio.run(tool.get_change_request(4))

        assert pr.number == 4
        assert pr.title == "Fix #4"

    def test_unknown_pr(self, tool, monkeypatch):
        monkeypatch.setattr(tool, "_graphql", lambda q, v: {"repository": {"pullRequest": None}})

        with pytest.raises(PlatformError, match="#4"):
            asyncio.run(tool.get_change_request(4))

    def test_reference_that_is_not_an_issue_keeps_partial_data(self, tool, monkeypatch):
        """Given #99999 resolving to nothing, the PRs linked to #1 are still returned."""
        response = {
            "data": {"repository": {"issue_1": linked(pr_node(5)), "issue_99999": None}},
            "errors": [{
                "type": "NOT_FOUND",
                "path": ["repository", "issue_99999"],
                "message": "Could not resolve to an issue or pull request with the number of 99999.",
            }],
        }
        monkeypatch.setattr(
            tool.gh.requester, "requestJsonAndCheck",
            lambda verb, url, input=None: ({}, response),
        )

        prs = asyncio.run(tool.find_linked_change_requests(frozenset({1, 99999})))

        assert [pr.number for pr in prs] == [5]

    def test_several_unresolved_references(self, tool, monkeypatch):
        response = {
            "data": {"repository": {"issue_7": None, "issue_8": None}},
            "errors": [
                {"type": "NOT_FOUND", "path": ["repository", "issue_7"], "message": "Could not resolve"},
                {"type": "NOT_FOUND", "path": ["repository", "issue_8"], "message": "Could not resolve"},
            ],
        }
        monkeypatch.setattr(
            tool.gh.requester, "requestJsonAndCheck",
            lambda verb, url, input=None: ({}, response),
        )

        assert asyncio.run(tool.find_linked_change_requests(frozenset({7, 8}))) == []

    def test_other_graphql_errors_still_fail(self, tool, monkeypatch):
        response = {
            "data": None,
            "errors": [{"type": "FORBIDDEN", "path": ["repository"], "message": "Resource not accessible"}],
        }
        monkeypatch.setattr(
            tool.gh.requester, "requestJsonAndCheck",
            lambda verb, url, input=None: ({}, response),
        )

        with pytest.raises(PlatformError):
            asyncio.run(tool.find_linked_change_requests(frozenset({1})))

    def test_graphql_rate_limit_is_retried(self, monkeypatch):
        """Given a RATE_LIMITED response, the query is repeated instead of failing."""
        tool = GitHubTool("acme/widgets", token="test-token", max_retries=1, retry_base_delay=0)
        responses = [
            {"data": None, "errors": [{"type": "RATE_LIMITED", "message": "API rate limit exceeded"}]},
            {"data": {"repository": {"pullRequest": pr_node(4)}}},
        ]
        monkeypatch.setattr(
            tool.gh.requester, "requestJsonAndCheck",
            lambda verb, url, input=None: ({}, responses.pop(0)),
        )

        assert asyncio.run(tool.get_change_request(4)).number == 4
        assert responses == []

    def test_marker_comments_beyond_fetched_window_are_loaded(self, tool, monkeypatch):
        """Given 120 comments, an old status comment is found through the REST listing."""
        recent = {"databaseId": 200, "body": "ping", "createdAt": "2024-05-03T00:00:00Z",
                  "author": {"login": "dev"}}
        node = pr_node(4, comments={"totalCount": 120, "nodes": [recent]})
        monkeypatch.setattr(tool, "_graphql", lambda q, v: {"repository": {"pullRequest": node}})
        listed = []

        def rest_comments(number):
            listed.append(number)
            return [
                Comment(comment_id=7, body=f"{STATUS_MARKER}\nold status", author="github-actions[bot]"),
                Comment(comment_id=8, body="an old human comment", author="dev"),
                Comment(comment_id=200, body="ping", author="dev"),
            ]

        monkeypatch.setattr(tool, "_rest_comments", rest_comments)

        pr = asyncio.run(tool.get_change_request(4))

        assert listed == [4]
        assert [c.comment_id for c in pr.comments] == [7, 200]

    def test_complete_comment_window_skips_rest_listing(self, tool, monkeypatch):
        node = pr_node(4, comments={"totalCount": 0, "nodes": []})
        monkeypatch.setattr(tool, "_graphql", lambda q, v: {"repository": {"pullRequest": node}})
        monkeypatch.setattr(tool, "_rest_comments", lambda n: pytest.fail("unexpected listing"))

        assert asyncio.run(tool.get_change_request(4)).comments == []

    def test_find_label_actor_uses_latest_labeled_event(self, tool):
        def event(kind, label, login):
            return SimpleNamespace(
                event=kind,
                label=SimpleNamespace(name=label),
                actor=SimpleNamespace(login=login),
            )

        # Newest first, as PaginatedList.reversed yields them
        events = [
            event("unlabeled", "approved:single-branch-merge", "lead"),
            event("labeled", "cross-branch:evaluating", "bot"),
            event("labeled", "approved:single-branch-merge", "lead"),
            event("labeled", "approved:single-branch-merge", "dev"),
        ]
        issue = SimpleNamespace(get_events=lambda: SimpleNamespace(reversed=events))
        tool.repo = SimpleNamespace(get_issue=lambda number: issue)

        assert asyncio.run(tool.find_label_actor(4, "approved:single-branch-merge")) == "lead"
        assert asyncio.run(tool.find_label_actor(4, "wontfix")) is None

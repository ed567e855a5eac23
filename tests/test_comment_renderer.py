"""Tests for status and override comment rendering."""

from crossbranch.models import Assessment, Comment, OverrideDecision, OverrideStatus, Verdict
from crossbranch.tools.comment_renderer import (
    JUSTIFICATION_MARKER,
    REJECTION_MARKER,
    STATUS_MARKER,
    find_marked_comment,
    format_references,
    is_engine_comment,
    override_comment_for,
    render_status_comment,
)


def assessment(verdict, **kwargs):
    defaults = dict(
        pr_number=1,
        branch="main",
        comparison_branch="release",
        references=frozenset({3, 1}),
        verdict=verdict,
    )
    defaults.update(kwargs)
    return Assessment(**defaults)


class TestStatusComment:
    """Tests for render_status_comment."""

    def test_pass(self, config):
        body = render_status_comment(
            assessment(Verdict.PASS, matching_prs=[2]),
            config,
            {"main": [1], "release": [2]},
        )

        assert body.startswith(STATUS_MARKER)
        assert "Validation PASSED" in body
        assert "**Issue References:** #1, #3" in body
        assert "- **main:** 1 PR(s) (#1)" in body
        assert "PR(s) #2 in `release`" in body
        assert "Action Required" not in body

    def test_failure_explains_override(self, config):
        body = render_status_comment(
            assessment(Verdict.FAIL_MISMATCH, uncovered=frozenset({3})),
            config,
            {"main": [1], "release": [2]},
        )

        assert "blocked" in body
        assert "**Not covered in `release`:** #3" in body
        assert f"Add label: `{config.override_label}`" in body

    def test_pending_lists_claimed_siblings(self, config):
        body = render_status_comment(
            assessment(Verdict.PENDING, pending_on=[5, 4]), config, {}
        )

        assert "PR(s) #4, #5 are being evaluated" in body

    def test_same_input_renders_same_text(self, config):
        a = assessment(Verdict.WARN_IMBALANCE, imbalance=3,
                       counts={1: {"main": 4, "release": 1}, 3: {"main": 1, "release": 1}})
        distribution = {"main": [1, 4, 5, 6], "release": [2]}

        first = render_status_comment(a, config, distribution)

        assert first == render_status_comment(a, config, distribution)
        assert "| #1 | 4 | 1 |" in first
        assert "**Branch Imbalance:** 3" in first


class TestOverrideComments:
    """Tests for override_comment_for."""

    def test_none_and_granted_need_no_comment(self, config):
        assert override_comment_for(assessment(Verdict.PASS), config) is None
        granted = assessment(Verdict.PASS_OVERRIDE,
                             override=OverrideDecision(OverrideStatus.GRANTED, actor="lead"))
        assert override_comment_for(granted, config) is None

    def test_rejection(self, config):
        config.allowed_approvers = ["lead"]
        rejected = assessment(
            Verdict.FAIL_MISSING,
            override=OverrideDecision(OverrideStatus.REJECTED_UNAUTHORIZED, actor="mallory"),
        )

        marker, body = override_comment_for(rejected, config)

        assert marker == REJECTION_MARKER
        assert "@mallory" in body
        assert "`lead`" in body

    def test_justification_request(self, config):
        pending = assessment(
            Verdict.FAIL_MISSING,
            override=OverrideDecision(OverrideStatus.PENDING_JUSTIFICATION, actor="lead"),
        )

        marker, body = override_comment_for(pending, config)

        assert marker == JUSTIFICATION_MARKER
        assert str(config.min_justification_length) in body


class TestHelpers:
    def test_format_references(self):
        assert format_references({10, 2}) == "#2, #10"

    def test_marked_comments(self):
        comments = [Comment(1, "thanks!"), Comment(2, STATUS_MARKER + "\nstatus")]

        assert find_marked_comment(comments, STATUS_MARKER).comment_id == 2
        assert find_marked_comment(comments, REJECTION_MARKER) is None
        assert is_engine_comment(comments[1].body)
        assert not is_engine_comment(comments[0].body)
        assert not is_engine_comment(None)

"""Render the comments the synchronizer keeps on PRs."""

from typing import Iterable, List, Optional

from ..config import ValidationConfig
from ..models import Assessment, Comment, OverrideStatus, Verdict

MARKER_PREFIX = "<!-- cross-branch-validation:"
STATUS_MARKER = f"{MARKER_PREFIX}status -->"
REJECTION_MARKER = f"{MARKER_PREFIX}override-rejected -->"
JUSTIFICATION_MARKER = f"{MARKER_PREFIX}justification-request -->"

FOOTER = "*Automated validation by Cross-Branch PR Validation System*"


STATUS_MESSAGES = {
    Verdict.PASS: ("✅", "Validation PASSED: Matching PRs found in both branches"),
    Verdict.PASS_OVERRIDE: ("✅", "Validation PASSED (Override approved)"),
    Verdict.WARN_IMBALANCE: (
        "⚠️",
        "Validation WARNING: Matching PRs found but branch imbalance detected"
    ),
    Verdict.FAIL_MISSING: ("❌", "Validation FAILED: No matching PR found in comparison branch"),
    Verdict.FAIL_MISMATCH: ("❌", "Validation FAILED: Issue references don't match exactly"),
    Verdict.PENDING: ("⏳", "Validation PENDING: Related PRs are still being evaluated"),
}


def format_references(refs: Iterable[int]) -> str:
    """Render references as ``#1, #2`` in numeric order."""
    return ", ".join(f"#{ref}" for ref in sorted(refs))


def is_engine_comment(body: str) -> bool:
    """True for comments written by the synchronizer."""
    return MARKER_PREFIX in (body or "")


def find_marked_comment(comments: List[Comment], marker: str) -> Optional[Comment]:
    """First comment carrying ``marker``."""
    for comment in comments:
        if marker in (comment.body or ""):
            return comment
    return None


def _pr_list(numbers: List[int]) -> str:
    if not numbers:
        return ""
    return " (" + ", ".join(f"#{n}" for n in sorted(numbers)) + ")"


def render_status_comment(
    assessment: Assessment,
    config: ValidationConfig,
    distribution: dict[str, List[int]],
) -> str:
    """
    Build the status comment for one PR.

    The body depends only on the assessment, so an unchanged picture renders
    byte-identical text and the synchronizer skips the edit.

    Args:
        assessment: Verdict and its inputs for this PR
        config: Validation configuration (branch and label names)
        distribution: branch -> eligible PR numbers sharing the PR's references
    """
    icon, message = STATUS_MESSAGES[assessment.verdict]
    primary, release = config.branches

    lines = [
        STATUS_MARKER,
        "## 🔄 Cross-Branch Validation Status",
        "",
        f"**Validation Result:** {icon} {message}",
        f"**Issue References:** {format_references(assessment.references)}",
        "",
        "### 📊 PR Distribution",
    ]
    for branch in (primary, release):
        prs = distribution.get(branch, [])
        lines.append(f"- **{branch}:** {len(prs)} PR(s){_pr_list(prs)}")
    lines.append(f"- **Branch Imbalance:** {assessment.imbalance}")

    if len(assessment.counts) > 1:
        lines.append("")
        lines.append("| Issue | " + " | ".join((primary, release)) + " |")
        lines.append("|---|---|---|")
        for ref, counts in sorted(assessment.counts.items()):
            lines.append(f"| #{ref} | {counts.get(primary, 0)} | {counts.get(release, 0)} |")

    if assessment.matching_prs:
        lines.extend([
            "",
            "### ✅ Matching PRs Found",
            f"- PR(s) {', '.join(f'#{n}' for n in assessment.matching_prs)} in "
            f"`{assessment.comparison_branch}` contain the same issue references",
        ])

    if assessment.verdict == Verdict.PASS_OVERRIDE:
        lines.extend([
            "",
            "### 🔓 Override",
            f"- Coverage requirement waived via `{config.override_label}`"
            + (f" applied by @{assessment.override.actor}" if assessment.override.actor else ""),
        ])

    if assessment.verdict == Verdict.PENDING and assessment.pending_on:
        lines.extend([
            "",
            "### ⏳ Waiting On",
            f"- PR(s) {', '.join(f'#{n}' for n in sorted(assessment.pending_on))} "
            "are being evaluated by another run; this status will be refreshed",
        ])

    if assessment.verdict.is_failure:
        if assessment.uncovered and assessment.uncovered != assessment.references:
            lines.extend([
                "",
                f"**Not covered in `{assessment.comparison_branch}`:** "
                f"{format_references(assessment.uncovered)}",
            ])
        lines.extend([
            "",
            "### ⚠️ Action Required",
            "",
            "This PR is **blocked** from merging. To proceed, you must either:",
            "",
            f"1. **Create a matching PR** in `{assessment.comparison_branch}` "
            "with the same issue references",
            f"2. **Add the override label** `{config.override_label}` with justification",
            "",
            "#### Override Instructions:",
            f"1. Add label: `{config.override_label}`",
            f"2. Comment with justification (e.g., \"This fix is specific to "
            f"{assessment.branch} only\")",
            "3. Re-run this workflow",
        ])

    lines.extend(["", "---", FOOTER])
    return "\n".join(lines)


def render_rejection_comment(
    assessment: Assessment,
    config: ValidationConfig
) -> str:
    """Comment posted when an unauthorized actor applies the override label."""
    actor = assessment.override.actor
    who = f"@{actor}" if actor else "An unknown actor"
    return "\n".join([
        REJECTION_MARKER,
        "## 🚫 Override Rejected",
        "",
        f"{who} is not allowed to apply `{config.override_label}`. "
        "The label has been removed.",
        "",
        "Allowed approvers: " + ", ".join(f"`{a}`" for a in config.allowed_approvers),
        "",
        "---",
        FOOTER,
    ])


def render_justification_request(config: ValidationConfig) -> str:
    """Comment asking for a justification after an authorized override."""
    return "\n".join([
        JUSTIFICATION_MARKER,
        "## 📝 Override Justification Required",
        "",
        f"The `{config.override_label}` label was applied, but no justification "
        "comment was found. Please add a comment of at least "
        f"{config.min_justification_length} characters explaining why this "
        "change only needs to land in one branch.",
        "",
        "---",
        FOOTER,
    ])


def override_comment_for(
    assessment: Assessment,
    config: ValidationConfig
) -> Optional[tuple[str, str]]:
    """(marker, body) of the override comment this assessment needs, if any."""
    status = assessment.override.status
    if status == OverrideStatus.REJECTED_UNAUTHORIZED:
        return REJECTION_MARKER, render_rejection_comment(assessment, config)
    if status == OverrideStatus.PENDING_JUSTIFICATION:
        return JUSTIFICATION_MARKER, render_justification_request(config)
    return None

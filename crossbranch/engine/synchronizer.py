"""Synchronizer: write converged verdicts back to every PR in a group."""

from dataclasses import dataclass
from enum import Enum
from typing import Collection, Dict, List, Mapping, Optional

from ..config import ValidationConfig
from ..exceptions import CrossBranchError
from ..models import Assessment, ChangeRequest, CoverageGroup, OverrideStatus
from ..tools.comment_renderer import (
    STATUS_MARKER,
    find_marked_comment,
    override_comment_for,
    render_status_comment,
)
from ..tools.platform import Platform
from ..utils import get_logger


class MutationKind(Enum):
    """Kinds of writes the synchronizer performs."""
    REMOVE_LABEL = "remove_label"
    ADD_LABEL = "add_label"
    CREATE_COMMENT = "create_comment"
    UPDATE_COMMENT = "update_comment"


@dataclass
class Mutation:
    """A single planned write to a PR."""
    kind: MutationKind
    pr_number: int
    label: Optional[str] = None
    body: Optional[str] = None
    comment_id: Optional[int] = None
    previous: Optional[str] = None  # Body replaced by an update

    def describe(self) -> str:
        if self.kind in (MutationKind.ADD_LABEL, MutationKind.REMOVE_LABEL):
            return f"{self.kind.value} '{self.label}' on PR #{self.pr_number}"
        if self.kind == MutationKind.UPDATE_COMMENT:
            return f"update comment {self.comment_id} on PR #{self.pr_number}"
        return f"create comment on PR #{self.pr_number}"


def _normalize(body: str) -> str:
    return (body or "").replace("\r\n", "\n").strip()


class Synchronizer:
    """
    Upserts labels and comments so each PR reflects its latest verdict.

    Planning is pure: it diffs the desired state against the labels and
    comments fetched for the pass. Applying performs the planned writes.
    Nothing else in the engine writes to the platform.
    """

    def __init__(self, platform: Platform, config: ValidationConfig):
        self.platform = platform
        self.config = config
        self.logger = get_logger()

    def plan(
        self,
        assessments: Mapping[int, Assessment],
        group: CoverageGroup,
        skip: Collection[int] = (),
        release_claims: Collection[int] = ()
    ) -> List[Mutation]:
        """
        Compute the writes needed to converge the group.

        Args:
            assessments: Fresh verdicts for this pass
            group: Coverage group the verdicts were computed over
            skip: PRs owned by another in-flight pass (left untouched)
            release_claims: PRs whose evaluation claim label should be dropped

        Returns:
            Ordered mutations; empty when everything is already in sync
        """
        mutations: List[Mutation] = []

        for number in sorted(assessments):
            pr = group.members.get(number)
            if pr is None or not pr.is_writable or number in skip:
                continue
            mutations.extend(self._plan_for(pr, assessments[number], group))

        for number in sorted(release_claims):
            pr = group.members.get(number)
            if pr is not None and pr.has_label(self.config.evaluating_label):
                mutations.append(Mutation(
                    MutationKind.REMOVE_LABEL, number, label=self.config.evaluating_label
                ))

        return mutations

    def _plan_for(
        self,
        pr: ChangeRequest,
        assessment: Assessment,
        group: CoverageGroup
    ) -> List[Mutation]:
        mutations: List[Mutation] = []
        desired = self.config.label_for(assessment.verdict)

        # Stale verdict labels go before the new one is added
        for label in self.config.verdict_labels:
            if label != desired and pr.has_label(label):
                mutations.append(Mutation(MutationKind.REMOVE_LABEL, pr.number, label=label))
        if not pr.has_label(desired):
            mutations.append(Mutation(MutationKind.ADD_LABEL, pr.number, label=desired))

        if (
            assessment.override.status == OverrideStatus.REJECTED_UNAUTHORIZED
            and pr.has_label(self.config.override_label)
        ):
            mutations.append(Mutation(
                MutationKind.REMOVE_LABEL, pr.number, label=self.config.override_label
            ))

        override_comment = override_comment_for(assessment, self.config)
        if override_comment is not None:
            marker, body = override_comment
            existing = find_marked_comment(pr.comments, marker)
            if existing is None:
                mutations.append(Mutation(MutationKind.CREATE_COMMENT, pr.number, body=body))
            elif (
                assessment.override.status == OverrideStatus.REJECTED_UNAUTHORIZED
                and _normalize(existing.body) != _normalize(body)
            ):
                mutations.append(Mutation(
                    MutationKind.UPDATE_COMMENT, pr.number,
                    body=body, comment_id=existing.comment_id, previous=existing.body
                ))

        distribution: Dict[str, List[int]] = {
            branch: [c.number for c in group.candidates(branch, assessment.references)]
            for branch in self.config.branches
        }
        body = render_status_comment(assessment, self.config, distribution)
        existing = find_marked_comment(pr.comments, STATUS_MARKER)
        if existing is None:
            mutations.append(Mutation(MutationKind.CREATE_COMMENT, pr.number, body=body))
        elif _normalize(existing.body) != _normalize(body):
            mutations.append(Mutation(
                MutationKind.UPDATE_COMMENT, pr.number,
                body=body, comment_id=existing.comment_id, previous=existing.body
            ))

        return mutations

    async def apply(self, mutations: List[Mutation]) -> int:
        """
        Perform planned writes in order.

        If a write fails, label changes and comment edits already made are
        undone before the error propagates, so every PR keeps the state it
        had before the pass.

        Returns:
            Number of mutations applied
        """
        done: List[Mutation] = []
        try:
            for mutation in mutations:
                self.logger.debug(f"Applying: {mutation.describe()}")
                await self._perform(mutation)
                done.append(mutation)
        except CrossBranchError:
            await self._roll_back(done)
            raise

        if mutations:
            touched = sorted({m.pr_number for m in mutations})
            self.logger.info(
                f"Applied {len(mutations)} change(s) to PR(s) "
                + ", ".join(f"#{n}" for n in touched)
            )
        else:
            self.logger.info("All PRs already in sync; nothing to write")
        return len(mutations)

    async def _perform(self, mutation: Mutation) -> None:
        if mutation.kind == MutationKind.REMOVE_LABEL:
            await self.platform.remove_label(mutation.pr_number, mutation.label)
        elif mutation.kind == MutationKind.ADD_LABEL:
            await self.platform.add_label(mutation.pr_number, mutation.label)
        elif mutation.kind == MutationKind.CREATE_COMMENT:
            await self.platform.create_comment(mutation.pr_number, mutation.body)
        elif mutation.kind == MutationKind.UPDATE_COMMENT:
            await self.platform.update_comment(
                mutation.pr_number, mutation.comment_id, mutation.body
            )

    async def _roll_back(self, done: List[Mutation]) -> None:
        undo: List[Mutation] = []
        for mutation in reversed(done):
            if mutation.label == self.config.evaluating_label:
                continue
            if mutation.kind == MutationKind.REMOVE_LABEL:
                undo.append(Mutation(MutationKind.ADD_LABEL, mutation.pr_number, label=mutation.label))
            elif mutation.kind == MutationKind.ADD_LABEL:
                undo.append(Mutation(MutationKind.REMOVE_LABEL, mutation.pr_number, label=mutation.label))
            elif mutation.kind == MutationKind.UPDATE_COMMENT and mutation.previous is not None:
                undo.append(Mutation(
                    MutationKind.UPDATE_COMMENT, mutation.pr_number,
                    body=mutation.previous, comment_id=mutation.comment_id
                ))
            elif mutation.kind == MutationKind.CREATE_COMMENT:
                self.logger.warning(
                    f"New comment on PR #{mutation.pr_number} stays; "
                    "the next pass updates it in place"
                )

        if undo:
            self.logger.warning(f"Write failed; undoing {len(undo)} change(s)")
        for mutation in undo:
            try:
                await self._perform(mutation)
            except CrossBranchError as e:
                self.logger.error(f"Could not undo ({mutation.describe()}): {e}")

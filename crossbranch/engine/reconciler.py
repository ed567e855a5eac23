"""Reconciliation pass: one event in, converged verdicts for the whole group out."""

import asyncio
import random
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Awaitable, Callable, Dict, List, Optional, Set

from ..config import ValidationConfig
from ..exceptions import ConfigurationError, CrossBranchError, PassSuperseded, PassTimeoutError
from ..models import Assessment, ChangeRequest, CoverageGroup, OverrideDecision, Verdict
from ..tools.platform import Platform
from ..utils import get_logger
from .coverage_index import CoverageIndex
from .override import OverrideAuthorizer
from .references import extract_references
from .synchronizer import Mutation, MutationKind, Synchronizer
from .verdict import assess_group, evaluation_targets


@dataclass
class ReconcileResult:
    """Outcome of one reconciliation pass."""
    trigger: int
    assessments: Dict[int, Assessment] = field(default_factory=dict)
    mutations: List[Mutation] = field(default_factory=list)
    applied: int = 0
    skipped: bool = False
    skip_reason: Optional[str] = None
    dry_run: bool = False

    @property
    def verdicts(self) -> Dict[int, Verdict]:
        return {number: a.verdict for number, a in self.assessments.items()}

    @property
    def trigger_verdict(self) -> Optional[Verdict]:
        assessment = self.assessments.get(self.trigger)
        return assessment.verdict if assessment else None

    @property
    def merge_allowed(self) -> bool:
        """Skipped PRs are never blocked; otherwise the trigger's verdict decides."""
        if self.skipped:
            return True
        verdict = self.trigger_verdict
        return verdict is not None and verdict.allows_merge

    def to_dict(self) -> dict:
        return {
            "trigger": self.trigger,
            "skipped": self.skipped,
            "skip_reason": self.skip_reason,
            "merge_allowed": self.merge_allowed,
            "dry_run": self.dry_run,
            "applied": self.applied,
            "verdicts": {
                str(number): {
                    "verdict": a.verdict.value,
                    "branch": a.branch,
                    "references": sorted(a.references),
                    "matching_prs": a.matching_prs,
                    "imbalance": a.imbalance,
                    "override": a.override.status.value,
                }
                for number, a in sorted(self.assessments.items())
            },
            "planned": [m.describe() for m in self.mutations],
        }


@dataclass
class _PassState:
    claimed: bool = False
    released: bool = False


class Reconciler:
    """
    Runs reconciliation passes for a monitored branch pair.

    Each pass is self-contained: it reads the group from the platform,
    decides every verdict against that one snapshot and hands the full set
    of writes to the synchronizer. Nothing is carried between passes.
    """

    def __init__(self, platform: Platform, config: ValidationConfig):
        self.platform = platform
        self.config = config
        self.synchronizer = Synchronizer(platform, config)
        self.logger = get_logger()

    async def reconcile(
        self,
        pr_number: int,
        dry_run: bool = False,
        is_superseded: Optional[Callable[[], bool]] = None
    ) -> ReconcileResult:
        """
        Run one pass triggered by an event on ``pr_number``.

        Reads are bounded by ``timeout_seconds``; once the write plan is
        ready it is applied in full, never cut short by the timeout.

        Args:
            pr_number: Triggering PR
            dry_run: Compute and return the plan without writing anything
            is_superseded: Returns True once a newer pass for the same PR exists

        Raises:
            ConfigurationError: Bad configuration or unknown monitored branch
            PlatformUnavailableError: Platform unreachable after retries
            PassTimeoutError: Reads did not finish in time (nothing written)
            PassSuperseded: A newer pass took over (nothing written)
        """
        self.config.validate()
        state = _PassState()

        try:
            try:
                result = await asyncio.wait_for(
                    self._evaluate(pr_number, state, dry_run),
                    timeout=self.config.timeout_seconds,
                )
            except asyncio.TimeoutError as e:
                raise PassTimeoutError(
                    f"Pass for PR #{pr_number} timed out after "
                    f"{self.config.timeout_seconds}s; no verdicts written"
                ) from e

            if result.skipped or dry_run:
                return result

            if is_superseded is not None and is_superseded():
                raise PassSuperseded(f"Pass for PR #{pr_number} superseded by a newer event")

            result.applied = await self.synchronizer.apply(result.mutations)
            state.released = state.claimed
            return result
        finally:
            if state.claimed and not state.released:
                await self._release_claim(pr_number)

    async def _evaluate(
        self,
        pr_number: int,
        state: _PassState,
        dry_run: bool
    ) -> ReconcileResult:
        config = self.config
        result = ReconcileResult(trigger=pr_number, dry_run=dry_run)

        for branch in config.branches:
            if not await self.platform.branch_exists(branch):
                raise ConfigurationError(
                    f"Monitored branch '{branch}' does not exist (renamed or deleted?)"
                )

        trigger = await self.platform.get_change_request(pr_number)

        if trigger.branch not in config.branches:
            result.skipped = True
            result.skip_reason = f"PR targets '{trigger.branch}', which is not monitored"
            self.logger.info(f"PR #{pr_number}: {result.skip_reason}")
            return result

        if not extract_references(trigger.text):
            result.skipped = True
            result.skip_reason = "No issue reference found in title or body"
            self.logger.info(f"PR #{pr_number}: {result.skip_reason}; skipping validation")
            return result

        if not dry_run and trigger.is_writable:
            state.claimed = True
            await self.platform.add_label(pr_number, config.evaluating_label)

        index = CoverageIndex(
            self.platform,
            config.branches,
            config.inclusion_filter,
            max_rounds=config.max_expansion_rounds,
        )
        group = await index.build(trigger)

        in_flight, stale = self._claims(group, trigger.number)
        # Lower PR numbers take precedence: the lowest claimant never waits,
        # so sibling passes cannot keep each other pending
        waiting_on = {number for number in in_flight if number < trigger.number}
        if in_flight:
            self.logger.info(
                "PRs being evaluated by another pass: "
                + ", ".join(f"#{n}" for n in sorted(in_flight))
                + ("" if waiting_on else " (not waiting, this pass has precedence)")
            )

        authorizer = OverrideAuthorizer(config, self.platform)
        overrides: Dict[int, OverrideDecision] = {}
        for pr in evaluation_targets(group, trigger.number):
            overrides[pr.number] = await authorizer.authorize(pr)

        if not config.warn_only:
            self.logger.debug("Imbalance blocking is not supported; imbalance stays advisory")

        result.assessments = assess_group(
            group,
            config,
            overrides,
            trigger_number=trigger.number,
            in_flight=waiting_on,
        )

        result.mutations = self.synchronizer.plan(
            result.assessments,
            group,
            skip=in_flight,
            release_claims=stale,
        )
        if state.claimed:
            result.mutations.append(Mutation(
                MutationKind.REMOVE_LABEL, pr_number, label=config.evaluating_label
            ))

        for number, assessment in sorted(result.assessments.items()):
            self.logger.info(f"PR #{number} ({assessment.branch}): {assessment.verdict.value}")

        return result

    def _claims(self, group: CoverageGroup, trigger_number: int) -> tuple[Set[int], Set[int]]:
        """Split evaluation claims held by other PRs into live and stale."""
        now = datetime.now(timezone.utc)
        live: Set[int] = set()
        stale: Set[int] = set()
        for number, pr in group.members.items():
            if number == trigger_number or not pr.has_label(self.config.evaluating_label):
                continue
            if _age_seconds(pr, now) <= self.config.claim_ttl_seconds:
                live.add(number)
            else:
                stale.add(number)
        return live, stale

    async def _release_claim(self, pr_number: int) -> None:
        try:
            await self.platform.remove_label(pr_number, self.config.evaluating_label)
        except CrossBranchError as e:
            # Claim expires after claim_ttl_seconds
            self.logger.warning(f"Could not release evaluation claim on PR #{pr_number}: {e}")


def _age_seconds(pr: ChangeRequest, now: datetime) -> float:
    updated = pr.updated_at
    if updated.tzinfo is None:
        updated = updated.replace(tzinfo=timezone.utc)
    return (now - updated).total_seconds()


async def run_validation(
    platform: Platform,
    config: ValidationConfig,
    pr_number: Optional[int] = None,
    dry_run: bool = False,
    sleep: Optional[Callable[[float], Awaitable[None]]] = None
) -> ReconcileResult:
    """
    Entry point used by the CLI and automation.

    Runs a pass and, while the triggering PR is PENDING on a concurrent
    pass, re-runs it a bounded number of times with growing delays. A
    verdict still PENDING afterwards blocks the merge.
    """
    logger = get_logger()
    sleep = sleep or asyncio.sleep
    number = pr_number or config.pr_number
    if not number:
        raise ConfigurationError("PR number required")

    reconciler = Reconciler(platform, config)
    result = await reconciler.reconcile(number, dry_run=dry_run)

    attempt = 0
    while result.trigger_verdict == Verdict.PENDING and attempt < config.pending_retries:
        delay = config.pending_delay_seconds * (2 ** attempt)
        delay += random.uniform(0, delay / 2)
        attempt += 1
        logger.info(
            f"PR #{number} is pending on a concurrent pass; re-running in {delay:.1f}s "
            f"({attempt}/{config.pending_retries})"
        )
        await sleep(delay)
        result = await reconciler.reconcile(number, dry_run=dry_run)

    return result

"""Coverage-reconciliation engine.

This module provides:
- extract_references: Issue reference extraction
- CoverageIndex: Groups PRs by reference and branch
- evaluate_coverage: Exact/superset matching policy
- evaluate_imbalance: Per-issue branch count skew
- OverrideAuthorizer: Override label, approver and justification checks
- assess_group / decide_verdict: Verdict decision lattice
- Synchronizer: Writes converged verdicts back to every PR
- Reconciler / run_validation: One reconciliation pass per event
- PassScheduler: Supersede-aware pass scheduling
"""

from .references import extract_references
from .coverage_index import CoverageIndex, index_change_requests
from .matching import evaluate_coverage, references_match
from .imbalance import calculate_imbalance, evaluate_imbalance
from .override import OverrideAuthorizer
from .verdict import assess_group, decide_verdict
from .synchronizer import Mutation, MutationKind, Synchronizer
from .reconciler import ReconcileResult, Reconciler, run_validation
from .scheduler import PassScheduler

__all__ = [
    "extract_references",
    "CoverageIndex",
    "index_change_requests",
    "evaluate_coverage",
    "references_match",
    "calculate_imbalance",
    "evaluate_imbalance",
    "OverrideAuthorizer",
    "assess_group",
    "decide_verdict",
    "Mutation",
    "MutationKind",
    "Synchronizer",
    "ReconcileResult",
    "Reconciler",
    "run_validation",
    "PassScheduler",
]

"""Cross-branch PR validation."""

from .config import ValidationConfig
from .engine import ReconcileResult, Reconciler, run_validation
from .models import Verdict

__version__ = "0.1.0"

__all__ = [
    "ValidationConfig",
    "ReconcileResult",
    "Reconciler",
    "run_validation",
    "Verdict",
]

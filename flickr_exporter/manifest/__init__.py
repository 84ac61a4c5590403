"""On-disk run manifests."""

from .manifest_manager import RunManifest
from .models import FetchStatus, ReconcileResult, RecoveryStats, RunState, RunStats

__all__ = [
    "FetchStatus",
    "ReconcileResult",
    "RecoveryStats",
    "RunManifest",
    "RunState",
    "RunStats",
]

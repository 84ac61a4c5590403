"""Data models for run manifests."""

from dataclasses import dataclass, replace
from enum import Enum
from typing import List, Optional


class FetchStatus(str, Enum):
    """Outcome of reconciling one part of an item."""
    SKIPPED = "skipped"
    FETCHED = "fetched"
    FAILED = "failed"


class RunState(str, Enum):
    """Phases of an export run."""
    INIT = "init"
    FETCHING_ACCOUNT_INFO = "fetching_account_info"
    ENUMERATING = "enumerating"
    RECONCILING_ITEMS = "reconciling_items"
    REPORTING = "reporting"
    DONE = "done"


@dataclass(frozen=True)
class ReconcileResult:
    """What reconciliation did for one item."""
    item_id: str
    metadata_status: FetchStatus
    asset_status: FetchStatus
    asset_path: Optional[str] = None


@dataclass(frozen=True)
class RunStats:
    """Run-wide counters, threaded through the item loop."""
    attempted: int = 0
    fetched_metadata: int = 0
    skipped_metadata: int = 0
    failed_metadata: int = 0
    fetched_assets: int = 0
    skipped_assets: int = 0
    failed_assets: int = 0

    @property
    def failed(self) -> int:
        return self.failed_metadata + self.failed_assets

    def add(self, result: ReconcileResult) -> "RunStats":
        """Return new counters including ``result``."""
        metadata_field = f"{result.metadata_status.value}_metadata"
        asset_field = f"{result.asset_status.value}_assets"
        return replace(
            self,
            attempted=self.attempted + 1,
            **{
                metadata_field: getattr(self, metadata_field) + 1,
                asset_field: getattr(self, asset_field) + 1,
            },
        )

    def as_rows(self) -> List[List[object]]:
        return [
            ["Metadata", self.fetched_metadata, self.skipped_metadata, self.failed_metadata],
            ["Assets", self.fetched_assets, self.skipped_assets, self.failed_assets],
        ]


@dataclass(frozen=True)
class RecoveryStats:
    """Counters of a recovery run."""
    found: int = 0
    succeeded: int = 0
    failed: int = 0

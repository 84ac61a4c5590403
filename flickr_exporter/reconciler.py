"""Per-item reconciliation of metadata and assets against the manifest."""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Tuple, Union

from flickr_exporter.api.client import FlickrClient
from flickr_exporter.api.executor import ApiFailure, RequestExecutor, RequestOutcome, RequestTarget
from flickr_exporter.api.schemas import Unavailable
from flickr_exporter.manifest.manifest_manager import RunManifest
from flickr_exporter.manifest.models import FetchStatus, ReconcileResult
from flickr_exporter.models import Item
from flickr_exporter.utils.file_utils import (
    build_asset_filename,
    discard_file,
    temp_path_for,
    write_bytes_atomic,
)

logger = logging.getLogger(__name__)

MetadataPart = Union[Dict[str, Any], Unavailable]


@dataclass(frozen=True)
class DownloadResult:
    """Result of one asset download."""
    ok: bool
    path: Optional[Path] = None
    outcome: Optional[RequestOutcome] = None


class AssetDownloader:
    """Downloads a binary asset and moves it into place atomically."""

    def __init__(self, client: FlickrClient, executor: RequestExecutor):
        self.client = client
        self.executor = executor

    def download(self, url: str, destination: Path) -> DownloadResult:
        """Download ``url`` to ``destination``.

        Throttled attempts are retried by the executor; any other non-2xx
        status fails at once. The file only appears under its final name
        once complete.
        """
        temp_path = temp_path_for(destination)
        if discard_file(temp_path):
            logger.debug("Removed stale temporary file %s", temp_path)

        outcome = self.executor.execute(self.client.asset_target(url))
        if not outcome.ok:
            logger.warning("Download failed for %s: %s", destination.name, outcome)
            return DownloadResult(ok=False, outcome=outcome)

        try:
            write_bytes_atomic(destination, outcome.payload)
        except OSError as e:
            logger.error("Cannot write %s: %s", destination, e)
            return DownloadResult(ok=False, outcome=outcome)
        return DownloadResult(ok=True, path=destination, outcome=outcome)


def describe_failure(outcome: RequestOutcome) -> str:
    if isinstance(outcome, ApiFailure):
        return outcome.message or "Unknown error"
    return type(outcome).__name__


class AssetReconciler:
    """Fetches whatever part of an item is missing from the manifest."""

    def __init__(
        self,
        client: FlickrClient,
        executor: RequestExecutor,
        downloader: Optional[AssetDownloader] = None,
    ):
        self.client = client
        self.executor = executor
        self.downloader = downloader or AssetDownloader(client, executor)

    def _fetch_part(self, target: RequestTarget, name: str) -> MetadataPart:
        outcome = self.executor.execute(target)
        if outcome.ok:
            return outcome.payload.raw

        message = describe_failure(outcome)
        if name == "exif":
            logger.info("  Note: No EXIF data available (%s)", message)
        else:
            logger.warning("  Warning: Could not get photo %s: %s", name, message)
        return Unavailable(message)

    def fetch_metadata(self, item: Item) -> Dict[str, MetadataPart]:
        """Fetch the detail, EXIF and sizes of an item independently."""
        return {
            "detail": self._fetch_part(self.client.photo_info(item.id, item.secret), "detail"),
            "exif": self._fetch_part(self.client.photo_exif(item.id, item.secret), "exif"),
            "sizes": self._fetch_part(self.client.photo_sizes(item.id), "sizes"),
        }

    def reconcile_metadata(self, item: Item, manifest: RunManifest, force: bool) -> FetchStatus:
        if not force and manifest.has_metadata(item.id):
            return FetchStatus.SKIPPED

        parts = self.fetch_metadata(item)
        if all(isinstance(part, Unavailable) for part in parts.values()):
            logger.warning("Failed to get any metadata for photo %s", item.id)
            return FetchStatus.FAILED

        record = {
            name: part.to_record() if isinstance(part, Unavailable) else part
            for name, part in parts.items()
        }
        try:
            manifest.write_metadata(item.id, record)
        except OSError as e:
            logger.error("Cannot write metadata for photo %s: %s", item.id, e)
            return FetchStatus.FAILED
        return FetchStatus.FETCHED

    def reconcile_asset(
        self, item: Item, manifest: RunManifest, force: bool
    ) -> Tuple[FetchStatus, Optional[Path]]:
        if not force:
            existing = manifest.find_asset(item.id)
            if existing is not None:
                return FetchStatus.SKIPPED, existing

        url = item.best_url()
        if not url:
            logger.info("  Note: No download URL available for photo %s", item.id)
            return FetchStatus.SKIPPED, None

        destination = manifest.asset_path(build_asset_filename(item.id, item.title, url))
        logger.info("  Downloading: %s", destination.name)
        result = self.downloader.download(url, destination)
        if not result.ok:
            return FetchStatus.FAILED, None

        for stub in manifest.find_stubs(item.id):
            if stub == destination:
                continue
            try:
                manifest.remove(stub)
            except OSError as e:
                logger.error("Cannot remove stale stub %s: %s", stub, e)
                return FetchStatus.FAILED, destination
        return FetchStatus.FETCHED, destination

    def reconcile(self, item: Item, manifest: RunManifest, force: bool = False) -> ReconcileResult:
        """Bring one item's metadata and asset up to date.

        Args:
            item: Photo from the item list
            manifest: Run directory to reconcile against
            force: Fetch both parts even if they already exist

        Returns:
            Status of the metadata and of the asset
        """
        metadata_status = self.reconcile_metadata(item, manifest, force)
        asset_status, asset_path = self.reconcile_asset(item, manifest, force)
        return ReconcileResult(
            item_id=item.id,
            metadata_status=metadata_status,
            asset_status=asset_status,
            asset_path=str(asset_path) if asset_path else None,
        )

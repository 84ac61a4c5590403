"""Recovery of assets that an earlier run left as rate-limit stubs."""

import logging
import time
from pathlib import Path
from typing import Callable, List, Optional

from pydantic import ValidationError

from flickr_exporter.api.client import FlickrClient
from flickr_exporter.api.executor import RequestExecutor
from flickr_exporter.api.schemas import MetadataRecord
from flickr_exporter.manifest.manifest_manager import RunManifest
from flickr_exporter.manifest.models import RecoveryStats
from flickr_exporter.reconciler import AssetDownloader
from flickr_exporter.utils.file_utils import is_stub_file, photo_id_from_filename

logger = logging.getLogger(__name__)

DEFAULT_RECOVERY_DELAY_SECONDS = 2.0


class StubScanner:
    """Finds rate-limit stubs in a run directory and downloads the real assets.

    Each stub is mapped back to its photo id through the filename prefix, the
    retry URL comes from the photo's saved metadata, and the download uses a
    more patient executor than a normal export.
    """

    def __init__(
        self,
        client: FlickrClient,
        executor: Optional[RequestExecutor] = None,
        delay_seconds: float = DEFAULT_RECOVERY_DELAY_SECONDS,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.client = client
        self.executor = executor or RequestExecutor.for_recovery(sleep=sleep)
        self.downloader = AssetDownloader(client, self.executor)
        self.delay_seconds = delay_seconds
        self.sleep = sleep

    def find_stubs(self, manifest: RunManifest) -> List[Path]:
        """List every stub in photos/, in name order."""
        return [path for path in manifest.iter_asset_files() if is_stub_file(path)]

    def resolve_url(self, manifest: RunManifest, photo_id: str) -> Optional[str]:
        """Pick a retry URL for a photo from its saved metadata."""
        data = manifest.read_metadata(photo_id)
        if data is None:
            return None
        try:
            record = MetadataRecord.model_validate(data)
        except ValidationError as e:
            logger.warning("Unusable metadata for photo %s: %s", photo_id, e)
            return None
        return record.retry_url()

    def recover_stub(self, manifest: RunManifest, stub_path: Path, verbose: bool = False) -> bool:
        """Replace one stub with the real asset.

        Returns:
            True if the stub was replaced by a file that is not a stub
        """
        log = logger.info if verbose else logger.debug
        photo_id = photo_id_from_filename(stub_path.name)

        url = self.resolve_url(manifest, photo_id)
        if not url:
            logger.error("  Error: Could not find photo URL in metadata for %s", photo_id)
            return False
        log("  Attempting download from: %s", url)

        result = self.downloader.download(url, stub_path)
        if not result.ok:
            logger.warning("  Max retries reached for photo %s", photo_id)
            return False
        if is_stub_file(stub_path):
            logger.warning("  Download for photo %s is still a rate-limit page", photo_id)
            return False

        log("  Successfully downloaded and replaced file")
        return True

    def scan_and_recover(
        self, manifest: RunManifest, dry_run: bool = False, verbose: bool = False
    ) -> RecoveryStats:
        """Scan a run directory and retry every stub found.

        Args:
            manifest: Existing run directory
            dry_run: Only report what would be retried; no writes, no network
            verbose: Log per-file details at INFO level

        Returns:
            Counts of stubs found, recovered and still failing

        Raises:
            FatalSetupError: If the directory is not a run directory
        """
        manifest.require_layout()
        logger.info("Scanning for 429 error files in: %s", manifest.photos_dir)
        stubs = self.find_stubs(manifest)
        for stub in stubs:
            (logger.info if verbose else logger.debug)("Found 429 error file: %s", stub.name)
        logger.info("Found %d files with 429 errors", len(stubs))

        if dry_run:
            for stub in stubs:
                photo_id = photo_id_from_filename(stub.name)
                url = self.resolve_url(manifest, photo_id)
                if url:
                    logger.info("  [DRY RUN] Would download: %s -> %s", url, stub.name)
                else:
                    logger.info("  [DRY RUN] No URL in metadata for %s", photo_id)
            return RecoveryStats(found=len(stubs))

        succeeded = 0
        failed = 0
        for index, stub in enumerate(stubs, 1):
            logger.info(
                "[%d/%d] Processing: %s (ID: %s)",
                index,
                len(stubs),
                stub.name,
                photo_id_from_filename(stub.name),
            )
            if self.recover_stub(manifest, stub, verbose):
                logger.info("  Successfully retried: %s", stub.name)
                succeeded += 1
            else:
                logger.info("  Failed to retry: %s", stub.name)
                failed += 1
            if index < len(stubs) and self.delay_seconds > 0:
                self.sleep(self.delay_seconds)

        return RecoveryStats(found=len(stubs), succeeded=succeeded, failed=failed)

    def purge(self, manifest: RunManifest, dry_run: bool = False) -> List[Path]:
        """Delete every stub so that a resumed export fetches those photos again.

        Returns:
            The stubs that were (or, in dry-run mode, would be) deleted
        """
        manifest.require_layout()
        stubs = self.find_stubs(manifest)
        for stub in stubs:
            logger.info("Deleting %s", stub)
            if not dry_run:
                manifest.remove(stub)
        return stubs

"""Main module for Flickr Exporter."""

import argparse
import logging
import sys
import time
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from tabulate import tabulate

from flickr_exporter.api.client import FlickrClient
from flickr_exporter.api.executor import RequestExecutor
from flickr_exporter.api.schemas import Unavailable
from flickr_exporter.enumerator import CollectionEnumerator, EnumerationResult
from flickr_exporter.manifest.manifest_manager import RunManifest
from flickr_exporter.manifest.models import RecoveryStats, RunState, RunStats
from flickr_exporter.models import FatalSetupError, FlickrExportError
from flickr_exporter.photosets import PhotosetLister, photoset_title
from flickr_exporter.reconciler import AssetReconciler, describe_failure
from flickr_exporter.recovery import StubScanner
from flickr_exporter.utils.config import ExporterSettings, get_settings
from flickr_exporter.utils.file_utils import write_json_atomic

logger = logging.getLogger(__name__)


def default_run_dirname(account_id: str, now: Optional[datetime] = None) -> str:
    """Name of a fresh run directory: ``flickr_<account>_<timestamp>``."""
    now = now or datetime.now()
    return f"flickr_{account_id}_{now.strftime('%Y%m%d_%H%M%S')}"


class FlickrExporter:
    """Exports one Flickr account into a run directory.

    The run goes through account info, enumeration, item reconciliation and
    reporting. Account info and enumeration are skipped when their files
    already exist, so running again on a half-finished directory resumes it.
    """

    def __init__(
        self,
        client: FlickrClient,
        manifest: RunManifest,
        executor: Optional[RequestExecutor] = None,
        item_delay_seconds: float = 0.5,
        page_size: int = 500,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """Initialize the exporter."""
        self.client = client
        self.manifest = manifest
        self.executor = executor or RequestExecutor(sleep=sleep)
        self.enumerator = CollectionEnumerator(client, self.executor)
        self.reconciler = AssetReconciler(client, self.executor)
        self.item_delay_seconds = item_delay_seconds
        self.page_size = page_size
        self.sleep = sleep
        self.state = RunState.INIT
        self.enumeration: Optional[EnumerationResult] = None

    def _enter(self, state: RunState) -> None:
        logger.debug("Run state: %s -> %s", self.state.value, state.value)
        self.state = state

    def fetch_account_info(self, account_id: str, force: bool = False) -> None:
        """Save the account's profile as account_info.json."""
        if not force and self.manifest.has_account_info():
            logger.info("Account info already present, skipping")
            return

        logger.info("Fetching user information...")
        outcome = self.executor.execute(self.client.person_info(account_id))
        if outcome.ok:
            logger.info("User: %s", outcome.payload.model.username)
            record = outcome.payload.raw
        else:
            message = describe_failure(outcome)
            logger.warning("Could not get user info: %s", message)
            record = Unavailable(message).to_record()

        try:
            self.manifest.write_account_info(record)
        except OSError as e:
            raise FatalSetupError(
                f"Cannot write account info {self.manifest.account_info_path}: {e}"
            ) from e

    def enumerate_items(
        self, account_id: str, max_pages: Optional[int] = None, force: bool = False
    ) -> None:
        """Write the account's item list, unless a complete one exists.

        Raises:
            FatalSetupError: If no listing page could be fetched, or the list
                cannot be written
        """
        if not force and self.manifest.has_item_list():
            logger.info("Item list already present at %s, skipping enumeration", self.manifest.items_path)
            return

        logger.info("Fetching photo list...")
        self.enumeration = self.enumerator.enumerate(
            account_id, page_size=self.page_size, max_pages=max_pages
        )
        if self.enumeration.pages_fetched == 0 and not self.enumeration.truncated:
            # No item list is written, so the next resume enumerates again.
            raise FatalSetupError(f"Could not fetch any page of the photo list for {account_id}")
        try:
            self.manifest.write_item_list(item.record for item in self.enumeration.items)
        except OSError as e:
            raise FatalSetupError(f"Cannot write item list {self.manifest.items_path}: {e}") from e

    def reconcile_items(self, force: bool = False) -> RunStats:
        """Reconcile every item of the item list, in order."""
        logger.info("Reading from: %s", self.manifest.items_path)
        items = self.manifest.read_items()
        total = len(items)
        if total == 0:
            logger.warning("Photo list is empty, nothing to download")

        stats = RunStats()
        for index, item in enumerate(items, 1):
            logger.info("[%d/%d] Processing: %s (ID: %s)", index, total, item.title, item.id)
            stats = stats.add(self.reconciler.reconcile(item, self.manifest, force))
            self.sleep(self.item_delay_seconds)
            if index % 100 == 0:
                logger.info("Progress: %d/%d photos processed", index, total)
        return stats

    def report(self, account_id: str, stats: RunStats) -> Dict[str, Any]:
        """Write export_report.json and print the summary table."""
        report: Dict[str, Any] = {
            "account_id": account_id,
            "finished_at": datetime.now().isoformat(),
            "attempted": stats.attempted,
            "fetched_metadata": stats.fetched_metadata,
            "skipped_metadata": stats.skipped_metadata,
            "failed_metadata": stats.failed_metadata,
            "fetched_assets": stats.fetched_assets,
            "skipped_assets": stats.skipped_assets,
            "failed_assets": stats.failed_assets,
        }
        if self.enumeration is not None:
            report["pages_fetched"] = self.enumeration.pages_fetched
            report["truncated"] = self.enumeration.truncated
        self.manifest.write_report(report)

        print("\nDownload complete!")
        print(f"Photos saved to: {self.manifest.photos_dir}")
        print(f"Metadata saved to: {self.manifest.metadata_dir}")
        print(
            tabulate(
                stats.as_rows(),
                headers=["", "Fetched", "Skipped", "Failed"],
                tablefmt="psql",
            )
        )
        print(f"Total photos processed: {stats.attempted}")
        if stats.failed_assets:
            print("Some downloads failed; run 'recover' or resume this directory to retry them.")
        return report

    def run(self, account_id: str, max_pages: Optional[int] = None, force: bool = False) -> RunStats:
        """Run the whole export.

        Args:
            account_id: Flickr user id (NSID)
            max_pages: Stop enumeration after this many pages
            force: Redo every phase and re-download existing files

        Returns:
            Counters of the reconciliation phase

        Raises:
            FatalSetupError: If the run directory or item list is unusable
        """
        logger.info("Starting download for user: %s", account_id)
        logger.info("Output directory: %s", self.manifest.root)
        self.manifest.create()

        self._enter(RunState.FETCHING_ACCOUNT_INFO)
        self.fetch_account_info(account_id, force)

        self._enter(RunState.ENUMERATING)
        self.enumerate_items(account_id, max_pages, force)

        self._enter(RunState.RECONCILING_ITEMS)
        stats = self.reconcile_items(force)

        self._enter(RunState.REPORTING)
        self.report(account_id, stats)

        self._enter(RunState.DONE)
        return stats


def print_recovery_summary(stats: RecoveryStats, dry_run: bool) -> None:
    rows = [
        ["Total 429 error files found", stats.found],
        ["Successful retries", stats.succeeded],
        ["Failed retries", stats.failed],
    ]
    print("\n429 error recovery complete!")
    print(tabulate(rows, headers=["Statistic", "Count"], tablefmt="psql"))
    if dry_run:
        print("(Dry run mode - no files were actually modified)")


def build_client(api_key: str, settings: ExporterSettings, require_key: bool = True) -> FlickrClient:
    """Create the API client.

    Raises:
        FatalSetupError: If an API key is required and missing
    """
    if require_key and not api_key:
        raise FatalSetupError("A Flickr API key is required: pass --api-key or set FLICKR_API_KEY")
    return FlickrClient(api_key, base_url=settings.api_base_url, timeout=settings.request_timeout)


def run_export(args: argparse.Namespace, settings: ExporterSettings) -> RunStats:
    client = build_client(args.api_key or settings.api_key, settings)
    if args.resume_dir:
        root = Path(args.resume_dir)
        if not root.is_dir():
            raise FatalSetupError(f"Resume directory does not exist: {root}")
    else:
        root = Path(args.output_dir) / default_run_dirname(args.account_id)

    executor = RequestExecutor(
        max_attempts=settings.max_attempts, base_wait_seconds=settings.base_wait_seconds
    )
    exporter = FlickrExporter(
        client,
        RunManifest(root),
        executor=executor,
        item_delay_seconds=settings.item_delay_seconds,
        page_size=settings.page_size,
    )
    return exporter.run(args.account_id, max_pages=args.max_pages, force=args.force_redownload)


def run_recover(args: argparse.Namespace, settings: ExporterSettings) -> RecoveryStats:
    client = build_client(args.api_key or settings.api_key, settings, require_key=False)
    executor = RequestExecutor.for_recovery(
        max_attempts=settings.recovery_max_attempts,
        base_wait_seconds=settings.base_wait_seconds,
        jitter_seconds=settings.recovery_jitter_seconds,
    )
    scanner = StubScanner(client, executor, delay_seconds=settings.recovery_delay_seconds)
    manifest = RunManifest(args.download_dir, dry_run=args.dry_run)
    stats = scanner.scan_and_recover(manifest, dry_run=args.dry_run, verbose=args.verbose)
    print_recovery_summary(stats, args.dry_run)
    return stats


def run_purge(args: argparse.Namespace, settings: ExporterSettings) -> List[Path]:
    client = build_client(args.api_key or settings.api_key, settings, require_key=False)
    scanner = StubScanner(client)
    removed = scanner.purge(RunManifest(args.download_dir, dry_run=args.dry_run), args.dry_run)
    verb = "Would delete" if args.dry_run else "Deleted"
    print(f"{verb} {len(removed)} 429 error files")
    return removed


def run_photosets(args: argparse.Namespace, settings: ExporterSettings) -> Dict[str, Any]:
    client = build_client(args.api_key or settings.api_key, settings)
    executor = RequestExecutor(
        max_attempts=settings.max_attempts, base_wait_seconds=settings.base_wait_seconds
    )
    lister = PhotosetLister(client, executor, delay_seconds=settings.item_delay_seconds)
    result = lister.list_photosets(args.account_id)

    output_file = args.output_file or f"photosets_with_photos_{args.account_id}.json"
    write_json_atomic(output_file, result)
    print(f"Photosets data saved to: {output_file}")

    rows = [
        [photoset.get("id"), photoset_title(photoset), len(photoset["photo_ids"])]
        for photoset in result["photosets"]["photoset"]
    ]
    print(tabulate(rows, headers=["Photoset", "Title", "Photos"], tablefmt="psql"))
    return result


def parse_arguments(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(description="Flickr Exporter")

    # Global arguments
    parser.add_argument("--api-key", type=str, help="Flickr API key (default: $FLICKR_API_KEY)")
    parser.add_argument("--verbose", action="store_true", help="Show detailed progress")

    subparsers = parser.add_subparsers(dest="command", help="Commands", required=True)

    # Export command
    export_parser = subparsers.add_parser("export", help="Export photos and metadata of an account")
    export_parser.add_argument("--account-id", type=str, required=True, help="Flickr user id (NSID)")
    export_parser.add_argument(
        "--output-dir", type=str, default=".", help="Directory in which the run directory is created"
    )
    export_parser.add_argument(
        "--resume-dir", type=str, help="Existing run directory to resume instead of starting fresh"
    )
    export_parser.add_argument("--max-pages", type=int, help="Maximum number of listing pages")
    export_parser.add_argument(
        "--force-redownload",
        action="store_true",
        help="Fetch everything again even if it already exists",
    )

    # Recover command
    recover_parser = subparsers.add_parser("recover", help="Retry assets saved as 429 error pages")
    recover_parser.add_argument(
        "--download-dir", type=str, required=True, help="Run directory with photos/ and metadata/"
    )
    recover_parser.add_argument(
        "--dry-run", action="store_true", help="Show what would be retried without downloading"
    )

    # Purge command
    purge_parser = subparsers.add_parser("purge-stubs", help="Delete assets saved as 429 error pages")
    purge_parser.add_argument(
        "--download-dir", type=str, required=True, help="Run directory with photos/ and metadata/"
    )
    purge_parser.add_argument(
        "--dry-run", action="store_true", help="Show what would be deleted without deleting"
    )

    # Photosets command
    photosets_parser = subparsers.add_parser("photosets", help="List photosets with their photo ids")
    photosets_parser.add_argument("--account-id", type=str, required=True, help="Flickr user id (NSID)")
    photosets_parser.add_argument("--output-file", type=str, help="Where to write the JSON result")

    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the Flickr Exporter CLI."""
    args = parse_arguments(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    settings = get_settings()

    commands = {
        "export": run_export,
        "recover": run_recover,
        "purge-stubs": run_purge,
        "photosets": run_photosets,
    }
    try:
        commands[args.command](args, settings)
    except FlickrExportError as e:
        logger.error("%s", e)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())

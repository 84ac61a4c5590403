"""Run manifest operations for Flickr Exporter.

A manifest is the output directory of one export run. It is the only
persisted state: every resume or recovery decision is derived from it.

    <root>/
        photos/<id>_<title>.<ext>
        metadata/<id>.json
        items.ndjson
        account_info.json
        export_report.json
"""

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List, Optional, Union

from flickr_exporter.models import FatalSetupError, Item
from flickr_exporter.utils.file_utils import (
    ID_SEPARATOR,
    TEMP_SUFFIX,
    discard_file,
    is_stub_file,
    temp_path_for,
    write_json_atomic,
)

logger = logging.getLogger(__name__)

PHOTOS_DIRNAME = "photos"
METADATA_DIRNAME = "metadata"
ITEM_LIST_FILENAME = "items.ndjson"
ACCOUNT_INFO_FILENAME = "account_info.json"
REPORT_FILENAME = "export_report.json"


class RunManifest:
    """Reads and writes the on-disk state of one run."""

    def __init__(self, root: Union[str, Path], dry_run: bool = False):
        """Initialize the manifest.

        Args:
            root: Run output directory
            dry_run: If True, log writes and deletions without performing them
        """
        self.root = Path(root)
        self.dry_run = dry_run

    @property
    def photos_dir(self) -> Path:
        return self.root / PHOTOS_DIRNAME

    @property
    def metadata_dir(self) -> Path:
        return self.root / METADATA_DIRNAME

    @property
    def items_path(self) -> Path:
        return self.root / ITEM_LIST_FILENAME

    @property
    def account_info_path(self) -> Path:
        return self.root / ACCOUNT_INFO_FILENAME

    @property
    def report_path(self) -> Path:
        return self.root / REPORT_FILENAME

    def create(self) -> None:
        """Create the directory layout.

        Raises:
            FatalSetupError: If the directories cannot be created or written
        """
        try:
            self.photos_dir.mkdir(parents=True, exist_ok=True)
            self.metadata_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise FatalSetupError(f"Cannot create output directory {self.root}: {e}") from e

        for directory in (self.root, self.photos_dir, self.metadata_dir):
            if not os.access(directory, os.W_OK):
                raise FatalSetupError(f"Output directory is not writable: {directory}")

    def require_layout(self) -> None:
        """Check that an existing run directory has photos/ and metadata/.

        Raises:
            FatalSetupError: If any part of the layout is missing
        """
        for directory in (self.root, self.photos_dir, self.metadata_dir):
            if not directory.is_dir():
                raise FatalSetupError(f"Directory does not exist: {directory}")

    def _write_json(self, path: Path, data: Any) -> None:
        if self.dry_run:
            logger.info("[DRY RUN] Would write %s", path)
            return
        write_json_atomic(path, data)

    def remove(self, path: Path) -> bool:
        """Delete a file, honoring dry-run mode."""
        if self.dry_run:
            logger.info("[DRY RUN] Would delete %s", path)
            return False
        return discard_file(path)

    # Account info

    def has_account_info(self) -> bool:
        """Check for a usable account_info.json.

        A saved failure sentinel does not count, so the lookup is retried.
        """
        try:
            with open(self.account_info_path, "r", encoding="utf-8") as handle:
                data = json.load(handle)
        except FileNotFoundError:
            return False
        except (OSError, ValueError) as e:
            logger.warning("Cannot read account info %s: %s", self.account_info_path, e)
            return False
        return isinstance(data, dict) and data.get("stat") == "ok"

    def write_account_info(self, data: Dict[str, Any]) -> None:
        self._write_json(self.account_info_path, data)

    # Item list

    def has_item_list(self) -> bool:
        return self.items_path.is_file()

    def write_item_list(self, records: Iterable[Dict[str, Any]]) -> int:
        """Write the line-delimited item list.

        The list is written under a temporary name and renamed, so an
        existing item list is always a complete one.

        Returns:
            Number of records written
        """
        records = list(records)
        if self.dry_run:
            logger.info("[DRY RUN] Would write %d records to %s", len(records), self.items_path)
            return len(records)

        temp_path = temp_path_for(self.items_path)
        try:
            with open(temp_path, "w", encoding="utf-8") as handle:
                for record in records:
                    handle.write(json.dumps(record, ensure_ascii=False, separators=(",", ":")))
                    handle.write("\n")
            os.replace(temp_path, self.items_path)
        except OSError:
            discard_file(temp_path)
            raise
        return len(records)

    def read_items(self) -> List[Item]:
        """Read the item list back in file order.

        Blank lines are ignored; lines that are not valid item records are
        logged and skipped.

        Raises:
            FatalSetupError: If the item list is missing or unreadable
        """
        try:
            with open(self.items_path, "r", encoding="utf-8") as handle:
                lines = handle.readlines()
        except OSError as e:
            raise FatalSetupError(f"Cannot read item list {self.items_path}: {e}") from e

        items = []
        for line_number, line in enumerate(lines, 1):
            line = line.strip()
            if not line:
                continue
            try:
                items.append(Item.from_record(json.loads(line)))
            except (ValueError, AttributeError) as e:
                logger.warning("Skipping invalid item entry at line %d: %s", line_number, e)
        return items

    # Metadata

    def metadata_path(self, photo_id: str) -> Path:
        return self.metadata_dir / f"{photo_id}.json"

    def has_metadata(self, photo_id: str) -> bool:
        return self.metadata_path(photo_id).is_file()

    def write_metadata(self, photo_id: str, record: Dict[str, Any]) -> None:
        self._write_json(self.metadata_path(photo_id), record)

    def read_metadata(self, photo_id: str) -> Optional[Dict[str, Any]]:
        """Load the metadata record of a photo.

        Returns:
            The record, or None if it is missing or not valid JSON
        """
        path = self.metadata_path(photo_id)
        try:
            with open(path, "r", encoding="utf-8") as handle:
                data = json.load(handle)
        except FileNotFoundError:
            logger.warning("Metadata file not found: %s", path)
            return None
        except (OSError, ValueError) as e:
            logger.warning("Cannot read metadata file %s: %s", path, e)
            return None
        return data if isinstance(data, dict) else None

    # Assets

    def asset_path(self, filename: str) -> Path:
        return self.photos_dir / filename

    def iter_asset_files(self) -> Iterator[Path]:
        """Yield regular files of photos/ in name order."""
        if not self.photos_dir.is_dir():
            return
        for entry in sorted(os.scandir(self.photos_dir), key=lambda e: e.name):
            if entry.is_file():
                yield Path(entry.path)

    def find_asset(self, photo_id: str) -> Optional[Path]:
        """Find the downloaded asset of a photo.

        Matches any file named ``<id>_...`` regardless of extension, since
        earlier runs may have guessed a different one. Temporary files and
        rate-limit stubs do not count as a downloaded asset.

        Returns:
            Path of the asset, or None if the photo still needs downloading
        """
        prefix = f"{photo_id}{ID_SEPARATOR}"
        for path in self.iter_asset_files():
            if not path.name.startswith(prefix) or path.name.endswith(TEMP_SUFFIX):
                continue
            if is_stub_file(path):
                continue
            return path
        return None

    def find_stubs(self, photo_id: str) -> List[Path]:
        """List the rate-limit stubs left for a photo."""
        prefix = f"{photo_id}{ID_SEPARATOR}"
        return [
            path
            for path in self.iter_asset_files()
            if path.name.startswith(prefix) and is_stub_file(path)
        ]

    # Report

    def write_report(self, report: Dict[str, Any]) -> None:
        self._write_json(self.report_path, report)

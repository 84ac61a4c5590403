"""Listing of an account's photosets together with their photo ids."""

import logging
import time
from typing import Any, Callable, Dict, List

from flickr_exporter.api.client import FlickrClient
from flickr_exporter.api.executor import RequestExecutor
from flickr_exporter.models import FlickrExportError

logger = logging.getLogger(__name__)


def photoset_title(photoset: Dict[str, Any]) -> str:
    title = photoset.get("title")
    if isinstance(title, dict):
        return str(title.get("_content") or "")
    return str(title or "")


class PhotosetLister:
    """Fetches photosets and annotates each with the ids of its photos."""

    def __init__(
        self,
        client: FlickrClient,
        executor: RequestExecutor,
        delay_seconds: float = 0.5,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.client = client
        self.executor = executor
        self.delay_seconds = delay_seconds
        self.sleep = sleep

    def photo_ids(self, photoset_id: str, account_id: str) -> List[str]:
        outcome = self.executor.execute(self.client.photoset_photos(photoset_id, account_id))
        if not outcome.ok:
            logger.warning("Could not get photos of photoset %s: %s", photoset_id, outcome)
            return []
        return [str(photo.get("id")) for photo in outcome.payload.model.photoset.photo]

    def list_photosets(self, account_id: str) -> Dict[str, Any]:
        """Fetch all photosets of an account with their photo ids.

        Args:
            account_id: Flickr user id (NSID)

        Returns:
            The getList response with a ``photo_ids`` list added to every set

        Raises:
            FlickrExportError: If the photoset list cannot be fetched
        """
        logger.info("Fetching photosets for user: %s", account_id)
        outcome = self.executor.execute(self.client.list_photosets(account_id))
        if not outcome.ok:
            raise FlickrExportError(f"Cannot list photosets for {account_id}: {outcome}")

        listing = outcome.payload.raw
        photosets = list(outcome.payload.model.photosets.photoset)
        logger.info("Found %d photosets", len(photosets))

        enhanced = []
        for index, photoset in enumerate(photosets, 1):
            photoset_id = str(photoset.get("id"))
            logger.info("[%d/%d] Processing: %s", index, len(photosets), photoset_title(photoset))
            ids = self.photo_ids(photoset_id, account_id)
            logger.info("  Found %d photos", len(ids))
            enhanced.append({**photoset, "photo_ids": ids})
            if index < len(photosets) and self.delay_seconds > 0:
                self.sleep(self.delay_seconds)

        return {
            "photosets": {**listing.get("photosets", {}), "photoset": enhanced},
            "stat": listing.get("stat", "ok"),
        }

"""Paginated enumeration of an account's photos."""

import logging
from dataclasses import dataclass, field
from typing import List, Optional

from flickr_exporter.api.client import FlickrClient
from flickr_exporter.api.executor import RequestExecutor
from flickr_exporter.models import Item, Page

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 500


@dataclass
class EnumerationResult:
    """Items collected across all fetched pages, in page order."""
    items: List[Item] = field(default_factory=list)
    pages_fetched: int = 0
    truncated: bool = False


class CollectionEnumerator:
    """Walks the account listing page by page."""

    def __init__(self, client: FlickrClient, executor: RequestExecutor):
        self.client = client
        self.executor = executor

    def fetch_page(self, account_id: str, page_number: int, page_size: int) -> Optional[Page]:
        """Fetch one listing page.

        Returns:
            The decoded page, or None if the request failed for good
        """
        outcome = self.executor.execute(
            self.client.list_photos(account_id, page=page_number, per_page=page_size)
        )
        if not outcome.ok:
            logger.error("Failed to fetch page %d: %s", page_number, outcome)
            return None

        photos = outcome.payload.model.photos
        items = []
        for position, record in enumerate(photos.photo, 1):
            try:
                items.append(Item.from_record(record))
            except ValueError as e:
                logger.warning(
                    "Skipping invalid photo entry %d on page %d: %s", position, page_number, e
                )
        return Page(page_number=page_number, total_pages=photos.pages, items=items)

    def enumerate(
        self,
        account_id: str,
        page_size: int = DEFAULT_PAGE_SIZE,
        max_pages: Optional[int] = None,
    ) -> EnumerationResult:
        """Collect every photo of an account.

        A page that cannot be fetched is skipped rather than ending the walk.
        Duplicate ids across pages are kept as returned.

        Args:
            account_id: Flickr user id (NSID)
            page_size: Photos per page, at most 500
            max_pages: Stop after this many pages

        Returns:
            Items in page order, the number of pages fetched, and whether the
            page cap cut the listing short
        """
        result = EnumerationResult()
        page_number = 1
        total_pages = 1

        while page_number <= total_pages:
            if max_pages is not None and page_number > max_pages:
                logger.info("Reached maximum pages limit (%d), stopping", max_pages)
                result.truncated = True
                break

            if max_pages is not None:
                logger.info(
                    "Fetching page %d of %d (limited from %d total pages)",
                    page_number,
                    min(max_pages, total_pages),
                    total_pages,
                )
            else:
                logger.info("Fetching page %d of %d", page_number, total_pages)

            page = self.fetch_page(account_id, page_number, page_size)
            if page is not None:
                total_pages = page.total_pages
                result.items.extend(page.items)
                result.pages_fetched += 1
            page_number += 1

        if max_pages is not None:
            logger.info("Found %d photos (limited to first %d pages)", len(result.items), max_pages)
        else:
            logger.info("Found %d photos (all pages)", len(result.items))
        return result

"""Models for Flickr Exporter."""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

# Flickr size suffixes, best quality first.
URL_FIELDS_BY_QUALITY = (
    "url_o",
    "url_l",
    "url_c",
    "url_z",
    "url_m",
    "url_n",
    "url_s",
    "url_t",
    "url_sq",
)


@dataclass(frozen=True)
class Item:
    """Represents one exportable photo from the account listing."""
    id: str
    secret: str
    title: str
    candidate_urls: Tuple[Tuple[int, str], ...] = ()
    record: Dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "Item":
        """Build an item from a raw listing record.

        Args:
            record: One entry of ``photos.photo`` as returned by the API

        Returns:
            Item with its candidate URLs ranked by quality

        Raises:
            ValueError: If the record has no id
        """
        photo_id = str(record.get("id") or "")
        if not photo_id:
            raise ValueError("listing record has no id")

        rank = len(URL_FIELDS_BY_QUALITY)
        candidates = []
        for name in URL_FIELDS_BY_QUALITY:
            url = record.get(name)
            if url:
                candidates.append((rank, str(url)))
            rank -= 1

        return cls(
            id=photo_id,
            secret=str(record.get("secret") or ""),
            title=str(record.get("title") or "untitled"),
            candidate_urls=tuple(candidates),
            record=dict(record),
        )

    def best_url(self) -> Optional[str]:
        """Return the highest quality non-empty URL, if any."""
        for _, url in sorted(self.candidate_urls, key=lambda c: c[0], reverse=True):
            if url:
                return url
        return None


@dataclass
class Page:
    """One page of the account listing."""
    page_number: int
    total_pages: int
    items: List[Item]


class FlickrExportError(Exception):
    """Base exception for Flickr export operations."""


class ApiError(FlickrExportError):
    """Raised when the API answers with a well-formed failure response."""

    def __init__(self, message: str, code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.code = code


class FatalSetupError(FlickrExportError):
    """Raised when a run cannot start or cannot read its own manifest."""

"""Pydantic schemas for Flickr REST responses.

Every endpoint shares the ``stat``/``code``/``message`` envelope. A response
whose ``stat`` is ``ok`` must carry its payload field; a failure response only
needs the envelope. Unknown fields are kept so persisted records stay
complete.
"""

from dataclasses import dataclass
from typing import Any, ClassVar, Dict, List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, model_validator

from flickr_exporter.models import ApiError

# Labels tried, in order, when picking a download URL from getSizes.
PREFERRED_SIZE_LABELS = ("Original", "Large", "Medium 640", "Medium")


class FlickrModel(BaseModel):
    """Base model keeping unknown fields."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)


class FlickrResponse(FlickrModel):
    """Envelope common to all REST responses."""

    payload_field: ClassVar[Optional[str]] = None

    stat: str
    code: Optional[int] = None
    message: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.stat == "ok"

    @model_validator(mode="after")
    def _require_payload(self) -> "FlickrResponse":
        if self.ok and self.payload_field and getattr(self, self.payload_field) is None:
            raise ValueError(f"successful response is missing '{self.payload_field}'")
        return self

    def raise_for_stat(self) -> None:
        """Raise ApiError if the response reports a failure."""
        if not self.ok:
            raise ApiError(self.message or "Unknown error", self.code)


class PhotoPage(FlickrModel):
    page: int
    pages: int
    perpage: int = 0
    total: int = 0
    photo: List[Dict[str, Any]] = Field(default_factory=list)


class PhotoListResponse(FlickrResponse):
    """flickr.people.getPhotos"""

    payload_field: ClassVar[Optional[str]] = "photos"
    photos: Optional[PhotoPage] = None


class UrlEntry(FlickrModel):
    content: str = Field(default="", alias="_content")
    type: Optional[str] = None


class UrlList(FlickrModel):
    url: List[UrlEntry] = Field(default_factory=list)


class PhotoInfo(FlickrModel):
    id: Optional[str] = None
    urls: Optional[UrlList] = None


class PhotoInfoResponse(FlickrResponse):
    """flickr.photos.getInfo"""

    payload_field: ClassVar[Optional[str]] = "photo"
    photo: Optional[PhotoInfo] = None

    def first_url(self) -> Optional[str]:
        if not self.ok or not self.photo or not self.photo.urls:
            return None
        for entry in self.photo.urls.url:
            if entry.content:
                return entry.content
        return None


class ExifResponse(FlickrResponse):
    """flickr.photos.getExif"""

    payload_field: ClassVar[Optional[str]] = "photo"
    photo: Optional[Dict[str, Any]] = None


class SizeEntry(FlickrModel):
    label: str = ""
    source: str = ""


class SizeList(FlickrModel):
    size: List[SizeEntry] = Field(default_factory=list)


class SizesResponse(FlickrResponse):
    """flickr.photos.getSizes"""

    payload_field: ClassVar[Optional[str]] = "sizes"
    sizes: Optional[SizeList] = None

    def preferred_source(self) -> Optional[str]:
        """Return the source URL of the best preferred size label."""
        if not self.ok or not self.sizes:
            return None
        by_label = {}
        for entry in self.sizes.size:
            if entry.source and entry.label not in by_label:
                by_label[entry.label] = entry.source
        for label in PREFERRED_SIZE_LABELS:
            if label in by_label:
                return by_label[label]
        return None


class PersonInfoResponse(FlickrResponse):
    """flickr.people.getInfo"""

    payload_field: ClassVar[Optional[str]] = "person"
    person: Optional[Dict[str, Any]] = None

    @property
    def username(self) -> str:
        username = (self.person or {}).get("username")
        if isinstance(username, dict):
            return str(username.get("_content") or "unknown")
        return str(username or "unknown")


class PhotosetList(FlickrModel):
    page: Optional[int] = None
    pages: Optional[int] = None
    perpage: Optional[int] = None
    total: Optional[int] = None
    photoset: List[Dict[str, Any]] = Field(default_factory=list)


class PhotosetListResponse(FlickrResponse):
    """flickr.photosets.getList"""

    payload_field: ClassVar[Optional[str]] = "photosets"
    photosets: Optional[PhotosetList] = None


class PhotosetPhotos(FlickrModel):
    id: Optional[str] = None
    photo: List[Dict[str, Any]] = Field(default_factory=list)


class PhotosetPhotosResponse(FlickrResponse):
    """flickr.photosets.getPhotos"""

    payload_field: ClassVar[Optional[str]] = "photoset"
    photoset: Optional[PhotosetPhotos] = None


class MetadataRecord(FlickrModel):
    """Persisted ``metadata/<id>.json`` record.

    Each part is either the endpoint's payload or a failure sentinel. Records
    written by older exports used ``info`` instead of ``detail``.
    """

    detail: Optional[PhotoInfoResponse] = Field(
        default=None, validation_alias=AliasChoices("detail", "info")
    )
    exif: Optional[ExifResponse] = None
    sizes: Optional[SizesResponse] = None

    def retry_url(self) -> Optional[str]:
        """Pick a download URL: a preferred size first, then the detail URLs."""
        if self.sizes:
            source = self.sizes.preferred_source()
            if source:
                return source
        if self.detail:
            return self.detail.first_url()
        return None


@dataclass(frozen=True)
class Unavailable:
    """Stands in for a metadata part that could not be fetched."""

    message: str

    def to_record(self) -> Dict[str, Any]:
        return {"stat": "fail", "message": self.message}

"""Flickr REST and asset request builders."""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Type

import requests

from flickr_exporter.api.executor import RequestTarget
from flickr_exporter.api.schemas import (
    ExifResponse,
    FlickrResponse,
    PersonInfoResponse,
    PhotoInfoResponse,
    PhotoListResponse,
    PhotosetListResponse,
    PhotosetPhotosResponse,
    SizesResponse,
)

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.flickr.com/services/rest/"

LISTING_EXTRAS = ",".join(
    [
        "description",
        "license",
        "date_upload",
        "date_taken",
        "owner_name",
        "icon_server",
        "original_format",
        "last_update",
        "geo",
        "tags",
        "machine_tags",
        "o_dims",
        "views",
        "media",
        "path_alias",
        "url_sq",
        "url_t",
        "url_s",
        "url_q",
        "url_m",
        "url_n",
        "url_z",
        "url_c",
        "url_l",
        "url_o",
    ]
)


@dataclass(frozen=True)
class ApiPayload:
    """A successful REST response: the typed model plus the raw JSON."""

    model: Any
    raw: Dict[str, Any]


def schema_parser(schema: Type[FlickrResponse]) -> Callable[[requests.Response], ApiPayload]:
    """Build a parser that validates a response against ``schema``.

    The parser raises ValueError when the body is not JSON or does not match
    the schema, and ApiError when the API reports ``stat != ok``.
    """

    def parse(response: requests.Response) -> ApiPayload:
        data = response.json()
        if not isinstance(data, dict):
            raise ValueError("response body is not a JSON object")
        model = schema.model_validate(data)
        model.raise_for_stat()
        return ApiPayload(model=model, raw=data)

    return parse


class FlickrClient:
    """Builds request targets for the Flickr REST API and the asset CDN."""

    def __init__(
        self,
        api_key: str,
        base_url: str = DEFAULT_BASE_URL,
        session: Optional[requests.Session] = None,
        timeout: float = 60.0,
    ):
        """Initialize the client.

        Args:
            api_key: Flickr API key
            base_url: REST endpoint URL
            session: HTTP session to reuse, a new one by default
            timeout: Per-request timeout in seconds
        """
        self.api_key = api_key
        self.base_url = base_url
        self.session = session or requests.Session()
        self.timeout = timeout

    def rest_target(
        self, method: str, schema: Type[FlickrResponse], **params: Any
    ) -> RequestTarget:
        """Build a target for one REST method call."""
        query = {
            "method": method,
            "api_key": self.api_key,
            "format": "json",
            "nojsoncallback": 1,
        }
        query.update({key: value for key, value in params.items() if value is not None})
        description = method
        if "photo_id" in params:
            description = f"{method} ({params['photo_id']})"
        elif "page" in params:
            description = f"{method} (page {params['page']})"

        def send() -> requests.Response:
            logger.debug("GET %s %s", self.base_url, method)
            return self.session.get(self.base_url, params=query, timeout=self.timeout)

        return RequestTarget(description=description, send=send, parse=schema_parser(schema))

    def asset_target(self, url: str) -> RequestTarget:
        """Build a target for a plain binary GET."""

        def send() -> requests.Response:
            logger.debug("GET %s", url)
            return self.session.get(url, timeout=self.timeout, allow_redirects=True)

        return RequestTarget(description=f"download {url}", send=send)

    def person_info(self, user_id: str) -> RequestTarget:
        return self.rest_target("flickr.people.getInfo", PersonInfoResponse, user_id=user_id)

    def list_photos(self, user_id: str, page: int, per_page: int) -> RequestTarget:
        return self.rest_target(
            "flickr.people.getPhotos",
            PhotoListResponse,
            user_id=user_id,
            page=page,
            per_page=per_page,
            extras=LISTING_EXTRAS,
        )

    def photo_info(self, photo_id: str, secret: Optional[str] = None) -> RequestTarget:
        return self.rest_target(
            "flickr.photos.getInfo", PhotoInfoResponse, photo_id=photo_id, secret=secret or None
        )

    def photo_exif(self, photo_id: str, secret: Optional[str] = None) -> RequestTarget:
        return self.rest_target(
            "flickr.photos.getExif", ExifResponse, photo_id=photo_id, secret=secret or None
        )

    def photo_sizes(self, photo_id: str) -> RequestTarget:
        return self.rest_target("flickr.photos.getSizes", SizesResponse, photo_id=photo_id)

    def list_photosets(self, user_id: str) -> RequestTarget:
        return self.rest_target("flickr.photosets.getList", PhotosetListResponse, user_id=user_id)

    def photoset_photos(self, photoset_id: str, user_id: str) -> RequestTarget:
        return self.rest_target(
            "flickr.photosets.getPhotos",
            PhotosetPhotosResponse,
            photoset_id=photoset_id,
            user_id=user_id,
        )

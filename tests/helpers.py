"""Fakes shared by the test suite."""

import json
from typing import Any, Dict, List, Optional
from unittest.mock import MagicMock

REST_URL = "https://api.flickr.com/services/rest/"


def make_response(
    status: int = 200, json_data: Any = None, content: Optional[bytes] = None
) -> MagicMock:
    """Build a fake requests.Response."""
    response = MagicMock()
    response.status_code = status
    if json_data is not None:
        response.content = json.dumps(json_data).encode("utf-8")
        response.json.return_value = json_data
    else:
        response.content = content if content is not None else b""
        response.json.side_effect = ValueError("Expecting value: line 1 column 1 (char 0)")
    return response


def ok(**payload: Any) -> Dict[str, Any]:
    """A successful Flickr REST body."""
    return {**payload, "stat": "ok"}


def fail(message: str = "Photo not found", code: int = 1) -> Dict[str, Any]:
    """A failed Flickr REST body."""
    return {"stat": "fail", "code": code, "message": message}


def listing_page(page: int, pages: int, photos: List[Dict[str, Any]]) -> Dict[str, Any]:
    """A flickr.people.getPhotos body."""
    return ok(photos={"page": page, "pages": pages, "perpage": 500, "total": 0, "photo": photos})


class FakeSession:
    """Routes GETs to queued fake responses.

    REST calls are keyed by their ``method`` parameter, asset GETs by URL.
    Each route holds a list of responses; they are served in order and the
    last one repeats.
    """

    def __init__(self):
        self.routes: Dict[str, List[MagicMock]] = {}
        self.calls: List[Dict[str, Any]] = []

    def add(self, key: str, *responses: MagicMock) -> None:
        self.routes.setdefault(key, []).extend(responses)

    def get(self, url: str, params: Optional[Dict[str, Any]] = None, **kwargs: Any) -> MagicMock:
        params = params or {}
        key = params.get("method", url)
        self.calls.append({"url": url, "key": key, "params": params})
        queue = self.routes.get(key)
        if not queue:
            return make_response(404, content=b"not found")
        return queue.pop(0) if len(queue) > 1 else queue[0]

    def count(self, key: str) -> int:
        return sum(1 for call in self.calls if call["key"] == key)

    def keys(self) -> List[str]:
        return [call["key"] for call in self.calls]

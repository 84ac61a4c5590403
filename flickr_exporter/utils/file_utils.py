"""File utilities for Flickr Exporter."""

import json
import logging
import os
import re
from typing import Any, Union
from urllib.parse import unquote, urlparse

logger = logging.getLogger(__name__)

PathLike = Union[str, "os.PathLike[str]"]

# Body served by the asset CDN in place of an image when throttling.
STUB_SIGNATURE = (
    b"<html><body><h1>429 Too Many Requests</h1>\n"
    b"You have sent too many requests in a given amount of time.\n"
    b"</body></html>\n"
)
STUB_SIZE = len(STUB_SIGNATURE)
STUB_MARKER = b"429 Too Many Requests"

TEMP_SUFFIX = ".tmp"
DEFAULT_EXTENSION = "jpg"
MAX_EXTENSION_LENGTH = 5
MAX_TITLE_LENGTH = 50
ID_SEPARATOR = "_"


def sanitize_title(title: str) -> str:
    """Make a photo title safe to use inside a filename.

    Args:
        title: Display title of the photo

    Returns:
        Title with every character outside ``[A-Za-z0-9._-]`` replaced by an
        underscore, capped at 50 characters
    """
    return re.sub(r"[^a-zA-Z0-9._-]", "_", title or "")[:MAX_TITLE_LENGTH]


def extension_from_url(url: str) -> str:
    """Guess the asset extension from the last path segment of a URL.

    Falls back to ``jpg`` when the path has no extension or the candidate is
    implausible (too long or not alphanumeric, e.g. query-string debris).
    """
    path = unquote(urlparse(url).path)
    basename = path.rsplit("/", 1)[-1]
    if "." not in basename:
        return DEFAULT_EXTENSION
    extension = basename.rsplit(".", 1)[-1]
    if not extension or len(extension) > MAX_EXTENSION_LENGTH or not extension.isalnum():
        return DEFAULT_EXTENSION
    return extension.lower()


def build_asset_filename(photo_id: str, title: str, url: str) -> str:
    """Build the deterministic asset filename ``<id>_<title>.<ext>``."""
    return f"{photo_id}{ID_SEPARATOR}{sanitize_title(title)}.{extension_from_url(url)}"


def photo_id_from_filename(filename: str) -> str:
    """Return the photo id encoded as the filename prefix."""
    return os.path.basename(filename).split(ID_SEPARATOR, 1)[0]


def is_stub_content(content: bytes) -> bool:
    """Check whether a body is the rate-limit placeholder page.

    Both the exact length and the marker must match, so a legitimately small
    asset is never mistaken for a placeholder.
    """
    return len(content) == STUB_SIZE and STUB_MARKER in content


def is_stub_file(file_path: PathLike) -> bool:
    """Check whether a file on disk is a rate-limit placeholder.

    Args:
        file_path: Path of the file to inspect

    Returns:
        True if the file has the placeholder length and contents
    """
    try:
        if not os.path.isfile(file_path) or os.path.getsize(file_path) != STUB_SIZE:
            return False
        with open(file_path, "rb") as handle:
            return is_stub_content(handle.read())
    except OSError as e:
        logger.warning("Failed to inspect %s: %s", file_path, str(e))
        return False


def temp_path_for(file_path: PathLike) -> str:
    """Return the temporary sibling used while writing ``file_path``."""
    return f"{os.fspath(file_path)}{TEMP_SUFFIX}"


def write_bytes_atomic(file_path: PathLike, content: bytes) -> None:
    """Write bytes under a temporary name, then rename into place."""
    temp_path = temp_path_for(file_path)
    try:
        with open(temp_path, "wb") as handle:
            handle.write(content)
        os.replace(temp_path, file_path)
    except OSError:
        discard_file(temp_path)
        raise


def write_json_atomic(file_path: PathLike, data: Any) -> None:
    """Serialize ``data`` as indented JSON and write it atomically."""
    payload = json.dumps(data, indent=2, ensure_ascii=False).encode("utf-8")
    write_bytes_atomic(file_path, payload)


def discard_file(file_path: PathLike) -> bool:
    """Remove a file if it exists.

    Returns:
        True if a file was removed
    """
    try:
        os.remove(file_path)
        return True
    except FileNotFoundError:
        return False

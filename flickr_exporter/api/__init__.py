"""Flickr API access for Flickr Exporter."""

from .client import ApiPayload, FlickrClient
from .executor import (
    ApiFailure,
    MalformedResponse,
    PermanentError,
    RateLimited,
    RequestExecutor,
    RequestOutcome,
    RequestTarget,
    Success,
    TransientError,
)

__all__ = [
    "ApiFailure",
    "ApiPayload",
    "FlickrClient",
    "MalformedResponse",
    "PermanentError",
    "RateLimited",
    "RequestExecutor",
    "RequestOutcome",
    "RequestTarget",
    "Success",
    "TransientError",
]

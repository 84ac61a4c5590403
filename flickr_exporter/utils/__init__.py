"""Utility functions for Flickr Exporter."""

from .config import ExporterSettings, get_settings
from .file_utils import build_asset_filename, is_stub_file, sanitize_title

__all__ = [
    "ExporterSettings",
    "get_settings",
    "build_asset_filename",
    "is_stub_file",
    "sanitize_title",
]

"""Flickr Exporter: resumable bulk export of a Flickr account."""

__version__ = "0.1.0"

"""Error taxonomy for the image pipeline.

Every failure the worker records on a request is one of these. The web layer
maps them to HTTP status codes.
"""

from __future__ import annotations


class GalleryError(Exception):
    """Base class for image pipeline failures."""


class NotFound(GalleryError):
    """Source path does not exist, is not a regular file, or escapes the gallery root."""


class DecodeError(GalleryError):
    """Bytes could not be parsed as an image."""


class CacheIOError(GalleryError):
    """Cache directory creation or cache file write failed."""


class WorkerStopped(GalleryError):
    """The request worker shut down before the request was processed."""

"""Path utilities for gallery-relative paths.

All paths handed to the pipeline are relative to the gallery root. They are
normalised to POSIX form so the same image always maps to the same cache key.
"""

from __future__ import annotations

import re
from pathlib import Path, PurePosixPath

from .errors import NotFound

# Permissive on purpose: a matching name is not guaranteed to decode.
IMAGE_PATTERN = re.compile(r"(?i).*\.(jpe?g|png|gif)$")

_CONTENT_TYPES = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".gif": "image/gif",
}


def is_image(filename: str) -> bool:
    return IMAGE_PATTERN.match(filename) is not None


def content_type_for(filename: str) -> str:
    return _CONTENT_TYPES.get(PurePosixPath(filename).suffix.lower(), "application/octet-stream")


def normalize_relative(relative_path: str) -> str:
    """Normalise a gallery-relative path, rejecting empty paths and `..` components.

    Example:
        >>> normalize_relative("/holidays//2015/./beach.jpg")
        "holidays/2015/beach.jpg"

    Raises:
        NotFound: the path is empty or contains a `..` component
    """
    parts = [p for p in relative_path.replace("\\", "/").split("/") if p not in ("", ".")]
    if not parts or ".." in parts:
        raise NotFound(f"Invalid gallery path: {relative_path!r}")
    return "/".join(parts)


def to_absolute(relative_path: str, gallery_root: Path) -> Path:
    """Convert a gallery-relative path string to an absolute Path.

    Symlinks are followed; a path whose target lies outside the gallery
    root raises NotFound.

    Example:
        >>> to_absolute("holidays/beach.jpg", Path("/srv/gallery"))
        Path("/srv/gallery/holidays/beach.jpg")
    """
    path = gallery_root / normalize_relative(relative_path)
    if not path.resolve().is_relative_to(gallery_root.resolve()):
        raise NotFound(f"Path leaves the gallery: {relative_path!r}")
    return path


def short_path(path: Path | str) -> str:
    """Return abbreviated path showing only parent folder + filename.

    Example: /very/long/path/to/folder/file.jpg -> folder/file.jpg
    """
    path = Path(path)
    return f"{path.parent.name}/{path.name}"

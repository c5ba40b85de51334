"""Directory listing for gallery browsing."""

from __future__ import annotations

import dataclasses
import re
from pathlib import Path

from .errors import NotFound
from .path_utils import is_image, normalize_relative, to_absolute


@dataclasses.dataclass
class DirectoryListing:
    path: str
    folders: list[str]
    images: list[str]


def _natural_sort_key(name: str):
    """Sort key so img2 comes before img10."""
    return [
        int(part) if part.isdigit() else part.lower()
        for part in re.split(r"(\d+)", name)
    ]


def list_directory(gallery_root: Path, relative_path: str = "") -> DirectoryListing:
    """List subfolders and image files of a gallery directory.

    Hidden entries are skipped. Raises NotFound if the path is not a directory
    inside the gallery.
    """
    if relative_path.strip("/"):
        relative_path = normalize_relative(relative_path)
        directory = to_absolute(relative_path, gallery_root)
    else:
        relative_path = ""
        directory = gallery_root

    if not directory.is_dir():
        raise NotFound(f"Not a gallery directory: {relative_path or '/'}")

    folders: list[str] = []
    images: list[str] = []
    for entry in directory.iterdir():
        if entry.name.startswith("."):
            continue
        if entry.is_dir():
            folders.append(entry.name)
        elif entry.is_file() and is_image(entry.name):
            images.append(entry.name)

    return DirectoryListing(
        path=relative_path,
        folders=sorted(folders, key=_natural_sort_key),
        images=sorted(images, key=_natural_sort_key),
    )


def breadcrumbs(relative_path: str) -> list[dict]:
    """Breadcrumb chain for a gallery path. Each item: {name, path}."""
    chain = []
    prefix = ""
    for part in relative_path.split("/"):
        if not part:
            continue
        prefix = f"{prefix}/{part}" if prefix else part
        chain.append({"name": part, "path": prefix})
    return chain


def count_images(gallery_root: Path) -> int:
    """Count image files under the gallery root, recursively."""
    if not gallery_root.is_dir():
        return 0
    return sum(
        1 for path in gallery_root.rglob("*")
        if path.is_file() and is_image(path.name)
    )

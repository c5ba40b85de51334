"""Gallery routes: directory browsing and image serving."""

from __future__ import annotations

import os
import sys
from datetime import datetime, timedelta, timezone
from email.utils import format_datetime, parsedate_to_datetime
from pathlib import Path
from typing import Iterator, Optional

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import Response, StreamingResponse
from fastapi.templating import Jinja2Templates
from starlette.background import BackgroundTask

from gallery.errors import DecodeError, GalleryError, NotFound
from gallery.listing import breadcrumbs, list_directory
from gallery.logging_config import get_logger
from gallery.path_utils import content_type_for, is_image
from gallery.worker import ImageResult

logger = get_logger(__name__)

# Paths: support PyInstaller bundle (sys._MEIPASS) and normal run
if getattr(sys, "frozen", False):
    _base = Path(sys._MEIPASS) / "web"
else:
    _base = Path(__file__).resolve().parent
TEMPLATES_DIR = _base / "templates"
STATIC_DIR = _base / "static"

templates = Jinja2Templates(directory=str(TEMPLATES_DIR))

router = APIRouter(tags=["gallery"])

EXPIRES_AFTER = timedelta(days=365)
CHUNK_SIZE = 64 * 1024


def parse_width(raw: Optional[str]) -> int:
    """Parse the ?width= parameter. Missing or invalid values mean original size."""
    if raw is None or raw == "":
        return 0
    try:
        width = int(raw)
    except ValueError:
        logger.warning(f"Ignoring invalid width {raw!r}, serving original")
        return 0
    if width < 0:
        logger.warning(f"Ignoring negative width {raw!r}, serving original")
        return 0
    return width


def _http_date(value: datetime) -> str:
    return format_datetime(value.astimezone(timezone.utc).replace(microsecond=0), usegmt=True)


def _not_modified(request: Request, modtime: datetime) -> bool:
    header = request.headers.get("if-modified-since")
    if not header:
        return False
    try:
        since = parsedate_to_datetime(header)
    except (TypeError, ValueError):
        return False
    if since.tzinfo is None:
        since = since.replace(tzinfo=timezone.utc)
    return modtime.replace(microsecond=0) <= since


def _iter_file(result: ImageResult) -> Iterator[bytes]:
    try:
        while True:
            chunk = result.fileobj.read(CHUNK_SIZE)
            if not chunk:
                break
            yield chunk
    finally:
        result.close()


def _image_response(request: Request, gallery_path: str, size: int) -> Response:
    gateway = request.app.state.gateway
    try:
        result = gateway.resolve(gallery_path, size)
    except NotFound:
        raise HTTPException(status_code=404, detail="Image not found")
    except DecodeError:
        raise HTTPException(status_code=415, detail="Unsupported or corrupt image")
    except GalleryError as exc:
        logger.error(f"Failed to serve {gallery_path} (width {size}): {exc}")
        raise HTTPException(status_code=500, detail="Unable to serve image")

    headers = {
        "Last-Modified": _http_date(result.modtime),
        "Expires": _http_date(datetime.now(timezone.utc) + EXPIRES_AFTER),
    }
    if _not_modified(request, result.modtime):
        result.close()
        return Response(status_code=304, headers=headers)

    headers["Content-Length"] = str(os.fstat(result.fileobj.fileno()).st_size)
    media_type = "image/jpeg" if size > 0 else content_type_for(gallery_path)
    return StreamingResponse(
        _iter_file(result),
        media_type=media_type,
        headers=headers,
        background=BackgroundTask(result.close),
    )


def _listing_response(request: Request, gallery_path: str) -> Response:
    config = request.app.state.config
    try:
        listing = list_directory(config.gallery_root, gallery_path)
    except NotFound:
        raise HTTPException(status_code=404, detail="Directory not found")

    return templates.TemplateResponse(
        request,
        "gallery.html",
        {
            "title": config.library.name,
            "listing": listing,
            "breadcrumbs": breadcrumbs(listing.path),
            "thumb_width": config.thumbnails.thumb_width,
            "slide_width": config.thumbnails.slide_width,
        },
    )


@router.get("/")
def home(request: Request):
    """Gallery root listing."""
    return _listing_response(request, "")


@router.get("/gallery/{gallery_path:path}")
def serve_gallery(request: Request, gallery_path: str, width: Optional[str] = None):
    """Serve an image (resized when ?width= is set) or list a directory."""
    logger.debug(f"requested {gallery_path}")
    if is_image(gallery_path):
        return _image_response(request, gallery_path, parse_width(width))
    return _listing_response(request, gallery_path)

"""Serialized image request worker.

One daemon thread drains a FIFO queue of ImageRequest objects and handles
each one end-to-end: open the original, serve a cached thumbnail, or decode,
resize and write a new cache entry. At most one request, and therefore at
most one image generation, is in progress at any time. Cache hits queue
behind pending misses like any other request.

Every request is published exactly once, with either an open file or an
error, so callers blocked on it are always released.
"""

from __future__ import annotations

import dataclasses
import os
import queue
from datetime import datetime, timezone
from pathlib import Path
from threading import Event, Lock, Thread
from typing import BinaryIO, Optional

from . import resizer
from .cache import CacheStore
from .config import GalleryConfig
from .errors import CacheIOError, DecodeError, GalleryError, NotFound, WorkerStopped
from .logging_config import get_logger
from .path_utils import short_path, to_absolute

logger = get_logger(__name__)


@dataclasses.dataclass
class ImageResult:
    """An opened image ready to stream. The caller owns and must close `fileobj`."""

    fileobj: BinaryIO
    modtime: datetime
    path: Path
    cached: bool = False

    def close(self) -> None:
        self.fileobj.close()

    def __enter__(self) -> "ImageResult":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()


@dataclasses.dataclass(eq=False)
class ImageRequest:
    """A single (source path, size) request travelling through the worker.

    `size` 0 asks for the original file. The result fields are filled in by
    the worker before `publish()` releases the waiting caller.
    """

    source_path: str
    size: int = 0
    fileobj: Optional[BinaryIO] = None
    modtime: Optional[datetime] = None
    path: Optional[Path] = None
    cached: bool = False
    error: Optional[GalleryError] = None
    _done: Event = dataclasses.field(default_factory=Event, repr=False)

    @property
    def done(self) -> bool:
        return self._done.is_set()

    def publish(self) -> None:
        if self._done.is_set():
            raise RuntimeError(f"Request already published: {self.source_path}_{self.size}")
        self._done.set()

    def fail(self, error: GalleryError) -> None:
        """Record `error`, release any file opened so far, and publish."""
        if self.fileobj is not None:
            self.fileobj.close()
            self.fileobj = None
        self.error = error
        self.publish()

    def wait(self) -> "ImageRequest":
        """Block until the worker publishes this request. No timeout."""
        self._done.wait()
        return self

    def result(self) -> ImageResult:
        """Wait, then return the opened image or raise the recorded error."""
        self.wait()
        if self.error is not None:
            raise self.error
        return ImageResult(
            fileobj=self.fileobj,
            modtime=self.modtime,
            path=self.path,
            cached=self.cached,
        )


@dataclasses.dataclass
class WorkerStats:
    requests: int = 0
    hits: int = 0
    misses: int = 0
    decodes: int = 0
    errors: int = 0


def _open(request: ImageRequest, path: Path, modtime: Optional[datetime] = None) -> None:
    request.fileobj = open(path, "rb")
    request.path = path
    if modtime is None:
        st = os.fstat(request.fileobj.fileno())
        modtime = datetime.fromtimestamp(st.st_mtime, tz=timezone.utc)
    request.modtime = modtime


class ImageWorker:
    """Single consumer of the image request queue."""

    def __init__(
        self,
        gallery_root: Path,
        cache: CacheStore,
        quality: int = resizer.DEFAULT_QUALITY,
        poll_interval: float = 0.5,
    ):
        self.gallery_root = gallery_root
        self.cache = cache
        self.quality = quality
        self.poll_interval = poll_interval
        self.stats = WorkerStats()
        self._queue: queue.Queue[ImageRequest] = queue.Queue()
        self._stop_event = Event()
        self._state_lock = Lock()
        self._thread: Optional[Thread] = None

    @classmethod
    def from_config(cls, config: GalleryConfig) -> "ImageWorker":
        return cls(
            gallery_root=config.gallery_root,
            cache=CacheStore(config.cache_root),
            quality=config.thumbnails.quality,
        )

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive() and not self._stop_event.is_set()

    def start(self) -> None:
        """Start the worker thread. A stopped worker can be started again."""
        with self._state_lock:
            if self._thread is not None:
                raise RuntimeError("Worker already running or still finishing a request")
            self._stop_event.clear()
            self._thread = Thread(target=self._run, daemon=True, name="GalilegoImageWorker")
            self._thread.start()
        logger.debug(f"Image worker started (cache: {self.cache.cache_root})")

    def stop(self, timeout: Optional[float] = None) -> None:
        """Stop the worker and fail every request still waiting in the queue."""
        with self._state_lock:
            self._stop_event.set()
            thread = self._thread
        if thread is not None:
            thread.join(timeout)
            with self._state_lock:
                # A thread still busy after the timeout keeps blocking start().
                if self._thread is thread and not thread.is_alive():
                    self._thread = None

        pending = 0
        while True:
            try:
                request = self._queue.get_nowait()
            except queue.Empty:
                break
            request.fail(WorkerStopped("Image worker stopped before the request was processed"))
            pending += 1
        if pending:
            logger.warning(f"Image worker stopped with {pending} pending requests")
        logger.debug("Image worker stopped")

    def submit(self, request: ImageRequest) -> ImageRequest:
        """Enqueue `request`; the caller waits on it for the result."""
        with self._state_lock:
            if self._thread is None or self._stop_event.is_set():
                raise WorkerStopped("Image worker is not running")
            self._queue.put(request)
        return request

    def _run(self) -> None:
        while not self._stop_event.is_set():
            try:
                request = self._queue.get(timeout=self.poll_interval)
            except queue.Empty:
                continue
            try:
                self.process(request)
            finally:
                self._queue.task_done()

    def process(self, request: ImageRequest) -> ImageRequest:
        """Handle one request and publish it. Never raises pipeline errors."""
        self.stats.requests += 1
        try:
            self._handle(request)
        except GalleryError as exc:
            self.stats.errors += 1
            logger.warning(f"{request.source_path} (size {request.size}): {exc}")
            request.fail(exc)
            return request
        except Exception as exc:
            self.stats.errors += 1
            logger.exception(f"Unexpected error processing {request.source_path} (size {request.size})")
            request.fail(GalleryError(f"Unexpected error: {exc}"))
            return request

        request.publish()
        return request

    def _source(self, source_path: str) -> Path:
        path = to_absolute(source_path, self.gallery_root)
        if not path.is_file():
            raise NotFound(f"Image not found: {source_path}")
        return path

    def _handle(self, request: ImageRequest) -> None:
        if request.size == 0:
            source = self._source(request.source_path)
            try:
                _open(request, source)
            except OSError as exc:
                raise NotFound(f"Unable to open {request.source_path}: {exc}") from exc
            return

        cache_path = self.cache.cache_path(request.source_path, request.size)
        if self.cache.exists(cache_path):
            self.stats.hits += 1
            try:
                _open(request, cache_path)
            except OSError as exc:
                raise CacheIOError(f"Unable to open cache file {short_path(cache_path)}: {exc}") from exc
            request.cached = True
            return

        self.stats.misses += 1
        source = self._source(request.source_path)
        self.cache.ensure_parent_dir(cache_path)
        try:
            data = source.read_bytes()
        except OSError as exc:
            raise NotFound(f"Unable to read {request.source_path}: {exc}") from exc

        self.stats.decodes += 1
        try:
            thumbnail = resizer.make_thumbnail(data, request.size, self.quality)
        except DecodeError as exc:
            raise DecodeError(f"{request.source_path}: {exc}") from exc

        self.cache.write_atomic(cache_path, thumbnail)
        logger.info(f"Generated {request.size}px thumbnail for {short_path(source)}")
        try:
            _open(request, cache_path, modtime=datetime.now(timezone.utc))
        except OSError as exc:
            raise CacheIOError(f"Unable to open cache file {short_path(cache_path)}: {exc}") from exc
        request.cached = True

"""Request gateway between the HTTP layer and the image worker."""

from __future__ import annotations

from .config import GalleryConfig
from .path_utils import normalize_relative
from .worker import ImageRequest, ImageResult, ImageWorker


class ImageGateway:
    """Submit (path, size) requests and block until the worker answers.

    There is no timeout and no cancellation: a caller that goes away still
    holds its place in the worker queue until its request is processed.
    """

    def __init__(self, worker: ImageWorker):
        self.worker = worker

    @classmethod
    def from_config(cls, config: GalleryConfig) -> "ImageGateway":
        return cls(ImageWorker.from_config(config))

    def submit(self, source_path: str, size: int = 0) -> ImageRequest:
        """Enqueue a request and return it once published.

        Pipeline errors are left on `request.error` rather than raised.
        Invalid paths raise NotFound before anything is queued.
        """
        if size < 0:
            raise ValueError(f"size must be >= 0, got {size}")
        request = ImageRequest(source_path=normalize_relative(source_path), size=int(size))
        self.worker.submit(request)
        return request.wait()

    def resolve(self, source_path: str, size: int = 0) -> ImageResult:
        """Return the opened original (size 0) or thumbnail for `source_path`.

        Raises:
            NotFound: source missing, not a regular file, or outside the gallery
            DecodeError: source could not be decoded as an image
            CacheIOError: cache directory or file could not be written
            WorkerStopped: the worker is not running
        """
        return self.submit(source_path, size).result()

"""Thumbnail resizing with Pillow.

Decodes any format Pillow reads, fits the image into a square bounding box
with nearest-neighbour resampling and re-encodes it as JPEG.
"""

from __future__ import annotations

from io import BytesIO

from PIL import Image, UnidentifiedImageError

from .errors import DecodeError

DEFAULT_QUALITY = 85


def decode(data: bytes) -> Image.Image:
    """Decode image bytes, raising DecodeError for anything Pillow rejects."""
    try:
        image = Image.open(BytesIO(data))
        # Image.open is lazy; load() surfaces truncated or corrupt pixel data.
        image.load()
    except (UnidentifiedImageError, OSError, SyntaxError, ValueError) as exc:
        raise DecodeError(f"Not a decodable image: {exc}") from exc
    except Image.DecompressionBombError as exc:
        raise DecodeError(str(exc)) from exc
    return image


def fit_size(width: int, height: int, max_dim: int) -> tuple[int, int]:
    """Return (width, height) scaled to fit a max_dim square, never upscaling.

    Aspect ratio is preserved within rounding and the longer side equals
    max_dim whenever it exceeds it.
    """
    if max_dim <= 0:
        raise ValueError(f"max_dim must be positive, got {max_dim}")
    if width <= max_dim and height <= max_dim:
        return width, height
    if width >= height:
        return max_dim, max(1, round(height * max_dim / width))
    return max(1, round(width * max_dim / height)), max_dim


def fit_thumbnail(image: Image.Image, max_dim: int) -> Image.Image:
    """Return a copy of `image` fitted into a max_dim x max_dim box."""
    size = fit_size(image.width, image.height, max_dim)
    if size == image.size:
        return image.copy()
    return image.resize(size, Image.Resampling.NEAREST)


def encode(image: Image.Image, quality: int = DEFAULT_QUALITY) -> bytes:
    """Encode `image` as JPEG bytes."""
    if image.mode != "RGB":
        image = image.convert("RGB")
    buffer = BytesIO()
    image.save(buffer, format="JPEG", quality=quality)
    return buffer.getvalue()


def make_thumbnail(data: bytes, max_dim: int, quality: int = DEFAULT_QUALITY) -> bytes:
    """Decode, fit and encode in one step."""
    with decode(data) as image:
        return encode(fit_thumbnail(image, max_dim), quality)

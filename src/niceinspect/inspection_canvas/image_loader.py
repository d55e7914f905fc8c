# niceinspect/src/niceinspect/inspection_canvas/image_loader.py
"""Asynchronous image resolution for the background and marker icons.

`ImageLoader.load()` never raises: every failure comes back as a
`LoadFailure`. Bytes are read with httpx (http/https), base64 (data:
URLs) or from disk; the blocking decode runs via `run.io_bound`. SVG is
measured from its root element, raster formats are decoded with Pillow.
Bytes without a fetchable URL are published as a short media path.
"""

from __future__ import annotations

import asyncio
import base64
import binascii
import io
from dataclasses import dataclass
from pathlib import Path
from typing import Awaitable, Callable, Dict, Optional, Union
from urllib.parse import unquote, urlparse
from xml.etree import ElementTree

import httpx
from nicegui import run
from PIL import ExifTags, Image, UnidentifiedImageError

from niceinspect.utils.logging import get_logger

from .media import publish
from .viewport import Size

logger = get_logger(__name__)

SVG_MIME = "image/svg+xml"
_SVG_DEFAULT_SIZE = (300.0, 150.0)
# EXIF orientations that swap the displayed width and height
_TRANSPOSING_ORIENTATIONS = frozenset({5, 6, 7, 8})


@dataclass(frozen=True)
class ImageInfo:
    """A decoded image: intrinsic pixel size and a handle the browser can paint."""

    url: str
    width: int
    height: int
    handle: str

    @property
    def size(self) -> Size:
        return Size(float(self.width), float(self.height))


@dataclass(frozen=True)
class LoadFailure:
    url: str
    reason: str


LoadResult = Union[ImageInfo, LoadFailure]
FetchBytes = Callable[[str], Awaitable[bytes]]


@dataclass(frozen=True)
class _Decoded:
    width: int
    height: int
    mime: str


def decode_image(data: bytes) -> _Decoded:
    """Blocking decode of image bytes (run via run.io_bound).

    The size is the one a browser displays: SVG documents are measured from
    their root element, raster images have their EXIF orientation applied.
    """
    if _looks_like_svg(data):
        return _decode_svg(data)

    with Image.open(io.BytesIO(data)) as img:
        img.verify()
    # verify() leaves the image unusable; reopen for size/format.
    with Image.open(io.BytesIO(data)) as img:
        width, height = img.size
        mime = Image.MIME.get(img.format or "", "application/octet-stream")
        if img.getexif().get(ExifTags.Base.Orientation) in _TRANSPOSING_ORIENTATIONS:
            width, height = height, width
    return _Decoded(width=int(width), height=int(height), mime=mime)


def _looks_like_svg(data: bytes) -> bool:
    head = data[:1024].lstrip(b"\xef\xbb\xbf \t\r\n")
    return head.startswith((b"<?xml", b"<svg", b"<!--")) and b"<svg" in head


def _svg_length(value: Optional[str]) -> Optional[float]:
    """Absolute user-unit length, or None for missing, relative or unit-ful values."""
    if not value:
        return None
    value = value.strip()
    if value.endswith("px"):
        value = value[:-2]
    try:
        length = float(value)
    except ValueError:
        return None
    return length if length > 0 else None


def _decode_svg(data: bytes) -> _Decoded:
    if b"<!ENTITY" in data:
        raise ValueError("SVG entity declarations are not supported")
    root = ElementTree.fromstring(data)
    if root.tag.rsplit("}", 1)[-1] != "svg":
        raise ValueError(f"not an SVG document: root element {root.tag!r}")

    width = _svg_length(root.get("width"))
    height = _svg_length(root.get("height"))
    view_box = (root.get("viewBox") or "").replace(",", " ").split()
    if len(view_box) == 4:
        vb_width, vb_height = float(view_box[2]), float(view_box[3])
        if vb_width > 0 and vb_height > 0:
            if width is None and height is None:
                width, height = vb_width, vb_height
            elif width is None:
                width = height * vb_width / vb_height
            elif height is None:
                height = width * vb_height / vb_width
    if width is None or height is None:
        # Browser default size for a replaced element without intrinsic size.
        width, height = width or _SVG_DEFAULT_SIZE[0], height or _SVG_DEFAULT_SIZE[1]
    return _Decoded(width=max(1, round(width)), height=max(1, round(height)), mime=SVG_MIME)


def _is_remote(url: str) -> bool:
    return urlparse(url).scheme in ("http", "https")


def _data_url_bytes(url: str) -> bytes:
    header, sep, payload = url.partition(",")
    if not sep:
        raise ValueError("malformed data URL")
    if header.endswith(";base64"):
        return base64.b64decode(payload, validate=True)
    return unquote(payload).encode("latin-1")


def _local_path(url: str) -> Path:
    parsed = urlparse(url)
    if parsed.scheme == "file":
        return Path(unquote(parsed.path))
    return Path(url)


def to_data_url(data: bytes, mime: str) -> str:
    return f"data:{mime};base64,{base64.b64encode(data).decode('ascii')}"


class ImageLoader:
    """Resolves image URLs into `ImageInfo` or `LoadFailure`.

    Concurrent loads of the same URL share one fetch; completed results are
    cached per URL for the lifetime of the loader.
    """

    def __init__(
        self,
        *,
        timeout_sec: float = 10.0,
        fetch: Optional[FetchBytes] = None,
    ) -> None:
        self._timeout_sec = timeout_sec
        self._fetch_override = fetch
        self._inflight: Dict[str, asyncio.Future[LoadResult]] = {}
        self._cache: Dict[str, LoadResult] = {}

    def cached(self, url: str) -> Optional[LoadResult]:
        return self._cache.get(url)

    def clear_cache(self) -> None:
        self._cache.clear()

    async def load(self, url: str) -> LoadResult:
        if not url:
            return LoadFailure(url=url, reason="empty url")

        hit = self._cache.get(url)
        if hit is not None:
            return hit

        pending = self._inflight.get(url)
        if pending is not None:
            return await asyncio.shield(pending)

        future: asyncio.Future[LoadResult] = asyncio.get_running_loop().create_future()
        self._inflight[url] = future
        try:
            result = await self._load_uncached(url)
        except asyncio.CancelledError:
            future.set_result(LoadFailure(url=url, reason="cancelled"))
            raise
        finally:
            self._inflight.pop(url, None)

        if isinstance(result, ImageInfo):
            self._cache[url] = result
        future.set_result(result)
        return result

    async def _load_uncached(self, url: str) -> LoadResult:
        try:
            data = await self._read_bytes(url)
            # run.io_bound returns None while the app is shutting down.
            decoded = await run.io_bound(decode_image, data) if data is not None else None
        except asyncio.CancelledError:
            raise
        except (
            httpx.HTTPError,
            OSError,
            ValueError,
            binascii.Error,
            UnidentifiedImageError,
            ElementTree.ParseError,
            Image.DecompressionBombError,
        ) as e:
            logger.warning(f"image load failed: {_short(url)}: {e}")
            return LoadFailure(url=url, reason=str(e) or type(e).__name__)
        except Exception as e:
            logger.exception(f"unexpected error loading image: {_short(url)}")
            return LoadFailure(url=url, reason=str(e) or type(e).__name__)

        if data is None or decoded is None:
            return LoadFailure(url=url, reason="shutting down")

        handle = url if _is_remote(url) else publish(data, decoded.mime)
        logger.info(f"image loaded: {_short(url)} ({decoded.width}x{decoded.height})")
        return ImageInfo(url=url, width=decoded.width, height=decoded.height, handle=handle)

    async def _read_bytes(self, url: str) -> Optional[bytes]:
        if self._fetch_override is not None:
            return await self._fetch_override(url)
        if url.startswith("data:"):
            return _data_url_bytes(url)
        if _is_remote(url):
            async with httpx.AsyncClient(timeout=self._timeout_sec, follow_redirects=True) as client:
                response = await client.get(url)
                response.raise_for_status()
                return response.content
        path = _local_path(url)
        return await run.io_bound(path.read_bytes)


def _short(url: str, limit: int = 80) -> str:
    return url if len(url) <= limit else url[: limit - 3] + "..."

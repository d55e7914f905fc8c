# tests/inspection_canvas/test_image_loader.py

from __future__ import annotations

import asyncio
import base64
import io
from pathlib import Path
from typing import Callable, List

import pytest
from PIL import Image

from niceinspect.inspection_canvas.image_loader import (
    ImageInfo,
    ImageLoader,
    LoadFailure,
    SVG_MIME,
    decode_image,
    to_data_url,
)
from niceinspect.inspection_canvas.media import MEDIA_ROUTE, lookup

pytestmark = pytest.mark.usefixtures("inline_io_bound")


def test_decode_image_reads_size_and_mime(png_bytes: Callable[..., bytes]) -> None:
    decoded = decode_image(png_bytes(30, 20))
    assert (decoded.width, decoded.height) == (30, 20)
    assert decoded.mime == "image/png"


@pytest.mark.asyncio
async def test_load_data_url(png_bytes: Callable[..., bytes]) -> None:
    url = to_data_url(png_bytes(16, 8), "image/png")
    result = await ImageLoader().load(url)

    assert isinstance(result, ImageInfo)
    assert result.size == (16.0, 8.0)
    assert result.handle.startswith(MEDIA_ROUTE + "/")
    blob = lookup(result.handle.rsplit("/", 1)[-1])
    assert blob is not None and blob.mime == "image/png"


@pytest.mark.asyncio
async def test_load_local_file(tmp_path: Path, png_bytes: Callable[..., bytes]) -> None:
    path = tmp_path / "plan.png"
    path.write_bytes(png_bytes(40, 10))

    result = await ImageLoader().load(str(path))
    assert isinstance(result, ImageInfo)
    assert (result.width, result.height) == (40, 10)

    via_file_url = await ImageLoader().load(path.as_uri())
    assert isinstance(via_file_url, ImageInfo)


@pytest.mark.asyncio
async def test_missing_file_is_failure(tmp_path: Path) -> None:
    result = await ImageLoader().load(str(tmp_path / "nope.png"))
    assert isinstance(result, LoadFailure)
    assert result.url.endswith("nope.png")


@pytest.mark.asyncio
async def test_garbage_bytes_is_failure() -> None:
    url = "data:image/png;base64," + base64.b64encode(b"not an image").decode("ascii")
    result = await ImageLoader().load(url)
    assert isinstance(result, LoadFailure)


@pytest.mark.asyncio
async def test_empty_url_is_failure() -> None:
    result = await ImageLoader().load("")
    assert result == LoadFailure(url="", reason="empty url")


@pytest.mark.asyncio
async def test_remote_url_keeps_original_as_handle(png_bytes: Callable[..., bytes]) -> None:
    async def fetch(_url: str) -> bytes:
        return png_bytes(5, 5)

    url = "https://example.com/plan.png"
    result = await ImageLoader(fetch=fetch).load(url)

    assert isinstance(result, ImageInfo)
    assert result.handle == url


@pytest.mark.asyncio
async def test_fetch_error_is_failure() -> None:
    async def fetch(_url: str) -> bytes:
        raise OSError("connection refused")

    result = await ImageLoader(fetch=fetch).load("https://example.com/x.png")
    assert isinstance(result, LoadFailure)
    assert "connection refused" in result.reason


@pytest.mark.asyncio
async def test_concurrent_loads_share_one_fetch_and_cache(png_bytes: Callable[..., bytes]) -> None:
    calls: List[str] = []
    gate = asyncio.Event()

    async def fetch(url: str) -> bytes:
        calls.append(url)
        await gate.wait()
        return png_bytes(3, 4)

    loader = ImageLoader(fetch=fetch)
    url = "https://example.com/icon.png"
    first = asyncio.create_task(loader.load(url))
    second = asyncio.create_task(loader.load(url))
    await asyncio.sleep(0)
    gate.set()
    a, b = await asyncio.gather(first, second)

    assert calls == [url]
    assert a == b
    assert loader.cached(url) == a

    again = await loader.load(url)
    assert again is a
    assert calls == [url]

    loader.clear_cache()
    assert loader.cached(url) is None


@pytest.mark.asyncio
async def test_failures_are_not_cached() -> None:
    attempts: List[str] = []

    async def fetch(url: str) -> bytes:
        attempts.append(url)
        raise OSError("offline")

    loader = ImageLoader(fetch=fetch)
    await loader.load("https://example.com/a.png")
    await loader.load("https://example.com/a.png")
    assert len(attempts) == 2
    assert loader.cached("https://example.com/a.png") is None


def _rotated_jpeg(width: int, height: int, orientation: int) -> bytes:
    exif = Image.Exif()
    exif[0x0112] = orientation
    buf = io.BytesIO()
    Image.new("RGB", (width, height), "gray").save(buf, format="JPEG", exif=exif.tobytes())
    return buf.getvalue()


@pytest.mark.parametrize(
    ("orientation", "expected"),
    [(1, (400, 300)), (3, (400, 300)), (6, (300, 400)), (8, (300, 400))],
)
def test_decode_image_applies_exif_orientation(orientation: int, expected) -> None:
    decoded = decode_image(_rotated_jpeg(400, 300, orientation))
    assert (decoded.width, decoded.height) == expected
    assert decoded.mime == "image/jpeg"


@pytest.mark.asyncio
async def test_load_rotated_jpeg_reports_displayed_size(tmp_path: Path) -> None:
    path = tmp_path / "phone.jpg"
    path.write_bytes(_rotated_jpeg(400, 300, 6))

    result = await ImageLoader().load(str(path))
    assert isinstance(result, ImageInfo)
    assert result.size == (300.0, 400.0)


SVG_NS = 'xmlns="http://www.w3.org/2000/svg"'


@pytest.mark.parametrize(
    ("svg", "expected"),
    [
        (f'<svg {SVG_NS} width="120" height="80"/>', (120, 80)),
        (f'<svg {SVG_NS} width="120px" height="80px" viewBox="0 0 10 10"/>', (120, 80)),
        (f'<svg {SVG_NS} viewBox="0 0 640 480"/>', (640, 480)),
        (f'<svg {SVG_NS} width="200" viewBox="0,0,100,50"/>', (200, 100)),
        (f'<svg {SVG_NS} width="100%" height="100%"/>', (300, 150)),
        (f'<?xml version="1.0"?>\n<!-- plan -->\n<svg {SVG_NS} width="32" height="32"/>', (32, 32)),
    ],
)
def test_decode_svg_measures_root_element(svg: str, expected) -> None:
    decoded = decode_image(svg.encode("utf-8"))
    assert (decoded.width, decoded.height) == expected
    assert decoded.mime == SVG_MIME


@pytest.mark.asyncio
async def test_load_svg_data_url() -> None:
    svg = f'<svg {SVG_NS} viewBox="0 0 1600 600"><rect width="1600" height="600"/></svg>'
    result = await ImageLoader().load(to_data_url(svg.encode("utf-8"), SVG_MIME))

    assert isinstance(result, ImageInfo)
    assert result.size == (1600.0, 600.0)
    blob = lookup(result.handle.rsplit("/", 1)[-1])
    assert blob is not None and blob.mime == SVG_MIME


@pytest.mark.asyncio
async def test_svg_icon_from_file(tmp_path: Path) -> None:
    path = tmp_path / "marker.svg"
    path.write_text(f'<svg {SVG_NS} width="24" height="24"><circle r="10"/></svg>', encoding="utf-8")

    result = await ImageLoader().load(path.as_uri())
    assert isinstance(result, ImageInfo)
    assert (result.width, result.height) == (24, 24)


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "svg",
    [
        '<?xml version="1.0"?><!DOCTYPE svg [<!ENTITY a "aaaa">]><svg width="10" height="10">&a;</svg>',
        f'<svg {SVG_NS} width="10" height="10"><g></svg>',
    ],
)
async def test_bad_svg_is_failure(svg: str) -> None:
    result = await ImageLoader().load(to_data_url(svg.encode("utf-8"), SVG_MIME))
    assert isinstance(result, LoadFailure)

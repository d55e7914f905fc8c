# niceinspect/src/niceinspect/inspection_canvas/media.py
"""Short URLs for image bytes that have no URL of their own.

Local files and `data:` URLs are published here once and referenced by a
content-addressed path, so the SVG pushed to the browser on every viewport
change only carries the path, never the image bytes.
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass
from typing import Dict, Optional

from fastapi import HTTPException, Response
from nicegui import app

from niceinspect.utils.logging import get_logger

logger = get_logger(__name__)

MEDIA_ROUTE = "/_niceinspect/media"


@dataclass(frozen=True)
class MediaBlob:
    data: bytes
    mime: str


# Published blobs live for the process lifetime, like app.add_media_file routes.
_blobs: Dict[str, MediaBlob] = {}


def media_key(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()[:32]


def publish(data: bytes, mime: str) -> str:
    """Register `data` and return the path the browser can load it from."""
    key = media_key(data)
    if key not in _blobs:
        _blobs[key] = MediaBlob(data=data, mime=mime)
        logger.debug(f"published {len(data)} bytes ({mime}) as {key}")
    return f"{MEDIA_ROUTE}/{key}"


def lookup(key: str) -> Optional[MediaBlob]:
    return _blobs.get(key)


@app.get(MEDIA_ROUTE + "/{key}", include_in_schema=False)
def serve_media(key: str) -> Response:
    blob = lookup(key)
    if blob is None:
        raise HTTPException(status_code=404, detail="Not Found")
    # Content-addressed: a key never changes its bytes.
    return Response(
        content=blob.data,
        media_type=blob.mime,
        headers={"Cache-Control": "public, max-age=31536000, immutable"},
    )

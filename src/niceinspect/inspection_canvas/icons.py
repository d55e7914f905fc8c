# niceinspect/src/niceinspect/inspection_canvas/icons.py

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, Iterable, List, Optional

from niceinspect.utils.logging import get_logger

from .image_loader import ImageInfo, ImageLoader
from .points import Point

logger = get_logger(__name__)

OnIconChange = Callable[[str], None]


@dataclass
class _IconSlot:
    url: Optional[str]
    generation: int
    handle: Optional[str] = None
    failed: bool = False


class MarkerIconCache:
    """Per-marker icon handles, keyed by point id.

    Each slot carries a generation counter. A load result is only applied
    if the slot still has the generation it was started with, so a
    superseded or cancelled load can never overwrite a newer one.
    """

    def __init__(self, loader: ImageLoader, *, on_change: OnIconChange | None = None) -> None:
        self._loader = loader
        self._on_change = on_change
        self._slots: Dict[str, _IconSlot] = {}
        self._generation = 0
        self._disposed = False

    def handle_for(self, point_id: str) -> Optional[str]:
        """Most recently resolved icon handle, or None (render the fallback glyph)."""
        slot = self._slots.get(point_id)
        return slot.handle if slot is not None else None

    def is_pending(self, point_id: str) -> bool:
        slot = self._slots.get(point_id)
        return slot is not None and slot.url is not None and slot.handle is None and not slot.failed

    def sync(self, points: Iterable[Point]) -> List[Awaitable[None]]:
        """Reconcile slots with the point list.

        Returns one awaitable per icon that needs (re)loading. The caller
        decides how to schedule them; they are independent and unordered.
        """
        if self._disposed:
            return []

        pending: List[Awaitable[None]] = []
        live_ids = set()
        for point in points:
            live_ids.add(point.id)
            slot = self._slots.get(point.id)
            if slot is not None and slot.url == point.icon:
                continue
            self._generation += 1
            self._slots[point.id] = _IconSlot(url=point.icon, generation=self._generation)
            if point.icon:
                pending.append(self._load(point.id, point.icon, self._generation))

        for stale_id in set(self._slots) - live_ids:
            del self._slots[stale_id]

        return pending

    def dispose(self) -> None:
        """Drop all slots; loads still in flight are ignored when they finish."""
        self._disposed = True
        self._slots.clear()

    async def _load(self, point_id: str, url: str, generation: int) -> None:
        try:
            result = await self._loader.load(url)
        except asyncio.CancelledError:
            return

        slot = self._slots.get(point_id)
        if self._disposed or slot is None or slot.generation != generation:
            logger.debug(f"discarding superseded icon load for point {point_id!r}")
            return

        if isinstance(result, ImageInfo):
            slot.handle = result.handle
        else:
            slot.failed = True
            logger.warning(f"marker {point_id!r} icon unavailable, using fallback glyph: {result.reason}")

        if self._on_change is not None:
            try:
                self._on_change(point_id)
            except Exception:
                logger.exception("Error in icon change handler")

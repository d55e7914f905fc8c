# niceinspect/src/niceinspect/inspection_canvas/insert_mode.py

from __future__ import annotations

from typing import Optional

from niceinspect.utils.logging import get_logger

from .points import is_normalized
from .viewport import Vec2, ViewportState, screen_to_normalized

logger = get_logger(__name__)


class InsertModeController:
    """One-shot insert mode.

    While armed, the next background tap is converted to a normalized
    content position. Any tap disarms, whether or not it landed inside the
    image; re-arming is always explicit.
    """

    def __init__(self, armed: bool = False) -> None:
        self._armed = armed

    @property
    def armed(self) -> bool:
        return self._armed

    def arm(self) -> None:
        self._armed = True
        logger.debug("insert mode armed")

    def disarm(self) -> None:
        self._armed = False

    def on_background_tap(self, screen: Vec2, viewport: ViewportState) -> Optional[Vec2]:
        """Return the normalized position to create, or None.

        Callers emit the creation request themselves; the controller is
        already disarmed by the time this returns, so a re-entrant tap
        from inside that handler cannot fire twice.
        """
        if not self._armed:
            return None
        self._armed = False

        if not viewport.is_active:
            logger.debug("insert tap ignored: background not loaded")
            return None
        assert viewport.content_size is not None

        point_n = screen_to_normalized(screen, viewport.translation, viewport.scale, viewport.content_size)
        if not is_normalized(point_n):
            logger.debug(f"insert tap outside image: ({point_n.x:.5f}, {point_n.y:.5f})")
            return None
        return point_n

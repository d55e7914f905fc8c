# niceinspect/src/niceinspect/inspection_canvas/selection.py

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Iterable, Optional

from niceinspect.utils.logging import get_logger

from .points import Point
from .viewport import Vec2

logger = get_logger(__name__)

OnConfirm = Callable[[Point], None]


@dataclass(frozen=True)
class SelectedPoint:
    point_id: str
    anchor: Vec2


class SelectionMenu:
    """Which marker is selected and where its action menu is anchored.

    Purely presentational: the menu forwards the point to the host and
    never touches point data.
    """

    def __init__(
        self,
        *,
        on_confirm: OnConfirm | None = None,
        offset: Vec2 = Vec2(10.0, 5.0),
    ) -> None:
        self._on_confirm = on_confirm
        self._offset = offset
        self._selected: Optional[SelectedPoint] = None

    @property
    def selected(self) -> Optional[SelectedPoint]:
        return self._selected

    @property
    def is_open(self) -> bool:
        return self._selected is not None

    def select_point(self, point: Point, pointer: Vec2) -> SelectedPoint:
        self._selected = SelectedPoint(
            point_id=point.id,
            anchor=Vec2(pointer.x + self._offset.x, pointer.y + self._offset.y),
        )
        logger.debug(f"selected point {point.id!r}, menu at ({self._selected.anchor.x:.1f}, {self._selected.anchor.y:.1f})")
        return self._selected

    def dismiss(self) -> None:
        self._selected = None

    def confirm_action(self, point: Point) -> None:
        """Forward `point` to the host, then close the menu."""
        try:
            if self._on_confirm is not None:
                self._on_confirm(point)
        finally:
            self.dismiss()

    def prune(self, point_ids: Iterable[str]) -> bool:
        """Dismiss if the selected point is no longer present. Returns True if dismissed."""
        if self._selected is not None and self._selected.point_id not in set(point_ids):
            self.dismiss()
            return True
        return False

# niceinspect/src/niceinspect/inspection_canvas/gestures.py
"""Wheel / drag / pinch handling on top of the pure viewport functions.

Exactly one gesture owns the viewport at a time. Every handler returns the
new ViewportState; callers apply it wholesale.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Tuple, Union

from niceinspect.utils.logging import get_logger

from .viewport import (
    DEFAULT_MAX_SCALE,
    Vec2,
    ViewportState,
    pan_to,
    screen_to_normalized,
    zoom_about,
    zoom_anchored,
)

logger = get_logger(__name__)


@dataclass(frozen=True)
class Idle:
    pass


@dataclass(frozen=True)
class Panning:
    pointer_id: int
    start_pointer: Vec2
    start_translation: Vec2


@dataclass(frozen=True)
class Pinching:
    pointer_ids: Tuple[int, int]
    start_distance: float
    start_scale: float
    start_translation: Vec2
    start_center: Vec2


GestureState = Union[Idle, Panning, Pinching]

IDLE = Idle()


class Cursor(str, Enum):
    DEFAULT = "default"
    CROSSHAIR = "crosshair"
    GRABBING = "grabbing"
    POINTER = "pointer"


def distance(p1: Vec2, p2: Vec2) -> float:
    return math.hypot(p1.x - p2.x, p1.y - p2.y)


def center(p1: Vec2, p2: Vec2) -> Vec2:
    return Vec2((p1.x + p2.x) / 2.0, (p1.y + p2.y) / 2.0)


def desired_cursor(gesture: GestureState, *, armed: bool, over_marker: bool = False) -> Cursor:
    """Cursor the host should show for the current interaction state."""
    if isinstance(gesture, Panning):
        return Cursor.GRABBING
    if over_marker:
        return Cursor.POINTER
    if armed:
        return Cursor.CROSSHAIR
    return Cursor.DEFAULT


class GestureController:
    """Pointer / wheel state machine: Idle, Panning or Pinching.

    Pointers are tracked by id in press order. Two pointers always mean a
    pinch; a single pointer pans only when it went down with no other
    pointer active. Leaving a pinch goes straight back to Idle.
    """

    def __init__(
        self,
        viewport: ViewportState,
        *,
        zoom_step: float = 1.05,
        max_scale: float = DEFAULT_MAX_SCALE,
    ) -> None:
        self._viewport = viewport
        self._state: GestureState = IDLE
        self._pointers: Dict[int, Vec2] = {}
        self.zoom_step = zoom_step
        self.max_scale = max_scale

    # ------------- properties -------------

    @property
    def viewport(self) -> ViewportState:
        return self._viewport

    @property
    def state(self) -> GestureState:
        return self._state

    @property
    def pointer_count(self) -> int:
        return len(self._pointers)

    def reset(self, viewport: ViewportState) -> None:
        """Replace the viewport wholesale and drop any gesture in flight."""
        self._viewport = viewport
        self._state = IDLE
        self._pointers.clear()

    # ------------- wheel -------------

    def wheel(self, cursor: Vec2, delta_y: float, delta_x: float = 0.0) -> ViewportState:
        """Zoom one step around `cursor`. Negative delta zooms in."""
        delta = delta_y if delta_y else delta_x
        if not delta or not self._viewport.is_active:
            return self._viewport

        old_scale = self._viewport.scale
        factor = self.zoom_step if delta < 0 else 1.0 / self.zoom_step
        self._viewport = zoom_about(
            self._viewport,
            cursor,
            old_scale * factor,
            max_scale=self.max_scale,
        )
        logger.debug(
            f"wheel zoom: {old_scale:.4f} -> {self._viewport.scale:.4f} "
            f"at ({cursor.x:.1f}, {cursor.y:.1f})"
        )
        return self._viewport

    # ------------- pointers -------------

    def pointer_down(self, pointer_id: int, position: Vec2, *, allow_pan: bool = True) -> ViewportState:
        """Register a pressed pointer.

        allow_pan=False keeps a lone pointer from starting a pan (used for
        presses on markers and while insert mode is armed).
        """
        self._pointers[pointer_id] = position

        if len(self._pointers) >= 2:
            if not isinstance(self._state, Pinching):
                self._start_pinch()
        elif allow_pan and self._viewport.is_active:
            self._state = Panning(
                pointer_id=pointer_id,
                start_pointer=position,
                start_translation=self._viewport.translation,
            )
            logger.debug(f"pan start at ({position.x:.1f}, {position.y:.1f})")
        return self._viewport

    def pointer_move(self, pointer_id: int, position: Vec2) -> ViewportState:
        if pointer_id not in self._pointers:
            return self._viewport
        self._pointers[pointer_id] = position

        state = self._state
        if isinstance(state, Pinching):
            if pointer_id in state.pointer_ids:
                self._update_pinch(state)
        elif isinstance(state, Panning):
            if pointer_id == state.pointer_id:
                candidate = Vec2(
                    state.start_translation.x + (position.x - state.start_pointer.x),
                    state.start_translation.y + (position.y - state.start_pointer.y),
                )
                self._viewport = pan_to(self._viewport, candidate)
        return self._viewport

    def pointer_up(self, pointer_id: int) -> ViewportState:
        self._pointers.pop(pointer_id, None)

        state = self._state
        if not self._pointers:
            self._state = IDLE
        elif isinstance(state, Pinching) and len(self._pointers) < 2:
            # The remaining finger must not resume panning from stale deltas.
            self._state = IDLE
            logger.debug("pinch end")
        elif isinstance(state, Pinching) and pointer_id in state.pointer_ids:
            self._start_pinch()
        elif isinstance(state, Panning) and state.pointer_id == pointer_id:
            self._state = IDLE
        return self._viewport

    def pointer_cancel(self, pointer_id: int) -> ViewportState:
        """Lost pointer capture counts as a release."""
        return self.pointer_up(pointer_id)

    # ------------- pinch internals -------------

    def _pinch_pointers(self) -> Tuple[Tuple[int, Vec2], Tuple[int, Vec2]]:
        (id1, p1), (id2, p2) = list(self._pointers.items())[:2]
        return (id1, p1), (id2, p2)

    def _start_pinch(self) -> None:
        (id1, p1), (id2, p2) = self._pinch_pointers()
        self._state = Pinching(
            pointer_ids=(id1, id2),
            start_distance=distance(p1, p2),
            start_scale=self._viewport.scale,
            start_translation=self._viewport.translation,
            start_center=center(p1, p2),
        )
        logger.debug(f"pinch start: distance={distance(p1, p2):.1f}")

    def _update_pinch(self, state: Pinching) -> None:
        p1 = self._pointers[state.pointer_ids[0]]
        p2 = self._pointers[state.pointer_ids[1]]
        current = distance(p1, p2)

        if state.start_distance <= 0:
            # Coincident start: keep the scale this frame and rebase on the live pointers.
            if current > 0:
                self._start_pinch()
            return

        vp = self._viewport
        if not vp.is_active:
            return
        assert vp.content_size is not None

        anchor_n = screen_to_normalized(
            state.start_center,
            state.start_translation,
            state.start_scale,
            vp.content_size,
        )
        self._viewport = zoom_anchored(
            vp,
            anchor_n=anchor_n,
            screen=center(p1, p2),
            new_scale=state.start_scale * (current / state.start_distance),
            max_scale=self.max_scale,
        )

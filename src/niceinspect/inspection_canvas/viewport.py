# niceinspect/src/niceinspect/inspection_canvas/viewport.py

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any, NamedTuple, Optional

DEFAULT_MAX_SCALE = 5.0


class Vec2(NamedTuple):
    """2D point or offset. Screen values are stage pixels."""

    x: float
    y: float


class Size(NamedTuple):
    width: float
    height: float

    @property
    def is_empty(self) -> bool:
        return self.width <= 0 or self.height <= 0


@dataclass(frozen=True)
class ViewportState:
    """Transform of the background content inside the stage.

    `translation` is the stage-pixel position of the content's top-left
    corner; content pixel (u, v) is drawn at translation + (u, v) * scale.
    `content_size` stays None until the background image has loaded.
    """

    stage_size: Size
    content_size: Optional[Size] = None
    scale: float = 1.0
    min_scale: float = 1.0
    translation: Vec2 = Vec2(0.0, 0.0)

    @property
    def is_active(self) -> bool:
        """True once both stage and content have a usable, non-zero size."""
        return (
            self.content_size is not None
            and not self.content_size.is_empty
            and not self.stage_size.is_empty
        )

    @property
    def scaled_size(self) -> Size:
        if self.content_size is None:
            return Size(0.0, 0.0)
        return Size(
            self.content_size.width * self.scale,
            self.content_size.height * self.scale,
        )

    def to_dict(self) -> dict[str, Any]:
        content = self.content_size
        return {
            "stage_width": self.stage_size.width,
            "stage_height": self.stage_size.height,
            "content_width": content.width if content is not None else None,
            "content_height": content.height if content is not None else None,
            "scale": self.scale,
            "min_scale": self.min_scale,
            "x": self.translation.x,
            "y": self.translation.y,
        }


# ------------------ pure transform functions ------------------


def cover_scale(stage: Size, content: Size) -> float:
    """Smallest scale at which content covers the stage on both axes.

    Degenerate sizes return 1.0.
    """
    if stage.is_empty or content.is_empty:
        return 1.0
    return max(stage.width / content.width, stage.height / content.height)


def clamp_scale(scale: float, min_scale: float, max_scale: float) -> float:
    """Clamp to [min_scale, max_scale]; min_scale wins if the range is inverted."""
    return max(min_scale, min(max_scale, scale))


def _clamp_axis(candidate: float, stage: float, scaled: float) -> float:
    if scaled <= stage:
        return (stage - scaled) / 2.0
    return max(stage - scaled, min(0.0, candidate))


def clamp_translation(candidate: Vec2, scale: float, stage: Size, content: Size) -> Vec2:
    """Clamp a candidate translation so the content covers the stage.

    Axes where the scaled content fits inside the stage are centered and
    the candidate value for that axis is ignored.
    """
    return Vec2(
        _clamp_axis(candidate.x, stage.width, content.width * scale),
        _clamp_axis(candidate.y, stage.height, content.height * scale),
    )


def screen_to_normalized(
    screen: Vec2,
    translation: Vec2,
    scale: float,
    content: Size,
) -> Vec2:
    """Stage pixels -> fraction of the content's intrinsic size."""
    if scale <= 0 or content.is_empty:
        return Vec2(0.0, 0.0)
    return Vec2(
        (screen.x - translation.x) / scale / content.width,
        (screen.y - translation.y) / scale / content.height,
    )


def normalized_to_screen(
    point: Vec2,
    translation: Vec2,
    scale: float,
    content: Size,
) -> Vec2:
    """Fraction of the content's intrinsic size -> stage pixels."""
    return Vec2(
        translation.x + point.x * content.width * scale,
        translation.y + point.y * content.height * scale,
    )


def anchored_translation(anchor_n: Vec2, screen: Vec2, scale: float, content: Size) -> Vec2:
    """Translation that puts normalized point `anchor_n` under `screen` at `scale`."""
    return Vec2(
        screen.x - anchor_n.x * content.width * scale,
        screen.y - anchor_n.y * content.height * scale,
    )


# ------------------ state transitions ------------------


def initial_state(stage: Size, content: Optional[Size]) -> ViewportState:
    """Fresh cover-fit state: scale = min_scale, content centered.

    Nothing from any previous state is carried over.
    """
    if content is None or content.is_empty or stage.is_empty:
        return ViewportState(stage_size=stage, content_size=content)
    min_scale = cover_scale(stage, content)
    # Center both axes; the overflowing one is still within clamp bounds.
    centered = Vec2(
        (stage.width - content.width * min_scale) / 2.0,
        (stage.height - content.height * min_scale) / 2.0,
    )
    translation = clamp_translation(centered, min_scale, stage, content)
    return ViewportState(
        stage_size=stage,
        content_size=content,
        scale=min_scale,
        min_scale=min_scale,
        translation=translation,
    )


def pan_to(state: ViewportState, candidate: Vec2) -> ViewportState:
    """Move the content to `candidate` (clamped). No-op until content is known."""
    if not state.is_active:
        return state
    assert state.content_size is not None
    return replace(
        state,
        translation=clamp_translation(candidate, state.scale, state.stage_size, state.content_size),
    )


def zoom_about(
    state: ViewportState,
    anchor: Vec2,
    new_scale: float,
    *,
    max_scale: float = DEFAULT_MAX_SCALE,
) -> ViewportState:
    """Zoom keeping the content point under `anchor` (stage px) fixed.

    The content point is taken at the state's current scale/translation.
    """
    if not state.is_active:
        return state
    content = state.content_size
    assert content is not None
    anchor_n = screen_to_normalized(anchor, state.translation, state.scale, content)
    return zoom_anchored(
        state,
        anchor_n=anchor_n,
        screen=anchor,
        new_scale=new_scale,
        max_scale=max_scale,
    )


def zoom_anchored(
    state: ViewportState,
    *,
    anchor_n: Vec2,
    screen: Vec2,
    new_scale: float,
    max_scale: float = DEFAULT_MAX_SCALE,
) -> ViewportState:
    """Set the scale and place normalized `anchor_n` under `screen`, clamped."""
    if not state.is_active:
        return state
    content = state.content_size
    assert content is not None
    scale = clamp_scale(new_scale, state.min_scale, max_scale)
    candidate = anchored_translation(anchor_n, screen, scale, content)
    return replace(
        state,
        scale=scale,
        translation=clamp_translation(candidate, scale, state.stage_size, content),
    )

# niceinspect/src/niceinspect/inspection_canvas/overlay.py

from __future__ import annotations

from dataclasses import dataclass
from html import escape
from typing import Callable, List, Optional, Sequence, Union

import numpy as np

from .config import InspectionCanvasConfig
from .points import Point
from .viewport import Vec2, ViewportState


@dataclass(frozen=True)
class FallbackGlyph:
    """Generated marker face: point id text on a colored square."""

    text: str
    fill: str
    text_color: str


MarkerFace = Union[str, FallbackGlyph]  # str = resolved icon handle


@dataclass(frozen=True)
class MarkerView:
    point: Point
    screen: Vec2
    face: MarkerFace

    @property
    def id(self) -> str:
        return self.point.id


class AnnotationOverlay:
    """Projects points through the viewport and renders them as SVG markers.

    Markers keep a constant on-screen size and are centered on their
    projected position.
    """

    def __init__(self, config: InspectionCanvasConfig | None = None) -> None:
        self.config = config or InspectionCanvasConfig()

    def project(
        self,
        points: Sequence[Point],
        viewport: ViewportState,
        icon_for: Callable[[str], Optional[str]] = lambda _id: None,
    ) -> List[MarkerView]:
        """Screen position and face for each point; empty until content is known."""
        if not points or not viewport.is_active:
            return []
        content = viewport.content_size
        assert content is not None

        positions = np.array([(p.position.x, p.position.y) for p in points], dtype=float)
        extent = np.array([content.width, content.height], dtype=float) * viewport.scale
        origin = np.array([viewport.translation.x, viewport.translation.y], dtype=float)
        screen = origin + positions * extent

        return [
            MarkerView(
                point=p,
                screen=Vec2(float(sx), float(sy)),
                face=self._face(p, icon_for(p.id)),
            )
            for p, (sx, sy) in zip(points, screen)
        ]

    def hit_test(self, markers: Sequence[MarkerView], screen: Vec2) -> Optional[MarkerView]:
        """Top-most marker whose pin square contains `screen`."""
        half = self.config.pin_size / 2.0
        for marker in reversed(markers):
            if abs(screen.x - marker.screen.x) <= half and abs(screen.y - marker.screen.y) <= half:
                return marker
        return None

    def _face(self, point: Point, handle: Optional[str]) -> MarkerFace:
        if handle:
            return handle
        return FallbackGlyph(
            text=point.id,
            fill=self.config.fallback_color,
            text_color=self.config.fallback_text_color,
        )

    # ------------- rendering -------------

    def to_svg(self, markers: Sequence[MarkerView]) -> str:
        return "".join(self._marker_svg(m) for m in markers)

    def _marker_svg(self, marker: MarkerView) -> str:
        size = self.config.pin_size
        radius = self.config.pin_corner_radius
        left = marker.screen.x - size / 2.0
        top = marker.screen.y - size / 2.0
        marker_id = escape(marker.id, quote=True)
        title = f"<title>{escape(marker.point.name)}</title>"

        if isinstance(marker.face, FallbackGlyph):
            glyph = marker.face
            body = (
                f'<rect x="{left:.2f}" y="{top:.2f}" width="{size}" height="{size}" '
                f'rx="{radius}" fill="{escape(glyph.fill, quote=True)}" />'
                f'<text x="{marker.screen.x:.2f}" y="{marker.screen.y:.2f}" '
                f'font-size="{size / 2.0}" fill="{escape(glyph.text_color, quote=True)}" '
                f'text-anchor="middle" dominant-baseline="central">{escape(glyph.text)}</text>'
            )
        else:
            body = (
                f'<image href="{escape(marker.face, quote=True)}" x="{left:.2f}" y="{top:.2f}" '
                f'width="{size}" height="{size}" preserveAspectRatio="xMidYMid slice" />'
            )

        return (
            f'<g id="marker-{marker_id}" class="niceinspect-marker" '
            f'style="filter: drop-shadow(0 0 2px rgba(0,0,0,0.5));">{title}{body}</g>'
        )

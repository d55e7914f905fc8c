"""Inspection canvas - zoomable/pannable background image with point markers."""

from .config import InspectionCanvasConfig
from .gestures import Cursor, GestureController, GestureState, Idle, Panning, Pinching
from .image_loader import ImageInfo, ImageLoader, LoadFailure, LoadResult
from .inspection_canvas import InspectionCanvas
from .insert_mode import InsertModeController
from .overlay import AnnotationOverlay, FallbackGlyph, MarkerView
from .points import NormalizedXY, Point, PointDict
from .selection import SelectedPoint, SelectionMenu
from .viewport import Size, Vec2, ViewportState

__all__ = [
    "AnnotationOverlay",
    "Cursor",
    "FallbackGlyph",
    "GestureController",
    "GestureState",
    "Idle",
    "ImageInfo",
    "ImageLoader",
    "InsertModeController",
    "InspectionCanvas",
    "InspectionCanvasConfig",
    "LoadFailure",
    "LoadResult",
    "MarkerView",
    "NormalizedXY",
    "Panning",
    "Pinching",
    "Point",
    "PointDict",
    "SelectedPoint",
    "SelectionMenu",
    "Size",
    "Vec2",
    "ViewportState",
]

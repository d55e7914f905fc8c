# niceinspect/src/niceinspect/inspection_canvas/config.py

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class InspectionCanvasConfig:
    # Zoom behavior
    zoom_step: float = 1.05                 # wheel notch factor (in: *step, out: /step)
    max_scale: float = 5.0                  # upper zoom bound; min is the cover-fit scale

    # Tap detection (stage px a pointer may travel and still count as a tap)
    tap_tolerance_px: float = 4.0

    # Marker appearance (constant on-screen size, independent of zoom)
    pin_size: float = 25.0
    pin_corner_radius: float = 5.0
    fallback_color: str = "#1976d2"         # glyph square when a marker has no icon
    fallback_text_color: str = "white"

    # Insert mode
    insert_overlay_fill: str = "rgba(0, 0, 0, 0.5)"

    # Action menu
    menu_offset_x: float = 10.0
    menu_offset_y: float = 5.0
    action_label: str = "Action"
    menu_description: str = "Simple description with latest information"

    # Stage (None width = follow the container width)
    stage_width_px: int | None = None
    stage_height_px: int = 480
    stage_background: str = "#e5e7eb"
    loading_text: str = "Loading image or image not available"

    # Image loading
    load_timeout_sec: float = 10.0

    def __post_init__(self) -> None:
        if self.zoom_step <= 1.0:
            raise ValueError(f"zoom_step must be > 1.0, got {self.zoom_step}")
        if self.max_scale <= 0:
            raise ValueError(f"max_scale must be positive, got {self.max_scale}")
        if self.pin_size <= 0:
            raise ValueError(f"pin_size must be positive, got {self.pin_size}")
        if self.stage_height_px <= 0:
            raise ValueError(f"stage_height_px must be positive, got {self.stage_height_px}")
        if self.stage_width_px is not None and self.stage_width_px <= 0:
            raise ValueError(f"stage_width_px must be positive, got {self.stage_width_px}")

"""
InspectionCanvas demo: a generated floor plan with a few inspection points.

Demonstrates:
- wheel / drag / pinch zoom and pan over a cover-fit background
- marker menu forwarding the point to the host (on_point_click)
- one-shot insert mode; the host appends the new point and hands the
  list back with set_points()

Run:
    uv run python examples/sample_inspection_canvas.py
"""

from __future__ import annotations

import io
from typing import Any, Dict, List

import numpy as np
from nicegui import ui
from PIL import Image

from niceinspect.inspection_canvas import InspectionCanvas, InspectionCanvasConfig
from niceinspect.inspection_canvas.image_loader import to_data_url
from niceinspect.utils.logging import configure_logging

configure_logging(level="DEBUG")


def create_demo_plan(height: int = 600, width: int = 1600) -> str:
    """Grid-on-gradient PNG as a data URL."""
    x = np.linspace(0.0, 1.0, width)
    y = np.linspace(0.0, 1.0, height)
    xx, yy = np.meshgrid(x, y)
    img = 0.55 + 0.25 * xx + 0.15 * yy
    img[::100, :] = 0.2
    img[:, ::100] = 0.2
    rgb = (np.clip(img, 0.0, 1.0) * 255).astype(np.uint8)
    buf = io.BytesIO()
    Image.fromarray(rgb).convert("RGB").save(buf, format="PNG")
    return to_data_url(buf.getvalue(), "image/png")


@ui.page("/")
def index() -> None:
    points: List[Dict[str, Any]] = [
        {"id": "1", "name": "Boiler", "x": 0.12, "y": 0.30},
        {"id": "2", "name": "Main valve", "x": 0.50, "y": 0.50},
        {"id": "3", "name": "Pump", "x": 0.85, "y": 0.70},
    ]

    ui.label("InspectionCanvas demo").classes("text-lg font-bold")

    with ui.row().classes("items-center gap-4"):
        insert_switch = ui.switch("Add point")
        reset_button = ui.button("Reset view")
        status = ui.label("")

    canvas = InspectionCanvas(
        create_demo_plan(),
        points=points,
        config=InspectionCanvasConfig(stage_height_px=600),
    )

    def on_add_point(xy: Dict[str, float]) -> None:
        new_id = str(max(int(p["id"]) for p in points) + 1) if points else "1"
        points.append({"id": new_id, "name": f"Point {new_id}", "x": xy["x"], "y": xy["y"]})
        canvas.set_points(points)
        status.text = f"added point {new_id} at ({xy['x']:.3f}, {xy['y']:.3f})"

    def on_point_click(point) -> None:
        ui.notify(f"Action on {point.name} ({point.x:.3f}, {point.y:.3f})", timeout=1.5)
        status.text = f"last action: {point.to_dict()}"

    canvas.on_add_point(on_add_point)
    canvas.on_point_click(on_point_click)
    # insert mode is one-shot; a tap also disarms it outside the image
    canvas.on_insert_mode_change(insert_switch.set_value)

    insert_switch.on_value_change(lambda e: canvas.set_insert_mode(bool(e.value)))
    reset_button.on_click(lambda: canvas.reset_view())


if __name__ in {"__main__", "__mp_main__"}:
    ui.run()

# niceinspect/src/niceinspect/inspection_canvas/inspection_canvas.py

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from html import escape
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Set

from nicegui import events, ui

from niceinspect.utils.logging import get_logger

from .config import InspectionCanvasConfig
from .gestures import Cursor, GestureController, Pinching, desired_cursor, distance
from .icons import MarkerIconCache
from .image_loader import ImageInfo, ImageLoader
from .insert_mode import InsertModeController
from .overlay import AnnotationOverlay, MarkerView
from .points import NormalizedXY, Point, PointLike, coerce_points
from .selection import SelectedPoint, SelectionMenu
from .viewport import Size, Vec2, ViewportState, initial_state

logger = get_logger(__name__)

OnPointClick = Callable[[Point], None]
OnAddPoint = Callable[[NormalizedXY], None]
OnInsertModeChange = Callable[[bool], None]

# Stage-relative pointer position; the surface may be rendered at a CSS size
# that differs from the logical stage size, so the rect is sent along.
_POINTER_JS = """(e) => {
    const r = e.currentTarget.getBoundingClientRect();
    if (e.type === 'pointerdown') e.currentTarget.setPointerCapture(e.pointerId);
    emit({
        type: e.type, pointer_id: e.pointerId, pointer_type: e.pointerType,
        button: e.button, buttons: e.buttons,
        x: e.clientX - r.left, y: e.clientY - r.top,
        rect_width: r.width, rect_height: r.height,
    });
}"""

_WHEEL_JS = """(e) => {
    e.preventDefault();
    const r = e.currentTarget.getBoundingClientRect();
    emit({
        x: e.clientX - r.left, y: e.clientY - r.top,
        delta_x: e.deltaX, delta_y: e.deltaY,
        rect_width: r.width, rect_height: r.height,
    });
}"""


def _safe_call(func: Callable, *args, **kwargs) -> None:
    """Call func, ignoring only 'client deleted' RuntimeErrors."""
    try:
        func(*args, **kwargs)
    except RuntimeError as e:
        if "deleted" not in str(e).lower():
            raise


@dataclass
class _Press:
    """A single-pointer press that may still turn out to be a tap."""

    pointer_id: int
    start: Vec2
    marker_id: Optional[str]
    moved: bool = False


class InspectionCanvas:
    """NiceGUI widget: zoomable/pannable background image with point markers.

    - Input: background image URL and a list of points (Point or dict with
      id, name, image, x, y; x/y normalized to the image size).
    - The widget never edits points. The host reacts to the callbacks and
      passes a fresh list back through `set_points`.

    Events (constructor arguments or registration):
        on_point_click(handler): handler(point) when a marker's action is confirmed
        on_add_point(handler): handler({"x": ..., "y": ...}) for an armed tap inside the image
        on_insert_mode_change(handler): handler(armed) whenever insert mode arms or disarms
    """

    def __init__(
        self,
        image_url: str = "",
        *,
        points: Iterable[PointLike] | None = None,
        insert_mode: bool = False,
        on_point_click: OnPointClick | None = None,
        on_add_point: OnAddPoint | None = None,
        parent=None,
        config: InspectionCanvasConfig | None = None,
        loader: ImageLoader | None = None,
    ) -> None:
        self.config = config if config is not None else InspectionCanvasConfig()

        self._image_url = image_url
        self._points: List[Point] = coerce_points(points)
        self._background: Optional[ImageInfo] = None
        self._background_failed = False
        self._background_generation = 0
        self._disposed = False
        self._tasks: Set[asyncio.Task] = set()

        # Callback registries
        self._point_click_handlers: List[OnPointClick] = []
        self._add_point_handlers: List[OnAddPoint] = []
        self._insert_mode_handlers: List[OnInsertModeChange] = []
        if on_point_click is not None:
            self._point_click_handlers.append(on_point_click)
        if on_add_point is not None:
            self._add_point_handlers.append(on_add_point)

        # Models
        self._loader = loader if loader is not None else ImageLoader(timeout_sec=self.config.load_timeout_sec)
        stage = Size(float(self.config.stage_width_px or 0), float(self.config.stage_height_px))
        self._gestures = GestureController(
            initial_state(stage, None),
            zoom_step=self.config.zoom_step,
            max_scale=self.config.max_scale,
        )
        self._overlay = AnnotationOverlay(self.config)
        self._icons = MarkerIconCache(self._loader, on_change=self._on_icon_loaded)
        self._insert = InsertModeController()
        self._insert_mode_flag = False
        self._selection = SelectionMenu(
            on_confirm=self._emit_point_click,
            offset=Vec2(self.config.menu_offset_x, self.config.menu_offset_y),
        )

        # Interaction state
        self._markers: List[MarkerView] = []
        self._press: Optional[_Press] = None
        self._hover_marker_id: Optional[str] = None
        self._cursor = Cursor.DEFAULT

        # UI
        self._surface: Any = None
        self._menu: Any = None
        self._menu_anchor: Any = None
        container = parent if parent is not None else ui.element("div").classes("w-full")
        with container:
            self._stage = (
                ui.element("div")
                .classes("relative overflow-hidden")
                .style(self._stage_style())
            )
        self._build_surface()
        # Loads finishing after the page is gone must not touch it.
        ui.context.client.on_delete(self.dispose)

        self.set_insert_mode(insert_mode)
        self._sync_icons()

        if self.config.stage_width_px is None:
            ui.timer(0, self._observe_stage_size, once=True)
        if image_url:
            self._spawn(self.load_background())

        logger.info(
            f"InspectionCanvas initialized: points={len(self._points)}, "
            f"stage={stage.width:.0f}x{stage.height:.0f}, url={image_url[:80]!r}"
        )

    # ------------- properties -------------

    @property
    def viewport(self) -> ViewportState:
        return self._gestures.viewport

    @property
    def points(self) -> List[Point]:
        return list(self._points)

    @property
    def cursor(self) -> Cursor:
        """Pointer cursor the stage currently asks for."""
        return self._cursor

    @property
    def insert_armed(self) -> bool:
        return self._insert.armed

    @property
    def selected(self) -> Optional[SelectedPoint]:
        return self._selection.selected

    @property
    def markers(self) -> List[MarkerView]:
        return list(self._markers)

    # ------------- public event registration API -------------

    def on_point_click(self, handler: OnPointClick) -> None:
        """Register callback for confirmed marker actions.

        Handler is called with: point (Point)
        """
        self._point_click_handlers.append(handler)

    def on_add_point(self, handler: OnAddPoint) -> None:
        """Register callback for point-creation requests.

        Handler is called with: {"x": float, "y": float}, normalized to the image
        """
        self._add_point_handlers.append(handler)

    def on_insert_mode_change(self, handler: OnInsertModeChange) -> None:
        """Register callback for insert mode arming or disarming.

        Handler is called with: armed (bool). A tap disarms insert mode, so
        hosts mirroring the mode in a toggle use this to switch it off.
        """
        self._insert_mode_handlers.append(handler)

    # ------------- public host API -------------

    def set_image_url(self, image_url: str) -> None:
        """Switch background. The viewport is fully reset once the new image loads."""
        self._image_url = image_url
        self._background_generation += 1
        self._background = None
        self._background_failed = False
        self._gestures.reset(initial_state(self.viewport.stage_size, None))
        self._selection.dismiss()
        self._redraw()
        if image_url:
            self._spawn(self.load_background())

    def set_points(self, points: Iterable[PointLike] | None) -> None:
        """Replace the point list (read-only to the widget)."""
        self._points = coerce_points(points)
        if self._selection.prune(p.id for p in self._points):
            self._close_menu()
        self._sync_icons()
        self._redraw()

    def set_insert_mode(self, insert_mode: bool) -> None:
        """Arm insert mode when the flag flips to True; disarm when False."""
        flag = bool(insert_mode)
        was_armed = self._insert.armed
        if flag and not self._insert_mode_flag:
            self._insert.arm()
        elif not flag:
            self._insert.disarm()
        self._insert_mode_flag = flag
        self._redraw()
        self._notify_insert_mode(was_armed)

    def set_stage_size(self, width: float, height: float) -> None:
        """New stage size: recompute the cover scale and fully reset the viewport."""
        stage = Size(float(width), float(height))
        if stage == self.viewport.stage_size:
            return
        content = self._background.size if self._background is not None else None
        self._gestures.reset(initial_state(stage, content))
        self._press = None
        self._selection.dismiss()
        logger.debug(f"stage resized to {stage.width:.0f}x{stage.height:.0f}")
        self._build_surface()

    def reset_view(self) -> None:
        """Back to cover-fit, centered."""
        vp = self.viewport
        self._gestures.reset(initial_state(vp.stage_size, vp.content_size))
        self._redraw()
        logger.debug("reset_view: viewport reset to cover fit")

    def get_viewport(self) -> dict:
        return self.viewport.to_dict()

    def select_point(self, point: Point, pointer: Vec2) -> SelectedPoint:
        selected = self._selection.select_point(point, pointer)
        self._open_menu(point, selected.anchor)
        return selected

    def dismiss_selection(self) -> None:
        self._selection.dismiss()
        self._close_menu()

    def confirm_action(self, point: Point) -> None:
        """Forward the point to on_point_click handlers and close the menu."""
        self._selection.confirm_action(point)
        self._close_menu()

    def dispose(self) -> None:
        """Stop all pending loads; their results are dropped."""
        self._disposed = True
        self._icons.dispose()
        for task in list(self._tasks):
            task.cancel()
        self._tasks.clear()
        self._gestures.reset(self.viewport)
        logger.debug("InspectionCanvas disposed")

    async def load_background(self) -> None:
        """Load the current background URL and (re)initialize the viewport."""
        generation = self._background_generation
        url = self._image_url
        result = await self._loader.load(url)

        if self._torn_down or generation != self._background_generation:
            logger.debug(f"discarding superseded background load: {url[:80]!r}")
            return

        if isinstance(result, ImageInfo):
            self._background = result
            self._background_failed = False
            self._gestures.reset(initial_state(self.viewport.stage_size, result.size))
            self._press = None
        else:
            self._background = None
            self._background_failed = True
            logger.warning(f"background unavailable: {result.reason}")
        _safe_call(self._redraw)

    async def wait_loaded(self) -> None:
        """Wait for all image loads scheduled so far."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    # ------------- internals: scheduling -------------

    @property
    def _torn_down(self) -> bool:
        return self._disposed or self._stage.is_deleted

    def _spawn(self, awaitable: Awaitable[None]) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # Built before the event loop runs: start when the client connects.
            ui.timer(0, lambda a=awaitable: a, once=True)
            return
        task = loop.create_task(awaitable)  # type: ignore[arg-type]
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def _sync_icons(self) -> None:
        for awaitable in self._icons.sync(self._points):
            self._spawn(awaitable)

    def _on_icon_loaded(self, point_id: str) -> None:
        if self._torn_down:
            return
        _safe_call(self._redraw)

    async def _observe_stage_size(self) -> None:
        """Follow the container's rendered size via a ResizeObserver."""
        event_name = f"niceinspect_resize_{self._stage.id}"
        ui.on(event_name, self._on_stage_resize)
        await ui.run_javascript(
            f"""
            const el = getHtmlElement({self._stage.id});
            new ResizeObserver(() => emitEvent("{event_name}", {{
                width: el.clientWidth, height: el.clientHeight,
            }})).observe(el);
            """
        )

    def _on_stage_resize(self, e: events.GenericEventArguments) -> None:
        args = e.args or {}
        width = float(args.get("width") or 0)
        height = float(args.get("height") or 0)
        if width > 0 and height > 0:
            self.set_stage_size(width, height)

    # ------------- internals: rendering -------------

    def _stage_style(self) -> str:
        width = (
            f"{self.config.stage_width_px}px"
            if self.config.stage_width_px is not None
            else "100%"
        )
        return (
            f"width: {width}; height: {self.config.stage_height_px}px; "
            f"background: {self.config.stage_background}; touch-action: none;"
        )

    def _build_surface(self) -> None:
        """(Re)create the drawing surface for the current stage size."""
        stage = self.viewport.stage_size
        self._stage.clear()
        self._surface = None
        with self._stage:
            if stage.is_empty:
                with ui.element("div").classes("w-full h-full flex justify-center items-center"):
                    ui.spinner(size="xl")
                return

            self._surface = ui.interactive_image(
                size=(stage.width, stage.height),
            ).classes("w-full h-full")
            for event_type in ("pointerdown", "pointerup", "pointercancel", "lostpointercapture", "pointerleave"):
                self._surface.on(event_type, self._on_pointer, js_handler=_POINTER_JS)
            self._surface.on("pointermove", self._on_pointer, js_handler=_POINTER_JS, throttle=0.016)
            self._surface.on("wheel", self._on_wheel, js_handler=_WHEEL_JS)

            self._menu_anchor = ui.element("div").style(
                "position: absolute; width: 0; height: 0; pointer-events: none;"
            )
            with self._menu_anchor:
                self._menu = ui.menu()
                self._menu.on_value_change(self._on_menu_toggle)

        self._redraw()

    def _redraw(self) -> None:
        """Redraw background, insert overlay and markers."""
        vp = self.viewport
        self._markers = self._overlay.project(self._points, vp, self._icons.handle_for)
        if self._surface is None:
            return

        parts: List[str] = [self._background_svg(vp)]
        if self._insert.armed:
            parts.append(
                f'<rect x="0" y="0" width="{vp.stage_size.width}" height="{vp.stage_size.height}" '
                f'fill="{escape(self.config.insert_overlay_fill, quote=True)}" />'
            )
        parts.append(self._overlay.to_svg(self._markers))

        self._surface.content = "".join(parts)
        self._surface.update()
        self._update_cursor()

    def _background_svg(self, vp: ViewportState) -> str:
        if self._background is None or not vp.is_active:
            if self._background_failed or self._image_url:
                return (
                    f'<text x="{vp.stage_size.width / 2.0:.1f}" y="{vp.stage_size.height / 2.0:.1f}" '
                    f'text-anchor="middle" font-size="14" fill="#555">'
                    f"{escape(self.config.loading_text)}</text>"
                )
            return ""
        scaled = vp.scaled_size
        return (
            f'<image href="{escape(self._background.handle, quote=True)}" '
            f'x="{vp.translation.x:.2f}" y="{vp.translation.y:.2f}" '
            f'width="{scaled.width:.2f}" height="{scaled.height:.2f}" '
            f'preserveAspectRatio="none" />'
        )

    def _update_cursor(self) -> None:
        cursor = desired_cursor(
            self._gestures.state,
            armed=self._insert.armed,
            over_marker=self._hover_marker_id is not None,
        )
        if cursor != self._cursor:
            self._cursor = cursor
            if self._surface is not None:
                self._surface.style(f"cursor: {cursor.value}")

    def _apply(self, before: ViewportState) -> None:
        if self.viewport != before:
            self._redraw()
        else:
            self._update_cursor()

    # ------------- internals: menu -------------

    def _open_menu(self, point: Point, anchor: Vec2) -> None:
        if self._menu is None or self._menu_anchor is None:
            return
        self._menu.clear()
        with self._menu:
            ui.label(point.name).classes("px-4 pt-2 font-bold")
            ui.label(self.config.menu_description).classes("px-4 pb-1 text-xs")
            ui.separator()
            ui.menu_item(self.config.action_label, on_click=lambda p=point: self.confirm_action(p))
        self._menu_anchor.style(f"left: {anchor.x:.1f}px; top: {anchor.y:.1f}px;")
        self._menu.open()

    def _close_menu(self) -> None:
        if self._menu is not None:
            self._menu.close()

    def _on_menu_toggle(self, e: events.ValueChangeEventArguments) -> None:
        # Menu closed by outside click / escape.
        if not e.value and self._selection.is_open:
            self._selection.dismiss()

    # ------------- internals: events -------------

    def _event_position(self, args: Dict[str, Any]) -> Vec2:
        stage = self.viewport.stage_size
        x = float(args.get("x", 0.0))
        y = float(args.get("y", 0.0))
        rect_w = float(args.get("rect_width") or 0.0)
        rect_h = float(args.get("rect_height") or 0.0)
        if rect_w > 0 and rect_h > 0:
            x *= stage.width / rect_w
            y *= stage.height / rect_h
        return Vec2(x, y)

    def _on_pointer(self, e: events.GenericEventArguments) -> None:
        args = e.args or {}
        kind = args.get("type", "")
        pointer_id = int(args.get("pointer_id", 0))
        position = self._event_position(args)

        if kind == "pointerdown":
            if args.get("pointer_type") == "mouse" and args.get("button", 0) != 0:
                return
            self._pointer_down(pointer_id, position)
        elif kind == "pointermove":
            self._pointer_move(pointer_id, position)
        elif kind == "pointerup":
            self._pointer_up(pointer_id, position)
        elif kind in ("pointercancel", "lostpointercapture"):
            self._pointer_cancel(pointer_id)
        elif kind == "pointerleave":
            if self._gestures.pointer_count == 0 and self._hover_marker_id is not None:
                self._hover_marker_id = None
                self._update_cursor()

    def _pointer_down(self, pointer_id: int, position: Vec2) -> None:
        before = self.viewport
        if self._gestures.pointer_count == 0:
            hit = self._overlay.hit_test(self._markers, position)
            self._press = _Press(
                pointer_id=pointer_id,
                start=position,
                marker_id=hit.id if hit is not None else None,
            )
            allow_pan = hit is None and not self._insert.armed
        else:
            # A second finger turns any pending tap into a pinch.
            self._press = None
            allow_pan = False
        self._gestures.pointer_down(pointer_id, position, allow_pan=allow_pan)
        self._apply(before)

    def _pointer_move(self, pointer_id: int, position: Vec2) -> None:
        if self._gestures.pointer_count == 0:
            hit = self._overlay.hit_test(self._markers, position)
            hover_id = hit.id if hit is not None else None
            if hover_id != self._hover_marker_id:
                self._hover_marker_id = hover_id
                self._update_cursor()
            return

        press = self._press
        if (
            press is not None
            and press.pointer_id == pointer_id
            and distance(press.start, position) > self.config.tap_tolerance_px
        ):
            press.moved = True

        before = self.viewport
        self._gestures.pointer_move(pointer_id, position)
        self._apply(before)

    def _pointer_up(self, pointer_id: int, position: Vec2) -> None:
        press = self._press
        was_pinching = isinstance(self._gestures.state, Pinching)
        before = self.viewport
        self._gestures.pointer_up(pointer_id)
        if self._gestures.pointer_count == 0 or (press is not None and press.pointer_id == pointer_id):
            self._press = None
        self._apply(before)

        if press is None or press.pointer_id != pointer_id or press.moved or was_pinching:
            return
        self._on_tap(position, press.marker_id)

    def _pointer_cancel(self, pointer_id: int) -> None:
        before = self.viewport
        self._gestures.pointer_cancel(pointer_id)
        if self._press is not None and self._press.pointer_id == pointer_id:
            self._press = None
        self._apply(before)

    def _on_tap(self, position: Vec2, marker_id: Optional[str]) -> None:
        if marker_id is not None:
            point = next((p for p in self._points if p.id == marker_id), None)
            if point is not None:
                self.select_point(point, position)
            return

        if self._insert.armed:
            point_n = self._insert.on_background_tap(position, self.viewport)
            self._redraw()
            if point_n is not None:
                logger.info(f"add point requested at ({point_n.x:.4f}, {point_n.y:.4f})")
                self._emit_add_point({"x": point_n.x, "y": point_n.y})
            self._notify_insert_mode(True)
            return

        if self._selection.is_open:
            self.dismiss_selection()

    def _on_wheel(self, e: events.GenericEventArguments) -> None:
        args = e.args or {}
        dy = args.get("delta_y", 0)
        dx = args.get("delta_x", 0)
        if not isinstance(dy, (int, float)):
            dy = 0
        if not isinstance(dx, (int, float)):
            dx = 0
        before = self.viewport
        self._gestures.wheel(self._event_position(args), float(dy), float(dx))
        self._apply(before)

    # ------------- internals: host callbacks -------------

    def _emit_point_click(self, point: Point) -> None:
        for handler in list(self._point_click_handlers):
            try:
                handler(point)
            except Exception:
                logger.exception("Error in on_point_click handler")

    def _emit_add_point(self, xy: NormalizedXY) -> None:
        for handler in list(self._add_point_handlers):
            try:
                handler(xy)
            except Exception:
                logger.exception("Error in on_add_point handler")

    def _notify_insert_mode(self, was_armed: bool) -> None:
        armed = self._insert.armed
        if armed == was_armed:
            return
        for handler in list(self._insert_mode_handlers):
            try:
                handler(armed)
            except Exception:
                logger.exception("Error in on_insert_mode_change handler")

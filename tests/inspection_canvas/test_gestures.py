# tests/inspection_canvas/test_gestures.py

from __future__ import annotations

import pytest

from niceinspect.inspection_canvas.gestures import (
    Cursor,
    GestureController,
    Idle,
    Panning,
    Pinching,
    desired_cursor,
)
from niceinspect.inspection_canvas.viewport import (
    Size,
    Vec2,
    ViewportState,
    initial_state,
    normalized_to_screen,
    screen_to_normalized,
)


@pytest.fixture
def wide() -> GestureController:
    """Stage 800x600 with a 1600x600 image at scale 1.0, translation (-400, 0)."""
    return GestureController(initial_state(Size(800, 600), Size(1600, 600)))


@pytest.fixture
def tall() -> GestureController:
    """Stage 800x600 with a 1600x1200 image at min scale 0.5."""
    return GestureController(initial_state(Size(800, 600), Size(1600, 1200)))


# --- wheel ---


def test_wheel_zoom_in_keeps_cursor_anchor(wide: GestureController) -> None:
    vp0 = wide.viewport
    cursor = Vec2(400.0, 300.0)
    anchor = screen_to_normalized(cursor, vp0.translation, vp0.scale, vp0.content_size)

    vp = wide.wheel(cursor, delta_y=-100.0)
    assert vp.scale == pytest.approx(1.05)
    screen = normalized_to_screen(anchor, vp.translation, vp.scale, vp.content_size)
    assert screen.x == pytest.approx(400.0)
    assert screen.y == pytest.approx(300.0)


def test_wheel_zoom_out_stops_at_min_scale(wide: GestureController) -> None:
    vp = wide.wheel(Vec2(100.0, 100.0), delta_y=120.0)
    assert vp.scale == pytest.approx(1.0)
    assert vp.translation.y == pytest.approx(0.0)


def test_wheel_in_then_out_returns_to_scale(tall: GestureController) -> None:
    tall.wheel(Vec2(200.0, 200.0), delta_y=-1.0)
    tall.wheel(Vec2(200.0, 200.0), delta_y=-1.0)
    vp = tall.wheel(Vec2(200.0, 200.0), delta_y=1.0)
    assert vp.scale == pytest.approx(0.5 * 1.05)


def test_wheel_stops_at_max_scale(wide: GestureController) -> None:
    for _ in range(200):
        wide.wheel(Vec2(400.0, 300.0), delta_y=-1.0)
    assert wide.viewport.scale == pytest.approx(5.0)


def test_wheel_zero_delta_ignored_and_delta_x_fallback(wide: GestureController) -> None:
    vp0 = wide.viewport
    assert wide.wheel(Vec2(400.0, 300.0), delta_y=0.0) is vp0
    vp = wide.wheel(Vec2(400.0, 300.0), delta_y=0.0, delta_x=-3.0)
    assert vp.scale == pytest.approx(1.05)


def test_wheel_noop_without_content() -> None:
    gc = GestureController(ViewportState(stage_size=Size(800, 600)))
    vp0 = gc.viewport
    assert gc.wheel(Vec2(1.0, 1.0), delta_y=-1.0) is vp0


# --- panning ---


def test_pan_translates_and_clamps(wide: GestureController) -> None:
    wide.pointer_down(1, Vec2(100.0, 100.0))
    assert isinstance(wide.state, Panning)

    vp = wide.pointer_move(1, Vec2(50.0, 80.0))
    assert vp.translation.x == pytest.approx(-450.0)
    assert vp.translation.y == pytest.approx(0.0)  # content height == stage height

    vp = wide.pointer_move(1, Vec2(-2000.0, 100.0))
    assert vp.translation.x == pytest.approx(-800.0)

    vp = wide.pointer_move(1, Vec2(5000.0, 100.0))
    assert vp.translation.x == pytest.approx(0.0)

    wide.pointer_up(1)
    assert isinstance(wide.state, Idle)
    assert wide.pointer_count == 0


def test_pan_is_relative_to_start(wide: GestureController) -> None:
    """Intermediate moves don't accumulate; translation = start + total delta."""
    wide.pointer_down(1, Vec2(300.0, 300.0))
    wide.pointer_move(1, Vec2(250.0, 300.0))
    wide.pointer_move(1, Vec2(200.0, 300.0))
    vp = wide.pointer_move(1, Vec2(290.0, 300.0))
    assert vp.translation.x == pytest.approx(-410.0)


def test_pan_not_started_when_disallowed(wide: GestureController) -> None:
    vp0 = wide.viewport
    wide.pointer_down(1, Vec2(100.0, 100.0), allow_pan=False)
    assert isinstance(wide.state, Idle)
    assert wide.pointer_move(1, Vec2(10.0, 10.0)) is vp0


def test_pan_not_started_without_content() -> None:
    gc = GestureController(ViewportState(stage_size=Size(800, 600)))
    gc.pointer_down(1, Vec2(1.0, 1.0))
    assert isinstance(gc.state, Idle)


def test_pointer_cancel_returns_to_idle(wide: GestureController) -> None:
    wide.pointer_down(7, Vec2(100.0, 100.0))
    wide.pointer_cancel(7)
    assert isinstance(wide.state, Idle)
    assert wide.pointer_count == 0


def test_unknown_pointer_move_ignored(wide: GestureController) -> None:
    vp0 = wide.viewport
    assert wide.pointer_move(99, Vec2(1.0, 1.0)) is vp0


# --- pinching ---


def test_pinch_scales_by_distance_ratio(tall: GestureController) -> None:
    """Distance 200 -> 240 gives ratio 1.2 on the start scale."""
    start_scale = tall.viewport.scale
    tall.pointer_down(1, Vec2(100.0, 100.0))
    tall.pointer_down(2, Vec2(300.0, 100.0))
    state = tall.state
    assert isinstance(state, Pinching)
    assert state.start_distance == pytest.approx(200.0)
    assert state.start_center == Vec2(200.0, 100.0)

    tall.pointer_move(1, Vec2(80.0, 100.0))
    vp = tall.pointer_move(2, Vec2(320.0, 100.0))
    assert vp.scale == pytest.approx(start_scale * 1.2)


def test_pinch_anchors_content_under_live_center(tall: GestureController) -> None:
    vp0 = tall.viewport
    start_center = Vec2(400.0, 300.0)
    anchor = screen_to_normalized(start_center, vp0.translation, vp0.scale, vp0.content_size)

    tall.pointer_down(1, Vec2(350.0, 300.0))
    tall.pointer_down(2, Vec2(450.0, 300.0))
    tall.pointer_move(1, Vec2(300.0, 300.0))
    vp = tall.pointer_move(2, Vec2(500.0, 300.0))

    assert vp.scale == pytest.approx(1.0)
    screen = normalized_to_screen(anchor, vp.translation, vp.scale, vp.content_size)
    assert screen.x == pytest.approx(400.0)
    assert screen.y == pytest.approx(300.0)


def test_pinch_then_inverse_restores_scale(tall: GestureController) -> None:
    # first get off the min-scale clamp
    tall.pointer_down(1, Vec2(300.0, 300.0))
    tall.pointer_down(2, Vec2(400.0, 300.0))
    tall.pointer_move(2, Vec2(450.0, 300.0))  # ratio 1.5
    tall.pointer_up(1)
    tall.pointer_up(2)
    base = tall.viewport.scale
    assert base == pytest.approx(0.75)

    # ratio r
    tall.pointer_down(1, Vec2(300.0, 300.0))
    tall.pointer_down(2, Vec2(400.0, 300.0))
    tall.pointer_move(2, Vec2(480.0, 300.0))  # 180 / 100 = 1.8
    tall.pointer_up(1)
    tall.pointer_up(2)
    assert tall.viewport.scale == pytest.approx(base * 1.8)

    # ratio 1/r
    tall.pointer_down(1, Vec2(300.0, 300.0))
    tall.pointer_down(2, Vec2(480.0, 300.0))
    tall.pointer_move(2, Vec2(400.0, 300.0))  # 100 / 180
    tall.pointer_up(1)
    tall.pointer_up(2)
    assert tall.viewport.scale == pytest.approx(base, rel=1e-9)


def test_second_pointer_discards_pan(wide: GestureController) -> None:
    wide.pointer_down(1, Vec2(100.0, 100.0))
    wide.pointer_move(1, Vec2(90.0, 100.0))
    assert isinstance(wide.state, Panning)

    wide.pointer_down(2, Vec2(300.0, 100.0))
    assert isinstance(wide.state, Pinching)


def test_pinch_end_goes_idle_not_panning(tall: GestureController) -> None:
    """Lifting one finger ends the gesture; the remaining finger doesn't pan."""
    tall.pointer_down(1, Vec2(100.0, 100.0))
    tall.pointer_down(2, Vec2(300.0, 100.0))
    tall.pointer_move(2, Vec2(400.0, 100.0))
    tall.pointer_up(2)
    assert isinstance(tall.state, Idle)
    assert tall.pointer_count == 1

    vp = tall.viewport
    assert tall.pointer_move(1, Vec2(10.0, 10.0)) == vp
    assert isinstance(tall.state, Idle)


def test_new_pointer_during_pinch_keeps_pinch(tall: GestureController) -> None:
    tall.pointer_down(1, Vec2(100.0, 100.0))
    tall.pointer_down(2, Vec2(300.0, 100.0))
    state = tall.state
    tall.pointer_down(3, Vec2(500.0, 500.0))
    assert tall.state == state

    # third pointer moving alone changes nothing
    vp = tall.viewport
    assert tall.pointer_move(3, Vec2(0.0, 0.0)) == vp

    # lifting a pinch pointer rebases on the two that remain
    tall.pointer_up(1)
    rebased = tall.state
    assert isinstance(rebased, Pinching)
    assert set(rebased.pointer_ids) == {2, 3}


def test_coincident_pointers_skip_scale_update(tall: GestureController) -> None:
    tall.pointer_down(1, Vec2(200.0, 200.0))
    tall.pointer_down(2, Vec2(200.0, 200.0))
    assert isinstance(tall.state, Pinching)
    assert tall.state.start_distance == 0.0

    scale = tall.viewport.scale
    vp = tall.pointer_move(2, Vec2(300.0, 200.0))
    assert vp.scale == scale
    assert tall.state.start_distance == pytest.approx(100.0)

    vp = tall.pointer_move(2, Vec2(400.0, 200.0))
    assert vp.scale == pytest.approx(scale * 2.0)


def test_reset_drops_gesture(wide: GestureController) -> None:
    wide.pointer_down(1, Vec2(100.0, 100.0))
    fresh = initial_state(Size(400, 300), Size(1600, 600))
    wide.reset(fresh)
    assert wide.viewport is fresh
    assert isinstance(wide.state, Idle)
    assert wide.pointer_count == 0


# --- cursor ---


def test_desired_cursor() -> None:
    idle = Idle()
    pan = Panning(pointer_id=1, start_pointer=Vec2(0, 0), start_translation=Vec2(0, 0))
    assert desired_cursor(idle, armed=False) is Cursor.DEFAULT
    assert desired_cursor(idle, armed=True) is Cursor.CROSSHAIR
    assert desired_cursor(pan, armed=False) is Cursor.GRABBING
    assert desired_cursor(idle, armed=True, over_marker=True) is Cursor.POINTER
    assert Cursor.CROSSHAIR.value == "crosshair"

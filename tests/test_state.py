"""Test garden state: gesture buffer, stroke lifecycle, stones, tool mode.

Tests for src.pattern_engine.state:
    - Input decimation (points closer than min_point_distance are ignored)
    - end_stroke discards gestures with < 2 points
    - Finalized strokes carry an independent stone snapshot
    - Opacity clamping, removal, clearing
    - Stone cap, moves, removal, reset to the default layout
    - Leaving the rake tool ends an open gesture

Run:
    pytest tests/test_state.py -v
"""

import logging

import pytest

from src.pattern_engine.state import DEFAULT_STONES, GardenState, Stone, ToolMode


@pytest.fixture
def state():
    return GardenState()


def _rake(state, points, ts=1000.0):
    state.start_stroke(*points[0])
    for p in points[1:]:
        state.continue_stroke(*p)
    return state.end_stroke(ts)


# ============================================================================
# DEFAULTS
# ============================================================================

def test_default_layout(state):
    assert state.stones == DEFAULT_STONES
    assert len(state.stones) % 2 == 1
    assert state.strokes == ()
    assert not state.is_raking
    assert state.active_tool == ToolMode.VIEW


def test_custom_initial_stones():
    s = GardenState(stones=[Stone(id="a", position=(0.0, 0.0), radius=1.0)])
    assert [st.id for st in s.stones] == ["a"]


# ============================================================================
# GESTURE BUFFER
# ============================================================================

def test_close_points_are_ignored(state):
    state.start_stroke(0.0, 0.0)
    assert state.continue_stroke(0.02, 0.0) is False
    assert state.continue_stroke(0.04, 0.0) is False
    assert state.current_points == ((0.0, 0.0),)


def test_points_at_min_distance_are_kept(state):
    state.start_stroke(0.0, 0.0)
    assert state.continue_stroke(0.05, 0.0) is True
    assert state.continue_stroke(0.05, 0.3) is True
    assert len(state.current_points) == 3


def test_continue_without_start_is_ignored(state):
    assert state.continue_stroke(1.0, 1.0) is False
    assert state.current_points == ()


def test_start_resets_buffer(state):
    state.start_stroke(0.0, 0.0)
    state.continue_stroke(1.0, 0.0)
    state.start_stroke(3.0, 3.0)
    assert state.current_points == ((3.0, 3.0),)


# ============================================================================
# STROKE LIFECYCLE
# ============================================================================

def test_end_stroke_discards_single_point(state):
    state.start_stroke(0.0, 0.0)
    state.continue_stroke(0.01, 0.0)
    assert state.end_stroke() is None
    assert state.strokes == ()
    assert state.current_points == ()
    assert not state.is_raking


def test_end_stroke_persists(state):
    stroke = _rake(state, [(0.0, 0.0), (1.0, 0.0), (2.0, 0.5)], ts=1234.0)

    assert stroke is not None
    assert stroke.points == ((0.0, 0.0), (1.0, 0.0), (2.0, 0.5))
    assert stroke.timestamp == 1234.0
    assert stroke.opacity == 1.0
    assert stroke.id.startswith("stroke-1234-")
    assert state.strokes == (stroke,)
    assert state.current_points == ()
    assert not state.is_raking


def test_end_stroke_logs_length(state, caplog):
    with caplog.at_level(logging.DEBUG, logger="src.pattern_engine.state"):
        stroke = _rake(state, [(0.0, 0.0), (3.0, 0.0), (3.0, 4.0)])
    assert f"Stroke {stroke.id} persisted (3 points, length 7.00, 3 stones)" in caplog.text


def test_stroke_ids_unique(state):
    a = _rake(state, [(0.0, 0.0), (1.0, 0.0)], ts=5.0)
    b = _rake(state, [(0.0, 1.0), (1.0, 1.0)], ts=5.0)
    assert a.id != b.id


def test_snapshot_is_independent_copy(state):
    stroke = _rake(state, [(0.0, 0.0), (1.0, 0.0)])
    assert stroke.stones_snapshot == state.stones
    for snap, live in zip(stroke.stones_snapshot, state.stones):
        assert snap is not live

    state.move_stone("stone-1", 4.0, 4.0)
    assert stroke.stones_snapshot[0].position == (-1.8, -1.2)
    assert state.get_stone("stone-1").position == (4.0, 4.0)


def test_update_stroke_opacity_clamps(state):
    stroke = _rake(state, [(0.0, 0.0), (1.0, 0.0)])
    assert state.update_stroke_opacity(stroke.id, 0.4)
    assert state.get_stroke(stroke.id).opacity == pytest.approx(0.4)
    state.update_stroke_opacity(stroke.id, -1.0)
    assert state.get_stroke(stroke.id).opacity == 0.0
    state.update_stroke_opacity(stroke.id, 7.0)
    assert state.get_stroke(stroke.id).opacity == 1.0
    assert state.update_stroke_opacity("missing", 0.5) is False


def test_remove_and_clear_strokes(state):
    a = _rake(state, [(0.0, 0.0), (1.0, 0.0)])
    _rake(state, [(0.0, 1.0), (1.0, 1.0)])

    assert state.remove_stroke(a.id)
    assert state.remove_stroke(a.id) is False
    assert len(state.strokes) == 1

    state.start_stroke(0.0, 0.0)
    state.clear_all_strokes()
    assert state.strokes == ()
    assert not state.is_raking


def test_strokes_view_is_read_only(state):
    _rake(state, [(0.0, 0.0), (1.0, 0.0)])
    view = state.strokes
    assert isinstance(view, tuple)
    with pytest.raises(AttributeError):
        view.append(None)


# ============================================================================
# STONES
# ============================================================================

def test_stone_cap(state):
    assert state.add_stone(0.0, -3.0) is not None
    assert state.add_stone(3.0, -3.0, radius=0.5, stone_id="big") is not None
    assert len(state.stones) == 5
    assert state.add_stone(-3.0, 3.0) is None
    assert len(state.stones) == 5
    assert state.get_stone("big").radius == 0.5


def test_add_stone_rejects_bad_radius(state):
    with pytest.raises(ValueError):
        state.add_stone(0.0, 0.0, radius=0.0)


def test_move_stone_keeps_identity(state):
    moved = state.move_stone("stone-2", 1.0, -1.0, scale=2.0)
    assert moved.id == "stone-2"
    assert moved.position == (1.0, -1.0)
    assert moved.scale == 2.0
    assert moved.radius == 0.45
    assert state.move_stone("nope", 0.0, 0.0) is None


def test_remove_stone(state):
    assert state.remove_stone("stone-3")
    assert state.get_stone("stone-3") is None
    assert state.remove_stone("stone-3") is False


def test_reset_garden(state):
    state.add_stone(0.0, 0.0)
    state.remove_stone("stone-1")
    _rake(state, [(0.0, 0.0), (1.0, 0.0)])
    state.set_active_tool(ToolMode.STONE)

    state.reset_garden()
    assert state.stones == DEFAULT_STONES
    assert state.strokes == ()
    assert state.active_tool == ToolMode.VIEW


def test_load_truncates_to_cap(state):
    stones = [Stone(id=f"s{i}", position=(float(i), 0.0), radius=0.2) for i in range(8)]
    state.load(stones, [])
    assert [s.id for s in state.stones] == ["s0", "s1", "s2", "s3", "s4"]


# ============================================================================
# TOOL MODE
# ============================================================================

def test_switching_tool_ends_gesture(state):
    state.set_active_tool(ToolMode.RAKE)
    state.start_stroke(0.0, 0.0)
    state.continue_stroke(1.0, 0.0)

    state.set_active_tool(ToolMode.VIEW)
    assert not state.is_raking
    assert len(state.strokes) == 1


def test_tool_accepts_string_values(state):
    state.set_active_tool("stone")
    assert state.active_tool is ToolMode.STONE
    with pytest.raises(ValueError):
        state.set_active_tool("shovel")

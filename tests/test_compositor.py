"""Test the texture compositor and fade schedule.

Tests for src.pattern_engine.compositor:
    - Fade curve: full opacity for 8 s, linear to 0 over the next 4 s
    - Fade writes back through GardenState and removes spent strokes
    - Base raster is seeded, bounded and re-blitted every frame
    - Moving a stone never changes older strokes
    - In-progress gesture preview and dirty flag
    - Optional ring pass

Run:
    pytest tests/test_compositor.py -v
"""

import numpy as np
import pytest

from src.pattern_engine import GardenState, TextureCompositor, compute_opacity, make_base_texture
from src.utils.validators import PatternConfigV1


# ============================================================================
# FIXTURES
# ============================================================================

@pytest.fixture
def cfg():
    return PatternConfigV1(texture_size=256)


@pytest.fixture
def compositor(cfg):
    return TextureCompositor(cfg)


@pytest.fixture
def state(cfg):
    return GardenState(cfg)


def _rake(state, points, ts):
    state.start_stroke(*points[0])
    for p in points[1:]:
        state.continue_stroke(*p)
    return state.end_stroke(ts)


def _line_past_stone_1():
    """Horizontal stroke 0.7 below stone-1, well inside its influence ring."""
    return [(-3.5 + 0.1 * i, -0.5) for i in range(36)]


# ============================================================================
# FADE SCHEDULE
# ============================================================================

@pytest.mark.parametrize("age, expected", [
    (0.0, 1.0),
    (8000.0, 1.0),
    (9000.0, 0.75),
    (10000.0, 0.5),
    (12000.0, 0.0),
    (60000.0, 0.0),
])
def test_compute_opacity(age, expected):
    assert compute_opacity(age) == pytest.approx(expected)


def test_fade_partial_then_removed(compositor, state):
    stroke = _rake(state, [(0.0, 0.0), (1.0, 0.0)], ts=0.0)

    compositor.tick(state, 5000.0)
    assert state.get_stroke(stroke.id).opacity == 1.0

    compositor.tick(state, 9000.0)
    assert state.get_stroke(stroke.id).opacity == pytest.approx(0.75)

    compositor.tick(state, 12000.0)
    assert state.strokes == ()


def test_small_opacity_changes_not_written(compositor, state):
    stroke = _rake(state, [(0.0, 0.0), (1.0, 0.0)], ts=0.0)
    compositor.apply_fade(state, 9000.0)
    # 0.75 → 0.74: below the update epsilon
    compositor.apply_fade(state, 9040.0)
    assert state.get_stroke(stroke.id).opacity == pytest.approx(0.75)
    compositor.apply_fade(state, 9200.0)
    assert state.get_stroke(stroke.id).opacity == pytest.approx(0.70)


def test_per_frame_fade_trails_by_at_most_epsilon(compositor, state, cfg):
    stroke = _rake(state, [(0.0, 0.0), (1.0, 0.0)], ts=0.0)
    for t in range(8000, 9001, 16):
        compositor.apply_fade(state, float(t))
    compositor.apply_fade(state, 9000.0)
    stored = state.get_stroke(stroke.id).opacity
    assert stored >= 0.75
    assert stored - 0.75 <= cfg.opacity_update_epsilon


def test_apply_fade_counts_removals(compositor, state):
    _rake(state, [(0.0, 0.0), (1.0, 0.0)], ts=0.0)
    _rake(state, [(0.0, 1.0), (1.0, 1.0)], ts=5000.0)
    assert compositor.apply_fade(state, 12500.0) == 1
    assert len(state.strokes) == 1


# ============================================================================
# BASE TEXTURE
# ============================================================================

def test_base_texture_seeded_and_bounded(cfg):
    a = make_base_texture(cfg)
    b = make_base_texture(cfg)
    assert a.shape == (256, 256, 3)
    assert a.dtype == np.uint8
    assert np.array_equal(a, b)

    base = np.array(cfg.base_color_rgb)
    amp = cfg.noise_amplitude
    for c in range(3):
        assert a[:, :, c].min() >= base[c] - amp
        assert a[:, :, c].max() <= base[c] + amp
    assert a.std() > 0


def test_base_texture_is_read_only(compositor):
    with pytest.raises(ValueError):
        compositor.base_texture[0, 0, 0] = 0


def test_empty_garden_renders_base(compositor):
    tex = compositor.render([], [])
    assert np.array_equal(tex, compositor.base_texture)


def test_render_overwrites_previous_frame(compositor, state):
    _rake(state, [(-1.0, 0.0), (1.0, 0.0)], ts=0.0)
    first = compositor.render(state.stones, state.strokes).copy()
    assert not np.array_equal(first, compositor.base_texture)

    state.clear_all_strokes()
    tex = compositor.render(state.stones, state.strokes)
    assert np.array_equal(tex, compositor.base_texture)


def test_render_is_deterministic(compositor, state):
    _rake(state, _line_past_stone_1(), ts=0.0)
    a = compositor.render(state.stones, state.strokes).copy()
    b = compositor.render(state.stones, state.strokes).copy()
    assert np.array_equal(a, b)


# ============================================================================
# STONE SNAPSHOTS
# ============================================================================

def test_moving_stone_does_not_change_old_strokes(compositor, state):
    _rake(state, _line_past_stone_1(), ts=0.0)
    before = compositor.render(state.stones, state.strokes).copy()

    state.move_stone("stone-1", 3.5, -3.5)
    after = compositor.render(state.stones, state.strokes).copy()
    assert np.array_equal(before, after)


def test_live_stones_would_bend_differently(compositor, state):
    """Guard for the snapshot test: the stone really does bend this stroke."""
    points = _line_past_stone_1()
    r = compositor.rasterizer
    a = compositor.base_texture.copy()
    b = compositor.base_texture.copy()
    r.draw_stroke(a, points, 1.0, state.stones)
    state.move_stone("stone-1", 3.5, -3.5)
    r.draw_stroke(b, points, 1.0, state.stones)
    assert not np.array_equal(a, b)


# ============================================================================
# PREVIEW / DIRTY FLAG
# ============================================================================

def test_preview_drawn_for_two_points(compositor, state):
    state.start_stroke(-1.0, 2.0)
    tex = compositor.tick(state, 0.0)
    assert np.array_equal(tex, compositor.base_texture)

    state.continue_stroke(1.0, 2.0)
    tex = compositor.tick(state, 0.0)
    assert not np.array_equal(tex, compositor.base_texture)
    assert state.strokes == ()


def test_preview_lighter_than_persisted(cfg, state):
    points = [(-1.0, 2.0), (1.0, 2.0)]
    preview = TextureCompositor(cfg)
    state.start_stroke(*points[0])
    state.continue_stroke(*points[1])
    p = preview.tick(state, 0.0).astype(int)

    persisted = TextureCompositor(cfg)
    state.end_stroke(0.0)
    q = persisted.tick(state, 0.0).astype(int)
    assert p.sum() > q.sum()


def test_dirty_flag(compositor):
    assert compositor.needs_update
    compositor.mark_uploaded()
    assert not compositor.needs_update
    compositor.render([], [])
    assert compositor.needs_update


def test_frame_timer_records(compositor):
    compositor.render([], [])
    compositor.render([], [])
    assert compositor.frame_timer.count == 2
    assert compositor.frame_timer.mean() >= 0.0


# ============================================================================
# RING PASS
# ============================================================================

def test_ring_effect_off_by_default(compositor, state):
    tex = compositor.render(state.stones, [])
    assert np.array_equal(tex, compositor.base_texture)


def test_ring_effect_on(cfg, state):
    comp = TextureCompositor(cfg.model_copy(update={'ring_effect': True}))
    tex = comp.render(state.stones, [])
    assert not np.array_equal(tex, comp.base_texture)

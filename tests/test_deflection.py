"""Test the stone deflection field.

Tests for src.pattern_engine.deflection:
    - No displacement outside the influence radius or at/inside the stone
    - Displacement falls continuously to 0 at the influence boundary
    - Tangential/radial split and sign of the tooth offset
    - Several stones combine as a bounded weighted average
    - Strict "inside" test used for stroke breaking

Run:
    pytest tests/test_deflection.py -v
"""

import numpy as np
import pytest

from src.pattern_engine import deflection
from src.pattern_engine.state import Stone


@pytest.fixture
def stone():
    """Stone of radius 0.5 at the origin (influence radius 1.5)."""
    return Stone(id="s", position=(0.0, 0.0), radius=0.5)


# ============================================================================
# SUPPORT OF THE FIELD
# ============================================================================

def test_no_stones_is_identity():
    pts = np.array([[0.3, 0.1], [2.0, -1.0]])
    out = deflection.deflect_points(pts, 0.16, [])
    np.testing.assert_array_equal(out, pts)
    assert out is not pts


def test_outside_influence_radius_unchanged(stone):
    pts = np.array([[1.5, 0.0], [0.0, -1.6], [3.0, 3.0]])
    out = deflection.deflect_points(pts, 0.16, [stone])
    np.testing.assert_array_equal(out, pts)


def test_at_or_inside_radius_unchanged(stone):
    pts = np.array([[0.5, 0.0], [0.2, 0.1], [0.0, 0.0]])
    out = deflection.deflect_points(pts, 0.16, [stone])
    np.testing.assert_array_equal(out, pts)


def test_zero_offset_tooth_is_not_bent(stone):
    pts = np.array([[0.8, 0.0], [0.0, 1.0]])
    out = deflection.deflect_points(pts, 0.0, [stone])
    np.testing.assert_allclose(out, pts)


def test_empty_points(stone):
    out = deflection.deflect_points(np.zeros((0, 2)), 0.08, [stone])
    assert out.shape == (0, 2)


# ============================================================================
# SHAPE OF THE FIELD
# ============================================================================

def test_full_weight_at_surface(stone):
    # Just outside the surface on +x: normal (1, 0), tangent (0, 1), w ≈ 1
    x, y = deflection.deflect_point(0.5 + 1e-9, 0.0, 0.1, [stone])
    assert x - 0.5 == pytest.approx(0.1 * 0.3, abs=1e-6)
    assert y == pytest.approx(0.1 * 0.8, abs=1e-6)


def test_negative_offset_flips_tangent_only(stone):
    x, y = deflection.deflect_point(0.5 + 1e-9, 0.0, -0.1, [stone])
    assert x - 0.5 == pytest.approx(0.03, abs=1e-6)
    assert y == pytest.approx(-0.08, abs=1e-6)


def test_displacement_continuous_at_influence_boundary(stone):
    inside = np.array([[1.5 - 1e-6, 0.0]])
    out = deflection.deflect_points(inside, 0.16, [stone])
    assert np.linalg.norm(out - inside) < 1e-9


def test_displacement_decreases_with_distance(stone):
    dists = np.linspace(0.55, 1.45, 10)
    pts = np.stack([dists, np.zeros_like(dists)], axis=1)
    disp = np.linalg.norm(deflection.deflect_points(pts, 0.16, [stone]) - pts, axis=1)
    assert np.all(np.diff(disp) < 0)
    assert np.all(disp > 0)


def test_deflected_point_never_enters_stone(stone):
    rng = np.random.RandomState(3)
    angles = rng.uniform(0, 2 * np.pi, 200)
    radii = rng.uniform(0.5001, 1.5, 200)
    pts = np.stack([radii * np.cos(angles), radii * np.sin(angles)], axis=1)
    for offset in (-0.16, -0.08, 0.08, 0.16):
        out = deflection.deflect_points(pts, offset, [stone])
        assert np.all(np.hypot(out[:, 0], out[:, 1]) > 0.5)


# ============================================================================
# MULTIPLE STONES
# ============================================================================

def test_duplicate_stone_matches_single(stone):
    twin = Stone(id="t", position=(0.0, 0.0), radius=0.5)
    pts = np.array([[0.7, 0.2], [-0.3, 1.0], [0.0, -1.2]])
    single = deflection.deflect_points(pts, 0.16, [stone])
    double = deflection.deflect_points(pts, 0.16, [stone, twin])
    np.testing.assert_allclose(double, single, atol=1e-12)


def test_overlapping_stones_bounded(stone):
    other = Stone(id="o", position=(1.6, 0.0), radius=0.5)
    pts = np.array([[0.8, 0.05], [0.8, -0.3]])
    offset = 0.16
    out = deflection.deflect_points(pts, offset, [stone, other])
    bound = np.hypot(offset * deflection.TANGENT_GAIN, offset * deflection.RADIAL_GAIN)
    assert np.all(np.linalg.norm(out - pts, axis=1) <= bound + 1e-12)


def test_stone_order_does_not_matter(stone):
    other = Stone(id="o", position=(1.2, 0.9), radius=0.4)
    pts = np.array([[0.7, 0.6], [1.0, 0.1]])
    a = deflection.deflect_points(pts, 0.08, [stone, other])
    b = deflection.deflect_points(pts, 0.08, [other, stone])
    np.testing.assert_allclose(a, b, atol=1e-12)


# ============================================================================
# INSIDE TEST
# ============================================================================

def test_inside_is_strict(stone):
    assert deflection.is_point_inside_stone(0.0, 0.0, [stone])
    assert deflection.is_point_inside_stone(0.49, 0.0, [stone])
    assert not deflection.is_point_inside_stone(0.5, 0.0, [stone])
    assert not deflection.is_point_inside_stone(0.0, 0.0, [])


def test_inside_any_stone_mask(stone):
    other = Stone(id="o", position=(3.0, 0.0), radius=0.2)
    pts = np.array([[0.1, 0.1], [1.0, 0.0], [3.1, 0.0]])
    mask = deflection.inside_any_stone(pts, [stone, other])
    assert mask.tolist() == [True, False, True]


def test_influence_radius(stone):
    assert deflection.influence_radius(stone) == pytest.approx(1.5)
    arr = deflection.stones_to_array([stone])
    assert arr.shape == (1, 3)
    assert deflection.stones_to_array([]).shape == (0, 3)

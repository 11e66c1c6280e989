"""Radial-influence deflection field around stones.

Rake teeth passing near a stone are pushed along the stone's tangent (so a
straight stroke curls around it) and slightly outward, proportionally to the
tooth's signed offset from the stroke centerline. The further a tooth sits
from the centerline, the more it bends, which is what produces the ripple
look of raked gravel around rocks.

Per stone, with d the distance from the stone centre and R = 3·radius:
    - affected only when radius < d < R
    - w = ((R - d) / (R - radius))²          (1 at the surface, 0 at R)
    - c = w·(tangent·offset·0.8 + normal·|offset|·0.3)
Several stones combine as the influence-weighted average Σ w·c / Σ w, which
keeps overlapping rings bounded and lets the displacement fall continuously
to zero at the influence boundary.

Points at d ≤ radius receive no displacement here; the rasterizer drops
points strictly inside a stone instead. The d > radius guard also keeps the
normalisation away from d = 0.
"""

from typing import Sequence, Tuple

import numpy as np

from .state import Stone

INFLUENCE_FACTOR = 3.0
TANGENT_GAIN = 0.8
RADIAL_GAIN = 0.3


def influence_radius(stone: Stone) -> float:
    """Outer boundary of a stone's bending effect."""
    return INFLUENCE_FACTOR * stone.radius


def stones_to_array(stones: Sequence[Stone]) -> np.ndarray:
    """Pack stones into an array of [x, z, radius] rows, shape (K, 3)."""
    if len(stones) == 0:
        return np.zeros((0, 3), dtype=np.float64)
    return np.array(
        [(s.position[0], s.position[1], s.radius) for s in stones],
        dtype=np.float64
    )


def deflect_points(
    points: np.ndarray,
    offset: float,
    stones: Sequence[Stone]
) -> np.ndarray:
    """Displace points by the deflection field of all stones.

    Parameters
    ----------
    points : np.ndarray
        World positions (already offset by the tooth), shape (N, 2)
    offset : float
        Signed tooth offset from the stroke centerline
    stones : sequence of Stone
        Stones active for this stroke (snapshot or live)

    Returns
    -------
    np.ndarray
        Deflected positions, shape (N, 2); points outside every influence
        ring are returned unchanged
    """
    points = np.asarray(points, dtype=np.float64).reshape(-1, 2)
    stone_arr = stones_to_array(stones)
    if points.shape[0] == 0 or stone_arr.shape[0] == 0:
        return points.copy()

    total = np.zeros_like(points)
    weight = np.zeros(points.shape[0], dtype=np.float64)

    for sx, sz, radius in stone_arr:
        delta = points - np.array([sx, sz])
        dist = np.hypot(delta[:, 0], delta[:, 1])
        outer = INFLUENCE_FACTOR * radius

        mask = (dist > radius) & (dist < outer)
        if not mask.any():
            continue

        w = np.zeros_like(dist)
        w[mask] = ((outer - dist[mask]) / (outer - radius)) ** 2

        safe = np.where(mask, dist, 1.0)
        normal = delta / safe[:, None]
        tangent = np.stack([-normal[:, 1], normal[:, 0]], axis=1)

        contribution = w[:, None] * (
            tangent * (offset * TANGENT_GAIN) + normal * (abs(offset) * RADIAL_GAIN)
        )
        contribution[~mask] = 0.0

        total += w[:, None] * contribution
        weight += w

    out = points.copy()
    has = weight > 0
    out[has] += total[has] / weight[has, None]
    return out


def deflect_point(
    x: float,
    y: float,
    offset: float,
    stones: Sequence[Stone]
) -> Tuple[float, float]:
    """Scalar wrapper around deflect_points."""
    out = deflect_points(np.array([[x, y]], dtype=np.float64), offset, stones)
    return float(out[0, 0]), float(out[0, 1])


def inside_any_stone(points: np.ndarray, stones: Sequence[Stone]) -> np.ndarray:
    """Boolean mask of points strictly inside at least one stone.

    Parameters
    ----------
    points : np.ndarray
        World positions, shape (N, 2)
    stones : sequence of Stone

    Returns
    -------
    np.ndarray
        Mask, shape (N,), dtype bool
    """
    points = np.asarray(points, dtype=np.float64).reshape(-1, 2)
    inside = np.zeros(points.shape[0], dtype=bool)
    for sx, sz, radius in stones_to_array(stones):
        dist = np.hypot(points[:, 0] - sx, points[:, 1] - sz)
        inside |= dist < radius
    return inside


def is_point_inside_stone(x: float, y: float, stones: Sequence[Stone]) -> bool:
    """Scalar wrapper around inside_any_stone."""
    return bool(inside_any_stone(np.array([[x, y]]), stones)[0])

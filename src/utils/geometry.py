"""Geometric operations for rake strokes.

Provides:
    - World ↔ texture coordinate transforms (scalar and vectorised)
    - Greedy point simplification (control-point decimation)
    - Uniform Catmull-Rom evaluation and polyline smoothing
    - Per-vertex segment normals for fanning out rake teeth
    - Polyline length

Used by:
    - Rasterizer: raw pointer samples → smoothed tooth centerlines → pixels
    - Compositor: ring radii in pixel space
    - Tests: spline interpolation and round-trip properties

World frame: garden plane (x, z), square, centred on the origin, extent
[-garden_size/2, garden_size/2] on both axes. Texture frame: (u, v) pixels,
u follows x, v follows z, origin at the (-G/2, -G/2) corner.

Polylines are torch tensors of shape (N, 2). Functions accept any sequence of
(x, y) pairs and convert on entry.
"""

import math
from typing import Sequence, Tuple, Union

import numpy as np
import torch

GARDEN_SIZE = 10.0
TEXTURE_SIZE = 1024

PointsLike = Union[torch.Tensor, np.ndarray, Sequence[Sequence[float]]]


def as_points(points: PointsLike) -> torch.Tensor:
    """Convert a point sequence to a float64 tensor of shape (N, 2).

    Parameters
    ----------
    points : tensor, ndarray or sequence of (x, y)
        Input points; an empty sequence yields shape (0, 2)

    Returns
    -------
    torch.Tensor
        Points, shape (N, 2), dtype float64
    """
    if isinstance(points, torch.Tensor):
        pts = points.to(torch.float64)
    else:
        pts = torch.as_tensor(np.asarray(points, dtype=np.float64))
    if pts.numel() == 0:
        return torch.zeros((0, 2), dtype=torch.float64)
    return pts.reshape(-1, 2)


def world_to_texture(
    x: float,
    z: float,
    garden_size: float = GARDEN_SIZE,
    texture_size: int = TEXTURE_SIZE
) -> Tuple[int, int]:
    """Map garden world coordinates to integer texture coordinates.

    Parameters
    ----------
    x, z : float
        World position, nominally in [-garden_size/2, garden_size/2]
    garden_size : float
        World extent of the garden square
    texture_size : int
        Raster edge length in pixels

    Returns
    -------
    Tuple[int, int]
        (u, v), floored
    """
    u = (x + garden_size / 2) / garden_size * texture_size
    v = (z + garden_size / 2) / garden_size * texture_size
    return int(math.floor(u)), int(math.floor(v))


def texture_to_world(
    u: float,
    v: float,
    garden_size: float = GARDEN_SIZE,
    texture_size: int = TEXTURE_SIZE
) -> Tuple[float, float]:
    """Inverse of world_to_texture (before flooring).

    Notes
    -----
    world_to_texture(*texture_to_world(u, v)) reproduces (u, v) within ±1
    pixel; the flooring step is lossy.
    """
    x = u / texture_size * garden_size - garden_size / 2
    z = v / texture_size * garden_size - garden_size / 2
    return x, z


def world_to_texture_array(
    points: np.ndarray,
    garden_size: float = GARDEN_SIZE,
    texture_size: int = TEXTURE_SIZE
) -> np.ndarray:
    """Vectorised world_to_texture for an (N, 2) array.

    Returns
    -------
    np.ndarray
        Pixel coordinates (u, v), shape (N, 2), int32
    """
    points = np.asarray(points, dtype=np.float64)
    uv = (points + garden_size / 2) / garden_size * texture_size
    return np.floor(uv).astype(np.int32)


def simplify_points(points: PointsLike, min_distance: float = 0.15) -> torch.Tensor:
    """Greedy decimation of a polyline.

    Parameters
    ----------
    points : PointsLike
        Polyline vertices, shape (N, 2)
    min_distance : float
        Minimum spacing to the last kept point for an interior point to
        survive

    Returns
    -------
    torch.Tensor
        Kept vertices, shape (M, 2), M ≤ N

    Notes
    -----
    First and last points are always kept, so the final pair may be closer
    than min_distance. Inputs with fewer than 3 points are returned as-is.
    """
    pts = as_points(points)
    if pts.shape[0] < 3:
        return pts

    kept = [pts[0]]
    for i in range(1, pts.shape[0] - 1):
        if torch.dist(kept[-1], pts[i]).item() >= min_distance:
            kept.append(pts[i])
    kept.append(pts[-1])

    return torch.stack(kept, dim=0)


def catmull_rom(
    p0: torch.Tensor,
    p1: torch.Tensor,
    p2: torch.Tensor,
    p3: torch.Tensor,
    t: torch.Tensor,
    tension: float = 0.5
) -> torch.Tensor:
    """Evaluate uniform Catmull-Rom segments between p1 and p2.

    Parameters
    ----------
    p0, p1, p2, p3 : torch.Tensor
        Control points, shape (..., 2)
    t : torch.Tensor
        Parameter values in [0, 1), shape (S,)
    tension : float
        Tangent scale, 0.5 for the classic spline

    Returns
    -------
    torch.Tensor
        Points, shape (..., S, 2); t=0 gives exactly p1

    Notes
    -----
    Hermite form with tangents m1 = tension·(p2 - p0), m2 = tension·(p3 - p1):
    P(t) = (2p1 - 2p2 + m1 + m2)t³ + (-3p1 + 3p2 - 2m1 - m2)t² + m1·t + p1
    """
    t = t.to(p1.dtype).view(*([1] * (p1.ndim - 1)), -1, 1)  # (..., S, 1)
    p0, p1, p2, p3 = (p.unsqueeze(-2) for p in (p0, p1, p2, p3))

    m1 = (p2 - p0) * tension
    m2 = (p3 - p1) * tension

    a = 2.0 * p1 - 2.0 * p2 + m1 + m2
    b = -3.0 * p1 + 3.0 * p2 - 2.0 * m1 - m2

    return a * t ** 3 + b * t ** 2 + m1 * t + p1


def smooth_points(
    points: PointsLike,
    segments: int = 16,
    min_distance: float = 0.12
) -> torch.Tensor:
    """Turn raw pointer samples into a smooth polyline.

    Parameters
    ----------
    points : PointsLike
        Raw stroke points, shape (N, 2)
    segments : int
        Samples emitted per control interval
    min_distance : float
        Decimation distance applied before fitting (see simplify_points)

    Returns
    -------
    torch.Tensor
        Smoothed polyline, shape (M, 2)

    Notes
    -----
    Fewer than 3 points pass through untouched. Otherwise the input is
    simplified and, if at least 3 control points remain, each interval
    [c_i, c_{i+1}] is sampled at t = k/segments for k in [0, segments) with
    neighbour indices clamped at the ends (the first/last control point is
    reused as its own virtual neighbour). The final control point is
    appended, so every control point appears verbatim in the output.
    """
    pts = as_points(points)
    if pts.shape[0] <= 2:
        return pts

    ctrl = simplify_points(pts, min_distance)
    n = ctrl.shape[0]
    if n < 3:
        return ctrl

    idx = torch.arange(n - 1)
    p0 = ctrl[torch.clamp(idx - 1, min=0)]
    p1 = ctrl[idx]
    p2 = ctrl[idx + 1]
    p3 = ctrl[torch.clamp(idx + 2, max=n - 1)]

    t = torch.arange(segments, dtype=ctrl.dtype) / segments
    samples = catmull_rom(p0, p1, p2, p3, t)  # (n-1, S, 2)

    return torch.cat([samples.reshape(-1, 2), ctrl[-1:]], dim=0)


def segment_normals(points: PointsLike) -> torch.Tensor:
    """Unit perpendicular at each vertex of a polyline.

    Parameters
    ----------
    points : PointsLike
        Polyline vertices, shape (N, 2)

    Returns
    -------
    torch.Tensor
        Normals (-dy, dx)/len, shape (N, 2)

    Notes
    -----
    Vertex i uses the segment towards i+1; the last vertex uses the segment
    from its predecessor. Zero-length segments inherit the previous valid
    normal (or the next one, at the start of the line); a fully degenerate
    line yields zeros.
    """
    pts = as_points(points)
    n = pts.shape[0]
    normals = torch.zeros_like(pts)
    if n < 2:
        return normals

    d = pts[1:] - pts[:-1]
    d = torch.cat([d, d[-1:]], dim=0)
    length = torch.linalg.norm(d, dim=1)
    valid = length > 0

    safe = torch.where(valid, length, torch.ones_like(length))
    normals[:, 0] = -d[:, 1] / safe
    normals[:, 1] = d[:, 0] / safe

    if not bool(valid.all()):
        if not bool(valid.any()):
            return torch.zeros_like(pts)
        last = normals[int(torch.nonzero(valid)[0])].clone()
        for i in range(n):
            if valid[i]:
                last = normals[i].clone()
            else:
                normals[i] = last

    return normals


def polyline_length(points: PointsLike) -> float:
    """Sum of segment lengths; 0.0 for fewer than 2 points."""
    pts = as_points(points)
    if pts.shape[0] < 2:
        return 0.0
    return float(torch.linalg.norm(pts[1:] - pts[:-1], dim=1).sum())

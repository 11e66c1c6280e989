"""Stroke rasterizer: multi-tooth rake strokes onto the sand texture.

Pipeline per stroke:
    - Smooth raw pointer samples (simplify → Catmull-Rom)
    - For each tooth, offset the centerline along its local perpendicular
    - Bend the offset line with the deflection field of the stroke's stones
    - Break the line wherever it enters a stone (strictly inside the radius)
    - Convert surviving runs to pixels and composite them as anti-aliased
      poly-lines with round ends

Compositing is "source over" with a constant alpha per sub-path:
    out = dst·(1 - a·coverage) + colour·a·coverage,  a = opacity × alpha_scale
Each sub-path is rasterized into its own coverage mask first, so a tooth
that crosses itself is not darkened twice; separate sub-paths and separate
teeth do accumulate, like successive strokes on a 2D canvas.

Optional ring pass (config.ring_effect): concentric circles around stones
that no persisted stroke reaches, drawn between the stone surface and its
influence radius.

Invariants:
    - Canvas is uint8 RGB, shape (texture_size, texture_size, 3)
    - Geometry stays in world units until world_to_texture_array()
    - Strokes with fewer than 2 raw points draw nothing
"""

import logging
import math
from typing import List, Optional, Sequence

import cv2
import numpy as np

from src.utils import geometry
from src.utils import strokes as stroke_utils
from src.utils.validators import PatternConfigV1

from . import deflection
from .state import RakeStroke, Stone

logger = logging.getLogger(__name__)


class StrokeRasterizer:
    """Draws rake strokes into a texture-sized uint8 canvas.

    Attributes
    ----------
    cfg : PatternConfigV1
        Engine config (tooth layout, line width, colours, smoothing)
    texture_size : int
        Canvas edge length in pixels
    """

    def __init__(self, cfg: Optional[PatternConfigV1] = None):
        self.cfg = cfg or PatternConfigV1()
        self.texture_size = self.cfg.texture_size
        self.color = np.array(self.cfg.stroke_color_rgb, dtype=np.float32)

    def tooth_offsets(self) -> np.ndarray:
        """Signed offsets of each tooth from the centerline, shape (num_teeth,)."""
        n = self.cfg.num_teeth
        return (np.arange(n, dtype=np.float64) - (n - 1) / 2.0) * self.cfg.tooth_spacing

    def _check_canvas(self, canvas: np.ndarray) -> None:
        expected = (self.texture_size, self.texture_size, 3)
        if canvas.shape != expected:
            raise ValueError(f"Canvas shape {canvas.shape} != expected {expected}")
        if canvas.dtype != np.uint8:
            raise ValueError(f"Canvas must be uint8, got {canvas.dtype}")

    def tooth_paths(
        self,
        points: Sequence[Sequence[float]],
        stones: Sequence[Stone]
    ) -> List[List[np.ndarray]]:
        """Compute world-space sub-paths for every tooth.

        Parameters
        ----------
        points : sequence of (x, z)
            Raw stroke points
        stones : sequence of Stone
            Stones used for deflection and breaking

        Returns
        -------
        list of list of np.ndarray
            One entry per tooth; each is the ordered list of runs of
            consecutive points outside all stones, each of shape (M, 2).
            Empty when fewer than 2 raw points are given.
        """
        if len(points) < 2:
            return []

        smoothed = geometry.smooth_points(
            points,
            segments=self.cfg.smooth_segments,
            min_distance=self.cfg.simplify_min_distance
        )
        normals = geometry.segment_normals(smoothed).cpu().numpy()
        centerline = smoothed.cpu().numpy()

        paths = []
        for offset in self.tooth_offsets():
            base = centerline + normals * offset
            bent = deflection.deflect_points(base, float(offset), stones)
            inside = deflection.inside_any_stone(bent, stones)

            runs = []
            current = []
            for point, is_inside in zip(bent, inside):
                if is_inside:
                    if current:
                        runs.append(np.array(current))
                        current = []
                    continue
                current.append(point)
            if current:
                runs.append(np.array(current))
            paths.append(runs)

        return paths

    def draw_stroke(
        self,
        canvas: np.ndarray,
        points: Sequence[Sequence[float]],
        opacity: float,
        stones: Sequence[Stone]
    ) -> int:
        """Draw one stroke into the canvas (in place).

        Parameters
        ----------
        canvas : np.ndarray
            Texture, shape (T, T, 3), uint8
        points : sequence of (x, z)
            Raw stroke points
        opacity : float
            Stroke opacity in [0, 1]; alpha = opacity × stroke_alpha_scale
        stones : sequence of Stone
            Stones to bend around (a stroke's snapshot, or live stones for
            the preview)

        Returns
        -------
        int
            Number of sub-paths composited
        """
        self._check_canvas(canvas)

        if len(points) < 2:
            logger.debug("Stroke with < 2 points, not drawn")
            return 0

        alpha = float(np.clip(opacity, 0.0, 1.0)) * self.cfg.stroke_alpha_scale
        if alpha <= 0.0:
            return 0

        drawn = 0
        for runs in self.tooth_paths(points, stones):
            for run in runs:
                if len(run) < 2:
                    continue
                pixels = geometry.world_to_texture_array(
                    run, self.cfg.garden_size, self.texture_size
                )
                if self._composite_polyline(canvas, pixels, alpha):
                    drawn += 1
        return drawn

    def draw_rake_stroke(self, canvas: np.ndarray, stroke: RakeStroke) -> int:
        """Draw a persisted stroke against its own stone snapshot."""
        return self.draw_stroke(canvas, stroke.points, stroke.opacity, stroke.stones_snapshot)

    def _roi(self, xmin: int, ymin: int, xmax: int, ymax: int, margin: int):
        x0 = max(0, xmin - margin)
        y0 = max(0, ymin - margin)
        x1 = min(self.texture_size, xmax + margin + 1)
        y1 = min(self.texture_size, ymax + margin + 1)
        if x1 <= x0 or y1 <= y0:
            return None
        return x0, y0, x1, y1

    def _composite_polyline(self, canvas: np.ndarray, pixels: np.ndarray, alpha: float) -> bool:
        """Rasterize an open poly-line into a coverage mask and blend it."""
        margin = self.cfg.line_width_px + 2
        roi = self._roi(
            int(pixels[:, 0].min()), int(pixels[:, 1].min()),
            int(pixels[:, 0].max()), int(pixels[:, 1].max()),
            margin
        )
        if roi is None:
            return False
        x0, y0, x1, y1 = roi

        mask = np.zeros((y1 - y0, x1 - x0), dtype=np.uint8)
        local = (pixels - np.array([x0, y0], dtype=np.int32)).reshape(-1, 1, 2)
        # Thick cv2 lines are drawn with round caps and joins
        cv2.polylines(
            mask, [local], isClosed=False, color=255,
            thickness=self.cfg.line_width_px, lineType=cv2.LINE_AA
        )
        return self._blend(canvas, mask, x0, y0, alpha, self.color)

    @staticmethod
    def _blend(
        canvas: np.ndarray,
        mask: np.ndarray,
        x0: int,
        y0: int,
        alpha: float,
        color: np.ndarray
    ) -> bool:
        if not mask.any():
            return False
        h, w = mask.shape
        a = (mask.astype(np.float32) / 255.0 * alpha)[:, :, np.newaxis]
        roi = canvas[y0:y0 + h, x0:x0 + w].astype(np.float32)
        blended = roi * (1.0 - a) + color[np.newaxis, np.newaxis, :] * a
        canvas[y0:y0 + h, x0:x0 + w] = np.clip(np.rint(blended), 0, 255).astype(np.uint8)
        return True

    def draw_stone_ripples(
        self,
        canvas: np.ndarray,
        stones: Sequence[Stone],
        strokes: Sequence[RakeStroke]
    ) -> int:
        """Concentric rings around stones that no stroke reaches.

        Parameters
        ----------
        canvas : np.ndarray
            Texture, shape (T, T, 3), uint8
        stones : sequence of Stone
            Live stones
        strokes : sequence of RakeStroke
            Persisted strokes; a stone is skipped when any stroke point
            (widened by the rake's half width) falls within its influence
            radius

        Returns
        -------
        int
            Number of rings drawn
        """
        self._check_canvas(canvas)

        half_rake = float(np.abs(self.tooth_offsets()).max())
        px_per_world = self.cfg.px_per_world()
        rings = 0

        for stone in stones:
            outer = deflection.influence_radius(stone)
            if self._stone_reached(stone, outer + half_rake, strokes):
                continue

            cx, cy = geometry.world_to_texture(
                stone.position[0], stone.position[1],
                self.cfg.garden_size, self.texture_size
            )
            r_max_px = int(math.ceil(outer * px_per_world))
            roi = self._roi(cx, cy, cx, cy, r_max_px + self.cfg.line_width_px + 2)
            if roi is None:
                continue
            x0, y0, x1, y1 = roi

            mask = np.zeros((y1 - y0, x1 - x0), dtype=np.uint8)
            count = self.cfg.ring_count
            for k in range(1, count + 1):
                r_world = stone.radius + (outer - stone.radius) * k / (count + 1)
                cv2.circle(
                    mask, (cx - x0, cy - y0), int(round(r_world * px_per_world)),
                    color=255, thickness=self.cfg.line_width_px, lineType=cv2.LINE_AA
                )
            if self._blend(canvas, mask, x0, y0, self.cfg.ring_alpha, self.color):
                rings += count

        return rings

    @staticmethod
    def _stone_reached(stone: Stone, reach: float, strokes: Sequence[RakeStroke]) -> bool:
        cx, cz = stone.position
        center = np.array(stone.position, dtype=np.float64)
        for stroke in strokes:
            if len(stroke.points) == 0:
                continue
            xmin, zmin, xmax, zmax = stroke_utils.points_bbox(stroke.points)
            if not (xmin - reach < cx < xmax + reach and zmin - reach < cz < zmax + reach):
                continue
            pts = np.asarray(stroke.points, dtype=np.float64)
            if np.hypot(*(pts - center).T).min() < reach:
                return True
        return False

"""Per-frame texture compositor and stroke fade schedule.

Each frame:
    1. Fade: recompute every stroke's opacity from its age and write changes
       back through GardenState (removal once opacity hits 0)
    2. Re-blit the precomputed base sand raster (overwrite, not blend)
    3. Draw persisted strokes, each against its own stone snapshot
    4. Optional ring pass around untouched stones
    5. Draw the in-progress gesture (≥ 2 points) at preview opacity against
       the live stones
    6. Raise the dirty flag for the 3D host to upload the texture

Fade schedule:
    opacity = 1 - clamp((age - fade_start) / fade_duration, 0, 1)
with age in ms. Evaluated every tick from wall-clock deltas, so it tolerates
variable frame rates. A new value is written back only when it differs from
the stored one by more than opacity_update_epsilon (or returns to 1.0), so
when ticking every frame the stored opacity trails the formula by at most
that epsilon. Removal at 0 is exact.

The base raster is generated once with seeded grain noise; regenerating
noise per frame would flicker.
"""

import logging
from typing import Optional, Sequence

import numpy as np

from src.utils import profiler
from src.utils.validators import PatternConfigV1

from .rasterizer import StrokeRasterizer
from .state import GardenState, RakeStroke, Stone, now_ms

logger = logging.getLogger(__name__)


def compute_opacity(age_ms: float, fade_start_ms: float = 8000.0, fade_duration_ms: float = 4000.0) -> float:
    """Opacity of a stroke of the given age.

    Examples
    --------
    >>> compute_opacity(9000.0)
    0.75
    >>> compute_opacity(12000.0)
    0.0
    """
    progress = (age_ms - fade_start_ms) / fade_duration_ms
    return 1.0 - min(1.0, max(0.0, progress))


def make_base_texture(cfg: PatternConfigV1) -> np.ndarray:
    """Undisturbed sand: flat base colour plus per-pixel grain.

    The same noise value is added to all three channels, uniform in
    [-noise_amplitude, noise_amplitude), then clipped to 8 bits.

    Returns
    -------
    np.ndarray
        Base raster, shape (T, T, 3), uint8
    """
    size = cfg.texture_size
    rng = np.random.RandomState(cfg.noise_seed)
    noise = rng.uniform(-cfg.noise_amplitude, cfg.noise_amplitude, size=(size, size, 1))
    base = np.array(cfg.base_color_rgb, dtype=np.float64)[np.newaxis, np.newaxis, :] + noise
    return np.clip(np.rint(base), 0, 255).astype(np.uint8)


class TextureCompositor:
    """Owns the sand texture and redraws it from garden state.

    Attributes
    ----------
    cfg : PatternConfigV1
        Engine config
    rasterizer : StrokeRasterizer
        Stroke drawer
    base_texture : np.ndarray
        Read-only base sand raster, (T, T, 3) uint8
    texture : np.ndarray
        Working raster handed to the 3D host, (T, T, 3) uint8
    needs_update : bool
        Dirty flag; set by render(), cleared by mark_uploaded()
    frame_timer : profiler.TimerAccumulator
        Render pass timings
    """

    def __init__(
        self,
        cfg: Optional[PatternConfigV1] = None,
        rasterizer: Optional[StrokeRasterizer] = None
    ):
        self.cfg = cfg or PatternConfigV1()
        self.rasterizer = rasterizer or StrokeRasterizer(self.cfg)
        self.base_texture = make_base_texture(self.cfg)
        self.base_texture.setflags(write=False)
        self.texture = self.base_texture.copy()
        self.needs_update = True
        self.frame_timer = profiler.TimerAccumulator("render")

        logger.info(
            f"TextureCompositor initialized: texture={self.cfg.texture_size}px, "
            f"garden={self.cfg.garden_size}, teeth={self.cfg.num_teeth}, "
            f"ring_effect={self.cfg.ring_effect}"
        )

    def apply_fade(self, state: GardenState, timestamp_ms: float) -> int:
        """Update stroke opacities through the state's mutation API.

        Parameters
        ----------
        state : GardenState
            Garden state (mutated only via update_stroke_opacity /
            remove_stroke)
        timestamp_ms : float
            Current time in ms

        Returns
        -------
        int
            Number of strokes removed this tick
        """
        removed = 0
        for stroke in state.strokes:
            opacity = compute_opacity(
                timestamp_ms - stroke.timestamp,
                self.cfg.fade_start_ms,
                self.cfg.fade_duration_ms
            )
            if opacity <= 0.0:
                state.remove_stroke(stroke.id)
                removed += 1
                logger.debug(f"Stroke {stroke.id} faded out")
            elif opacity != stroke.opacity and (
                abs(stroke.opacity - opacity) > self.cfg.opacity_update_epsilon
                or opacity == 1.0
            ):
                state.update_stroke_opacity(stroke.id, opacity)
        return removed

    def render(
        self,
        stones: Sequence[Stone],
        strokes: Sequence[RakeStroke],
        current_points: Sequence[Sequence[float]] = ()
    ) -> np.ndarray:
        """Redraw the whole texture.

        Parameters
        ----------
        stones : sequence of Stone
            Live stones (preview and ring pass only)
        strokes : sequence of RakeStroke
            Persisted strokes; each is drawn with its own snapshot
        current_points : sequence of (x, z)
            In-progress gesture buffer

        Returns
        -------
        np.ndarray
            The working texture (same object every frame)
        """
        with self.frame_timer.measure():
            np.copyto(self.texture, self.base_texture)

            for stroke in strokes:
                self.rasterizer.draw_rake_stroke(self.texture, stroke)

            if self.cfg.ring_effect:
                self.rasterizer.draw_stone_ripples(self.texture, stones, strokes)

            if len(current_points) >= 2:
                self.rasterizer.draw_stroke(
                    self.texture, current_points, self.cfg.preview_opacity, stones
                )

            self.needs_update = True

        logger.debug(
            f"Frame rendered: {len(strokes)} strokes, preview={len(current_points)} pts, "
            f"{self.frame_timer.last * 1000:.1f} ms"
        )
        return self.texture

    def tick(self, state: GardenState, timestamp_ms: Optional[float] = None) -> np.ndarray:
        """Fade then render one frame from the given state."""
        ts = now_ms() if timestamp_ms is None else float(timestamp_ms)
        self.apply_fade(state, ts)
        return self.render(state.stones, state.strokes, state.current_points)

    def mark_uploaded(self) -> None:
        """Host acknowledges it has uploaded the texture."""
        self.needs_update = False

"""Pattern engine: rake strokes → deflected, fading sand texture.

Modules:
    - state: GardenState (stones, strokes, gesture buffer, tool mode)
    - deflection: radial-influence field bending teeth around stones
    - rasterizer: StrokeRasterizer (multi-tooth strokes, ring pass)
    - compositor: TextureCompositor (per-frame redraw, fade schedule)
    - persistence: flat records, garden save files, PNG export

Usage:
    from src.pattern_engine import GardenState, TextureCompositor

    state = GardenState()
    compositor = TextureCompositor()

    state.start_stroke(-3.0, 0.0)
    state.continue_stroke(0.0, 0.2)
    state.end_stroke()

    texture = compositor.tick(state)   # (1024, 1024, 3) uint8
"""

from .compositor import TextureCompositor, compute_opacity, make_base_texture
from .rasterizer import StrokeRasterizer
from .state import DEFAULT_STONES, GardenState, RakeStroke, Stone, ToolMode

__all__ = [
    'GardenState',
    'RakeStroke',
    'Stone',
    'ToolMode',
    'DEFAULT_STONES',
    'StrokeRasterizer',
    'TextureCompositor',
    'compute_opacity',
    'make_base_texture',
]

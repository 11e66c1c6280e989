"""Zen Garden: sand pattern engine for an interactive karesansui garden.

A user drags a virtual rake across the sand; each gesture becomes a
multi-tooth stroke that bends around stones and fades after a while. This
package holds the pattern engine that turns pointer samples into the sand
texture a 3D host maps onto its ground plane.

Architecture layers (strict one-way dependency):
    scripts/ → src/pattern_engine/ → src/utils/

Key invariants:
    - World coordinates (x, z) on a square garden centred at the origin
    - Texture is uint8 RGB, texture_size × texture_size, redrawn every frame
    - Persisted strokes bend around the stones as they were when finalized
    - YAML-only configs and save files
"""

__version__ = "1.0.0"

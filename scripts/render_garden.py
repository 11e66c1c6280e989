#!/usr/bin/env python3
"""Offline garden renderer.

Builds a garden state, fills it from a save file or from synthetic demo
gestures, renders one frame with the pattern engine and writes the texture
as a PNG.

Usage:
    # Demo gestures around the default stones
    python scripts/render_garden.py --demo --output outputs/garden.png

    # Re-render a saved garden, 9 s after its strokes were made
    python scripts/render_garden.py --garden saves/garden.yaml --age_ms 9000

    # Save the demo garden for later
    python scripts/render_garden.py --demo --save saves/demo_garden.yaml

Outputs:
    - <output>.png: sand texture (texture_size × texture_size, RGB)
    - optional garden save file (--save)
"""

import argparse
import logging
import math
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from src.pattern_engine import GardenState, TextureCompositor
from src.pattern_engine import persistence
from src.pattern_engine.state import now_ms
from src.utils import logging_config, profiler, validators


def parse_args():
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="Render a zen garden sand texture",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__
    )

    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument('--garden', type=str, help='Garden save file (garden.v1 YAML)')
    source.add_argument('--demo', action='store_true', help='Rake synthetic demo gestures')

    parser.add_argument(
        '--config',
        type=str,
        default=None,
        help='Pattern config (pattern.v1 YAML); built-in defaults if omitted'
    )
    parser.add_argument(
        '--output',
        type=str,
        default='outputs/garden.png',
        help='Output PNG path, default: outputs/garden.png'
    )
    parser.add_argument(
        '--age_ms',
        type=float,
        default=0.0,
        help='Render as if this many ms passed since the newest stroke, default: 0'
    )
    parser.add_argument('--save', type=str, default=None, help='Write the garden to this save file')
    parser.add_argument('--rings', action='store_true', help='Enable the concentric ring pass')
    parser.add_argument('--verbose', action='store_true', help='Enable verbose logging')

    return parser.parse_args()


def rake(state: GardenState, points, timestamp_ms: float) -> None:
    """Replay one gesture through the input API."""
    state.set_active_tool("rake")
    state.start_stroke(*points[0])
    for x, z in points[1:]:
        state.continue_stroke(x, z)
    state.end_stroke(timestamp_ms)


def rake_demo(state: GardenState, timestamp_ms: float) -> None:
    """Horizontal passes across the garden plus an arc around one stone."""
    half = state.config.garden_size / 2 - 0.3
    n = 120
    for z in (-2.9, -1.2, 0.0, 0.9, 2.2, 3.6):
        pts = [(-half + 2 * half * i / (n - 1), z + 0.15 * math.sin(i / 9.0)) for i in range(n)]
        rake(state, pts, timestamp_ms)

    stone = state.stones[-1]
    cx, cz = stone.position
    r = stone.radius * 1.9
    arc = [
        (cx + r * math.cos(a), cz + r * math.sin(a))
        for a in (2 * math.pi * i / 90 for i in range(80))
    ]
    rake(state, arc, timestamp_ms)


def main():
    """Main entry point."""
    args = parse_args()

    log_level = "DEBUG" if args.verbose else "INFO"
    logging_config.setup_logging(log_level=log_level, context={"app": "render_garden"}, quiet_libs=["PIL"])
    logger = logging.getLogger(__name__)

    cfg = validators.load_pattern_config(args.config) if args.config else validators.PatternConfigV1()
    if args.rings:
        cfg = cfg.model_copy(update={'ring_effect': True})

    state = GardenState(cfg)
    if args.garden:
        with logging_config.log_context(garden=args.garden):
            restored = persistence.restore_garden(state, args.garden)
        if not restored:
            logger.error(f"Nothing to render: {args.garden} is missing or unreadable")
            return 1
    else:
        rake_demo(state, now_ms())

    if args.save:
        persistence.save_garden(state, args.save)

    newest = max((s.timestamp for s in state.strokes), default=now_ms())
    compositor = TextureCompositor(cfg)

    with profiler.timer("render", sink=lambda name, s: logger.info(f"{name}: {s * 1000:.1f} ms")):
        texture = compositor.tick(state, newest + args.age_ms)

    logger.debug(f"Frame stats: {compositor.frame_timer.summary()}")
    logger.info(f"{len(state.strokes)} stroke(s) visible, {len(state.stones)} stone(s)")
    persistence.save_texture_png(texture, args.output)
    compositor.mark_uploaded()

    logging_config.shutdown()
    return 0


if __name__ == '__main__':
    sys.exit(main())

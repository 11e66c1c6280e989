"""Garden state: stones, persisted strokes and the in-progress rake gesture.

GardenState is the single owner of mutable garden data. Input handlers call
start_stroke / continue_stroke / end_stroke; the compositor reads the views
each frame and asks for opacity updates or removals through the mutation
methods. There is no module-level instance: the host creates one state and
passes it to whoever needs it.

Stroke life:
    Drawing (points appended) → Persisted/Fading (frozen points, opacity
    decreasing) → Removed (deleted once opacity reaches 0)

A persisted stroke carries a deep copy of the stones taken at finalize
time; moving a stone later never changes how older strokes bend.
"""

from __future__ import annotations

import copy
import enum
import logging
import math
import time
from dataclasses import dataclass, field, replace
from typing import List, Optional, Sequence, Tuple

from src.utils import geometry
from src.utils import strokes as stroke_utils
from src.utils.validators import PatternConfigV1

logger = logging.getLogger(__name__)

Point = Tuple[float, float]


def now_ms() -> float:
    """Wall-clock time in milliseconds."""
    return time.time() * 1000.0


class ToolMode(str, enum.Enum):
    """Active interaction tool."""

    VIEW = "view"
    RAKE = "rake"
    STONE = "stone"


@dataclass(frozen=True)
class Stone:
    """Circular obstacle on the sand.

    Parameters
    ----------
    id : str
        Stable identity; survives moves
    position : (x, z)
        Centre in world units
    radius : float
        Collision/deflection radius in world units
    scale : float
        Visual scale of the rock mesh
    """

    id: str
    position: Tuple[float, float]
    radius: float
    scale: float = 1.0


@dataclass
class RakeStroke:
    """A finalized rake gesture.

    ``points`` are the raw (decimated) pointer samples; smoothing happens at
    draw time. ``stones_snapshot`` is an independent copy of the stones at
    finalize time.
    """

    id: str
    points: Tuple[Point, ...]
    timestamp: float
    opacity: float = 1.0
    stones_snapshot: Tuple[Stone, ...] = field(default_factory=tuple)


# Odd count, asymmetric placement
DEFAULT_STONES: Tuple[Stone, ...] = (
    Stone(id="stone-1", position=(-1.8, -1.2), radius=0.6, scale=1.2),
    Stone(id="stone-2", position=(2.1, 0.9), radius=0.45, scale=0.9),
    Stone(id="stone-3", position=(0.4, 2.7), radius=0.3, scale=0.6),
)


class GardenState:
    """Owner of stones, persisted strokes and the active gesture buffer.

    Parameters
    ----------
    config : PatternConfigV1, optional
        Engine config (input decimation distance, stone cap)
    stones : sequence of Stone, optional
        Initial stones; DEFAULT_STONES when omitted
    """

    def __init__(
        self,
        config: Optional[PatternConfigV1] = None,
        stones: Optional[Sequence[Stone]] = None
    ):
        self.config = config or PatternConfigV1()
        self._stones: List[Stone] = list(DEFAULT_STONES if stones is None else stones)
        self._strokes: List[RakeStroke] = []
        self._current: List[Point] = []
        self._is_raking = False
        self._active_tool = ToolMode.VIEW

    # ------------------------------------------------------------------
    # Read-only views
    # ------------------------------------------------------------------

    @property
    def stones(self) -> Tuple[Stone, ...]:
        return tuple(self._stones)

    @property
    def strokes(self) -> Tuple[RakeStroke, ...]:
        return tuple(self._strokes)

    @property
    def current_points(self) -> Tuple[Point, ...]:
        return tuple(self._current)

    @property
    def is_raking(self) -> bool:
        return self._is_raking

    @property
    def active_tool(self) -> ToolMode:
        return self._active_tool

    def get_stroke(self, stroke_id: str) -> Optional[RakeStroke]:
        for stroke in self._strokes:
            if stroke.id == stroke_id:
                return stroke
        return None

    def get_stone(self, stone_id: str) -> Optional[Stone]:
        for stone in self._stones:
            if stone.id == stone_id:
                return stone
        return None

    # ------------------------------------------------------------------
    # Raking
    # ------------------------------------------------------------------

    def start_stroke(self, x: float, z: float) -> None:
        """Begin a gesture at (x, z); any unfinished buffer is dropped."""
        self._is_raking = True
        self._current = [(float(x), float(z))]

    def continue_stroke(self, x: float, z: float) -> bool:
        """Append (x, z) if it is far enough from the last point.

        Returns
        -------
        bool
            True if the point was appended. Points closer than
            ``min_point_distance`` and calls outside a gesture are ignored.
        """
        if not self._is_raking:
            return False

        point = (float(x), float(z))
        if self._current:
            last = self._current[-1]
            if math.hypot(point[0] - last[0], point[1] - last[1]) < self.config.min_point_distance:
                return False

        self._current.append(point)
        return True

    def end_stroke(self, timestamp_ms: Optional[float] = None) -> Optional[RakeStroke]:
        """Finish the gesture.

        Parameters
        ----------
        timestamp_ms : float, optional
            Creation time; wall clock when omitted

        Returns
        -------
        RakeStroke or None
            The persisted stroke, or None when fewer than 2 points were
            collected (the attempt is discarded silently)
        """
        points = tuple(self._current)
        self._current = []
        self._is_raking = False

        if len(points) < 2:
            logger.debug(f"Discarded gesture with {len(points)} point(s)")
            return None

        ts = now_ms() if timestamp_ms is None else float(timestamp_ms)
        stroke = RakeStroke(
            id=stroke_utils.make_stroke_id(ts),
            points=points,
            timestamp=ts,
            opacity=1.0,
            stones_snapshot=tuple(copy.deepcopy(self._stones)),
        )
        self._strokes.append(stroke)
        logger.debug(
            f"Stroke {stroke.id} persisted ({len(points)} points, "
            f"length {geometry.polyline_length(points):.2f}, {len(self._stones)} stones)"
        )
        return stroke

    # ------------------------------------------------------------------
    # Stroke mutation
    # ------------------------------------------------------------------

    def update_stroke_opacity(self, stroke_id: str, value: float) -> bool:
        """Set a stroke's opacity (clamped to [0, 1])."""
        stroke = self.get_stroke(stroke_id)
        if stroke is None:
            logger.warning(f"update_stroke_opacity: unknown stroke {stroke_id}")
            return False
        stroke.opacity = min(1.0, max(0.0, float(value)))
        return True

    def remove_stroke(self, stroke_id: str) -> bool:
        before = len(self._strokes)
        self._strokes = [s for s in self._strokes if s.id != stroke_id]
        removed = len(self._strokes) < before
        if not removed:
            logger.warning(f"remove_stroke: unknown stroke {stroke_id}")
        return removed

    def clear_all_strokes(self) -> None:
        """Drop every persisted stroke and the active gesture."""
        self._strokes = []
        self._current = []
        self._is_raking = False

    # ------------------------------------------------------------------
    # Stones
    # ------------------------------------------------------------------

    def add_stone(
        self,
        x: float,
        z: float,
        radius: float = 0.4,
        scale: float = 1.0,
        stone_id: Optional[str] = None
    ) -> Optional[Stone]:
        """Place a new stone; returns None once max_stones is reached."""
        if len(self._stones) >= self.config.max_stones:
            logger.warning(f"Stone cap reached ({self.config.max_stones}), not adding")
            return None
        if radius <= 0:
            raise ValueError(f"Stone radius must be positive, got {radius}")

        stone = Stone(
            id=stone_id or stroke_utils.make_stone_id(now_ms()),
            position=(float(x), float(z)),
            radius=float(radius),
            scale=float(scale),
        )
        self._stones.append(stone)
        logger.info(f"Stone {stone.id} added at ({x:.2f}, {z:.2f})")
        return stone

    def move_stone(
        self,
        stone_id: str,
        x: float,
        z: float,
        scale: Optional[float] = None
    ) -> Optional[Stone]:
        """Move (and optionally rescale) a stone, keeping its id."""
        for i, stone in enumerate(self._stones):
            if stone.id == stone_id:
                updates = {'position': (float(x), float(z))}
                if scale is not None:
                    updates['scale'] = float(scale)
                self._stones[i] = replace(stone, **updates)
                return self._stones[i]
        logger.warning(f"move_stone: unknown stone {stone_id}")
        return None

    def remove_stone(self, stone_id: str) -> bool:
        before = len(self._stones)
        self._stones = [s for s in self._stones if s.id != stone_id]
        removed = len(self._stones) < before
        if removed:
            logger.info(f"Stone {stone_id} removed")
        else:
            logger.warning(f"remove_stone: unknown stone {stone_id}")
        return removed

    # ------------------------------------------------------------------
    # Tool / garden
    # ------------------------------------------------------------------

    def set_active_tool(self, mode: ToolMode) -> None:
        """Switch tool; leaving the rake ends any open gesture."""
        mode = ToolMode(mode)
        if mode != ToolMode.RAKE and self._is_raking:
            self.end_stroke()
        self._active_tool = mode

    def reset_garden(self) -> None:
        """Restore the default stone layout and clear all strokes."""
        self._stones = list(DEFAULT_STONES)
        self.clear_all_strokes()
        self._active_tool = ToolMode.VIEW
        logger.info("Garden reset")

    def load(self, stones: Sequence[Stone], strokes: Sequence[RakeStroke]) -> None:
        """Replace stones and strokes wholesale (save-file restore)."""
        if len(stones) > self.config.max_stones:
            logger.warning(
                f"Loaded {len(stones)} stones, keeping the first {self.config.max_stones}"
            )
        self._stones = list(stones)[:self.config.max_stones]
        self._strokes = list(strokes)
        self._current = []
        self._is_raking = False

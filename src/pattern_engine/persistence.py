"""Flat (de)serialization of garden state and versioned save files.

Flat records:
    stroke: {id, points: [{x, y}], timestamp, opacity}
    stone:  {id, position: [x, z], radius, scale}

The flat stroke record carries no stone snapshot. Strokes read back through
deserialize_strokes() receive a copy of the stones passed in. Garden save
files add each stroke's own snapshot (``stones_snapshot``) so a stroke keeps
bending around where the stones were when it was raked, even after a stone
moved. Saves without it fall back to the garden's saved stones.

Garden save file (garden.v1, YAML):
    schema: garden.v1
    version: 1
    stones: [...]
    strokes: [{id, points, timestamp, opacity, stones_snapshot: [...]}, ...]
    saved_at: <ms>

Failure policy: anything that cannot be read, parsed or validated yields an
empty result ([] or None) and a warning. "No prior state" and "corrupt prior
state" are indistinguishable to callers.
"""

import copy
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Union

import numpy as np
import yaml
from pydantic import ValidationError

from src.utils import fs
from src.utils import strokes as stroke_utils
from src.utils.validators import GardenV1, StoneRecordV1, StrokeRecordV1

from .state import GardenState, RakeStroke, Stone, now_ms

logger = logging.getLogger(__name__)

SAVE_VERSION = 1

_LOAD_ERRORS = (OSError, yaml.YAMLError, ValidationError, ValueError, TypeError, KeyError)


# ============================================================================
# RECORDS
# ============================================================================

def stroke_to_dict(stroke: RakeStroke) -> Dict[str, Any]:
    return {
        'id': stroke.id,
        'points': stroke_utils.points_to_records(stroke.points),
        'timestamp': float(stroke.timestamp),
        'opacity': float(stroke.opacity),
    }


def stone_to_dict(stone: Stone) -> Dict[str, Any]:
    return {
        'id': stone.id,
        'position': [float(stone.position[0]), float(stone.position[1])],
        'radius': float(stone.radius),
        'scale': float(stone.scale),
    }


def _stone_from_record(record: StoneRecordV1) -> Stone:
    return Stone(
        id=record.id,
        position=(record.position[0], record.position[1]),
        radius=record.radius,
        scale=record.scale,
    )


def _stroke_from_record(record: StrokeRecordV1, stones: Sequence[Stone]) -> RakeStroke:
    return RakeStroke(
        id=record.id,
        points=stroke_utils.records_to_points(p.model_dump() for p in record.points),
        timestamp=record.timestamp,
        opacity=record.opacity,
        stones_snapshot=tuple(copy.deepcopy(list(stones))),
    )


# ============================================================================
# TEXT (DE)SERIALIZATION
# ============================================================================

def serialize_strokes(strokes: Sequence[RakeStroke]) -> str:
    """Strokes → YAML text of flat records."""
    return yaml.safe_dump([stroke_to_dict(s) for s in strokes], sort_keys=False)


def deserialize_strokes(data: str, stones: Sequence[Stone] = ()) -> List[RakeStroke]:
    """YAML text → strokes; [] if the text is unusable.

    Parameters
    ----------
    data : str
        Output of serialize_strokes()
    stones : sequence of Stone
        Stones to snapshot into every restored stroke

    Notes
    -----
    Strokes with fewer than 2 points are dropped, matching finalize rules.
    """
    try:
        raw = yaml.safe_load(data)
        if raw is None:
            return []
        if not isinstance(raw, list):
            raise TypeError(f"Expected a list of strokes, got {type(raw).__name__}")
        records = [StrokeRecordV1(**item) for item in raw]
    except _LOAD_ERRORS as e:
        logger.warning(f"Could not deserialize strokes: {e}")
        return []

    return [_stroke_from_record(r, stones) for r in records if len(r.points) >= 2]


def serialize_stones(stones: Sequence[Stone]) -> str:
    """Stones → YAML text of flat records."""
    return yaml.safe_dump([stone_to_dict(s) for s in stones], sort_keys=False)


def deserialize_stones(data: str) -> List[Stone]:
    """YAML text → stones; [] if the text is unusable."""
    try:
        raw = yaml.safe_load(data)
        if raw is None:
            return []
        if not isinstance(raw, list):
            raise TypeError(f"Expected a list of stones, got {type(raw).__name__}")
        records = [StoneRecordV1(**item) for item in raw]
    except _LOAD_ERRORS as e:
        logger.warning(f"Could not deserialize stones: {e}")
        return []

    return [_stone_from_record(r) for r in records]


# ============================================================================
# SAVE FILES
# ============================================================================

def _saved_stroke_to_dict(stroke: RakeStroke) -> Dict[str, Any]:
    record = stroke_to_dict(stroke)
    record['stones_snapshot'] = [stone_to_dict(s) for s in stroke.stones_snapshot]
    return record


def garden_to_dict(state: GardenState, saved_at_ms: Optional[float] = None) -> Dict[str, Any]:
    return {
        'schema': 'garden.v1',
        'version': SAVE_VERSION,
        'stones': [stone_to_dict(s) for s in state.stones],
        'strokes': [_saved_stroke_to_dict(s) for s in state.strokes],
        'saved_at': now_ms() if saved_at_ms is None else float(saved_at_ms),
    }


def save_garden(state: GardenState, path: Union[str, Path], saved_at_ms: Optional[float] = None) -> Path:
    """Write the garden atomically to a YAML save file."""
    path = Path(path)
    fs.atomic_yaml_dump(garden_to_dict(state, saved_at_ms), path)
    logger.info(f"Garden saved to {path} ({len(state.stones)} stones, {len(state.strokes)} strokes)")
    return path


def load_garden(path: Union[str, Path]) -> Optional[GardenV1]:
    """Read and validate a save file.

    Returns
    -------
    GardenV1 or None
        None when the file is missing, unparsable, of another version or
        fails validation
    """
    path = Path(path)
    if not path.exists():
        logger.info(f"No saved garden at {path}")
        return None

    try:
        data = fs.load_yaml(path)
        if not isinstance(data, dict):
            raise TypeError(f"Expected a mapping, got {type(data).__name__}")
        return GardenV1(**data)
    except _LOAD_ERRORS as e:
        logger.warning(f"Ignoring unreadable garden save {path}: {e}")
        return None


def restore_garden(state: GardenState, path: Union[str, Path]) -> bool:
    """Load a save file into an existing state.

    Returns
    -------
    bool
        True if the state was replaced, False if nothing usable was found
        (state untouched)
    """
    garden = load_garden(path)
    if garden is None:
        return False

    stones = [_stone_from_record(r) for r in garden.stones]
    if len(stones) > state.config.max_stones:
        logger.warning(f"Save holds {len(stones)} stones, keeping the first {state.config.max_stones}")
        stones = stones[:state.config.max_stones]

    strokes = []
    for record in garden.strokes:
        if len(record.points) < 2:
            continue
        if record.stones_snapshot is None:
            snapshot = stones
        else:
            snapshot = [_stone_from_record(s) for s in record.stones_snapshot]
        strokes.append(_stroke_from_record(record, snapshot))

    state.load(stones, strokes)
    logger.info(f"Garden restored from {path} ({len(stones)} stones, {len(strokes)} strokes)")
    return True


def clear_save(path: Union[str, Path]) -> bool:
    """Delete a save file; False if there was none."""
    return fs.safe_remove(path)


def save_texture_png(texture: np.ndarray, path: Union[str, Path]) -> Path:
    """Export the current sand texture as a PNG (atomic)."""
    path = Path(path)
    fs.atomic_save_image(texture, path)
    logger.info(f"Texture written to {path}")
    return path

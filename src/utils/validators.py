"""YAML schema validation and config loading.

Provides centralized validation using pydantic:
    - Pattern engine config (pattern.v1.yaml): raster size, rake geometry,
      colours, fade schedule, stone cap, optional ring pass
    - Stone / stroke records: the flat persisted representation
    - Garden save file (garden.v1): versioned stones + strokes snapshot

Config loaders are fail-fast (FileNotFoundError / ValueError with the path
and offending field). Persisted user data is validated with the same models,
but callers in pattern_engine.persistence turn failures into empty results.

Units:
    - Geometry: garden world units (the garden spans garden_size on each axis)
    - Time: milliseconds
    - Colour: 8-bit RGB triples

Usage:
    from src.utils import validators

    cfg = validators.load_pattern_config("configs/pattern.v1.yaml")
    garden = validators.GardenV1(**data)
"""

from pathlib import Path
from typing import List, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


# ============================================================================
# PATTERN ENGINE CONFIG V1
# ============================================================================

def _check_rgb(v: Tuple[int, int, int]) -> Tuple[int, int, int]:
    for c in v:
        if not 0 <= c <= 255:
            raise ValueError(f"RGB components must be in [0, 255], got {v}")
    return v


class PatternConfigV1(BaseModel):
    """Pattern engine configuration (pattern.v1.yaml schema).

    Defaults reproduce the stock garden: 1024 px texture over a 10×10 world
    square, 5-tooth rake, 8 s grace period followed by a 4 s fade.
    """
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    schema_version: str = Field("pattern.v1", alias="schema", description="Schema version")

    # Raster / world
    texture_size: int = Field(1024, gt=0, description="Raster edge length (px)")
    garden_size: float = Field(10.0, gt=0, description="World extent of the garden square")

    # Rake
    num_teeth: int = Field(5, ge=1, description="Parallel teeth per stroke")
    tooth_spacing: float = Field(0.08, gt=0, description="World distance between teeth")
    line_width_px: int = Field(3, ge=1, description="Tooth line width (px)")
    stroke_color_rgb: Tuple[int, int, int] = Field((139, 115, 85), description="Sand-mark colour")
    stroke_alpha_scale: float = Field(0.7, ge=0.0, le=1.0, description="Alpha = opacity × scale")
    preview_opacity: float = Field(0.5, ge=0.0, le=1.0, description="In-progress stroke opacity")

    # Smoothing / input decimation
    smooth_segments: int = Field(16, ge=1, description="Spline samples per control interval")
    simplify_min_distance: float = Field(0.12, ge=0.0, description="Control-point decimation (world)")
    min_point_distance: float = Field(0.05, ge=0.0, description="Input decimation (world)")

    # Fade schedule
    fade_start_ms: float = Field(8000.0, ge=0.0, description="Grace period at full opacity")
    fade_duration_ms: float = Field(4000.0, gt=0.0, description="Linear fade window")
    opacity_update_epsilon: float = Field(0.02, ge=0.0, description="Minimum opacity change written back")

    # Stones
    max_stones: int = Field(5, ge=0, description="Stone cap")

    # Base sand texture
    base_color_rgb: Tuple[int, int, int] = Field((232, 228, 220), description="Undisturbed sand colour")
    noise_amplitude: float = Field(6.0, ge=0.0, description="Grain noise half-range (8-bit levels)")
    noise_seed: int = Field(42, description="Seed for the grain noise")

    # Optional concentric rings around untouched stones
    ring_effect: bool = Field(False, description="Draw rings around stones no stroke reaches")
    ring_count: int = Field(3, ge=1, description="Rings per stone")
    ring_alpha: float = Field(0.35, ge=0.0, le=1.0, description="Ring alpha")

    @field_validator('schema_version')
    @classmethod
    def validate_schema(cls, v: str) -> str:
        if v != "pattern.v1":
            raise ValueError(f"Expected schema 'pattern.v1', got '{v}'")
        return v

    @field_validator('stroke_color_rgb', 'base_color_rgb')
    @classmethod
    def validate_rgb(cls, v: Tuple[int, int, int]) -> Tuple[int, int, int]:
        return _check_rgb(v)

    def px_per_world(self) -> float:
        """Pixels per world unit."""
        return self.texture_size / self.garden_size


# ============================================================================
# PERSISTED RECORDS
# ============================================================================

class PointRecord(BaseModel):
    """Single stroke point in world units."""
    x: float
    y: float


class StrokeRecordV1(BaseModel):
    """Flat persisted stroke: {id, points: [{x, y}], timestamp, opacity}."""
    id: str = Field(..., min_length=1)
    points: List[PointRecord] = Field(..., description="Raw stroke points")
    timestamp: float = Field(..., description="Creation time (ms since epoch)")
    opacity: float = Field(1.0, ge=0.0, le=1.0)


class StoneRecordV1(BaseModel):
    """Flat persisted stone: {id, position: [x, z], radius, scale}."""
    id: str = Field(..., min_length=1)
    position: Tuple[float, float]
    radius: float = Field(..., gt=0.0)
    scale: float = Field(1.0, gt=0.0)


class SavedStrokeRecordV1(StrokeRecordV1):
    """Stroke entry of a garden save: the flat record plus the stones it
    bends around. Saves without ``stones_snapshot`` restore against the
    garden's saved stones."""
    stones_snapshot: Optional[List[StoneRecordV1]] = None


class GardenV1(BaseModel):
    """Garden save file (garden.v1 schema)."""
    model_config = ConfigDict(populate_by_name=True)

    schema_version: str = Field("garden.v1", alias="schema", description="Schema version")
    version: int = Field(1, description="Save format version")
    stones: List[StoneRecordV1] = Field(default_factory=list)
    strokes: List[SavedStrokeRecordV1] = Field(default_factory=list)
    saved_at: float = Field(..., description="Save time (ms since epoch)")

    @field_validator('schema_version')
    @classmethod
    def validate_schema(cls, v: str) -> str:
        if v != "garden.v1":
            raise ValueError(f"Expected schema 'garden.v1', got '{v}'")
        return v

    @field_validator('version')
    @classmethod
    def validate_version(cls, v: int) -> int:
        if v != 1:
            raise ValueError(f"Unsupported garden save version {v}")
        return v

    @model_validator(mode='after')
    def validate_unique_ids(self) -> 'GardenV1':
        stone_ids = [s.id for s in self.stones]
        if len(set(stone_ids)) != len(stone_ids):
            raise ValueError(f"Duplicate stone ids: {stone_ids}")
        return self


# ============================================================================
# PUBLIC API
# ============================================================================

def load_pattern_config(path: Union[str, Path]) -> PatternConfigV1:
    """Load and validate pattern engine config from YAML.

    Parameters
    ----------
    path : Union[str, Path]
        Path to pattern.v1.yaml file

    Returns
    -------
    PatternConfigV1
        Validated configuration

    Raises
    ------
    FileNotFoundError
        If path doesn't exist
    ValueError
        If validation fails (with actionable error message)
    """
    from . import fs

    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Pattern config not found: {path}")

    data = fs.load_yaml(path) or {}
    try:
        return PatternConfigV1(**data)
    except Exception as e:
        raise ValueError(f"Pattern config validation failed at {path}: {e}") from e

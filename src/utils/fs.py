"""Crash-safe file I/O for garden saves and texture snapshots.

Every writer goes through _replace_atomically(): content lands in a sibling
temp file, is flushed, then renamed over the target. A reader (or a host
restoring the garden on startup) sees either the old complete file or the
new one, never a half-written save.

Provides:
    - ensure_dir(): mkdir -p
    - atomic_write_bytes() / atomic_write_text()
    - atomic_yaml_dump() / load_yaml(): garden saves and configs
    - atomic_save_image(): PNG snapshot of the sand texture
    - safe_remove(): delete-if-present (clearing a save slot)

Usage:
    from src.utils import fs
    fs.atomic_yaml_dump(garden_dict, "saves/garden.yaml")
    fs.atomic_save_image(texture, "outputs/garden.png")
"""

import os
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Iterator, Optional, Union

import numpy as np
import yaml
from PIL import Image

PathLike = Union[str, Path]


def ensure_dir(p: PathLike) -> Path:
    """mkdir -p; returns the directory as a Path."""
    p = Path(p)
    p.mkdir(parents=True, exist_ok=True)
    return p


@contextmanager
def _replace_atomically(target: Path, tmp: Path) -> Iterator[Path]:
    """Yield a temp path; on clean exit rename it over target.

    Raises
    ------
    RuntimeError
        Wrapping whatever the writer raised; the temp file is removed
    """
    ensure_dir(target.parent)
    try:
        yield tmp
        tmp.replace(target)
    except Exception as e:
        if tmp.exists():
            tmp.unlink()
        raise RuntimeError(f"Atomic write to {target} failed: {e}") from e


def atomic_write_bytes(path: PathLike, data: bytes, tmp_suffix: str = ".tmp") -> None:
    """Write bytes via temp file + fsync + rename.

    Parameters
    ----------
    path : PathLike
        Destination
    data : bytes
        Payload
    tmp_suffix : str
        Appended to the destination name for the temp file
    """
    path = Path(path)
    with _replace_atomically(path, path.with_suffix(path.suffix + tmp_suffix)) as tmp:
        with open(tmp, 'wb') as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())


def atomic_write_text(path: PathLike, text: str, encoding: str = "utf-8") -> None:
    atomic_write_bytes(path, text.encode(encoding))


def atomic_save_image(
    img: np.ndarray,
    path: PathLike,
    pil_kwargs: Optional[Dict[str, Any]] = None
) -> None:
    """Write an (H, W, 3) or (H, W) raster as an image file.

    Non-uint8 input is clipped to [0, 255]; a trailing singleton channel is
    dropped so PIL writes greyscale. The format follows the extension.
    """
    path = Path(path)
    arr = np.asarray(img)
    if arr.dtype != np.uint8:
        arr = np.clip(arr, 0, 255).astype(np.uint8)
    if arr.ndim == 3 and arr.shape[2] == 1:
        arr = arr[:, :, 0]

    # PIL infers the format from the last suffix
    tmp = path.with_name(f"{path.stem}.tmp{path.suffix}")
    with _replace_atomically(path, tmp):
        Image.fromarray(arr).save(tmp, **(pil_kwargs or {}))


def atomic_yaml_dump(obj: Any, path: PathLike) -> None:
    """safe_dump obj to path atomically, keeping key order."""
    text = yaml.safe_dump(obj, default_flow_style=False, sort_keys=False, allow_unicode=True)
    atomic_write_text(path, text)


def load_yaml(path: PathLike) -> Any:
    """safe_load a YAML file.

    Returns
    -------
    Any
        Parsed document; None for an empty file

    Raises
    ------
    FileNotFoundError
        Missing file
    yaml.YAMLError
        Malformed document (message includes the path)
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"YAML file not found: {path}")

    text = path.read_text(encoding='utf-8')
    try:
        return yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise yaml.YAMLError(f"{path}: {e}") from e


def safe_remove(path: PathLike) -> bool:
    """Delete a file (or dangling symlink); False when nothing was there."""
    path = Path(path)
    if not (path.exists() or path.is_symlink()):
        return False
    path.unlink()
    return True

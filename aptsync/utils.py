import logging
import os
from pathlib import Path

logger = logging.getLogger(__name__)

KIB = 1024
MIB = 1024 * 1024
GIB = 1024 * 1024 * 1024

def ensure_dir(path: Path) -> None:
    """Creates the directory (and parents) unless it already exists."""
    if path.exists():
        return
    path.mkdir(parents=True, exist_ok=True)
    logger.debug(f"Created directory {path}")

def ensure_parent_dir(path: Path) -> None:
    ensure_dir(path.parent)

def is_safe_path(root: Path, path: Path) -> bool:
    """True if path stays inside root once '..' segments are resolved."""
    root_abs = os.path.abspath(root)
    path_abs = os.path.abspath(path)
    return os.path.commonpath([root_abs, path_abs]) == root_abs

def format_file_size(size: int) -> str:
    """Human readable size using binary units, e.g. '1.50 MiB'."""
    value = float(size)
    unit = "bytes"
    if size >= GIB:
        value, unit = size / GIB, "GiB"
    elif size >= MIB:
        value, unit = size / MIB, "MiB"
    elif size >= KIB:
        value, unit = size / KIB, "KiB"
    return f"{value:.2f} {unit}"

# terrain_generator/grid.py

"""
================================================================================
HEIGHT GRID UTILITIES
================================================================================
Shared helpers for the HeightGrid representation used by every pipeline stage.

A HeightGrid is a 2D float64 NumPy array of shape (height, width). Cell (x, y)
lives at grid[y, x]; the flat index is y * width + x.

Ownership: a stage receives a grid, works on its own copy (as_height_grid) and
returns a new grid. No stage mutates the array it was given or keeps a
reference to it afterwards.
================================================================================
"""

from dataclasses import dataclass

import numpy as np

from .errors import ConfigurationError, NumericInstabilityError

# D8 direction tables: 0=E, 1=SE, 2=S, 3=SW, 4=W, 5=NW, 6=N, 7=NE.
# Odd indices are the diagonals.
D8_DX = np.array([1, 1, 0, -1, -1, -1, 0, 1], dtype=np.int64)
D8_DY = np.array([0, 1, 1, 1, 0, -1, -1, -1], dtype=np.int64)
D8_DISTANCE = np.array([1.0, np.sqrt(2.0)] * 4)
NO_FLOW = -1


@dataclass(frozen=True)
class HeightStatistics:
    min: float
    max: float
    mean: float


def as_height_grid(data) -> np.ndarray:
    """Returns a fresh, C-contiguous float64 copy of a 2D height array."""
    grid = np.array(data, dtype=np.float64, order="C", copy=True)
    if grid.ndim != 2:
        raise ConfigurationError(f"Height grid must be 2D, got shape {grid.shape}")
    return grid


def require_square(grid: np.ndarray) -> np.ndarray:
    height, width = grid.shape
    if height != width:
        raise ConfigurationError(f"Height grid must be square, got {width}x{height}")
    return grid


def require_finite(grid: np.ndarray, stage: str) -> np.ndarray:
    """Raises NumericInstabilityError if the grid holds any NaN or inf."""
    bad = np.count_nonzero(~np.isfinite(grid))
    if bad:
        raise NumericInstabilityError(stage, int(bad))
    return grid


def height_statistics(grid: np.ndarray) -> HeightStatistics:
    return HeightStatistics(
        min=float(np.min(grid)),
        max=float(np.max(grid)),
        mean=float(np.mean(grid)),
    )

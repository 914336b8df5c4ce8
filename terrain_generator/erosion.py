# terrain_generator/erosion.py

"""
================================================================================
EROSION SIMULATION
================================================================================
Hydraulic (droplet transport) and thermal (talus relaxation) erosion passes
over a HeightGrid.

Data Contract:
---------------
- Inputs:
    - grid: 2D float array of heights. Never modified.
    - iterations, seed and per-pass parameters.
- Outputs:
    - hydraulic_erosion: (new grid, ErosionStats).
    - thermal_erosion / thermal_erosion_step: new grid.
- Side Effects: Logs progress through the given logger.
- Invariants:
    - Same input, iterations and seed give a bit-identical result.
    - Hydraulic: terrain removed == sediment deposited + sediment still held
      by droplets when they exited the grid or expired (ErosionStats.lost).
    - Thermal: each pass reads only the previous pass's heights, so the order
      in which cells are visited cannot bias the result. Mass is conserved.
================================================================================
"""

import logging
from dataclasses import dataclass

import numpy as np
from numba import njit

from . import config as DEFAULTS
from .errors import ConfigurationError
from .grid import as_height_grid, require_square

logger = logging.getLogger(__name__)

# (dy, dx) offsets of the 8 neighbours.
_NEIGHBOR_OFFSETS = [(-1, -1), (-1, 0), (-1, 1), (0, -1), (0, 1), (1, -1), (1, 0), (1, 1)]


@dataclass(frozen=True)
class HydraulicErosionParams:
    erosion_radius: int = DEFAULTS.EROSION_RADIUS
    inertia: float = DEFAULTS.DROPLET_INERTIA  # Lower = more agile droplets
    sediment_capacity_factor: float = DEFAULTS.SEDIMENT_CAPACITY_FACTOR
    min_sediment_capacity: float = DEFAULTS.MIN_SEDIMENT_CAPACITY
    erode_speed: float = DEFAULTS.ERODE_SPEED
    deposit_speed: float = DEFAULTS.DEPOSIT_SPEED
    evaporate_speed: float = DEFAULTS.EVAPORATE_SPEED
    gravity: float = DEFAULTS.DROPLET_GRAVITY
    max_lifetime: int = DEFAULTS.MAX_DROPLET_LIFETIME
    initial_water_volume: float = DEFAULTS.INITIAL_WATER_VOLUME
    initial_speed: float = DEFAULTS.INITIAL_SPEED


@dataclass(frozen=True)
class ErosionStats:
    droplets: int
    eroded: float  # Terrain material picked up
    deposited: float  # Sediment put back down
    lost: float  # Sediment carried off the grid or still held at expiry


@njit
def droplet_speed(speed, delta_height, gravity):
    """
    Kinetic-energy speed update. The radicand is clamped at zero: floating
    point drift can push it slightly negative on uphill steps.
    """
    return np.sqrt(max(0.0, speed * speed + delta_height * gravity))


@njit
def _height_and_gradient(heights, pos_x, pos_y):
    """Bilinear height and gradient at a sub-cell position."""
    coord_x = int(pos_x)
    coord_y = int(pos_y)
    x = pos_x - coord_x
    y = pos_y - coord_y

    # Heights of the four nodes of the droplet's cell
    height_nw = heights[coord_y, coord_x]
    height_ne = heights[coord_y, coord_x + 1]
    height_sw = heights[coord_y + 1, coord_x]
    height_se = heights[coord_y + 1, coord_x + 1]

    height = (
        height_nw * (1 - x) * (1 - y)
        + height_ne * x * (1 - y)
        + height_sw * (1 - x) * y
        + height_se * x * y
    )
    gradient_x = (height_ne - height_nw) * (1 - y) + (height_se - height_sw) * y
    gradient_y = (height_sw - height_nw) * (1 - x) + (height_se - height_ne) * x
    return height, gradient_x, gradient_y


@njit
def _brush_weight_sum(rows, cols, cx, cy, brush_dx, brush_dy, brush_w):
    total = 0.0
    for k in range(brush_w.shape[0]):
        x = cx + brush_dx[k]
        y = cy + brush_dy[k]
        if 0 <= x < cols and 0 <= y < rows:
            total += brush_w[k]
    return total


@njit
def _erode(heights, cx, cy, amount, brush_dx, brush_dy, brush_w):
    """Removes up to `amount` around (cx, cy); returns what was removed."""
    rows, cols = heights.shape
    weight_sum = _brush_weight_sum(rows, cols, cx, cy, brush_dx, brush_dy, brush_w)
    removed = 0.0
    for k in range(brush_w.shape[0]):
        x = cx + brush_dx[k]
        y = cy + brush_dy[k]
        if 0 <= x < cols and 0 <= y < rows:
            delta = amount * brush_w[k] / weight_sum
            # Never dig below zero.
            available = max(heights[y, x], 0.0)
            if delta > available:
                delta = available
            heights[y, x] -= delta
            removed += delta
    return removed


@njit
def _deposit(heights, cx, cy, amount, brush_dx, brush_dy, brush_w):
    rows, cols = heights.shape
    weight_sum = _brush_weight_sum(rows, cols, cx, cy, brush_dx, brush_dy, brush_w)
    for k in range(brush_w.shape[0]):
        x = cx + brush_dx[k]
        y = cy + brush_dy[k]
        if 0 <= x < cols and 0 <= y < rows:
            heights[y, x] += amount * brush_w[k] / weight_sum
    return amount


@njit
def _simulate_droplets(
    heights, start_x, start_y, brush_dx, brush_dy, brush_w,
    inertia, capacity_factor, min_capacity, erode_speed, deposit_speed,
    evaporate_speed, gravity, max_lifetime, initial_water, initial_speed,
):
    """Runs droplets sequentially over `heights` (modified in place)."""
    rows, cols = heights.shape
    eroded = 0.0
    deposited = 0.0
    lost = 0.0

    for d in range(start_x.shape[0]):
        pos_x = start_x[d]
        pos_y = start_y[d]
        dir_x = 0.0
        dir_y = 0.0
        speed = initial_speed
        water = initial_water
        sediment = 0.0

        for _ in range(max_lifetime):
            height, gradient_x, gradient_y = _height_and_gradient(heights, pos_x, pos_y)

            # Blend previous direction with the downhill gradient.
            dir_x = dir_x * inertia - gradient_x * (1 - inertia)
            dir_y = dir_y * inertia - gradient_y * (1 - inertia)
            length = np.sqrt(dir_x * dir_x + dir_y * dir_y)
            if length != 0:
                dir_x /= length
                dir_y /= length

            pos_x += dir_x
            pos_y += dir_y

            # Stop at map edge
            if pos_x < 0 or pos_x >= cols - 1 or pos_y < 0 or pos_y >= rows - 1:
                break

            new_height = _height_and_gradient(heights, pos_x, pos_y)[0]
            delta_height = new_height - height

            capacity = max(-delta_height * speed * water * capacity_factor, min_capacity)

            cell_x = int(pos_x)
            cell_y = int(pos_y)
            if sediment > capacity or delta_height > 0:
                # Moving uphill fills the step exactly, if there is enough sediment.
                if delta_height > 0:
                    amount = min(delta_height, sediment)
                else:
                    amount = (sediment - capacity) * deposit_speed
                if amount > 0:
                    sediment -= amount
                    deposited += _deposit(heights, cell_x, cell_y, amount, brush_dx, brush_dy, brush_w)
            else:
                amount = min((capacity - sediment) * erode_speed, -delta_height)
                if amount > 0:
                    removed = _erode(heights, cell_x, cell_y, amount, brush_dx, brush_dy, brush_w)
                    sediment += removed
                    eroded += removed

            speed = droplet_speed(speed, delta_height, gravity)
            water *= 1 - evaporate_speed

        lost += sediment

    return eroded, deposited, lost


def make_erosion_brush(radius: int):
    """Offsets and linear-falloff weights of the cells within `radius`."""
    if radius < 1:
        raise ConfigurationError(f"erosion_radius must be >= 1, got {radius}")
    offsets = np.arange(-radius, radius + 1)
    dy, dx = np.meshgrid(offsets, offsets, indexing="ij")
    dist = np.sqrt(dx**2 + dy**2)
    inside = dist < radius
    weights = 1.0 - dist[inside] / radius
    return dx[inside].astype(np.int64), dy[inside].astype(np.int64), weights


def hydraulic_erosion(grid, iterations: int, seed: int, params: HydraulicErosionParams = None,
                      logger: logging.Logger = logger, batch_size: int = DEFAULTS.HYDRAULIC_BATCH_SIZE):
    """
    Simulates `iterations` water droplets over a copy of `grid`.

    Returns:
        tuple[np.ndarray, ErosionStats]: The eroded grid and mass bookkeeping.
    """
    params = params or HydraulicErosionParams()
    heights = require_square(as_height_grid(grid))
    rows, cols = heights.shape
    if rows < 2 or cols < 2:
        raise ConfigurationError(f"Hydraulic erosion needs at least a 2x2 grid, got {cols}x{rows}")
    if iterations < 0:
        raise ConfigurationError(f"Droplet count must be non-negative, got {iterations}")

    logger.info(f"Running hydraulic erosion with {iterations} droplets...")

    # All start positions are drawn up front so the run is reproducible.
    rng = np.random.default_rng(seed)
    start_x = rng.uniform(0, cols - 1, iterations)
    start_y = rng.uniform(0, rows - 1, iterations)
    brush_dx, brush_dy, brush_w = make_erosion_brush(params.erosion_radius)

    eroded = deposited = lost = 0.0
    for batch_start in range(0, iterations, batch_size):
        batch_end = min(batch_start + batch_size, iterations)
        logger.debug(f"  Progress: {(batch_start / iterations) * 100:.1f}%")
        batch_eroded, batch_deposited, batch_lost = _simulate_droplets(
            heights, start_x[batch_start:batch_end], start_y[batch_start:batch_end],
            brush_dx, brush_dy, brush_w,
            float(params.inertia), float(params.sediment_capacity_factor),
            float(params.min_sediment_capacity), float(params.erode_speed),
            float(params.deposit_speed), float(params.evaporate_speed),
            float(params.gravity), int(params.max_lifetime),
            float(params.initial_water_volume), float(params.initial_speed),
        )
        eroded += batch_eroded
        deposited += batch_deposited
        lost += batch_lost

    stats = ErosionStats(droplets=iterations, eroded=eroded, deposited=deposited, lost=lost)
    logger.debug(f"  Eroded {eroded:.4f}, deposited {deposited:.4f}, carried off {lost:.4f}")
    return heights, stats


def thermal_erosion_step(grid, talus: float = DEFAULTS.TALUS_ANGLE) -> np.ndarray:
    """
    One relaxation pass. For every interior cell whose drop to any neighbour
    exceeds `talus`, half the average excess is moved, in equal shares, to the
    neighbours strictly lower than the cell. Reads only `grid`, writes a copy.
    """
    if talus < 0:
        raise ConfigurationError(f"talus must be non-negative, got {talus}")
    old = np.asarray(grid, dtype=np.float64)
    new = as_height_grid(old)
    rows, cols = old.shape
    if rows < 3 or cols < 3:
        return new

    center = old[1:-1, 1:-1]
    total_excess = np.zeros_like(center)
    exceed_count = np.zeros(center.shape, dtype=np.int64)
    lower_count = np.zeros(center.shape, dtype=np.int64)

    for dy, dx in _NEIGHBOR_OFFSETS:
        neighbor = old[1 + dy:rows - 1 + dy, 1 + dx:cols - 1 + dx]
        diff = center - neighbor
        exceeds = diff > talus
        total_excess += np.where(exceeds, diff, 0.0)
        exceed_count += exceeds
        lower_count += neighbor < center

    active = exceed_count > 0
    transfer = np.zeros_like(center)
    transfer[active] = 0.5 * total_excess[active] / exceed_count[active]
    share = np.zeros_like(center)
    share[active] = transfer[active] / lower_count[active]

    new[1:-1, 1:-1] -= transfer
    for dy, dx in _NEIGHBOR_OFFSETS:
        neighbor = old[1 + dy:rows - 1 + dy, 1 + dx:cols - 1 + dx]
        receives = active & (neighbor < center)
        new[1 + dy:rows - 1 + dy, 1 + dx:cols - 1 + dx] += np.where(receives, share, 0.0)

    return new


def thermal_erosion(grid, iterations: int, talus: float = DEFAULTS.TALUS_ANGLE,
                    logger: logging.Logger = logger) -> np.ndarray:
    """Runs `iterations` relaxation passes; returns a new grid."""
    logger.info(f"Running thermal erosion for {iterations} iterations...")
    heights = require_square(as_height_grid(grid))
    for _ in range(iterations):
        heights = thermal_erosion_step(heights, talus)
    return heights

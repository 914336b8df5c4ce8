# terrain_generator/noise.py

"""
================================================================================
NOISE FIELD SYNTHESIS
================================================================================
This module provides the coherent-noise variants used to build a planet's base
heightmap. It is designed to be a pure, stateless utility: every function is a
deterministic mapping from (seed or permutation table, coordinates) to values.

Data Contract:
---------------
- Inputs:
    - p: A permutation table from make_permutation_table(seed).
    - x, y: Coordinates (scalars or arrays of any broadcastable shape).
    - octaves, persistence, lacunarity: Standard fractal parameters.
- Outputs:
    - Values with the broadcast shape of x and y (a float for scalar input).
      fbm/warped are in about [-1, 1], billow/cellular in [0, 1], ridged and
      turbulence are unnormalised sums.
- Side Effects: None.
- Invariants: Same seed and coordinates always give bit-identical output,
  regardless of evaluation order. There is no module-level mutable state.
================================================================================
"""

import numpy as np
from numba import njit

from .errors import ConfigurationError

# Pre-defined gradient vectors for performance.
_GRADIENT_VECTORS = np.array(
    [[1, 1], [-1, 1], [1, -1], [-1, -1], [1, 0], [-1, 0], [0, 1], [0, -1]],
    dtype=np.float64,
)

# Offsets that decorrelate the second domain-warp field from the first.
_WARP_OFFSET_X = 5.2
_WARP_OFFSET_Y = 1.3
_WARP_FIELD_OCTAVES = 4

# Cellular feature values reach zero at this multiple of the cell size.
_CELLULAR_FALLOFF = 1.5

# Evaluation modes for the shared sampling kernel.
_MODE_FBM = 0
_MODE_RIDGED = 1
_MODE_BILLOW = 2
_MODE_TURBULENCE = 3
_MODE_WARPED = 4


def make_permutation_table(seed: int) -> np.ndarray:
    """Builds the doubled 512-entry permutation table for a seed."""
    p = np.arange(256, dtype=np.int64)
    rng = np.random.default_rng(seed)
    rng.shuffle(p)
    return np.concatenate([p, p])


@njit
def _lerp(a, b, x):
    "Linear interpolation."
    return a + x * (b - a)


@njit
def _fade(t):
    "6t^5 - 15t^4 + 10t^3"
    return t * t * t * (t * (t * 6 - 15) + 10)


@njit
def _gradient(h, x, y):
    """Calculates the dot product between a gradient vector and coordinates."""
    g = _GRADIENT_VECTORS[h % 8]
    return g[0] * x + g[1] * y


@njit
def _perlin(p, x, y):
    """Single layer of 2D gradient noise at one coordinate."""
    x_floor = np.floor(x)
    y_floor = np.floor(y)
    xf = x - x_floor
    yf = y - y_floor

    px0 = int(x_floor) % 256
    px1 = (px0 + 1) % 256
    py0 = int(y_floor) % 256
    py1 = (py0 + 1) % 256

    u = _fade(xf)
    v = _fade(yf)

    # Numba requires scalar indexing
    g00 = _gradient(p[p[px0] + py0], xf, yf)
    g01 = _gradient(p[p[px0] + py1], xf, yf - 1)
    g10 = _gradient(p[p[px1] + py0], xf - 1, yf)
    g11 = _gradient(p[p[px1] + py1], xf - 1, yf - 1)

    x1 = _lerp(g00, g10, u)
    x2 = _lerp(g01, g11, u)
    return _lerp(x1, x2, v)


@njit
def _fbm_at(p, x, y, octaves, persistence, lacunarity):
    total = 0.0
    amplitude = 1.0
    frequency = 1.0
    max_value = 0.0
    for _ in range(octaves):
        total += amplitude * _perlin(p, x * frequency, y * frequency)
        max_value += amplitude
        amplitude *= persistence
        frequency *= lacunarity
    return total / max_value


@njit
def _ridged_at(p, x, y, octaves, persistence, lacunarity):
    total = 0.0
    amplitude = 1.0
    frequency = 1.0
    for _ in range(octaves):
        signal = 1.0 - abs(_perlin(p, x * frequency, y * frequency))
        total += signal * signal * amplitude  # Square for sharper ridges
        amplitude *= persistence
        frequency *= lacunarity
    return total


@njit
def _billow_at(p, x, y, octaves, persistence, lacunarity):
    total = 0.0
    amplitude = 1.0
    frequency = 1.0
    max_value = 0.0
    for _ in range(octaves):
        total += abs(_perlin(p, x * frequency, y * frequency)) * amplitude
        max_value += amplitude
        amplitude *= persistence
        frequency *= lacunarity
    return total / max_value


@njit
def _turbulence_at(p, x, y, octaves, persistence, lacunarity):
    total = 0.0
    amplitude = 1.0
    frequency = 1.0
    for _ in range(octaves):
        total += abs(_perlin(p, x * frequency, y * frequency)) * amplitude
        amplitude *= persistence
        frequency *= lacunarity
    return total


@njit
def _warped_at(p, x, y, octaves, persistence, lacunarity, warp_strength):
    warp_x = _fbm_at(p, x, y, _WARP_FIELD_OCTAVES, persistence, lacunarity)
    warp_y = _fbm_at(p, x + _WARP_OFFSET_X, y + _WARP_OFFSET_Y, _WARP_FIELD_OCTAVES, persistence, lacunarity)
    return _fbm_at(p, x + warp_x * warp_strength, y + warp_y * warp_strength, octaves, persistence, lacunarity)


@njit
def _sample(mode, p, xs, ys, octaves, persistence, lacunarity, warp_strength):
    """Evaluates one noise variant over flat coordinate arrays."""
    out = np.empty(xs.shape[0])
    for i in range(xs.shape[0]):
        if mode == _MODE_FBM:
            out[i] = _fbm_at(p, xs[i], ys[i], octaves, persistence, lacunarity)
        elif mode == _MODE_RIDGED:
            out[i] = _ridged_at(p, xs[i], ys[i], octaves, persistence, lacunarity)
        elif mode == _MODE_BILLOW:
            out[i] = _billow_at(p, xs[i], ys[i], octaves, persistence, lacunarity)
        elif mode == _MODE_TURBULENCE:
            out[i] = _turbulence_at(p, xs[i], ys[i], octaves, persistence, lacunarity)
        else:
            out[i] = _warped_at(p, xs[i], ys[i], octaves, persistence, lacunarity, warp_strength)
    return out


@njit
def _cell_hash(cell_x, cell_y, seed, salt):
    """
    Integer hash of a cell coordinate to [0, 1). Every intermediate product is
    masked to 31 bits first so nothing overflows a 64-bit integer.
    """
    n = (cell_x * 73856093) ^ (cell_y * 19349663) ^ (seed * 83492791) ^ (salt * 2654435761)
    n = n & 0x7FFFFFFF
    n = ((n << 13) ^ n) & 0x7FFFFFFF
    inner = (n * n) & 0x7FFFFFFF
    inner = (inner * 15731 + 789221) & 0x7FFFFFFF
    n = (n * inner + 1376312589) & 0x7FFFFFFF
    return n / 2147483648.0


@njit
def _cellular_at(x, y, cell_size, seed):
    ix = int(np.floor(x / cell_size))
    iy = int(np.floor(y / cell_size))

    min_dist = np.inf
    # Check 3x3 grid of cells
    for dy in range(-1, 2):
        for dx in range(-1, 2):
            cx = ix + dx
            cy = iy + dy
            # One jittered feature point per cell, derived from the cell itself.
            point_x = (cx + _cell_hash(cx, cy, seed, 0)) * cell_size
            point_y = (cy + _cell_hash(cx, cy, seed, 1)) * cell_size
            dist = np.sqrt((x - point_x) ** 2 + (y - point_y) ** 2)
            if dist < min_dist:
                min_dist = dist

    return 1.0 - min(min_dist / (cell_size * _CELLULAR_FALLOFF), 1.0)


@njit
def _sample_cellular(xs, ys, cell_size, seed):
    out = np.empty(xs.shape[0])
    for i in range(xs.shape[0]):
        out[i] = _cellular_at(xs[i], ys[i], cell_size, seed)
    return out


def _flatten(x, y):
    x, y = np.broadcast_arrays(np.asarray(x, dtype=np.float64), np.asarray(y, dtype=np.float64))
    return np.ascontiguousarray(x.ravel()), np.ascontiguousarray(y.ravel()), x.shape


def _reshape(values: np.ndarray, shape: tuple):
    if shape == ():
        return float(values[0])
    return values.reshape(shape)


def _evaluate(mode, p, x, y, octaves, persistence, lacunarity, warp_strength=0.0):
    if octaves < 1:
        raise ConfigurationError(f"octaves must be >= 1, got {octaves}")
    xs, ys, shape = _flatten(x, y)
    values = _sample(mode, p, xs, ys, int(octaves), float(persistence), float(lacunarity), float(warp_strength))
    return _reshape(values, shape)


def fbm(p, x, y, octaves=8, persistence=0.5, lacunarity=2.0):
    """
    Fractal Brownian motion: octaves of gradient noise, each scaled by
    persistence^i in amplitude and lacunarity^i in frequency, divided by
    the amplitude sum so the result stays in about [-1, 1].
    """
    return _evaluate(_MODE_FBM, p, x, y, octaves, persistence, lacunarity)


def ridged(p, x, y, octaves=8, persistence=0.5, lacunarity=2.0):
    """Ridged multifractal: sum of (1 - |signal|)^2, sharp mountain crests."""
    return _evaluate(_MODE_RIDGED, p, x, y, octaves, persistence, lacunarity)


def billow(p, x, y, octaves=6, persistence=0.5, lacunarity=2.0):
    """Normalised sum of |signal|: rounded, cloud-like lobes in [0, 1]."""
    return _evaluate(_MODE_BILLOW, p, x, y, octaves, persistence, lacunarity)


def turbulence(p, x, y, octaves=6, persistence=0.5, lacunarity=2.0):
    """Unnormalised sum of |signal| for chaotic patterns."""
    return _evaluate(_MODE_TURBULENCE, p, x, y, octaves, persistence, lacunarity)


def domain_warped(p, x, y, warp_strength=0.5, octaves=8, persistence=0.5, lacunarity=2.0):
    """
    Samples fbm at coordinates displaced by two further fbm fields, giving
    organic, non-axis-aligned distortion.
    """
    return _evaluate(_MODE_WARPED, p, x, y, octaves, persistence, lacunarity, warp_strength)


def cellular(x, y, cell_size=10.0, seed=0):
    """
    Voronoi-distance noise for crater-like features. Returns 1 at a cell's
    feature point, falling linearly to 0 at 1.5 cell sizes away.
    """
    if cell_size <= 0:
        raise ConfigurationError(f"cell_size must be positive, got {cell_size}")
    xs, ys, shape = _flatten(x, y)
    values = _sample_cellular(xs, ys, float(cell_size), int(seed))
    return _reshape(values, shape)

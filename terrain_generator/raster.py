# terrain_generator/raster.py

"""
================================================================================
RASTER ENCODING
================================================================================
Bit-packing between float grids and 8-bit-per-channel RGB pixel arrays.

Height rasters: heights are normalised to the full 16-bit range using a
declared min/max and split into R = high byte, G = low byte, B = 0. The
consumer inverts with:

    height = min + (R << 8 | G) / 65535 * (max - min)

Normal rasters: each component of a unit normal is remapped from [-1, 1] to
[0, 255], one channel per component.

Data Contract:
---------------
- Inputs: float grids (H, W) or normal maps (H, W, 3).
- Outputs: uint8 arrays of shape (H, W, 3), and the inverse mappings.
- Side Effects: None. No file I/O happens here (see exporter.py).
================================================================================
"""

import numpy as np

from .errors import ConfigurationError

HEIGHT_ENCODING_RG16 = "rg16"
HEIGHT_ENCODING_GRAYSCALE8 = "grayscale8"
MAX_UINT16 = 65535


def _require_rgb(rgb: np.ndarray) -> np.ndarray:
    rgb = np.asarray(rgb)
    if rgb.ndim != 3 or rgb.shape[2] < 3:
        raise ConfigurationError(f"Expected an (H, W, 3) pixel array, got shape {rgb.shape}")
    return rgb


def encode_height_rg(grid, min_height: float, max_height: float) -> np.ndarray:
    """
    Packs heights into an RGB array. Values are rounded to the nearest
    16-bit step, so decoding is exact to within half a step of the range.
    A zero range encodes every pixel as 0.
    """
    heights = np.asarray(grid, dtype=np.float64)
    span = max_height - min_height
    if span > 0:
        normalized = np.clip((heights - min_height) / span, 0.0, 1.0)
        values = np.rint(normalized * MAX_UINT16).astype(np.uint16)
    else:
        values = np.zeros(heights.shape, dtype=np.uint16)

    rgb = np.zeros(heights.shape + (3,), dtype=np.uint8)
    rgb[..., 0] = values >> 8  # R = high byte
    rgb[..., 1] = values & 0xFF  # G = low byte
    return rgb


def decode_height_rg(rgb, min_height: float, max_height: float) -> np.ndarray:
    rgb = _require_rgb(rgb)
    values = (rgb[..., 0].astype(np.uint32) << 8) | rgb[..., 1].astype(np.uint32)
    return min_height + (values / MAX_UINT16) * (max_height - min_height)


def decode_height_grayscale(rgb) -> np.ndarray:
    """Legacy 8-bit assets: the red channel over 255, in [0, 1]."""
    rgb = _require_rgb(rgb)
    return rgb[..., 0].astype(np.float64) / 255.0


def looks_like_legacy_grayscale(rgb) -> bool:
    """
    True when R == G for every pixel of the image. Callers opt into this
    check explicitly for assets without an encoding record; it is never
    applied pixel by pixel.
    """
    rgb = _require_rgb(rgb)
    return bool(np.array_equal(rgb[..., 0], rgb[..., 1]))


def encode_normal_map(normals) -> np.ndarray:
    normals = np.asarray(normals, dtype=np.float64)
    if normals.ndim != 3 or normals.shape[2] != 3:
        raise ConfigurationError(f"Expected an (H, W, 3) normal map, got shape {normals.shape}")
    return np.clip(np.floor((normals + 1.0) / 2.0 * 255.0), 0, 255).astype(np.uint8)


def decode_normal_map(rgb) -> np.ndarray:
    rgb = _require_rgb(rgb)
    return rgb[..., :3].astype(np.float64) / 255.0 * 2.0 - 1.0

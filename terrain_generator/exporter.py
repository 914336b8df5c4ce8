# terrain_generator/exporter.py

"""
================================================================================
TERRAIN EXPORTER / LOADER
================================================================================
Writes a GenerationResult to a per-planet directory of PNG rasters plus JSON
metadata, and reads such a directory back.

Data Contract:
---------------
- Output layout (<output_dir>/<planet>/):
    - heightmap.png: RG-encoded 16-bit heights (see raster.py).
    - normalmap.png: 8-bit RGB unit normals.
    - watermask.png: 8-bit grayscale, 0 land, 1 river, 2 lake, 3 ocean
      (only when hydrology ran).
    - water.json: rivers and water bodies (only when hydrology ran).
    - metadata.json: generation parameters, pre-normalisation height
      min/max/avg, physical config echo and the file names above.
- Side Effects: Creates directories and files; logs each artifact written.
- Errors: Any failed write raises ArtifactWriteError. The GenerationResult
  is not touched, so export() can simply be called again.
================================================================================
"""

import json
import logging
import os
from dataclasses import dataclass
from typing import Optional

import numpy as np
from PIL import Image

from . import config as DEFAULTS
from . import raster
from .errors import ArtifactWriteError, ConfigurationError
from .generator import GenerationResult
from .planets import PlanetConfig

HEIGHTMAP_FILE = "heightmap.png"
NORMALMAP_FILE = "normalmap.png"
WATERMASK_FILE = "watermask.png"
WATER_FILE = "water.json"
METADATA_FILE = "metadata.json"


@dataclass
class LoadedTerrain:
    metadata: dict
    heightmap: np.ndarray
    normal_map: Optional[np.ndarray] = None
    water_mask: Optional[np.ndarray] = None
    water: Optional[dict] = None


def build_metadata(planet: PlanetConfig, result: GenerationResult) -> dict:
    stats = result.statistics
    return {
        "planet": planet.name,
        "type": planet.body_type,
        "generation": {
            "resolution": int(result.heightmap.shape[1]),
            "terrainScale": planet.terrain_scale,
            "roughness": planet.roughness,
            "erosionIntensity": planet.erosion_intensity,
            "noiseFrequency": planet.noise_frequency,
            "seed": result.seed,
            "generationTime": result.generation_time,
        },
        "heightmap": {
            # Original height range (before normalization)
            "min": stats.min,
            "max": stats.max,
            "avg": stats.mean,
            "encoding": raster.HEIGHT_ENCODING_RG16,
        },
        "config": {
            "gravity": planet.gravity,
            "hasAtmosphere": planet.has_atmosphere,
            "hasWater": planet.has_water,
            "temperature": planet.temperature,
            "hasBiomes": planet.has_biomes,
        },
        "water": result.water.summary() if result.water is not None else None,
        "files": {
            "heightmap": HEIGHTMAP_FILE,
            "normalmap": NORMALMAP_FILE,
            "watermask": WATERMASK_FILE if result.water is not None else None,
            "water": WATER_FILE if result.water is not None else None,
        },
    }


class TerrainExporter:
    """Serializes generation results under a common output directory."""

    def __init__(self, output_dir: str = DEFAULTS.DEFAULT_OUTPUT_DIR, logger: logging.Logger = None):
        self.output_dir = output_dir
        self.logger = logger or logging.getLogger(__name__)

    def export(self, planet: PlanetConfig, result: GenerationResult) -> str:
        """
        Writes every artifact for one planet.

        Returns:
            str: The planet's output directory.
        """
        self.logger.info(f"Exporting terrain for {planet.name}...")
        planet_dir = os.path.join(self.output_dir, planet.name)
        try:
            os.makedirs(planet_dir, exist_ok=True)
        except OSError as e:
            raise ArtifactWriteError(planet_dir, str(e)) from e

        stats = result.statistics
        self.logger.debug(f"  Normalizing heightmap: {stats.min:.3f} - {stats.max:.3f} -> 0.0 - 1.0")
        self._write_image(os.path.join(planet_dir, HEIGHTMAP_FILE),
                          raster.encode_height_rg(result.heightmap, stats.min, stats.max))
        self._write_image(os.path.join(planet_dir, NORMALMAP_FILE),
                          raster.encode_normal_map(result.normal_map))

        if result.water is not None:
            self._write_image(os.path.join(planet_dir, WATERMASK_FILE), result.water.water_mask)
            self._write_json(os.path.join(planet_dir, WATER_FILE), result.water.to_dict())

        self._write_json(os.path.join(planet_dir, METADATA_FILE), build_metadata(planet, result))

        self.logger.info(f"Exported to {planet_dir}")
        return planet_dir

    def _write_image(self, path: str, pixels: np.ndarray):
        try:
            Image.fromarray(np.ascontiguousarray(pixels, dtype=np.uint8)).save(path, optimize=True)
        except OSError as e:
            raise ArtifactWriteError(path, str(e)) from e
        self.logger.info(f"  Saved {os.path.basename(path)}")

    def _write_json(self, path: str, data: dict):
        try:
            with open(path, 'w') as f:
                json.dump(data, f, indent=2)
        except OSError as e:
            raise ArtifactWriteError(path, str(e)) from e
        self.logger.info(f"  Saved {os.path.basename(path)}")


def _read_image(path: str) -> np.ndarray:
    with Image.open(path) as img:
        return np.array(img)


def load_terrain(planet_dir: str, allow_legacy_grayscale: bool = False) -> LoadedTerrain:
    """
    Reads an exported artifact set back into arrays.

    Heights are decoded according to the metadata's encoding record. Assets
    without one are decoded as RG unless allow_legacy_grayscale is set and
    the whole image has R == G, in which case they are read as 8-bit
    grayscale.
    """
    metadata_path = os.path.join(planet_dir, METADATA_FILE)
    if not os.path.isfile(metadata_path):
        raise ConfigurationError(f"{METADATA_FILE} not found in '{planet_dir}'")
    with open(metadata_path, 'r') as f:
        metadata = json.load(f)

    files = metadata.get("files", {})
    height_info = metadata["heightmap"]
    height_rgb = _read_image(os.path.join(planet_dir, files.get("heightmap") or HEIGHTMAP_FILE))

    encoding = height_info.get("encoding")
    if encoding is None and allow_legacy_grayscale and raster.looks_like_legacy_grayscale(height_rgb):
        encoding = raster.HEIGHT_ENCODING_GRAYSCALE8

    if encoding == raster.HEIGHT_ENCODING_GRAYSCALE8:
        heightmap = raster.decode_height_grayscale(height_rgb)
    else:
        heightmap = raster.decode_height_rg(height_rgb, height_info["min"], height_info["max"])

    loaded = LoadedTerrain(metadata=metadata, heightmap=heightmap)
    if files.get("normalmap"):
        loaded.normal_map = raster.decode_normal_map(_read_image(os.path.join(planet_dir, files["normalmap"])))
    if files.get("watermask"):
        loaded.water_mask = _read_image(os.path.join(planet_dir, files["watermask"]))
    if files.get("water"):
        with open(os.path.join(planet_dir, files["water"]), 'r') as f:
            loaded.water = json.load(f)
    return loaded

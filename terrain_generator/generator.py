# terrain_generator/generator.py

"""
================================================================================
TERRAIN GENERATION ORCHESTRATOR
================================================================================
This module contains the TerrainGenerator class, which sequences the noise,
erosion and hydrology stages for one planet and derives the normal map and
height statistics from the result.

Data Contract:
---------------
- Inputs (on initialization):
    - planet (PlanetConfig): The immutable description of the body.
    - logger: A configured Python logging object for runtime messages.
    - config (dict, optional): Overrides for the internal defaults, keyed by
      the names in `settings` (e.g. 'sea_level', 'river_threshold').
- Outputs (from generate()):
    - GenerationResult with the final HeightGrid, the unit normal map, the
      WaterSystem (None when the body has no surface water) and statistics.
- Side Effects: Logs messages using the provided logger.
- Invariants: Given the same planet, seed and configuration, the output is
  deterministic. The generator holds no state between generate() calls.
================================================================================
"""

import logging
import time
from dataclasses import dataclass
from typing import Optional

import numpy as np

from . import config as DEFAULTS
from . import noise
from .erosion import ErosionStats, HydraulicErosionParams, hydraulic_erosion, thermal_erosion
from .grid import HeightStatistics, height_statistics, require_finite
from .hydrology import WatershedAnalyzer, WaterSystem
from .planets import PlanetConfig

# Body types with solid, noise-synthesised surfaces.
_SOLID_BODY_TYPES = ("terrestrial", "dwarf")


@dataclass
class GenerationResult:
    heightmap: np.ndarray
    normal_map: np.ndarray  # (H, W, 3) unit vectors
    water: Optional[WaterSystem]
    statistics: HeightStatistics
    generation_time: float  # Seconds
    seed: int
    erosion: Optional[ErosionStats] = None


def compute_normal_map(grid: np.ndarray, strength: float = DEFAULTS.NORMAL_MAP_STRENGTH) -> np.ndarray:
    """
    Per-cell unit normals from central differences, wrapping at the edges.

    Returns:
        np.ndarray: float64 array of shape (H, W, 3) with components in [-1, 1].
    """
    heights = np.asarray(grid, dtype=np.float64)
    dx = (np.roll(heights, -1, axis=1) - np.roll(heights, 1, axis=1)) * strength
    dy = (np.roll(heights, -1, axis=0) - np.roll(heights, 1, axis=0)) * strength

    normals = np.empty(heights.shape + (3,), dtype=np.float64)
    normals[..., 0] = -dx
    normals[..., 1] = -dy
    normals[..., 2] = 1.0
    normals /= np.sqrt(dx * dx + dy * dy + 1.0)[..., np.newaxis]
    return normals


class TerrainGenerator:
    """
    Generates the height, normal and hydrology data for one planet.
    This class is backend-only and does not write any files.
    """
    def __init__(self, planet: PlanetConfig, logger: logging.Logger, config: dict = None):
        """
        Initializes the terrain generator.

        Args:
            planet (PlanetConfig): The body to generate.
            logger (logging.Logger): The logger instance for all output.
            config (dict, optional): User-defined parameters to override defaults.
        """
        self.planet = planet
        self.logger = logger
        self.user_config = config or {}

        # --- Consolidate Configuration ---
        self.settings = {
            'ridge_frequency_factor': self.user_config.get('ridge_frequency_factor', DEFAULTS.RIDGE_FREQUENCY_FACTOR),
            'ridge_octaves': self.user_config.get('ridge_octaves', DEFAULTS.RIDGE_OCTAVES),
            'warp_frequency_factor': self.user_config.get('warp_frequency_factor', DEFAULTS.WARP_FREQUENCY_FACTOR),
            'warp_strength': self.user_config.get('warp_strength', DEFAULTS.WARP_STRENGTH),
            'warp_weight': self.user_config.get('warp_weight', DEFAULTS.WARP_WEIGHT),
            'detail_frequency_factor': self.user_config.get('detail_frequency_factor', DEFAULTS.DETAIL_FREQUENCY_FACTOR),
            'detail_octaves': self.user_config.get('detail_octaves', DEFAULTS.DETAIL_OCTAVES),
            'detail_persistence': self.user_config.get('detail_persistence', DEFAULTS.DETAIL_PERSISTENCE),
            'detail_lacunarity': self.user_config.get('detail_lacunarity', DEFAULTS.DETAIL_LACUNARITY),
            'detail_weight': self.user_config.get('detail_weight', DEFAULTS.DETAIL_WEIGHT),
            'detail_seed_offset': self.user_config.get('detail_seed_offset', DEFAULTS.DETAIL_SEED_OFFSET),

            'crater_coordinate_scale': self.user_config.get('crater_coordinate_scale', DEFAULTS.CRATER_COORDINATE_SCALE),
            'crater_cell_size': self.user_config.get('crater_cell_size', DEFAULTS.CRATER_CELL_SIZE),
            'crater_depth': self.user_config.get('crater_depth', DEFAULTS.CRATER_DEPTH),

            'erosion_seed_offset': self.user_config.get('erosion_seed_offset', DEFAULTS.EROSION_SEED_OFFSET),
            'hydraulic_droplets_per_intensity': self.user_config.get('hydraulic_droplets_per_intensity', DEFAULTS.HYDRAULIC_DROPLETS_PER_INTENSITY),
            'thermal_iterations_per_intensity': self.user_config.get('thermal_iterations_per_intensity', DEFAULTS.THERMAL_ITERATIONS_PER_INTENSITY),
            'erosion_radius': self.user_config.get('erosion_radius', DEFAULTS.EROSION_RADIUS),
            'droplet_inertia': self.user_config.get('droplet_inertia', DEFAULTS.DROPLET_INERTIA),
            'sediment_capacity_factor': self.user_config.get('sediment_capacity_factor', DEFAULTS.SEDIMENT_CAPACITY_FACTOR),
            'min_sediment_capacity': self.user_config.get('min_sediment_capacity', DEFAULTS.MIN_SEDIMENT_CAPACITY),
            'erode_speed': self.user_config.get('erode_speed', DEFAULTS.ERODE_SPEED),
            'deposit_speed': self.user_config.get('deposit_speed', DEFAULTS.DEPOSIT_SPEED),
            'evaporate_speed': self.user_config.get('evaporate_speed', DEFAULTS.EVAPORATE_SPEED),
            'droplet_gravity': self.user_config.get('droplet_gravity', DEFAULTS.DROPLET_GRAVITY),
            'max_droplet_lifetime': self.user_config.get('max_droplet_lifetime', DEFAULTS.MAX_DROPLET_LIFETIME),
            'initial_water_volume': self.user_config.get('initial_water_volume', DEFAULTS.INITIAL_WATER_VOLUME),
            'initial_speed': self.user_config.get('initial_speed', DEFAULTS.INITIAL_SPEED),
            'talus_angle': self.user_config.get('talus_angle', DEFAULTS.TALUS_ANGLE),

            'sea_level': self.user_config.get('sea_level', DEFAULTS.SEA_LEVEL),
            'river_threshold': self.user_config.get('river_threshold', DEFAULTS.RIVER_THRESHOLD),
            'min_river_length': self.user_config.get('min_river_length', DEFAULTS.MIN_RIVER_LENGTH),
            'max_river_width': self.user_config.get('max_river_width', DEFAULTS.MAX_RIVER_WIDTH),
            'valley_carve_depth': self.user_config.get('valley_carve_depth', DEFAULTS.VALLEY_CARVE_DEPTH),
            'valley_carve_width': self.user_config.get('valley_carve_width', DEFAULTS.VALLEY_CARVE_WIDTH),
            'min_water_body_cells': self.user_config.get('min_water_body_cells', DEFAULTS.MIN_WATER_BODY_CELLS),

            'normal_map_strength': self.user_config.get('normal_map_strength', DEFAULTS.NORMAL_MAP_STRENGTH),
        }

        # --- Public Properties for easy access ---
        self.seed = planet.seed
        self.resolution = planet.resolution

        # --- Initialize Noise ---
        self._p = noise.make_permutation_table(self.seed)

        self.logger.info(f"TerrainGenerator initialized for '{planet.name}' with seed: {self.seed}")

    def generate(self) -> GenerationResult:
        """
        Runs the whole pipeline once. Raises a TerrainGenerationError subclass
        if any stage fails; no partial result is returned.
        """
        start_time = time.time()
        planet = self.planet
        self.logger.info(f"Generating terrain for {planet.name}...")
        self.logger.info(f"  Resolution: {self.resolution}x{self.resolution}")
        self.logger.info(f"  Type: {planet.body_type}")

        # 1. Base heightmap
        heightmap = require_finite(self._generate_base_heightmap(), "base heightmap")

        # 2. Erosion
        erosion_stats = None
        if planet.erosion_intensity > 0:
            if planet.has_water or planet.has_atmosphere:
                iterations = int(planet.erosion_intensity * self.settings['hydraulic_droplets_per_intensity'])
                heightmap, erosion_stats = hydraulic_erosion(
                    heightmap, iterations,
                    seed=self.seed + self.settings['erosion_seed_offset'],
                    params=self._hydraulic_params(),
                    logger=self.logger,
                )
                heightmap = require_finite(heightmap, "hydraulic erosion")

            thermal_iterations = int(planet.erosion_intensity * self.settings['thermal_iterations_per_intensity'])
            heightmap = thermal_erosion(heightmap, thermal_iterations, self.settings['talus_angle'], self.logger)
            heightmap = require_finite(heightmap, "thermal erosion")

        # 3. Hydrology
        water = None
        if planet.has_water:
            analyzer = WatershedAnalyzer(
                heightmap,
                sea_level=self.settings['sea_level'],
                river_threshold=self.settings['river_threshold'],
                min_river_length=self.settings['min_river_length'],
                valley_carve_depth=self.settings['valley_carve_depth'],
                valley_carve_width=self.settings['valley_carve_width'],
                min_water_body_cells=self.settings['min_water_body_cells'],
                max_river_width=self.settings['max_river_width'],
                logger=self.logger,
            )
            heightmap, water = analyzer.run()
            heightmap = require_finite(heightmap, "hydrology")

        # 4. Normal map
        self.logger.info("  Generating normal map...")
        normal_map = require_finite(
            compute_normal_map(heightmap, self.settings['normal_map_strength']), "normal map"
        )

        # 5. Statistics
        statistics = height_statistics(heightmap)
        generation_time = time.time() - start_time

        self.logger.info(f"Generation complete for {planet.name} in {generation_time:.2f}s")
        self.logger.info(f"  Height range: {statistics.min:.3f} - {statistics.max:.3f}")

        return GenerationResult(
            heightmap=heightmap,
            normal_map=normal_map,
            water=water,
            statistics=statistics,
            generation_time=generation_time,
            seed=self.seed,
            erosion=erosion_stats,
        )

    def _hydraulic_params(self) -> HydraulicErosionParams:
        s = self.settings
        return HydraulicErosionParams(
            erosion_radius=s['erosion_radius'],
            inertia=s['droplet_inertia'],
            sediment_capacity_factor=s['sediment_capacity_factor'],
            min_sediment_capacity=s['min_sediment_capacity'],
            erode_speed=s['erode_speed'],
            deposit_speed=s['deposit_speed'],
            evaporate_speed=s['evaporate_speed'],
            gravity=s['droplet_gravity'],
            max_lifetime=s['max_droplet_lifetime'],
            initial_water_volume=s['initial_water_volume'],
            initial_speed=s['initial_speed'],
        )

    def _generate_base_heightmap(self) -> np.ndarray:
        """
        Mixes fbm, ridged and domain-warped noise by roughness, adds fine
        detail and subtracts craters on airless bodies. The result is mapped
        from [-1, 1] to [0, 1], scaled by terrain_scale and clamped.
        """
        self.logger.info("  Generating base heightmap...")
        planet = self.planet
        s = self.settings
        res = self.resolution

        # Solid bodies only; giants keep a flat mid-level surface.
        height = np.zeros((res, res), dtype=np.float64)
        if planet.body_type in _SOLID_BODY_TYPES:
            ys, xs = np.mgrid[0:res, 0:res].astype(np.float64)
            scale = planet.noise_frequency
            roughness = planet.roughness

            base = noise.fbm(self._p, xs * scale, ys * scale,
                             planet.noise_octaves, planet.noise_persistence, planet.noise_lacunarity)
            ridges = noise.ridged(self._p, xs * scale * s['ridge_frequency_factor'],
                                  ys * scale * s['ridge_frequency_factor'],
                                  s['ridge_octaves'], planet.noise_persistence, planet.noise_lacunarity)
            warped = noise.domain_warped(self._p, xs * scale * s['warp_frequency_factor'],
                                         ys * scale * s['warp_frequency_factor'],
                                         warp_strength=s['warp_strength'], octaves=planet.noise_octaves,
                                         persistence=planet.noise_persistence,
                                         lacunarity=planet.noise_lacunarity)
            height = base * (1 - roughness) + ridges * roughness * 0.5 + warped * s['warp_weight']

            # Small-scale detail, sampled from an offset region of the same field.
            detail_scale = scale * s['detail_frequency_factor']
            detail = noise.fbm(self._p, (xs + s['detail_seed_offset']) * detail_scale,
                               (ys + s['detail_seed_offset']) * detail_scale,
                               s['detail_octaves'], s['detail_persistence'], s['detail_lacunarity'])
            height += detail * s['detail_weight']

            if planet.has_craters:
                self.logger.debug("    Adding impact craters")
                craters = noise.cellular(xs * s['crater_coordinate_scale'], ys * s['crater_coordinate_scale'],
                                         s['crater_cell_size'], self.seed)
                height -= craters * s['crater_depth']

        # Normalize to 0-1 range
        height = (height + 1) / 2
        height *= planet.terrain_scale
        return np.clip(height, 0.0, 1.0)

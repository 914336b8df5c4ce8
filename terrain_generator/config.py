# terrain_generator/config.py

"""
================================================================================
INTERNAL DEFAULT CONFIGURATION
================================================================================
This module contains the default, fallback internal constants for the terrain
generator. These values are used if they are not explicitly provided by the
user's configuration.

DO NOT MODIFY THIS FILE FOR A SPECIFIC PLANET.
Instead, pass a configuration dictionary to the TerrainGenerator instance, or
override the planet's entry through the baker's --config file.
================================================================================
"""

# --- Output ---
DEFAULT_RESOLUTION = 1024
MIN_RESOLUTION = 16
MAX_RESOLUTION = 8192
DEFAULT_OUTPUT_DIR = "public/terrains"
# Number of extra attempts at writing a planet's artifacts after a failure.
# Generation is NOT repeated for these attempts.
DEFAULT_EXPORT_RETRIES = 2

# --- Noise Generation ---
# Coordinates are multiplied by this before sampling (cycles per cell).
DEFAULT_NOISE_FREQUENCY = 0.003
DEFAULT_NOISE_OCTAVES = 8
DEFAULT_NOISE_PERSISTENCE = 0.5
DEFAULT_NOISE_LACUNARITY = 2.0

# Layer settings for the base heightmap mix.
RIDGE_FREQUENCY_FACTOR = 2.0
RIDGE_OCTAVES = 6
WARP_FREQUENCY_FACTOR = 0.5
WARP_STRENGTH = 0.5
WARP_WEIGHT = 0.3
DETAIL_FREQUENCY_FACTOR = 8.0
DETAIL_OCTAVES = 4
DETAIL_PERSISTENCE = 0.3
DETAIL_LACUNARITY = 2.5
DETAIL_WEIGHT = 0.1

# Craters for airless bodies. Cell size is in sampled coordinate units.
CRATER_COORDINATE_SCALE = 0.5
CRATER_CELL_SIZE = 100.0
CRATER_DEPTH = 0.2

# Large primes used to offset seeds for different layers, ensuring
# they are unique but deterministic from the planet seed.
DETAIL_SEED_OFFSET = 98761
EROSION_SEED_OFFSET = 12347

# --- Hydraulic Erosion ---
# Number of droplets = erosion_intensity * this.
HYDRAULIC_DROPLETS_PER_INTENSITY = 100000
HYDRAULIC_BATCH_SIZE = 10000
EROSION_RADIUS = 3
DROPLET_INERTIA = 0.05
SEDIMENT_CAPACITY_FACTOR = 4.0
MIN_SEDIMENT_CAPACITY = 0.01
ERODE_SPEED = 0.3
DEPOSIT_SPEED = 0.3
EVAPORATE_SPEED = 0.01
DROPLET_GRAVITY = 4.0
MAX_DROPLET_LIFETIME = 30
INITIAL_WATER_VOLUME = 1.0
INITIAL_SPEED = 1.0

# --- Thermal Erosion ---
# Number of relaxation passes = erosion_intensity * this.
THERMAL_ITERATIONS_PER_INTENSITY = 20
# Maximum stable height difference between neighbouring cells.
TALUS_ANGLE = 0.7

# --- Hydrology ---
# Absolute elevation at or below which a cell is water.
SEA_LEVEL = 0.3
# Minimum flow accumulation (in cells) for a cell to be part of a river.
RIVER_THRESHOLD = 500.0
MIN_RIVER_LENGTH = 50
MAX_RIVER_WIDTH = 20.0
VALLEY_CARVE_DEPTH = 0.02
VALLEY_CARVE_WIDTH = 8.0
# Components smaller than this are treated as noise and discarded.
MIN_WATER_BODY_CELLS = 100

# --- Normal Map ---
NORMAL_MAP_STRENGTH = 8.0

# terrain_generator/__init__.py

# This file makes the 'terrain_generator' directory a Python package.
# We can also use it to define the public API of the package.

from .errors import (
    ArtifactWriteError,
    ConfigurationError,
    FlowRoutingError,
    NumericInstabilityError,
    TerrainGenerationError,
)
from .exporter import LoadedTerrain, TerrainExporter, load_terrain
from .generator import GenerationResult, TerrainGenerator, compute_normal_map
from .hydrology import RiverPath, RiverPoint, WaterBody, WaterSystem, WatershedAnalyzer
from .planets import PLANET_CONFIGS, PlanetConfig, get_all_planet_names, get_planet_config

__all__ = [
    "ArtifactWriteError",
    "ConfigurationError",
    "FlowRoutingError",
    "NumericInstabilityError",
    "TerrainGenerationError",
    "LoadedTerrain",
    "TerrainExporter",
    "load_terrain",
    "GenerationResult",
    "TerrainGenerator",
    "compute_normal_map",
    "RiverPath",
    "RiverPoint",
    "WaterBody",
    "WaterSystem",
    "WatershedAnalyzer",
    "PLANET_CONFIGS",
    "PlanetConfig",
    "get_all_planet_names",
    "get_planet_config",
]

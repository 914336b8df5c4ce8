"""Shared fixtures for the terrain pipeline tests."""

import logging

import numpy as np
import pytest

from terrain_generator.planets import PlanetConfig


@pytest.fixture
def quiet_logger():
    """A logger that only reports problems."""
    logger = logging.getLogger("terrain_tests")
    logger.setLevel(logging.WARNING)
    return logger


@pytest.fixture
def small_planet():
    """A small, wet, eroding body that exercises every pipeline stage."""
    return PlanetConfig(
        name="testworld",
        body_type="terrestrial",
        gravity=9.81,
        has_atmosphere=True,
        has_water=True,
        temperature=288,
        has_biomes=True,
        terrain_scale=1.0,
        roughness=0.6,
        erosion_intensity=0.02,
        noise_frequency=0.05,
        resolution=32,
        seed=1234,
    )


@pytest.fixture
def small_settings():
    """Hydrology thresholds scaled down to a 32x32 grid."""
    return {
        "river_threshold": 16,
        "min_river_length": 4,
        "min_water_body_cells": 4,
        "sea_level": 0.45,
    }


@pytest.fixture
def pit_grid():
    """Flat 9x9 grid at height 1 with a single 1-unit-deep pit at the centre."""
    grid = np.ones((9, 9))
    grid[4, 4] = 0.0
    return grid

"""Tests for the terrain generation orchestrator."""

import numpy as np
import pytest

from terrain_generator import raster
from terrain_generator.errors import NumericInstabilityError
from terrain_generator.generator import TerrainGenerator, compute_normal_map
from terrain_generator.grid import height_statistics
from terrain_generator.planets import PlanetConfig


class TestNormalMap:
    """Test normal map derivation."""

    def test_flat_grid_points_straight_up(self):
        normals = compute_normal_map(np.full((8, 8), 0.3))
        assert normals.shape == (8, 8, 3)
        assert np.allclose(normals[..., 0], 0.0)
        assert np.allclose(normals[..., 1], 0.0)
        assert np.allclose(normals[..., 2], 1.0)

    def test_unit_length(self):
        rng = np.random.default_rng(2)
        normals = compute_normal_map(rng.random((16, 16)))
        assert np.allclose(np.linalg.norm(normals, axis=2), 1.0)

    def test_slope_tilts_normal_downhill(self):
        ys, xs = np.mgrid[0:8, 0:8].astype(np.float64)
        normals = compute_normal_map(xs * 0.1, strength=8.0)
        # Interior cells: dx = (h[x+1] - h[x-1]) * strength = 1.6
        expected = np.array([-1.6, 0.0, 1.0]) / np.sqrt(1.6**2 + 1.0)
        assert np.allclose(normals[3, 3], expected)

    def test_wraps_around_edges(self):
        grid = np.zeros((6, 6))
        grid[:, 0] = 1.0
        normals = compute_normal_map(grid, strength=1.0)
        # The last column's right-hand neighbour is the first column.
        assert normals[2, 5, 0] < 0.0
        assert normals[2, 1, 0] > 0.0


class TestTerrainGenerator:
    """Test the full generation pipeline."""

    def test_deterministic(self, small_planet, small_settings, quiet_logger):
        first = TerrainGenerator(small_planet, quiet_logger, small_settings).generate()
        second = TerrainGenerator(small_planet, quiet_logger, small_settings).generate()

        assert np.array_equal(first.heightmap, second.heightmap)
        assert np.array_equal(first.normal_map, second.normal_map)
        stats = first.statistics
        assert np.array_equal(
            raster.encode_height_rg(first.heightmap, stats.min, stats.max),
            raster.encode_height_rg(second.heightmap, stats.min, stats.max),
        )
        assert np.array_equal(raster.encode_normal_map(first.normal_map), raster.encode_normal_map(second.normal_map))
        assert np.array_equal(first.water.water_mask, second.water.water_mask)

    def test_result_shapes_and_statistics(self, small_planet, small_settings, quiet_logger):
        result = TerrainGenerator(small_planet, quiet_logger, small_settings).generate()
        assert result.heightmap.shape == (32, 32)
        assert result.normal_map.shape == (32, 32, 3)
        assert result.seed == 1234
        assert result.generation_time >= 0.0
        assert result.statistics == height_statistics(result.heightmap)
        assert np.all(np.isfinite(result.heightmap))

    def test_wet_planet_gets_hydrology(self, small_planet, small_settings, quiet_logger):
        result = TerrainGenerator(small_planet, quiet_logger, small_settings).generate()
        assert result.water is not None
        assert result.water.water_mask.shape == (32, 32)
        assert result.water.sea_level == small_settings["sea_level"]
        assert result.erosion is not None
        assert result.erosion.droplets == int(0.02 * 100000)

    def test_dry_airless_planet(self, small_planet, quiet_logger):
        dry = small_planet.replace(has_water=False, has_atmosphere=False, has_biomes=False,
                                   erosion_intensity=0.5)
        result = TerrainGenerator(dry, quiet_logger).generate()
        assert result.water is None
        # No water or air: thermal erosion only.
        assert result.erosion is None

    def test_craters_only_on_airless_bodies(self, small_planet, quiet_logger):
        airless = small_planet.replace(has_water=False, has_atmosphere=False, has_biomes=False,
                                       erosion_intensity=0.0)
        with_air = airless.replace(has_atmosphere=True)
        assert airless.has_craters and not with_air.has_craters

        cratered = TerrainGenerator(airless, quiet_logger).generate().heightmap
        smooth = TerrainGenerator(with_air, quiet_logger).generate().heightmap
        assert np.all(cratered <= smooth + 1e-12)
        assert not np.array_equal(cratered, smooth)

    def test_base_heightmap_is_clamped(self, small_planet, quiet_logger):
        steep = small_planet.replace(terrain_scale=5.0, erosion_intensity=0.0, has_water=False)
        result = TerrainGenerator(steep, quiet_logger).generate()
        assert result.statistics.min >= 0.0
        assert result.statistics.max <= 1.0

    def test_gas_giant_is_flat(self, quiet_logger):
        giant = PlanetConfig(name="giant", body_type="gas-giant", has_atmosphere=True,
                             terrain_scale=0.8, resolution=16, seed=3)
        result = TerrainGenerator(giant, quiet_logger).generate()
        assert np.allclose(result.heightmap, 0.4)
        assert np.allclose(result.normal_map[..., 2], 1.0)

    def test_seed_changes_terrain(self, small_planet, small_settings, quiet_logger):
        first = TerrainGenerator(small_planet, quiet_logger, small_settings).generate()
        second = TerrainGenerator(small_planet.replace(seed=4321), quiet_logger, small_settings).generate()
        assert not np.array_equal(first.heightmap, second.heightmap)

    def test_settings_fall_back_to_defaults(self, small_planet, quiet_logger):
        generator = TerrainGenerator(small_planet, quiet_logger, {"sea_level": 0.9})
        assert generator.settings["sea_level"] == 0.9
        assert generator.settings["river_threshold"] == 500.0

    def test_non_finite_stage_output_aborts(self, small_planet, quiet_logger):
        generator = TerrainGenerator(small_planet, quiet_logger, {"warp_weight": float("nan")})
        with pytest.raises(NumericInstabilityError) as excinfo:
            generator.generate()
        assert excinfo.value.stage == "base heightmap"

    def test_droplet_settings_reach_hydraulic_erosion(self, small_planet, quiet_logger):
        arid = small_planet.replace(has_water=False, has_biomes=False, erosion_intensity=0.05)
        overrides = {"erosion_radius": 1, "droplet_inertia": 0.9}
        generator = TerrainGenerator(arid, quiet_logger, overrides)
        params = generator._hydraulic_params()
        assert params.erosion_radius == 1
        assert params.inertia == 0.9
        assert params.max_lifetime == 30

        default = TerrainGenerator(arid, quiet_logger).generate()
        tuned = generator.generate()
        assert not np.array_equal(default.heightmap, tuned.heightmap)

"""Tests for writing and loading terrain artifacts."""

import json
import os

import numpy as np
import pytest
from PIL import Image

from terrain_generator.errors import ArtifactWriteError, ConfigurationError
from terrain_generator.exporter import TerrainExporter, load_terrain
from terrain_generator.generator import TerrainGenerator


@pytest.fixture
def generated(small_planet, small_settings, quiet_logger):
    return TerrainGenerator(small_planet, quiet_logger, small_settings).generate()


class TestTerrainExporter:
    """Test the artifact set written for one planet."""

    def test_writes_all_files(self, tmp_path, small_planet, generated, quiet_logger):
        planet_dir = TerrainExporter(str(tmp_path), quiet_logger).export(small_planet, generated)
        assert planet_dir == os.path.join(str(tmp_path), "testworld")
        for name in ("heightmap.png", "normalmap.png", "watermask.png", "water.json", "metadata.json"):
            assert os.path.isfile(os.path.join(planet_dir, name))

    def test_raster_formats(self, tmp_path, small_planet, generated, quiet_logger):
        planet_dir = TerrainExporter(str(tmp_path), quiet_logger).export(small_planet, generated)
        with Image.open(os.path.join(planet_dir, "heightmap.png")) as img:
            assert img.mode == "RGB"
            assert img.size == (32, 32)
        with Image.open(os.path.join(planet_dir, "normalmap.png")) as img:
            assert img.mode == "RGB"
        with Image.open(os.path.join(planet_dir, "watermask.png")) as img:
            assert img.mode == "L"

    def test_metadata_contents(self, tmp_path, small_planet, generated, quiet_logger):
        planet_dir = TerrainExporter(str(tmp_path), quiet_logger).export(small_planet, generated)
        with open(os.path.join(planet_dir, "metadata.json")) as f:
            metadata = json.load(f)

        assert metadata["planet"] == "testworld"
        assert metadata["type"] == "terrestrial"
        assert metadata["generation"]["resolution"] == 32
        assert metadata["generation"]["roughness"] == 0.6
        assert metadata["generation"]["erosionIntensity"] == 0.02
        assert metadata["generation"]["seed"] == 1234
        assert metadata["heightmap"]["min"] == generated.statistics.min
        assert metadata["heightmap"]["max"] == generated.statistics.max
        assert metadata["heightmap"]["avg"] == generated.statistics.mean
        assert metadata["heightmap"]["encoding"] == "rg16"
        assert metadata["config"] == {
            "gravity": 9.81,
            "hasAtmosphere": True,
            "hasWater": True,
            "temperature": 288,
            "hasBiomes": True,
        }
        assert metadata["files"]["heightmap"] == "heightmap.png"
        assert metadata["files"]["normalmap"] == "normalmap.png"
        assert metadata["water"]["rivers"] == len(generated.water.rivers)

    def test_dry_planet_has_no_water_files(self, tmp_path, small_planet, quiet_logger):
        dry = small_planet.replace(has_water=False, erosion_intensity=0.0)
        result = TerrainGenerator(dry, quiet_logger).generate()
        planet_dir = TerrainExporter(str(tmp_path), quiet_logger).export(dry, result)
        assert not os.path.exists(os.path.join(planet_dir, "watermask.png"))
        with open(os.path.join(planet_dir, "metadata.json")) as f:
            metadata = json.load(f)
        assert metadata["water"] is None
        assert metadata["files"]["watermask"] is None

    def test_write_failure_is_reported(self, tmp_path, small_planet, generated, quiet_logger):
        blocker = tmp_path / "blocked"
        blocker.write_text("not a directory")
        with pytest.raises(ArtifactWriteError):
            TerrainExporter(str(blocker), quiet_logger).export(small_planet, generated)

    def test_export_can_be_repeated(self, tmp_path, small_planet, generated, quiet_logger):
        exporter = TerrainExporter(str(tmp_path), quiet_logger)
        heightmap_before = generated.heightmap.copy()
        first = exporter.export(small_planet, generated)
        second = exporter.export(small_planet, generated)
        assert first == second
        assert np.array_equal(generated.heightmap, heightmap_before)


class TestLoadTerrain:
    """Test reading artifacts back."""

    def test_round_trip(self, tmp_path, small_planet, generated, quiet_logger):
        planet_dir = TerrainExporter(str(tmp_path), quiet_logger).export(small_planet, generated)
        loaded = load_terrain(planet_dir)

        stats = generated.statistics
        assert np.max(np.abs(loaded.heightmap - generated.heightmap)) <= (stats.max - stats.min) / 65535
        assert np.max(np.abs(loaded.normal_map - generated.normal_map)) <= 2.0 / 255.0 + 1e-12
        assert np.array_equal(loaded.water_mask, generated.water.water_mask)
        assert len(loaded.water["rivers"]) == len(generated.water.rivers)
        assert loaded.metadata["planet"] == "testworld"

    def test_legacy_grayscale_requires_opt_in(self, tmp_path):
        planet_dir = tmp_path / "legacy"
        planet_dir.mkdir()
        gray = np.repeat(np.linspace(0, 255, 64).astype(np.uint8).reshape(8, 8, 1), 3, axis=2)
        Image.fromarray(gray).save(planet_dir / "heightmap.png")
        (planet_dir / "metadata.json").write_text(json.dumps({
            "planet": "legacy",
            "heightmap": {"min": 0.2, "max": 0.7},
            "files": {"heightmap": "heightmap.png", "normalmap": None},
        }))

        legacy = load_terrain(str(planet_dir), allow_legacy_grayscale=True)
        assert np.allclose(legacy.heightmap, gray[..., 0] / 255.0)

        as_rg = load_terrain(str(planet_dir))
        assert not np.allclose(as_rg.heightmap, gray[..., 0] / 255.0)

    def test_missing_metadata(self, tmp_path):
        with pytest.raises(ConfigurationError):
            load_terrain(str(tmp_path))

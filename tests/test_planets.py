"""Tests for planet configuration records."""

import pytest

from terrain_generator.errors import ConfigurationError
from terrain_generator.planets import (
    MAX_SEED,
    PLANET_CONFIGS,
    PlanetConfig,
    get_all_planet_names,
    get_planet_config,
    seed_from_name,
)


class TestSeedFromName:
    def test_deterministic(self):
        assert seed_from_name("earth") == seed_from_name("earth")

    def test_distinct_names_differ(self):
        assert seed_from_name("earth") != seed_from_name("mars")

    def test_in_range(self):
        for name in ("a", "earth", "a-very-long-planet-name-that-overflows-32-bits" * 4):
            assert 0 <= seed_from_name(name) <= MAX_SEED

    def test_single_character(self):
        assert seed_from_name("a") == ord("a")

    def test_default_seed_comes_from_name(self):
        assert PlanetConfig(name="earth").seed == seed_from_name("earth")


class TestPlanetConfigValidation:
    @pytest.mark.parametrize("field, value", [
        ("roughness", 1.5),
        ("roughness", -0.1),
        ("erosion_intensity", 2.0),
        ("gravity", 0.0),
        ("terrain_scale", -1.0),
        ("noise_frequency", 0.0),
        ("resolution", 8),
        ("resolution", 100000),
        ("noise_octaves", 0),
        ("seed", -1),
        ("body_type", "asteroid"),
    ])
    def test_rejects_out_of_range(self, field, value):
        with pytest.raises(ConfigurationError):
            PlanetConfig(name="bad", **{field: value})

    @pytest.mark.parametrize("field, value", [
        ("roughness", "high"),
        ("gravity", None),
        ("resolution", True),
        ("seed", "42"),
        ("has_water", "yes"),
    ])
    def test_rejects_wrong_types(self, field, value):
        with pytest.raises(ConfigurationError):
            PlanetConfig(name="bad", **{field: value})

    def test_rejects_empty_name(self):
        with pytest.raises(ConfigurationError):
            PlanetConfig(name="")

    def test_is_frozen(self):
        planet = PlanetConfig(name="fixed")
        with pytest.raises(AttributeError):
            planet.roughness = 0.9

    def test_replace_revalidates(self):
        planet = PlanetConfig(name="fixed")
        assert planet.replace(roughness=0.9).roughness == 0.9
        with pytest.raises(ConfigurationError):
            planet.replace(roughness=9.0)


class TestDerivedFlags:
    def test_earth_like(self):
        assert PLANET_CONFIGS["earth"].is_earth_like
        assert not PLANET_CONFIGS["mars"].is_earth_like

    def test_craters_only_on_airless_bodies(self):
        assert PLANET_CONFIGS["moon"].has_craters
        assert PLANET_CONFIGS["mercury"].has_craters
        assert not PLANET_CONFIGS["earth"].has_craters
        assert not PLANET_CONFIGS["venus"].has_craters


class TestFromDict:
    def test_camel_case_keys(self):
        planet = PlanetConfig.from_dict({
            "type": "dwarf",
            "hasWater": True,
            "erosionIntensity": 0.25,
            "terrainScale": 0.5,
        }, name="ceres")
        assert planet.name == "ceres"
        assert planet.body_type == "dwarf"
        assert planet.has_water
        assert planet.erosion_intensity == 0.25
        assert planet.terrain_scale == 0.5

    def test_rejects_non_mapping(self):
        with pytest.raises(ConfigurationError):
            PlanetConfig.from_dict(["earth"], name="earth")

    def test_unknown_key(self):
        with pytest.raises(ConfigurationError):
            PlanetConfig.from_dict({"name": "x", "magnetosphere": True})


class TestPlanetTable:
    def test_all_bodies_present(self):
        assert set(get_all_planet_names()) == {
            "mercury", "venus", "earth", "mars", "moon", "pluto", "eris", "makemake", "haumea",
        }

    def test_lookup_is_case_insensitive(self):
        assert get_planet_config("Earth") is PLANET_CONFIGS["earth"]

    def test_unknown_planet(self):
        with pytest.raises(ConfigurationError, match="Known planets"):
            get_planet_config("vulcan")

    def test_overrides(self):
        planet = get_planet_config("mars", {"resolution": 64, "roughness": 0.1})
        assert planet.resolution == 64
        assert planet.roughness == 0.1
        assert planet.name == "mars"
        assert PLANET_CONFIGS["mars"].roughness == 0.6

    def test_invalid_override(self):
        with pytest.raises(ConfigurationError):
            get_planet_config("earth", {"roughness": 3.0})

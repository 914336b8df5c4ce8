# terrain_generator/planets.py

"""
================================================================================
PLANET CONFIGURATION
================================================================================
Immutable per-planet input records and the built-in planet table.

Data Contract:
---------------
- PlanetConfig: frozen dataclass, validated on construction. Loaded once and
  read-only for the whole pipeline run.
- get_planet_config(name, overrides): lookup by name (case-insensitive) with
  optional field overrides.
- Side Effects: None.
- Invariants: Every PlanetConfig instance has in-range parameters and a
  concrete seed (derived from its name when not given).
================================================================================
"""

import dataclasses
import re
from dataclasses import dataclass
from typing import Optional

from . import config as DEFAULTS
from .errors import ConfigurationError

BODY_TYPES = ("terrestrial", "dwarf", "gas-giant", "ice-giant")
MAX_SEED = 2**31 - 1


def seed_from_name(name: str) -> int:
    """Deterministic 31-bit seed from a planet name (32-bit string hash)."""
    h = 0
    for char in name:
        h = ((h << 5) - h + ord(char)) & 0xFFFFFFFF
    # Reinterpret as a signed 32-bit integer before taking the magnitude.
    if h >= 2**31:
        h -= 2**32
    return min(abs(h), MAX_SEED)


@dataclass(frozen=True)
class PlanetConfig:
    name: str
    body_type: str = "terrestrial"
    gravity: float = 9.81
    has_atmosphere: bool = False
    has_water: bool = False
    temperature: float = 288.0  # Kelvin
    has_biomes: bool = False

    # Terrain generation parameters
    terrain_scale: float = 1.0  # Vertical scale multiplier
    roughness: float = 0.5  # 0-1, how rough/smooth the terrain
    erosion_intensity: float = 0.0  # 0-1, how much erosion to apply

    noise_frequency: float = DEFAULTS.DEFAULT_NOISE_FREQUENCY
    noise_octaves: int = DEFAULTS.DEFAULT_NOISE_OCTAVES
    noise_persistence: float = DEFAULTS.DEFAULT_NOISE_PERSISTENCE
    noise_lacunarity: float = DEFAULTS.DEFAULT_NOISE_LACUNARITY

    resolution: int = DEFAULTS.DEFAULT_RESOLUTION
    seed: Optional[int] = None

    def __post_init__(self):
        if not self.name or not isinstance(self.name, str):
            raise ConfigurationError("Planet name must be a non-empty string")
        for field in _NUMERIC_FIELDS:
            _check_number(self.name, field, getattr(self, field))
        if self.seed is not None:
            _check_number(self.name, "seed", self.seed)
        for field in _FLAG_FIELDS:
            value = getattr(self, field)
            if not isinstance(value, bool):
                raise ConfigurationError(f"{self.name}: {field} must be true or false, got {value!r}")
        if self.body_type not in BODY_TYPES:
            raise ConfigurationError(
                f"{self.name}: body_type must be one of {BODY_TYPES}, got '{self.body_type}'"
            )
        _check_range(self.name, "roughness", self.roughness, 0.0, 1.0)
        _check_range(self.name, "erosion_intensity", self.erosion_intensity, 0.0, 1.0)
        _check_range(self.name, "noise_persistence", self.noise_persistence, 0.0, 1.0)
        _check_positive(self.name, "gravity", self.gravity)
        _check_positive(self.name, "temperature", self.temperature)
        _check_positive(self.name, "terrain_scale", self.terrain_scale)
        _check_positive(self.name, "noise_frequency", self.noise_frequency)
        _check_positive(self.name, "noise_lacunarity", self.noise_lacunarity)
        if int(self.noise_octaves) != self.noise_octaves or not 1 <= self.noise_octaves <= 16:
            raise ConfigurationError(f"{self.name}: noise_octaves must be an integer in [1, 16]")
        if int(self.resolution) != self.resolution or not (
            DEFAULTS.MIN_RESOLUTION <= self.resolution <= DEFAULTS.MAX_RESOLUTION
        ):
            raise ConfigurationError(
                f"{self.name}: resolution must be an integer in "
                f"[{DEFAULTS.MIN_RESOLUTION}, {DEFAULTS.MAX_RESOLUTION}], got {self.resolution}"
            )

        # The dataclass is frozen, so derived fields go through object.__setattr__.
        if self.seed is None:
            object.__setattr__(self, "seed", seed_from_name(self.name))
        elif int(self.seed) != self.seed or not 0 <= self.seed <= MAX_SEED:
            raise ConfigurationError(f"{self.name}: seed must be an integer in [0, {MAX_SEED}]")
        object.__setattr__(self, "noise_octaves", int(self.noise_octaves))
        object.__setattr__(self, "resolution", int(self.resolution))
        object.__setattr__(self, "seed", int(self.seed))

    @property
    def is_earth_like(self) -> bool:
        return self.has_atmosphere and self.has_water and self.has_biomes

    @property
    def has_craters(self) -> bool:
        """Airless, non-Earth-like bodies keep their impact record."""
        return not self.has_atmosphere and not self.is_earth_like

    def replace(self, **changes) -> "PlanetConfig":
        return dataclasses.replace(self, **changes)

    @classmethod
    def from_dict(cls, data: dict, name: Optional[str] = None) -> "PlanetConfig":
        """
        Builds a config from a JSON-style mapping. Accepts snake_case field
        names and the camelCase names used by the renderer's metadata.
        """
        kwargs = _normalise_keys(data)
        if name is not None:
            kwargs.setdefault("name", name)
        return cls(**kwargs)


_NUMERIC_FIELDS = (
    "gravity", "temperature", "terrain_scale", "roughness", "erosion_intensity",
    "noise_frequency", "noise_octaves", "noise_persistence", "noise_lacunarity", "resolution",
)
_FLAG_FIELDS = ("has_atmosphere", "has_water", "has_biomes")


def _check_number(planet: str, field: str, value):
    # bool subclasses int; reject it here.
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ConfigurationError(f"{planet}: {field} must be a number, got {value!r}")


def _check_range(planet: str, field: str, value: float, lo: float, hi: float):
    if not lo <= value <= hi:
        raise ConfigurationError(f"{planet}: {field} must be in [{lo}, {hi}], got {value}")


def _check_positive(planet: str, field: str, value: float):
    if not value > 0:
        raise ConfigurationError(f"{planet}: {field} must be positive, got {value}")


_KEY_ALIASES = {
    "type": "body_type",
    "temperature_k": "temperature",
}


def _normalise_keys(data: dict) -> dict:
    if not isinstance(data, dict):
        raise ConfigurationError(f"Planet configuration must be a mapping, got {type(data).__name__}")
    field_names = {f.name for f in dataclasses.fields(PlanetConfig)}
    kwargs = {}
    for key, value in data.items():
        snake = re.sub(r"(?<!^)(?=[A-Z])", "_", key).lower()
        snake = _KEY_ALIASES.get(snake, snake)
        if snake not in field_names:
            raise ConfigurationError(f"Unknown planet configuration key '{key}'")
        kwargs[snake] = value
    return kwargs


# --- Built-in planet table ---
# Physical values follow the renderer's planet data; terrain parameters are
# tuned per body.
PLANET_CONFIGS = {
    "mercury": PlanetConfig(
        name="mercury", body_type="terrestrial", gravity=3.7, temperature=440,
        terrain_scale=0.5, roughness=0.4, erosion_intensity=0.0,  # No atmosphere = no erosion
    ),
    "venus": PlanetConfig(
        name="venus", body_type="terrestrial", gravity=8.87, has_atmosphere=True, temperature=737,
        terrain_scale=0.8, roughness=0.5, erosion_intensity=0.3,
    ),
    "earth": PlanetConfig(
        name="earth", body_type="terrestrial", gravity=9.81, has_atmosphere=True, has_water=True,
        temperature=288, has_biomes=True,
        terrain_scale=1.5, roughness=0.7, erosion_intensity=0.8,
    ),
    "mars": PlanetConfig(
        name="mars", body_type="terrestrial", gravity=3.71, has_atmosphere=True, temperature=210,
        terrain_scale=2.0, roughness=0.6, erosion_intensity=0.2,  # Ancient water erosion
    ),
    "moon": PlanetConfig(
        name="moon", body_type="terrestrial", gravity=1.62, temperature=250,
        terrain_scale=0.6, roughness=0.5, erosion_intensity=0.0,
    ),
    "pluto": PlanetConfig(
        name="pluto", body_type="dwarf", gravity=0.62, has_atmosphere=True, has_water=True,
        temperature=44, terrain_scale=0.7, roughness=0.4, erosion_intensity=0.1,
    ),
    "eris": PlanetConfig(
        name="eris", body_type="dwarf", gravity=0.82, has_water=True, temperature=42,
        terrain_scale=0.5, roughness=0.3, erosion_intensity=0.0,
    ),
    "makemake": PlanetConfig(
        name="makemake", body_type="dwarf", gravity=0.5, has_water=True, temperature=40,
        terrain_scale=0.4, roughness=0.3, erosion_intensity=0.0,
    ),
    "haumea": PlanetConfig(
        name="haumea", body_type="dwarf", gravity=0.44, has_water=True, temperature=32,
        terrain_scale=0.3, roughness=0.2, erosion_intensity=0.0,  # Very smooth due to rapid rotation
    ),
}


def get_all_planet_names() -> list:
    return list(PLANET_CONFIGS.keys())


def get_planet_config(name: str, overrides: Optional[dict] = None) -> PlanetConfig:
    """
    Returns the built-in config for a planet, with optional overrides applied.
    Raises ConfigurationError for unknown names or invalid overrides.
    """
    key = name.strip().lower()
    if key not in PLANET_CONFIGS:
        raise ConfigurationError(
            f"Unknown planet '{name}'. Known planets: {', '.join(get_all_planet_names())}"
        )
    planet = PLANET_CONFIGS[key]
    if overrides:
        changes = _normalise_keys(overrides)
        changes.pop("name", None)
        planet = planet.replace(**changes)
    return planet

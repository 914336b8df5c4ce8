# bake_terrain.py

"""
================================================================================
OFFLINE TERRAIN BAKER SCRIPT
================================================================================
This script is a command-line tool for generating the height, normal and
hydrology artifacts of one or more planets ("baking"). This is a slow,
one-time process; the renderer only loads the resulting files.

Each planet is generated independently. A failure in one planet is
reported and does not stop the others; the exit status is 1 if any planet
failed.

Usage:
    python bake_terrain.py                      # all known planets
    python bake_terrain.py earth mars --resolution 512 --workers 2
    python bake_terrain.py --config path/to/terrain_config.json
================================================================================
"""
import argparse
import json
import logging
import multiprocessing
import os
import sys
import time

from tqdm import tqdm

from terrain_generator import config as DEFAULTS
from terrain_generator.errors import ArtifactWriteError, ConfigurationError
from terrain_generator.exporter import TerrainExporter
from terrain_generator.generator import TerrainGenerator
from terrain_generator.planets import PLANET_CONFIGS, PlanetConfig, get_planet_config

LOG_FORMAT = '%(asctime)s - %(levelname)s - %(message)s'

# --- Global variables for worker processes ---
worker_settings = {}
worker_output_dir = DEFAULTS.DEFAULT_OUTPUT_DIR
worker_retries = DEFAULTS.DEFAULT_EXPORT_RETRIES


def init_worker(settings: dict, output_dir: str, retries: int, log_level: int):
    """Initializes the global state for each worker process."""
    global worker_settings, worker_output_dir, worker_retries
    logging.basicConfig(level=log_level, format=LOG_FORMAT, stream=sys.stdout)
    worker_settings = settings
    worker_output_dir = output_dir
    worker_retries = retries


def export_with_retries(exporter: TerrainExporter, planet: PlanetConfig, result, retries: int,
                        logger: logging.Logger) -> str:
    """
    Writes a planet's artifacts, retrying failed writes up to `retries` more
    times. The generation result is reused; nothing is regenerated.
    """
    retries = max(0, retries)
    for attempt in range(retries + 1):
        try:
            return exporter.export(planet, result)
        except ArtifactWriteError as e:
            if attempt == retries:
                raise
            logger.warning(f"{planet.name}: {e}. Retrying export ({attempt + 1}/{retries})...")


def process_planet(planet: PlanetConfig) -> dict:
    """
    Generates and SAVES a single planet. Returns only a small report dict,
    never raises.
    """
    logger = logging.getLogger(f"Worker-{os.getpid()}")
    report = {'planet': planet.name, 'success': False, 'error': None, 'time': 0.0, 'output_dir': None}
    start_time = time.perf_counter()
    try:
        result = TerrainGenerator(planet, logger, config=worker_settings).generate()
        exporter = TerrainExporter(worker_output_dir, logger)
        report['output_dir'] = export_with_retries(exporter, planet, result, worker_retries, logger)
        report['success'] = True
    except Exception as e:
        # Use exc_info=True to log the full traceback from the worker process
        logger.critical(f"Error generating {planet.name}: {e}", exc_info=True)
        report['error'] = f"{type(e).__name__}: {e}"
    report['time'] = time.perf_counter() - start_time
    return report


def load_cli_config(config_path: str) -> tuple:
    """
    Reads a JSON config file.

    Returns:
        tuple[dict, dict]: The 'generation_parameters' settings overrides and
        the 'planets' mapping of planet name -> field overrides.
    """
    try:
        with open(config_path, 'r') as f:
            config = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigurationError(f"Failed to load or parse config file '{config_path}': {e}") from e
    if not isinstance(config, dict):
        raise ConfigurationError(f"Config file '{config_path}' must contain a JSON object")
    settings, planets = config.get('generation_parameters', {}), config.get('planets', {})
    for section, value in (('generation_parameters', settings), ('planets', planets)):
        if not isinstance(value, dict):
            raise ConfigurationError(f"'{section}' in config file '{config_path}' must be a JSON object")
    return settings, planets


def resolve_planets(names: list, planet_overrides: dict, resolution: int = None) -> tuple:
    """
    Looks up every requested planet before any generation starts.
    Planets only present in `planet_overrides` are built from it in full.

    Returns:
        tuple[list[PlanetConfig], dict]: Resolved planets, and a mapping of
        rejected name -> reason.
    """
    overrides_by_name = {name.lower(): values for name, values in planet_overrides.items()}
    if not names:
        names = list(PLANET_CONFIGS) + [n for n in overrides_by_name if n not in PLANET_CONFIGS]

    planets, rejected = [], {}
    for name in names:
        key = name.lower()
        try:
            if key in PLANET_CONFIGS:
                planet = get_planet_config(key, overrides_by_name.get(key))
            elif key in overrides_by_name:
                planet = PlanetConfig.from_dict(overrides_by_name[key], name=key)
            else:
                planet = get_planet_config(key)  # Raises with the list of known names
            if resolution is not None:
                planet = planet.replace(resolution=resolution)
        except ConfigurationError as e:
            rejected[name] = str(e)
            continue
        planets.append(planet)
    return planets, rejected


def bake_terrains(planets: list, settings: dict, output_dir: str, workers: int, retries: int,
                  logger: logging.Logger) -> list:
    """Runs every planet, in a process pool when workers > 1."""
    if workers <= 1 or len(planets) <= 1:
        init_worker(settings, output_dir, retries, logging.getLogger().getEffectiveLevel())
        return [process_planet(planet) for planet in tqdm(planets, desc="Baking Terrains")]

    workers = min(workers, len(planets))
    logger.info(f"Using {workers} worker processes.")
    init_args = (settings, output_dir, retries, logging.getLogger().getEffectiveLevel())
    reports = []
    with multiprocessing.Pool(processes=workers, initializer=init_worker, initargs=init_args) as pool:
        results_iterator = pool.imap_unordered(process_planet, planets)
        for report in tqdm(results_iterator, total=len(planets), desc="Baking Terrains"):
            reports.append(report)
    return reports


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Offline planetary terrain baker.")
    parser.add_argument(
        "planets",
        nargs="*",
        help="Names of the planets to generate (default: all known planets)."
    )
    parser.add_argument("--resolution", type=int, default=None,
                        help=f"Grid resolution in cells per side (default: {DEFAULTS.DEFAULT_RESOLUTION}).")
    parser.add_argument("--output-dir", type=str, default=DEFAULTS.DEFAULT_OUTPUT_DIR,
                        help="Directory that receives one sub-directory per planet.")
    parser.add_argument("--config", type=str, default=None,
                        help="Path to a JSON file with 'generation_parameters' and 'planets' overrides.")
    parser.add_argument("--workers", type=int, default=max(1, multiprocessing.cpu_count() - 1),
                        help="Number of worker processes (1 runs inline).")
    parser.add_argument("--retries", type=int, default=DEFAULTS.DEFAULT_EXPORT_RETRIES,
                        help="Extra attempts at writing a planet's files after a write failure.")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging.")
    return parser.parse_args(argv)


def main(argv=None) -> int:
    args = parse_args(argv)

    # 1. --- Setup Logging ---
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format=LOG_FORMAT,
        stream=sys.stdout
    )
    logger = logging.getLogger("TerrainBaker")

    # 2. --- Load Configuration ---
    settings, planet_overrides = {}, {}
    if args.config:
        logger.info(f"Loading configuration from: {args.config}")
        try:
            settings, planet_overrides = load_cli_config(args.config)
        except ConfigurationError as e:
            logger.critical(str(e))
            return 1

    # 3. --- Resolve planets (fail fast on bad names) ---
    planets, rejected = resolve_planets(args.planets, planet_overrides, args.resolution)
    for name, reason in rejected.items():
        logger.error(f"Skipping '{name}': {reason}")
    total = len(planets) + len(rejected)
    logger.info(f"Generating terrains for {len(planets)} planet(s): {', '.join(p.name for p in planets)}")

    # 4. --- Main Baking Loop ---
    start_time = time.perf_counter()
    reports = bake_terrains(planets, settings, args.output_dir, args.workers, args.retries, logger)
    total_time = time.perf_counter() - start_time

    # 5. --- Summary ---
    reports.sort(key=lambda r: r['planet'])
    successes = sum(1 for r in reports if r['success'])
    logger.info("--- Generation Summary ---")
    for report in reports:
        if report['success']:
            logger.info(f"  OK    {report['planet']:<10} {report['time']:7.2f}s -> {report['output_dir']}")
        else:
            logger.error(f"  FAIL  {report['planet']:<10} {report['time']:7.2f}s {report['error']}")
    for name in rejected:
        logger.error(f"  FAIL  {name:<10} (not generated)")
    logger.info(f"  Successful: {successes}/{total}")
    logger.info(f"  Failed: {total - successes}/{total}")
    logger.info(f"  Total time: {total_time:.2f}s")
    logger.info(f"Output directory: {args.output_dir}")

    return 0 if successes == total and total > 0 else 1


# --- Command-Line Interface ---
if __name__ == "__main__":
    sys.exit(main())

# terrain_generator/errors.py

"""
================================================================================
PIPELINE ERROR TYPES
================================================================================
Every failure the terrain pipeline reports on purpose derives from
TerrainGenerationError, so a batch runner can isolate one planet's failure
from the others with a single except clause.

- ConfigurationError: bad input, raised before any simulation starts.
- NumericInstabilityError: NaN/inf found in a grid after a stage.
- FlowRoutingError: the flow-direction graph is not a DAG.
- ArtifactWriteError: writing a finished artifact failed. The in-memory
  result is still valid and the write can be retried on its own.
================================================================================
"""


class TerrainGenerationError(Exception):
    """Base class for all terrain pipeline errors."""


class ConfigurationError(TerrainGenerationError, ValueError):
    """Unknown planet name or out-of-range parameter."""


class NumericInstabilityError(TerrainGenerationError):
    """A grid contains non-finite values after a pipeline stage."""

    def __init__(self, stage: str, bad_cells: int):
        self.stage = stage
        self.bad_cells = bad_cells
        super().__init__(f"{bad_cells} non-finite cell(s) detected after stage '{stage}'")


class FlowRoutingError(TerrainGenerationError):
    """Flow directions contain a cycle, so accumulation cannot be ordered."""

    def __init__(self, processed: int, total: int):
        self.processed = processed
        self.total = total
        super().__init__(
            f"Flow graph is not acyclic: topological order reached {processed} of {total} cells"
        )


class ArtifactWriteError(TerrainGenerationError, OSError):
    """An output file could not be written."""

    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Failed to write '{path}': {reason}")

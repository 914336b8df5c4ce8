# terrain_generator/hydrology.py

"""
================================================================================
WATERSHED & HYDROLOGY ANALYSIS
================================================================================
Depression filling, D8 flow routing, flow accumulation, river extraction,
valley carving, water-body detection and coastline detection over a single
HeightGrid.

Data Contract:
---------------
- Inputs:
    - A 2D float height grid (never modified) and the hydrology settings.
- Outputs:
    - WatershedAnalyzer.run(): (hydrology-adjusted grid, WaterSystem).
    - Each stage is also exposed as a function for standalone use.
- Side Effects: Logs progress through the given logger.
- Invariants:
    - Filled heights are >= the input heights; heights already above the
      fill level are untouched.
    - Following flow directions from any cell ends at a boundary cell;
      the flow graph is acyclic (checked, FlowRoutingError otherwise).
    - accumulation[c] == 1 + sum(accumulation[u] for every u flowing into c).
    - Consecutive river points are 8-connected and every point's flow is
      >= the river threshold.
================================================================================
"""

import logging
from dataclasses import dataclass, field, replace

import numpy as np
from numba import njit
from scipy import ndimage

from . import config as DEFAULTS
from .errors import ConfigurationError, FlowRoutingError
from .grid import (
    D8_DISTANCE,
    D8_DX,
    D8_DY,
    NO_FLOW,
    as_height_grid,
    require_finite,
    require_square,
)

logger = logging.getLogger(__name__)

# Water mask values
MASK_LAND = 0
MASK_RIVER = 1
MASK_LAKE = 2
MASK_OCEAN = 3

_EIGHT_CONNECTED = np.ones((3, 3), dtype=bool)


# --- Result types ---

@dataclass(frozen=True)
class RiverPoint:
    x: int
    y: int
    flow: float  # Flow accumulation value
    width: float  # River width based on flow


@dataclass
class RiverPath:
    id: int
    points: list
    total_length: float
    max_flow: float

    @property
    def source(self) -> tuple:
        return (self.points[0].x, self.points[0].y)

    @property
    def mouth(self) -> tuple:
        return (self.points[-1].x, self.points[-1].y)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "source": list(self.source),
            "mouth": list(self.mouth),
            "totalLength": self.total_length,
            "maxFlow": self.max_flow,
            "points": [[p.x, p.y, p.flow, p.width] for p in self.points],
        }


@dataclass
class WaterBody:
    id: int
    kind: str  # 'lake' or 'ocean'
    water_level: float
    area: int  # Number of cells
    min_x: int
    min_y: int
    max_x: int
    max_y: int
    coastline: list = field(default_factory=list)  # [(x, y), ...]

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "type": self.kind,
            "waterLevel": self.water_level,
            "area": self.area,
            "bounds": [self.min_x, self.min_y, self.max_x, self.max_y],
            "coastlinePoints": [list(p) for p in self.coastline],
        }


@dataclass
class WaterSystem:
    rivers: list
    water_bodies: list
    water_mask: np.ndarray  # uint8: 0 land, 1 river, 2 lake, 3 ocean
    flow_accumulation: np.ndarray
    flow_directions: np.ndarray
    sea_level: float

    def summary(self) -> dict:
        lakes = sum(1 for body in self.water_bodies if body.kind == "lake")
        return {
            "seaLevel": self.sea_level,
            "rivers": len(self.rivers),
            "lakes": lakes,
            "oceans": len(self.water_bodies) - lakes,
            "waterCoverage": float(np.mean(self.water_mask >= MASK_LAKE)),
            "totalRiverLength": float(sum(river.total_length for river in self.rivers)),
        }

    def to_dict(self) -> dict:
        return {
            "seaLevel": self.sea_level,
            "rivers": [river.to_dict() for river in self.rivers],
            "waterBodies": [body.to_dict() for body in self.water_bodies],
        }


# --- Index-based binary min-heap (ties broken by cell index) ---

@njit
def _heap_less(height_a, index_a, height_b, index_b):
    return height_a < height_b or (height_a == height_b and index_a < index_b)


@njit
def _heap_push(heap_h, heap_i, size, height, index):
    pos = size
    heap_h[pos] = height
    heap_i[pos] = index
    while pos > 0:
        parent = (pos - 1) // 2
        if not _heap_less(heap_h[pos], heap_i[pos], heap_h[parent], heap_i[parent]):
            break
        heap_h[pos], heap_h[parent] = heap_h[parent], heap_h[pos]
        heap_i[pos], heap_i[parent] = heap_i[parent], heap_i[pos]
        pos = parent
    return size + 1


@njit
def _heap_pop(heap_h, heap_i, size):
    top_h = heap_h[0]
    top_i = heap_i[0]
    size -= 1
    if size > 0:
        heap_h[0] = heap_h[size]
        heap_i[0] = heap_i[size]
        pos = 0
        while True:
            left = 2 * pos + 1
            right = left + 1
            smallest = pos
            if left < size and _heap_less(heap_h[left], heap_i[left], heap_h[smallest], heap_i[smallest]):
                smallest = left
            if right < size and _heap_less(heap_h[right], heap_i[right], heap_h[smallest], heap_i[smallest]):
                smallest = right
            if smallest == pos:
                break
            heap_h[pos], heap_h[smallest] = heap_h[smallest], heap_h[pos]
            heap_i[pos], heap_i[smallest] = heap_i[smallest], heap_i[pos]
            pos = smallest
    return top_h, top_i, size


# --- Numba kernels ---

@njit
def _priority_flood(heights):
    rows, cols = heights.shape
    n = rows * cols
    filled = heights.copy()
    visited = np.zeros(n, dtype=np.bool_)
    # Direction from each cell to the cell it was flooded from.
    drainage = np.full((rows, cols), NO_FLOW, dtype=np.int8)

    # Every cell is pushed exactly once, so n slots are enough.
    heap_h = np.empty(n, dtype=np.float64)
    heap_i = np.empty(n, dtype=np.int64)
    size = 0

    # Initialize with edge cells
    for y in range(rows):
        for x in range(cols):
            if y == 0 or y == rows - 1 or x == 0 or x == cols - 1:
                index = y * cols + x
                visited[index] = True
                size = _heap_push(heap_h, heap_i, size, filled[y, x], index)

    # Process cells in order of increasing height
    while size > 0:
        height, index, size = _heap_pop(heap_h, heap_i, size)
        x = index % cols
        y = index // cols
        for d in range(8):
            nx = x + D8_DX[d]
            ny = y + D8_DY[d]
            if nx < 0 or nx >= cols or ny < 0 or ny >= rows:
                continue
            n_index = ny * cols + nx
            if visited[n_index]:
                continue
            visited[n_index] = True
            if filled[ny, nx] < height:
                filled[ny, nx] = height
            drainage[ny, nx] = (d + 4) % 8
            size = _heap_push(heap_h, heap_i, size, filled[ny, nx], n_index)

    return filled, drainage


@njit
def _d8_directions(heights, drainage):
    rows, cols = heights.shape
    directions = np.full((rows, cols), NO_FLOW, dtype=np.int8)
    for y in range(rows):
        for x in range(cols):
            current = heights[y, x]
            steepest_dir = NO_FLOW
            steepest_slope = 0.0
            for d in range(8):
                nx = x + D8_DX[d]
                ny = y + D8_DY[d]
                if nx < 0 or nx >= cols or ny < 0 or ny >= rows:
                    continue
                # Diagonal cells are further away
                slope = (current - heights[ny, nx]) / D8_DISTANCE[d]
                if slope > steepest_slope:
                    steepest_slope = slope
                    steepest_dir = d
            if steepest_dir == NO_FLOW:
                # Flats left by filling drain the way they were flooded.
                steepest_dir = drainage[y, x]
            directions[y, x] = steepest_dir
    return directions


@njit
def _downstream_targets(directions):
    rows, cols = directions.shape
    targets = np.full(rows * cols, -1, dtype=np.int64)
    for y in range(rows):
        for x in range(cols):
            d = directions[y, x]
            if d < 0:
                continue
            nx = x + D8_DX[d]
            ny = y + D8_DY[d]
            if 0 <= nx < cols and 0 <= ny < rows:
                targets[y * cols + x] = ny * cols + nx
    return targets


@njit
def _topological_accumulation(targets):
    n = targets.shape[0]
    accumulation = np.ones(n, dtype=np.float64)
    in_degree = np.zeros(n, dtype=np.int32)
    for index in range(n):
        if targets[index] >= 0:
            in_degree[targets[index]] += 1

    # Queue cells with no upstream (sources) - pre-allocated to max size
    queue = np.empty(n, dtype=np.int64)
    head = 0
    tail = 0
    for index in range(n):
        if in_degree[index] == 0:
            queue[tail] = index
            tail += 1

    while head < tail:
        index = queue[head]
        head += 1
        target = targets[index]
        if target >= 0:
            accumulation[target] += accumulation[index]
            in_degree[target] -= 1
            if in_degree[target] == 0:
                queue[tail] = target
                tail += 1

    return accumulation, head


# --- Stages ---

def priority_flood(grid):
    """
    Fills every depression so each cell has a non-increasing path to the
    boundary. Returns (filled grid, drainage directions) where drainage holds,
    per interior cell, the D8 direction towards the cell it was flooded from.
    """
    heights = require_finite(as_height_grid(grid), "depression filling")
    return _priority_flood(heights)


def fill_depressions(grid) -> np.ndarray:
    return priority_flood(grid)[0]


def flow_directions(grid, drainage=None) -> np.ndarray:
    """
    D8 direction of steepest descent per cell (int8, NO_FLOW for none).
    Cells with no lower neighbour fall back to `drainage` when given.
    """
    heights = as_height_grid(grid)
    if drainage is None:
        drainage = np.full(heights.shape, NO_FLOW, dtype=np.int8)
    elif drainage.shape != heights.shape:
        raise ConfigurationError("drainage must have the same shape as the grid")
    return _d8_directions(heights, np.ascontiguousarray(drainage, dtype=np.int8))


def downstream_targets(directions) -> np.ndarray:
    """Flat index of each cell's downstream cell, -1 for none."""
    return _downstream_targets(np.ascontiguousarray(directions, dtype=np.int8))


def flow_accumulation(directions) -> np.ndarray:
    """
    Upstream contributing area per cell, in cells (itself included).
    Raises FlowRoutingError if the directions contain a cycle.
    """
    directions = np.ascontiguousarray(directions, dtype=np.int8)
    accumulation, processed = _topological_accumulation(_downstream_targets(directions))
    if processed != accumulation.shape[0]:
        raise FlowRoutingError(int(processed), int(accumulation.shape[0]))
    return accumulation.reshape(directions.shape)


def river_width(flow: float, threshold: float, max_width: float = DEFAULTS.MAX_RIVER_WIDTH) -> float:
    return float(min(max_width, 1.0 + np.log2(flow / threshold) * 2.0))


def extract_rivers(accumulation, directions, threshold: float = DEFAULTS.RIVER_THRESHOLD,
                   min_length: int = DEFAULTS.MIN_RIVER_LENGTH,
                   max_width: float = DEFAULTS.MAX_RIVER_WIDTH) -> list:
    """
    Traces rivers through cells with accumulation >= threshold.

    Candidates are visited by descending accumulation, so major rivers claim
    their cells before their tributaries. Each unclaimed candidate is first
    followed upstream to the head of its main stem, always taking the
    highest-flow unclaimed tributary (on a tie, the one flowing straight
    on). The river is then traced downstream from there until the flow drops
    below the threshold, the flow ends, or a claimed cell is reached. Traces
    shorter than min_length are discarded.
    """
    if threshold <= 0:
        raise ConfigurationError(f"river threshold must be positive, got {threshold}")
    rows, cols = accumulation.shape
    flat_acc = np.asarray(accumulation, dtype=np.float64).ravel()
    flat_dir = np.asarray(directions).ravel()
    targets = downstream_targets(directions)
    claimed = np.zeros(flat_acc.shape[0], dtype=bool)

    candidates = np.flatnonzero(flat_acc >= threshold)
    candidates = candidates[np.argsort(-flat_acc[candidates], kind="stable")]

    def climb_to_head(start):
        current = start
        while True:
            x, y = current % cols, current // cols
            best, best_key = -1, None
            for d in range(8):
                nx, ny = x + D8_DX[d], y + D8_DY[d]
                if nx < 0 or nx >= cols or ny < 0 or ny >= rows:
                    continue
                upstream = ny * cols + nx
                if targets[upstream] != current or claimed[upstream] or flat_acc[upstream] < threshold:
                    continue
                # Equal flows: prefer the one continuing in the same direction.
                key = (flat_acc[upstream], bool(flat_dir[upstream] == flat_dir[current]))
                if best_key is None or key > best_key:
                    best, best_key = upstream, key
            if best < 0:
                return current
            current = best

    rivers = []
    for start in candidates:
        if claimed[start]:
            continue

        points = []
        current = climb_to_head(int(start))
        while current >= 0 and not claimed[current]:
            flow = flat_acc[current]
            if flow < threshold:
                break
            claimed[current] = True
            points.append(RiverPoint(
                x=int(current % cols), y=int(current // cols),
                flow=float(flow), width=river_width(flow, threshold, max_width),
            ))
            current = targets[current]

        if len(points) >= min_length:
            total_length = 0.0
            for prev, point in zip(points, points[1:]):
                total_length += float(np.hypot(point.x - prev.x, point.y - prev.y))
            rivers.append(RiverPath(
                id=len(rivers),
                points=points,
                total_length=total_length,
                max_flow=max(p.flow for p in points),
            ))

    return rivers


def carve_river_valleys(grid, rivers: list, carve_depth: float = DEFAULTS.VALLEY_CARVE_DEPTH,
                        carve_width: float = DEFAULTS.VALLEY_CARVE_WIDTH) -> np.ndarray:
    """
    Cuts a V-shaped valley around every river point. Depth falls linearly
    from the centre to the carve radius and scales with the point's share of
    its river's peak flow. Heights never go below zero.
    """
    heights = as_height_grid(grid)
    rows, cols = heights.shape
    for river in rivers:
        for point in river.points:
            radius = max(1, int(np.ceil(point.width * carve_width / 4)))
            y0, y1 = max(0, point.y - radius), min(rows, point.y + radius + 1)
            x0, x1 = max(0, point.x - radius), min(cols, point.x + radius + 1)
            yy, xx = np.ogrid[y0:y1, x0:x1]
            dist = np.sqrt((xx - point.x) ** 2 + (yy - point.y) ** 2)
            inside = dist <= radius
            depth_factor = 1.0 - dist[inside] / radius
            carve = carve_depth * depth_factor * (point.flow / river.max_flow)
            window = heights[y0:y1, x0:x1]
            window[inside] = np.maximum(window[inside] - carve, 0.0)
    return heights


def detect_water_bodies(grid, sea_level: float = DEFAULTS.SEA_LEVEL,
                        min_cells: int = DEFAULTS.MIN_WATER_BODY_CELLS):
    """
    Flood-fills (8-connected) the cells at or below sea level. A component
    touching the grid boundary is an ocean, any other a lake. Components
    smaller than min_cells are dropped.

    Returns:
        tuple[list[WaterBody], np.ndarray]: The bodies (ids in raster order)
        and a per-cell body id map (-1 outside any kept body).
    """
    heights = np.asarray(grid, dtype=np.float64)
    labels, count = ndimage.label(heights <= sea_level, structure=_EIGHT_CONNECTED)
    body_lookup = np.full(count + 1, -1, dtype=np.int32)
    if count == 0:
        return [], body_lookup[labels]

    sizes = np.bincount(labels.ravel(), minlength=count + 1)
    touches_edge = np.zeros(count + 1, dtype=bool)
    touches_edge[np.concatenate([labels[0, :], labels[-1, :], labels[:, 0], labels[:, -1]])] = True
    slices = ndimage.find_objects(labels)

    bodies = []
    for label in range(1, count + 1):
        if sizes[label] < min_cells:
            continue
        ys, xs = slices[label - 1]
        body_lookup[label] = len(bodies)
        bodies.append(WaterBody(
            id=len(bodies),
            kind="ocean" if touches_edge[label] else "lake",
            water_level=float(sea_level),
            area=int(sizes[label]),
            min_x=xs.start, min_y=ys.start,
            max_x=xs.stop - 1, max_y=ys.stop - 1,
        ))

    return bodies, body_lookup[labels]


def build_water_mask(shape: tuple, rivers: list, bodies: list, body_map: np.ndarray) -> np.ndarray:
    mask = np.full(shape, MASK_LAND, dtype=np.uint8)
    for river in rivers:
        for point in river.points:
            mask[point.y, point.x] = MASK_RIVER
    if bodies:
        kinds = np.array([MASK_OCEAN if body.kind == "ocean" else MASK_LAKE for body in bodies], dtype=np.uint8)
        in_body = body_map >= 0
        mask[in_body] = kinds[body_map[in_body]]
    return mask


def detect_coastlines(water_mask: np.ndarray, body_map: np.ndarray, bodies: list) -> list:
    """
    Returns copies of `bodies` whose coastline lists hold every body cell with
    at least one land neighbour (8-connected).
    """
    near_land = ndimage.binary_dilation(water_mask == MASK_LAND, structure=_EIGHT_CONNECTED)
    ys, xs = np.nonzero(near_land & (body_map >= 0))
    ids = body_map[ys, xs]

    coastlines = {body.id: [] for body in bodies}
    for body_id, x, y in zip(ids.tolist(), xs.tolist(), ys.tolist()):
        coastlines[body_id].append((x, y))
    return [replace(body, coastline=coastlines[body.id]) for body in bodies]


class WatershedAnalyzer:
    """
    Runs the hydrology stages in order on its own copy of a grid:
    fill -> directions -> accumulation -> rivers -> carving -> water bodies
    -> coastlines.
    """

    def __init__(self, grid, sea_level: float = DEFAULTS.SEA_LEVEL,
                 river_threshold: float = DEFAULTS.RIVER_THRESHOLD,
                 min_river_length: int = DEFAULTS.MIN_RIVER_LENGTH,
                 valley_carve_depth: float = DEFAULTS.VALLEY_CARVE_DEPTH,
                 valley_carve_width: float = DEFAULTS.VALLEY_CARVE_WIDTH,
                 min_water_body_cells: int = DEFAULTS.MIN_WATER_BODY_CELLS,
                 max_river_width: float = DEFAULTS.MAX_RIVER_WIDTH,
                 logger: logging.Logger = logger):
        if river_threshold <= 0:
            raise ConfigurationError(f"river_threshold must be positive, got {river_threshold}")
        if min_river_length < 1 or min_water_body_cells < 1:
            raise ConfigurationError("min_river_length and min_water_body_cells must be >= 1")
        self.grid = require_finite(require_square(as_height_grid(grid)), "hydrology input")
        self.sea_level = sea_level
        self.river_threshold = river_threshold
        self.min_river_length = min_river_length
        self.valley_carve_depth = valley_carve_depth
        self.valley_carve_width = valley_carve_width
        self.min_water_body_cells = min_water_body_cells
        self.max_river_width = max_river_width
        self.logger = logger

    def run(self):
        """
        Returns:
            tuple[np.ndarray, WaterSystem]: The filled and carved grid, and
            the rivers, water bodies and flow fields derived from it.
        """
        self.logger.info("Generating water systems...")

        self.logger.info("  Step 1: Filling terrain depressions...")
        filled, drainage = priority_flood(self.grid)
        raised = int(np.count_nonzero(filled > self.grid))
        self.logger.debug(f"    Raised {raised} cell(s)")

        self.logger.info("  Step 2: Calculating flow directions...")
        directions = flow_directions(filled, drainage)

        self.logger.info("  Step 3: Calculating flow accumulation...")
        accumulation = flow_accumulation(directions)

        self.logger.info("  Step 4: Extracting river paths...")
        rivers = extract_rivers(accumulation, directions, self.river_threshold,
                                self.min_river_length, self.max_river_width)

        self.logger.info("  Step 5: Carving river valleys...")
        carved = require_finite(
            carve_river_valleys(filled, rivers, self.valley_carve_depth, self.valley_carve_width),
            "valley carving",
        )

        self.logger.info("  Step 6: Detecting water bodies...")
        bodies, body_map = detect_water_bodies(carved, self.sea_level, self.min_water_body_cells)
        water_mask = build_water_mask(carved.shape, rivers, bodies, body_map)

        self.logger.info("  Step 7: Detecting coastlines...")
        bodies = detect_coastlines(water_mask, body_map, bodies)

        self.logger.info(f"  Water systems complete: {len(rivers)} rivers, {len(bodies)} water bodies")
        water = WaterSystem(
            rivers=rivers,
            water_bodies=bodies,
            water_mask=water_mask,
            flow_accumulation=accumulation,
            flow_directions=directions,
            sea_level=float(self.sea_level),
        )
        return carved, water

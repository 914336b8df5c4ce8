"""Tests for the noise field synthesizer."""

import numpy as np
import pytest

from terrain_generator import noise
from terrain_generator.errors import ConfigurationError


@pytest.fixture
def table():
    return noise.make_permutation_table(42)


@pytest.fixture
def coords():
    ys, xs = np.mgrid[0:24, 0:24].astype(np.float64)
    return xs * 0.173, ys * 0.173


class TestPermutationTable:
    """Test the permutation table construction."""

    def test_table_is_doubled_permutation(self, table):
        assert table.shape == (512,)
        assert sorted(table[:256].tolist()) == list(range(256))
        assert np.array_equal(table[:256], table[256:])

    def test_same_seed_same_table(self):
        assert np.array_equal(noise.make_permutation_table(7), noise.make_permutation_table(7))

    def test_different_seed_different_table(self):
        assert not np.array_equal(noise.make_permutation_table(7), noise.make_permutation_table(8))


class TestNoiseVariants:
    """Test the fractal noise variants."""

    @pytest.mark.parametrize("func", [noise.fbm, noise.ridged, noise.billow, noise.turbulence, noise.domain_warped])
    def test_deterministic(self, table, coords, func):
        xs, ys = coords
        first = func(table, xs, ys)
        second = func(noise.make_permutation_table(42), xs, ys)
        assert np.array_equal(first, second)

    @pytest.mark.parametrize("func", [noise.fbm, noise.ridged, noise.billow, noise.turbulence, noise.domain_warped])
    def test_independent_of_evaluation_order(self, table, coords, func):
        """A single sample equals the same coordinate evaluated inside an array."""
        xs, ys = coords
        values = func(table, xs, ys)
        assert func(table, xs[5, 7], ys[5, 7]) == values[5, 7]
        assert np.array_equal(func(table, xs[::-1], ys[::-1]), values[::-1])

    def test_output_shape_matches_input(self, table, coords):
        xs, ys = coords
        assert noise.fbm(table, xs, ys).shape == xs.shape
        assert isinstance(noise.fbm(table, 0.5, 0.25), float)

    def test_fbm_is_zero_at_lattice_origin(self, table):
        assert noise.fbm(table, 0.0, 0.0) == 0.0

    def test_fbm_is_bounded(self, table, coords):
        xs, ys = coords
        values = noise.fbm(table, xs, ys)
        assert np.all(np.abs(values) <= 1.5)
        assert np.std(values) > 0.0

    def test_billow_and_turbulence_are_non_negative(self, table, coords):
        xs, ys = coords
        assert np.all(noise.billow(table, xs, ys) >= 0.0)
        assert np.all(noise.turbulence(table, xs, ys) >= 0.0)

    def test_ridged_is_non_negative(self, table, coords):
        xs, ys = coords
        assert np.all(noise.ridged(table, xs, ys) >= 0.0)

    def test_domain_warp_changes_the_field(self, table, coords):
        xs, ys = coords
        assert not np.allclose(noise.domain_warped(table, xs, ys), noise.fbm(table, xs, ys))

    def test_zero_warp_is_plain_fbm(self, table, coords):
        xs, ys = coords
        assert np.allclose(noise.domain_warped(table, xs, ys, warp_strength=0.0), noise.fbm(table, xs, ys))

    def test_rejects_zero_octaves(self, table):
        with pytest.raises(ConfigurationError):
            noise.fbm(table, 0.5, 0.5, octaves=0)


class TestCellular:
    """Test the Voronoi-distance noise used for craters."""

    def test_range(self, coords):
        xs, ys = coords
        values = noise.cellular(xs * 10, ys * 10, cell_size=10.0, seed=3)
        assert np.all(values >= 0.0)
        assert np.all(values <= 1.0)

    def test_peak_at_feature_point(self):
        cell_size = 10.0
        seed = 11
        # Feature point of cell (2, 3)
        point_x = (2 + noise._cell_hash(2, 3, seed, 0)) * cell_size
        point_y = (3 + noise._cell_hash(2, 3, seed, 1)) * cell_size
        assert noise.cellular(point_x, point_y, cell_size, seed) == pytest.approx(1.0)

    def test_deterministic_across_calls(self, coords):
        xs, ys = coords
        assert np.array_equal(noise.cellular(xs, ys, 2.0, 5), noise.cellular(xs, ys, 2.0, 5))

    def test_seed_moves_feature_points(self, coords):
        xs, ys = coords
        assert not np.array_equal(noise.cellular(xs, ys, 2.0, 5), noise.cellular(xs, ys, 2.0, 6))

    def test_negative_coordinates(self):
        value = noise.cellular(-35.5, -12.25, 10.0, 1)
        assert 0.0 <= value <= 1.0

    def test_rejects_non_positive_cell_size(self):
        with pytest.raises(ConfigurationError):
            noise.cellular(1.0, 1.0, cell_size=0.0)

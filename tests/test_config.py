"""
Tests for Configuration and Regions
"""

import pytest
import numpy as np

from seriesfmm.core import ExpansionConfig, Region
from seriesfmm.kernels import GaussianKernel


class TestExpansionConfig:
    """Test configuration validation and factories."""

    def test_defaults(self):
        config = ExpansionConfig()
        assert config.dimension == 2
        assert config.kernel == 'gaussian'

    @pytest.mark.parametrize("kwargs", [
        {'dimension': 0},
        {'max_order': -1},
        {'bandwidth': 0.0},
        {'bandwidth': -0.5},
        {'kernel': 'laplace'},
    ])
    def test_invalid(self, kwargs):
        with pytest.raises(ValueError):
            ExpansionConfig(**kwargs)

    def test_expansions_share_table(self):
        config = ExpansionConfig(dimension=3, max_order=4, bandwidth=0.5)
        far = config.create_far_field(np.zeros(3))
        local = config.create_local()

        assert far.table is local.table
        assert far.table is config.create_table()
        assert far.max_order == 4
        assert local.bandwidth_sq == pytest.approx(0.25)
        np.testing.assert_array_equal(local.center, np.zeros(3))

    def test_create_kernel(self):
        kernel = ExpansionConfig(bandwidth=2.0).create_kernel()
        assert isinstance(kernel, GaussianKernel)
        assert kernel.bandwidth == 2.0


class TestRegion:
    """Test the bounding region."""

    def test_from_points(self):
        region = Region.from_points(np.array([[0.0, 1.0], [2.0, -1.0], [1.0, 0.5]]))
        np.testing.assert_array_equal(region.lo, [0.0, -1.0])
        np.testing.assert_array_equal(region.hi, [2.0, 1.0])
        assert region.dim == 2
        assert region.width(0) == 2.0
        assert region.widest_width == 2.0
        np.testing.assert_array_equal(region.center, [1.0, 0.0])

    def test_contains(self):
        region = Region(np.zeros(2), np.ones(2))
        assert region.contains(np.array([0.5, 1.0]))
        assert not region.contains(np.array([1.5, 0.5]))

    def test_min_distance_sq(self):
        a = Region(np.zeros(2), np.ones(2))
        b = Region(np.array([4.0, 5.0]), np.array([5.0, 6.0]))
        assert a.min_distance_sq(b) == pytest.approx(9.0 + 16.0)
        assert b.min_distance_sq(a) == pytest.approx(25.0)

    def test_overlapping_distance_is_zero(self):
        a = Region(np.zeros(2), np.ones(2))
        b = Region(np.array([0.5, 0.5]), np.array([2.0, 2.0]))
        assert a.min_distance_sq(b) == 0.0

    def test_invalid_corners(self):
        with pytest.raises(ValueError):
            Region(np.ones(2), np.zeros(2))
        with pytest.raises(ValueError):
            Region(np.zeros(2), np.ones(3))

    def test_empty_points(self):
        with pytest.raises(ValueError):
            Region.from_points(np.zeros((0, 2)))

    def test_equality(self):
        a = Region(np.zeros(2), np.ones(2))
        assert a == Region(np.zeros(2), np.ones(2))
        assert a != Region(np.zeros(2), np.array([1.0, 2.0]))
        assert a != Region(np.zeros(3), np.ones(3))
        assert a != "region"

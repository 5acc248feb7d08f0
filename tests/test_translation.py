"""
Tests for Far-to-Local Translation

End-to-end checks of the far-field -> local -> evaluation pipeline against
direct kernel sums.
"""

import pytest
import numpy as np

from seriesfmm.core.expansion import FarFieldExpansion, LocalExpansion
from seriesfmm.core.multiindex import MultiIndexTable
from seriesfmm.core.region import Region
from seriesfmm.kernels import GaussianKernel


def direct_sum(points, weights, query, bandwidth):
    kernel = GaussianKernel(bandwidth)
    return sum(w * kernel(p, query) for p, w in zip(points, weights))


class TestTwoPointPipeline:
    """Two unit sources at (0, 0) and (1, 0), bandwidth 1."""

    @pytest.fixture
    def sources(self):
        return np.array([[0.0, 0.0], [1.0, 0.0]]), np.array([1.0, 1.0])

    @pytest.fixture
    def table(self):
        return MultiIndexTable(2, 12)

    def test_within_reported_bound(self, table, sources):
        points, weights = sources
        query = np.array([5.0, 5.1])
        target_region = Region(np.array([4.9, 5.0]), np.array([5.1, 5.2]))
        source_region = Region.from_points(points)
        min_dist_sq = source_region.min_distance_sq(target_region)

        local = LocalExpansion(1.0, table, center=np.array([5.0, 5.0]))
        order, error = local.order_for_evaluating(target_region, min_dist_sq, 1e-10)
        assert order is not None

        exact = direct_sum(points, weights, query, 1.0)
        assert exact > 10 * error

        far = FarFieldExpansion(1.0, np.array([0.5, 0.0]), table)
        far.accumulate_coeffs(points, weights, 0, None, order)
        local.translate_from_far_field(far)

        approx = local.evaluate_field(query)
        assert abs(approx - exact) <= weights.sum() * error

    def test_nearer_region_within_reported_bound(self, table, sources):
        """A target region close enough that the sum is far above the bound."""
        points, weights = sources
        target_region = Region(np.array([2.4, 2.4]), np.array([2.6, 2.6]))
        min_dist_sq = Region.from_points(points).min_distance_sq(target_region)

        local = LocalExpansion(1.0, table, center=target_region.center)
        order, error = local.order_for_evaluating(target_region, min_dist_sq, 1e-6)
        assert order is not None
        local.accumulate_coeffs(points, weights, 0, None, order)

        for query in [np.array([2.55, 2.45]), target_region.lo, target_region.hi]:
            exact = direct_sum(points, weights, query, 1.0)
            assert exact > 1000 * error
            assert abs(local.evaluate_field(query) - exact) <= weights.sum() * error

    def test_high_order_is_accurate(self, table, sources):
        points, weights = sources
        far = FarFieldExpansion(1.0, np.array([0.5, 0.0]), table)
        far.accumulate_coeffs(points, weights, 0, None, 12)

        local = LocalExpansion(1.0, table, center=np.array([5.0, 5.0]))
        local.translate_from_far_field(far)

        query = np.array([5.0, 5.1])
        exact = direct_sum(points, weights, query, 1.0)
        assert local.evaluate_field(query) == pytest.approx(exact, rel=1e-4)


class TestFarToLocal:
    """Test TranslateFromFarField semantics."""

    @pytest.fixture
    def table(self):
        return MultiIndexTable(3, 8)

    @pytest.fixture
    def sources(self):
        rng = np.random.default_rng(11)
        points = rng.uniform(-0.2, 0.2, size=(12, 3))
        weights = rng.uniform(0.5, 1.0, size=12)
        return points, weights

    @pytest.fixture
    def far(self, table, sources):
        far = FarFieldExpansion(1.0, np.zeros(3), table)
        far.accumulate_coeffs(*sources, 0, None, 8)
        return far

    def test_matches_direct_sum_3d(self, table, sources, far):
        points, weights = sources
        center = np.array([3.0, 0.0, 0.0])
        local = LocalExpansion(1.0, table, center=center)
        local.translate_from_far_field(far)

        for offset in [np.zeros(3), np.array([0.15, -0.1, 0.05])]:
            query = center + offset
            exact = direct_sum(points, weights, query, 1.0)
            assert local.evaluate_field(query) == pytest.approx(exact, rel=1e-5)

    def test_raises_receiver_order(self, table, far):
        local = LocalExpansion(1.0, table, center=np.array([3.0, 0.0, 0.0]))
        local.translate_from_far_field(far)
        assert local.order == far.order

    def test_keeps_higher_receiver_order(self, table, sources):
        points, weights = sources
        far = FarFieldExpansion(1.0, np.zeros(3), table)
        far.accumulate_coeffs(points, weights, 0, None, 2)
        local = LocalExpansion(1.0, table, center=np.array([3.0, 0.0, 0.0]))
        local.accumulate_coeffs(points, weights, 0, None, 5)

        local.translate_from_far_field(far)

        assert local.order == 5

    def test_additive(self, table, far):
        local = LocalExpansion(1.0, table, center=np.array([0.0, 3.0, 0.0]))
        local.translate_from_far_field(far)
        once = local.coefficients.copy()

        local.translate_from_far_field(far)

        np.testing.assert_allclose(local.coefficients, 2 * once)

    def test_source_unchanged(self, table, far):
        before = far.coefficients.copy()
        local = LocalExpansion(1.0, table, center=np.array([0.0, 0.0, 3.0]))

        local.translate_from_far_field(far)

        assert far.order == 8
        np.testing.assert_array_equal(far.coefficients, before)

    def test_far_field_forwarding(self, table, far):
        """FarFieldExpansion.translate_to_local writes into its argument."""
        via_far = LocalExpansion(1.0, table, center=np.array([2.0, 2.0, 0.0]))
        far.translate_to_local(via_far)

        via_local = LocalExpansion(1.0, table, center=np.array([2.0, 2.0, 0.0]))
        via_local.translate_from_far_field(far)

        np.testing.assert_array_equal(via_far.coefficients, via_local.coefficients)

    def test_bandwidth_mismatch(self, table, far):
        local = LocalExpansion(0.5, table, center=np.array([3.0, 0.0, 0.0]))
        with pytest.raises(ValueError):
            local.translate_from_far_field(far)

    def test_rejects_local_source(self, table, sources):
        source = LocalExpansion(1.0, table, center=np.zeros(3))
        source.accumulate_coeffs(*sources, 0, None, 3)
        local = LocalExpansion(1.0, table, center=np.array([3.0, 0.0, 0.0]))

        with pytest.raises(ValueError, match="FarFieldExpansion"):
            local.translate_from_far_field(source)
        assert local.order == 0

    def test_far_order_above_receiver_table(self, far):
        local = LocalExpansion(1.0, MultiIndexTable(3, 4),
                               center=np.array([3.0, 0.0, 0.0]))
        with pytest.raises(ValueError):
            local.translate_from_far_field(far)
        assert local.order == 0


class TestDownwardChain:
    """Far field -> local -> shifted local, as a traversal would run it."""

    def test_chain_matches_direct_sum(self):
        table = MultiIndexTable(2, 10)
        rng = np.random.default_rng(5)
        points = rng.uniform(-0.3, 0.3, size=(25, 2))
        weights = rng.uniform(0.1, 1.0, size=25)

        far = FarFieldExpansion(0.8, np.zeros(2), table)
        far.accumulate_coeffs(points, weights, 0, None, 10)

        parent = LocalExpansion(0.8, table, center=np.array([2.0, 1.0]))
        parent.translate_from_far_field(far)

        child = LocalExpansion(0.8, table, center=np.array([2.1, 0.9]))
        parent.translate_to_local(child)

        query = np.array([2.15, 0.95])
        exact = direct_sum(points, weights, query, 0.8)
        assert child.evaluate_field(query) == pytest.approx(exact, rel=1e-5)
        assert child.evaluate_field(query) == pytest.approx(
            parent.evaluate_field(query), rel=1e-9)

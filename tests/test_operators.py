"""
Tests for the Expansion Operators

Runs a small two-level upward/downward pass through the operator objects
the way a dual-tree traversal would.
"""

import pytest
import numpy as np

from seriesfmm.core import (
    ExpansionConfig,
    P2M,
    P2L,
    M2M,
    M2L,
    L2L,
    M2P,
    L2P,
)
from seriesfmm.kernels import GaussianKernel


def direct_sum(points, weights, queries, bandwidth):
    kernel = GaussianKernel(bandwidth)
    return np.array([sum(w * kernel(p, q) for p, w in zip(points, weights))
                     for q in queries])


@pytest.fixture
def config():
    return ExpansionConfig(dimension=2, max_order=10, bandwidth=1.0)


@pytest.fixture
def sources():
    """Sources sorted so that [0, 10) and [10, 20) form two clusters."""
    rng = np.random.default_rng(21)
    left = rng.uniform([-0.4, -0.2], [-0.1, 0.2], size=(10, 2))
    right = rng.uniform([0.1, -0.2], [0.4, 0.2], size=(10, 2))
    weights = rng.uniform(0.5, 1.5, size=20)
    return np.vstack([left, right]), weights


class TestOperatorPipeline:
    """Test P2M -> M2M -> M2L -> L2L -> L2P."""

    def test_two_level_pass(self, config, sources):
        points, weights = sources
        order = 10

        left = config.create_far_field(np.array([-0.25, 0.0]))
        right = config.create_far_field(np.array([0.25, 0.0]))
        P2M(order).apply(left, points, weights, 0, 10)
        P2M(order).apply(right, points, weights, 10, 20)

        root = config.create_far_field(np.zeros(2))
        M2M(order).apply(left, root)
        M2M(order).apply(right, root)

        target_parent = config.create_local(np.array([2.5, 0.5]))
        M2L(order).apply(root, target_parent)

        target_child = config.create_local(np.array([2.6, 0.6]))
        L2L(order).apply(target_parent, target_child)

        queries = np.array([[2.6, 0.6], [2.7, 0.5], [2.55, 0.65]])
        values = L2P(order).apply(target_child, queries)

        np.testing.assert_allclose(values, direct_sum(points, weights, queries, 1.0),
                                   rtol=1e-5)

    def test_m2p_matches_direct(self, config, sources):
        points, weights = sources
        far = config.create_far_field(np.zeros(2))
        P2M(10).apply(far, points, weights)

        queries = np.array([[2.0, 0.0], [0.0, -2.5]])
        np.testing.assert_allclose(M2P(10).apply(far, queries),
                                   direct_sum(points, weights, queries, 1.0),
                                   rtol=1e-5)

    def test_p2l_matches_direct(self, config, sources):
        points, weights = sources
        local = config.create_local(np.array([-2.0, 1.0]))
        P2L(8).apply(local, points, weights)

        queries = np.array([[-2.0, 1.0], [-1.9, 1.1]])
        np.testing.assert_allclose(L2P(8).apply(local, queries),
                                   direct_sum(points, weights, queries, 1.0),
                                   rtol=1e-5)


class TestOperatorContracts:
    """Test operator order checks and mutation targets."""

    def test_negative_order(self):
        with pytest.raises(ValueError):
            P2M(-1)

    def test_translation_rejects_higher_order_source(self, config, sources):
        far = config.create_far_field(np.zeros(2))
        P2M(6).apply(far, *sources)
        local = config.create_local(np.array([3.0, 0.0]))

        with pytest.raises(ValueError):
            M2L(4).apply(far, local)
        assert local.order == 0

    def test_l2l_mutates_child_only(self, config, sources):
        parent = config.create_local(np.array([3.0, 0.0]))
        P2L(5).apply(parent, *sources)
        before = parent.coefficients.copy()
        child = config.create_local(np.array([3.1, 0.1]))

        L2L(5).apply(parent, child)

        np.testing.assert_array_equal(parent.coefficients, before)
        assert child.order == 5

    def test_m2m_mutates_parent_only(self, config, sources):
        child = config.create_far_field(np.array([0.2, 0.0]))
        P2M(4).apply(child, *sources)
        before = child.coefficients.copy()
        parent = config.create_far_field(np.zeros(2))

        M2M(4).apply(child, parent)

        np.testing.assert_array_equal(child.coefficients, before)
        assert parent.order == 4

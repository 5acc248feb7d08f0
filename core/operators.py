"""
Operators Module

Implements the expansion operators a dual-tree traversal calls:
P2M, P2L, M2M, M2L, L2L, M2P and L2P.

Each operator is built for a fixed expansion order.  Builders (P2M, P2L)
accumulate at that order; translations refuse source expansions above it.
"""

from abc import ABC, abstractmethod
from typing import Optional

import numpy as np

from .expansion import FarFieldExpansion, LocalExpansion, Expansion


class Operator(ABC):
    """
    Abstract base class for expansion operators.

    All operators implement a common interface for applying
    the operation to expansions or points.
    """

    def __init__(self, order: int):
        """
        Initialize the operator.

        Args:
            order: Expansion order this operator works at
        """
        if order < 0:
            raise ValueError("Operator order must be non-negative")
        self.order = order

    def _check_source(self, expansion: Expansion):
        if expansion.order > self.order:
            raise ValueError(
                f"{type(self).__name__} built for order {self.order} "
                f"cannot translate an expansion of order {expansion.order}")

    @abstractmethod
    def apply(self, *args, **kwargs):
        """Apply the operator."""
        pass


class P2M(Operator):
    """
    Particles-to-Multipole operator.

    Accumulates weighted source points into a far-field expansion.
    """

    def apply(self, far_field: FarFieldExpansion, points: np.ndarray,
              weights: np.ndarray, begin: int = 0, end: Optional[int] = None):
        far_field.accumulate_coeffs(points, weights, begin, end, self.order)


class P2L(Operator):
    """
    Particles-to-Local operator.

    Builds local coefficients straight from sources, for source sets small
    enough that this is cheaper than P2M followed by M2L.
    """

    def apply(self, local: LocalExpansion, points: np.ndarray,
              weights: np.ndarray, begin: int = 0, end: Optional[int] = None):
        local.accumulate_coeffs(points, weights, begin, end, self.order)


class M2M(Operator):
    """
    Multipole-to-Multipole operator.

    Shifts a child far-field expansion onto its parent's center.
    """

    def apply(self, child: FarFieldExpansion, parent: FarFieldExpansion):
        """Add `child` into `parent`; `parent` is mutated."""
        self._check_source(child)
        parent.translate_from_far_field(child)


class M2L(Operator):
    """
    Multipole-to-Local operator.

    Converts a far-field expansion into a local expansion at another center.
    """

    def apply(self, far_field: FarFieldExpansion, local: LocalExpansion):
        """Add `far_field` into `local`; `local` is mutated."""
        self._check_source(far_field)
        local.translate_from_far_field(far_field)


class L2L(Operator):
    """
    Local-to-Local operator.

    Shifts a parent local expansion onto a child's center.
    """

    def apply(self, parent: LocalExpansion, child: LocalExpansion):
        """
        Add `parent` into `child`; `child` is mutated.

        LocalExpansion.translate_to_local is called on the SOURCE and
        writes into its argument, unlike M2L which writes into the receiver.
        """
        self._check_source(parent)
        parent.translate_to_local(child)


class M2P(Operator):
    """
    Multipole-to-Particle operator.

    Evaluates a far-field expansion directly at target points.
    """

    def apply(self, far_field: FarFieldExpansion, points: np.ndarray) -> np.ndarray:
        return far_field.evaluate(points)


class L2P(Operator):
    """
    Local-to-Particle operator.

    Evaluates a local expansion at target points.
    """

    def apply(self, local: LocalExpansion, points: np.ndarray) -> np.ndarray:
        return local.evaluate(points)

"""
Multi-Index Module

Enumerates the multi-indices of a truncated multivariate series and
precomputes the factorial and binomial tables that the expansions and
translation operators share.
"""

import logging
import math
from functools import lru_cache
from typing import List, Optional, Tuple

import numpy as np
from scipy.special import comb, factorial

logger = logging.getLogger(__name__)


def _read_only(array: np.ndarray) -> np.ndarray:
    array.setflags(write=False)
    return array


class MultiIndexTable:
    """
    Canonical enumeration of multi-indices of total order <= max_order.

    Position 0 is the zero multi-index.  Multi-indices of order k follow all
    those of order k - 1, and within an order they are generated one axis at
    a time: for axis i, every index of order k - 1 whose last incremented
    axis is >= i is copied with its i-th component raised by one.  The same
    head/tail scheme is used by monomials() so that a monomial vector lines
    up with the coefficient vector of an expansion.

    A table is immutable after construction and is meant to be shared by
    every expansion of the same dimension; see shared_multiindex_table.
    """

    def __init__(self, dimension: int, max_order: int):
        """
        Build the table.

        Args:
            dimension: Spatial dimension D (>= 1)
            max_order: Highest total order P_max (>= 0)
        """
        if dimension < 1:
            raise ValueError("Dimension must be at least 1")
        if max_order < 0:
            raise ValueError("Max order must be non-negative")

        self.dimension = int(dimension)
        self.max_order = int(max_order)

        self._build_multiindices()
        self._build_factorials()
        self._build_upper_mapping()

        logger.debug("built multi-index table: dimension=%d max_order=%d "
                     "coefficients=%d", self.dimension, self.max_order,
                     self.get_max_total_num_coeffs())

    def _build_multiindices(self):
        """Enumerate the multi-indices with the head/tail recurrence."""
        dim = self.dimension
        total = self.get_total_num_coeffs(self.max_order)

        multiindices = np.zeros((total, dim), dtype=np.int64)
        counts = np.zeros(self.max_order + 1, dtype=np.int64)
        counts[0] = 1

        heads = [0] * dim
        t = tail = 1
        for k in range(1, self.max_order + 1):
            for i in range(dim):
                head = heads[i]
                heads[i] = t
                n = tail - head
                multiindices[t:t + n] = multiindices[head:tail]
                multiindices[t:t + n, i] += 1
                t += n
            tail = t
            counts[k] = t

        self._multiindices = _read_only(multiindices)
        self._orders = _read_only(multiindices.sum(axis=1))
        self._list_total_num_coeffs = _read_only(counts)

    def _build_factorials(self):
        """Precompute factorials, multi-index factorials and binomials."""
        limit = 2 * self.max_order + 1

        self._factorials = _read_only(
            factorial(np.arange(limit + 1), exact=False).astype(np.float64))

        mi_factorials = np.prod(self._factorials[self._multiindices], axis=1)
        inv = 1.0 / mi_factorials
        signs = np.where(self._orders % 2 == 0, 1.0, -1.0)

        self._multiindex_factorials = _read_only(mi_factorials)
        self._inv_multiindex_factorials = _read_only(inv)
        self._neg_inv_multiindex_factorials = _read_only(signs * inv)

        n = np.arange(limit + 1)
        self._n_choose_k = _read_only(comb(n[:, None], n[None, :]))

    def _build_upper_mapping(self):
        """
        For each multi-index alpha, list the positions of beta >= alpha.

        Lists are sorted by position, so a caller can stop at the first
        position beyond the coefficient count of its current order.
        """
        mis = self._multiindices
        axes = np.arange(self.dimension)

        upper = []
        multichoose = []
        for alpha in mis:
            positions = np.nonzero(np.all(mis >= alpha, axis=1))[0]
            upper.append(_read_only(positions))
            coeffs = np.prod(self._n_choose_k[mis[positions], alpha[axes]],
                             axis=1)
            multichoose.append(_read_only(coeffs))

        self._upper_mapping_index = upper
        self._upper_multichoose = multichoose

    # getters

    def get_total_num_coeffs(self, order: int) -> int:
        """
        Return the number of multi-indices with total order <= order.

        This is C(order + D, D) and is defined for any order >= 0, not only
        for orders that have been enumerated.
        """
        if order < 0:
            raise ValueError(f"Order must be non-negative, got {order}")
        return math.comb(int(order) + self.dimension, self.dimension)

    def get_max_total_num_coeffs(self) -> int:
        """Return the number of enumerated multi-indices."""
        return int(self._list_total_num_coeffs[-1])

    def get_multiindex(self, pos: int) -> Tuple[int, ...]:
        """Return the multi-index stored at the given position."""
        return tuple(int(v) for v in self._multiindices[pos])

    @property
    def multiindices(self) -> np.ndarray:
        """Read-only array of shape (num_coeffs, dimension)."""
        return self._multiindices

    @property
    def orders(self) -> np.ndarray:
        """Total order of every enumerated multi-index."""
        return self._orders

    def factorial(self, k: int) -> Optional[float]:
        """
        Return k! from the precomputed table.

        Returns None when k lies outside the precomputed range.
        """
        if k < 0 or k >= len(self._factorials):
            return None
        return float(self._factorials[k])

    @property
    def factorials(self) -> np.ndarray:
        return self._factorials

    @property
    def multiindex_factorials(self) -> np.ndarray:
        """alpha! for every enumerated multi-index."""
        return self._multiindex_factorials

    @property
    def inv_multiindex_factorials(self) -> np.ndarray:
        """1 / alpha! for every enumerated multi-index."""
        return self._inv_multiindex_factorials

    @property
    def neg_inv_multiindex_factorials(self) -> np.ndarray:
        """(-1)^|alpha| / alpha! for every enumerated multi-index."""
        return self._neg_inv_multiindex_factorials

    def n_choose_k(self, n: int, k: int) -> float:
        return float(self._n_choose_k[n, k])

    def get_upper_mapping_index(self) -> List[np.ndarray]:
        """Return, per position, the sorted positions of dominating indices."""
        return self._upper_mapping_index

    def get_upper_multichoose(self) -> List[np.ndarray]:
        """
        Return multichoose coefficients aligned with the upper mapping.

        Entry [alpha_pos][k] is prod_d C(beta_d, alpha_d) for
        beta_pos = get_upper_mapping_index()[alpha_pos][k].
        """
        return self._upper_multichoose

    def get_n_multichoose_k_by_pos(self, beta_pos: int, alpha_pos: int) -> float:
        """Return prod_d C(beta_d, alpha_d) for the two positions."""
        beta = self._multiindices[beta_pos]
        alpha = self._multiindices[alpha_pos]
        if np.any(beta < alpha):
            return 0.0
        return float(np.prod(
            self._n_choose_k[beta, alpha[np.arange(self.dimension)]]))

    def monomials(self, x: np.ndarray, order: int) -> np.ndarray:
        """
        Evaluate every monomial x^alpha with |alpha| <= order.

        Each monomial is built from one of lower degree by a single
        multiplication, using the same per-axis head cursors as the
        enumeration, so the cost is linear in the number of coefficients.

        Args:
            x: Point (dimension,)
            order: Highest total degree

        Returns:
            Array of length get_total_num_coeffs(order) in canonical order
        """
        total = self.get_total_num_coeffs(order)
        values = np.empty(total, dtype=np.float64)
        values[0] = 1.0

        heads = [0] * self.dimension
        t = tail = 1
        for _ in range(order):
            for i in range(self.dimension):
                head = heads[i]
                heads[i] = t
                n = tail - head
                values[t:t + n] = values[head:tail] * x[i]
                t += n
            tail = t

        return values

    def __repr__(self) -> str:
        return (f"MultiIndexTable(dimension={self.dimension}, "
                f"max_order={self.max_order})")


@lru_cache(maxsize=None)
def shared_multiindex_table(dimension: int, max_order: int) -> MultiIndexTable:
    """
    Return the process-wide table for (dimension, max_order).

    Tables are built once and handed out by reference to every expansion
    that asks for the same configuration.
    """
    return MultiIndexTable(dimension, max_order)

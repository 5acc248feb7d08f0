"""
Expansion Module

Defines the far-field and local series expansions of a kernel sum.

Both expansions normalize displacements by the kernel's bandwidth factor
s (sqrt(2 h^2) for the Gaussian).  With x_R the far-field center and x_Q
the local center, and h_alpha the mixed derivative terms of the kernel's
derivative policy:

    far field:  f(x_q) = sum_alpha M_alpha h_alpha((x_q - x_R) / s)
    local:      f(x_q) = sum_beta  L_beta ((x_q - x_Q) / s)^beta

The coefficient vectors are sized for the table's maximum order and grow
in place; only the first get_total_num_coeffs(order) entries are
meaningful.
"""

import logging
import math
import sys
from abc import ABC, abstractmethod
from typing import Optional, TextIO, Tuple, Type, Union

import numpy as np

from ..kernels import Kernel, create_kernel
from .multiindex import MultiIndexTable

logger = logging.getLogger(__name__)


class Expansion(ABC):
    """
    Abstract base class for series expansions.

    An expansion holds a center, a coefficient vector and a current order,
    and borrows a shared MultiIndexTable.  The table must outlive the
    expansion; the expansion never modifies it.
    """

    def __init__(self, bandwidth: float, table: MultiIndexTable,
                 center: Optional[np.ndarray] = None,
                 kernel: Union[str, Type[Kernel]] = 'gaussian'):
        """
        Initialize the expansion with order 0 and zero coefficients.

        Args:
            bandwidth: Kernel bandwidth h (must be positive)
            table: Shared multi-index table
            center: Expansion center; the origin when omitted
            kernel: Registered kernel family name or a Kernel subclass
        """
        self._kernel = create_kernel(kernel, bandwidth)
        self._derivative = self._kernel.derivative()
        self._table = table
        self._center = self._init_center(center)
        self._order = 0
        self._coefficients = np.zeros(table.get_max_total_num_coeffs(),
                                      dtype=np.float64)

    def _init_center(self, center: Optional[np.ndarray]) -> np.ndarray:
        if center is None:
            center = np.zeros(self._table.dimension, dtype=np.float64)
        center = np.array(self._check_point(center), dtype=np.float64)
        center.setflags(write=False)
        return center

    # getters

    @property
    def center(self) -> np.ndarray:
        """Read-only expansion center."""
        return self._center

    @property
    def coefficients(self) -> np.ndarray:
        """Read-only view of the coefficients valid at the current order."""
        view = self._coefficients[:self.num_coefficients]
        view.setflags(write=False)
        return view

    @property
    def order(self) -> int:
        """Return the current approximation order."""
        return self._order

    @property
    def max_order(self) -> int:
        """Return the highest order the bound table supports."""
        return self._table.max_order

    @property
    def capacity(self) -> int:
        """Return the allocated length of the coefficient vector."""
        return len(self._coefficients)

    @property
    def num_coefficients(self) -> int:
        """Return the number of coefficients at the current order."""
        return self._table.get_total_num_coeffs(self._order)

    @property
    def dimension(self) -> int:
        return self._table.dimension

    @property
    def table(self) -> MultiIndexTable:
        return self._table

    @property
    def kernel(self) -> Kernel:
        return self._kernel

    @property
    def bandwidth_sq(self) -> float:
        return self._kernel.bandwidth_sq

    @property
    def bandwidth_factor(self) -> float:
        return self._derivative.bandwidth_factor(self._kernel.bandwidth_sq)

    # validation helpers

    def _check_point(self, point: np.ndarray) -> np.ndarray:
        point = np.asarray(point, dtype=np.float64)
        if point.shape != (self._table.dimension,):
            raise ValueError(
                f"Expected a point of dimension {self._table.dimension}, "
                f"got shape {point.shape}")
        return point

    def _check_order(self, order: int) -> int:
        if order < 0 or order > self._table.max_order:
            raise ValueError(
                f"Order {order} outside the supported range "
                f"[0, {self._table.max_order}]")
        return int(order)

    def _raise_order(self, order: int):
        """Grow the current order; it never decreases."""
        order = self._check_order(order)
        if order > self._order:
            self._order = order

    def _check_sources(self, points: np.ndarray, weights: np.ndarray,
                       begin: int, end: Optional[int]) -> Tuple[np.ndarray, np.ndarray]:
        points = np.asarray(points, dtype=np.float64)
        weights = np.asarray(weights, dtype=np.float64)
        if points.ndim != 2 or points.shape[1] != self._table.dimension:
            raise ValueError(
                f"Points must have shape (N, {self._table.dimension}), "
                f"got {points.shape}")
        if weights.shape != (points.shape[0],):
            raise ValueError("Weights must have one entry per point")
        if end is None:
            end = points.shape[0]
        if not 0 <= begin <= end <= points.shape[0]:
            raise ValueError(
                f"Invalid point range [{begin}, {end}) for {points.shape[0]} points")
        return points[begin:end], weights[begin:end]

    def _check_compatible(self, other: 'Expansion'):
        if other.dimension != self.dimension:
            raise ValueError(
                f"Dimension mismatch: {other.dimension} != {self.dimension}")
        if other.bandwidth_sq != self.bandwidth_sq:
            raise ValueError(
                f"Bandwidth mismatch: {other.bandwidth_sq} != {self.bandwidth_sq}")
        if type(other.kernel) is not type(self.kernel):
            raise ValueError("Kernel family mismatch")
        self._check_order(other.order)

    # interesting functions...

    @abstractmethod
    def accumulate_coeffs(self, points: np.ndarray, weights: np.ndarray,
                          begin: int, end: Optional[int], order: int):
        """
        Add the contribution of points[begin:end] into the coefficients.

        Args:
            points: Source coordinates (N x dimension)
            weights: Source weights (N,)
            begin: First point index
            end: One past the last point index (None for N)
            order: Order to accumulate at; the current order grows to it
        """
        pass

    @abstractmethod
    def refine_coeffs(self, points: np.ndarray, weights: np.ndarray,
                      begin: int, end: Optional[int], order: int,
                      from_order: Optional[int] = None):
        """
        Raise the order of an expansion already built from these points.

        Args:
            from_order: Order the points were accumulated at; the current
                order when omitted
        """
        pass

    @abstractmethod
    def evaluate_field(self, point: np.ndarray) -> float:
        """
        Evaluate the truncated series at a single point.

        Args:
            point: Query point (dimension,)

        Returns:
            Approximated kernel sum
        """
        pass

    def evaluate(self, points: np.ndarray) -> np.ndarray:
        """
        Evaluate the expansion at given points.

        Args:
            points: Array of points to evaluate at (N x dimension)

        Returns:
            Array of approximated kernel sums at each point
        """
        points = np.asarray(points, dtype=np.float64)
        if points.ndim == 1:
            points = points.reshape(1, -1)
        return np.array([self.evaluate_field(p) for p in points],
                        dtype=np.float64)

    def zero(self, center: Optional[np.ndarray] = None):
        """
        Fully reinitialize the expansion.

        Resets the order to 0 and zeroes all coefficients.  When a center
        is given the expansion moves there.
        """
        if center is not None:
            self._center = self._init_center(center)
        self._order = 0
        self._coefficients.fill(0.0)

    @abstractmethod
    def _format_term(self, pos: int, variables: str) -> str:
        pass

    def format_debug(self, name: str = "") -> str:
        """Render the expansion as a human-readable series."""
        dim = self.dimension
        variables = ",".join(f"x_q{d}" for d in range(dim))
        terms = [self._format_term(i, variables)
                 for i in range(self.num_coefficients)]

        lines = [
            f"----- SERIESEXPANSION {name} ------",
            self._title,
            "Center: " + " ".join(f"{c:g}" for c in self._center),
            f"f({variables}) = \\sum\\limits_{{x_r \\in R}} "
            f"K(||x_q - x_r||) = " + " + ".join(terms),
        ]
        return "\n".join(lines) + "\n"

    def print_debug(self, name: str = "", stream: Optional[TextIO] = None):
        """Write format_debug() to stream (stderr by default)."""
        if stream is None:
            stream = sys.stderr
        stream.write(self.format_debug(name))

    def __repr__(self) -> str:
        return (f"{type(self).__name__}(center={self._center}, "
                f"order={self._order}, bandwidth={self._kernel.bandwidth:g})")


class FarFieldExpansion(Expansion):
    """
    Far-field (outgoing) expansion of a cluster of weighted sources.

    Valid OUTSIDE the region holding the sources.  Coefficients are the
    scaled moments M_alpha = sum_r w_r ((x_r - x_R) / s)^alpha / alpha!.
    """

    _title = "Far field expansion"

    def __init__(self, bandwidth: float, center: np.ndarray,
                 table: MultiIndexTable,
                 kernel: Union[str, Type[Kernel]] = 'gaussian'):
        """
        Initialize far-field expansion.

        Args:
            bandwidth: Kernel bandwidth h
            center: Center of the cluster this expansion represents
            table: Shared multi-index table
            kernel: Kernel family name or Kernel subclass
        """
        super().__init__(bandwidth, table, center=center, kernel=kernel)

    def _moments(self, points: np.ndarray, weights: np.ndarray,
                 order: int) -> np.ndarray:
        """Return sum_r w_r x_r^alpha for the normalized offsets."""
        total = self._table.get_total_num_coeffs(order)
        moments = np.zeros(total, dtype=np.float64)
        offsets = (points - self._center) / self.bandwidth_factor
        for x, w in zip(offsets, weights):
            moments += w * self._table.monomials(x, order)
        return moments

    def accumulate_coeffs(self, points, weights, begin, end, order):
        """
        Add the moments of points[begin:end] at the given order.

        Safe to call repeatedly with disjoint point ranges.
        """
        points, weights = self._check_sources(points, weights, begin, end)
        self._raise_order(order)

        total = self._table.get_total_num_coeffs(order)
        moments = self._moments(points, weights, order)
        self._coefficients[:total] += (
            moments * self._table.inv_multiindex_factorials[:total])

    def refine_coeffs(self, points, weights, begin, end, order, from_order=None):
        """
        Raise the order for points this expansion was already built from.

        Only the terms of degree in (from_order, order] are added.  Does
        nothing when order is not above from_order.  from_order defaults to
        the current order, which is right for an expansion built from a
        single range.  An expansion built from several ranges is refined
        with one call per range, each passing the order the ranges were
        built at:

            far.refine_coeffs(points, weights, 0, 10, 6, from_order=2)
            far.refine_coeffs(points, weights, 10, 20, 6, from_order=2)
        """
        if from_order is None:
            from_order = self._order
        from_order = self._check_order(from_order)
        if from_order > self._order:
            raise ValueError(
                f"Cannot refine from order {from_order} above the current "
                f"order {self._order}")
        order = self._check_order(order)
        if order <= from_order:
            return
        points, weights = self._check_sources(points, weights, begin, end)

        start = self._table.get_total_num_coeffs(from_order)
        total = self._table.get_total_num_coeffs(order)
        moments = self._moments(points, weights, order)
        self._coefficients[start:total] += (
            moments[start:] * self._table.inv_multiindex_factorials[start:total])
        self._raise_order(order)

    def evaluate_field(self, point):
        """Evaluate sum_alpha M_alpha h_alpha((x_q - x_R) / s)."""
        point = self._check_point(point)
        total = self.num_coefficients
        x = (point - self._center) / self.bandwidth_factor

        derivatives = self._derivative.compute_directional_derivatives(
            x, self._order)
        values = self._derivative.compute_partial_derivatives(
            derivatives, self._table.multiindices[:total])
        return float(np.dot(self._coefficients[:total], values))

    def translate_from_far_field(self, child: 'FarFieldExpansion'):
        """
        Shift a child far-field expansion to this center and add it here.

        M'_gamma += sum_{alpha <= gamma} M_alpha d^(gamma - alpha) / (gamma - alpha)!
        with d = (x_child - x_R) / s.  Raises this order to the child's.
        """
        if not isinstance(child, FarFieldExpansion):
            raise ValueError(
                f"Expected a FarFieldExpansion, got {type(child).__name__}")
        self._check_compatible(child)
        self._raise_order(child.order)

        total = self._table.get_total_num_coeffs(child.order)
        mis = self._table.multiindices
        factorials = self._table.factorials
        upper_mapping = self._table.get_upper_mapping_index()
        child_coeffs = child._coefficients
        d = (child.center - self._center) / self.bandwidth_factor

        pos_coeffs = np.zeros(total, dtype=np.float64)
        neg_coeffs = np.zeros(total, dtype=np.float64)

        for j in range(total):
            uppers = upper_mapping[j]
            uppers = uppers[:np.searchsorted(uppers, total)]
            diffs = mis[uppers] - mis[j]
            prods = child_coeffs[j] * np.prod(d ** diffs / factorials[diffs],
                                              axis=1)
            pos_coeffs[uppers] += np.where(prods > 0, prods, 0.0)
            neg_coeffs[uppers] += np.where(prods < 0, prods, 0.0)

        self._coefficients[:total] += pos_coeffs + neg_coeffs

    def translate_to_local(self, local: 'LocalExpansion'):
        """
        Convert this expansion and add it into the given local expansion.

        Mutates the argument, not this expansion.
        """
        if not isinstance(local, LocalExpansion):
            raise ValueError(
                f"Expected a LocalExpansion, got {type(local).__name__}")
        local.translate_from_far_field(self)

    def _format_term(self, pos, variables):
        mi = ",".join(str(a) for a in self._table.get_multiindex(pos))
        center = ",".join(f"{c:g}" for c in self._center)
        return (f"{self._coefficients[pos]:g} "
                f"h_({mi})((({variables}) - ({center})) / {self.bandwidth_factor:g})")


class LocalExpansion(Expansion):
    """
    Local (incoming) expansion of the field of distant sources.

    Valid INSIDE the region around its center.  Coefficients are those of
    a polynomial in the normalized offset from the center.
    """

    _title = "Local expansion"

    def __init__(self, bandwidth: float, table: MultiIndexTable,
                 center: Optional[np.ndarray] = None,
                 kernel: Union[str, Type[Kernel]] = 'gaussian'):
        """
        Initialize local expansion.

        Args:
            bandwidth: Kernel bandwidth h
            table: Shared multi-index table
            center: Center of the target region; the origin when omitted
            kernel: Kernel family name or Kernel subclass
        """
        super().__init__(bandwidth, table, center=center, kernel=kernel)

    def accumulate_coeffs(self, points, weights, begin, end, order):
        """
        Add the local coefficients of points[begin:end] directly.

        L_beta += w_r (-1)^|beta| / beta! h_beta((x_Q - x_r) / s)
        """
        points, weights = self._check_sources(points, weights, begin, end)
        self._raise_order(order)

        total = self._table.get_total_num_coeffs(order)
        mis = self._table.multiindices[:total]
        offsets = (self._center - points) / self.bandwidth_factor

        sums = np.zeros(total, dtype=np.float64)
        for x, w in zip(offsets, weights):
            derivatives = self._derivative.compute_directional_derivatives(
                x, order)
            sums += w * self._derivative.compute_partial_derivatives(
                derivatives, mis)

        self._coefficients[:total] += (
            self._table.neg_inv_multiindex_factorials[:total] * sums)

    def refine_coeffs(self, points, weights, begin, end, order, from_order=None):
        """
        Does nothing.

        Local coefficients cannot be refined from the points they were
        built from; raising the order requires rebuilding the expansion.
        """

    def evaluate_field(self, point):
        """Evaluate sum_beta L_beta ((x_q - x_Q) / s)^beta."""
        point = self._check_point(point)
        x = (point - self._center) / self.bandwidth_factor
        monomials = self._table.monomials(x, self._order)
        return float(np.dot(self._coefficients[:len(monomials)], monomials))

    def order_for_evaluating(self, local_region, min_dist_sqd_regions: float,
                             max_error: float) -> Tuple[Optional[int], float]:
        """
        Compute the order needed to evaluate within the given error.

        The bound holds for any query point inside local_region when all
        sources lie at squared distance at least min_dist_sqd_regions.

        Args:
            local_region: Region with dim and width(d)
            min_dist_sqd_regions: Minimum squared distance to the sources
            max_error: Error tolerance

        Returns:
            (order, error bound at that order), or (None, math.inf) when no
            order up to the table's maximum meets the tolerance
        """
        dim = local_region.dim
        if dim != self.dimension:
            raise ValueError(
                f"Region dimension {dim} does not match {self.dimension}")

        frontfactor = math.exp(-min_dist_sqd_regions / (4 * self.bandwidth_sq))
        widest_width = max(local_region.width(d) for d in range(dim))
        two_bandwidth = 2 * math.sqrt(self.bandwidth_sq)
        r = widest_width / two_bandwidth

        # The Taylor series is not guaranteed to converge otherwise.
        if r >= 1.0:
            logger.debug("order selection infeasible: ratio %g >= 1", r)
            return None, math.inf

        max_order = self._table.max_order
        r_raised_to_p = 1.0
        p = 0
        while p <= max_order:
            floor_fact = self._table.factorial(p // dim)
            ceil_fact = self._table.factorial(-(-p // dim))
            if floor_fact is None or ceil_fact is None:
                break

            remainder = p % dim
            num_terms = (self._table.get_total_num_coeffs(p + 1) -
                         self._table.get_total_num_coeffs(p))
            error = (frontfactor * num_terms * r_raised_to_p /
                     math.sqrt(floor_fact ** (dim - remainder) *
                               ceil_fact ** remainder))
            if error <= max_error:
                return p, error

            p += 1
            r_raised_to_p *= r

        logger.debug("order selection infeasible: no order <= %d reaches %g",
                     max_order, max_error)
        return None, math.inf

    def translate_from_far_field(self, far_field: FarFieldExpansion):
        """
        Translate a far-field expansion and add it to this expansion.

        Raises this order to the far field's order.  Positive and negative
        products are summed separately per coefficient.
        """
        if not isinstance(far_field, FarFieldExpansion):
            raise ValueError(
                f"Expected a FarFieldExpansion, got {type(far_field).__name__}")
        self._check_compatible(far_field)
        far_order = far_field.order
        self._raise_order(far_order)

        total = self._table.get_total_num_coeffs(far_order)
        mis = self._table.multiindices[:total]
        far_coeffs = far_field._coefficients[:total]
        cent_diff = ((self._center - far_field.center) /
                     self._derivative.bandwidth_factor(far_field.bandwidth_sq))

        derivatives = self._derivative.compute_directional_derivatives(
            cent_diff, 2 * self._order)

        # rows are beta, columns alpha
        beta_plus_alpha = mis[:, None, :] + mis[None, :, :]
        prods = (self._derivative.compute_partial_derivatives(
            derivatives, beta_plus_alpha) * far_coeffs[None, :])

        pos_coeffs = np.where(prods > 0, prods, 0.0).sum(axis=1)
        neg_coeffs = np.where(prods < 0, prods, 0.0).sum(axis=1)

        self._coefficients[:total] += (
            (pos_coeffs + neg_coeffs) *
            self._table.neg_inv_multiindex_factorials[:total])

    def translate_to_local(self, local: 'LocalExpansion'):
        """
        Shift this expansion to the center of `local` and add it there.

        NOTE: this mutates the ARGUMENT.  The coefficients and, if lower,
        the order of `local` are updated; this expansion is left as is.
        This is the reverse of translate_from_far_field, which mutates
        the receiver.
        """
        if not isinstance(local, LocalExpansion):
            raise ValueError(
                f"Expected a LocalExpansion, got {type(local).__name__}")
        self._check_compatible(local)

        total = self.num_coefficients
        mis = self._table.multiindices
        upper_mapping = self._table.get_upper_mapping_index()
        upper_multichoose = self._table.get_upper_multichoose()
        center_diff = (local.center - self._center) / self.bandwidth_factor

        local._raise_order(self._order)

        for j in range(total):
            uppers = upper_mapping[j]
            n = np.searchsorted(uppers, total)
            uppers = uppers[:n]

            diffs = mis[uppers] - mis[j]
            prods = (self._coefficients[uppers] *
                     np.prod(center_diff ** diffs, axis=1) *
                     upper_multichoose[j][:n])

            pos_coeffs = prods[prods > 0].sum()
            neg_coeffs = prods[prods < 0].sum()
            local._coefficients[j] += pos_coeffs + neg_coeffs

    def _format_term(self, pos, variables):
        mi = self._table.get_multiindex(pos)
        factors = " ".join(
            f"((x_q{d} - ({c:g})) / {self.bandwidth_factor:g})^{a}"
            for d, (c, a) in enumerate(zip(self._center, mi)))
        return f"{self._coefficients[pos]:g} {factors}"

"""
Region Module

Axis-aligned bounding regions used to reason about expansion validity.
"""

from dataclasses import dataclass

import numpy as np


@dataclass(eq=False)
class Region:
    """
    Axis-aligned hyper-rectangle.

    Attributes:
        lo: Lower corner (dimension,)
        hi: Upper corner (dimension,)
    """
    lo: np.ndarray
    hi: np.ndarray

    def __post_init__(self):
        """Validate the corners."""
        self.lo = np.atleast_1d(np.asarray(self.lo, dtype=np.float64))
        self.hi = np.atleast_1d(np.asarray(self.hi, dtype=np.float64))
        if self.lo.ndim != 1 or self.lo.shape != self.hi.shape:
            raise ValueError("Region corners must be 1-D arrays of equal length")
        if np.any(self.lo > self.hi):
            raise ValueError("Region lower corner must not exceed upper corner")

    @classmethod
    def from_points(cls, points: np.ndarray) -> 'Region':
        """Return the tightest region containing all rows of points."""
        points = np.asarray(points, dtype=np.float64)
        if points.ndim == 1:
            points = points.reshape(1, -1)
        if points.shape[0] == 0:
            raise ValueError("Cannot bound an empty point set")
        return cls(points.min(axis=0), points.max(axis=0))

    @property
    def dim(self) -> int:
        """Return the spatial dimension of the region."""
        return len(self.lo)

    @property
    def center(self) -> np.ndarray:
        return (self.lo + self.hi) / 2.0

    @property
    def widths(self) -> np.ndarray:
        return self.hi - self.lo

    def width(self, d: int) -> float:
        """Return the extent along axis d."""
        return float(self.hi[d] - self.lo[d])

    @property
    def widest_width(self) -> float:
        """Return the largest per-axis extent."""
        return float(np.max(self.widths))

    def contains(self, point: np.ndarray) -> bool:
        """Check if a point is inside this region."""
        point = np.asarray(point)
        return bool(np.all((point >= self.lo) & (point <= self.hi)))

    def min_distance_sq(self, other: 'Region') -> float:
        """
        Compute the minimum squared distance between two regions.
        Returns 0 if the regions overlap or touch.
        """
        if other.dim != self.dim:
            raise ValueError("Regions must have the same dimension")
        gap = np.maximum(0.0, np.maximum(other.lo - self.hi, self.lo - other.hi))
        return float(np.dot(gap, gap))

    def __eq__(self, other) -> bool:
        if not isinstance(other, Region):
            return NotImplemented
        return bool(np.array_equal(self.lo, other.lo) and
                    np.array_equal(self.hi, other.hi))

    def __repr__(self) -> str:
        return f"Region(lo={self.lo}, hi={self.hi})"

"""
Series Expansion Kernels Module

Kernel families usable with the series expansions, together with the
derivative policies that produce expansion coefficients for them.
"""

import numpy as np
from abc import ABC, abstractmethod
from typing import Sequence, Type, Union


class KernelDerivative(ABC):
    """
    Abstract derivative policy for a kernel family.

    A policy knows how to normalize displacements by the bandwidth and how
    to compute the partial derivatives of the kernel profile that appear in
    the far-field and local series.  The default partial derivative
    combination assumes a kernel that is separable across dimensions.
    """

    @abstractmethod
    def bandwidth_factor(self, bandwidth_sq: float) -> float:
        """
        Return the scale that displacements are divided by.

        Args:
            bandwidth_sq: Squared kernel bandwidth

        Returns:
            Normalization factor
        """
        pass

    @abstractmethod
    def compute_directional_derivatives(self, x: np.ndarray,
                                        order: int) -> np.ndarray:
        """
        Compute the 1-D derivatives of the profile along every axis.

        Args:
            x: Normalized displacement (dimension,)
            order: Highest derivative order needed

        Returns:
            Table of shape (dimension, order + 1) where entry [d, n] is the
            n-th derivative term evaluated at x[d]
        """
        pass

    def compute_partial_derivative(self, table: np.ndarray,
                                   multiindex: Sequence[int]) -> float:
        """
        Combine per-axis derivatives into the mixed partial derivative.

        Args:
            table: Output of compute_directional_derivatives
            multiindex: Derivative order per axis

        Returns:
            Product of table[d, multiindex[d]] over all axes
        """
        result = 1.0
        for d, n in enumerate(multiindex):
            result *= table[d, n]
        return result

    def compute_partial_derivatives(self, table: np.ndarray,
                                    multiindices: np.ndarray) -> np.ndarray:
        """
        Vectorized compute_partial_derivative over an array of multi-indices.

        Args:
            table: Output of compute_directional_derivatives
            multiindices: Integer array of shape (..., dimension)

        Returns:
            Array of shape multiindices.shape[:-1]
        """
        multiindices = np.asarray(multiindices)
        axes = np.arange(table.shape[0])
        return np.prod(table[axes, multiindices], axis=-1)


class GaussianKernelDerivative(KernelDerivative):
    """
    Derivative policy for the Gaussian kernel.

    Uses the Hermite functions h_n(t) = (-1)^n d^n/dt^n exp(-t^2), which
    satisfy h_0 = exp(-t^2), h_1 = 2t exp(-t^2) and
    h_{n+1} = 2t h_n - 2n h_{n-1}.  The kernel is separable, so mixed
    partial derivatives are products of these per-axis values.
    """

    def bandwidth_factor(self, bandwidth_sq: float) -> float:
        """Return sqrt(2 h^2)."""
        return np.sqrt(2.0 * bandwidth_sq)

    def compute_directional_derivatives(self, x: np.ndarray,
                                        order: int) -> np.ndarray:
        """Compute Hermite functions h_0..h_order along each axis."""
        x = np.asarray(x, dtype=np.float64)
        table = np.empty((x.shape[0], order + 1), dtype=np.float64)

        table[:, 0] = np.exp(-x * x)
        if order > 0:
            table[:, 1] = 2.0 * x * table[:, 0]

        for n in range(1, order):
            table[:, n + 1] = 2.0 * (x * table[:, n] - n * table[:, n - 1])

        return table


class Kernel(ABC):
    """Abstract base class for bandwidth-parametrized kernels."""

    name = ""

    def __init__(self, bandwidth: float):
        """
        Initialize the kernel.

        Args:
            bandwidth: Kernel bandwidth h (must be positive)
        """
        if not bandwidth > 0:
            raise ValueError(f"Bandwidth must be positive, got {bandwidth}")
        self.bandwidth = float(bandwidth)
        self.bandwidth_sq = self.bandwidth ** 2

    @abstractmethod
    def eval_unnorm_on_sq(self, dist_sq):
        """
        Evaluate the unnormalized kernel profile on a squared distance.

        Args:
            dist_sq: Squared distance (scalar or array)

        Returns:
            Kernel value(s)
        """
        pass

    @classmethod
    @abstractmethod
    def derivative_class(cls) -> Type[KernelDerivative]:
        """Return the derivative policy matching this kernel family."""
        pass

    def derivative(self) -> KernelDerivative:
        """Create the derivative policy for this kernel."""
        return self.derivative_class()()

    def __call__(self, x: np.ndarray, y: np.ndarray) -> float:
        """Evaluate K(x, y)."""
        diff = np.asarray(x, dtype=np.float64) - np.asarray(y, dtype=np.float64)
        return self.eval_unnorm_on_sq(np.dot(diff, diff))

    def __repr__(self) -> str:
        return f"{type(self).__name__}(bandwidth={self.bandwidth:g})"


class GaussianKernel(Kernel):
    """
    Gaussian kernel.

    K(x, y) = exp(-|x - y|^2 / (2 h^2))
    """

    name = "gaussian"

    def eval_unnorm_on_sq(self, dist_sq):
        """Evaluate exp(-dist_sq / (2 h^2))."""
        return np.exp(-np.asarray(dist_sq) / (2.0 * self.bandwidth_sq))

    @classmethod
    def derivative_class(cls) -> Type[KernelDerivative]:
        return GaussianKernelDerivative


_KERNELS = {
    GaussianKernel.name: GaussianKernel,
}


def register_kernel(kernel_class: Type[Kernel]) -> Type[Kernel]:
    """
    Make a kernel family available by name.

    Can be used as a class decorator.  The class must define a non-empty
    `name` and a derivative policy through derivative_class().

    Args:
        kernel_class: Kernel subclass to register

    Returns:
        The registered class
    """
    if not (isinstance(kernel_class, type) and issubclass(kernel_class, Kernel)):
        raise ValueError(f"Not a Kernel subclass: {kernel_class!r}")
    if not kernel_class.name:
        raise ValueError(f"{kernel_class.__name__} has no kernel name")
    _KERNELS[kernel_class.name.lower()] = kernel_class
    return kernel_class


def create_kernel(kernel: Union[str, Type[Kernel]], bandwidth: float) -> Kernel:
    """
    Factory function to create kernel instances.

    Args:
        kernel: Registered family name ('gaussian') or a Kernel subclass
        bandwidth: Kernel bandwidth h

    Returns:
        Kernel instance
    """
    if isinstance(kernel, type):
        if not issubclass(kernel, Kernel):
            raise ValueError(f"Not a Kernel subclass: {kernel!r}")
        return kernel(bandwidth)

    if not isinstance(kernel, str):
        raise ValueError(f"Kernel must be a name or a Kernel subclass, got {kernel!r}")
    try:
        kernel_class = _KERNELS[kernel.lower()]
    except KeyError:
        raise ValueError(f"Unknown kernel type: {kernel}") from None
    return kernel_class(bandwidth)


def available_kernels() -> list:
    """Return the names accepted by create_kernel."""
    return sorted(_KERNELS)


__all__ = [
    'Kernel',
    'GaussianKernel',
    'KernelDerivative',
    'GaussianKernelDerivative',
    'create_kernel',
    'register_kernel',
    'available_kernels',
]

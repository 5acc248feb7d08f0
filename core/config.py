"""
Configuration Module

Configuration for a family of expansions sharing one multi-index table.
"""

from dataclasses import dataclass
from typing import Optional, Type, Union

import numpy as np

from ..kernels import Kernel, available_kernels, create_kernel
from .expansion import FarFieldExpansion, LocalExpansion
from .multiindex import MultiIndexTable, shared_multiindex_table


@dataclass
class ExpansionConfig:
    """Configuration for series expansions."""
    dimension: int = 2           # Spatial dimension
    max_order: int = 8           # Highest order the shared table supports
    bandwidth: float = 1.0       # Kernel bandwidth h
    kernel: Union[str, Type[Kernel]] = 'gaussian'  # Kernel family

    def __post_init__(self):
        """Validate configuration."""
        if self.dimension < 1:
            raise ValueError("Dimension must be at least 1")
        if self.max_order < 0:
            raise ValueError("Max order must be non-negative")
        if not self.bandwidth > 0:
            raise ValueError("Bandwidth must be positive")
        if isinstance(self.kernel, str):
            if self.kernel.lower() not in available_kernels():
                raise ValueError(f"Unknown kernel type: {self.kernel}")
        elif not (isinstance(self.kernel, type) and issubclass(self.kernel, Kernel)):
            raise ValueError(f"Kernel must be a name or a Kernel subclass, "
                             f"got {self.kernel!r}")

    def create_table(self) -> MultiIndexTable:
        """Return the shared table for this dimension and max order."""
        return shared_multiindex_table(self.dimension, self.max_order)

    def create_kernel(self) -> Kernel:
        return create_kernel(self.kernel, self.bandwidth)

    def create_far_field(self, center: np.ndarray) -> FarFieldExpansion:
        """Create an empty far-field expansion at the given center."""
        return FarFieldExpansion(self.bandwidth, center, self.create_table(),
                                 kernel=self.kernel)

    def create_local(self, center: Optional[np.ndarray] = None) -> LocalExpansion:
        """Create an empty local expansion, at the origin by default."""
        return LocalExpansion(self.bandwidth, self.create_table(),
                              center=center, kernel=self.kernel)

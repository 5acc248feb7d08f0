"""
Series Expansions for Fast Kernel Summation

Approximates sums of a bandwidth-parametrized kernel (such as the
Gaussian) between source and query points with truncated multivariate
Hermite/Taylor series instead of direct pairwise evaluation.

This package includes:
- A shared multi-index table with factorial and binomial tables
- Pluggable kernel derivative policies (Gaussian)
- Far-field (outgoing) and local (incoming) expansions
- Far-to-far, far-to-local and local-to-local translations
- Error-bound driven order selection for local expansions
- P2M, P2L, M2M, M2L, L2L, M2P and L2P operators for tree traversals
"""

from .core import (
    MultiIndexTable,
    shared_multiindex_table,
    Region,
    Expansion,
    FarFieldExpansion,
    LocalExpansion,
    Operator,
    P2M,
    P2L,
    M2M,
    M2L,
    L2L,
    M2P,
    L2P,
    ExpansionConfig,
)
from .kernels import (
    Kernel,
    GaussianKernel,
    KernelDerivative,
    GaussianKernelDerivative,
    create_kernel,
    register_kernel,
)

__version__ = '0.1.0'

__all__ = [
    # Core classes
    'MultiIndexTable',
    'shared_multiindex_table',
    'Region',
    'Expansion',
    'FarFieldExpansion',
    'LocalExpansion',
    'Operator',
    'P2M',
    'P2L',
    'M2M',
    'M2L',
    'L2L',
    'M2P',
    'L2P',
    'ExpansionConfig',
    # Kernels
    'Kernel',
    'GaussianKernel',
    'KernelDerivative',
    'GaussianKernelDerivative',
    'create_kernel',
    'register_kernel',
]

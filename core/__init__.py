"""
Series Expansion Core Module

This module contains the multi-index table, the far-field and local
expansions, and the operators built on them.
"""

from .multiindex import MultiIndexTable, shared_multiindex_table
from .region import Region
from .expansion import Expansion, FarFieldExpansion, LocalExpansion
from .operators import Operator, P2M, P2L, M2M, M2L, L2L, M2P, L2P
from .config import ExpansionConfig

__all__ = [
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
]

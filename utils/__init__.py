"""Utilities package for the draw analysis system."""

from .cache import cache_manager, CacheManager
from .guide import SymbolicGuide
from .helpers import validate_number_range, mirror_number, complement_number, clamp

__all__ = [
    'cache_manager',
    'CacheManager',
    'SymbolicGuide',
    'validate_number_range',
    'mirror_number',
    'complement_number',
    'clamp'
]

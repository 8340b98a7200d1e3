"""API package for the draw analysis system."""

from .routes import app, get_engine
from .schemas import (
    SorteoInput,
    SorteoResponse,
    SeleccionResponse,
    PatronesResponse,
    ErrorResponse
)

__all__ = [
    'app',
    'get_engine',
    'SorteoInput',
    'SorteoResponse',
    'SeleccionResponse',
    'PatronesResponse',
    'ErrorResponse'
]

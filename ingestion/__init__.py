"""Ingestion package: row validation and bulk import."""

from .data_cleaner import DataCleaner, ValidationResult, clean_draw_rows
from .importer import DrawImporter, read_rows

__all__ = [
    'DataCleaner',
    'ValidationResult',
    'clean_draw_rows',
    'DrawImporter',
    'read_rows'
]

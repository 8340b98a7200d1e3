"""Bulk draw import from CSV or JSON files."""

import json
import logging
import time
from pathlib import Path
from typing import List, Dict, Any, Optional, Union

import pandas as pd

from models.repositories import DrawRepository
from ingestion.data_cleaner import DataCleaner

logger = logging.getLogger(__name__)

COLUMN_ALIASES = {
    'date': 'fecha',
    'turno': 'horario',
    'slot': 'horario',
    'country': 'pais',
    'number': 'numero',
    'num': 'numero',
}


def read_rows(path: Union[str, Path]) -> List[Dict[str, Any]]:
    """Load raw rows from ``.csv`` or ``.json``; every value stays a string or native JSON value."""
    path = Path(path)
    suffix = path.suffix.lower()
    if suffix == '.csv':
        df = pd.read_csv(path, dtype=str, keep_default_na=False)
    elif suffix == '.json':
        with path.open(encoding='utf-8') as handle:
            payload = json.load(handle)
        if isinstance(payload, dict):
            payload = payload.get('sorteos') or payload.get('draws') or []
        df = pd.DataFrame(payload)
    else:
        raise ValueError(f"Formato no soportado: {suffix or path.name}")

    df = df.rename(columns=lambda c: COLUMN_ALIASES.get(str(c).strip().lower(), str(c).strip().lower()))
    df = df.where(pd.notna(df), None)
    return df.to_dict(orient='records')


class DrawImporter:
    """Validate raw rows and save them through the draw repository."""

    def __init__(self, draws: DrawRepository, cleaner: Optional[DataCleaner] = None):
        self.draws = draws
        self.cleaner = cleaner or DataCleaner()

    def import_rows(self, rows: List[Dict[str, Any]], source: Optional[str] = None,
                    dry_run: bool = False, force: bool = False) -> Dict[str, Any]:
        stats = {
            'total_procesados': len(rows),
            'insertados': 0,
            'duplicados': 0,
            'actualizados': 0,
            'simulados': 0,
            'invalidos': 0,
        }
        start = time.time()

        cleaned, validations = self.cleaner.clean_batch(rows)
        stats['invalidos'] = sum(1 for v in validations if not v.is_valid)

        for draw in cleaned:
            result = self.draws.save_draw(draw, source=source, dry_run=dry_run, force=force)
            status = result['status']
            if status == 'inserted':
                stats['insertados'] += 1
            elif status == 'duplicate':
                stats['duplicados'] += 1
            elif status == 'updated':
                stats['actualizados'] += 1
            else:
                stats['simulados'] += 1

        stats['duration_seconds'] = time.time() - start
        stats['calidad'] = self.cleaner.generate_quality_report(validations)
        logger.info(
            f"Import finished: {stats['insertados']} inserted, {stats['duplicados']} duplicates, "
            f"{stats['invalidos']} invalid"
        )
        return stats

    def import_file(self, path: Union[str, Path], dry_run: bool = False,
                    force: bool = False) -> Dict[str, Any]:
        rows = read_rows(path)
        logger.info(f"Importing {len(rows)} rows from {path}")
        return self.import_rows(rows, source=Path(path).name, dry_run=dry_run, force=force)

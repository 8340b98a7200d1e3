#!/usr/bin/env python3
"""
Importa sorteos desde un archivo CSV o JSON.

Usage:
    python scripts/import_draws.py data/sorteos.csv
    python scripts/import_draws.py data/sorteos.json --dry-run
    python scripts/import_draws.py data/sorteos.csv --force --rebuild
"""

import argparse
import logging
import sys
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from config.database import db_manager, DatabaseError
from ingestion.importer import DrawImporter
from main import setup_logging
from models.repositories import DrawRepository

logger = logging.getLogger(__name__)


def main():
    parser = argparse.ArgumentParser(
        description="Importar sorteos de dos cifras desde CSV/JSON",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Columnas esperadas: fecha, horario (11AM/3PM/9PM), pais, numero.
Alias aceptados: date, turno, country, number.
        """
    )
    parser.add_argument('archivo', type=Path, help='Ruta del archivo .csv o .json')
    parser.add_argument('--dry-run', action='store_true',
                        help='Mostrar qué se haría sin insertar datos')
    parser.add_argument('--force', action='store_true',
                        help='Actualizar fuente e indicador de prueba de duplicados')
    parser.add_argument('--rebuild', action='store_true',
                        help='Reconstruir perfiles al terminar')
    parser.add_argument('--verbose', '-v', action='store_true',
                        help='Habilitar logging verbose')
    args = parser.parse_args()

    setup_logging()
    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    if not args.archivo.exists():
        logger.error(f"[IMPORT] Archivo no encontrado: {args.archivo}")
        sys.exit(1)

    try:
        db_manager.init_database()
        importer = DrawImporter(DrawRepository(db_manager))
        stats = importer.import_file(args.archivo, dry_run=args.dry_run, force=args.force)
    except (DatabaseError, ValueError) as e:
        logger.error(f"[IMPORT] Error importando: {e}")
        sys.exit(1)

    logger.info("=" * 60)
    logger.info(f"Total procesados: {stats['total_procesados']}")
    logger.info(f"Insertados: {stats['insertados']}")
    logger.info(f"Duplicados: {stats['duplicados']}")
    logger.info(f"Actualizados: {stats['actualizados']}")
    logger.info(f"Inválidos: {stats['invalidos']}")
    logger.info(f"Tasa de éxito: {stats['calidad']['success_rate']:.2%}")
    logger.info("=" * 60)

    if args.rebuild and not args.dry_run:
        from predictions.predictor_engine import analysis_engine
        snapshot = analysis_engine.reconstruir_conocimiento()
        logger.info(f"[REBUILD] {len(snapshot.perfiles)} perfiles desde {snapshot.total_draws} sorteos")


if __name__ == "__main__":
    main()

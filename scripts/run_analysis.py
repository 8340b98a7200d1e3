#!/usr/bin/env python3
"""
Ejecuta una pasada de análisis y muestra la selección final.

Usage:
    python scripts/run_analysis.py
    python scripts/run_analysis.py --pais ni --dia 4 --json
    python scripts/run_analysis.py --now 2024-05-10T16:00 --rebuild
"""

import argparse
import json
import logging
import sys
from datetime import datetime
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from config.database import DatabaseError
from main import setup_logging
from models.domain import AnalysisContext

logger = logging.getLogger(__name__)


def _print_selection(result):
    seleccion = result['seleccion']
    objetivo = seleccion['turno_objetivo']
    print(f"\nTurno objetivo: {objetivo['label']} ({objetivo['fecha']})")
    print("-" * 50)
    for i, pick in enumerate(seleccion['top_picks'], 1):
        print(f"{i}. {pick['numero']:02d}  {pick['percent']:.1f}%")
    if seleccion['secundarios']:
        print("Secundarios: " + ", ".join(f"{s['numero']:02d}" for s in seleccion['secundarios']))
    comodin = seleccion['comodin']
    if comodin:
        print(f"Comodín: {comodin['numero']:02d} ({comodin['origen']})")


def main():
    parser = argparse.ArgumentParser(description="Pasada de análisis sobre los sorteos guardados")
    parser.add_argument('--now', type=datetime.fromisoformat, default=None,
                        help='Momento de referencia ISO (por defecto, ahora)')
    parser.add_argument('--pais', default=None, help='Restringir la ventana de sesgos a un país')
    parser.add_argument('--dia', type=int, choices=range(7), default=None,
                        help='Día de la semana objetivo (0=lunes)')
    parser.add_argument('--anio', type=int, default=None, help='Ventana de patrones del año indicado')
    parser.add_argument('--rebuild', action='store_true', help='Reconstruir perfiles antes de analizar')
    parser.add_argument('--patrones', action='store_true', help='Mostrar hallazgos de patrones')
    parser.add_argument('--json', action='store_true', help='Salida JSON completa')
    args = parser.parse_args()

    setup_logging()
    from predictions.predictor_engine import analysis_engine

    contexto = AnalysisContext(country=args.pais, weekday=args.dia, year=args.anio)
    try:
        analysis_engine.db.init_database()
        if args.rebuild:
            analysis_engine.reconstruir_conocimiento(now=args.now)
        result = analysis_engine.seleccion_final(now=args.now, contexto=contexto, use_cache=False)
        patrones = analysis_engine.detectar_patrones(now=args.now, contexto=contexto) if args.patrones else None
    except DatabaseError as e:
        logger.error(f"[ANALYSIS] Error de base de datos: {e}")
        sys.exit(1)

    if args.json:
        print(json.dumps({'seleccion': result, 'patrones': patrones}, indent=2, ensure_ascii=False, default=str))
        return

    _print_selection(result)
    if patrones:
        print(f"\n{patrones['mensaje']}")
        for hallazgo in patrones['hallazgos'][:10]:
            print(f"- [{hallazgo['confianza']:.2f}] {hallazgo['titulo']}: {hallazgo['resumen']}")


if __name__ == "__main__":
    main()

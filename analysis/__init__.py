"""Analysis package: timeline, profiles, knowledge cache, patterns and reports."""

from .timeline import build_timeline, parse_draw_date, hydrate_draw
from .profiles import calcular_memoria, generar_predicciones, generar_insights
from .knowledge import KnowledgeBase
from .patterns import detectar_patrones, DETECTORES
from .narrative import NarrativeService
from .weekly import analizar_secuencias_semanales, analizar_comparacion_mensual
from .monthly import analizar_patrones_mensuales

__all__ = [
    'build_timeline',
    'parse_draw_date',
    'hydrate_draw',
    'calcular_memoria',
    'generar_predicciones',
    'generar_insights',
    'KnowledgeBase',
    'detectar_patrones',
    'DETECTORES',
    'NarrativeService',
    'analizar_secuencias_semanales',
    'analizar_comparacion_mensual',
    'analizar_patrones_mensuales'
]

"""Predictions package: tiers, final selection, modes, triggers and the engine."""

from .bias_tiers import clasificar_sesgos
from .final_selection import calcular_seleccion_final
from .mode_engine import evaluar_modos
from .triggers import evaluar_relaciones
from .pega3 import evaluar_pega3
from .predictor_engine import AnalysisEngine, analysis_engine

__all__ = [
    'clasificar_sesgos',
    'calcular_seleccion_final',
    'evaluar_modos',
    'evaluar_relaciones',
    'evaluar_pega3',
    'AnalysisEngine',
    'analysis_engine'
]

"""Analysis engine: wires the store, the knowledge cache and every analysis pass."""

import logging
from datetime import datetime
from typing import List, Dict, Any, Optional

from config.database import DatabaseManager, db_manager
from config.settings import settings
from models.domain import AnalysisContext, DrawEvent, GameMode, MemorySnapshot, Turno
from models.repositories import (
    DrawRepository, HypothesisRepository, KnowledgeRepository,
    ModeRepository, TriggerRepository
)
from analysis.timeline import build_timeline
from analysis.knowledge import KnowledgeBase
from analysis.narrative import NarrativeService
from analysis.patterns import detectar_patrones
from analysis.profiles import generar_predicciones, generar_insights
from analysis.weekly import analizar_secuencias_semanales, analizar_comparacion_mensual
from analysis.monthly import analizar_patrones_mensuales
from predictions.bias_tiers import clasificar_sesgos
from predictions.final_selection import calcular_seleccion_final, compute_turn_target
from predictions.mode_engine import evaluar_modos
from predictions.triggers import evaluar_relaciones
from utils.cache import CacheManager, cache_manager, selection_key, invalidate_analysis_cache
from utils.guide import SymbolicGuide

logger = logging.getLogger(__name__)


class AnalysisEngine:
    """Runs one analysis pass per call over the current store contents."""

    def __init__(self, db: Optional[DatabaseManager] = None, guide: Optional[SymbolicGuide] = None,
                 cache: Optional[CacheManager] = None):
        self.db = db or db_manager
        self.cache = cache if cache is not None else cache_manager
        self._guide = guide

        self.draws = DrawRepository(self.db)
        self.hypotheses = HypothesisRepository(self.db)
        self.knowledge = KnowledgeRepository(self.db)
        self.modes = ModeRepository(self.db)
        self.triggers = TriggerRepository(self.db)

        self.knowledge_base = KnowledgeBase(self.draws, self.hypotheses, self.knowledge)
        self.narrative = NarrativeService(self.hypotheses)

    @property
    def guide(self) -> SymbolicGuide:
        if self._guide is None:
            self._guide = SymbolicGuide.load(settings.guide_path)
        return self._guide

    def timeline(self) -> List[DrawEvent]:
        return build_timeline(self.draws.list_draws(exclude_test=True))

    # ----------------------------------------
    # Profiles
    # ----------------------------------------

    def reconstruir_conocimiento(self, now: Optional[datetime] = None) -> MemorySnapshot:
        return self.knowledge_base.rebuild_knowledge(now=now)

    def obtener_perfiles(self, now: Optional[datetime] = None) -> MemorySnapshot:
        return self.knowledge_base.obtener_perfiles(now=now)

    def resumen_perfiles(self, now: Optional[datetime] = None, top: Optional[int] = None) -> Dict[str, Any]:
        snapshot = self.obtener_perfiles(now)
        return {
            'total_draws': snapshot.total_draws,
            'latest_timestamp': snapshot.latest_timestamp,
            'predicciones': [
                {'numero': item['numero'], 'score': item['score']}
                for item in generar_predicciones(snapshot.perfiles, top)
            ],
            'insights': generar_insights(snapshot.perfiles),
        }

    # ----------------------------------------
    # Patterns, tiers and the final selection
    # ----------------------------------------

    def detectar_patrones(self, now: Optional[datetime] = None,
                          contexto: Optional[AnalysisContext] = None) -> Dict[str, Any]:
        now = now or datetime.now()
        return detectar_patrones(self.timeline(), now, guide=self.guide, context=contexto)

    def clasificar_sesgos(self, now: Optional[datetime] = None,
                          contexto: Optional[AnalysisContext] = None) -> Dict[str, Any]:
        now = now or datetime.now()
        timeline = self.timeline()
        snapshot = self.obtener_perfiles(now)
        patrones = detectar_patrones(timeline, now, guide=self.guide, context=contexto)
        return clasificar_sesgos(timeline, snapshot.perfiles, context=contexto,
                                 patrones=patrones, guide=self.guide)

    def seleccion_final(self, now: Optional[datetime] = None,
                        contexto: Optional[AnalysisContext] = None,
                        use_cache: bool = True) -> Dict[str, Any]:
        """Top picks, secondaries and wildcard for the next slot to play."""
        now = now or datetime.now()
        timeline = self.timeline()
        objetivo = compute_turn_target(timeline, now)

        contexto = contexto or AnalysisContext()
        if contexto.target_slot is None:
            contexto = contexto.model_copy(update={'target_slot': Turno(objetivo['turno'])})

        key = selection_key(objetivo['fecha'], objetivo['turno'],
                            contexto.model_dump_json(exclude={'target_slot'}))
        if use_cache:
            cached = self.cache.get(key)
            if cached is not None:
                logger.debug(f"Selection cache hit for {key}")
                return cached

        snapshot = self.obtener_perfiles(now)
        patrones = detectar_patrones(timeline, now, guide=self.guide, context=contexto)
        sesgos = clasificar_sesgos(timeline, snapshot.perfiles, context=contexto,
                                   patrones=patrones, guide=self.guide)
        seleccion = calcular_seleccion_final(
            sesgos['fuertes'], sesgos['moderados'], sesgos['debiles'], timeline, now
        )
        result = {
            'seleccion': seleccion,
            'sesgos': {
                level: [candidate.to_dict() for candidate in sesgos[level]]
                for level in ('fuertes', 'moderados', 'debiles')
            },
            'ventana': sesgos['window'],
        }
        if use_cache:
            self.cache.set(key, result, settings.cache_ttl_selection)
        return result

    # ----------------------------------------
    # Draws and hypotheses
    # ----------------------------------------

    def registrar_sorteo(self, draw: DrawEvent, source: Optional[str] = None,
                         dry_run: bool = False, force: bool = False) -> Dict[str, Any]:
        result = self.draws.save_draw(draw, source=source, dry_run=dry_run, force=force)
        if result['status'] in ('inserted', 'updated'):
            invalidate_analysis_cache(self.cache)
        return result

    def registrar_resultado(self, draw: DrawEvent, source: Optional[str] = None) -> Dict[str, Any]:
        """Store a real draw and resolve pending hypotheses against it."""
        saved = self.registrar_sorteo(draw, source=source)
        outcomes = self.narrative.registrar_resultado(draw)
        return {'sorteo': saved, 'resueltas': len(outcomes), 'resultados': outcomes}

    # ----------------------------------------
    # Modes, triggers and supplementary reports
    # ----------------------------------------

    def evaluar_modos(self, modos: Optional[List[GameMode]] = None) -> Optional[Dict[str, Any]]:
        modos = modos if modos is not None else self.modes.list_modes_with_examples()
        return evaluar_modos(modos, self.timeline())

    def evaluar_disparadores(self, now: Optional[datetime] = None) -> List[Dict[str, Any]]:
        return evaluar_relaciones(self.triggers.list_relations(only_active=True), self.timeline(), now)

    def secuencias_semanales(self, **kwargs) -> Dict[str, Any]:
        return analizar_secuencias_semanales(self.timeline(), **kwargs)

    def comparacion_mensual(self, dow: Optional[int], **kwargs) -> Dict[str, Any]:
        return analizar_comparacion_mensual(self.timeline(), dow, **kwargs)

    def patrones_mensuales(self, mes: int, **kwargs) -> Dict[str, Any]:
        return analizar_patrones_mensuales(self.timeline(), mes, **kwargs)


# Global engine instance
analysis_engine = AnalysisEngine()

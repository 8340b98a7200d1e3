"""Bias classifier: sort candidate numbers into fuerte / moderado / debil tiers."""

import logging
from collections import Counter, defaultdict
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import List, Dict, Any, Optional, Set

from config.settings import settings
from models.domain import (
    DrawEvent, NumberProfile, TierCandidate, GapInfo, AnalysisContext,
    EstadoHipotesis, Turno
)
from analysis.profiles import prediction_score
from utils.guide import SymbolicGuide
from utils.helpers import clamp, safe_divide

logger = logging.getLogger(__name__)

WEAK_TRIGGER_COUNT = 7


@dataclass
class WindowStats:
    total: int = 0
    turn_counts: Counter = field(default_factory=Counter)
    dow_counts: Counter = field(default_factory=Counter)
    last: Optional[DrawEvent] = None

    def freq(self, window_total: int) -> float:
        return safe_divide(self.total, window_total)

    def turn_ratio(self, turno: str) -> float:
        return safe_divide(self.turn_counts[turno], self.total)

    def dow_ratio(self, dow: Optional[int]) -> Optional[float]:
        if dow is None:
            return None
        return safe_divide(self.dow_counts[dow], self.total)


def build_window_stats(window: List[DrawEvent]) -> Dict[int, WindowStats]:
    stats: Dict[int, WindowStats] = defaultdict(WindowStats)
    for event in window:
        entry = stats[event.numero]
        entry.total += 1
        entry.turn_counts[event.horario.value] += 1
        entry.dow_counts[event.weekday] += 1
        entry.last = event
    return dict(stats)


def compute_gap_info(perfil: NumberProfile, tolerance: int) -> GapInfo:
    """Modal historical gap and whether days-since-last sits within tolerance of it."""
    days_since = perfil.gaps.days_since
    counts = Counter(entry.gap for entry in perfil.gaps.historial)
    if not counts:
        return GapInfo(mode=None, matches=0, days_since=days_since, is_active=False)
    mode, matches = min(counts.items(), key=lambda item: (-item[1], item[0]))
    is_active = days_since is not None and abs(days_since - mode) <= tolerance
    return GapInfo(mode=mode, matches=matches, days_since=days_since, is_active=is_active)


def find_narrative(perfil: NumberProfile, reference: date, days: int) -> Optional[str]:
    """Confirmed hypothesis or learning outcome within ``days`` before reference."""
    desde = reference - timedelta(days=days)
    for detalle in reversed(perfil.hipotesis.detalles):
        if detalle.estado == EstadoHipotesis.CONFIRMADA and desde <= detalle.fecha <= reference:
            return f"hipotesis {detalle.fecha.isoformat()}"
    ultimo = perfil.aprendizaje.ultimo_resultado
    if ultimo and ultimo.estado == EstadoHipotesis.CONFIRMADA and desde <= ultimo.fecha <= reference:
        return f"aprendizaje {ultimo.fecha.isoformat()}"
    return None


def build_turn_repeat_map(window: List[DrawEvent], days: int) -> Dict[int, int]:
    """Highest same-slot count per number over the trailing ``days``."""
    if not window:
        return {}
    desde = window[-1].fecha - timedelta(days=days)
    counts: Dict[int, Counter] = defaultdict(Counter)
    for event in window:
        if event.fecha >= desde:
            counts[event.numero][event.horario.value] += 1
    return {numero: max(turnos.values()) for numero, turnos in counts.items()}


def build_regional_set(timeline: List[DrawEvent]) -> Set[int]:
    """Numbers drawn in regional countries on the latest recorded day."""
    if not timeline:
        return set()
    latest_day = timeline[-1].fecha
    regional = {country.lower() for country in settings.regional_countries}
    return {e.numero for e in timeline if e.fecha == latest_day and e.pais_key in regional}


def build_transition_targets(patrones: Optional[Dict[str, Any]]) -> Set[int]:
    targets = set()
    for hallazgo in (patrones or {}).get('hallazgos', []):
        if not str(hallazgo.get('id', '')).startswith('transition-'):
            continue
        datos = hallazgo.get('datos') or {}
        if isinstance(datos.get('destino'), int) and datos.get('historial', 0) > 0:
            targets.add(datos['destino'])
    return targets


def build_family_set(patrones: Optional[Dict[str, Any]], guide: Optional[SymbolicGuide]) -> Set[int]:
    stats = (patrones or {}).get('stats') or {}
    familia = stats.get('familia_dominante')
    if not familia or guide is None:
        return set()
    return set(guide.numeros_de_familia(familia))


def _target_turn(context: Optional[AnalysisContext]) -> str:
    if context is not None and context.target_slot is not None:
        return context.target_slot.value
    return Turno.NOCHE.value


def _candidate(perfil: NumberProfile, level: str, score: float, stats: Optional[WindowStats],
               window_total: int, turno: str, dow: Optional[int], gap: GapInfo,
               narrativa: Optional[str], triggers: List[str], criteria: Dict[str, bool]) -> TierCandidate:
    last = stats.last if stats else None
    return TierCandidate(
        numero=perfil.numero,
        level=level,
        score=clamp(score),
        triggers=triggers,
        criteria=criteria,
        frecuencia=perfil.score_frecuencia,
        recencia=perfil.score_recencia,
        hipotesis=perfil.score_hipotesis,
        contexto_score=perfil.score_contexto,
        turn_ratio=stats.turn_ratio(turno) if stats else 0.0,
        dow_ratio=stats.dow_ratio(dow) if stats else (None if dow is None else 0.0),
        window_freq=stats.freq(window_total) if stats else 0.0,
        window_count=stats.total if stats else 0,
        last=last.fecha_iso if last else (perfil.last_seen.isoformat() if perfil.last_seen else None),
        gap=gap,
        narrativa=narrativa,
    )


def clasificar_sesgos(timeline: List[DrawEvent], perfiles: List[NumberProfile],
                      context: Optional[AnalysisContext] = None,
                      patrones: Optional[Dict[str, Any]] = None,
                      guide: Optional[SymbolicGuide] = None,
                      predicciones: Optional[List[Dict[str, Any]]] = None) -> Dict[str, Any]:
    """Classify every profiled number into disjoint tiers.

    Window statistics use the trailing ``tier_window_days`` before the latest
    event, restricted to ``context.country`` when given.
    """
    empty = {'fuertes': [], 'moderados': [], 'debiles': [], 'window': None}
    if not timeline or not perfiles:
        return empty

    latest = timeline[-1]
    desde = latest.fecha - timedelta(days=settings.tier_window_days)
    window = [e for e in timeline if e.fecha >= desde]
    if context is not None and context.country:
        country = context.country.strip().lower()
        window = [e for e in window if e.pais_key == country]
    if not window:
        return empty

    window_stats = build_window_stats(window)
    window_total = len(window)
    turno = _target_turn(context)
    dow = context.weekday if context is not None else None

    base_scores = {p.numero: prediction_score(p) for p in perfiles}
    for pred in predicciones or []:
        base_scores[pred['numero']] = pred['score']

    turn_repeats = build_turn_repeat_map(window, settings.turn_repeat_window_days)
    transition_targets = build_transition_targets(patrones)
    family_set = build_family_set(patrones, guide)
    regional_set = build_regional_set(timeline)

    fuertes, moderados, debiles = [], [], []
    for perfil in sorted(perfiles, key=lambda p: p.numero):
        numero = perfil.numero
        stats = window_stats.get(numero)
        base = clamp(base_scores.get(numero, 0.0))
        window_freq = stats.freq(window_total) if stats else 0.0
        turn_ratio = stats.turn_ratio(turno) if stats else 0.0
        dow_ratio = stats.dow_ratio(dow) if stats else (None if dow is None else 0.0)

        # Strong tier: every gate must hold
        gap_fuerte = compute_gap_info(perfil, 1)
        narrativa_fuerte = find_narrative(perfil, latest.fecha, settings.narrative_window_strong)
        strong_criteria = {
            'frecuencia': window_freq >= 0.02,
            'recencia': perfil.score_recencia > 0.25,
            'turno': turn_ratio > 0.4,
            'dia': dow is None or (dow_ratio or 0.0) > 0.4,
            'gap': gap_fuerte.is_active,
            'narrativa': narrativa_fuerte is not None,
        }
        if all(strong_criteria.values()):
            fuertes.append(_candidate(
                perfil, 'fuerte', base, stats, window_total, turno, dow, gap_fuerte,
                narrativa_fuerte, [name for name in strong_criteria], strong_criteria
            ))
            continue

        gap_moderado = compute_gap_info(perfil, 2)
        narrativa_moderada = find_narrative(perfil, latest.fecha, settings.narrative_window_moderate)
        moderate_criteria = {
            'ratio horario ≥ 25%': turn_ratio >= 0.25,
            'sesgo semanal ≥ 25%': dow is not None and (dow_ratio or 0.0) >= 0.25,
            'frecuencia ≥ 1.5%': window_freq >= 0.015,
            'recencia ≥ 15%': perfil.score_recencia >= 0.15,
            'gap dominante activo': gap_moderado.is_active,
            'turno repetido 2×/30d': turn_repeats.get(numero, 0) >= 2,
            'narrativa ≤ 45d': narrativa_moderada is not None,
            'transición histórica': numero in transition_targets,
        }
        moderate_triggers = [name for name, hit in moderate_criteria.items() if hit]
        if len(moderate_triggers) >= 3:
            moderados.append(_candidate(
                perfil, 'moderado', base, stats, window_total, turno, dow, gap_moderado,
                narrativa_moderada, moderate_triggers, moderate_criteria
            ))
            continue

        gap_debil = compute_gap_info(perfil, 3)
        days_since = perfil.gaps.days_since
        weak_criteria = {
            'ratio horario ≥ 15%': turn_ratio >= 0.15,
            'sesgo semanal ≥ 15%': dow is not None and (dow_ratio or 0.0) >= 0.15,
            'frecuencia > 1%': window_freq > 0.01,
            'aparición ≤ 10d': days_since is not None and days_since <= 10,
            'gap dentro ±3': gap_debil.is_active,
            'familia dominante activa': numero in family_set,
            'influencia regional': numero in regional_set,
        }
        weak_triggers = [name for name, hit in weak_criteria.items() if hit]
        if weak_triggers:
            score = base * 0.4 + window_freq * 5 * 0.3 + (len(weak_triggers) / WEAK_TRIGGER_COUNT) * 0.3
            debiles.append(_candidate(
                perfil, 'debil', score, stats, window_total, turno, dow, gap_debil,
                narrativa_moderada, weak_triggers, weak_criteria
            ))

    def rank(candidates: List[TierCandidate], cap: int) -> List[TierCandidate]:
        return sorted(candidates, key=lambda c: (-c.score, c.numero))[:cap]

    result = {
        'fuertes': rank(fuertes, settings.max_fuertes),
        'moderados': rank(moderados, settings.max_moderados),
        'debiles': rank(debiles, settings.max_debiles),
        'window': {
            'desde': window[0].fecha_iso,
            'hasta': window[-1].fecha_iso,
            'muestras': window_total,
            'turno': turno,
            'dia': dow,
        },
    }
    logger.debug(
        f"Tiers: {len(result['fuertes'])} fuertes, {len(result['moderados'])} moderados, "
        f"{len(result['debiles'])} debiles"
    )
    return result

"""Mode evaluator: back-test user transformation rules against the timeline."""

import logging
from datetime import timedelta
from typing import List, Dict, Any, Optional, Tuple

from config.settings import settings
from models.domain import DrawEvent, GameMode
from predictions.operations import apply_operation, validate_parameters

logger = logging.getLogger(__name__)


class PairStats:
    """Attempts and hits of one (original -> resultado) rule."""

    __slots__ = ('original', 'resultado', 'intentos', 'aciertos', 'evidencia', 'nota')

    def __init__(self, original: int, resultado: int, nota: str = ""):
        self.original = original
        self.resultado = resultado
        self.intentos = 0
        self.aciertos = 0
        self.evidencia: List[Dict[str, Any]] = []
        self.nota = nota

    @property
    def confianza(self) -> float:
        return self.aciertos / self.intentos if self.intentos else 0.0

    @property
    def soporte(self) -> float:
        return min(1.0, self.intentos / settings.mode_support_attempts)

    @property
    def puntaje(self) -> float:
        return self.confianza * self.soporte

    def to_dict(self) -> Dict[str, Any]:
        return {
            'original': self.original,
            'resultado': self.resultado,
            'intentos': self.intentos,
            'aciertos': self.aciertos,
            'confianza': self.confianza,
            'soporte': self.soporte,
            'puntaje': self.puntaje,
            'evidencia': self.evidencia[-4:],
        }


def _followers(timeline: List[DrawEvent], index: int, offset: Optional[int]) -> List[Tuple[int, DrawEvent]]:
    """Draws that may answer the draw at ``index``: a fixed offset, or the lookahead window."""
    base = timeline[index]
    if offset:
        target = index + offset
        return [(offset, timeline[target])] if target < len(timeline) else []

    limit = base.fecha + timedelta(days=settings.mode_lookahead_days)
    followers = []
    for hop in range(1, settings.mode_lookahead_draws + 1):
        if index + hop >= len(timeline):
            break
        nxt = timeline[index + hop]
        if nxt.fecha > limit:
            break
        followers.append((hop, nxt))
    return followers


def _record(stats: PairStats, base: DrawEvent, followers: List[Tuple[int, DrawEvent]]):
    stats.intentos += 1
    for hop, nxt in followers:
        if nxt.numero == stats.resultado:
            stats.aciertos += 1
            stats.evidencia.append({
                'base_fecha': base.fecha_iso,
                'base_horario': base.horario.value,
                'resultado_fecha': nxt.fecha_iso,
                'resultado_horario': nxt.horario.value,
                'hops': hop,
            })
            break


def evaluar_ejemplo(original: int, resultado: int, timeline: List[DrawEvent],
                    offset: Optional[int] = None, nota: str = "") -> Optional[PairStats]:
    """Back-test a literal pair; None when the original never occurred."""
    stats = PairStats(original, resultado, nota)
    for index, draw in enumerate(timeline):
        if draw.numero == original:
            _record(stats, draw, _followers(timeline, index, offset))
    return stats if stats.intentos else None


def evaluar_operacion(operacion: str, parametros: Dict[str, Any], timeline: List[DrawEvent],
                      offset: Optional[int] = None) -> Dict[Tuple[int, int], PairStats]:
    """Back-test every (input, output) pair a built-in operation produces.

    Parameters the operation cannot take yield no pairs instead of failing
    the whole evaluation.
    """
    pairs: Dict[Tuple[int, int], PairStats] = {}
    try:
        validate_parameters(operacion, parametros)
    except ValueError as e:
        logger.debug(f"Skipping operation {operacion} with parametros {parametros}: {e}")
        return pairs

    for index, draw in enumerate(timeline):
        outputs = apply_operation(operacion, draw.numero, parametros)
        if not outputs:
            continue
        followers = _followers(timeline, index, offset)
        for output in outputs:
            stats = pairs.get((draw.numero, output))
            if stats is None:
                stats = pairs[(draw.numero, output)] = PairStats(draw.numero, output, f"{operacion}")
            _record(stats, draw, followers)
    return pairs


def _mode_pairs(mode: GameMode, timeline: List[DrawEvent]) -> List[PairStats]:
    pairs = []
    if mode.operacion:
        pairs.extend(evaluar_operacion(mode.operacion, mode.parametros, timeline, mode.offset).values())
    for ejemplo in mode.ejemplos:
        stats = evaluar_ejemplo(
            ejemplo.original, ejemplo.resultado, timeline, mode.offset,
            ejemplo.nota or mode.descripcion or ""
        )
        if stats is not None:
            pairs.append(stats)
    return pairs


def evaluar_modos(modos: List[GameMode], timeline: List[DrawEvent]) -> Optional[Dict[str, Any]]:
    """Scores per destination number, per-number detail and suggestions for recent draws."""
    if not modos or not timeline:
        return None

    score_por_numero: Dict[str, float] = {}
    detalle_por_numero: Dict[str, List[Dict[str, Any]]] = {}
    estadisticas = []
    evaluated: List[Tuple[GameMode, List[PairStats]]] = []

    for mode in modos:
        pairs = _mode_pairs(mode, timeline)
        evaluated.append((mode, pairs))

        intentos = sum(p.intentos for p in pairs)
        aciertos = sum(p.aciertos for p in pairs)
        estadisticas.append({
            'mode_id': mode.id,
            'mode_nombre': mode.nombre,
            'pares': len(pairs),
            'intentos': intentos,
            'aciertos': aciertos,
            'confianza': aciertos / intentos if intentos else 0.0,
        })

        for stats in pairs:
            key = f"{stats.resultado:02d}"
            score_por_numero[key] = max(score_por_numero.get(key, 0.0), stats.puntaje)
            detalle_por_numero.setdefault(key, []).append({
                'mode_id': mode.id,
                'mode_nombre': mode.nombre,
                'original': stats.original,
                'resultado': stats.resultado,
                'confianza': stats.confianza,
                'soporte': stats.intentos,
                'nota': stats.nota,
            })

    recientes = timeline[-settings.mode_recent_draws:]
    recent_numbers = {draw.numero for draw in recientes}
    sugerencias = []
    seen = set()
    for mode, pairs in evaluated:
        for stats in pairs:
            if stats.original not in recent_numbers or stats.confianza < settings.mode_min_confidence:
                continue
            key = (mode.clave, stats.original, stats.resultado)
            if key in seen:
                continue
            seen.add(key)
            sugerencias.append({
                'mode_id': mode.id,
                'mode_nombre': mode.nombre,
                'numero': stats.resultado,
                'base_numero': stats.original,
                'confianza': stats.confianza,
                'soporte': stats.intentos,
                'nota': stats.nota or mode.descripcion or "",
            })
    sugerencias.sort(key=lambda s: (-s['confianza'], s['numero']))

    logger.debug(f"Evaluated {len(modos)} modes, {len(sugerencias)} suggestions")
    return {
        'score_por_numero': score_por_numero,
        'detalle_por_numero': detalle_por_numero,
        'sugerencias': sugerencias,
        'estadisticas': estadisticas,
    }

"""Trigger relations: back-test origin -> target relations over the timeline."""

import logging
from datetime import datetime, timedelta
from typing import List, Dict, Any, Optional

import numpy as np

from config.settings import settings
from models.domain import DrawEvent

logger = logging.getLogger(__name__)

HIT = "HIT"
LATE_HIT = "LATE_HIT"
MISS = "MISS"
OPEN = "OPEN"


def _late_limit(ventana_max: int) -> int:
    return max(ventana_max + 1, int(round(ventana_max * settings.trigger_late_factor)))


def resolver_evento(relacion: Dict[str, Any], origen: DrawEvent, siguientes: List[DrawEvent],
                    now: datetime) -> Dict[str, Any]:
    """Close one origin occurrence against the draws that followed it.

    A target inside [ventana_min, ventana_max] days is a HIT; one after the
    window but within the late limit is a LATE_HIT. Without a hit the event
    is a MISS once the deadline passed, otherwise it stays OPEN.
    """
    vmin, vmax = relacion['ventana_min'], relacion['ventana_max']
    deadline = origen.momento + timedelta(days=vmax)
    late_limit = _late_limit(vmax)

    for event in siguientes:
        if event.momento > now:
            break
        lag = (event.fecha - origen.fecha).days
        if lag > late_limit:
            break
        if event.numero != relacion['destino'] or lag < vmin:
            continue
        return {
            'origen_fecha': origen.fecha_iso,
            'origen_horario': origen.horario.value,
            'estado': HIT if lag <= vmax else LATE_HIT,
            'lag_dias': lag,
            'hit_fecha': event.fecha_iso,
            'hit_horario': event.horario.value,
        }

    return {
        'origen_fecha': origen.fecha_iso,
        'origen_horario': origen.horario.value,
        'estado': MISS if now > deadline else OPEN,
        'lag_dias': None,
        'hit_fecha': None,
        'hit_horario': None,
    }


def resumir_eventos(eventos: List[Dict[str, Any]]) -> Dict[str, Any]:
    """Counts, closed-event rates and lag distribution."""
    counts = {estado: 0 for estado in (HIT, LATE_HIT, MISS, OPEN)}
    for evento in eventos:
        counts[evento['estado']] += 1
    closed = counts[HIT] + counts[LATE_HIT] + counts[MISS]
    lags = np.array([e['lag_dias'] for e in eventos if e['lag_dias'] is not None], dtype=float)

    def rate(count: int) -> float:
        return count / closed if closed else 0.0

    return {
        'total_eventos': len(eventos),
        'hits': counts[HIT],
        'late_hits': counts[LATE_HIT],
        'misses': counts[MISS],
        'abiertos': counts[OPEN],
        'hit_rate': rate(counts[HIT]),
        'late_rate': rate(counts[LATE_HIT]),
        'miss_rate': rate(counts[MISS]),
        'lag_promedio': float(np.mean(lags)) if lags.size else None,
        'lag_mediana': float(np.median(lags)) if lags.size else None,
        'lag_p80': float(np.percentile(lags, 80)) if lags.size else None,
    }


def backtest_relacion(relacion: Dict[str, Any], timeline: List[DrawEvent],
                      now: Optional[datetime] = None) -> Dict[str, Any]:
    """Every occurrence of the origin number opens one event."""
    if now is None:
        now = timeline[-1].momento if timeline else datetime.now()
    eventos = []
    for index, event in enumerate(timeline):
        if event.numero != relacion['origen'] or event.momento > now:
            continue
        eventos.append(resolver_evento(relacion, event, timeline[index + 1:], now))
    return {
        'relacion': relacion,
        'eventos': eventos,
        'stats': resumir_eventos(eventos),
    }


def evaluar_relaciones(relaciones: List[Dict[str, Any]], timeline: List[DrawEvent],
                       now: Optional[datetime] = None) -> List[Dict[str, Any]]:
    """Back-test every relation, best hit rate first."""
    resultados = [backtest_relacion(relacion, timeline, now) for relacion in relaciones]
    resultados.sort(key=lambda r: (-r['stats']['hit_rate'], -r['stats']['total_eventos'],
                                   r['relacion']['origen'], r['relacion']['destino']))
    logger.debug(f"Back-tested {len(resultados)} trigger relations")
    return resultados

"""Weekly sequences: cycles inside the series of each (weekday, slot) pair."""

import logging
from collections import defaultdict
from datetime import timedelta
from typing import List, Dict, Any, Optional

from models.domain import DrawEvent

logger = logging.getLogger(__name__)


def detect_cycle(values: List[int], min_length: int = 2, max_length: int = 6,
                 min_repeats: int = 2) -> Optional[Dict[str, Any]]:
    """Find the shortest block that repeats at the tail of the series.

    The series is read backwards in blocks of the candidate length; the first
    length with at least ``min_repeats`` identical blocks wins.
    """
    serie = [v for v in values if v is not None]
    if len(serie) < min_length * min_repeats:
        return None

    for length in range(min_length, min(max_length, len(serie) - 1) + 1):
        pattern = serie[-length:]
        matched_cycles = 0
        start = len(serie) - length
        while start >= 0 and serie[start:start + length] == pattern:
            matched_cycles += 1
            start -= length

        if matched_cycles >= min_repeats:
            matched_entries = matched_cycles * length
            coverage = matched_entries / len(serie)
            bonus = max(0, matched_cycles - min_repeats) * 0.12
            return {
                'length': length,
                'pattern': pattern,
                'matched_cycles': matched_cycles,
                'matched_entries': matched_entries,
                'coverage': coverage,
                'next_numero': pattern[matched_entries % length],
                'score': min(1.0, coverage * 0.7 + bonus),
            }
    return None


def _filtrar(timeline: List[DrawEvent], pais: Optional[str], turno: Optional[str]) -> List[DrawEvent]:
    pais_key = pais.strip().lower() if pais and pais != "ALL" else None
    turno_key = turno if turno and turno != "ALL" else None
    return [
        e for e in timeline
        if (pais_key is None or e.pais_key == pais_key)
        and (turno_key is None or e.horario.value == turno_key)
    ]


def analizar_secuencias_semanales(timeline: List[DrawEvent], pais: Optional[str] = None,
                                  turno: Optional[str] = None, max_samples: int = 12,
                                  min_repeats: int = 2, min_entries: int = 4,
                                  max_cycle_length: int = 6) -> Dict[str, Any]:
    """Group draws by (weekday, slot) and look for repeating tails."""
    max_samples = max(4, max_samples)
    groups = defaultdict(list)
    for event in _filtrar(timeline, pais, turno):
        groups[(event.weekday, event.horario.rank)].append(event)

    combos = []
    for (dow, _), entries in sorted(groups.items()):
        if len(entries) < min_entries:
            continue
        muestra = entries[-max_samples:]
        serie = [e.numero for e in muestra]
        last = muestra[-1]
        cycle = detect_cycle(
            serie,
            min_length=2,
            max_length=max(2, min(max_cycle_length, len(serie) - 1)),
            min_repeats=min_repeats,
        )
        combos.append({
            'dow': dow,
            'horario': last.horario.value,
            'total': len(entries),
            'serie': serie,
            'window_start': muestra[0].fecha_iso,
            'window_end': last.fecha_iso,
            'last_fecha': last.fecha_iso,
            'last_pais': last.pais,
            'next_date': (last.fecha + timedelta(days=7)).isoformat(),
            'cycle': cycle,
        })

    with_cycle = [combo for combo in combos if combo['cycle']]
    destacados = sorted(with_cycle, key=lambda combo: -combo['cycle']['score'])[:5]
    return {
        'filtro': {'pais': pais, 'turno': turno, 'max_samples': max_samples, 'min_repeats': min_repeats},
        'combos': combos,
        'stats': {
            'total_combos': len(combos),
            'combos_con_ciclo': len(with_cycle),
            'destacados': destacados,
        },
    }


def analizar_comparacion_mensual(timeline: List[DrawEvent], dow: Optional[int],
                                 pais: Optional[str] = None, turno: Optional[str] = None,
                                 months_back: int = 8, min_repeats: int = 2) -> Dict[str, Any]:
    """Compare the first and last draw of one weekday across recent months."""
    filtro = {'pais': pais, 'turno': turno, 'dow': dow, 'months_back': months_back}
    if dow is None:
        return {
            'mensaje': "Selecciona un día de la semana para comparar meses.",
            'filtro': filtro,
            'months': [],
            'stats': None,
            'sequences': {'start': [], 'end': []},
        }

    months = defaultdict(list)
    for event in _filtrar(timeline, pais, turno):
        if event.weekday == dow:
            months[(event.fecha.year, event.fecha.month)].append(event)

    ordered = []
    for (year, month), entries in sorted(months.items()):
        ordered.append({
            'key': f"{year}-{month:02d}",
            'year': year,
            'month': month,
            'total': len(entries),
            'first': entries[0].to_dict(),
            'last': entries[-1].to_dict(),
            'head': [e.to_dict() for e in entries[:3]],
            'tail': [e.to_dict() for e in entries[-3:]],
        })

    limited = ordered[-max(3, months_back or 6):]
    start = [{'key': m['key'], 'numero': m['first']['numero']} for m in limited]
    end = [{'key': m['key'], 'numero': m['last']['numero']} for m in limited]

    return {
        'filtro': filtro,
        'months': limited,
        'stats': {
            'total_months': len(limited),
            'start_cycle': detect_cycle([s['numero'] for s in start], max_length=min(6, len(start)),
                                        min_repeats=min_repeats),
            'end_cycle': detect_cycle([e['numero'] for e in end], max_length=min(6, len(end)),
                                      min_repeats=min_repeats),
        },
        'sequences': {'start': start, 'end': end},
    }

"""Pega-3 engine: statistics, tiers and a selection for three-number draws."""

import logging
import math
from collections import Counter, defaultdict
from dataclasses import dataclass, field
from datetime import date
from typing import List, Dict, Any, Optional, Iterable, Tuple

from config.settings import settings
from models.domain import DrawEvent, Turno
from analysis.timeline import parse_draw_date, normalize_slot, normalize_number
from predictions.final_selection import compute_turn_target
from utils.helpers import clamp, mirror_number, safe_divide

logger = logging.getLogger(__name__)

PARES_POR_SORTEO = 3
RECENT_DRAWS = 20


@dataclass
class Pega3Draw:
    fecha: date
    horario: Turno
    pais: str
    pares: Tuple[int, int, int]

    @property
    def sort_key(self) -> Tuple[int, int]:
        return (self.fecha.toordinal(), self.horario.rank)


@dataclass
class _Acumulado:
    numero: int
    total: int = 0
    turnos: Counter = field(default_factory=Counter)
    posiciones: Counter = field(default_factory=Counter)
    dias: Counter = field(default_factory=Counter)
    companeros: Counter = field(default_factory=Counter)
    gaps: List[int] = field(default_factory=list)
    ultima: Optional[Pega3Draw] = None


def normalizar_sorteo(raw: Dict[str, Any]) -> Optional[Pega3Draw]:
    """Three valid numbers and a parseable date, else None."""
    fecha = parse_draw_date(raw.get('fecha'))
    if fecha is None:
        return None
    pares = [normalize_number(value) for value in raw.get('pares') or []]
    if len(pares) != PARES_POR_SORTEO or any(value is None for value in pares):
        return None
    horario = normalize_slot(raw.get('horario')) or Turno.MANANA
    pais = (raw.get('pais') or "").strip().upper() or "HN"
    return Pega3Draw(fecha=fecha, horario=horario, pais=pais, pares=tuple(pares))


def preparar_linea(draws: Iterable[Dict[str, Any]]) -> List[Pega3Draw]:
    normalized = [draw for draw in (normalizar_sorteo(raw) for raw in draws) if draw is not None]
    return sorted(normalized, key=lambda draw: draw.sort_key)


def resumen_formas(linea: List[Pega3Draw]) -> Dict[str, int]:
    """Draw shapes: repeated numbers, tight spread, mirrored neighbours, ladders."""
    resumen = {'repetidos': 0, 'vecinos': 0, 'espejos': 0, 'escaleras': 0}
    for draw in linea:
        ordenados = sorted(draw.pares)
        if len(set(draw.pares)) < PARES_POR_SORTEO:
            resumen['repetidos'] += 1
        if ordenados[2] - ordenados[0] <= 4:
            resumen['vecinos'] += 1
        if any(mirror_number(value) == draw.pares[(i + 1) % PARES_POR_SORTEO]
               for i, value in enumerate(draw.pares)):
            resumen['espejos'] += 1
        if ordenados[1] - ordenados[0] == ordenados[2] - ordenados[1]:
            resumen['escaleras'] += 1
    return resumen


def _gap_score(days_since: Optional[int], gaps: List[int]) -> float:
    if days_since is None:
        return 0.0
    if gaps:
        avg = sum(gaps) / len(gaps)
        return clamp(1 - abs(days_since - avg) / max(1.0, avg * 1.5))
    return clamp(1 / (1 + days_since / 12))


def calcular_estadisticas(linea: List[Pega3Draw],
                          externa: Optional[List[DrawEvent]] = None) -> Dict[str, Any]:
    """Per-number frequency, recency, partner strength, gap and external share."""
    acumulados: Dict[int, _Acumulado] = {}
    ultima_fecha: Dict[int, date] = {}
    externos = defaultdict(set)
    for event in externa or []:
        externos[(event.fecha, event.horario)].add(event.numero)
    external_hits: Counter = Counter()

    for draw in linea:
        external_set = externos.get((draw.fecha, draw.horario), set())
        for pos, numero in enumerate(draw.pares):
            entry = acumulados.setdefault(numero, _Acumulado(numero))
            entry.total += 1
            entry.turnos[draw.horario.value] += 1
            entry.posiciones[pos] += 1
            entry.dias[draw.fecha.weekday()] += 1
            entry.ultima = draw
            previous = ultima_fecha.get(numero)
            if previous is not None:
                entry.gaps.append(max(1, (draw.fecha - previous).days))
            ultima_fecha[numero] = draw.fecha
            for other_pos, other in enumerate(draw.pares):
                if other_pos != pos:
                    entry.companeros[other] += 1
            if numero in external_set:
                external_hits[numero] += 1

    total_samples = len(linea) * PARES_POR_SORTEO
    latest = linea[-1].fecha if linea else None
    recent_counts = Counter(n for draw in linea[-RECENT_DRAWS:] for n in draw.pares)

    numeros = []
    for entry in acumulados.values():
        days_since = (latest - entry.ultima.fecha).days if entry.ultima else None
        partner, partner_count = (entry.companeros.most_common(1) or [(None, 0)])[0]
        turno_fuerte, turno_count = (entry.turnos.most_common(1) or [(Turno.MANANA.value, 0)])[0]
        _, pos_count = (entry.posiciones.most_common(1) or [(0, 0)])[0]
        dia_pico, dia_count = (entry.dias.most_common(1) or [(0, 0)])[0]
        numeros.append({
            'numero': entry.numero,
            'total': entry.total,
            'freq': safe_divide(entry.total, total_samples),
            'days_since': days_since,
            'recency': math.exp(-days_since / settings.pega3_recency_decay_days) if days_since is not None else 0.0,
            'partner_top': partner,
            'pair_strength': clamp(partner_count / max(1, entry.total - 1)),
            'gap_score': _gap_score(days_since, entry.gaps),
            'gap_promedio': sum(entry.gaps) / len(entry.gaps) if entry.gaps else None,
            'recent_ratio': clamp(recent_counts[entry.numero] / max(1, len(recent_counts) * 3)),
            'external_share': clamp(external_hits[entry.numero] / max(1, entry.total)),
            'turno_fuerte': turno_fuerte,
            'turn_peak': clamp(turno_count / max(1, entry.total)),
            'position_peak': clamp(pos_count / max(1, entry.total)),
            'dow_peak': dia_pico,
            'dow_peak_ratio': clamp(dia_count / max(1, entry.total)),
            'last_fecha': entry.ultima.fecha.isoformat() if entry.ultima else None,
        })
    numeros.sort(key=lambda item: (-item['freq'], item['numero']))

    return {
        'total_draws': len(linea),
        'total_samples': total_samples,
        'numeros': numeros,
        'formas': resumen_formas(linea),
    }


def _composite(entry: Dict[str, Any]) -> float:
    return clamp(
        entry['freq'] * 0.35
        + entry['recency'] * 0.2
        + entry['pair_strength'] * 0.15
        + entry['gap_score'] * 0.15
        + entry['recent_ratio'] * 0.1
        + entry['external_share'] * 0.05
    )


def clasificar_pega3(stats: Dict[str, Any]) -> Dict[str, List[Dict[str, Any]]]:
    """Strict-threshold tiers; a number lands in at most one tier."""
    fuertes, moderados, debiles = [], [], []
    for entry in stats['numeros']:
        enriched = dict(entry, score=_composite(entry))
        if (entry['freq'] >= 0.022 and entry['pair_strength'] >= 0.2
                and entry['recency'] >= 0.4 and entry['gap_score'] >= 0.4):
            fuertes.append(enriched)
        elif entry['freq'] >= 0.015 and (
                entry['recency'] >= 0.25 or entry['pair_strength'] >= 0.15
                or entry['turn_peak'] >= 0.35 or entry['position_peak'] >= 0.4):
            moderados.append(enriched)
        elif (entry['freq'] >= 0.01 or entry['recency'] >= 0.15
              or entry['recent_ratio'] >= 0.12 or entry['external_share'] >= 0.08):
            debiles.append(enriched)

    def rank(items: List[Dict[str, Any]], cap: int) -> List[Dict[str, Any]]:
        return sorted(items, key=lambda item: (-item['score'], item['numero']))[:cap]

    return {
        'fuertes': rank(fuertes, settings.pega3_max_fuertes),
        'moderados': rank(moderados, settings.pega3_max_moderados),
        'debiles': rank(debiles, settings.pega3_max_debiles),
    }


def _comodin(stats: Dict[str, Any], ranked: List[Dict[str, Any]], top: List[Dict[str, Any]]) -> Optional[int]:
    used = {item['numero'] for item in top}
    rest = [entry for entry in stats['numeros'] if entry['numero'] not in used]
    if rest:
        external = max(rest, key=lambda e: (e['external_share'], -e['numero']))
        if external['external_share'] >= 0.05:
            return external['numero']
        return max(rest, key=lambda e: (e['pair_strength'], -e['numero']))['numero']
    leftover = next((item['numero'] for item in ranked if item['numero'] not in used), None)
    if leftover is not None:
        return leftover
    return top[-1]['numero'] if top else None


def seleccionar_pega3(stats: Dict[str, Any], sesgos: Dict[str, List[Dict[str, Any]]],
                      linea: List[Pega3Draw]) -> Dict[str, Any]:
    """Top 3-5, secondaries above the threshold and one wildcard."""
    por_numero = {entry['numero']: entry for entry in stats['numeros']}
    base: Dict[int, float] = defaultdict(float)
    for key, weight in (('fuertes', 0.6), ('moderados', 0.25), ('debiles', 0.1)):
        for entry in sesgos[key]:
            base[entry['numero']] += entry['score'] * weight

    ranked = []
    for numero, value in base.items():
        entry = por_numero[numero]
        stability = (entry['pair_strength'] * 0.15 + entry['gap_score'] * 0.15
                     + entry['dow_peak_ratio'] * 0.1)
        momentum = entry['recency'] * 0.2 + entry['recent_ratio'] * 0.1 + entry['external_share'] * 0.05
        score = clamp(value + stability + momentum + entry['freq'] * 0.2)
        if score > 0:
            ranked.append({'numero': numero, 'score': score})
    ranked.sort(key=lambda item: (-item['score'], item['numero']))

    turno_objetivo = _turn_target(linea)
    if not ranked:
        return {'top': [], 'secundarios': [], 'comodin': None, 'turno_objetivo': turno_objetivo}

    top_count = min(5, max(3, len(ranked)))
    top = ranked[:top_count]
    secundarios = [
        item for item in ranked[top_count:] if item['score'] >= settings.pega3_secondary_min_score
    ][:3]
    return {
        'top': top,
        'secundarios': secundarios,
        'comodin': _comodin(stats, ranked, top),
        'turno_objetivo': turno_objetivo,
    }


def _turn_target(linea: List[Pega3Draw]) -> Dict[str, Any]:
    if not linea:
        return {'turno': Turno.MANANA.value, 'label': f"próximo {Turno.MANANA.value}", 'registros': 0, 'fecha': None}
    latest = linea[-1]
    proxies = [
        DrawEvent(numero=draw.pares[0], fecha=draw.fecha, horario=draw.horario, pais=draw.pais)
        for draw in linea if draw.fecha == latest.fecha
    ]
    now = proxies[-1].momento
    return compute_turn_target(proxies, now)


def evaluar_pega3(draws: Iterable[Dict[str, Any]],
                  externa: Optional[List[DrawEvent]] = None) -> Dict[str, Any]:
    """Full Pega-3 pass over raw rows ``{fecha, horario, pais, pares: [a, b, c]}``."""
    linea = preparar_linea(draws)
    if not linea:
        return {'stats': None, 'sesgos': {'fuertes': [], 'moderados': [], 'debiles': []}, 'seleccion': None}
    stats = calcular_estadisticas(linea, externa)
    sesgos = clasificar_pega3(stats)
    seleccion = seleccionar_pega3(stats, sesgos, linea)
    logger.debug(f"Pega-3 pass over {len(linea)} draws, top={[item['numero'] for item in seleccion['top']]}")
    return {'stats': stats, 'sesgos': sesgos, 'seleccion': seleccion}

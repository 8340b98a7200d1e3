"""Final selection: merge tier candidates into top picks, secondaries and a wildcard."""

import logging
from datetime import datetime, timedelta
from typing import List, Dict, Any, Optional, Set

from config.settings import settings
from models.domain import DrawEvent, TierCandidate, Turno
from utils.helpers import clamp, mirror_number, complement_number

logger = logging.getLogger(__name__)

COMPONENTS = ('fuerte', 'moderado', 'debil', 'reciente')


def _entry(numero: int) -> Dict[str, Any]:
    return {'numero': numero, 'total': 0.0, 'components': {key: 0.0 for key in COMPONENTS}}


def _add_tier(candidates: List[TierCandidate], key: str, scores: Dict[int, Dict[str, Any]]):
    weight = settings.selection_weights[key]
    for candidate in candidates:
        weighted = clamp(candidate.score) * weight
        if weighted <= 0:
            continue
        entry = scores.setdefault(candidate.numero, _entry(candidate.numero))
        entry['components'][key] = max(entry['components'][key], weighted)


def recent_activity_ratios(timeline: List[DrawEvent], now: datetime, days: int) -> Dict[int, float]:
    """Share of each number among the draws of the trailing ``days``."""
    desde = now - timedelta(days=days)
    recent = [e.numero for e in timeline if desde <= e.momento <= now]
    if not recent:
        return {}
    ratios: Dict[int, float] = {}
    for numero in recent:
        ratios[numero] = ratios.get(numero, 0) + 1
    return {numero: count / len(recent) for numero, count in ratios.items()}


def compute_turn_target(timeline: List[DrawEvent], now: datetime) -> Dict[str, Any]:
    """Next slot to play given the slots already recorded today."""
    today = now.date()
    seen = {e.horario for e in timeline if e.fecha == today}
    registros = len(seen)
    if registros >= len(Turno):
        turno, fecha, label = Turno.MANANA, today + timedelta(days=1), "mañana 11AM"
    else:
        turno = Turno.from_rank(registros)
        fecha, label = today, f"próximo {Turno.from_rank(registros).value}"
    return {'turno': turno.value, 'label': label, 'registros': registros, 'fecha': fecha.isoformat()}


def _pick(candidates: List[Dict[str, Any]], exclude: Set[int], better) -> Optional[Dict[str, Any]]:
    """Best candidate outside ``exclude``, else the best excluded one."""
    preferred = fallback = None
    for candidate in candidates:
        if candidate['numero'] not in exclude:
            if preferred is None or better(candidate, preferred):
                preferred = candidate
        elif fallback is None or better(candidate, fallback):
            fallback = candidate
    return preferred or fallback


def select_regional_wildcard(timeline: List[DrawEvent], now: datetime, exclude: Set[int]) -> Optional[int]:
    desde = now - timedelta(hours=settings.wildcard_regional_hours)
    regional = {country.lower() for country in settings.regional_countries}
    buckets: Dict[int, Dict[str, Any]] = {}
    for event in timeline:
        if event.pais_key not in regional or not desde <= event.momento <= now:
            continue
        bucket = buckets.setdefault(event.numero, {'numero': event.numero, 'count': 0, 'last': event.sort_key})
        bucket['count'] += 1
        bucket['last'] = max(bucket['last'], event.sort_key)

    chosen = _pick(
        list(buckets.values()), exclude,
        lambda a, b: (a['count'], a['last'], -a['numero']) > (b['count'], b['last'], -b['numero'])
    )
    return chosen['numero'] if chosen else None


def gap_score(candidate: TierCandidate) -> Optional[float]:
    gap = candidate.gap
    if gap.mode is None or gap.days_since is None:
        return None
    return 1 / (1 + abs(gap.days_since - gap.mode)) + gap.matches * 0.05


def select_gap_wildcard(candidates: List[TierCandidate], exclude: Set[int]) -> Optional[int]:
    scored = []
    for candidate in candidates:
        score = gap_score(candidate)
        if score is not None:
            scored.append({'numero': candidate.numero, 'score': score})
    chosen = _pick(
        scored, exclude,
        lambda a, b: (a['score'], -a['numero']) > (b['score'], -b['numero'])
    )
    return chosen['numero'] if chosen else None


def select_inversion_wildcard(ranked: List[Dict[str, Any]], exclude: Set[int]) -> Optional[int]:
    """Ranked number whose complement or mirror is also ranked (never itself)."""
    available = {entry['numero'] for entry in ranked}
    paired = []
    for entry in ranked:
        numero = entry['numero']
        pairs = {complement_number(numero), mirror_number(numero)} - {numero}
        if pairs & available:
            paired.append(entry)
    chosen = _pick(
        paired, exclude,
        lambda a, b: (a['total'], -a['numero']) > (b['total'], -b['numero'])
    )
    return chosen['numero'] if chosen else None


def select_wildcard(timeline: List[DrawEvent], now: datetime, candidates: List[TierCandidate],
                    ranked: List[Dict[str, Any]], top_picks: List[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    exclude = {entry['numero'] for entry in top_picks}

    regional = select_regional_wildcard(timeline, now, exclude)
    if regional is not None:
        return {'numero': regional, 'origen': 'regional'}

    by_gap = select_gap_wildcard(candidates, exclude)
    if by_gap is not None:
        return {'numero': by_gap, 'origen': 'gap'}

    inversion = select_inversion_wildcard(ranked, exclude)
    if inversion is not None:
        return {'numero': inversion, 'origen': 'inversion'}

    if top_picks:
        return {'numero': top_picks[-1]['numero'], 'origen': 'top'}
    return None


def calcular_seleccion_final(fuertes: List[TierCandidate], moderados: List[TierCandidate],
                             debiles: List[TierCandidate], timeline: List[DrawEvent],
                             now: datetime) -> Dict[str, Any]:
    """Composite ranking with bounded top/secondary lists and exactly one wildcard."""
    scores: Dict[int, Dict[str, Any]] = {}
    _add_tier(fuertes, 'fuerte', scores)
    _add_tier(moderados, 'moderado', scores)
    _add_tier(debiles, 'debil', scores)

    weight = settings.selection_weights['reciente']
    for numero, ratio in recent_activity_ratios(timeline, now, settings.selection_recent_days).items():
        # Recent activity only reinforces numbers already scored by a tier
        if numero in scores:
            entry = scores[numero]
            entry['components']['reciente'] = max(entry['components']['reciente'], clamp(ratio) * weight)

    for entry in scores.values():
        entry['total'] = clamp(sum(entry['components'].values()))
        entry['percent'] = entry['total'] * 100

    ranked = sorted(scores.values(), key=lambda entry: (-entry['total'], entry['numero']))
    top_count = min(settings.selection_top, len(ranked))
    top_picks = ranked[:top_count]
    secundarios = [
        entry for entry in ranked[top_count:]
        if entry['total'] >= settings.selection_secondary_min_score
    ][:settings.selection_secondary_max]

    candidates = list(fuertes) + list(moderados) + list(debiles)
    comodin = select_wildcard(timeline, now, candidates, ranked, top_picks)

    return {
        'top_picks': top_picks,
        'secundarios': secundarios,
        'comodin': comodin,
        'turno_objetivo': compute_turn_target(timeline, now),
    }

"""Profile builder: fold the timeline into per-number statistics."""

import math
import logging
from collections import Counter
from datetime import datetime
from typing import List, Dict, Any, Optional, Iterable

from config.settings import settings
from models.domain import (
    DrawEvent, NumberProfile, MemorySnapshot, GapEntry, Aparicion,
    Hypothesis, HypothesisDetail, HypothesisOutcome, EstadoHipotesis,
    OutcomeBucket, UltimoResultado, SECONDS_PER_DAY
)
from utils.helpers import safe_divide, clamp

logger = logging.getLogger(__name__)

DOW_LABEL = ["lunes", "martes", "miércoles", "jueves", "viernes", "sábado", "domingo"]


def _register_occurrence(profile: NumberProfile, event: DrawEvent):
    """Fold one occurrence into the profile counters and gap statistics."""
    profile.total += 1
    horario = event.horario.value
    year = event.fecha.year

    profile.por_pais[event.pais] = profile.por_pais.get(event.pais, 0) + 1
    profile.por_horario[horario] = profile.por_horario.get(horario, 0) + 1
    profile.por_dia_semana[event.weekday] = profile.por_dia_semana.get(event.weekday, 0) + 1

    por_anio = profile.por_horario_por_anio.setdefault(year, {})
    por_anio[horario] = por_anio.get(horario, 0) + 1
    profile.total_por_anio[year] = profile.total_por_anio.get(year, 0) + 1

    profile.ultimas.insert(0, Aparicion(fecha=event.fecha, horario=event.horario, pais=event.pais))
    del profile.ultimas[settings.profile_recent_limit:]

    if profile.last_seen is not None:
        gap = (event.fecha - profile.last_seen).days
        gaps = profile.gaps
        gaps.total += gap
        gaps.count += 1
        gaps.promedio = gaps.total / gaps.count
        gaps.ultimo = gap
        gaps.min = gap if gaps.min is None else min(gaps.min, gap)
        gaps.max = gap if gaps.max is None else max(gaps.max, gap)
        gaps.historial.append(GapEntry(gap=gap, fecha=event.fecha))
        del gaps.historial[:-settings.profile_gap_history]

    profile.last_seen = event.fecha
    profile.last_seen_horario = event.horario


def _days_since(profile: NumberProfile, now: datetime) -> Optional[float]:
    if profile.last_seen is None:
        return None
    last = DrawEvent(
        numero=profile.numero, fecha=profile.last_seen,
        horario=profile.last_seen_horario, pais=''
    )
    return max(0.0, (now - last.momento).total_seconds() / SECONDS_PER_DAY)


def _attach_hypotheses(profiles: Dict[int, NumberProfile], hypotheses: Iterable[Hypothesis]):
    for hyp in sorted(hypotheses, key=lambda h: (h.fecha, h.id or 0)):
        profile = profiles.get(hyp.numero)
        if profile is None:
            continue
        stats = profile.hipotesis
        if hyp.estado == EstadoHipotesis.CONFIRMADA:
            stats.confirmadas += 1
        elif hyp.estado == EstadoHipotesis.REFUTADA:
            stats.refutadas += 1
        else:
            stats.pendientes += 1
        stats.detalles.append(
            HypothesisDetail(id=hyp.id, estado=hyp.estado, fecha=hyp.fecha, turno=hyp.turno)
        )
        del stats.detalles[:-settings.profile_hypothesis_details]


def _bump(buckets: Dict[Any, OutcomeBucket], key: Any, hit: bool):
    if key is None or key == '':
        return
    bucket = buckets.setdefault(key, OutcomeBucket())
    bucket.total += 1
    if hit:
        bucket.aciertos += 1


def _attach_outcome_logs(profiles: Dict[int, NumberProfile], logs: Iterable[HypothesisOutcome]):
    for log in sorted(logs, key=lambda entry: entry.fecha_resultado):
        profile = profiles.get(log.numero)
        if profile is None:
            continue
        learning = profile.aprendizaje
        hit = log.estado == EstadoHipotesis.CONFIRMADA
        learning.total += 1
        if hit:
            learning.aciertos += 1
        else:
            learning.fallos += 1
        _bump(learning.por_pais, log.pais_resultado, hit)
        _bump(learning.por_horario, log.horario_resultado, hit)
        _bump(learning.por_dia_semana, log.fecha_resultado.weekday(), hit)
        learning.ultimo_resultado = UltimoResultado(
            estado=log.estado,
            fecha=log.fecha_resultado,
            pais=log.pais_resultado,
            horario=log.horario_resultado,
        )


def _hypothesis_score(profile: NumberProfile) -> float:
    stats = profile.hipotesis
    resolved = stats.confirmadas + stats.refutadas
    if resolved:
        return stats.confirmadas / resolved
    if stats.pendientes:
        return 0.5
    return 0.0


def _context_score(profile: NumberProfile) -> float:
    learning = profile.aprendizaje
    rates = [
        bucket.tasa
        for buckets in (learning.por_pais, learning.por_horario, learning.por_dia_semana)
        for bucket in buckets.values()
        if bucket.total
    ]
    return max(rates) if rates else 0.0


def refrescar_recencia(perfiles: Iterable[NumberProfile], now: datetime):
    """Recompute days-since and recency against a new reference instant."""
    for profile in perfiles:
        days = _days_since(profile, now)
        profile.gaps.days_since = days
        profile.score_recencia = clamp(math.exp(-days / settings.recency_decay_days)) if days is not None else 0.0


def calcular_memoria(timeline: List[DrawEvent], hypotheses: Iterable[Hypothesis] = (),
                     logs: Iterable[HypothesisOutcome] = (), now: Optional[datetime] = None) -> MemorySnapshot:
    """Build the number profiles for an ordered timeline.

    ``now`` is the reference instant for days-since and recency; it defaults
    to the moment of the latest event so results stay reproducible.
    """
    if not timeline:
        return MemorySnapshot(total_draws=0, latest_timestamp=None, perfiles=[])

    reference = now or timeline[-1].momento
    profiles: Dict[int, NumberProfile] = {}
    for event in timeline:
        profile = profiles.setdefault(event.numero, NumberProfile(numero=event.numero))
        _register_occurrence(profile, event)

    _attach_hypotheses(profiles, hypotheses)
    _attach_outcome_logs(profiles, logs)

    total_events = len(timeline)
    refrescar_recencia(profiles.values(), reference)
    for profile in profiles.values():
        profile.score_frecuencia = clamp(safe_divide(profile.total, total_events))
        profile.score_hipotesis = _hypothesis_score(profile)
        profile.score_contexto = _context_score(profile)

    logger.debug(f"Computed {len(profiles)} number profiles over {total_events} draws")
    return MemorySnapshot(
        total_draws=total_events,
        latest_timestamp=timeline[-1].momento,
        perfiles=[profiles[n] for n in sorted(profiles)],
    )


def prediction_score(profile: NumberProfile) -> float:
    weights = settings.prediction_weights
    return clamp(
        profile.score_frecuencia * weights['frecuencia']
        + profile.score_recencia * weights['recencia']
        + profile.score_hipotesis * weights['hipotesis']
        + profile.score_contexto * weights['contexto']
    )


def generar_predicciones(perfiles: List[NumberProfile], top: Optional[int] = None) -> List[Dict[str, Any]]:
    """Rank numbers by the weighted profile score."""
    top = settings.prediction_top if top is None else top
    ranked = sorted(
        ({'numero': p.numero, 'score': prediction_score(p), 'perfil': p} for p in perfiles),
        key=lambda item: (-item['score'], item['numero'])
    )
    return ranked[:top]


def generar_insights(perfiles: List[NumberProfile]) -> List[Dict[str, str]]:
    """Short textual observations per slot, weekday and country."""
    if not perfiles:
        return []
    insights = []

    for turno in settings.turnos:
        mejor = None
        for perfil in perfiles:
            en_turno = perfil.por_horario.get(turno, 0)
            if not en_turno or not perfil.total:
                continue
            ratio = en_turno / perfil.total
            if mejor is None or ratio > mejor[1]:
                mejor = (perfil.numero, ratio)
        if mejor:
            insights.append({
                'tipo': 'turno',
                'titulo': f"Turno {turno}",
                'descripcion': f"El {mejor[0]:02d} aparece en {round(mejor[1] * 100)}% de sus registros durante {turno}.",
            })

    for dia in range(7):
        mejor = None
        for perfil in perfiles:
            en_dia = perfil.por_dia_semana.get(dia, 0)
            if not en_dia or not perfil.total:
                continue
            ratio = en_dia / perfil.total
            if mejor is None or ratio > mejor[1]:
                mejor = (perfil.numero, ratio)
        if mejor:
            insights.append({
                'tipo': 'dia',
                'titulo': f"Día {DOW_LABEL[dia]}",
                'descripcion': f"El {mejor[0]:02d} domina los {DOW_LABEL[dia]} ({round(mejor[1] * 100)}% de sus apariciones).",
            })

    por_pais: Dict[str, tuple] = {}
    for perfil in perfiles:
        for pais, bucket in perfil.aprendizaje.por_pais.items():
            if not bucket.total:
                continue
            if pais not in por_pais or bucket.tasa > por_pais[pais][1]:
                por_pais[pais] = (perfil.numero, bucket.tasa)
    for pais, (numero, ratio) in sorted(por_pais.items()):
        insights.append({
            'tipo': 'pais',
            'titulo': f"País {pais}",
            'descripcion': f"El {numero:02d} acertó {round(ratio * 100)}% de las hipótesis en {pais}.",
        })

    return insights


def _top_entry(counts: Dict[Any, int]):
    if not counts:
        return None
    return Counter(counts).most_common(1)[0]


def describir_perfil(perfil: Optional[NumberProfile]) -> Optional[str]:
    """One-line human summary of a profile."""
    if perfil is None:
        return None
    partes = []
    if perfil.ultimas:
        ultima = perfil.ultimas[0]
        partes.append(f"Última vez: {ultima.fecha.isoformat()} {ultima.horario.value} ({ultima.pais})")
    if perfil.gaps.ultimo is not None:
        partes.append(f"Gap previo: {perfil.gaps.ultimo} días (promedio {perfil.gaps.promedio:.1f})")
    top_pais = _top_entry(perfil.por_pais)
    if top_pais:
        partes.append(f"País dominante: {top_pais[0]} ({top_pais[1]} veces)")
    top_turno = _top_entry(perfil.por_horario)
    if top_turno:
        partes.append(f"Turno frecuente: {top_turno[0]} ({top_turno[1]}x)")
    top_dia = _top_entry(perfil.por_dia_semana)
    if top_dia:
        partes.append(f"Día típico: {DOW_LABEL[int(top_dia[0])]} ({top_dia[1]}x)")
    if perfil.aprendizaje.total:
        partes.append(
            f"Hipótesis: {perfil.aprendizaje.aciertos}/{perfil.aprendizaje.total} acertadas "
            f"({round(perfil.score_hipotesis * 100)}%)"
        )
        ultimo = perfil.aprendizaje.ultimo_resultado
        if ultimo:
            partes.append(f"Último aprendizaje: {ultimo.fecha.isoformat()} {ultimo.horario or ''} ({ultimo.estado.value})")
    return " · ".join(partes)

"""Pattern detection over the active window of the draw timeline.

Each detector is a pure function ``DetectorInput -> List[PatternFinding]``;
``detectar_patrones`` runs the whole catalogue and concatenates the results.
"""

import logging
from collections import Counter, defaultdict
from dataclasses import dataclass
from datetime import datetime, date, timedelta
from typing import List, Dict, Any, Optional, Callable, Tuple

from config.settings import settings
from models.domain import DrawEvent, PatternFinding, AnalysisContext
from utils.guide import SymbolicGuide
from utils.helpers import clamp, safe_divide, is_double

logger = logging.getLogger(__name__)

DOW_LABEL = ["lunes", "martes", "miércoles", "jueves", "viernes", "sábado", "domingo"]
MAX_EVIDENCE = 4


@dataclass
class DetectorInput:
    window: List[DrawEvent]
    history: List[DrawEvent]
    now: datetime
    guide: Optional[SymbolicGuide] = None

    @property
    def today(self) -> date:
        return self.now.date()


def select_active_window(timeline: List[DrawEvent],
                         context: Optional[AnalysisContext] = None) -> Tuple[List[DrawEvent], Dict[str, Any]]:
    """Trailing window before the latest event (or year-to-date), with full-history fallback."""
    if not timeline:
        return [], {'tipo': 'vacia', 'muestras': 0, 'fallback': False}

    latest = timeline[-1].fecha
    if context is not None and context.year is not None:
        window = [e for e in timeline if e.fecha.year == context.year]
        descriptor = {'tipo': 'anio', 'anio': context.year}
    else:
        desde = latest - timedelta(days=settings.pattern_window_days)
        window = [e for e in timeline if e.fecha > desde]
        descriptor = {'tipo': 'dias', 'dias': settings.pattern_window_days}

    fallback = len(window) < settings.pattern_min_samples
    if fallback:
        window = list(timeline)

    descriptor.update({
        'desde': window[0].fecha_iso if window else None,
        'hasta': window[-1].fecha_iso if window else None,
        'muestras': len(window),
        'fallback': fallback,
    })
    return window, descriptor


def _by_number(events: List[DrawEvent]) -> Dict[int, List[DrawEvent]]:
    grouped = defaultdict(list)
    for event in events:
        grouped[event.numero].append(event)
    return grouped


def _dominant(counter: Counter):
    """Most common bucket; ties go to the smallest key."""
    return min(counter.items(), key=lambda item: (-item[1], item[0]))


# ----------------------------------------
# Recurring gap
# ----------------------------------------

def detect_recurring_gaps(inp: DetectorInput) -> List[PatternFinding]:
    findings = []
    for numero, events in sorted(_by_number(inp.window).items()):
        if len(events) < 3:
            continue

        intervals = []
        for prev, curr in zip(events, events[1:]):
            days = (curr.fecha - prev.fecha).days
            # Same-day repeats are not cycles
            if days > 0:
                intervals.append((prev, curr, days))
        if not intervals:
            continue

        counts = Counter(days for _, _, days in intervals)
        mode_gap, mode_count = _dominant(counts)
        ratio = mode_count / len(intervals)
        if mode_count < 2 or not (ratio >= 0.55 or mode_count >= 3):
            continue

        last = events[-1]
        projected = last.fecha + timedelta(days=mode_gap)
        siguiente = projected.isoformat() if projected > inp.today else None

        matched = [(prev, curr) for prev, curr, days in intervals if days == mode_gap]
        evidencia = [
            f"{numero:02d}: {prev.fecha_iso} → {curr.fecha_iso} ({mode_gap} días)"
            for prev, curr in matched[-MAX_EVIDENCE:]
        ]
        findings.append(PatternFinding(
            id=f"gap-{numero:02d}-{mode_gap}d",
            titulo=f"Ciclo del {numero:02d} cada {mode_gap} días",
            confianza=clamp(ratio),
            resumen=(
                f"El {numero:02d} se repitió con {mode_gap} días de separación en "
                f"{mode_count} de {len(intervals)} intervalos."
            ),
            evidencia=evidencia,
            datos={
                'numero': numero,
                'gap': mode_gap,
                'matched_cycles': mode_count,
                'intervalos': len(intervals),
                'ratio': ratio,
                'ocurrencias': len(events),
                'ultima': last.fecha_iso,
            },
            siguiente_fecha_esperada=siguiente,
        ))
    return findings


# ----------------------------------------
# Temporal bias (weekday / slot)
# ----------------------------------------

def _temporal_bias(inp: DetectorInput, bucket_of: Callable[[DrawEvent], Any],
                   tipo: str, etiqueta: Callable[[Any], str]) -> List[PatternFinding]:
    findings = []
    history = _by_number(inp.history)
    for numero, events in sorted(_by_number(inp.window).items()):
        total = len(events)
        if total < 4:
            continue

        bucket, count = _dominant(Counter(bucket_of(e) for e in events))
        window_ratio = count / total

        hist_events = history.get(numero, [])
        hist_count = sum(1 for e in hist_events if bucket_of(e) == bucket)
        hist_ratio = safe_divide(hist_count, len(hist_events))

        if not (window_ratio >= 0.7 or (hist_count >= 2 and hist_ratio >= 0.35)):
            continue

        samples = [e for e in events if bucket_of(e) == bucket]
        findings.append(PatternFinding(
            id=f"{tipo}-{numero:02d}-{bucket}",
            titulo=f"{numero:02d} sesgado hacia {etiqueta(bucket)}",
            confianza=clamp(0.7 * window_ratio + 0.3 * hist_ratio),
            resumen=(
                f"El {numero:02d} cayó {count} de {total} veces en {etiqueta(bucket)} "
                f"({round(window_ratio * 100)}% en la ventana, {round(hist_ratio * 100)}% histórico)."
            ),
            evidencia=[f"{e.fecha_iso} {e.horario.value} {e.pais}" for e in samples[-MAX_EVIDENCE:]],
            datos={
                'numero': numero,
                'bucket': bucket,
                'conteo': count,
                'total': total,
                'ratio': window_ratio,
                'historial': hist_count,
                'historial_total': len(hist_events),
                'ratio_historico': hist_ratio,
            },
        ))
    return findings


def detect_weekday_bias(inp: DetectorInput) -> List[PatternFinding]:
    return _temporal_bias(inp, lambda e: e.weekday, 'dia', lambda d: DOW_LABEL[d])


def detect_slot_bias(inp: DetectorInput) -> List[PatternFinding]:
    return _temporal_bias(inp, lambda e: e.horario.value, 'turno', lambda s: f"el turno {s}")


# ----------------------------------------
# Consecutive repetition
# ----------------------------------------

def _is_repetition(prev: DrawEvent, curr: DrawEvent) -> bool:
    if curr.fecha == prev.fecha:
        return curr.rank > prev.rank
    return curr.fecha == prev.fecha + timedelta(days=1)


def _repetitions(events: List[DrawEvent]) -> List[Tuple[DrawEvent, DrawEvent]]:
    return [(prev, curr) for prev, curr in zip(events, events[1:]) if _is_repetition(prev, curr)]


def detect_consecutive_repetition(inp: DetectorInput) -> List[PatternFinding]:
    findings = []
    history = _by_number(inp.history)
    burst_start = inp.today - timedelta(days=settings.repetition_burst_days)

    for numero, events in sorted(_by_number(inp.window).items()):
        total = len(events)
        if total < 3:
            continue

        matches = _repetitions(events)
        if not matches:
            continue
        ratio = len(matches) / total

        hist_events = history.get(numero, [])
        hist_matches = _repetitions(hist_events)
        hist_ratio = safe_divide(len(hist_matches), len(hist_events))

        corroborated = len(hist_matches) >= 2 and hist_ratio >= 0.3
        burst = any(curr.fecha >= burst_start for _, curr in matches)
        if not (ratio >= 0.6 or (corroborated and burst and ratio >= 0.35)):
            continue

        findings.append(PatternFinding(
            id=f"repeticion-{numero:02d}",
            titulo=f"{numero:02d} se repite en sorteos seguidos",
            confianza=clamp(0.7 * ratio + 0.3 * hist_ratio),
            resumen=(
                f"El {numero:02d} repitió en el turno siguiente o al día siguiente "
                f"{len(matches)} de {total} veces."
            ),
            evidencia=[
                f"{prev.fecha_iso} {prev.horario.value} → {curr.fecha_iso} {curr.horario.value}"
                for prev, curr in matches[-MAX_EVIDENCE:]
            ],
            datos={
                'numero': numero,
                'repeticiones': len(matches),
                'total': total,
                'ratio': ratio,
                'historial': len(hist_matches),
                'ratio_historico': hist_ratio,
                'rafaga': burst,
            },
        ))
    return findings


# ----------------------------------------
# Successive transition
# ----------------------------------------

def _transition_stats(events: List[DrawEvent], lookahead: int):
    """Per origin: number of occurrences with followers, destination counts, slot mappings."""
    by_country = defaultdict(list)
    for event in events:
        by_country[event.pais_key].append(event)

    origin_totals = Counter()
    destinations = defaultdict(Counter)
    mappings = defaultdict(Counter)
    last_match = {}

    for sequence in by_country.values():
        for index, event in enumerate(sequence):
            followers = sequence[index + 1:index + 1 + lookahead]
            if not followers:
                continue
            origin_totals[event.numero] += 1
            seen = set()
            for follower in followers:
                if follower.numero == event.numero or follower.numero in seen:
                    continue
                seen.add(follower.numero)
                pair = (event.numero, follower.numero)
                destinations[event.numero][follower.numero] += 1
                mappings[pair][f"{event.horario.value}>{follower.horario.value}"] += 1
                if pair not in last_match or follower.fecha > last_match[pair]:
                    last_match[pair] = follower.fecha

    return origin_totals, destinations, mappings, last_match


def detect_successive_transitions(inp: DetectorInput) -> List[PatternFinding]:
    lookahead = settings.transition_lookahead
    origin_totals, destinations, mappings, last_match = _transition_stats(inp.window, lookahead)
    hist_totals, hist_destinations, _, _ = _transition_stats(inp.history, lookahead)
    recent_start = inp.today - timedelta(days=settings.transition_recent_days)

    findings = []
    for origen in sorted(origin_totals):
        total = origin_totals[origen]
        if total < 3 or not destinations[origen]:
            continue

        destino, count = _dominant(destinations[origen])
        share = count / total
        if share < 0.5:
            continue

        hist_matches = hist_destinations[origen][destino]
        recent = last_match.get((origen, destino))
        if not (hist_matches >= 3 or (recent is not None and recent >= recent_start)):
            continue

        hist_share = safe_divide(hist_matches, hist_totals[origen])
        mapping, mapping_count = _dominant(mappings[(origen, destino)])
        findings.append(PatternFinding(
            id=f"transition-{origen:02d}-{destino:02d}",
            titulo=f"{origen:02d} suele ir seguido del {destino:02d}",
            confianza=clamp(0.7 * share + 0.3 * hist_share),
            resumen=(
                f"Tras el {origen:02d} salió el {destino:02d} dentro de {lookahead} sorteos "
                f"en {count} de {total} ocasiones."
            ),
            evidencia=[f"Turnos {mapping} ({mapping_count}x)"] + (
                [f"Última coincidencia {recent.isoformat()}"] if recent else []
            ),
            datos={
                'origen': origen,
                'destino': destino,
                'conteo': count,
                'total': total,
                'ratio': share,
                'historial': hist_matches,
                'ratio_historico': hist_share,
                'turnos': mapping,
                'ultima': recent.isoformat() if recent else None,
            },
        ))
    return findings


# ----------------------------------------
# Double-digit weekday clustering
# ----------------------------------------

def detect_double_weekday(inp: DetectorInput) -> List[PatternFinding]:
    window = [e for e in inp.window if is_double(e.numero)]
    if len(window) < 3:
        return []

    dia, count = _dominant(Counter(e.weekday for e in window))
    ratio = count / len(window)

    history = [e for e in inp.history if is_double(e.numero)]
    hist_count = sum(1 for e in history if e.weekday == dia)
    hist_ratio = safe_divide(hist_count, len(history))

    if ratio < 0.45 or not ((hist_count >= 3 and hist_ratio >= 0.3) or ratio >= 0.6):
        return []

    samples = [e for e in window if e.weekday == dia]
    return [PatternFinding(
        id=f"dobles-dia-{dia}",
        titulo=f"Números dobles concentrados los {DOW_LABEL[dia]}",
        confianza=clamp(0.7 * ratio + 0.3 * hist_ratio),
        resumen=(
            f"{count} de {len(window)} dobles recientes cayeron en {DOW_LABEL[dia]} "
            f"({round(ratio * 100)}%)."
        ),
        evidencia=[f"{e.numero:02d} el {e.fecha_iso} {e.horario.value}" for e in samples[-MAX_EVIDENCE:]],
        datos={
            'dia': dia,
            'conteo': count,
            'total': len(window),
            'ratio': ratio,
            'historial': hist_count,
            'ratio_historico': hist_ratio,
            'numeros': sorted({e.numero for e in samples}),
        },
    )]


# ----------------------------------------
# Family cluster
# ----------------------------------------

def _family_cluster_days(events: List[DrawEvent], guide: SymbolicGuide):
    by_day = defaultdict(set)
    for event in events:
        by_day[event.fecha].add(event.numero)

    cluster_days = defaultdict(list)
    for dia in sorted(by_day):
        por_familia = defaultdict(set)
        for numero in by_day[dia]:
            familia = guide.familia(numero)
            if familia:
                por_familia[familia].add(numero)
        for familia, numeros in por_familia.items():
            if len(numeros) >= 2:
                cluster_days[familia].append((dia, sorted(numeros)))
    return cluster_days, len(by_day)


def detect_family_clusters(inp: DetectorInput) -> List[PatternFinding]:
    if inp.guide is None or not len(inp.guide):
        return []

    window_days, total_days = _family_cluster_days(inp.window, inp.guide)
    hist_days, hist_total_days = _family_cluster_days(inp.history, inp.guide)

    findings = []
    for familia in sorted(window_days):
        days = window_days[familia]
        if len(days) < 2:
            continue
        day_ratio = safe_divide(len(days), total_days)
        hist_ratio = safe_divide(len(hist_days.get(familia, [])), hist_total_days)
        findings.append(PatternFinding(
            id=f"familia-{familia}",
            titulo=f"Familia «{familia}» coincide el mismo día",
            confianza=clamp(0.35 + 0.45 * day_ratio + 0.2 * hist_ratio),
            resumen=(
                f"La familia {familia} reunió dos o más números el mismo día en "
                f"{len(days)} de {total_days} días."
            ),
            evidencia=[
                f"{dia.isoformat()}: {', '.join(f'{n:02d}' for n in numeros)}"
                for dia, numeros in days[-MAX_EVIDENCE:]
            ],
            datos={
                'familia': familia,
                'dias': len(days),
                'total_dias': total_days,
                'ratio': day_ratio,
                'historial': len(hist_days.get(familia, [])),
                'ratio_historico': hist_ratio,
                'numeros': inp.guide.numeros_de_familia(familia),
            },
        ))
    return findings


DETECTORES: List[Callable[[DetectorInput], List[PatternFinding]]] = [
    detect_recurring_gaps,
    detect_weekday_bias,
    detect_slot_bias,
    detect_consecutive_repetition,
    detect_successive_transitions,
    detect_double_weekday,
    detect_family_clusters,
]


def resumen_simbolico(recientes: List[DrawEvent], guide: Optional[SymbolicGuide]) -> Dict[str, Any]:
    """Family and polarity balance of the most recent draws."""
    familias = Counter()
    polaridades = {'positiva': 0, 'neutra': 0, 'negativa': 0}
    for event in recientes:
        entry = guide.get(event.numero) if guide else None
        if entry is None:
            continue
        if entry.familia:
            familias[entry.familia] += 1
        if entry.polaridad in polaridades:
            polaridades[entry.polaridad] += 1

    familia_dominante = _dominant(familias)[0] if familias else None
    total_polar = sum(polaridades.values())
    score = safe_divide(polaridades['positiva'] - polaridades['negativa'], total_polar)
    if score > 0.4:
        energia = "positiva"
    elif score < -0.4:
        energia = "negativa"
    else:
        energia = "neutral"

    tendencia = {
        'positiva': "energía ascendente y favorable.",
        'negativa': "tendencia de contracción o bloqueo.",
        'neutral': "neutralidad o transición.",
    }[energia]
    mensaje = (
        f"En los últimos {len(recientes)} sorteos predomina la familia "
        f"\"{familia_dominante or 'sin datos'}\" con {tendencia} "
        f"Polaridad: {polaridades['positiva']} positivas, {polaridades['neutra']} neutras "
        f"y {polaridades['negativa']} negativas."
    )
    return {
        'familias': dict(familias),
        'polaridades': polaridades,
        'total': len(recientes),
        'familia_dominante': familia_dominante,
        'energia': energia,
        'score': score,
        'mensaje': mensaje,
    }


def detectar_patrones(timeline: List[DrawEvent], now: datetime,
                      guide: Optional[SymbolicGuide] = None,
                      context: Optional[AnalysisContext] = None,
                      cantidad: Optional[int] = None,
                      detectores: Optional[List[Callable[[DetectorInput], List[PatternFinding]]]] = None) -> Dict[str, Any]:
    """Run every detector over the active window and summarize the recent draws."""
    if not timeline:
        return {
            'mensaje': "No hay sorteos suficientes.",
            'recientes': [],
            'stats': None,
            'ventana': {'tipo': 'vacia', 'muestras': 0, 'fallback': False},
            'hallazgos': [],
        }

    cantidad = settings.pattern_summary_draws if cantidad is None else cantidad
    window, ventana = select_active_window(timeline, context)
    inp = DetectorInput(window=window, history=timeline, now=now, guide=guide)

    hallazgos: List[PatternFinding] = []
    for detector in detectores or DETECTORES:
        hallazgos.extend(detector(inp))
    hallazgos.sort(key=lambda finding: (-finding.confianza, finding.id))

    recientes = timeline[-cantidad:] if cantidad > 0 else []
    stats = resumen_simbolico(recientes, guide)
    logger.debug(f"Pattern pass over {len(window)} events produced {len(hallazgos)} findings")

    return {
        'mensaje': stats['mensaje'],
        'recientes': [event.to_dict() for event in recientes],
        'stats': stats,
        'ventana': ventana,
        'hallazgos': [finding.to_dict() for finding in hallazgos],
    }

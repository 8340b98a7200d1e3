"""Monthly trends: how one calendar month behaved across recent years."""

import logging
from typing import List, Dict, Any, Optional

import pandas as pd

from models.domain import DrawEvent

logger = logging.getLogger(__name__)

MONTH_LABELS = [
    "Enero", "Febrero", "Marzo", "Abril", "Mayo", "Junio",
    "Julio", "Agosto", "Septiembre", "Octubre", "Noviembre", "Diciembre",
]
MAX_TREND_POINTS = 240
LINE_STEP = 10


def _empty_stats() -> Dict[str, Any]:
    return {
        'total_draws': 0,
        'alerts': [],
        'top_numbers': [],
        'line_stats': [],
        'repeat_share': 0.0,
        'consecutive_share': 0.0,
        'years_count': 0,
        'unique_numbers': 0,
        'trend': {'start_avg': None, 'end_avg': None, 'delta': 0.0},
        'longest_streak': None,
    }


def line_label(band: int) -> str:
    return f"{band:02d}-{min(99, band + LINE_STEP - 1):02d}"


def compute_trend(numbers: List[int]) -> Dict[str, Any]:
    """Average of the first third against the last third."""
    if not numbers:
        return {'start_avg': None, 'end_avg': None, 'delta': 0.0}
    chunk = max(1, len(numbers) // 3)
    start_avg = sum(numbers[:chunk]) / chunk
    end_avg = sum(numbers[-chunk:]) / chunk
    return {'start_avg': start_avg, 'end_avg': end_avg, 'delta': end_avg - start_avg}


def build_streaks(df: pd.DataFrame) -> List[Dict[str, Any]]:
    """Runs of the same number on consecutive draws, longest first."""
    streaks = []
    active = None
    for row in df.itertuples(index=False):
        if active is not None and active['numero'] == row.numero:
            active['length'] += 1
            active['end'] = row.fecha
            continue
        if active is not None and active['length'] > 1:
            streaks.append(active)
        active = {'numero': int(row.numero), 'length': 1, 'start': row.fecha, 'end': row.fecha}
    if active is not None and active['length'] > 1:
        streaks.append(active)
    return sorted(streaks, key=lambda streak: -streak['length'])


def analizar_patrones_mensuales(timeline: List[DrawEvent], mes: int, pais: Optional[str] = None,
                                turno: Optional[str] = None, years_back: int = 5,
                                min_entries: int = 18) -> Dict[str, Any]:
    """Repeat share, dominant decade line, trend and alerts for month ``mes`` (1-12)."""
    if not 1 <= mes <= 12:
        raise ValueError("mes debe estar entre 1 y 12")

    month_label = MONTH_LABELS[mes - 1]
    filtro = {'mes': mes, 'pais': pais, 'turno': turno, 'years_back': years_back}
    pais_key = pais.strip().lower() if pais and pais != "ALL" else None
    turno_key = turno if turno and turno != "ALL" else None

    rows = [
        {
            'numero': e.numero,
            'fecha': e.fecha_iso,
            'horario': e.horario.value,
            'pais': e.pais,
            'year': e.fecha.year,
        }
        for e in timeline
        if e.fecha.month == mes
        and (pais_key is None or e.pais_key == pais_key)
        and (turno_key is None or e.horario.value == turno_key)
    ]
    if not rows:
        return {'filtro': filtro, 'timeline': [], 'year_breakdown': [], 'stats': _empty_stats(),
                'month_label': month_label}

    df = pd.DataFrame(rows)
    years = sorted(df['year'].unique().tolist())
    recent_years = years[-max(1, min(years_back or 5, len(years))):]
    df = df[df['year'].isin(recent_years)].reset_index(drop=True)

    df['line'] = (df['numero'] // LINE_STEP) * LINE_STEP
    df['is_repeat'] = df['numero'].duplicated()
    df['is_consecutive'] = df['numero'].eq(df['numero'].shift())

    total = len(df)
    repeat_share = float(df['is_repeat'].mean())
    consecutive_share = float(df['is_consecutive'].mean())

    grouped = df.groupby('numero')
    top = (
        pd.DataFrame({
            'conteo': grouped.size(),
            'last_fecha': grouped['fecha'].last(),
            'last_horario': grouped['horario'].last(),
            'last_pais': grouped['pais'].last(),
        })
        .reset_index()
        .sort_values(['conteo', 'numero'], ascending=[False, True])
        .head(6)
    )
    top_numbers = [
        {
            'numero': int(row.numero),
            'count': int(row.conteo),
            'years': sorted(int(y) for y in df.loc[df['numero'] == row.numero, 'year'].unique()),
            'last_fecha': row.last_fecha,
            'last_horario': row.last_horario,
            'last_pais': row.last_pais,
        }
        for row in top.itertuples(index=False)
    ]

    line_counts = df['line'].value_counts()
    line_stats = [
        {'band': int(band), 'label': line_label(int(band)), 'count': int(count), 'share': float(count / total)}
        for band, count in line_counts.items()
    ]

    year_breakdown = []
    for year in sorted(recent_years, reverse=True):
        subset = df[df['year'] == year]
        year_breakdown.append({
            'year': int(year),
            'total': len(subset),
            'repeat_share': float(subset['is_repeat'].mean()) if len(subset) else 0.0,
            'unique': int(subset['numero'].nunique()),
            'last_fecha': subset['fecha'].iloc[-1] if len(subset) else None,
        })

    scope = max(min_entries, total)
    trend = compute_trend(df['numero'].tail(min(scope, MAX_TREND_POINTS)).tolist())
    streaks = build_streaks(df)
    longest = streaks[0] if streaks else None

    alerts = []
    if repeat_share >= 0.34:
        alerts.append({
            'type': 'repeat',
            'title': "Mes reincidente",
            'detail': f"El {round(repeat_share * 100)}% de los sorteos repiten números ya vistos en {month_label}.",
        })
    years_count = len(recent_years)
    if top_numbers and top_numbers[0]['count'] >= max(3, round(years_count * 0.6)):
        faro = top_numbers[0]
        alerts.append({
            'type': 'number',
            'title': f"Número faro {faro['numero']:02d}",
            'detail': f"Aparece {faro['count']} veces en los últimos {years_count} años ({len(faro['years'])} temporadas).",
        })
    if longest and longest['length'] >= 3:
        alerts.append({
            'type': 'streak',
            'title': "Rachas consecutivas",
            'detail': f"{longest['numero']:02d} se repitió {longest['length']} turnos seguidos ({longest['start']} → {longest['end']}).",
        })
    elif consecutive_share >= 0.12:
        alerts.append({
            'type': 'streak',
            'title': "Duplicados frecuentes",
            'detail': f"{round(consecutive_share * 100)}% de los sorteos repite el número inmediatamente anterior.",
        })
    if line_stats and line_stats[0]['share'] >= 0.42:
        alerts.append({
            'type': 'line',
            'title': "Línea dominante",
            'detail': f"{line_stats[0]['label']} concentra {round(line_stats[0]['share'] * 100)}% de las apariciones.",
        })
    if trend['start_avg'] is not None and abs(round(trend['delta'])) >= 7:
        delta = round(trend['delta'])
        alerts.append({
            'type': 'trend',
            'title': "Escala ascendente" if delta > 0 else "Escala descendente",
            'detail': f"El promedio del mes pasó de {round(trend['start_avg'])} a {round(trend['end_avg'])} ({delta:+d}).",
        })
    reincidente = next((y for y in year_breakdown if y['repeat_share'] >= 0.45), None)
    if reincidente:
        alerts.append({
            'type': 'year',
            'title': f"Temporada {reincidente['year']}",
            'detail': f"Tuvo {round(reincidente['repeat_share'] * 100)}% de repeticiones internas.",
        })

    return {
        'filtro': filtro,
        'timeline': [
            {
                'numero': int(row.numero),
                'fecha': row.fecha,
                'horario': row.horario,
                'pais': row.pais,
                'year': int(row.year),
                'is_repeat': bool(row.is_repeat),
                'is_consecutive': bool(row.is_consecutive),
            }
            for row in df.itertuples(index=False)
        ],
        'year_breakdown': year_breakdown,
        'stats': {
            'total_draws': total,
            'repeat_share': repeat_share,
            'consecutive_share': consecutive_share,
            'top_numbers': top_numbers,
            'line_stats': line_stats,
            'alerts': alerts,
            'years_count': years_count,
            'unique_numbers': int(df['numero'].nunique()),
            'trend': trend,
            'longest_streak': longest,
        },
        'month_label': month_label,
    }

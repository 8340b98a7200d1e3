from datetime import datetime, time, timedelta

import pytest

from analysis.patterns import (
    DetectorInput, detect_consecutive_repetition, detect_double_weekday, detect_family_clusters,
    detect_recurring_gaps, detect_slot_bias, detect_successive_transitions, detect_weekday_bias,
    detectar_patrones, select_active_window
)
from models.domain import AnalysisContext, Turno
from tests.builders import BASE_DATE, filler_timeline, make_draw


def _gap_findings(timeline, now):
    inp = DetectorInput(window=timeline, history=timeline, now=now)
    return {f.datos['numero']: f for f in detect_recurring_gaps(inp)}


def test_regular_gap_reports_mode_and_cycles():
    timeline = [make_draw(7, day) for day in (0, 10, 20, 30)]

    finding = _gap_findings(timeline, datetime(2024, 3, 1))[7]

    assert finding.datos['gap'] == 10
    assert finding.datos['matched_cycles'] == 3
    assert finding.id == "gap-07-10d"
    assert finding.confianza == 1.0
    # 2024-02-10 already passed
    assert finding.siguiente_fecha_esperada is None


def test_weekly_number_projects_next_date():
    timeline = [make_draw(42, day, Turno.NOCHE) for day in (0, 7, 14, 21, 28)]

    finding = _gap_findings(timeline, datetime(2024, 1, 29, 13, 0))[42]

    assert finding.datos['gap'] == 7
    assert finding.datos['matched_cycles'] == 4
    assert finding.siguiente_fecha_esperada == "2024-02-05"


def test_irregular_gaps_are_ignored():
    timeline = [make_draw(9, day) for day in (0, 3, 11, 30)]

    assert _gap_findings(timeline, datetime(2024, 3, 1)) == {}


def test_same_day_repeats_are_not_cycles():
    timeline = [
        make_draw(5, 0, Turno.MANANA), make_draw(5, 0, Turno.NOCHE),
        make_draw(5, 4), make_draw(5, 8),
    ]

    finding = _gap_findings(timeline, datetime(2024, 3, 1))[5]

    assert finding.datos['gap'] == 4
    assert finding.datos['intervalos'] == 2


def test_small_window_falls_back_to_full_history():
    timeline = [make_draw(n, n) for n in range(10)]

    window, ventana = select_active_window(timeline)

    assert ventana['fallback'] is True
    assert len(window) == 10


def test_year_window_uses_context_year():
    timeline = filler_timeline(400)
    window, ventana = select_active_window(timeline, AnalysisContext(year=2025))

    assert ventana['tipo'] == 'anio'
    assert ventana['fallback'] is False
    assert all(e.fecha.year == 2025 for e in window)


def test_pattern_pass_over_history(guide, now):
    result = detectar_patrones(filler_timeline(90), now, guide=guide)

    assert result['ventana']['muestras'] > 0
    assert len(result['recientes']) == 9
    confianzas = [h['confianza'] for h in result['hallazgos']]
    assert all(0.0 <= c <= 1.0 for c in confianzas)
    assert confianzas == sorted(confianzas, reverse=True)


def test_pattern_pass_without_draws(now):
    result = detectar_patrones([], now)

    assert result['hallazgos'] == []
    assert result['stats'] is None


def _at(day, hour=23):
    return datetime.combine(BASE_DATE + timedelta(days=day), time(hour))


def _run(detector, window, history=None, now=None, guide=None):
    inp = DetectorInput(window=window, history=history if history is not None else window,
                        now=now or _at(90), guide=guide)
    return {f.id: f for f in detector(inp)}


# 2024-01-01 is a Monday, so offsets 0, 7, 14... fall on weekday 0.

def test_weekday_bias_fires_on_dominant_weekday():
    timeline = [make_draw(30, day) for day in (0, 7, 14, 21)]

    finding = _run(detect_weekday_bias, timeline)["dia-30-0"]

    assert finding.datos['ratio'] == 1.0
    assert finding.confianza == pytest.approx(1.0)


def test_weekday_bias_needs_four_draws():
    timeline = [make_draw(30, day) for day in (0, 7, 14)]

    assert _run(detect_weekday_bias, timeline) == {}


def test_weekday_bias_can_rest_on_history():
    window = [make_draw(30, day) for day in (14, 15, 16, 21)]

    finding = _run(detect_weekday_bias, window)["dia-30-0"]

    assert finding.datos['ratio'] == 0.5
    assert finding.datos['ratio_historico'] == 0.5
    assert finding.confianza == pytest.approx(0.5)


def test_weekday_bias_rejects_weak_window_and_history():
    window = [make_draw(30, day) for day in (14, 15, 16, 21)]
    history = [make_draw(30, day) for day in (3, 4, 5, 6)] + window

    # 2 of 4 in the window, 2 of 8 historically
    assert _run(detect_weekday_bias, window, history) == {}


def test_slot_bias_fires_on_dominant_slot():
    timeline = [make_draw(44, day, Turno.TARDE) for day in range(4)]

    finding = _run(detect_slot_bias, timeline)["turno-44-3PM"]

    assert finding.datos['conteo'] == 4
    assert finding.confianza == pytest.approx(1.0)


def test_slot_bias_rejects_mixed_slots():
    window = [
        make_draw(44, 20, Turno.TARDE), make_draw(44, 21, Turno.TARDE),
        make_draw(44, 22, Turno.MANANA), make_draw(44, 23, Turno.NOCHE),
    ]
    history = [
        make_draw(44, 10, Turno.MANANA), make_draw(44, 11, Turno.NOCHE),
        make_draw(44, 12, Turno.MANANA), make_draw(44, 13, Turno.NOCHE),
    ] + window

    assert _run(detect_slot_bias, window, history) == {}


def test_repetition_fires_on_high_ratio():
    timeline = [make_draw(8, 0, Turno.MANANA), make_draw(8, 0, Turno.TARDE), make_draw(8, 1, Turno.MANANA)]

    finding = _run(detect_consecutive_repetition, timeline)["repeticion-08"]

    assert finding.datos['repeticiones'] == 2
    assert finding.confianza == pytest.approx(2 / 3)


def _repetition_burst():
    window = [
        make_draw(8, 20), make_draw(8, 35),
        make_draw(8, 50, Turno.MANANA), make_draw(8, 50, Turno.TARDE), make_draw(8, 51, Turno.MANANA),
    ]
    history = [make_draw(8, 0, Turno.MANANA), make_draw(8, 0, Turno.TARDE), make_draw(8, 10)] + window
    return window, history


def test_repetition_burst_with_corroborating_history():
    window, history = _repetition_burst()

    finding = _run(detect_consecutive_repetition, window, history, now=_at(55))["repeticion-08"]

    assert finding.datos['ratio'] == pytest.approx(0.4)
    assert finding.datos['historial'] == 3
    assert finding.datos['rafaga'] is True


def test_repetition_without_recent_burst_is_ignored():
    window, history = _repetition_burst()

    # last repeat on day 51 is older than 14 days at day 70
    assert _run(detect_consecutive_repetition, window, history, now=_at(70)) == {}


def _transition_sequence():
    return [
        make_draw(12, 0, Turno.MANANA), make_draw(21, 0, Turno.TARDE), make_draw(70, 0, Turno.NOCHE),
        make_draw(12, 3, Turno.MANANA), make_draw(21, 3, Turno.TARDE), make_draw(71, 3, Turno.NOCHE),
        make_draw(12, 6, Turno.MANANA), make_draw(72, 6, Turno.TARDE), make_draw(73, 6, Turno.NOCHE),
    ]


def test_recent_transition_fires_with_short_history():
    finding = _run(detect_successive_transitions, _transition_sequence(), now=_at(10))["transition-12-21"]

    assert finding.datos['conteo'] == 2
    assert finding.datos['total'] == 3
    assert finding.datos['turnos'] == "11AM>3PM"
    assert finding.confianza == pytest.approx(2 / 3)


def test_stale_transition_needs_three_historical_matches():
    # last 12 -> 21 on day 3, more than 21 days before day 40
    assert "transition-12-21" not in _run(detect_successive_transitions, _transition_sequence(), now=_at(40))


def test_transition_with_historical_support_fires_when_stale():
    timeline = []
    for k in range(4):
        timeline += [make_draw(12, 3 * k, Turno.MANANA), make_draw(21, 3 * k, Turno.TARDE),
                     make_draw(60 + k, 3 * k, Turno.NOCHE)]

    finding = _run(detect_successive_transitions, timeline, now=_at(90))["transition-12-21"]

    assert finding.datos['historial'] == 4
    assert finding.datos['ratio'] == 1.0


def test_transition_below_half_share_is_ignored():
    timeline = []
    for k in range(4):
        timeline += [make_draw(12, 3 * k, Turno.MANANA), make_draw(40 + k, 3 * k, Turno.TARDE),
                     make_draw(50 + k, 3 * k, Turno.NOCHE)]

    assert not any(key.startswith("transition-12-") for key in _run(detect_successive_transitions, timeline))


def test_doubles_clustered_on_one_weekday():
    timeline = [make_draw(11, 0), make_draw(22, 7), make_draw(33, 14), make_draw(45, 15)]

    finding = _run(detect_double_weekday, timeline)["dobles-dia-0"]

    assert finding.datos['total'] == 3
    assert finding.datos['numeros'] == [11, 22, 33]


def _doubles_half_monday():
    return [make_draw(11, 0), make_draw(22, 7), make_draw(33, 1), make_draw(44, 2)]


def test_doubles_at_half_ratio_need_history():
    # 2 of 4 on Monday, only 2 historical Monday doubles
    assert _run(detect_double_weekday, _doubles_half_monday()) == {}


def test_doubles_at_half_ratio_with_history():
    window = _doubles_half_monday()
    history = window + [make_draw(55, 21)]

    finding = _run(detect_double_weekday, window, history)["dobles-dia-0"]

    assert finding.datos['ratio'] == 0.5
    assert finding.datos['historial'] == 3
    assert finding.confianza == pytest.approx(0.7 * 0.5 + 0.3 * 0.6)


def test_family_cluster_confidence(guide):
    timeline = [
        make_draw(12, 0, Turno.MANANA), make_draw(21, 0, Turno.TARDE),
        make_draw(7, 2), make_draw(34, 3),
        make_draw(21, 5, Turno.MANANA), make_draw(12, 5, Turno.NOCHE),
    ]

    finding = _run(detect_family_clusters, timeline, guide=guide)["familia-personas"]

    assert finding.datos['dias'] == 2
    assert finding.datos['total_dias'] == 4
    assert finding.datos['numeros'] == [12, 21]
    assert finding.confianza == pytest.approx(0.35 + 0.45 * 0.5 + 0.2 * 0.5)


def test_family_cluster_needs_two_days(guide):
    timeline = [
        make_draw(12, 0, Turno.MANANA), make_draw(21, 0, Turno.TARDE),
        make_draw(12, 5), make_draw(34, 5, Turno.TARDE),
    ]

    assert _run(detect_family_clusters, timeline, guide=guide) == {}
    assert _run(detect_family_clusters, timeline) == {}

from datetime import datetime

import pytest

from predictions.triggers import (
    HIT, LATE_HIT, MISS, OPEN, backtest_relacion, evaluar_relaciones, resolver_evento
)
from tests.builders import make_draw


def _relacion(origen=10, destino=20, ventana_min=1, ventana_max=3):
    return {'origen': origen, 'destino': destino, 'tipo': 'DISPARA',
            'ventana_min': ventana_min, 'ventana_max': ventana_max, 'peso': 1.0}


FAR_FUTURE = datetime(2025, 1, 1)


def test_target_inside_window_is_hit():
    evento = resolver_evento(_relacion(), make_draw(10, 0), [make_draw(20, 2)], FAR_FUTURE)

    assert evento['estado'] == HIT
    assert evento['lag_dias'] == 2
    assert evento['hit_fecha'] == "2024-01-03"


def test_target_after_window_is_late_hit():
    evento = resolver_evento(_relacion(), make_draw(10, 0), [make_draw(20, 5)], FAR_FUTURE)

    assert evento['estado'] == LATE_HIT
    assert evento['lag_dias'] == 5


def test_target_before_minimum_lag_does_not_count():
    evento = resolver_evento(_relacion(), make_draw(10, 0), [make_draw(20, 0), make_draw(20, 9)], FAR_FUTURE)

    assert evento['estado'] == MISS
    assert evento['lag_dias'] is None


def test_event_stays_open_until_deadline():
    origen = make_draw(10, 0)

    assert resolver_evento(_relacion(), origen, [], datetime(2024, 1, 2))['estado'] == OPEN
    assert resolver_evento(_relacion(), origen, [], datetime(2024, 1, 5))['estado'] == MISS


def test_future_draws_are_ignored():
    evento = resolver_evento(_relacion(), make_draw(10, 0), [make_draw(20, 2)], datetime(2024, 1, 2))

    assert evento['estado'] == OPEN


def test_backtest_summary():
    timeline = [
        make_draw(10, 0), make_draw(20, 1),
        make_draw(10, 10), make_draw(20, 15),
        make_draw(10, 30),
        make_draw(10, 50),
    ]

    result = backtest_relacion(_relacion(), timeline, now=datetime(2024, 2, 21))
    stats = result['stats']

    assert [e['estado'] for e in result['eventos']] == [HIT, LATE_HIT, MISS, OPEN]
    assert stats['total_eventos'] == 4
    assert stats['abiertos'] == 1
    assert stats['hit_rate'] == pytest.approx(1 / 3)
    assert stats['lag_promedio'] == pytest.approx(3.0)
    assert stats['lag_mediana'] == pytest.approx(3.0)


def test_relations_are_sorted_by_hit_rate():
    timeline = [make_draw(10, 0), make_draw(20, 1), make_draw(30, 2), make_draw(40, 10)]
    relaciones = [_relacion(30, 99), _relacion(10, 20)]

    resultados = evaluar_relaciones(relaciones, timeline, now=datetime(2024, 3, 1))

    assert resultados[0]['relacion']['origen'] == 10
    assert resultados[0]['stats']['hit_rate'] == 1.0
    assert resultados[1]['stats']['misses'] == 1

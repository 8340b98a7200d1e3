from datetime import datetime

from config.settings import settings
from models.domain import TierCandidate, Turno
from predictions.final_selection import (
    calcular_seleccion_final, compute_turn_target, select_inversion_wildcard
)
from tests.builders import make_draw

NOW = datetime(2024, 1, 10, 8, 0)


def _candidate(numero, level, score):
    return TierCandidate(numero=numero, level=level, score=score)


def test_wildcard_falls_back_to_lowest_top_pick():
    fuertes = [_candidate(12, 'fuerte', 0.9)]
    moderados = [_candidate(34, 'moderado', 0.8)]
    debiles = [_candidate(56, 'debil', 0.5)]
    timeline = [make_draw(12, 0, pais="hn"), make_draw(34, 1, pais="hn")]

    result = calcular_seleccion_final(fuertes, moderados, debiles, timeline, NOW)

    assert [p['numero'] for p in result['top_picks']] == [12, 34, 56]
    assert result['comodin'] == {'numero': 56, 'origen': 'top'}


def test_no_candidates_means_no_wildcard():
    result = calcular_seleccion_final([], [], [], [], NOW)

    assert result['top_picks'] == []
    assert result['secundarios'] == []
    assert result['comodin'] is None


def test_regional_activity_picks_the_wildcard():
    fuertes = [_candidate(12, 'fuerte', 0.9)]
    timeline = [make_draw(77, 9, Turno.MANANA, pais="NI"), make_draw(77, 9, Turno.TARDE, pais="sv")]

    result = calcular_seleccion_final(fuertes, [], [], timeline, datetime(2024, 1, 10, 18, 0))

    assert result['comodin'] == {'numero': 77, 'origen': 'regional'}


def test_top_picks_are_bounded_and_secondaries_follow():
    fuertes = [_candidate(n, 'fuerte', 1.0 - n / 100) for n in range(10)]

    result = calcular_seleccion_final(fuertes, [], [], [], NOW)

    assert len(result['top_picks']) == settings.selection_top
    assert len(result['secundarios']) <= settings.selection_secondary_max
    top = {p['numero'] for p in result['top_picks']}
    assert not top & {s['numero'] for s in result['secundarios']}
    assert all(0.0 <= p['total'] <= 1.0 for p in result['top_picks'])


def test_recent_activity_does_not_add_new_numbers():
    timeline = [make_draw(90, 9, pais="hn")]
    result = calcular_seleccion_final([_candidate(12, 'fuerte', 0.5)], [], [], timeline, NOW)

    assert [p['numero'] for p in result['top_picks']] == [12]


def test_inversion_wildcard_never_pairs_with_itself():
    ranked = [
        {'numero': 55, 'total': 0.9},
        {'numero': 50, 'total': 0.8},
        {'numero': 23, 'total': 0.4},
        {'numero': 32, 'total': 0.3},
    ]

    assert select_inversion_wildcard(ranked, exclude={55}) == 23


def test_turn_target_follows_recorded_slots():
    timeline = [make_draw(1, 9, Turno.MANANA), make_draw(2, 9, Turno.TARDE)]

    target = compute_turn_target(timeline, NOW)
    assert target['turno'] == Turno.NOCHE.value
    assert target['fecha'] == "2024-01-10"

    timeline.append(make_draw(3, 9, Turno.NOCHE))
    target = compute_turn_target(timeline, NOW)
    assert target['turno'] == Turno.MANANA.value
    assert target['fecha'] == "2024-01-11"
    assert target['registros'] == 3

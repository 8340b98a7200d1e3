from datetime import datetime

from analysis.patterns import detectar_patrones
from analysis.profiles import calcular_memoria
from config.settings import settings
from models.domain import AnalysisContext, Turno
from predictions.bias_tiers import clasificar_sesgos, compute_gap_info
from tests.builders import filler_timeline, make_draw

NOW = datetime(2024, 3, 30, 13, 0)


def _classify(timeline, context=None, guide=None):
    snapshot = calcular_memoria(timeline, now=NOW)
    patrones = detectar_patrones(timeline, NOW, guide=guide, context=context)
    return clasificar_sesgos(timeline, snapshot.perfiles, context=context, patrones=patrones, guide=guide)


def _history():
    timeline = filler_timeline(90)
    # 42 every seven days at night
    timeline += [make_draw(42, day, Turno.NOCHE, pais="ni") for day in range(0, 90, 7)]
    return sorted(timeline, key=lambda e: e.sort_key)


def test_tiers_are_disjoint_and_capped(guide):
    result = _classify(_history(), AnalysisContext(weekday=4), guide)

    fuertes = {c.numero for c in result['fuertes']}
    moderados = {c.numero for c in result['moderados']}
    debiles = {c.numero for c in result['debiles']}

    assert not fuertes & moderados
    assert not fuertes & debiles
    assert not moderados & debiles
    assert len(result['fuertes']) <= settings.max_fuertes
    assert len(result['moderados']) <= settings.max_moderados
    assert len(result['debiles']) <= settings.max_debiles


def test_tier_scores_are_bounded_and_ranked(guide):
    result = _classify(_history(), guide=guide)

    for level in ('fuertes', 'moderados', 'debiles'):
        scores = [c.score for c in result[level]]
        assert all(0.0 <= s <= 1.0 for s in scores)
        assert scores == sorted(scores, reverse=True)


def test_strong_tier_requires_narrative(guide):
    result = _classify(_history(), guide=guide)

    # No confirmed hypotheses in the store
    assert result['fuertes'] == []


def test_country_filter_restricts_window(guide):
    result = _classify(_history(), AnalysisContext(country="NI"), guide)

    assert result['window']['muestras'] == 13
    numeros = {c.numero for level in ('fuertes', 'moderados', 'debiles') for c in result[level]}
    assert all(c.window_count == 0 for level in ('moderados', 'debiles')
               for c in result[level] if c.numero != 42)
    assert 42 in numeros


def test_empty_inputs_give_empty_tiers():
    result = clasificar_sesgos([], [])

    assert result == {'fuertes': [], 'moderados': [], 'debiles': [], 'window': None}


def test_gap_info_is_active_near_the_modal_gap():
    timeline = [make_draw(42, day) for day in (0, 7, 14, 21)]
    perfil = calcular_memoria(timeline, now=datetime(2024, 1, 28, 12, 0)).perfiles[0]

    info = compute_gap_info(perfil, 1)

    assert info.mode == 7
    assert info.matches == 3
    assert info.is_active is True

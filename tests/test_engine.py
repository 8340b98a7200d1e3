from datetime import date, datetime

import pytest

from models.domain import AnalysisContext, EstadoHipotesis, GameMode, ModeExample, Turno
from models.repositories import RuleValidationError
from utils.scheduler import AnalysisScheduler
from tests.builders import filler_timeline, make_draw

NOW = datetime(2024, 3, 1, 4, 0)


class MemoryCache:
    """Dict-backed stand-in for the Redis cache manager."""

    def __init__(self):
        self.store = {}

    def get(self, key):
        return self.store.get(key)

    def set(self, key, value, ttl=None):
        self.store[key] = value
        return True

    def delete_pattern(self, pattern):
        prefix = pattern.rstrip('*')
        keys = [k for k in self.store if k.startswith(prefix)]
        for key in keys:
            del self.store[key]
        return len(keys)


def _load(engine, days=60):
    for event in filler_timeline(days):
        engine.registrar_sorteo(event)


def test_selection_targets_next_slot(engine):
    _load(engine)
    engine.registrar_sorteo(make_draw(5, 60, Turno.MANANA))

    result = engine.seleccion_final(now=NOW, use_cache=False)
    seleccion = result['seleccion']

    assert seleccion['turno_objetivo']['turno'] == Turno.TARDE.value
    assert seleccion['turno_objetivo']['fecha'] == "2024-03-01"
    assert len(seleccion['top_picks']) <= 5
    if seleccion['top_picks']:
        assert seleccion['comodin'] is not None
    assert result['ventana']['turno'] == Turno.TARDE.value


def test_selection_is_cached_until_new_draws(engine):
    engine.cache = MemoryCache()
    _load(engine, 20)

    first = engine.seleccion_final(now=NOW)
    assert len(engine.cache.store) == 1
    assert engine.seleccion_final(now=NOW) is first

    engine.registrar_sorteo(make_draw(5, 60, Turno.MANANA))
    assert engine.cache.store == {}


def test_duplicate_draw_keeps_cache(engine):
    engine.cache = MemoryCache()
    draw = make_draw(5, 0)
    engine.registrar_sorteo(draw)
    engine.cache.set("seleccion:x", {})

    assert engine.registrar_sorteo(draw)['status'] == 'duplicate'
    assert "seleccion:x" in engine.cache.store


def test_result_resolves_pending_hypotheses(engine):
    acierto = engine.narrative.crear_hipotesis(33, date(2024, 1, 5), turno="3PM")
    fallo = engine.narrative.crear_hipotesis(44, date(2024, 1, 5))

    result = engine.registrar_resultado(make_draw(33, 4, Turno.TARDE))

    assert result['sorteo']['status'] == 'inserted'
    assert result['resueltas'] == 2
    estados = {h.id: h.estado for h in engine.narrative.listar_hipotesis()}
    assert estados[acierto.id] == EstadoHipotesis.CONFIRMADA
    assert estados[fallo.id] == EstadoHipotesis.REFUTADA
    assert engine.narrative.listar_hipotesis(EstadoHipotesis.PENDIENTE) == []


def test_confirmed_hypothesis_feeds_profiles(engine):
    engine.narrative.crear_hipotesis(33, date(2024, 1, 5))
    engine.registrar_resultado(make_draw(33, 4, Turno.TARDE))

    snapshot = engine.reconstruir_conocimiento(now=NOW)
    perfil = next(p for p in snapshot.perfiles if p.numero == 33)

    assert perfil.score_hipotesis == 1.0


def test_stored_modes_are_evaluated(engine):
    for week in range(5):
        engine.registrar_sorteo(make_draw(12, week * 7, Turno.MANANA))
        engine.registrar_sorteo(make_draw(21, week * 7, Turno.TARDE))
    engine.modes.create_mode(GameMode(nombre="espejo", ejemplos=[ModeExample(original=12, resultado=21)]))

    result = engine.evaluar_modos()

    assert result['score_por_numero']['21'] == 1.0
    assert result['estadisticas'][0]['mode_nombre'] == "espejo"


def test_stored_relations_are_backtested(engine):
    engine.registrar_sorteo(make_draw(10, 0))
    engine.registrar_sorteo(make_draw(20, 2))
    engine.triggers.create_relation({'origen': 10, 'destino': 20, 'ventana_min': 1, 'ventana_max': 3})

    resultados = engine.evaluar_disparadores(now=NOW)

    assert resultados[0]['stats']['hits'] == 1


def test_context_weekday_reaches_tiers(engine):
    _load(engine, 30)

    sesgos = engine.clasificar_sesgos(now=NOW, contexto=AnalysisContext(weekday=2))

    assert sesgos['window']['dia'] == 2


def test_scheduler_job_rebuilds_profiles(engine):
    _load(engine, 5)
    scheduler = AnalysisScheduler(engine)

    scheduler.rebuild_knowledge_job()

    assert engine.obtener_perfiles().total_draws == 15
    assert scheduler.get_job_status()['scheduler_running'] is False


def test_modes_with_bad_parameters_are_rejected_on_save(engine):
    with pytest.raises(RuleValidationError):
        engine.modes.create_mode(GameMode(nombre="suma", operacion="sumar", parametros={'valor': 'x'}))
    with pytest.raises(RuleValidationError):
        engine.modes.create_mode(GameMode(nombre="suma", operacion="sumar", parametros={'numero': 3}))
    with pytest.raises(RuleValidationError):
        engine.modes.create_mode(GameMode(nombre="suelto", parametros={'valor': 1}))

    mode = engine.modes.create_mode(GameMode(nombre="suma", operacion="sumar", parametros={'valor': 2}))
    with pytest.raises(RuleValidationError):
        engine.modes.update_mode(mode.id, parametros={'k': 1})

    assert engine.modes.list_modes_with_examples()[0].parametros == {'valor': 2}

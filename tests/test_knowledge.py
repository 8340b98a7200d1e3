from datetime import datetime

from analysis.knowledge import META_KEY, PROFILE_SCOPE
from models.domain import Turno
from tests.builders import filler_timeline, make_draw


def _store(engine, events):
    for event in events:
        engine.draws.save_draw(event)


def test_empty_store_clears_cached_profiles(engine, now):
    _store(engine, filler_timeline(5))
    engine.reconstruir_conocimiento(now=now)
    assert engine.knowledge.list_by_scope(PROFILE_SCOPE)

    for draw in engine.draws.list_draws():
        engine.draws.delete_draw(draw['id'])
    snapshot = engine.reconstruir_conocimiento(now=now)

    assert snapshot.total_draws == 0
    assert snapshot.perfiles == []
    assert snapshot.latest_timestamp is None
    assert engine.knowledge.list_by_scope(PROFILE_SCOPE) == {}


def test_cached_snapshot_matches_rebuild(engine, now):
    _store(engine, filler_timeline(10))

    rebuilt = engine.reconstruir_conocimiento(now=now)
    cached = engine.obtener_perfiles(now=now)

    assert cached.total_draws == rebuilt.total_draws == 30
    assert [p.numero for p in cached.perfiles] == [p.numero for p in rebuilt.perfiles]
    assert cached.latest_timestamp == rebuilt.latest_timestamp


def test_missing_meta_entry_triggers_rebuild(engine, now):
    _store(engine, filler_timeline(10))
    engine.reconstruir_conocimiento(now=now)
    engine.knowledge.save_entries([(META_KEY, 'otro', {})])

    snapshot = engine.obtener_perfiles(now=now)

    assert snapshot.total_draws == 30
    assert engine.knowledge.get(META_KEY) == {'total_draws': 30}


def test_single_profile_lookup(engine, now):
    events = filler_timeline(3)
    _store(engine, events)
    engine.reconstruir_conocimiento(now=now)

    perfil = engine.knowledge_base.obtener_perfil_numero(events[0].numero)

    assert perfil is not None
    assert perfil.total >= 1
    assert engine.knowledge_base.obtener_perfil_numero(50) is None


def test_new_draw_invalidates_cached_profiles(engine, now):
    events = filler_timeline(10)
    _store(engine, events)
    before = engine.obtener_perfiles(now=now)
    assert before.total_draws == 30

    engine.draws.save_draw(make_draw(50, 20, Turno.NOCHE))
    after = engine.obtener_perfiles(now=now)

    assert after.total_draws == 31
    assert after.latest_timestamp == datetime(2024, 1, 21, 12, 0)
    assert engine.knowledge_base.obtener_perfil_numero(50).total == 1
    assert engine.knowledge.get(META_KEY) == {'total_draws': 31}


def test_deleted_draw_invalidates_cached_profiles(engine, now):
    _store(engine, filler_timeline(5))
    engine.obtener_perfiles(now=now)

    engine.draws.delete_draw(engine.draws.list_draws()[-1]['id'])

    assert engine.obtener_perfiles(now=now).total_draws == 14


def test_cache_hit_uses_requested_reference(engine):
    _store(engine, [make_draw(10, 0)])
    engine.reconstruir_conocimiento(now=datetime(2024, 1, 1))

    fresh = engine.obtener_perfiles(now=datetime(2024, 1, 1)).perfiles[0]
    later = engine.obtener_perfiles(now=datetime(2024, 1, 31)).perfiles[0]

    assert fresh.score_recencia == 1.0
    assert later.gaps.days_since == 30.0
    assert later.score_recencia < fresh.score_recencia

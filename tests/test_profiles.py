from datetime import date, datetime

from analysis.profiles import calcular_memoria, generar_predicciones, prediction_score
from models.domain import EstadoHipotesis, Hypothesis, HypothesisOutcome
from tests.builders import filler_timeline, make_draw


def test_profiles_are_idempotent(now):
    timeline = filler_timeline(40)

    first = calcular_memoria(timeline, now=now)
    second = calcular_memoria(timeline, now=now)

    assert first.model_dump() == second.model_dump()


def test_scores_are_bounded(now):
    snapshot = calcular_memoria(filler_timeline(40), now=now)

    assert snapshot.total_draws == 120
    for perfil in snapshot.perfiles:
        assert 0.0 <= perfil.score_frecuencia <= 1.0
        assert 0.0 <= perfil.score_recencia <= 1.0
        assert 0.0 <= perfil.score_hipotesis <= 1.0
        assert 0.0 <= perfil.score_contexto <= 1.0
        assert 0.0 <= prediction_score(perfil) <= 1.0


def test_empty_timeline_gives_zero_snapshot():
    snapshot = calcular_memoria([])

    assert snapshot.total_draws == 0
    assert snapshot.perfiles == []
    assert snapshot.latest_timestamp is None


def test_recent_number_has_higher_recency():
    timeline = [make_draw(10, 0), make_draw(20, 20)]
    snapshot = calcular_memoria(timeline, now=datetime(2024, 1, 21, 12, 0))
    by_number = {p.numero: p for p in snapshot.perfiles}

    assert by_number[20].score_recencia > by_number[10].score_recencia


def test_predictions_are_sorted_by_score(now):
    snapshot = calcular_memoria(filler_timeline(30), now=now)
    predicciones = generar_predicciones(snapshot.perfiles, top=10)

    scores = [p['score'] for p in predicciones]
    assert len(predicciones) == 10
    assert scores == sorted(scores, reverse=True)


def test_hypotheses_only_attach_to_drawn_numbers():
    timeline = [make_draw(10, 0), make_draw(20, 1)]
    hypotheses = [
        Hypothesis(numero=10, fecha=date(2024, 1, 1), estado=EstadoHipotesis.CONFIRMADA, id=1),
        Hypothesis(numero=77, fecha=date(2024, 1, 1), id=2),
    ]
    logs = [
        HypothesisOutcome(numero=10, estado=EstadoHipotesis.CONFIRMADA, fecha_resultado=date(2024, 1, 1)),
        HypothesisOutcome(numero=88, estado=EstadoHipotesis.REFUTADA, fecha_resultado=date(2024, 1, 2)),
    ]

    snapshot = calcular_memoria(timeline, hypotheses, logs)
    by_number = {p.numero: p for p in snapshot.perfiles}

    assert sorted(by_number) == [10, 20]
    assert by_number[10].score_hipotesis == 1.0
    assert by_number[10].aprendizaje.aciertos == 1

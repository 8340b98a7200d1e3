import pytest

from models.domain import GameMode, ModeExample, Turno
from predictions.mode_engine import evaluar_ejemplo, evaluar_modos, evaluar_operacion
from predictions.operations import apply_operation, conversion, validate_parameters, vecinos
from tests.builders import make_draw


def _twelve_then_twentyone():
    """12 is always answered by 21 within two draws."""
    timeline = []
    for week in range(6):
        day = week * 7
        timeline += [
            make_draw(12, day, Turno.MANANA),
            make_draw(40 + week, day, Turno.TARDE),
            make_draw(21, day, Turno.NOCHE),
        ]
    return timeline


def test_example_pair_with_perfect_record():
    stats = evaluar_ejemplo(12, 21, _twelve_then_twentyone())

    assert stats.intentos == 6
    assert stats.aciertos == 6
    assert stats.confianza == 1.0
    assert stats.soporte == 1.0
    assert stats.evidencia[0]['hops'] == 2


def test_support_grows_with_attempts():
    timeline = _twelve_then_twentyone()[:6]

    stats = evaluar_ejemplo(12, 21, timeline)

    assert stats.confianza == 1.0
    assert stats.soporte == pytest.approx(2 / 5)
    assert stats.puntaje == pytest.approx(0.4)


def test_unseen_original_gives_no_stats():
    assert evaluar_ejemplo(99, 1, _twelve_then_twentyone()) is None


def test_fixed_offset_only_checks_that_draw():
    stats = evaluar_ejemplo(12, 21, _twelve_then_twentyone(), offset=1)

    assert stats.aciertos == 0
    assert stats.confianza == 0.0


def test_lookahead_stops_after_three_days():
    timeline = [make_draw(12, 0), make_draw(21, 5)]

    stats = evaluar_ejemplo(12, 21, timeline)

    assert stats.intentos == 1
    assert stats.aciertos == 0


def test_operation_pairs_are_tracked_per_output():
    timeline = [make_draw(12, 0), make_draw(21, 1), make_draw(12, 2), make_draw(30, 3)]

    pairs = evaluar_operacion('espejo', {}, timeline)

    assert pairs[(12, 21)].intentos == 2
    assert pairs[(12, 21)].aciertos == 1
    assert pairs[(21, 12)].aciertos == 1


def test_mode_evaluation_scores_and_suggestions():
    modo = GameMode(id=1, nombre="espejo 12", ejemplos=[ModeExample(original=12, resultado=21)])
    timeline = _twelve_then_twentyone() + [make_draw(12, 50)]

    result = evaluar_modos([modo], timeline)

    assert result['score_por_numero']['21'] == pytest.approx(6 / 7)
    assert result['estadisticas'][0]['intentos'] == 7
    assert result['sugerencias'][0]['numero'] == 21
    assert result['sugerencias'][0]['base_numero'] == 12
    assert len(result['sugerencias']) == 1


def test_mode_evaluation_without_data():
    assert evaluar_modos([], _twelve_then_twentyone()) is None
    assert evaluar_modos([GameMode(nombre="vacio")], []) is None


def test_built_in_operations():
    assert apply_operation('espejo', 7) == [70]
    assert apply_operation('suma_digitos', 59) == [14]
    assert apply_operation('sumar', 98, {'valor': 3}) == [1]
    assert apply_operation('restar', 1, {'valor': 2}) == [99]
    assert vecinos(0) == [1, 99]
    assert conversion(25) == [52]
    assert conversion(13, variante="simple") == [3, 18]


def test_unknown_operation_is_rejected():
    with pytest.raises(ValueError):
        apply_operation('dividir', 10)


@pytest.mark.parametrize("parametros", [{'valor': 'x'}, {'numero': 3}, {'k': True}, {'variante': 'triple'}])
def test_bad_parameters_do_not_break_other_modes(parametros):
    operacion = 'conversion' if 'variante' in parametros else 'sumar'
    roto = GameMode(id=1, nombre="roto", operacion=operacion, parametros=parametros)
    sano = GameMode(id=2, nombre="espejo 12", ejemplos=[ModeExample(original=12, resultado=21)])

    result = evaluar_modos([roto, sano], _twelve_then_twentyone())

    by_name = {item['mode_nombre']: item for item in result['estadisticas']}
    assert by_name['roto']['pares'] == 0
    assert by_name['espejo 12']['aciertos'] == 6
    assert result['score_por_numero']['21'] == 1.0


@pytest.mark.parametrize("nombre, parametros", [
    ('sumar', {'valor': 'x'}),
    ('sumar', {'numero': 3}),
    ('vecinos', {'valor': 2}),
    ('espejo', {'k': 1}),
    ('conversion', {'variante': 2}),
    ('dividir', {}),
])
def test_parameter_validation_rejects(nombre, parametros):
    with pytest.raises(ValueError):
        validate_parameters(nombre, parametros)


def test_parameter_validation_accepts_known_keys():
    validate_parameters('sumar', {'valor': 5})
    validate_parameters('vecinos', {'k': 2})
    validate_parameters('conversion', {'variante': 'compuesta'})
    validate_parameters('espejo', None)

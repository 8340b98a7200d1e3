from datetime import date

from analysis.timeline import build_timeline, parse_draw_date, format_date_iso, normalize_slot
from models.domain import Turno


def test_parse_and_format_keep_iso_date():
    assert format_date_iso(parse_draw_date("2024-03-05")) == "2024-03-05"


def test_invalid_calendar_date_is_rejected():
    assert parse_draw_date("2024-02-30") is None
    assert parse_draw_date("31/04/2024") is None


def test_day_first_dates_are_accepted():
    assert parse_draw_date("05/03/2024") == date(2024, 3, 5)


def test_slot_aliases():
    assert normalize_slot("11 AM") == Turno.MANANA
    assert normalize_slot("3pm") == Turno.TARDE
    assert normalize_slot("9PM") == Turno.NOCHE
    assert normalize_slot("medianoche") is None


def test_timeline_is_ordered_by_date_and_slot():
    rows = [
        {'fecha': '2024-01-02', 'horario': '11AM', 'pais': 'hn', 'numero': 5},
        {'fecha': '2024-01-01', 'horario': '9PM', 'pais': 'hn', 'numero': 4},
        {'fecha': '2024-01-01', 'horario': '11AM', 'pais': 'hn', 'numero': 3},
        {'fecha': '2024-01-01', 'horario': '3PM', 'pais': 'ni', 'numero': 2},
    ]
    timeline = build_timeline(rows)

    assert [e.numero for e in timeline] == [3, 2, 4, 5]
    for prev, curr in zip(timeline, timeline[1:]):
        assert prev.sort_key <= curr.sort_key


def test_malformed_and_test_rows_are_dropped():
    rows = [
        {'fecha': '2024-02-30', 'horario': '11AM', 'pais': 'hn', 'numero': 5},
        {'fecha': '2024-01-01', 'horario': '11AM', 'pais': 'hn', 'numero': 100},
        {'fecha': '2024-01-01', 'horario': 'noon', 'pais': 'hn', 'numero': 1},
        {'fecha': '2024-01-01', 'horario': '11AM', 'pais': '', 'numero': 1},
        {'fecha': '2024-01-01', 'horario': '3PM', 'pais': 'hn', 'numero': 8, 'is_test': True},
        {'fecha': '2024-01-01', 'turno': '9PM', 'pais': 'hn', 'numero': '07'},
    ]
    timeline = build_timeline(rows)

    assert len(timeline) == 1
    assert timeline[0].numero == 7
    assert timeline[0].horario == Turno.NOCHE


def test_slot_instants_are_six_hours_apart():
    rows = [
        {'fecha': '2024-01-01', 'horario': h, 'pais': 'hn', 'numero': 1}
        for h in ('11AM', '3PM', '9PM')
    ]
    momentos = [e.momento for e in build_timeline(rows)]
    assert [m.hour for m in momentos] == [0, 6, 12]

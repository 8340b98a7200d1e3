import json
from datetime import date

import pytest

from ingestion.data_cleaner import DataCleaner, clean_draw_rows
from ingestion.importer import DrawImporter, read_rows
from models.domain import Turno

TODAY = date(2024, 6, 1)


def _row(**overrides):
    row = {'fecha': '2024-05-01', 'horario': '3PM', 'pais': ' Honduras ', 'numero': 42}
    row.update(overrides)
    return row


def test_valid_row_is_cleaned():
    result = DataCleaner(today=TODAY).validate_row(_row(numero='7'))

    assert result.is_valid
    assert result.cleaned_data.numero == 7
    assert result.cleaned_data.horario == Turno.TARDE
    assert result.cleaned_data.pais == "Honduras"
    assert result.warnings == ["Single digit numero padded: 07"]


@pytest.mark.parametrize("overrides, error", [
    ({'numero': 100}, "Number 100 out of range"),
    ({'numero': 'xx'}, "Invalid numero: xx"),
    ({'fecha': '2024-02-30'}, "Invalid fecha: 2024-02-30"),
    ({'fecha': '1999-12-31'}, "Date too old: 1999-12-31"),
    ({'fecha': '2024-07-01'}, "Date too recent: 2024-07-01"),
    ({'horario': '6PM'}, "Invalid horario: 6PM"),
    ({'pais': None}, "Missing pais"),
])
def test_invalid_rows_are_rejected(overrides, error):
    result = DataCleaner(today=TODAY).validate_row(_row(**overrides))

    assert not result.is_valid
    assert error in result.errors
    assert result.cleaned_data is None


def test_turno_alias_and_test_flag():
    row = _row(is_test='si')
    row['turno'] = row.pop('horario')

    result = DataCleaner(today=TODAY).validate_row(row)

    assert result.is_valid
    assert result.cleaned_data.is_test is True


def test_batch_drops_in_batch_duplicates():
    rows = [_row(), _row(pais='honduras'), _row(numero=150)]

    cleaned, report = clean_draw_rows(rows)

    assert len(cleaned) == 1
    assert report['total_results'] == 3
    assert report['valid_results'] == 2
    assert report['warning_summary'] == {"Duplicate row in batch": 1}


def test_read_rows_maps_column_aliases(tmp_path):
    path = tmp_path / "sorteos.csv"
    path.write_text("date,turno,country,number\n2024-05-01,11AM,hn,07\n", encoding="utf-8")

    assert read_rows(path) == [{'fecha': '2024-05-01', 'horario': '11AM', 'pais': 'hn', 'numero': '07'}]


def test_read_rows_rejects_unknown_format(tmp_path):
    path = tmp_path / "sorteos.xlsx"
    path.write_bytes(b"")

    with pytest.raises(ValueError):
        read_rows(path)


def test_import_file_counts_statuses(engine, tmp_path):
    path = tmp_path / "sorteos.json"
    path.write_text(json.dumps({'sorteos': [
        _row(), _row(horario='9PM', numero=5), _row(numero=-1),
    ]}), encoding="utf-8")
    importer = DrawImporter(engine.draws, DataCleaner(today=TODAY))

    first = importer.import_file(path)
    second = importer.import_file(path)
    forced = importer.import_file(path, force=True)

    assert (first['insertados'], first['invalidos']) == (2, 1)
    assert (second['insertados'], second['duplicados']) == (0, 2)
    assert forced['actualizados'] == 2
    assert len(engine.draws.list_draws()) == 2


def test_dry_run_does_not_store(engine):
    importer = DrawImporter(engine.draws, DataCleaner(today=TODAY))

    stats = importer.import_rows([_row()], dry_run=True)

    assert stats['simulados'] == 1
    assert engine.draws.list_draws() == []

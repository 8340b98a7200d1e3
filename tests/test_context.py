import pytest
from pydantic import ValidationError

from models.domain import AnalysisContext, Turno
from utils.guide import SymbolicGuide


def test_context_accepts_known_fields():
    context = AnalysisContext(country="NI", weekday=3, year=2024, target_slot="9PM")

    assert context.target_slot == Turno.NOCHE


def test_context_rejects_unknown_fields():
    with pytest.raises(ValidationError):
        AnalysisContext(country="NI", moon="full")


def test_context_rejects_out_of_range_weekday():
    with pytest.raises(ValidationError):
        AnalysisContext(weekday=7)


def test_guide_ignores_malformed_entries():
    guide = SymbolicGuide.from_dict({
        "07": {"simbolo": "Caracol", "familia": "agua"},
        "100": {"simbolo": "Fuera"},
        "xx": {"simbolo": "Nada"},
        "08": "texto",
    })

    assert len(guide) == 1
    assert guide.familia(7) == "agua"
    assert guide.polaridad(8) is None


def test_bundled_guide_covers_every_number():
    guide = SymbolicGuide.load()

    assert all(numero in guide for numero in range(100))
    assert guide.numeros_de_familia("agua")

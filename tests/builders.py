"""Timeline builders for the test suite."""

from datetime import date, timedelta

from models.domain import DrawEvent, Turno

BASE_DATE = date(2024, 1, 1)

GUIDE_DATA = {
    "07": {"simbolo": "Caracol", "familia": "agua", "polaridad": "neutra"},
    "12": {"simbolo": "Soldado", "familia": "personas", "polaridad": "neutra"},
    "21": {"simbolo": "Mujer", "familia": "personas", "polaridad": "positiva"},
    "34": {"simbolo": "Mono", "familia": "animales", "polaridad": "neutra"},
    "56": {"simbolo": "Piedra", "familia": "naturaleza", "polaridad": "neutra"},
}


def make_draw(numero, offset_days=0, horario=Turno.MANANA, pais="hn", base=BASE_DATE):
    return DrawEvent(numero=numero, fecha=base + timedelta(days=offset_days), horario=horario, pais=pais)


def filler_timeline(days=60, base=BASE_DATE, pais="hn"):
    """Three draws per day with a deterministic spread over 00-99."""
    events = []
    for day in range(days):
        for rank, turno in enumerate(Turno):
            numero = (day * 37 + rank * 11 + 3) % 100
            events.append(make_draw(numero, day, turno, pais, base))
    return events


def as_row(event):
    return {
        'fecha': event.fecha_iso,
        'horario': event.horario.value,
        'pais': event.pais,
        'numero': event.numero,
    }

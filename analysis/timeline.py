"""Timeline normalizer: raw draw rows -> ordered list of DrawEvent."""

import re
import logging
from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Optional, Union

from models.domain import DrawEvent, Turno
from utils.helpers import coerce_int, validate_number_range

logger = logging.getLogger(__name__)

_ISO_PATTERN = re.compile(r'^(\d{4})[-/](\d{1,2})[-/](\d{1,2})$')
_DAY_FIRST_PATTERN = re.compile(r'^(\d{1,2})[-/](\d{1,2})[-/](\d{4})$')
_FALLBACK_FORMATS = ('%d %b %Y', '%b %d %Y', '%d %B %Y', '%B %d %Y', '%Y%m%d')

_SLOT_ALIASES = {
    '11AM': Turno.MANANA, '11:00AM': Turno.MANANA, 'T0': Turno.MANANA,
    '3PM': Turno.TARDE, '03PM': Turno.TARDE, '3:00PM': Turno.TARDE, 'T1': Turno.TARDE,
    '9PM': Turno.NOCHE, '09PM': Turno.NOCHE, '9:00PM': Turno.NOCHE, 'T2': Turno.NOCHE,
}


def _safe_date(year: int, month: int, day: int) -> Optional[date]:
    try:
        return date(year, month, day)
    except ValueError:
        return None


def parse_draw_date(value: Union[str, date, datetime, None]) -> Optional[date]:
    """Parse a draw date; invalid calendar values yield None instead of clamping."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        return None

    text = value.strip()
    if not text:
        return None

    match = _ISO_PATTERN.match(text)
    if match:
        year, month, day = (int(part) for part in match.groups())
        return _safe_date(year, month, day)

    match = _DAY_FIRST_PATTERN.match(text)
    if match:
        day, month, year = (int(part) for part in match.groups())
        return _safe_date(year, month, day)

    try:
        return datetime.fromisoformat(text).date()
    except ValueError:
        pass

    for fmt in _FALLBACK_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    return None


def format_date_iso(value: date) -> str:
    """YYYY-MM-DD."""
    return value.isoformat()


def normalize_number(value: Any) -> Optional[int]:
    numero = coerce_int(value)
    if numero is None or not validate_number_range(numero):
        return None
    return numero


def normalize_slot(value: Any) -> Optional[Turno]:
    if isinstance(value, Turno):
        return value
    if not isinstance(value, str):
        return None
    key = value.strip().upper().replace(' ', '')
    return _SLOT_ALIASES.get(key)


def normalize_country(value: Any) -> Optional[str]:
    if not isinstance(value, str):
        return None
    country = value.strip()
    return country or None


def hydrate_draw(row: Dict[str, Any]) -> Optional[DrawEvent]:
    """Build a DrawEvent from a raw row, or None when the row is malformed."""
    if not isinstance(row, dict):
        return None

    numero = normalize_number(row.get('numero'))
    fecha = parse_draw_date(row.get('fecha'))
    horario = normalize_slot(row.get('horario', row.get('turno')))
    pais = normalize_country(row.get('pais'))

    if numero is None or fecha is None or horario is None or pais is None:
        logger.debug(f"Dropping malformed draw row: {row!r}")
        return None

    return DrawEvent(
        numero=numero,
        fecha=fecha,
        horario=horario,
        pais=pais,
        is_test=bool(row.get('is_test', False)),
        id=row.get('id'),
    )


def sort_timeline(events: Iterable[DrawEvent]) -> List[DrawEvent]:
    """Stable ascending order by (date, slot rank)."""
    return sorted(events, key=lambda event: event.sort_key)


def build_timeline(rows: Iterable[Dict[str, Any]], exclude_test: bool = True) -> List[DrawEvent]:
    """Normalize raw rows into the ordered timeline, dropping malformed rows."""
    events = []
    dropped = 0
    for row in rows:
        event = hydrate_draw(row)
        if event is None:
            dropped += 1
            continue
        if exclude_test and event.is_test:
            continue
        events.append(event)

    if dropped:
        logger.debug(f"Timeline built with {len(events)} events, {dropped} rows dropped")
    return sort_timeline(events)

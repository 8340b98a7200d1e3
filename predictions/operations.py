"""Built-in number operations used by game modes."""

from typing import Dict, Any, Callable, List, Optional, Tuple

from utils.helpers import digits, mirror_number

CONVERSION_MAP: Dict[int, int] = {0: 1, 1: 0, 2: 5, 5: 2, 3: 8, 8: 3, 4: 7, 7: 4, 6: 9, 9: 6}
CONVERSION_MAP_NOTE = "Mapa E: 0↔1, 2↔5, 3↔8, 4↔7, 6↔9"


def convert_digit(digit: int) -> int:
    return CONVERSION_MAP[digit]


def convert_both_digits(numero: int) -> int:
    tens, units = digits(numero)
    return convert_digit(tens) * 10 + convert_digit(units)


def simple_conversions(numero: int) -> List[int]:
    """Convert one digit at a time."""
    tens, units = digits(numero)
    return sorted({convert_digit(tens) * 10 + units, tens * 10 + convert_digit(units)})


def composite_conversions(numero: int, include_mirror: bool = True) -> List[int]:
    """Both digits converted, plus mirrors of the converted forms."""
    results = {convert_both_digits(numero)}
    if include_mirror:
        results.add(mirror_number(convert_both_digits(numero)))
        results.update(mirror_number(value) for value in simple_conversions(numero))
    return sorted(results)


def espejo(numero: int, **_) -> List[int]:
    return [mirror_number(numero)]


def suma_digitos(numero: int, **_) -> List[int]:
    tens, units = digits(numero)
    return [tens + units]


def sumar(numero: int, valor: int = 1, **_) -> List[int]:
    return [(numero + int(valor)) % 100]


def restar(numero: int, valor: int = 1, **_) -> List[int]:
    return [(numero - int(valor)) % 100]


def vecinos(numero: int, k: int = 1, **_) -> List[int]:
    k = max(1, int(k))
    return sorted({(numero + step) % 100 for step in range(-k, k + 1) if step != 0})


def conversion(numero: int, variante: str = "doble", **_) -> List[int]:
    if variante == "simple":
        return simple_conversions(numero)
    if variante == "compuesta":
        return composite_conversions(numero)
    return [convert_both_digits(numero)]


OPERATIONS: Dict[str, Callable[..., List[int]]] = {
    'espejo': espejo,
    'suma_digitos': suma_digitos,
    'sumar': sumar,
    'restar': restar,
    'vecinos': vecinos,
    'conversion': conversion,
}

CONVERSION_VARIANTS = ('doble', 'simple', 'compuesta')

# Parameters each operation accepts; every other key is rejected.
OPERATION_PARAMS: Dict[str, Tuple[str, ...]] = {
    'espejo': (),
    'suma_digitos': (),
    'sumar': ('valor',),
    'restar': ('valor',),
    'vecinos': ('k',),
    'conversion': ('variante',),
}


def validate_parameters(nombre: str, parametros: Optional[Dict[str, Any]]):
    """Raise ValueError unless ``parametros`` fits the named operation."""
    if nombre not in OPERATIONS:
        raise ValueError(f"Operación desconocida: {nombre}")
    parametros = parametros or {}
    if not isinstance(parametros, dict):
        raise ValueError("parametros debe ser un objeto")

    allowed = OPERATION_PARAMS[nombre]
    unknown = sorted(set(parametros) - set(allowed))
    if unknown:
        raise ValueError(f"Parámetros no admitidos por {nombre}: {', '.join(unknown)}")

    for key, value in parametros.items():
        if key == 'variante':
            if value not in CONVERSION_VARIANTS:
                raise ValueError(f"variante debe ser una de {', '.join(CONVERSION_VARIANTS)}")
        elif isinstance(value, bool) or not isinstance(value, int):
            raise ValueError(f"{key} debe ser un entero")


def apply_operation(nombre: str, numero: int, parametros: Dict[str, Any] = None) -> List[int]:
    """Candidate outputs of a named operation; unknown names raise ValueError."""
    try:
        operation = OPERATIONS[nombre]
    except KeyError:
        raise ValueError(f"Operación desconocida: {nombre}")
    outputs = operation(numero, **(parametros or {}))
    return [value for value in outputs if 0 <= value <= 99]

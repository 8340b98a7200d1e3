"""Pydantic schemas for API request/response validation."""

from datetime import date, datetime
from typing import List, Dict, Any, Optional

from pydantic import BaseModel, Field, field_validator

from models.domain import EstadoHipotesis, Turno
from models.repositories import RELATION_TYPES
from predictions.operations import OPERATIONS


# Draw schemas
class SorteoInput(BaseModel):
    """Schema for a draw submitted by the user."""
    fecha: date = Field(..., description="Fecha del sorteo")
    horario: Turno = Field(..., description="Turno: 11AM, 3PM o 9PM")
    pais: str = Field(..., min_length=1, max_length=50, description="País del sorteo")
    numero: int = Field(..., ge=0, le=99, description="Número ganador (00-99)")
    is_test: bool = Field(False, description="Sorteo de prueba, excluido del análisis")
    fuente: Optional[str] = Field(None, max_length=100, description="Origen del dato")

    @field_validator('pais')
    @classmethod
    def validate_pais(cls, v):
        v = v.strip()
        if not v:
            raise ValueError('El país no puede estar vacío')
        return v


class SorteoResponse(BaseModel):
    status: str = Field(..., description="inserted, duplicate, updated o dry_run")
    id: Optional[int] = Field(None, description="ID del sorteo")


class ResultadoResponse(BaseModel):
    sorteo: SorteoResponse
    resueltas: int = Field(..., description="Hipótesis resueltas por este resultado")


class ImportRequest(BaseModel):
    """Schema for a bulk import of raw rows."""
    filas: List[Dict[str, Any]] = Field(..., description="Filas crudas {fecha, horario, pais, numero}")
    fuente: Optional[str] = None
    dry_run: bool = False
    force: bool = False


class ImportResponse(BaseModel):
    total_procesados: int
    insertados: int
    duplicados: int
    actualizados: int
    simulados: int
    invalidos: int
    calidad: Dict[str, Any]


# Hypothesis schemas
class HipotesisInput(BaseModel):
    numero: int = Field(..., ge=0, le=99)
    fecha: date
    turno: Optional[Turno] = None
    pais: Optional[str] = None
    notas: Optional[str] = None


class HipotesisUpdate(BaseModel):
    estado: Optional[EstadoHipotesis] = None
    turno: Optional[Turno] = None
    pais: Optional[str] = None
    notas: Optional[str] = None


class ConversionInput(BaseModel):
    """Learned conversion-map rule: one number converts into another."""
    de: int = Field(..., ge=0, le=99)
    a: int = Field(..., ge=0, le=99)
    nota: str = ""


class HipotesisResponse(BaseModel):
    id: Optional[int]
    numero: int
    fecha: date
    estado: str
    turno: Optional[str] = None
    pais: Optional[str] = None


# Analysis schemas
class PrediccionItem(BaseModel):
    numero: int
    score: float = Field(..., ge=0.0, le=1.0)


class PerfilesResponse(BaseModel):
    total_draws: int
    latest_timestamp: Optional[datetime] = None
    predicciones: List[PrediccionItem]
    insights: List[Dict[str, Any]]


class Hallazgo(BaseModel):
    id: str
    titulo: str
    confianza: float = Field(..., ge=0.0, le=1.0)
    resumen: str
    evidencia: List[str] = Field(default_factory=list)
    datos: Dict[str, Any] = Field(default_factory=dict)
    siguiente_fecha_esperada: Optional[str] = None


class PatronesResponse(BaseModel):
    mensaje: str
    recientes: List[Dict[str, Any]]
    stats: Optional[Dict[str, Any]] = None
    ventana: Dict[str, Any]
    hallazgos: List[Hallazgo]


class SeleccionItem(BaseModel):
    numero: int = Field(..., ge=0, le=99)
    total: float = Field(..., ge=0.0, le=1.0)
    percent: float
    components: Dict[str, float]


class Comodin(BaseModel):
    numero: int = Field(..., ge=0, le=99)
    origen: str


class TurnoObjetivo(BaseModel):
    turno: str
    label: str
    registros: int
    fecha: Optional[str] = None


class SeleccionFinal(BaseModel):
    top_picks: List[SeleccionItem]
    secundarios: List[SeleccionItem]
    comodin: Optional[Comodin] = None
    turno_objetivo: TurnoObjetivo


class SeleccionResponse(BaseModel):
    """Schema for the final selection of the next slot."""
    seleccion: SeleccionFinal
    sesgos: Dict[str, List[Dict[str, Any]]]
    ventana: Optional[Dict[str, Any]] = None


# Mode schemas
class EjemploInput(BaseModel):
    original: int = Field(..., ge=0, le=99)
    resultado: int = Field(..., ge=0, le=99)
    nota: Optional[str] = None


class ModoInput(BaseModel):
    """Schema for a user game mode."""
    nombre: str = Field(..., min_length=1, max_length=100)
    tipo: str = Field("ejemplos", max_length=30)
    descripcion: Optional[str] = None
    operacion: Optional[str] = None
    parametros: Dict[str, Any] = Field(default_factory=dict)
    offset: Optional[int] = Field(None, ge=1, le=10)
    ejemplos: List[EjemploInput] = Field(default_factory=list)

    @field_validator('operacion')
    @classmethod
    def validate_operacion(cls, v):
        if v is not None and v not in OPERATIONS:
            raise ValueError(f"Operación desconocida: {v}")
        return v


class ModoUpdate(BaseModel):
    nombre: Optional[str] = Field(None, min_length=1, max_length=100)
    descripcion: Optional[str] = None
    operacion: Optional[str] = None
    parametros: Optional[Dict[str, Any]] = None
    offset: Optional[int] = Field(None, ge=1, le=10)

    @field_validator('operacion')
    @classmethod
    def validate_operacion(cls, v):
        if v is not None and v not in OPERATIONS:
            raise ValueError(f"Operación desconocida: {v}")
        return v


# Trigger schemas
class RelacionInput(BaseModel):
    origen: int = Field(..., ge=0, le=99)
    destino: int = Field(..., ge=0, le=99)
    tipo: str = Field("DISPARA")
    ventana_min: int = Field(0, ge=0)
    ventana_max: int = Field(5, ge=0)
    peso: float = Field(1.0, ge=0.0)
    activa: bool = True
    notas: Optional[str] = None

    @field_validator('tipo')
    @classmethod
    def validate_tipo(cls, v):
        v = v.strip().upper()
        if v not in RELATION_TYPES:
            raise ValueError(f"tipo debe ser uno de {', '.join(RELATION_TYPES)}")
        return v


# Pega-3 schemas
class Pega3Request(BaseModel):
    sorteos: List[Dict[str, Any]] = Field(..., description="Filas {fecha, horario, pais, pares: [a, b, c]}")
    usar_externa: bool = Field(True, description="Cruzar con los sorteos de dos cifras guardados")


# Error schemas
class ErrorResponse(BaseModel):
    """Schema for error responses."""
    detail: str = Field(..., description="Detalle del error")
    status_code: int = Field(..., description="Código de estado HTTP")
    timestamp: datetime = Field(default_factory=datetime.now, description="Timestamp del error")


class CacheResponse(BaseModel):
    message: str
    keys_eliminadas: int
    timestamp: datetime

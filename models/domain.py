"""Domain types shared by the analysis pipeline."""

from dataclasses import dataclass, field, asdict
from datetime import date, datetime, time, timedelta
from enum import Enum
from typing import List, Dict, Any, Optional

from pydantic import BaseModel, ConfigDict, Field

SECONDS_PER_DAY = 86400
SLOT_OFFSET_HOURS = 6
SLOT_OFFSET_SECONDS = SLOT_OFFSET_HOURS * 3600


class Turno(str, Enum):
    """Daily draw slot, ordered by rank."""
    MANANA = "11AM"
    TARDE = "3PM"
    NOCHE = "9PM"

    @property
    def rank(self) -> int:
        return _SLOT_RANKS[self]

    @property
    def label(self) -> str:
        return self.value

    @classmethod
    def from_rank(cls, rank: int) -> "Turno":
        return _SLOTS_BY_RANK[rank]


_SLOT_RANKS = {Turno.MANANA: 0, Turno.TARDE: 1, Turno.NOCHE: 2}
_SLOTS_BY_RANK = {rank: slot for slot, rank in _SLOT_RANKS.items()}


class EstadoHipotesis(str, Enum):
    PENDIENTE = "pendiente"
    CONFIRMADA = "confirmada"
    REFUTADA = "refutada"


@dataclass(frozen=True)
class DrawEvent:
    """One normalized draw: a two-digit number at (fecha, horario, pais)."""
    numero: int
    fecha: date
    horario: Turno
    pais: str
    is_test: bool = False
    id: Optional[int] = None

    @property
    def rank(self) -> int:
        return self.horario.rank

    @property
    def weekday(self) -> int:
        return self.fecha.weekday()

    @property
    def sort_key(self) -> int:
        return self.fecha.toordinal() * SECONDS_PER_DAY + self.rank * SLOT_OFFSET_SECONDS

    @property
    def momento(self) -> datetime:
        return datetime.combine(self.fecha, time()) + timedelta(hours=self.rank * SLOT_OFFSET_HOURS)

    @property
    def fecha_iso(self) -> str:
        return self.fecha.isoformat()

    @property
    def pais_key(self) -> str:
        return self.pais.strip().lower()

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'numero': self.numero,
            'fecha': self.fecha_iso,
            'horario': self.horario.value,
            'pais': self.pais,
            'is_test': self.is_test,
        }


# ----------------------------------------
# Number profiles (persisted in the knowledge cache)
# ----------------------------------------

class GapEntry(BaseModel):
    gap: int
    fecha: date


class GapStats(BaseModel):
    """Running statistics of the day gaps between occurrences."""
    total: int = 0
    count: int = 0
    promedio: Optional[float] = None
    ultimo: Optional[int] = None
    min: Optional[int] = None
    max: Optional[int] = None
    historial: List[GapEntry] = Field(default_factory=list)
    days_since: Optional[float] = None


class Aparicion(BaseModel):
    fecha: date
    horario: Turno
    pais: str


class HypothesisDetail(BaseModel):
    id: Optional[int] = None
    estado: EstadoHipotesis
    fecha: date
    turno: Optional[str] = None


class HypothesisStats(BaseModel):
    confirmadas: int = 0
    refutadas: int = 0
    pendientes: int = 0
    detalles: List[HypothesisDetail] = Field(default_factory=list)


class OutcomeBucket(BaseModel):
    aciertos: int = 0
    total: int = 0

    @property
    def tasa(self) -> float:
        return self.aciertos / self.total if self.total else 0.0


class UltimoResultado(BaseModel):
    estado: EstadoHipotesis
    fecha: date
    pais: Optional[str] = None
    horario: Optional[str] = None


class LearningStats(BaseModel):
    """Outcome log aggregated by country, slot and weekday."""
    total: int = 0
    aciertos: int = 0
    fallos: int = 0
    por_pais: Dict[str, OutcomeBucket] = Field(default_factory=dict)
    por_horario: Dict[str, OutcomeBucket] = Field(default_factory=dict)
    por_dia_semana: Dict[int, OutcomeBucket] = Field(default_factory=dict)
    ultimo_resultado: Optional[UltimoResultado] = None


class NumberProfile(BaseModel):
    """Per-number aggregate statistics."""
    numero: int = Field(..., ge=0, le=99)
    total: int = 0
    por_pais: Dict[str, int] = Field(default_factory=dict)
    por_horario: Dict[str, int] = Field(default_factory=dict)
    por_dia_semana: Dict[int, int] = Field(default_factory=dict)
    por_horario_por_anio: Dict[int, Dict[str, int]] = Field(default_factory=dict)
    total_por_anio: Dict[int, int] = Field(default_factory=dict)
    ultimas: List[Aparicion] = Field(default_factory=list)
    gaps: GapStats = Field(default_factory=GapStats)
    score_recencia: float = 0.0
    score_frecuencia: float = 0.0
    score_hipotesis: float = 0.0
    score_contexto: float = 0.0
    last_seen: Optional[date] = None
    last_seen_horario: Optional[Turno] = None
    hipotesis: HypothesisStats = Field(default_factory=HypothesisStats)
    aprendizaje: LearningStats = Field(default_factory=LearningStats)

    @property
    def clave(self) -> str:
        return f"{self.numero:02d}"


class MemorySnapshot(BaseModel):
    total_draws: int = 0
    latest_timestamp: Optional[datetime] = None
    perfiles: List[NumberProfile] = Field(default_factory=list)


# ----------------------------------------
# Hypotheses
# ----------------------------------------

@dataclass
class Hypothesis:
    numero: int
    fecha: date
    estado: EstadoHipotesis = EstadoHipotesis.PENDIENTE
    turno: Optional[str] = None
    pais: Optional[str] = None
    id: Optional[int] = None


@dataclass
class HypothesisOutcome:
    """Log record of one hypothesis resolved against a real draw."""
    numero: int
    estado: EstadoHipotesis
    fecha_resultado: date
    pais_resultado: Optional[str] = None
    horario_resultado: Optional[str] = None
    hipotesis_id: Optional[int] = None
    numero_resultado: Optional[int] = None
    fecha_hipotesis: Optional[date] = None
    turno_hipotesis: Optional[str] = None


# ----------------------------------------
# Pattern findings and tiers
# ----------------------------------------

@dataclass
class PatternFinding:
    id: str
    titulo: str
    confianza: float
    resumen: str
    evidencia: List[str] = field(default_factory=list)
    datos: Dict[str, Any] = field(default_factory=dict)
    siguiente_fecha_esperada: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class GapInfo:
    mode: Optional[int] = None
    matches: int = 0
    days_since: Optional[float] = None
    is_active: bool = False


@dataclass
class TierCandidate:
    numero: int
    level: str
    score: float
    triggers: List[str] = field(default_factory=list)
    criteria: Dict[str, bool] = field(default_factory=dict)
    frecuencia: float = 0.0
    recencia: float = 0.0
    hipotesis: float = 0.0
    contexto_score: float = 0.0
    turn_ratio: float = 0.0
    dow_ratio: Optional[float] = None
    window_freq: float = 0.0
    window_count: int = 0
    last: Optional[str] = None
    gap: GapInfo = field(default_factory=GapInfo)
    narrativa: Optional[str] = None

    @property
    def clave(self) -> str:
        return f"{self.numero:02d}"

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['clave'] = self.clave
        return data


# ----------------------------------------
# Modes
# ----------------------------------------

@dataclass
class ModeExample:
    original: int
    resultado: int
    nota: Optional[str] = None
    id: Optional[int] = None


@dataclass
class GameMode:
    nombre: str
    tipo: str = "ejemplos"
    descripcion: Optional[str] = None
    operacion: Optional[str] = None
    parametros: Dict[str, Any] = field(default_factory=dict)
    offset: Optional[int] = None
    ejemplos: List[ModeExample] = field(default_factory=list)
    id: Optional[int] = None

    @property
    def clave(self) -> str:
        return str(self.id) if self.id is not None else self.nombre


# ----------------------------------------
# Analysis context
# ----------------------------------------

class AnalysisContext(BaseModel):
    """Explicit knobs of one analysis pass; unknown fields are rejected."""
    model_config = ConfigDict(extra="forbid")

    country: Optional[str] = None
    weekday: Optional[int] = Field(None, ge=0, le=6)
    year: Optional[int] = Field(None, ge=1900, le=2200)
    target_slot: Optional[Turno] = None

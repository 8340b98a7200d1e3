"""SQLAlchemy database models for the draw analysis system."""

from sqlalchemy import (
    Column, Integer, String, Float, Boolean, Date, Text, ForeignKey, DateTime,
    CheckConstraint, UniqueConstraint, Index, JSON
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from config.database import Base


class Sorteo(Base):
    """Historical draw record: one number per (fecha, horario, pais)."""
    __tablename__ = "sorteos"

    id = Column(Integer, primary_key=True, index=True)
    fecha = Column(Date, nullable=False)
    horario = Column(String(8), nullable=False)
    pais = Column(String(50), nullable=False)
    numero = Column(Integer, nullable=False)
    is_test = Column(Boolean, default=False, nullable=False)
    fuente = Column(String(255))
    creado_en = Column(DateTime, default=func.now())

    __table_args__ = (
        CheckConstraint('numero >= 0 AND numero <= 99', name='check_numero_range'),
        UniqueConstraint('fecha', 'pais', 'horario', 'numero', name='unique_sorteo_fecha_pais_horario'),
        Index('idx_sorteos_fecha', 'fecha'),
        Index('idx_sorteos_numero', 'numero'),
        Index('idx_sorteos_fecha_horario', 'fecha', 'horario'),
    )

    def __repr__(self):
        return f"<Sorteo {self.fecha} {self.horario} {self.pais} {self.numero:02d}>"


class Hipotesis(Base):
    """User hypothesis about a number for a date and slot."""
    __tablename__ = "hipotesis"

    id = Column(Integer, primary_key=True, index=True)
    numero = Column(Integer, nullable=False)
    fecha = Column(Date, nullable=False)
    turno = Column(String(8))
    pais = Column(String(50))
    estado = Column(String(20), default="pendiente", nullable=False)
    categoria = Column(String(50))
    simbolo = Column(String(100))
    notas = Column(Text)
    creado_en = Column(DateTime, default=func.now())
    actualizado_en = Column(DateTime, default=func.now(), onupdate=func.now())

    logs = relationship("HipotesisLog", back_populates="hipotesis", cascade="all, delete-orphan")

    __table_args__ = (
        CheckConstraint('numero >= 0 AND numero <= 99', name='check_hipotesis_numero_range'),
        CheckConstraint("estado IN ('pendiente', 'confirmada', 'refutada')", name='check_hipotesis_estado'),
        Index('idx_hipotesis_estado', 'estado'),
    )


class HipotesisLog(Base):
    """Resolution record of a hypothesis against a real draw."""
    __tablename__ = "hipotesis_logs"

    id = Column(Integer, primary_key=True, index=True)
    hipotesis_id = Column(Integer, ForeignKey("hipotesis.id"), nullable=True)
    numero = Column(Integer, nullable=False)
    estado = Column(String(20), nullable=False)
    fecha_resultado = Column(Date, nullable=False)
    pais_resultado = Column(String(50))
    horario_resultado = Column(String(8))
    numero_resultado = Column(Integer)
    fecha_hipotesis = Column(Date)
    turno_hipotesis = Column(String(8))
    creado_en = Column(DateTime, default=func.now())

    hipotesis = relationship("Hipotesis", back_populates="logs")

    __table_args__ = (
        Index('idx_hipotesis_logs_numero', 'numero'),
    )


class Regla(Base):
    """Learned rule, e.g. a conversion 'hypothesis -> real' after a miss."""
    __tablename__ = "reglas"

    id = Column(Integer, primary_key=True, index=True)
    tipo = Column(String(50), nullable=False)
    origen = Column(Integer, nullable=False)
    destino = Column(Integer, nullable=False)
    contexto = Column(JSON)
    creado_en = Column(DateTime, default=func.now())


class Conocimiento(Base):
    """Knowledge cache entry; writers fully replace the entry by key."""
    __tablename__ = "conocimiento"

    id = Column(Integer, primary_key=True, index=True)
    key = Column(String(100), unique=True, nullable=False)
    scope = Column(String(50), nullable=False)
    data = Column(JSON, nullable=False)
    actualizado_en = Column(DateTime, default=func.now(), onupdate=func.now())

    __table_args__ = (
        Index('idx_conocimiento_scope', 'scope'),
    )


class ModoJuego(Base):
    """User-defined transformation rule ("mode")."""
    __tablename__ = "modos_juego"

    id = Column(Integer, primary_key=True, index=True)
    nombre = Column(String(100), nullable=False)
    tipo = Column(String(50), default="ejemplos")
    descripcion = Column(Text)
    operacion = Column(String(50))
    parametros = Column(JSON)
    offset = Column(Integer)
    creado_en = Column(DateTime, default=func.now())

    ejemplos = relationship("EjemploModo", back_populates="modo", cascade="all, delete-orphan")


class EjemploModo(Base):
    """Literal example pair (original -> resultado) of a mode."""
    __tablename__ = "ejemplos_modo"

    id = Column(Integer, primary_key=True, index=True)
    modo_id = Column(Integer, ForeignKey("modos_juego.id"), nullable=False)
    original = Column(Integer, nullable=False)
    resultado = Column(Integer, nullable=False)
    nota = Column(Text)
    creado_en = Column(DateTime, default=func.now())

    modo = relationship("ModoJuego", back_populates="ejemplos")

    __table_args__ = (
        CheckConstraint('original >= 0 AND original <= 99', name='check_ejemplo_original_range'),
        CheckConstraint('resultado >= 0 AND resultado <= 99', name='check_ejemplo_resultado_range'),
    )


class RelacionDisparo(Base):
    """Trigger relation origin -> target within a window of days."""
    __tablename__ = "relaciones_disparo"

    id = Column(Integer, primary_key=True, index=True)
    origen = Column(Integer, nullable=False)
    destino = Column(Integer, nullable=False)
    tipo = Column(String(20), default="DISPARA", nullable=False)
    ventana_min = Column(Integer, default=0, nullable=False)
    ventana_max = Column(Integer, default=7, nullable=False)
    peso = Column(Float, default=1.0)
    activa = Column(Boolean, default=True)
    notas = Column(Text)
    creado_en = Column(DateTime, default=func.now())

    __table_args__ = (
        CheckConstraint("tipo IN ('DISPARA', 'AVISA', 'REFUERZA')", name='check_relacion_tipo'),
        CheckConstraint('ventana_min >= 0 AND ventana_max >= ventana_min', name='check_relacion_ventana'),
    )

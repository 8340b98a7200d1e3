"""Models package: SQLAlchemy tables, domain types and repositories."""

from .database_models import (
    Sorteo,
    Hipotesis,
    HipotesisLog,
    Regla,
    Conocimiento,
    ModoJuego,
    EjemploModo,
    RelacionDisparo
)

from .domain import (
    Turno,
    EstadoHipotesis,
    DrawEvent,
    NumberProfile,
    MemorySnapshot,
    Hypothesis,
    HypothesisOutcome,
    PatternFinding,
    TierCandidate,
    GameMode,
    ModeExample,
    AnalysisContext
)

__all__ = [
    # Database models
    'Sorteo',
    'Hipotesis',
    'HipotesisLog',
    'Regla',
    'Conocimiento',
    'ModoJuego',
    'EjemploModo',
    'RelacionDisparo',

    # Domain types
    'Turno',
    'EstadoHipotesis',
    'DrawEvent',
    'NumberProfile',
    'MemorySnapshot',
    'Hypothesis',
    'HypothesisOutcome',
    'PatternFinding',
    'TierCandidate',
    'GameMode',
    'ModeExample',
    'AnalysisContext'
]

"""Storage collaborators over the SQLAlchemy models.

Every repository takes a ``DatabaseManager`` so tests can hand in an
in-memory SQLite manager. Store failures surface as ``DatabaseError``.
"""

import logging
from typing import List, Dict, Any, Optional, Iterable, Tuple

from sqlalchemy import select, delete, func

from config.database import DatabaseManager
from models.database_models import (
    Sorteo, Hipotesis, HipotesisLog, Regla, Conocimiento,
    ModoJuego, EjemploModo, RelacionDisparo
)
from models.domain import (
    DrawEvent, Hypothesis, HypothesisOutcome, EstadoHipotesis,
    GameMode, ModeExample
)
from predictions.operations import validate_parameters

logger = logging.getLogger(__name__)

RELATION_TYPES = ("DISPARA", "AVISA", "REFUERZA")


class RuleValidationError(ValueError):
    """User-supplied rule, mode or relation is invalid."""
    pass


def _check_number(value: Any, field_name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or not 0 <= value <= 99:
        raise RuleValidationError(f"{field_name} debe ser un entero entre 0 y 99")
    return value


class DrawRepository:
    """Draw records with dedup on (fecha, pais, horario, numero)."""

    def __init__(self, db: DatabaseManager):
        self.db = db

    def list_draws(self, exclude_test: bool = True) -> List[Dict[str, Any]]:
        with self.db.session() as session:
            query = select(Sorteo).order_by(Sorteo.fecha, Sorteo.id)
            if exclude_test:
                query = query.where(Sorteo.is_test.is_(False))
            return [
                {
                    'id': row.id,
                    'fecha': row.fecha,
                    'horario': row.horario,
                    'pais': row.pais,
                    'numero': row.numero,
                    'is_test': row.is_test,
                }
                for row in session.scalars(query)
            ]

    def save_draw(self, draw: DrawEvent, source: Optional[str] = None,
                  dry_run: bool = False, force: bool = False) -> Dict[str, Any]:
        """Insert a draw unless an identical one exists.

        ``dry_run`` only reports what would happen; ``force`` refreshes the
        source and test flag of an existing duplicate.
        """
        with self.db.session() as session:
            existing = session.scalars(
                select(Sorteo).where(
                    Sorteo.fecha == draw.fecha,
                    Sorteo.pais == draw.pais,
                    Sorteo.horario == draw.horario.value,
                    Sorteo.numero == draw.numero,
                )
            ).first()

            if existing is not None:
                if force and not dry_run:
                    existing.fuente = source or existing.fuente
                    existing.is_test = draw.is_test
                    return {'status': 'updated', 'id': existing.id}
                return {'status': 'duplicate', 'id': existing.id}

            if dry_run:
                return {'status': 'dry_run', 'id': None}

            row = Sorteo(
                fecha=draw.fecha,
                horario=draw.horario.value,
                pais=draw.pais,
                numero=draw.numero,
                is_test=draw.is_test,
                fuente=source,
            )
            session.add(row)
            session.flush()
            logger.info(f"Saved draw {draw.fecha_iso} {draw.horario.value} {draw.pais} {draw.numero:02d}")
            return {'status': 'inserted', 'id': row.id}

    def delete_draw(self, draw_id: int) -> bool:
        with self.db.session() as session:
            result = session.execute(delete(Sorteo).where(Sorteo.id == draw_id))
            return result.rowcount > 0

    def find_duplicates(self) -> List[Dict[str, Any]]:
        """Slots holding more than one number for the same country and date."""
        with self.db.session() as session:
            rows = session.execute(
                select(Sorteo.fecha, Sorteo.pais, Sorteo.horario, func.count(Sorteo.id))
                .group_by(Sorteo.fecha, Sorteo.pais, Sorteo.horario)
                .having(func.count(Sorteo.id) > 1)
            ).all()
            return [
                {'fecha': fecha, 'pais': pais, 'horario': horario, 'registros': count}
                for fecha, pais, horario, count in rows
            ]


class HypothesisRepository:
    """Hypotheses, their outcome log and learned rules."""

    def __init__(self, db: DatabaseManager):
        self.db = db

    @staticmethod
    def _to_domain(row: Hipotesis) -> Hypothesis:
        return Hypothesis(
            id=row.id,
            numero=row.numero,
            fecha=row.fecha,
            estado=EstadoHipotesis(row.estado),
            turno=row.turno,
            pais=row.pais,
        )

    def create(self, hypothesis: Hypothesis, notas: Optional[str] = None) -> Hypothesis:
        _check_number(hypothesis.numero, "numero")
        with self.db.session() as session:
            row = Hipotesis(
                numero=hypothesis.numero,
                fecha=hypothesis.fecha,
                turno=hypothesis.turno,
                pais=hypothesis.pais,
                estado=hypothesis.estado.value,
                notas=notas,
            )
            session.add(row)
            session.flush()
            return self._to_domain(row)

    def update(self, hypothesis_id: int, **changes) -> Optional[Hypothesis]:
        with self.db.session() as session:
            row = session.get(Hipotesis, hypothesis_id)
            if row is None:
                return None
            for key, value in changes.items():
                if key == 'estado':
                    value = EstadoHipotesis(value).value
                if key == 'numero':
                    _check_number(value, "numero")
                setattr(row, key, value)
            session.flush()
            return self._to_domain(row)

    def list_hypotheses(self, estado: Optional[EstadoHipotesis] = None) -> List[Hypothesis]:
        with self.db.session() as session:
            query = select(Hipotesis).order_by(Hipotesis.fecha, Hipotesis.id)
            if estado is not None:
                query = query.where(Hipotesis.estado == EstadoHipotesis(estado).value)
            return [self._to_domain(row) for row in session.scalars(query)]

    def log_outcomes(self, outcomes: Iterable[HypothesisOutcome]) -> int:
        rows = [
            HipotesisLog(
                hipotesis_id=o.hipotesis_id,
                numero=o.numero,
                estado=o.estado.value,
                fecha_resultado=o.fecha_resultado,
                pais_resultado=o.pais_resultado,
                horario_resultado=o.horario_resultado,
                numero_resultado=o.numero_resultado,
                fecha_hipotesis=o.fecha_hipotesis,
                turno_hipotesis=o.turno_hipotesis,
            )
            for o in outcomes
        ]
        with self.db.session() as session:
            session.add_all(rows)
        return len(rows)

    def list_logs(self) -> List[HypothesisOutcome]:
        with self.db.session() as session:
            query = select(HipotesisLog).order_by(HipotesisLog.fecha_resultado, HipotesisLog.id)
            return [
                HypothesisOutcome(
                    hipotesis_id=row.hipotesis_id,
                    numero=row.numero,
                    estado=EstadoHipotesis(row.estado),
                    fecha_resultado=row.fecha_resultado,
                    pais_resultado=row.pais_resultado,
                    horario_resultado=row.horario_resultado,
                    numero_resultado=row.numero_resultado,
                    fecha_hipotesis=row.fecha_hipotesis,
                    turno_hipotesis=row.turno_hipotesis,
                )
                for row in session.scalars(query)
            ]

    def add_rule(self, tipo: str, origen: int, destino: int,
                 contexto: Optional[Dict[str, Any]] = None) -> int:
        _check_number(origen, "origen")
        _check_number(destino, "destino")
        with self.db.session() as session:
            row = Regla(tipo=tipo, origen=origen, destino=destino, contexto=contexto or {})
            session.add(row)
            session.flush()
            return row.id

    def list_rules(self, tipo: Optional[str] = None) -> List[Dict[str, Any]]:
        with self.db.session() as session:
            query = select(Regla).order_by(Regla.id)
            if tipo:
                query = query.where(Regla.tipo == tipo)
            return [
                {'id': r.id, 'tipo': r.tipo, 'origen': r.origen, 'destino': r.destino, 'contexto': r.contexto}
                for r in session.scalars(query)
            ]


class KnowledgeRepository:
    """Key/value knowledge cache grouped by scope."""

    def __init__(self, db: DatabaseManager):
        self.db = db

    def save_entries(self, entries: Iterable[Tuple[str, str, Dict[str, Any]]]) -> int:
        """Upsert entries; each stored value is fully replaced."""
        count = 0
        with self.db.session() as session:
            for key, scope, data in entries:
                row = session.scalars(select(Conocimiento).where(Conocimiento.key == key)).first()
                if row is None:
                    session.add(Conocimiento(key=key, scope=scope, data=data))
                else:
                    row.scope = scope
                    row.data = data
                count += 1
        return count

    def get(self, key: str) -> Optional[Dict[str, Any]]:
        with self.db.session() as session:
            row = session.scalars(select(Conocimiento).where(Conocimiento.key == key)).first()
            return dict(row.data) if row is not None else None

    def list_by_scope(self, scope: str) -> Dict[str, Dict[str, Any]]:
        with self.db.session() as session:
            rows = session.scalars(select(Conocimiento).where(Conocimiento.scope == scope))
            return {row.key: dict(row.data) for row in rows}

    def clear_scope(self, scope: str) -> int:
        with self.db.session() as session:
            result = session.execute(delete(Conocimiento).where(Conocimiento.scope == scope))
            return result.rowcount or 0


class ModeRepository:
    """User-defined modes and their example pairs."""

    def __init__(self, db: DatabaseManager):
        self.db = db

    @staticmethod
    def validate(mode: GameMode):
        if not mode.nombre or not mode.nombre.strip():
            raise RuleValidationError("El modo requiere un nombre")
        if mode.offset is not None and (not isinstance(mode.offset, int) or mode.offset < 1):
            raise RuleValidationError("offset debe ser un entero positivo")
        if mode.operacion:
            try:
                validate_parameters(mode.operacion, mode.parametros)
            except ValueError as e:
                raise RuleValidationError(str(e))
        elif mode.parametros:
            raise RuleValidationError("parametros requiere una operación")
        for ejemplo in mode.ejemplos:
            _check_number(ejemplo.original, "original")
            _check_number(ejemplo.resultado, "resultado")

    @staticmethod
    def _to_domain(row: ModoJuego) -> GameMode:
        return GameMode(
            id=row.id,
            nombre=row.nombre,
            tipo=row.tipo or "ejemplos",
            descripcion=row.descripcion,
            operacion=row.operacion,
            parametros=dict(row.parametros or {}),
            offset=row.offset,
            ejemplos=[
                ModeExample(id=e.id, original=e.original, resultado=e.resultado, nota=e.nota)
                for e in sorted(row.ejemplos, key=lambda e: e.id)
            ],
        )

    def create_mode(self, mode: GameMode) -> GameMode:
        self.validate(mode)
        with self.db.session() as session:
            row = ModoJuego(
                nombre=mode.nombre.strip(),
                tipo=mode.tipo,
                descripcion=mode.descripcion,
                operacion=mode.operacion,
                parametros=mode.parametros,
                offset=mode.offset,
            )
            row.ejemplos = [
                EjemploModo(original=e.original, resultado=e.resultado, nota=e.nota)
                for e in mode.ejemplos
            ]
            session.add(row)
            session.flush()
            return self._to_domain(row)

    def update_mode(self, mode_id: int, **changes) -> Optional[GameMode]:
        with self.db.session() as session:
            row = session.get(ModoJuego, mode_id)
            if row is None:
                return None
            for key, value in changes.items():
                setattr(row, key, value)
            self.validate(self._to_domain(row))
            session.flush()
            return self._to_domain(row)

    def delete_mode(self, mode_id: int) -> bool:
        with self.db.session() as session:
            row = session.get(ModoJuego, mode_id)
            if row is None:
                return False
            session.delete(row)
            return True

    def add_example(self, mode_id: int, example: ModeExample) -> ModeExample:
        _check_number(example.original, "original")
        _check_number(example.resultado, "resultado")
        with self.db.session() as session:
            if session.get(ModoJuego, mode_id) is None:
                raise RuleValidationError(f"Modo {mode_id} no existe")
            row = EjemploModo(modo_id=mode_id, original=example.original,
                              resultado=example.resultado, nota=example.nota)
            session.add(row)
            session.flush()
            return ModeExample(id=row.id, original=row.original, resultado=row.resultado, nota=row.nota)

    def list_modes_with_examples(self) -> List[GameMode]:
        with self.db.session() as session:
            rows = session.scalars(select(ModoJuego).order_by(ModoJuego.id))
            return [self._to_domain(row) for row in rows]


class TriggerRepository:
    """Trigger relations origin -> target."""

    def __init__(self, db: DatabaseManager):
        self.db = db

    @staticmethod
    def validate(relacion: Dict[str, Any]):
        _check_number(relacion.get('origen'), "origen")
        _check_number(relacion.get('destino'), "destino")
        tipo = relacion.get('tipo', 'DISPARA')
        if tipo not in RELATION_TYPES:
            raise RuleValidationError(f"tipo debe ser uno de {', '.join(RELATION_TYPES)}")
        vmin = relacion.get('ventana_min', 0)
        vmax = relacion.get('ventana_max', 7)
        if not isinstance(vmin, int) or not isinstance(vmax, int) or vmin < 0 or vmax < vmin:
            raise RuleValidationError("La ventana debe cumplir 0 <= ventana_min <= ventana_max")

    @staticmethod
    def _to_dict(row: RelacionDisparo) -> Dict[str, Any]:
        return {
            'id': row.id,
            'origen': row.origen,
            'destino': row.destino,
            'tipo': row.tipo,
            'ventana_min': row.ventana_min,
            'ventana_max': row.ventana_max,
            'peso': row.peso,
            'activa': row.activa,
            'notas': row.notas,
        }

    def create_relation(self, relacion: Dict[str, Any]) -> Dict[str, Any]:
        self.validate(relacion)
        with self.db.session() as session:
            row = RelacionDisparo(
                origen=relacion['origen'],
                destino=relacion['destino'],
                tipo=relacion.get('tipo', 'DISPARA'),
                ventana_min=relacion.get('ventana_min', 0),
                ventana_max=relacion.get('ventana_max', 7),
                peso=relacion.get('peso', 1.0),
                activa=relacion.get('activa', True),
                notas=relacion.get('notas'),
            )
            session.add(row)
            session.flush()
            return self._to_dict(row)

    def list_relations(self, only_active: bool = True) -> List[Dict[str, Any]]:
        with self.db.session() as session:
            query = select(RelacionDisparo).order_by(RelacionDisparo.id)
            if only_active:
                query = query.where(RelacionDisparo.activa.is_(True))
            return [self._to_dict(row) for row in session.scalars(query)]

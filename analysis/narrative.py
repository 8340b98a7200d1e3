"""Hypothesis narrative: create hypotheses and resolve them against real draws."""

import logging
from datetime import date
from typing import List, Optional, Dict, Any

from models.domain import DrawEvent, Hypothesis, HypothesisOutcome, EstadoHipotesis
from models.repositories import HypothesisRepository

logger = logging.getLogger(__name__)


class NarrativeService:
    """Hypothesis lifecycle: pendiente -> confirmada | refutada."""

    def __init__(self, hypotheses: HypothesisRepository):
        self.hypotheses = hypotheses

    def crear_hipotesis(self, numero: int, fecha: date, turno: Optional[str] = None,
                        pais: Optional[str] = None, notas: Optional[str] = None) -> Hypothesis:
        hypothesis = self.hypotheses.create(
            Hypothesis(numero=numero, fecha=fecha, turno=turno, pais=pais),
            notas=notas,
        )
        logger.info(f"Hypothesis {hypothesis.id} created for {numero:02d} on {fecha.isoformat()}")
        return hypothesis

    def actualizar_hipotesis(self, hypothesis_id: int, **changes) -> Optional[Hypothesis]:
        return self.hypotheses.update(hypothesis_id, **changes)

    def listar_hipotesis(self, estado: Optional[EstadoHipotesis] = None) -> List[Hypothesis]:
        return self.hypotheses.list_hypotheses(estado)

    def registrar_resultado(self, resultado: DrawEvent) -> List[HypothesisOutcome]:
        """Resolve every pending hypothesis against an actual draw.

        Misses also record a ``conversion`` rule from the hypothesized number to
        the real one.
        """
        outcomes = []
        for hyp in self.hypotheses.list_hypotheses(EstadoHipotesis.PENDIENTE):
            estado = EstadoHipotesis.CONFIRMADA if hyp.numero == resultado.numero else EstadoHipotesis.REFUTADA
            self.hypotheses.update(hyp.id, estado=estado)

            if estado == EstadoHipotesis.REFUTADA:
                self.hypotheses.add_rule(
                    "conversion", hyp.numero, resultado.numero,
                    {'fecha': resultado.fecha_iso, 'pais': resultado.pais, 'horario': resultado.horario.value}
                )

            outcomes.append(HypothesisOutcome(
                hipotesis_id=hyp.id,
                numero=hyp.numero,
                estado=estado,
                fecha_resultado=resultado.fecha,
                pais_resultado=resultado.pais,
                horario_resultado=resultado.horario.value,
                numero_resultado=resultado.numero,
                fecha_hipotesis=hyp.fecha,
                turno_hipotesis=hyp.turno,
            ))

        self.hypotheses.log_outcomes(outcomes)
        confirmadas = sum(1 for o in outcomes if o.estado == EstadoHipotesis.CONFIRMADA)
        logger.info(
            f"Result {resultado.numero:02d} resolved {len(outcomes)} hypotheses "
            f"({confirmadas} confirmed)"
        )
        return outcomes

    def registrar_conversion_mapa(self, de: int, a: int, nota: str = "") -> Dict[str, Any]:
        rule_id = self.hypotheses.add_rule("conversion_mapa", de, a, {'nota': nota})
        return {'id': rule_id, 'descripcion': f"{de:02d} → {a:02d} (mapa conversión)"}

"""Flujos de asignación y escalamiento expresados como transiciones guardadas."""

from dataclasses import dataclass
from typing import Any, Optional

import structlog

from aforo.application import authorization
from aforo.application.dtos import ChangeResult
from aforo.application.guard import PendingWrite, TransitionGuard
from aforo.application.records import IncidentReport, parse_record
from aforo.domain.entities import DigitacionStatus, ReviewDecision, RevisorStatus
from aforo.domain.exceptions import PreconditionError, ValidationError
from aforo.domain.value_objects import Actor, LastUpdate

logger = structlog.get_logger()

INCIDENT_REPORT_FIELD = "incident_report"
STATUS_CHANGE_FIELD = "status_change"
REVALIDATION_COMMENT = "El aforador/admin solicita revalidación del caso."
DIGITIZATION_COMMENT = "Caso aprobado y asignado a digitación."

_DECISIONS = (ReviewDecision.APROBADA, ReviewDecision.RECHAZADA)


@dataclass(frozen=True)
class EscalationFlows:
    guard: TransitionGuard

    # --- Asignaciones ---

    def validate_pattern(self, case_id: str, actor: Actor) -> ChangeResult:
        return self.guard.apply_field_change(case_id, "isPatternValidated", True, actor)

    def reset_pattern_validation(
        self, case_id: str, actor: Actor, comment: Optional[str] = None
    ) -> ChangeResult:
        return self.guard.apply_field_change(case_id, "isPatternValidated", False, actor, comment)

    def assign_aforador(self, case_id: str, aforador: str, actor: Actor) -> ChangeResult:
        return self.guard.apply_field_change(case_id, "aforador", aforador, actor)

    def assign_revisor(self, case_id: str, revisor: str, actor: Actor) -> ChangeResult:
        return self.guard.apply_field_change(case_id, "revisorAsignado", revisor, actor)

    def assign_digitador(self, case_id: str, digitador: str, actor: Actor) -> ChangeResult:
        return self.guard.apply_field_change(case_id, "digitadorAsignado", digitador, actor)

    # --- Revisión y digitación ---

    def request_revalidation(self, case_id: str, actor: Actor) -> ChangeResult:
        return self.guard.apply_field_change(
            case_id,
            "revisorStatus",
            RevisorStatus.REVALIDACION_SOLICITADA,
            actor,
            REVALIDATION_COMMENT,
            label=STATUS_CHANGE_FIELD,
        )

    def assign_to_digitization(self, case_id: str, actor: Actor) -> ChangeResult:
        return self.guard.apply_field_change(
            case_id,
            "digitacionStatus",
            DigitacionStatus.PENDIENTE_DE_DIGITACION,
            actor,
            DIGITIZATION_COMMENT,
        )

    def complete_digitization(self, case_id: str, declaracion: str, actor: Actor) -> ChangeResult:
        """Registra la declaración aduanera y cierra el trámite en un solo lote."""
        return self.guard.apply_field_changes(
            case_id,
            [
                ("declaracionAduanera", declaracion),
                ("digitacionStatus", DigitacionStatus.TRAMITE_COMPLETO),
            ],
            actor,
        )

    # --- Incidencias ---

    def report_incident(
        self, case_id: str, report: IncidentReport | dict[str, Any], actor: Actor
    ) -> ChangeResult:
        """
        Abre la vía de incidencia (y la de duda de valor si corresponde).

        Una sola incidencia por caso: si ya hay una reportada, se rechaza.
        Escribe una única entrada ``incident_report`` con el motivo como comentario.
        """
        report = parse_record(IncidentReport, report)
        case = self.guard.repository.load(case_id)
        try:
            authorization.require(actor, authorization.Action.REPORT_INCIDENT, case)
            if case.incident_reported:
                raise PreconditionError("El caso ya tiene una incidencia reportada.")
        except PreconditionError as e:
            logger.warning(
                "field_change_rejected",
                case_id=case.case_id,
                field=INCIDENT_REPORT_FIELD,
                actor=actor.display_name,
                role=actor.role.value,
                reason=str(e),
            )
            raise

        at = self.guard.clock()
        stamp = LastUpdate(by=actor.display_name, at=at)
        pending = PendingWrite(case=case)
        pending.set("incidentReported", True)
        pending.set("incidentType", report.incident_type)
        pending.set("incidentStatus", ReviewDecision.PENDIENTE)
        pending.stamp("incidentStatus", stamp)
        pending.set("incidentReportedBy", actor.display_name)
        pending.set("incidentReportedAt", at)
        pending.set("motivoRectificacion", report.motivo_rectificacion)
        pending.set("reciboDeCajaPagoInicial", report.recibo_de_caja_pago_inicial)
        pending.set("pagoInicialRealizado", report.pago_inicial_realizado)
        pending.set("noLiquidacion", report.no_liquidacion)
        pending.set("observaciones", report.observaciones)
        if report.has_value_doubt:
            pending.set("hasValueDoubt", True)
            pending.set("valueDoubtStatus", ReviewDecision.PENDIENTE)
            pending.stamp("valueDoubtStatus", stamp)
        pending.log(
            INCIDENT_REPORT_FIELD,
            False,
            True,
            report.motivo_rectificacion,
        )

        result = self.guard.commit(pending, actor, at)
        logger.info(
            "incident_reported",
            case_id=case.case_id,
            incident_type=report.incident_type,
            value_doubt=report.has_value_doubt,
            reported_by=actor.display_name,
        )
        return result

    def resolve_incident(
        self, case_id: str, decision: ReviewDecision | str, actor: Actor
    ) -> ChangeResult:
        return self.guard.apply_field_change(
            case_id, "incidentStatus", self._decision(decision, "incidentStatus"), actor
        )

    def resolve_value_doubt(
        self, case_id: str, decision: ReviewDecision | str, actor: Actor
    ) -> ChangeResult:
        return self.guard.apply_field_change(
            case_id, "valueDoubtStatus", self._decision(decision, "valueDoubtStatus"), actor
        )

    @staticmethod
    def _decision(decision: ReviewDecision | str, field_name: str) -> ReviewDecision:
        try:
            value = ReviewDecision(decision.strip() if isinstance(decision, str) else decision)
        except ValueError:
            raise ValidationError(field_name, f"decisión desconocida: {decision}") from None
        if value not in _DECISIONS:
            raise ValidationError(field_name, "la resolución debe ser Aprobada o Rechazada")
        return value

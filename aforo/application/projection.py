"""Proyección de estado (solo lectura): indicadores, historial y colas de trabajo."""

from __future__ import annotations

from typing import Optional

from aforo.application.case_repository import CaseRepository, normalize_ne
from aforo.application.dtos import StatusBadges
from aforo.application.records import PERMIT_DELIVERED, ExamenPrevio, PaymentRequest, Worksheet
from aforo.domain.entities import (
    RECTIFICACION,
    AforoCase,
    AuditEntry,
    DigitacionStatus,
    ReviewDecision,
)

DIGITIZATION_QUEUE = (
    DigitacionStatus.PENDIENTE_DE_DIGITACION,
    DigitacionStatus.EN_PROCESO,
    DigitacionStatus.ALMACENADO,
)


def compute_badges(
    case: AforoCase,
    worksheet: Optional[Worksheet],
    payments: list[PaymentRequest],
    previous_exam: Optional[ExamenPrevio],
) -> StatusBadges:
    """Cada vía es None si no aplica, True si está completa y False si está pendiente."""
    permits = worksheet.required_permits if worksheet else []
    has_previo = bool(case.worksheet_id)

    return StatusBadges(
        permits=all(p.status == PERMIT_DELIVERED for p in permits) if permits else None,
        payments=all(p.is_paid for p in payments) if payments else None,
        incident=(
            case.incident_status is ReviewDecision.APROBADA
            if case.incident_type == RECTIFICACION
            else None
        ),
        value_doubt=(not case.value_doubt_status.is_initial) if case.has_value_doubt else None,
        previo=(previous_exam is not None and previous_exam.is_complete) if has_previo else None,
    )


class CaseStatusQuery:
    """Consultas de lectura. Nunca escribe: todo se recalcula desde los documentos."""

    def __init__(self, repository: CaseRepository) -> None:
        self._repository = repository

    def badges(self, case_id: str) -> StatusBadges:
        case = self._repository.load(case_id)
        worksheet = (
            self._repository.load_worksheet(case.worksheet_id) if case.worksheet_id else None
        )
        previous_exam = (
            self._repository.previous_exam(case.worksheet_id) if case.worksheet_id else None
        )
        payments = self._repository.payment_requests(case.ne)
        return compute_badges(case, worksheet, payments, previous_exam)

    def history(self, case_id: str) -> list[AuditEntry]:
        self._repository.load(case_id)
        return self._repository.history(normalize_ne(case_id))

    def pending_incidents(self, revisor: Optional[str] = None) -> list[AforoCase]:
        """Casos con incidencia reportada sin resolver, opcionalmente de un revisor."""
        cases = self._repository.query_cases([("incidentReported", "==", True)])
        return [
            case
            for case in cases
            if case.incident_status.is_initial
            and (revisor is None or case.revisor_asignado == revisor)
        ]

    def digitization_queue(self) -> list[AforoCase]:
        return self._repository.query_cases(
            [("digitacionStatus", "in", [status.value for status in DIGITIZATION_QUEUE])]
        )

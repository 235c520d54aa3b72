"""
Guard de transiciones: punto único de entrada para modificar campos de un caso.

Orden de evaluación de ``apply_field_change``:
    1. Validación del campo y del valor (ValidationError).
    2. Lectura fresca del caso (NotFoundError).
    3. Si el valor ya es el actual, no-op sin escritura.
    4. Permiso del rol para la acción (AuthorizationError).
    5. Precondiciones del campo (PreconditionError).
    6. Un solo lote: mutación del caso + sellos de procedencia + bitácora.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, Callable, Optional

import structlog

from aforo.application import authorization
from aforo.application.audit_log import AuditLogWriter
from aforo.application.case_repository import CaseRepository
from aforo.application.dtos import ChangeResult, FieldChange
from aforo.application.ports.document_store import DocumentStore
from aforo.application.transformers import encode_value, last_update_key
from aforo.domain.entities import (
    AforoCase,
    DigitacionStatus,
    PreliquidationStatus,
    RevisorStatus,
)
from aforo.domain.exceptions import PreconditionError, ValidationError, WriteError
from aforo.domain.fields import REASON_REQUIRED, coerce, editable_spec, get_spec, read_field
from aforo.domain.value_objects import Actor, LastUpdate

logger = structlog.get_logger()

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(UTC)


@dataclass
class PendingWrite:
    """Acumula los cambios de un lote sobre una copia del caso."""

    case: AforoCase
    updates: dict[str, Any] = field(default_factory=dict)
    changes: list[FieldChange] = field(default_factory=list)

    def set(self, field_name: str, value: Any) -> Any:
        """Asigna el campo en la copia y en el documento. Retorna el valor anterior."""
        spec = get_spec(field_name)
        old = getattr(self.case, spec.attr)
        self.case = self.case.with_changes(**{spec.attr: value})
        self.updates[field_name] = encode_value(value)
        return old

    def stamp(self, field_name: str, stamp: LastUpdate) -> None:
        self.case = self.case.with_changes(provenance={**self.case.provenance, field_name: stamp})
        self.updates[last_update_key(field_name)] = stamp.to_dict()

    def log(
        self, field_name: str, old_value: Any, new_value: Any, comment: Optional[str] = None
    ) -> None:
        self.changes.append(
            FieldChange(
                field=field_name,
                old_value=encode_value(old_value),
                new_value=encode_value(new_value),
                comment=comment,
            )
        )


class TransitionGuard:
    def __init__(
        self,
        store: DocumentStore,
        repository: CaseRepository | None = None,
        audit: AuditLogWriter | None = None,
        clock: Clock = utc_now,
    ) -> None:
        self.store = store
        self.repository = repository or CaseRepository(store)
        self.audit = audit or AuditLogWriter(self.repository)
        self.clock = clock

    def apply_field_change(
        self,
        case_id: str,
        field_name: str,
        new_value: Any,
        actor: Actor,
        comment: Optional[str] = None,
        *,
        label: Optional[str] = None,
    ) -> ChangeResult:
        return self.apply_field_changes(
            case_id, [(field_name, new_value)], actor, comment, label=label
        )

    def apply_field_changes(
        self,
        case_id: str,
        targets: list[tuple[str, Any]],
        actor: Actor,
        comment: Optional[str] = None,
        *,
        label: Optional[str] = None,
    ) -> ChangeResult:
        """
        Aplica varios cambios guardados en un único lote, en orden.

        Cada precondición se evalúa contra el caso con los cambios anteriores
        del mismo lote ya aplicados. Si alguno falla no se escribe nada.
        ``label`` reemplaza el nombre de campo en la entrada de bitácora
        (p.ej. 'status_change' para eventos con comentario propio).
        """
        coerced = [(name, coerce(editable_spec(name), value)) for name, value in targets]
        case = self.repository.load(case_id)
        at = self.clock()
        pending = PendingWrite(case=case)

        for field_name, value in coerced:
            current = read_field(pending.case, field_name)
            if current == value:
                logger.info("field_change_noop", case_id=case.case_id, field=field_name)
                continue
            try:
                reason = self._reason_for(field_name, value, comment)
                authorization.require(
                    actor, authorization.action_for(field_name, value, pending.case), pending.case
                )
                check_preconditions(pending.case, field_name, value)
            except (PreconditionError, ValidationError) as e:
                logger.warning(
                    "field_change_rejected",
                    case_id=case.case_id,
                    field=field_name,
                    actor=actor.display_name,
                    role=actor.role.value,
                    reason=str(e),
                )
                raise
            self._plan(pending, field_name, value, actor, at, comment, reason, label)

        if not pending.changes:
            return ChangeResult(case_id=case.case_id, applied=False, case=case)
        return self.commit(pending, actor, at)

    def commit(self, pending: PendingWrite, actor: Actor, at: datetime) -> ChangeResult:
        """Confirma mutación y bitácora en un solo lote. Lanza WriteError sin estado parcial."""
        case_id = pending.case.case_id
        batch = self.store.begin_batch()
        batch.upsert(self.repository.case_path(case_id), pending.updates)
        entries = self.audit.append(batch, case_id, pending.changes, actor, at)
        try:
            batch.commit()
        except WriteError as e:
            logger.error(
                "batch_commit_failed",
                case_id=case_id,
                fields=[c.field for c in pending.changes],
                error=e.reason,
            )
            raise

        for change in pending.changes:
            logger.info(
                "field_change_applied",
                case_id=case_id,
                field=change.field,
                old_value=change.old_value,
                new_value=change.new_value,
                actor=actor.display_name,
            )
        logger.info("batch_committed", case_id=case_id, entries=len(entries))
        return ChangeResult(
            case_id=case_id,
            applied=True,
            case=pending.case,
            entries=entries,
            committed_at=at,
        )

    @staticmethod
    def _reason_for(field_name: str, value: Any, comment: Optional[str]) -> Optional[str]:
        if (field_name, value) not in REASON_REQUIRED:
            return None
        reason = (comment or "").strip()
        if not reason:
            raise ValidationError(field_name, f"el estado '{value.value}' requiere un motivo")
        return reason

    @staticmethod
    def _plan(
        pending: PendingWrite,
        field_name: str,
        value: Any,
        actor: Actor,
        at: datetime,
        comment: Optional[str],
        reason: Optional[str],
        label: Optional[str] = None,
    ) -> None:
        spec = get_spec(field_name)
        stamp = LastUpdate(by=actor.display_name, at=at)

        old = pending.set(field_name, value)
        pending.log(label or field_name, old, value, None if reason else comment)
        if spec.provenance:
            pending.stamp(field_name, stamp)

        if reason is not None:
            # El motivo vive en su propio campo, editable fuera del historial
            reason_field = REASON_REQUIRED[(field_name, value)]
            old_reason = pending.set(reason_field, reason)
            if old_reason != reason:
                pending.log(reason_field, old_reason, reason)

        if field_name == "aforador":
            pending.set("assignmentDate", at)
            pending.stamp("aforadorStatus", stamp)
        elif field_name == "digitadorAsignado":
            pending.set("digitadorAsignadoAt", at)
        elif field_name == "incidentStatus":
            pending.set("incidentReviewedBy", actor.display_name)
            pending.set("incidentReviewedAt", at)


def check_preconditions(case: AforoCase, field_name: str, value: Any) -> None:
    """Lanza PreconditionError si ``field_name := value`` no está permitido en ``case``."""
    rejected = case.revisor_status is RevisorStatus.RECHAZADO

    if field_name == "aforador":
        if value and not case.is_pattern_validated:
            raise PreconditionError(
                "El patrón de declaración debe estar validado antes de asignar un aforador."
            )
        if not value and not case.aforador_status.is_initial:
            raise PreconditionError(
                "No se puede quitar el aforador de un caso con trabajo de aforo iniciado."
            )

    elif field_name == "aforadorStatus":
        if not value.is_initial and not case.aforador:
            raise PreconditionError("Debe asignar un aforador antes de cambiar su estado.")

    elif field_name == "revisorAsignado":
        if value and case.total_posiciones is None:
            raise PreconditionError(
                "Debe registrar el total de posiciones antes de asignar un revisor."
            )

    elif field_name == "isPatternValidated":
        # true -> true nunca llega aquí: es un no-op
        if value:
            if not case.declaration_pattern:
                raise PreconditionError("No hay patrón de declaración que validar.")
        elif not rejected:
            raise PreconditionError(
                "La validación del patrón solo puede reiniciarse si el caso fue rechazado."
            )

    elif field_name == "declarationPattern":
        if case.is_pattern_validated and not rejected:
            raise PreconditionError(
                "El patrón validado solo puede corregirse si el caso fue rechazado."
            )

    elif field_name == "revisorStatus":
        if value in (RevisorStatus.APROBADO, RevisorStatus.RECHAZADO) and not case.revisor_asignado:
            raise PreconditionError("El caso no tiene revisor asignado.")
        if value is RevisorStatus.REVALIDACION_SOLICITADA and not rejected:
            raise PreconditionError("Solo se puede solicitar revalidación de un caso rechazado.")

    elif field_name == "digitacionStatus":
        if case.digitacion_status.is_initial and not value.is_initial:
            if not (
                case.revisor_status is RevisorStatus.APROBADO
                and case.preliquidation_status is PreliquidationStatus.APROBADA
            ):
                raise PreconditionError(
                    "El caso requiere revisión aprobada y preliquidación aprobada "
                    "antes de pasar a digitación."
                )
        if value is DigitacionStatus.TRAMITE_COMPLETO and not case.declaracion_aduanera:
            raise PreconditionError(
                "Debe registrar la declaración aduanera antes de completar el trámite."
            )

    elif field_name == "digitadorAsignado":
        if value and case.digitacion_status.is_initial:
            raise PreconditionError("El caso aún no ha sido enviado a digitación.")

    elif field_name == "incidentStatus":
        if not case.incident_reported:
            raise PreconditionError("El caso no tiene una incidencia reportada.")
        if not case.incident_status.is_initial:
            raise PreconditionError("La incidencia ya fue resuelta.")

    elif field_name == "valueDoubtStatus":
        if not case.has_value_doubt:
            raise PreconditionError("El caso no tiene duda de valor abierta.")
        if not case.value_doubt_status.is_initial:
            raise PreconditionError("La duda de valor ya fue resuelta.")

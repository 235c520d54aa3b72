"""Caso de uso: actualización de documentos y permisos de la hoja de trabajo vinculada."""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

import structlog

from aforo.application import authorization
from aforo.application.audit_log import AuditLogWriter
from aforo.application.case_repository import CaseRepository
from aforo.application.dtos import ChangeResult, FieldChange
from aforo.application.guard import Clock, utc_now
from aforo.application.ports.document_store import DocumentStore
from aforo.application.records import RequiredPermit, WorksheetDocument, parse_record
from aforo.domain.exceptions import NotFoundError, WriteError
from aforo.domain.value_objects import Actor

logger = structlog.get_logger()

DOCUMENT_UPDATE_FIELD = "document_update"


def _format_date(value: Optional[datetime]) -> str:
    return value.strftime("%d/%m/%Y") if value else "N/A"


def describe_changes(
    old_documents: list[WorksheetDocument],
    new_documents: list[WorksheetDocument],
    old_permits: list[RequiredPermit],
    new_permits: list[RequiredPermit],
) -> list[FieldChange]:
    """Describe en texto legible las diferencias entre las listas anteriores y las nuevas."""
    changes: list[FieldChange] = []
    old_docs = {d.id: d for d in old_documents}
    new_docs = {d.id: d for d in new_documents}

    for doc in new_documents:
        if doc.id not in old_docs:
            changes.append(
                FieldChange(
                    field=DOCUMENT_UPDATE_FIELD,
                    old_value=None,
                    new_value=f"Documento añadido: {doc.type} - {doc.number}",
                    comment="Ejecutivo añadió un nuevo documento entregado.",
                )
            )
    for doc in old_documents:
        if doc.id not in new_docs:
            changes.append(
                FieldChange(
                    field=DOCUMENT_UPDATE_FIELD,
                    old_value=f"Documento: {doc.type} - {doc.number}",
                    new_value=None,
                    comment="Documento eliminado de la hoja de trabajo.",
                )
            )

    old_by_id = {p.id: p for p in old_permits}
    for permit in new_permits:
        previous = old_by_id.get(permit.id)
        if previous is not None and previous.status != permit.status:
            changes.append(
                FieldChange(
                    field=DOCUMENT_UPDATE_FIELD,
                    old_value=f"Permiso '{permit.name}' en estado: {previous.status}",
                    new_value=f"Permiso '{permit.name}' actualizado a: {permit.status}",
                    comment="Estado de permiso actualizado por ejecutivo.",
                )
            )
        old_date = previous.tramite_date if previous else None
        if old_date != permit.tramite_date:
            changes.append(
                FieldChange(
                    field=DOCUMENT_UPDATE_FIELD,
                    old_value=f"Fecha de trámite para {permit.name}: {_format_date(old_date)}",
                    new_value=(
                        f"Fecha de trámite para {permit.name}: {_format_date(permit.tramite_date)}"
                    ),
                    comment="Fecha de inicio de trámite actualizada.",
                )
            )
    return changes


@dataclass(frozen=True)
class ManageDocumentsUseCase:
    store: DocumentStore
    repository: CaseRepository
    audit: AuditLogWriter
    clock: Clock = utc_now

    def execute(
        self,
        case_id: str,
        documents: list[WorksheetDocument | dict[str, Any]],
        required_permits: list[RequiredPermit | dict[str, Any]],
        actor: Actor,
    ) -> ChangeResult:
        case = self.repository.load(case_id)
        authorization.require(actor, authorization.Action.MANAGE_DOCUMENTS, case)

        worksheet = self.repository.load_worksheet(case.worksheet_id) if case.worksheet_id else None
        if worksheet is None:
            raise NotFoundError(case.case_id, what="Hoja de trabajo del caso")

        new_documents = [parse_record(WorksheetDocument, d) for d in documents]
        new_permits = [parse_record(RequiredPermit, p) for p in required_permits]
        if new_documents == worksheet.documents and new_permits == worksheet.required_permits:
            logger.info("field_change_noop", case_id=case.case_id, field=DOCUMENT_UPDATE_FIELD)
            return ChangeResult(case_id=case.case_id, applied=False, case=case)

        changes = describe_changes(
            worksheet.documents, new_documents, worksheet.required_permits, new_permits
        )
        if not changes:
            changes = [
                FieldChange(
                    field=DOCUMENT_UPDATE_FIELD,
                    old_value=None,
                    new_value="Documentos de la hoja de trabajo actualizados",
                )
            ]

        at = self.clock()
        batch = self.store.begin_batch()
        batch.upsert(
            self.repository.worksheet_path(worksheet.ne),
            {
                "documents": [d.to_document() for d in new_documents],
                "requiredPermits": [p.to_document() for p in new_permits],
            },
        )
        entries = self.audit.append(batch, case.case_id, changes, actor, at)
        try:
            batch.commit()
        except WriteError as e:
            logger.error(
                "batch_commit_failed",
                case_id=case.case_id,
                fields=[DOCUMENT_UPDATE_FIELD],
                error=e.reason,
            )
            raise

        logger.info("documents_updated", case_id=case.case_id, entries=len(entries))
        return ChangeResult(
            case_id=case.case_id, applied=True, case=case, entries=entries, committed_at=at
        )

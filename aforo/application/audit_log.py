"""Escritor de la bitácora de actualizaciones (append-only) dentro de un lote atómico."""

from __future__ import annotations

import uuid
from datetime import datetime

import structlog

from aforo.application.case_repository import CaseRepository
from aforo.application.dtos import FieldChange
from aforo.application.ports.document_store import BatchHandle
from aforo.application.transformers import CaseTransformer
from aforo.domain.entities import AuditEntry
from aforo.domain.value_objects import Actor

logger = structlog.get_logger()


class AuditLogWriter:
    """
    Encola una entrada por cambio en la sub-colección del caso.

    Solo opera sobre un ``BatchHandle`` abierto: las entradas se confirman
    junto con la mutación del caso o no se confirman. Cada entrada es un
    documento nuevo con id propio, nunca se modifica una existente.
    """

    def __init__(self, repository: CaseRepository) -> None:
        self._repository = repository

    def append(
        self,
        batch: BatchHandle,
        case_id: str,
        changes: list[FieldChange],
        actor: Actor,
        at: datetime,
    ) -> list[AuditEntry]:
        if batch is None:
            raise ValueError("La bitácora solo se escribe dentro de un lote")

        entries: list[AuditEntry] = []
        base = self._repository.updates_path(case_id)
        for seq, change in enumerate(changes):
            entry = AuditEntry(
                seq=seq,
                entry_id=uuid.uuid4().hex,
                updated_at=at,
                updated_by=actor.display_name,
                field=change.field,
                old_value=change.old_value,
                new_value=change.new_value,
                comment=change.comment,
            )
            batch.create(f"{base}/{entry.entry_id}", CaseTransformer.audit_to_document(entry))
            entries.append(entry)

        logger.debug("audit_entries_queued", case_id=case_id, count=len(entries))
        return entries

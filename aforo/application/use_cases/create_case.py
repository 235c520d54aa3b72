"""Caso de uso: ingreso de una hoja de trabajo y apertura de su caso de aforo."""

from dataclasses import dataclass
from typing import Any

import structlog

from aforo.application import authorization
from aforo.application.audit_log import AuditLogWriter
from aforo.application.case_repository import CaseRepository
from aforo.application.dtos import ChangeResult, FieldChange
from aforo.application.guard import Clock, utc_now
from aforo.application.ports.document_store import DocumentStore
from aforo.application.records import Worksheet, parse_record
from aforo.domain.entities import AforoCase
from aforo.domain.exceptions import DuplicateCaseError, WriteError
from aforo.domain.fields import PROVENANCE_FIELDS
from aforo.domain.value_objects import Actor, LastUpdate

logger = structlog.get_logger()

CREATION_FIELD = "creation"
CREATION_VALUE = "case_created_from_worksheet"


@dataclass(frozen=True)
class CreateCaseUseCase:
    store: DocumentStore
    repository: CaseRepository
    audit: AuditLogWriter
    clock: Clock = utc_now

    def execute(self, worksheet_input: Worksheet | dict[str, Any], actor: Actor) -> ChangeResult:
        worksheet = parse_record(Worksheet, worksheet_input)
        ne = worksheet.ne
        authorization.require(actor, authorization.Action.CREATE_CASE)

        if self.repository.worksheet_exists(ne) or self.repository.exists(ne):
            logger.warning("case_creation_rejected", ne=ne, reason="duplicate")
            raise DuplicateCaseError(ne)

        at = self.clock()
        stamp = LastUpdate(by=actor.display_name, at=at)
        worksheet = worksheet.model_copy(
            update={"created_by": actor.actor_id, "created_at": at}
        )
        case = AforoCase(
            ne=ne,
            executive=worksheet.executive or actor.display_name,
            consignee=worksheet.consignee,
            merchandise=worksheet.description,
            worksheet_id=ne,
            created_by=actor.actor_id,
            created_at=at,
            entregado_aforo_at=at,
            provenance={name: stamp for name in PROVENANCE_FIELDS},
        )
        change = FieldChange(
            field=CREATION_FIELD,
            old_value=None,
            new_value=CREATION_VALUE,
            comment=f"Hoja de Trabajo ingresada por {actor.display_name}.",
        )

        batch = self.store.begin_batch()
        batch.create(self.repository.worksheet_path(ne), worksheet.to_document())
        batch.create(
            self.repository.case_path(ne), self.repository.transformer.to_document(case)
        )
        entries = self.audit.append(batch, ne, [change], actor, at)
        try:
            batch.commit()
        except WriteError as e:
            logger.error("batch_commit_failed", case_id=ne, fields=[CREATION_FIELD], error=e.reason)
            raise

        logger.info("case_created", case_id=ne, created_by=actor.display_name)
        return ChangeResult(case_id=ne, applied=True, case=case, entries=entries, committed_at=at)

"""Lecturas de casos, hojas de trabajo y registros vinculados sobre el DocumentStore."""

from __future__ import annotations

from typing import Optional

import structlog

from aforo.application.config import CollectionsConfig
from aforo.application.ports.document_store import DocumentStore, Filter
from aforo.application.records import ExamenPrevio, PaymentRequest, Worksheet, parse_record
from aforo.application.transformers import CaseTransformer
from aforo.domain.entities import AforoCase, AuditEntry
from aforo.domain.exceptions import NotFoundError

logger = structlog.get_logger()


def normalize_ne(value: str) -> str:
    return value.strip().upper()


class CaseRepository:
    """
    Acceso de lectura al agregado y sus colaboradores.

    Cada lectura va al almacén: no hay caché, el guard siempre valida
    contra el estado recién leído.
    """

    def __init__(
        self,
        store: DocumentStore,
        collections: CollectionsConfig | None = None,
        transformer: CaseTransformer | None = None,
    ) -> None:
        self.store = store
        self.collections = collections or CollectionsConfig()
        self.transformer = transformer or CaseTransformer()

    # --- Rutas ---

    def case_path(self, case_id: str) -> str:
        return f"{self.collections.cases}/{case_id}"

    def updates_path(self, case_id: str) -> str:
        return f"{self.case_path(case_id)}/{self.collections.updates}"

    def worksheet_path(self, worksheet_id: str) -> str:
        return f"{self.collections.worksheets}/{worksheet_id}"

    def previous_exam_path(self, exam_id: str) -> str:
        return f"{self.collections.previous_exams}/{exam_id}"

    # --- Caso ---

    def find(self, case_id: str) -> Optional[AforoCase]:
        ne = normalize_ne(case_id)
        data = self.store.get_document(self.case_path(ne))
        if data is None:
            return None
        return self.transformer.to_case(ne, data)

    def load(self, case_id: str) -> AforoCase:
        case = self.find(case_id)
        if case is None:
            raise NotFoundError(normalize_ne(case_id))
        return case

    def exists(self, case_id: str) -> bool:
        return self.store.get_document(self.case_path(normalize_ne(case_id))) is not None

    def query_cases(self, filters: list[Filter]) -> list[AforoCase]:
        docs = self.store.query(self.collections.cases, filters)
        return [self.transformer.to_case(doc.id, doc.data) for doc in docs]

    def history(self, case_id: str) -> list[AuditEntry]:
        """Entradas de la bitácora, más reciente primero."""
        docs = self.store.list_documents(self.updates_path(normalize_ne(case_id)))
        entries = [self.transformer.to_audit_entry(doc.id, doc.data) for doc in docs]
        entries.sort(key=lambda e: (e.updated_at, e.seq), reverse=True)
        return entries

    # --- Colaboradores ---

    def worksheet_exists(self, worksheet_id: str) -> bool:
        return self.store.get_document(self.worksheet_path(worksheet_id)) is not None

    def load_worksheet(self, worksheet_id: str) -> Optional[Worksheet]:
        data = self.store.get_document(self.worksheet_path(worksheet_id))
        if data is None:
            return None
        return parse_record(Worksheet, {"ne": worksheet_id, **data})

    def payment_requests(self, ne: str) -> list[PaymentRequest]:
        docs = self.store.query(self.collections.payment_requests, [("examNe", "==", ne)])
        return [parse_record(PaymentRequest, {"id": doc.id, **doc.data}) for doc in docs]

    def previous_exam(self, exam_id: str) -> Optional[ExamenPrevio]:
        data = self.store.get_document(self.previous_exam_path(exam_id))
        if data is None:
            return None
        return parse_record(ExamenPrevio, data)

from datetime import UTC, datetime

import pytest

from aforo.application.records import RequiredPermit, WorksheetDocument
from aforo.application.use_cases.manage_documents import (
    DOCUMENT_UPDATE_FIELD,
    ManageDocumentsUseCase,
    describe_changes,
)
from aforo.domain.exceptions import AuthorizationError, NotFoundError, WriteError
from tests.conftest import audit_entries

FACTURA = {"id": "d1", "type": "Factura", "number": "F-100"}
BL = {"id": "d2", "type": "BL", "number": "BL-9"}
MAG = {"id": "p1", "name": "MAG", "status": "Pendiente"}


def _permit(**kwargs) -> RequiredPermit:
    return RequiredPermit(**{**MAG, **kwargs})


@pytest.fixture
def use_case(store, repository, audit, clock) -> ManageDocumentsUseCase:
    return ManageDocumentsUseCase(store=store, repository=repository, audit=audit, clock=clock)


@pytest.fixture
def worksheet_case(store, seed_case):
    seed_case()
    store.seed(
        "worksheets/NE-001",
        {"ne": "NE-001", "documents": [FACTURA], "requiredPermits": [MAG]},
    )


class TestDescribeChanges:
    def test_added_document(self):
        [change] = describe_changes([], [WorksheetDocument(**FACTURA)], [], [])
        assert change.field == DOCUMENT_UPDATE_FIELD
        assert change.new_value == "Documento añadido: Factura - F-100"
        assert change.comment == "Ejecutivo añadió un nuevo documento entregado."

    def test_removed_document(self):
        [change] = describe_changes([WorksheetDocument(**FACTURA)], [], [], [])
        assert change.old_value == "Documento: Factura - F-100"
        assert change.new_value is None

    def test_permit_status(self):
        [change] = describe_changes([], [], [_permit()], [_permit(status="Entregado")])
        assert change.old_value == "Permiso 'MAG' en estado: Pendiente"
        assert change.new_value == "Permiso 'MAG' actualizado a: Entregado"

    def test_tramite_date(self):
        date = datetime(2026, 3, 5, tzinfo=UTC)
        [change] = describe_changes([], [], [_permit()], [_permit(tramite_date=date)])
        assert change.old_value == "Fecha de trámite para MAG: N/A"
        assert change.new_value == "Fecha de trámite para MAG: 05/03/2026"

    def test_unchanged(self):
        docs = [WorksheetDocument(**FACTURA)]
        assert describe_changes(docs, docs, [_permit()], [_permit()]) == []


class TestManageDocuments:
    def test_writes_worksheet_and_entries_together(
        self, use_case, store, worksheet_case, ejecutivo
    ):
        result = use_case.execute(
            "NE-001", [FACTURA, BL], [{**MAG, "status": "Entregado"}], ejecutivo
        )

        assert result.applied is True
        assert len(store.commits) == 1
        worksheet = store.docs["worksheets/NE-001"]
        assert [d["id"] for d in worksheet["documents"]] == ["d1", "d2"]
        assert worksheet["requiredPermits"][0]["status"] == "Entregado"
        values = sorted(e["newValue"] for e in audit_entries(store))
        assert values == [
            "Documento añadido: BL - BL-9",
            "Permiso 'MAG' actualizado a: Entregado",
        ]

    def test_same_lists_is_noop(self, use_case, store, worksheet_case, ejecutivo):
        result = use_case.execute("NE-001", [FACTURA], [MAG], ejecutivo)
        assert result.applied is False
        assert store.commits == []

    def test_undescribed_change_gets_generic_entry(
        self, use_case, store, worksheet_case, ejecutivo
    ):
        use_case.execute("NE-001", [{**FACTURA, "isCopy": True}], [MAG], ejecutivo)
        [entry] = audit_entries(store)
        assert entry["newValue"] == "Documentos de la hoja de trabajo actualizados"

    def test_missing_worksheet(self, use_case, seed_case, ejecutivo):
        seed_case()
        with pytest.raises(NotFoundError, match="Hoja de trabajo"):
            use_case.execute("NE-001", [], [], ejecutivo)

    def test_role_without_permission(self, use_case, store, worksheet_case, digitador):
        with pytest.raises(AuthorizationError):
            use_case.execute("NE-001", [FACTURA, BL], [MAG], digitador)
        assert store.commits == []

    def test_failed_commit(self, use_case, store, worksheet_case, ejecutivo):
        store.fail_commits = 1
        with pytest.raises(WriteError):
            use_case.execute("NE-001", [FACTURA, BL], [MAG], ejecutivo)
        assert len(store.docs["worksheets/NE-001"]["documents"]) == 1
        assert audit_entries(store) == []

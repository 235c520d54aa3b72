"""Fixtures compartidas: almacén en memoria con inyección de fallas, reloj fijo y actores.

Componentes reales: guard, bitácora, repositorio, proyección.
Componentes falsos: DocumentStore (frontera con Firestore) y reloj.
"""

from __future__ import annotations

import copy
from datetime import UTC, datetime, timedelta
from typing import Any

import pytest

from aforo.application.audit_log import AuditLogWriter
from aforo.application.case_repository import CaseRepository
from aforo.application.guard import TransitionGuard
from aforo.application.ports.document_store import StoredDocument, matches, split_path
from aforo.domain.exceptions import WriteError
from aforo.domain.value_objects import Actor, Role

START = datetime(2026, 3, 2, 12, 0, tzinfo=UTC)


# ── Fakes ────────────────────────────────────────────────────────────


class FakeClock:
    """Avanza un minuto en cada lectura para que el historial tenga orden estable."""

    def __init__(self, start: datetime = START) -> None:
        self.now = start

    def __call__(self) -> datetime:
        current = self.now
        self.now = self.now + timedelta(minutes=1)
        return current


class FakeBatch:
    def __init__(self, store: "FakeDocumentStore") -> None:
        self._store = store
        self.ops: list[tuple[str, str, dict[str, Any]]] = []
        self._committed = False

    def create(self, path: str, fields: dict[str, Any]) -> None:
        self.ops.append(("create", path, copy.deepcopy(fields)))

    def upsert(self, path: str, fields: dict[str, Any]) -> None:
        self.ops.append(("upsert", path, copy.deepcopy(fields)))

    def commit(self) -> None:
        if self._committed:
            raise WriteError("el lote ya fue confirmado")
        self._committed = True
        self._store.apply(self.ops)


class FakeDocumentStore:
    """DocumentStore en memoria. ``fail_commits`` hace fallar los próximos N commits."""

    def __init__(self) -> None:
        self.docs: dict[str, dict[str, Any]] = {}
        self.fail_commits = 0
        self.commits: list[list[tuple[str, str, dict[str, Any]]]] = []

    # ── Setup helpers ─────────────────────────────────────────────

    def seed(self, path: str, data: dict[str, Any]) -> None:
        self.docs[path] = copy.deepcopy(data)

    def collection(self, collection_path: str) -> dict[str, dict[str, Any]]:
        return {
            split_path(path)[1]: data
            for path, data in self.docs.items()
            if split_path(path)[0] == collection_path
        }

    # ── DocumentStore ─────────────────────────────────────────────

    def begin_batch(self) -> FakeBatch:
        return FakeBatch(self)

    def get_document(self, path: str) -> dict[str, Any] | None:
        data = self.docs.get(path)
        return copy.deepcopy(data) if data is not None else None

    def list_documents(self, collection_path: str) -> list[StoredDocument]:
        return [
            StoredDocument(id=doc_id, data=copy.deepcopy(data))
            for doc_id, data in sorted(self.collection(collection_path).items())
        ]

    def query(self, collection_path: str, filters: list) -> list[StoredDocument]:
        return [d for d in self.list_documents(collection_path) if matches(d.data, filters)]

    def apply(self, ops: list[tuple[str, str, dict[str, Any]]]) -> None:
        if self.fail_commits:
            self.fail_commits -= 1
            raise WriteError("falla simulada del almacén")
        staged = copy.deepcopy(self.docs)
        for kind, path, fields in ops:
            if kind == "create":
                if path in staged:
                    raise WriteError(f"el documento ya existe: {path}")
                staged[path] = fields
            else:
                staged[path] = {**staged.get(path, {}), **fields}
        self.docs = staged
        self.commits.append(ops)


# ── Factories ────────────────────────────────────────────────────────


def make_case_doc(ne: str = "NE-001", **overrides: Any) -> dict[str, Any]:
    """Documento de caso tal como queda tras la creación, con valores por defecto."""
    doc: dict[str, Any] = {
        "ne": ne,
        "executive": "Ejecutiva Uno",
        "consignee": "Importadora Sur",
        "merchandise": "Repuestos",
        "worksheetId": ne,
        "createdBy": "uid-ejecutiva",
        "createdAt": START - timedelta(days=1),
        "declarationPattern": "",
        "isPatternValidated": False,
        "aforador": "",
        "aforadorStatus": "Pendiente",
        "revisorAsignado": "",
        "revisorStatus": "Pendiente",
        "preliquidationStatus": "Pendiente",
        "digitacionStatus": "Pendiente",
        "incidentStatus": "Pendiente",
        "valueDoubtStatus": "Pendiente",
    }
    doc.update(overrides)
    return doc


def audit_entries(store: FakeDocumentStore, ne: str = "NE-001") -> list[dict[str, Any]]:
    return list(store.collection(f"AforoCases/{ne}/actualizaciones").values())


# ── Fixtures ─────────────────────────────────────────────────────────


@pytest.fixture
def store() -> FakeDocumentStore:
    return FakeDocumentStore()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def repository(store) -> CaseRepository:
    return CaseRepository(store)


@pytest.fixture
def audit(repository) -> AuditLogWriter:
    return AuditLogWriter(repository)


@pytest.fixture
def guard(store, repository, audit, clock) -> TransitionGuard:
    return TransitionGuard(store, repository=repository, audit=audit, clock=clock)


@pytest.fixture
def seed_case(store):
    def _seed(ne: str = "NE-001", **overrides: Any) -> dict[str, Any]:
        doc = make_case_doc(ne, **overrides)
        store.seed(f"AforoCases/{ne}", doc)
        return doc

    return _seed


@pytest.fixture
def admin() -> Actor:
    return Actor(actor_id="uid-admin", display_name="Admin", role=Role.ADMIN)


@pytest.fixture
def coordinadora() -> Actor:
    return Actor(actor_id="uid-coord", display_name="Carla Coordinadora", role=Role.COORDINADORA)


@pytest.fixture
def ejecutivo() -> Actor:
    return Actor(actor_id="uid-ejecutiva", display_name="Ejecutiva Uno", role=Role.EJECUTIVO)


@pytest.fixture
def aforador() -> Actor:
    return Actor(actor_id="uid-jane", display_name="Jane", role=Role.AFORADOR)


@pytest.fixture
def agente() -> Actor:
    return Actor(actor_id="uid-agente", display_name="Agente Revisor", role=Role.AGENTE)


@pytest.fixture
def digitador() -> Actor:
    return Actor(actor_id="uid-digit", display_name="Diego Digitador", role=Role.DIGITADOR)


@pytest.fixture
def contabilidad() -> Actor:
    return Actor(actor_id="uid-conta", display_name="Contabilidad", role=Role.CONTABILIDAD)

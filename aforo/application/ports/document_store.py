"""Port para el almacén de documentos con escrituras atómicas por lote."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol

# Operadores de filtro soportados por query().
FILTER_OPERATORS = frozenset({"==", "in"})

Filter = tuple[str, str, Any]


@dataclass(frozen=True)
class StoredDocument:
    """Documento leído del almacén: id (último segmento de la ruta) y sus campos."""

    id: str
    data: dict[str, Any] = field(default_factory=dict)


class BatchHandle(Protocol):
    def create(self, path: str, fields: dict[str, Any]) -> None:
        """Encola la creación de un documento. El commit falla si ya existe."""
        ...

    def upsert(self, path: str, fields: dict[str, Any]) -> None:
        """Encola un merge de campos sobre el documento (lo crea si no existe)."""
        ...

    def commit(self) -> None:
        """Confirma todas las operaciones juntas o ninguna. Lanza WriteError."""
        ...


class DocumentStore(Protocol):
    def begin_batch(self) -> BatchHandle: ...

    def get_document(self, path: str) -> dict[str, Any] | None:
        """Lectura puntual. Retorna None si el documento no existe."""
        ...

    def list_documents(self, collection_path: str) -> list[StoredDocument]: ...

    def query(self, collection_path: str, filters: list[Filter]) -> list[StoredDocument]:
        """Filtra una colección. Cada filtro es (campo, op, valor) con op en FILTER_OPERATORS."""
        ...


def matches(data: dict[str, Any], filters: list[Filter]) -> bool:
    """Evalúa filtros sobre un documento en memoria (usado por los adapters locales)."""
    for field_name, op, value in filters:
        if op not in FILTER_OPERATORS:
            raise ValueError(f"Operador de filtro no soportado: {op}")
        current = data.get(field_name)
        if op == "==" and current != value:
            return False
        if op == "in" and current not in value:
            return False
    return True


def split_path(path: str) -> tuple[str, str]:
    """Separa 'coleccion/doc/sub/id' en (ruta del padre, id del documento)."""
    parts = path.strip("/").split("/")
    if len(parts) < 2 or len(parts) % 2 != 0:
        raise ValueError(f"Ruta de documento inválida: {path}")
    return "/".join(parts[:-1]), parts[-1]

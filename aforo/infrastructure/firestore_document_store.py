"""DocumentStore sobre la API REST de Firestore (v1) vía google-api-python-client."""

from __future__ import annotations

import re
from datetime import UTC, datetime
from enum import Enum
from typing import Any

import structlog
from google.oauth2.service_account import Credentials
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from aforo.application.ports.document_store import (
    FILTER_OPERATORS,
    Filter,
    StoredDocument,
    split_path,
)
from aforo.domain.exceptions import WriteError

logger = structlog.get_logger()

SCOPES = ["https://www.googleapis.com/auth/datastore"]

_OPERATORS = {"==": "EQUAL", "in": "IN"}
_FRACTION = re.compile(r"\.(\d+)")


def encode_value(value: Any) -> dict[str, Any]:
    """Valor Python a ``Value`` JSON de Firestore."""
    if value is None:
        return {"nullValue": None}
    if isinstance(value, Enum):
        return {"stringValue": str(value.value)}
    if isinstance(value, bool):
        return {"booleanValue": value}
    if isinstance(value, int):
        return {"integerValue": str(value)}
    if isinstance(value, float):
        return {"doubleValue": value}
    if isinstance(value, str):
        return {"stringValue": value}
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        return {"timestampValue": value.astimezone(UTC).isoformat().replace("+00:00", "Z")}
    if isinstance(value, (list, tuple)):
        return {"arrayValue": {"values": [encode_value(v) for v in value]}}
    if isinstance(value, dict):
        return {"mapValue": {"fields": encode_fields(value)}}
    raise TypeError(f"Tipo no soportado por Firestore: {type(value).__name__}")


def encode_fields(data: dict[str, Any]) -> dict[str, Any]:
    return {key: encode_value(value) for key, value in data.items()}


def decode_value(value: dict[str, Any]) -> Any:
    """``Value`` JSON de Firestore a valor Python."""
    if "nullValue" in value:
        return None
    if "booleanValue" in value:
        return value["booleanValue"]
    if "integerValue" in value:
        return int(value["integerValue"])
    if "doubleValue" in value:
        return float(value["doubleValue"])
    if "stringValue" in value:
        return value["stringValue"]
    if "timestampValue" in value:
        return _parse_timestamp(value["timestampValue"])
    if "arrayValue" in value:
        return [decode_value(v) for v in value["arrayValue"].get("values", [])]
    if "mapValue" in value:
        return decode_fields(value["mapValue"].get("fields", {}))
    if "referenceValue" in value:
        return value["referenceValue"]
    raise ValueError(f"Valor de Firestore no soportado: {sorted(value)}")


def decode_fields(fields: dict[str, Any]) -> dict[str, Any]:
    return {key: decode_value(value) for key, value in fields.items()}


def _parse_timestamp(raw: str) -> datetime:
    # Firestore entrega hasta 9 decimales; fromisoformat acepta 6
    text = raw.replace("Z", "+00:00")
    text = _FRACTION.sub(lambda m: "." + m.group(1)[:6].ljust(6, "0"), text, count=1)
    return datetime.fromisoformat(text)


class FirestoreBatch:
    def __init__(self, store: "FirestoreDocumentStore") -> None:
        self._store = store
        self._writes: list[dict[str, Any]] = []
        self._committed = False

    def create(self, path: str, fields: dict[str, Any]) -> None:
        self._writes.append(
            {
                "update": {"name": self._store.document_name(path), "fields": encode_fields(fields)},
                "currentDocument": {"exists": False},
            }
        )

    def upsert(self, path: str, fields: dict[str, Any]) -> None:
        self._writes.append(
            {
                "update": {"name": self._store.document_name(path), "fields": encode_fields(fields)},
                "updateMask": {"fieldPaths": list(fields)},
            }
        )

    def commit(self) -> None:
        if self._committed:
            raise WriteError("el lote ya fue confirmado")
        self._committed = True
        self._store._commit(self._writes)


class FirestoreDocumentStore:
    """
    Adapter de Firestore. ``documents.commit`` aplica todas las escrituras
    del lote de forma atómica: o todas o ninguna.
    """

    def __init__(
        self,
        project_id: str,
        credentials_path: str | None = None,
        database: str = "(default)",
        service: Any = None,
    ) -> None:
        if service is None:
            if not credentials_path:
                raise ValueError("credentials_path es requerido sin un service inyectado")
            creds = Credentials.from_service_account_file(credentials_path, scopes=SCOPES)
            service = build("firestore", "v1", credentials=creds)
        self.service = service
        self.database = f"projects/{project_id}/databases/{database}"
        self.root = f"{self.database}/documents"

    def document_name(self, path: str) -> str:
        split_path(path)
        return f"{self.root}/{path.strip('/')}"

    def _documents(self) -> Any:
        return self.service.projects().databases().documents()

    def _collection_parent(self, collection_path: str) -> tuple[str, str]:
        parts = collection_path.strip("/").split("/")
        parent = "/".join([self.root, *parts[:-1]])
        return parent, parts[-1]

    def begin_batch(self) -> FirestoreBatch:
        return FirestoreBatch(self)

    def get_document(self, path: str) -> dict[str, Any] | None:
        try:
            doc = self._documents().get(name=self.document_name(path)).execute()
        except HttpError as e:
            if e.resp.status == 404:
                return None
            raise
        return decode_fields(doc.get("fields", {}))

    def list_documents(self, collection_path: str) -> list[StoredDocument]:
        parent, collection_id = self._collection_parent(collection_path)
        docs: list[StoredDocument] = []
        page_token: str | None = None
        while True:
            params: dict[str, Any] = {"parent": parent, "collectionId": collection_id}
            if page_token:
                params["pageToken"] = page_token
            response = self._documents().list(**params).execute()
            docs.extend(self._to_stored(d) for d in response.get("documents", []))
            page_token = response.get("nextPageToken")
            if not page_token:
                break
        logger.debug("firestore_documents_listed", collection=collection_path, count=len(docs))
        return docs

    def query(self, collection_path: str, filters: list[Filter]) -> list[StoredDocument]:
        parent, collection_id = self._collection_parent(collection_path)
        structured: dict[str, Any] = {"from": [{"collectionId": collection_id}]}
        where = self._build_where(filters)
        if where:
            structured["where"] = where
        results = (
            self._documents()
            .runQuery(parent=parent, body={"structuredQuery": structured})
            .execute()
        )
        docs = [self._to_stored(r["document"]) for r in results if "document" in r]
        logger.debug("firestore_query", collection=collection_path, count=len(docs))
        return docs

    @staticmethod
    def _build_where(filters: list[Filter]) -> dict[str, Any] | None:
        clauses = []
        for field_name, op, value in filters:
            if op not in FILTER_OPERATORS:
                raise ValueError(f"Operador de filtro no soportado: {op}")
            clauses.append(
                {
                    "fieldFilter": {
                        "field": {"fieldPath": field_name},
                        "op": _OPERATORS[op],
                        "value": encode_value(value),
                    }
                }
            )
        if not clauses:
            return None
        if len(clauses) == 1:
            return clauses[0]
        return {"compositeFilter": {"op": "AND", "filters": clauses}}

    @staticmethod
    def _to_stored(doc: dict[str, Any]) -> StoredDocument:
        return StoredDocument(
            id=doc["name"].rsplit("/", 1)[-1], data=decode_fields(doc.get("fields", {}))
        )

    def _commit(self, writes: list[dict[str, Any]]) -> None:
        try:
            self._documents().commit(database=self.database, body={"writes": writes}).execute()
        except HttpError as e:
            logger.error("firestore_commit_failed", status=e.resp.status, writes=len(writes))
            raise WriteError(f"Firestore respondió {e.resp.status}") from e
        logger.debug("firestore_batch_committed", writes=len(writes))

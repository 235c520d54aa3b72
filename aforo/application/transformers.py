from datetime import UTC, datetime
from enum import Enum
from typing import Any, Optional

import structlog

from aforo.domain.entities import AforoCase, AuditEntry
from aforo.domain.exceptions import ValidationError
from aforo.domain.fields import FIELDS, PROVENANCE_FIELDS, FieldKind, FieldSpec, initial_status
from aforo.domain.value_objects import LastUpdate

logger = structlog.get_logger()

LAST_UPDATE_SUFFIX = "LastUpdate"


def last_update_key(field_name: str) -> str:
    return f"{field_name}{LAST_UPDATE_SUFFIX}"


def encode_value(value: Any) -> Any:
    """Valor de dominio a valor almacenable (enums por su texto, procedencia como dict)."""
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, LastUpdate):
        return value.to_dict()
    return value


class CaseTransformer:
    """Convierte documentos almacenados en entidades y viceversa, normalizando datos heredados."""

    def to_case(self, doc_id: str, data: dict[str, Any]) -> AforoCase:
        values: dict[str, Any] = {}
        for name, spec in FIELDS.items():
            if name == "ne":
                continue
            raw = data.get(name)
            if raw is None and spec.kind is not FieldKind.STATUS:
                continue
            values[spec.attr] = self._read_value(spec, raw, doc_id)

        ne = self._clean_string(data.get("ne") or doc_id).upper()
        return AforoCase(ne=ne, provenance=self._read_provenance(data), **values)

    def to_document(self, case: AforoCase) -> dict[str, Any]:
        """Documento completo del caso, usado al crearlo."""
        doc: dict[str, Any] = {}
        for name, spec in FIELDS.items():
            doc[name] = encode_value(getattr(case, spec.attr))
        for name, stamp in case.provenance.items():
            doc[last_update_key(name)] = stamp.to_dict()
        return doc

    def to_audit_entry(self, entry_id: str, data: dict[str, Any]) -> AuditEntry:
        updated_at = self._parse_timestamp(data.get("updatedAt"))
        return AuditEntry(
            entry_id=entry_id,
            updated_at=updated_at or datetime.min.replace(tzinfo=UTC),
            updated_by=self._clean_string(data.get("updatedBy")) or "desconocido",
            field=self._clean_string(data.get("field")) or "desconocido",
            old_value=data.get("oldValue"),
            new_value=data.get("newValue"),
            comment=data.get("comment"),
            seq=self._parse_count(data.get("seq")) or 0,
        )

    @staticmethod
    def audit_to_document(entry: AuditEntry) -> dict[str, Any]:
        doc = {
            "updatedAt": entry.updated_at,
            "updatedBy": entry.updated_by,
            "field": entry.field,
            "oldValue": encode_value(entry.old_value),
            "newValue": encode_value(entry.new_value),
            "seq": entry.seq,
        }
        if entry.comment is not None:
            doc["comment"] = entry.comment
        return doc

    def _read_value(self, spec: FieldSpec, raw: Any, doc_id: str) -> Any:
        if spec.kind is FieldKind.STATUS:
            return self._read_status(spec, raw, doc_id)
        if spec.kind is FieldKind.BOOL:
            return bool(raw)
        if spec.kind is FieldKind.COUNT:
            return self._parse_count(raw)
        if spec.kind is FieldKind.TIMESTAMP:
            return self._parse_timestamp(raw)
        value = self._clean_string(raw)
        if spec.kind is FieldKind.NOTE and not value:
            return None
        return value

    @staticmethod
    def _read_status(spec: FieldSpec, raw: Any, doc_id: str) -> Enum:
        # Valores heredados: 'Pendiente ' con espacio, o ausentes
        if spec.enum is None:
            raise ValidationError(spec.name, "no es un campo de estado")
        text = str(raw).strip() if raw is not None else ""
        if not text:
            return initial_status(spec.name)
        try:
            return spec.enum(text)
        except ValueError:
            logger.warning(
                "unknown_status_value", case_id=doc_id, field=spec.name, value=text
            )
            return initial_status(spec.name)

    def _read_provenance(self, data: dict[str, Any]) -> dict[str, LastUpdate]:
        provenance: dict[str, LastUpdate] = {}
        for name in PROVENANCE_FIELDS:
            raw = data.get(last_update_key(name))
            if not isinstance(raw, dict):
                continue
            at = self._parse_timestamp(raw.get("at"))
            by = self._clean_string(raw.get("by"))
            if at is not None and by:
                provenance[name] = LastUpdate(by=by, at=at)
        return provenance

    @staticmethod
    def _clean_string(value: object) -> str:
        if value is None:
            return ""
        return str(value).strip()

    @staticmethod
    def _parse_count(value: object) -> Optional[int]:
        if isinstance(value, bool):
            return None
        if isinstance(value, int):
            return value if value >= 0 else None
        if isinstance(value, float) and value.is_integer() and value >= 0:
            return int(value)
        if isinstance(value, str) and value.strip().isdigit():
            return int(value.strip())
        return None

    @staticmethod
    def _parse_timestamp(value: object) -> Optional[datetime]:
        parsed = None
        if isinstance(value, datetime):
            parsed = value
        elif isinstance(value, str) and value.strip():
            try:
                parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
            except ValueError:
                return None
        # Fechas heredadas sin zona se interpretan como UTC
        if parsed is not None and parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=UTC)
        return parsed

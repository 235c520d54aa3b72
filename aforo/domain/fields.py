"""Catálogo de campos del caso: nombre almacenado, atributo, tipo y reglas de edición."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Final

from aforo.domain.entities import (
    AforadorStatus,
    AforoCase,
    DigitacionStatus,
    PreliquidationStatus,
    ReviewDecision,
    RevisorStatus,
)
from aforo.domain.exceptions import ValidationError


class FieldKind(Enum):
    TEXT = "text"  # str, "" permitido
    NOTE = "note"  # str opcional, "" se guarda como None
    BOOL = "bool"
    COUNT = "count"  # entero >= 0
    TIMESTAMP = "timestamp"
    STATUS = "status"


@dataclass(frozen=True)
class FieldSpec:
    name: str
    attr: str
    kind: FieldKind
    enum: type[Enum] | None = None
    editable: bool = False
    provenance: bool = False


def _spec(name: str, attr: str, kind: FieldKind, **kwargs: Any) -> tuple[str, FieldSpec]:
    return name, FieldSpec(name=name, attr=attr, kind=kind, **kwargs)


FIELDS: Final[dict[str, FieldSpec]] = dict(
    [
        _spec("ne", "ne", FieldKind.TEXT),
        _spec("executive", "executive", FieldKind.TEXT),
        _spec("consignee", "consignee", FieldKind.TEXT),
        _spec("merchandise", "merchandise", FieldKind.TEXT, editable=True),
        _spec("worksheetId", "worksheet_id", FieldKind.NOTE),
        _spec("createdBy", "created_by", FieldKind.TEXT),
        _spec("createdAt", "created_at", FieldKind.TIMESTAMP),
        # Aforo
        _spec("declarationPattern", "declaration_pattern", FieldKind.TEXT, editable=True),
        _spec("isPatternValidated", "is_pattern_validated", FieldKind.BOOL, editable=True),
        _spec("aforador", "aforador", FieldKind.TEXT, editable=True),
        _spec("assignmentDate", "assignment_date", FieldKind.TIMESTAMP),
        _spec(
            "aforadorStatus",
            "aforador_status",
            FieldKind.STATUS,
            enum=AforadorStatus,
            editable=True,
            provenance=True,
        ),
        _spec("aforadorComment", "aforador_comment", FieldKind.NOTE, editable=True),
        _spec("totalPosiciones", "total_posiciones", FieldKind.COUNT, editable=True),
        _spec("entregadoAforoAt", "entregado_aforo_at", FieldKind.TIMESTAMP),
        # Revisión
        _spec("revisorAsignado", "revisor_asignado", FieldKind.TEXT, editable=True, provenance=True),
        _spec(
            "revisorStatus",
            "revisor_status",
            FieldKind.STATUS,
            enum=RevisorStatus,
            editable=True,
            provenance=True,
        ),
        _spec("observacionRevisor", "observacion_revisor", FieldKind.NOTE, editable=True),
        # Preliquidación
        _spec(
            "preliquidationStatus",
            "preliquidation_status",
            FieldKind.STATUS,
            enum=PreliquidationStatus,
            editable=True,
            provenance=True,
        ),
        # Digitación
        _spec(
            "digitacionStatus",
            "digitacion_status",
            FieldKind.STATUS,
            enum=DigitacionStatus,
            editable=True,
            provenance=True,
        ),
        _spec(
            "digitadorAsignado", "digitador_asignado", FieldKind.TEXT, editable=True, provenance=True
        ),
        _spec("digitadorAsignadoAt", "digitador_asignado_at", FieldKind.TIMESTAMP),
        _spec("digitacionComment", "digitacion_comment", FieldKind.NOTE, editable=True),
        _spec("declaracionAduanera", "declaracion_aduanera", FieldKind.NOTE, editable=True),
        # Incidencia
        _spec("incidentReported", "incident_reported", FieldKind.BOOL),
        _spec("incidentType", "incident_type", FieldKind.NOTE),
        _spec(
            "incidentStatus",
            "incident_status",
            FieldKind.STATUS,
            enum=ReviewDecision,
            editable=True,
            provenance=True,
        ),
        _spec("incidentReportedBy", "incident_reported_by", FieldKind.NOTE),
        _spec("incidentReportedAt", "incident_reported_at", FieldKind.TIMESTAMP),
        _spec("incidentReviewedBy", "incident_reviewed_by", FieldKind.NOTE),
        _spec("incidentReviewedAt", "incident_reviewed_at", FieldKind.TIMESTAMP),
        _spec("motivoRectificacion", "motivo_rectificacion", FieldKind.NOTE),
        _spec("reciboDeCajaPagoInicial", "recibo_de_caja_pago_inicial", FieldKind.NOTE),
        _spec("pagoInicialRealizado", "pago_inicial_realizado", FieldKind.BOOL),
        _spec("noLiquidacion", "no_liquidacion", FieldKind.NOTE),
        _spec("observaciones", "observaciones", FieldKind.NOTE, editable=True),
        _spec(
            "observacionesContabilidad", "observaciones_contabilidad", FieldKind.NOTE, editable=True
        ),
        # Duda de valor
        _spec("hasValueDoubt", "has_value_doubt", FieldKind.BOOL),
        _spec(
            "valueDoubtStatus",
            "value_doubt_status",
            FieldKind.STATUS,
            enum=ReviewDecision,
            editable=True,
            provenance=True,
        ),
    ]
)

STATUS_FIELDS: Final[tuple[str, ...]] = tuple(
    name for name, spec in FIELDS.items() if spec.kind is FieldKind.STATUS
)
PROVENANCE_FIELDS: Final[tuple[str, ...]] = tuple(
    name for name, spec in FIELDS.items() if spec.provenance
)

# (campo, valor) que exige un motivo, y el campo adjunto donde se guarda.
REASON_REQUIRED: Final[dict[tuple[str, Enum], str]] = {
    ("aforadorStatus", AforadorStatus.INCOMPLETO): "aforadorComment",
    ("revisorStatus", RevisorStatus.RECHAZADO): "observacionRevisor",
}


def get_spec(name: str) -> FieldSpec:
    try:
        return FIELDS[name]
    except KeyError:
        raise ValidationError(name, "campo desconocido") from None


def editable_spec(name: str) -> FieldSpec:
    spec = get_spec(name)
    if not spec.editable:
        raise ValidationError(name, "el campo no es editable directamente")
    return spec


def read_field(case: AforoCase, name: str) -> Any:
    return getattr(case, get_spec(name).attr)


def initial_status(name: str) -> Enum:
    spec = get_spec(name)
    if spec.enum is None:
        raise ValidationError(name, "no es un campo de estado")
    return next(member for member in spec.enum if member.is_initial)  # type: ignore[attr-defined]


def coerce(spec: FieldSpec, raw: Any) -> Any:
    """Convierte y valida un valor de entrada al tipo del campo. Lanza ValidationError."""
    if spec.kind is FieldKind.STATUS:
        if spec.enum is None:
            raise ValidationError(spec.name, "no es un campo de estado")
        if isinstance(raw, spec.enum):
            return raw
        if isinstance(raw, str):
            try:
                return spec.enum(raw.strip())
            except ValueError:
                pass
        allowed = [m.value for m in spec.enum]
        raise ValidationError(spec.name, f"'{raw}' no es uno de {allowed}")

    if spec.kind is FieldKind.BOOL:
        if not isinstance(raw, bool):
            raise ValidationError(spec.name, f"se esperaba booleano, se obtuvo {type(raw).__name__}")
        return raw

    if spec.kind is FieldKind.COUNT:
        if isinstance(raw, bool) or raw is None:
            raise ValidationError(spec.name, "se esperaba un número entero")
        if isinstance(raw, float):
            if not raw.is_integer():
                raise ValidationError(spec.name, f"{raw} no es entero")
            raw = int(raw)
        if isinstance(raw, str):
            try:
                raw = int(raw.strip())
            except ValueError:
                raise ValidationError(spec.name, f"'{raw}' no es un número entero") from None
        if not isinstance(raw, int):
            raise ValidationError(spec.name, "se esperaba un número entero")
        if raw < 0:
            raise ValidationError(spec.name, f"no puede ser negativo: {raw}")
        return raw

    if spec.kind is FieldKind.TIMESTAMP:
        if raw is not None and not isinstance(raw, datetime):
            raise ValidationError(spec.name, "se esperaba fecha y hora")
        return raw

    if raw is None:
        if spec.kind is FieldKind.NOTE:
            return None
        raise ValidationError(spec.name, "no puede ser nulo")
    if not isinstance(raw, str):
        raise ValidationError(spec.name, f"se esperaba texto, se obtuvo {type(raw).__name__}")
    value = raw.strip()
    if spec.kind is FieldKind.NOTE and not value:
        return None
    return value

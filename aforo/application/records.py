"""Registros de colaboradores (hoja de trabajo, pagos, examen previo) validados con pydantic."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal, TypeVar

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from aforo.domain.entities import RECTIFICACION
from aforo.domain.exceptions import ValidationError

DocumentStatus = Literal["Entregado", "En Trámite", "Pendiente"]

PAYMENT_PAID = "Pagado"
PERMIT_DELIVERED = "Entregado"
EXAM_COMPLETE = "complete"
EXAM_INCOMPLETE = "incomplete"


class _Record(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    def to_document(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)


class WorksheetDocument(_Record):
    """Documento adjunto declarado en la hoja de trabajo."""

    id: str
    type: str
    number: str
    is_copy: bool = Field(False, alias="isCopy")
    status: DocumentStatus | None = None


class RequiredPermit(_Record):
    id: str
    name: str
    status: DocumentStatus = "Pendiente"
    tramite_date: datetime | None = Field(None, alias="tramiteDate")
    estimated_delivery_date: datetime | None = Field(None, alias="estimatedDeliveryDate")


class Worksheet(_Record):
    """Hoja de trabajo creada por el ejecutivo. Su id es el NE."""

    ne: str
    executive: str = ""
    consignee: str = ""
    description: str = ""
    gross_weight: str = Field("", alias="grossWeight")
    net_weight: str = Field("", alias="netWeight")
    package_number: str = Field("", alias="packageNumber")
    entry_customs: str = Field("", alias="entryCustoms")
    dispatch_customs: str = Field("", alias="dispatchCustoms")
    transport_mode: Literal["aereo", "maritimo", "frontera", "terrestre"] | None = Field(
        None, alias="transportMode"
    )
    in_local_warehouse: bool = Field(False, alias="inLocalWarehouse")
    location: str | None = None
    operation_type: Literal["importacion", "exportacion"] | None = Field(
        None, alias="operationType"
    )
    pattern_regime: str | None = Field(None, alias="patternRegime")
    sub_regime: str | None = Field(None, alias="subRegime")
    is_joint_operation: bool = Field(False, alias="isJointOperation")
    joint_ne: str | None = Field(None, alias="jointNe")
    joint_reference: str | None = Field(None, alias="jointReference")
    observations: str | None = None
    documents: list[WorksheetDocument] = Field(default_factory=list)
    required_permits: list[RequiredPermit] = Field(default_factory=list, alias="requiredPermits")
    created_by: str | None = Field(None, alias="createdBy")
    created_at: datetime | None = Field(None, alias="createdAt")

    @field_validator("ne")
    @classmethod
    def _normalize_ne(cls, value: str) -> str:
        value = value.strip().upper()
        if not value:
            raise ValueError("el NE es requerido")
        return value


class PaymentRequest(_Record):
    """Solicitud de cheque vinculada al caso por ``examNe``."""

    id: str | None = None
    exam_ne: str = Field(alias="examNe")
    payment_status: str | None = Field(None, alias="paymentStatus")

    @property
    def is_paid(self) -> bool:
        return (self.payment_status or "").strip() == PAYMENT_PAID


class ExamenPrevio(_Record):
    ne: str | None = None
    status: str | None = None

    @property
    def is_complete(self) -> bool:
        return self.status == EXAM_COMPLETE


class IncidentReport(_Record):
    """Datos de la solicitud de rectificación reportada sobre un caso."""

    motivo_rectificacion: str = Field(alias="motivoRectificacion", min_length=1)
    incident_type: Literal["Rectificacion"] | None = Field(RECTIFICACION, alias="incidentType")
    recibo_de_caja_pago_inicial: str | None = Field(None, alias="reciboDeCajaPagoInicial")
    pago_inicial_realizado: bool = Field(False, alias="pagoInicialRealizado")
    no_liquidacion: str | None = Field(None, alias="noLiquidacion")
    observaciones: str | None = None
    has_value_doubt: bool = Field(False, alias="hasValueDoubt")

    @field_validator("motivo_rectificacion")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("el motivo de rectificación es requerido")
        return value


class Product(_Record):
    """Producto registrado durante un examen previo."""

    id: str
    item_number: str | None = Field(None, alias="itemNumber")
    weight: str | None = None
    description: str | None = None
    brand: str | None = None
    model: str | None = None
    unit_measure: str | None = Field(None, alias="unitMeasure")
    serial: str | None = None
    origin: str | None = None
    number_packages: str | None = Field(None, alias="numberPackages")
    quantity_packages: int | str | None = Field(None, alias="quantityPackages")
    quantity_units: int | str | None = Field(None, alias="quantityUnits")
    packaging_condition: str | None = Field(None, alias="packagingCondition")
    observation: str | None = None
    is_conform: bool = Field(False, alias="isConform")
    is_excess: bool = Field(False, alias="isExcess")
    is_missing: bool = Field(False, alias="isMissing")
    is_fault: bool = Field(False, alias="isFault")


RecordT = TypeVar("RecordT", bound=_Record)


def parse_record(model: type[RecordT], data: Any) -> RecordT:
    """Valida un registro de colaborador. Traduce errores de pydantic a ValidationError."""
    if isinstance(data, model):
        return data
    try:
        return model.model_validate(data)
    except PydanticValidationError as e:
        first = e.errors()[0]
        loc = ".".join(str(part) for part in first.get("loc", ())) or model.__name__
        raise ValidationError(loc, first.get("msg", str(e))) from e

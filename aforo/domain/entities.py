"""Entidades de dominio del ciclo de vida de un caso de aforo."""

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from aforo.domain.value_objects import LastUpdate


class AforadorStatus(Enum):
    """Estado del trabajo del aforador."""

    PENDIENTE = "Pendiente"
    PENDIENTE_POR_COMPLETAR = "Pendiente por completar"  # variante inicial de hojas antiguas
    EN_PROCESO = "En proceso"
    INCOMPLETO = "Incompleto"  # requiere motivo en aforadorComment
    LISTO_PARA_REVISION = "Listo para revisión"
    EN_REVISION = "En revisión"

    @property
    def is_initial(self) -> bool:
        return self in (AforadorStatus.PENDIENTE, AforadorStatus.PENDIENTE_POR_COMPLETAR)


class RevisorStatus(Enum):
    """Estado de la revisión del agente aduanero."""

    PENDIENTE = "Pendiente"
    APROBADO = "Aprobado"
    RECHAZADO = "Rechazado"  # requiere motivo en observacionRevisor
    REVALIDACION_SOLICITADA = "Revalidación Solicitada"

    @property
    def is_initial(self) -> bool:
        return self is RevisorStatus.PENDIENTE


class PreliquidationStatus(Enum):
    PENDIENTE = "Pendiente"
    APROBADA = "Aprobada"

    @property
    def is_initial(self) -> bool:
        return self is PreliquidationStatus.PENDIENTE


class DigitacionStatus(Enum):
    """Estado de la digitación. Salir de PENDIENTE es el traspaso a digitación."""

    PENDIENTE = "Pendiente"
    PENDIENTE_DE_DIGITACION = "Pendiente de Digitación"
    EN_PROCESO = "En Proceso"
    ALMACENADO = "Almacenado"
    COMPLETAR_TRAMITE = "Completar Trámite"
    TRAMITE_COMPLETO = "Trámite Completo"

    @property
    def is_initial(self) -> bool:
        return self is DigitacionStatus.PENDIENTE


class ReviewDecision(Enum):
    """Estado de las vías secundarias (incidencia, duda de valor). Terminal una vez resuelto."""

    PENDIENTE = "Pendiente"
    APROBADA = "Aprobada"
    RECHAZADA = "Rechazada"

    @property
    def is_initial(self) -> bool:
        return self is ReviewDecision.PENDIENTE


RECTIFICACION = "Rectificacion"


@dataclass(frozen=True, kw_only=True)
class AforoCase:
    """
    Raíz del agregado: un caso de aforo identificado por su NE.

    Inmutable: cada transición produce una nueva instancia con ``replace``.
    ``provenance`` guarda el ``<campo>LastUpdate`` de cada campo con procedencia.
    """

    # === Identidad ===
    ne: str

    # === Datos de la hoja de trabajo ===
    executive: str = ""
    consignee: str = ""
    merchandise: str = ""
    worksheet_id: Optional[str] = None
    created_by: str = ""
    created_at: Optional[datetime] = None

    # === Aforo ===
    declaration_pattern: str = ""
    is_pattern_validated: bool = False
    aforador: str = ""
    assignment_date: Optional[datetime] = None
    aforador_status: AforadorStatus = AforadorStatus.PENDIENTE
    aforador_comment: Optional[str] = None
    total_posiciones: Optional[int] = None
    entregado_aforo_at: Optional[datetime] = None

    # === Revisión ===
    revisor_asignado: str = ""
    revisor_status: RevisorStatus = RevisorStatus.PENDIENTE
    observacion_revisor: Optional[str] = None

    # === Preliquidación ===
    preliquidation_status: PreliquidationStatus = PreliquidationStatus.PENDIENTE

    # === Digitación ===
    digitacion_status: DigitacionStatus = DigitacionStatus.PENDIENTE
    digitador_asignado: str = ""
    digitador_asignado_at: Optional[datetime] = None
    digitacion_comment: Optional[str] = None
    declaracion_aduanera: Optional[str] = None

    # === Incidencia (rectificación) ===
    incident_reported: bool = False
    incident_type: Optional[str] = None
    incident_status: ReviewDecision = ReviewDecision.PENDIENTE
    incident_reported_by: Optional[str] = None
    incident_reported_at: Optional[datetime] = None
    incident_reviewed_by: Optional[str] = None
    incident_reviewed_at: Optional[datetime] = None
    motivo_rectificacion: Optional[str] = None
    recibo_de_caja_pago_inicial: Optional[str] = None
    pago_inicial_realizado: bool = False
    no_liquidacion: Optional[str] = None
    observaciones: Optional[str] = None
    observaciones_contabilidad: Optional[str] = None

    # === Duda de valor ===
    has_value_doubt: bool = False
    value_doubt_status: ReviewDecision = ReviewDecision.PENDIENTE

    # === Procedencia por campo ===
    provenance: dict[str, LastUpdate] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not self.ne or not self.ne.strip():
            raise ValueError("ne no puede estar vacío")
        if self.ne != self.ne.strip().upper():
            raise ValueError(f"ne debe estar normalizado en mayúsculas: {self.ne!r}")
        if self.total_posiciones is not None and self.total_posiciones < 0:
            raise ValueError(f"total_posiciones no puede ser negativo: {self.total_posiciones}")

    @property
    def case_id(self) -> str:
        return self.ne

    @property
    def is_handed_to_digitization(self) -> bool:
        return not self.digitacion_status.is_initial

    def last_update(self, field_name: str) -> Optional[LastUpdate]:
        return self.provenance.get(field_name)

    def with_changes(self, **changes: Any) -> "AforoCase":
        """Retorna copia con los atributos indicados actualizados."""
        return replace(self, **changes)


@dataclass(frozen=True, kw_only=True)
class AuditEntry:
    """
    Entrada inmutable de la bitácora (sub-colección ``actualizaciones``).

    ``field`` es el nombre del campo tal como se almacena, o una etiqueta de
    evento: 'creation', 'status_change', 'incident_report', 'document_update'.
    """

    updated_at: datetime
    updated_by: str
    field: str
    old_value: Any = None
    new_value: Any = None
    comment: Optional[str] = None
    entry_id: Optional[str] = None
    seq: int = 0  # orden dentro del lote; las entradas de un lote comparten updated_at

    def __post_init__(self) -> None:
        if not self.field:
            raise ValueError("field no puede estar vacío")
        if not self.updated_by:
            raise ValueError("updated_by no puede estar vacío")

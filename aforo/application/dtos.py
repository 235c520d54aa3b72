from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

from aforo.domain.entities import AforoCase, AuditEntry


@dataclass(frozen=True)
class FieldChange:
    """Un cambio a registrar en la bitácora: una entrada por tupla."""

    field: str
    old_value: Any
    new_value: Any
    comment: Optional[str] = None


@dataclass
class ChangeResult:
    case_id: str
    applied: bool  # False = no-op (el valor ya era el solicitado)
    case: AforoCase
    entries: list[AuditEntry] = field(default_factory=list)
    committed_at: Optional[datetime] = None

    @property
    def entry_count(self) -> int:
        return len(self.entries)


@dataclass(frozen=True)
class StatusBadges:
    """
    Indicadores derivados de un caso. None significa que la vía no aplica
    y no se muestra; False significa que aplica y está pendiente.
    """

    permits: Optional[bool] = None
    payments: Optional[bool] = None
    incident: Optional[bool] = None
    value_doubt: Optional[bool] = None
    previo: Optional[bool] = None

    def visible(self) -> dict[str, bool]:
        return {
            name: value
            for name, value in (
                ("permits", self.permits),
                ("payments", self.payments),
                ("incident", self.incident),
                ("value_doubt", self.value_doubt),
                ("previo", self.previo),
            )
            if value is not None
        }

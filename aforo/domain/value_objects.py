"""Value objects del dominio."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class Role(Enum):
    """Roles operativos del portal."""

    ADMIN = "admin"
    COORDINADORA = "coordinadora"
    SUPERVISOR = "supervisor"
    EJECUTIVO = "ejecutivo"
    AFORADOR = "aforador"
    AGENTE = "agente"  # agente aduanero / revisor
    DIGITADOR = "digitador"
    CONTABILIDAD = "contabilidad"


@dataclass(frozen=True)
class Actor:
    """Identidad entregada por el proveedor de roles para la operación en curso."""

    actor_id: str
    display_name: str
    role: Role

    def __post_init__(self) -> None:
        if not self.display_name or not self.display_name.strip():
            raise ValueError("display_name no puede estar vacío")
        if not isinstance(self.role, Role):
            try:
                object.__setattr__(self, "role", Role(self.role))
            except ValueError as e:
                raise ValueError(f"Rol desconocido: {self.role}") from e


@dataclass(frozen=True)
class LastUpdate:
    """Procedencia de la última modificación de un campo: quién y cuándo."""

    by: str
    at: datetime

    def to_dict(self) -> dict:
        return {"by": self.by, "at": self.at}

"""Tabla de permisos por (rol, acción), consultada por el guard antes de cualquier escritura."""

from __future__ import annotations

from enum import Enum
from typing import Any, Final

from aforo.domain.entities import AforoCase, RevisorStatus
from aforo.domain.exceptions import AuthorizationError
from aforo.domain.value_objects import Actor, Role


class Action(Enum):
    CREATE_CASE = "create_case"
    MANAGE_DOCUMENTS = "manage_documents"
    ASSIGN_AFORADOR = "assign_aforador"
    ASSIGN_REVISOR = "assign_revisor"
    ASSIGN_DIGITADOR = "assign_digitador"
    EDIT_CASE_DATA = "edit_case_data"
    UPDATE_AFORADOR_STATUS = "update_aforador_status"
    VALIDATE_PATTERN = "validate_pattern"
    REVIEW = "review"
    UPDATE_PRELIQUIDATION = "update_preliquidation"
    HANDOFF_DIGITIZATION = "handoff_digitization"
    UPDATE_DIGITIZATION = "update_digitization"
    REPORT_INCIDENT = "report_incident"
    RESOLVE_INCIDENT = "resolve_incident"
    RESOLVE_VALUE_DOUBT = "resolve_value_doubt"
    REQUEST_REVALIDATION = "request_revalidation"
    EDIT_ACCOUNTING_NOTES = "edit_accounting_notes"


_C, _S = Role.COORDINADORA, Role.SUPERVISOR

PERMISSIONS: Final[dict[Action, frozenset[Role]]] = {
    Action.CREATE_CASE: frozenset({Role.EJECUTIVO, _C}),
    Action.MANAGE_DOCUMENTS: frozenset({Role.EJECUTIVO, _C}),
    Action.ASSIGN_AFORADOR: frozenset({_C, _S}),
    Action.ASSIGN_REVISOR: frozenset({_C, _S}),
    Action.ASSIGN_DIGITADOR: frozenset({_C, _S, Role.DIGITADOR}),
    Action.EDIT_CASE_DATA: frozenset({_C, _S, Role.AFORADOR}),
    Action.UPDATE_AFORADOR_STATUS: frozenset({_C, _S, Role.AFORADOR}),
    Action.VALIDATE_PATTERN: frozenset({Role.AGENTE, _C, _S}),
    Action.REVIEW: frozenset({Role.AGENTE}),
    Action.UPDATE_PRELIQUIDATION: frozenset({Role.AGENTE, Role.CONTABILIDAD}),
    Action.HANDOFF_DIGITIZATION: frozenset({_C, _S}),
    Action.UPDATE_DIGITIZATION: frozenset({_C, Role.DIGITADOR}),
    Action.REPORT_INCIDENT: frozenset({Role.EJECUTIVO, _C, _S, Role.AFORADOR}),
    Action.RESOLVE_INCIDENT: frozenset({Role.AGENTE}),
    Action.RESOLVE_VALUE_DOUBT: frozenset({Role.AGENTE}),
    Action.REQUEST_REVALIDATION: frozenset({Role.AFORADOR}),
    Action.EDIT_ACCOUNTING_NOTES: frozenset({Role.CONTABILIDAD}),
}

# Acciones que el aforador solo puede ejecutar sobre el caso que tiene asignado.
OWN_CASE_ACTIONS: Final[frozenset[Action]] = frozenset(
    {
        Action.EDIT_CASE_DATA,
        Action.UPDATE_AFORADOR_STATUS,
        Action.REPORT_INCIDENT,
        Action.REQUEST_REVALIDATION,
    }
)

_FIELD_ACTIONS: Final[dict[str, Action]] = {
    "aforador": Action.ASSIGN_AFORADOR,
    "revisorAsignado": Action.ASSIGN_REVISOR,
    "digitadorAsignado": Action.ASSIGN_DIGITADOR,
    "merchandise": Action.EDIT_CASE_DATA,
    "declarationPattern": Action.EDIT_CASE_DATA,
    "totalPosiciones": Action.EDIT_CASE_DATA,
    "observaciones": Action.EDIT_CASE_DATA,
    "aforadorStatus": Action.UPDATE_AFORADOR_STATUS,
    "aforadorComment": Action.UPDATE_AFORADOR_STATUS,
    "isPatternValidated": Action.VALIDATE_PATTERN,
    "revisorStatus": Action.REVIEW,
    "observacionRevisor": Action.REVIEW,
    "preliquidationStatus": Action.UPDATE_PRELIQUIDATION,
    "digitacionStatus": Action.UPDATE_DIGITIZATION,
    "digitacionComment": Action.UPDATE_DIGITIZATION,
    "declaracionAduanera": Action.UPDATE_DIGITIZATION,
    "incidentStatus": Action.RESOLVE_INCIDENT,
    "valueDoubtStatus": Action.RESOLVE_VALUE_DOUBT,
    "observacionesContabilidad": Action.EDIT_ACCOUNTING_NOTES,
}


def action_for(field_name: str, new_value: Any, case: AforoCase) -> Action:
    """Acción requerida para escribir ``field_name``. Algunas dependen del valor destino."""
    if field_name == "revisorStatus" and new_value is RevisorStatus.REVALIDACION_SOLICITADA:
        return Action.REQUEST_REVALIDATION
    if field_name == "digitacionStatus" and case.digitacion_status.is_initial:
        return Action.HANDOFF_DIGITIZATION
    return _FIELD_ACTIONS[field_name]


def can(actor: Actor, action: Action, case: AforoCase | None = None) -> bool:
    if actor.role is Role.ADMIN:
        return True
    if actor.role not in PERMISSIONS[action]:
        return False
    if actor.role is Role.AFORADOR and action in OWN_CASE_ACTIONS:
        return case is not None and case.aforador == actor.display_name
    return True


def require(actor: Actor, action: Action, case: AforoCase | None = None) -> None:
    if not can(actor, action, case):
        raise AuthorizationError(actor.role.value, action.value)

"""Excepciones de negocio del ciclo de vida de casos de aforo."""


class AforoError(Exception):
    """Base para errores del ciclo de vida de casos."""


class NotFoundError(AforoError):
    """El caso (o documento vinculado) no existe."""

    def __init__(self, case_id: str, what: str = "Caso") -> None:
        self.case_id = case_id
        self.what = what
        super().__init__(f"{what} no encontrado: {case_id}")


class PreconditionError(AforoError):
    """Transición intentada fuera de orden. El motivo se muestra al usuario."""

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(reason)


class AuthorizationError(PreconditionError):
    """El rol del actor no tiene permiso para la acción solicitada."""

    def __init__(self, role: str, action: str) -> None:
        self.role = role
        self.action = action
        super().__init__(f"El rol '{role}' no tiene permiso para '{action}'")


class DuplicateCaseError(PreconditionError):
    """Ya existe una hoja de trabajo o caso con el mismo NE."""

    def __init__(self, ne: str) -> None:
        self.ne = ne
        super().__init__(f"Ya existe un registro (hoja de trabajo o caso de aforo) con el NE {ne}")


class WriteError(AforoError):
    """Falló el commit atómico. Es seguro reintentar: no queda estado parcial."""

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(f"No se pudo confirmar la escritura: {reason}")


class ValidationError(AforoError):
    """Valor de entrada mal formado (variante de enum inválida, número negativo, etc.)."""

    def __init__(self, field: str, reason: str) -> None:
        self.field = field
        self.reason = reason
        super().__init__(f"Valor inválido para '{field}': {reason}")

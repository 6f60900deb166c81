"""
Domain error taxonomy.

Services detect and classify their own failures and raise one of these.
The FastAPI app maps each kind to an HTTP status in a single handler
(see main.py), so routers never build HTTP errors for business rules.
"""
from fastapi import status


class DomainError(Exception):
    """Base class for classified failures. `kind` is stable across releases."""

    kind = "Internal"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "Error interno"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {"kind": self.kind, "message": self.message}


class InvalidInput(DomainError):
    kind = "InvalidInput"
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Datos inválidos"


class Unauthenticated(DomainError):
    kind = "Unauthenticated"
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Unauthorized"


class TokenExpired(Unauthenticated):
    kind = "Expired"
    default_message = "Token expirado"


class TokenMalformed(Unauthenticated):
    kind = "Malformed"
    default_message = "Token inválido"


class Forbidden(DomainError):
    kind = "Forbidden"
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Forbidden"


class NotFound(DomainError):
    kind = "NotFound"
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "No encontrado"


class Conflict(DomainError):
    kind = "Conflict"
    status_code = status.HTTP_409_CONFLICT
    default_message = "Dato duplicado"


class InvalidState(DomainError):
    kind = "InvalidState"
    status_code = status.HTTP_409_CONFLICT
    default_message = "Operación no permitida en el estado actual"


class CapacityFull(DomainError):
    kind = "Full"
    status_code = status.HTTP_409_CONFLICT
    default_message = "No hay cupos disponibles"


class InternalError(DomainError):
    pass

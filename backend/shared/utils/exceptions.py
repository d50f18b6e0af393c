"""
Centralized exceptions for consistent error handling.

Domain operations raise these directly; the HTTP layer turns them into
responses because they are HTTPException subclasses. Messages are short,
user-facing and in Spanish.

Usage:
    from shared.utils.exceptions import NotFoundError, EmptyOrderError

    raise NotFoundError("Mesa", table_id)
    raise EmptyOrderError("guardar")
"""

from fastapi import HTTPException, status
from typing import Any

from shared.config.logging import get_logger

logger = get_logger(__name__)


class AppException(HTTPException):
    """
    Base exception with automatic logging.

    All custom exceptions should inherit from this class
    to ensure consistent logging and response format.
    """

    def __init__(
        self,
        status_code: int,
        detail: str,
        log_level: str = "warning",
        headers: dict[str, str] | None = None,
        **log_context: Any,
    ):
        log_fn = getattr(logger, log_level, logger.warning)
        log_fn(detail, status_code=status_code, **log_context)

        super().__init__(status_code=status_code, detail=detail, headers=headers)

    @property
    def message(self) -> str:
        """User-facing message."""
        return str(self.detail)


# =============================================================================
# 404 Not Found Errors
# =============================================================================


class NotFoundError(AppException):
    """
    Entity not found error (404).

    Usage:
        raise NotFoundError("Orden", order_id)
    """

    def __init__(self, entity: str, entity_id: str | None = None, **log_context: Any):
        if entity_id is not None:
            detail = f"{entity} con ID {entity_id} no encontrado"
        else:
            detail = f"{entity} no encontrado"

        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=detail,
            log_level="warning",
            entity=entity,
            entity_id=entity_id,
            **log_context,
        )


class OrderNotFoundError(NotFoundError):
    """Order not found (neither draft nor persisted)."""

    def __init__(self, order_id: str | None = None, **log_context: Any):
        super().__init__("Orden", order_id, **log_context)


# =============================================================================
# 401 / 403 Errors
# =============================================================================


class UnauthorizedError(AppException):
    """No authenticated user (401)."""

    def __init__(self, detail: str = "Inicia sesión para continuar", **log_context: Any):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            log_level="info",
            **log_context,
        )


class ForbiddenError(AppException):
    """
    Authorization/permission error (403).

    Usage:
        raise ForbiddenError("gestionar inventario")
    """

    def __init__(self, action: str | None = None, **log_context: Any):
        if action:
            detail = f"No autorizado para {action}"
        else:
            detail = "Acceso denegado"

        super().__init__(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=detail,
            log_level="warning",
            action=action,
            **log_context,
        )


class MissingCapabilityError(ForbiddenError):
    """The current role lacks the required capability."""

    def __init__(self, capability: str, **log_context: Any):
        super().__init__(
            f"esta acción (requiere permiso: {capability})",
            capability=capability,
            **log_context,
        )


# =============================================================================
# 400 Bad Request Errors
# =============================================================================


class ValidationError(AppException):
    """
    Input validation error (400).

    Usage:
        raise ValidationError("La cantidad debe ser positiva", field="quantity")
    """

    def __init__(self, detail: str, **log_context: Any):
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=detail,
            log_level="warning",
            **log_context,
        )


class EmptyOrderError(ValidationError):
    """An order without items cannot be saved or charged."""

    def __init__(self, action: str = "guardar", **log_context: Any):
        verb = "cobrar" if action == "cobrar" else "guardar"
        super().__init__(f"Añade productos para {verb} la orden", action=action, **log_context)


class GlobalSiteError(ValidationError):
    """Operational entities require a concrete site."""

    def __init__(self, action: str = "crear una orden", **log_context: Any):
        super().__init__(f"Selecciona una sede específica para {action}.", action=action, **log_context)


class InvalidTransitionError(ValidationError):
    """Invalid status transition."""

    def __init__(self, entity: str, from_status: str, to_status: str, **log_context: Any):
        detail = f"Transición inválida de '{from_status}' a '{to_status}' para {entity}"
        super().__init__(detail, entity=entity, from_status=from_status, to_status=to_status, **log_context)


class InvalidOptionError(ValidationError):
    """An item option selection does not match the menu item's flags or limits."""

    def __init__(self, detail: str, **log_context: Any):
        super().__init__(detail, **log_context)


class ZoneInUseError(ValidationError):
    """Zone still has tables."""

    def __init__(self, zone_id: str, table_count: int, **log_context: Any):
        super().__init__(
            "No se puede eliminar un salón con mesas.",
            zone_id=zone_id,
            table_count=table_count,
            **log_context,
        )


class LastEntityError(ValidationError):
    """Refuse to delete the last user, role or site."""

    def __init__(self, entity: str, **log_context: Any):
        super().__init__(f"No puedes eliminar {entity}.", entity=entity, **log_context)


class DuplicateEntityError(ValidationError):
    """Entity already exists."""

    def __init__(self, entity: str, identifier: str | None = None, **log_context: Any):
        if identifier:
            detail = f"{entity} '{identifier}' ya existe"
        else:
            detail = f"{entity} ya existe"

        super().__init__(detail, entity=entity, identifier=identifier, **log_context)


# =============================================================================
# 409 Conflict Errors
# =============================================================================


class ConflictError(AppException):
    """
    Resource conflict error (409).

    Usage:
        raise ConflictError("La mesa ya tiene una orden abierta")
    """

    def __init__(self, detail: str, **log_context: Any):
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            detail=detail,
            log_level="warning",
            **log_context,
        )


class TableOccupiedError(ConflictError):
    """Another active dine-in order already holds the table."""

    def __init__(self, table_id: str, order_id: str, **log_context: Any):
        super().__init__(
            "La mesa ya tiene una orden abierta",
            table_id=table_id,
            order_id=order_id,
            **log_context,
        )


# =============================================================================
# Internal (never surfaced to HTTP)
# =============================================================================


class TransportError(Exception):
    """
    The remote store could not be reached or refused the connection.

    Raised by the remote store, handled inside the persistence gateway
    which degrades to offline mode.
    """

    def __init__(self, operation: str, table: str | None = None, cause: Exception | None = None):
        self.operation = operation
        self.table = table
        self.cause = cause
        msg = f"Remote store unavailable during {operation}"
        if table:
            msg += f" on {table}"
        super().__init__(msg)

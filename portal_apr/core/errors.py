"""
Domain errors for Portal APR.

Services raise these exceptions; the FastAPI exception handlers translate them
into JSON responses with the matching HTTP status code. Messages are user
facing and written in Spanish like the rest of the portal.
"""

from __future__ import annotations

from typing import Any, Optional


class PortalError(Exception):
    """Base class for every expected business error."""

    status_code: int = 400
    error_code: str = "portal_error"

    def __init__(self, message: str, *, details: Optional[dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}


class NotFoundError(PortalError):
    status_code = 404
    error_code = "not_found"


class ValidationFailedError(PortalError):
    status_code = 400
    error_code = "validation_failed"


class ConflictError(PortalError):
    status_code = 409
    error_code = "conflict"


class AuthenticationError(PortalError):
    status_code = 401
    error_code = "authentication_failed"


class PermissionDeniedError(PortalError):
    status_code = 403
    error_code = "permission_denied"


class ImmutableBoletaError(ConflictError):
    """Raised when a paid boleta would change state."""

    error_code = "boleta_immutable"


class NoActiveTarifaError(ConflictError):
    error_code = "no_active_tarifa"

    def __init__(self, message: str = "No hay tarifa activa configurada", **kwargs: Any) -> None:
        super().__init__(message, **kwargs)


class PaymentGatewayError(PortalError):
    """An outbound call to a payment provider failed or returned an error."""

    status_code = 502
    error_code = "payment_gateway_error"

    def __init__(self, gateway: str, message: str, *, details: Optional[dict[str, Any]] = None) -> None:
        super().__init__(f"{gateway}: {message}", details=details)
        self.gateway = gateway

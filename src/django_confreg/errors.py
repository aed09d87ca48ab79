"""API error taxonomy for django-confreg.

Services raise these exceptions; :func:`django_confreg.api.json_view` turns
them into JSON responses of the form::

    {"success": false, "code": "SOLD_OUT", "error": "This ticket is sold out"}
"""

from typing import Any


class ApiError(Exception):
    """Base class for errors that map onto an HTTP response.

    Attributes:
        status: HTTP status code for the response.
        code: Machine-readable error code.
        message: Human-readable description.
        details: Optional structured payload (e.g. field errors).
    """

    status: int = 500
    code: str = "INTERNAL_ERROR"

    def __init__(self, message: str, *, code: str | None = None, details: Any = None) -> None:
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        self.details = details

    def to_dict(self) -> dict[str, Any]:
        """Return the JSON body for this error."""
        body: dict[str, Any] = {"success": False, "code": self.code, "error": self.message}
        if self.details is not None:
            body["details"] = self.details
        return body


class ValidationFailed(ApiError):
    """Malformed or missing input."""

    status = 400
    code = "VALIDATION_ERROR"


class DomainRuleViolation(ApiError):
    """A business rule rejected an otherwise well-formed request."""

    status = 400
    code = "BAD_REQUEST"

    def __init__(self, code: str, message: str, *, details: Any = None) -> None:
        super().__init__(message, code=code, details=details)


class Unauthorized(ApiError):
    status = 401
    code = "AUTH_UNAUTHORIZED"


class Forbidden(ApiError):
    status = 403
    code = "FORBIDDEN"


class NotFound(ApiError):
    status = 404
    code = "NOT_FOUND"


class Conflict(ApiError):
    status = 409
    code = "CONFLICT"


class GatewayError(ApiError):
    """The payment gateway rejected or failed a request."""

    status = 502
    code = "PAYMENT_GATEWAY_ERROR"

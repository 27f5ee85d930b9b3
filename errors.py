"""
=============================================================================
ERRORS.PY — Domain errors
=============================================================================
The core never returns "something went wrong": it raises one of these
kinds and main.py turns it into an HTTP response in a single handler.

  NotFoundError      → 404  aggregate or sub-item does not exist
  ValidationError    → 400  schema / bounds / cap violation
  ConflictError      → 409  duplicate friend / request / participation
  UnauthorizedError  → 401  bad credentials or token
  ForbiddenError     → 403  caller lacks rights on the resource
  InvalidStateError  → 400  operation not allowed right now
                           (challenge outside its window, not a friend...)
"""

from typing import Optional


class ShukumaError(Exception):
    """Base class: carries the HTTP status and optional per-field errors"""
    status_code = 500
    kind = "error"

    def __init__(self, message: str, errors: Optional[list[dict]] = None):
        super().__init__(message)
        self.message = message
        self.errors = errors

    def to_dict(self) -> dict:
        body = {"detail": self.message, "type": self.kind}
        if self.errors:
            body["errors"] = self.errors
        return body


class NotFoundError(ShukumaError):
    status_code = 404
    kind = "not_found"

    def __init__(self, resource: str = "Resource"):
        super().__init__(f"{resource} not found")
        self.resource = resource


class ValidationError(ShukumaError):
    status_code = 400
    kind = "validation"

    def __init__(self, message: str = "Validation failed", errors: Optional[list[dict]] = None):
        super().__init__(message, errors)

    @classmethod
    def from_pydantic(cls, exc) -> "ValidationError":
        """Builds our error from a pydantic.ValidationError"""
        errors = [
            {
                "field": ".".join(str(p) for p in err.get("loc", ())),
                "message": err.get("msg", "Invalid value"),
            }
            for err in exc.errors()
        ]
        return cls("Validation failed", errors)


class ConflictError(ShukumaError):
    status_code = 409
    kind = "conflict"

    def __init__(self, message: str = "Resource already exists"):
        super().__init__(message)


class UnauthorizedError(ShukumaError):
    status_code = 401
    kind = "unauthorized"

    def __init__(self, message: str = "Unauthorized access"):
        super().__init__(message)


class ForbiddenError(ShukumaError):
    status_code = 403
    kind = "forbidden"

    def __init__(self, message: str = "Access forbidden"):
        super().__init__(message)


class InvalidStateError(ShukumaError):
    status_code = 400
    kind = "invalid_state"

"""Error taxonomy shared by services, repositories and controllers.

Every error carries a user-facing `message` and the HTTP `status_code`
the JSON API answers with. `StoreError` is the only one treated as
unrecoverable for the current request.
"""

from typing import Any, List, Optional


class DashboardError(Exception):
    """Base class for all expected dashboard failures."""
    status_code = 400
    code = "error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(DashboardError):
    """Malformed input against a schema."""
    status_code = 422
    code = "validation_error"

    def __init__(self, message: str, errors: Optional[List[Any]] = None):
        super().__init__(message)
        self.errors = errors or []

    @classmethod
    def from_pydantic(cls, exc) -> "ValidationError":
        """Wrap a pydantic `ValidationError` keeping its error list."""
        details = exc.errors(include_url=False, include_context=False, include_input=False)
        parts = []
        for err in details:
            loc = ".".join(str(p) for p in err.get("loc", ()) if p != "__root__")
            parts.append(f"{loc}: {err.get('msg')}" if loc else str(err.get("msg")))
        return cls("; ".join(parts) or "invalid input", errors=details)


class DuplicateNameError(DashboardError):
    """Uniqueness violation on create/update."""
    status_code = 409
    code = "duplicate_name"


class NotFoundError(DashboardError):
    """Operation targets a missing entity."""
    status_code = 404
    code = "not_found"


class StoreError(DashboardError):
    """Underlying persistence or directory failure."""
    status_code = 500
    code = "store_error"

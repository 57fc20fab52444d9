"""
Typed exception hierarchy for the payment dashboard.

Services raise these instead of HTTPException so the same rules can be
exercised from tests, background jobs and the HTTP layer. Every exception
carries a machine-readable ``code`` and the HTTP status the API maps it to
(see ``main.dashboard_error_handler``).

    DashboardError
    |
    +-- AuthError                 401  credentials / session problems
    |   +-- NotAuthenticated           no resolved principal (fail-closed)
    |
    +-- QueryError                400  rejected by the backend, not retried
    |   +-- PermissionDenied      403
    |   +-- NotFoundError         404
    |   +-- InvalidTransitionError 409
    |   +-- ValidationFailed      422
    |
    +-- StorageError              502  blob store failure
    |   +-- UploadError                upload could not be completed
    |
    +-- TransientError            503  timeout / network, safe to retry
"""


class DashboardError(Exception):
    """Base class for all domain errors."""

    code: str = "DASHBOARD_ERROR"
    status_code: int = 500

    def __init__(self, message: str | None = None):
        self.message = message or self.__class__.__doc__ or self.code
        super().__init__(self.message)


class AuthError(DashboardError):
    """Invalid credentials or expired session."""

    code = "AUTH_ERROR"
    status_code = 401


class NotAuthenticated(AuthError):
    """No authenticated principal."""

    code = "NOT_AUTHENTICATED"


class QueryError(DashboardError):
    """The request was rejected by the data layer."""

    code = "QUERY_ERROR"
    status_code = 400


class PermissionDenied(QueryError):
    """The caller's role does not allow this action."""

    code = "PERMISSION_DENIED"
    status_code = 403


class NotFoundError(QueryError):
    """Record not found or not visible to the caller."""

    code = "NOT_FOUND"
    status_code = 404

    def __init__(self, entity: str = "Record"):
        self.entity = entity
        super().__init__(f"{entity} not found")


class InvalidTransitionError(QueryError):
    """Status transition is not allowed."""

    code = "INVALID_TRANSITION"
    status_code = 409

    def __init__(self, entity: str, current: str, target: str):
        self.entity = entity
        self.current = current
        self.target = target
        super().__init__(f"{entity} cannot move from {current} to {target}")


class ValidationFailed(QueryError):
    """Input violates a domain rule."""

    code = "VALIDATION_FAILED"
    status_code = 422


class StorageError(DashboardError):
    """Blob store operation failed."""

    code = "STORAGE_ERROR"
    status_code = 502


class UploadError(StorageError):
    """Upload could not be completed."""

    code = "UPLOAD_ERROR"

    def __init__(self, message: str, orphaned_path: str | None = None):
        self.orphaned_path = orphaned_path
        super().__init__(message)


class TransientError(DashboardError):
    """Network or timeout failure, safe to retry."""

    code = "TRANSIENT_ERROR"
    status_code = 503

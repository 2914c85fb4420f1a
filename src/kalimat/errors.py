"""Exception hierarchy shared by the store, services and HTTP layer."""


class KalimatError(Exception):
    """Base class for all kalimat errors."""

    pass


class FilterError(KalimatError):
    """Raised when a filter condition cannot be translated."""

    def __init__(self, column: str, detail: str):
        self.column = column
        super().__init__(f"Invalid condition on '{column}': {detail}")


class StoreError(KalimatError):
    """Raised when a backend call fails."""

    def __init__(self, table: str, operation: str, detail: str):
        self.table = table
        self.operation = operation
        super().__init__(f"{operation} on '{table}' failed: {detail}")


class EntityNotFoundError(KalimatError):
    """Raised when a record does not exist."""

    def __init__(self, entity: str, record_id: object):
        self.entity = entity
        self.record_id = record_id
        super().__init__(f"{entity} '{record_id}' not found")


class AuthError(KalimatError):
    """Raised when the bearer token is missing or invalid."""

    pass


class PermissionDeniedError(KalimatError):
    """Raised when the caller lacks the required role."""

    pass


class ValidationError(KalimatError):
    """Raised when client input is invalid."""

    pass


class ConflictError(KalimatError):
    """Raised when an operation conflicts with existing state."""

    def __init__(self, message: str, payload: dict | None = None):
        self.payload = payload or {}
        super().__init__(message)


class QuranApiError(KalimatError):
    """Raised when a third-party Quran API call fails."""

    pass

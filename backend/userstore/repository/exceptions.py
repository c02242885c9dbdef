class UserStoreError(Exception):
    """Base exception for user store errors."""

    def __init__(self, message: str, operation: str | None = None):
        super().__init__(message)
        self.operation = operation


class UserStoreUnavailableError(UserStoreError):
    """Server unreachable or timed out."""

    pass


class UserStoreOperationError(UserStoreError):
    """Server rejected the operation."""

    pass


class InvalidFieldNameError(UserStoreError, ValueError):
    """Field name cannot be used in a filter or update."""

    pass


class InvalidUserIdError(UserStoreError, ValueError):
    """Value is not a usable document id."""

    pass


class InvalidFieldValueError(UserStoreError, ValueError):
    """Value does not fit the declared type of a User field."""

    pass

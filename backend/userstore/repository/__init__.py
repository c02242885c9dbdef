from .client import UsersRepository
from .config import RepositoryConfig
from .exceptions import (
    InvalidFieldNameError,
    InvalidFieldValueError,
    InvalidUserIdError,
    UserStoreError,
    UserStoreOperationError,
    UserStoreUnavailableError,
)
from .models import EMPTY_OBJECT_ID, User

__all__ = [
    "UsersRepository",
    "RepositoryConfig",
    "UserStoreError",
    "UserStoreOperationError",
    "UserStoreUnavailableError",
    "InvalidFieldNameError",
    "InvalidFieldValueError",
    "InvalidUserIdError",
    "EMPTY_OBJECT_ID",
    "User",
]

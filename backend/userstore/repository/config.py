from typing import ClassVar

from pydantic import BaseModel


class RepositoryConfig(BaseModel):
    """Configuration for the users repository."""

    DATABASE_NAME: ClassVar[str] = "users_db"
    COLLECTION_NAME: ClassVar[str] = "users"

    ping_timeout_seconds: float = 5.0
    server_selection_timeout_ms: int = 5000
    app_name: str = "userstore"

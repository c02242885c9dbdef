from __future__ import annotations

import asyncio
import logging
import math
import re
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

import bson
from bson import ObjectId
from bson.errors import InvalidDocument
from motor.motor_asyncio import AsyncIOMotorClient
from pydantic import ValidationError
from pymongo.errors import ConnectionFailure, PyMongoError

from .config import RepositoryConfig
from .exceptions import (
    InvalidFieldNameError,
    InvalidFieldValueError,
    InvalidUserIdError,
    UserStoreOperationError,
    UserStoreUnavailableError,
)
from .models import User

logger = logging.getLogger(__name__)

_NUMBER_PATTERN = re.compile(r"-?\d+(\.\d+)?")
_INT64_MIN = -(2**63)
_INT64_MAX = 2**63 - 1


@contextmanager
def _translate_errors(operation: str) -> Iterator[None]:
    try:
        yield
    except ConnectionFailure as e:
        logger.error(f"{operation} failed, storage unavailable: {e}")
        raise UserStoreUnavailableError(
            f"Storage unavailable during {operation}: {e}", operation=operation
        ) from e
    except PyMongoError as e:
        logger.error(f"{operation} failed: {e}")
        raise UserStoreOperationError(
            f"{operation} failed: {e}", operation=operation
        ) from e


def _validate_field_name(field_name: Any) -> str:
    if not isinstance(field_name, str) or not field_name:
        raise InvalidFieldNameError(
            f"Field name must be a non-empty string, got {field_name!r}"
        )
    if "\x00" in field_name:
        raise InvalidFieldNameError("Field name must not contain NUL characters")
    for part in field_name.split("."):
        if not part:
            raise InvalidFieldNameError(f"Empty path segment in {field_name!r}")
        if part.startswith("$"):
            raise InvalidFieldNameError(f"Operator in field name {field_name!r}")
    return field_name


def _coerce_id(user_id: Any) -> ObjectId:
    if isinstance(user_id, ObjectId):
        return user_id
    if isinstance(user_id, str) and ObjectId.is_valid(user_id):
        return ObjectId(user_id)
    raise InvalidUserIdError(f"Invalid user id: {user_id!r}")


def _parse_number(value: str) -> int | float | None:
    """Parse a plain decimal string into a BSON-encodable number."""
    match = _NUMBER_PATTERN.fullmatch(value)
    if match is None:
        return None
    if match.group(1) is None:
        number = int(value)
        return number if _INT64_MIN <= number <= _INT64_MAX else None
    number = float(value)
    return number if math.isfinite(number) else None


def _to_users(documents: list[dict[str, Any]], operation: str) -> list[User]:
    try:
        return [User.from_document(doc) for doc in documents]
    except ValidationError as e:
        logger.error(f"{operation} read a document that is not a valid user: {e}")
        raise UserStoreOperationError(
            f"{operation} read a malformed user document: {e}", operation=operation
        ) from e


def _check_encodable(value: Any) -> None:
    try:
        bson.encode({"value": value})
    except (OverflowError, InvalidDocument) as e:
        raise InvalidFieldValueError(f"Value cannot be stored in MongoDB: {e}") from e


def _equality_filter(field_name: str, value: Any) -> dict[str, Any]:
    """Build an equality filter, letting numeric strings match numeric fields."""
    if field_name == "_id" and isinstance(value, str) and ObjectId.is_valid(value):
        return {"_id": ObjectId(value)}
    if isinstance(value, str):
        number = _parse_number(value)
        if number is not None:
            return {field_name: {"$in": [value, number]}}
        return {field_name: value}
    _check_encodable(value)
    return {field_name: value}


def sanitize_mongodb_url(url: str) -> str:
    """Hide password in MongoDB URL for safe logging."""
    if "@" not in url or "://" not in url:
        return url

    protocol, rest = url.split("://", 1)
    credentials, host = rest.rsplit("@", 1)
    if ":" in credentials:
        username = credentials.split(":", 1)[0]
        return f"{protocol}://{username}:***@{host}"
    return url


class UsersRepository:
    def __init__(
        self,
        connection_string: str,
        config: RepositoryConfig | None = None,
    ):
        self.config = config or RepositoryConfig()
        self.connection_string = connection_string

        # Motor connects lazily; nothing here touches the network.
        with _translate_errors("connect"):
            self._client: AsyncIOMotorClient = AsyncIOMotorClient(
                connection_string,
                serverSelectionTimeoutMS=self.config.server_selection_timeout_ms,
                appname=self.config.app_name,
            )
        self._admin = self._client.admin
        self._collection = self._client[RepositoryConfig.DATABASE_NAME][
            RepositoryConfig.COLLECTION_NAME
        ]

        logger.info(
            f"Initialized UsersRepository "
            f"(url={sanitize_mongodb_url(connection_string)}, "
            f"collection={RepositoryConfig.DATABASE_NAME}."
            f"{RepositoryConfig.COLLECTION_NAME})"
        )

    async def __aenter__(self) -> UsersRepository:
        return self

    async def __aexit__(
        self,
        exc_type: type | None,
        exc_val: Exception | None,
        exc_tb: Any,
    ) -> None:
        self.close()

    def close(self) -> None:
        self._client.close()
        logger.info("Closed UsersRepository")

    def describe(self) -> dict[str, str]:
        """Connection information with credentials masked."""
        return {
            "url": sanitize_mongodb_url(self.connection_string),
            "database": RepositoryConfig.DATABASE_NAME,
            "collection": RepositoryConfig.COLLECTION_NAME,
        }

    async def check_connection(self) -> bool:
        """Ping the server; report failure as ``False`` instead of raising."""
        try:
            await asyncio.wait_for(
                self._admin.command("ping"),
                timeout=self.config.ping_timeout_seconds,
            )
            return True
        except asyncio.TimeoutError:
            logger.warning(
                f"Ping timed out after {self.config.ping_timeout_seconds}s"
            )
            return False
        except PyMongoError as e:
            logger.warning(f"Ping failed: {e}")
            return False

    async def insert_user(self, user: User) -> None:
        document = user.to_document()
        _check_encodable(document)
        with _translate_errors("insert_user"):
            result = await self._collection.insert_one(document)
        user.id = result.inserted_id
        logger.debug(f"Inserted user {user.id}")

    async def get_all_users(self) -> list[User]:
        with _translate_errors("get_all_users"):
            documents = await self._collection.find({}).to_list(length=None)
        return _to_users(documents, "get_all_users")

    async def get_users_by_field(self, field_name: str, value: Any) -> list[User]:
        _validate_field_name(field_name)
        query = _equality_filter(field_name, value)

        with _translate_errors("get_users_by_field"):
            documents = await self._collection.find(query).to_list(length=None)
        return _to_users(documents, "get_users_by_field")

    async def get_users(self, skip: int, limit: int) -> list[User]:
        if skip < 0 or limit < 0:
            raise ValueError(f"skip and limit must be >= 0 (skip={skip}, limit={limit})")
        # limit(0) means "no limit" to the server
        if limit == 0:
            return []

        with _translate_errors("get_users"):
            cursor = self._collection.find({}).skip(skip).limit(limit)
            documents = await cursor.to_list(length=None)
        return _to_users(documents, "get_users")

    async def update_user(
        self, user_id: ObjectId | str | None, field_name: str, new_value: Any
    ) -> bool:
        _validate_field_name(field_name)
        if field_name in ("_id", "id"):
            raise InvalidFieldNameError(f"{field_name} cannot be updated")
        try:
            new_value = User.validate_field_value(field_name, new_value)
        except ValueError as e:
            raise InvalidFieldValueError(
                f"Invalid value for {field_name}: {e}", operation="update_user"
            ) from e
        _check_encodable(new_value)

        # An unset id (never inserted) cannot match a stored document
        if user_id is None:
            return False
        object_id = _coerce_id(user_id)

        with _translate_errors("update_user"):
            result = await self._collection.update_one(
                {"_id": object_id}, {"$set": {field_name: new_value}}
            )

        if result.modified_count != 1:
            logger.debug(f"update_user modified nothing for {object_id}")
            return False
        return True

    async def delete_user_by_id(self, user_id: ObjectId | str | None) -> bool:
        if user_id is None:
            return False
        object_id = _coerce_id(user_id)

        with _translate_errors("delete_user_by_id"):
            result = await self._collection.delete_one({"_id": object_id})
        return result.deleted_count == 1

    async def delete_all_users(self) -> int:
        with _translate_errors("delete_all_users"):
            result = await self._collection.delete_many({})
        logger.info(f"Deleted {result.deleted_count} users")
        return result.deleted_count

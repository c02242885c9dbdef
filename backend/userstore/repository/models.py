from __future__ import annotations

from typing import Any

from bson import ObjectId
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    TypeAdapter,
    field_serializer,
    field_validator,
)

# All-zero id; never assigned by the server.
EMPTY_OBJECT_ID = ObjectId("0" * 24)


class User(BaseModel):
    """A person record stored as one document in the users collection.

    Keys outside the declared fields are kept as extras so that fields added
    through ``UsersRepository.update_user`` survive a read.
    """

    model_config = ConfigDict(
        populate_by_name=True,
        arbitrary_types_allowed=True,
        extra="allow",
    )

    id: ObjectId | None = Field(default=None, alias="_id")
    name: str | None = None
    blog: str | None = None
    age: int = 0
    location: str | None = None

    @field_validator("id", mode="before")
    @classmethod
    def parse_id(cls, v: Any) -> ObjectId | None:
        if v is None or isinstance(v, ObjectId):
            return v
        if isinstance(v, str) and ObjectId.is_valid(v):
            return ObjectId(v)
        raise ValueError(f"not a valid ObjectId: {v!r}")

    @field_serializer("id", when_used="json")
    def serialize_id(self, v: ObjectId | None) -> str | None:
        return str(v) if v is not None else None

    @classmethod
    def from_document(cls, document: dict[str, Any]) -> User:
        return cls.model_validate(document)

    def to_document(self) -> dict[str, Any]:
        document = self.model_dump(by_alias=True)
        if document.get("_id") is None:
            document.pop("_id", None)
        return document

    @classmethod
    def validate_field_value(cls, field_name: str, value: Any) -> Any:
        """Check ``value`` against a declared field; undeclared fields pass through.

        Returns the validated value, e.g. ``"31"`` becomes ``31`` for ``age``.
        Raises ``ValueError`` (pydantic's ``ValidationError``) when the value
        would make the stored document unreadable.
        """
        root = field_name.split(".", 1)[0]
        if root not in cls.model_fields:
            return value
        if root == "id":
            raise ValueError("id is reserved for the document key")
        if root != field_name:
            raise ValueError(f"{root} is a scalar field; cannot set {field_name}")
        return TypeAdapter(cls.model_fields[root].annotation).validate_python(value)

"""Custom exceptions for the object store."""

from __future__ import annotations

from typing import Any, Optional


class ObjectDbError(Exception):
    """Base exception for object store failures."""


class SchemaError(ObjectDbError):
    """Raised when an entity, relationship or mirror is not defined in the schema."""


class DuplicateIdentityError(ObjectDbError):
    """Raised when more than one stored record satisfies identity criteria."""

    def __init__(
        self,
        message: str,
        *,
        entity_type: Optional[str] = None,
        criteria: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.entity_type = entity_type
        self.criteria = dict(criteria or {})


class MissingTypeError(ObjectDbError):
    """Raised when no entity type was given and none can be read from the record."""


class ConfigError(ObjectDbError):
    """Raised when store configuration is invalid."""

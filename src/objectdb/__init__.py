"""Schema-driven in-memory object graph store."""

from objectdb.changes import Change, ChangeLog
from objectdb.check import check_schema
from objectdb.config import StoreConfig
from objectdb.criteria import matches, filter_records
from objectdb.errors import (
    ObjectDbError,
    SchemaError,
    DuplicateIdentityError,
    MissingTypeError,
    ConfigError,
)
from objectdb.fetch import BatchFetcher
from objectdb.schema import (
    MANY_TO_ONE,
    ONE_TO_MANY,
    RelationshipDef,
    EntityDef,
    Schema,
)
from objectdb.store import ObjectStore

__all__ = [
    "Change",
    "ChangeLog",
    "check_schema",
    "StoreConfig",
    "matches",
    "filter_records",
    "ObjectDbError",
    "SchemaError",
    "DuplicateIdentityError",
    "MissingTypeError",
    "ConfigError",
    "BatchFetcher",
    "MANY_TO_ONE",
    "ONE_TO_MANY",
    "RelationshipDef",
    "EntityDef",
    "Schema",
    "ObjectStore",
]

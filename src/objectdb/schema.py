"""Entity and relationship definitions."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterator, Literal, Mapping, Optional

from pydantic import BaseModel, ConfigDict, ValidationError, model_validator

from objectdb.errors import SchemaError


MANY_TO_ONE = "many-to-one"
ONE_TO_MANY = "one-to-many"

Cardinality = Literal["many-to-one", "one-to-many"]


@dataclass(frozen=True)
class RelationshipDef:
    """Navigable association from one entity to another.

    ``own_foreign_key`` is read on the owning record and compared against
    ``target_foreign_key`` on records of ``target_entity``. For a one-to-many
    relationship the owning side holds the referenced key (usually its
    identity) and the target carries the foreign key.
    """

    cardinality: Cardinality
    own_foreign_key: str
    target_entity: str
    target_foreign_key: str
    mirror_relationship: Optional[str] = None

    def __post_init__(self) -> None:
        if self.cardinality not in (MANY_TO_ONE, ONE_TO_MANY):
            raise SchemaError(f"Unknown relationship cardinality: {self.cardinality}")
        for name in ("own_foreign_key", "target_entity", "target_foreign_key"):
            value = getattr(self, name)
            if not isinstance(value, str) or not value:
                raise SchemaError(f"Relationship {name} must be a non-empty string.")

    @property
    def is_many_to_one(self) -> bool:
        return self.cardinality == MANY_TO_ONE

    @property
    def is_one_to_many(self) -> bool:
        return self.cardinality == ONE_TO_MANY

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "many_to_one": self.is_many_to_one,
            "one_to_many": self.is_one_to_many,
            "own_foreign_key": self.own_foreign_key,
            "target_entity": self.target_entity,
            "target_foreign_key": self.target_foreign_key,
        }
        if self.mirror_relationship is not None:
            data["mirror_relationship"] = self.mirror_relationship
        return data


@dataclass(frozen=True)
class EntityDef:
    """Identity properties and outgoing relationships of one entity type."""

    identity_properties: tuple[str, ...] = ()
    relationships: dict[str, RelationshipDef] = field(default_factory=dict)

    def relationship(self, name: str) -> Optional[RelationshipDef]:
        return self.relationships.get(name)

    def to_dict(self) -> dict[str, Any]:
        return {
            "identity_properties": list(self.identity_properties),
            "relationships": {
                name: rel.to_dict() for name, rel in self.relationships.items()
            },
        }


class Schema:
    """Mapping of entity type names to their definitions."""

    def __init__(self, entities: Mapping[str, EntityDef]) -> None:
        self._entities: dict[str, EntityDef] = dict(entities)
        self._validate()

    def _validate(self) -> None:
        for entity_name, entity in self._entities.items():
            if not isinstance(entity, EntityDef):
                raise SchemaError(f"Definition for {entity_name} must be EntityDef.")
            for rel_name, rel in entity.relationships.items():
                if not isinstance(rel, RelationshipDef):
                    raise SchemaError(
                        f"Relationship {entity_name}.{rel_name} must be RelationshipDef."
                    )
                target = self._entities.get(rel.target_entity)
                if target is None:
                    raise SchemaError(
                        f"Relationship {entity_name}.{rel_name} targets unknown entity "
                        f"'{rel.target_entity}'."
                    )
                if rel.mirror_relationship is None:
                    continue
                if not rel.is_many_to_one:
                    raise SchemaError(
                        f"Relationship {entity_name}.{rel_name} declares a mirror but is not many-to-one."
                    )
                mirror = target.relationships.get(rel.mirror_relationship)
                if mirror is None:
                    raise SchemaError(
                        f"Mirror relationship '{rel.mirror_relationship}' of {entity_name}.{rel_name} "
                        f"not found on entity '{rel.target_entity}'."
                    )
                if not mirror.is_many_to_one or mirror.target_entity != entity_name:
                    raise SchemaError(
                        f"Mirror relationship {rel.target_entity}.{rel.mirror_relationship} must be "
                        f"a many-to-one pointing back to '{entity_name}'."
                    )

    def __contains__(self, entity_name: object) -> bool:
        return entity_name in self._entities

    def __iter__(self) -> Iterator[str]:
        return iter(self._entities)

    def __len__(self) -> int:
        return len(self._entities)

    def entity_names(self) -> list[str]:
        return list(self._entities)

    def entity(self, entity_name: str) -> EntityDef:
        entity = self._entities.get(entity_name)
        if entity is None:
            raise SchemaError(f"Entity '{entity_name}' not contained in schema")
        return entity

    def relationship(self, entity_name: str, relationship_name: str) -> RelationshipDef:
        rel = self.entity(entity_name).relationships.get(relationship_name)
        if rel is None:
            raise SchemaError(
                f"Relationship '{relationship_name}' not contained in entity '{entity_name}'"
            )
        return rel

    def inbound_relationships(self, entity_name: str) -> list[tuple[str, str, RelationshipDef]]:
        """Return every (owner entity, relationship name, definition) targeting ``entity_name``."""
        inbound: list[tuple[str, str, RelationshipDef]] = []
        for owner_name, owner in self._entities.items():
            for rel_name, rel in owner.relationships.items():
                if rel.target_entity == entity_name:
                    inbound.append((owner_name, rel_name, rel))
        return inbound

    def identity_property_names(self, entity_name: str) -> list[str]:
        return list(self.entity(entity_name).identity_properties)

    def identity_and_foreign_key_names(self, entity_name: str) -> list[str]:
        entity = self.entity(entity_name)
        names = list(entity.identity_properties)
        for rel in entity.relationships.values():
            if rel.own_foreign_key not in names:
                names.append(rel.own_foreign_key)
        return names

    def identity_and_foreign_key_values(
        self, entity_name: str, record: Mapping[str, Any]
    ) -> dict[str, Any]:
        return {
            name: record.get(name)
            for name in self.identity_and_foreign_key_names(entity_name)
        }

    def to_dict(self) -> dict[str, Any]:
        return {name: entity.to_dict() for name, entity in self._entities.items()}

    @staticmethod
    def from_dict(data: Mapping[str, Any]) -> "Schema":
        if not isinstance(data, Mapping):
            raise SchemaError("Schema must be a mapping of entity names to definitions.")
        entities: dict[str, EntityDef] = {}
        for entity_name, cfg in data.items():
            try:
                model = _EntityModel.model_validate(cfg)
            except ValidationError as exc:
                raise SchemaError(f"Invalid definition for entity '{entity_name}': {exc}") from exc
            relationships = {
                rel_name: RelationshipDef(
                    cardinality=rel.resolved_cardinality(),
                    own_foreign_key=rel.own_foreign_key,
                    target_entity=rel.target_entity,
                    target_foreign_key=rel.target_foreign_key,
                    mirror_relationship=rel.mirror_relationship,
                )
                for rel_name, rel in model.relationships.items()
            }
            entities[str(entity_name)] = EntityDef(
                identity_properties=tuple(model.identity_properties),
                relationships=relationships,
            )
        return Schema(entities)


class _RelationshipModel(BaseModel):
    model_config = ConfigDict(extra="forbid")

    many_to_one: bool = False
    one_to_many: bool = False
    cardinality: Optional[Cardinality] = None
    own_foreign_key: str
    target_entity: str
    target_foreign_key: str
    mirror_relationship: Optional[str] = None

    @model_validator(mode="after")
    def _check_cardinality(self):
        if self.cardinality is not None:
            if self.many_to_one or self.one_to_many:
                raise ValueError("Use either 'cardinality' or the many_to_one/one_to_many flags.")
            return self
        if self.many_to_one == self.one_to_many:
            raise ValueError("Exactly one of many_to_one and one_to_many must be true.")
        return self

    def resolved_cardinality(self) -> Cardinality:
        if self.cardinality is not None:
            return self.cardinality
        return MANY_TO_ONE if self.many_to_one else ONE_TO_MANY


class _EntityModel(BaseModel):
    model_config = ConfigDict(extra="forbid")

    identity_properties: list[str] = []
    relationships: dict[str, _RelationshipModel] = {}

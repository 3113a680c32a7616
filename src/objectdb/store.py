"""In-memory object store keeping schema relationships consistent.

Every mutating operation runs in two phases. A recursive worker walks the
given record graph and records raw mutations in a ChangeLog; afterwards
the public entry point walks that log once and wires (or unwires) every
affected record. Workers never finalize.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, Mapping, MutableMapping, Optional

from objectdb.changes import ChangeLog
from objectdb.config import StoreConfig
from objectdb.criteria import Criteria, filter_records
from objectdb.errors import DuplicateIdentityError, MissingTypeError, SchemaError
from objectdb.schema import EntityDef, RelationshipDef, Schema


logger = logging.getLogger(__name__)

Record = MutableMapping[str, Any]


class ObjectStore:
    """Per-entity lists of records wired together according to a Schema."""

    def __init__(
        self,
        schema: Schema | Mapping[str, Any],
        config: Optional[StoreConfig] = None,
    ) -> None:
        if isinstance(schema, Schema):
            self.schema = schema
        elif isinstance(schema, Mapping):
            self.schema = Schema.from_dict(schema)
        else:
            raise SchemaError("schema must be a Schema or a mapping of entity definitions.")
        self.config = config if config is not None else StoreConfig()
        self._objects: dict[str, list[Record]] = {}

    def get_objects(self, entity_type: str) -> list[Record]:
        """Return the live list of stored records of ``entity_type``."""
        self.schema.entity(entity_type)
        objects = self._objects.get(entity_type)
        if objects is None:
            objects = []
            self._objects[entity_type] = objects
        return objects

    def count(self, entity_type: Optional[str] = None) -> int:
        """Number of stored records of one entity type, or of all of them."""
        if entity_type is not None:
            return len(self.get_objects(entity_type))
        return sum(len(objects) for objects in self._objects.values())

    def __len__(self) -> int:
        return self.count()

    def clear(self) -> None:
        """Empty every store list in place."""
        for objects in self._objects.values():
            objects.clear()

    def read(self, entity_type: str, criteria: Optional[Criteria] = None) -> list[Record]:
        """Return the stored records of ``entity_type`` matching ``criteria``, in store order."""
        return filter_records(self.get_objects(entity_type), criteria)

    # integrate ---------------------------------------------------------

    def integrate(self, value: Any, entity_type: Optional[str] = None) -> ChangeLog:
        """Insert or merge a record, or a list of records, and wire the result.

        Nested relationship values are integrated recursively under the
        relationship's target entity. Records already stored by reference
        are skipped, which keeps cyclic graphs finite.
        """
        changes = ChangeLog()
        self._integrate(value, entity_type, changes, set())
        self._wire_changes(changes)
        return changes

    def create(self, entity_type: str, record: Record) -> ChangeLog:
        """Integrate one record under an explicit entity type."""
        return self.integrate(record, entity_type)

    def _integrate(
        self,
        value: Any,
        entity_type: Optional[str],
        changes: ChangeLog,
        seen: set[int],
    ) -> None:
        if isinstance(value, list):
            logger.debug("Integrating %d records (entity_type=%s)", len(value), entity_type)
            for item in value:
                self._integrate(item, entity_type, changes, seen)
            return
        if not isinstance(value, MutableMapping):
            return

        entity_type = self._resolve_type(value, entity_type)
        entity = self.schema.entity(entity_type)
        objects = self.get_objects(entity_type)

        if _index_of(objects, value) >= 0 or id(value) in seen:
            logger.debug("%s record already integrated, skipping", entity_type)
            return
        seen.add(id(value))

        criteria = _identity_criteria(entity, value)
        existing = filter_records(objects, criteria) if criteria else []
        if len(existing) > 1:
            raise DuplicateIdentityError(
                f"There is more than one {entity_type} record for identity {criteria}",
                entity_type=entity_type,
                criteria=criteria,
            )

        detach_nested = True
        if existing:
            match = existing[0]
            if self.config.immutable_objects:
                detach_nested = self._replace(entity_type, entity, match, value, changes)
            else:
                self._merge(entity_type, entity, match, value, changes)
                detach_nested = False
        else:
            logger.debug("Adding %s record %s", entity_type, criteria)
            objects.append(value)
            changes.create(entity_type, value)

        for rel_name, rel in entity.relationships.items():
            nested = value.get(rel_name)
            if not isinstance(nested, (MutableMapping, list)):
                continue
            logger.debug("Integrating relationship %s.%s", entity_type, rel_name)
            self._integrate(nested, rel.target_entity, changes, seen)
            if detach_nested:
                value.pop(rel_name, None)

    def _merge(
        self,
        entity_type: str,
        entity: EntityDef,
        match: Record,
        value: Record,
        changes: ChangeLog,
    ) -> None:
        changed = _changed_properties(entity, match, value)
        if not changed:
            return
        if any(prop in self._linking_properties(entity_type) for prop in changed):
            # finalization wires the record again under its new keys
            self._unwire(entity_type, match, changes)
        for prop in changed:
            match[prop] = value[prop]
        logger.debug("Updated %s record properties %s", entity_type, changed)
        changes.update(entity_type, match, changed)

    def _replace(
        self,
        entity_type: str,
        entity: EntityDef,
        match: Record,
        value: Record,
        changes: ChangeLog,
    ) -> bool:
        changed = _changed_properties(entity, match, value)
        if not changed:
            return False
        if any(prop in self._linking_properties(entity_type) for prop in changed):
            detached = ChangeLog()
            self._unwire(entity_type, match, detached)
            for change in detached:
                if change.record is not match:
                    changes.add(change)
        for prop, old_value in match.items():
            if prop in entity.relationships or prop in value:
                continue
            value[prop] = old_value
        objects = self.get_objects(entity_type)
        objects[_index_of(objects, match)] = value
        self._repoint_references(entity_type, match, value, changes)
        logger.debug("Replaced %s record, changed properties %s", entity_type, changed)

        # entries of this operation about the replaced record move to its successor
        logged = changes.for_record(match)
        for change in logged:
            change.record = value
        if not any(change.kind == "create" for change in logged):
            changes.update(entity_type, value, changed)
        return True

    def _repoint_references(
        self, entity_type: str, old: Record, new: Record, changes: ChangeLog
    ) -> None:
        for owner_type, rel_name, rel in self.schema.inbound_relationships(entity_type):
            for owner in self._objects.get(owner_type, []):
                current = owner.get(rel_name)
                if rel.is_many_to_one and current is old:
                    owner[rel_name] = new
                    changes.update(owner_type, owner, [rel_name])
                elif rel.is_one_to_many and isinstance(current, list):
                    index = _index_of(current, old)
                    if index >= 0:
                        current[index] = new
                        changes.update(owner_type, owner, [rel_name])

    def _wire_changes(self, changes: ChangeLog) -> None:
        pairs = changes.records()
        logger.info("Wiring %d changed records", len(pairs))
        for entity_type, record in pairs:
            if _index_of(self._objects.get(entity_type, []), record) < 0:
                continue
            self._wire(entity_type, record, changes)

    # wire --------------------------------------------------------------

    def wire(
        self,
        record: Record,
        entity_type: Optional[str] = None,
        changes: Optional[ChangeLog] = None,
    ) -> ChangeLog:
        """Link ``record`` to its related records and them back to it."""
        if changes is None:
            changes = ChangeLog()
        if not isinstance(record, MutableMapping):
            return changes
        self._wire(self._resolve_type(record, entity_type), record, changes)
        return changes

    def _wire(self, entity_type: str, record: Record, changes: ChangeLog) -> None:
        entity = self.schema.entity(entity_type)

        for rel_name, rel in entity.relationships.items():
            key = record.get(rel.own_foreign_key)
            if key is None:
                continue
            targets = filter_records(
                self._objects.get(rel.target_entity, []), {rel.target_foreign_key: key}
            )
            if not targets:
                continue
            if rel.is_many_to_one:
                self._link_many_to_one(entity_type, record, rel_name, rel, targets[0], changes)
            else:
                self._link_one_to_many(entity_type, record, rel_name, targets, changes)

        for owner_type, rel_name, rel in self.schema.inbound_relationships(entity_type):
            key = record.get(rel.target_foreign_key)
            if key is None:
                continue
            owners = filter_records(
                self._objects.get(owner_type, []), {rel.own_foreign_key: key}
            )
            for owner in owners:
                if rel.is_many_to_one:
                    self._link_many_to_one(owner_type, owner, rel_name, rel, record, changes)
                else:
                    self._link_one_to_many(owner_type, owner, rel_name, [record], changes)

    def _link_many_to_one(
        self,
        owner_type: str,
        owner: Record,
        rel_name: str,
        rel: RelationshipDef,
        target: Record,
        changes: ChangeLog,
    ) -> None:
        if owner.get(rel_name) is not target:
            logger.debug("Setting %s.%s", owner_type, rel_name)
            owner[rel_name] = target
            changes.update(owner_type, owner, [rel_name])
        if rel.mirror_relationship is None:
            return

        mirror = self.schema.relationship(rel.target_entity, rel.mirror_relationship)
        changed: list[str] = []
        back_key = owner.get(mirror.target_foreign_key)
        if mirror.own_foreign_key not in target or target[mirror.own_foreign_key] != back_key:
            target[mirror.own_foreign_key] = back_key
            changed.append(mirror.own_foreign_key)
        if target.get(rel.mirror_relationship) is not owner:
            target[rel.mirror_relationship] = owner
            changed.append(rel.mirror_relationship)
        if changed:
            logger.debug("Mirrored %s.%s onto %s", owner_type, rel_name, rel.target_entity)
            changes.update(rel.target_entity, target, changed)

    def _link_one_to_many(
        self,
        owner_type: str,
        owner: Record,
        rel_name: str,
        targets: Iterable[Record],
        changes: ChangeLog,
    ) -> None:
        current = owner.get(rel_name)
        if not isinstance(current, list):
            current = []
            owner[rel_name] = current
        grew = False
        for target in targets:
            if _index_of(current, target) < 0:
                current.append(target)
                grew = True
        if grew:
            logger.debug("Extended %s.%s to %d records", owner_type, rel_name, len(current))
            changes.update(owner_type, owner, [rel_name])

    # unwire ------------------------------------------------------------

    def unwire(
        self,
        record: Record,
        entity_type: Optional[str] = None,
        changes: Optional[ChangeLog] = None,
    ) -> ChangeLog:
        """Clear every reference to ``record`` and every reference it holds.

        Only object references are cleared. Foreign key values stay in
        place so that integrating the record again restores its links.
        """
        if changes is None:
            changes = ChangeLog()
        if not isinstance(record, MutableMapping):
            return changes
        self._unwire(self._resolve_type(record, entity_type), record, changes)
        return changes

    def _unwire(self, entity_type: str, record: Record, changes: ChangeLog) -> None:
        entity = self.schema.entity(entity_type)

        for owner_type, rel_name, rel in self.schema.inbound_relationships(entity_type):
            key = record.get(rel.target_foreign_key)
            if key is None:
                continue
            owners = filter_records(
                self._objects.get(owner_type, []), {rel.own_foreign_key: key}
            )
            for owner in owners:
                if rel.is_many_to_one:
                    self._unlink_many_to_one(owner_type, owner, rel_name, rel, record, changes)
                else:
                    self._unlink_one_to_many(owner_type, owner, rel_name, record, changes)

        for rel_name, rel in entity.relationships.items():
            current = record.get(rel_name)
            if rel.is_many_to_one:
                if isinstance(current, MutableMapping):
                    self._unlink_many_to_one(entity_type, record, rel_name, rel, current, changes)
                elif current is not None:
                    record[rel_name] = None
                    changes.update(entity_type, record, [rel_name])
            elif isinstance(current, list) and current:
                logger.debug("Emptying %s.%s", entity_type, rel_name)
                record[rel_name] = []
                changes.update(entity_type, record, [rel_name])

    def _unlink_many_to_one(
        self,
        owner_type: str,
        owner: Record,
        rel_name: str,
        rel: RelationshipDef,
        target: Record,
        changes: ChangeLog,
    ) -> None:
        if owner.get(rel_name) is target:
            logger.debug("Unsetting %s.%s", owner_type, rel_name)
            owner[rel_name] = None
            changes.update(owner_type, owner, [rel_name])
        if rel.mirror_relationship is not None and target.get(rel.mirror_relationship) is owner:
            target[rel.mirror_relationship] = None
            changes.update(rel.target_entity, target, [rel.mirror_relationship])

    def _unlink_one_to_many(
        self,
        owner_type: str,
        owner: Record,
        rel_name: str,
        target: Record,
        changes: ChangeLog,
    ) -> None:
        current = owner.get(rel_name)
        if not isinstance(current, list):
            return
        index = _index_of(current, target)
        if index < 0:
            return
        logger.debug("Removing record from %s.%s", owner_type, rel_name)
        del current[index]
        changes.update(owner_type, owner, [rel_name])

    def _unwire_changes(self, changes: ChangeLog) -> None:
        pairs = changes.records(kind="delete")
        logger.info("Unwiring %d removed records", len(pairs))
        for entity_type, record in pairs:
            self._unwire(entity_type, record, changes)

    # remove ------------------------------------------------------------

    def remove(self, value: Any, entity_type: Optional[str] = None) -> ChangeLog:
        """Remove a record, or a list of records, together with the nested graph.

        The stored record is looked up by identity. Relationship values on
        the given record (not on the stored one) drive the cascade, so a
        caller deletes a sub-graph by passing it nested.
        """
        changes = ChangeLog()
        self._remove(value, entity_type, changes, set())
        self._unwire_changes(changes)
        return changes

    def _remove(
        self,
        value: Any,
        entity_type: Optional[str],
        changes: ChangeLog,
        seen: set[int],
    ) -> None:
        if isinstance(value, list):
            for item in value:
                self._remove(item, entity_type, changes, seen)
            return
        if not isinstance(value, MutableMapping):
            return
        if id(value) in seen:
            return
        seen.add(id(value))

        entity_type = self._resolve_type(value, entity_type)
        entity = self.schema.entity(entity_type)
        objects = self.get_objects(entity_type)

        criteria = _identity_criteria(entity, value)
        if criteria:
            found = filter_records(objects, criteria)
        else:
            found = [record for record in objects if record is value]
        if not found:
            logger.debug("No %s record to remove for %s", entity_type, criteria)
            return
        if len(found) > 1:
            raise DuplicateIdentityError(
                f"There is more than one {entity_type} record for identity {criteria}",
                entity_type=entity_type,
                criteria=criteria,
            )

        self._detach(entity_type, found[0], changes)

        for rel_name, rel in entity.relationships.items():
            nested = value.get(rel_name)
            if rel.is_many_to_one and isinstance(nested, MutableMapping):
                self._remove(nested, rel.target_entity, changes, seen)
            elif rel.is_one_to_many and isinstance(nested, list):
                for item in list(nested):
                    self._remove(item, rel.target_entity, changes, seen)

    def _detach(self, entity_type: str, record: Record, changes: ChangeLog) -> None:
        objects = self.get_objects(entity_type)
        del objects[_index_of(objects, record)]
        logger.debug("Removed %s record", entity_type)
        changes.delete(entity_type, record)

    # criteria based helpers -------------------------------------------

    def update(
        self,
        entity_type: str,
        criteria: Optional[Criteria],
        values: Mapping[str, Any],
    ) -> ChangeLog:
        """Assign ``values`` to every record matching ``criteria``.

        Records whose foreign keys or referenced keys change are unwired
        before and wired again after the assignment.
        """
        if not isinstance(values, Mapping):
            raise TypeError("values must be a mapping")
        entity = self.schema.entity(entity_type)
        relationship_props = [prop for prop in values if prop in entity.relationships]
        if relationship_props:
            raise ValueError(
                f"Relationship properties are maintained by wiring: {relationship_props}"
            )
        linking = self._linking_properties(entity_type)
        objects = self.get_objects(entity_type)
        changes = ChangeLog()

        for record in filter_records(objects, criteria):
            changed = _changed_properties(entity, record, values)
            if not changed:
                continue
            if any(prop in entity.identity_properties for prop in changed):
                self._check_identity_free(entity_type, entity, record, {**record, **values})
            rewire = any(prop in linking for prop in changed)
            if rewire:
                self._unwire(entity_type, record, changes)
            for prop in changed:
                record[prop] = values[prop]
            changes.update(entity_type, record, changed)
            if rewire:
                self._wire(entity_type, record, changes)
        return changes

    def delete(self, entity_type: str, criteria: Optional[Criteria] = None) -> ChangeLog:
        """Remove every record matching ``criteria`` without cascading."""
        changes = ChangeLog()
        for record in self.read(entity_type, criteria):
            self._detach(entity_type, record, changes)
        self._unwire_changes(changes)
        return changes

    def _check_identity_free(
        self,
        entity_type: str,
        entity: EntityDef,
        record: Record,
        candidate: Mapping[str, Any],
    ) -> None:
        criteria = _identity_criteria(entity, candidate)
        if not criteria:
            return
        clash = [
            other
            for other in filter_records(self.get_objects(entity_type), criteria)
            if other is not record
        ]
        if clash:
            raise DuplicateIdentityError(
                f"Updating {entity_type} would duplicate identity {criteria}",
                entity_type=entity_type,
                criteria=criteria,
            )

    def _linking_properties(self, entity_type: str) -> set[str]:
        props = {rel.own_foreign_key for rel in self.schema.entity(entity_type).relationships.values()}
        props.update(rel.target_foreign_key for _, _, rel in self.schema.inbound_relationships(entity_type))
        return props

    def _resolve_type(self, value: Any, entity_type: Optional[str]) -> str:
        if entity_type is not None:
            return entity_type
        if isinstance(value, Mapping):
            tag = value.get(self.config.type_tag)
            if isinstance(tag, str) and tag:
                return tag
        raise MissingTypeError(
            f"No entity type given and the record carries no '{self.config.type_tag}' tag"
        )


def _identity_criteria(entity: EntityDef, record: Mapping[str, Any]) -> dict[str, Any]:
    return {
        prop: record[prop]
        for prop in entity.identity_properties
        if record.get(prop) is not None
    }


def _changed_properties(
    entity: EntityDef, current: Mapping[str, Any], incoming: Mapping[str, Any]
) -> list[str]:
    return [
        prop
        for prop, value in incoming.items()
        if prop not in entity.relationships
        and (prop not in current or current[prop] != value)
    ]


def _index_of(records: list[Any], record: Any) -> int:
    for index, candidate in enumerate(records):
        if candidate is record:
            return index
    return -1

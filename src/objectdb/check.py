"""Author-time check of a schema definition against sample records."""

from __future__ import annotations

from typing import Any, Iterable, Mapping

from objectdb.config import DEFAULT_TYPE_TAG
from objectdb.schema import Schema


def check_schema(
    schema: Schema | Mapping[str, Any],
    samples: Iterable[Any],
    *,
    type_tag: str = DEFAULT_TYPE_TAG,
) -> list[str]:
    """Return human-readable issues found by comparing ``schema`` with ``samples``.

    ``schema`` is the author dict format accepted by ``Schema.from_dict`` (a
    ``Schema`` is rendered back to it). Each sample is one record carrying
    its entity type under ``type_tag``. The check never raises for schema
    defects; it reports them.
    """
    definitions: Mapping[str, Any] = schema.to_dict() if isinstance(schema, Schema) else schema
    sample_list = list(samples)
    issues: list[str] = []

    samples_by_entity: dict[str, Mapping[str, Any]] = {}
    for sample in sample_list:
        if isinstance(sample, Mapping):
            entity_name = sample.get(type_tag)
            if isinstance(entity_name, str) and entity_name not in samples_by_entity:
                samples_by_entity[entity_name] = sample

    for sample in sample_list:
        if not isinstance(sample, Mapping):
            issues.append("Given sample record is not a mapping")
            continue
        entity_name = sample.get(type_tag)
        definition = definitions.get(entity_name) if isinstance(entity_name, str) else None
        if not isinstance(definition, Mapping):
            issues.append(f"{entity_name}: Could not find schema definition")
            continue
        issues.extend(_check_sample(entity_name, definition, sample, definitions, samples_by_entity))

    for entity_name in definitions:
        if entity_name not in samples_by_entity:
            issues.append(f"{entity_name}: No sample record given")

    for sample in sample_list:
        if not isinstance(sample, Mapping):
            continue
        entity_name = sample.get(type_tag)
        if not isinstance(entity_name, str) or not isinstance(definitions.get(entity_name), Mapping):
            continue
        mentioned = _mentioned_properties(entity_name, definitions, type_tag)
        unmentioned = [prop for prop in sample if prop not in mentioned]
        if unmentioned:
            issues.append(
                f"{entity_name}: The sample record defines properties which are not mentioned "
                f"in the schema: {', '.join(unmentioned)}"
            )

    return issues


def _check_sample(
    entity_name: str,
    definition: Mapping[str, Any],
    sample: Mapping[str, Any],
    definitions: Mapping[str, Any],
    samples_by_entity: Mapping[str, Mapping[str, Any]],
) -> list[str]:
    issues: list[str] = []
    for prop in definition.get("identity_properties") or []:
        if prop not in sample:
            issues.append(f"{entity_name}: Sample record does not contain the identity property '{prop}'")

    relationships = definition.get("relationships") or {}
    for rel_name in relationships:
        if rel_name not in sample:
            issues.append(
                f"{entity_name}: Sample record does not contain the relationship property '{rel_name}'"
            )

    for rel_name, rel in relationships.items():
        prefix = f"{entity_name}.{rel_name}"
        many_to_one, one_to_many = _cardinality_flags(rel)
        if many_to_one and one_to_many:
            issues.append(f"{prefix}: Both 'many_to_one' and 'one_to_many' are set while only one can be")
        elif not many_to_one and not one_to_many:
            issues.append(f"{prefix}: Neither 'many_to_one' nor 'one_to_many' is set while one must be")

        if rel_name in sample:
            value = sample[rel_name]
            if one_to_many and not many_to_one and not isinstance(value, list):
                issues.append(
                    f"{prefix}: The relationship is one-to-many but the sample value is not a list"
                )
            if many_to_one and not one_to_many and not isinstance(value, Mapping):
                issues.append(
                    f"{prefix}: The relationship is many-to-one but the sample value is not a mapping"
                )

        own_key = rel.get("own_foreign_key")
        if own_key not in sample:
            issues.append(
                f"{prefix}: The property '{own_key}' named in 'own_foreign_key' is not contained "
                "in the sample record"
            )

        target_entity = rel.get("target_entity")
        if target_entity not in definitions:
            issues.append(
                f"{prefix}: The entity '{target_entity}' named in 'target_entity' is not contained "
                "in the schema"
            )
            continue

        target_sample = samples_by_entity.get(target_entity)
        target_key = rel.get("target_foreign_key")
        if target_sample is not None and target_key not in target_sample:
            issues.append(
                f"{prefix}: The property '{target_key}' named in 'target_foreign_key' is not "
                f"contained in the sample record of '{target_entity}'"
            )
    return issues


def _cardinality_flags(rel: Mapping[str, Any]) -> tuple[bool, bool]:
    cardinality = rel.get("cardinality")
    many_to_one = rel.get("many_to_one") is True or cardinality == "many-to-one"
    one_to_many = rel.get("one_to_many") is True or cardinality == "one-to-many"
    return many_to_one, one_to_many


def _mentioned_properties(
    entity_name: str, definitions: Mapping[str, Any], type_tag: str
) -> set[str]:
    definition = definitions[entity_name]
    mentioned = {type_tag, *(definition.get("identity_properties") or [])}
    for rel_name, rel in (definition.get("relationships") or {}).items():
        mentioned.add(rel_name)
        mentioned.add(rel.get("own_foreign_key"))
    for other in definitions.values():
        if not isinstance(other, Mapping):
            continue
        for rel in (other.get("relationships") or {}).values():
            if rel.get("target_entity") == entity_name:
                mentioned.add(rel.get("target_foreign_key"))
    return mentioned

"""Criteria matching for record queries."""

from __future__ import annotations

from typing import Any, Iterable, Mapping, Optional


Criteria = Mapping[str, Any]

_ALTERNATIVE_TYPES = (list, tuple, set, frozenset)


def matches(record: Mapping[str, Any], criteria: Optional[Criteria]) -> bool:
    """Return True when ``record`` satisfies every criterion.

    A criterion value is either a literal compared by equality or a
    collection of alternatives of which one must equal the record value.
    Missing or empty criteria match every record.
    """
    if not criteria:
        return True
    for prop, expected in criteria.items():
        value = record.get(prop)
        if isinstance(expected, _ALTERNATIVE_TYPES):
            if not any(value == alternative for alternative in expected):
                return False
        elif value != expected:
            return False
    return True


def filter_records(records: Iterable[Any], criteria: Optional[Criteria]) -> list[Any]:
    return [record for record in records if matches(record, criteria)]

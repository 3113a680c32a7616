"""Change records produced by mutating store operations."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable, Iterator, Literal, Optional


ChangeKind = Literal["create", "update", "delete"]
_KINDS = ("create", "update", "delete")


@dataclass(eq=False)
class Change:
    """One mutation of one record.

    ``record`` is held by reference. ``props`` lists the changed property
    names of an update and is empty for create and delete.
    """

    entity_type: str
    record: Any
    kind: ChangeKind
    props: list[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        if self.kind not in _KINDS:
            raise ValueError(f"Change kind must be one of {list(_KINDS)}, got {self.kind!r}")
        self.props = _dedupe(self.props)

    def add_props(self, props: Iterable[str]) -> None:
        self.props = _dedupe([*self.props, *props])

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"entity_type": self.entity_type, "kind": self.kind}
        if self.kind == "update":
            data["props"] = list(self.props)
        return data


class ChangeLog:
    """Ordered log of the changes made by one top-level operation."""

    def __init__(self, changes: Optional[Iterable[Change]] = None) -> None:
        self._changes: list[Change] = []
        for change in changes or ():
            self.add(change)

    @property
    def changes(self) -> list[Change]:
        return list(self._changes)

    def add(self, change: Change) -> Change:
        if not isinstance(change, Change):
            raise TypeError("change must be Change")
        if change.kind == "update":
            for existing in self._changes:
                if existing.kind == "update" and existing.record is change.record:
                    existing.add_props(change.props)
                    return existing
        self._changes.append(change)
        return change

    def create(self, entity_type: str, record: Any) -> Change:
        return self.add(Change(entity_type, record, "create"))

    def update(self, entity_type: str, record: Any, props: Iterable[str]) -> Change:
        return self.add(Change(entity_type, record, "update", list(props)))

    def delete(self, entity_type: str, record: Any) -> Change:
        return self.add(Change(entity_type, record, "delete"))

    def records(self, kind: Optional[ChangeKind] = None) -> list[tuple[str, Any]]:
        """Distinct (entity type, record) pairs in first-seen order."""
        seen: set[int] = set()
        pairs: list[tuple[str, Any]] = []
        for change in self._changes:
            if kind is not None and change.kind != kind:
                continue
            if id(change.record) in seen:
                continue
            seen.add(id(change.record))
            pairs.append((change.entity_type, change.record))
        return pairs

    def of_kind(self, kind: ChangeKind) -> list[Change]:
        return [change for change in self._changes if change.kind == kind]

    def for_record(self, record: Any) -> list[Change]:
        return [change for change in self._changes if change.record is record]

    def to_dicts(self) -> list[dict[str, Any]]:
        return [change.to_dict() for change in self._changes]

    def __iter__(self) -> Iterator[Change]:
        return iter(list(self._changes))

    def __len__(self) -> int:
        return len(self._changes)

    def __bool__(self) -> bool:
        return bool(self._changes)

    def __repr__(self) -> str:
        return f"ChangeLog({self.to_dicts()!r})"


def _dedupe(props: Iterable[str]) -> list[str]:
    seen: set[str] = set()
    ordered: list[str] = []
    for prop in props:
        if prop in seen:
            continue
        seen.add(prop)
        ordered.append(prop)
    return ordered

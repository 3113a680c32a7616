"""Store configuration."""

from __future__ import annotations

from dataclasses import dataclass
import os
from typing import Mapping, Optional

from objectdb.errors import ConfigError


_IMMUTABLE_ENV = "OBJECTDB_IMMUTABLE_OBJECTS"
_TYPE_TAG_ENV = "OBJECTDB_TYPE_TAG"
_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off", ""}

DEFAULT_TYPE_TAG = "_type"


@dataclass(frozen=True)
class StoreConfig:
    """Behaviour switches for an ObjectStore.

    ``immutable_objects`` makes the merge path replace a stored record with
    the incoming one instead of mutating it in place. ``type_tag`` names the
    record key that carries the entity type when the caller omits it.
    """

    immutable_objects: bool = False
    type_tag: str = DEFAULT_TYPE_TAG

    def __post_init__(self) -> None:
        if not isinstance(self.immutable_objects, bool):
            raise ConfigError("immutable_objects must be a bool.")
        if not isinstance(self.type_tag, str) or not self.type_tag.strip():
            raise ConfigError("type_tag must be a non-empty string.")

    @staticmethod
    def from_env(environ: Optional[Mapping[str, str]] = None) -> "StoreConfig":
        env = os.environ if environ is None else environ
        immutable = _parse_bool(env.get(_IMMUTABLE_ENV, ""), _IMMUTABLE_ENV)
        type_tag = env.get(_TYPE_TAG_ENV) or DEFAULT_TYPE_TAG
        return StoreConfig(immutable_objects=immutable, type_tag=type_tag.strip())


def _parse_bool(raw: str, name: str) -> bool:
    value = raw.strip().lower()
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    raise ConfigError(f"{name} must be a boolean flag, got {raw!r}.")

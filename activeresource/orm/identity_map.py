"""
Identity map: one live instance per key, per model class.

Unsaved instances are stored under a temporary token, saved ones under their
primary-key value. Inserting an instance whose key is already taken merges
the incoming fields into the object already there, so every reference held
elsewhere (association views, UI bindings) observes the update.
"""

from __future__ import annotations

from collections.abc import Callable, Hashable, Iterator
from typing import TYPE_CHECKING

from ..core.di import resolve_or_default
from ..core.interfaces.logger import ILogger

if TYPE_CHECKING:
    from .instance import Instance


def _get_logger() -> ILogger:
    from ..services.logging import NullLogger

    return resolve_or_default(ILogger, NullLogger)  # type: ignore[type-abstract]


class IdentityMap:
    """Per-model store of instances keyed by primary key or temporary token."""

    def __init__(self, model_name: str) -> None:
        self.model_name = model_name
        self._entries: dict[Hashable, Instance] = {}

    def insert(self, instance: Instance) -> Instance:
        """
        Store an instance under its current key.

        Returns:
            The canonical instance for that key: ``instance`` itself, or the
            existing instance it was merged into.
        """
        key = instance.key
        existing = self._entries.get(key)
        if existing is None:
            self._entries[key] = instance
            return instance
        if existing is not instance:
            _get_logger().debug("Merging into cached %s %r", self.model_name, key)
            existing.merge(instance.fields())
        return existing

    def lookup(self, key: Hashable) -> Instance | None:
        return self._entries.get(key)

    def evict(self, key: Hashable) -> Instance | None:
        """Remove and return the entry for ``key`` (None if absent)."""
        instance = self._entries.pop(key, None)
        if instance is not None:
            _get_logger().debug("Evicted %s %r", self.model_name, key)
        return instance

    def rekey(self, old_key: Hashable, instance: Instance) -> Instance:
        """
        Move ``instance`` from ``old_key`` to its current key.

        Returns:
            The canonical instance for the new key. When a read already cached
            that record, the cached object absorbs ``instance``'s fields and
            stays in the map; ``instance`` is then left out of it.
        """
        if self._entries.get(old_key) is instance:
            del self._entries[old_key]
        occupant = self._entries.get(instance.key)
        if occupant is None or occupant is instance:
            self._entries[instance.key] = instance
            return instance
        _get_logger().debug(
            "%s %r was cached while being created; merging into the cached instance",
            self.model_name,
            instance.key,
        )
        occupant.merge(instance.fields())
        return occupant

    def query_local(self, predicate: Callable[[Instance], bool]) -> list[Instance]:
        """All cached instances matching ``predicate``, in insertion order."""
        return [instance for instance in self._entries.values() if predicate(instance)]

    def clear(self) -> None:
        self._entries.clear()

    def keys(self) -> list[Hashable]:
        return list(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __iter__(self) -> Iterator[Instance]:
        return iter(list(self._entries.values()))

    def __len__(self) -> int:
        return len(self._entries)

"""
Association descriptors and the live has-many collection.

The foreign-key field on the "many" side is the single source of truth.
A belongs-to association reads and writes that field; a has-many association
is a view computed on every access by filtering the target's identity map,
so the two sides can never disagree.

Owners that have no primary key yet are linked through a pending link on the
child. The pending link is visible from both sides straight away and turns
into a real foreign-key value when the owner's create succeeds.
"""

from __future__ import annotations

from collections.abc import Iterator, Sequence
from typing import TYPE_CHECKING, Any, Literal

from ..core.container import get_container
from ..core.exceptions import AssociationResolutionError, ModelDeclarationError
from .naming import provider_name, underscore

if TYPE_CHECKING:
    from .instance import Instance
    from .model import ModelClass

HAS_MANY = "has_many"
BELONGS_TO = "belongs_to"

Kind = Literal["has_many", "belongs_to"]


def link(child: Instance, foreign_key: str, owner: Instance | None) -> None:
    """Point ``child``'s foreign key at ``owner`` (or clear it)."""
    child._pending_links.pop(foreign_key, None)
    if owner is None:
        child._data[foreign_key] = None
        return
    if owner.pk is not None:
        child._data[foreign_key] = owner.pk
        return
    child._data[foreign_key] = None
    child._pending_links[foreign_key] = owner
    owner._awaiting_key.append((child, foreign_key))


def is_linked(child: Instance, foreign_key: str, owner: Instance) -> bool:
    if child._pending_links.get(foreign_key) is owner:
        return True
    return owner.pk is not None and child._data.get(foreign_key) == owner.pk


class Association:
    """Declared relation between an owner model and a target model."""

    kind: Kind

    def __init__(
        self,
        owner: ModelClass,
        name: str,
        provider: ModelClass | str | None = None,
        foreign_key: str | None = None,
        dependent_destroy: bool = False,
    ) -> None:
        self.owner = owner
        self.name = name
        self.foreign_key = foreign_key or self.default_foreign_key()
        self.dependent_destroy = dependent_destroy
        self._provider_name: str
        self._target: ModelClass | None = None

        if provider is None:
            self._provider_name = provider_name(name)
        elif isinstance(provider, str):
            self._provider_name = provider
        elif hasattr(provider, "identity_map") and hasattr(provider, "name"):
            self._provider_name = provider.name
            self._target = provider
        else:
            raise AssociationResolutionError(
                f"Provider for '{name}' must be a model class or a model name",
                model=owner.name,
                association=name,
            )

    def default_foreign_key(self) -> str:
        raise NotImplementedError

    @property
    def provider_name(self) -> str:
        return self._provider_name

    @property
    def target(self) -> ModelClass:
        """The target model class, resolved by name on first use."""
        if self._target is None:
            target = get_container().get_model(self._provider_name)
            if target is None:
                raise AssociationResolutionError(
                    f"Cannot resolve model '{self._provider_name}' for association "
                    f"'{self.owner.name}.{self.name}'",
                    model=self.owner.name,
                    association=self.name,
                    provider=self._provider_name,
                )
            self._target = target
        return self._target

    def _check_target(self, other: Instance) -> None:
        if other.model is not self.target:
            raise TypeError(
                f"'{self.owner.name}.{self.name}' expects a {self.target.name}, "
                f"got a {other.model.name}"
            )

    def get(self, instance: Instance) -> Any:
        raise NotImplementedError

    def set(self, instance: Instance, value: Any) -> None:
        raise NotImplementedError

    def associated(self, instance: Instance) -> list[Instance]:
        """Instances currently on the other end, for cascades."""
        raise NotImplementedError

    def __repr__(self) -> str:
        return (
            f"<{type(self).__name__} {self.owner.name}.{self.name} -> "
            f"{self._provider_name} via {self.foreign_key}>"
        )


class BelongsTo(Association):
    """The owner holds the foreign key of a single target instance."""

    kind: Kind = BELONGS_TO

    def default_foreign_key(self) -> str:
        return f"{self.name}_id"

    def get(self, instance: Instance) -> Instance | None:
        pending = instance._pending_links.get(self.foreign_key)
        if pending is not None:
            return pending
        key = instance._data.get(self.foreign_key)
        if key is None:
            return None
        return self.target.identity_map.lookup(key)

    def set(self, instance: Instance, value: Instance | None) -> None:
        if value is not None:
            self._check_target(value)
        link(instance, self.foreign_key, value)

    def associated(self, instance: Instance) -> list[Instance]:
        other = self.get(instance)
        return [other] if other is not None else []


class HasMany(Association):
    """The target instances hold the owner's key in their foreign-key field."""

    kind: Kind = HAS_MANY

    def default_foreign_key(self) -> str:
        return f"{underscore(self.owner.name)}_id"

    def members(self, owner: Instance) -> list[Instance]:
        return self.target.identity_map.query_local(
            lambda candidate: is_linked(candidate, self.foreign_key, owner)
        )

    def get(self, instance: Instance) -> HasManyCollection:
        return HasManyCollection(self, instance)

    def set(self, instance: Instance, value: Any) -> None:
        raise AttributeError(
            f"'{self.owner.name}.{self.name}' is computed from "
            f"{self.provider_name}.{self.foreign_key}; use add()/remove()"
        )

    def associated(self, instance: Instance) -> list[Instance]:
        return self.members(instance)


class HasManyCollection(Sequence):
    """
    Live view over a has-many association.

    Membership is recomputed on every access, so instances added to the
    target's identity map by any path (``new``, ``find``, ``where``, nested
    records) show up without a refetch.
    """

    def __init__(self, association: HasMany, owner: Instance) -> None:
        self.association = association
        self.owner = owner

    def _members(self) -> list[Instance]:
        return self.association.members(self.owner)

    def __getitem__(self, index):  # type: ignore[override]
        return self._members()[index]

    def __len__(self) -> int:
        return len(self._members())

    def __iter__(self) -> Iterator[Instance]:
        return iter(self._members())

    def __contains__(self, item: object) -> bool:
        return any(member is item for member in self._members())

    def __bool__(self) -> bool:
        return bool(self._members())

    def __repr__(self) -> str:
        return f"<HasManyCollection {self.association.owner.name}.{self.association.name} {self._members()!r}>"

    def new(self, attrs: dict[str, Any] | None = None, **kwargs: Any) -> Instance:
        """
        Build a target instance linked to the owner.

        The instance is added to the target's identity map; no request is made.
        """
        instance = self.association.target.new(attrs, **kwargs)
        link(instance, self.association.foreign_key, self.owner)
        return instance

    def add(self, instance: Instance) -> Instance:
        """Link an existing target instance to the owner."""
        self.association._check_target(instance)
        link(instance, self.association.foreign_key, self.owner)
        return instance

    def remove(self, instance: Instance) -> Instance:
        """Unlink a member (its foreign key becomes None)."""
        if instance in self:
            link(instance, self.association.foreign_key, None)
        return instance


class AssociationSet:
    """Associations of one model, by name."""

    def __init__(self, owner: ModelClass) -> None:
        self.owner = owner
        self._by_name: dict[str, Association] = {}

    def add(self, association: Association) -> Association:
        if association.name in self._by_name:
            raise ModelDeclarationError(
                f"Association '{association.name}' is already declared",
                model=self.owner.name,
            )
        self._by_name[association.name] = association
        return association

    def get(self, name: str) -> Association | None:
        return self._by_name.get(name)

    def mark_dependent(self, name: str) -> Association:
        association = self._by_name.get(name)
        if association is None:
            raise ModelDeclarationError(
                f"Cannot mark undeclared association '{name}' as dependent",
                model=self.owner.name,
            )
        association.dependent_destroy = True
        return association

    def dependents(self) -> list[Association]:
        return [a for a in self._by_name.values() if a.dependent_destroy]

    def names(self) -> list[str]:
        return list(self._by_name)

    def __iter__(self) -> Iterator[Association]:
        return iter(list(self._by_name.values()))

    def __contains__(self, name: object) -> bool:
        return name in self._by_name

    def __len__(self) -> int:
        return len(self._by_name)

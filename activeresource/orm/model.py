"""
Model classes and the ``define_model`` factory.

A model class is a plain value composed of an identity map, an association
set, validation rules, API endpoints and lifecycle hooks. It is registered by
name in the service container so associations can refer to it by name before
it exists.

Example:
    Post = define_model("Post", ["title"]).has_many("comments", dependent_destroy=True)
    Comment = (
        define_model("Comment", ["body", "post_id"])
        .belongs_to("post")
        .validates({"body": {"presence": True, "length": {"in": range(1, 140)}}})
    )
    Comment.api.set("http://localhost:3000/api")

    comment = Comment.new(body="Hello")
    await comment.save()
"""

from __future__ import annotations

import copy
import itertools
from collections.abc import Callable, Hashable, Iterable, Mapping
from typing import Any

from ..core.container import get_container
from ..core.di import resolve_or_default
from ..core.exceptions import ModelDeclarationError
from ..core.interfaces.logger import ILogger
from ..core.interfaces.transport import ITransport
from ..core.validation import RuleSet
from .api import ApiEndpoints
from .associations import BELONGS_TO, HAS_MANY, Association, AssociationSet, BelongsTo, HasMany
from .hooks import Hook, HookRegistry
from .identity_map import IdentityMap
from .instance import Instance, TemporaryKey
from .naming import resource_path
from .persistence import PersistenceController

# Attribute names an instance reserves for itself
RESERVED_NAMES: frozenset[str] = frozenset(
    name for name in dir(Instance) if not name.startswith("_")
)


def _get_logger() -> ILogger:
    from ..services.logging import NullLogger

    return resolve_or_default(ILogger, NullLogger)  # type: ignore[type-abstract]


def _check_name(model: str, name: Any, what: str) -> None:
    if not isinstance(name, str) or not name.isidentifier() or name.startswith("_"):
        raise ModelDeclarationError(
            f"Invalid {what} name {name!r}", model=model, context={what: name}
        )
    if name in RESERVED_NAMES:
        raise ModelDeclarationError(
            f"{what.capitalize()} name '{name}' collides with the instance API",
            model=model,
            context={what: name},
        )


class ModelClass:
    """A declared model: factory, cache and persistence entry point for its instances."""

    def __init__(
        self,
        name: str,
        fields: Iterable[str] | Mapping[str, Any] = (),
        primary_key: str = "id",
        transport: ITransport | None = None,
    ) -> None:
        if not isinstance(name, str) or not name.strip():
            raise ModelDeclarationError("Model name must be a non-empty string")
        self.name = name

        defaults = dict(fields) if isinstance(fields, Mapping) else dict.fromkeys(fields)
        for field_name in defaults:
            _check_name(name, field_name, "field")
        _check_name(name, primary_key, "field")
        self._defaults: dict[str, Any] = defaults
        self._primary_key = primary_key

        self.identity_map = IdentityMap(name)
        self.associations = AssociationSet(self)
        self.validations = RuleSet()
        self.api = ApiEndpoints(resource_path=resource_path(name))
        self.hooks = HookRegistry()
        self.persistence = PersistenceController(self)
        self.bound_transport = transport
        self._serials = itertools.count(1)
        self._instantiated = False

    def __repr__(self) -> str:
        return f"<ModelClass {self.name}>"

    # -------------------------------------------------------------------------
    # Declaration
    # -------------------------------------------------------------------------

    @property
    def primary_key(self) -> str:
        return self._primary_key

    @property
    def field_names(self) -> tuple[str, ...]:
        """Declared fields, primary key included."""
        names = dict.fromkeys(self._defaults)
        names[self._primary_key] = None
        return tuple(names)

    def default_values(self) -> dict[str, Any]:
        values = {}
        for name, default in self._defaults.items():
            if callable(default):
                values[name] = default()
            else:
                values[name] = copy.copy(default)
        values.setdefault(self._primary_key, None)
        return values

    def set_primary_key(self, name: str) -> ModelClass:
        if self._instantiated and name != self._primary_key:
            raise ModelDeclarationError(
                "The primary key cannot change once instances exist", model=self.name
            )
        _check_name(self.name, name, "field")
        self._primary_key = name
        return self

    def _add_association(self, association: Association) -> ModelClass:
        _check_name(self.name, association.name, "association")
        if association.name in self._defaults or association.name == self._primary_key:
            raise ModelDeclarationError(
                f"Association '{association.name}' collides with a field", model=self.name
            )
        self.associations.add(association)
        return self

    def has_many(
        self,
        name: str,
        *,
        provider: ModelClass | str | None = None,
        foreign_key: str | None = None,
        dependent_destroy: bool = False,
    ) -> ModelClass:
        return self._add_association(
            HasMany(self, name, provider, foreign_key, dependent_destroy)
        )

    def belongs_to(
        self,
        name: str,
        *,
        provider: ModelClass | str | None = None,
        foreign_key: str | None = None,
        dependent_destroy: bool = False,
    ) -> ModelClass:
        return self._add_association(
            BelongsTo(self, name, provider, foreign_key, dependent_destroy)
        )

    def dependent_destroy(self, name: str) -> ModelClass:
        self.associations.mark_dependent(name)
        return self

    def validates(self, declarations: Mapping[str, Mapping[str, Any]]) -> ModelClass:
        self.validations.add(declarations)
        return self

    def before(self, action: str, hook: Hook) -> ModelClass:
        self.hooks.before(action, hook)
        return self

    def after(self, action: str, hook: Hook) -> ModelClass:
        self.hooks.after(action, hook)
        return self

    def use_transport(self, transport: ITransport | None) -> ModelClass:
        self.bound_transport = transport
        return self

    def verify_associations(self) -> ModelClass:
        """Resolve every association target now."""
        for association in self.associations:
            association.target
        return self

    # -------------------------------------------------------------------------
    # Instances
    # -------------------------------------------------------------------------

    def new(self, attrs: Mapping[str, Any] | None = None, **kwargs: Any) -> Instance:
        """Build an unsaved instance and cache it under a temporary key. No request is made."""
        instance = Instance(self, TemporaryKey(self.name, next(self._serials)))
        self._instantiated = True
        instance.update({**(attrs or {}), **kwargs})
        return self.identity_map.insert(instance)

    def materialize(self, record: Mapping[str, Any]) -> Instance:
        """Merge a server record into the identity map and return the canonical instance."""
        record = dict(record)
        pk = record[self._primary_key]
        instance = self.identity_map.lookup(pk)
        if instance is not None:
            _get_logger().debug("Merging server record into cached %s %r", self.name, pk)
            instance.merge(record)
        else:
            instance = Instance(self, pk)
            self._instantiated = True
            instance._mark_saved(record, pk)
            instance = self.identity_map.insert(instance)
        self.absorb_nested(instance, record)
        return instance

    def absorb_nested(self, instance: Instance, record: Mapping[str, Any]) -> None:
        """Materialize associated records embedded in a server record."""
        for association in self.associations:
            value = record.get(association.name)
            if association.kind == HAS_MANY and isinstance(value, list):
                target = association.target
                for child in value:
                    if isinstance(child, Mapping) and child.get(target.primary_key) is not None:
                        target.materialize({**child, association.foreign_key: instance.pk})
            elif association.kind == BELONGS_TO and isinstance(value, Mapping):
                target = association.target
                if value.get(target.primary_key) is not None:
                    parent = target.materialize(value)
                    instance._pending_links.pop(association.foreign_key, None)
                    instance._data[association.foreign_key] = parent.pk

    def cached(self, key: Hashable) -> Instance | None:
        """Look up an instance in the identity map without a request."""
        return self.identity_map.lookup(key)

    def cached_where(self, predicate: Callable[[Instance], bool]) -> list[Instance]:
        """Filter the identity map without a request."""
        return self.identity_map.query_local(predicate)

    async def find(self, key: Any, *, force_reload: bool = False) -> Instance:
        """Return the cached instance for ``key`` or fetch it."""
        return await self.persistence.find(key, force_reload=force_reload)

    async def where(self, criteria: Mapping[str, Any] | None = None, **kwargs: Any) -> list[Instance]:
        """Fetch matching records (always a request) and merge them into the cache."""
        return await self.persistence.where({**(criteria or {}), **kwargs})

    async def all(self) -> list[Instance]:
        return await self.where()

    async def create(self, attrs: Mapping[str, Any] | None = None, **kwargs: Any) -> Instance:
        """``new(attrs)`` followed by ``create()``."""
        instance = self.new(attrs, **kwargs)
        return await instance.create()


def define_model(
    name: str,
    fields: Iterable[str] | Mapping[str, Any] = (),
    *,
    primary_key: str = "id",
    api: str | None = None,
    transport: ITransport | None = None,
) -> ModelClass:
    """
    Declare a model class and register it by name.

    Args:
        name: Model name, also used to resolve associations ('Comment')
        fields: Field names, or a mapping of field name to default value
            (callables are called per instance)
        primary_key: Primary-key field
        api: Base URL shortcut for ``Model.api.set(api)``
        transport: Explicit transport for this model

    Raises:
        ModelDeclarationError: On malformed declarations or a duplicate name
    """
    model = ModelClass(name, fields, primary_key=primary_key, transport=transport)
    if api is not None:
        model.api.set(api)
    get_container().register_model(model)
    _get_logger().debug("Declared model %s", name)
    return model


def verify_associations() -> None:
    """Resolve the association targets of every declared model."""
    for model in get_container().list_models().values():
        model.verify_associations()

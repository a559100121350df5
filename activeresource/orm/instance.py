"""
Model instances.

An Instance is a record of one model class: a dict of field values plus the
bookkeeping the identity map and the association graph need. Fields and
associations are exposed as attributes; persistence is delegated to the
model's PersistenceController.
"""

from __future__ import annotations

from collections.abc import Hashable
from typing import TYPE_CHECKING, Any, NamedTuple

from ..core.exceptions import InvalidStateError
from ..core.validation import evaluate
from .associations import link
from .errors import ErrorSet

if TYPE_CHECKING:
    from .model import ModelClass

UNSAVED = "unsaved"
SAVED = "saved"
DESTROYED = "destroyed"


class TemporaryKey(NamedTuple):
    """Identity-map key of an instance that has no primary key yet."""

    model: str
    serial: int

    def __repr__(self) -> str:
        return f"<unsaved {self.model} #{self.serial}>"


class Instance:
    """
    One record of a model class.

    Created through ``Model.new()``, ``Model.find()`` or ``Model.where()``,
    never directly.
    """

    def __init__(self, model: ModelClass, key: Hashable) -> None:
        object.__setattr__(self, "_model", model)
        object.__setattr__(self, "_data", model.default_values())
        object.__setattr__(self, "_errors", ErrorSet())
        object.__setattr__(self, "_key", key)
        object.__setattr__(self, "_state", UNSAVED)
        # foreign key -> unsaved owner this instance is linked to
        object.__setattr__(self, "_pending_links", {})
        # (child, foreign key) pairs waiting for this instance's primary key
        object.__setattr__(self, "_awaiting_key", [])
        object.__setattr__(self, "_deleting", False)

    # -------------------------------------------------------------------------
    # Attribute access
    # -------------------------------------------------------------------------

    def __getattr__(self, name: str) -> Any:
        # Only reached when normal lookup fails: fields and associations.
        if name.startswith("_"):
            raise AttributeError(name)
        model = self._model
        association = model.associations.get(name)
        if association is not None:
            return association.get(self)
        if name in self._data:
            return self._data[name]
        if name in model.field_names:
            return None
        raise AttributeError(f"'{model.name}' instance has no field '{name}'")

    def __setattr__(self, name: str, value: Any) -> None:
        if name.startswith("_") or hasattr(type(self), name):
            object.__setattr__(self, name, value)
            return
        association = self._model.associations.get(name)
        if association is not None:
            association.set(self, value)
            return
        self._set_field(name, value)

    def _set_field(self, name: str, value: Any) -> None:
        if name == self._model.primary_key and self._state != UNSAVED:
            if value != self._data.get(name):
                raise InvalidStateError(
                    f"Cannot change the primary key of a {self._state} {self._model.name}",
                    state=self._state,
                )
            return
        self._data[name] = value

    # -------------------------------------------------------------------------
    # State
    # -------------------------------------------------------------------------

    @property
    def model(self) -> ModelClass:
        return self._model

    @property
    def state(self) -> str:
        return self._state

    @property
    def key(self) -> Hashable:
        """Identity-map key: the temporary key while unsaved, then the primary key."""
        return self._key

    @property
    def pk(self) -> Any:
        return self._data.get(self._model.primary_key)

    @property
    def errors(self) -> ErrorSet:
        return self._errors

    @property
    def valid(self) -> bool:
        return self._errors.empty

    @property
    def invalid(self) -> bool:
        return not self._errors.empty

    def fields(self) -> dict[str, Any]:
        """Copy of the raw field values."""
        return dict(self._data)

    def to_record(self) -> dict[str, Any]:
        """JSON-ready field values, as sent to the server."""
        primary_key = self._model.primary_key
        return {
            name: value
            for name, value in self._data.items()
            if not (name == primary_key and value is None)
        }

    def merge(self, record: dict[str, Any]) -> Instance:
        """
        Absorb fields from a server record or a duplicate instance.

        Association names are skipped (nested records are materialized by the
        model), as is a primary key that disagrees with a saved instance's.
        """
        primary_key = self._model.primary_key
        associations = self._model.associations
        for name, value in record.items():
            if name in associations:
                continue
            if name == primary_key and self._state != UNSAVED and value != self.pk:
                continue
            self._data[name] = value
        return self

    def update(self, attrs: dict[str, Any] | None = None, **kwargs: Any) -> Instance:
        """Assign fields locally. No request is made."""
        for name, value in {**(attrs or {}), **kwargs}.items():
            setattr(self, name, value)
        return self

    # -------------------------------------------------------------------------
    # Validation
    # -------------------------------------------------------------------------

    def validate(self, field: str | None = None) -> bool:
        """
        Run validation rules and refresh the error set.

        Args:
            field: Validate only this field (its previous messages are replaced)

        Returns:
            True when the whole instance is valid afterwards
        """
        rules = self._model.validations
        targets = [field] if field is not None else rules.fields()
        for name in targets:
            value = getattr(self, name, None)
            messages = []
            for rule in rules.for_field(name):
                result = evaluate(rule, value, self)
                if not result:
                    messages.append(result.message)
            self._errors.replace(name, messages)
        return self.valid

    # -------------------------------------------------------------------------
    # Persistence
    # -------------------------------------------------------------------------

    async def create(self) -> Instance:
        return await self._model.persistence.create(self)

    async def save(self) -> Instance:
        return await self._model.persistence.save(self)

    async def update_remote(self, attrs: dict[str, Any] | None = None, **kwargs: Any) -> Instance:
        return await self._model.persistence.update_remote(self, {**(attrs or {}), **kwargs})

    async def delete(self) -> Instance:
        return await self._model.persistence.delete(self)

    # Transitions, driven by the persistence controller

    def _mark_saved(self, record: dict[str, Any], pk: Any) -> None:
        self.merge(record)
        self._data[self._model.primary_key] = pk
        object.__setattr__(self, "_key", pk)
        object.__setattr__(self, "_state", SAVED)

    def _mark_destroyed(self) -> None:
        object.__setattr__(self, "_state", DESTROYED)

    def _resolve_awaiting_links(self) -> None:
        for child, foreign_key in self._awaiting_key:
            if child._pending_links.get(foreign_key) is self:
                del child._pending_links[foreign_key]
                child._data[foreign_key] = self.pk
        self._awaiting_key.clear()

    def _release_awaiting_links(self) -> None:
        # a destroyed owner will never get a key; its children keep a None foreign key
        for child, foreign_key in self._awaiting_key:
            if child._pending_links.get(foreign_key) is self:
                del child._pending_links[foreign_key]
        self._awaiting_key.clear()

    def _hand_over_links(self, canonical: Instance) -> None:
        """Move this instance's pending links onto ``canonical``."""
        for foreign_key, owner in self._pending_links.items():
            link(canonical, foreign_key, owner)
        self._pending_links.clear()

    def __repr__(self) -> str:
        return f"<{self._model.name} {self._key!r} {self._state} {self._data!r}>"

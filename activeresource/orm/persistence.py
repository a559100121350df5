"""
Persistence controller: the async state machine behind create/save/update/delete.

Every action runs in the same order: before-hooks, validation (for writes),
the transport call, the identity-map update, after-hooks. A failure at any
step raises and leaves the instance in the state it had before the step.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any, cast

from ..core.di import resolve_or_default, try_resolve
from ..core.exceptions import (
    CascadeDestroyError,
    InvalidStateError,
    RecordInvalidError,
    TransportAPIError,
)
from ..core.interfaces.logger import ILogger
from ..core.interfaces.transport import ITransport, TransportResponse, Verb
from .api import ACTION_VERBS
from .instance import DESTROYED, SAVED, UNSAVED, Instance

if TYPE_CHECKING:
    from .model import ModelClass


def _get_logger() -> ILogger:
    from ..services.logging import NullLogger

    return resolve_or_default(ILogger, NullLogger)  # type: ignore[type-abstract]


class PersistenceController:
    """Talks to the transport on behalf of one model class."""

    def __init__(self, model: ModelClass) -> None:
        self.model = model

    # -------------------------------------------------------------------------
    # Plumbing
    # -------------------------------------------------------------------------

    def transport(self) -> ITransport:
        """Explicit transport, else the container's, else the settings default."""
        if self.model.bound_transport is not None:
            return self.model.bound_transport
        transport = try_resolve(ITransport)  # type: ignore[type-abstract]
        if transport is not None:
            return transport
        from ..transport.http import default_transport

        return default_transport()

    def url_for(self, action: Any, key: Any = None) -> str:
        default_base = None
        if self.model.api.base_url is None:
            from ..config import config_get

            default_base = config_get("api.base_url")
        return self.model.api.url_for(action, key, default_base=default_base)

    async def _call(self, action: str, url: str, body: Any = None) -> TransportResponse:
        verb = cast(Verb, ACTION_VERBS[action])
        _get_logger().debug("%s %s: %s %s", self.model.name, action, verb, url)
        return await self.transport().request(verb, url, body)

    def _ensure_valid(self, instance: Instance, action: str) -> None:
        if instance.validate():
            return
        errors = instance.errors.to_dict()
        _get_logger().warning(
            "%s %s rejected by validation: %s", self.model.name, action, errors
        )
        raise RecordInvalidError(
            f"{self.model.name} is invalid: {'; '.join(instance.errors.full_messages())}",
            instance=instance,
            errors=errors,
        )

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    async def find(self, key: Any, force_reload: bool = False) -> Instance:
        if not force_reload:
            cached = self.model.identity_map.lookup(key)
            if cached is not None:
                return cached
        url = self.url_for("show", key)
        response = await self._call("show", url)
        record = response.record()
        if not record:
            raise TransportAPIError(
                f"Empty response for {self.model.name} {key!r}",
                status_code=response.status,
                url=url,
            )
        record.setdefault(self.model.primary_key, key)
        return self.model.materialize(record)

    async def where(self, criteria: dict[str, Any]) -> list[Instance]:
        url = self.url_for("index")
        response = await self._call("index", url, criteria or None)
        records = response.records()
        primary_key = self.model.primary_key
        missing = [record for record in records if record.get(primary_key) is None]
        if missing:
            raise TransportAPIError(
                f"{len(missing)} {self.model.name} record(s) came back without '{primary_key}'",
                status_code=response.status,
                url=url,
            )
        return [self.model.materialize(record) for record in records]

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    async def create(self, instance: Instance) -> Instance:
        if instance.state != UNSAVED:
            raise InvalidStateError(
                f"Cannot create a {instance.state} {self.model.name}", state=instance.state
            )
        hooks = self.model.hooks
        hooks.run_before("create", instance)
        self._ensure_valid(instance, "create")

        url = self.url_for("create")
        response = await self._call("create", url, instance.to_record())
        record = response.record()
        pk = record.get(self.model.primary_key, instance.pk)
        if pk is None:
            raise TransportAPIError(
                f"Create response for {self.model.name} carried no '{self.model.primary_key}'",
                status_code=response.status,
                url=url,
            )

        old_key = instance.key
        instance._mark_saved(record, pk)
        canonical = self.model.identity_map.rekey(old_key, instance)
        if canonical is not instance:
            instance._hand_over_links(canonical)
        instance._resolve_awaiting_links()
        self.model.absorb_nested(canonical, record)
        hooks.run_after("create", canonical)
        return canonical

    async def _update(self, instance: Instance) -> Instance:
        self._ensure_valid(instance, "update")
        url = self.url_for("update", instance.pk)
        response = await self._call("update", url, instance.to_record())
        record = response.record()
        instance.merge(record)
        self.model.absorb_nested(instance, record)
        return instance

    async def save(self, instance: Instance) -> Instance:
        if instance.state == DESTROYED:
            raise InvalidStateError(
                f"Cannot save a destroyed {self.model.name}", state=instance.state
            )
        hooks = self.model.hooks
        hooks.run_before("save", instance)
        if instance.state == UNSAVED:
            instance = await self.create(instance)
        else:
            await self._update(instance)
        hooks.run_after("save", instance)
        return instance

    async def update_remote(self, instance: Instance, attrs: dict[str, Any]) -> Instance:
        if instance.state == DESTROYED:
            raise InvalidStateError(
                f"Cannot update a destroyed {self.model.name}", state=instance.state
            )
        hooks = self.model.hooks
        previous = instance.fields()
        state = instance.state
        instance.update(attrs)
        try:
            hooks.run_before("update_remote", instance)
            if state == UNSAVED:
                instance = await self.create(instance)
            else:
                await self._update(instance)
        except RecordInvalidError:
            # the rejected values stay so the error set describes them
            raise
        except Exception:
            if instance.state == state:
                instance._data.clear()
                instance._data.update(previous)
            raise
        hooks.run_after("update_remote", instance)
        return instance

    async def delete(self, instance: Instance) -> Instance:
        if instance.state == DESTROYED or instance._deleting:
            raise InvalidStateError(
                f"Cannot delete a {instance.state} {self.model.name}", state=instance.state
            )
        self.model.hooks.run_before("delete", instance)
        instance._deleting = True
        try:
            if instance.state == SAVED:
                await self._call("delete", self.url_for("delete", instance.pk))
            self.model.identity_map.evict(instance.key)
            instance._mark_destroyed()
            destroyed, failures = await self._cascade(instance)
            instance._release_awaiting_links()
        finally:
            instance._deleting = False

        if failures:
            _get_logger().warning(
                "%s %r destroyed; %d dependent(s) could not be destroyed",
                self.model.name,
                instance.key,
                len(failures),
            )
            raise CascadeDestroyError(
                f"{self.model.name} {instance.key!r} was destroyed but "
                f"{len(failures)} dependent(s) were not",
                owner=instance,
                destroyed=destroyed,
                failures=failures,
            )
        self.model.hooks.run_after("delete", instance)
        return instance

    async def _cascade(
        self, owner: Instance
    ) -> tuple[list[Instance], list[tuple[Instance, BaseException]]]:
        targets: list[Instance] = []
        for association in self.model.associations.dependents():
            for dependent in association.associated(owner):
                if dependent.state == DESTROYED or dependent._deleting:
                    continue
                if any(dependent is seen for seen in targets):
                    continue
                targets.append(dependent)
        if not targets:
            return [], []

        _get_logger().debug(
            "Cascading delete of %s %r to %d dependent(s)",
            self.model.name,
            owner.key,
            len(targets),
        )
        results = await asyncio.gather(
            *(target.model.persistence.delete(target) for target in targets),
            return_exceptions=True,
        )

        destroyed: list[Instance] = []
        failures: list[tuple[Instance, BaseException]] = []
        for target, result in zip(targets, results):
            if isinstance(result, CascadeDestroyError):
                destroyed.append(target)
                destroyed.extend(result.destroyed)
                failures.extend(result.failures)
            elif isinstance(result, BaseException):
                failures.append((target, result))
            else:
                destroyed.append(target)
        return destroyed, failures

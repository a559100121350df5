"""
Process-wide service container.

Two registries live here. Collaborators the ORM looks up by interface (the
logger, the transport) are held as dependency-injector providers. Declared
models are held by name so associations can name their target before it
exists and resolve it on first use.

``ServiceContainer.reset()`` drops both, which is how tests get a clean world.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import TYPE_CHECKING, Any, ClassVar, TypeVar

from dependency_injector import providers

from .exceptions import ModelDeclarationError

if TYPE_CHECKING:
    from ..orm.model import ModelClass

T = TypeVar("T")


class ServiceContainer:
    _instance: ClassVar[ServiceContainer | None] = None

    def __init__(self) -> None:
        self._providers: dict[type, providers.Provider] = {}
        self._models: dict[str, ModelClass] = {}

    @classmethod
    def get_instance(cls) -> ServiceContainer:
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    @classmethod
    def reset(cls) -> None:
        """Forget the global container; the next lookup builds an empty one."""
        cls._instance = None

    # -- services --------------------------------------------------------

    def register_singleton(
        self,
        interface: type[T],
        implementation: T | None = None,
        factory: Callable[[], T] | None = None,
    ) -> None:
        """
        Bind ``interface`` to one shared object.

        Pass a ready ``implementation``, or a ``factory`` that is called on the
        first resolve and whose result is reused afterwards.
        """
        if implementation is not None:
            provider: providers.Provider = providers.Object(implementation)
        elif factory is not None:
            provider = providers.Singleton(factory)
        else:
            raise ValueError(f"Nothing to register for {interface.__name__}")
        self._providers[interface] = provider

    def resolve(self, interface: type[T]) -> T:
        try:
            provider = self._providers[interface]
        except KeyError:
            raise KeyError(f"{interface.__name__} is not registered") from None
        return provider()

    def try_resolve(self, interface: type[T]) -> T | None:
        provider = self._providers.get(interface)
        return None if provider is None else provider()

    # -- models ----------------------------------------------------------

    def register_model(self, model: ModelClass) -> ModelClass:
        """
        Make ``model`` resolvable by name.

        Registering the same object twice is a no-op; a different model under
        a taken name raises ModelDeclarationError.
        """
        existing = self._models.setdefault(model.name, model)
        if existing is not model:
            raise ModelDeclarationError(
                f"A model named '{model.name}' is already declared", model=model.name
            )
        return model

    def get_model(self, name: str) -> ModelClass | None:
        return self._models.get(name)

    def list_models(self) -> dict[str, Any]:
        return dict(self._models)


def get_container() -> ServiceContainer:
    return ServiceContainer.get_instance()


def resolve(interface: type[T]) -> T:
    """Resolve from the global container; KeyError when unregistered."""
    return get_container().resolve(interface)


def try_resolve(interface: type[T]) -> T | None:
    return get_container().try_resolve(interface)

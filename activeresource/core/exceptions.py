"""
Exceptions raised by activeresource.

Everything the library raises on purpose derives from ActiveResourceException.
Keyword details given to an error (a URL, a model name, a state) are kept in
``context`` and rendered after the message, so a traceback alone usually says
which record and which request went wrong.

    ActiveResourceException
    ├── ActiveResourceConfigError
    │   ├── ConfigFileError
    │   └── ConfigValidationError
    ├── ModelDeclarationError
    │   └── AssociationResolutionError
    ├── ActiveResourceValidationError
    │   └── RecordInvalidError
    ├── InvalidStateError
    ├── ActiveResourceNetworkError
    │   ├── TransportConnectionError
    │   ├── TransportAPIError
    │   └── TransportTimeoutError
    └── CascadeDestroyError
"""

from __future__ import annotations

from typing import Any


class ActiveResourceException(Exception):
    """
    Root of the hierarchy.

    Attributes:
        message: What went wrong, without the context suffix
        context: Details passed as keyword arguments; ``None`` values are dropped
    """

    def __init__(
        self,
        message: str,
        *,
        context: dict | None = None,
        cause: BaseException | None = None,
        **details: Any,
    ) -> None:
        self.message = message
        self.context = dict(context or {})
        self.context.update((k, v) for k, v in details.items() if v is not None)
        if cause is not None:
            self.__cause__ = cause
        super().__init__(message)

    def __str__(self) -> str:
        if not self.context:
            return self.message
        details = ", ".join(f"{k}={v!r}" for k, v in self.context.items())
        return f"{self.message} ({details})"


# -- configuration -----------------------------------------------------------


class ActiveResourceConfigError(ActiveResourceException):
    """Settings or endpoint configuration is unusable."""


class ConfigFileError(ActiveResourceConfigError):
    """An explicitly requested config file is missing or is not valid TOML."""


class ConfigValidationError(ActiveResourceConfigError, ValueError):
    """A setting has a value its schema rejects (``context['key']`` names it)."""


# -- declarations ------------------------------------------------------------


class ModelDeclarationError(ActiveResourceException):
    """
    A model was declared wrongly: a reserved field name, a duplicate
    association, an unknown validation rule, a primary key changed after
    instances exist. Fix the declaration; retrying cannot help.
    """


class AssociationResolutionError(ModelDeclarationError):
    """An association names a model that is not registered."""


# -- instances ---------------------------------------------------------------


class ActiveResourceValidationError(ActiveResourceException, ValueError):
    pass


class RecordInvalidError(ActiveResourceValidationError):
    """
    Validation failed, so nothing was sent.

    ``errors`` is a copy of the instance's error set taken when the write was
    refused; ``instance`` is left in the state it had before the call.
    """

    def __init__(
        self,
        message: str,
        *,
        instance: Any = None,
        errors: dict[str, list[str]] | None = None,
        **kwargs: Any,
    ) -> None:
        self.instance = instance
        self.errors = dict(errors or {})
        super().__init__(message, fields=sorted(self.errors) or None, **kwargs)


class InvalidStateError(ActiveResourceException):
    """The instance's lifecycle state does not allow the operation."""


# -- transport ---------------------------------------------------------------


class ActiveResourceNetworkError(ActiveResourceException):
    """The transport could not complete a request."""


class TransportConnectionError(ActiveResourceNetworkError):
    """The server could not be reached at all."""


class TransportAPIError(ActiveResourceNetworkError):
    """The server answered, but with an error status or a body we cannot use."""

    def __init__(self, message: str, *, status_code: int | None = None, **kwargs: Any) -> None:
        self.status_code = status_code
        super().__init__(message, status_code=status_code, **kwargs)


class TransportTimeoutError(ActiveResourceNetworkError):
    pass


# -- cascades ----------------------------------------------------------------


class CascadeDestroyError(ActiveResourceException):
    """
    The owner is gone but some dependents survived its cascade.

    Nothing is rolled back: the owner was deleted on the server and evicted
    locally before the dependents were attempted.

    Attributes:
        owner: Instance whose delete started the cascade
        destroyed: Dependents that were deleted, at any depth
        failures: ``(instance, exception)`` for each dependent that was not
    """

    def __init__(
        self,
        message: str,
        *,
        owner: Any = None,
        destroyed: list | None = None,
        failures: list[tuple[Any, BaseException]] | None = None,
        **kwargs: Any,
    ) -> None:
        self.owner = owner
        self.destroyed = list(destroyed or [])
        self.failures = list(failures or [])
        super().__init__(message, failed=len(self.failures), **kwargs)

    @property
    def partial(self) -> bool:
        return bool(self.failures)

"""
Opt-in wiring of the library's collaborators.

Nothing requires ``bootstrap()``: unconfigured, every module logs into a
NullLogger and models share a default HttpxTransport. Calling it registers a
logger and a transport built from the current settings, both created lazily
on first use.
"""

from __future__ import annotations

from .container import ServiceContainer, get_container
from .interfaces.logger import ILogger
from .interfaces.transport import ITransport

_initialized = False


def _make_logger() -> ILogger:
    from ..services.logging import ActiveResourceLogger
    from .settings import load_settings

    return ActiveResourceLogger.from_config(load_settings().logging)


def bootstrap() -> ServiceContainer:
    """Register ILogger and ITransport once; later calls return the same container."""
    global _initialized
    from ..transport.http import HttpxTransport

    container = get_container()
    if not _initialized:
        container.register_singleton(ILogger, factory=_make_logger)  # type: ignore[type-abstract]
        container.register_singleton(ITransport, factory=HttpxTransport.from_settings)  # type: ignore[type-abstract]
        _initialized = True
    return container


def reset() -> None:
    """
    Return to the unconfigured state.

    Declared models and their identity maps are dropped along with the
    service registrations.
    """
    global _initialized
    from ..transport.http import reset_default_transport

    ServiceContainer.reset()
    reset_default_transport()
    _initialized = False


def is_initialized() -> bool:
    return _initialized

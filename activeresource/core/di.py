"""
Lookups that never fail.

Library modules ask for their logger through ``resolve_or_default`` so that an
application which never calls ``bootstrap()`` still gets working (silent)
defaults instead of a KeyError deep inside a save.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, TypeVar

if TYPE_CHECKING:
    from collections.abc import Callable

T = TypeVar("T")


def try_resolve(interface: type[T]) -> T | None:
    from .container import get_container

    return get_container().try_resolve(interface)


def resolve_or_default(interface: type[T], default_factory: Callable[[], T]) -> T:
    """
    The registered ``interface``, or a fresh ``default_factory()``.

        >>> from activeresource.core.interfaces.logger import ILogger
        >>> from activeresource.services.logging import NullLogger
        >>> logger = resolve_or_default(ILogger, NullLogger)
    """
    found = try_resolve(interface)
    return default_factory() if found is None else found

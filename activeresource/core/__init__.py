"""
Core infrastructure for activeresource.

This module provides:
- ServiceContainer: DI container using dependency-injector, plus the model registry
- Library bootstrap for initialization
- Interface definitions for the logger and the transport
- Validation rules
- Custom exception hierarchy
"""

from .bootstrap import bootstrap, is_initialized, reset
from .container import ServiceContainer, get_container, resolve, try_resolve
from .exceptions import (
    ActiveResourceConfigError,
    ActiveResourceException,
    ActiveResourceNetworkError,
    ActiveResourceValidationError,
    AssociationResolutionError,
    CascadeDestroyError,
    ConfigFileError,
    ConfigValidationError,
    InvalidStateError,
    ModelDeclarationError,
    RecordInvalidError,
    TransportAPIError,
    TransportConnectionError,
    TransportTimeoutError,
)

__all__ = [
    "ActiveResourceConfigError",
    "ActiveResourceException",
    "ActiveResourceNetworkError",
    "ActiveResourceValidationError",
    "AssociationResolutionError",
    "CascadeDestroyError",
    "ConfigFileError",
    "ConfigValidationError",
    "InvalidStateError",
    "ModelDeclarationError",
    "RecordInvalidError",
    "ServiceContainer",
    "TransportAPIError",
    "TransportConnectionError",
    "TransportTimeoutError",
    "bootstrap",
    "get_container",
    "is_initialized",
    "reset",
    "resolve",
    "try_resolve",
]

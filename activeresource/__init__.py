"""
activeresource: a client-side ORM for REST APIs.

Declare models with ``define_model``, link them with ``has_many`` and
``belongs_to``, validate them locally and persist them through an async
transport. Every model keeps an identity map so one server record is one
Python object.
"""

__version__ = "0.1.0"

from .core import (
    ActiveResourceConfigError,
    ActiveResourceException,
    ActiveResourceNetworkError,
    ActiveResourceValidationError,
    AssociationResolutionError,
    CascadeDestroyError,
    InvalidStateError,
    ModelDeclarationError,
    RecordInvalidError,
    TransportAPIError,
    TransportConnectionError,
    TransportTimeoutError,
    bootstrap,
    reset,
)
from .core.interfaces import ITransport, TransportResponse
from .orm import ErrorSet, HasManyCollection, Instance, ModelClass, define_model, verify_associations
from .transport import HttpxTransport

__all__ = [
    "ActiveResourceConfigError",
    "ActiveResourceException",
    "ActiveResourceNetworkError",
    "ActiveResourceValidationError",
    "AssociationResolutionError",
    "CascadeDestroyError",
    "ErrorSet",
    "HasManyCollection",
    "HttpxTransport",
    "ITransport",
    "Instance",
    "InvalidStateError",
    "ModelClass",
    "ModelDeclarationError",
    "RecordInvalidError",
    "TransportAPIError",
    "TransportConnectionError",
    "TransportResponse",
    "TransportTimeoutError",
    "__version__",
    "bootstrap",
    "define_model",
    "reset",
    "verify_associations",
]

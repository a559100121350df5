"""
Interface definitions for activeresource's collaborators.

These define the contracts that implementations must follow, so the ORM
can be wired to different loggers and transports.
"""

from .logger import ILogger
from .transport import VERBS, ITransport, TransportResponse, Verb

__all__ = [
    "ILogger",
    "ITransport",
    "TransportResponse",
    "VERBS",
    "Verb",
]

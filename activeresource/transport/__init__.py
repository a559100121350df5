"""Transport implementations."""

from .http import HttpxTransport, default_transport

__all__ = ["HttpxTransport", "default_transport"]

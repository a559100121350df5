"""
Transport interface consumed by the persistence layer.

The ORM never speaks HTTP itself. It hands a verb, a fully resolved URL and
an optional JSON-like body to an ITransport and gets back a status plus a
record (or a sequence of records). Failures are raised as
ActiveResourceNetworkError subclasses.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Literal

Verb = Literal["create", "read", "update", "delete"]

VERBS: tuple[str, ...] = ("create", "read", "update", "delete")


@dataclass
class TransportResponse:
    """Result of a successful transport call."""

    status: int
    body: dict[str, Any] | list[dict[str, Any]] | None = None

    def records(self) -> list[dict[str, Any]]:
        """Return the body as a list of records, whatever its shape."""
        if self.body is None:
            return []
        if isinstance(self.body, list):
            return [r for r in self.body if isinstance(r, dict)]
        return [self.body]

    def record(self) -> dict[str, Any]:
        """Return the body as a single record ({} when empty)."""
        if isinstance(self.body, dict):
            return self.body
        if isinstance(self.body, list) and self.body and isinstance(self.body[0], dict):
            return self.body[0]
        return {}


class ITransport(ABC):
    """
    Asynchronous request/response collaborator.

    Implementations own timeouts, authentication and retries (if any).
    """

    @abstractmethod
    async def request(
        self,
        verb: Verb,
        url: str,
        body: dict[str, Any] | None = None,
    ) -> TransportResponse:
        """
        Perform one request.

        Args:
            verb: One of 'create', 'read', 'update', 'delete'
            url: Fully resolved URL
            body: Record to send (query criteria for 'read')

        Returns:
            TransportResponse with the decoded body

        Raises:
            ActiveResourceNetworkError: On any transport failure
        """
        ...

    async def aclose(self) -> None:
        """Release any pooled resources."""
        return None

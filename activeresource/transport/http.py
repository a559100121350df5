"""
HTTP transport backed by httpx.

Maps the four persistence verbs onto REST methods, decodes JSON bodies and
turns every failure into an ActiveResourceNetworkError subclass.
"""

from __future__ import annotations

import json
from typing import Any

import httpx

from ..core.di import resolve_or_default
from ..core.exceptions import (
    TransportAPIError,
    TransportConnectionError,
    TransportTimeoutError,
)
from ..core.interfaces.logger import ILogger
from ..core.interfaces.transport import VERBS, ITransport, TransportResponse, Verb

VERB_METHODS: dict[str, str] = dict(zip(VERBS, ("POST", "GET", "PUT", "DELETE")))

DEFAULT_HEADERS = {"Accept": "application/json"}


def _get_logger() -> ILogger:
    from ..services.logging import NullLogger

    return resolve_or_default(ILogger, NullLogger)  # type: ignore[type-abstract]


def _looks_like_html(body: str) -> bool:
    stripped = body.strip()
    return stripped.startswith("<!") or stripped.lower().startswith("<html")


def parse_json_body(body: str, http_status: int) -> tuple[Any, str | None]:
    """Parse a JSON response body with descriptive error messages.

    Returns (parsed, error_message).
    """
    if not body.strip():
        return None, None

    # Misconfigured proxies answer with HTML
    if _looks_like_html(body):
        preview = body[:100].replace("\n", " ")
        return None, f"Server returned HTML instead of JSON: '{preview}...'"

    try:
        return json.loads(body), None
    except json.JSONDecodeError as e:
        preview = body[:100].replace("\n", " ")
        return None, (
            f"Invalid JSON in response (HTTP {http_status}) at position {e.pos}: '{preview}...'"
        )


def error_detail(body: str, http_status: int) -> str:
    """Best human-readable detail of an error response."""
    data, _ = parse_json_body(body, http_status)
    if isinstance(data, dict):
        # "detail" (FastAPI) or "message" (Flask/Express)
        detail = data.get("detail") or data.get("message") or data.get("error")
        if detail:
            return detail if isinstance(detail, str) else json.dumps(detail)
    if not body.strip():
        return httpx.codes.get_reason_phrase(http_status) or "no response body"
    if http_status == 403 and _looks_like_html(body):
        return (
            "Access denied by proxy or firewall (received HTML 403). "
            "Check network configuration."
        )
    if len(body) > 100:
        return f"Non-JSON response: '{body[:100].replace(chr(10), ' ')}...'"
    return body


class HttpxTransport(ITransport):
    """ITransport over httpx.AsyncClient."""

    def __init__(
        self,
        timeout: float = 30.0,
        headers: dict[str, str] | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """
        Args:
            timeout: Seconds before a request fails with TransportTimeoutError
            headers: Sent with every request, on top of ``Accept: application/json``
            client: Shared client to use instead of one client per request
        """
        self.timeout = timeout
        self.headers = {**DEFAULT_HEADERS, **(headers or {})}
        self._client = client

    @classmethod
    def from_settings(cls) -> HttpxTransport:
        """Build a transport from the ``api`` settings section."""
        from ..config import config_get

        return cls(
            timeout=config_get("api.timeout") or 30.0,
            headers=config_get("api.headers") or {},
        )

    async def request(
        self,
        verb: Verb,
        url: str,
        body: dict[str, Any] | None = None,
    ) -> TransportResponse:
        method = VERB_METHODS.get(verb)
        if method is None:
            raise ValueError(f"Unknown transport verb: {verb!r}")

        kwargs: dict[str, Any] = {}
        if body:
            if verb == "read":
                kwargs["params"] = body
            else:
                kwargs["json"] = body

        _get_logger().debug("API request: %s %s", method, url)
        try:
            if self._client is not None:
                response = await self._client.request(method, url, headers=self.headers, **kwargs)
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.request(method, url, headers=self.headers, **kwargs)
        except httpx.TimeoutException as e:
            _get_logger().debug("API timeout: %s %s", method, url)
            raise TransportTimeoutError(
                f"Request timed out: {method} {url}", url=url, timeout=self.timeout, cause=e
            ) from e
        except httpx.HTTPError as e:
            _get_logger().debug("API connection error to %s: %s", url, e)
            raise TransportConnectionError(
                f"Connection error: {e}", url=url, cause=e
            ) from e

        status = response.status_code
        text = response.text
        _get_logger().debug(
            "API response: %s %s -> HTTP %d (%d bytes)", method, url, status, len(text)
        )

        if status >= 400:
            detail = error_detail(text, status)
            _get_logger().debug("API error: %s %s -> HTTP %d: %s", method, url, status, detail[:200])
            raise TransportAPIError(f"HTTP {status}: {detail}", status_code=status, url=url)

        result, error = parse_json_body(text, status)
        if error:
            raise TransportAPIError(error, status_code=status, url=url)

        # Unwrap {"success": true, "data": ...} envelopes
        if isinstance(result, dict) and result.get("success") and "data" in result:
            result = result["data"]
        if result is not None and not isinstance(result, (dict, list)):
            raise TransportAPIError(
                f"Expected a JSON object or array, got {type(result).__name__}",
                status_code=status,
                url=url,
            )
        return TransportResponse(status=status, body=result)

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()


_default: HttpxTransport | None = None


def default_transport() -> HttpxTransport:
    """Process-wide transport used when none is bound or registered."""
    global _default
    if _default is None:
        _default = HttpxTransport.from_settings()
    return _default


def reset_default_transport() -> None:
    global _default
    _default = None

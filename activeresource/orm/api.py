"""
API endpoint configuration for one model class.

A model has a base URL plus optional per-action overrides. Overrides may be
absolute URLs (used as-is) or paths relative to the base. Without an override
the resource path is the plural, underscored model name. The primary key is
appended as a path segment for single-record actions.
"""

from __future__ import annotations

from typing import Any, Literal
from urllib.parse import quote

from pydantic import field_validator

from ..core.exceptions import ActiveResourceConfigError
from ..core.models.config import ConfigBaseModel, normalize_base_url

Action = Literal["index", "show", "create", "update", "delete"]

ACTION_VERBS: dict[str, str] = {
    "index": "read",
    "show": "read",
    "create": "create",
    "update": "update",
    "delete": "delete",
}

_KEYED_ACTIONS = frozenset({"show", "update", "delete"})


def _is_absolute(url: str) -> bool:
    return url.startswith(("http://", "https://"))


class ApiEndpoints(ConfigBaseModel):
    """Base URL and per-action URL overrides of a model."""

    resource_path: str
    base_url: str | None = None
    index_url: str | None = None
    show_url: str | None = None
    create_url: str | None = None
    update_url: str | None = None
    delete_url: str | None = None

    @field_validator("base_url", mode="before")
    @classmethod
    def validate_base_url(cls, v: str | None) -> str | None:
        return normalize_base_url(v)

    @field_validator(
        "index_url", "show_url", "create_url", "update_url", "delete_url", mode="before"
    )
    @classmethod
    def strip_override(cls, v: str | None) -> str | None:
        if v is None or v == "":
            return None
        return v.rstrip("/")

    def set(self, base_url: str, **overrides: Any) -> ApiEndpoints:
        """
        Set the base URL, optionally with per-action overrides.

        Example:
            Comment.api.set("http://localhost:3000/api", create_url="/comment")
        """
        self.base_url = base_url
        for name, value in overrides.items():
            if name not in ("index_url", "show_url", "create_url", "update_url", "delete_url"):
                raise ActiveResourceConfigError(
                    f"Unknown API override '{name}'", context={"override": name}
                )
            setattr(self, name, value)
        return self

    def url_for(
        self,
        action: Action,
        key: Any = None,
        default_base: str | None = None,
    ) -> str:
        """
        Resolve the URL of one action.

        Args:
            action: index, show, create, update or delete
            key: Primary key, required for show/update/delete
            default_base: Base URL to use when none was set on the model

        Raises:
            ActiveResourceConfigError: When no base URL is available or the key is missing
        """
        if action not in ACTION_VERBS:
            raise ActiveResourceConfigError(f"Unknown API action '{action}'")

        override = getattr(self, f"{action}_url")
        if override and _is_absolute(override):
            url = override
        else:
            base = self.base_url or normalize_base_url(default_base)
            if not base:
                raise ActiveResourceConfigError(
                    "No API base URL configured; call api.set() or set api.base_url",
                    context={"resource": self.resource_path, "action": action},
                )
            path = override or self.resource_path
            url = f"{base}/{path.lstrip('/')}"

        if action in _KEYED_ACTIONS:
            if key is None:
                raise ActiveResourceConfigError(
                    f"The '{action}' URL needs a primary key",
                    context={"resource": self.resource_path},
                )
            url = f"{url}/{quote(str(key), safe='')}"
        return url

"""
Settings sections.

Each table of ``.activeresource/config.toml`` (or ``[tool.activeresource]``)
maps onto one model below. Field descriptions double as the documentation of
the config keys, see ``activeresource.config.CONFIGURABLE_KEYS``.
"""

from __future__ import annotations

from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

LogLevel = Literal["debug", "info", "warning", "error"]

_MISSING = object()


class ConfigBaseModel(BaseModel):
    # TOML and env values arrive as str/int, so coercion stays on
    model_config = ConfigDict(
        validate_assignment=True,
        extra="ignore",
        populate_by_name=True,
    )


def normalize_base_url(v: str | None) -> str | None:
    """``None`` for empty input, else the URL without its trailing slash."""
    if not v:
        return None
    if not v.startswith(("http://", "https://")):
        raise ValueError("API base URL must start with http:// or https://")
    return v.rstrip("/")


class ApiConfig(ConfigBaseModel):
    base_url: Annotated[str, Field(max_length=2048)] | None = Field(
        default=None,
        description="Default API base URL for models that never call api.set()",
    )
    timeout: Annotated[float, Field(gt=0)] = Field(
        default=30.0, description="Transport timeout in seconds"
    )
    headers: dict[str, str] = Field(
        default_factory=dict, description="Extra HTTP headers sent with every request"
    )

    @field_validator("base_url", mode="before")
    @classmethod
    def check_base_url(cls, v: str | None) -> str | None:
        return normalize_base_url(v)


class LoggingConfig(ConfigBaseModel):
    level: LogLevel = Field(
        default="warning", description="Log level (debug, info, warning, error)"
    )
    console: bool = Field(default=True, description="Output diagnostic logs to stderr")
    file: bool = Field(default=False, description="Output diagnostic logs to a rotating file")
    path: str | None = Field(
        default=None,
        description="Log file path (default ~/.activeresource/activeresource.log)",
    )


class ActiveResourceConfig(ConfigBaseModel):
    """All settings sections, for building configuration in code."""

    api: ApiConfig = Field(default_factory=ApiConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    def get(self, key: str, default: Any = None) -> Any:
        """Value at a dotted key such as ``"api.timeout"``, or ``default``."""
        node: Any = self
        for part in key.split("."):
            if isinstance(node, dict):
                node = node.get(part, _MISSING)
            else:
                node = getattr(node, part, _MISSING)
            if node is _MISSING:
                return default
        return node

    def set(self, key: str, value: Any) -> None:
        """Assign (and validate) the value at a dotted key.

        Raises:
            ValueError: If the key does not name a settings field
        """
        section_key, _, name = key.rpartition(".")
        section = self.get(section_key) if section_key else None
        if not isinstance(section, BaseModel) or name not in type(section).model_fields:
            raise ValueError(f"Unknown config key: {key}")
        setattr(section, name, value)

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump()

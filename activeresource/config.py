"""Configuration lookup for activeresource.

``config_get("api.timeout")`` re-reads the settings on every call, so changes
to the environment or to the config file are picked up without a restart.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

from .core.models.config import ActiveResourceConfig
from .core.settings import find_config_file, load_settings


def _describe_keys() -> dict[str, dict[str, Any]]:
    keys: dict[str, dict[str, Any]] = {}
    for section, section_info in ActiveResourceConfig.model_fields.items():
        for name, info in section_info.annotation.model_fields.items():
            keys[f"{section}.{name}"] = {
                "type": info.annotation,
                "default": info.get_default(call_default_factory=True),
                "description": info.description,
            }
    return keys


# Every dotted key the library reads, with its type, default and description
CONFIGURABLE_KEYS = _describe_keys()


def _lookup(config: dict, key: str) -> Any:
    node: Any = config
    for part in key.split("."):
        if not isinstance(node, dict) or part not in node:
            return None
        node = node[part]
    return node


def load_config(config_path: Path | None = None, start_dir: str | None = None) -> dict:
    """Settings from every source as a nested dict (see ``load_settings``)."""
    return load_settings(config_path=config_path, start_dir=start_dir).to_dict()


def config_get(key: str, start_dir: str | None = None) -> Any:
    """Current value of a dotted key, or None for an unknown key."""
    return _lookup(load_config(start_dir=start_dir), key)


__all__ = [
    "CONFIGURABLE_KEYS",
    "config_get",
    "find_config_file",
    "load_config",
]

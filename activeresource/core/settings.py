"""
Settings loading.

Values come from, highest priority first: keyword arguments, environment
variables (``ACTIVERESOURCE_API__TIMEOUT=5``), the nearest config file, and
the defaults of the section models. The config file is either
``.activeresource/config.toml`` or a ``pyproject.toml`` with a
``[tool.activeresource]`` table, whichever is met first walking up from the
start directory.
"""

from __future__ import annotations

from contextvars import ContextVar
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

try:
    import tomllib
except ImportError:
    import tomli as tomllib

from pydantic import PrivateAttr, ValidationError
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict

from .exceptions import ConfigFileError, ConfigValidationError
from .models.config import ApiConfig, LoggingConfig

CONFIG_DIR_NAME = ".activeresource"
CONFIG_FILE_NAME = "config.toml"
PYPROJECT_SECTION = "activeresource"


def _get_logger():
    from ..services.logging import NullLogger
    from .di import resolve_or_default
    from .interfaces.logger import ILogger

    return resolve_or_default(ILogger, NullLogger)


@dataclass
class ConfigFile:
    """What was read from one config file (empty when there was none)."""

    path: Path | None = None
    data: dict[str, Any] = field(default_factory=dict)
    error: str | None = None


def _declares_section(pyproject: Path) -> bool:
    try:
        with pyproject.open("rb") as fh:
            return PYPROJECT_SECTION in tomllib.load(fh).get("tool", {})
    except (OSError, tomllib.TOMLDecodeError) as e:
        _get_logger().debug("Skipping unreadable %s: %s", pyproject, e)
        return False


def find_config_file(start_dir: str | None = None) -> Path | None:
    """Nearest config file at or above ``start_dir`` (default: cwd)."""
    start = Path(start_dir) if start_dir else Path.cwd()
    for directory in (start, *start.parents):
        candidate = directory / CONFIG_DIR_NAME / CONFIG_FILE_NAME
        if candidate.is_file():
            return candidate
        pyproject = directory / "pyproject.toml"
        if pyproject.is_file() and _declares_section(pyproject):
            return pyproject
    return None


def read_config_file(path: Path) -> ConfigFile:
    """Parse ``path``; problems end up in ``ConfigFile.error``, not raised."""
    try:
        with path.open("rb") as fh:
            data = tomllib.load(fh)
    except tomllib.TOMLDecodeError as e:
        _get_logger().warning("Failed to parse config file %s: %s", path, e)
        return ConfigFile(path=path, error=f"Failed to parse config file: {e}")
    except OSError as e:
        _get_logger().warning("Failed to read config file %s: %s", path, e)
        return ConfigFile(path=path, error=f"Failed to read config file: {e}")

    if path.name == "pyproject.toml":
        data = data.get("tool", {}).get(PYPROJECT_SECTION, {})
    return ConfigFile(path=path, data=data)


# The file picked by load_settings(); pydantic-settings builds sources from
# the class alone, so it is handed over here.
_active_file: ContextVar[ConfigFile] = ContextVar("activeresource_config_file")


class TomlConfigSource(PydanticBaseSettingsSource):
    """Settings source serving the tables of the active config file."""

    def _data(self) -> dict[str, Any]:
        return _active_file.get(ConfigFile()).data

    def get_field_value(self, field: Any, field_name: str) -> tuple[Any, str, bool]:
        return self._data().get(field_name), field_name, False

    def __call__(self) -> dict[str, Any]:
        return dict(self._data())


class ActiveResourceSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="ACTIVERESOURCE_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    api: ApiConfig = ApiConfig()
    logging: LoggingConfig = LoggingConfig()

    _config_file: str | None = PrivateAttr(default=None)
    _config_error: str | None = PrivateAttr(default=None)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return init_settings, env_settings, TomlConfigSource(settings_cls)

    @property
    def config_file(self) -> str | None:
        return self._config_file

    @property
    def config_error(self) -> str | None:
        return self._config_error

    def to_dict(self) -> dict[str, Any]:
        """Sections as plain dicts, plus ``_config_file``/``_config_error`` when set."""
        result: dict[str, Any] = {
            "api": self.api.model_dump(),
            "logging": self.logging.model_dump(),
        }
        if self._config_file:
            result["_config_file"] = self._config_file
        if self._config_error:
            result["_config_error"] = self._config_error
        return result


def _validation_error(error: ValidationError) -> ConfigValidationError:
    first = error.errors()[0]
    key = ".".join(str(part) for part in first["loc"])
    return ConfigValidationError(
        f"Invalid configuration value for '{key}': {first['msg']}",
        key=key,
        value=str(first.get("input")),
        cause=error,
    )


def load_settings(
    config_path: Path | None = None, start_dir: str | None = None
) -> ActiveResourceSettings:
    """
    Merge every settings source into an ActiveResourceSettings.

    A broken file found by discovery is recorded on the result and otherwise
    ignored. A broken ``config_path`` the caller asked for is an error.

    Raises:
        ConfigFileError: If ``config_path`` cannot be read or parsed
        ConfigValidationError: If any source supplies an invalid value
    """
    if config_path is not None:
        source = read_config_file(Path(config_path))
        if source.error:
            raise ConfigFileError(source.error, file_path=str(config_path))
    else:
        found = find_config_file(start_dir)
        source = read_config_file(found) if found else ConfigFile()

    token = _active_file.set(source)
    try:
        settings = ActiveResourceSettings()
    except ValidationError as e:
        raise _validation_error(e) from e
    finally:
        _active_file.reset(token)

    settings._config_file = str(source.path) if source.path and not source.error else None
    settings._config_error = source.error
    return settings

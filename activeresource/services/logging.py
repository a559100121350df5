"""
ILogger implementations.

ActiveResourceLogger writes through a dedicated stdlib logger (``activeresource``
by default) that does not propagate, so turning diagnostics on never doubles up
with the host application's own logging setup.
"""

from __future__ import annotations

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import TYPE_CHECKING, Any

from ..core.interfaces.logger import ILogger

if TYPE_CHECKING:
    from ..core.models.config import LoggingConfig

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
DEFAULT_LOG_FILE = Path.home() / ".activeresource" / "activeresource.log"


def _to_level(name: str) -> int:
    level = logging.getLevelName(name.upper())
    return level if isinstance(level, int) else logging.WARNING


class ActiveResourceLogger(ILogger):
    """stderr and/or rotating-file output, filtered per handler."""

    max_bytes = 10 * 1024 * 1024
    backup_count = 3

    def __init__(
        self,
        name: str = "activeresource",
        level: str = "warning",
        console_enabled: bool = True,
        file_enabled: bool = False,
        file_path: Path | None = None,
    ) -> None:
        self.logger = logging.getLogger(name)
        self.logger.setLevel(logging.DEBUG)
        self.logger.propagate = False
        for stale in list(self.logger.handlers):
            self.logger.removeHandler(stale)
            stale.close()

        self.handlers: list[logging.Handler] = []
        if console_enabled:
            self._attach(logging.StreamHandler(sys.stderr))
        if file_enabled:
            path = file_path or DEFAULT_LOG_FILE
            path.parent.mkdir(parents=True, exist_ok=True)
            self._attach(
                RotatingFileHandler(
                    path,
                    maxBytes=self.max_bytes,
                    backupCount=self.backup_count,
                    encoding="utf-8",
                )
            )
        self.set_level(level)

    @classmethod
    def from_config(cls, config: LoggingConfig) -> ActiveResourceLogger:
        """Logger for the ``[logging]`` settings section."""
        return cls(
            level=config.level,
            console_enabled=config.console,
            file_enabled=config.file,
            file_path=Path(config.path).expanduser() if config.path else None,
        )

    def _attach(self, handler: logging.Handler) -> None:
        handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
        self.logger.addHandler(handler)
        self.handlers.append(handler)

    def debug(self, message: str, *args: Any, **kwargs: Any) -> None:
        self.logger.debug(message, *args, **kwargs)

    def info(self, message: str, *args: Any, **kwargs: Any) -> None:
        self.logger.info(message, *args, **kwargs)

    def warning(self, message: str, *args: Any, **kwargs: Any) -> None:
        self.logger.warning(message, *args, **kwargs)

    def error(self, message: str, *args: Any, **kwargs: Any) -> None:
        self.logger.error(message, *args, **kwargs)

    def set_level(self, level: str) -> None:
        """Apply ``level`` to every handler; unknown names mean warning."""
        value = _to_level(level)
        for handler in self.handlers:
            handler.setLevel(value)

    def flush(self) -> None:
        for handler in self.handlers:
            handler.flush()


class NullLogger(ILogger):
    """Drops everything. Used until ``bootstrap()`` registers a real logger."""

    def debug(self, message: str, *args: Any, **kwargs: Any) -> None:
        pass

    info = warning = error = debug

    def set_level(self, level: str) -> None:
        pass

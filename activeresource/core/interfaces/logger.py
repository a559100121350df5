"""
Where the library's diagnostics go.

activeresource never prints. Transport calls, identity-map merges and
cascade outcomes are reported through whatever ILogger the container holds.
"""

from abc import ABC, abstractmethod
from typing import Any


class ILogger(ABC):
    """printf-style (``"%s"``) leveled logging, nothing more."""

    @abstractmethod
    def debug(self, message: str, *args: Any, **kwargs: Any) -> None: ...

    @abstractmethod
    def info(self, message: str, *args: Any, **kwargs: Any) -> None: ...

    @abstractmethod
    def warning(self, message: str, *args: Any, **kwargs: Any) -> None: ...

    @abstractmethod
    def error(self, message: str, *args: Any, **kwargs: Any) -> None: ...

    @abstractmethod
    def set_level(self, level: str) -> None:
        """Change the threshold: 'debug', 'info', 'warning' or 'error'."""

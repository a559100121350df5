"""Typed settings sections (pydantic)."""

from .config import ActiveResourceConfig, ApiConfig, ConfigBaseModel, LoggingConfig

__all__ = [
    "ActiveResourceConfig",
    "ApiConfig",
    "ConfigBaseModel",
    "LoggingConfig",
]

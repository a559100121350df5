"""
Tests for the service container, bootstrap and logging services.
"""

import asyncio
import logging
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from activeresource import bootstrap, define_model, reset
from activeresource.core.bootstrap import is_initialized
from activeresource.core.container import ServiceContainer, get_container, resolve, try_resolve
from activeresource.core.di import resolve_or_default
from activeresource.core.exceptions import ModelDeclarationError, RecordInvalidError
from activeresource.core.interfaces.logger import ILogger
from activeresource.core.interfaces.transport import ITransport
from activeresource.services.logging import ActiveResourceLogger, NullLogger
from activeresource.transport.http import HttpxTransport


class TestServiceContainer:
    def test_singleton_factory_is_called_once(self):
        container = ServiceContainer()
        factory = MagicMock(return_value="logger")
        container.register_singleton(ILogger, factory=factory)

        assert container.resolve(ILogger) == "logger"
        assert container.resolve(ILogger) == "logger"
        factory.assert_called_once()

    def test_registration_needs_something(self):
        with pytest.raises(ValueError):
            ServiceContainer().register_singleton(ILogger)

    def test_resolve_missing(self):
        with pytest.raises(KeyError):
            resolve(ITransport)
        assert try_resolve(ITransport) is None

    def test_resolve_or_default(self):
        assert isinstance(resolve_or_default(ILogger, NullLogger), NullLogger)

    def test_global_instance_is_reset(self):
        first = get_container()
        ServiceContainer.reset()
        assert get_container() is not first


class TestModelRegistry:
    def test_define_model_registers_by_name(self):
        Post = define_model("Post")
        assert get_container().get_model("Post") is Post
        assert get_container().list_models() == {"Post": Post}

    def test_duplicate_model_name(self):
        define_model("Post")
        with pytest.raises(ModelDeclarationError, match="already declared"):
            define_model("Post")

    def test_reset_forgets_models(self):
        define_model("Post")
        reset()
        assert get_container().get_model("Post") is None

    @pytest.mark.parametrize(
        "name,fields",
        [("", ()), ("Post", ["bad name"]), ("Post", ["_private"]), ("Post", ["save"])],
    )
    def test_bad_declarations(self, name, fields):
        with pytest.raises(ModelDeclarationError):
            define_model(name, fields)

    def test_primary_key_is_fixed_after_first_instance(self):
        Post = define_model("Post", ["slug"])
        Post.set_primary_key("slug")
        Post.new()

        with pytest.raises(ModelDeclarationError):
            Post.set_primary_key("id")
        assert Post.primary_key == "slug"


class TestBootstrap:
    def test_bootstrap_registers_logger_and_transport(self):
        container = bootstrap()

        assert is_initialized()
        assert isinstance(container.resolve(ILogger), ActiveResourceLogger)
        assert isinstance(container.resolve(ITransport), HttpxTransport)
        assert bootstrap() is container

    def test_reset(self):
        bootstrap()
        reset()
        assert not is_initialized()
        assert try_resolve(ILogger) is None

    def test_transport_settings_are_applied(self, monkeypatch):
        monkeypatch.setenv("ACTIVERESOURCE_API__TIMEOUT", "2.5")
        transport = bootstrap().resolve(ITransport)
        assert transport.timeout == 2.5


class TestLogging:
    def test_console_logger_level(self):
        logger = ActiveResourceLogger(name="activeresource.test", level="debug")
        assert [h.level for h in logger.handlers] == [logging.DEBUG]

        logger.set_level("error")
        assert [h.level for h in logger.handlers] == [logging.ERROR]

    def test_file_logger(self, tmp_path: Path):
        path = tmp_path / "logs" / "ar.log"
        logger = ActiveResourceLogger(
            name="activeresource.file", console_enabled=False, file_enabled=True, file_path=path
        )
        logger.warning("cache %s", "merged")
        logger.flush()

        assert "cache merged" in path.read_text()

    def test_validation_failures_are_logged(self, transport):
        logger = MagicMock(spec=ILogger)
        get_container().register_singleton(ILogger, implementation=logger)  # type: ignore[type-abstract]
        Comment = define_model("Comment", ["body"], api="http://api.test").validates(
            {"body": {"presence": True}}
        )

        with pytest.raises(RecordInvalidError):
            asyncio.run(Comment.new().save())

        logger.warning.assert_called_once()
        assert transport.calls == []

"""
Shared pytest fixtures for activeresource tests.

This module provides:
- clean_state: resets the container, model registry and environment per test
- transport: a RecordingTransport registered as the ITransport
- blog: Post/Comment models wired to the recording transport
"""

import asyncio
import copy
import os
from types import SimpleNamespace
from typing import Any

import pytest

from activeresource import define_model, reset
from activeresource.core.container import get_container
from activeresource.core.interfaces.transport import ITransport, TransportResponse

BASE_URL = "http://api.test"


class RecordingTransport(ITransport):
    """
    In-memory transport that records every call.

    Without a matching route it behaves like a well-behaved REST server:
    create echoes the body with a fresh id, update echoes the body, delete
    returns nothing and read returns an empty list.
    """

    def __init__(self) -> None:
        self.calls: list[tuple[str, str, Any]] = []
        self._routes: list[tuple[str, str | None, Any, int, BaseException | None]] = []
        self._next_id = 1

    def route(
        self,
        verb: str,
        url: str | None = None,
        body: Any = None,
        status: int = 200,
        error: BaseException | None = None,
    ) -> "RecordingTransport":
        """Answer ``verb`` (optionally only for ``url``) with ``body`` or ``error``."""
        self._routes.append((verb, url, body, status, error))
        return self

    def verbs(self) -> list[str]:
        return [verb for verb, _, _ in self.calls]

    async def request(self, verb, url, body=None):
        self.calls.append((verb, url, copy.deepcopy(body)))
        await asyncio.sleep(0)
        for r_verb, r_url, r_body, status, error in reversed(self._routes):
            if r_verb == verb and (r_url is None or r_url == url):
                if error is not None:
                    raise error
                return TransportResponse(status=status, body=copy.deepcopy(r_body))
        return self._default(verb, body)

    def _default(self, verb: str, body: Any) -> TransportResponse:
        if verb == "create":
            record = dict(body or {})
            record.setdefault("id", self._next_id)
            self._next_id += 1
            return TransportResponse(status=201, body=record)
        if verb == "update":
            return TransportResponse(status=200, body=dict(body or {}))
        if verb == "delete":
            return TransportResponse(status=204, body=None)
        return TransportResponse(status=200, body=[])


@pytest.fixture(autouse=True)
def clean_state(monkeypatch: pytest.MonkeyPatch, tmp_path):
    """Isolate every test from config files, environment and declared models."""
    for key in list(os.environ):
        if key.startswith("ACTIVERESOURCE_"):
            monkeypatch.delenv(key)
    monkeypatch.chdir(tmp_path)
    reset()
    yield
    reset()


@pytest.fixture
def transport() -> RecordingTransport:
    """A RecordingTransport registered as the process-wide ITransport."""
    recording = RecordingTransport()
    get_container().register_singleton(ITransport, implementation=recording)  # type: ignore[type-abstract]
    return recording


@pytest.fixture
def blog(transport: RecordingTransport) -> SimpleNamespace:
    """Post has many comments (dependent destroy); Comment belongs to post."""
    post = define_model("Post", ["title"], api=BASE_URL).has_many(
        "comments", dependent_destroy=True
    )
    comment = (
        define_model("Comment", ["body", "post_id"], api=BASE_URL)
        .belongs_to("post")
        .validates({"body": {"presence": True, "length": {"in": range(1, 140)}}})
    )
    return SimpleNamespace(Post=post, Comment=comment, transport=transport)

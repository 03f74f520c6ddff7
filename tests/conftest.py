"""Pytest fixtures for leira-sync tests."""

from __future__ import annotations

from collections.abc import Callable, Generator, Mapping
from pathlib import Path
from typing import Any
from unittest.mock import MagicMock

import pytest

from leira_sync.adapters.connectivity import StaticConnectivityProbe
from leira_sync.adapters.file_store import FileKeyValueStore
from leira_sync.config import Settings, override_settings, reset_settings
from leira_sync.core.models import HttpReply, OperatorIdentity
from leira_sync.services.queue import DurableQueue
from leira_sync.services.session import OperatorSession

# ---------------------------------------------------------------------------
# Basic fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def test_settings(tmp_path: Path) -> Generator[Settings, None, None]:
    """Provide test settings with a temporary data directory."""
    settings = Settings(
        data_path=tmp_path / "data",
        remote_base_url="http://sync.test",
        bounded_batch_delay_seconds=0.0,
        log_level="DEBUG",
    )
    override_settings(settings)
    yield settings
    reset_settings()


@pytest.fixture
def store(tmp_path: Path) -> FileKeyValueStore:
    return FileKeyValueStore(tmp_path / "store")


@pytest.fixture
def queue(store: FileKeyValueStore) -> DurableQueue:
    return DurableQueue(store)


@pytest.fixture
def operator() -> OperatorIdentity:
    return OperatorIdentity(id="7", name="Joana Silva")


@pytest.fixture
def session(store: FileKeyValueStore, operator: OperatorIdentity) -> OperatorSession:
    """Operator session with an operator already logged in."""
    session = OperatorSession(store)
    session.login(operator)
    return session


@pytest.fixture
def online_probe() -> StaticConnectivityProbe:
    return StaticConnectivityProbe(True)


@pytest.fixture
def offline_probe() -> StaticConnectivityProbe:
    return StaticConnectivityProbe(False)


# ---------------------------------------------------------------------------
# Remote client fakes
# ---------------------------------------------------------------------------


def ok_reply(synced: int = 1) -> HttpReply:
    body = {"sucesso": True, "sincronizados": synced, "erros": 0, "detalhes": []}
    return HttpReply(status_code=200, body=body, text="{}")


def error_reply(status_code: int = 500, message: str = "Erro interno") -> HttpReply:
    return HttpReply(status_code=status_code, body={"erro": message}, text="{}")


@pytest.fixture
def make_client() -> Callable[..., MagicMock]:
    """Build a mock RemoteClientProtocol answering per function name.

    Each value in ``replies`` is an HttpReply to return or an exception to
    raise. Functions not listed answer with a 200 success body.
    """

    def factory(replies: Mapping[str, Any] | None = None) -> MagicMock:
        table = dict(replies or {})

        def post_json(function_name: str, body: dict[str, Any]) -> HttpReply:
            reply = table.get(function_name)
            if reply is None:
                return ok_reply()
            if isinstance(reply, BaseException):
                raise reply
            return reply

        client = MagicMock()
        client.post_json.side_effect = post_json
        return client

    return factory

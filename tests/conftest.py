"""Shared fixtures: a registry with a short grace period and connection factories."""

from __future__ import annotations

import itertools
from typing import Any, Callable

import pytest
from starlette.testclient import TestClient

from candela_dice.app import create_app
from candela_dice.config import Settings
from candela_dice.registry import RoomRegistry
from candela_dice.schemas import Connection

GRACE_SECONDS = 0.05


@pytest.fixture()
def registry() -> RoomRegistry:
    return RoomRegistry(cleanup_grace_seconds=GRACE_SECONDS)


@pytest.fixture()
def make_conn() -> Callable[[], Connection]:
    counter = itertools.count(1)

    def _make() -> Connection:
        return Connection(connection_id=f"conn-{next(counter)}")

    return _make


def join_msg(session_id: Any, name: Any, client_id: Any) -> dict[str, Any]:
    return {"type": "join", "sessionId": session_id, "name": name, "clientId": client_id}


@pytest.fixture()
def client():
    app = create_app(Settings(cleanup_grace_seconds=0.1, static_dir=None))
    with TestClient(app) as test_client:
        yield test_client

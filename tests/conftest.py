"""Shared fixtures for macrolink tests."""

import pytest

from macrolink.application.connection_manager import ConnectionManager
from macrolink.infrastructure.scheduling import VirtualScheduler
from tests.fakes import FakeTransport


@pytest.fixture
def scheduler():
    return VirtualScheduler()


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def manager(transport, scheduler):
    return ConnectionManager(
        "codec.local",
        "admin",
        "secret",
        transport=transport,
        scheduler=scheduler,
    )

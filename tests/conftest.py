from __future__ import annotations

import pytest

from sftpkit.client import SftpClient
from sftpkit.core.telemetry import Telemetry
from sftpkit.domain.session import ConnectionParameters, Session

from fakes import FakeSftpServer, FakeTransportProvider


@pytest.fixture
def params():
    return ConnectionParameters(host="localhost", user="alice", password="secret")


@pytest.fixture
def server():
    return FakeSftpServer()


@pytest.fixture
def transport(server):
    return FakeTransportProvider(server)


@pytest.fixture
def session(params, transport):
    s = Session(params, transport).connect()
    yield s
    s.close()


@pytest.fixture
def client(params, transport):
    with SftpClient(params, transport) as c:
        yield c


@pytest.fixture
def telemetry():
    return Telemetry()

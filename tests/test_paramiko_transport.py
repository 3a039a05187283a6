from __future__ import annotations

import struct

import paramiko
import pytest

from sftpkit.adapters.transport import paramiko_transport
from sftpkit.adapters.transport.paramiko_transport import ParamikoChannel, ParamikoTransportProvider
from sftpkit.core.constants import MAX_PACKET_SIZE
from sftpkit.core.exceptions import AuthenticationError, ConnectionError, ProtocolError
from sftpkit.domain.session import ConnectionParameters, build_auth_plan


class StubSshChannel:
    """Byte pipe standing in for a paramiko.Channel"""

    def __init__(self, incoming: bytes = b"", max_recv: int = 3):
        self.incoming = bytearray(incoming)
        self.outgoing = bytearray()
        self.max_recv = max_recv
        self.closed = False

    def sendall(self, data: bytes) -> None:
        self.outgoing += data

    def recv(self, n: int) -> bytes:
        n = min(n, self.max_recv)
        data = bytes(self.incoming[:n])
        del self.incoming[:n]
        return data

    def close(self) -> None:
        self.closed = True


class StubSshClient:
    def __init__(self):
        self.closed = False

    def close(self) -> None:
        self.closed = True


def make_channel(incoming: bytes = b"") -> ParamikoChannel:
    return ParamikoChannel(StubSshClient(), StubSshChannel(incoming))


def plan_for(**kwargs):
    return build_auth_plan(ConnectionParameters(host="example.test", user="alice", **kwargs))


def test_password_plan_disables_keys_and_agent():
    kwargs = ParamikoTransportProvider.auth_kwargs(plan_for(password="secret", private_key_paths=("k1",)))
    assert kwargs == {"password": "secret", "allow_agent": False, "look_for_keys": False}


def test_key_plan_keeps_order_and_agent_setting():
    kwargs = ParamikoTransportProvider.auth_kwargs(plan_for(private_key_paths=("/keys/b", "/keys/a")))
    assert kwargs["key_filename"] == ["/keys/b", "/keys/a"]
    assert kwargs["allow_agent"] is True
    assert kwargs["look_for_keys"] is False
    assert "password" not in kwargs

    kwargs = ParamikoTransportProvider.auth_kwargs(plan_for(private_key_paths=("/keys/a",), allow_agent_auth=False))
    assert kwargs["allow_agent"] is False


def test_agent_only_plan_has_no_key_files():
    kwargs = ParamikoTransportProvider.auth_kwargs(plan_for())
    assert kwargs["key_filename"] is None
    assert kwargs["allow_agent"] is True


def test_send_adds_length_prefix():
    channel = make_channel()
    channel.send(b"\x01\x00\x00\x00\x03")
    assert bytes(channel.channel.outgoing) == b"\x00\x00\x00\x05\x01\x00\x00\x00\x03"


def test_frames_survive_a_round_trip():
    sender = make_channel()
    sender.send(b"\x02hello")
    sender.send(b"")
    receiver = make_channel(bytes(sender.channel.outgoing))
    assert receiver.receive() == b"\x02hello"
    assert receiver.receive() == b""


def test_oversize_length_is_a_protocol_error():
    channel = make_channel(struct.pack(">I", MAX_PACKET_SIZE + 1) + b"x")
    with pytest.raises(ProtocolError):
        channel.receive()


@pytest.mark.parametrize(
    "incoming",
    [b"", b"\x00\x00", struct.pack(">I", 10) + b"abc"],
)
def test_short_stream_is_a_connection_error(incoming):
    with pytest.raises(ConnectionError):
        make_channel(incoming).receive()


def test_recv_failure_is_a_connection_error():
    channel = make_channel()

    def broken(n):
        raise OSError("reset by peer")

    channel.channel.recv = broken
    with pytest.raises(ConnectionError) as exc:
        channel.receive()
    assert isinstance(exc.value.cause, OSError)


def test_close_closes_channel_and_client():
    channel = make_channel()
    channel.close()
    assert channel.channel.closed
    assert channel.client.closed


class RejectingSshClient(StubSshClient):
    error = paramiko.AuthenticationException("denied")
    instances: list = []

    def __init__(self):
        super().__init__()
        self.instances.append(self)

    def load_system_host_keys(self):
        pass

    def set_missing_host_key_policy(self, policy):
        self.policy = policy

    def connect(self, **kwargs):
        self.kwargs = kwargs
        raise self.error


def test_rejected_credentials_map_to_authentication_error(monkeypatch):
    RejectingSshClient.instances.clear()
    monkeypatch.setattr(paramiko_transport.paramiko, "SSHClient", RejectingSshClient)

    with pytest.raises(AuthenticationError) as exc:
        ParamikoTransportProvider().open_channel("example.test", 2222, plan_for(password="secret"), 5.0)

    client = RejectingSshClient.instances[0]
    assert client.closed
    assert client.kwargs["hostname"] == "example.test"
    assert client.kwargs["port"] == 2222
    assert client.kwargs["username"] == "alice"
    assert client.kwargs["password"] == "secret"
    assert "password" in str(exc.value)


def test_unreachable_host_maps_to_connection_error(monkeypatch):
    class Unreachable(RejectingSshClient):
        error = OSError("connection refused")

    monkeypatch.setattr(paramiko_transport.paramiko, "SSHClient", Unreachable)
    with pytest.raises(ConnectionError):
        ParamikoTransportProvider().open_channel("example.test", 22, plan_for(password="secret"), 5.0)

"""
Paramiko-backed transport provider
"""
import struct
from pathlib import Path
from typing import Optional, Dict, Any

import paramiko

from ...core.constants import SFTP_SUBSYSTEM, MAX_PACKET_SIZE
from ...core.exceptions import AuthenticationError, ConnectionError, ProtocolError
from ...core.interfaces import Channel, TransportProvider
from ...core.logging import get_logger
from ...domain.session.auth import AuthPlan

logger = get_logger(__name__)


class ParamikoChannel(Channel):
    """
    SFTP subsystem channel over a paramiko SSH session.

    Adds and strips the 32-bit length prefix of each packet.
    """

    def __init__(self, client: paramiko.SSHClient, channel: paramiko.Channel):
        self.client = client
        self.channel = channel

    def send(self, packet: bytes) -> None:
        frame = struct.pack(">I", len(packet)) + packet
        try:
            self.channel.sendall(frame)
        except (paramiko.SSHException, OSError) as e:
            raise ConnectionError("failed to send packet", operation="send", cause=e) from e

    def receive(self) -> bytes:
        (size,) = struct.unpack(">I", self._read_exact(4))
        if size > MAX_PACKET_SIZE:
            raise ProtocolError(f"packet of {size} bytes exceeds limit", operation="receive")
        return self._read_exact(size)

    def _read_exact(self, n: int) -> bytes:
        buf = bytearray()
        while len(buf) < n:
            try:
                data = self.channel.recv(n - len(buf))
            except TimeoutError as e:
                raise ConnectionError("timed out waiting for server", operation="receive", cause=e) from e
            except (paramiko.SSHException, OSError) as e:
                raise ConnectionError("failed to read from channel", operation="receive", cause=e) from e
            if not data:
                raise ConnectionError("channel closed by server", operation="receive")
            buf += data
        return bytes(buf)

    def close(self) -> None:
        try:
            self.channel.close()
        finally:
            self.client.close()


class ParamikoTransportProvider(TransportProvider):
    """
    Opens SFTP channels with paramiko.SSHClient.

    Host keys: unknown hosts are accepted (AutoAddPolicy) unless a stricter
    policy is given; system known_hosts can be loaded on request.
    """

    def __init__(
        self,
        load_system_host_keys: bool = False,
        missing_host_key_policy: Optional[paramiko.MissingHostKeyPolicy] = None,
    ):
        self.load_system_host_keys = load_system_host_keys
        self.missing_host_key_policy = missing_host_key_policy or paramiko.AutoAddPolicy()

    @staticmethod
    def auth_kwargs(auth: AuthPlan) -> Dict[str, Any]:
        """Translate an auth plan into SSHClient.connect() arguments"""
        if auth.uses_password:
            return {
                "password": auth.password,
                "allow_agent": False,
                "look_for_keys": False,
            }
        key_paths = [str(Path(p).expanduser()) for p in auth.key_paths]
        return {
            "key_filename": key_paths or None,
            "allow_agent": auth.allow_agent,
            "look_for_keys": False,
        }

    def open_channel(
        self,
        host: str,
        port: int,
        auth: AuthPlan,
        timeout: float,
    ) -> Channel:
        client = paramiko.SSHClient()
        if self.load_system_host_keys:
            client.load_system_host_keys()
        client.set_missing_host_key_policy(self.missing_host_key_policy)

        target = f"{auth.user}@{host}:{port}"
        try:
            client.connect(
                hostname=host,
                port=port,
                username=auth.user,
                timeout=timeout,
                banner_timeout=timeout,
                auth_timeout=timeout,
                **self.auth_kwargs(auth),
            )
        except paramiko.AuthenticationException as e:
            client.close()
            raise AuthenticationError(
                f"authentication failed for {target} (tried: {auth.describe()})",
                operation="connect",
                cause=e,
            ) from e
        except (paramiko.SSHException, OSError) as e:
            client.close()
            raise ConnectionError(f"failed to connect to {target}", operation="connect", cause=e) from e

        try:
            channel = client.get_transport().open_session(timeout=timeout)
            channel.settimeout(timeout)
            channel.invoke_subsystem(SFTP_SUBSYSTEM)
        except (paramiko.SSHException, OSError) as e:
            client.close()
            raise ConnectionError(
                f"failed to start {SFTP_SUBSYSTEM} subsystem on {target}",
                operation="connect",
                cause=e,
            ) from e

        logger.debug(f"Opened {SFTP_SUBSYSTEM} channel to {target}")
        return ParamikoChannel(client, channel)

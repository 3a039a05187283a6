"""
Core interfaces for dependency injection
"""
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ..domain.session.auth import AuthPlan


class Channel(ABC):
    """
    Authenticated, ordered byte channel carrying SFTP packets.

    A packet body is one type byte followed by its payload; length
    framing is the channel's job.
    """

    @abstractmethod
    def send(self, packet: bytes) -> None:
        """Send one packet body"""
        pass

    @abstractmethod
    def receive(self) -> bytes:
        """Block until the next packet body arrives"""
        pass

    @abstractmethod
    def close(self) -> None:
        """Release the channel and its transport"""
        pass


class TransportProvider(ABC):
    """Transport factory interface"""

    @abstractmethod
    def open_channel(
        self,
        host: str,
        port: int,
        auth: "AuthPlan",
        timeout: float,
    ) -> Channel:
        """
        Open an authenticated channel running the SFTP subsystem.

        Raises:
            ConnectionError: If the host cannot be reached
            AuthenticationError: If every method in the plan is rejected
        """
        pass

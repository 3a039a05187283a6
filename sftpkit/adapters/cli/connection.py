"""
Client factory for CLI commands
"""
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Any, List, Optional

from ...client import SftpClient
from ...core.interfaces import TransportProvider
from ..config.loader import Settings, load_settings
from ..transport.paramiko_transport import ParamikoTransportProvider


@dataclass
class CliState:
    """Global CLI options, resolved into Settings on first use"""
    url: Optional[str] = None
    config_file: Optional[Path] = None
    keys: List[str] = field(default_factory=list)
    allow_agent: Optional[bool] = None
    timeout: Optional[float] = None

    def overrides(self, **extra: Any) -> Dict[str, Any]:
        """CLI overrides for the config loader; unset options are None"""
        config = {
            "url": self.url,
            "keys": self.keys or None,
            "allow_agent": self.allow_agent,
            "timeout": self.timeout,
        }
        config.update(extra)
        return config


def get_transport() -> TransportProvider:
    """Transport used by CLI commands"""
    return ParamikoTransportProvider()


class SftpConnectionFactory:
    """SftpClient connection factory"""

    def settings(self, state: CliState, **extra: Any) -> Settings:
        """
        Resolve settings from CLI options, environment and config file.

        Raises:
            ConfigError: If no usable connection is configured
        """
        return load_settings(
            toml_path=state.config_file,
            cli_overrides=state.overrides(**extra),
        )

    def create(self, state: CliState, **extra: Any) -> SftpClient:
        """
        Create and connect an SFTP client.

        Args:
            state: Global CLI options
            extra: Per-command overrides (e.g. chunk_size)

        Returns:
            Connected SftpClient instance

        Raises:
            ConfigError: If no usable connection is configured
            ConnectionError: If connection fails
            AuthenticationError: If every credential is rejected
        """
        settings = self.settings(state, **extra)
        client = SftpClient(settings.connection, get_transport(), settings.transfer)
        return client.connect()

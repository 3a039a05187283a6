"""
Configuration loader with priority: CLI > env > TOML > defaults
"""
import os
import tomllib
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Dict, Any, Optional, Mapping, List

from ...core.constants import ENV_PREFIX, ENV_URL, ENV_URL_FALLBACK, DEFAULT_SSH_PORT, DEFAULT_SSH_TIMEOUT
from ...core.exceptions import ConfigError, InvalidArgumentError
from ...domain.session.models import ConnectionParameters
from ...domain.transfer.models import TransferConfig

# Keys understood in TOML files and CLI overrides
CONFIG_KEYS = (
    "url",
    "host",
    "port",
    "user",
    "password",
    "keys",
    "allow_agent",
    "timeout",
    "chunk_size",
)


@dataclass
class Settings:
    """Resolved client settings"""
    connection: ConnectionParameters
    transfer: TransferConfig


class ConfigLoader:
    """Configuration loader with priority support"""

    def __init__(self, environ: Optional[Mapping[str, str]] = None):
        self._env_prefix = ENV_PREFIX
        self._environ = os.environ if environ is None else environ

    def load_toml(self, path: Path) -> Dict[str, Any]:
        """Load TOML configuration file"""
        if not path.exists():
            raise ConfigError(f"Configuration file not found: {path}")

        try:
            data = tomllib.loads(path.read_text(encoding='utf-8'))
        except tomllib.TOMLDecodeError as e:
            raise ConfigError(f"Failed to parse TOML configuration: {e}", path=str(path), cause=e) from e

        # Settings may live at top level or under [sftp]
        section = data.get("sftp", data)
        return {k: v for k, v in section.items() if k in CONFIG_KEYS}

    def load_env(self) -> Dict[str, Any]:
        """Load configuration from environment variables"""
        config: Dict[str, Any] = {}

        url = self._environ.get(ENV_URL) or self._environ.get(ENV_URL_FALLBACK)
        if url:
            config["url"] = url

        for key in CONFIG_KEYS:
            if key in ("url", "keys"):
                continue
            value = self._environ.get(f"{self._env_prefix}{key.upper()}")
            if value:
                config[key] = value if key in ("host", "user", "password") else self._convert_value(value)

        keys = self._environ.get(f"{self._env_prefix}KEYS")
        if keys:
            config["keys"] = [k for k in keys.split(os.pathsep) if k]

        return config

    def _convert_value(self, value: str) -> Any:
        """Convert string value to appropriate type"""
        if value.lower() in ("true", "yes", "on"):
            return True
        if value.lower() in ("false", "no", "off"):
            return False

        try:
            return int(value)
        except ValueError:
            pass

        try:
            return float(value)
        except ValueError:
            pass

        return value

    def _typed_value(self, config: Dict[str, Any], key: str, kind: type, default: Any) -> Any:
        """
        Read config[key] as kind, converting strings the way env values are.

        Raises:
            ConfigError: If the value cannot be read as kind
        """
        value = config.get(key, default)
        if isinstance(value, str):
            value = self._convert_value(value)

        if kind is bool:
            ok = isinstance(value, bool)
        elif kind is int:
            ok = isinstance(value, int) and not isinstance(value, bool)
        else:
            ok = isinstance(value, (int, float)) and not isinstance(value, bool)
        if not ok:
            raise ConfigError(f"Invalid configuration: {key} must be {kind.__name__}, got {config.get(key)!r}")
        return kind(value)

    def merge_configs(self, *configs: Dict[str, Any]) -> Dict[str, Any]:
        """
        Merge multiple configurations with priority.
        Later configs override earlier ones; None values never override.
        """
        result: Dict[str, Any] = {}
        for config in configs:
            result.update({k: v for k, v in config.items() if v is not None})
        return result

    def load(
        self,
        toml_path: Optional[Path] = None,
        cli_overrides: Optional[Dict[str, Any]] = None,
        use_env: bool = True,
    ) -> Dict[str, Any]:
        """
        Load configuration with priority: CLI > env > TOML > defaults

        Args:
            toml_path: Path to TOML configuration file
            cli_overrides: CLI parameter overrides
            use_env: Whether to load from environment variables

        Returns:
            Merged configuration dictionary
        """
        configs = []

        if toml_path:
            configs.append(self.load_toml(toml_path))

        if use_env:
            env_config = self.load_env()
            if env_config:
                configs.append(env_config)

        if cli_overrides:
            configs.append(cli_overrides)

        return self.merge_configs(*configs)

    def build_settings(self, config: Dict[str, Any]) -> Settings:
        """
        Turn a merged configuration dictionary into Settings.

        A URL gives the base connection; explicit host/port/user/password
        keys override its parts.

        Raises:
            ConfigError: If the connection cannot be determined or is invalid
        """
        keys: List[str] = list(config.get("keys") or [])
        allow_agent = self._typed_value(config, "allow_agent", bool, True)
        timeout = self._typed_value(config, "timeout", float, DEFAULT_SSH_TIMEOUT)
        if config.get("port") is not None:
            config = {**config, "port": self._typed_value(config, "port", int, None)}

        try:
            if config.get("url"):
                params = ConnectionParameters.from_url(
                    config["url"],
                    private_key_paths=tuple(keys),
                    allow_agent_auth=allow_agent,
                    timeout=timeout,
                )
                overrides = {
                    k: config[k] for k in ("host", "user", "port", "password") if config.get(k) is not None
                }
                if overrides:
                    params = replace(params, **overrides)
            else:
                missing = [k for k in ("host", "user") if not config.get(k)]
                if missing:
                    raise ConfigError(
                        f"no connection configured: set {ENV_URL} or provide {', '.join(missing)}"
                    )
                params = ConnectionParameters(
                    host=config["host"],
                    user=config["user"],
                    port=config.get("port", DEFAULT_SSH_PORT),
                    password=config.get("password"),
                    private_key_paths=tuple(keys),
                    allow_agent_auth=allow_agent,
                    timeout=timeout,
                )

            transfer = TransferConfig.from_dict(config)
        except InvalidArgumentError as e:
            raise ConfigError(f"Invalid configuration: {e.message}", cause=e) from e

        return Settings(connection=params, transfer=transfer)


def load_settings(
    toml_path: Optional[Path] = None,
    cli_overrides: Optional[Dict[str, Any]] = None,
    use_env: bool = True,
    environ: Optional[Mapping[str, str]] = None,
) -> Settings:
    """Load and resolve settings in one call"""
    loader = ConfigLoader(environ)
    return loader.build_settings(loader.load(toml_path, cli_overrides, use_env))

"""Configuration file loading and management"""

import copy
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml


@dataclass
class ServerConfig:
    """Relay server configuration settings"""
    host: str
    port: int
    max_clients: int
    poll_interval_ms: int


@dataclass
class ClientReconnectConfig:
    """Client reconnection settings"""
    enabled: bool
    max_attempts: int
    delay_seconds: float


@dataclass
class ClientConfig:
    """Sync client configuration settings"""
    server_address: str
    role: str
    mode: str
    auto_fill: bool
    reconnect: ClientReconnectConfig


@dataclass
class SupervisorConfig:
    """Relay process supervisor settings"""
    run_mode: str  # auto, development or packaged
    startup_marker: str
    fallback_delay_ms: int
    stop_kill_timeout_seconds: float
    log_capacity: int


@dataclass
class SttConfig:
    """Settings handed through to the speech-to-text adapter"""
    debug: bool


@dataclass
class LoggingConfig:
    """Logging configuration settings"""
    level: str
    file: Optional[str]
    format: str


@dataclass
class Config:
    """Complete application configuration"""
    server: ServerConfig
    client: ClientConfig
    supervisor: SupervisorConfig
    stt: SttConfig
    logging: LoggingConfig


DEFAULT_CONFIG: Dict[str, Any] = {
    "server": {
        "host": "0.0.0.0",
        "port": 3001,
        "max_clients": 64,
        "poll_interval_ms": 50,
    },
    "client": {
        "server_address": "127.0.0.1:3001",
        "role": "desktop",
        "mode": "lan",
        "auto_fill": False,
        "reconnect": {
            "enabled": True,
            "max_attempts": 5,
            "delay_seconds": 1.0,
        },
    },
    "supervisor": {
        "run_mode": "auto",
        "startup_marker": "Sync relay started",
        "fallback_delay_ms": 1500,
        "stop_kill_timeout_seconds": 5.0,
        "log_capacity": 500,
    },
    "stt": {
        "debug": False,
    },
    "logging": {
        "level": "INFO",
        "file": None,
        "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    },
}

TRUTHY_VALUES = {"1", "true", "yes", "on"}


class ConfigLoader:
    """Loads and parses configuration from YAML files"""

    DEFAULT_CONFIG_PATHS = [
        "config.yml",
        "~/.config/talkbridge/config.yml",
        "/etc/talkbridge/config.yml",
    ]

    @staticmethod
    def configFile_find() -> Optional[Path]:
        """
        Find configuration file in standard locations

        Returns:
            Path to config file, or None if not found
        """
        for config_path in ConfigLoader.DEFAULT_CONFIG_PATHS:
            path = Path(config_path).expanduser().resolve()
            if path.exists() and path.is_file():
                return path
        return None

    @staticmethod
    def yaml_load(file_path: Path) -> Dict[str, Any]:
        """
        Load YAML configuration file

        Args:
            file_path: Path to YAML file

        Returns:
            Parsed configuration dictionary

        Raises:
            FileNotFoundError: If file does not exist
            yaml.YAMLError: If file is not valid YAML
        """
        with open(file_path, "r") as f:
            data = yaml.safe_load(f)

        if not isinstance(data, dict):
            raise ValueError(f"Config file {file_path} must contain a YAML dictionary")

        return data

    @staticmethod
    def defaults_merge(data: Dict[str, Any]) -> Dict[str, Any]:
        """
        Overlay file values on the built-in defaults

        Args:
            data: Raw configuration dictionary from file

        Returns:
            New dictionary with every default key present
        """
        merged = copy.deepcopy(DEFAULT_CONFIG)
        ConfigLoader._mapping_overlay(merged, data)
        return merged

    @staticmethod
    def _mapping_overlay(target: Dict[str, Any], source: Mapping[str, Any]) -> None:
        for key, value in source.items():
            if isinstance(value, Mapping) and isinstance(target.get(key), dict):
                ConfigLoader._mapping_overlay(target[key], value)
            else:
                target[key] = value

    @staticmethod
    def config_parse(data: Dict[str, Any]) -> Config:
        """
        Parse configuration dictionary into Config object

        Args:
            data: Raw configuration dictionary

        Returns:
            Parsed Config object

        Raises:
            KeyError: If required configuration keys are missing
        """
        server_data = data["server"]
        server = ServerConfig(
            host=server_data["host"],
            port=int(server_data["port"]),
            max_clients=int(server_data["max_clients"]),
            poll_interval_ms=int(server_data["poll_interval_ms"]),
        )

        client_data = data["client"]
        reconnect_data = client_data["reconnect"]
        reconnect = ClientReconnectConfig(
            enabled=bool(reconnect_data["enabled"]),
            max_attempts=int(reconnect_data["max_attempts"]),
            delay_seconds=float(reconnect_data["delay_seconds"]),
        )
        client = ClientConfig(
            server_address=client_data["server_address"],
            role=client_data["role"],
            mode=client_data.get("mode", "lan"),
            auto_fill=bool(client_data.get("auto_fill", False)),
            reconnect=reconnect,
        )

        supervisor_data = data["supervisor"]
        supervisor = SupervisorConfig(
            run_mode=supervisor_data["run_mode"],
            startup_marker=supervisor_data["startup_marker"],
            fallback_delay_ms=int(supervisor_data["fallback_delay_ms"]),
            stop_kill_timeout_seconds=float(supervisor_data["stop_kill_timeout_seconds"]),
            log_capacity=int(supervisor_data["log_capacity"]),
        )

        stt = SttConfig(debug=bool(data["stt"]["debug"]))

        logging_data = data["logging"]
        logging = LoggingConfig(
            level=logging_data["level"],
            file=logging_data.get("file"),
            format=logging_data["format"],
        )

        return Config(
            server=server,
            client=client,
            supervisor=supervisor,
            stt=stt,
            logging=logging,
        )

    @staticmethod
    def config_load(file_path: Optional[Path] = None) -> Config:
        """
        Load configuration from file

        When no path is given and no file exists in the standard locations
        the built-in defaults are used, so a bare relay spawned by the
        supervisor still starts.

        Args:
            file_path: Optional path to config file. If None, searches standard locations.

        Returns:
            Parsed Config object

        Raises:
            FileNotFoundError: If an explicit config file is missing
            ValueError: If config file is invalid
        """
        if file_path is None:
            file_path = ConfigLoader.configFile_find()

        data: Dict[str, Any] = {}
        if file_path is not None:
            data = ConfigLoader.yaml_load(file_path)

        return ConfigLoader.config_parse(ConfigLoader.defaults_merge(data))

    @staticmethod
    def environmentOverrides_apply(
        config: Config,
        environ: Optional[Mapping[str, str]] = None,
    ) -> Config:
        """
        Apply PORT and STT_DEBUG environment variables

        Args:
            config: Loaded configuration, modified in place
            environ: Environment mapping (defaults to os.environ)

        Returns:
            The same config object

        Raises:
            ValueError: If PORT is not an integer
        """
        env = os.environ if environ is None else environ

        port_raw = env.get("PORT")
        if port_raw:
            try:
                config.server.port = int(port_raw)
            except ValueError:
                raise ValueError(f"Invalid PORT value: {port_raw}")

        debug_raw = env.get("STT_DEBUG")
        if debug_raw is not None:
            config.stt.debug = debug_raw.strip().lower() in TRUTHY_VALUES

        return config

    @staticmethod
    def configWithOverrides_load(
        file_path: Optional[Path] = None,
        environ: Optional[Mapping[str, str]] = None,
        **overrides: Any
    ) -> Config:
        """
        Load configuration and apply environment and command-line overrides

        Args:
            file_path: Optional path to config file
            environ: Environment mapping (defaults to os.environ)
            **overrides: Key-value pairs to override config values

        Returns:
            Config object with overrides applied

        Example:
            config = ConfigLoader.configWithOverrides_load(
                host="127.0.0.1",
                port=3002
            )
        """
        config = ConfigLoader.config_load(file_path)
        ConfigLoader.environmentOverrides_apply(config, environ)

        if overrides.get("host") is not None:
            config.server.host = overrides["host"]
        if overrides.get("port") is not None:
            config.server.port = overrides["port"]

        if overrides.get("server_address") is not None:
            config.client.server_address = overrides["server_address"]
        if overrides.get("role") is not None:
            config.client.role = overrides["role"]
        if overrides.get("mode") is not None:
            config.client.mode = overrides["mode"]
        if overrides.get("auto_fill"):
            config.client.auto_fill = True

        if overrides.get("run_mode") is not None:
            config.supervisor.run_mode = overrides["run_mode"]

        return config

"""
Tunnel configuration.

A ``TunnelConfig`` is built once at startup (from the environment and/or CLI
options) and passed explicitly to the server and every session. It is frozen:
sessions copy what they need from it and never mutate it.

Usage:
    from wsveil.config import TunnelConfig

    config = TunnelConfig.from_env()
    config = dataclasses.replace(config, PACKETS_TO_SKIP=2)
"""

import os
from collections.abc import Mapping
from dataclasses import dataclass

from wsveil.exceptions import ConfigError
from wsveil.models.enums import LogLevel

# Environment variable names, kept compatible with existing deployments
ENV_LISTEN_HOST = "BIND"
ENV_LISTEN_PORT = "PORT"
ENV_DEST_HOST = "DHOST"
ENV_DEST_PORT = "DPORT"
ENV_PACKETS_TO_SKIP = "PACKSKIP"
ENV_SERVER_NAME = "SERVER_NAME"
ENV_LOG_LEVEL = "LOG_LEVEL"
ENV_LOG_FILE = "LOG_FILE"


# =============================================================================
# Configuration Dataclass
# =============================================================================


@dataclass(frozen=True)
class TunnelConfig:
    """
    Tunnel configuration.

    Attributes:
        LISTEN_HOST: Address the listener binds to.
        LISTEN_PORT: Port the listener binds to (0 picks an ephemeral port).
        DEST_HOST: Backend host every tunnel connects to.
        DEST_PORT: Backend port.
        PACKETS_TO_SKIP: Number of initial client reads discarded per session.
        SERVER_NAME: Value of the ``Server`` header in the upgrade response.
        CONNECT_TIMEOUT: Backend dial timeout for each session, in seconds.
        PROBE_TIMEOUT: Timeout of the startup connectivity probe, in seconds.
        KEEPALIVE_SECONDS: TCP keep-alive period applied to both sockets.
        BUFFER_SIZE: Maximum bytes per read in each pump.
        LOG_LEVEL: Logging verbosity level.
        LOG_FILE: Additional log file (empty = console only).
    """

    # -------------------------------------------------------------------------
    # Network Configuration
    # -------------------------------------------------------------------------

    LISTEN_HOST: str = "0.0.0.0"
    LISTEN_PORT: int = 8080
    DEST_HOST: str = "127.0.0.1"
    DEST_PORT: int = 22

    # -------------------------------------------------------------------------
    # Tunnel Behaviour
    # -------------------------------------------------------------------------

    PACKETS_TO_SKIP: int = 0
    SERVER_NAME: str = "go-proxy/1.0"
    BUFFER_SIZE: int = 4096

    # -------------------------------------------------------------------------
    # Timing Configuration
    # -------------------------------------------------------------------------

    CONNECT_TIMEOUT: float = 15.0
    PROBE_TIMEOUT: float = 10.0
    KEEPALIVE_SECONDS: int = 60

    # -------------------------------------------------------------------------
    # Logging Configuration
    # -------------------------------------------------------------------------

    LOG_LEVEL: LogLevel = LogLevel.INFO
    LOG_FILE: str = ""

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "TunnelConfig":
        """
        Build a config from environment variables.

        Unset or empty variables fall back to the defaults.

        Raises:
            ConfigError: If a numeric variable is not an integer.
        """
        env = os.environ if environ is None else environ

        def get(key: str) -> str | None:
            value = env.get(key, "")
            return value or None

        def get_int(key: str, default: int) -> int:
            raw = get(key)
            if raw is None:
                return default
            try:
                return int(raw)
            except ValueError:
                raise ConfigError(f"{key} must be an integer, got {raw!r}")

        level = get(ENV_LOG_LEVEL)
        try:
            log_level = LogLevel(level.lower()) if level else cls.LOG_LEVEL
        except ValueError:
            raise ConfigError(f"{ENV_LOG_LEVEL} has unknown level {level!r}")

        return cls(
            LISTEN_HOST=get(ENV_LISTEN_HOST) or cls.LISTEN_HOST,
            LISTEN_PORT=get_int(ENV_LISTEN_PORT, cls.LISTEN_PORT),
            DEST_HOST=get(ENV_DEST_HOST) or cls.DEST_HOST,
            DEST_PORT=get_int(ENV_DEST_PORT, cls.DEST_PORT),
            PACKETS_TO_SKIP=get_int(ENV_PACKETS_TO_SKIP, cls.PACKETS_TO_SKIP),
            SERVER_NAME=get(ENV_SERVER_NAME) or cls.SERVER_NAME,
            LOG_LEVEL=log_level,
            LOG_FILE=get(ENV_LOG_FILE) or cls.LOG_FILE,
        )

    def validate(self) -> "TunnelConfig":
        """
        Check value ranges.

        Returns:
            The config itself, so calls can be chained.

        Raises:
            ConfigError: On the first invalid value.
        """
        if not self.DEST_HOST:
            raise ConfigError("Backend host must not be empty.")
        if not 0 <= self.LISTEN_PORT <= 65535:
            raise ConfigError(f"Listen port out of range: {self.LISTEN_PORT}")
        if not 1 <= self.DEST_PORT <= 65535:
            raise ConfigError(f"Backend port out of range: {self.DEST_PORT}")
        if self.PACKETS_TO_SKIP < 0:
            raise ConfigError(
                f"Packets to skip must not be negative: {self.PACKETS_TO_SKIP}"
            )
        if self.BUFFER_SIZE <= 0:
            raise ConfigError(f"Buffer size must be positive: {self.BUFFER_SIZE}")
        if self.CONNECT_TIMEOUT <= 0 or self.PROBE_TIMEOUT <= 0:
            raise ConfigError("Timeouts must be positive.")
        return self

    def get_backend_address(self) -> str:
        """Get the backend as ``host:port``."""
        return f"{self.DEST_HOST}:{self.DEST_PORT}"

    def get_listen_address(self) -> str:
        """Get the listener as ``host:port``."""
        return f"{self.LISTEN_HOST}:{self.LISTEN_PORT}"

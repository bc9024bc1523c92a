"""Tunnel-related exception classes."""


class TunnelError(Exception):
    """Base exception for tunnel operations."""

    pass


class ConfigError(TunnelError):
    """Invalid configuration value."""

    pass


class HandshakeError(TunnelError):
    """Failed to send the upgrade response to the client."""

    def __init__(self, message: str, peer: str):
        self.peer = peer
        super().__init__(f"Handshake to {peer} failed: {message}")


class BackendConnectError(TunnelError):
    """Failed to connect to the backend."""

    def __init__(self, message: str, address: str):
        self.address = address
        super().__init__(f"Backend {address} unreachable: {message}")

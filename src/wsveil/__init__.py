"""
wsveil: a TCP tunnel that presents itself as a WebSocket upgrade.

Every accepted connection receives a synthetic ``101 Switching Protocols``
response, after which raw bytes are relayed to a fixed backend.
"""

__version__ = "0.1.0"

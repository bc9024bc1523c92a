"""
Tunnel core: the upgrade response, the relay pumps and the session that
ties them together for one accepted connection.
"""

from wsveil.tunnel.handshake import (
    build_handshake_response,
    generate_accept_token,
    send_handshake,
)
from wsveil.tunnel.pump import PacketSkipper, pump
from wsveil.tunnel.session import TunnelSession

__all__ = [
    "PacketSkipper",
    "TunnelSession",
    "build_handshake_response",
    "generate_accept_token",
    "pump",
    "send_handshake",
]

"""TCP keep-alive configuration for relayed sockets."""

import asyncio
import socket

from wsveil.utils.logger import get_logger

logger = get_logger(__name__)


def enable_keepalive(writer: asyncio.StreamWriter, period: int) -> bool:
    """
    Enable keep-alive probing on the socket behind a stream writer.

    The idle time and probe interval are both set to ``period`` seconds where
    the platform exposes them. Failures are ignored.

    Returns:
        True if SO_KEEPALIVE was enabled.
    """
    sock = writer.get_extra_info("socket")
    if sock is None or sock.type != socket.SOCK_STREAM:
        return False

    try:
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_KEEPALIVE, 1)
    except OSError as e:
        logger.debug(f"SO_KEEPALIVE not applied: {e}")
        return False

    # Linux exposes TCP_KEEPIDLE, macOS names the same option TCP_KEEPALIVE
    idle_option = getattr(socket, "TCP_KEEPIDLE", None)
    if idle_option is None:
        idle_option = getattr(socket, "TCP_KEEPALIVE", None)

    try:
        if idle_option is not None:
            sock.setsockopt(socket.IPPROTO_TCP, idle_option, period)
        if hasattr(socket, "TCP_KEEPINTVL"):
            sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_KEEPINTVL, period)
    except OSError as e:
        logger.debug(f"Keep-alive period not applied: {e}")

    return True

"""
Synthetic WebSocket upgrade response.

The response is written unconditionally right after accept; nothing is read
from the client first and the accept token is random, not derived from any
``Sec-WebSocket-Key``. Its only purpose is to make the stream look like a
successful upgrade to passive observers.

Wire format:
    HTTP/1.1 101 Switching Protocols
    Connection: Upgrade
    Date: <RFC 1123 date>
    Sec-WebSocket-Accept: <base64 of 20 random bytes>
    Upgrade: websocket
    Server: <server name>
"""

import asyncio
import base64
import datetime
import secrets
from email.utils import format_datetime

from wsveil.exceptions import HandshakeError
from wsveil.utils.logger import get_logger

logger = get_logger(__name__)

ACCEPT_TOKEN_BYTES = 20
STATUS_LINE = "HTTP/1.1 101 Switching Protocols"


def generate_accept_token() -> str:
    """Return base64 of 20 cryptographically random bytes."""
    return base64.b64encode(secrets.token_bytes(ACCEPT_TOKEN_BYTES)).decode("ascii")


def format_http_date(now: datetime.datetime | None = None) -> str:
    """Format a timestamp as an RFC 1123 date in GMT."""
    if now is None:
        now = datetime.datetime.now(datetime.timezone.utc)
    elif now.tzinfo is None:
        now = now.replace(tzinfo=datetime.timezone.utc)
    return format_datetime(now.astimezone(datetime.timezone.utc), usegmt=True)


def build_handshake_response(
    server_name: str,
    now: datetime.datetime | None = None,
    accept_token: str | None = None,
) -> bytes:
    """
    Build the upgrade response bytes.

    Args:
        server_name: Value of the ``Server`` header.
        now: Timestamp for the ``Date`` header (defaults to current time).
        accept_token: Fixed token (a fresh random one when omitted).
    """
    if accept_token is None:
        accept_token = generate_accept_token()

    response = (
        f"{STATUS_LINE}\r\n"
        "Connection: Upgrade\r\n"
        f"Date: {format_http_date(now)}\r\n"
        f"Sec-WebSocket-Accept: {accept_token}\r\n"
        "Upgrade: websocket\r\n"
        f"Server: {server_name}\r\n\r\n"
    )
    return response.encode("ascii")


async def send_handshake(writer: asyncio.StreamWriter, server_name: str):
    """
    Write the upgrade response to a freshly accepted client.

    Raises:
        HandshakeError: If the client is already gone or the write fails.
    """
    peer = writer.get_extra_info("peername")
    if writer.is_closing():
        raise HandshakeError("connection already closing", str(peer))

    try:
        writer.write(build_handshake_response(server_name))
        await writer.drain()
    except OSError as e:
        raise HandshakeError(str(e) or type(e).__name__, str(peer)) from e

    logger.debug(f"[Client {peer}] Upgrade response sent.")

"""
Per-connection tunnel session.

A session runs strictly in order: upgrade response, backend dial, keep-alive
setup, then two concurrent pumps. The first pump to finish tears the whole
tunnel down; the sibling pump is cancelled and both sockets are closed
without draining the other direction.
"""

import asyncio

from wsveil.config import TunnelConfig
from wsveil.exceptions import BackendConnectError, HandshakeError
from wsveil.models.enums import PumpDirection
from wsveil.tunnel.handshake import send_handshake
from wsveil.tunnel.keepalive import enable_keepalive
from wsveil.tunnel.pump import PacketSkipper, pump
from wsveil.utils.logger import format_traceback, get_logger

logger = get_logger(__name__)


def format_peer(peername) -> str:
    """Render a ``peername`` extra-info value as ``host:port``."""
    if isinstance(peername, tuple) and len(peername) >= 2:
        return f"{peername[0]}:{peername[1]}"
    return str(peername)


async def close_writer(writer: asyncio.StreamWriter | None):
    """Close a stream writer and wait briefly for the transport to go away."""
    if writer is None:
        return
    writer.close()
    try:
        await asyncio.wait_for(writer.wait_closed(), timeout=1.0)
    except (OSError, asyncio.TimeoutError):
        pass


class TunnelSession:
    """One client connection paired with one backend connection."""

    def __init__(
        self,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
        config: TunnelConfig,
        connection_id: int = 0,
    ):
        """
        Initialize a session.

        Args:
            reader: Client stream reader.
            writer: Client stream writer.
            config: Tunnel configuration; the skip count is copied from it.
            connection_id: Accept sequence number, for logs only.
        """
        self.client_reader = reader
        self.client_writer = writer
        self.config = config
        self.connection_id = connection_id
        self.client_addr = format_peer(writer.get_extra_info("peername"))
        self.log_prefix = f"[Client {self.client_addr}]"

        self.skipper = PacketSkipper(config.PACKETS_TO_SKIP)
        self.backend_reader: asyncio.StreamReader | None = None
        self.backend_writer: asyncio.StreamWriter | None = None
        self.bytes_to_backend: int | None = None
        self.bytes_to_client: int | None = None

    async def run(self):
        """Run the session to completion. Never raises for network errors."""
        try:
            await send_handshake(self.client_writer, self.config.SERVER_NAME)
            await self._connect_backend()
            self._configure_keepalive()
            logger.info(
                f"{self.log_prefix} Tunnel #{self.connection_id} established: "
                f"{self.client_addr} <-> {self.config.get_backend_address()}"
            )
            await self._relay()

        except HandshakeError as e:
            logger.warning(f"{self.log_prefix} {e}")

        except BackendConnectError as e:
            logger.error(f"{self.log_prefix} {e}")

        except asyncio.CancelledError:
            logger.debug(f"{self.log_prefix} Session cancelled.")
            raise

        except Exception as e:
            logger.error(f"{self.log_prefix} Unexpected error in session: {e}")
            logger.debug(format_traceback(e))

        finally:
            await close_writer(self.client_writer)
            await close_writer(self.backend_writer)
            logger.info(
                f"{self.log_prefix} Tunnel closed "
                f"(to backend: {self._fmt_bytes(self.bytes_to_backend)}, "
                f"to client: {self._fmt_bytes(self.bytes_to_client)})."
            )

    async def _connect_backend(self):
        address = self.config.get_backend_address()
        logger.info(f"{self.log_prefix} Connecting to {address}...")
        try:
            self.backend_reader, self.backend_writer = await asyncio.wait_for(
                asyncio.open_connection(self.config.DEST_HOST, self.config.DEST_PORT),
                timeout=self.config.CONNECT_TIMEOUT,
            )
        except asyncio.TimeoutError as e:
            raise BackendConnectError(
                f"timed out after {self.config.CONNECT_TIMEOUT}s", address
            ) from e
        except OSError as e:
            raise BackendConnectError(str(e) or type(e).__name__, address) from e

    def _configure_keepalive(self):
        period = self.config.KEEPALIVE_SECONDS
        if enable_keepalive(self.client_writer, period):
            logger.debug(f"{self.log_prefix} Keep-alive configured for client.")
        if enable_keepalive(self.backend_writer, period):
            logger.debug(
                f"{self.log_prefix} Keep-alive configured for "
                f"{self.config.get_backend_address()}."
            )

    async def _relay(self):
        """Run both pumps; return once either finishes and the other is stopped."""
        to_backend = asyncio.create_task(
            pump(
                self.client_reader,
                self.backend_writer,
                PumpDirection.CLIENT_TO_BACKEND,
                self.log_prefix,
                self.config.BUFFER_SIZE,
                self.skipper,
            )
        )
        to_client = asyncio.create_task(
            pump(
                self.backend_reader,
                self.client_writer,
                PumpDirection.BACKEND_TO_CLIENT,
                self.log_prefix,
                self.config.BUFFER_SIZE,
            )
        )
        pumps = {to_backend, to_client}

        try:
            done, _ = await asyncio.wait(
                pumps, return_when=asyncio.FIRST_COMPLETED
            )
        finally:
            # Closing the transports unblocks any read still in flight
            self.client_writer.close()
            self.backend_writer.close()
            for task in pumps:
                task.cancel()
            await asyncio.gather(*pumps, return_exceptions=True)

        for task in done:
            direction = (
                PumpDirection.CLIENT_TO_BACKEND
                if task is to_backend
                else PumpDirection.BACKEND_TO_CLIENT
            )
            logger.debug(f"{self.log_prefix} {direction.value} finished first.")

        self.bytes_to_backend = self._task_result(to_backend)
        self.bytes_to_client = self._task_result(to_client)

    def _task_result(self, task: asyncio.Task) -> int | None:
        if task.cancelled():
            return None
        exc = task.exception()
        if exc is not None:
            logger.error(f"{self.log_prefix} Pump failed: {exc!r}")
            logger.debug(format_traceback(exc))
            return None
        return task.result()

    @staticmethod
    def _fmt_bytes(count: int | None) -> str:
        return "n/a" if count is None else f"{count} bytes"

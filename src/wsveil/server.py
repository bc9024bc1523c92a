"""
Tunnel listener.

Accepts client connections and runs one ``TunnelSession`` per connection.
Sessions are fully independent; there is no connection limit.
"""

import asyncio
import sys

from wsveil.config import TunnelConfig
from wsveil.probe import check_backend
from wsveil.tunnel.session import TunnelSession, format_peer
from wsveil.utils.logger import get_logger

logger = get_logger(__name__)


class TunnelServer:
    """Listening side of the tunnel."""

    def __init__(self, config: TunnelConfig):
        self.config = config
        self.connection_count = 0
        self._server: asyncio.Server | None = None

    async def _handle_connection(
        self,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
    ):
        """Handle a single incoming connection."""
        self.connection_count += 1
        connection_id = self.connection_count
        peer = format_peer(writer.get_extra_info("peername"))
        logger.info(f"Connection #{connection_id} accepted from {peer}")

        session = TunnelSession(reader, writer, self.config, connection_id)
        await session.run()

    async def start(self):
        """
        Bind the listener.

        Raises:
            OSError: If the listen address cannot be bound.
        """
        self._server = await asyncio.start_server(
            self._handle_connection,
            self.config.LISTEN_HOST,
            self.config.LISTEN_PORT,
        )
        addrs = ", ".join(str(sock.getsockname()) for sock in self._server.sockets)
        logger.info(f"Tunnel server started on {addrs}")

    @property
    def sockets(self):
        return self._server.sockets if self._server else ()

    @property
    def port(self) -> int:
        """Actual bound port (useful when LISTEN_PORT is 0)."""
        if not self.sockets:
            return self.config.LISTEN_PORT
        return self.sockets[0].getsockname()[1]

    async def serve_forever(self):
        if self._server is None:
            await self.start()
        logger.info("Waiting for connections...")
        await self._server.serve_forever()

    async def close(self):
        """Stop accepting connections."""
        if self._server:
            port = self.port
            self._server.close()
            # wait_closed also waits for live sessions on newer Pythons
            try:
                await asyncio.wait_for(self._server.wait_closed(), timeout=1.0)
            except asyncio.TimeoutError:
                pass
            logger.info(f"Tunnel server on port {port} shut down.")


def log_banner(config: TunnelConfig):
    """Log the startup summary."""
    logger.info("=== WEBSOCKET-DISGUISED TCP TUNNEL ===")
    logger.info(f"Backend: {config.get_backend_address()}")
    logger.info(f"Listen: {config.get_listen_address()}")
    logger.info(f"Packets to skip: {config.PACKETS_TO_SKIP}")
    logger.info("Mode: raw TCP tunnel, no authentication")
    logger.info("=====================================")


async def run_server(config: TunnelConfig, probe: bool = True):
    """
    Run the tunnel until cancelled.

    Logs the banner, runs the connectivity probe (a failure only logs a
    warning), then binds and serves forever.

    Raises:
        OSError: If the listener cannot be bound.
    """
    log_banner(config)

    if probe:
        reachable = await check_backend(
            config.DEST_HOST, config.DEST_PORT, timeout=config.PROBE_TIMEOUT
        )
        if not reachable:
            logger.warning("Initial connectivity check failed; continuing anyway.")

    server = TunnelServer(config)
    try:
        await server.start()
    except OSError as e:
        logger.critical(
            f"FATAL: Failed to start server on {config.get_listen_address()}: {e}"
        )
        raise

    try:
        await server.serve_forever()
    except asyncio.CancelledError:
        logger.info("Tunnel server task cancelled.")
        raise
    finally:
        await server.close()


# =============================================================================
# Server Entry Points
# =============================================================================


def run():
    """Run the tunnel with configuration taken from the environment."""
    from wsveil.exceptions import ConfigError
    from wsveil.utils.logger import configure_logging

    try:
        config = TunnelConfig.from_env().validate()
    except ConfigError as e:
        logger.critical(f"Invalid configuration: {e}")
        sys.exit(2)

    configure_logging(config.LOG_LEVEL, config.LOG_FILE)

    try:
        asyncio.run(run_server(config))
    except OSError:
        sys.exit(1)
    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down.")


if __name__ == "__main__":
    run()

"""Unidirectional stream pumps and the initial packet filter."""

import asyncio

from wsveil.models.enums import PumpDirection
from wsveil.utils.logger import get_logger

logger = get_logger(__name__)


class PacketSkipper:
    """
    Discards the first ``limit`` read events of a stream.

    Each read counts as one packet regardless of its length. Once ``limit``
    reads have been discarded every later read passes; the filter never
    re-arms. Only the pump that owns it may call ``should_skip``.
    """

    def __init__(self, limit: int):
        if limit < 0:
            raise ValueError(f"limit must not be negative: {limit}")
        self.limit = limit
        self.skipped = 0

    @property
    def exhausted(self) -> bool:
        return self.skipped >= self.limit

    def should_skip(self) -> bool:
        """Register one read; return True if it must be discarded."""
        if self.skipped < self.limit:
            self.skipped += 1
            return True
        return False


async def pump(
    reader: asyncio.StreamReader,
    writer: asyncio.StreamWriter,
    direction: PumpDirection,
    log_prefix: str = "",
    buffer_size: int = 4096,
    skipper: PacketSkipper | None = None,
) -> int:
    """
    Pipe data from reader to writer until EOF or error.

    Args:
        reader: Source stream.
        writer: Destination stream.
        direction: Tag used in log messages.
        log_prefix: Per-connection prefix for log messages.
        buffer_size: Maximum bytes per read.
        skipper: Optional filter applied to each read before forwarding.

    Returns:
        Number of bytes written to ``writer``.
    """
    tag = f"{log_prefix} [{direction.value}]".strip()
    transferred = 0

    while True:
        try:
            data = await reader.read(buffer_size)
        except OSError as e:
            logger.info(f"{tag} Read error: {e}")
            break
        if not data:
            break

        if skipper is not None and skipper.should_skip():
            logger.debug(
                f"{tag} Skipping packet {skipper.skipped}/{skipper.limit} "
                f"({len(data)} bytes)"
            )
            continue

        try:
            writer.write(data)
            await writer.drain()
        except OSError as e:
            logger.info(f"{tag} Write error: {e}")
            break
        transferred += len(data)

    return transferred

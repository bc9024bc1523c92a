"""
Startup connectivity probe.

Opens one timed connection to the backend and logs the outcome. The result is
informational only; the listener starts either way.
"""

import asyncio

from wsveil.tunnel.session import close_writer
from wsveil.utils.logger import get_logger

logger = get_logger(__name__)


async def check_backend(host: str, port: int, timeout: float = 10.0) -> bool:
    """
    Check whether the backend accepts TCP connections.

    Args:
        host: Backend host.
        port: Backend port.
        timeout: Connect timeout in seconds.

    Returns:
        True if a connection could be established within the timeout.
    """
    logger.info(f"Checking TCP connectivity to {host}:{port}...")
    writer = None
    try:
        _, writer = await asyncio.wait_for(
            asyncio.open_connection(host, port), timeout=timeout
        )
    except asyncio.TimeoutError:
        logger.warning(f"Could not reach {host}:{port}: timed out after {timeout}s")
        return False
    except OSError as e:
        logger.warning(f"Could not reach {host}:{port}: {e}")
        return False
    finally:
        await close_writer(writer)

    logger.info(f"Backend reachable at {host}:{port}")
    return True

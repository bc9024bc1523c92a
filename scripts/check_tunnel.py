#!/usr/bin/env python3
"""
Manual end-to-end check of the wsveil tunnel.

This script sets up:
1. A TCP echo server (simulates the backend, e.g. an SSH daemon)
2. A ``wsveil serve`` subprocess pointing at the echo server

Then verifies:
- Every connection receives exactly one upgrade response
- The first N client packets are discarded (N = --skip)
- Data echoes back unchanged once the skip window has passed
- Several concurrent tunnels work independently
- A dead backend closes the client after the handshake

Usage:
    python scripts/check_tunnel.py [--skip N] [--tunnel-port PORT]
"""

import argparse
import asyncio
import os
import subprocess
import sys
from pathlib import Path

PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT / "src"))

from wsveil.tunnel.handshake import STATUS_LINE

# =============================================================================
# Configuration
# =============================================================================

ECHO_SERVER_PORT = 19876
TUNNEL_PORT = 19877
PACKET_GAP_SECONDS = 0.2

# Colors for output
GREEN = "\033[92m"
RED = "\033[91m"
YELLOW = "\033[93m"
CYAN = "\033[96m"
RESET = "\033[0m"


def log_info(msg: str) -> None:
    print(f"{CYAN}[INFO]{RESET} {msg}")


def log_ok(msg: str) -> None:
    print(f"{GREEN}[PASS]{RESET} {msg}")


def log_fail(msg: str) -> None:
    print(f"{RED}[FAIL]{RESET} {msg}")


def log_warn(msg: str) -> None:
    print(f"{YELLOW}[WARN]{RESET} {msg}")


# =============================================================================
# Echo Server (simulates the backend)
# =============================================================================


class EchoServer:
    """Simple TCP echo server."""

    def __init__(self, port: int):
        self.port = port
        self.server = None

    async def start(self) -> None:
        self.server = await asyncio.start_server(
            self._handle_client, "127.0.0.1", self.port
        )
        log_info(f"Echo server listening on 127.0.0.1:{self.port}")

    async def stop(self) -> None:
        if self.server:
            self.server.close()
            await self.server.wait_closed()

    async def _handle_client(
        self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter
    ) -> None:
        """Echo back any data received."""
        try:
            while True:
                data = await reader.read(4096)
                if not data:
                    break
                writer.write(data)
                await writer.drain()
        except OSError as e:
            log_warn(f"Echo: Connection error: {e}")
        finally:
            writer.close()


# =============================================================================
# Checks
# =============================================================================


async def open_tunnel(port: int):
    reader, writer = await asyncio.open_connection("127.0.0.1", port)
    handshake = await asyncio.wait_for(reader.readuntil(b"\r\n\r\n"), timeout=5)
    return reader, writer, handshake


async def check_handshake(port: int) -> bool:
    reader, writer, handshake = await open_tunnel(port)
    writer.close()

    lines = handshake.decode("ascii").split("\r\n")
    if lines[0] != STATUS_LINE or "Upgrade: websocket" not in lines:
        log_fail(f"Unexpected handshake: {handshake!r}")
        return False
    log_ok("Upgrade response looks right")
    return True


async def check_skip_and_echo(port: int, skip: int) -> bool:
    reader, writer, _ = await open_tunnel(port)

    # Let the tunnel finish dialing the backend so reads stay separate
    await asyncio.sleep(PACKET_GAP_SECONDS)
    for i in range(skip):
        writer.write(f"junk-{i}".encode())
        await writer.drain()
        await asyncio.sleep(PACKET_GAP_SECONDS)

    payload = os.urandom(8192)
    writer.write(payload)
    await writer.drain()

    try:
        echoed = await asyncio.wait_for(reader.readexactly(len(payload)), timeout=5)
    except (asyncio.TimeoutError, asyncio.IncompleteReadError) as e:
        log_fail(f"No echo after skipping {skip} packets: {e}")
        return False
    finally:
        writer.close()

    if echoed != payload:
        log_fail("Echoed payload differs from what was sent")
        return False
    log_ok(f"Skipped {skip} packets, payload echoed unchanged")
    return True


async def check_concurrent(port: int, skip: int, count: int = 5) -> bool:
    results = await asyncio.gather(
        *(check_skip_and_echo(port, skip) for _ in range(count)),
        return_exceptions=True,
    )
    passed = sum(1 for r in results if r is True)
    if passed != count:
        log_fail(f"Concurrent tunnels: {passed}/{count} passed")
        return False
    log_ok(f"{count} concurrent tunnels passed")
    return True


async def check_dead_backend(port: int, echo_server: EchoServer) -> bool:
    await echo_server.stop()
    reader, writer, _ = await open_tunnel(port)
    try:
        rest = await asyncio.wait_for(reader.read(), timeout=20)
    finally:
        writer.close()

    if rest:
        log_fail(f"Expected EOF after handshake, got {rest!r}")
        return False
    log_ok("Dead backend closes the client after the handshake")
    return True


async def run_checks(skip: int, tunnel_port: int) -> bool:
    echo_server = EchoServer(ECHO_SERVER_PORT)
    await echo_server.start()

    cmd = [
        sys.executable,
        "-m",
        "wsveil",
        "serve",
        "--bind",
        "127.0.0.1",
        "--port",
        str(tunnel_port),
        "--dest-host",
        "127.0.0.1",
        "--dest-port",
        str(ECHO_SERVER_PORT),
        "--skip",
        str(skip),
        "--no-probe",
    ]
    log_info(f"Starting tunnel: {' '.join(cmd)}")
    env = dict(os.environ, PYTHONPATH=str(PROJECT_ROOT / "src"))
    tunnel_process = subprocess.Popen(cmd, env=env)
    await asyncio.sleep(1.5)

    all_passed = True
    try:
        for check in (
            check_handshake(tunnel_port),
            check_skip_and_echo(tunnel_port, skip),
            check_concurrent(tunnel_port, skip),
            check_dead_backend(tunnel_port, echo_server),
        ):
            if not await check:
                all_passed = False
    except OSError as e:
        log_fail(f"Could not talk to the tunnel: {e}")
        all_passed = False

    log_info("Cleaning up...")
    tunnel_process.terminate()
    try:
        tunnel_process.wait(timeout=3)
    except subprocess.TimeoutExpired:
        tunnel_process.kill()
    await echo_server.stop()

    return all_passed


async def main() -> int:
    parser = argparse.ArgumentParser(description="End-to-end check of wsveil")
    parser.add_argument("--skip", type=int, default=2, help="Packets to skip")
    parser.add_argument(
        "--tunnel-port", type=int, default=TUNNEL_PORT, help="Tunnel listen port"
    )
    args = parser.parse_args()

    success = await run_checks(args.skip, args.tunnel_port)

    print()
    if success:
        log_ok("All checks passed!")
        return 0
    log_fail("Some checks failed!")
    return 1


if __name__ == "__main__":
    try:
        sys.exit(asyncio.run(main()))
    except KeyboardInterrupt:
        print("\nInterrupted")
        sys.exit(130)

"""
wsveil CLI entry point.

Usage:
    wsveil [OPTIONS] COMMAND [ARGS]...

Commands:
    serve      Run the tunnel
    probe      Check backend connectivity
    handshake  Print a sample upgrade response
    config     Show effective configuration
    version    Show version information

Every ``serve`` option can also be set through the environment variables
PORT, DHOST, DPORT, PACKSKIP, BIND, SERVER_NAME, LOG_LEVEL and LOG_FILE.
"""

import asyncio
from typing import Annotated

import typer

from wsveil.cli.output import console, print_error, print_success, print_warning
from wsveil.config import TunnelConfig
from wsveil.exceptions import ConfigError
from wsveil.models.enums import LogLevel
from wsveil.utils.logger import configure_logging

app = typer.Typer(
    name="wsveil",
    help="TCP tunnel disguised as a WebSocket upgrade",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

_DEFAULTS = TunnelConfig()

PortOption = Annotated[
    int,
    typer.Option("--port", "-p", help="Port to listen on", envvar="PORT"),
]
BindOption = Annotated[
    str,
    typer.Option("--bind", help="Address to listen on", envvar="BIND"),
]
DestHostOption = Annotated[
    str,
    typer.Option("--dest-host", "-d", help="Backend host", envvar="DHOST"),
]
DestPortOption = Annotated[
    int,
    typer.Option("--dest-port", "-D", help="Backend port", envvar="DPORT"),
]
SkipOption = Annotated[
    int,
    typer.Option(
        "--skip",
        "-s",
        help="Initial client packets to discard per connection",
        envvar="PACKSKIP",
    ),
]
ServerNameOption = Annotated[
    str,
    typer.Option(
        "--server-name",
        help="Server header of the upgrade response",
        envvar="SERVER_NAME",
    ),
]
LogLevelOption = Annotated[
    LogLevel,
    typer.Option(
        "--log-level",
        "-l",
        help="Log verbosity",
        envvar="LOG_LEVEL",
        case_sensitive=False,
    ),
]
LogFileOption = Annotated[
    str,
    typer.Option("--log-file", help="Also log to this file", envvar="LOG_FILE"),
]


def _build_config(**kwargs) -> TunnelConfig:
    try:
        return TunnelConfig(**kwargs).validate()
    except ConfigError as e:
        print_error(str(e))
        raise typer.Exit(2)


@app.command("serve")
def serve(
    port: PortOption = _DEFAULTS.LISTEN_PORT,
    bind: BindOption = _DEFAULTS.LISTEN_HOST,
    dest_host: DestHostOption = _DEFAULTS.DEST_HOST,
    dest_port: DestPortOption = _DEFAULTS.DEST_PORT,
    skip: SkipOption = _DEFAULTS.PACKETS_TO_SKIP,
    server_name: ServerNameOption = _DEFAULTS.SERVER_NAME,
    log_level: LogLevelOption = _DEFAULTS.LOG_LEVEL,
    log_file: LogFileOption = _DEFAULTS.LOG_FILE,
    no_probe: Annotated[
        bool,
        typer.Option("--no-probe", help="Skip the startup connectivity check"),
    ] = False,
):
    """Run the tunnel until interrupted."""
    from wsveil.server import run_server

    config = _build_config(
        LISTEN_HOST=bind,
        LISTEN_PORT=port,
        DEST_HOST=dest_host,
        DEST_PORT=dest_port,
        PACKETS_TO_SKIP=skip,
        SERVER_NAME=server_name,
        LOG_LEVEL=log_level,
        LOG_FILE=log_file,
    )

    # Configure logging before the event loop starts
    configure_logging(config.LOG_LEVEL, config.LOG_FILE)

    try:
        asyncio.run(run_server(config, probe=not no_probe))
    except OSError as e:
        print_error(f"Failed to start server on {config.get_listen_address()}: {e}")
        raise typer.Exit(1)
    except KeyboardInterrupt:
        console.print("\n[dim]Shutting down.[/dim]")


@app.command("probe")
def probe(
    dest_host: DestHostOption = _DEFAULTS.DEST_HOST,
    dest_port: DestPortOption = _DEFAULTS.DEST_PORT,
    timeout: Annotated[
        float,
        typer.Option("--timeout", "-t", help="Connect timeout in seconds"),
    ] = _DEFAULTS.PROBE_TIMEOUT,
):
    """Check whether the backend accepts TCP connections."""
    from wsveil.probe import check_backend

    config = _build_config(DEST_HOST=dest_host, DEST_PORT=dest_port)
    configure_logging(LogLevel.WARNING)

    if asyncio.run(check_backend(config.DEST_HOST, config.DEST_PORT, timeout)):
        print_success(f"Backend reachable at {config.get_backend_address()}")
    else:
        print_warning(f"Backend unreachable at {config.get_backend_address()}")
        raise typer.Exit(1)


@app.command("handshake")
def handshake(
    server_name: ServerNameOption = _DEFAULTS.SERVER_NAME,
):
    """Print the upgrade response a client would receive."""
    from wsveil.tunnel.handshake import build_handshake_response

    typer.echo(build_handshake_response(server_name).decode("ascii"), nl=False)


@app.command("config")
def show_config(
    port: PortOption = _DEFAULTS.LISTEN_PORT,
    bind: BindOption = _DEFAULTS.LISTEN_HOST,
    dest_host: DestHostOption = _DEFAULTS.DEST_HOST,
    dest_port: DestPortOption = _DEFAULTS.DEST_PORT,
    skip: SkipOption = _DEFAULTS.PACKETS_TO_SKIP,
    server_name: ServerNameOption = _DEFAULTS.SERVER_NAME,
):
    """Show the effective configuration."""
    from rich.table import Table

    config = _build_config(
        LISTEN_HOST=bind,
        LISTEN_PORT=port,
        DEST_HOST=dest_host,
        DEST_PORT=dest_port,
        PACKETS_TO_SKIP=skip,
        SERVER_NAME=server_name,
    )

    table = Table(title="Tunnel Configuration", show_header=True)
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")

    table.add_row("Listen", config.get_listen_address())
    table.add_row("Backend", config.get_backend_address())
    table.add_row("Packets to skip", str(config.PACKETS_TO_SKIP))
    table.add_row("Server header", config.SERVER_NAME)
    table.add_row("Connect timeout", f"{config.CONNECT_TIMEOUT}s")
    table.add_row("Keep-alive", f"{config.KEEPALIVE_SECONDS}s")

    console.print(table)


@app.command("version")
def version():
    """Show version information."""
    from wsveil import __version__

    console.print(f"wsveil v{__version__}")


def run():
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    run()

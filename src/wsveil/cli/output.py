"""Console output helpers for the CLI."""

from rich.console import Console

console = Console()
err_console = Console(stderr=True)


def print_error(message: str):
    err_console.print(f"[bold red]Error:[/bold red] {message}")


def print_warning(message: str):
    err_console.print(f"[yellow]Warning:[/yellow] {message}")


def print_success(message: str):
    console.print(f"[green]{message}[/green]")

"""Shared stderr console for diagnostics.

stdout is left alone so nothing we print interferes with the terminal
that tmux attaches to.
"""

from rich.console import Console
from rich.markup import escape

console = Console(stderr=True, highlight=False, soft_wrap=True)


def warn(message: str) -> None:
    console.print(f"[yellow]Warning:[/yellow] {escape(message)}")


def error(message: str) -> None:
    console.print(f"[red]Error:[/red] {escape(message)}")


def debug(message: str, verbose: bool) -> None:
    if verbose:
        console.print(f"[dim]{escape(message)}[/dim]")

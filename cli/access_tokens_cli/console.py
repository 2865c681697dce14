from __future__ import annotations

from rich.console import Console
from rich.markup import escape

console = Console()
err_console = Console(stderr=True)

QUIET = "quiet"
NORMAL = "normal"
VERBOSE = "verbose"

_level = NORMAL


def set_level(*, verbose: bool = False, quiet: bool = False) -> str:
    """quiet wins over verbose; returns the level now in effect."""
    global _level
    if quiet:
        _level = QUIET
    elif verbose:
        _level = VERBOSE
    else:
        _level = NORMAL
    return _level


def level() -> str:
    return _level


def print_json(data) -> None:
    console.print_json(data=data)


def info(msg: str) -> None:
    if _level != QUIET:
        console.print(f"[bold cyan]•[/] {escape(msg)}")


def ok(msg: str) -> None:
    if _level != QUIET:
        console.print(f"[bold green]OK[/] {escape(msg)}")


def warn(msg: str) -> None:
    if _level != QUIET:
        err_console.print(f"[bold yellow]WARN[/] {escape(msg)}")


def err(msg: str) -> None:
    err_console.print(f"[bold red]ERR[/] {escape(msg)}")


def verbose(msg: str) -> None:
    if _level == VERBOSE:
        console.print(f"[dim]{escape(msg)}[/]")


def dry_run(msg: str) -> None:
    if _level != QUIET:
        console.print(f"[bold cyan]\\[DRY RUN][/] {escape(msg)}")


def print(*args, **kwargs):
    """Proxy to underlying rich Console.print(); suppressed when quiet."""
    if _level != QUIET:
        console.print(*args, **kwargs)


def rule(*args, **kwargs):
    """Proxy to underlying rich Console.rule()."""
    if _level != QUIET:
        console.rule(*args, **kwargs)

"""
SageRun - Terminal output and prompts using Rich + InquirerPy.

Rich tables and panels for categories, markers and run reports; arrow-key
checkbox and confirmation prompts for the mutating commands.
"""

from __future__ import annotations

from typing import List, Optional, Set

from rich.console import Console
from rich.table import Table
from rich.panel import Panel
from rich import box

from InquirerPy import inquirer

from sagerun.config import DENY_LIST
from sagerun.models import ActivationRecord, ActivationState, Category, CleanupResult, FlagChange, _format_duration, _format_size

console = Console()

STATE_TAGS = {
    ActivationState.ENABLED: "[green]enabled[/]",
    ActivationState.DISABLED: "[dim]disabled[/]",
    ActivationState.UNSET: "[yellow]unset[/]",
}


def show_categories(categories: List[Category]) -> None:
    table = Table(box=box.ROUNDED, title="[bold]Volume Cache Categories[/]",
                  title_style="bold cyan")
    table.add_column("#", justify="center", width=4)
    table.add_column("Category", min_width=30)
    table.add_column("Token", min_width=30)
    table.add_column("Automated", justify="center", width=10)

    for idx, cat in enumerate(categories, 1):
        automated = "[red]no[/]" if cat.name in DENY_LIST else "[green]yes[/]"
        table.add_row(str(idx), cat.name, cat.token, automated)

    console.print()
    console.print(table)
    console.print()


def show_records(records: List[ActivationRecord]) -> None:
    """One table per marker, listing the categories that define it."""
    if not records:
        console.print("[yellow]No StateFlags markers found.[/]")
        return

    for record in records:
        title = (f"[bold cyan]{record.value_name}[/] "
                 f"[dim]({len(record.enabled)}/{len(record.states)} enabled)[/]")
        table = Table(box=box.SIMPLE, title=title, show_header=False, padding=(0, 1))
        table.add_column("Category", min_width=38)
        table.add_column("State", justify="right", width=10)
        for name, state in record.states.items():
            table.add_row(name, STATE_TAGS[state])
        console.print(table)


def show_changes(changes: List[FlagChange], title: str) -> None:
    table = Table(box=box.ROUNDED, title=title, title_style="bold yellow")
    table.add_column("Category", min_width=30)
    table.add_column("Value", min_width=14)
    table.add_column("Data", justify="right", width=6)
    table.add_column("State", justify="right", width=10)
    for change in changes:
        table.add_row(change.category, change.value_name, str(change.value),
                      STATE_TAGS[change.state])
    console.print()
    console.print(table)


def select_tokens(categories: List[Category], preselected: Optional[Set[str]] = None) -> Optional[Set[str]]:
    """
    Arrow-key checkbox over the available category tokens.

    Returns the selected tokens, or None if the user aborted.
    """
    preselected = preselected or set()
    choices = [{
        "name": f"{cat.name:<40s}  ({cat.token})",
        "value": cat.token,
        "enabled": cat.token in preselected,
    } for cat in categories]

    console.print("[bold cyan]Select categories to enable[/]")
    console.print("[dim]  ↑/↓ navigate  ·  Space toggle  ·  "
                  "Enter confirm  ·  Ctrl+C cancel[/]\n")

    try:
        selected = inquirer.checkbox(
            message="Categories:",
            choices=choices,
            cycle=True,
            instruction="",
        ).execute()
    except KeyboardInterrupt:
        return None

    if selected is None:
        return None
    return set(selected)


def confirm_changes(changes: List[FlagChange]) -> bool:
    """Show the planned writes and ask for confirmation."""
    enabled = sum(1 for c in changes if c.state is ActivationState.ENABLED)
    show_changes(changes, "StateFlags to be written")
    console.print(Panel(
        f"[bold yellow]{len(changes)} registry values will be written "
        f"({enabled} enabled, {len(changes) - enabled} disabled).[/]",
        border_style="yellow",
    ))
    try:
        return bool(inquirer.confirm(message="Write these values?", default=False).execute())
    except KeyboardInterrupt:
        return False


def show_cleanup_report(result: CleanupResult, log_path: str = "") -> None:
    """Display the final cleanup report."""
    if result.dry_run:
        console.print(Panel.fit(
            f"[bold yellow]Dry run[/] - nothing was written or launched.\n\n"
            f"  {result.description}\n\n"
            f"  Drive:      [bold]{result.before.device_id}[/]  "
            f"({_format_size(result.before.total_size)})\n"
            f"  Free space: [bold]{_format_size(result.before.free_space)}[/]",
            border_style="yellow",
            title="[bold]SageRun Report[/]",
        ))
        return

    color = "green" if result.reclaimed >= 0 else "red"
    log_line = f"\n\n  Log file: [cyan]{log_path}[/]" if log_path else ""
    console.print()
    console.print(Panel.fit(
        f"[bold green]Cleanup Complete![/]\n\n"
        f"  Drive:      [bold]{result.before.device_id}[/]  "
        f"({_format_size(result.before.total_size)})\n"
        f"  Before:     {_format_size(result.before.free_space)} free\n"
        f"  After:      {_format_size(result.after_free_space)} free\n"
        f"  Reclaimed:  [bold {color}]{result.reclaimed_gb} GB[/] "
        f"({result.reclaimed_human})\n"
        f"  Duration:   [bold cyan]{_format_duration(result.duration_s)}[/]"
        f"{log_line}",
        border_style="green",
        title="[bold]SageRun Report[/]",
    ))
    console.print()


def show_error(message: str, title: str = "Error") -> None:
    console.print(Panel(f"[bold red]{message}[/]", border_style="red",
                        title=f"[bold]{title}[/]"))

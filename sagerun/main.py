r"""
SageRun - cleanmgr StateFlags helper for Windows disk cleanup

Entry point: list categories, inspect or set StateFlags markers, and run
cleanmgr with the upgrade-leftovers profile.

Usage:
    sagerun list                         List VolumeCaches categories
    sagerun show [--marker N]            Show StateFlags markers
    sagerun set 42 --select A B          Enable A and B for marker 42
    sagerun set 42 --interactive         Pick categories with a checkbox
    sagerun run [--force]                Run cleanmgr /SAGERUN:1337
    sagerun config --timeout 600         Save default settings
    sagerun run --dry-run                Describe without doing anything
"""

from __future__ import annotations

import argparse
import ctypes
import sys
from typing import List, Optional

from rich.panel import Panel

from sagerun.config import AppConfig, load_config, save_config, validate_config
from sagerun.errors import InvalidInputError, OperationCancelled, SageRunError
from sagerun.ui import console, show_error

BANNER = r"""
   ____                   ____
  / ___|  __ _  __ _  ___|  _ \ _   _ _ __
  \___ \ / _` |/ _` |/ _ \ |_) | | | | '_ \
   ___) | (_| | (_| |  __/  _ <| |_| | | | |
  |____/ \__,_|\__, |\___|_| \_\\__,_|_| |_|
               |___/
  cleanmgr StateFlags helper v1.0
"""


def is_admin() -> bool:
    """Check if the script is running with administrator privileges."""
    try:
        return ctypes.windll.shell32.IsUserAnAdmin() != 0
    except Exception:
        return False


def request_elevation() -> None:
    """Show message about needing admin rights."""
    console.print(Panel(
        "[bold red](!!) Administrator privileges required![/]\n\n"
        "Writing StateFlags needs write access to:\n"
        "  - HKLM\\SOFTWARE\\Microsoft\\Windows\\CurrentVersion\\Explorer\\VolumeCaches\n\n"
        "Please right-click your terminal and select\n"
        "[bold]'Run as administrator'[/], then try again.",
        border_style="red",
        title="[bold]Elevation Required[/]",
    ))


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--dry-run",
        action="store_true",
        help="Describe what would be written or launched without doing it",
    )
    common.add_argument(
        "--force",
        action="store_true",
        help="Skip confirmation prompts",
    )
    common.add_argument(
        "--log-dir",
        type=str,
        default=None,
        help="Directory to save the action log CSV (default: from config, else current dir)",
    )
    common.add_argument(
        "--timeout",
        type=float,
        default=None,
        metavar="SECONDS",
        help="Give up waiting for cleanmgr after SECONDS (default: wait forever)",
    )

    parser = argparse.ArgumentParser(
        prog="sagerun",
        description="SageRun - cleanmgr StateFlags helper for Windows disk cleanup",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("list", parents=[common], help="List cleanup categories")

    show = sub.add_parser("show", parents=[common], help="Show StateFlags markers")
    show.add_argument("--marker", type=int, default=None, metavar="N",
                      help="Only show marker N")

    set_cmd = sub.add_parser("set", parents=[common],
                             help="Enable the selected categories for a marker, disable the rest")
    set_cmd.add_argument("marker", type=int, help="Marker id, 0-9999")
    set_cmd.add_argument("--select", nargs="*", default=[], metavar="TOKEN",
                         help="Category tokens to enable (names without spaces)")
    set_cmd.add_argument("--interactive", action="store_true",
                         help="Choose categories with a checkbox prompt")

    sub.add_parser("run", parents=[common],
                   help="Run cleanmgr with the upgrade-leftovers profile")

    cfg = sub.add_parser("config", parents=[common], help="Show or save default settings")
    cfg.add_argument("--poll-interval", type=float, default=None, metavar="SECONDS",
                     help="Delay between cleanmgr liveness checks")
    cfg.add_argument("--no-timeout", action="store_true",
                     help="Clear a saved timeout")

    return parser.parse_args(argv)


def build_config(args: argparse.Namespace) -> AppConfig:
    """Loaded config with command-line overrides applied."""
    config = load_config()
    if args.log_dir is not None:
        config.log_dir = args.log_dir
    if args.timeout is not None:
        config.timeout_s = args.timeout
    if args.dry_run:
        config.dry_run = True
    validate_config(config)
    return config


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)

    console.print(f"[bold cyan]{BANNER}[/]")

    try:
        config = build_config(args)
    except InvalidInputError as exc:
        show_error(str(exc), title=type(exc).__name__)
        return 1

    if config.dry_run and args.command in ("set", "run"):
        console.print(Panel(
            "[bold yellow]DRY-RUN MODE[/] - No registry values will be written "
            "and cleanmgr will not be started.",
            border_style="yellow",
        ))

    try:
        if args.command == "list":
            return _cmd_list()
        if args.command == "show":
            return _cmd_show(args)
        if args.command == "config":
            return _cmd_config(args, config)

        if not config.dry_run and not is_admin():
            request_elevation()
            if not args.force:
                proceed = console.input("[yellow]Continue anyway? (y/n): [/]").strip().lower()
                if proceed not in ("y", "yes"):
                    return 1

        if args.command == "set":
            return _cmd_set(args, config)
        return _cmd_run(args, config)

    except OperationCancelled:
        console.print("[yellow]Cancelled. No changes made.[/]")
        return 1
    except SageRunError as exc:
        applied = getattr(exc, "applied", None)
        if applied:
            from sagerun.cleanup import change_rows, write_log
            log_path = write_log(config.log_dir, change_rows("set", applied))
            console.print(f"[yellow]{len(applied)} values were written before the failure."
                          + (f" See {log_path}" if log_path else "") + "[/]")
        show_error(str(exc), title=type(exc).__name__)
        return 1


def _cmd_list() -> int:
    from sagerun.stateflags import list_categories
    from sagerun.ui import show_categories

    show_categories(list_categories())
    return 0


def _cmd_show(args: argparse.Namespace) -> int:
    from sagerun.stateflags import read_marker, read_state_flags
    from sagerun.ui import show_records

    if args.marker is not None:
        show_records([read_marker(args.marker)])
    else:
        show_records(read_state_flags())
    return 0


def _cmd_set(args: argparse.Namespace, config: AppConfig) -> int:
    from sagerun.cleanup import change_rows, write_log
    from sagerun.stateflags import available_categories, set_state_flags
    from sagerun.ui import confirm_changes, select_tokens, show_changes

    selected = set(args.select)
    if args.interactive:
        chosen = select_tokens(available_categories(), preselected=selected)
        if chosen is None:
            console.print("[yellow]Selection cancelled.[/]")
            return 1
        selected = chosen

    changes = set_state_flags(
        args.marker,
        selected,
        dry_run=config.dry_run,
        force=args.force,
        confirm=confirm_changes,
    )

    if config.dry_run:
        show_changes(changes, "StateFlags that would be written")
        console.print("[yellow]Dry-run mode. Nothing was written.[/]")
        return 0

    log_path = write_log(config.log_dir, change_rows("set", changes))
    console.print(f"[green]Wrote {len(changes)} values for StateFlags{args.marker:04d}.[/]")
    if log_path:
        console.print(f"[dim]Log file: {log_path}[/]")
    return 0


def _cmd_run(args: argparse.Namespace, config: AppConfig) -> int:
    from sagerun.cleanup import CleanupRun, change_rows, result_row, write_log
    from sagerun.ui import confirm_changes, show_changes, show_cleanup_report

    run = CleanupRun(config=config)
    if not config.dry_run:
        console.print(f"[bold]Waiting for cleanmgr to finish...[/] [dim]{run.describe()}[/]")
    result = run.execute(force=args.force, dry_run=config.dry_run, confirm=confirm_changes)

    if result.dry_run:
        show_changes(run.changes, "StateFlags that would be written")
        show_cleanup_report(result)
        return 0

    rows = change_rows("run", run.changes)
    rows.append(result_row(result))
    show_cleanup_report(result, write_log(config.log_dir, rows))
    return 0


def _cmd_config(args: argparse.Namespace, config: AppConfig) -> int:
    from sagerun.config import CONFIG_FILE

    changed = False
    if args.poll_interval is not None:
        config.poll_interval_s = args.poll_interval
        changed = True
    if args.no_timeout:
        config.timeout_s = None
        changed = True
    if args.timeout is not None or args.log_dir is not None:
        changed = True

    if changed:
        validate_config(config)
        config.dry_run = load_config().dry_run
        if not save_config(config):
            show_error(f"Could not write {CONFIG_FILE}", title="Settings not saved")
            return 1
        console.print(f"[green]Saved settings to {CONFIG_FILE}[/]")

    timeout = "none" if config.timeout_s is None else f"{config.timeout_s:g}s"
    console.print(f"  poll interval: [bold]{config.poll_interval_s:g}s[/]\n"
                  f"  timeout:       [bold]{timeout}[/]\n"
                  f"  log dir:       [bold]{config.log_dir}[/]")
    return 0


def cli() -> None:
    try:
        sys.exit(main())
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted.[/]")
        sys.exit(130)


if __name__ == "__main__":
    cli()

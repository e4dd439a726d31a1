"""
CLI (Command Line Interface).

    dualiswatch scrape      log in and cache the result pages as HTML
    dualiswatch check       parse the cache, report newly graded courses, save
    dualiswatch run         scrape + check (what a cron job calls)
    dualiswatch show        print the stored results

Settings come from the environment / .env (see config.py); flags override them.
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import List, Optional

import requests
from rich import box
from rich.console import Console
from rich.table import Table

from dualiswatch.changes import detect_transitions
from dualiswatch.config import MODES, Settings, load_settings
from dualiswatch.errors import DualisWatchError, NotificationFailed
from dualiswatch.model import Record
from dualiswatch.notify import send_webhook
from dualiswatch.parse import parse_cached
from dualiswatch.scrape import scrape
from dualiswatch.storage import FileStorage, SnapshotStatus, load_snapshot, save_snapshot


def _error(msg: str) -> None:
    print(msg, file=sys.stderr)


def _apply_overrides(settings: Settings, args: argparse.Namespace) -> Settings:
    """
    Copy CLI path flags that were given over the loaded settings.
    (--mode goes through load_settings, where it is validated.)
    """
    if getattr(args, "raw_dir", None):
        settings.raw_dir = Path(args.raw_dir)
    if getattr(args, "results_file", None):
        settings.results_file = Path(args.results_file)
    return settings


def _report(changed: List[Record]) -> None:
    print(f"Found {len(changed)} newly graded courses.")
    for r in changed:
        print(f"- {r.id} | {r.name}")


def _cmd_scrape(args: argparse.Namespace, settings: Settings) -> int:
    if not settings.email or not settings.password:
        _error("Please set DUALIS_EMAIL and DUALIS_PASSWORD (environment or .env).")
        return 1

    n = scrape(settings, settings.mode, settings.raw_dir, sleep_seconds=args.sleep)
    print(f"Cached {n} pages in {settings.raw_dir}")
    return 0


def _cmd_check(args: argparse.Namespace, settings: Settings) -> int:
    """
    Parse the cached pages, diff against the stored results and save the new set.
    """
    current = parse_cached(settings.raw_dir, settings.mode)
    print(f"Extracted {len(current)} courses.")

    storage = FileStorage(settings.results_file)
    snapshot = load_snapshot(storage)

    if snapshot.status is SnapshotStatus.CORRUPT:
        _error(f"Warning: {settings.results_file} is unreadable ({snapshot.error}). Starting a new baseline.")

    changed = detect_transitions(snapshot, current)
    if changed is None:
        if snapshot.status is SnapshotStatus.NOT_FOUND:
            print("No previous results, storing baseline.")
    else:
        _report(changed)

        if changed and settings.webhook_url and not args.no_notify:
            try:
                sent = send_webhook(settings.webhook_url, changed, timeout=settings.timeout)
            except NotificationFailed as exc:
                # Keep the old results so the next run reports the course again
                _error(f"{exc}. Results not saved.")
                return 1
            print(f"Sent {sent} notifications.")

    if args.dry_run:
        print("Dry run: results not saved.")
        return 0

    save_snapshot(storage, current)
    print(f"Saved {len(current)} results to {settings.results_file}")
    return 0


def _cmd_run(args: argparse.Namespace, settings: Settings) -> int:
    code = _cmd_scrape(args, settings)
    if code != 0:
        return code
    return _cmd_check(args, settings)


def _cmd_show(args: argparse.Namespace, settings: Settings) -> int:
    """
    Print the stored results as a table.
    """
    snapshot = load_snapshot(FileStorage(settings.results_file))

    if snapshot.status is SnapshotStatus.NOT_FOUND:
        print(f"No results stored in {settings.results_file}")
        return 0
    if snapshot.status is SnapshotStatus.CORRUPT:
        _error(f"{settings.results_file} is unreadable: {snapshot.error}")
        return 1

    table = Table(title=f"Results ({len(snapshot.records)})", box=box.SIMPLE)
    table.add_column("Course")
    table.add_column("Name")
    table.add_column("Graded", justify="center")
    for r in snapshot.records:
        table.add_row(r.id, r.name, "[green]yes[/]" if r.graded else "[yellow]no[/]")

    Console().print(table)
    return 0


def build_parser() -> argparse.ArgumentParser:
    """
    Build the argparse CLI parser with sub-commands.
    """
    parser = argparse.ArgumentParser(prog="dualiswatch", description="Dualis result watcher")
    parser.add_argument("--env-file", type=str, default=None, help="Read settings from this .env file")
    sub = parser.add_subparsers(dest="command", required=True)

    def add_source_args(p: argparse.ArgumentParser) -> None:
        p.add_argument("--mode", choices=MODES, default=None, help="Which pages to read (default: DUALIS_MODE)")
        p.add_argument("--raw-dir", type=str, default=None, help="HTML cache directory (default: DUALIS_RAW_DIR)")

    def add_check_args(p: argparse.ArgumentParser) -> None:
        p.add_argument("--results-file", type=str, default=None, help="Stored results (default: DUALIS_RESULTS_FILE)")
        p.add_argument("--no-notify", action="store_true", help="Do not call the webhook")
        p.add_argument("--dry-run", action="store_true", help="Do not save the new results")

    def add_scrape_args(p: argparse.ArgumentParser) -> None:
        p.add_argument("--sleep", type=float, default=0.2, help="Sleep seconds between requests")

    p_scrape = sub.add_parser("scrape", help="Log in and cache result pages")
    add_source_args(p_scrape)
    add_scrape_args(p_scrape)

    p_check = sub.add_parser("check", help="Detect newly graded courses in the cached pages")
    add_source_args(p_check)
    add_check_args(p_check)

    p_run = sub.add_parser("run", help="scrape + check")
    add_source_args(p_run)
    add_scrape_args(p_run)
    add_check_args(p_run)

    p_show = sub.add_parser("show", help="Show stored results")
    p_show.add_argument("--results-file", type=str, default=None, help="Stored results (default: DUALIS_RESULTS_FILE)")

    return parser


def main(argv: Optional[List[str]] = None) -> None:
    """
    CLI entry point. Parses args, dispatches to command handlers,
    and exits via SystemExit with a return code.
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    commands = {
        "scrape": _cmd_scrape,
        "check": _cmd_check,
        "run": _cmd_run,
        "show": _cmd_show,
    }

    try:
        settings = _apply_overrides(load_settings(args.env_file, mode=getattr(args, "mode", None)), args)
        raise SystemExit(commands[args.command](args, settings))
    except DualisWatchError as exc:
        _error(f"Error: {exc}")
        raise SystemExit(1)
    except requests.RequestException as exc:
        _error(f"Network error: {exc}")
        raise SystemExit(1)

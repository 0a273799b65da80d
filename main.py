#!/usr/bin/env python3
"""
Idle Tab Closer - Main Entry Point

    python main.py run --config engine.json
    python main.py status --config engine.json
    python main.py history --config engine.json
"""

import argparse
import sys
import time
from typing import Dict, List, Optional

from rich import print as rprint
from rich.console import Console
from rich.table import Table

from error_handling import ConfigurationError, PersistenceError
from models.history_models import HistoryEntry
from models.tab_models import TabRecord
from storage.history_log import HistoryLog
from storage.tab_state_persistence import JsonFileTabStatePersistence
from tab_config import EngineConfig
from tab_management import build_engine


def load_config(args: argparse.Namespace) -> EngineConfig:
    config = EngineConfig.from_json_file(args.config) if args.config else EngineConfig.production()
    if getattr(args, "interval", None):
        config.sweep.interval_seconds = args.interval
    if getattr(args, "headless", False):
        config.browser.headless = True
    return config


def describe_state(record: TabRecord) -> str:
    if record.paused:
        return "paused"
    if record.countdown is None:
        return "protected"
    if record.last_active_time is None:
        return "active"
    if record.has_media:
        return "media"
    return "counting"


def format_remaining(seconds: Optional[int]) -> str:
    if seconds is None:
        return "∞"
    minutes, secs = divmod(seconds, 60)
    hours, minutes = divmod(minutes, 60)
    if hours:
        return f"{hours}h {minutes:02d}m"
    return f"{minutes}m {secs:02d}s"


def build_status_table(states: Dict[int, TabRecord], now: float) -> Table:
    table = Table(title=f"Tracked tabs ({len(states)})", show_header=True)
    table.add_column("Tab", style="cyan", justify="right")
    table.add_column("URL", style="white", overflow="fold")
    table.add_column("State", style="magenta")
    table.add_column("Remaining", style="yellow", justify="right")
    table.add_column("Rule", style="green")

    for tab_id, record in sorted(states.items()):
        rule = record.matched_rule
        table.add_row(
            str(tab_id),
            record.url,
            describe_state(record),
            format_remaining(record.remaining(now)),
            f"{rule.type}: {rule.pattern}" if rule else "-",
        )
    return table


def build_history_table(entries: List[HistoryEntry]) -> Table:
    table = Table(title=f"Closed tabs ({len(entries)})", show_header=True)
    table.add_column("Closed at", style="cyan")
    table.add_column("Domain", style="white")
    table.add_column("Title", style="white", overflow="fold")
    table.add_column("Reason", style="magenta")

    for entry in sorted(entries, key=lambda e: e.timestamp, reverse=True):
        table.add_row(
            time.strftime("%Y-%m-%d %H:%M", time.localtime(entry.timestamp)),
            entry.domain or "-",
            entry.title,
            entry.close_reason.value,
        )
    return table


def cmd_run(config: EngineConfig) -> int:
    engine = build_engine(config)
    rprint(f"[bold]Idle tab closer running[/bold] [dim](sweep every {config.sweep.interval_seconds:g}s, Ctrl+C to stop)")
    try:
        engine.run_forever()
    except KeyboardInterrupt:
        rprint("\n[dim]Stopping...")
    finally:
        engine.provider.close()
    return 0


def cmd_status(config: EngineConfig, console: Console) -> int:
    if not config.storage.state_path:
        rprint("[red]❌ No state_path configured; nothing to show.")
        return 1
    states = JsonFileTabStatePersistence(config.storage.state_path).load()
    console.print(build_status_table(states, time.time()))
    return 0


def cmd_history(config: EngineConfig, console: Console) -> int:
    if not config.storage.history_path:
        rprint("[red]❌ No history_path configured; nothing to show.")
        return 1
    console.print(build_history_table(HistoryLog(config.storage.history_path).entries()))
    return 0


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(description="Close browser tabs you stopped looking at.")
    ap.add_argument("--config", help="EngineConfig JSON file (default: production preset)")
    sub = ap.add_subparsers(dest="command", required=True)

    run = sub.add_parser("run", help="Launch the browser and run the engine until interrupted.")
    run.add_argument("--interval", type=float, help="Seconds between sweeps.")
    run.add_argument("--headless", action="store_true", help="Run the browser headless.")

    sub.add_parser("status", help="Show persisted tab states.")
    sub.add_parser("history", help="Show recently closed tabs.")
    return ap


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    console = Console()
    try:
        config = load_config(args)
        if args.command == "run":
            return cmd_run(config)
        if args.command == "status":
            return cmd_status(config, console)
        return cmd_history(config, console)
    except (ConfigurationError, PersistenceError) as e:
        rprint(f"[red]❌ {e.message}")
        return 2


if __name__ == "__main__":
    sys.exit(main())

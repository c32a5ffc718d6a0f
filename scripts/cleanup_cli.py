#!/usr/bin/env python3
"""
Playground sandbox cleanup CLI.

Usage:
  python scripts/cleanup_cli.py list                     # Show sandboxes and ages
  python scripts/cleanup_cli.py sweep                    # Remove expired sandboxes
  python scripts/cleanup_cli.py sweep --dry-run          # Show what would be removed
  python scripts/cleanup_cli.py volumes                  # Remove dangling volumes

Works against the container runtime directly, so it also cleans up after
an orchestrator process that is no longer running.
"""

import argparse
import asyncio
import sys
from datetime import datetime, timezone
from pathlib import Path

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

# Load .env file if it exists
from dotenv import load_dotenv
load_dotenv(Path(__file__).parent.parent / ".env")

from rich.console import Console
from rich.table import Table
from rich import box

from src.config import settings
from src.services.runtime import DockerCLIRuntime
from src.services.sandbox import OrphanReaper

console = Console()


def build_reaper() -> OrphanReaper:
    runtime = DockerCLIRuntime(
        binary=settings.runtime_binary,
        command_timeout=settings.runtime_command_timeout_seconds,
    )
    return OrphanReaper(
        runtime,
        container_prefix=settings.container_prefix,
        volume_prefix=settings.volume_prefix,
        max_age_seconds=settings.get_max_sandbox_age_seconds(),
        interval_seconds=settings.orphan_sweep_interval_minutes * 60.0,
    )


async def ensure_runtime(reaper: OrphanReaper) -> None:
    if not await reaper.runtime.ping():
        console.print(
            f"[red]Error:[/red] Container runtime '{settings.runtime_binary}' is not reachable"
        )
        sys.exit(1)


def format_age(seconds: float) -> str:
    minutes = int(seconds // 60)
    if minutes < 60:
        return f"{minutes}m"
    return f"{minutes // 60}h {minutes % 60}m"


async def cmd_list(args):
    reaper = build_reaper()
    await ensure_runtime(reaper)
    listings = await reaper.runtime.list_containers(settings.container_prefix)
    now = datetime.now(timezone.utc)

    table = Table(title="Playground Sandboxes", box=box.ROUNDED)
    table.add_column("Container", style="cyan")
    table.add_column("Created", style="dim")
    table.add_column("Age", justify="right")
    table.add_column("Expired", justify="center")

    for listing in sorted(listings, key=lambda item: item.created_at):
        age = (now - listing.created_at).total_seconds()
        expired = age > reaper.max_age_seconds
        table.add_row(
            listing.name,
            listing.created_at.strftime("%Y-%m-%d %H:%M:%S %Z"),
            format_age(age),
            "[red]yes[/red]" if expired else "[green]no[/green]",
        )

    if not listings:
        console.print("[dim]No playground sandboxes found.[/dim]")
        return
    console.print(table)
    console.print(f"Max age: {format_age(reaper.max_age_seconds)}")


async def cmd_sweep(args):
    reaper = build_reaper()
    await ensure_runtime(reaper)
    max_age = args.max_age_minutes * 60.0 if args.max_age_minutes is not None else None
    report = await reaper.sweep(max_age_seconds=max_age, dry_run=args.dry_run)

    verb = "Would remove" if args.dry_run else "Removed"
    for name in report.removed:
        console.print(f"  [red]-[/red] {verb} {name}")
    for name in report.failed:
        console.print(f"  [yellow]![/yellow] Failed to remove {name}")

    console.print(
        f"\n{verb} [bold]{len(report.removed)}[/bold] sandbox(es), "
        f"kept {len(report.kept)}, failed {len(report.failed)}"
    )
    if report.failed:
        sys.exit(1)


async def cmd_volumes(args):
    reaper = build_reaper()
    await ensure_runtime(reaper)
    removed = await reaper.sweep_dangling_volumes(dry_run=args.dry_run)

    verb = "Would remove" if args.dry_run else "Removed"
    for name in removed:
        console.print(f"  [red]-[/red] {verb} {name}")
    console.print(f"\n{verb} [bold]{len(removed)}[/bold] dangling volume(s)")


def main():
    parser = argparse.ArgumentParser(
        description="Playground sandbox cleanup CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s list                          # Show sandboxes and ages
  %(prog)s sweep --dry-run               # Preview an orphan sweep
  %(prog)s sweep --max-age-minutes 0     # Remove every playground sandbox
  %(prog)s volumes                       # Remove dangling volumes
"""
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    # list
    subparsers.add_parser("list", help="List playground sandboxes")

    # sweep
    sweep_p = subparsers.add_parser("sweep", help="Remove expired sandboxes")
    sweep_p.add_argument("--dry-run", action="store_true", help="Only report")
    sweep_p.add_argument(
        "--max-age-minutes",
        type=int,
        help="Override the maximum age (default: idle timeout + extension)",
    )

    # volumes
    volumes_p = subparsers.add_parser("volumes", help="Remove dangling volumes")
    volumes_p.add_argument("--dry-run", action="store_true", help="Only report")

    args = parser.parse_args()

    handlers = {
        "list": cmd_list,
        "sweep": cmd_sweep,
        "volumes": cmd_volumes,
    }

    try:
        asyncio.run(handlers[args.command](args))
    except KeyboardInterrupt:
        console.print("\n[yellow]Cancelled.[/yellow]")
        sys.exit(0)


if __name__ == "__main__":
    main()

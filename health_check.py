#!/usr/bin/env python3
"""
Health check for the scheduled scraping jobs, based on the job log.

Usage:
    python health_check.py [command]

Commands:
    status      - Last run of every configured job (default)
    runs        - The most recent runs across all jobs
    overdue     - Jobs that missed more than one interval
"""

import asyncio
import sys
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from core.config import Settings, load_settings
from core.infra.db import Database


class Colors:
    """ANSI color codes for terminal output."""
    GREEN = "\033[92m"
    YELLOW = "\033[93m"
    RED = "\033[91m"
    CYAN = "\033[96m"
    WHITE = "\033[97m"
    BOLD = "\033[1m"
    END = "\033[0m"


def format_timestamp(dt: Optional[datetime]) -> str:
    """Format datetime for display."""
    if not dt:
        return "N/A"
    return dt.strftime("%Y-%m-%d %H:%M:%S UTC")


def format_duration(seconds: float) -> str:
    """Format duration in seconds to human readable."""
    if seconds < 60:
        return f"{seconds:.0f}s"
    elif seconds < 3600:
        return f"{seconds/60:.1f}m"
    elif seconds < 86400:
        return f"{seconds/3600:.1f}h"
    else:
        return f"{seconds/86400:.1f}d"


def parse_run_dt(value: str) -> datetime:
    """SQLite CURRENT_TIMESTAMP values are naive UTC."""
    return datetime.fromisoformat(value).replace(tzinfo=timezone.utc)


def job_health(
    settings: Settings,
    last_runs: Dict[str, datetime],
    now: Optional[datetime] = None,
) -> List[Dict[str, Any]]:
    """Status per configured job: ``ok``, ``overdue`` (over two intervals) or ``never``."""
    now = now or datetime.now(timezone.utc)
    report = []
    for job in settings.jobs:
        name = job.kind.value
        interval = job.interval.to_timedelta()
        last_run = last_runs.get(name)
        if last_run is None:
            status, age = "never", None
        else:
            age = now - last_run
            status = "overdue" if age > 2 * interval else "ok"
        report.append({
            "job": name,
            "interval": interval,
            "last_run": last_run,
            "age": age,
            "status": status,
        })
    return report


async def load_last_runs(db: Database) -> Dict[str, datetime]:
    rows = await db.fetch_all(
        "SELECT jobname, MAX(run_dt) AS last_run FROM joblogs GROUP BY jobname"
    )
    return {row["jobname"]: parse_run_dt(row["last_run"]) for row in rows}


def _print_report(report: List[Dict[str, Any]], only_unhealthy: bool = False) -> None:
    indicators = {
        "ok": f"{Colors.GREEN}●{Colors.END}",
        "overdue": f"{Colors.RED}●{Colors.END}",
        "never": f"{Colors.YELLOW}○{Colors.END}",
    }
    shown = [entry for entry in report if not only_unhealthy or entry["status"] != "ok"]
    if not shown:
        print(f"{Colors.GREEN}No overdue jobs{Colors.END}")
        return

    for entry in shown:
        print(f"{indicators[entry['status']]} {Colors.BOLD}{entry['job']}{Colors.END}")
        print(f"   Interval: {Colors.CYAN}{entry['interval']}{Colors.END}")
        print(f"   Last Run: {Colors.WHITE}{format_timestamp(entry['last_run'])}{Colors.END}")
        if entry["age"] is not None:
            print(f"   Age: {format_duration(entry['age'].total_seconds())}")
        print()


async def show_status(settings: Settings, db: Database, only_unhealthy: bool = False) -> int:
    """Show the last run of every configured job."""
    report = job_health(settings, await load_last_runs(db))

    title = "🚨 Overdue Jobs" if only_unhealthy else "📊 Job Health Status"
    print(f"{Colors.BOLD}{title}{Colors.END}")
    print("=" * 50)
    _print_report(report, only_unhealthy=only_unhealthy)

    unhealthy = [entry for entry in report if entry["status"] != "ok"]
    if unhealthy:
        print(f"{Colors.YELLOW}⚠️  Warning: {len(unhealthy)} job(s) not healthy{Colors.END}")
        return 1
    print(f"{Colors.GREEN}✅ System Healthy{Colors.END}")
    return 0


async def show_runs(settings: Settings, db: Database, limit: int = 20) -> int:
    """Show the most recent job runs."""
    rows = await db.fetch_all(
        "SELECT jobname, run_dt FROM joblogs ORDER BY run_dt DESC LIMIT ?", (limit,)
    )
    print(f"{Colors.BOLD}📋 Recent Runs{Colors.END}")
    print("=" * 50)
    if not rows:
        print(f"{Colors.YELLOW}No runs recorded{Colors.END}")
    for row in rows:
        print(f"  {format_timestamp(parse_run_dt(row['run_dt']))}  {row['jobname']}")
    return 0


async def main() -> int:
    """Main entry point."""
    command = sys.argv[1] if len(sys.argv) > 1 else "status"

    commands = {
        "status": show_status,
        "runs": show_runs,
        "overdue": lambda settings, db: show_status(settings, db, only_unhealthy=True),
    }

    if command not in commands:
        print(f"Unknown command: {command}")
        print(f"Available commands: {', '.join(commands.keys())}")
        print()
        print(__doc__)
        return 1

    settings = load_settings()
    db = Database(settings.database_url)
    try:
        await db.connect()
        return await commands[command](settings, db)
    finally:
        await db.close()


def run() -> None:
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    run()

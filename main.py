"""
Main entry point: polls the scheduled scraping jobs on a fixed cadence.
"""

import argparse
import asyncio
import logging
import signal
import sys
from typing import List, Optional

from pydantic import ValidationError

from core.config import Settings, load_settings
from core.infra.scheduler import JobsFailedError, Scheduler
from core.plugin_loader import list_available, refresh_registry
from plugins.pathe.sinks import PatheDatabaseSink


logger = logging.getLogger(__name__)


def build_scheduler(settings: Settings, sink: PatheDatabaseSink) -> Scheduler:
    """Register every configured job on a fresh scheduler."""
    scheduler = Scheduler(sink, run_log=sink)
    for job in settings.jobs:
        scheduler.add(
            job.kind,
            job.interval.to_timedelta(),
            timeout=job.timeout.to_timedelta() if job.timeout else None,
            **job.options,
        )
    return scheduler


async def run_forever(settings: Settings, once: bool = False) -> int:
    """Poll until a shutdown signal arrives (or once, with ``once``)."""
    refresh_registry()
    for kind, cls in list_available().items():
        logger.info(f"  - {kind.value}: {cls.__name__}")

    stop_event = asyncio.Event()

    def signal_handler():
        logger.info("Received shutdown signal")
        stop_event.set()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGTERM, signal.SIGINT):
        try:
            loop.add_signal_handler(sig, signal_handler)
        except NotImplementedError:  # pragma: no cover - Windows
            pass

    async with PatheDatabaseSink(settings.database_url) as sink:
        scheduler = build_scheduler(settings, sink)
        logger.info(f"Polling {len(scheduler.jobs)} job(s) every {settings.poll_interval}s")

        while not stop_event.is_set():
            try:
                await scheduler.poll()
            except JobsFailedError as e:
                if settings.abort_on_error or once:
                    logger.error(f"Aborting: {e}")
                    return 1
                logger.warning(f"{e}; will retry when due")

            if once:
                break

            try:
                await asyncio.wait_for(stop_event.wait(), timeout=settings.poll_interval)
            except asyncio.TimeoutError:
                pass

    logger.info("Shutdown complete")
    return 0


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Scheduled cinema showtime and rating scraper")
    parser.add_argument("--config", help="Path to the jobs YAML file (default: $JOBS_CONFIG or jobs.yml)")
    parser.add_argument("--once", action="store_true", help="Poll once and exit")
    parser.add_argument("--log-level", help="Override the configured log level")
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    settings = load_settings(args.config)
    if args.log_level:
        try:
            settings = settings.with_overrides(log_level=args.log_level)
        except ValidationError as e:
            print(f"Invalid --log-level {args.log_level!r}: {e}", file=sys.stderr)
            return 2

    # Setup logging
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s | %(name)s | %(levelname)s | %(message)s"
    )
    logger.info("Starting cinema scraper...")

    return asyncio.run(run_forever(settings, once=args.once))


if __name__ == "__main__":
    sys.exit(main())

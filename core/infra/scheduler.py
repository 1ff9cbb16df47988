"""
Scheduler infrastructure for running periodic jobs.

The scheduler is a single pass over the registered jobs; the caller drives it
by invoking ``poll()`` on a fixed cadence.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, Callable, Dict, List, Optional, Tuple

from core import plugin_loader
from core.interfaces import JobRunner, Sink
from core.models import JobKind


logger = logging.getLogger(__name__)


class JobsFailedError(Exception):
    """One or more jobs failed during a poll."""

    def __init__(self, failures: List[Tuple[JobKind, BaseException]]) -> None:
        names = ", ".join(f"{kind.value}: {exc!r}" for kind, exc in failures)
        super().__init__(f"{len(failures)} job(s) failed: {names}")
        self.failures = failures


@dataclass
class Job:
    kind: JobKind
    run_interval: timedelta
    runner: JobRunner
    timeout: Optional[timedelta] = None
    last_ran: Optional[float] = field(default=None)

    def should_run(self, now: float) -> bool:
        if self.last_ran is None:
            return True
        return (now - self.last_ran) >= self.run_interval.total_seconds()

    async def run(self) -> None:
        if self.timeout is None:
            await self.runner.run()
        else:
            await asyncio.wait_for(self.runner.run(), self.timeout.total_seconds())


class Scheduler:
    """Runs registered jobs sequentially whenever their interval has elapsed."""

    def __init__(
        self,
        sink: Optional[Sink] = None,
        *,
        clock: Callable[[], float] = time.monotonic,
        run_log: Optional[Sink] = None,
    ) -> None:
        self._sink = sink
        self._clock = clock
        self._run_log = run_log
        self._jobs: List[Job] = []
        self._lock = asyncio.Lock()

    @property
    def jobs(self) -> List[Job]:
        return list(self._jobs)

    def add(
        self,
        kind: JobKind,
        interval: timedelta,
        *,
        runner: Optional[JobRunner] = None,
        timeout: Optional[timedelta] = None,
        **options: Any,
    ) -> "Scheduler":
        """Register a job and construct its runner."""
        if interval <= timedelta(0):
            raise ValueError(f"Interval for {kind.value} must be positive, got {interval}")

        if runner is None:
            runner_cls = plugin_loader.get(kind)
            runner = runner_cls(sink=self._sink, **options)

        self._jobs.append(Job(kind=kind, run_interval=interval, runner=runner, timeout=timeout))
        logger.info(f"Added job: {kind.value} every {interval} ({runner.name})")
        return self

    async def poll(self) -> None:
        """Run every due job once, in registration order.

        Failures do not stop later jobs; they are raised together as
        ``JobsFailedError`` once the pass is complete.
        """
        async with self._lock:
            failures: List[Tuple[JobKind, BaseException]] = []

            for job in self._jobs:
                if not job.should_run(self._clock()):
                    continue

                logger.info(f"Running job: {job.kind.value}")
                started = self._clock()
                try:
                    await job.run()
                except asyncio.CancelledError:
                    raise
                except Exception as e:
                    logger.error(f"Job {job.kind.value} failed: {e}", exc_info=True)
                    failures.append((job.kind, e))
                    continue

                job.last_ran = self._clock()
                logger.info(
                    f"Job {job.kind.value} completed in {job.last_ran - started:.1f}s"
                )
                if self._run_log is not None:
                    try:
                        await self._run_log.log_run(job.kind.value)
                    except Exception as e:
                        logger.error(f"Could not record run of {job.kind.value}: {e}")
                        failures.append((job.kind, e))

            if failures:
                raise JobsFailedError(failures)

    def list_jobs(self) -> Dict[str, Any]:
        """List all registered jobs."""
        now = self._clock()
        jobs = {}
        for job in self._jobs:
            due_in = 0.0
            if job.last_ran is not None:
                due_in = max(0.0, job.run_interval.total_seconds() - (now - job.last_ran))
            jobs[job.kind.value] = {
                "runner": job.runner.name,
                "interval": str(job.run_interval),
                "due_in_seconds": due_in,
            }
        return jobs

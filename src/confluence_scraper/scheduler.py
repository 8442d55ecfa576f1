"""APScheduler wiring for periodic gathers."""

from __future__ import annotations

import asyncio
import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from . import config as cfg
from .scraper_engine import GatherEngine
from .utils import parse_frequency

logger = logging.getLogger(__name__)


class GatherScheduler:
    """Schedules periodic gather jobs for all targets."""

    def __init__(self, app_config: cfg.AppConfig, engine: GatherEngine) -> None:
        """Create scheduler with application config and engine."""
        self.app_config = app_config
        self.engine = engine
        self.scheduler = AsyncIOScheduler()

    def start(self) -> None:
        """Start the scheduler and register jobs."""
        for target in self.app_config.targets:
            frequency = self.app_config.frequency_for(target)
            seconds = int(parse_frequency(frequency).total_seconds())
            # APScheduler wants an int (and > 0) for misfire_grace_time.
            if seconds <= 0:
                raise ValueError(
                    f"Invalid frequency '{frequency}' for target '{target.name}'"
                )

            # A target's client keeps one session; never run two cycles at once.
            self.scheduler.add_job(
                self._run_target,
                trigger=IntervalTrigger(seconds=seconds),
                args=[target],
                id=target.name,
                coalesce=True,
                max_instances=1,
                misfire_grace_time=seconds,
            )
            logger.info(
                "Scheduled target '%s' with interval=%ss (frequency=%s)",
                target.name,
                seconds,
                frequency,
            )

        self.scheduler.start()
        logger.info(
            "Scheduler started with %s targets", len(self.app_config.targets)
        )

    async def _run_target(self, target: cfg.TargetConfig) -> None:
        """Job wrapper to run a single target gather."""
        await self.engine.gather_target(target)

    async def shutdown(self, wait: bool = True) -> None:
        """Shut down scheduler."""
        self.scheduler.shutdown(wait=wait)
        logger.info("Scheduler shut down (wait=%s)", wait)

    async def run_all_once(self) -> None:
        """Trigger a one-time gather for all targets."""
        await asyncio.gather(
            *(self.engine.gather_target(t) for t in self.app_config.targets)
        )

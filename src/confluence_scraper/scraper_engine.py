"""Core gather engine: per-target inputs, gather cycles, and telemetry hand-off."""

from __future__ import annotations

import asyncio
import logging
from typing import Dict

from . import config as cfg
from .accumulator import BatchAccumulator
from .confluence import ConfluenceInput
from .telemetry import Telemetry
from .utils import utc_now

logger = logging.getLogger(__name__)


class GatherEngine:
    """Coordinates gather cycles and telemetry emission for all targets."""

    def __init__(self, app_config: cfg.AppConfig, telemetry: Telemetry):
        """Initialize engine components."""
        self.config = app_config
        self.telemetry = telemetry
        self.inputs: Dict[str, ConfluenceInput] = {}

    def _input(self, target: cfg.TargetConfig) -> ConfluenceInput:
        """Get or create the long-lived input for a target."""
        if target.name not in self.inputs:
            self.inputs[target.name] = ConfluenceInput(target)
        return self.inputs[target.name]

    async def gather_target(self, target: cfg.TargetConfig) -> BatchAccumulator:
        """Run one gather cycle for a target and emit what it produced."""
        start_time = utc_now()
        acc = BatchAccumulator()
        status = "success"
        try:
            await self._input(target).gather(acc)
        except Exception as exc:
            status = "error"
            logger.error("Gather for target %s aborted: %s", target.name, exc)
            acc.report_error(exc)
        if acc.errors and status == "success":
            status = "partial"
        await self._emit_telemetry_async(target, acc)
        duration = (utc_now() - start_time).total_seconds()
        logger.info(
            "Gather complete for %s: records=%s errors=%s status=%s duration=%.3fs",
            target.name,
            len(acc.metrics),
            len(acc.errors),
            status,
            duration,
        )
        return acc

    async def _emit_telemetry_async(
        self, target: cfg.TargetConfig, acc: BatchAccumulator
    ) -> None:
        """Emit metrics/logs in a background task to avoid blocking gathers."""
        loop = asyncio.get_running_loop()
        metrics = list(acc.metrics)
        errors = list(acc.errors)

        async def emit():
            try:
                self.telemetry.emit_metrics(target.name, metrics)
            except Exception as exc:
                logger.warning(
                    "Metric emission failed for target %s: %s", target.name, exc
                )
            try:
                self.telemetry.emit_logs(target.name, metrics)
                self.telemetry.emit_errors(target.name, errors)
            except Exception as exc:
                logger.warning(
                    "Log emission failed for target %s: %s", target.name, exc
                )

        self.telemetry.track(loop.create_task(emit()))

    async def close(self) -> None:
        """Close every input's transport."""
        for name, gather_input in list(self.inputs.items()):
            try:
                await gather_input.close()
            except Exception as exc:
                logger.warning("Closing input %s failed: %s", name, exc)
        self.inputs.clear()

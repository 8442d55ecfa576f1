"""Telemetry initialization and emitters for gathered records."""

from __future__ import annotations

import asyncio
import logging
import time
from collections import defaultdict
from typing import Any, Dict, List, Sequence, Tuple

from opentelemetry import metrics
from opentelemetry._logs import set_logger_provider
from opentelemetry._logs.severity import SeverityNumber
from opentelemetry.exporter.otlp.proto.grpc.metric_exporter import (
    OTLPMetricExporter as GrpcMetricExporter,
)
from opentelemetry.exporter.otlp.proto.grpc._log_exporter import (
    OTLPLogExporter as GrpcLogExporter,
)
from opentelemetry.exporter.otlp.proto.http.metric_exporter import (
    OTLPMetricExporter as HttpMetricExporter,
)
from opentelemetry.exporter.otlp.proto.http._log_exporter import (
    OTLPLogExporter as HttpLogExporter,
)
from opentelemetry.metrics import CallbackOptions, Observation
from opentelemetry.sdk._logs import LoggerProvider
from opentelemetry.sdk._logs.export import BatchLogRecordProcessor
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import PeriodicExportingMetricReader
from opentelemetry.sdk.resources import Resource
from opentelemetry.semconv.resource import ResourceAttributes

from . import config as cfg
from .accumulator import Metric

logger = logging.getLogger(__name__)

GaugeValues = List[Tuple[float, Dict[str, Any]]]


class TelemetrySink:
    """Logs would-be telemetry payloads when dryRun is enabled."""

    def emit_metrics(self, target: str, summary: Dict[str, Any]) -> None:
        """Log metric summary."""
        logger.info("[dry-run] metrics for %s: %s", target, summary)

    def emit_errors(self, target: str, errors: Sequence[BaseException]) -> None:
        """Log reported errors."""
        for err in errors:
            logger.info("[dry-run] error for %s: %s", target, err)


class GaugeAggregator:
    """Latest gauge values per target, observed by an OTEL callback."""

    def __init__(self, meter, name: str, unit: str = "1"):
        """Create an observable gauge aggregator.

        Args:
            meter: OTEL meter instance.
            name: Gauge name.
            unit: Gauge unit.
        """
        self.values: Dict[str, GaugeValues] = {}
        self.gauge = meter.create_observable_gauge(
            name=name,
            callbacks=[self._callback],
            unit=unit,
        )

    def set_values(self, target: str, values: GaugeValues) -> None:
        """Replace the cached values of one target."""
        self.values[target] = values

    def clear(self, target: str) -> None:
        """Stop reporting values for one target."""
        self.values.pop(target, None)

    def _callback(self, options: CallbackOptions):
        """APIs called by OTEL when collecting gauge data."""
        return [
            Observation(value=v, attributes=attrs)
            for target_values in self.values.values()
            for v, attrs in target_values
        ]


def _is_numeric(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def metric_attributes(target: str, metric: Metric) -> Dict[str, Any]:
    """Tags plus non-numeric fields, scoped by target name."""
    attrs: Dict[str, Any] = {"target": target}
    attrs.update(metric.tags)
    for key, value in metric.fields.items():
        if not _is_numeric(value) and value is not None:
            attrs[key] = str(value)
    return attrs


class Telemetry:
    """Telemetry manager handling OTLP exporters and emitters."""

    def __init__(self, config: cfg.ScraperSettings):
        """Initialize telemetry pipeline.

        Args:
            config: Scraper settings containing OTEL configuration.
        """
        self.config = config
        self.dry_run = config.dryRun
        self.resource = Resource(
            attributes={
                ResourceAttributes.SERVICE_NAME: config.serviceName,
            }
        )
        self.sink = TelemetrySink()
        self.meter_provider = None
        self.logger_provider = None
        self.meter = None
        self.loggers: Dict[str, Any] = {}
        self.gauges: Dict[str, GaugeAggregator] = {}
        self._emit_tasks: set[asyncio.Task] = set()
        if not self.dry_run:
            self._setup_otel()
        else:
            logger.info("Telemetry running in dry-run mode. Exporters not initialized.")

    def _setup_otel(self) -> None:
        """Initialize OTLP exporters and providers."""
        metric_exporter = (
            GrpcMetricExporter(
                endpoint=self.config.otelCollectorEndpoint,
                insecure=not self.config.enforceTls,
            )
            if self.config.otelTransport == "grpc"
            else HttpMetricExporter(
                endpoint=f"{self.config.otelCollectorEndpoint}/v1/metrics"
            )
        )
        reader = PeriodicExportingMetricReader(metric_exporter)
        self.meter_provider = MeterProvider(
            resource=self.resource, metric_readers=[reader]
        )
        metrics.set_meter_provider(self.meter_provider)
        self.meter = metrics.get_meter(__name__, version="0.1.0")

        log_exporter = (
            GrpcLogExporter(
                endpoint=self.config.otelCollectorEndpoint,
                insecure=not self.config.enforceTls,
            )
            if self.config.otelTransport == "grpc"
            else HttpLogExporter(
                endpoint=f"{self.config.otelCollectorEndpoint}/v1/logs"
            )
        )
        self.logger_provider = LoggerProvider(resource=self.resource)
        self.logger_provider.add_log_record_processor(
            BatchLogRecordProcessor(log_exporter)
        )
        set_logger_provider(self.logger_provider)

    def _get_logger(self, target: str):
        """Get or create OTEL logger for a target."""
        if target not in self.loggers:
            self.loggers[target] = self.logger_provider.get_logger(target)
        return self.loggers[target]

    def _gauge(self, name: str) -> GaugeAggregator:
        """Get or create an observable gauge aggregator."""
        if name not in self.gauges:
            self.gauges[name] = GaugeAggregator(self.meter, name=name)
        return self.gauges[name]

    def emit_metrics(self, target: str, batch: List[Metric]) -> None:
        """Publish numeric fields of a batch as gauges named ``<measurement>_<field>``."""
        if self.dry_run:
            counts: Dict[str, int] = defaultdict(int)
            for metric in batch:
                counts[metric.measurement] += 1
            self.sink.emit_metrics(target, {"records": len(batch), **counts})
            return
        logger.debug("Emitting metrics for target %s (%s records)", target, len(batch))
        try:
            # Spaces missing from this batch must not keep their old values.
            for gauge in self.gauges.values():
                gauge.clear(target)
            values: Dict[str, GaugeValues] = defaultdict(list)
            for metric in batch:
                attrs = metric_attributes(target, metric)
                for key, value in metric.fields.items():
                    if _is_numeric(value):
                        values[f"{metric.measurement}_{key}"].append(
                            (float(value), attrs)
                        )
            for name, gauge_values in values.items():
                self._gauge(name).set_values(target, gauge_values)
            self._force_flush_metrics()
        except Exception as exc:
            logger.warning("Metric emission failed for target %s: %s", target, exc)

    def emit_logs(self, target: str, batch: List[Metric]) -> None:
        """Emit one INFO log record per gathered record."""
        if self.dry_run:
            return
        try:
            otel_logger = self._get_logger(target)
            for metric in batch:
                timestamp = int(metric.timestamp.timestamp() * 1e9)
                otel_logger.emit(
                    timestamp=timestamp,
                    observed_timestamp=int(time.time() * 1e9),
                    severity_number=SeverityNumber.INFO,
                    severity_text="INFO",
                    body={"measurement": metric.measurement, "fields": metric.fields},
                    attributes=metric_attributes(target, metric),
                )
            self._force_flush_logs()
        except Exception as exc:
            logger.warning("Log emission failed for target %s: %s", target, exc)

    def emit_errors(self, target: str, errors: Sequence[BaseException]) -> None:
        """Emit one ERROR log record per reported error."""
        if not errors:
            return
        if self.dry_run:
            self.sink.emit_errors(target, errors)
            return
        try:
            otel_logger = self._get_logger(target)
            timestamp = int(time.time() * 1e9)
            for err in errors:
                otel_logger.emit(
                    timestamp=timestamp,
                    observed_timestamp=timestamp,
                    severity_number=SeverityNumber.ERROR,
                    severity_text="ERROR",
                    body=str(err),
                    attributes={"target": target, "error_type": type(err).__name__},
                )
            self._force_flush_logs()
        except Exception as exc:
            logger.warning("Error emission failed for target %s: %s", target, exc)

    def track(self, task: asyncio.Task) -> None:
        """Keep a reference to a background emit task until it finishes."""
        self._emit_tasks.add(task)
        task.add_done_callback(self._emit_tasks.discard)

    async def shutdown(self) -> None:
        """Flush and shutdown OTEL providers."""
        for task in list(self._emit_tasks):
            if not task.done():
                task.cancel()
        if self._emit_tasks:
            await asyncio.gather(*self._emit_tasks, return_exceptions=True)
        if self.logger_provider:
            self.logger_provider.shutdown()
        if self.meter_provider:
            self.meter_provider.shutdown()

    def _force_flush_metrics(self) -> None:
        if self.meter_provider and hasattr(self.meter_provider, "force_flush"):
            try:
                self.meter_provider.force_flush()
            except Exception as exc:
                logger.debug("Metric force_flush failed: %s", exc)

    def _force_flush_logs(self) -> None:
        if self.logger_provider and hasattr(self.logger_provider, "force_flush"):
            try:
                self.logger_provider.force_flush()
            except Exception as exc:
                logger.debug("Log force_flush failed: %s", exc)

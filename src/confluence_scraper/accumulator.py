"""Sink interface receiving gathered records and non-fatal errors."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Protocol

from .utils import utc_now


class Accumulator(Protocol):
    """Destination for one gather cycle's output."""

    def report_fields(
        self, measurement: str, fields: Dict[str, Any], tags: Dict[str, str]
    ) -> None:
        """Record one set of fields under a measurement."""

    def report_error(self, err: BaseException) -> None:
        """Record a non-fatal error."""


@dataclass
class Metric:
    """One reported record."""

    measurement: str
    fields: Dict[str, Any]
    tags: Dict[str, str]
    timestamp: datetime = field(default_factory=utc_now)


class BatchAccumulator:
    """Collects a cycle's records and errors in memory for later emission."""

    def __init__(self) -> None:
        self.metrics: List[Metric] = []
        self.errors: List[BaseException] = []

    def report_fields(
        self, measurement: str, fields: Dict[str, Any], tags: Dict[str, str]
    ) -> None:
        self.metrics.append(Metric(measurement, dict(fields), dict(tags)))

    def report_error(self, err: BaseException) -> None:
        self.errors.append(err)

    def __len__(self) -> int:
        return len(self.metrics)

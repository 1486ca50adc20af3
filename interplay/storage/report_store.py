"""Report run persistence interface and the in-memory implementation."""

from __future__ import annotations

import asyncio
import copy
import logging
from abc import ABC, abstractmethod
from typing import Optional

from interplay.models.report import ReportMetrics, ReportRun

logger = logging.getLogger(__name__)


class ReportStore(ABC):
    """Abstract store for report runs and their metrics."""

    @abstractmethod
    async def create(self, run: ReportRun) -> None:
        ...

    @abstractmethod
    async def update(self, run: ReportRun) -> None:
        """Replace the stored copy of an existing run."""
        ...

    @abstractmethod
    async def get(self, report_id: str) -> Optional[ReportRun]:
        ...

    @abstractmethod
    async def latest(self, client_id: str) -> Optional[ReportRun]:
        """Most recently created run for a client, in any status."""
        ...

    @abstractmethod
    async def count(self, client_id: str) -> int:
        ...

    @abstractmethod
    async def save_metrics(self, metrics: ReportMetrics) -> None:
        ...


class InMemoryReportStore(ReportStore):
    """Dict-backed store. Runs are copied in and out so callers never share state."""

    def __init__(self) -> None:
        self._runs: dict[str, ReportRun] = {}
        self._metrics: dict[str, ReportMetrics] = {}
        self._lock = asyncio.Lock()

    async def create(self, run: ReportRun) -> None:
        async with self._lock:
            if run.id in self._runs:
                raise ValueError(f"Report {run.id} already exists")
            self._runs[run.id] = copy.deepcopy(run)

    async def update(self, run: ReportRun) -> None:
        async with self._lock:
            if run.id not in self._runs:
                raise KeyError(f"Report {run.id} not found")
            self._runs[run.id] = copy.deepcopy(run)

    async def get(self, report_id: str) -> Optional[ReportRun]:
        run = self._runs.get(report_id)
        return copy.deepcopy(run) if run else None

    async def latest(self, client_id: str) -> Optional[ReportRun]:
        found: Optional[ReportRun] = None
        for run in self._runs.values():
            if run.client_id != client_id:
                continue
            if found is None or run.created_at >= found.created_at:
                found = run
        return copy.deepcopy(found) if found else None

    async def count(self, client_id: str) -> int:
        return sum(1 for r in self._runs.values() if r.client_id == client_id)

    async def save_metrics(self, metrics: ReportMetrics) -> None:
        self._metrics[metrics.report_id] = copy.deepcopy(metrics)
        logger.info(f"Saved metrics for report {metrics.report_id}")

    def get_metrics(self, report_id: str) -> Optional[ReportMetrics]:
        return self._metrics.get(report_id)

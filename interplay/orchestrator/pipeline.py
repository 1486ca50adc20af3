"""ReportOrchestrator: runs the interplay report pipeline end to end.

Unifier -> Scout -> Researcher -> (SEM || SEO) -> Director, storing each
stage's output on the run and publishing progress to the stream manager.
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from dataclasses import asdict, is_dataclass
from typing import Any, Awaitable, Optional, TypeVar, Union
from uuid import uuid4

from pydantic import BaseModel

from interplay.config.settings import Settings
from interplay.models.dataset import DateRange
from interplay.models.enums import ReportStatus, ReportTrigger
from interplay.models.report import ReportRun
from interplay.prompts.serialization import PromptContext
from interplay.providers.base import DataSourceBase, PageFetcherBase, TextGeneratorBase
from interplay.skills.loader import load_skill
from interplay.storage.report_store import InMemoryReportStore, ReportStore
from interplay.streaming.events import ReportEventType
from interplay.streaming.manager import StreamManager

from .director import run_director
from .errors import DataUnavailableError
from .metrics import MetricsBuilder, save_report_metrics
from .output_analysis import analyze_output, check_alerts
from .researcher import run_researcher
from .scout import run_scout
from .specialists import run_sem_agent, run_seo_agent
from .unifier import unify_client_data

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _elapsed_ms(start: float) -> float:
    return (time.perf_counter() - start) * 1000


async def _timed(awaitable: Awaitable[T]) -> tuple[T, float]:
    start = time.perf_counter()
    result = await awaitable
    return result, _elapsed_ms(start)


def stage_json(payload: Any) -> str:
    """Serialize a stage output (pydantic model or dataclass) for storage."""
    if isinstance(payload, BaseModel):
        data = payload.model_dump(mode="json", by_alias=True, exclude_none=True)
    elif is_dataclass(payload):
        data = asdict(payload)
    else:
        data = payload
    return json.dumps(data, default=str)


def _iso(value) -> Optional[str]:
    return value.isoformat() if value else None


def report_summary(run: ReportRun) -> dict[str, Any]:
    director = json.loads(run.stage_outputs["director"]) if "director" in run.stage_outputs else {}
    return {
        "report_id": run.id,
        "client_id": run.client_id,
        "status": run.status.value,
        "trigger": run.trigger.value,
        "business_type": run.business_type.value if run.business_type else None,
        "skill_version": run.skill_version,
        "date_range": asdict(run.date_range),
        "executive_summary": director.get("executiveSummary"),
        "recommendations": director.get("unifiedRecommendations", []),
        "violations_count": len(run.violations),
        "alerts": [
            {"severity": a.severity.value, "code": a.code, "message": a.message}
            for a in run.alerts
        ],
        "error_message": run.error_message,
        "created_at": _iso(run.created_at),
        "started_at": _iso(run.started_at),
        "completed_at": _iso(run.completed_at),
    }


class ReportOrchestrator:
    """Creates report runs and executes the pipeline for them."""

    def __init__(
        self,
        source: DataSourceBase,
        fetcher: PageFetcherBase,
        generator: TextGeneratorBase,
        store: Optional[ReportStore] = None,
        stream_manager: Optional[StreamManager] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self._source = source
        self._fetcher = fetcher
        self._generator = generator
        self._store = store or InMemoryReportStore()
        self._stream_manager = stream_manager
        self._settings = settings or Settings()

    @property
    def store(self) -> ReportStore:
        return self._store

    async def generate_report(
        self,
        client_id: str,
        days: Optional[int] = None,
        trigger: Union[ReportTrigger, str] = ReportTrigger.MANUAL,
    ) -> tuple[str, dict[str, Any]]:
        """Create a pending run and return (report_id, metadata snapshot). Does not run it."""
        days = days if days is not None else self._settings.default_report_days
        if days < 1:
            raise ValueError(f"days must be at least 1, got {days}")
        trigger = ReportTrigger(trigger)

        run = ReportRun(
            id=str(uuid4()),
            client_id=client_id,
            trigger=trigger,
            date_range=DateRange.last_days(days),
        )
        await self._store.create(run)
        logger.info(
            f"Created report {run.id} for client {client_id} "
            f"({trigger.value}, {run.date_range.start}..{run.date_range.end})"
        )

        metadata = {
            "client_id": client_id,
            "trigger": trigger.value,
            "date_range": asdict(run.date_range),
            "created_at": run.created_at.isoformat(),
        }
        await self._emit(run.id, ReportEventType.REPORT_CREATED, {"status": run.status.value, **metadata})
        return run.id, metadata

    async def run_report(self, report_id: str) -> ReportRun:
        """Execute the pipeline for a pending run.

        Failures are recorded on the run (status failed, error message) and the
        failed run is returned.
        """
        run = await self._store.get(report_id)
        if run is None:
            raise KeyError(f"Report {report_id} not found")

        total_start = time.perf_counter()
        metrics = MetricsBuilder()
        try:
            await self._execute(run, metrics, total_start)
        except Exception as e:
            logger.exception(f"Report {report_id} failed")
            if not run.is_terminal:
                run.transition(ReportStatus.FAILED, error_message=str(e))
            await self._store.update(run)
            await self._emit(
                run.id,
                ReportEventType.REPORT_FAILED,
                {"status": run.status.value, "error": str(e)},
            )
        return run

    async def _execute(self, run: ReportRun, metrics: MetricsBuilder, total_start: float) -> None:
        profile = await self._source.fetch_client_profile(run.client_id)
        if profile is None:
            raise DataUnavailableError(f"Client {run.client_id} not found")

        start = time.perf_counter()
        skill = load_skill(profile.business_type)
        metrics.set_duration("skill_load_time_ms", _elapsed_ms(start))
        run.business_type = skill.business_type
        run.skill_version = skill.version
        metrics.set_report_context(run.id, run.client_id, skill.business_type)
        metrics.set_skill_info(skill.version, skill.is_placeholder)
        if skill.is_placeholder:
            logger.warning(
                f"Report {run.id}: using placeholder skill v{skill.version} for "
                f"{skill.business_type.value}"
            )

        dataset = await unify_client_data(self._source, run.client_id, run.date_range)
        if not dataset.queries:
            raise DataUnavailableError("No data available for analysis")

        await self._transition(run, ReportStatus.RESEARCHING)

        findings, ms = await _timed(asyncio.to_thread(run_scout, dataset, skill))
        metrics.set_duration("scout_duration_ms", ms)
        await self._store_stage(run, "scout", findings)

        research, ms = await _timed(
            run_researcher(
                findings,
                skill,
                source=self._source,
                fetcher=self._fetcher,
                client_id=run.client_id,
                date_range=run.date_range,
            )
        )
        metrics.set_duration("researcher_duration_ms", ms)
        await self._store_stage(run, "researcher", research)

        await self._transition(run, ReportStatus.ANALYZING)

        context = PromptContext(
            client_name=profile.name,
            industry=profile.industry,
            target_market=profile.target_market,
        )
        (sem, sem_ms), (seo, seo_ms) = await asyncio.gather(
            _timed(run_sem_agent(research.enriched_keywords, skill.sem, self._generator, context)),
            _timed(run_seo_agent(research.enriched_pages, skill.seo, self._generator, context)),
        )
        metrics.set_duration("sem_duration_ms", sem_ms)
        metrics.set_duration("seo_duration_ms", seo_ms)
        metrics.add_token_budget(sem.budget, sem.prompt_tokens)
        metrics.add_token_budget(seo.budget, seo.prompt_tokens)
        run.set_stage_output("sem", stage_json(sem.output))
        run.set_stage_output("seo", stage_json(seo.output))
        await self._store.update(run)
        await self._emit(
            run.id,
            ReportEventType.STAGE_COMPLETED,
            {
                "stage": "specialists",
                "sem_status": sem.status.value,
                "seo_status": seo.status.value,
                "sem_actions": len(sem.actions),
                "seo_actions": len(seo.actions),
            },
        )

        director, ms = await _timed(
            run_director(sem.output, seo.output, skill.director, self._generator, context)
        )
        metrics.set_duration("director_duration_ms", ms)
        metrics.add_token_budget(None, director.prompt_tokens)
        run.violations = list(director.violations)
        metrics.set_constraint_violations(director.violations)
        await self._store_stage(run, "director", director.output)

        await self._analyze(run, director.output, metrics, total_start)

        run.transition(ReportStatus.COMPLETED)
        await self._store.update(run)
        logger.info(
            f"Report {run.id} completed: {len(director.output.unified_recommendations)} "
            f"recommendations, {len(run.violations)} violations, {len(run.alerts)} alerts"
        )
        await self._emit(
            run.id,
            ReportEventType.REPORT_COMPLETED,
            {
                "status": run.status.value,
                "recommendations": len(director.output.unified_recommendations),
            },
        )

    async def _analyze(self, run: ReportRun, output, metrics: MetricsBuilder, total_start: float) -> None:
        """Output analysis, alerts and metrics. Never fails the run."""
        try:
            analysis = analyze_output(output, run.business_type)
            run.alerts = check_alerts(run.id, run.business_type, analysis)
            metrics.set_content_analysis(analysis)
            metrics.set_duration("total_duration_ms", _elapsed_ms(total_start))
            built = metrics.build()
        except Exception:
            logger.exception(f"Report {run.id}: output analysis or metrics failed")
            return
        run.metrics = built
        await save_report_metrics(self._store, built)

    async def _store_stage(self, run: ReportRun, stage: str, payload: Any) -> None:
        run.set_stage_output(stage, stage_json(payload))
        await self._store.update(run)
        await self._emit(run.id, ReportEventType.STAGE_COMPLETED, {"stage": stage})

    async def _transition(self, run: ReportRun, status: ReportStatus) -> None:
        run.transition(status)
        await self._store.update(run)
        logger.info(f"Report {run.id}: status {status.value}")
        await self._emit(run.id, ReportEventType.STATUS_CHANGED, {"status": status.value})

    async def _emit(self, report_id: str, event_type: ReportEventType, data: dict) -> None:
        if self._stream_manager is None:
            return
        await self._stream_manager.publish(report_id, event_type, data)

    async def get_latest_report(self, client_id: str) -> Optional[dict[str, Any]]:
        run = await self._store.latest(client_id)
        return report_summary(run) if run else None

    async def get_report(self, report_id: str) -> Optional[dict[str, Any]]:
        run = await self._store.get(report_id)
        return report_summary(run) if run else None

    async def get_report_debug(self, report_id: str) -> Optional[dict[str, Any]]:
        run = await self._store.get(report_id)
        if run is None:
            return None
        debug = report_summary(run)
        debug["stage_outputs"] = {
            stage: json.loads(payload) for stage, payload in run.stage_outputs.items()
        }
        debug["violations"] = [asdict(v) for v in run.violations]
        debug["metrics"] = json.loads(stage_json(run.metrics)) if run.metrics else None
        return debug

    async def has_existing_reports(self, client_id: str) -> bool:
        return await self._store.count(client_id) > 0

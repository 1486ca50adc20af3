"""FastAPI application for interplay reports: REST endpoints and SSE streaming."""

from __future__ import annotations

import logging
from typing import Any, Optional

from fastapi import BackgroundTasks, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, Field

from interplay.config.settings import Settings
from interplay.models.enums import ReportTrigger
from interplay.orchestrator.pipeline import ReportOrchestrator
from interplay.providers import ClaudeTextGenerator, HttpPageFetcher, JsonFileDataSource
from interplay.storage import InMemoryReportStore
from interplay.streaming import StreamManager

settings = Settings()

logging.basicConfig(level=settings.log_level)
logger = logging.getLogger(__name__)

app = FastAPI(title="Interplay Report API", version="0.1.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

stream_manager = StreamManager(retention_seconds=settings.stream_retention_seconds)

orchestrator = ReportOrchestrator(
    source=JsonFileDataSource(settings=settings),
    fetcher=HttpPageFetcher(settings=settings),
    generator=ClaudeTextGenerator(settings=settings),
    store=InMemoryReportStore(),
    stream_manager=stream_manager,
    settings=settings,
)


class CreateReportRequest(BaseModel):
    days: Optional[int] = Field(default=None, ge=1, le=365)
    trigger: ReportTrigger = ReportTrigger.MANUAL


class CreateReportResponse(BaseModel):
    report_id: str
    status: str
    metadata: dict[str, Any]


async def run_report_task(report_id: str) -> None:
    """Background task: run the pipeline for a created report."""
    try:
        run = await orchestrator.run_report(report_id)
    except Exception:
        logger.exception(f"Report {report_id} could not be run")
        return
    logger.info(f"Report {report_id} finished with status {run.status.value}")


@app.post("/api/clients/{client_id}/reports", response_model=CreateReportResponse)
async def create_report(
    client_id: str, background_tasks: BackgroundTasks, body: Optional[CreateReportRequest] = None
):
    """Create a report for a client and start the pipeline in the background."""
    body = body or CreateReportRequest()
    report_id, metadata = await orchestrator.generate_report(
        client_id, days=body.days, trigger=body.trigger
    )
    background_tasks.add_task(run_report_task, report_id)
    return CreateReportResponse(report_id=report_id, status="pending", metadata=metadata)


@app.get("/api/clients/{client_id}/reports/latest")
async def get_latest_report(client_id: str):
    report = await orchestrator.get_latest_report(client_id)
    if report is None:
        raise HTTPException(status_code=404, detail="No reports found for client")
    return report


@app.get("/api/clients/{client_id}/reports/exists")
async def has_reports(client_id: str):
    return {"has_reports": await orchestrator.has_existing_reports(client_id)}


@app.get("/api/reports/{report_id}")
async def get_report(report_id: str):
    report = await orchestrator.get_report(report_id)
    if report is None:
        raise HTTPException(status_code=404, detail="Report not found")
    return report


@app.get("/api/reports/{report_id}/debug")
async def get_report_debug(report_id: str):
    """Report summary plus every stored stage output."""
    report = await orchestrator.get_report_debug(report_id)
    if report is None:
        raise HTTPException(status_code=404, detail="Report not found")
    return report


@app.get("/api/reports/{report_id}/stream")
async def stream_report(report_id: str, request: Request):
    """SSE endpoint: streams report progress events."""
    last_event_id: int | None = None
    raw = request.headers.get("Last-Event-ID") or request.headers.get("last-event-id")
    if raw is not None:
        try:
            last_event_id = int(raw)
        except ValueError:
            pass

    generator = stream_manager.event_generator(report_id, last_event_id=last_event_id)
    return StreamingResponse(generator, media_type="text/event-stream")


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {"status": "ok"}

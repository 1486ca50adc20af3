"""Report run record, constraint violations, alerts and run metrics."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional

from .dataset import DateRange
from .enums import AlertSeverity, BusinessType, ReportStatus, ReportTrigger, SerializationMode

TERMINAL_STATUSES = frozenset({ReportStatus.COMPLETED, ReportStatus.FAILED})

# Allowed forward transitions; FAILED is reachable from every non-terminal state.
_TRANSITIONS: dict[ReportStatus, set[ReportStatus]] = {
    ReportStatus.PENDING: {ReportStatus.RESEARCHING, ReportStatus.FAILED},
    ReportStatus.RESEARCHING: {ReportStatus.ANALYZING, ReportStatus.FAILED},
    ReportStatus.ANALYZING: {ReportStatus.COMPLETED, ReportStatus.FAILED},
    ReportStatus.COMPLETED: set(),
    ReportStatus.FAILED: set(),
}

STAGE_SLOTS = ("scout", "researcher", "sem", "seo", "director")


def _utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


@dataclass
class ConstraintViolation:
    """An output item that matched a business-type exclusion rule."""

    source: str
    rule_id: str
    rule_description: str
    matched_content: str


@dataclass
class SkillAlert:
    severity: AlertSeverity
    code: str
    message: str
    context: dict[str, Any] = field(default_factory=dict)


@dataclass
class ReportMetrics:
    report_id: str
    client_id: str
    business_type: BusinessType
    skill_version: str
    using_fallback: bool = False
    constraint_violations: int = 0
    violations_by_rule: dict[str, int] = field(default_factory=dict)
    roas_mentions: int = 0
    product_schema_recommended: bool = False
    invalid_metrics_detected: list[str] = field(default_factory=list)
    skill_load_time_ms: Optional[float] = None
    scout_duration_ms: Optional[float] = None
    researcher_duration_ms: Optional[float] = None
    sem_duration_ms: Optional[float] = None
    seo_duration_ms: Optional[float] = None
    director_duration_ms: Optional[float] = None
    total_duration_ms: Optional[float] = None
    serialization_mode: Optional[SerializationMode] = None
    truncation_applied: bool = False
    keywords_dropped: int = 0
    pages_dropped: int = 0
    prompt_tokens_estimated: int = 0


@dataclass
class ReportRun:
    id: str
    client_id: str
    trigger: ReportTrigger
    date_range: DateRange
    status: ReportStatus = ReportStatus.PENDING
    business_type: Optional[BusinessType] = None
    skill_version: Optional[str] = None
    stage_outputs: dict[str, str] = field(default_factory=dict)
    violations: list[ConstraintViolation] = field(default_factory=list)
    alerts: list[SkillAlert] = field(default_factory=list)
    metrics: Optional[ReportMetrics] = None
    error_message: Optional[str] = None
    created_at: datetime = field(default_factory=_utcnow)
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def transition(self, new_status: ReportStatus, error_message: Optional[str] = None) -> None:
        """Move to `new_status`, rejecting moves the lifecycle does not allow."""
        if new_status not in _TRANSITIONS[self.status]:
            raise ValueError(
                f"Invalid report status transition: {self.status.value} -> {new_status.value}"
            )
        self.status = new_status
        if new_status == ReportStatus.RESEARCHING:
            self.started_at = _utcnow()
        if new_status in TERMINAL_STATUSES:
            self.completed_at = _utcnow()
        if new_status == ReportStatus.FAILED:
            self.error_message = error_message

    def set_stage_output(self, stage: str, payload: str) -> None:
        if stage not in STAGE_SLOTS:
            raise ValueError(f"Unknown stage slot: {stage}")
        self.stage_outputs[stage] = payload

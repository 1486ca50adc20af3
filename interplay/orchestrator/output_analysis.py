"""Post-synthesis checks on the final Director output.

Upstream constraint validation should already have removed anything a
business type must never see. These checks run on the finished report and
raise alerts when something slipped through.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field

from interplay.models.agent_outputs import DirectorOutput
from interplay.models.enums import AlertSeverity, BusinessType
from interplay.models.report import SkillAlert

logger = logging.getLogger(__name__)

METRIC_PATTERNS: dict[str, re.Pattern] = {
    "roas": re.compile(r"\broas\b|return on ad spend", re.I),
    "revenue": re.compile(r"\brevenue\b|\bearnings\b|\bsales\s+revenue\b", re.I),
    "aov": re.compile(r"\baov\b|average order value", re.I),
    "ltv": re.compile(r"\bltv\b|lifetime value|customer lifetime", re.I),
    "mrr": re.compile(r"\bmrr\b|monthly recurring revenue", re.I),
    "arr": re.compile(r"\barr\b|annual recurring revenue", re.I),
    "cpl": re.compile(r"\bcpl\b|cost per lead", re.I),
}

PRODUCT_SCHEMA_PATTERNS = [
    re.compile(r"\badd\s+(?:\w+\s+)*product\s+schema", re.I),
    re.compile(r"\bimplement\s+(?:\w+\s+)*product\s+schema", re.I),
    re.compile(r"\bmissing\s+(?:\w+\s+)*product\s+schema", re.I),
    re.compile(r"\brecommend\s+(?:\w+\s+)*product\s+schema", re.I),
    re.compile(r"\bproduct\s+structured\s+data", re.I),
    re.compile(r"\bschema\.org/product", re.I),
]

INVALID_METRICS: dict[BusinessType, list[str]] = {
    BusinessType.LEAD_GEN: ["roas", "revenue", "aov", "ltv"],
    BusinessType.SAAS: ["roas", "aov"],
    BusinessType.ECOMMERCE: [],
    BusinessType.LOCAL: ["mrr", "arr"],
}


@dataclass
class OutputAnalysis:
    roas_mentions: int = 0
    product_schema_recommended: bool = False
    invalid_metrics: list[str] = field(default_factory=list)


def output_text(output: DirectorOutput) -> str:
    parts = [output.executive_summary.summary, *output.executive_summary.key_highlights]
    for rec in output.unified_recommendations:
        parts.extend([rec.title, rec.description, *rec.action_items])
    return " ".join(parts).lower()


def count_metric_mentions(output: DirectorOutput) -> dict[str, int]:
    text = output_text(output)
    return {name: len(pattern.findall(text)) for name, pattern in METRIC_PATTERNS.items()}


def analyze_output(output: DirectorOutput, business_type: BusinessType) -> OutputAnalysis:
    text = output_text(output)
    return OutputAnalysis(
        roas_mentions=len(METRIC_PATTERNS["roas"].findall(text)),
        product_schema_recommended=any(p.search(text) for p in PRODUCT_SCHEMA_PATTERNS),
        invalid_metrics=[
            m for m in INVALID_METRICS.get(business_type, []) if METRIC_PATTERNS[m].search(text)
        ],
    )


def _alert(
    alerts: list[SkillAlert], severity: AlertSeverity, code: str, message: str, context: dict
) -> None:
    alert = SkillAlert(severity=severity, code=code, message=message, context=context)
    alerts.append(alert)
    if severity == AlertSeverity.CRITICAL:
        logger.error(f"[{code}] {message} {context}")
    else:
        logger.warning(f"[{code}] {message} {context}")


def check_alerts(
    report_id: str, business_type: BusinessType, analysis: OutputAnalysis
) -> list[SkillAlert]:
    """Turn an output analysis into alerts for the business type. Alerts never fail a run."""
    alerts: list[SkillAlert] = []
    base = {"report_id": report_id, "business_type": business_type.value}

    if business_type == BusinessType.LEAD_GEN:
        if analysis.roas_mentions > 0:
            _alert(
                alerts,
                AlertSeverity.CRITICAL,
                "LEADGEN_ROAS_LEAK",
                "ROAS mentioned in lead-gen report; skill constraints failed",
                {**base, "roas_mentions": analysis.roas_mentions},
            )
        if analysis.product_schema_recommended:
            _alert(
                alerts,
                AlertSeverity.CRITICAL,
                "LEADGEN_PRODUCT_SCHEMA_LEAK",
                "Product schema recommended in lead-gen report; skill constraints failed",
                dict(base),
            )
        others = [m for m in analysis.invalid_metrics if m != "roas"]
        if others:
            _alert(
                alerts,
                AlertSeverity.WARNING,
                "LEADGEN_INVALID_METRICS",
                "Invalid metrics detected in lead-gen report",
                {**base, "invalid_metrics": others},
            )

    elif business_type == BusinessType.SAAS:
        if analysis.roas_mentions > 0:
            _alert(
                alerts,
                AlertSeverity.WARNING,
                "SAAS_ROAS_WARNING",
                "ROAS mentioned in SaaS report; may not be applicable",
                {**base, "roas_mentions": analysis.roas_mentions},
            )
        if analysis.product_schema_recommended:
            _alert(
                alerts,
                AlertSeverity.WARNING,
                "SAAS_PRODUCT_SCHEMA_WARNING",
                "Product schema recommended in SaaS report; verify appropriateness",
                dict(base),
            )

    elif business_type == BusinessType.LOCAL:
        if analysis.invalid_metrics:
            _alert(
                alerts,
                AlertSeverity.WARNING,
                "LOCAL_INVALID_METRICS",
                "SaaS-specific metrics detected in local business report",
                {**base, "invalid_metrics": list(analysis.invalid_metrics)},
            )

    if alerts:
        logger.info(f"Report {report_id}: {len(alerts)} skill alerts raised")
    return alerts

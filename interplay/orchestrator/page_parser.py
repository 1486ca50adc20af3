"""HTML page parsing for the Researcher: metadata, text, JSON-LD schema, content signals."""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Optional

import soupsieve
from bs4 import BeautifulSoup

from interplay.models.findings import PageContent
from interplay.skills.schema import PageClassification, PageEnrichment

logger = logging.getLogger(__name__)

PREVIEW_CHARS = 500

_STRIP_TAGS = ("script", "style", "noscript", "iframe", "svg", "nav", "footer", "header", "aside")
_JSONLD_TYPE_RE = re.compile(r"application/ld\+json", re.IGNORECASE)


def classify_page(url: str, classification: PageClassification) -> str:
    """Page type of the highest-confidence pattern matching the URL.

    Matches below the confidence threshold are ignored; with no match the
    classification's default type is returned.
    """
    best_type: Optional[str] = None
    best_confidence = -1.0
    for pattern in classification.patterns:
        if pattern.confidence < classification.confidence_threshold:
            continue
        if re.search(pattern.pattern, url, re.IGNORECASE) and pattern.confidence > best_confidence:
            best_type = pattern.page_type
            best_confidence = pattern.confidence
    return best_type or classification.default_type


def _type_list(value: Any) -> list[str]:
    if isinstance(value, str):
        return [value]
    if isinstance(value, list):
        return [v for v in value if isinstance(v, str)]
    return []


def _schema_types(payload: Any) -> list[str]:
    types: list[str] = []
    nodes = payload if isinstance(payload, list) else [payload]
    for node in nodes:
        if not isinstance(node, dict):
            continue
        types.extend(_type_list(node.get("@type")))
        graph = node.get("@graph")
        if isinstance(graph, list):
            for child in graph:
                if isinstance(child, dict):
                    types.extend(_type_list(child.get("@type")))
    return types


def extract_jsonld(soup: BeautifulSoup) -> tuple[list[str], list[str]]:
    """Return (schema types in document order without duplicates, parse errors)."""
    detected: list[str] = []
    errors: list[str] = []
    for script in soup.find_all("script", attrs={"type": _JSONLD_TYPE_RE}):
        raw = (script.string or script.get_text() or "").strip()
        if not raw:
            continue
        try:
            payload = json.loads(raw)
        except json.JSONDecodeError:
            if "Invalid JSON-LD syntax" not in errors:
                errors.append("Invalid JSON-LD syntax")
            continue
        for schema_type in _schema_types(payload):
            if schema_type not in detected:
                detected.append(schema_type)
    return detected, errors


def _meta_content(soup: BeautifulSoup, name: str) -> Optional[str]:
    tag = soup.find("meta", attrs={"name": name})
    if tag is None:
        tag = soup.find("meta", attrs={"property": f"og:{name}"})
    if tag and tag.get("content"):
        return tag["content"].strip()
    return None


def _has_signal(soup: BeautifulSoup, selector: str) -> bool:
    try:
        return soup.select_one(selector) is not None
    except (soupsieve.SelectorSyntaxError, NotImplementedError) as e:
        logger.warning(f"Invalid content-signal selector {selector!r}: {e}")
        return False


def parse_page(html: str, url: str, enrichment: PageEnrichment) -> PageContent:
    """Extract the configured fields from a fetched page."""
    soup = BeautifulSoup(html, "html.parser")
    extractions = enrichment.standard_extractions

    # JSON-LD and signals are read before chrome tags are stripped.
    detected, schema_errors = extract_jsonld(soup)
    signals = {
        signal.id: _has_signal(soup, signal.selector) for signal in enrichment.content_signals
    }

    schema_cfg = enrichment.schema_extraction
    for schema_type in schema_cfg.flag_if_missing:
        if schema_type not in detected:
            schema_errors.append(f"Missing recommended schema: {schema_type}")
    for schema_type in schema_cfg.flag_if_present:
        if schema_type in detected:
            schema_errors.append(f"Inappropriate schema present: {schema_type}")
    if schema_cfg.look_for:
        detected = [t for t in detected if t in schema_cfg.look_for]

    title = None
    if extractions.title and soup.title:
        title = soup.title.get_text(" ", strip=True) or None

    canonical = None
    if extractions.canonical_url:
        link = soup.find("link", rel="canonical")
        if link and link.get("href"):
            canonical = link["href"].strip()

    meta_description = _meta_content(soup, "description") if extractions.meta_description else None

    h1 = None
    if extractions.h1:
        h1_tag = soup.find("h1")
        if h1_tag:
            h1 = h1_tag.get_text(" ", strip=True) or None

    for tag in soup(list(_STRIP_TAGS)):
        tag.decompose()

    body = soup.body or soup
    text = " ".join(body.get_text(" ", strip=True).split())

    return PageContent(
        word_count=len(text.split()) if extractions.word_count and text else 0,
        title=title,
        h1=h1,
        meta_description=meta_description,
        canonical_url=canonical,
        content_preview=text[:PREVIEW_CHARS],
        detected_schema=detected,
        schema_errors=schema_errors,
        content_signals=signals,
        page_type=classify_page(url, enrichment.page_classification),
    )

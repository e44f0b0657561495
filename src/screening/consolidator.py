"""
Merge a group of findings about one incident into a single finding.

An LLM writes the merged headline and narrative. If no provider answers with
usable JSON the group is merged deterministically: first headline, all
summaries joined with " | ". Consolidation of a group never raises.
"""

import logging
from typing import Any, Dict, List, Optional, Sequence

from .models import (
    ConsolidatedFinding,
    EVENT_TYPES,
    RawFinding,
    SEVERITY_AMBER,
    SEVERITY_RED,
    normalize_severity,
)
from .providers import ProviderChain, ProviderConfig

logger = logging.getLogger(__name__)


FALLBACK_SEPARATOR = " | "

PROMPT_TEMPLATE = """You are consolidating multiple due diligence findings about "{subject}" that describe the SAME incident.

FINDINGS TO CONSOLIDATE:
{findings}

Create ONE consolidated finding that:
1. Combines ALL facts from all sources (dates, amounts, names, case numbers)
2. Uses the most complete and accurate details
3. Creates a comprehensive headline (one sentence)
4. Writes a detailed professional summary combining all information
5. Identifies the date range of the incident

Return JSON only:
{{
  "headline": "Concise headline describing the incident",
  "summary": "Detailed 2-4 sentence professional summary with all facts from all sources",
  "eventType": "{event_types}",
  "dateRange": "YYYY or YYYY-YYYY"
}}"""


def highest_severity(findings: Sequence[RawFinding]) -> str:
    """RED if any member is RED, otherwise AMBER."""
    if any(normalize_severity(f.severity) == SEVERITY_RED for f in findings):
        return SEVERITY_RED
    return SEVERITY_AMBER


def build_consolidation_prompt(findings: Sequence[RawFinding], subject_name: str) -> str:
    findings_text = "\n\n".join(
        f"{i}. Headline: {f.headline}\n   Summary: {f.summary}\n   Source: {f.url}"
        for i, f in enumerate(findings, 1)
    )
    return PROMPT_TEMPLATE.format(
        subject=subject_name,
        findings=findings_text,
        event_types="|".join(EVENT_TYPES),
    )


def _has_narrative(parsed: Dict[str, Any]) -> bool:
    return bool(parsed.get("headline") or parsed.get("summary"))


def _clean_str(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""


class GroupConsolidator:
    """Consolidates multi-finding groups through an ordered provider chain."""

    def __init__(self, chain: Optional[ProviderChain] = None):
        self.chain = chain if chain is not None else ProviderChain()

    @classmethod
    def from_providers(cls, providers: Sequence[ProviderConfig]) -> "GroupConsolidator":
        return cls(ProviderChain(providers))

    def _base(self, findings: Sequence[RawFinding]) -> ConsolidatedFinding:
        sources = [f.source for f in findings]
        return ConsolidatedFinding(
            headline=findings[0].headline,
            summary=FALLBACK_SEPARATOR.join(f.summary for f in findings),
            severity=highest_severity(findings),
            event_type="other",
            date_range="",
            source_count=len(sources),
            sources=sources,
            cluster_id=findings[0].cluster_id,
            cluster_label=findings[0].cluster_label,
            article_contents=[f.article_content for f in findings if f.article_content],
            fetch_failed=any(f.fetch_failed for f in findings),
        )

    def consolidate(self, findings: Sequence[RawFinding], subject_name: str) -> ConsolidatedFinding:
        """
        Merge ``findings`` into one ConsolidatedFinding.

        Args:
            findings: Two or more findings judged to describe one incident
            subject_name: Screening subject, used in the prompt

        Returns:
            The merged finding; the deterministic fallback if every provider fails
        """
        if not findings:
            raise ValueError("Cannot consolidate an empty group")

        merged = self._base(findings)
        if not len(self.chain):
            logger.info("[CONSOLIDATE] No LLM providers configured, using fallback")
            return merged

        prompt = build_consolidation_prompt(findings, subject_name)
        try:
            parsed = self.chain.complete_json(prompt, validate=_has_narrative, tag="CONSOLIDATE")
        except Exception as e:
            logger.warning("[CONSOLIDATE] Provider chain raised: %s", e)
            parsed = None

        if parsed is None:
            logger.info("[CONSOLIDATE] All LLM providers failed, using fallback")
            return merged

        event_type = _clean_str(parsed.get("eventType"))
        merged.headline = _clean_str(parsed.get("headline")) or findings[0].headline
        merged.summary = _clean_str(parsed.get("summary")) or findings[0].summary
        merged.event_type = event_type if event_type in EVENT_TYPES else "other"
        merged.date_range = _clean_str(parsed.get("dateRange"))
        return merged


def consolidate_group_with_llm(
    findings: List[RawFinding],
    subject_name: str,
    providers: Optional[Sequence[ProviderConfig]] = None,
) -> ConsolidatedFinding:
    """Consolidate one group using ``providers`` in order (none = fallback only)."""
    return GroupConsolidator.from_providers(providers or []).consolidate(findings, subject_name)

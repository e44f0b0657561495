"""
Top-level finding consolidation.

Findings that arrive with a cluster id from incident clustering are grouped
by that id as-is. The rest are fingerprinted and grouped by similarity. Each
group becomes one ConsolidatedFinding (multi-member groups go through the
LLM consolidator), parked duplicate articles are added to their cluster's
sources, and the result is sorted by severity then by source count.
"""

import logging
from collections import OrderedDict
from typing import Dict, Iterable, List, Optional, Sequence

from .config import ScreeningConfig
from .consolidator import GroupConsolidator
from .errors import ConsolidationError
from .fingerprint import fingerprint_for
from .grouping import group_findings
from .models import (
    ConsolidatedFinding,
    ParkedArticle,
    RawFinding,
    SourceRef,
    normalize_severity,
    severity_rank,
)

logger = logging.getLogger(__name__)


def build_parked_sources(parked_articles: Iterable[ParkedArticle]) -> Dict[str, List[SourceRef]]:
    """Map cluster id -> sources of parked articles in that cluster."""
    by_cluster: Dict[str, List[SourceRef]] = {}
    for article in parked_articles:
        if not article.cluster_id:
            logger.debug("Ignoring parked article without cluster id: %s", article.url)
            continue
        by_cluster.setdefault(article.cluster_id, []).append(article.source)
    return by_cluster


def group_by_cluster_id(findings: Sequence[RawFinding]) -> List[List[RawFinding]]:
    """Group findings by their upstream cluster id, in first-seen order."""
    clusters: "OrderedDict[str, List[RawFinding]]" = OrderedDict()
    for finding in findings:
        clusters.setdefault(finding.cluster_id, []).append(finding)
    return list(clusters.values())


def _single_finding(finding: RawFinding) -> ConsolidatedFinding:
    # Clustered findings are never fingerprinted
    if finding.fingerprint is None and finding.cluster_id:
        event_type, date_range = "other", ""
    else:
        fingerprint = fingerprint_for(finding)
        event_type = fingerprint.event_type
        date_range = "-".join(str(y) for y in fingerprint.years)

    return ConsolidatedFinding(
        headline=finding.headline,
        summary=finding.summary,
        severity=normalize_severity(finding.severity),
        event_type=event_type,
        date_range=date_range,
        source_count=1,
        sources=[finding.source],
        cluster_id=finding.cluster_id,
        cluster_label=finding.cluster_label,
        article_contents=[finding.article_content] if finding.article_content else [],
        fetch_failed=finding.fetch_failed,
    )


def _attach_parked(
    consolidated: ConsolidatedFinding,
    parked_sources: Dict[str, List[SourceRef]],
) -> None:
    if consolidated.cluster_id and consolidated.cluster_id in parked_sources:
        extra = parked_sources[consolidated.cluster_id]
        consolidated.sources.extend(extra)
        logger.info("[CONSOLIDATE] Added %d parked source(s) to cluster %s",
                    len(extra), consolidated.cluster_id)
    consolidated.source_count = len({s.url for s in consolidated.sources})


def _check_partition(findings: Sequence[RawFinding], groups: Sequence[Sequence[RawFinding]]) -> None:
    expected = sorted(id(f) for f in findings)
    actual = sorted(id(f) for group in groups for f in group)
    if expected != actual:
        logger.error("[CONSOLIDATE] Grouping lost or duplicated findings: %d in, %d grouped",
                     len(expected), len(actual))
        raise ConsolidationError(
            f"Grouping is not a partition of the input ({len(expected)} findings, "
            f"{len(actual)} grouped)"
        )


def sort_consolidated(findings: List[ConsolidatedFinding]) -> List[ConsolidatedFinding]:
    """Most severe first, then most sources first; stable otherwise."""
    return sorted(findings, key=lambda f: (-severity_rank(f.severity), -f.source_count))


def consolidate_findings(
    findings: Sequence[RawFinding],
    subject_name: str,
    parked_articles: Sequence[ParkedArticle] = (),
    consolidator: Optional[GroupConsolidator] = None,
    config: Optional[ScreeningConfig] = None,
) -> List[ConsolidatedFinding]:
    """
    Deduplicate raw findings into consolidated, cited incidents.

    Args:
        findings: Raw findings from article analysis
        subject_name: Screening subject
        parked_articles: Duplicate pages already assigned to a cluster
        consolidator: Group consolidator; defaults to one with no providers (fallback merge)
        config: Grouping thresholds and strategy; defaults apply if None

    Returns:
        Consolidated findings sorted by severity, then source count

    Raises:
        ConsolidationError: If grouping fails to place every finding exactly once
    """
    if not findings:
        return []

    config = config or ScreeningConfig()
    consolidator = consolidator or GroupConsolidator()

    logger.info("[CONSOLIDATE] Processing %d findings for %r...", len(findings), subject_name)

    parked_sources = build_parked_sources(parked_articles)

    clustered = [f for f in findings if f.cluster_id]
    unclustered = [f for f in findings if not f.cluster_id]

    groups = group_by_cluster_id(clustered)
    cluster_group_count = len(groups)
    if unclustered:
        with_fp = [f.with_fingerprint(fingerprint_for(f)) for f in unclustered]
        similarity_groups = group_findings(
            with_fp,
            threshold=config.threshold,
            same_person_threshold=config.same_person_threshold,
            strategy=config.strategy,
        )
        # Map fingerprinted copies back to the caller's objects
        originals = {id(copy): original for copy, original in zip(with_fp, unclustered)}
        groups.extend([originals[id(f)] for f in group] for group in similarity_groups)

    _check_partition(findings, groups)
    logger.info("[CONSOLIDATE] Grouped into %d unique incidents (%d by cluster id)",
                len(groups), cluster_group_count)

    consolidated: List[ConsolidatedFinding] = []
    for group in groups:
        if len(group) == 1:
            merged = _single_finding(group[0])
        else:
            logger.info("[CONSOLIDATE] Merging %d findings about same incident", len(group))
            merged = consolidator.consolidate(group, subject_name)
        _attach_parked(merged, parked_sources)
        consolidated.append(merged)

    return sort_consolidated(consolidated)

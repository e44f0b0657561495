"""
Data models for the screening consolidation pipeline.

Raw findings come from the per-article analysis step, fingerprints are derived
from them for comparison, and consolidated findings are handed to report
rendering. These are plain dataclasses; ``from_dict``/``to_dict`` accept the
camelCase keys used by the upstream JSON as well as snake_case.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Dict, FrozenSet, List, Optional, Tuple


SEVERITY_RED = "RED"
SEVERITY_AMBER = "AMBER"
SEVERITY_REVIEW = "REVIEW"

# Higher is more severe
SEVERITY_RANK = {SEVERITY_RED: 3, SEVERITY_AMBER: 2, SEVERITY_REVIEW: 1}

EVENT_TYPES = (
    "regulatory_investigation",
    "criminal_charge",
    "legal_proceedings",
    "administrative_penalty",
    "financial_misconduct",
    "traffic_violation",
    "other",
)

GENDER_MALE = "male"
GENDER_FEMALE = "female"
GENDER_UNKNOWN = "unknown"


def normalize_severity(severity: Optional[str]) -> str:
    return (severity or "").strip().upper()


def severity_rank(severity: Optional[str]) -> int:
    """Numeric rank for sorting; unknown severities sort last."""
    return SEVERITY_RANK.get(normalize_severity(severity), 0)


def _pick(data: Dict[str, Any], *keys: str, default: Any = None) -> Any:
    for key in keys:
        if key in data and data[key] is not None:
            return data[key]
    return default


@dataclass(frozen=True)
class Fingerprint:
    """Structured summary of a finding's text used for similarity matching."""
    event_type: str = "other"
    entities: FrozenSet[str] = frozenset()
    years: Tuple[int, ...] = ()
    keywords: FrozenSet[str] = frozenset()
    content_words: FrozenSet[str] = frozenset()
    companies: FrozenSet[str] = frozenset()
    titles: FrozenSet[str] = frozenset()
    locations: FrozenSet[str] = frozenset()
    gender: str = GENDER_UNKNOWN
    is_victim: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "eventType": self.event_type,
            "entities": sorted(self.entities),
            "years": list(self.years),
            "keywords": sorted(self.keywords),
            "contentWords": sorted(self.content_words),
            "companies": sorted(self.companies),
            "titles": sorted(self.titles),
            "locations": sorted(self.locations),
            "gender": self.gender,
            "isVictim": self.is_victim,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Fingerprint":
        return cls(
            event_type=_pick(data, "eventType", "event_type", default="other"),
            entities=frozenset(_pick(data, "entities", default=[])),
            years=tuple(sorted(int(y) for y in _pick(data, "years", default=[]))),
            keywords=frozenset(_pick(data, "keywords", default=[])),
            content_words=frozenset(_pick(data, "contentWords", "content_words", default=[])),
            companies=frozenset(_pick(data, "companies", default=[])),
            titles=frozenset(_pick(data, "titles", default=[])),
            locations=frozenset(_pick(data, "locations", default=[])),
            gender=_pick(data, "gender", default=GENDER_UNKNOWN),
            is_victim=bool(_pick(data, "isVictim", "is_victim", default=False)),
        )


@dataclass(frozen=True)
class SourceRef:
    url: str
    title: str = ""

    def to_dict(self) -> Dict[str, str]:
        return {"url": self.url, "title": self.title}


@dataclass(frozen=True)
class RawFinding:
    """One adverse claim extracted from one article."""
    url: str
    title: str
    severity: str
    headline: str
    summary: str
    triage_classification: str = ""
    fingerprint: Optional[Fingerprint] = None
    cluster_id: Optional[str] = None
    cluster_label: Optional[str] = None
    article_content: Optional[str] = None
    fetch_failed: bool = False

    def with_fingerprint(self, fingerprint: Fingerprint) -> "RawFinding":
        """Return a copy carrying ``fingerprint``; the original is untouched."""
        return replace(self, fingerprint=fingerprint)

    @property
    def source(self) -> SourceRef:
        return SourceRef(url=self.url, title=self.title)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RawFinding":
        fp = _pick(data, "fingerprint")
        return cls(
            url=_pick(data, "url", default=""),
            title=_pick(data, "title", default=""),
            severity=normalize_severity(str(_pick(data, "severity", default=SEVERITY_AMBER))),
            headline=_pick(data, "headline", default=""),
            summary=_pick(data, "summary", default=""),
            triage_classification=_pick(
                data, "triageClassification", "triage_classification", default=""
            ),
            fingerprint=Fingerprint.from_dict(fp) if isinstance(fp, dict) else None,
            cluster_id=_pick(data, "clusterId", "cluster_id"),
            cluster_label=_pick(data, "clusterLabel", "cluster_label"),
            article_content=_pick(data, "articleContent", "article_content"),
            fetch_failed=bool(_pick(data, "fetchFailed", "fetch_failed", default=False)),
        )

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "url": self.url,
            "title": self.title,
            "severity": self.severity,
            "headline": self.headline,
            "summary": self.summary,
            "triageClassification": self.triage_classification,
            "fetchFailed": self.fetch_failed,
        }
        if self.fingerprint is not None:
            data["fingerprint"] = self.fingerprint.to_dict()
        if self.cluster_id is not None:
            data["clusterId"] = self.cluster_id
        if self.cluster_label is not None:
            data["clusterLabel"] = self.cluster_label
        if self.article_content is not None:
            data["articleContent"] = self.article_content
        return data


@dataclass(frozen=True)
class ParkedArticle:
    """A known-duplicate page folded into a cluster without being analyzed."""
    url: str
    title: str = ""
    cluster_id: Optional[str] = None
    cluster_label: Optional[str] = None

    @property
    def source(self) -> SourceRef:
        return SourceRef(url=self.url, title=self.title)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ParkedArticle":
        return cls(
            url=_pick(data, "url", default=""),
            title=_pick(data, "title", default=""),
            cluster_id=_pick(data, "clusterId", "cluster_id"),
            cluster_label=_pick(data, "clusterLabel", "cluster_label"),
        )

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"url": self.url, "title": self.title}
        if self.cluster_id is not None:
            data["clusterId"] = self.cluster_id
        if self.cluster_label is not None:
            data["clusterLabel"] = self.cluster_label
        return data


@dataclass
class ConsolidatedFinding:
    """One incident after deduplication, with all of its citations."""
    headline: str
    summary: str
    severity: str
    event_type: str = "other"
    date_range: str = ""
    source_count: int = 0
    sources: List[SourceRef] = field(default_factory=list)
    cluster_id: Optional[str] = None
    cluster_label: Optional[str] = None
    article_contents: List[str] = field(default_factory=list)
    fetch_failed: bool = False

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "headline": self.headline,
            "summary": self.summary,
            "severity": self.severity,
            "eventType": self.event_type,
            "dateRange": self.date_range,
            "sourceCount": self.source_count,
            "sources": [s.to_dict() for s in self.sources],
        }
        if self.cluster_id is not None:
            data["clusterId"] = self.cluster_id
        if self.cluster_label is not None:
            data["clusterLabel"] = self.cluster_label
        if self.article_contents:
            data["articleContents"] = list(self.article_contents)
        if self.fetch_failed:
            data["fetchFailed"] = True
        return data


@dataclass(frozen=True)
class SearchResult:
    """A search hit before analysis; clustering attaches cluster info to it."""
    url: str
    title: str
    snippet: str = ""
    cluster_id: Optional[str] = None
    cluster_label: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SearchResult":
        return cls(
            url=_pick(data, "url", "link", default=""),
            title=_pick(data, "title", default=""),
            snippet=_pick(data, "snippet", default=""),
            cluster_id=_pick(data, "clusterId", "cluster_id"),
            cluster_label=_pick(data, "clusterLabel", "cluster_label"),
        )

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"url": self.url, "title": self.title, "snippet": self.snippet}
        if self.cluster_id is not None:
            data["clusterId"] = self.cluster_id
        if self.cluster_label is not None:
            data["clusterLabel"] = self.cluster_label
        return data


@dataclass
class IncidentCluster:
    id: str
    label: str
    articles: List[SearchResult] = field(default_factory=list)
    source_tiers: List[int] = field(default_factory=list)
    # Placeholder label made up when the LLM gave none
    generated_label: bool = False


@dataclass
class ClusteringResult:
    clusters: List[IncidentCluster] = field(default_factory=list)
    to_analyze: List[SearchResult] = field(default_factory=list)
    parked: List[SearchResult] = field(default_factory=list)
    stats: Dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "clusters": [
                {
                    "id": c.id,
                    "label": c.label,
                    "articles": [a.to_dict() for a in c.articles],
                    "sourceTiers": list(c.source_tiers),
                }
                for c in self.clusters
            ],
            "toAnalyze": [a.to_dict() for a in self.to_analyze],
            "parked": [a.to_dict() for a in self.parked],
            "stats": dict(self.stats),
        }

"""
Incident clustering of search results before analysis.

Search results about a subject are grouped by incident with an LLM, batch by
batch. Clusters from different batches are merged when their labels look
alike. Within each cluster the best-tier sources are kept for analysis and
the rest are parked; every article is tagged with its cluster id and label
so consolidation can group the resulting findings and count parked sources.
"""

import logging
import re
from dataclasses import replace
from typing import Any, Dict, List, Optional, Sequence, Tuple
from urllib.parse import urlparse

from .models import ClusteringResult, IncidentCluster, ParkedArticle, SearchResult
from .providers import ProviderChain

logger = logging.getLogger(__name__)


TIER_1_DOMAINS = [
    "ft.com", "reuters.com", "scmp.com", "wsj.com", "bloomberg.com",
    "gov.cn", "csrc.gov.cn", "sfc.hk", "hkex.com.hk", "icac.org.hk",
    "caixin.com", "xinhuanet.com",
]

TIER_2_DOMAINS = [
    "hk01.com", "sina.com.cn", "163.com", "eastmoney.com", "qq.com",
    "sohu.com", "ifeng.com", "thepaper.cn", "yicai.com", "jiemian.com",
]

DEFAULT_MAX_PER_CLUSTER = 3
DEFAULT_BATCH_SIZE = 40
SNIPPET_CHARS = 100
FALLBACK_LABEL_CHARS = 30
LABEL_MERGE_THRESHOLD = 0.6
SUBSTRING_LABEL_SIMILARITY = 0.8

CJK_CHAR_RE = re.compile(r"[一-鿿]")

CLUSTER_PROMPT = """You are clustering news articles about "{subject}" by INCIDENT.
Same news event/story = same cluster. Different events = different clusters.

Articles:
{articles}

Rules:
- Articles about the same event (even from different angles/sources) = same cluster
- Articles about different events (even if same person) = different clusters
- If unsure, keep articles separate (don't over-merge)
- Label each cluster with a short incident description (e.g., "AC Milan破产案", "证监会调查")

Output ONLY valid JSON (no markdown, no explanation):
{{"clusters": [[1,2], [3,4,5], [6]], "labels": ["incident 1", "incident 2", "incident 3"]}}"""


def get_source_tier(url: str) -> int:
    """1 for top-tier outlets and regulators, 2 for major portals, else 3."""
    try:
        hostname = (urlparse(url).hostname or "").lower()
    except ValueError:
        return 3
    if not hostname:
        return 3
    if any(d in hostname for d in TIER_1_DOMAINS):
        return 1
    if any(d in hostname for d in TIER_2_DOMAINS):
        return 2
    return 3


def build_clustering_prompt(articles: Sequence[SearchResult], subject_name: str) -> str:
    lines = []
    for i, article in enumerate(articles, 1):
        snippet = (article.snippet or "")[:SNIPPET_CHARS].replace("\n", " ")
        lines.append(f'{i}. "{article.title}" - {snippet}')
    return CLUSTER_PROMPT.format(subject=subject_name, articles="\n".join(lines))


def _valid_cluster_response(parsed: Dict[str, Any]) -> bool:
    clusters = parsed.get("clusters")
    return isinstance(clusters, list) and all(isinstance(c, list) for c in clusters)


def _fallback_clusters(articles: Sequence[SearchResult], batch_index: int) -> List[IncidentCluster]:
    return [
        IncidentCluster(
            id=f"batch{batch_index}-fallback{i}",
            label=article.title[:FALLBACK_LABEL_CHARS],
            articles=[article],
            source_tiers=[get_source_tier(article.url)],
        )
        for i, article in enumerate(articles)
    ]


def cluster_batch(
    articles: Sequence[SearchResult],
    subject_name: str,
    batch_index: int,
    chain: ProviderChain,
) -> List[IncidentCluster]:
    """
    Cluster one batch with the LLM; every article becomes its own cluster on failure.

    Indices in the response are 1-based; out-of-range indices are dropped.
    """
    if not articles:
        return []

    parsed = chain.complete_json(
        build_clustering_prompt(articles, subject_name),
        validate=_valid_cluster_response,
        tag="CLUSTER",
    )
    if parsed is None:
        logger.error("[CLUSTER] Batch %d failed: all LLM providers failed for clustering", batch_index)
        return _fallback_clusters(articles, batch_index)

    labels = parsed.get("labels") or []
    clusters = []
    for i, indices in enumerate(parsed["clusters"]):
        members = []
        for idx in indices:
            if isinstance(idx, int) and not isinstance(idx, bool) and 1 <= idx <= len(articles):
                members.append(articles[idx - 1])
        label = labels[i] if i < len(labels) and isinstance(labels[i], str) else ""
        generated = not label.strip()
        clusters.append(IncidentCluster(
            id=f"batch{batch_index}-cluster{i}",
            label=f"Incident {i + 1}" if generated else label,
            articles=members,
            source_tiers=[get_source_tier(a.url) for a in members],
            generated_label=generated,
        ))

    logger.info("[CLUSTER] Batch %d returned %d clusters", batch_index, len(clusters))
    return clusters


def calculate_label_similarity(label1: str, label2: str) -> float:
    """
    Similarity of two cluster labels.

    Chinese labels: Jaccard over CJK characters. Otherwise 0.8 if one
    lowercase label contains the other, else 0.
    """
    chars1 = set(CJK_CHAR_RE.findall(label1))
    chars2 = set(CJK_CHAR_RE.findall(label2))

    if not chars1 or not chars2:
        l1 = label1.lower()
        l2 = label2.lower()
        if l1 in l2 or l2 in l1:
            return SUBSTRING_LABEL_SIMILARITY
        return 0.0

    return len(chars1 & chars2) / len(chars1 | chars2)


def _mergeable(cluster: IncidentCluster) -> bool:
    return not cluster.generated_label and bool(cluster.label.strip())


def merge_similar_clusters(clusters: Sequence[IncidentCluster]) -> List[IncidentCluster]:
    """
    Greedily fold later clusters into earlier ones with a similar label.

    Placeholder and empty labels say nothing about the incident, so those
    clusters are never merged.
    """
    if len(clusters) <= 1:
        return list(clusters)

    merged = []
    used = set()
    for i, base in enumerate(clusters):
        if i in used:
            continue
        cluster = IncidentCluster(
            id=base.id,
            label=base.label,
            articles=list(base.articles),
            source_tiers=list(base.source_tiers),
            generated_label=base.generated_label,
        )
        used.add(i)
        if not _mergeable(cluster):
            merged.append(cluster)
            continue

        for j in range(i + 1, len(clusters)):
            if j in used:
                continue
            other = clusters[j]
            if not _mergeable(other):
                continue
            similarity = calculate_label_similarity(cluster.label, other.label)
            if similarity > LABEL_MERGE_THRESHOLD:
                cluster.articles.extend(other.articles)
                cluster.source_tiers.extend(other.source_tiers)
                used.add(j)
                logger.info('[CLUSTER] Merged "%s" with "%s" (similarity: %.2f)',
                            cluster.label, other.label, similarity)

        merged.append(cluster)

    return merged


def select_best_articles(
    clusters: Sequence[IncidentCluster],
    max_per_cluster: int = DEFAULT_MAX_PER_CLUSTER,
) -> Tuple[List[SearchResult], List[SearchResult]]:
    """
    Keep the best-tier ``max_per_cluster`` articles of each cluster for analysis.

    Returns:
        (to_analyze, parked), every article tagged with its cluster id and label
    """
    to_analyze: List[SearchResult] = []
    parked: List[SearchResult] = []

    for cluster in clusters:
        ranked = sorted(
            zip(cluster.articles, cluster.source_tiers),
            key=lambda pair: pair[1],
        )
        for i, (article, _tier) in enumerate(ranked):
            tagged = replace(article, cluster_id=cluster.id, cluster_label=cluster.label)
            if i < max_per_cluster:
                to_analyze.append(tagged)
            else:
                parked.append(tagged)

    return to_analyze, parked


def _stats(total: int, clusters: int, to_analyze: int, parked: int) -> Dict[str, int]:
    return {
        "totalArticles": total,
        "totalClusters": clusters,
        "articlesToAnalyze": to_analyze,
        "articlesParked": parked,
    }


def cluster_by_incident(
    articles: Sequence[SearchResult],
    subject_name: str,
    chain: Optional[ProviderChain] = None,
    max_per_cluster: int = DEFAULT_MAX_PER_CLUSTER,
    batch_size: int = DEFAULT_BATCH_SIZE,
) -> ClusteringResult:
    """
    Cluster search results by incident and split them into analyze/parked.

    Args:
        articles: Search results about the subject
        subject_name: Screening subject
        chain: LLM provider chain; with no providers every article is its own cluster
        max_per_cluster: Articles kept for analysis per cluster
        batch_size: Articles per LLM clustering call

    Returns:
        ClusteringResult with merged clusters, tagged articles and stats
    """
    chain = chain if chain is not None else ProviderChain()
    logger.info('[CLUSTER] Starting clustering for %d articles about "%s"', len(articles), subject_name)

    if not articles:
        return ClusteringResult(stats=_stats(0, 0, 0, 0))

    if len(articles) <= max_per_cluster:
        logger.info("[CLUSTER] Only %d articles, skipping clustering", len(articles))
        cluster = IncidentCluster(
            id="single-cluster",
            label="All articles",
            articles=list(articles),
            source_tiers=[get_source_tier(a.url) for a in articles],
        )
        return ClusteringResult(
            clusters=[cluster],
            to_analyze=list(articles),
            parked=[],
            stats=_stats(len(articles), 1, len(articles), 0),
        )

    batches = [articles[i:i + batch_size] for i in range(0, len(articles), batch_size)]
    logger.info("[CLUSTER] Split into %d batches", len(batches))

    all_clusters: List[IncidentCluster] = []
    for batch_index, batch in enumerate(batches):
        all_clusters.extend(cluster_batch(batch, subject_name, batch_index, chain))
    logger.info("[CLUSTER] Got %d clusters before merging", len(all_clusters))

    merged = merge_similar_clusters(all_clusters)
    for i, cluster in enumerate(merged, 1):
        tiers = cluster.source_tiers
        logger.info('[CLUSTER]   %d. "%s" - %d articles (T1:%d T2:%d T3:%d)',
                    i, cluster.label, len(cluster.articles),
                    tiers.count(1), tiers.count(2), tiers.count(3))

    to_analyze, parked = select_best_articles(merged, max_per_cluster)
    logger.info("[CLUSTER] Done: %d articles -> %d incidents -> %d to analyze, %d parked",
                len(articles), len(merged), len(to_analyze), len(parked))

    return ClusteringResult(
        clusters=merged,
        to_analyze=to_analyze,
        parked=parked,
        stats=_stats(len(articles), len(merged), len(to_analyze), len(parked)),
    )


def to_parked_articles(parked: Sequence[SearchResult]) -> List[ParkedArticle]:
    """Convert parked search results into the form consolidation expects."""
    return [
        ParkedArticle(url=a.url, title=a.title, cluster_id=a.cluster_id, cluster_label=a.cluster_label)
        for a in parked
    ]

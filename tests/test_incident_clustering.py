"""
Tests for incident clustering of search results.

LLM calls go through a ProviderChain with a fake caller; no network.
"""

import json

import pytest

from src.screening.incident_clustering import (
    build_clustering_prompt,
    calculate_label_similarity,
    cluster_batch,
    cluster_by_incident,
    get_source_tier,
    merge_similar_clusters,
    select_best_articles,
    to_parked_articles,
)
from src.screening.models import IncidentCluster, SearchResult
from src.screening.providers import ProviderChain, ProviderConfig


def _article(url, title, snippet=""):
    return SearchResult(url=url, title=title, snippet=snippet)


def _chain(responses):
    """Chain with one provider answering each call with the next response."""
    prompts = []
    queue = list(responses)

    def caller(provider, prompt):
        prompts.append(prompt)
        return queue.pop(0)

    provider = ProviderConfig(name="gemini", url="u", api_key="k", model="m")
    return ProviderChain([provider], caller=caller), prompts


class TestSourceTier:
    @pytest.mark.parametrize("url,tier", [
        ("https://www.reuters.com/world/article", 1),
        ("https://www.scmp.com/news/hong-kong", 1),
        ("https://www.sfc.hk/en/enforcement", 1),
        ("https://finance.sina.com.cn/stock/1.html", 2),
        ("https://www.hk01.com/news", 2),
        ("https://blog.example.org/post", 3),
        ("not a url", 3),
        ("http://[broken", 3),
        ("", 3),
    ])
    def test_tiers(self, url, tier):
        assert get_source_tier(url) == tier


class TestClusterByIncident:
    def test_empty(self):
        result = cluster_by_incident([], "Wang")

        assert result.clusters == []
        assert result.stats == {
            "totalArticles": 0, "totalClusters": 0, "articlesToAnalyze": 0, "articlesParked": 0,
        }

    def test_few_articles_skip_llm(self):
        chain, prompts = _chain([])
        articles = [_article("https://a.com/1", "One"), _article("https://b.com/2", "Two")]

        result = cluster_by_incident(articles, "Wang", chain=chain, max_per_cluster=3)

        assert prompts == []
        assert len(result.clusters) == 1
        assert result.clusters[0].id == "single-cluster"
        assert result.to_analyze == articles
        assert result.parked == []
        assert result.stats["articlesToAnalyze"] == 2

    def test_llm_clusters_and_parks_lower_tiers(self):
        articles = [
            _article("https://blog.example.org/1", "Wang probed by ICAC"),
            _article("https://www.reuters.com/2", "ICAC probes Wang"),
            _article("https://finance.sina.com.cn/3", "廉政公署调查王某"),
            _article("https://www.hk01.com/4", "Wang sued by Beta Corp"),
        ]
        response = json.dumps({"clusters": [[1, 2, 3], [4]], "labels": ["ICAC probe", "Beta lawsuit"]})
        chain, prompts = _chain([response])

        result = cluster_by_incident(articles, "Wang", chain=chain, max_per_cluster=2)

        assert len(prompts) == 1
        assert [c.id for c in result.clusters] == ["batch0-cluster0", "batch0-cluster1"]
        assert [c.label for c in result.clusters] == ["ICAC probe", "Beta lawsuit"]
        assert result.clusters[0].source_tiers == [3, 1, 2]

        assert [a.url for a in result.to_analyze] == [
            "https://www.reuters.com/2", "https://finance.sina.com.cn/3", "https://www.hk01.com/4",
        ]
        assert [a.url for a in result.parked] == ["https://blog.example.org/1"]
        assert all(a.cluster_id for a in result.to_analyze + result.parked)
        assert result.parked[0].cluster_id == "batch0-cluster0"
        assert result.parked[0].cluster_label == "ICAC probe"
        assert result.stats == {
            "totalArticles": 4, "totalClusters": 2, "articlesToAnalyze": 3, "articlesParked": 1,
        }

    def test_no_providers_each_article_own_cluster(self):
        articles = [
            _article("https://a.com/1", "Wang fined by SFC"),
            _article("https://b.com/2", "王某被证监会处罚"),
            _article("https://c.com/3", "Beta Corp lawsuit"),
        ]

        result = cluster_by_incident(articles, "Wang", max_per_cluster=1)

        assert [c.id for c in result.clusters] == [
            "batch0-fallback0", "batch0-fallback1", "batch0-fallback2",
        ]
        assert len(result.to_analyze) == 3
        assert result.parked == []

    def test_all_providers_fail_falls_back(self):
        chain, _ = _chain(["I am unable to cluster these."])
        articles = [_article("https://a.com/1", "Wang fined"), _article("https://b.com/2", "Beta suit")]

        result = cluster_by_incident(articles, "Wang", chain=chain, max_per_cluster=1)

        assert [c.id for c in result.clusters] == ["batch0-fallback0", "batch0-fallback1"]

    def test_batches(self):
        titles = ["Alpha case", "Bravo case", "Charlie case", "Delta case", "Echo case"]
        articles = [_article(f"https://x.com/{i}", t) for i, t in enumerate(titles)]
        responses = [
            json.dumps({"clusters": [[1], [2]], "labels": ["Alpha", "Bravo"]}),
            json.dumps({"clusters": [[1], [2]], "labels": ["Charlie", "Delta"]}),
            json.dumps({"clusters": [[1]], "labels": ["Echo"]}),
        ]
        chain, prompts = _chain(responses)

        result = cluster_by_incident(articles, "Wang", chain=chain, max_per_cluster=1, batch_size=2)

        assert len(prompts) == 3
        assert [c.id for c in result.clusters] == [
            "batch0-cluster0", "batch0-cluster1", "batch1-cluster0", "batch1-cluster1", "batch2-cluster0",
        ]

    def test_similar_labels_merged_across_batches(self):
        articles = [_article(f"https://x.com/{i}", f"Article {i}") for i in range(4)]
        responses = [
            json.dumps({"clusters": [[1, 2]], "labels": ["证监会调查"]}),
            json.dumps({"clusters": [[1, 2]], "labels": ["证监会调查案"]}),
        ]
        chain, _ = _chain(responses)

        result = cluster_by_incident(articles, "Wang", chain=chain, max_per_cluster=3, batch_size=2)

        assert len(result.clusters) == 1
        assert result.clusters[0].id == "batch0-cluster0"
        assert len(result.clusters[0].articles) == 4
        assert len(result.to_analyze) == 3
        assert len(result.parked) == 1

    def test_placeholder_labels_not_merged_across_batches(self):
        articles = [_article(f"https://x.com/{i}", f"Story {i}") for i in range(6)]
        response = json.dumps({"clusters": [[1], [2], [3]]})
        chain, _ = _chain([response, response])

        result = cluster_by_incident(articles, "Wang", chain=chain, max_per_cluster=1, batch_size=3)

        assert len(result.clusters) == 6
        assert all(c.generated_label for c in result.clusters)
        assert result.parked == []

    def test_untitled_fallback_clusters_not_merged(self):
        articles = [_article("https://a.com/1", ""), _article("https://b.com/2", "")]

        result = cluster_by_incident(articles, "Wang", max_per_cluster=1)

        assert len(result.clusters) == 2
        assert result.parked == []


class TestClusterBatch:
    def test_out_of_range_indices_dropped(self):
        articles = [_article("https://a.com/1", "One"), _article("https://b.com/2", "Two")]
        chain, _ = _chain([json.dumps({"clusters": [[1, 9, 0], [2]], "labels": ["Bribery probe"]})])

        clusters = cluster_batch(articles, "Wang", 0, chain)

        assert [[a.url for a in c.articles] for c in clusters] == [["https://a.com/1"], ["https://b.com/2"]]
        assert clusters[1].label == "Incident 2"
        assert clusters[1].generated_label is True
        assert clusters[0].generated_label is False

    def test_invalid_shape_is_failure(self):
        articles = [_article("https://a.com/1", "One"), _article("https://b.com/2", "Two")]
        chain, _ = _chain([json.dumps({"clusters": "1,2"})])

        clusters = cluster_batch(articles, "Wang", 3, chain)

        assert [c.id for c in clusters] == ["batch3-fallback0", "batch3-fallback1"]

    def test_fallback_label_truncated(self):
        title = "A very long headline about the subject that keeps going"
        clusters = cluster_batch([_article("https://a.com/1", title)], "Wang", 0, ProviderChain())

        assert clusters[0].label == title[:30]


class TestLabelSimilarity:
    def test_chinese_jaccard(self):
        assert calculate_label_similarity("证监会调查", "证监会调查案") == pytest.approx(5 / 6)

    def test_chinese_disjoint(self):
        assert calculate_label_similarity("证监会调查", "法院判决") == 0.0

    def test_english_substring(self):
        assert calculate_label_similarity("ICAC probe", "icac probe into Wang") == 0.8

    def test_english_unrelated(self):
        assert calculate_label_similarity("ICAC probe", "Beta lawsuit") == 0.0

    def test_mixed_scripts(self):
        assert calculate_label_similarity("证监会调查", "CSRC probe") == 0.0


class TestMergeAndSelect:
    def test_merge_keeps_first_id(self):
        clusters = [
            IncidentCluster(id="c0", label="证监会调查", articles=[_article("u1", "t1")], source_tiers=[3]),
            IncidentCluster(id="c1", label="Beta lawsuit", articles=[_article("u2", "t2")], source_tiers=[1]),
            IncidentCluster(id="c2", label="证监会调查案", articles=[_article("u3", "t3")], source_tiers=[2]),
        ]

        merged = merge_similar_clusters(clusters)

        assert [c.id for c in merged] == ["c0", "c1"]
        assert [a.url for a in merged[0].articles] == ["u1", "u3"]
        assert merged[0].source_tiers == [3, 2]
        # Inputs are not modified
        assert len(clusters[0].articles) == 1

    def test_select_is_stable_within_tier(self):
        cluster = IncidentCluster(
            id="c0", label="L",
            articles=[_article("u1", "t"), _article("u2", "t"), _article("u3", "t")],
            source_tiers=[2, 1, 2],
        )

        to_analyze, parked = select_best_articles([cluster], max_per_cluster=2)

        assert [a.url for a in to_analyze] == ["u2", "u1"]
        assert [a.url for a in parked] == ["u3"]
        assert parked[0].cluster_id == "c0"
        assert cluster.articles[2].cluster_id is None

    def test_to_parked_articles(self):
        parked = [SearchResult(url="u1", title="t1", cluster_id="c0", cluster_label="L")]

        result = to_parked_articles(parked)

        assert result[0].url == "u1"
        assert result[0].cluster_id == "c0"
        assert result[0].cluster_label == "L"


class TestPrompt:
    def test_snippets_truncated_and_numbered(self):
        articles = [_article("u1", "First", "x" * 150), _article("u2", "Second", "line1\nline2")]

        prompt = build_clustering_prompt(articles, "Wang")

        assert '1. "First" - ' + "x" * 100 + "\n" in prompt
        assert '2. "Second" - line1 line2' in prompt
        assert '"Wang"' in prompt

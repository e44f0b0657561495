"""
Screening consolidation - adverse-finding deduplication.

Turns many per-article findings about a screening subject into a short list
of consolidated, cited incidents, without merging different people who share
a name.

Modules:
    models - Finding, fingerprint and cluster dataclasses
    fingerprint - Pattern-based fingerprint extraction
    similarity - Fingerprint similarity with identity-conflict vetoes
    grouping - Seed-based and union-find grouping of findings
    llm_json - JSON extraction from LLM response text
    providers - Ordered LLM provider fallback chain
    consolidator - LLM-backed group merge with deterministic fallback
    orchestrator - Top-level consolidate_findings entry point
    incident_clustering - Upstream clustering of search results by incident
    config - YAML configuration for thresholds and providers
    cli - Command-line interface entrypoints
"""

from . import models
from . import fingerprint
from . import similarity
from . import grouping
from . import llm_json
from . import providers
from . import consolidator
from . import incident_clustering
from . import config
from . import orchestrator
from . import cli

from .fingerprint import extract_fingerprint
from .similarity import calculate_similarity
from .grouping import group_findings_by_similarity
from .consolidator import consolidate_group_with_llm
from .orchestrator import consolidate_findings

__version__ = "0.1.0"

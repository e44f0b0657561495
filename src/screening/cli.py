"""
Command-line interface for the screening consolidation tools.

Runs incident clustering, fingerprinting or finding consolidation over JSON
files, mainly for replaying saved screening runs while tuning thresholds.
"""

import argparse
import json
import logging
import sys
from typing import Any, Optional

from src.logging_config import configure_logging

from . import config as screening_config
from .consolidator import GroupConsolidator
from .errors import ScreeningError
from .fingerprint import fingerprint_for
from .incident_clustering import cluster_by_incident, to_parked_articles
from .models import ParkedArticle, RawFinding, SearchResult
from .orchestrator import consolidate_findings
from .providers import ProviderChain, default_providers


def _load_json_list(path: str) -> list:
    with open(path, 'r', encoding='utf-8') as f:
        data = json.load(f)
    if not isinstance(data, list):
        raise ValueError(f"{path}: expected a JSON list")
    return data


def _write_output(payload: Any, output: Optional[str]) -> None:
    text = json.dumps(payload, ensure_ascii=False, indent=2)
    if output:
        with open(output, 'w', encoding='utf-8') as f:
            f.write(text + "\n")
    else:
        print(text)


def cmd_consolidate(args: argparse.Namespace) -> int:
    """Consolidate raw findings from a JSON file."""
    try:
        cfg = screening_config.load_screening_config(args.config)
        findings = [RawFinding.from_dict(d) for d in _load_json_list(args.findings)]
        parked = [ParkedArticle.from_dict(d) for d in _load_json_list(args.parked)] if args.parked else []

        if args.no_llm:
            consolidator = GroupConsolidator()
        else:
            consolidator = GroupConsolidator.from_providers(
                default_providers(cfg.consolidation_order, timeout=cfg.timeout_seconds)
            )

        results = consolidate_findings(
            findings, args.subject, parked_articles=parked,
            consolidator=consolidator, config=cfg,
        )
        _write_output([r.to_dict() for r in results], args.output)

        print(f"Consolidated {len(findings)} finding(s) into {len(results)} incident(s)", file=sys.stderr)
        return 0

    except (OSError, ValueError, ScreeningError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def cmd_cluster(args: argparse.Namespace) -> int:
    """Cluster search results from a JSON file by incident."""
    try:
        cfg = screening_config.load_screening_config(args.config)
        articles = [SearchResult.from_dict(d) for d in _load_json_list(args.articles)]

        if args.no_llm:
            chain = ProviderChain()
        else:
            chain = ProviderChain(default_providers(cfg.clustering_order, timeout=cfg.timeout_seconds))

        result = cluster_by_incident(
            articles, args.subject, chain=chain,
            max_per_cluster=cfg.max_per_cluster, batch_size=cfg.batch_size,
        )
        _write_output(result.to_dict(), args.output)
        if args.parked_output:
            _write_output([p.to_dict() for p in to_parked_articles(result.parked)], args.parked_output)

        stats = result.stats
        print(
            f"{stats['totalArticles']} article(s) -> {stats['totalClusters']} incident(s): "
            f"{stats['articlesToAnalyze']} to analyze, {stats['articlesParked']} parked",
            file=sys.stderr,
        )
        return 0

    except (OSError, ValueError, ScreeningError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def cmd_fingerprint(args: argparse.Namespace) -> int:
    """Attach fingerprints to raw findings so later runs can reuse them."""
    try:
        findings = [RawFinding.from_dict(d) for d in _load_json_list(args.findings)]
        fingerprinted = [f.with_fingerprint(fingerprint_for(f)) for f in findings]
        _write_output([f.to_dict() for f in fingerprinted], args.output)

        print(f"Fingerprinted {len(fingerprinted)} finding(s)", file=sys.stderr)
        return 0

    except (OSError, ValueError, ScreeningError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def main(argv: Optional[list] = None) -> int:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Adverse-finding screening tools",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--config",
        help="Path to screening YAML config (default: config/screening.yaml if present)"
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Debug logging"
    )

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # consolidate command
    consolidate_parser = subparsers.add_parser("consolidate", help="Deduplicate raw findings")
    consolidate_parser.add_argument("--findings", required=True, help="JSON list of raw findings")
    consolidate_parser.add_argument("--subject", required=True, help="Screening subject name")
    consolidate_parser.add_argument("--parked", help="JSON list of parked articles")
    consolidate_parser.add_argument("--output", "-o", help="Output file (JSON); stdout if omitted")
    consolidate_parser.add_argument("--no-llm", action="store_true",
                                    help="Skip LLM providers and use the deterministic merge")
    consolidate_parser.set_defaults(func=cmd_consolidate)

    # cluster command
    cluster_parser = subparsers.add_parser("cluster", help="Cluster search results by incident")
    cluster_parser.add_argument("--articles", required=True, help="JSON list of search results")
    cluster_parser.add_argument("--subject", required=True, help="Screening subject name")
    cluster_parser.add_argument("--output", "-o", help="Output file (JSON); stdout if omitted")
    cluster_parser.add_argument("--no-llm", action="store_true",
                                help="Skip LLM providers; each article becomes its own incident")
    cluster_parser.add_argument("--parked-output",
                                help="Also write parked articles in the form --parked accepts")
    cluster_parser.set_defaults(func=cmd_cluster)

    # fingerprint command
    fingerprint_parser = subparsers.add_parser("fingerprint", help="Precompute finding fingerprints")
    fingerprint_parser.add_argument("--findings", required=True, help="JSON list of raw findings")
    fingerprint_parser.add_argument("--output", "-o", help="Output file (JSON); stdout if omitted")
    fingerprint_parser.set_defaults(func=cmd_fingerprint)

    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 0

    configure_logging(logging.DEBUG if args.verbose else logging.INFO)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())

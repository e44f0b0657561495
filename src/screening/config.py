"""
Screening configuration.

Thresholds and provider ordering come from config/screening.yaml when it
exists (working directory first, then repo root); everything has a default so
the file is optional. API keys are never read from YAML, only from the
environment via src.config.secrets.
"""

import logging
import os
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import yaml

from .errors import ConfigError
from .grouping import (
    DEFAULT_SAME_PERSON_THRESHOLD,
    DEFAULT_THRESHOLD,
    STRATEGIES,
    STRATEGY_SEED,
)
from .incident_clustering import DEFAULT_BATCH_SIZE, DEFAULT_MAX_PER_CLUSTER
from .providers import (
    CLUSTERING_ORDER,
    CONSOLIDATION_ORDER,
    DEFAULT_TIMEOUT_SECONDS,
    KNOWN_PROVIDERS,
)

logger = logging.getLogger(__name__)


CONFIG_FILENAME = "config/screening.yaml"


@dataclass
class ScreeningConfig:
    threshold: float = DEFAULT_THRESHOLD
    same_person_threshold: float = DEFAULT_SAME_PERSON_THRESHOLD
    strategy: str = STRATEGY_SEED
    max_per_cluster: int = DEFAULT_MAX_PER_CLUSTER
    batch_size: int = DEFAULT_BATCH_SIZE
    consolidation_order: List[str] = field(default_factory=lambda: list(CONSOLIDATION_ORDER))
    clustering_order: List[str] = field(default_factory=lambda: list(CLUSTERING_ORDER))
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS

    def validate(self) -> None:
        """
        Raises:
            ConfigError: On out-of-range or unknown values
        """
        for name in ("threshold", "same_person_threshold"):
            value = getattr(self, name)
            if not isinstance(value, (int, float)) or not 0.0 <= value <= 1.0:
                raise ConfigError(f"grouping.{name} must be a number in [0, 1], got {value!r}")
        if self.strategy not in STRATEGIES:
            raise ConfigError(f"grouping.strategy must be one of {STRATEGIES}, got {self.strategy!r}")
        if not isinstance(self.max_per_cluster, int) or self.max_per_cluster < 1:
            raise ConfigError(f"clustering.max_per_cluster must be >= 1, got {self.max_per_cluster!r}")
        if not isinstance(self.batch_size, int) or self.batch_size < 1:
            raise ConfigError(f"clustering.batch_size must be >= 1, got {self.batch_size!r}")
        if not isinstance(self.timeout_seconds, (int, float)) or self.timeout_seconds <= 0:
            raise ConfigError(f"providers.timeout_seconds must be > 0, got {self.timeout_seconds!r}")
        for order_name in ("consolidation_order", "clustering_order"):
            for provider in getattr(self, order_name):
                if provider not in KNOWN_PROVIDERS:
                    raise ConfigError(f"providers.{order_name}: unknown provider {provider!r}")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ScreeningConfig":
        grouping = data.get("grouping") or {}
        clustering = data.get("clustering") or {}
        providers = data.get("providers") or {}
        defaults = cls()

        config = cls(
            threshold=grouping.get("threshold", defaults.threshold),
            same_person_threshold=grouping.get("same_person_threshold", defaults.same_person_threshold),
            strategy=grouping.get("strategy", defaults.strategy),
            max_per_cluster=clustering.get("max_per_cluster", defaults.max_per_cluster),
            batch_size=clustering.get("batch_size", defaults.batch_size),
            consolidation_order=list(providers.get("consolidation_order", defaults.consolidation_order)),
            clustering_order=list(providers.get("clustering_order", defaults.clustering_order)),
            timeout_seconds=providers.get("timeout_seconds", defaults.timeout_seconds),
        )
        config.validate()
        return config


def _candidate_paths() -> List[str]:
    return [
        CONFIG_FILENAME,
        os.path.join(os.path.dirname(os.path.dirname(os.path.dirname(__file__))), CONFIG_FILENAME),
    ]


def load_screening_config(path: Optional[str] = None) -> ScreeningConfig:
    """
    Load screening configuration.

    Args:
        path: Explicit YAML path; if None, the default locations are searched

    Returns:
        ScreeningConfig (defaults if no file is found)

    Raises:
        ConfigError: If the file is unreadable, not a mapping, or has invalid values
    """
    paths = [path] if path else _candidate_paths()

    for candidate in paths:
        if not os.path.exists(candidate):
            continue
        try:
            with open(candidate, 'r', encoding='utf-8') as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise ConfigError(f"Failed to load screening config from {candidate}: {e}")
        if not isinstance(data, dict):
            raise ConfigError(f"Screening config {candidate} must be a mapping")
        logger.debug("Loaded screening config from %s", candidate)
        return ScreeningConfig.from_dict(data)

    if path:
        raise ConfigError(f"Screening config not found: {path}")
    return ScreeningConfig()

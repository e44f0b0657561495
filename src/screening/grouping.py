"""
Group raw findings that describe the same incident.

Two strategies:
  seed        Greedy single pass. Each unassigned finding seeds a group and
              pulls in later findings that score above threshold against the
              seed only. Order-dependent; this is the default.
  union_find  Scores all pairs and unions components above threshold, but
              refuses any union that would put an identity-vetoed pair in the
              same component.

Both use the lower same-person threshold when the pair shares an authority
or court entity.
"""

import logging
from typing import Dict, List, Sequence

from .fingerprint import fingerprint_for
from .models import Fingerprint, RawFinding
from .similarity import calculate_similarity, detect_identity_conflict

logger = logging.getLogger(__name__)


DEFAULT_THRESHOLD = 0.4
DEFAULT_SAME_PERSON_THRESHOLD = 0.3

STRATEGY_SEED = "seed"
STRATEGY_UNION_FIND = "union_find"
STRATEGIES = (STRATEGY_SEED, STRATEGY_UNION_FIND)


def effective_threshold(
    fp1: Fingerprint,
    fp2: Fingerprint,
    threshold: float = DEFAULT_THRESHOLD,
    same_person_threshold: float = DEFAULT_SAME_PERSON_THRESHOLD,
) -> float:
    """Shared entities are a same-person signal and lower the bar."""
    if fp1.entities & fp2.entities:
        return same_person_threshold
    return threshold


def group_findings_by_similarity(
    findings: Sequence[RawFinding],
    threshold: float = DEFAULT_THRESHOLD,
    same_person_threshold: float = DEFAULT_SAME_PERSON_THRESHOLD,
) -> List[List[RawFinding]]:
    """
    Partition findings with greedy seed-based single-link clustering.

    Args:
        findings: Findings in input order (order affects the result)
        threshold: Minimum similarity to join a group
        same_person_threshold: Minimum similarity when seed and candidate share an entity

    Returns:
        List of groups; every finding appears in exactly one group
    """
    if not findings:
        return []
    if len(findings) == 1:
        return [[findings[0]]]

    fingerprints = [fingerprint_for(f) for f in findings]
    assigned = set()
    groups: List[List[RawFinding]] = []

    for i, seed in enumerate(findings):
        if i in assigned:
            continue
        group = [seed]
        assigned.add(i)

        for j in range(i + 1, len(findings)):
            if j in assigned:
                continue
            similarity = calculate_similarity(fingerprints[i], fingerprints[j])
            bar = effective_threshold(
                fingerprints[i], fingerprints[j], threshold, same_person_threshold
            )
            if similarity >= bar:
                group.append(findings[j])
                assigned.add(j)
                logger.debug("Grouped finding %d with seed %d (similarity %.2f >= %.2f)",
                             j, i, similarity, bar)

        groups.append(group)

    return groups


def group_findings_union_find(
    findings: Sequence[RawFinding],
    threshold: float = DEFAULT_THRESHOLD,
    same_person_threshold: float = DEFAULT_SAME_PERSON_THRESHOLD,
) -> List[List[RawFinding]]:
    """
    Partition findings by union-find over all pairwise scores.

    A union is skipped if any member of one component has an identity
    conflict with any member of the other. Groups keep input order, ordered
    by their first member.
    """
    if not findings:
        return []
    if len(findings) == 1:
        return [[findings[0]]]

    n = len(findings)
    fingerprints = [fingerprint_for(f) for f in findings]
    parent = list(range(n))
    members: Dict[int, List[int]] = {i: [i] for i in range(n)}

    def find(x: int) -> int:
        while parent[x] != x:
            parent[x] = parent[parent[x]]
            x = parent[x]
        return x

    def conflicts(root_a: int, root_b: int) -> bool:
        for a in members[root_a]:
            for b in members[root_b]:
                if detect_identity_conflict(fingerprints[a], fingerprints[b]) is not None:
                    return True
        return False

    for i in range(n):
        for j in range(i + 1, n):
            root_i, root_j = find(i), find(j)
            if root_i == root_j:
                continue
            similarity = calculate_similarity(fingerprints[i], fingerprints[j])
            bar = effective_threshold(
                fingerprints[i], fingerprints[j], threshold, same_person_threshold
            )
            if similarity < bar:
                continue
            if conflicts(root_i, root_j):
                logger.info("Skipped merge of findings %d and %d: identity conflict in group", i, j)
                continue
            keep, drop = min(root_i, root_j), max(root_i, root_j)
            parent[drop] = keep
            members[keep].extend(members.pop(drop))

    groups = []
    for root in sorted(members):
        groups.append([findings[i] for i in sorted(members[root])])
    return groups


def group_findings(
    findings: Sequence[RawFinding],
    threshold: float = DEFAULT_THRESHOLD,
    same_person_threshold: float = DEFAULT_SAME_PERSON_THRESHOLD,
    strategy: str = STRATEGY_SEED,
) -> List[List[RawFinding]]:
    """Dispatch to the configured grouping strategy."""
    if strategy == STRATEGY_UNION_FIND:
        return group_findings_union_find(findings, threshold, same_person_threshold)
    if strategy == STRATEGY_SEED:
        return group_findings_by_similarity(findings, threshold, same_person_threshold)
    raise ValueError(f"Unknown grouping strategy: {strategy}")

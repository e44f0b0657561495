"""
Similarity scoring between finding fingerprints.

Identity-conflict vetoes run first: two mentions of the same name that look
like different people (victim vs. perpetrator, different genders, disjoint
employers) score 0 no matter how much else matches. Only then are the
weighted topical signals summed.

Weights:
    +0.40  same event type (not "other")
    +0.30  scaled entity overlap
    +0.20  shared year, else +0.10 if years are one apart
    +0.10  two or more shared risk keywords
    +0.20  overlapping companies
    +0.20  years within range (exact or one apart)
    +0.15  content-word Jaccard > 0.5, else +0.08 if > 0.3
"""

import logging
from typing import AbstractSet, Iterable, Optional

from .models import Fingerprint, GENDER_UNKNOWN

logger = logging.getLogger(__name__)


EVENT_TYPE_WEIGHT = 0.4
ENTITY_WEIGHT = 0.3
YEAR_MATCH_WEIGHT = 0.2
YEAR_ADJACENT_WEIGHT = 0.1
KEYWORD_WEIGHT = 0.1
COMPANY_WEIGHT = 0.2
DATE_RANGE_WEIGHT = 0.2
CONTENT_HIGH_WEIGHT = 0.15
CONTENT_LOW_WEIGHT = 0.08

CONTENT_HIGH_JACCARD = 0.5
CONTENT_LOW_JACCARD = 0.3
MAX_YEAR_GAP = 1
MIN_SHARED_KEYWORDS = 2

VETO_VICTIM = "victim_mismatch"
VETO_GENDER = "gender_mismatch"
VETO_COMPANY = "company_mismatch"


def companies_overlap(companies1: Iterable[str], companies2: Iterable[str]) -> bool:
    """True if any company name contains (or is contained in) one from the other set."""
    companies2 = list(companies2)
    for c1 in companies1:
        for c2 in companies2:
            if c1 in c2 or c2 in c1:
                return True
    return False


def _min_year_gap(years1: Iterable[int], years2: Iterable[int]) -> Optional[int]:
    years2 = list(years2)
    gaps = [abs(y1 - y2) for y1 in years1 for y2 in years2]
    return min(gaps) if gaps else None


def dates_within_range(years1: Iterable[int], years2: Iterable[int], max_gap: int = MAX_YEAR_GAP) -> bool:
    gap = _min_year_gap(years1, years2)
    return gap is not None and gap <= max_gap


def jaccard(set1: AbstractSet[str], set2: AbstractSet[str]) -> float:
    union = set(set1) | set(set2)
    if not union:
        return 0.0
    return len(set(set1) & set(set2)) / len(union)


def detect_identity_conflict(fp1: Fingerprint, fp2: Fingerprint) -> Optional[str]:
    """
    Return the reason two fingerprints describe different people, or None.

    Checks run in a fixed order and the first hit wins. Differing job titles
    alone never veto; titles that differ alongside disjoint companies are
    already caught by the company check.
    """
    if fp1.is_victim != fp2.is_victim:
        return VETO_VICTIM

    if (fp1.gender != GENDER_UNKNOWN and fp2.gender != GENDER_UNKNOWN
            and fp1.gender != fp2.gender):
        return VETO_GENDER

    if (fp1.companies and fp2.companies
            and not companies_overlap(fp1.companies, fp2.companies)):
        return VETO_COMPANY

    return None


def calculate_similarity(fp1: Fingerprint, fp2: Fingerprint) -> float:
    """Similarity score in [0, 1]; 0 whenever an identity conflict is detected."""
    conflict = detect_identity_conflict(fp1, fp2)
    if conflict is not None:
        logger.info(
            "Identity conflict (%s): keeping findings separate [%s vs %s]",
            conflict, fp1.event_type, fp2.event_type,
        )
        return 0.0

    score = 0.0

    if fp1.event_type == fp2.event_type and fp1.event_type != "other":
        score += EVENT_TYPE_WEIGHT

    entity_overlap = len(fp1.entities & fp2.entities)
    max_entities = max(len(fp1.entities), len(fp2.entities), 1)
    score += ENTITY_WEIGHT * (entity_overlap / max_entities)

    if set(fp1.years) & set(fp2.years):
        score += YEAR_MATCH_WEIGHT
    elif dates_within_range(fp1.years, fp2.years):
        score += YEAR_ADJACENT_WEIGHT

    if len(fp1.keywords & fp2.keywords) >= MIN_SHARED_KEYWORDS:
        score += KEYWORD_WEIGHT

    if fp1.companies and fp2.companies and companies_overlap(fp1.companies, fp2.companies):
        score += COMPANY_WEIGHT

    # Reinforces the year term above; kept so existing thresholds behave the same.
    if dates_within_range(fp1.years, fp2.years):
        score += DATE_RANGE_WEIGHT

    overlap = jaccard(fp1.content_words, fp2.content_words)
    if overlap > CONTENT_HIGH_JACCARD:
        score += CONTENT_HIGH_WEIGHT
    elif overlap > CONTENT_LOW_JACCARD:
        score += CONTENT_LOW_WEIGHT

    return max(0.0, min(score, 1.0))

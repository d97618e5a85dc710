"""
Similarity Scorer
-----------------
Weighted, bounded similarity between one lost record and one found record.

Every sub-score lives in [0, 1] and only compares field pairs, so the result
does not depend on which side is "lost" and which is "found".
"""

from __future__ import annotations

import math
from typing import Optional

from rapidfuzz.distance import Levenshtein

from ..common.config import MatchingConfig
from ..common.schemas import ItemRecord, ScoreBreakdown
from .normalizer import UNKNOWN, NormalizedItem, normalize

DEFAULT_CONFIG = MatchingConfig()


def clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    return max(low, min(high, value))


def jaccard(a: frozenset, b: frozenset) -> float:
    union = a | b
    if not union:
        return 0.0
    return len(a & b) / len(union)


def text_similarity(a: NormalizedItem, b: NormalizedItem, config: MatchingConfig) -> float:
    if not a.text or not b.text:
        return 0.0
    overlap = jaccard(a.tokens, b.tokens)
    edit = Levenshtein.normalized_similarity(a.text, b.text)
    return clamp(config.jaccard_share * overlap + (1.0 - config.jaccard_share) * edit)


def category_similarity(a: NormalizedItem, b: NormalizedItem, config: MatchingConfig) -> float:
    a_known, b_known = a.category != UNKNOWN, b.category != UNKNOWN
    if a_known and b_known:
        return 1.0 if a.category == b.category else 0.0
    if a_known or b_known:
        return config.category_unknown_credit
    return 0.0


def location_similarity(a: NormalizedItem, b: NormalizedItem, config: MatchingConfig) -> float:
    if a.location == UNKNOWN or b.location == UNKNOWN:
        return 0.0
    if a.location == b.location:
        return 1.0
    if a.zone is not None and a.zone == b.zone:
        return config.location_zone_credit
    return 0.0


def day_difference(a: NormalizedItem, b: NormalizedItem) -> Optional[int]:
    if a.day is None or b.day is None:
        return None
    return abs((a.day - b.day).days)


def temporal_proximity(days: Optional[float], config: MatchingConfig) -> float:
    """1.0 at zero days, 0.0 beyond the horizon, non-increasing in between."""
    if days is None:
        return 0.0
    days = abs(days)
    if days > config.horizon_days:
        return 0.0
    if config.decay == "exponential":
        # e^-3 ~= 0.05 at the horizon
        return clamp(math.exp(-3.0 * days / config.horizon_days))
    return clamp(1.0 - days / config.horizon_days)


def score_breakdown(a: NormalizedItem, b: NormalizedItem,
                    config: MatchingConfig = DEFAULT_CONFIG) -> ScoreBreakdown:
    return ScoreBreakdown(
        text=text_similarity(a, b, config),
        category=category_similarity(a, b, config),
        location=location_similarity(a, b, config),
        temporal=temporal_proximity(day_difference(a, b), config),
    )


def combine(breakdown: ScoreBreakdown, config: MatchingConfig = DEFAULT_CONFIG) -> float:
    parts = (breakdown.text, breakdown.category, breakdown.location, breakdown.temporal)
    return clamp(math.fsum(w * s for w, s in zip(config.weights, parts)))


def score(lost: ItemRecord, found: ItemRecord, config: MatchingConfig = DEFAULT_CONFIG) -> float:
    """Similarity of two records in [0, 1]."""
    return combine(score_breakdown(normalize(lost), normalize(found), config), config)

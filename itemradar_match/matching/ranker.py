"""
Match Ranker
------------
Scores a candidate set against one target, filters, orders and labels it.
"""

from __future__ import annotations

from typing import Iterable, List, Optional

from ..common.config import MatchingConfig
from ..common.schemas import (Confidence, ExtractedAttributes, ItemRecord, ItemType,
                              MatchCandidate, ScoreBreakdown)
from .normalizer import NormalizedItem, normalize
from .scorer import DEFAULT_CONFIG, combine, day_difference, score_breakdown


def confidence_tier(score: float, config: MatchingConfig = DEFAULT_CONFIG) -> Confidence:
    if score >= config.high_threshold:
        return Confidence.HIGH
    if score >= config.medium_threshold:
        return Confidence.MEDIUM
    return Confidence.LOW


def explain(target: NormalizedItem, candidate: NormalizedItem,
            breakdown: ScoreBreakdown) -> List[str]:
    reasons = []
    if breakdown.category == 1.0:
        reasons.append(f"Same category ({target.category})")
    if breakdown.text > 0.6:
        reasons.append(f"Similar description ({round(breakdown.text * 100)}%)")
    if breakdown.location == 1.0:
        reasons.append("Same location")
    elif breakdown.location > 0:
        reasons.append(f"Nearby location ({target.zone})")
    days = day_difference(target, candidate)
    if days is not None and breakdown.temporal > 0:
        reasons.append("Same day" if days == 0 else f"Within {days} day{'s' if days > 1 else ''}")
    return reasons


def _sort_key(match: MatchCandidate, day_ordinal: int):
    # score desc, then more recent candidate first (unknown dates last), then id
    return (-match.score, -day_ordinal, match.candidate.id)


def rank(target: ItemRecord, candidates: Iterable[ItemRecord],
         config: MatchingConfig = DEFAULT_CONFIG,
         extracted: Optional[ExtractedAttributes] = None,
         limit: Optional[int] = None) -> List[MatchCandidate]:
    """Return candidates at or above the score floor, best first.

    ``extracted`` enriches the target before scoring. ``limit`` keeps only
    the top N results.
    """
    norm_target = normalize(target, extracted)
    scored = []
    for record in candidates:
        norm = normalize(record)
        breakdown = score_breakdown(norm_target, norm, config)
        value = combine(breakdown, config)
        if value < config.score_floor:
            continue

        if target.item_type is ItemType.LOST:
            lost_id, found_id = target.id, record.id
        else:
            lost_id, found_id = record.id, target.id

        match = MatchCandidate(
            lost_id=lost_id,
            found_id=found_id,
            score=value,
            confidence=confidence_tier(value, config),
            breakdown=breakdown,
            reasons=explain(norm_target, norm, breakdown),
            candidate=record,
        )
        scored.append((match, norm.day.toordinal() if norm.day else 0))

    scored.sort(key=lambda pair: _sort_key(*pair))
    ranked = [match for match, _ in scored]
    if limit is not None:
        ranked = ranked[:max(0, limit)]
    return ranked

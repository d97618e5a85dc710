"""
Match Service
-------------
Loads a target report and the open reports of the opposite type, optionally
enriches the target with AI-extracted attributes, and ranks the candidates.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from ..common.config import MatchingConfig
from ..common.errors import ExtractionError
from ..common.schemas import (ExtractedAttributes, ItemRecord, ItemStatus, ItemType,
                              MatchCandidate, RateLimitPolicy)
from ..extractor_agent.agent import AttributeExtractor
from ..quota.guard import QuotaGuard
from ..store.base import ItemStore
from .ranker import rank
from .scorer import DEFAULT_CONFIG

logger = logging.getLogger(__name__)

ANONYMOUS_SUBJECT = "anonymous"


class AIStatus(str, Enum):
    NOT_REQUESTED = "not_requested"
    APPLIED = "applied"
    RATE_LIMITED = "rate_limited"
    FAILED = "failed"
    UNAVAILABLE = "unavailable"


@dataclass
class MatchOutcome:
    target: ItemRecord
    matches: List[MatchCandidate] = field(default_factory=list)
    ai_status: AIStatus = AIStatus.NOT_REQUESTED

    @property
    def ai_applied(self) -> bool:
        return self.ai_status is AIStatus.APPLIED


async def extract_with_timeout(extractor: AttributeExtractor, text: str,
                               item_type: ItemType, timeout: float) -> ExtractedAttributes:
    """Run the extractor bounded by ``timeout`` seconds; timeouts become ``ExtractionError``."""
    try:
        return await asyncio.wait_for(extractor.extract(text, item_type), timeout=timeout)
    except asyncio.TimeoutError as e:
        raise ExtractionError(f"Extractor timed out after {timeout}s") from e


class MatchService:
    def __init__(self, store: ItemStore,
                 extractor: Optional[AttributeExtractor] = None,
                 guard: Optional[QuotaGuard] = None,
                 config: MatchingConfig = DEFAULT_CONFIG,
                 extractor_timeout: float = 10.0):
        self.store = store
        self.extractor = extractor
        self.guard = guard
        self.config = config
        self.extractor_timeout = extractor_timeout

    async def find_matches(self, item_type: ItemType, item_id: str, use_ai: bool = False,
                           user_id: Optional[str] = None,
                           policy: Optional[RateLimitPolicy] = None,
                           limit: Optional[int] = None) -> MatchOutcome:
        """Rank open opposite-type reports against ``item_id``.

        Raises ``ItemNotFoundError`` when the target does not exist. AI
        enrichment never fails the request: quota denial, extractor errors
        and timeouts fall back to plain normalization and are reported
        through ``MatchOutcome.ai_status``.
        """
        # store and ledger calls block on the network, keep them off the event loop
        target = await asyncio.to_thread(self.store.get_item, item_type, item_id)
        candidates = await asyncio.to_thread(self.store.list_items, item_type.opposite(),
                                             statuses=[ItemStatus.OPEN])

        extracted, ai_status = None, AIStatus.NOT_REQUESTED
        if use_ai:
            extracted, ai_status = await self._enrich(target, user_id, policy)

        matches = rank(target, candidates, self.config, extracted=extracted, limit=limit)
        logger.info(f"Ranked {len(candidates)} {item_type.opposite().value} candidates for "
                    f"{item_type.value} item {item_id}: {len(matches)} matches, ai={ai_status.value}")
        return MatchOutcome(target=target, matches=matches, ai_status=ai_status)

    async def _enrich(self, target: ItemRecord, user_id: Optional[str],
                      policy: Optional[RateLimitPolicy]):
        if self.extractor is None:
            return None, AIStatus.UNAVAILABLE

        text = " ".join(filter(None, [target.item_name, target.description, target.location]))
        if not text.strip():
            return None, AIStatus.FAILED

        if self.guard is not None:
            subject = user_id or target.reporter_id or ANONYMOUS_SUBJECT
            decision = await asyncio.to_thread(self.guard.admit, subject,
                                               policy or RateLimitPolicy(), "match")
            if not decision.allowed:
                return None, AIStatus.RATE_LIMITED

        try:
            extracted = await extract_with_timeout(self.extractor, text, target.item_type,
                                                   self.extractor_timeout)
        except ExtractionError as e:
            logger.warning(f"AI enrichment failed for {target.item_type.value} item {target.id}, "
                           f"falling back to plain matching: {e}")
            return None, AIStatus.FAILED
        return extracted, AIStatus.APPLIED

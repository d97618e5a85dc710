"""
Quota Guard
-----------
Dual-scope (per user, system wide), dual-window (trailing minute, trailing
hour) admission control for AI extractor calls.

The check and the record happen inside one ``UsageStore.admit`` call so that
a burst of concurrent requests cannot all read a count below the limit and
all proceed.
"""

from __future__ import annotations

import datetime as dt
import logging
from typing import Callable, Iterable, Optional, Protocol, Tuple

from ..common.schemas import (DenialReason, QuotaDecision, QuotaSnapshot,
                              RateLimitPolicy, UsageCounts)
from ..common.utils import utcnow

logger = logging.getLogger(__name__)

MINUTE = dt.timedelta(seconds=60)
HOUR = dt.timedelta(seconds=3600)

SYSTEM_MESSAGES = {
    DenialReason.SYSTEM_MINUTE: "The AI service is busy right now. Please wait a moment and try again.",
    DenialReason.SYSTEM_HOUR: "The AI service has reached its hourly limit. Please try again later.",
}


class UsageStore(Protocol):
    def counts(self, subject_id: str, now: dt.datetime) -> UsageCounts:
        ...

    def admit(self, subject_id: str, endpoint: str, now: dt.datetime,
              decide: Callable[[UsageCounts], bool]) -> Tuple[UsageCounts, bool]:
        """Atomically read counts, call ``decide`` and record one usage if it returns True.

        ``decide`` may be called more than once when the store retries.
        Returns the counts the final decision was based on and whether usage was recorded.
        """
        ...

    def record(self, subject_id: str, endpoint: str, now: dt.datetime) -> None:
        """Append a usage row without any check."""
        ...


def count_windows(user_stamps: Iterable[dt.datetime], system_stamps: Iterable[dt.datetime],
                  now: dt.datetime) -> UsageCounts:
    minute_start, hour_start = now - MINUTE, now - HOUR
    user_stamps, system_stamps = list(user_stamps), list(system_stamps)
    return UsageCounts(
        user_minute=sum(1 for t in user_stamps if t >= minute_start),
        user_hour=sum(1 for t in user_stamps if t >= hour_start),
        system_minute=sum(1 for t in system_stamps if t >= minute_start),
        system_hour=sum(1 for t in system_stamps if t >= hour_start),
    )


def denial_reason(policy: RateLimitPolicy, counts: UsageCounts) -> Optional[DenialReason]:
    """First failing check wins; user checks come before system checks."""
    if not policy.enabled:
        return None
    if counts.user_minute >= policy.per_user_per_minute:
        return DenialReason.USER_MINUTE
    if counts.user_hour >= policy.per_user_per_hour:
        return DenialReason.USER_HOUR
    if policy.system_enabled:
        if counts.system_minute >= policy.system_per_minute:
            return DenialReason.SYSTEM_MINUTE
        if counts.system_hour >= policy.system_per_hour:
            return DenialReason.SYSTEM_HOUR
    return None


def _remaining(limit: int, used: int, consumed: int = 0) -> int:
    return max(0, limit - used - consumed)


class QuotaGuard:
    def __init__(self, store: UsageStore, clock: Callable[[], dt.datetime] = utcnow):
        self._store = store
        self._clock = clock

    def admit(self, subject_id: str, policy: RateLimitPolicy, endpoint: str = "ner") -> QuotaDecision:
        """Check and record one AI call for ``subject_id``."""
        now = self._clock()

        if not policy.enabled:
            self._store.record(subject_id, endpoint, now)
            return QuotaDecision(allowed=True, reset_minute=now, reset_hour=now)

        counts, recorded = self._store.admit(
            subject_id, endpoint, now,
            lambda c: denial_reason(policy, c) is None,
        )
        reason = None if recorded else denial_reason(policy, counts)
        consumed = 1 if recorded else 0

        decision = QuotaDecision(
            allowed=recorded,
            reason=reason,
            message=self._message(policy, reason),
            user_remaining_minute=_remaining(policy.per_user_per_minute, counts.user_minute, consumed),
            user_remaining_hour=_remaining(policy.per_user_per_hour, counts.user_hour, consumed),
            system_remaining_minute=_remaining(policy.system_per_minute, counts.system_minute, consumed)
            if policy.system_enabled else None,
            system_remaining_hour=_remaining(policy.system_per_hour, counts.system_hour, consumed)
            if policy.system_enabled else None,
            reset_minute=now + MINUTE,
            reset_hour=now + HOUR,
        )
        if not decision.allowed:
            logger.info(f"AI quota denied for {subject_id} on {endpoint}: {reason.value}")
        return decision

    def peek(self, subject_id: str, policy: RateLimitPolicy) -> QuotaSnapshot:
        """Remaining quota for display. Never records usage."""
        if not policy.enabled:
            return QuotaSnapshot(enabled=False)

        counts = self._store.counts(subject_id, self._clock())
        snapshot = QuotaSnapshot(
            enabled=True,
            user_remaining_minute=_remaining(policy.per_user_per_minute, counts.user_minute),
            user_remaining_hour=_remaining(policy.per_user_per_hour, counts.user_hour),
            user_limit_per_minute=policy.per_user_per_minute,
            user_limit_per_hour=policy.per_user_per_hour,
        )
        if policy.system_enabled:
            snapshot = snapshot.model_copy(update={
                "system_remaining_minute": _remaining(policy.system_per_minute, counts.system_minute),
                "system_remaining_hour": _remaining(policy.system_per_hour, counts.system_hour),
                "system_limit_per_minute": policy.system_per_minute,
                "system_limit_per_hour": policy.system_per_hour,
            })
        return snapshot

    @staticmethod
    def _message(policy: RateLimitPolicy, reason: Optional[DenialReason]) -> Optional[str]:
        if reason is None:
            return None
        return SYSTEM_MESSAGES.get(reason, policy.message)

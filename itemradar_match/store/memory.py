"""In-process stores. Thread safe; state is lost on restart."""

from __future__ import annotations

import datetime as dt
import threading
from collections import defaultdict, deque
from typing import Callable, Deque, Dict, Iterable, List, Optional, Tuple

from ..common.errors import ItemNotFoundError
from ..common.schemas import (ItemRecord, ItemStatus, ItemType, RateLimitPolicy,
                              UsageCounts, UsageRecord)
from ..quota.guard import HOUR, count_windows


class InMemoryItemStore:
    def __init__(self, items: Iterable[ItemRecord] = ()):
        self._items: Dict[Tuple[ItemType, str], ItemRecord] = {}
        for item in items:
            self.add(item)

    def add(self, item: ItemRecord) -> None:
        self._items[(item.item_type, item.id)] = item

    def get_item(self, item_type: ItemType, item_id: str) -> ItemRecord:
        try:
            return self._items[(item_type, item_id)]
        except KeyError:
            raise ItemNotFoundError(item_type.value, item_id) from None

    def list_items(self, item_type: ItemType,
                   statuses: Optional[Iterable[ItemStatus]] = None) -> List[ItemRecord]:
        wanted = set(statuses) if statuses is not None else None
        return [
            item for (kind, _), item in self._items.items()
            if kind is item_type and (wanted is None or item.status in wanted)
        ]


class StaticPolicySource:
    def __init__(self, policy: Optional[RateLimitPolicy] = None):
        self.policy = policy or RateLimitPolicy()

    def get_rate_limit_policy(self) -> RateLimitPolicy:
        return self.policy


class InMemoryUsageStore:
    """Usage ledger guarded by a single lock.

    The system scope spans every subject, so one lock covers both scopes.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._records: List[UsageRecord] = []
        self._by_subject: Dict[str, Deque[dt.datetime]] = defaultdict(deque)
        self._system: Deque[dt.datetime] = deque()

    @property
    def records(self) -> List[UsageRecord]:
        with self._lock:
            return list(self._records)

    @property
    def active_subjects(self) -> List[str]:
        """Subjects holding admissions from the last sweep's trailing hour."""
        with self._lock:
            return sorted(self._by_subject)

    def _prune(self, stamps: Deque[dt.datetime], now: dt.datetime) -> None:
        cutoff = now - HOUR
        while stamps and stamps[0] < cutoff:
            stamps.popleft()

    def _sweep(self, now: dt.datetime) -> None:
        # subjects with nothing left in the trailing hour are forgotten
        for subject_id in list(self._by_subject):
            stamps = self._by_subject[subject_id]
            self._prune(stamps, now)
            if not stamps:
                del self._by_subject[subject_id]

    def _counts(self, subject_id: str, now: dt.datetime) -> UsageCounts:
        self._sweep(now)
        self._prune(self._system, now)
        return count_windows(self._by_subject.get(subject_id, ()), self._system, now)

    def counts(self, subject_id: str, now: dt.datetime) -> UsageCounts:
        with self._lock:
            return self._counts(subject_id, now)

    def admit(self, subject_id: str, endpoint: str, now: dt.datetime,
              decide: Callable[[UsageCounts], bool]) -> Tuple[UsageCounts, bool]:
        with self._lock:
            counts = self._counts(subject_id, now)
            if not decide(counts):
                return counts, False
            self._by_subject[subject_id].append(now)
            self._system.append(now)
            self._records.append(UsageRecord(subject_id=subject_id, endpoint=endpoint, timestamp=now))
            return counts, True

    def record(self, subject_id: str, endpoint: str, now: dt.datetime) -> None:
        with self._lock:
            self._records.append(UsageRecord(subject_id=subject_id, endpoint=endpoint, timestamp=now))

"""
Firestore Stores
----------------
Item collections, the admin settings document and the AI usage ledger.

Collections:
    lost_items / found_items   item reports
    settings/appSettings       rate limit policy (admin screen)
    aiUsage                    append-only usage rows
    aiQuota                    per-subject and system ledgers of trailing-hour admissions
"""

from __future__ import annotations

import datetime as dt
import logging
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from google.cloud import firestore

from ..common.errors import ItemNotFoundError
from ..common.schemas import ItemRecord, ItemStatus, ItemType, RateLimitPolicy, UsageCounts
from ..quota.guard import HOUR, count_windows

logger = logging.getLogger(__name__)

ITEM_COLLECTIONS = {
    ItemType.LOST: "lost_items",
    ItemType.FOUND: "found_items",
}
SETTINGS_COLLECTION = "settings"
SETTINGS_DOCUMENT = "appSettings"
USAGE_COLLECTION = "aiUsage"
LEDGER_COLLECTION = "aiQuota"
SYSTEM_LEDGER_ID = "__system__"

# status values written by older clients
_STATUS_ALIASES = {
    "active": ItemStatus.OPEN,
    "searching": ItemStatus.OPEN,
    "found": ItemStatus.OPEN,
    "matched": ItemStatus.CLAIMED,
    "expired": ItemStatus.CLOSED,
    "spam": ItemStatus.CLOSED,
}


def _status(value: Optional[str]) -> ItemStatus:
    if not value:
        return ItemStatus.OPEN
    try:
        return ItemStatus(value)
    except ValueError:
        return _STATUS_ALIASES.get(value, ItemStatus.CLOSED)


def _field(data: Dict, *keys: str):
    for key in keys:
        value = data.get(key)
        if value:
            return value
    return None


def item_from_document(item_type: ItemType, doc_id: str, data: Dict) -> ItemRecord:
    """Build a record from a stored report.

    Snake_case fields are read first, then the camelCase fields older clients
    wrote (``itemName``, ``locationLost``/``locationFound``, ``dateLost``/
    ``dateFound`` and ``userId``).
    """
    side = "Lost" if item_type is ItemType.LOST else "Found"
    return ItemRecord(
        id=data.get("id") or doc_id,
        item_type=item_type,
        description=_field(data, "description", "raw_description") or "",
        item_name=_field(data, "item_name", "itemName"),
        category=data.get("category"),
        color=data.get("color"),
        brand=data.get("brand"),
        location=_field(data, "location", f"location{side}"),
        event_date=_field(data, "event_date", f"date{side}", "timestamp"),
        reporter_id=_field(data, "reporter_id", "userId"),
        status=_status(data.get("status")),
    )


def _to_timestamp(value):
    # Firestore stores datetimes only
    if isinstance(value, dt.date) and not isinstance(value, dt.datetime):
        return dt.datetime.combine(value, dt.time(), tzinfo=dt.timezone.utc)
    return value


def item_to_document(item: ItemRecord) -> Dict:
    return {
        "id": item.id,
        "type": item.item_type.value,
        "description": item.description,
        "item_name": item.item_name,
        "category": item.category,
        "color": item.color,
        "brand": item.brand,
        "location": item.location,
        "event_date": _to_timestamp(item.event_date),
        "reporter_id": item.reporter_id,
        "status": item.status.value,
    }


class FirestoreItemStore:
    def __init__(self, client: firestore.Client):
        self._db = client

    def get_item(self, item_type: ItemType, item_id: str) -> ItemRecord:
        doc = self._db.collection(ITEM_COLLECTIONS[item_type]).document(item_id).get()
        if not doc.exists:
            raise ItemNotFoundError(item_type.value, item_id)
        return item_from_document(item_type, doc.id, doc.to_dict())

    def list_items(self, item_type: ItemType,
                   statuses: Optional[Iterable[ItemStatus]] = None) -> List[ItemRecord]:
        wanted = set(statuses) if statuses is not None else None
        items = []
        for doc in self._db.collection(ITEM_COLLECTIONS[item_type]).stream():
            try:
                item = item_from_document(item_type, doc.id, doc.to_dict())
            except ValueError as e:
                # pydantic ValidationError
                logger.warning(f"Skipping malformed {item_type.value} item {doc.id}: {e}")
                continue
            if wanted is None or item.status in wanted:
                items.append(item)
        return items

    def save_item(self, item: ItemRecord) -> None:
        self._db.collection(ITEM_COLLECTIONS[item.item_type]).document(item.id).set(item_to_document(item))


class FirestorePolicySource:
    def __init__(self, client: firestore.Client):
        self._db = client

    def get_rate_limit_policy(self) -> RateLimitPolicy:
        doc = self._db.collection(SETTINGS_COLLECTION).document(SETTINGS_DOCUMENT).get()
        return RateLimitPolicy.from_settings(doc.to_dict() if doc.exists else None)


def _live_stamps(snapshot, now: dt.datetime) -> List[dt.datetime]:
    if not snapshot.exists:
        return []
    cutoff = now - HOUR
    return [t for t in (snapshot.to_dict() or {}).get("stamps", []) if t >= cutoff]


def _admit_ledgers(transaction, user_ref, system_ref, usage_ref,
                   subject_id: str, endpoint: str, now: dt.datetime,
                   decide: Callable[[UsageCounts], bool]) -> Tuple[UsageCounts, bool]:
    """Read both ledgers, decide, and on admission write both plus a usage row.

    A denial writes nothing.
    """
    user_stamps = _live_stamps(user_ref.get(transaction=transaction), now)
    system_stamps = _live_stamps(system_ref.get(transaction=transaction), now)
    counts = count_windows(user_stamps, system_stamps, now)
    if not decide(counts):
        return counts, False

    transaction.set(user_ref, {"subject_id": subject_id, "stamps": user_stamps + [now]})
    transaction.set(system_ref, {"stamps": system_stamps + [now]})
    transaction.create(usage_ref, {
        "userId": subject_id,
        "endpoint": endpoint,
        "timestamp": firestore.SERVER_TIMESTAMP,
    })
    return counts, True


# retried by Firestore on contention
_admit_in_transaction = firestore.transactional(_admit_ledgers)


class FirestoreUsageStore:
    """Usage ledger with transactional check-and-record.

    Every admission reads and rewrites both the subject ledger and the system
    ledger inside one transaction, so concurrent admissions conflict and are
    retried by Firestore instead of both passing the limit check.
    """

    def __init__(self, client: firestore.Client):
        self._db = client

    def _ledger_refs(self, subject_id: str):
        ledgers = self._db.collection(LEDGER_COLLECTION)
        return ledgers.document(f"user_{subject_id}"), ledgers.document(SYSTEM_LEDGER_ID)

    def counts(self, subject_id: str, now: dt.datetime) -> UsageCounts:
        user_ref, system_ref = self._ledger_refs(subject_id)
        return count_windows(_live_stamps(user_ref.get(), now),
                             _live_stamps(system_ref.get(), now), now)

    def admit(self, subject_id: str, endpoint: str, now: dt.datetime,
              decide: Callable[[UsageCounts], bool]) -> Tuple[UsageCounts, bool]:
        user_ref, system_ref = self._ledger_refs(subject_id)
        usage_ref = self._db.collection(USAGE_COLLECTION).document()
        return _admit_in_transaction(self._db.transaction(), user_ref, system_ref, usage_ref,
                                     subject_id, endpoint, now, decide)

    def record(self, subject_id: str, endpoint: str, now: dt.datetime) -> None:
        self._db.collection(USAGE_COLLECTION).add({
            "userId": subject_id,
            "endpoint": endpoint,
            "timestamp": firestore.SERVER_TIMESTAMP,
        })

from __future__ import annotations

from typing import Iterable, List, Optional, Protocol

from ..common.schemas import ItemRecord, ItemStatus, ItemType, RateLimitPolicy


class ItemStore(Protocol):
    def get_item(self, item_type: ItemType, item_id: str) -> ItemRecord:
        """Raise ``ItemNotFoundError`` when the record does not exist."""
        ...

    def list_items(self, item_type: ItemType,
                   statuses: Optional[Iterable[ItemStatus]] = None) -> List[ItemRecord]:
        ...


class PolicySource(Protocol):
    def get_rate_limit_policy(self) -> RateLimitPolicy:
        ...

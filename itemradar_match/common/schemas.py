"""
Lost & Found Data Models
------------------------
Item records, match results, quota policy and usage ledger rows
"""

from __future__ import annotations

import datetime as dt
from enum import Enum
from typing import Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class ItemType(str, Enum):
    LOST = "lost"
    FOUND = "found"

    def opposite(self) -> "ItemType":
        return ItemType.FOUND if self is ItemType.LOST else ItemType.LOST


class ItemStatus(str, Enum):
    OPEN = "open"
    CLAIMED = "claimed"
    CLOSED = "closed"


class Confidence(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class DenialReason(str, Enum):
    USER_MINUTE = "user_minute"
    USER_HOUR = "user_hour"
    SYSTEM_MINUTE = "system_minute"
    SYSTEM_HOUR = "system_hour"


class ItemRecord(BaseModel):
    """A lost or found report as stored by the item layer"""
    model_config = ConfigDict(frozen=True)

    id: str
    item_type: ItemType
    description: str = ""
    item_name: Optional[str] = None  # short label, e.g. "wallet"
    category: Optional[str] = None
    color: Optional[str] = None
    brand: Optional[str] = None
    location: Optional[str] = None
    event_date: Optional[Union[dt.datetime, dt.date]] = None
    reporter_id: Optional[str] = None
    status: ItemStatus = ItemStatus.OPEN

    def with_status(self, status: ItemStatus) -> "ItemRecord":
        return self.model_copy(update={"status": status})


class ExtractedAttributes(BaseModel):
    """Structured fields returned by the AI attribute extractor"""
    item: Optional[str] = None
    description: Optional[str] = None
    category: Optional[str] = None
    color: Optional[str] = None
    brand: Optional[str] = None
    location: Optional[str] = None
    time: Optional[str] = None
    contact: Optional[str] = None
    contact_type: Optional[str] = None
    remark: Optional[str] = None
    target: ItemType


class ScoreBreakdown(BaseModel):
    model_config = ConfigDict(frozen=True)

    text: float = 0.0
    category: float = 0.0
    location: float = 0.0
    temporal: float = 0.0


class MatchCandidate(BaseModel):
    """One ranked pairing of a lost record with a found record"""
    model_config = ConfigDict(frozen=True)

    lost_id: str
    found_id: str
    score: float = Field(ge=0.0, le=1.0)
    confidence: Confidence
    breakdown: ScoreBreakdown
    reasons: List[str] = []
    candidate: ItemRecord

    @property
    def score_percentage(self) -> int:
        return round(self.score * 100)


class UsageRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    subject_id: str
    endpoint: str
    timestamp: dt.datetime


DEFAULT_RATE_LIMIT_MESSAGE = "You are using AI features too often. Please wait a moment and try again."


class RateLimitPolicy(BaseModel):
    """Admin-configured AI quota. Read-only for the core."""
    model_config = ConfigDict(frozen=True)

    enabled: bool = True
    per_user_per_minute: int = Field(default=5, ge=0)
    per_user_per_hour: int = Field(default=30, ge=0)
    system_enabled: bool = True
    system_per_minute: int = Field(default=20, ge=0)
    system_per_hour: int = Field(default=100, ge=0)
    message: str = DEFAULT_RATE_LIMIT_MESSAGE

    @classmethod
    def from_settings(cls, data: Optional[Dict]) -> "RateLimitPolicy":
        """Build a policy from the ``settings/appSettings`` document.

        Missing keys take the defaults; a zero or missing limit also falls
        back to its default, the same way the admin screen treats it.
        """
        data = data or {}
        defaults = cls()
        return cls(
            enabled=data.get("aiRateLimitEnabled", defaults.enabled),
            per_user_per_minute=data.get("aiRateLimitPerMinute") or defaults.per_user_per_minute,
            per_user_per_hour=data.get("aiRateLimitPerHour") or defaults.per_user_per_hour,
            system_enabled=data.get("systemAiRateLimitEnabled", defaults.system_enabled),
            system_per_minute=data.get("systemAiRateLimitPerMinute") or defaults.system_per_minute,
            system_per_hour=data.get("systemAiRateLimitPerHour") or defaults.system_per_hour,
            message=data.get("aiRateLimitMessage") or defaults.message,
        )


class UsageCounts(BaseModel):
    """Trailing-window admission counts read from the usage ledger"""
    model_config = ConfigDict(frozen=True)

    user_minute: int = 0
    user_hour: int = 0
    system_minute: int = 0
    system_hour: int = 0


class QuotaDecision(BaseModel):
    """Outcome of one admission attempt. ``None`` remaining means unlimited."""
    allowed: bool
    reason: Optional[DenialReason] = None
    message: Optional[str] = None
    user_remaining_minute: Optional[int] = None
    user_remaining_hour: Optional[int] = None
    system_remaining_minute: Optional[int] = None
    system_remaining_hour: Optional[int] = None
    reset_minute: dt.datetime
    reset_hour: dt.datetime


class QuotaSnapshot(BaseModel):
    enabled: bool
    user_remaining_minute: Optional[int] = None
    user_remaining_hour: Optional[int] = None
    user_limit_per_minute: Optional[int] = None
    user_limit_per_hour: Optional[int] = None
    system_remaining_minute: Optional[int] = None
    system_remaining_hour: Optional[int] = None
    system_limit_per_minute: Optional[int] = None
    system_limit_per_hour: Optional[int] = None

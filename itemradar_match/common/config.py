"""
Configuration
-------------
Environment-driven settings for the API plus the tunable matching parameters.
"""

from __future__ import annotations

import math
import os
from dataclasses import dataclass, fields
from functools import lru_cache
from typing import Mapping, Optional, Tuple

from dotenv import load_dotenv

from .errors import ConfigurationError

# ─── bootstrap ──────────────────────────────────────────────────
load_dotenv()

DEFAULT_CORS_ORIGINS = ("http://localhost:9002", "http://localhost:3000")


@dataclass(frozen=True)
class Settings:
    project_id: Optional[str] = None
    google_api_key: Optional[str] = None
    extractor_model: str = "gemini-2.0-flash"
    extractor_timeout_seconds: float = 10.0
    cors_origins: Tuple[str, ...] = DEFAULT_CORS_ORIGINS
    log_file: str = "activity.log"

    def require_project_id(self) -> str:
        if not self.project_id:
            raise ConfigurationError("PROJECT_ID must be set in environment")
        return self.project_id

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "Settings":
        env = os.environ if env is None else env
        origins = env.get("CORS_ORIGINS")
        return cls(
            project_id=env.get("PROJECT_ID") or None,
            google_api_key=env.get("GOOGLE_API_KEY") or None,
            extractor_model=env.get("EXTRACTOR_MODEL", cls.extractor_model),
            extractor_timeout_seconds=float(
                env.get("EXTRACTOR_TIMEOUT_SECONDS", cls.extractor_timeout_seconds)
            ),
            cors_origins=tuple(o.strip() for o in origins.split(",") if o.strip())
            if origins else DEFAULT_CORS_ORIGINS,
            log_file=env.get("LOG_FILE", cls.log_file),
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings.from_env()


DECAY_MODES = ("linear", "exponential")


@dataclass(frozen=True)
class MatchingConfig:
    """Weights and thresholds used by the scorer and the ranker.

    Weights must sum to 1 so that the combined score stays in [0, 1].
    Tier thresholds must satisfy ``score_floor <= medium_threshold <= high_threshold``.
    """
    text_weight: float = 0.35
    category_weight: float = 0.20
    location_weight: float = 0.20
    temporal_weight: float = 0.25

    # share of the text sub-score given to token Jaccard; the rest is edit-distance ratio
    jaccard_share: float = 0.5
    category_unknown_credit: float = 0.25
    location_zone_credit: float = 0.5

    horizon_days: float = 14.0
    decay: str = "linear"

    score_floor: float = 0.15
    medium_threshold: float = 0.5
    high_threshold: float = 0.75

    @property
    def weights(self) -> Tuple[float, float, float, float]:
        return (self.text_weight, self.category_weight,
                self.location_weight, self.temporal_weight)

    def __post_init__(self):
        weights = self.weights
        if any(w < 0 for w in weights):
            raise ConfigurationError("matching weights must be non-negative")
        if not math.isclose(math.fsum(weights), 1.0, abs_tol=1e-9):
            raise ConfigurationError(f"matching weights must sum to 1, got {math.fsum(weights)}")
        for name in ("jaccard_share", "category_unknown_credit", "location_zone_credit"):
            if not 0.0 <= getattr(self, name) <= 1.0:
                raise ConfigurationError(f"{name} must be within [0, 1]")
        if self.horizon_days <= 0:
            raise ConfigurationError("horizon_days must be positive")
        if self.decay not in DECAY_MODES:
            raise ConfigurationError(f"decay must be one of {DECAY_MODES}")
        if not 0.0 <= self.score_floor <= self.medium_threshold <= self.high_threshold <= 1.0:
            raise ConfigurationError("expected 0 <= score_floor <= medium_threshold <= high_threshold <= 1")

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "MatchingConfig":
        """Read ``MATCH_*`` overrides, e.g. ``MATCH_HORIZON_DAYS=7``."""
        env = os.environ if env is None else env
        overrides = {}
        for f in fields(cls):
            raw = env.get(f"MATCH_{f.name.upper()}")
            if raw is None:
                continue
            overrides[f.name] = raw if f.name == "decay" else float(raw)
        return cls(**overrides)


@lru_cache(maxsize=1)
def get_matching_config() -> MatchingConfig:
    return MatchingConfig.from_env()

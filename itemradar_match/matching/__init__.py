"""
Lost & Found Matching
---------------------
Public API:

    normalize(...)
    score(...)
    rank(...)
"""

from .normalizer import NormalizedItem, UNKNOWN, normalize  # noqa: F401
from .scorer import score, score_breakdown, combine  # noqa: F401
from .ranker import rank, confidence_tier  # noqa: F401

"""
Storage adapters
----------------
Firestore-backed stores for production, in-memory stores for tests and local runs.
"""

from .base import ItemStore, PolicySource  # noqa: F401
from .memory import InMemoryItemStore, InMemoryUsageStore, StaticPolicySource  # noqa: F401

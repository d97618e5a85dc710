from .guard import QuotaGuard, UsageStore, count_windows, denial_reason  # noqa: F401

"""
Shared utility functions for the backend.
"""
from .rate_limiter import check_ip_rate_limit, RATE_LIMITS, clear_rate_limits
from .time_utils import to_local, local_now, week_range

__all__ = [
    "check_ip_rate_limit",
    "RATE_LIMITS",
    "clear_rate_limits",
    "to_local",
    "local_now",
    "week_range",
]

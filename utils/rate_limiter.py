"""
Per-IP rate limiting utility with configurable limits per operation.
Uses in-memory sliding window algorithm.
"""
import time
from collections import defaultdict
from typing import Dict, List
from fastapi import HTTPException, Request, status


# IP-based storage: {"{ip}:{operation}": [timestamp, timestamp, ...]}
_ip_request_counts: Dict[str, List[float]] = defaultdict(list)

# Configurable rate limits by operation type
RATE_LIMITS = {
    # Authentication endpoints - stricter to prevent brute force
    "auth_login": {"limit": 5, "window": 60},          # 5 attempts/min
    "auth_register": {"limit": 10, "window": 60},      # 10 sign-ups/min

    # Default fallback
    "default": {"limit": 100, "window": 60},
}


def get_client_ip(request: Request) -> str:
    """Extract client IP from request, handling proxies."""
    forwarded_for = request.headers.get("X-Forwarded-For", "")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


def check_ip_rate_limit(request: Request, operation: str) -> None:
    """
    Check rate limit for an IP address (for unauthenticated endpoints).
    Raises HTTPException 429 if rate limit exceeded.

    Args:
        request: The FastAPI request object
        operation: The operation key (e.g., "auth_login")
    """
    config = RATE_LIMITS.get(operation, RATE_LIMITS["default"])
    limit = config["limit"]
    window = config["window"]

    client_ip = get_client_ip(request)
    key = f"{client_ip}:{operation}"
    now = time.time()

    # Clean old entries outside the window
    _ip_request_counts[key] = [
        t for t in _ip_request_counts[key] if now - t < window
    ]

    if len(_ip_request_counts[key]) >= limit:
        retry_after = int(window - (now - _ip_request_counts[key][0]))
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail=f"Demasiados intentos. Intenta de nuevo en {retry_after} segundos.",
            headers={"Retry-After": str(retry_after)}
        )

    _ip_request_counts[key].append(now)


def clear_rate_limits() -> None:
    """Clear all rate limit data. Useful for testing."""
    _ip_request_counts.clear()

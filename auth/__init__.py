"""
Authentication module for the tutoring scheduling backend.

Provides:
- JWT token creation and validation
- Password hashing
- FastAPI dependencies for route protection
- Ownership-based capability checks
"""

from .jwt_handler import create_access_token, decode_token, verify_token
from .dependencies import get_current_user, get_current_actor, require_role
from .permissions import Actor, build_actor

__all__ = [
    "create_access_token",
    "decode_token",
    "verify_token",
    "get_current_user",
    "get_current_actor",
    "require_role",
    "Actor",
    "build_actor",
]

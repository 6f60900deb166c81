"""
FastAPI dependencies for authentication and authorization.
"""

from typing import List

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from database import get_db
from errors import Unauthenticated, Forbidden, TokenMalformed
from models import User
from .jwt_handler import decode_token
from .permissions import Actor, build_actor


def _bearer_token(request: Request) -> str:
    auth_header = request.headers.get("Authorization", "")
    scheme, _, token = auth_header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise Unauthenticated("Not authenticated")
    return token.strip()


def get_current_user(
    request: Request,
    db: Session = Depends(get_db),
) -> User:
    """
    Get the currently authenticated user from the Authorization: Bearer header.

    Raises Unauthenticated (or its Expired / Malformed kinds) when the token
    is missing or invalid, and Forbidden for deactivated users.

    Usage:
        @router.get("/protected")
        def protected_route(current_user: User = Depends(get_current_user)):
            ...
    """
    payload = decode_token(_bearer_token(request))

    user_id_str = payload.get("sub")
    if not user_id_str or not str(user_id_str).isdigit():
        raise TokenMalformed("Invalid token payload")

    user = db.query(User).filter(User.id == int(user_id_str)).first()
    if not user:
        raise Unauthenticated("User not found")
    if not user.is_active:
        raise Forbidden("Usuario desactivado")

    return user


def get_current_actor(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Actor:
    """
    The authenticated caller with its tutor/student profile ids resolved.

    Usage:
        @router.post("/agendamientos")
        def create(actor: Actor = Depends(get_current_actor)):
            ...
    """
    return build_actor(db, current_user)


def require_role(allowed_roles: List[str]):
    """
    Factory function to create a dependency that requires specific roles.

    Usage:
        @router.get("/reportes/semanal")
        def weekly(actor: Actor = Depends(require_role(["admin"]))):
            ...
    """
    def role_checker(actor: Actor = Depends(get_current_actor)) -> Actor:
        if actor.role not in allowed_roles:
            raise Forbidden(f"Acceso denegado. Roles requeridos: {', '.join(allowed_roles)}")
        return actor

    return role_checker

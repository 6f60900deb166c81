"""
Authentication router: login, registration and the caller's profile.
"""

import logging
from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.orm import Session

from database import get_db
from models import Student, Tutor, User
from auth.dependencies import get_current_user
from schemas import (
    LoginRequest,
    MessageResponse,
    ProfileResponse,
    ProfileUpdate,
    RegisterRequest,
    StudentProfileResponse,
    TokenResponse,
    TutorProfileResponse,
    UserResponse,
)
from services import accounts
from utils.rate_limiter import check_ip_rate_limit

router = APIRouter()
logger = logging.getLogger(__name__)


def _profile_response(user: User, profile) -> ProfileResponse:
    profile_data = None
    if isinstance(profile, Student):
        profile_data = StudentProfileResponse.model_validate(profile)
    elif isinstance(profile, Tutor):
        profile_data = TutorProfileResponse.model_validate(profile)
    return ProfileResponse(user=UserResponse.model_validate(user), profile=profile_data)


@router.post("/login", response_model=TokenResponse)
async def login(
    credentials: LoginRequest,
    request: Request,
    db: Session = Depends(get_db),
):
    """
    Exchange email and password for a bearer token.

    Rate limited per IP to slow down brute force attempts.
    """
    check_ip_rate_limit(request, "auth_login")
    token = accounts.authenticate(db, credentials.email, credentials.password)
    return TokenResponse(token=token)


@router.post("/register", response_model=MessageResponse, status_code=status.HTTP_201_CREATED)
async def register(
    data: RegisterRequest,
    request: Request,
    db: Session = Depends(get_db),
):
    """
    Create a student or tutor account together with its profile.
    """
    check_ip_rate_limit(request, "auth_register")
    accounts.register(db, data)
    return MessageResponse(message="Usuario creado")


@router.get("/auth/profile", response_model=ProfileResponse)
async def get_profile(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Current user with its tutor or student profile."""
    user, profile = accounts.get_profile(db, current_user)
    return _profile_response(user, profile)


@router.put("/auth/profile", response_model=ProfileResponse)
async def update_profile(
    changes: ProfileUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """
    Update name, password (requires currentPassword) and role profile fields.
    """
    user, profile = accounts.update_profile(db, current_user, changes)
    return _profile_response(user, profile)

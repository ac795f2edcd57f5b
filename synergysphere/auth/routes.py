"""
Authentication API endpoints.

This module provides REST API endpoints for:
- User registration
- Login
- Token refresh
- Profile read/update
"""

import logging

from fastapi import APIRouter, Depends, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from synergysphere import schemas
from synergysphere.database import get_db
from synergysphere.errors import Conflict, Unauthorized
from synergysphere.models import User, UserRole
from synergysphere.auth.security import (
    hash_password,
    issue_tokens,
    subject_user_id,
    verify_password,
    verify_token,
)
from synergysphere.auth.dependencies import get_current_user

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/auth", tags=["auth"], responses=schemas.ERROR_RESPONSES)


@router.post(
    "/register",
    response_model=schemas.ApiResponse[schemas.AuthResponse],
    status_code=status.HTTP_201_CREATED,
)
def register(request: schemas.RegisterRequest, db: Session = Depends(get_db)):
    """
    Register a new user account.

    Returns:
        Created user with an access/refresh token pair

    Raises:
        Conflict: 409 if email already registered
    """
    logger.info(f"Registration attempt for email: {request.email}")

    existing_user = db.query(User).filter(User.email == request.email).first()
    if existing_user:
        logger.info(f"Registration failed: email already exists: {request.email}")
        raise Conflict("User already exists")

    new_user = User(
        name=request.name,
        email=request.email,
        password_hash=hash_password(request.password),
        role=UserRole.USER,
    )
    db.add(new_user)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise Conflict("User already exists")
    db.refresh(new_user)

    logger.info(f"User registered successfully: {new_user.email} (ID: {new_user.id})")
    return {
        "success": True,
        "data": {"user": new_user, **issue_tokens(new_user)},
        "message": "User registered successfully",
    }


@router.post("/login", response_model=schemas.ApiResponse[schemas.AuthResponse])
def login(request: schemas.LoginRequest, db: Session = Depends(get_db)):
    """
    Login with email and password.

    Raises:
        Unauthorized: 401 if credentials are invalid
    """
    logger.info(f"Login attempt for email: {request.email}")

    user = db.query(User).filter(User.email == request.email).first()
    if not user or not verify_password(request.password, user.password_hash):
        logger.info(f"Login failed for email: {request.email}")
        raise Unauthorized("Invalid email or password")

    logger.info(f"User logged in successfully: {user.email} (ID: {user.id})")
    return {
        "success": True,
        "data": {"user": user, **issue_tokens(user)},
        "message": "Login successful",
    }


@router.post("/refresh", response_model=schemas.ApiResponse[schemas.TokenResponse])
def refresh_token(request: schemas.RefreshRequest, db: Session = Depends(get_db)):
    """
    Exchange a refresh token for a new token pair.

    Raises:
        Unauthorized: 401 if the refresh token is invalid, expired or not a refresh token
    """
    logger.debug("Token refresh requested")

    payload = verify_token(request.refresh_token)
    if payload is None or payload.get("type") != "refresh":
        logger.info("Token refresh failed: invalid refresh token")
        raise Unauthorized("Invalid refresh token")

    user_id = subject_user_id(payload)
    if user_id is None:
        raise Unauthorized("Invalid refresh token")

    user = db.query(User).filter(User.id == user_id).first()
    if user is None:
        logger.info(f"Token refresh failed: user {user_id} not found")
        raise Unauthorized("User not found")

    logger.info(f"Tokens refreshed for user {user.id}")
    return {"success": True, "data": issue_tokens(user), "message": "Token refreshed successfully"}


@router.get("/profile", response_model=schemas.ApiResponse[schemas.User])
def get_profile(current_user: User = Depends(get_current_user)):
    return {"success": True, "data": current_user, "message": "Profile retrieved successfully"}


@router.put("/profile", response_model=schemas.ApiResponse[schemas.User])
def update_profile(
    profile_update: schemas.ProfileUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Update the current user's name and/or email."""
    update_data = profile_update.model_dump(exclude_unset=True, exclude_none=True)
    logger.debug(f"User {current_user.id} updating profile: {list(update_data)}")

    new_email = update_data.get("email")
    if new_email and new_email != current_user.email:
        taken = db.query(User).filter(User.email == new_email, User.id != current_user.id).first()
        if taken:
            raise Conflict("Email already in use")

    for key, value in update_data.items():
        setattr(current_user, key, value)

    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise Conflict("Email already in use")
    db.refresh(current_user)

    logger.info(f"Profile updated for user {current_user.id}")
    return {"success": True, "data": current_user, "message": "Profile updated successfully"}

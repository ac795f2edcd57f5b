"""
FastAPI dependencies for authentication.

Resolves the ``Authorization: Bearer <token>`` header to the acting User.
Every core operation depends on this; a missing or invalid identity yields 401
before any project or task logic runs.
"""

import logging
from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from synergysphere.database import get_db
from synergysphere.errors import Unauthorized
from synergysphere.models import User
from synergysphere.auth.security import subject_user_id, verify_token

logger = logging.getLogger(__name__)

# HTTP Bearer token scheme for JWT authentication
security = HTTPBearer(auto_error=False)


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db),
) -> User:
    """
    Extract and validate the current user from a JWT access token.

    Args:
        credentials: HTTP Bearer credentials (JWT token)
        db: Database session

    Returns:
        User object if authentication succeeds

    Raises:
        Unauthorized: 401 if the token is missing, invalid, of the wrong type,
            or refers to a user that no longer exists

    Example:
        @router.get("/api/v1/protected")
        async def protected_route(user: User = Depends(get_current_user)):
            return {"user_id": user.id}
    """
    if not credentials or not credentials.credentials:
        logger.info("No authentication credentials provided")
        raise Unauthorized("Not authenticated")

    payload = verify_token(credentials.credentials)
    if payload is None:
        raise Unauthorized("Invalid or expired token")

    if payload.get("type") != "access":
        logger.info(f"Invalid token type: {payload.get('type')}")
        raise Unauthorized("Invalid token type. Use access token for API requests.")

    # Malformed subjects should return 401, not 500
    user_id = subject_user_id(payload)
    if user_id is None:
        raise Unauthorized("Invalid token payload")

    user = db.query(User).filter(User.id == user_id).first()
    if user is None:
        logger.info(f"User not found for id: {user_id}")
        raise Unauthorized("User not found")

    logger.debug(f"User authenticated via JWT: {user.email}")
    return user

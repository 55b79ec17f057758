"""
Authentication Dependencies for the Quiz Portal

Identity is issued by an external provider; this module only verifies the
bearer JWT it signs and maps it to a local user row.

Provides FastAPI dependencies for:
- User authentication
- IDOR protection

Usage:
    @router.get("/protected")
    def protected_endpoint(current_user: User = Depends(get_current_user)):
        return {"user_id": current_user.id}
"""

import os
import logging
from typing import Optional

from fastapi import Depends, HTTPException, Header, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session
from jose import jwt, JWTError

from quizportal.database import get_db
from quizportal.models.models import User
from quizportal.services.shuffle_codec import TOKEN_TYPE as QUIZ_SESSION_TOKEN_TYPE

logger = logging.getLogger(__name__)

# HTTP Bearer scheme for extracting tokens
security = HTTPBearer(auto_error=False)

JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "").strip()
if not JWT_SECRET_KEY or len(JWT_SECRET_KEY) < 32:
    raise RuntimeError(
        "CRITICAL: JWT_SECRET_KEY environment variable must be set to a secure value "
        "(at least 32 characters). "
        "Generate one with: python -c 'import secrets; print(secrets.token_urlsafe(32))'"
    )
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
# SECURITY: Audience validation - set to the identity provider's audience in production
JWT_AUDIENCE = os.getenv("JWT_AUDIENCE")


def verify_access_token(token: str) -> dict:
    """
    Verify an access token and return its claims.

    Raises:
        HTTPException: If token is invalid, expired or is a quiz session token
    """
    decode_kwargs = {"algorithms": [JWT_ALGORITHM]}
    if JWT_AUDIENCE:
        decode_kwargs["audience"] = JWT_AUDIENCE
    else:
        decode_kwargs["options"] = {"verify_aud": False}

    try:
        claims = jwt.decode(token, JWT_SECRET_KEY, **decode_kwargs)
    except JWTError as e:
        logger.warning(f"JWT verification failed: {e}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token"
        )

    # Quiz session tokens are signed with the same key but are not credentials
    if claims.get("typ") == QUIZ_SESSION_TOKEN_TYPE:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token type"
        )

    return claims


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    authorization: Optional[str] = Header(None),
    db: Session = Depends(get_db)
) -> User:
    """
    FastAPI dependency to get the currently authenticated user.

    Raises:
        HTTPException: If not authenticated or user not found
    """
    token = None
    if credentials:
        token = credentials.credentials
    elif authorization and authorization.startswith("Bearer "):
        token = authorization[7:]

    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"}
        )

    claims = verify_access_token(token)

    user_id = claims.get("sub")
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token claims"
        )

    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found"
        )

    return user


def verify_user_access(current_user: User, user_id: str) -> None:
    """
    Verify that the current user has access to the requested user's data.

    Prevents IDOR (Insecure Direct Object Reference) attacks.

    Raises:
        HTTPException: If access is denied or user_id is invalid
    """
    # SECURITY: Validate user_id is not empty/None to prevent bypass
    if not user_id or not str(user_id).strip():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid user ID"
        )

    # Admin can access any user
    if current_user.is_admin:
        return

    if current_user.id != user_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Access denied"
        )

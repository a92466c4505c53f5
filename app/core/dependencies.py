"""
Common dependencies for FastAPI routes.
"""

from typing import Optional

import jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from app.core.config import get_launcher_config, get_settings
from app.jobs.service import JobsService
from app.users.service import UserService
from app.users.store import K8sSecretUserStore

# HTTP Bearer token security scheme
security = HTTPBearer()


def decode_token(token: str) -> Optional[dict]:
    """Decode and validate a JWT token."""
    settings = get_settings()
    try:
        return jwt.decode(token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
    except jwt.InvalidTokenError:
        return None


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security)
) -> dict:
    """
    Dependency to get the current authenticated user from JWT token.
    Returns user dict with 'username' and 'admin'.
    """
    payload = decode_token(credentials.credentials)

    if not payload or not payload.get("sub"):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return {
        "username": payload["sub"],
        "admin": bool(payload.get("admin", False)),
    }


def get_jobs_service() -> JobsService:
    return JobsService(get_launcher_config())


def get_user_service() -> UserService:
    settings = get_settings()
    return UserService(K8sSecretUserStore.from_settings(settings), admin_group=settings.ADMIN_GROUP_NAME)

"""FastAPI dependencies for database sessions, authentication and the analytics cache."""
from typing import Dict, Optional

import jwt
import structlog
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from charmshop.auth.jwt import jwt_auth
from charmshop.cache import AnalyticsCache
from charmshop.database import AsyncSessionLocal, get_db
from charmshop.services.analytics_service import AnalyticsService

logger = structlog.get_logger(__name__)

# HTTP Bearer token security scheme
security = HTTPBearer(auto_error=False)


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> Dict[str, str]:
    """
    Get current admin from the bearer JWT.

    Args:
        credentials: HTTP Bearer token from request header

    Returns:
        dict: Decoded claims (sub, email, role)

    Raises:
        HTTPException: If token is invalid, expired, or missing
    """
    if not credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
            headers={"WWW-Authenticate": "Bearer"},
        )

    token = credentials.credentials

    try:
        payload = jwt_auth.verify_access_token(token)
    except jwt.ExpiredSignatureError:
        logger.warning("token_expired")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token has expired",
            headers={"WWW-Authenticate": "Bearer"},
        )
    except jwt.InvalidTokenError as e:
        logger.warning("invalid_token", error=str(e))
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authentication token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    logger.debug("user_authenticated", user_id=payload.get("sub"), role=payload.get("role"))
    return payload


def actor_from_user(user: Dict[str, str]) -> str:
    """Name recorded as the trigger of a refresh."""
    return user.get("email") or user.get("sub") or "system"


def get_analytics_cache(request: Request) -> AnalyticsCache:
    """Process-wide analytics cache created during application startup."""
    return request.app.state.analytics_cache


def get_session_factory() -> async_sessionmaker:
    """Session factory for work that needs its own sessions (concurrent refresh)."""
    return AsyncSessionLocal


def get_analytics_service(
    db: AsyncSession = Depends(get_db),
    cache: AnalyticsCache = Depends(get_analytics_cache),
    session_factory: async_sessionmaker = Depends(get_session_factory),
) -> AnalyticsService:
    return AnalyticsService(db, cache, session_factory=session_factory)
